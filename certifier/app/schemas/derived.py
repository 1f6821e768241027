from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class DerivedFieldPolicy(str, Enum):
    """
    When derived fields are computed relative to the issuance.

    FROZEN_AT_SELECTION keeps the values computed when the entity was
    selected, even if the form stays open past a birthday.
    AS_OF_ISSUANCE recomputes them from the snapshot at save time.
    """

    FROZEN_AT_SELECTION = "frozen_at_selection"
    AS_OF_ISSUANCE = "as_of_issuance"


class DerivedFields(BaseModel):
    """
    Values computed from an entity snapshot and an as-of date.

    The defaults are the cleared state: no age, empty strings elsewhere.
    """

    age: Optional[int] = None
    civil_status: str = ""
    residency_since_year: str = ""

    model_config = ConfigDict(frozen=True)


EMPTY_DERIVED = DerivedFields()
