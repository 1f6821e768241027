from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, Field

from certifier.app.schemas.document_types import DocumentTypeKey
from certifier.app.schemas.entities import EntitySnapshot


class FormState(BaseModel):
    """
    Per-session, mutable state of one certificate form.

    ``selections`` maps a slot name (``primary``, or ``male``/``female``
    for marriage) to the selected snapshot; an absent slot is empty.
    ``as_of`` is the instant derived fields and the issuance date line
    are computed against.
    """

    document_type: DocumentTypeKey
    values: Dict[str, str] = Field(default_factory=dict)
    amount: str = ""
    selections: Dict[str, EntitySnapshot] = Field(default_factory=dict)
    as_of: Optional[datetime] = None

    def selected(self, slot: str) -> Optional[EntitySnapshot]:
        return self.selections.get(slot)

    def set_value(self, name: str, value: Optional[str]) -> None:
        if value is None or value == "":
            self.values.pop(name, None)
        else:
            self.values[name] = value
