"""
Closed catalogue of document types and their input field contracts.

``DocumentTypeKey`` is the only way to address a template. The registry
checks at import time that every member is mapped exactly once, so adding
or removing a document type is a change to this enum and the catalogue,
never a runtime-discoverable miss.
"""

from enum import Enum
from typing import Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict


CUSTOM_CHOICE = "custom"

CIVIL_STATUS_OPTIONS: Tuple[str, ...] = (
    "Single",
    "Lived-in",
    "Cohabitation",
    "Married",
    "Widowed",
    "Separated",
)

PURPOSE_OPTIONS: Tuple[str, ...] = (
    "Scholarship",
    "Employment",
    "Financial Assistance",
    "Identification",
)


class DocumentTypeKey(str, Enum):
    """
    Identifiers of the document types the office can issue.

    NOTE:
    This enum is finite. Every member must be registered in the
    template catalogue.
    """

    RESIDENCY = "residency"
    INDIGENCY = "indigency"
    BARANGAY_CLEARANCE = "barangay-clearance"
    BUSINESS_CLEARANCE = "business-clearance"
    MARRIAGE = "marriage"
    BIRTH_REGISTRATION = "birth-registration"
    OWNERSHIP = "ownership"
    UNEMPLOYMENT = "unemployment"
    SOLO_PARENT = "solo-parent"
    FOURPS = "fourps"


class FieldKind(str, Enum):
    TEXT = "text"
    MULTILINE = "multiline"
    YEAR = "year"
    DATE = "date"
    CHOICE = "choice"
    NUMBER = "number"


class FieldSpec(BaseModel):
    """
    Declarative description of one user-entered form field.

    The engine only needs the name, whether the field blocks issuance,
    and how to resolve its value. Label, kind and options exist so a host
    UI can build the input without knowing the template.
    """

    name: str
    label: str
    kind: FieldKind = FieldKind.TEXT
    required: bool = False
    options: Tuple[str, ...] = ()
    allow_custom: bool = False

    # Name of a DerivedFields attribute used when the user left the
    # field empty (e.g. residency year falls back to the directory value).
    derived_fallback: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def custom_name(self) -> str:
        return f"{self.name}_custom"

    def resolve(self, values: Mapping[str, str]) -> str:
        """
        Return the effective value of this field, or "" when unset.

        A choice field that allows custom input stores the sentinel
        ``custom`` and keeps the typed value under ``<name>_custom``.
        """
        raw = (values.get(self.name) or "").strip()
        if self.allow_custom and raw == CUSTOM_CHOICE:
            return (values.get(self.custom_name) or "").strip()
        return raw
