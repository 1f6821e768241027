"""
Issuance record schemas.

``CertificatePayload`` is the flat object handed to the external record
store. ``CertificateRecord`` is what the engine returns to its caller
after a successful write: the store-assigned id, the normalized payload,
and the derived fields that were in effect at issuance.

Records are append-only. Nothing here enforces uniqueness across
issuances of the same type to the same entity.
"""

from datetime import date, datetime
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from certifier.app.schemas.derived import DerivedFields
from certifier.app.schemas.document_types import DocumentTypeKey
from certifier.app.utils.hashing import hash_payload


class CertificatePayload(BaseModel):
    """
    Normalized store payload.

    Optional text fields default to "" and ``age`` to None so that the
    store never receives a null where it expects a string.
    """

    resident_name: str
    type_: str
    issued_date: str = Field(..., description="ISO-8601 issuance instant")
    age: Optional[int] = None
    civil_status: str = ""
    ownership_text: str = ""
    purpose: str = ""
    amount: str = ""

    model_config = ConfigDict(frozen=True, extra="forbid")

    def to_store_dict(self) -> Dict[str, Any]:
        """Return the flat payload, omitting ``age`` when it is unknown."""
        return self.model_dump(exclude_none=True)

    def content_dict(self) -> Dict[str, Any]:
        """
        The store payload without ``issued_date``.

        This is what the artifact content hash covers, so a preview taken
        before saving hashes the same as the record saved later.
        """
        return self.model_dump(exclude_none=True, exclude={"issued_date"})

    @property
    def content_hash(self) -> str:
        return hash_payload(self.content_dict())


def _one_year_after(issued: datetime) -> datetime:
    try:
        return issued.replace(year=issued.year + 1)
    except ValueError:
        # Issued on 29 February.
        return issued.replace(year=issued.year + 1, day=28)


class CertificateRecord(BaseModel):
    id: int
    resident_name: str
    type: DocumentTypeKey
    issued_date: datetime
    amount: str
    derived_fields: Dict[str, DerivedFields] = Field(default_factory=dict)
    payload: CertificatePayload

    model_config = ConfigDict(frozen=True)

    @property
    def valid_until(self) -> datetime:
        return _one_year_after(self.issued_date)

    def is_active(self, as_of: Union[date, datetime]) -> bool:
        """True while the certificate is within its one-year validity."""
        if isinstance(as_of, datetime):
            return as_of < self.valid_until
        return as_of < self.valid_until.date()
