"""
Directory snapshots consumed by the issuance engine.

These models are immutable projections of directory data taken at fetch
time. The engine never writes back to the directory; selection and
derived-field computation operate on these snapshots only.
"""

from datetime import date
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EntitySnapshot(BaseModel):
    """
    A resident or official as seen by the directory at fetch time.

    ``date_of_birth`` is kept as the raw directory string. Parsing happens
    in the computation service so that a malformed value degrades to a
    blank age instead of rejecting the whole directory snapshot.
    """

    id: Optional[int] = None

    first_name: str = ""
    middle_name: Optional[str] = None
    last_name: str = ""
    suffix: Optional[str] = None

    # Officials are sometimes stored under a single display name.
    name: Optional[str] = None

    date_of_birth: Optional[str] = None
    civil_status: Optional[str] = None
    residing_since: Optional[int] = Field(
        default=None,
        description="Year the resident started residing in the barangay",
    )

    role: Optional[str] = None
    section: Optional[str] = None

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
    )

    @field_validator("date_of_birth", mode="before")
    @classmethod
    def coerce_date(cls, v: Union[date, str, None]) -> Optional[str]:
        if isinstance(v, date):
            return v.isoformat()
        return v

    @property
    def display_label(self) -> str:
        """Label used for search and for the persisted resident name."""
        label = f"{self.first_name} {self.last_name}".strip()
        if not label and self.name:
            return self.name.strip()
        return label

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.middle_name or "", self.last_name, self.suffix or ""]
        full = " ".join(p.strip() for p in parts if p and p.strip())
        return full or (self.name or "").strip()


class OrganizationProfile(BaseModel):
    """
    Identity of the issuing office, shared by every template's header,
    body and footer. Fetched once per editing session.
    """

    barangay: str = ""
    municipality: str = ""
    province: str = ""

    logo: Optional[bytes] = None
    logo_municipality: Optional[bytes] = None

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
    )
