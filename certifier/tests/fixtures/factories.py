import io
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from PIL import Image

from certifier.app.config import CertifierConfig
from certifier.app.schemas.entities import EntitySnapshot, OrganizationProfile
from certifier.app.services.directory import InMemoryEntityDirectory


# ------------------------------------------------------------------
# Clocks
#
# 2024-06-14 02:00 UTC is 2024-06-14 10:00 in the office (UTC+8),
# the day before Juan Dela Cruz turns 34.
# ------------------------------------------------------------------

EVE_OF_BIRTHDAY = datetime(2024, 6, 14, 2, 0, tzinfo=timezone.utc)
BIRTHDAY = datetime(2024, 6, 15, 2, 0, tzinfo=timezone.utc)


class MutableClock:
    """A clock tests can move forward between calls."""

    def __init__(self, now: datetime = EVE_OF_BIRTHDAY) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now = self.now + timedelta(**delta)


# ------------------------------------------------------------------
# Directory data
# ------------------------------------------------------------------

def juan() -> EntitySnapshot:
    return EntitySnapshot(
        id=1,
        first_name="Juan",
        middle_name="Santos",
        last_name="Dela Cruz",
        date_of_birth="1990-06-15",
        civil_status="Single",
        residing_since=2001,
    )


def residents() -> Tuple[EntitySnapshot, ...]:
    return (
        juan(),
        EntitySnapshot(
            id=2,
            first_name="Maria",
            middle_name="Lopez",
            last_name="Santos",
            date_of_birth="1995-02-10",
            civil_status="Single",
            residing_since=2010,
        ),
        EntitySnapshot(
            id=3,
            first_name="Pedro",
            last_name="Reyes",
            date_of_birth="1988-11-30",
            civil_status="Single",
        ),
        EntitySnapshot(
            id=4,
            first_name="Ana",
            last_name="Reyes",
            date_of_birth="not-a-date",
        ),
    )


def officials() -> Tuple[EntitySnapshot, ...]:
    return (
        EntitySnapshot(
            id=10,
            first_name="Roberto",
            last_name="Mendoza",
            role="Barangay Captain",
            section="Barangay Officials",
        ),
        EntitySnapshot(
            id=11,
            name="Liza Ramos",
            role="Secretary",
            section="Barangay Officials",
        ),
        # Same role title, different section: must not be picked as captain.
        EntitySnapshot(
            id=12,
            first_name="Carlo",
            last_name="Diaz",
            role="Barangay Captain",
            section="SK Officials",
        ),
    )


def profile(**overrides: Any) -> OrganizationProfile:
    values: Dict[str, Any] = {
        "barangay": "Tambo",
        "municipality": "Pamplona",
        "province": "Camarines Sur",
    }
    values.update(overrides)
    return OrganizationProfile(**values)


def png_logo(color: Tuple[int, int, int, int] = (30, 90, 160, 255)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGBA", (24, 24), color).save(buffer, format="PNG")
    return buffer.getvalue()


def directory(**overrides: Any) -> InMemoryEntityDirectory:
    values: Dict[str, Any] = {
        "residents": residents(),
        "officials": officials(),
        "profile": profile(),
        "logo": png_logo(),
    }
    values.update(overrides)
    return InMemoryEntityDirectory(**values)


# ------------------------------------------------------------------
# Config
# ------------------------------------------------------------------

def config(output_dir: Optional[Path] = None, **overrides: Any) -> CertifierConfig:
    values: Dict[str, Any] = dict(overrides)
    if output_dir is not None:
        values["OUTPUT_DIR"] = output_dir
    return CertifierConfig(**values)


# ------------------------------------------------------------------
# Record stores
# ------------------------------------------------------------------

class FailingRecordStore:
    """Store whose every write fails, counting the attempts."""

    def __init__(self, message: str = "database is locked") -> None:
        self.message = message
        self.calls: List[Mapping[str, Any]] = []

    async def insert_certificate(self, payload: Mapping[str, Any]) -> int:
        self.calls.append(dict(payload))
        raise RuntimeError(self.message)
