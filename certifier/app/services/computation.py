"""
Derived-field computation.

Pure date, age and status arithmetic over an entity snapshot and an
as-of date. Nothing in this module performs I/O or reads the clock:
the same inputs always produce the same outputs.

Absent or malformed source values degrade to the DerivedFields defaults
(None for age, "" for strings); they never raise into the caller.
"""

import logging
from datetime import date, datetime
from typing import Optional, Union

from certifier.app.schemas.derived import DerivedFields
from certifier.app.schemas.entities import EntitySnapshot

logger = logging.getLogger(__name__)


def _as_date(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def parse_birth_date(raw: Optional[str]) -> Optional[date]:
    """
    Parse a directory birth date.

    Accepts ISO dates and ISO timestamps (only the date part is used).
    Returns None for empty or malformed values.
    """
    if not raw:
        return None
    text = raw.strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        logger.warning("Malformed date_of_birth %r; age left blank", raw)
        return None


def compute_age(birth_date: Union[date, datetime], as_of: Union[date, datetime]) -> int:
    """
    Whole years between ``birth_date`` and ``as_of``.

    The year difference is decremented by one when the birthday has not
    yet occurred in the as-of year, i.e. when
    ``(as_of.month, as_of.day) < (birth_date.month, birth_date.day)``.

    Raises:
        ValueError: if ``birth_date`` is after ``as_of``.
    """
    born = _as_date(birth_date)
    today = _as_date(as_of)

    if born > today:
        raise ValueError(
            f"birth_date {born.isoformat()} is after as_of {today.isoformat()}"
        )

    years = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        years -= 1
    return years


def compute_civil_status(entity: EntitySnapshot) -> str:
    return (entity.civil_status or "").strip()


def compute_residency_since_year(entity: EntitySnapshot) -> str:
    if entity.residing_since is None:
        return ""
    return str(entity.residing_since)


def compute_derived(
    entity: Optional[EntitySnapshot],
    as_of: Union[date, datetime],
) -> DerivedFields:
    """
    Compute every derived field for one selection slot.

    An empty slot yields the defaults.
    """
    if entity is None:
        return DerivedFields()

    age: Optional[int] = None
    born = parse_birth_date(entity.date_of_birth)
    if born is not None:
        try:
            age = compute_age(born, as_of)
        except ValueError:
            logger.warning(
                "date_of_birth %s is after as-of date; age left blank",
                entity.date_of_birth,
            )

    return DerivedFields(
        age=age,
        civil_status=compute_civil_status(entity),
        residency_since_year=compute_residency_since_year(entity),
    )
