"""
Entity directory boundary and per-session shared context.

The directory (residents, officials, organization settings, logo) is an
external collaborator. This module defines the interface the engine
consumes and the ``SessionContext`` built from it.

Each editing session fetches everything it needs exactly once, when
``load_session_context`` runs. The resulting context is passed down to
the selector, the header/footer builders and the body renderer. No
template fetches directory data on its own. A directory that changes
mid-session is not observed.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, Tuple

from certifier.app.config import CertifierConfig
from certifier.app.schemas.entities import EntitySnapshot, OrganizationProfile

logger = logging.getLogger(__name__)


class EntityDirectory(Protocol):
    """
    Read-only, idempotent directory queries.

    Called at most once per editing session.
    """

    async def fetch_residents(self) -> Sequence[EntitySnapshot]:
        ...

    async def fetch_officials(self) -> Sequence[EntitySnapshot]:
        ...

    async def fetch_organization_profile(self) -> OrganizationProfile:
        ...

    async def fetch_logo_image(self) -> Optional[bytes]:
        ...


class InMemoryEntityDirectory:
    """
    Directory backed by in-process lists.

    Used by tests and by hosts that already hold the directory in memory.
    Call counts are recorded so callers can verify the fetch-once rule.
    """

    def __init__(
        self,
        *,
        residents: Sequence[EntitySnapshot] = (),
        officials: Sequence[EntitySnapshot] = (),
        profile: Optional[OrganizationProfile] = None,
        logo: Optional[bytes] = None,
    ) -> None:
        self._residents = list(residents)
        self._officials = list(officials)
        self._profile = profile or OrganizationProfile()
        self._logo = logo
        self.calls: List[str] = []

    async def fetch_residents(self) -> Sequence[EntitySnapshot]:
        self.calls.append("fetch_residents")
        return list(self._residents)

    async def fetch_officials(self) -> Sequence[EntitySnapshot]:
        self.calls.append("fetch_officials")
        return list(self._officials)

    async def fetch_organization_profile(self) -> OrganizationProfile:
        self.calls.append("fetch_organization_profile")
        return self._profile

    async def fetch_logo_image(self) -> Optional[bytes]:
        self.calls.append("fetch_logo_image")
        return self._logo


@dataclass(frozen=True)
class SessionContext:
    """
    Directory data shared by every component of one editing session.
    """

    residents: Tuple[EntitySnapshot, ...]
    officials: Tuple[EntitySnapshot, ...]
    profile: OrganizationProfile
    logo: Optional[bytes]
    captain_name: Optional[str]
    secretary_name: Optional[str]

    @property
    def header_logo(self) -> Optional[bytes]:
        """Barangay logo: the profile's own image wins over the fetched one."""
        return self.profile.logo or self.logo


def _find_official(
    officials: Sequence[EntitySnapshot],
    *,
    role: str,
    section: Optional[str] = None,
) -> Optional[str]:
    role = role.lower()
    for official in officials:
        if (official.role or "").strip().lower() != role:
            continue
        if section is not None and (official.section or "").strip().lower() != section.lower():
            continue
        return official.display_label or None
    return None


async def load_session_context(
    directory: EntityDirectory,
    config: CertifierConfig,
) -> SessionContext:
    """
    Fetch all directory data for one session, concurrently and once.
    """
    residents, officials, profile, logo = await asyncio.gather(
        directory.fetch_residents(),
        directory.fetch_officials(),
        directory.fetch_organization_profile(),
        directory.fetch_logo_image(),
    )

    captain = _find_official(
        officials,
        role=config.CAPTAIN_ROLE,
        section=config.OFFICIALS_SECTION,
    )
    secretary = _find_official(officials, role=config.SECRETARY_ROLE)

    if captain is None:
        logger.warning(
            "No official with role '%s' in section '%s'; signatory left blank",
            config.CAPTAIN_ROLE,
            config.OFFICIALS_SECTION,
        )

    logger.info(
        "Session context loaded: %d residents, %d officials",
        len(residents),
        len(officials),
    )

    return SessionContext(
        residents=tuple(residents),
        officials=tuple(officials),
        profile=profile,
        logo=logo,
        captain_name=captain,
        secretary_name=secretary,
    )
