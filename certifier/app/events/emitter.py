from __future__ import annotations

from typing import Protocol

from certifier.app.events.models import IssuanceEvent


class IssuanceEventEmitter(Protocol):
    """
    Interface for broadcasting session observations.

    Emission is synchronous because selection is synchronous.
    Implementations must be:
    - non-blocking
    - fail-safe (emission failures must not break issuance)
    - observational only
    """

    def emit(self, event: IssuanceEvent) -> None:
        ...


class NullEventEmitter:
    """
    A safe no-op emitter.

    Used when nothing listens to the session, and in tests that do not
    care about events.
    """

    def emit(self, event: IssuanceEvent) -> None:
        return
