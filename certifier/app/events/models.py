from __future__ import annotations

from typing import Any, Dict, Optional
from enum import Enum
from datetime import datetime, timezone
from uuid import uuid4, UUID

from pydantic import BaseModel, Field, ConfigDict


# ----------------------------------------------------------------------
# Event Types (Finite)
# ----------------------------------------------------------------------
class IssuanceEventType(str, Enum):
    """
    Observable transitions of a certificate editing session.

    NOTE:
    This enum is finite. New entries must stay observational.
    """

    SESSION_OPENED = "session_opened"

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------
    SELECTION_CHANGED = "selection_changed"
    SELECTION_CLEARED = "selection_cleared"

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------
    PREVIEW_RENDERED = "preview_rendered"
    ARTIFACT_EXPORTED = "artifact_exported"

    # ------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------
    ISSUANCE_STARTED = "issuance_started"
    CERTIFICATE_ISSUED = "certificate_issued"
    ISSUANCE_FAILED = "issuance_failed"


# ----------------------------------------------------------------------
# Event Model
# ----------------------------------------------------------------------
class IssuanceEvent(BaseModel):
    """
    An immutable observation of a session transition.

    Events are strictly observational: no outcome depends on them.
    """

    event_id: UUID = Field(default_factory=uuid4)
    session_id: str = Field(..., description="The editing session identifier")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    event_type: IssuanceEventType

    # Optional contextual metadata (slot, template key, record id, etc.)
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )
