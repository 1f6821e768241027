"""
Certificate editing session.

A ``CertificateSession`` drives one certificate form from selection to
issuance:

    open ──► EMPTY ──select──► POPULATED ──issue──► COMMITTED
                 ▲                 │                    │
                 └────clear────────┘◄───select/clear────┘

Opening a session resolves the template and fetches the directory once
(``load_session_context``). Everything after that is synchronous except
the final store write in ``issue``.

The session owns:
- the ``FormState`` (user-entered values, amount, selections, as-of)
- the ``EntitySelector`` over the session's resident snapshot
- the ``DocumentRenderer`` used for both preview and exported artifact

Derived fields follow ``CertifierConfig.DERIVED_FIELD_POLICY``. By
default they are frozen at the moment of selection. Under
``as_of_issuance`` they are recomputed from the same snapshots at save
time.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from uuid import uuid4

from certifier.app.config import CertifierConfig, safe_artifact_path, validate_output_dir
from certifier.app.events import (
    IssuanceEvent,
    IssuanceEventEmitter,
    IssuanceEventType,
    NullEventEmitter,
)
from certifier.app.registry.registry import resolve
from certifier.app.registry.template import TemplateEntry
from certifier.app.schemas.derived import DerivedFieldPolicy, DerivedFields
from certifier.app.schemas.document import DocumentTree
from certifier.app.schemas.document_types import DocumentTypeKey
from certifier.app.schemas.entities import EntitySnapshot
from certifier.app.schemas.records import CertificatePayload, CertificateRecord
from certifier.app.services.directory import (
    EntityDirectory,
    SessionContext,
    load_session_context,
)
from certifier.app.services.layout import DocumentRenderer
from certifier.app.services.record_store import CertificateRecordStore
from certifier.app.services.recorder import (
    IssuancePersistenceError,
    IssuanceRecorder,
    IssuanceValidationError,
)
from certifier.app.services.selector import Clock, SelectorOption, utc_now

logger = logging.getLogger(__name__)


class SessionPhase(str, Enum):
    EMPTY = "empty"
    POPULATED = "populated"
    COMMITTED = "committed"


def _slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


class CertificateSession:
    def __init__(
        self,
        template: TemplateEntry,
        context: SessionContext,
        config: CertifierConfig,
        *,
        store: CertificateRecordStore,
        renderer: Optional[DocumentRenderer] = None,
        emitter: Optional[IssuanceEventEmitter] = None,
        clock: Clock = utc_now,
        session_id: Optional[str] = None,
    ) -> None:
        self.template = template
        self.context = context
        self.session_id = session_id or uuid4().hex

        self._config = config
        self._renderer = renderer or DocumentRenderer(config)
        self._recorder = IssuanceRecorder(store, clock=clock)
        self._emitter: IssuanceEventEmitter = emitter or NullEventEmitter()
        self._clock = clock
        self._policy = DerivedFieldPolicy(config.DERIVED_FIELD_POLICY)

        self.opened_at = clock()
        self.form = template.new_form_state()
        self.selector = template.form.open_selector(
            context.residents,
            clock=clock,
            tz=config.local_timezone,
            listener=self._on_selection,
        )
        self.last_record: Optional[CertificateRecord] = None
        self._phase = SessionPhase.EMPTY

    @classmethod
    async def open(
        cls,
        key: Union[str, DocumentTypeKey],
        *,
        directory: EntityDirectory,
        store: CertificateRecordStore,
        config: Optional[CertifierConfig] = None,
        renderer: Optional[DocumentRenderer] = None,
        emitter: Optional[IssuanceEventEmitter] = None,
        clock: Clock = utc_now,
        session_id: Optional[str] = None,
    ) -> "CertificateSession":
        """
        Resolve the template and fetch the shared context once.

        Raises:
            TemplateNotFoundError: if ``key`` is not a registered type.
        """
        config = config or CertifierConfig.from_env()
        template = resolve(key)
        context = await load_session_context(directory, config)

        session = cls(
            template,
            context,
            config,
            store=store,
            renderer=renderer,
            emitter=emitter,
            clock=clock,
            session_id=session_id,
        )
        logger.info(
            "Opened %s session %s",
            template.key.value,
            session.session_id,
        )
        session._emit(
            IssuanceEventType.SESSION_OPENED,
            document_type=template.key.value,
            residents=len(context.residents),
        )
        return session

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def _emit(self, event_type: IssuanceEventType, **details: Any) -> None:
        self._emitter.emit(
            IssuanceEvent(
                session_id=self.session_id,
                event_type=event_type,
                details=details or None,
            )
        )

    def _on_selection(
        self,
        slot: str,
        entity: Optional[EntitySnapshot],
        derived: DerivedFields,
        instant: datetime,
    ) -> None:
        # as_of is the latest selection instant; clearing a slot keeps it.
        if entity is None:
            self.form.selections.pop(slot, None)
            if not self.form.selections:
                self.form.as_of = None
        else:
            self.form.selections[slot] = entity
            self.form.as_of = instant

        self._phase = (
            SessionPhase.POPULATED if self.form.selections else SessionPhase.EMPTY
        )

        if entity is None:
            self._emit(IssuanceEventType.SELECTION_CLEARED, slot=slot)
        else:
            self._emit(
                IssuanceEventType.SELECTION_CHANGED,
                slot=slot,
                entity=entity.display_label,
                age=derived.age,
            )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def policy(self) -> DerivedFieldPolicy:
        return self._policy

    def _slot(self, slot: Optional[str]) -> str:
        return slot or self.template.form.primary_slot

    def derived(self) -> Dict[str, DerivedFields]:
        return self.selector.derived_fields()

    def issued_on(self) -> date:
        """Date printed on the "Given this" line, in office local time."""
        instant = self.form.as_of or self.opened_at
        return instant.astimezone(self._config.local_timezone).date()

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def search(self, query: str, *, slot: Optional[str] = None) -> List[SelectorOption]:
        return self.selector.search(self._slot(slot), query)

    def select(self, entity: EntitySnapshot, *, slot: Optional[str] = None) -> DerivedFields:
        return self.selector.select(self._slot(slot), entity)

    def select_by_label(self, label: str, *, slot: Optional[str] = None) -> DerivedFields:
        return self.selector.select_by_label(self._slot(slot), label)

    def toggle(self, value: str, *, slot: Optional[str] = None) -> DerivedFields:
        return self.selector.toggle(self._slot(slot), value)

    def clear(self, slot: Optional[str] = None) -> None:
        self.selector.clear(self._slot(slot))

    # ------------------------------------------------------------------
    # User-entered values
    # ------------------------------------------------------------------

    def set_field(self, name: str, value: Optional[str]) -> None:
        """
        Set a declared form field, or the ``<name>_custom`` companion of a
        choice field that allows custom input.
        """
        for spec in self.template.fields:
            if name == spec.name or (spec.allow_custom and name == spec.custom_name):
                self.form.set_value(name, value)
                return
        raise KeyError(
            f"Template '{self.template.key.value}' has no field '{name}'"
        )

    def set_amount(self, amount: str) -> None:
        self.form.amount = amount or ""

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def provisional_payload(self) -> CertificatePayload:
        """
        The payload the current form would persist, dated at the as-of
        instant. Its hash is bound into every rendered artifact.
        """
        return self.template.build_payload(
            self.form,
            self.derived(),
            self.form.as_of or self.opened_at,
        )

    def content_hash(self) -> str:
        return self.provisional_payload().content_hash

    def _tree(self) -> DocumentTree:
        return self._renderer.compose(
            self.template,
            self.form,
            self.derived(),
            self.context,
            issued_on=self.issued_on(),
            content_hash=self.content_hash(),
        )

    def preview(self) -> DocumentTree:
        tree = self._tree()
        self._emit(IssuanceEventType.PREVIEW_RENDERED, phase=self._phase.value)
        return tree

    def render_artifact(self) -> bytes:
        return self._renderer.rasterize(self._tree())

    def default_artifact_path(self) -> Path:
        entity = self.form.selected(self.template.form.primary_slot)
        parts = [self.template.key.value]
        if entity is not None:
            parts.append(entity.last_name or entity.display_label)
        slug = _slugify("-".join(parts))
        return safe_artifact_path(
            self._config,
            slug,
            self.issued_on().strftime("%Y%m%d"),
        )

    def export(self, path: Optional[Path] = None) -> Path:
        """
        Write the rendered artifact and return its path.

        Without ``path`` the file goes to ``OUTPUT_DIR`` as
        ``<key>-<surname>-<yyyymmdd>.pdf``.
        """
        if path is None:
            validate_output_dir(self._config)
            path = self.default_artifact_path()

        path = Path(path)
        path.write_bytes(self.render_artifact())

        logger.info("Exported %s to %s", self.template.key.value, path)
        self._emit(IssuanceEventType.ARTIFACT_EXPORTED, path=str(path))
        return path

    # ------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------

    def _issuance_derived(self) -> Dict[str, DerivedFields]:
        if self._policy is DerivedFieldPolicy.AS_OF_ISSUANCE:
            as_of = self._clock().astimezone(self._config.local_timezone).date()
            return self.template.compute_derived(self.form.selections, as_of)
        return self.derived()

    async def issue(self, *, reset: bool = False) -> CertificateRecord:
        """
        Persist the current form as a new issuance record.

        On failure the form is left untouched and the error propagates.
        With ``reset=True`` a successful issuance returns the session to
        EMPTY.
        """
        self._emit(
            IssuanceEventType.ISSUANCE_STARTED,
            document_type=self.template.key.value,
        )

        try:
            record = await self._recorder.save(self.form, self._issuance_derived())
        except (IssuanceValidationError, IssuancePersistenceError) as exc:
            self._emit(
                IssuanceEventType.ISSUANCE_FAILED,
                error=type(exc).__name__,
                message=str(exc),
            )
            raise

        self.last_record = record
        self._phase = SessionPhase.COMMITTED
        self._emit(
            IssuanceEventType.CERTIFICATE_ISSUED,
            record_id=record.id,
            document_type=record.type.value,
        )

        if reset:
            self.reset()
        return record

    def reset(self) -> None:
        for slot in self.selector.slot_names:
            self.selector.clear(slot)
        self.form = self.template.new_form_state()
        self._phase = SessionPhase.EMPTY
