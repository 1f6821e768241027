"""
Issuance recording.

``IssuanceRecorder.save`` turns the current form state into one
append-only record in the external store.

Preconditions are checked before anything is written. A failed check
raises ``IssuanceValidationError`` and the store is never called, so
there are no partial writes:

- every selection slot of the template is populated (the primary slot
  reports ``no entity selected``)
- every required field has a value
- number fields (including an age override) hold a whole number
- the amount, when entered, is a non-negative decimal

Exactly one store write happens per successful call. There is no retry
and no deduplication: saving the same form twice appends two records.
A failed write raises ``IssuancePersistenceError`` and leaves the form
state untouched so the caller can retry.
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional

from certifier.app.registry.registry import resolve
from certifier.app.registry.template import TemplateEntry
from certifier.app.schemas.derived import DerivedFields
from certifier.app.schemas.document_types import FieldKind
from certifier.app.schemas.form_state import FormState
from certifier.app.schemas.records import CertificateRecord
from certifier.app.services.record_store import CertificateRecordStore
from certifier.app.services.selector import Clock, utc_now

logger = logging.getLogger(__name__)


class IssuanceValidationError(RuntimeError):
    """
    Raised when the form is not ready to be issued.

    ``field`` names the selection slot or form field at fault.
    """

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        self.field = field
        super().__init__(message)


class IssuancePersistenceError(RuntimeError):
    """Raised when the record store rejects or fails the write."""


def validate_amount(raw: str) -> str:
    """
    Return the trimmed amount, or raise if it is not a valid fee.

    An empty amount is accepted and persisted as "".
    """
    amount = (raw or "").strip()
    if not amount:
        return ""
    try:
        value = Decimal(amount)
    except InvalidOperation:
        raise IssuanceValidationError(
            f"Amount '{amount}' is not a number",
            field="amount",
        ) from None
    if not value.is_finite() or value < 0:
        raise IssuanceValidationError(
            f"Amount '{amount}' must be a non-negative number",
            field="amount",
        )
    return amount


class IssuanceRecorder:
    def __init__(
        self,
        store: CertificateRecordStore,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._clock = clock

    def validate(
        self,
        template: TemplateEntry,
        form_state: FormState,
        derived: Mapping[str, DerivedFields],
    ) -> None:
        primary = template.form.primary_slot
        for slot in template.form.slots:
            if form_state.selected(slot.name) is not None:
                continue
            if slot.name == primary:
                raise IssuanceValidationError("no entity selected", field=slot.name)
            raise IssuanceValidationError(
                f"no entity selected for {slot.label}",
                field=slot.name,
            )

        resolved = template.resolve_fields(form_state, derived)
        for spec in template.required_fields:
            if not resolved.get(spec.name):
                raise IssuanceValidationError(
                    f"{spec.label} is required",
                    field=spec.name,
                )

        for spec in template.fields:
            value = resolved.get(spec.name, "")
            if spec.kind is FieldKind.NUMBER and value and not value.isdecimal():
                raise IssuanceValidationError(
                    f"{spec.label} must be a whole number",
                    field=spec.name,
                )

        validate_amount(form_state.amount)

    async def save(
        self,
        form_state: FormState,
        derived: Mapping[str, DerivedFields],
    ) -> CertificateRecord:
        """
        Validate, build the payload and append it to the store.

        Raises:
            TemplateNotFoundError: if the form's document type is unknown.
            IssuanceValidationError: if a precondition fails. No store call
                is made.
            IssuancePersistenceError: if the store write fails.
        """
        template = resolve(form_state.document_type)
        self.validate(template, form_state, derived)

        issued_at = self._clock()
        payload = template.build_payload(form_state, derived, issued_at)

        try:
            record_id = await self._store.insert_certificate(payload.to_store_dict())
        except Exception as exc:
            logger.exception(
                "Failed to persist %s for '%s'",
                template.key.value,
                payload.resident_name,
            )
            raise IssuancePersistenceError(
                f"Failed to save {template.record_label}: {exc}"
            ) from exc

        logger.info(
            "Issued %s #%d for '%s'",
            template.key.value,
            record_id,
            payload.resident_name,
        )

        return CertificateRecord(
            id=record_id,
            resident_name=payload.resident_name,
            type=template.key,
            issued_date=issued_at,
            amount=payload.amount,
            derived_fields=dict(derived),
            payload=payload,
        )
