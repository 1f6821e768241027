"""
Template descriptor.

A ``TemplateEntry`` binds together everything one document type needs:

- its ``DocumentTypeKey`` and the label persisted as the record type
- the header title and issuing office line
- the form capability (selection slots + derived-field computation)
- the user-entered field schema
- the Jinja2 body template that holds the legal prose
- how the issuance payload is assembled for the record store

Entries are immutable after construction. Behaviour that differs between
document types is data on the entry (or, for marriage, a payload
builder), never a subclass.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from certifier.app.schemas.derived import EMPTY_DERIVED, DerivedFields
from certifier.app.schemas.document_types import DocumentTypeKey, FieldSpec
from certifier.app.schemas.entities import EntitySnapshot
from certifier.app.schemas.form_state import FormState
from certifier.app.schemas.records import CertificatePayload
from certifier.app.services.selector import CertificateFormBase


# (template, form_state, derived, issued_at) -> payload
PayloadBuilder = Callable[..., CertificatePayload]


class FooterStyle(str, Enum):
    # Punong Barangay signature, O.R. number, date and amount
    CERTIFYING_OFFICER = "certifying_officer"
    # Secretary "Prepared by" and captain "Noted" side by side
    PREPARED_AND_NOTED = "prepared_and_noted"


# Declared fields that replace the primary slot's derived values.
PERSONAL_OVERRIDES = ("age", "civil_status")


def _parse_age(raw: str) -> Optional[int]:
    try:
        return int(raw)
    except ValueError:
        return None


def format_issued_on(day: date) -> str:
    """Date line format used in the prose, e.g. ``October 19, 2026``."""
    return f"{day.strftime('%B')} {day.day}, {day.year}"


def _slot_context(entity: Optional[EntitySnapshot], derived: DerivedFields) -> Dict[str, Any]:
    return {
        "selected": entity is not None,
        "name": entity.display_label if entity is not None else "",
        "full_name": entity.full_name if entity is not None else "",
        "age": derived.age,
        "civil_status": derived.civil_status,
        "residency_since_year": derived.residency_since_year,
    }


class TemplateEntry(BaseModel):
    """
    Declarative description of a certificate template.

    This structure defines the full contract required to go from a form
    session to a rendered body and a persisted issuance record.
    """

    key: DocumentTypeKey
    record_label: str
    title: str
    office: str = "OFFICE OF THE PUNONG BARANGAY"
    template_path: str
    description: str
    form: CertificateFormBase = Field(default_factory=CertificateFormBase)
    fields: Tuple[FieldSpec, ...] = ()
    default_amount: str = ""
    footer: FooterStyle = FooterStyle.CERTIFYING_OFFICER

    # Store payload key -> form field name, for the optional text columns.
    payload_fields: Dict[str, str] = Field(default_factory=dict)
    payload_builder: Optional[PayloadBuilder] = None

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        frozen=True,
    )

    # ------------------------------------------------------------------
    # Field schema
    # ------------------------------------------------------------------

    @property
    def required_fields(self) -> Tuple[FieldSpec, ...]:
        return tuple(spec for spec in self.fields if spec.required)

    def field_spec(self, name: str) -> FieldSpec:
        for spec in self.fields:
            if spec.name == name:
                return spec
        raise KeyError(f"Template '{self.key.value}' has no field '{name}'")

    def new_form_state(self) -> FormState:
        return FormState(document_type=self.key, amount=self.default_amount)

    def resolve_fields(
        self,
        form_state: FormState,
        derived: Mapping[str, DerivedFields],
    ) -> Dict[str, str]:
        """
        Effective value of every declared field; "" when unset.

        Fields with a derived fallback take the primary slot's derived
        value when the user left them empty.
        """
        primary = derived.get(self.form.primary_slot, EMPTY_DERIVED)
        resolved: Dict[str, str] = {}
        for spec in self.fields:
            value = spec.resolve(form_state.values)
            if not value and spec.derived_fallback:
                value = str(getattr(primary, spec.derived_fallback) or "")
            resolved[spec.name] = value
        return resolved

    # ------------------------------------------------------------------
    # Derived fields
    # ------------------------------------------------------------------

    def compute_derived(
        self,
        selection: Mapping[str, Optional[EntitySnapshot]],
        as_of: date,
    ) -> Dict[str, DerivedFields]:
        return self.form.compute_derived(selection, as_of)

    # ------------------------------------------------------------------
    # Body
    # ------------------------------------------------------------------

    def body_context(
        self,
        form_state: FormState,
        derived: Mapping[str, DerivedFields],
        *,
        profile: Any,
        captain_name: Optional[str],
        secretary_name: Optional[str],
        issued_on: date,
    ) -> Dict[str, Any]:
        slots = {
            name: _slot_context(
                form_state.selected(name),
                derived.get(name, EMPTY_DERIVED),
            )
            for name in self.form.slot_names
        }
        fields = self.resolve_fields(form_state, derived)
        resident = slots[self.form.primary_slot]
        for name in PERSONAL_OVERRIDES:
            if name in fields:
                resident[name] = fields[name]

        return {
            "slots": slots,
            "resident": resident,
            "fields": fields,
            "amount": form_state.amount.strip(),
            "barangay": profile.barangay,
            "municipality": profile.municipality,
            "province": profile.province,
            "captain": captain_name or "",
            "secretary": secretary_name or "",
            "given_on": format_issued_on(issued_on),
        }

    def render_body(self, body_renderer: Any, context: Dict[str, Any]) -> Tuple[Any, ...]:
        """Render the legal prose for this template with a prepared context."""
        return body_renderer.render(self.template_path, context)

    # ------------------------------------------------------------------
    # Issuance payload
    # ------------------------------------------------------------------

    def build_payload(
        self,
        form_state: FormState,
        derived: Mapping[str, DerivedFields],
        issued_at: datetime,
    ) -> CertificatePayload:
        if self.payload_builder is not None:
            return self.payload_builder(self, form_state, derived, issued_at)
        return single_entity_payload(self, form_state, derived, issued_at)


def single_entity_payload(
    template: TemplateEntry,
    form_state: FormState,
    derived: Mapping[str, DerivedFields],
    issued_at: datetime,
) -> CertificatePayload:
    slot = template.form.primary_slot
    entity = form_state.selected(slot)
    values = derived.get(slot, EMPTY_DERIVED)
    resolved = template.resolve_fields(form_state, derived)

    return CertificatePayload(
        resident_name=entity.display_label if entity is not None else "",
        type_=template.record_label,
        issued_date=issued_at.isoformat(),
        age=_parse_age(resolved["age"]) if "age" in resolved else values.age,
        civil_status=resolved.get("civil_status", values.civil_status),
        amount=form_state.amount.strip(),
        **{
            column: resolved.get(field_name, "")
            for column, field_name in template.payload_fields.items()
        },
    )
