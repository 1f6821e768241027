import pytest

from certifier.app.registry.catalogue import CATALOGUE
from certifier.app.registry.registry import (
    TEMPLATE_REGISTRY,
    RegistryIntegrityError,
    TemplateNotFoundError,
    build_registry,
    registered_keys,
    resolve,
)
from certifier.app.registry.template import FooterStyle
from certifier.app.schemas.document_types import CIVIL_STATUS_OPTIONS, DocumentTypeKey


@pytest.mark.parametrize("key", list(DocumentTypeKey))
def test_resolve_is_total_over_declared_keys(key):
    template = resolve(key)

    assert template.key is key
    assert resolve(key.value) is template


def test_resolve_unknown_key_is_not_found():
    with pytest.raises(TemplateNotFoundError) as excinfo:
        resolve("unknown-key")

    assert excinfo.value.key == "unknown-key"
    assert "residency" in str(excinfo.value)


def test_registered_keys_cover_the_enum_exactly():
    assert set(registered_keys()) == set(DocumentTypeKey)
    assert len(registered_keys()) == len(DocumentTypeKey) == 10


def test_registry_is_read_only():
    with pytest.raises(TypeError):
        TEMPLATE_REGISTRY[DocumentTypeKey.RESIDENCY] = resolve("indigency")


def test_duplicate_key_fails_construction():
    with pytest.raises(RegistryIntegrityError, match="Duplicate"):
        build_registry(CATALOGUE + (CATALOGUE[0],))


def test_unmapped_key_fails_construction():
    without_fourps = tuple(e for e in CATALOGUE if e.key is not DocumentTypeKey.FOURPS)

    with pytest.raises(RegistryIntegrityError, match="fourps"):
        build_registry(without_fourps)


def test_record_labels_are_distinct():
    labels = [entry.record_label for entry in CATALOGUE]
    assert len(set(labels)) == len(labels)


def test_residency_entry():
    template = resolve(DocumentTypeKey.RESIDENCY)

    assert template.record_label == "Residency Certificate"
    assert template.default_amount == ""
    assert [spec.name for spec in template.fields] == [
        "age",
        "civil_status",
        "residency_year",
        "purpose",
    ]
    assert template.form.slot_names == ("primary",)


def test_marriage_entry_has_two_slots():
    template = resolve(DocumentTypeKey.MARRIAGE)

    assert template.form.slot_names == ("male", "female")
    assert template.form.primary_slot == "male"


def test_birth_registration_uses_two_signatory_footer():
    template = resolve(DocumentTypeKey.BIRTH_REGISTRATION)

    assert template.footer is FooterStyle.PREPARED_AND_NOTED
    assert template.office == "OFFICE OF THE SANGGUNIANG BARANGAY"


def test_required_fields():
    assert [s.name for s in resolve("ownership").required_fields] == ["ownership_text"]
    assert [s.name for s in resolve("business-clearance").required_fields] == ["business_name"]
    assert resolve("residency").required_fields == ()


def test_new_form_state_starts_with_default_amount():
    form = resolve("barangay-clearance").new_form_state()

    assert form.document_type is DocumentTypeKey.BARANGAY_CLEARANCE
    assert form.amount == "50.00"
    assert form.selections == {}


def test_civil_status_is_a_choice_prefilled_from_selection():
    spec = resolve(DocumentTypeKey.INDIGENCY).field_spec("civil_status")

    assert spec.options == CIVIL_STATUS_OPTIONS
    assert spec.derived_fallback == "civil_status"
    assert resolve(DocumentTypeKey.UNEMPLOYMENT).field_spec("age").derived_fallback == "age"
