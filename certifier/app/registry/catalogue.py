"""
The closed catalogue of certificate templates.

Each entry is data only: its field schema, its labels, the body template
that carries the prose, and which form values go into the optional
record columns. Selection and age arithmetic come from the shared
``CertificateFormBase``. Marriage is the one entry with two selection
slots and its own payload builder.
"""

from datetime import datetime
from typing import Mapping, Tuple

from certifier.app.registry.template import FooterStyle, TemplateEntry
from certifier.app.schemas.derived import EMPTY_DERIVED, DerivedFields
from certifier.app.schemas.document_types import (
    CIVIL_STATUS_OPTIONS,
    PURPOSE_OPTIONS,
    DocumentTypeKey,
    FieldKind,
    FieldSpec,
)
from certifier.app.schemas.form_state import FormState
from certifier.app.schemas.records import CertificatePayload
from certifier.app.services.selector import CertificateFormBase, SlotSpec


# ---------------------------------------------------------------------------
# Shared field specs
# ---------------------------------------------------------------------------

PURPOSE = FieldSpec(
    name="purpose",
    label="Purpose of Certificate",
    kind=FieldKind.CHOICE,
    options=PURPOSE_OPTIONS,
    allow_custom=True,
)

RESIDENCY_YEAR = FieldSpec(
    name="residency_year",
    label="Residency Year",
    kind=FieldKind.YEAR,
    derived_fallback="residency_since_year",
)

# Pre-filled from the selected resident, editable by the clerk.
AGE = FieldSpec(
    name="age",
    label="Age",
    kind=FieldKind.NUMBER,
    derived_fallback="age",
)

CIVIL_STATUS = FieldSpec(
    name="civil_status",
    label="Civil Status",
    kind=FieldKind.CHOICE,
    options=CIVIL_STATUS_OPTIONS,
    derived_fallback="civil_status",
)

PERSONAL = (AGE, CIVIL_STATUS)


# ---------------------------------------------------------------------------
# Marriage
# ---------------------------------------------------------------------------

MARRIAGE_FORM = CertificateFormBase(
    slots=(
        SlotSpec("male", "Groom"),
        SlotSpec("female", "Bride"),
    ),
)


def couple_payload(
    template: TemplateEntry,
    form_state: FormState,
    derived: Mapping[str, DerivedFields],
    issued_at: datetime,
) -> CertificatePayload:
    """
    Marriage record: both names in one column, the groom's age, and
    both civil statuses as ``groom/bride``.
    """
    male = form_state.selected("male")
    female = form_state.selected("female")
    male_derived = derived.get("male", EMPTY_DERIVED)
    female_derived = derived.get("female", EMPTY_DERIVED)

    names = [e.display_label for e in (male, female) if e is not None]

    return CertificatePayload(
        resident_name=" & ".join(names),
        type_=template.record_label,
        issued_date=issued_at.isoformat(),
        age=male_derived.age,
        civil_status=f"{male_derived.civil_status}/{female_derived.civil_status}",
        amount=form_state.amount.strip(),
    )


# ---------------------------------------------------------------------------
# Birth registration fields
# ---------------------------------------------------------------------------

BIRTH_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec(name="registry_no", label="Registry No."),
    FieldSpec(name="registration_date", label="Date", kind=FieldKind.DATE),
    FieldSpec(name="child_first_name", label="Child First Name"),
    FieldSpec(name="child_middle_name", label="Child Middle Name"),
    FieldSpec(name="child_last_name", label="Child Last Name"),
    FieldSpec(
        name="child_gender",
        label="Gender",
        kind=FieldKind.CHOICE,
        options=("Male", "Female"),
    ),
    FieldSpec(name="child_date_of_birth", label="Date of Birth", kind=FieldKind.DATE),
    FieldSpec(name="child_weight", label="Weight at Birth"),
    FieldSpec(
        name="type_of_birth",
        label="Type of Birth",
        kind=FieldKind.CHOICE,
        options=("Single", "Twin", "Triplet"),
    ),
    FieldSpec(name="total_children", label="Total Number of Child", kind=FieldKind.NUMBER),
    FieldSpec(name="time_of_birth", label="Time at Birth"),
    FieldSpec(name="place_of_birth", label="Place of Birth"),
    FieldSpec(name="attendant_at_birth", label="Attendant at Birth"),
    FieldSpec(name="mother_maiden_name", label="Mother Maiden Name"),
    FieldSpec(name="mother_occupation", label="Mother Occupation"),
    FieldSpec(name="mother_age", label="Mother Age at Time of Birth", kind=FieldKind.NUMBER),
    FieldSpec(name="mother_residence", label="Mother Residence"),
    FieldSpec(name="mother_religion", label="Mother Religion"),
    FieldSpec(name="father_name", label="Name of Father"),
    FieldSpec(name="father_occupation", label="Father Occupation"),
    FieldSpec(name="father_age", label="Father Age at Time of Birth", kind=FieldKind.NUMBER),
    FieldSpec(name="father_residence", label="Father Residence"),
    FieldSpec(name="father_religion", label="Father Religion"),
    FieldSpec(name="date_of_marriage", label="Date of Marriage", kind=FieldKind.DATE),
    FieldSpec(name="place_of_marriage", label="Place of Marriage"),
    FieldSpec(name="prepared_by", label="Prepared by"),
)


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------

CATALOGUE: Tuple[TemplateEntry, ...] = (
    TemplateEntry(
        key=DocumentTypeKey.RESIDENCY,
        record_label="Residency Certificate",
        title="CERTIFICATION",
        template_path="residency.txt.jinja",
        description="Certifies that a resident has lived in the barangay since a given year.",
        fields=PERSONAL + (RESIDENCY_YEAR, PURPOSE),
        payload_fields={"purpose": "purpose"},
    ),
    TemplateEntry(
        key=DocumentTypeKey.INDIGENCY,
        record_label="Indigency Certificate",
        title="C E R T I F I C A T I O N",
        template_path="indigency.txt.jinja",
        description="Certifies that a resident belongs to the indigent sector.",
        fields=PERSONAL + (RESIDENCY_YEAR, PURPOSE),
        default_amount="10.00",
        payload_fields={"purpose": "purpose"},
    ),
    TemplateEntry(
        key=DocumentTypeKey.BARANGAY_CLEARANCE,
        record_label="Barangay Clearance",
        title="BARANGAY CLEARANCE",
        template_path="barangay_clearance.txt.jinja",
        description="Certifies good moral character and no derogatory record.",
        fields=PERSONAL + (PURPOSE,),
        default_amount="50.00",
        payload_fields={"purpose": "purpose"},
    ),
    TemplateEntry(
        key=DocumentTypeKey.BUSINESS_CLEARANCE,
        record_label="Barangay Business Clearance",
        title="BARANGAY BUSINESS CLEARANCE",
        template_path="business_clearance.txt.jinja",
        description="Authorizes a resident to operate a business within the barangay.",
        fields=(
            FieldSpec(name="business_name", label="Business Name", required=True),
            FieldSpec(name="business_type", label="Type of Business"),
            FieldSpec(name="business_location", label="Location"),
            FieldSpec(name="business_owner", label="Business Owner"),
        ),
        default_amount="150.00",
        payload_fields={"ownership_text": "business_owner"},
    ),
    TemplateEntry(
        key=DocumentTypeKey.MARRIAGE,
        record_label="Marriage Certificate",
        title="CERTIFICATION",
        template_path="marriage.txt.jinja",
        description="Certifies that two residents have no legal impediment to marry.",
        form=MARRIAGE_FORM,
        default_amount="10.00",
        payload_builder=couple_payload,
    ),
    TemplateEntry(
        key=DocumentTypeKey.BIRTH_REGISTRATION,
        record_label="Birth Certificate",
        title="BIRTH REGISTRATION",
        office="OFFICE OF THE SANGGUNIANG BARANGAY",
        template_path="birth_registration.txt.jinja",
        description="Barangay record supporting delayed registration of a live birth.",
        fields=BIRTH_FIELDS,
        default_amount="10.00",
        footer=FooterStyle.PREPARED_AND_NOTED,
    ),
    TemplateEntry(
        key=DocumentTypeKey.OWNERSHIP,
        record_label="Ownership Certificate",
        title="CERTIFICATION",
        template_path="ownership.txt.jinja",
        description="Certifies that a resident owns the described property.",
        fields=(
            *PERSONAL,
            FieldSpec(
                name="ownership_text",
                label="Property Description",
                kind=FieldKind.MULTILINE,
                required=True,
            ),
        ),
        default_amount="10.00",
        payload_fields={"ownership_text": "ownership_text"},
    ),
    TemplateEntry(
        key=DocumentTypeKey.UNEMPLOYMENT,
        record_label="Unemployment Certificate",
        title="CERTIFICATION",
        template_path="unemployment.txt.jinja",
        description="Certifies that a resident is currently unemployed.",
        fields=PERSONAL,
        default_amount="10.00",
    ),
    TemplateEntry(
        key=DocumentTypeKey.SOLO_PARENT,
        record_label="Solo Parent Certificate",
        title="CERTIFICATION",
        template_path="solo_parent.txt.jinja",
        description="Certifies that a resident is a solo parent.",
        fields=(
            *PERSONAL,
            FieldSpec(name="children", label="Name(s) of Child/Children", kind=FieldKind.MULTILINE),
            FieldSpec(name="solo_parent_since", label="Solo Parent Since", kind=FieldKind.YEAR),
            PURPOSE,
        ),
        default_amount="10.00",
        payload_fields={"purpose": "purpose"},
    ),
    TemplateEntry(
        key=DocumentTypeKey.FOURPS,
        record_label="4Ps Membership Certificate",
        title="CERTIFICATION",
        template_path="fourps.txt.jinja",
        description="Certifies membership in the Pantawid Pamilyang Pilipino Program.",
        fields=(
            *PERSONAL,
            FieldSpec(name="household_id", label="4Ps Household ID No."),
            PURPOSE,
        ),
        default_amount="10.00",
        payload_fields={"purpose": "purpose"},
    ),
)
