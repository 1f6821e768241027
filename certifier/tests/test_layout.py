from datetime import date

import pytest

from certifier.app.registry.registry import resolve
from certifier.app.registry.template import FooterStyle
from certifier.app.schemas.derived import DerivedFields
from certifier.app.schemas.document import Align, Box, Columns, ImageNode, Paragraph
from certifier.app.services.directory import SessionContext
from certifier.app.services.layout import (
    BLANK,
    BodyRenderer,
    BodyTemplateError,
    DocumentRenderer,
    blank,
    build_footer,
    build_header,
    build_template_environment,
    parse_body_markup,
)

from certifier.tests.fixtures.factories import config, juan, officials, png_logo, profile, residents

GIVEN_ON = date(2024, 6, 14)


def _context(**overrides) -> SessionContext:
    values = dict(
        residents=residents(),
        officials=officials(),
        profile=profile(),
        logo=png_logo(),
        captain_name="Roberto Mendoza",
        secretary_name="Liza Ramos",
    )
    values.update(overrides)
    return SessionContext(**values)


def _residency_form(**values):
    template = resolve("residency")
    form = template.new_form_state()
    form.selections["primary"] = juan()
    form.amount = "10.00"
    for name, value in values.items():
        form.set_value(name, value)
    derived = {"primary": DerivedFields(age=33, civil_status="Single", residency_since_year="2001")}
    return template, form, derived


# ------------------------------------------------------------------
# Markup
# ------------------------------------------------------------------

def test_plain_block_is_one_justified_paragraph():
    nodes = parse_body_markup("First line\ncontinues here.\n\nSecond paragraph.")

    assert [n.text for n in nodes] == ["First line continues here.", "Second paragraph."]
    assert all(n.align is Align.JUSTIFY for n in nodes)


def test_bold_runs():
    (node,) = parse_body_markup("**This is to certify that JUAN**, 33 years old")

    assert [(r.text, r.bold) for r in node.runs] == [
        ("This is to certify that JUAN", True),
        (", 33 years old", False),
    ]


def test_line_prefixes():
    text = "\n".join(
        [
            "# HEADING",
            "",
            "= centred",
            "",
            "> left",
            "",
            "- one",
            "- two",
            "",
            "+ a",
            "+ b",
            "",
            "| value",
            "| caption",
        ]
    )

    nodes = parse_body_markup(text)

    assert nodes[0].align is Align.CENTER and nodes[0].runs[0].bold
    assert nodes[1].align is Align.CENTER and nodes[1].text == "centred"
    assert nodes[2].align is Align.LEFT and nodes[2].text == "left"
    assert [n.bullet for n in nodes[3:5]] == [True, True]
    assert [n.text for n in nodes[5:7]] == ["a", "b"]
    assert isinstance(nodes[7], Box)
    assert [c.text for c in nodes[7].children] == ["value", "caption"]


def test_blank_filter():
    assert blank(None) == BLANK
    assert blank("") == BLANK
    assert blank(None, 3) == "___"
    assert blank(0) == "0"
    assert blank("Single") == "Single"


def test_interpolated_values_cannot_inject_markup():
    env = build_template_environment(config().TEMPLATE_DIR)
    rendered = env.from_string("Owner: {{ value }}").render(value="**lot**\n\n- 12")

    nodes = parse_body_markup(rendered)

    assert len(nodes) == 1
    assert nodes[0].text == "Owner: *lot* - 12"
    assert not any(run.bold for run in nodes[0].runs)


# ------------------------------------------------------------------
# Body
# ------------------------------------------------------------------

def test_residency_body_uses_upper_case_name_and_derived_values():
    template, form, derived = _residency_form(purpose="Employment")
    body = template.render_body(
        BodyRenderer.from_config(config()),
        template.body_context(
            form,
            derived,
            profile=profile(),
            captain_name="Roberto Mendoza",
            secretary_name=None,
            issued_on=GIVEN_ON,
        ),
    )
    text = "\n".join(node.text for node in body)

    assert "This is to certify that JUAN DELA CRUZ, 33 years old, Single" in text
    assert "since 2001" in text
    assert "following purpose: Employment." in text
    assert "Given this June 14, 2024, at Tambo, Pamplona, Camarines Sur." in text


def test_unset_fields_render_as_blanks():
    template, form, _ = _residency_form()
    body = template.render_body(
        BodyRenderer.from_config(config()),
        template.body_context(
            form,
            {"primary": DerivedFields()},
            profile=profile(),
            captain_name=None,
            secretary_name=None,
            issued_on=GIVEN_ON,
        ),
    )
    text = "\n".join(node.text for node in body)

    assert "___ years old, ___," in text
    assert f"purpose: {BLANK}." in text


def test_birth_registration_unset_fields_render_as_blanks():
    template = resolve("birth-registration")
    form = template.new_form_state()
    form.selections["primary"] = juan()

    nodes = template.render_body(
        BodyRenderer.from_config(config()),
        template.body_context(
            form,
            {},
            profile=profile(),
            captain_name=None,
            secretary_name=None,
            issued_on=GIVEN_ON,
        ),
    )
    lines = [node.text for node in nodes]

    assert f"Registry No.: {BLANK}" in lines
    assert f"Name of Child: {BLANK}" in lines
    assert f"Place of Marriage: {BLANK}" in lines
    assert not any(line.endswith(":") for line in lines if not line.isupper())


def test_birth_registration_child_name_joins_given_parts():
    template = resolve("birth-registration")
    form = template.new_form_state()
    form.set_value("child_first_name", "Jose")
    form.set_value("child_last_name", "Dela Cruz")

    text = BodyRenderer.from_config(config()).render_text(
        template.template_path,
        template.body_context(
            form,
            {},
            profile=profile(),
            captain_name=None,
            secretary_name=None,
            issued_on=GIVEN_ON,
        ),
    )

    assert "Name of Child: Jose Dela Cruz\n" in text


@pytest.mark.parametrize("values", [{}, {"purpose": "custom"}])
def test_indigency_purpose_line_is_never_dropped(values):
    template = resolve("indigency")
    form = template.new_form_state()
    form.selections["primary"] = juan()
    for name, value in values.items():
        form.set_value(name, value)

    text = BodyRenderer.from_config(config()).render_text(
        template.template_path,
        template.body_context(
            form,
            {"primary": DerivedFields(age=33, civil_status="Single")},
            profile=profile(),
            captain_name=None,
            secretary_name=None,
            issued_on=GIVEN_ON,
        ),
    )

    assert f"> Purpose: {BLANK}" in text


def test_age_and_civil_status_overrides_replace_derived_values():
    template, form, derived = _residency_form(age="40", civil_status="Married")
    body = template.render_body(
        BodyRenderer.from_config(config()),
        template.body_context(
            form,
            derived,
            profile=profile(),
            captain_name=None,
            secretary_name=None,
            issued_on=GIVEN_ON,
        ),
    )
    text = "\n".join(node.text for node in body)

    assert "JUAN DELA CRUZ, 40 years old, Married" in text


def test_custom_purpose_uses_companion_field():
    template, form, derived = _residency_form(purpose="custom", purpose_custom="Travel abroad")
    body = BodyRenderer.from_config(config()).render_text(
        template.template_path,
        template.body_context(
            form,
            derived,
            profile=profile(),
            captain_name=None,
            secretary_name=None,
            issued_on=GIVEN_ON,
        ),
    )

    assert "following purpose: Travel abroad." in body


def test_empty_selection_renders_placeholder():
    template = resolve("residency")
    form = template.new_form_state()
    text = BodyRenderer.from_config(config()).render_text(
        template.template_path,
        template.body_context(
            form,
            {},
            profile=profile(),
            captain_name=None,
            secretary_name=None,
            issued_on=GIVEN_ON,
        ),
    )

    assert "Please select a resident to view certificate." in text


def test_missing_template_file_raises():
    renderer = BodyRenderer.from_config(config())

    with pytest.raises(BodyTemplateError):
        renderer.render_text("does_not_exist.txt.jinja", {})


# ------------------------------------------------------------------
# Header and footer
# ------------------------------------------------------------------

def test_header_draws_logo_and_watermark():
    nodes = build_header(
        resolve("indigency"),
        _context(profile=profile(logo_municipality=png_logo((0, 0, 0, 255)))),
        page_size="A4",
        watermark_opacity=0.1,
    )
    images = [n for n in nodes if isinstance(n, ImageNode)]
    text = [n.text for n in nodes if isinstance(n, Paragraph)]

    assert len(images) == 3
    assert sorted(i.opacity for i in images) == [0.1, 1.0, 1.0]
    assert text[:4] == [
        "Republic of the Philippines",
        "Province of Camarines Sur",
        "Municipality of Pamplona",
        "BARANGAY TAMBO",
    ]
    assert "C E R T I F I C A T I O N" in text

    paragraphs = [n for n in nodes if isinstance(n, Paragraph)]
    assert paragraphs[-1].space_after == 18
    assert {p.space_after for p in paragraphs[:-1]} == {0}


def test_header_without_logo_or_profile_names():
    nodes = build_header(
        resolve("residency"),
        _context(logo=None, profile=profile(barangay="", province="")),
        page_size="A4",
        watermark_opacity=0.1,
    )
    text = [n.text for n in nodes if isinstance(n, Paragraph)]

    assert not any(isinstance(n, ImageNode) for n in nodes)
    assert f"Province of {BLANK}" in text
    assert f"BARANGAY {BLANK}" in text


def test_certifying_officer_footer():
    (columns,) = build_footer(
        FooterStyle.CERTIFYING_OFFICER,
        captain="Roberto Mendoza",
        secretary=None,
        amount="10.00",
    )

    assert isinstance(columns, Columns)
    left = [p.text for p in columns.left]
    assert left[:3] == ["Certifying Officer,", "HON. Roberto Mendoza", "Punong Barangay"]
    assert "Amount: PHP 10.00" in left
    assert [p.text for p in columns.right] == ["Not valid without dry seal"]


def test_footer_blanks_missing_captain_and_amount():
    (columns,) = build_footer(
        FooterStyle.CERTIFYING_OFFICER,
        captain=None,
        secretary=None,
        amount="",
    )
    left = [p.text for p in columns.left]

    assert f"HON. {BLANK}" in left
    assert "Amount: PHP _________" in left


def test_prepared_and_noted_footer():
    nodes = build_footer(
        FooterStyle.PREPARED_AND_NOTED,
        captain="Roberto Mendoza",
        secretary="Liza Ramos",
        amount="10.00",
    )

    columns = nodes[0]
    assert [p.text for p in columns.left] == ["Prepared by:", "Liza Ramos", "Barangay Secretary"]
    assert [p.text for p in columns.right] == ["Noted:", "HON. Roberto Mendoza", "Punong Barangay"]
    assert nodes[-1].text == "Amount: PHP 10.00"


# ------------------------------------------------------------------
# Composition
# ------------------------------------------------------------------

def test_compose_is_deterministic():
    template, form, derived = _residency_form()
    renderer = DocumentRenderer(config())

    first = renderer.compose(template, form, derived, _context(), issued_on=GIVEN_ON)
    second = renderer.compose(template, form, derived, _context(), issued_on=GIVEN_ON)

    assert first == second
    assert len(first.pages) == 1


def test_birth_footer_prefers_prepared_by_field():
    template = resolve("birth-registration")
    form = template.new_form_state()
    form.selections["primary"] = juan()
    form.set_value("prepared_by", "Jose Cruz")

    tree = DocumentRenderer(config()).compose(
        template, form, {}, _context(), issued_on=GIVEN_ON
    )
    text = tree.plain_text()

    assert "Jose Cruz" in text
    assert "Liza Ramos" not in text
    assert "REQUIREMENTS:" in text
    assert "Requested by: Juan Santos Dela Cruz" in text


def test_business_clearance_box_falls_back_to_resident_name():
    template = resolve("business-clearance")
    form = template.new_form_state()
    form.selections["primary"] = juan()
    form.set_value("business_name", "Juan's Sari-Sari Store")

    tree = DocumentRenderer(config()).compose(
        template, form, {}, _context(), issued_on=GIVEN_ON
    )
    boxes = [n for n in tree.pages[0].body if isinstance(n, Box)]

    assert len(boxes) == 1
    texts = [c.text for c in boxes[0].children]
    assert texts[0] == "Juan's Sari-Sari Store"
    assert texts[6] == "Juan Dela Cruz"
    assert "Amount: PHP 150.00" in tree.plain_text()
