"""
Document layout.

This module turns a resolved template, the session's shared context and
the current form state into a ``DocumentTree``: one page made of a
header, a type-specific body and a footer. Rasterizing the tree to PDF
bytes happens in ``pdf_render``.

Body prose lives in Jinja2 templates (``certifier/templates``). A body
template renders to plain text using a small line markup, which
``parse_body_markup`` converts into document nodes:

- paragraphs are separated by blank lines
- ``# `` centred bold heading, one per line
- ``= `` centred paragraph, one per line
- ``> `` left-aligned paragraph (lines joined)
- ``| `` lines form a bordered box of centred lines
- ``- `` bullet item, one per line
- ``+ `` left-aligned line, one per line
- anything else is a justified paragraph (lines joined)

``**text**`` marks bold runs. Interpolated values cannot inject markup:
newlines in values become spaces and ``**`` is collapsed.

Rendering contract:
- Layout is pure. It never reads the clock or the directory; the
  issuance date and the shared context are inputs.
- Unset values render as visible blanks (``________________``), never as
  an omitted phrase.
- The Jinja2 environment is built once and passed in explicitly.
"""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError
from reportlab.lib.pagesizes import A4, LEGAL, LETTER

from certifier.app.config import CertifierConfig
from certifier.app.registry.template import FooterStyle, TemplateEntry
from certifier.app.schemas.derived import DerivedFields
from certifier.app.schemas.document import (
    Align,
    Box,
    Columns,
    DocumentNode,
    DocumentTree,
    ImageNode,
    Page,
    Paragraph,
    TextRun,
)
from certifier.app.schemas.form_state import FormState
from certifier.app.services.directory import SessionContext
from certifier.app.services.pdf_render import render_pdf

logger = logging.getLogger(__name__)


BLANK = "________________"

PAGE_DIMENSIONS: Dict[str, Tuple[float, float]] = {
    "A4": A4,
    "LETTER": LETTER,
    "LEGAL": LEGAL,
}

PAGE_MARGIN = 40.0
LOGO_SIZE = 90.0
WATERMARK_SIZE = 400.0


class BodyTemplateError(RuntimeError):
    """Raised when a body template cannot be loaded or rendered."""


# ---------------------------------------------------------------------------
# Jinja2 environment
# ---------------------------------------------------------------------------

def blank(value: Any, width: int = 16) -> str:
    """Jinja filter: the value, or a line of underscores when unset."""
    if value is None or value == "":
        return "_" * width
    return str(value)


def _finalize(value: Any) -> str:
    if value is None:
        return ""
    text = " ".join(str(value).split())
    return text.replace("**", "*")


def build_template_environment(template_dir: Path) -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(template_dir)),
        undefined=StrictUndefined,
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        finalize=_finalize,
    )
    env.filters["blank"] = blank
    return env


# ---------------------------------------------------------------------------
# Body markup
# ---------------------------------------------------------------------------

def parse_runs(text: str, *, bold: bool = False) -> Tuple[TextRun, ...]:
    runs = [
        TextRun(text=part, bold=bold or index % 2 == 1)
        for index, part in enumerate(text.split("**"))
        if part
    ]
    return tuple(runs) or (TextRun(text=""),)


def _blocks(text: str) -> Iterator[List[str]]:
    block: List[str] = []
    for raw in text.splitlines():
        line = " ".join(raw.split())
        if not line:
            if block:
                yield block
                block = []
            continue
        block.append(line)
    if block:
        yield block


def _strip(line: str, prefix: str) -> str:
    return line[len(prefix):] if line.startswith(prefix) else line


def _block_nodes(block: List[str]) -> List[DocumentNode]:
    prefix = block[0][:2]

    if prefix == "# ":
        return [
            Paragraph(
                runs=parse_runs(_strip(line, "# "), bold=True),
                align=Align.CENTER,
                font_size=14,
                space_after=8,
            )
            for line in block
        ]

    if prefix == "= ":
        return [
            Paragraph(runs=parse_runs(_strip(line, "= ")), align=Align.CENTER)
            for line in block
        ]

    if prefix == "> ":
        joined = " ".join(_strip(line, "> ") for line in block)
        return [
            Paragraph(
                runs=parse_runs(joined),
                align=Align.LEFT,
                space_before=4,
                space_after=8,
            )
        ]

    if prefix == "| ":
        return [
            Box(
                children=tuple(
                    Paragraph(
                        runs=parse_runs(_strip(line, "| ")),
                        align=Align.CENTER,
                        space_after=4,
                    )
                    for line in block
                ),
            )
        ]

    if prefix == "- ":
        return [
            Paragraph(
                runs=parse_runs(_strip(line, "- ")),
                align=Align.LEFT,
                font_size=10,
                space_after=1,
                bullet=True,
            )
            for line in block
        ]

    if prefix == "+ ":
        return [
            Paragraph(
                runs=parse_runs(_strip(line, "+ ")),
                align=Align.LEFT,
                font_size=11,
                space_after=0,
            )
            for line in block
        ]

    return [
        Paragraph(
            runs=parse_runs(" ".join(block)),
            align=Align.JUSTIFY,
            space_after=8,
        )
    ]


def parse_body_markup(text: str) -> Tuple[DocumentNode, ...]:
    nodes: List[DocumentNode] = []
    for block in _blocks(text):
        nodes.extend(_block_nodes(block))
    return tuple(nodes)


class BodyRenderer:
    """
    Renders a template's body prose into document nodes.

    The Jinja2 environment is injected, so every session shares one
    loader and filter set and nothing is installed globally.
    """

    def __init__(self, environment: Environment) -> None:
        self._env = environment

    @classmethod
    def from_config(cls, config: CertifierConfig) -> "BodyRenderer":
        return cls(build_template_environment(config.TEMPLATE_DIR))

    def render_text(self, template_path: str, context: Mapping[str, Any]) -> str:
        try:
            template = self._env.get_template(template_path)
            return template.render(dict(context))
        except TemplateError as exc:
            raise BodyTemplateError(
                f"Failed to render body template '{template_path}': {exc}"
            ) from exc

    def render(self, template_path: str, context: Mapping[str, Any]) -> Tuple[DocumentNode, ...]:
        return parse_body_markup(self.render_text(template_path, context))


# ---------------------------------------------------------------------------
# Header
# ---------------------------------------------------------------------------

def _centered(text: str, **style: Any) -> Paragraph:
    style.setdefault("space_after", 0)
    return Paragraph(runs=parse_runs(text), align=Align.CENTER, **style)


def build_header(
    template: TemplateEntry,
    context: SessionContext,
    *,
    page_size: str,
    watermark_opacity: float,
) -> Tuple[DocumentNode, ...]:
    """
    Organization identity block, logos and watermark.

    The barangay logo sits top-left and is repeated as a centred,
    low-opacity watermark. The municipality logo, when present, sits
    top-right.
    """
    width, height = PAGE_DIMENSIONS[page_size]
    profile = context.profile
    logo = context.header_logo

    nodes: List[DocumentNode] = []

    if logo:
        nodes.append(
            ImageNode(
                data=logo,
                x=PAGE_MARGIN,
                y=PAGE_MARGIN,
                width=LOGO_SIZE,
                height=LOGO_SIZE,
            )
        )
    if profile.logo_municipality:
        nodes.append(
            ImageNode(
                data=profile.logo_municipality,
                x=width - PAGE_MARGIN - LOGO_SIZE,
                y=PAGE_MARGIN,
                width=LOGO_SIZE,
                height=LOGO_SIZE,
            )
        )
    if logo:
        nodes.append(
            ImageNode(
                data=logo,
                x=(width - WATERMARK_SIZE) / 2,
                y=height * 0.45 - WATERMARK_SIZE / 2,
                width=WATERMARK_SIZE,
                height=WATERMARK_SIZE,
                opacity=watermark_opacity,
            )
        )

    barangay = profile.barangay.upper() if profile.barangay else BLANK

    nodes.extend(
        [
            _centered("Republic of the Philippines", font_size=13),
            _centered(f"Province of {profile.province or BLANK}", font_size=13),
            _centered(f"Municipality of {profile.municipality or BLANK}", font_size=13),
            _centered(f"BARANGAY {barangay}", font_size=13, space_before=8),
            _centered(
                f"**{template.office}**",
                font_size=15,
                space_before=22,
            ),
            _centered(
                f"**{template.title}**",
                font_size=17,
                space_before=10,
                space_after=18,
            ),
        ]
    )
    return tuple(nodes)


# ---------------------------------------------------------------------------
# Footer
# ---------------------------------------------------------------------------

def _line(text: str, **style: Any) -> Paragraph:
    style.setdefault("space_after", 2)
    return Paragraph(runs=parse_runs(text), align=Align.LEFT, **style)


def _receipt_lines(amount: str) -> Tuple[Paragraph, ...]:
    return (
        _line("O.R. No.: ____________________", space_before=8),
        _line("Date: _________________________"),
        _line(f"Amount: PHP {amount or '_________'}"),
    )


def build_footer(
    style: FooterStyle,
    *,
    captain: Optional[str],
    secretary: Optional[str],
    amount: str,
) -> Tuple[DocumentNode, ...]:
    if style is FooterStyle.PREPARED_AND_NOTED:
        return (
            Columns(
                left=(
                    _line("**Prepared by:**"),
                    _line(f"**{secretary or BLANK}**", space_before=18),
                    _line("Barangay Secretary"),
                ),
                right=(
                    _line("**Noted:**"),
                    _line(f"**HON. {captain or BLANK}**", space_before=18),
                    _line("Punong Barangay"),
                ),
            ),
        ) + _receipt_lines(amount)

    return (
        Columns(
            left=(
                _line("Certifying Officer,"),
                _line(f"**HON. {captain or BLANK}**", space_before=18),
                _line("Punong Barangay", space_after=6),
            )
            + _receipt_lines(amount),
            right=(
                Paragraph(
                    runs=parse_runs("**Not valid without dry seal**"),
                    align=Align.RIGHT,
                ),
            ),
        ),
    )


# ---------------------------------------------------------------------------
# Document renderer
# ---------------------------------------------------------------------------

class DocumentRenderer:
    """
    Composes header, body and footer into a ``DocumentTree`` and
    rasterizes trees to PDF bytes.

    The same instance serves the on-screen preview and the exported
    artifact, so both always come from one code path.
    """

    def __init__(
        self,
        config: CertifierConfig,
        body_renderer: Optional[BodyRenderer] = None,
    ) -> None:
        self._config = config
        self._body_renderer = body_renderer or BodyRenderer.from_config(config)

    @property
    def page_size(self) -> str:
        return self._config.PAGE_SIZE

    def render(
        self,
        header: Sequence[DocumentNode],
        body: Sequence[DocumentNode],
        footer: Sequence[DocumentNode],
        *,
        title: str = "",
        subject: str = "",
        content_hash: Optional[str] = None,
    ) -> DocumentTree:
        return DocumentTree(
            page_size=self.page_size,
            title=title,
            subject=subject,
            content_hash=content_hash,
            pages=(Page(header=tuple(header), body=tuple(body), footer=tuple(footer)),),
        )

    def compose(
        self,
        template: TemplateEntry,
        form_state: FormState,
        derived: Mapping[str, DerivedFields],
        context: SessionContext,
        *,
        issued_on: date,
        content_hash: Optional[str] = None,
    ) -> DocumentTree:
        body_context = template.body_context(
            form_state,
            derived,
            profile=context.profile,
            captain_name=context.captain_name,
            secretary_name=context.secretary_name,
            issued_on=issued_on,
        )

        header = build_header(
            template,
            context,
            page_size=self.page_size,
            watermark_opacity=self._config.WATERMARK_OPACITY,
        )
        body = template.render_body(self._body_renderer, body_context)
        footer = build_footer(
            template.footer,
            captain=context.captain_name,
            secretary=body_context["fields"].get("prepared_by") or context.secretary_name,
            amount=body_context["amount"],
        )

        return self.render(
            header,
            body,
            footer,
            title=template.record_label,
            subject=template.description,
            content_hash=content_hash,
        )

    def rasterize(self, tree: DocumentTree) -> bytes:
        return render_pdf(tree)
