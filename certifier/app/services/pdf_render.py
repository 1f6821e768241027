"""
PDF rasterization.

This module converts a ``DocumentTree`` into PDF bytes with ReportLab's
platypus layout engine, then binds the tree's content hash into XMP
metadata (see ``pdf_postprocess``).

Design guarantees:
- Deterministic output: the document is built with ReportLab's
  ``invariant`` flag (fixed creation date and document ID) and saved
  with a deterministic trailer ID. Identical trees produce identical
  bytes.
- No document content transformation occurs here: text comes from the
  tree verbatim and is escaped for ReportLab's paragraph markup.
- Images that cannot be decoded are skipped with a warning. A missing
  or broken logo never aborts a certificate.
"""

from __future__ import annotations

import logging
from io import BytesIO
from typing import Callable, List, Optional, Sequence
from xml.sax.saxutils import escape

from PIL import Image, UnidentifiedImageError
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_JUSTIFY, TA_LEFT, TA_RIGHT
from reportlab.lib.pagesizes import A4, LEGAL, LETTER
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.utils import ImageReader
from reportlab.platypus import Flowable, SimpleDocTemplate, Table, TableStyle
from reportlab.platypus import Paragraph as RLParagraph

from certifier.app.schemas.document import (
    Align,
    Box,
    Columns,
    DocumentNode,
    DocumentTree,
    ImageNode,
    Paragraph,
)
from certifier.app.services.pdf_postprocess import bind_content_metadata

logger = logging.getLogger(__name__)


PAGE_SIZES = {
    "A4": A4,
    "LETTER": LETTER,
    "LEGAL": LEGAL,
}

MARGIN = 40

_ALIGNMENT = {
    Align.LEFT: TA_LEFT,
    Align.CENTER: TA_CENTER,
    Align.RIGHT: TA_RIGHT,
    Align.JUSTIFY: TA_JUSTIFY,
}


class RenderError(RuntimeError):
    """Raised when a document tree cannot be rasterized."""


# ------------------------------------------------------------------
# Flowables
# ------------------------------------------------------------------

def _markup(node: Paragraph) -> str:
    parts = []
    for run in node.runs:
        text = escape(run.text)
        parts.append(f"<b>{text}</b>" if run.bold else text)
    return "".join(parts)


def _style(node: Paragraph) -> ParagraphStyle:
    return ParagraphStyle(
        name=f"{node.align.value}-{node.font_size}",
        fontName=node.font_name,
        fontSize=node.font_size,
        leading=node.font_size * 1.3,
        alignment=_ALIGNMENT[node.align],
        spaceBefore=node.space_before,
        spaceAfter=node.space_after,
        leftIndent=14 if node.bullet else 0,
        bulletIndent=2,
    )


def _paragraph(node: Paragraph) -> RLParagraph:
    return RLParagraph(
        _markup(node),
        _style(node),
        bulletText="•" if node.bullet else None,
    )


def _box(node: Box, width: float) -> Table:
    table = Table(
        [[[_paragraph(child) for child in node.children]]],
        colWidths=[width],
    )
    table.setStyle(
        TableStyle(
            [
                ("BOX", (0, 0), (-1, -1), node.border_width, colors.black),
                ("TOPPADDING", (0, 0), (-1, -1), node.padding),
                ("BOTTOMPADDING", (0, 0), (-1, -1), node.padding),
                ("LEFTPADDING", (0, 0), (-1, -1), node.padding),
                ("RIGHTPADDING", (0, 0), (-1, -1), node.padding),
            ]
        )
    )
    table.spaceAfter = 16
    return table


def _columns(node: Columns, width: float) -> Table:
    left = [_paragraph(p) for p in node.left]
    right = [_paragraph(p) for p in node.right]
    table = Table([[left, right]], colWidths=[width * 0.6, width * 0.4])
    table.setStyle(
        TableStyle(
            [
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("LEFTPADDING", (0, 0), (-1, -1), 0),
                ("RIGHTPADDING", (0, 0), (-1, -1), 0),
            ]
        )
    )
    table.spaceBefore = node.space_before
    return table


def _flowables(nodes: Sequence[DocumentNode], width: float) -> List[Flowable]:
    flowables: List[Flowable] = []
    for node in nodes:
        if isinstance(node, Paragraph):
            flowables.append(_paragraph(node))
        elif isinstance(node, Box):
            flowables.append(_box(node, width))
        elif isinstance(node, Columns):
            flowables.append(_columns(node, width))
    return flowables


# ------------------------------------------------------------------
# Images
# ------------------------------------------------------------------

def _image_reader(data: bytes) -> Optional[ImageReader]:
    try:
        image = Image.open(BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        logger.warning("Skipping undecodable image (%d bytes): %s", len(data), exc)
        return None
    return ImageReader(image)


def _draw_images(
    images: Sequence[ImageNode],
    page_height: float,
) -> Callable[..., None]:
    readers = [(node, _image_reader(node.data)) for node in images]

    def on_page(canvas, doc) -> None:
        for node, reader in readers:
            if reader is None:
                continue
            canvas.saveState()
            if node.opacity < 1:
                canvas.setFillAlpha(node.opacity)
                canvas.setStrokeAlpha(node.opacity)
            # Node coordinates are from the top-left; PDF space is bottom-left.
            canvas.drawImage(
                reader,
                node.x,
                page_height - node.y - node.height,
                width=node.width,
                height=node.height,
                mask="auto",
            )
            canvas.restoreState()

    return on_page


# ------------------------------------------------------------------
# Public API
# ------------------------------------------------------------------

def rasterize(tree: DocumentTree) -> bytes:
    """
    Lay out ``tree`` and return unprocessed PDF bytes.

    Raises:
        RenderError: if ReportLab fails to build the document.
    """
    try:
        page_width, page_height = PAGE_SIZES[tree.page_size]
    except KeyError:
        raise RenderError(f"Unsupported page size '{tree.page_size}'") from None

    frame_width = page_width - 2 * MARGIN
    buffer = BytesIO()

    doc = SimpleDocTemplate(
        buffer,
        pagesize=(page_width, page_height),
        leftMargin=MARGIN,
        rightMargin=MARGIN,
        topMargin=MARGIN,
        bottomMargin=MARGIN,
        title=tree.title,
        subject=tree.subject,
        author="",
        creator="",
        invariant=1,
    )

    story: List[Flowable] = []
    images: List[ImageNode] = []
    for page in tree.pages:
        story.extend(_flowables(page.flow, frame_width))
        images.extend(page.images)

    on_page = _draw_images(images, page_height)

    try:
        doc.build(story, onFirstPage=on_page, onLaterPages=on_page)
    except Exception as exc:
        raise RenderError(f"Failed to rasterize document: {exc}") from exc

    return buffer.getvalue()


def render_pdf(tree: DocumentTree) -> bytes:
    """
    Rasterize ``tree`` and bind its content hash into XMP metadata.

    This is the single path for both preview and exported artifacts.
    """
    pdf_bytes = rasterize(tree)
    return bind_content_metadata(
        pdf_bytes,
        content_hash=tree.content_hash,
        document_type=tree.title,
    )
