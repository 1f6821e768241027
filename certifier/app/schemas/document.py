"""
Document tree produced by the layout stage and consumed by the
rasterizer.

The tree is plain data: it carries no rendering state, and two trees
built from identical inputs compare equal. ``plain_text()`` gives the
visible text in reading order, which is what previews and tests inspect
without decoding a PDF.
"""

from enum import Enum
from typing import Annotated, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


class Align(str, Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"
    JUSTIFY = "justify"


class TextRun(BaseModel):
    text: str
    bold: bool = False

    model_config = ConfigDict(frozen=True)


class Paragraph(BaseModel):
    kind: Literal["paragraph"] = "paragraph"
    runs: Tuple[TextRun, ...]
    align: Align = Align.JUSTIFY
    font_size: float = 12
    font_name: str = "Times-Roman"
    space_before: float = 0
    space_after: float = 6
    bullet: bool = False

    model_config = ConfigDict(frozen=True)

    @property
    def text(self) -> str:
        return "".join(run.text for run in self.runs)


class ImageNode(BaseModel):
    """
    An image placed at an absolute position on the page.

    Coordinates are in points from the top-left corner of the page.
    Images are drawn before any text so that a low-opacity watermark
    sits behind the body.
    """

    kind: Literal["image"] = "image"
    data: bytes
    x: float
    y: float
    width: float
    height: float
    opacity: float = 1.0

    model_config = ConfigDict(frozen=True)


class Box(BaseModel):
    """A bordered block of centred paragraphs (e.g. business details)."""

    kind: Literal["box"] = "box"
    children: Tuple[Paragraph, ...]
    border_width: float = 2
    padding: float = 20

    model_config = ConfigDict(frozen=True)


class Columns(BaseModel):
    """Two side-by-side stacks of paragraphs (signatory blocks)."""

    kind: Literal["columns"] = "columns"
    left: Tuple[Paragraph, ...]
    right: Tuple[Paragraph, ...] = ()
    space_before: float = 25

    model_config = ConfigDict(frozen=True)


DocumentNode = Annotated[
    Union[Paragraph, ImageNode, Box, Columns],
    Field(discriminator="kind"),
]


def _node_text(node: DocumentNode) -> str:
    if isinstance(node, Paragraph):
        return node.text
    if isinstance(node, Box):
        return "\n".join(child.text for child in node.children)
    if isinstance(node, Columns):
        return "\n".join(p.text for p in node.left + node.right)
    return ""


class Page(BaseModel):
    header: Tuple[DocumentNode, ...] = ()
    body: Tuple[DocumentNode, ...] = ()
    footer: Tuple[DocumentNode, ...] = ()

    model_config = ConfigDict(frozen=True)

    @property
    def images(self) -> Tuple[ImageNode, ...]:
        return tuple(
            node
            for node in self.header + self.body + self.footer
            if isinstance(node, ImageNode)
        )

    @property
    def flow(self) -> Tuple[DocumentNode, ...]:
        return tuple(
            node
            for node in self.header + self.body + self.footer
            if not isinstance(node, ImageNode)
        )


class DocumentTree(BaseModel):
    page_size: str = "A4"
    title: str = ""
    subject: str = ""
    content_hash: Optional[str] = None
    pages: Tuple[Page, ...]

    model_config = ConfigDict(frozen=True)

    def plain_text(self) -> str:
        lines = []
        for page in self.pages:
            for node in page.flow:
                text = _node_text(node)
                if text:
                    lines.append(text)
        return "\n".join(lines)
