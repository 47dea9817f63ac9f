"""Format-neutral page AST.

Every page is converted to a ``Document`` before it is written anywhere:
remote markup -> Document -> Markdown, and back.  All node types are
frozen pydantic models discriminated by a ``kind`` literal, so the unions
below are closed: a converter that ``match``-es over them and ends with
``assert_never`` fails type checking when a new variant is added.

Sequences are tuples; a node is never mutated after construction.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

_FROZEN = ConfigDict(frozen=True)

Source = Literal["remote", "markdown"]
PanelType = Literal["info", "warning", "note", "tip", "error", "panel"]
PANEL_TYPES: tuple[str, ...] = (
    "info",
    "warning",
    "note",
    "tip",
    "error",
    "panel",
)


# ---------------------------------------------------------------------------
# Inline nodes
# ---------------------------------------------------------------------------


class Text(BaseModel):
    model_config = _FROZEN

    kind: Literal["text"] = "text"
    value: str


class Strong(BaseModel):
    model_config = _FROZEN

    kind: Literal["strong"] = "strong"
    children: tuple[InlineNode, ...] = ()


class Emphasis(BaseModel):
    model_config = _FROZEN

    kind: Literal["emphasis"] = "emphasis"
    children: tuple[InlineNode, ...] = ()


class Strikethrough(BaseModel):
    model_config = _FROZEN

    kind: Literal["strikethrough"] = "strikethrough"
    children: tuple[InlineNode, ...] = ()


class InlineCode(BaseModel):
    model_config = _FROZEN

    kind: Literal["inline_code"] = "inline_code"
    value: str


class Link(BaseModel):
    model_config = _FROZEN

    kind: Literal["link"] = "link"
    href: str
    title: str | None = None
    children: tuple[InlineNode, ...] = ()


class Image(BaseModel):
    model_config = _FROZEN

    kind: Literal["image"] = "image"
    src: str
    alt: str = ""
    title: str | None = None


class LineBreak(BaseModel):
    model_config = _FROZEN

    kind: Literal["line_break"] = "line_break"


class UnsupportedInline(BaseModel):
    """Inline construct with no mapping; *raw* is emitted verbatim."""

    model_config = _FROZEN

    kind: Literal["unsupported_inline"] = "unsupported_inline"
    raw: str
    source: Source = "markdown"


InlineNode = Annotated[
    Union[
        Text,
        Strong,
        Emphasis,
        Strikethrough,
        InlineCode,
        Link,
        Image,
        LineBreak,
        UnsupportedInline,
    ],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Block nodes
# ---------------------------------------------------------------------------


class Heading(BaseModel):
    model_config = _FROZEN

    kind: Literal["heading"] = "heading"
    level: int = Field(ge=1, le=6)
    children: tuple[InlineNode, ...] = ()


class Paragraph(BaseModel):
    model_config = _FROZEN

    kind: Literal["paragraph"] = "paragraph"
    children: tuple[InlineNode, ...] = ()


class CodeBlock(BaseModel):
    model_config = _FROZEN

    kind: Literal["code_block"] = "code_block"
    code: str
    language: str | None = None


class ThematicBreak(BaseModel):
    model_config = _FROZEN

    kind: Literal["thematic_break"] = "thematic_break"


class BlockQuote(BaseModel):
    model_config = _FROZEN

    kind: Literal["block_quote"] = "block_quote"
    children: tuple[DocumentNode, ...] = ()


class ListItem(BaseModel):
    model_config = _FROZEN

    kind: Literal["list_item"] = "list_item"
    children: tuple[DocumentNode, ...] = ()
    checked: bool | None = None


class List(BaseModel):
    model_config = _FROZEN

    kind: Literal["list"] = "list"
    ordered: bool = False
    start: int | None = None
    items: tuple[ListItem, ...] = ()


class TableCell(BaseModel):
    model_config = _FROZEN

    kind: Literal["table_cell"] = "table_cell"
    is_header: bool = False
    children: tuple[InlineNode, ...] = ()


class TableRow(BaseModel):
    model_config = _FROZEN

    kind: Literal["table_row"] = "table_row"
    cells: tuple[TableCell, ...] = ()


class Table(BaseModel):
    model_config = _FROZEN

    kind: Literal["table"] = "table"
    header: TableRow | None = None
    rows: tuple[TableRow, ...] = ()


class UnsupportedBlock(BaseModel):
    """Lossy-capture escape hatch for constructs with no mapping.

    ``raw_markdown`` holds the verbatim source text; ``source`` tells
    which format it was captured from so the remote serializer knows
    whether it may splice it back in as markup.
    """

    model_config = _FROZEN

    kind: Literal["unsupported_block"] = "unsupported_block"
    raw_markdown: str
    source: Source = "markdown"


BlockNode = Union[
    Heading,
    Paragraph,
    CodeBlock,
    ThematicBreak,
    BlockQuote,
    List,
    Table,
    UnsupportedBlock,
]


# ---------------------------------------------------------------------------
# Macro nodes
# ---------------------------------------------------------------------------


class Panel(BaseModel):
    """Info/warning/note/tip/error/panel box."""

    model_config = _FROZEN

    kind: Literal["panel"] = "panel"
    panel_type: PanelType = "info"
    title: str | None = None
    children: tuple[DocumentNode, ...] = ()


class Expand(BaseModel):
    """Collapsible section."""

    model_config = _FROZEN

    kind: Literal["expand"] = "expand"
    title: str | None = None
    children: tuple[DocumentNode, ...] = ()


class TableOfContents(BaseModel):
    model_config = _FROZEN

    kind: Literal["toc"] = "toc"
    min_level: int | None = None
    max_level: int | None = None


MacroNode = Union[Panel, Expand, TableOfContents]

DocumentNode = Annotated[
    Union[
        Heading,
        Paragraph,
        CodeBlock,
        ThematicBreak,
        BlockQuote,
        List,
        Table,
        UnsupportedBlock,
        Panel,
        Expand,
        TableOfContents,
    ],
    Field(discriminator="kind"),
]


class Document(BaseModel):
    """Root of a page's canonical representation."""

    model_config = _FROZEN

    version: int = 1
    children: tuple[DocumentNode, ...] = ()


for _model in (
    Strong,
    Emphasis,
    Strikethrough,
    Link,
    Heading,
    Paragraph,
    BlockQuote,
    ListItem,
    List,
    TableCell,
    TableRow,
    Table,
    Panel,
    Expand,
    Document,
):
    _model.model_rebuild()
