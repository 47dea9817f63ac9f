"""Format-neutral document AST."""

from .nodes import (
    PANEL_TYPES,
    BlockNode,
    BlockQuote,
    CodeBlock,
    Document,
    DocumentNode,
    Emphasis,
    Expand,
    Heading,
    Image,
    InlineCode,
    InlineNode,
    LineBreak,
    Link,
    List,
    ListItem,
    MacroNode,
    Panel,
    Paragraph,
    Strikethrough,
    Strong,
    Table,
    TableCell,
    TableOfContents,
    TableRow,
    Text,
    ThematicBreak,
    UnsupportedBlock,
    UnsupportedInline,
)

__all__ = [
    "PANEL_TYPES",
    "BlockNode",
    "BlockQuote",
    "CodeBlock",
    "Document",
    "DocumentNode",
    "Emphasis",
    "Expand",
    "Heading",
    "Image",
    "InlineCode",
    "InlineNode",
    "LineBreak",
    "Link",
    "List",
    "ListItem",
    "MacroNode",
    "Panel",
    "Paragraph",
    "Strikethrough",
    "Strong",
    "Table",
    "TableCell",
    "TableOfContents",
    "TableRow",
    "Text",
    "ThematicBreak",
    "UnsupportedBlock",
    "UnsupportedInline",
]
