"""HTML string <-> generic markup parse tree.

Decoding goes through ``lxml.html`` (libxml2's forgiving HTML parser) and
is then copied into plain dataclasses so the rest of the code never
touches lxml objects.  Encoding is a small hand-written serializer: it
is total and writes elements back exactly as they were parsed, so
unknown wiki tags and attributes survive a round trip.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Union

from lxml import etree
from lxml import html as lxml_html

from wiki_mirror.errors import ParseError

# =============================================================================
# Parse-tree nodes
# =============================================================================


@dataclass
class Text:
    value: str
    cdata: bool = False


@dataclass
class Element:
    tag_name: str
    properties: dict[str, str] = field(default_factory=dict)
    children: list[HtmlNode] = field(default_factory=list)


@dataclass
class Comment:
    value: str


@dataclass
class Doctype:
    value: str = "html"


HtmlNode = Union[Text, Element, Comment, Doctype]

VOID_ELEMENTS: frozenset[str] = frozenset(
    {
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "link",
        "meta",
        "param",
        "source",
        "track",
        "wbr",
    }
)

# Elements whose text content is emitted without entity escaping
_RAW_TEXT_ELEMENTS = frozenset({"script", "style"})

_DOCTYPE_RE = re.compile(r"^\s*<!DOCTYPE\s+([^>]*)>", re.IGNORECASE)


# =============================================================================
# Decode
# =============================================================================


def decode(source: str) -> list[HtmlNode]:
    """Parse an HTML string into a list of top-level parse-tree nodes.

    Args:
        source: HTML fragment or full document.

    Returns:
        Top-level nodes in document order.  Blank input yields ``[]``.

    Raises:
        ParseError: If lxml rejects the input, or non-blank input
            produces no nodes at all.
    """
    nodes: list[HtmlNode] = []
    text = source

    match = _DOCTYPE_RE.match(text)
    if match:
        nodes.append(Doctype(match.group(1).strip()))
        text = text[match.end() :]

    if not text.strip():
        return nodes

    try:
        fragments = lxml_html.fragments_fromstring(text)
    except (etree.ParserError, etree.XMLSyntaxError, AssertionError) as exc:
        raise ParseError("html", str(exc) or type(exc).__name__) from exc

    for fragment in fragments:
        if isinstance(fragment, str):
            # Leading text before the first element
            nodes.append(Text(fragment))
        else:
            nodes.extend(_from_lxml(fragment))

    if not any(not isinstance(n, Doctype) for n in nodes):
        raise ParseError(
            "html", "input is not empty but produced no nodes"
        )
    return nodes


def _from_lxml(el) -> list[HtmlNode]:
    """Copy one lxml node (plus its tail text) into parse-tree nodes."""
    out: list[HtmlNode] = []
    if el.tag is etree.Comment:
        out.append(Comment(el.text or ""))
    elif isinstance(el.tag, str):
        children: list[HtmlNode] = []
        if el.text:
            children.append(Text(el.text))
        for child in el:
            children.extend(_from_lxml(child))
        out.append(Element(el.tag, dict(el.attrib), children))
    # Processing instructions and entity references carry no content
    if el.tail:
        out.append(Text(el.tail))
    return out


# =============================================================================
# Encode
# =============================================================================


def encode(nodes: list[HtmlNode]) -> str:
    """Serialize parse-tree nodes back to an HTML string."""
    return "".join(_encode_node(node, raw_text=False) for node in nodes)


def _encode_node(node: HtmlNode, raw_text: bool) -> str:
    match node:
        case Text(value=value, cdata=True):
            return "<![CDATA[" + value.replace("]]>", "]]]]><![CDATA[>") + "]]>"
        case Text(value=value):
            return value if raw_text else escape_text(value)
        case Comment(value=value):
            return f"<!--{value}-->"
        case Doctype(value=value):
            return f"<!DOCTYPE {value}>"
        case Element(tag_name=tag, properties=props, children=children):
            attrs = "".join(
                f' {name}="{escape_attribute(str(value))}"'
                for name, value in props.items()
            )
            if tag in VOID_ELEMENTS and not children:
                return f"<{tag}{attrs} />"
            inner_raw = tag in _RAW_TEXT_ELEMENTS
            inner = "".join(
                _encode_node(child, raw_text=inner_raw) for child in children
            )
            return f"<{tag}{attrs}>{inner}</{tag}>"
    raise TypeError(f"Unknown HTML node: {node!r}")


def escape_text(value: str) -> str:
    return (
        value.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
    )


def escape_attribute(value: str) -> str:
    return escape_text(value).replace('"', "&quot;")


# =============================================================================
# Tree helpers
# =============================================================================


def text_content(node: HtmlNode) -> str:
    """Concatenated text of *node* and all its descendants."""
    match node:
        case Text(value=value):
            return value
        case Element(children=children):
            return "".join(text_content(child) for child in children)
        case _:
            return ""


def is_blank(node: HtmlNode) -> bool:
    """True for whitespace-only text nodes."""
    return isinstance(node, Text) and not node.cdata and not node.value.strip()
