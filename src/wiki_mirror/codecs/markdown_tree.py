"""Markdown string <-> Markdown parse tree (mdast-like).

Decoding uses mistune's AST renderer with the ``table``,
``strikethrough`` and ``task_lists`` plugins and copies the token dicts
into small dataclasses.  ``:::name title`` / ``:::`` fences (used for
wiki panels and collapsible sections) are not something mistune knows,
so they are split out of the source first and decoded recursively into
``Container`` nodes.

``decode`` never raises: token types without a mapping become ``Html``
nodes carrying whatever raw text mistune kept.

Encoding renders canonical Markdown: ATX headings, fenced code, ``-``
bullets, GFM tables, blank line between blocks.  Text is escaped so that
decoding the output yields the same text values.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Union
from urllib.parse import unquote

import mistune

# =============================================================================
# Parse-tree nodes
# =============================================================================


# --- inline ---


@dataclass
class Text:
    value: str


@dataclass
class Emphasis:
    children: list[MdInline] = field(default_factory=list)


@dataclass
class Strong:
    children: list[MdInline] = field(default_factory=list)


@dataclass
class Delete:
    children: list[MdInline] = field(default_factory=list)


@dataclass
class InlineCode:
    value: str


@dataclass
class Link:
    url: str
    title: str | None = None
    children: list[MdInline] = field(default_factory=list)


@dataclass
class Image:
    url: str
    alt: str = ""
    title: str | None = None


@dataclass
class Break:
    pass


@dataclass
class InlineHtml:
    value: str


MdInline = Union[
    Text, Emphasis, Strong, Delete, InlineCode, Link, Image, Break, InlineHtml
]


# --- block ---


@dataclass
class Heading:
    depth: int
    children: list[MdInline] = field(default_factory=list)


@dataclass
class Paragraph:
    children: list[MdInline] = field(default_factory=list)


@dataclass
class Code:
    value: str
    lang: str | None = None


@dataclass
class ThematicBreak:
    pass


@dataclass
class Blockquote:
    children: list[MdBlock] = field(default_factory=list)


@dataclass
class ListItem:
    children: list[MdBlock] = field(default_factory=list)
    checked: bool | None = None


@dataclass
class List:
    ordered: bool = False
    start: int | None = None
    children: list[ListItem] = field(default_factory=list)


@dataclass
class TableCell:
    children: list[MdInline] = field(default_factory=list)


@dataclass
class TableRow:
    children: list[TableCell] = field(default_factory=list)


@dataclass
class Table:
    """GFM table; the first row is always the header row."""

    align: list[str | None] = field(default_factory=list)
    children: list[TableRow] = field(default_factory=list)


@dataclass
class Html:
    value: str


@dataclass
class Container:
    """``:::name title`` fenced block."""

    name: str
    title: str | None = None
    children: list[MdBlock] = field(default_factory=list)


MdBlock = Union[
    Heading,
    Paragraph,
    Code,
    ThematicBreak,
    Blockquote,
    List,
    ListItem,
    Table,
    Html,
    Container,
]

# =============================================================================
# Decode
# =============================================================================

_PLUGINS = ["table", "strikethrough", "task_lists"]

_FENCE_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})")
_CONTAINER_OPEN_RE = re.compile(r"^:::\s*([A-Za-z][\w-]*)[ \t]*(.*?)\s*$")
_CONTAINER_CLOSE_RE = re.compile(r"^:::\s*$")
_PERCENT_ESCAPE_RE = re.compile(r"%(?=[0-9A-Fa-f]{2})")

# A ``[[toc]]`` line is matched on the source, before mistune unescapes
# ``\[\[toc\]\]`` into the same text
TOC_RE = re.compile(
    r"^\[\[toc(?:\s+min=(?P<min>\d+))?(?:\s+max=(?P<max>\d+))?\s*\]\]$"
)


def decode(source: str) -> list[MdBlock]:
    """Parse Markdown text into a list of block nodes.

    Never raises on loose Markdown; unknown constructs degrade to
    ``Html`` nodes.
    """
    text = source.replace("\r\n", "\n").lstrip("\ufeff")
    blocks: list[MdBlock] = []
    for kind, payload in _split_containers(text.split("\n")):
        if kind == "markdown":
            blocks.extend(_decode_plain("\n".join(payload)))
        elif kind == "html":
            blocks.append(Html(payload))
        else:
            name, title, body = payload
            blocks.append(
                Container(
                    name=name,
                    title=title or None,
                    children=decode("\n".join(body)),
                )
            )
    return blocks


def _split_containers(lines: list[str]) -> list[tuple[str, Any]]:
    """Split lines into plain-Markdown, container and ``[[toc]]`` chunks.

    Lines inside fenced code blocks are never treated as container
    fences.  An unclosed container runs to the end of input.
    """
    chunks: list[tuple[str, Any]] = []
    plain: list[str] = []
    fence: str | None = None
    i = 0
    while i < len(lines):
        line = lines[i]
        if fence is None:
            if TOC_RE.match(line.rstrip()):
                if plain:
                    chunks.append(("markdown", plain))
                    plain = []
                chunks.append(("html", line.rstrip()))
                i += 1
                continue
            opener = _CONTAINER_OPEN_RE.match(line)
            if opener:
                end = _find_container_end(lines, i + 1)
                if plain:
                    chunks.append(("markdown", plain))
                    plain = []
                chunks.append(
                    (
                        "container",
                        (opener.group(1), opener.group(2), lines[i + 1 : end]),
                    )
                )
                i = end + 1
                continue
        fence = _track_fence(line, fence)
        plain.append(line)
        i += 1
    if plain:
        chunks.append(("markdown", plain))
    return chunks


def _find_container_end(lines: list[str], start: int) -> int:
    depth = 1
    fence: str | None = None
    for j in range(start, len(lines)):
        line = lines[j]
        if fence is None:
            if _CONTAINER_CLOSE_RE.match(line):
                depth -= 1
                if depth == 0:
                    return j
                continue
            if _CONTAINER_OPEN_RE.match(line):
                depth += 1
                continue
        fence = _track_fence(line, fence)
    return len(lines)


def _track_fence(line: str, fence: str | None) -> str | None:
    """Return the open code fence after *line* (``None`` when outside)."""
    match = _FENCE_RE.match(line)
    if fence is None:
        return match.group(1) if match else None
    if (
        match
        and match.group(1)[0] == fence[0]
        and len(match.group(1)) >= len(fence)
        and not line.strip()[len(match.group(1)) :].strip()
    ):
        return None
    return fence


def _decode_plain(text: str) -> list[MdBlock]:
    if not text.strip():
        return []
    markdown = mistune.create_markdown(renderer="ast", plugins=_PLUGINS)
    tokens = markdown(text)
    return _blocks(tokens)  # type: ignore[arg-type]


def _blocks(tokens: list[dict[str, Any]]) -> list[MdBlock]:
    out: list[MdBlock] = []
    for token in tokens:
        token_type = token.get("type")
        attrs = token.get("attrs") or {}
        children = token.get("children") or []
        match token_type:
            case "blank_line":
                continue
            case "heading":
                out.append(Heading(attrs.get("level", 1), _inlines(children)))
            case "paragraph" | "block_text":
                out.append(Paragraph(_inlines(children)))
            case "block_code":
                info = (attrs.get("info") or "").strip()
                code = token.get("raw", "")
                if code.endswith("\n"):
                    code = code[:-1]
                out.append(Code(code, info.split()[0] if info else None))
            case "thematic_break":
                out.append(ThematicBreak())
            case "block_quote":
                out.append(Blockquote(_blocks(children)))
            case "list":
                out.append(
                    List(
                        ordered=bool(attrs.get("ordered", False)),
                        start=attrs.get("start"),
                        children=[_list_item(child) for child in children],
                    )
                )
            case "block_html":
                out.append(Html(token.get("raw", "").rstrip("\n")))
            case "table":
                out.append(_table(children))
            case _:
                raw = token.get("raw") or token.get("text") or ""
                if raw:
                    out.append(Html(str(raw).rstrip("\n")))
    return out


def _list_item(token: dict[str, Any]) -> ListItem:
    attrs = token.get("attrs") or {}
    checked = None
    if token.get("type") == "task_list_item":
        checked = bool(attrs.get("checked", False))
    return ListItem(_blocks(token.get("children") or []), checked)


def _table(sections: list[dict[str, Any]]) -> Table:
    table = Table()
    for section in sections:
        if section.get("type") == "table_head":
            cells = section.get("children") or []
            table.align = [(c.get("attrs") or {}).get("align") for c in cells]
            table.children.insert(0, _table_row(cells))
        else:
            for row in section.get("children") or []:
                table.children.append(_table_row(row.get("children") or []))
    return table


def _table_row(cells: list[dict[str, Any]]) -> TableRow:
    return TableRow(
        [TableCell(_inlines(cell.get("children") or [])) for cell in cells]
    )


def _inlines(tokens: list[dict[str, Any]]) -> list[MdInline]:
    out: list[MdInline] = []
    for token in tokens:
        token_type = token.get("type")
        attrs = token.get("attrs") or {}
        children = token.get("children") or []
        node: MdInline
        match token_type:
            case "text":
                node = Text(token.get("raw", ""))
            case "softbreak":
                node = Text("\n")
            case "linebreak":
                node = Break()
            case "emphasis":
                node = Emphasis(_inlines(children))
            case "strong":
                node = Strong(_inlines(children))
            case "strikethrough":
                node = Delete(_inlines(children))
            case "codespan":
                node = InlineCode(token.get("raw", ""))
            case "link":
                node = Link(
                    _link_url(attrs), attrs.get("title"), _inlines(children)
                )
            case "image":
                node = Image(
                    _link_url(attrs),
                    plain_text(_inlines(children)),
                    attrs.get("title"),
                )
            case "inline_html":
                node = InlineHtml(token.get("raw", ""))
            case _:
                node = Text(str(token.get("raw", "")))
        if isinstance(node, Text) and out and isinstance(out[-1], Text):
            out[-1] = Text(out[-1].value + node.value)
        else:
            out.append(node)
    return out


def _link_url(attrs: dict[str, Any]) -> str:
    # mistune percent-quotes spaces and non-ASCII; the encoder writes a
    # literal "%XX" as "%25XX", so unquoting restores the original URL
    return unquote(attrs.get("url", ""))


def plain_text(nodes: list[MdInline]) -> str:
    """Concatenated text of inline nodes (formatting dropped)."""
    parts: list[str] = []
    for node in nodes:
        match node:
            case Text(value=value) | InlineCode(value=value):
                parts.append(value)
            case Emphasis(children=c) | Strong(children=c) | Delete(
                children=c
            ) | Link(children=c):
                parts.append(plain_text(c))
            case Image(alt=alt):
                parts.append(alt)
            case Break():
                parts.append("\n")
            case InlineHtml():
                pass
    return "".join(parts)


# =============================================================================
# Encode
# =============================================================================

_ALWAYS_ESCAPE = set("\\`*[]<>~")
_ENTITY_RE = re.compile(r"&(#\d+|#[xX][0-9a-fA-F]+|[A-Za-z][A-Za-z0-9]*);")
_LINE_START_RE = re.compile(r"^([#+=-]|:::)", re.MULTILINE)
_ORDERED_START_RE = re.compile(r"^(\d+)([.)])", re.MULTILINE)


def encode(blocks: list[MdBlock]) -> str:
    """Render block nodes as Markdown text (always newline-terminated)."""
    body = _encode_blocks(blocks)
    return body + "\n" if body else ""


def _encode_blocks(blocks: list[MdBlock]) -> str:
    return "\n\n".join(_encode_block(block) for block in blocks)


def _encode_block(block: MdBlock) -> str:
    match block:
        case Heading(depth=depth, children=children):
            content = _encode_inlines(children).replace("\n", " ")
            if content.endswith("#"):
                content = content[:-1] + "\\#"
            return f"{'#' * depth} {content}".rstrip()
        case Paragraph(children=children):
            return _escape_line_starts(_encode_inlines(children))
        case Code(value=value, lang=lang):
            fence = _code_fence(value)
            return f"{fence}{lang or ''}\n{value}\n{fence}"
        case ThematicBreak():
            return "---"
        case Blockquote(children=children):
            inner = _encode_blocks(children)
            return "\n".join(
                f"> {line}" if line else ">" for line in inner.split("\n")
            )
        case List():
            return _encode_list(block)
        case ListItem():
            return _encode_list(List(children=[block]))
        case Table():
            return _encode_table(block)
        case Html(value=value):
            return value
        case Container(name=name, title=title, children=children):
            opener = f":::{name}" + (f" {title}" if title else "")
            inner = _encode_blocks(children)
            return f"{opener}\n{inner}\n:::" if inner else f"{opener}\n:::"
    raise TypeError(f"Unknown Markdown block: {block!r}")


def _encode_list(node: List) -> str:
    lines: list[str] = []
    number = node.start if node.start is not None else 1
    for item in node.children:
        marker = f"{number}." if node.ordered else "-"
        number += 1
        if item.checked is not None:
            marker += " [x]" if item.checked else " [ ]"
        parts: list[str] = []
        for idx, child in enumerate(item.children):
            rendered = _encode_block(child)
            if idx > 0:
                parts.append("\n" if isinstance(child, List) else "\n\n")
            parts.append(rendered)
        content = "".join(parts)
        indent = " " * (len(marker.split(" ")[0]) + 1)
        item_lines = content.split("\n") if content else [""]
        lines.append(f"{marker} {item_lines[0]}".rstrip())
        lines.extend(
            f"{indent}{line}" if line else "" for line in item_lines[1:]
        )
    return "\n".join(lines)


def _encode_table(node: Table) -> str:
    if not node.children:
        return ""
    width = max(len(row.children) for row in node.children)
    align = list(node.align) + [None] * (width - len(node.align))

    def render_row(row: TableRow) -> str:
        cells = [_encode_cell(cell) for cell in row.children]
        cells += [""] * (width - len(cells))
        return "| " + " | ".join(cells) + " |"

    separators = {
        "left": ":---",
        "center": ":---:",
        "right": "---:",
    }
    lines = [render_row(node.children[0])]
    lines.append(
        "| " + " | ".join(separators.get(a or "", "---") for a in align) + " |"
    )
    lines.extend(render_row(row) for row in node.children[1:])
    return "\n".join(lines)


def _encode_cell(cell: TableCell) -> str:
    return (
        _encode_inlines(cell.children)
        .replace("|", "\\|")
        .replace("\n", " ")
        .strip()
    )


def encode_inlines(nodes: list[MdInline]) -> str:
    """Render inline nodes as Markdown text."""
    return _encode_inlines(nodes)


def _encode_inlines(nodes: list[MdInline]) -> str:
    return "".join(_encode_inline(node) for node in nodes)


def _encode_inline(node: MdInline) -> str:
    match node:
        case Text(value=value):
            return escape_text(value)
        case Emphasis(children=children):
            return f"*{_encode_inlines(children)}*"
        case Strong(children=children):
            return f"**{_encode_inlines(children)}**"
        case Delete(children=children):
            return f"~~{_encode_inlines(children)}~~"
        case InlineCode(value=value):
            ticks = "`" * (_longest_run(value, "`") + 1)
            pad = " " if value.startswith("`") or value.endswith("`") else ""
            return f"{ticks}{pad}{value}{pad}{ticks}"
        case Link(url=url, title=title, children=children):
            return f"[{_encode_inlines(children)}]({_link_target(url, title)})"
        case Image(url=url, alt=alt, title=title):
            return f"![{escape_text(alt)}]({_link_target(url, title)})"
        case Break():
            return "\\\n"
        case InlineHtml(value=value):
            return value
    raise TypeError(f"Unknown Markdown inline: {node!r}")


def escape_text(value: str) -> str:
    """Backslash-escape characters that Markdown would interpret."""
    out: list[str] = []
    for idx, char in enumerate(value):
        if char in _ALWAYS_ESCAPE:
            out.append("\\" + char)
        elif char == "_":
            before = value[idx - 1] if idx > 0 else ""
            after = value[idx + 1] if idx + 1 < len(value) else ""
            if before.isalnum() and after.isalnum():
                out.append(char)
            else:
                out.append("\\_")
        elif char == "&" and _ENTITY_RE.match(value, idx):
            out.append("\\&")
        elif char == "\n":
            # Trailing spaces before a newline would become a hard break
            while out and out[-1] == " ":
                out.pop()
            out.append(char)
        else:
            out.append(char)
    return "".join(out)


def _escape_line_starts(text: str) -> str:
    text = _LINE_START_RE.sub(lambda m: "\\" + m.group(1), text)
    return _ORDERED_START_RE.sub(lambda m: m.group(1) + "\\" + m.group(2), text)


def _link_target(url: str, title: str | None) -> str:
    url = _PERCENT_ESCAPE_RE.sub("%25", url)
    target = f"<{url}>" if (" " in url or not url) else url
    if title:
        escaped = title.replace('"', '\\"')
        target += f' "{escaped}"'
    return target


def _code_fence(value: str) -> str:
    longest = max(
        (len(m.group(0)) for m in re.finditer(r"`{3,}", value)), default=0
    )
    return "`" * max(3, longest + 1)


def _longest_run(value: str, char: str) -> int:
    best = run = 0
    for c in value:
        run = run + 1 if c == char else 0
        best = max(best, run)
    return best
