"""Document AST <-> Markdown parse tree.

Macros map onto Markdown constructs that survive a plain editor:

- ``Panel`` / ``Expand``  ->  ``:::info Title`` ... ``:::`` containers
- ``TableOfContents``     ->  a ``[[toc]]`` / ``[[toc min=1 max=3]]`` line

Constructs with no mapping degrade to ``UnsupportedBlock`` /
``UnsupportedInline`` carrying their Markdown source; they are never
dropped.
"""

from __future__ import annotations

import re
from typing import assert_never

from wiki_mirror import ast
from wiki_mirror.codecs import markdown_tree as md

from .common import markdown_to_wiki_lang, wiki_to_markdown_lang

TOC_RE = md.TOC_RE

_OPEN_TAG_RE = re.compile(r"^<([A-Za-z][A-Za-z0-9-]*)(?:\s[^>]*)?>$")
_BREAK_TAG_RE = re.compile(r"^<br\s*/?>$", re.IGNORECASE)


def normalize_language(lang: str | None) -> str | None:
    """Canonical Markdown name for a fence language (``js`` -> ``javascript``)."""
    if not lang:
        return None
    return wiki_to_markdown_lang(markdown_to_wiki_lang(lang))


def toc_line(node: ast.TableOfContents) -> str:
    parts = ["toc"]
    if node.min_level is not None:
        parts.append(f"min={node.min_level}")
    if node.max_level is not None:
        parts.append(f"max={node.max_level}")
    return "[[" + " ".join(parts) + "]]"


# =============================================================================
# AST -> Markdown tree
# =============================================================================


def document_node_to_markdown(node: ast.DocumentNode) -> md.MdBlock:
    match node:
        case ast.Heading(level=level, children=children):
            return md.Heading(level, inlines_to_markdown(children))
        case ast.Paragraph(children=children):
            return md.Paragraph(inlines_to_markdown(children))
        case ast.CodeBlock(code=code, language=language):
            return md.Code(code, language)
        case ast.ThematicBreak():
            return md.ThematicBreak()
        case ast.BlockQuote(children=children):
            return md.Blockquote(blocks_to_markdown(children))
        case ast.List(ordered=ordered, start=start, items=items):
            return md.List(
                ordered=ordered,
                start=start,
                children=[
                    md.ListItem(blocks_to_markdown(item.children), item.checked)
                    for item in items
                ],
            )
        case ast.Table():
            return _table_to_markdown(node)
        case ast.UnsupportedBlock(raw_markdown=raw):
            return md.Html(raw)
        case ast.Panel(panel_type=panel_type, title=title, children=children):
            return md.Container(panel_type, title, blocks_to_markdown(children))
        case ast.Expand(title=title, children=children):
            return md.Container("expand", title, blocks_to_markdown(children))
        case ast.TableOfContents():
            return md.Html(toc_line(node))
        case _:
            assert_never(node)


def blocks_to_markdown(nodes) -> list[md.MdBlock]:
    return [document_node_to_markdown(node) for node in nodes]


def _table_to_markdown(node: ast.Table) -> md.Table:
    rows = ([node.header] if node.header else []) + list(node.rows)
    width = max((len(row.cells) for row in rows), default=0)
    md_rows = [
        md.TableRow(
            [md.TableCell(inlines_to_markdown(c.children)) for c in row.cells]
        )
        for row in rows
    ]
    if node.header is None:
        # GFM needs a header row; an all-empty one decodes back to "no header"
        md_rows.insert(0, md.TableRow([md.TableCell() for _ in range(width)]))
    return md.Table(align=[None] * width, children=md_rows)


def inline_to_markdown(node: ast.InlineNode) -> md.MdInline:
    match node:
        case ast.Text(value=value):
            return md.Text(value)
        case ast.Strong(children=children):
            return md.Strong(inlines_to_markdown(children))
        case ast.Emphasis(children=children):
            return md.Emphasis(inlines_to_markdown(children))
        case ast.Strikethrough(children=children):
            return md.Delete(inlines_to_markdown(children))
        case ast.InlineCode(value=value):
            return md.InlineCode(value)
        case ast.Link(href=href, title=title, children=children):
            return md.Link(href, title, inlines_to_markdown(children))
        case ast.Image(src=src, alt=alt, title=title):
            return md.Image(src, alt, title)
        case ast.LineBreak():
            return md.Break()
        case ast.UnsupportedInline(raw=raw):
            return md.InlineHtml(raw)
        case _:
            assert_never(node)


def inlines_to_markdown(nodes) -> list[md.MdInline]:
    return [inline_to_markdown(node) for node in nodes]


# =============================================================================
# Markdown tree -> AST
# =============================================================================


def markdown_to_blocks(nodes: list[md.MdBlock]) -> list[ast.DocumentNode]:
    out: list[ast.DocumentNode] = []
    for node in nodes:
        converted = _markdown_block(node)
        if converted is not None:
            out.append(converted)
    return out


def _markdown_block(node: md.MdBlock) -> ast.DocumentNode | None:
    match node:
        case md.Heading(depth=depth, children=children):
            return ast.Heading(
                level=min(max(depth, 1), 6),
                children=tuple(markdown_to_inlines(children)),
            )
        case md.Paragraph(children=children):
            inlines = markdown_to_inlines(children)
            if not inlines:
                return None
            return ast.Paragraph(children=tuple(inlines))
        case md.Code(value=value, lang=lang):
            return ast.CodeBlock(code=value, language=normalize_language(lang))
        case md.ThematicBreak():
            return ast.ThematicBreak()
        case md.Blockquote(children=children):
            return ast.BlockQuote(children=tuple(markdown_to_blocks(children)))
        case md.List(ordered=ordered, start=start, children=items):
            return ast.List(
                ordered=ordered,
                start=start if ordered and start not in (None, 1) else None,
                items=tuple(_list_item(item) for item in items),
            )
        case md.ListItem():
            return ast.List(items=(_list_item(node),))
        case md.Table():
            return _table(node)
        case md.Html(value=value):
            toc = _toc_from_text(value)
            if toc is not None:
                return toc
            return ast.UnsupportedBlock(raw_markdown=value, source="markdown")
        case md.Container(name=name, title=title, children=children):
            blocks = tuple(markdown_to_blocks(children))
            if name in ast.PANEL_TYPES:
                return ast.Panel(panel_type=name, title=title, children=blocks)
            if name == "expand":
                return ast.Expand(title=title, children=blocks)
            return ast.UnsupportedBlock(
                raw_markdown=md.encode([node]).rstrip("\n"),
                source="markdown",
            )
    return ast.UnsupportedBlock(
        raw_markdown=md.encode([node]).rstrip("\n"), source="markdown"
    )


def _toc_from_text(value: str) -> ast.TableOfContents | None:
    match = TOC_RE.match(value.strip())
    if not match:
        return None
    return ast.TableOfContents(
        min_level=int(match["min"]) if match["min"] else None,
        max_level=int(match["max"]) if match["max"] else None,
    )


def _list_item(item: md.ListItem) -> ast.ListItem:
    return ast.ListItem(
        children=tuple(markdown_to_blocks(item.children)),
        checked=item.checked,
    )


def _table(node: md.Table) -> ast.Table:
    if not node.children:
        return ast.Table()
    head, *body = node.children
    header = None
    if not all(_is_blank_cell(cell) for cell in head.children):
        header = _row(head, is_header=True)
    return ast.Table(
        header=header,
        rows=tuple(_row(row, is_header=False) for row in body),
    )


def _is_blank_cell(cell: md.TableCell) -> bool:
    # mistune may give an empty cell no children or a single empty text
    return all(
        isinstance(child, md.Text) and not child.value.strip()
        for child in cell.children
    )


def _row(row: md.TableRow, is_header: bool) -> ast.TableRow:
    return ast.TableRow(
        cells=tuple(
            ast.TableCell(
                is_header=is_header,
                children=tuple(markdown_to_inlines(cell.children)),
            )
            for cell in row.children
        )
    )


def markdown_to_inlines(nodes: list[md.MdInline]) -> list[ast.InlineNode]:
    out: list[ast.InlineNode] = []
    i = 0
    while i < len(nodes):
        node = nodes[i]
        converted: ast.InlineNode
        match node:
            case md.Text(value=value):
                converted = ast.Text(value=value)
            case md.Emphasis(children=children):
                converted = ast.Emphasis(
                    children=tuple(markdown_to_inlines(children))
                )
            case md.Strong(children=children):
                converted = ast.Strong(
                    children=tuple(markdown_to_inlines(children))
                )
            case md.Delete(children=children):
                converted = ast.Strikethrough(
                    children=tuple(markdown_to_inlines(children))
                )
            case md.InlineCode(value=value):
                converted = ast.InlineCode(value=value)
            case md.Link(url=url, title=title, children=children):
                converted = ast.Link(
                    href=url,
                    title=title,
                    children=tuple(markdown_to_inlines(children)),
                )
            case md.Image(url=url, alt=alt, title=title):
                converted = ast.Image(src=url, alt=alt, title=title)
            case md.Break():
                converted = ast.LineBreak()
            case md.InlineHtml(value=value):
                if _BREAK_TAG_RE.match(value):
                    converted = ast.LineBreak()
                else:
                    end = _matching_close(nodes, i)
                    raw = value
                    if end is not None:
                        raw += md.encode_inlines(nodes[i + 1 : end])
                        raw += nodes[end].value  # type: ignore[union-attr]
                        i = end
                    converted = ast.UnsupportedInline(raw=raw, source="markdown")
            case _:
                converted = ast.UnsupportedInline(
                    raw=md.encode_inlines([node]), source="markdown"
                )
        if (
            isinstance(converted, ast.Text)
            and out
            and isinstance(out[-1], ast.Text)
        ):
            out[-1] = ast.Text(value=out[-1].value + converted.value)
        else:
            out.append(converted)
        i += 1
    return out


def _matching_close(nodes: list[md.MdInline], start: int) -> int | None:
    """Index of the inline HTML node closing the open tag at *start*."""
    opener = nodes[start]
    assert isinstance(opener, md.InlineHtml)
    match = _OPEN_TAG_RE.match(opener.value.strip())
    if not match or opener.value.rstrip().endswith("/>"):
        return None
    tag = match.group(1).lower()
    depth = 1
    for j in range(start + 1, len(nodes)):
        node = nodes[j]
        if not isinstance(node, md.InlineHtml):
            continue
        value = node.value.strip().lower()
        if value == f"</{tag}>":
            depth -= 1
            if depth == 0:
                return j
        else:
            inner = _OPEN_TAG_RE.match(value)
            if inner and inner.group(1).lower() == tag:
                depth += 1
    return None
