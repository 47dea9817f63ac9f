"""Document AST <-> HTML parse tree.

The HTML side is the *preprocessed* wiki markup (see ``preprocessing``):
macros arrive as ``data-macro`` elements.  On the way out, macros are
written directly as ``ac:structured-macro`` elements, which the generic
HTML encoder serializes like any other unknown tag.
"""

from __future__ import annotations

import logging
import re
from typing import assert_never

from wiki_mirror import ast
from wiki_mirror.codecs import html_tree as h
from wiki_mirror.errors import ParseError

from .common import markdown_to_wiki_lang, wiki_to_markdown_lang

logger = logging.getLogger(__name__)

INLINE_TAGS: frozenset[str] = frozenset(
    {
        "a",
        "abbr",
        "b",
        "br",
        "cite",
        "code",
        "del",
        "em",
        "font",
        "i",
        "img",
        "kbd",
        "mark",
        "q",
        "s",
        "samp",
        "small",
        "span",
        "strike",
        "strong",
        "sub",
        "sup",
        "time",
        "u",
        "var",
    }
)

# Inline wrappers with no meaning of their own; their children are kept
_TRANSPARENT_INLINE = frozenset(
    {"span", "font", "small", "mark", "abbr", "cite", "var", "samp", "kbd", "q"}
)

# Block wrappers that are flattened into their children
_TRANSPARENT_BLOCK = frozenset(
    {
        "div",
        "section",
        "article",
        "main",
        "body",
        "html",
        "header",
        "footer",
        "center",
        "tbody",
    }
)

_HEADING_RE = re.compile(r"^h([1-6])$")
_WHITESPACE_RE = re.compile(r"\s+")
_URL_SCHEME_RE = re.compile(r"^(?:[a-zA-Z][a-zA-Z0-9+.-]*:|/|#|data:)")


# =============================================================================
# AST -> HTML tree
# =============================================================================


def document_node_to_html(node: ast.DocumentNode) -> list[h.HtmlNode]:
    match node:
        case ast.Heading(level=level, children=children):
            return [h.Element(f"h{level}", {}, inlines_to_html(children))]
        case ast.Paragraph(children=children):
            return [h.Element("p", {}, inlines_to_html(children))]
        case ast.CodeBlock(code=code, language=language):
            return [_code_macro(code, language)]
        case ast.ThematicBreak():
            return [h.Element("hr")]
        case ast.BlockQuote(children=children):
            return [h.Element("blockquote", {}, blocks_to_html(children))]
        case ast.List():
            return [_list_to_html(node)]
        case ast.Table():
            return [_table_to_html(node)]
        case ast.UnsupportedBlock(raw_markdown=raw):
            return _splice_raw(raw, block=True)
        case ast.Panel(panel_type=panel_type, title=title, children=children):
            return [_rich_macro(panel_type, title, children)]
        case ast.Expand(title=title, children=children):
            return [_rich_macro("expand", title, children)]
        case ast.TableOfContents(min_level=min_level, max_level=max_level):
            params = []
            if min_level is not None:
                params.append(_parameter("minLevel", str(min_level)))
            if max_level is not None:
                params.append(_parameter("maxLevel", str(max_level)))
            return [_macro("toc", params)]
        case _:
            assert_never(node)


def blocks_to_html(nodes) -> list[h.HtmlNode]:
    out: list[h.HtmlNode] = []
    for node in nodes:
        out.extend(document_node_to_html(node))
    return out


def _macro(name: str, children: list[h.HtmlNode]) -> h.Element:
    return h.Element("ac:structured-macro", {"ac:name": name}, children)


def _parameter(name: str, value: str) -> h.Element:
    return h.Element("ac:parameter", {"ac:name": name}, [h.Text(value)])


def _code_macro(code: str, language: str | None) -> h.Element:
    children: list[h.HtmlNode] = []
    if language:
        children.append(_parameter("language", markdown_to_wiki_lang(language)))
    children.append(
        h.Element("ac:plain-text-body", {}, [h.Text(code, cdata=True)])
    )
    return _macro("code", children)


def _rich_macro(name: str, title: str | None, children) -> h.Element:
    params: list[h.HtmlNode] = []
    if title:
        params.append(_parameter("title", title))
    body = h.Element("ac:rich-text-body", {}, blocks_to_html(children))
    return _macro(name, params + [body])


def _list_to_html(node: ast.List) -> h.Element:
    if any(item.checked is not None for item in node.items):
        tasks = [
            h.Element(
                "ac:task",
                {},
                [
                    h.Element(
                        "ac:task-status",
                        {},
                        [h.Text("complete" if item.checked else "incomplete")],
                    ),
                    h.Element("ac:task-body", {}, _list_item_content(item)),
                ],
            )
            for item in node.items
        ]
        return h.Element("ac:task-list", {}, tasks)
    props = {}
    if node.ordered and node.start not in (None, 1):
        props["start"] = str(node.start)
    return h.Element(
        "ol" if node.ordered else "ul",
        props,
        [h.Element("li", {}, _list_item_content(item)) for item in node.items],
    )


def _list_item_content(item: ast.ListItem) -> list[h.HtmlNode]:
    # A lone paragraph is written inline, the way the wiki editor does
    if len(item.children) == 1 and isinstance(item.children[0], ast.Paragraph):
        return inlines_to_html(item.children[0].children)
    return blocks_to_html(item.children)


def _table_to_html(node: ast.Table) -> h.Element:
    rows = ([node.header] if node.header else []) + list(node.rows)
    return h.Element(
        "table",
        {},
        [
            h.Element(
                "tbody",
                {},
                [
                    h.Element(
                        "tr",
                        {},
                        [
                            h.Element(
                                "th" if cell.is_header else "td",
                                {},
                                inlines_to_html(cell.children),
                            )
                            for cell in row.cells
                        ],
                    )
                    for row in rows
                ],
            )
        ],
    )


def _splice_raw(raw: str, block: bool) -> list[h.HtmlNode]:
    """Re-parse captured markup so it is written back verbatim."""
    if raw.lstrip().startswith("<"):
        try:
            return h.decode(raw)
        except ParseError:
            logger.debug("Captured markup does not parse; writing it as text")
    if block:
        return [h.Element("p", {}, [h.Text(raw)])]
    return [h.Text(raw)]


def inline_to_html(node: ast.InlineNode) -> list[h.HtmlNode]:
    match node:
        case ast.Text(value=value):
            return [h.Text(value)]
        case ast.Strong(children=children):
            return [h.Element("strong", {}, inlines_to_html(children))]
        case ast.Emphasis(children=children):
            return [h.Element("em", {}, inlines_to_html(children))]
        case ast.Strikethrough(children=children):
            return [h.Element("del", {}, inlines_to_html(children))]
        case ast.InlineCode(value=value):
            return [h.Element("code", {}, [h.Text(value)])]
        case ast.Link(href=href, title=title, children=children):
            props = {"href": href}
            if title:
                props["title"] = title
            return [h.Element("a", props, inlines_to_html(children))]
        case ast.Image():
            return [_image_to_html(node)]
        case ast.LineBreak():
            return [h.Element("br")]
        case ast.UnsupportedInline(raw=raw):
            return _splice_raw(raw, block=False)
        case _:
            assert_never(node)


def inlines_to_html(nodes) -> list[h.HtmlNode]:
    out: list[h.HtmlNode] = []
    for node in nodes:
        out.extend(inline_to_html(node))
    return out


def _image_to_html(node: ast.Image) -> h.Element:
    props = {}
    if node.alt:
        props["ac:alt"] = node.alt
    if node.title:
        props["ac:title"] = node.title
    if _URL_SCHEME_RE.match(node.src):
        target = h.Element("ri:url", {"ri:value": node.src})
    else:
        # Bare file names are page attachments
        target = h.Element("ri:attachment", {"ri:filename": node.src})
    return h.Element("ac:image", props, [target])


# =============================================================================
# HTML tree -> AST
# =============================================================================


def html_to_blocks(nodes: list[h.HtmlNode]) -> list[ast.DocumentNode]:
    """Convert sibling HTML nodes to block nodes.

    Runs of inline content between block elements are gathered into
    paragraphs; whitespace-only runs are dropped.
    """
    out: list[ast.DocumentNode] = []
    pending: list[h.HtmlNode] = []

    def flush() -> None:
        if pending:
            inlines = _trim(html_to_inlines(pending))
            if inlines:
                out.append(ast.Paragraph(children=tuple(inlines)))
            pending.clear()

    for node in nodes:
        if _is_inline(node):
            pending.append(node)
            continue
        flush()
        out.extend(_html_block(node))
    flush()
    return out


def _is_inline(node: h.HtmlNode) -> bool:
    if isinstance(node, h.Text):
        return True
    return isinstance(node, h.Element) and node.tag_name in INLINE_TAGS


def _html_block(node: h.HtmlNode) -> list[ast.DocumentNode]:
    match node:
        case h.Doctype():
            return []
        case h.Comment(value=value):
            return [
                ast.UnsupportedBlock(raw_markdown=f"<!--{value}-->", source="remote")
            ]
        case h.Element():
            return _html_element_block(node)
    return []


def _html_element_block(el: h.Element) -> list[ast.DocumentNode]:
    tag = el.tag_name
    props = el.properties
    heading = _HEADING_RE.match(tag)
    if heading:
        return [
            ast.Heading(
                level=int(heading.group(1)),
                children=tuple(_trim(html_to_inlines(el.children))),
            )
        ]
    macro = props.get("data-macro")
    if tag == "p":
        inlines = _trim(html_to_inlines(el.children))
        return [ast.Paragraph(children=tuple(inlines))] if inlines else []
    if tag == "pre":
        return [_code_block(el)]
    if tag == "hr":
        return [ast.ThematicBreak()]
    if tag == "blockquote":
        return [ast.BlockQuote(children=tuple(html_to_blocks(el.children)))]
    if tag in ("ul", "ol"):
        return [_list(el)]
    if tag == "table":
        return [_table(el)]
    if tag == "div" and macro:
        return [_macro_block(el, macro)]
    if tag == "div" and "data-unsupported-macro" in props:
        return [_unsupported_macro(el)]
    if tag in _TRANSPARENT_BLOCK:
        return html_to_blocks(el.children)
    return [ast.UnsupportedBlock(raw_markdown=h.encode([el]), source="remote")]


def _macro_block(el: h.Element, macro: str) -> ast.DocumentNode:
    title = el.properties.get("data-title") or None
    if macro in ast.PANEL_TYPES:
        return ast.Panel(
            panel_type=macro,
            title=title,
            children=tuple(html_to_blocks(el.children)),
        )
    if macro == "expand":
        return ast.Expand(title=title, children=tuple(html_to_blocks(el.children)))
    if macro == "toc":
        return ast.TableOfContents(
            min_level=_int_or_none(el.properties.get("data-min")),
            max_level=_int_or_none(el.properties.get("data-max")),
        )
    return ast.UnsupportedBlock(raw_markdown=h.encode([el]), source="remote")


def _unsupported_macro(el: h.Element) -> ast.UnsupportedBlock:
    name = el.properties.get("data-unsupported-macro", "")
    raw = el.properties.get("data-raw", "")
    # Single line, so it stays one HTML block in Markdown
    escaped = h.escape_attribute(raw).replace("\n", "&#10;")
    return ast.UnsupportedBlock(
        raw_markdown=(
            f'<div data-unsupported-macro="{h.escape_attribute(name)}" '
            f'data-raw="{escaped}"></div>'
        ),
        source="remote",
    )


def _int_or_none(value: str | None) -> int | None:
    if value and value.strip().isdigit():
        return int(value)
    return None


def _code_block(el: h.Element) -> ast.CodeBlock:
    language = el.properties.get("data-language") or None
    code_el = next(
        (c for c in el.children if isinstance(c, h.Element) and c.tag_name == "code"),
        None,
    )
    if language is None and code_el is not None:
        for cls in code_el.properties.get("class", "").split():
            if cls.startswith("language-"):
                language = cls[len("language-") :]
    code = h.text_content(code_el if code_el is not None else el)
    if code.endswith("\n"):
        code = code[:-1]
    return ast.CodeBlock(
        code=code,
        language=wiki_to_markdown_lang(language) if language else None,
    )


def _list(el: h.Element) -> ast.List:
    items = []
    is_task_list = el.properties.get("data-macro") == "task-list"
    for child in el.children:
        if not (isinstance(child, h.Element) and child.tag_name == "li"):
            continue
        checked = None
        if is_task_list:
            checked = child.properties.get("data-task-status") == "complete"
        items.append(
            ast.ListItem(
                children=tuple(html_to_blocks(child.children)), checked=checked
            )
        )
    start = None
    if el.tag_name == "ol":
        start = _int_or_none(el.properties.get("start"))
        if start == 1:
            start = None
    return ast.List(ordered=el.tag_name == "ol", start=start, items=tuple(items))


def _table(el: h.Element) -> ast.DocumentNode:
    """Convert a table; one with block content in a cell is kept verbatim."""
    if any(_has_block_content(cell) for cell in _table_cells(el)):
        # One line, so it stays a single HTML block in Markdown
        raw = h.encode([el]).replace("\n", "&#10;")
        return ast.UnsupportedBlock(raw_markdown=raw, source="remote")
    header: ast.TableRow | None = None
    rows: list[ast.TableRow] = []
    for tr, in_head in _table_rows(el, in_head=False):
        cells = [
            c
            for c in tr.children
            if isinstance(c, h.Element) and c.tag_name in ("td", "th")
        ]
        is_header = in_head or (
            header is None
            and not rows
            and bool(cells)
            and all(c.tag_name == "th" for c in cells)
        )
        row = ast.TableRow(
            cells=tuple(
                ast.TableCell(
                    is_header=bool(is_header),
                    children=tuple(_cell_inlines(cell)),
                )
                for cell in cells
            )
        )
        if is_header and header is None:
            header = row
        else:
            rows.append(row)
    return ast.Table(header=header, rows=tuple(rows))


def _table_cells(el: h.Element):
    for tr, _ in _table_rows(el, in_head=False):
        for cell in tr.children:
            if isinstance(cell, h.Element) and cell.tag_name in ("td", "th"):
                yield cell


def _has_block_content(cell: h.Element) -> bool:
    return any(
        isinstance(child, h.Element)
        and child.tag_name != "p"
        and child.tag_name not in INLINE_TAGS
        for child in cell.children
    )


def _table_rows(el: h.Element, in_head: bool):
    for child in el.children:
        if not isinstance(child, h.Element):
            continue
        if child.tag_name == "tr":
            yield child, in_head
        elif child.tag_name in ("thead", "tbody", "tfoot"):
            yield from _table_rows(child, in_head or child.tag_name == "thead")


def _cell_inlines(cell: h.Element) -> list[ast.InlineNode]:
    """Flatten a cell's content to inlines; paragraphs become line breaks."""
    out: list[ast.InlineNode] = []
    pending: list[h.HtmlNode] = []
    for child in cell.children:
        if isinstance(child, h.Element) and child.tag_name == "p":
            out.extend(_trim(html_to_inlines(pending)))
            pending.clear()
            if out:
                out.append(ast.LineBreak())
            out.extend(_trim(html_to_inlines(child.children)))
        else:
            pending.append(child)
    out.extend(_trim(html_to_inlines(pending)))
    return _trim(_merge_text(out))


def html_to_inlines(nodes: list[h.HtmlNode]) -> list[ast.InlineNode]:
    out: list[ast.InlineNode] = []
    for node in nodes:
        out.extend(_html_inline(node))
    return _merge_text(out)


def _html_inline(node: h.HtmlNode) -> list[ast.InlineNode]:
    match node:
        case h.Text(value=value):
            collapsed = _WHITESPACE_RE.sub(" ", value)
            return [ast.Text(value=collapsed)] if collapsed else []
        case h.Comment(value=value):
            return [ast.UnsupportedInline(raw=f"<!--{value}-->", source="remote")]
        case h.Doctype():
            return []
        case h.Element():
            return _html_inline_element(node)
    return []


def _html_inline_element(el: h.Element) -> list[ast.InlineNode]:
    tag = el.tag_name
    props = el.properties
    match tag:
        case "strong" | "b":
            return [ast.Strong(children=tuple(html_to_inlines(el.children)))]
        case "em" | "i":
            return [ast.Emphasis(children=tuple(html_to_inlines(el.children)))]
        case "del" | "s" | "strike":
            return [ast.Strikethrough(children=tuple(html_to_inlines(el.children)))]
        case "code":
            return [ast.InlineCode(value=h.text_content(el))]
        case "a":
            return [
                ast.Link(
                    href=props.get("href", ""),
                    title=props.get("title") or None,
                    children=tuple(html_to_inlines(el.children)),
                )
            ]
        case "img":
            return [
                ast.Image(
                    src=props.get("data-attachment") or props.get("src", ""),
                    alt=props.get("alt", ""),
                    title=props.get("title") or None,
                )
            ]
        case "br":
            return [ast.LineBreak()]
        case "time":
            return [ast.Text(value=props.get("datetime") or h.text_content(el))]
    if "data-user-mention" in props or props.get("data-macro") == "status":
        return [ast.UnsupportedInline(raw=h.encode([el]), source="remote")]
    if tag in _TRANSPARENT_INLINE:
        return html_to_inlines(el.children)
    if tag in INLINE_TAGS:
        return [ast.UnsupportedInline(raw=h.encode([el]), source="remote")]
    # Block content nested in an inline context: keep its text
    return [ast.Text(value=_WHITESPACE_RE.sub(" ", h.text_content(el)))]


def _merge_text(nodes: list[ast.InlineNode]) -> list[ast.InlineNode]:
    out: list[ast.InlineNode] = []
    for node in nodes:
        if isinstance(node, ast.Text) and out and isinstance(out[-1], ast.Text):
            merged = _WHITESPACE_RE.sub(" ", out[-1].value + node.value)
            out[-1] = ast.Text(value=merged)
        else:
            out.append(node)
    return out


def _trim(nodes: list[ast.InlineNode]) -> list[ast.InlineNode]:
    """Strip leading/trailing whitespace from the outer text nodes."""
    out = list(nodes)
    if out and isinstance(out[0], ast.Text):
        value = out[0].value.lstrip()
        out[0] = ast.Text(value=value)
        if not value:
            out.pop(0)
    if out and isinstance(out[-1], ast.Text):
        value = out[-1].value.rstrip()
        out[-1] = ast.Text(value=value)
        if not value:
            out.pop()
    return out
