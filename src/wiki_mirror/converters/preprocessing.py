"""Wiki storage-format idioms <-> canonical HTML.

The remote wiki stores pages as XHTML with ``ac:`` / ``ri:`` namespaced
tags for macros, layouts, attachments and mentions.  The generic HTML
codec knows nothing about these, so ``preprocess`` rewrites them first:

================================  =========================================
storage format                    canonical HTML
================================  =========================================
``ac:layout`` / section / cell    ``<!--wiki:layout-start-->``,
                                  ``<!--wiki:section:TYPE;CELLS-->``,
                                  ``<!--wiki:cell-->``,
                                  ``<!--wiki:layout-end-->``
code macro                        ``<pre data-macro="code"><code>``
info/warning/... panel macro      ``<div data-macro="info" data-title>``
expand macro                      ``<div data-macro="expand" data-title>``
toc macro                         ``<div data-macro="toc" data-min data-max>``
status macro                      ``<span data-macro="status">``
other macros with a body          body kept, wrapper dropped
other macros                      ``<div data-unsupported-macro data-raw>``
task list                         ``<ul data-macro="task-list">``
attachment image                  ``<img data-attachment>``
emoticon                          its fallback text
user mention                      ``<span data-user-mention>``
================================  =========================================

``postprocess`` turns the layout markers, unsupported macros, mentions
and status spans back into storage format after the HTML encoder ran,
along with code blocks and attachment images found in markup that was
kept verbatim.
"""

from __future__ import annotations

import html
import logging
import re

from wiki_mirror.ast import PANEL_TYPES
from wiki_mirror.codecs.html_tree import VOID_ELEMENTS

logger = logging.getLogger(__name__)

MACRO_OPEN = "<ac:structured-macro"
MACRO_CLOSE = "</ac:structured-macro"

# Guards against runaway rewriting on pathological input
_MAX_MACROS = 1000

LAYOUT_START = "<!--wiki:layout-start-->"
LAYOUT_END = "<!--wiki:layout-end-->"
CELL_MARKER = "<!--wiki:cell-->"
_SECTION_MARKER_RE = re.compile(r"<!--wiki:section:([^;>]*);(\d+)-->")

_ATTR_RE = re.compile(r'([\w:-]+)="([^"]*)"')
_CDATA_RE = re.compile(r"<!\[CDATA\[(.*?)\]\]>", re.DOTALL)
_LAYOUT_RE = re.compile(r"<ac:layout>(.*?)</ac:layout>", re.DOTALL)
_SECTION_RE = re.compile(
    r"<ac:layout-section([^>]*)>(.*?)</ac:layout-section>", re.DOTALL
)
_CELL_RE = re.compile(r"<ac:layout-cell[^>]*>(.*?)</ac:layout-cell>", re.DOTALL)
_TASK_RE = re.compile(r"<ac:task>(.*?)</ac:task>", re.DOTALL)
_IMAGE_RE = re.compile(
    r"<ac:image([^>]*)>\s*<ri:(attachment|url)([^>]*?)/?>\s*"
    r"(?:</ri:(?:attachment|url)>\s*)?</ac:image>",
    re.DOTALL,
)
_EMOTICON_RE = re.compile(r"<ac:emoticon([^>]*?)/?>(?:</ac:emoticon>)?")
_MENTION_RE = re.compile(
    r"<ac:link>\s*<ri:user([^>]*?)/?>\s*(?:</ri:user>\s*)?</ac:link>",
    re.DOTALL,
)
_PARAMETER_RE = re.compile(
    r"<ac:parameter[^>]*>.*?</ac:parameter>", re.DOTALL
)
_NAMESPACED_TAG_RE = re.compile(r"</?(?:ac|ri):[a-z-]+[^>]*>")
_SELF_CLOSING_RE = re.compile(r"<([A-Za-z][\w-]*)((?:\s[^<>]*?)?)\s*/>")


def _attrs(fragment: str) -> dict[str, str]:
    return {name: html.unescape(value) for name, value in _ATTR_RE.findall(fragment)}


def _esc(value: str) -> str:
    return html.escape(value, quote=True).replace("\n", "&#10;")


# =============================================================================
# Preprocess
# =============================================================================


def preprocess(raw: str) -> str:
    """Rewrite storage-format markup into canonical HTML."""
    result = _LAYOUT_RE.sub(_layout_to_markers, raw)
    result = _expand_macros(result)
    result = _preprocess_task_lists(result)
    result = _IMAGE_RE.sub(_image, result)
    result = _EMOTICON_RE.sub(_emoticon, result)
    result = _MENTION_RE.sub(
        lambda m: '<span data-user-mention="{}"></span>'.format(
            _esc(_attrs(m.group(1)).get("ri:account-id", ""))
        ),
        result,
    )
    result = _CDATA_RE.sub(lambda m: html.escape(m.group(1), quote=False), result)
    result = _PARAMETER_RE.sub("", result)
    result = _NAMESPACED_TAG_RE.sub("", result)
    return _SELF_CLOSING_RE.sub(_expand_self_closing, result)


def _layout_to_markers(match: re.Match) -> str:
    parts = [LAYOUT_START]
    for section in _SECTION_RE.finditer(match.group(1)):
        section_type = _attrs(section.group(1)).get("ac:type", "fixed-width")
        cells = _CELL_RE.findall(section.group(2))
        parts.append(f"<!--wiki:section:{section_type};{len(cells)}-->")
        for cell in cells:
            parts.append(CELL_MARKER)
            parts.append(cell)
    parts.append(LAYOUT_END)
    return "".join(parts)


def _expand_macros(text: str) -> str:
    """Rewrite structured macros, outermost first."""
    for _ in range(_MAX_MACROS):
        start = text.find(MACRO_OPEN)
        if start == -1:
            return text
        end = _macro_end(text, start)
        if end == -1:
            logger.warning("Unterminated structured macro at offset %d", start)
            return text
        text = text[:start] + _rewrite_macro(text[start:end]) + text[end:]
    logger.warning("Stopped rewriting macros after %d iterations", _MAX_MACROS)
    return text


def _macro_end(text: str, start: int) -> int:
    """Offset just past the macro starting at *start* (-1 if unterminated)."""
    open_end = text.find(">", start)
    if open_end == -1:
        return -1
    if text[open_end - 1] == "/":
        return open_end + 1
    depth = 1
    pos = open_end + 1
    while depth:
        next_open = text.find(MACRO_OPEN, pos)
        next_close = text.find(MACRO_CLOSE, pos)
        if next_close == -1:
            return -1
        if next_open != -1 and next_open < next_close:
            tag_end = text.find(">", next_open)
            if tag_end != -1 and text[tag_end - 1] != "/":
                depth += 1
            pos = tag_end + 1
        else:
            depth -= 1
            pos = text.find(">", next_close) + 1
    return pos


def _rewrite_macro(macro: str) -> str:
    open_end = macro.find(">")
    name = _attrs(macro[:open_end]).get("ac:name", "")
    body_start = macro.find("<ac:rich-text-body>")
    plain_start = macro.find("<ac:plain-text-body>")
    head_end = min(
        i for i in (body_start, plain_start, len(macro)) if i != -1
    )
    params = _parameters(macro[:head_end])

    if plain_start != -1 and name in ("code", "noformat"):
        body = macro[plain_start + len("<ac:plain-text-body>") :]
        body = body[: body.rfind("</ac:plain-text-body>")]
        # The encoder splits "]]>" across CDATA sections
        sections = _CDATA_RE.findall(body)
        code = "".join(sections) if sections else html.unescape(body)
        language = params.get("language", "")
        return (
            f'<pre data-macro="code" data-language="{_esc(language)}">'
            f"<code>{html.escape(code, quote=False)}</code></pre>"
        )

    if body_start != -1:
        content = macro[body_start + len("<ac:rich-text-body>") :]
        content = content[: content.rfind("</ac:rich-text-body>")]
        if name in PANEL_TYPES or name == "expand":
            title = _esc(params.get("title", ""))
            return (
                f'<div data-macro="{name}" data-title="{title}">'
                f"{content}</div>"
            )
        logger.debug("Unwrapping body of unknown macro %r", name)
        return content

    if name == "toc":
        return '<div data-macro="toc" data-min="{}" data-max="{}"></div>'.format(
            _esc(params.get("minLevel", "")), _esc(params.get("maxLevel", ""))
        )
    if name == "status":
        return '<span data-macro="status" data-colour="{}">{}</span>'.format(
            _esc(params.get("colour", "")),
            html.escape(params.get("title", ""), quote=False),
        )

    logger.debug("Capturing unsupported macro %r verbatim", name)
    return (
        f'<div data-unsupported-macro="{_esc(name)}" '
        f'data-raw="{_esc(macro)}"></div>'
    )


def _parameters(head: str) -> dict[str, str]:
    params: dict[str, str] = {}
    for match in re.finditer(
        r"<ac:parameter([^>]*)>(.*?)</ac:parameter>", head, re.DOTALL
    ):
        name = _attrs(match.group(1)).get("ac:name", "")
        params[name] = html.unescape(match.group(2)).strip()
    return params


def _preprocess_task_lists(text: str) -> str:
    def task(match: re.Match) -> str:
        content = match.group(1)
        status = re.search(r"<ac:task-status>(.*?)</ac:task-status>", content)
        body = re.search(r"<ac:task-body>(.*?)</ac:task-body>", content, re.DOTALL)
        return '<li data-task-status="{}">{}</li>'.format(
            _esc(status.group(1).strip() if status else "incomplete"),
            body.group(1) if body else "",
        )

    text = _TASK_RE.sub(task, text)
    text = re.sub(r"<ac:task-list[^>]*>", '<ul data-macro="task-list">', text)
    return text.replace("</ac:task-list>", "</ul>")


def _image(match: re.Match) -> str:
    image_attrs = _attrs(match.group(1))
    target_attrs = _attrs(match.group(3))
    alt = image_attrs.get("ac:alt", "")
    title = image_attrs.get("ac:title", "")
    extra = (f' alt="{_esc(alt)}"' if alt else "") + (
        f' title="{_esc(title)}"' if title else ""
    )
    if match.group(2) == "url":
        return f'<img src="{_esc(target_attrs.get("ri:value", ""))}"{extra}>'
    filename = target_attrs.get("ri:filename", "")
    return f'<img data-attachment="{_esc(filename)}"{extra}>'


def _emoticon(match: re.Match) -> str:
    attrs = _attrs(match.group(1))
    fallback = attrs.get("ac:emoji-fallback") or attrs.get("ac:emoji-shortname")
    if not fallback:
        fallback = f":{attrs.get('ac:name', 'emoticon')}:"
    return html.escape(fallback, quote=False)


def _expand_self_closing(match: re.Match) -> str:
    tag = match.group(1)
    if tag.lower() in VOID_ELEMENTS:
        return match.group(0)
    return f"<{tag}{match.group(2)}></{tag}>"


# =============================================================================
# Postprocess
# =============================================================================

_UNSUPPORTED_MACRO_RE = re.compile(
    r"<div data-unsupported-macro=\"[^\"]*\" data-raw=\"([^\"]*)\"></div>"
)
_MENTION_SPAN_RE = re.compile(
    r"<span data-user-mention=\"([^\"]*)\"></span>"
)
_STATUS_SPAN_RE = re.compile(
    r"<span data-macro=\"status\" data-colour=\"([^\"]*)\">(.*?)</span>",
    re.DOTALL,
)
# Code blocks and attachment images inside markup kept verbatim, such as
# a table with block content in its cells
_CODE_PRE_RE = re.compile(
    r"<pre data-macro=\"code\" data-language=\"([^\"]*)\"><code>(.*?)</code></pre>",
    re.DOTALL,
)
_ATTACHMENT_IMG_RE = re.compile(
    r"<img data-attachment=\"([^\"]*)\"((?: (?:alt|title)=\"[^\"]*\")*) />"
)


def postprocess(markup: str) -> str:
    """Rewrite canonical HTML produced by the encoder into storage format."""
    result = _reconstruct_layouts(markup)
    result = _UNSUPPORTED_MACRO_RE.sub(lambda m: html.unescape(m.group(1)), result)
    result = _MENTION_SPAN_RE.sub(
        lambda m: f'<ac:link><ri:user ri:account-id="{m.group(1)}" /></ac:link>',
        result,
    )
    result = _STATUS_SPAN_RE.sub(_status_macro, result)
    result = _CODE_PRE_RE.sub(_code_macro, result)
    return _ATTACHMENT_IMG_RE.sub(_attachment_image, result)


def _status_macro(match: re.Match) -> str:
    colour, title = match.group(1), match.group(2)
    params = ""
    if colour:
        params += f'<ac:parameter ac:name="colour">{colour}</ac:parameter>'
    params += f'<ac:parameter ac:name="title">{title}</ac:parameter>'
    return f'<ac:structured-macro ac:name="status">{params}</ac:structured-macro>'


def _code_macro(match: re.Match) -> str:
    language = html.unescape(match.group(1))
    code = html.unescape(match.group(2)).replace("]]>", "]]]]><![CDATA[>")
    param = ""
    if language:
        param = (
            '<ac:parameter ac:name="language">'
            f"{html.escape(language, quote=False)}</ac:parameter>"
        )
    return (
        f'<ac:structured-macro ac:name="code">{param}'
        f"<ac:plain-text-body><![CDATA[{code}]]></ac:plain-text-body>"
        "</ac:structured-macro>"
    )


def _attachment_image(match: re.Match) -> str:
    attrs = "".join(
        f' ac:{name}="{value}"' for name, value in _ATTR_RE.findall(match.group(2))
    )
    return (
        f"<ac:image{attrs}>"
        f'<ri:attachment ri:filename="{match.group(1)}" /></ac:image>'
    )


def _reconstruct_layouts(markup: str) -> str:
    out: list[str] = []
    pos = 0
    while True:
        start = markup.find(LAYOUT_START, pos)
        if start == -1:
            out.append(markup[pos:])
            return "".join(out)
        end = markup.find(LAYOUT_END, start)
        if end == -1:
            logger.warning("Layout start marker without end marker; left as-is")
            out.append(markup[pos:])
            return "".join(out)
        out.append(markup[pos:start])
        out.append(_layout_from_markers(markup[start + len(LAYOUT_START) : end]))
        pos = end + len(LAYOUT_END)


def _layout_from_markers(inner: str) -> str:
    sections: list[str] = []
    markers = list(_SECTION_MARKER_RE.finditer(inner))
    for idx, marker in enumerate(markers):
        body_end = markers[idx + 1].start() if idx + 1 < len(markers) else len(inner)
        body = inner[marker.end() : body_end]
        cells = body.split(CELL_MARKER)[1:]
        expected = int(marker.group(2))
        cells += [""] * (expected - len(cells))
        cell_markup = "".join(
            f"<ac:layout-cell>{cell.strip()}</ac:layout-cell>" for cell in cells
        )
        sections.append(
            f'<ac:layout-section ac:type="{marker.group(1)}">'
            f"{cell_markup}</ac:layout-section>"
        )
    return "<ac:layout>" + "".join(sections) + "</ac:layout>"
