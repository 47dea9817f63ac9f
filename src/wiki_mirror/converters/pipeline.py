"""Whole-document pipelines.

    remote markup --preprocess--> HTML --decode--> HTML tree --> Document
    Document --> Markdown tree --encode--> Markdown text
    Markdown text --decode--> Markdown tree --> Document
    Document --> HTML tree --encode--> HTML --postprocess--> remote markup

``ParseError`` from the codecs propagates unchanged; anything else that
goes wrong inside a pipeline is reported as ``ConversionError``.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from typing import TypeVar

from wiki_mirror.ast import Document
from wiki_mirror.codecs import html_tree, markdown_tree
from wiki_mirror.errors import ConversionError, WikiMirrorError

from .html_nodes import blocks_to_html, html_to_blocks
from .markdown_nodes import blocks_to_markdown, markdown_to_blocks
from .preprocessing import postprocess, preprocess

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _pipeline(direction: str) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Translate unexpected failures into ``ConversionError``."""

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> T:
            try:
                return func(*args, **kwargs)
            except WikiMirrorError:
                raise
            except (ValueError, TypeError, KeyError, IndexError, AttributeError) as exc:
                logger.debug("%s failed", direction, exc_info=True)
                raise ConversionError(direction, str(exc)) from exc

        return wrapper

    return decorator


@_pipeline("remote_to_document")
def remote_markup_to_document(raw: str) -> Document:
    """Convert wiki storage-format markup into a Document."""
    if not raw.strip():
        return Document()
    nodes = html_tree.decode(preprocess(raw))
    return Document(children=tuple(html_to_blocks(nodes)))


@_pipeline("document_to_markdown")
def document_to_markdown(doc: Document) -> str:
    """Render a Document as Markdown text."""
    return markdown_tree.encode(blocks_to_markdown(doc.children))


@_pipeline("markdown_to_document")
def markdown_to_document(text: str) -> Document:
    """Parse Markdown text into a Document."""
    return Document(children=tuple(markdown_to_blocks(markdown_tree.decode(text))))


@_pipeline("document_to_remote")
def document_to_remote_markup(doc: Document) -> str:
    """Render a Document as wiki storage-format markup."""
    return postprocess(html_tree.encode(blocks_to_html(doc.children)))


def canonical_document(raw: str) -> Document:
    """The Document a freshly pulled local file decodes to.

    Remote content is projected through the Markdown round trip so its
    hash is directly comparable with the hash of a local file.
    """
    return markdown_to_document(document_to_markdown(remote_markup_to_document(raw)))
