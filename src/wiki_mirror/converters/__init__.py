"""Conversion between wiki markup, the Document AST and Markdown."""

from .common import markdown_to_wiki_lang, slugify, wiki_to_markdown_lang
from .pipeline import (
    canonical_document,
    document_to_markdown,
    document_to_remote_markup,
    markdown_to_document,
    remote_markup_to_document,
)
from .preprocessing import postprocess, preprocess

__all__ = [
    "canonical_document",
    "document_to_markdown",
    "document_to_remote_markup",
    "markdown_to_document",
    "markdown_to_wiki_lang",
    "postprocess",
    "preprocess",
    "remote_markup_to_document",
    "slugify",
    "wiki_to_markdown_lang",
]
