"""Content addressing for pages.

A page's hash is SHA-256 over the canonical JSON serialization of its
``Document`` (pydantic's ``model_dump_json``: fixed field order, no
whitespace).  Source-format noise such as blank lines, emphasis markers
or attribute order never reaches the Document, so it never changes the
hash.  Sequence order does.
"""

from __future__ import annotations

import hashlib
import re

from wiki_mirror.ast import Document
from wiki_mirror.converters.pipeline import markdown_to_document

_HEX_SHA256_RE = re.compile(r"^[0-9a-f]{64}$")


def content_hash(content: Document | str) -> str:
    """Return the hex SHA-256 of a Document.

    Args:
        content: A ``Document``, or Markdown text which is first decoded
            with ``markdown_to_document``.
    """
    doc = markdown_to_document(content) if isinstance(content, str) else content
    return hashlib.sha256(doc.model_dump_json().encode("utf-8")).hexdigest()


def is_content_hash(value: str) -> bool:
    """True if *value* looks like a hash produced by ``content_hash``."""
    return bool(_HEX_SHA256_RE.match(value))
