"""YAML front-matter header of local page files.

A pulled page file looks like::

    ---
    pageId: '123'
    version: 4
    title: My Page
    updated: '2026-01-02T03:04:05+00:00'
    parentId: '100'
    position: 2
    contentHash: 3f2a...
    ---

    <markdown body>

Keys are camelCase on disk and snake_case in Python.  A header without
``pageId`` describes a page that does not exist remotely yet; only
``title`` and ``parentId`` are read from it.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from wiki_mirror.errors import FrontMatterError

_HEADER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)

_MODEL_CONFIG = ConfigDict(
    frozen=True,
    alias_generator=to_camel,
    populate_by_name=True,
    extra="ignore",
)


def _id_to_str(value: Any) -> Any:
    # Hand-edited headers often carry unquoted numeric ids
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


class PageFrontMatter(BaseModel):
    """Header of a file that is linked to a remote page."""

    model_config = _MODEL_CONFIG

    page_id: str
    version: int = Field(ge=0)
    title: str
    updated: datetime
    parent_id: str | None = None
    position: int | None = None
    content_hash: str = Field(pattern=r"^[0-9a-f]{64}$")
    version_message: str | None = None
    author_name: str | None = None
    author_email: str | None = None

    @field_validator("page_id", "parent_id", mode="before")
    @classmethod
    def _coerce_ids(cls, value: Any) -> Any:
        return _id_to_str(value)


class NewPageFrontMatter(BaseModel):
    """Header of a file that has not been pushed yet."""

    model_config = _MODEL_CONFIG

    title: str
    parent_id: str | None = None

    @field_validator("parent_id", mode="before")
    @classmethod
    def _coerce_ids(cls, value: Any) -> Any:
        return _id_to_str(value)


FrontMatter = PageFrontMatter | NewPageFrontMatter


def split(text: str) -> tuple[dict[str, Any] | None, str]:
    """Split *text* into its raw header mapping and the body.

    Returns ``(None, text)`` when the text has no header.

    Raises:
        ValueError: The header is not a YAML mapping.
    """
    text = text.lstrip("\ufeff")
    match = _HEADER_RE.match(text)
    if not match:
        return None, text
    data = yaml.safe_load(match.group(1)) or {}
    if not isinstance(data, dict):
        raise ValueError("front matter is not a mapping")
    body = text[match.end() :]
    if body.startswith("\r\n"):
        body = body[2:]
    elif body.startswith("\n"):
        body = body[1:]
    return data, body


def parse(text: str, path: str = "") -> tuple[FrontMatter | None, str]:
    """Parse a page file into its front matter and Markdown body.

    Raises:
        FrontMatterError: The header exists but is malformed.
    """
    try:
        data, body = split(text)
        if data is None:
            return None, text.lstrip("\ufeff")
        if data.get("pageId") is None and data.get("page_id") is None:
            return NewPageFrontMatter.model_validate(data), body
        return PageFrontMatter.model_validate(data), body
    except yaml.YAMLError as exc:
        raise FrontMatterError(path, f"invalid YAML: {exc}") from exc
    except ValidationError as exc:
        raise FrontMatterError(path, _summarize(exc)) from exc
    except ValueError as exc:
        raise FrontMatterError(path, str(exc)) from exc


def serialize(front_matter: FrontMatter, body: str) -> str:
    """Render front matter plus body as file content."""
    data = front_matter.model_dump(mode="json", by_alias=True, exclude_none=True)
    header = yaml.safe_dump(
        data, sort_keys=False, allow_unicode=True, default_flow_style=False
    )
    body = body if body.endswith("\n") or not body else body + "\n"
    return f"---\n{header}---\n\n{body}"


def _summarize(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'header'}: {err['msg']}"
        for err in exc.errors()
    )
