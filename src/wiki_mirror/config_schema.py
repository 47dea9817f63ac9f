"""Unified configuration schema for wiki_mirror.

Defines Pydantic models for the config structure with dedicated sections
for the wiki connection, the sync root and logging.

Usage:
    from wiki_mirror.config_loader import load_hierarchical_config
    from wiki_mirror.config_schema import build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
    wiki = validate_wiki_config(unified.wiki)

Environment variables (``WIKI_URL``, ``WIKI_USERNAME``,
``WIKI_API_TOKEN``) take precedence over the YAML ``wiki`` section; the
CLI loads a ``.env`` file into the environment first.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from urllib.parse import urlparse

from pydantic import BaseModel, Field, ValidationError

from wiki_mirror.errors import ConfigError

logger = logging.getLogger(__name__)

_ENV_OVERRIDES = {
    "url": "WIKI_URL",
    "username": "WIKI_USERNAME",
    "api_token": "WIKI_API_TOKEN",
}


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class WikiConfig(BaseModel):
    """Remote wiki connection settings.

    All fields are optional to support zero-config: env vars can supply
    them at runtime instead.
    """

    url: str | None = Field(
        default=None, description="Wiki base URL, e.g. https://x.atlassian.net"
    )
    username: str | None = Field(default=None, description="Account email")
    api_token: str | None = Field(default=None, description="API token")
    space_key: str | None = Field(
        default=None,
        description="Space for new pages; looked up from the parent if unset",
    )
    insecure: bool = Field(
        default=False,
        description="Disable SSL verification (development only)",
    )
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retries after HTTP 429 before giving up",
    )

    model_config = {"frozen": True}


class SyncConfig(BaseModel):
    """Where and what to mirror."""

    root: str = Field(default=".", description="Local sync root directory")
    root_page_id: str | None = Field(
        default=None, description="Remote id of the top page to mirror"
    )
    max_parallel_fetches: int = Field(
        default=1,
        ge=1,
        le=32,
        description="Worker threads for fetching pages during pull (1-32)",
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
        format: ``"text"`` or ``"json"``.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")
    format: str = Field(default="text", pattern="^(text|json)$")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Aggregates all config sections. Every section has sensible defaults,
    so ``UnifiedConfig()`` (zero-config) is always valid.
    """

    wiki: WikiConfig = Field(default_factory=WikiConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory functions
# ---------------------------------------------------------------------------


def build_config(
    raw_data: dict, env: Mapping[str, str] | None = None
) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``, with connection env vars applied.

    Handles missing sections gracefully: anything absent gets defaults.

    Args:
        raw_data: Merged configuration dictionary.
        env: Environment to read overrides from (defaults to ``os.environ``).

    Raises:
        ConfigError: A section has invalid values.
    """
    env = os.environ if env is None else env
    data = dict(raw_data or {})

    wiki = dict(data.get("wiki") or {})
    for field_name, var in _ENV_OVERRIDES.items():
        if env.get(var):
            wiki[field_name] = env[var]
    data["wiki"] = wiki

    try:
        return UnifiedConfig(**data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
    except TypeError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def validate_wiki_config(wiki: WikiConfig) -> WikiConfig:
    """Check that the connection settings are complete and well-formed.

    Returns a copy with the URL normalised (no trailing slash).

    Raises:
        ConfigError: If URL format is invalid or credentials are empty.
    """
    url = (wiki.url or "").strip()
    if not url:
        raise ConfigError(
            "Wiki URL not found. Set WIKI_URL or add 'wiki.url' to config.yml."
        )
    if not url.startswith(("http://", "https://")):
        raise ConfigError(
            f"Invalid wiki URL '{url}': must start with http:// or https://"
        )
    if not urlparse(url).hostname:
        raise ConfigError(f"Invalid wiki URL '{url}': URL must include a hostname")

    if not (wiki.username or "").strip():
        raise ConfigError(
            "Wiki username cannot be empty. Set WIKI_USERNAME environment variable."
        )
    if not (wiki.api_token or "").strip():
        raise ConfigError(
            "Wiki API token cannot be empty. Set WIKI_API_TOKEN environment variable."
        )

    if wiki.insecure:
        logger.warning(
            "SSL verification disabled (insecure=True). Use only for development."
        )

    return wiki.model_copy(
        update={
            "url": url.removesuffix("/"),
            "username": wiki.username.strip(),
            "api_token": wiki.api_token.strip(),
        }
    )
