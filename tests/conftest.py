"""Shared pytest fixtures for wiki-mirror tests."""

from pathlib import Path

import pytest

from wiki_mirror.config_schema import WikiConfig
from wiki_mirror.frontmatter import PageFrontMatter, serialize
from wiki_mirror.hashing import content_hash


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live wiki instance",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring a live wiki instance"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        # --run-live given: do not skip live tests
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Keep developer credentials out of the tests."""
    for var in (
        "WIKI_URL",
        "WIKI_USERNAME",
        "WIKI_API_TOKEN",
        "WIKI_MIRROR_CONFIG",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def mock_wiki_config():
    """Create a WikiConfig pointing at a fake wiki."""
    return WikiConfig(
        url="https://wiki.example.com",
        username="user@example.com",
        api_token="secret-token",
        max_retries=2,
    )


@pytest.fixture
def write_page(tmp_path):
    """Factory fixture writing a linked page file under ``tmp_path``."""

    def _write(rel_path: str, body: str, page_id: str, **fields) -> Path:
        fm = PageFrontMatter(
            page_id=page_id,
            version=fields.pop("version", 1),
            title=fields.pop("title", Path(rel_path).stem),
            updated=fields.pop("updated", "2026-01-01T00:00:00+00:00"),
            content_hash=fields.pop("content_hash", content_hash(body)),
            **fields,
        )
        path = tmp_path / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(serialize(fm, body), encoding="utf-8")
        return path

    return _write
