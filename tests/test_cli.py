"""Tests for the command-line entry point."""

import argparse
import json
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from wiki_mirror.cli import build_engine, build_parser, main
from wiki_mirror.config_schema import build_config
from wiki_mirror.errors import (
    ApiError,
    ConfigError,
    GitError,
    GitNotInitializedError,
)
from wiki_mirror.sync import SyncEngine
from wiki_mirror.sync.models import PullResult, PushResult, StatusResult


@pytest.fixture
def cli_env():
    """Patch configuration loading, logging and engine wiring."""
    with (
        patch("wiki_mirror.cli.load_dotenv"),
        patch("wiki_mirror.cli.setup_logging") as mock_logging,
        patch("wiki_mirror.cli.load_hierarchical_config", return_value={}) as mock_load,
        patch("wiki_mirror.cli.build_engine") as mock_build,
    ):
        engine = Mock()
        mock_build.return_value = engine
        yield {
            "engine": engine,
            "build_engine": mock_build,
            "load": mock_load,
            "setup_logging": mock_logging,
        }


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


class TestParser:
    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_clone_command(self):
        args = build_parser().parse_args(["clone"])
        assert args.command == "clone"

    def test_pull_flags(self):
        args = build_parser().parse_args(["pull", "--force", "--history"])
        assert args.command == "pull"
        assert args.force is True
        assert args.history is True

    def test_push_flags(self):
        args = build_parser().parse_args(["--json", "push", "--dry-run", "-m", "msg"])
        assert args.json is True
        assert args.dry_run is True
        assert args.message == "msg"

    def test_global_options(self):
        args = build_parser().parse_args(
            ["--root", "docs", "--root-page-id", "42", "--debug", "status"]
        )
        assert args.root == Path("docs")
        assert args.root_page_id == "42"
        assert args.debug is True


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


class TestMain:
    def test_pull(self, cli_env, capsys):
        cli_env["engine"].pull.return_value = PullResult(pulled=2, commits=1)

        assert main(["pull", "--history"]) == 0

        kwargs = cli_env["engine"].pull.call_args.kwargs
        assert kwargs["force"] is False
        assert kwargs["replay_history"] is True
        assert "Pulled 2 page(s)" in capsys.readouterr().out

    def test_clone(self, cli_env, capsys):
        cli_env["engine"].clone.return_value = PullResult(pulled=4, commits=7)

        assert main(["clone"]) == 0

        cli_env["engine"].clone.assert_called_once()
        cli_env["engine"].pull.assert_not_called()
        assert "Pulled 4 page(s)" in capsys.readouterr().out

    def test_clone_into_repository_returns_1(self, cli_env, caplog):
        cli_env["engine"].clone.side_effect = GitError(
            "/tmp/x is already a git repository", command="git init"
        )

        assert main(["clone"]) == 1
        assert "already a git repository" in caplog.text

    def test_push_dry_run(self, cli_env, capsys):
        cli_env["engine"].push.return_value = PushResult(pushed=1, dry_run=True)

        assert main(["push", "--dry-run", "-m", "Fix typos"]) == 0

        cli_env["engine"].push.assert_called_once_with(
            dry_run=True, message="Fix typos"
        )
        assert capsys.readouterr().out.startswith("DRY RUN")

    def test_status_json(self, cli_env, capsys):
        cli_env["engine"].status.return_value = StatusResult(synced=3)

        assert main(["--json", "status"]) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["synced"] == 3
        assert data["files"] == []

    def test_result_errors_give_exit_code_1(self, cli_env):
        cli_env["engine"].push.return_value = PushResult(errors=["a.md: boom"])
        assert main(["push"]) == 1

    def test_engine_error_returns_1(self, cli_env, caplog):
        cli_env["engine"].push.side_effect = GitNotInitializedError("/tmp/x")

        assert main(["push"]) == 1
        assert "Not a git repository" in caplog.text

    def test_api_error_returns_1(self, cli_env):
        cli_env["engine"].status.side_effect = ApiError("HTTP 500: oops")
        assert main(["status"]) == 1

    def test_keyboard_interrupt_returns_130(self, cli_env, capsys):
        cli_env["engine"].pull.side_effect = KeyboardInterrupt

        assert main(["pull"]) == 130
        assert "Interrupted" in capsys.readouterr().err

    def test_config_error_returns_1(self, cli_env, caplog):
        cli_env["load"].side_effect = ConfigError("Invalid YAML in x.yml")

        assert main(["status"]) == 1
        assert "Invalid YAML" in caplog.text
        cli_env["build_engine"].assert_not_called()

    def test_logging_configured_from_config(self, cli_env):
        cli_env["load"].return_value = {"logging": {"level": "WARNING", "format": "json"}}
        cli_env["engine"].status.return_value = StatusResult()

        main(["--debug", "status"])

        kwargs = cli_env["setup_logging"].call_args.kwargs
        assert kwargs["debug"] is True
        assert kwargs["level"] == "WARNING"
        assert kwargs["debug_format"] == "json"

    def test_explicit_config_path_passed(self, cli_env, tmp_path):
        cli_env["engine"].status.return_value = StatusResult()
        path = tmp_path / "config.yml"

        main(["--config", str(path), "status"])

        cli_env["load"].assert_called_once_with(path)


# ---------------------------------------------------------------------------
# Engine wiring
# ---------------------------------------------------------------------------


def _args(**overrides):
    values = {"root": None, "root_page_id": None}
    values.update(overrides)
    return argparse.Namespace(**values)


_WIKI = {
    "url": "https://wiki.example.com",
    "username": "user@example.com",
    "api_token": "secret-token",
}


class TestBuildEngine:
    def test_wires_collaborators(self, tmp_path):
        root = tmp_path / "mirror"
        config = build_config(
            {"wiki": _WIKI, "sync": {"root_page_id": "42", "max_parallel_fetches": 4}},
            env={},
        )

        engine = build_engine(config, _args(root=root))

        assert isinstance(engine, SyncEngine)
        assert engine.root == root.resolve()
        assert engine.root_page_id == "42"
        assert engine.max_parallel_fetches == 4
        assert root.is_dir()

    def test_cli_root_page_id_overrides_config(self, tmp_path):
        config = build_config(
            {"wiki": _WIKI, "sync": {"root_page_id": "42"}}, env={}
        )
        engine = build_engine(config, _args(root=tmp_path, root_page_id="99"))
        assert engine.root_page_id == "99"

    def test_missing_root_page_id(self, tmp_path):
        config = build_config({"wiki": _WIKI}, env={})
        with pytest.raises(ConfigError, match="Root page id not set"):
            build_engine(config, _args(root=tmp_path))

    def test_missing_credentials(self, tmp_path):
        config = build_config({"sync": {"root_page_id": "42"}}, env={})
        with pytest.raises(ConfigError, match="Wiki URL not found"):
            build_engine(config, _args(root=tmp_path))
