"""Command-line entry point: ``wiki-mirror {clone,pull,push,status}``.

Connection settings come from the environment (a ``.env`` file in the
working directory is loaded first) and from the hierarchical YAML config.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from wiki_mirror import __version__
from wiki_mirror.config_loader import load_hierarchical_config
from wiki_mirror.config_schema import UnifiedConfig, build_config, validate_wiki_config
from wiki_mirror.errors import ConfigError, WikiMirrorError
from wiki_mirror.local_tree import FileSystemTree
from wiki_mirror.logger import setup_logging
from wiki_mirror.remote import ConfluenceClient
from wiki_mirror.sync import (
    SyncEngine,
    format_pull_result,
    format_push_result,
    format_status,
    result_to_json,
)
from wiki_mirror.vcs import GitVersionControl

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wiki-mirror",
        description="Mirror wiki pages into Markdown files under git",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create the repository and pull every page with its history
  wiki-mirror --root-page-id 12345 clone

  # Pull the page tree, one commit per remote version
  wiki-mirror pull --history

  # Preview what a push would change
  wiki-mirror push --dry-run

  # Push with a revision comment
  wiki-mirror push -m "Fix typos in onboarding guide"

Environment variables WIKI_URL, WIKI_USERNAME and WIKI_API_TOKEN override
the 'wiki' section of the config file.
        """,
    )
    parser.add_argument(
        "--config", type=Path, help="Config file (default: discovered)"
    )
    parser.add_argument(
        "--root", type=Path, help="Sync root directory (overrides sync.root)"
    )
    parser.add_argument(
        "--root-page-id", help="Remote page to mirror (overrides sync.root_page_id)"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument(
        "--json", action="store_true", help="Print results as JSON"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"wiki-mirror version {__version__}",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser(
        "clone", help="Initialise a repository and pull with full history"
    )

    pull = sub.add_parser("pull", help="Write remote pages to local files")
    pull.add_argument(
        "--force",
        action="store_true",
        help="Overwrite local files even if they have unpushed changes",
    )
    pull.add_argument(
        "--history",
        action="store_true",
        help="Commit every remote version separately with its original author",
    )

    push = sub.add_parser("push", help="Send local changes to the wiki")
    push.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would change without changing anything",
    )
    push.add_argument("-m", "--message", help="Revision comment and commit message")

    sub.add_parser("status", help="Show the sync status of every page")
    return parser


def build_engine(config: UnifiedConfig, args: argparse.Namespace) -> SyncEngine:
    """Wire the concrete collaborators into a ``SyncEngine``.

    Raises:
        ConfigError: Connection settings or the root page id are missing.
    """
    wiki = validate_wiki_config(config.wiki)
    root_page_id = args.root_page_id or config.sync.root_page_id
    if not root_page_id:
        raise ConfigError(
            "Root page id not set. Pass --root-page-id or add "
            "'sync.root_page_id' to config.yml."
        )
    root = (args.root or Path(config.sync.root)).expanduser().resolve()
    root.mkdir(parents=True, exist_ok=True)
    return SyncEngine(
        client=ConfluenceClient(wiki),
        vcs=GitVersionControl(root),
        tree=FileSystemTree(root),
        root=root,
        root_page_id=str(root_page_id),
        max_parallel_fetches=config.sync.max_parallel_fetches,
    )


def _print_progress(current: int, total: int, message: str) -> None:
    logger.info("[%d/%d] %s", current, total, message)


def main(argv: list[str] | None = None) -> int:
    """Run the CLI and return the process exit code."""
    args = build_parser().parse_args(argv)
    load_dotenv()

    try:
        config = build_config(load_hierarchical_config(args.config))
    except ConfigError as exc:
        setup_logging(debug=args.debug, log_file=args.log_file)
        logger.error("%s", exc)
        return 1

    setup_logging(
        debug=args.debug,
        log_file=args.log_file or config.logging.file,
        debug_format=config.logging.format,
        level=config.logging.level,
    )

    try:
        engine = build_engine(config, args)
        match args.command:
            case "clone":
                result = engine.clone(on_progress=_print_progress)
                text = format_pull_result(result)
            case "pull":
                result = engine.pull(
                    force=args.force,
                    replay_history=args.history,
                    on_progress=_print_progress,
                )
                text = format_pull_result(result)
            case "push":
                result = engine.push(dry_run=args.dry_run, message=args.message)
                text = format_push_result(result)
            case _:
                result = engine.status()
                text = format_status(result)
    except WikiMirrorError as exc:
        logger.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return 130

    if args.json:
        print(json.dumps(result_to_json(result), indent=2))
    else:
        print(text)
    return 1 if result.errors else 0


def run() -> None:
    """Console-script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
