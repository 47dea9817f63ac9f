"""Result formatting functions.

Provides human-readable and machine-readable output for sync operations:

- ``format_pull_result`` -- post-pull summary.
- ``format_push_result`` -- post-push (or dry-run) summary.
- ``format_status`` -- per-file status grouped by state.
- ``result_to_json`` -- structured dict for ``--json`` output.
"""

from __future__ import annotations

from collections import defaultdict

from pydantic import BaseModel

from .models import FileStatus, PullResult, PushResult, StatusResult, SyncStatus

# Display order and labels for status groups (SYNCED is summarised only)
_STATUS_SECTIONS = [
    (SyncStatus.CONFLICT, "Conflicts"),
    (SyncStatus.LOCAL_MODIFIED, "Modified locally"),
    (SyncStatus.REMOTE_MODIFIED, "Modified remotely"),
    (SyncStatus.LOCAL_ONLY, "Local only (will be created on push)"),
    (SyncStatus.REMOTE_ONLY, "Remote only"),
]


def _append_errors(lines: list[str], errors: list[str]) -> None:
    if errors:
        lines.append("Errors:")
        for error in errors:
            lines.append(f"  {error}")
        lines.append("")


def format_pull_result(result: PullResult) -> str:
    """Format a pull result as human-readable text."""
    lines = [result.summary(), ""]
    _append_errors(lines, result.errors)
    return "\n".join(lines).rstrip()


def format_push_result(result: PushResult) -> str:
    """Format a push result as human-readable text.

    A dry run is headed by a banner so it cannot be mistaken for a real
    push.
    """
    lines: list[str] = []
    if result.dry_run:
        lines.append("DRY RUN -- No changes were made")
        lines.append("")
    lines.append(result.summary())
    lines.append("")
    _append_errors(lines, result.errors)
    return "\n".join(lines).rstrip()


def format_status(result: StatusResult) -> str:
    """Format a status result, one section per non-synced state.

    Synced files are summarised by count only to avoid excessive output.
    """
    lines: list[str] = []
    lines.append(
        f"{result.synced} synced, {result.local_modified} modified locally, "
        f"{result.remote_modified} modified remotely, "
        f"{result.conflicts} conflicts, {result.local_only} local only, "
        f"{result.remote_only} remote only"
    )
    lines.append("")

    groups: dict[SyncStatus, list[FileStatus]] = defaultdict(list)
    for f in result.files:
        groups[f.status].append(f)

    for status, label in _STATUS_SECTIONS:
        if status not in groups:
            continue
        lines.append(f"{label}:")
        for f in groups[status]:
            title = f" ({f.title})" if f.title else ""
            lines.append(f"  {f.path}{title}")
        lines.append("")

    if not any(s != SyncStatus.SYNCED for s in groups):
        lines.append("Everything is up to date.")
        lines.append("")

    _append_errors(lines, result.errors)
    return "\n".join(lines).rstrip()


def result_to_json(result: BaseModel) -> dict:
    """Convert any result model to a JSON-serialisable dict."""
    return result.model_dump(mode="json")
