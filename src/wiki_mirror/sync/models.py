"""Pydantic models for the sync engine.

Defines the data contracts shared by the engine and its collaborators:

- ``SyncStatus``: Per-page reconciliation state.
- ``RemotePage`` / ``PageSummary`` / ``PageVersion``: What the remote
  wiki client returns.
- ``VcsStatus`` / ``VcsStatusEntry`` / ``VcsLogEntry``: What the version
  control wrapper returns.
- ``LocalTreeNode`` / ``LocalPage``: What the local file tree returns.
- ``PullResult`` / ``PushResult`` / ``StatusResult``: What the engine
  returns to its caller.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel

from wiki_mirror.frontmatter import FrontMatter, PageFrontMatter


class SyncStatus(str, Enum):
    """Derived reconciliation state of one page; never persisted."""

    SYNCED = "synced"
    LOCAL_MODIFIED = "local_modified"
    REMOTE_MODIFIED = "remote_modified"
    CONFLICT = "conflict"
    LOCAL_ONLY = "local_only"
    REMOTE_ONLY = "remote_only"


# ---------------------------------------------------------------------------
# Remote wiki
# ---------------------------------------------------------------------------


class RemotePage(BaseModel):
    """Current state of a remote page.

    Attributes:
        id: Remote page id.
        title: Page title.
        raw_markup: Body in wiki storage format.
        version: Remote version number.
        parent_id: Id of the parent page, if any.
        position: Sort position among siblings, if the wiki exposes one.
        updated: When the current version was created.
        author: Display name of the current version's author.
        message: Revision comment of the current version.
    """

    id: str
    title: str
    raw_markup: str
    version: int
    parent_id: str | None = None
    position: int | None = None
    updated: datetime | None = None
    author: str | None = None
    message: str | None = None

    model_config = {"frozen": True}


class PageSummary(BaseModel):
    id: str
    title: str
    position: int | None = None

    model_config = {"frozen": True}


class PageVersion(BaseModel):
    """One historical version of a page."""

    version: int
    raw_markup: str
    author: str | None = None
    email: str | None = None
    timestamp: datetime
    message: str | None = None

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Version control
# ---------------------------------------------------------------------------


class VcsStatusEntry(BaseModel):
    path: str
    staged: bool
    status: str

    model_config = {"frozen": True}


class VcsStatus(BaseModel):
    has_changes: bool
    entries: list[VcsStatusEntry] = []
    has_conflicts: bool = False

    model_config = {"frozen": True}


class VcsLogEntry(BaseModel):
    hash: str
    author: str
    email: str
    date: datetime
    message: str

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Local file tree
# ---------------------------------------------------------------------------


class LocalTreeNode(BaseModel):
    """One page file in the local tree.

    Attributes:
        page_id: Remote id from the front matter; ``None`` for new pages.
        path: Path relative to the sync root, with ``/`` separators.
        title: Title from the front matter (or derived from the file name).
        children: Pages in this page's directory (``index.md`` pages only).
    """

    page_id: str | None = None
    path: str
    title: str
    children: list[LocalTreeNode] = []

    model_config = {"frozen": True}


class LocalPage(BaseModel):
    path: str
    front_matter: FrontMatter | None = None
    body: str

    model_config = {"frozen": True}

    @property
    def page_id(self) -> str | None:
        if isinstance(self.front_matter, PageFrontMatter):
            return self.front_matter.page_id
        return None


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class FileStatus(BaseModel):
    path: str
    status: SyncStatus
    title: str | None = None
    page_id: str | None = None

    model_config = {"frozen": True}


class PullResult(BaseModel):
    """Outcome of a pull.

    Attributes:
        pulled: Pages written to disk.
        skipped: Pages left alone because they were already up to date.
        commits: Commits created (history replay plus the final commit).
        errors: One message per page that failed.
    """

    pulled: int = 0
    skipped: int = 0
    commits: int = 0
    errors: list[str] = []

    model_config = {"frozen": True}

    def summary(self) -> str:
        return (
            f"Pulled {self.pulled} page(s), skipped {self.skipped}, "
            f"{self.commits} commit(s), {len(self.errors)} error(s)"
        )


class PushResult(BaseModel):
    """Outcome of a push.

    Attributes:
        pushed: Existing pages updated remotely.
        created: Pages created remotely.
        deleted: Pages deleted remotely.
        skipped: Pages with nothing to push or skipped due to a conflict.
        errors: One message per page that failed.
        dry_run: Whether the counts describe planned (not performed) work.
    """

    pushed: int = 0
    created: int = 0
    deleted: int = 0
    skipped: int = 0
    errors: list[str] = []
    dry_run: bool = False

    model_config = {"frozen": True}

    def summary(self) -> str:
        prefix = "Would push" if self.dry_run else "Pushed"
        return (
            f"{prefix} {self.pushed} page(s), created {self.created}, "
            f"deleted {self.deleted}, skipped {self.skipped}, "
            f"{len(self.errors)} error(s)"
        )


class StatusResult(BaseModel):
    synced: int = 0
    local_modified: int = 0
    remote_modified: int = 0
    conflicts: int = 0
    local_only: int = 0
    remote_only: int = 0
    files: list[FileStatus] = []
    errors: list[str] = []

    model_config = {"frozen": True}

    @classmethod
    def from_files(
        cls, files: list[FileStatus], errors: list[str] | None = None
    ) -> StatusResult:
        """Aggregate per-file statuses into counts."""

        def count(status: SyncStatus) -> int:
            return sum(1 for f in files if f.status == status)

        return cls(
            synced=count(SyncStatus.SYNCED),
            local_modified=count(SyncStatus.LOCAL_MODIFIED),
            remote_modified=count(SyncStatus.REMOTE_MODIFIED),
            conflicts=count(SyncStatus.CONFLICT),
            local_only=count(SyncStatus.LOCAL_ONLY),
            remote_only=count(SyncStatus.REMOTE_ONLY),
            files=files,
            errors=errors or [],
        )
