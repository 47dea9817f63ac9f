"""Collaborator protocols consumed by the sync engine.

The engine only depends on these structural interfaces.  The concrete
implementations shipped with the package are
``wiki_mirror.remote.client.ConfluenceClient``,
``wiki_mirror.vcs.git.GitVersionControl`` and
``wiki_mirror.local_tree.FileSystemTree``; tests substitute in-memory
fakes.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Protocol

from wiki_mirror.frontmatter import FrontMatter
from wiki_mirror.sync.models import (
    LocalPage,
    LocalTreeNode,
    PageSummary,
    PageVersion,
    RemotePage,
    VcsLogEntry,
    VcsStatus,
)


class RemoteWikiClient(Protocol):
    """Remote wiki access.

    Every method raises ``ApiError`` (or its ``RateLimitError`` /
    ``PageNotFoundError`` subclasses) once the client's own retries are
    exhausted.
    """

    def get_page(self, page_id: str) -> RemotePage: ...  # pragma: no cover

    def get_all_children(
        self, page_id: str
    ) -> list[PageSummary]: ...  # pragma: no cover

    def get_version_history(
        self, page_id: str
    ) -> list[PageVersion]: ...  # pragma: no cover

    def create_page(
        self, parent_id: str, title: str, markup: str
    ) -> str:
        """Create a page and return its id."""
        ...  # pragma: no cover

    def update_page(
        self,
        page_id: str,
        markup: str,
        comment: str | None = None,
        title: str | None = None,
    ) -> int:
        """Replace a page's body and return the new version number."""
        ...  # pragma: no cover

    def delete_page(self, page_id: str) -> None: ...  # pragma: no cover


class VersionControl(Protocol):
    """Raw version-control operations on the sync root."""

    def status(self) -> VcsStatus: ...  # pragma: no cover

    def commit(
        self,
        message: str,
        author: str | None = None,
        date: datetime | None = None,
    ) -> str:
        """Commit staged changes and return the commit hash.

        ``author`` uses ``"Name <email>"`` form.  Raises
        ``GitNoChangesError`` when nothing is staged.
        """
        ...  # pragma: no cover

    def add_all(self) -> None: ...  # pragma: no cover

    def log(
        self, n: int | None = None, path: str | None = None
    ) -> list[VcsLogEntry]: ...  # pragma: no cover

    def diff(
        self, staged: bool = False, path: str | None = None
    ) -> str: ...  # pragma: no cover

    def create_branch(self, name: str) -> None: ...  # pragma: no cover

    def is_initialized(self) -> bool: ...  # pragma: no cover

    def init(self) -> None: ...  # pragma: no cover

    def validate(self) -> None:
        """Raise ``GitNotInstalledError`` if git is unavailable."""
        ...  # pragma: no cover


class LocalFileTree(Protocol):
    """Enumerates and edits page files under the sync root."""

    def build(self, root: Path) -> list[LocalTreeNode]: ...  # pragma: no cover

    def read(self, path: str) -> LocalPage: ...  # pragma: no cover

    def write(
        self, path: str, front_matter: FrontMatter, body: str
    ) -> None: ...  # pragma: no cover

    def delete(self, path: str) -> None: ...  # pragma: no cover
