"""Exception taxonomy for wiki_mirror.

Two families matter to callers:

- **Page-local** errors (``ParseError``, ``ConversionError``,
  ``ConflictError``, ``ApiError``, ``FileSystemError``,
  ``FrontMatterError``) are caught by the sync engine and accumulated in
  the result's ``errors`` list; the batch carries on.
- **Whole-operation** errors (the ``Git*`` family) abort before any
  remote mutation because commit ordering depends on a healthy working
  tree.
"""

from __future__ import annotations


class WikiMirrorError(Exception):
    """Base class for every error raised by wiki_mirror."""


class ConfigError(WikiMirrorError):
    """Missing or invalid configuration."""


# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------


class ParseError(WikiMirrorError):
    """Source markup could not be parsed into a parse tree.

    Attributes:
        source: Format that failed to parse (``"html"`` or ``"markdown"``).
        detail: Parser message.
    """

    def __init__(self, source: str, detail: str) -> None:
        self.source = source
        self.detail = detail
        super().__init__(f"Failed to parse {source}: {detail}")


class ConversionError(WikiMirrorError):
    """Mapping between the AST and a parse tree failed for a node.

    Attributes:
        direction: Pipeline name, e.g. ``"remote_to_document"``.
        node_kind: Kind of node being converted, when known.
    """

    def __init__(
        self,
        direction: str,
        detail: str,
        node_kind: str | None = None,
    ) -> None:
        self.direction = direction
        self.node_kind = node_kind
        where = f" ({node_kind})" if node_kind else ""
        super().__init__(f"Conversion {direction}{where} failed: {detail}")


# ---------------------------------------------------------------------------
# Sync
# ---------------------------------------------------------------------------


class ConflictError(WikiMirrorError):
    """A page cannot be synced without losing a change on one side."""

    def __init__(
        self,
        page_id: str,
        path: str,
        detail: str = "local and remote both changed since the last sync",
    ) -> None:
        self.page_id = page_id
        self.path = path
        self.detail = detail
        super().__init__(f"Conflict on page {page_id} ({path}): {detail}")


class FileSystemError(WikiMirrorError):
    """Local read/write failure."""

    def __init__(self, operation: str, path: str, detail: str) -> None:
        self.operation = operation
        self.path = path
        super().__init__(f"Failed to {operation} {path}: {detail}")


class FrontMatterError(WikiMirrorError):
    """A local file has a malformed front-matter header."""

    def __init__(self, path: str, detail: str) -> None:
        self.path = path
        super().__init__(f"Invalid front matter in {path}: {detail}")


# ---------------------------------------------------------------------------
# Remote API
# ---------------------------------------------------------------------------


class ApiError(WikiMirrorError):
    """Remote wiki call failed (after the client's own retries)."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        endpoint: str = "",
        page_id: str | None = None,
    ) -> None:
        self.status = status
        self.endpoint = endpoint
        self.page_id = page_id
        super().__init__(message)


class RateLimitError(ApiError):
    """Remote wiki kept answering 429 until retries ran out."""

    def __init__(
        self, endpoint: str = "", retry_after: float | None = None
    ) -> None:
        self.retry_after = retry_after
        super().__init__(
            f"Rate limited by {endpoint or 'remote wiki'}",
            status=429,
            endpoint=endpoint,
        )


class PageNotFoundError(ApiError):
    """The requested page does not exist remotely."""

    def __init__(self, page_id: str, endpoint: str = "") -> None:
        super().__init__(
            f"Page {page_id} not found",
            status=404,
            endpoint=endpoint,
            page_id=page_id,
        )


# ---------------------------------------------------------------------------
# Version control
# ---------------------------------------------------------------------------


class GitError(WikiMirrorError):
    """A git command failed."""

    def __init__(
        self,
        message: str,
        command: str = "",
        exit_code: int | None = None,
    ) -> None:
        self.command = command
        self.exit_code = exit_code
        super().__init__(message)


class GitNotInstalledError(GitError):
    def __init__(self) -> None:
        super().__init__("git executable not found on PATH")


class GitNotInitializedError(GitError):
    def __init__(self, path: str = "") -> None:
        super().__init__(f"Not a git repository: {path or '.'}")


class GitNoChangesError(GitError):
    def __init__(self) -> None:
        super().__init__("Nothing to commit")


class GitMergeConflictError(GitError):
    def __init__(self, files: list[str]) -> None:
        self.files = list(files)
        super().__init__(
            "Unresolved merge conflicts in: " + ", ".join(self.files)
        )


class UncommittedChangesError(GitError):
    """Push refused because the working tree is dirty."""

    def __init__(self, paths: list[str]) -> None:
        self.paths = list(paths)
        super().__init__(
            "Working tree has uncommitted changes; commit them before "
            "pushing: " + ", ".join(self.paths)
        )
