"""Sync engine: pull, push and status between the wiki and the local tree.

The ``SyncEngine`` ties together the remote client, the local file tree
and version control.  For every page it:

1. Hashes the local body, the recorded baseline and the remote body.
2. Classifies the page with ``classify``.
3. Writes, creates, updates or deletes as the operation requires.

Error handling is per-page: a single page failure is logged, recorded in
the result's ``errors`` and does not abort the run.  Version-control
preconditions of ``push`` are checked up front and raise.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from wiki_mirror.converters import (
    canonical_document,
    document_to_markdown,
    document_to_remote_markup,
    markdown_to_document,
    remote_markup_to_document,
    slugify,
)
from wiki_mirror.errors import (
    ApiError,
    ConflictError,
    GitError,
    GitMergeConflictError,
    GitNoChangesError,
    GitNotInitializedError,
    PageNotFoundError,
    UncommittedChangesError,
    WikiMirrorError,
)
from wiki_mirror.frontmatter import PageFrontMatter
from wiki_mirror.hashing import content_hash
from wiki_mirror.sync.context import SyncContext
from wiki_mirror.sync.models import (
    FileStatus,
    LocalPage,
    PageVersion,
    PullResult,
    PushResult,
    RemotePage,
    StatusResult,
    SyncStatus,
)
from wiki_mirror.sync.protocols import (
    LocalFileTree,
    RemoteWikiClient,
    VersionControl,
)
from wiki_mirror.sync.status import classify

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]

# Branch created by ``clone`` at the state first pulled from the wiki
REMOTE_BRANCH = "wiki-remote"


@dataclass(frozen=True)
class _RemoteNode:
    """A page found while walking the remote tree."""

    id: str
    title: str
    path: str
    parent_id: str | None
    position: int | None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _plural(n: int) -> str:
    return f"{n} page" if n == 1 else f"{n} pages"


class SyncEngine:
    """Mirror the page tree below *root_page_id* into *root*.

    Args:
        client: Remote wiki access.
        vcs: Version control over the sync root.
        tree: Local page files.
        root: Absolute path of the sync root.
        root_page_id: Remote id of the top page to mirror.
        max_parallel_fetches: Worker threads used to fetch pages during
            a pull.  ``1`` fetches sequentially.
    """

    def __init__(
        self,
        client: RemoteWikiClient,
        vcs: VersionControl,
        tree: LocalFileTree,
        root: Path,
        root_page_id: str,
        max_parallel_fetches: int = 1,
    ) -> None:
        self.client = client
        self.vcs = vcs
        self.tree = tree
        self.root = root
        self.root_page_id = root_page_id
        self.max_parallel_fetches = max(1, max_parallel_fetches)

    def _context(self) -> SyncContext:
        return SyncContext.load(self.tree, self.root, self.root_page_id)

    # ------------------------------------------------------------------
    # Pull
    # ------------------------------------------------------------------

    def pull(
        self,
        force: bool = False,
        replay_history: bool = False,
        on_progress: ProgressCallback | None = None,
    ) -> PullResult:
        """Write every remote page below the root to the local tree.

        Args:
            force: Overwrite pages even when they have local changes.
            replay_history: Commit each remote version separately, with
                its original author and timestamp.  Needs an initialised
                repository.
            on_progress: Called as ``(current, total, message)`` after
                each page and each replayed version.
        """
        ctx = self._context()
        errors = list(ctx.errors)
        git_ready = self.vcs.is_initialized()
        if replay_history and not git_ready:
            logger.warning(
                "History replay needs an initialised repository; "
                "pulling current versions only"
            )
            replay_history = False

        nodes, root_page = self._walk_remote(errors)
        fetched = self._fetch_pages(
            [n.id for n in nodes if n.id != self.root_page_id]
        )
        if root_page is not None:
            fetched[root_page.id] = root_page

        pulled = skipped = commits = 0
        uncommitted = 0
        total = len(nodes)
        for current, node in enumerate(nodes, start=1):
            remote = fetched.get(node.id)
            if isinstance(remote, WikiMirrorError):
                logger.error("Failed to fetch %s: %s", node.path, remote)
                errors.append(f"{node.path}: {remote}")
            elif remote is not None:
                try:
                    written, made, dirty = self._pull_page(
                        ctx, node, remote, force, replay_history, on_progress
                    )
                except (WikiMirrorError, OSError) as exc:
                    logger.error("Failed to pull %s: %s", node.path, exc)
                    errors.append(f"{node.path}: {exc}")
                else:
                    if written:
                        pulled += 1
                        commits += made
                        uncommitted += int(dirty)
                    else:
                        skipped += 1
            if on_progress is not None:
                on_progress(current, total, node.title)

        if git_ready and uncommitted > 0:
            if self._commit(f"Pull from wiki ({_plural(pulled)})"):
                commits += 1

        result = PullResult(
            pulled=pulled, skipped=skipped, commits=commits, errors=errors
        )
        logger.info(result.summary())
        return result

    def clone(self, on_progress: ProgressCallback | None = None) -> PullResult:
        """Create a repository in the sync root and pull with full history.

        A ``REMOTE_BRANCH`` branch is left at the cloned state.

        Raises:
            GitNotInstalledError: git is not available.
            GitError: The sync root is already inside a repository.
        """
        self.vcs.validate()
        if self.vcs.is_initialized():
            raise GitError(
                f"{self.root} is already a git repository; "
                "use 'wiki-mirror pull' to update it",
                command="git init",
            )
        self.vcs.init()
        result = self.pull(force=True, replay_history=True, on_progress=on_progress)
        if result.commits:
            self.vcs.create_branch(REMOTE_BRANCH)
        return result

    def _pull_page(
        self,
        ctx: SyncContext,
        node: _RemoteNode,
        remote: RemotePage,
        force: bool,
        replay_history: bool,
        on_progress: ProgressCallback | None,
    ) -> tuple[bool, int, bool]:
        """Pull one page.

        Returns ``(written, commits, dirty)``.  ``written`` is ``False``
        when the page was already up to date; ``dirty`` is ``True`` when
        the page left changes that no replay commit covers.

        Raises:
            ConflictError: The local file has unpushed changes and
                *force* is not set.
        """
        remote_hash = content_hash(canonical_document(remote.raw_markup))
        local = ctx.page_for(remote.id)
        occupant = ctx.pages.get(node.path)

        if not force:
            if node.path in ctx.unreadable:
                raise ConflictError(
                    remote.id, node.path, "local file is unreadable"
                )
            if occupant is not None and occupant.page_id != remote.id:
                raise ConflictError(
                    remote.id, node.path, "path is taken by another page"
                )
        if local is not None and isinstance(local.front_matter, PageFrontMatter):
            fm = local.front_matter
            local_hash = content_hash(markdown_to_document(local.body))
            if (
                local_hash == fm.content_hash == remote_hash
                and local.path == node.path
                and fm.title == remote.title
            ):
                logger.debug("Up to date: %s", node.path)
                return False, 0, False
            if not force:
                status = classify(local_hash, fm.content_hash, remote_hash)
                if status == SyncStatus.LOCAL_MODIFIED:
                    raise ConflictError(
                        remote.id,
                        local.path,
                        "local changes not pushed; push first or use force",
                    )
                if status == SyncStatus.CONFLICT:
                    raise ConflictError(remote.id, local.path)

        commits = 0
        dirty = True
        if replay_history:
            local_version = 0
            if local is not None and isinstance(
                local.front_matter, PageFrontMatter
            ):
                local_version = local.front_matter.version
            commits, last_version = self._replay_history(
                node, remote, local_version, on_progress
            )
            dirty = last_version != remote.version

        if dirty:
            doc = remote_markup_to_document(remote.raw_markup)
            fm = PageFrontMatter(
                page_id=remote.id,
                version=remote.version,
                title=remote.title,
                updated=remote.updated or _now(),
                parent_id=node.parent_id,
                position=node.position,
                content_hash=remote_hash,
                version_message=remote.message,
                author_name=remote.author,
            )
            self.tree.write(node.path, fm, document_to_markdown(doc))

        if local is not None and local.path != node.path:
            logger.info("Moved %s to %s", local.path, node.path)
            self.tree.delete(local.path)
            dirty = True
        ctx.link(remote.id, node.path)
        logger.info("Pulled %s (v%d)", node.path, remote.version)
        return True, commits, dirty

    def _replay_history(
        self,
        node: _RemoteNode,
        remote: RemotePage,
        local_version: int,
        on_progress: ProgressCallback | None,
    ) -> tuple[int, int | None]:
        """Write and commit each remote version newer than *local_version*.

        Returns ``(commits, last_written_version)``.  Falls back to a plain
        pull (``(0, None)``) when the history is unavailable.
        """
        try:
            history = self.client.get_version_history(remote.id)
        except ApiError as exc:
            logger.warning(
                "History of %s unavailable (%s); pulling current version",
                node.path,
                exc,
            )
            return 0, None

        versions = sorted(
            (v for v in history if v.version > local_version),
            key=lambda v: v.version,
        )
        commits = 0
        last: int | None = None
        for index, version in enumerate(versions, start=1):
            self._write_version(node, remote, version)
            last = version.version
            message = version.message or (
                f"Update {remote.title} (v{version.version})"
            )
            if self._commit(
                message,
                author=_author(version),
                date=version.timestamp,
            ):
                commits += 1
            if on_progress is not None:
                on_progress(
                    index, len(versions), f"{remote.title} v{version.version}"
                )
        return commits, last

    def _write_version(
        self, node: _RemoteNode, remote: RemotePage, version: PageVersion
    ) -> None:
        doc = remote_markup_to_document(version.raw_markup)
        fm = PageFrontMatter(
            page_id=remote.id,
            version=version.version,
            title=remote.title,
            updated=version.timestamp,
            parent_id=node.parent_id,
            position=node.position,
            content_hash=content_hash(canonical_document(version.raw_markup)),
            version_message=version.message,
            author_name=version.author,
            author_email=version.email,
        )
        self.tree.write(node.path, fm, document_to_markdown(doc))

    # ------------------------------------------------------------------
    # Push
    # ------------------------------------------------------------------

    def push(self, dry_run: bool = False, message: str | None = None) -> PushResult:
        """Send local changes to the wiki.

        Creates pages for files without a ``pageId`` (or whose page is
        gone remotely), updates locally modified pages and deletes remote
        pages whose previously pulled file was removed.  Pages changed
        on both sides are skipped and reported as errors.

        Args:
            dry_run: Count what would change without calling any
                mutating remote operation or writing any file.
            message: Revision comment and commit message.

        Raises:
            GitNotInstalledError: git is not available.
            GitNotInitializedError: The sync root is not a repository.
            GitMergeConflictError: The working tree has unmerged paths.
            UncommittedChangesError: The working tree has changes.
        """
        self._check_push_preconditions()
        ctx = self._context()
        errors = list(ctx.errors)
        pushed = created = deleted = skipped = 0

        for path, page in list(ctx.pages.items()):
            try:
                action = self._push_page(ctx, page, dry_run, message)
            except ConflictError as exc:
                logger.warning("Skipping %s: %s", path, exc)
                errors.append(str(exc))
                skipped += 1
                continue
            except (WikiMirrorError, OSError) as exc:
                logger.error("Failed to push %s: %s", path, exc)
                errors.append(f"{path}: {exc}")
                continue
            if action == "created":
                created += 1
            elif action == "updated":
                pushed += 1
            else:
                skipped += 1

        nodes, _ = self._walk_remote(errors)
        known = ctx.known_ids()
        # Children before parents
        for node in reversed(nodes):
            if node.id in known or node.id == self.root_page_id:
                continue
            try:
                if not self._was_pulled(node.path):
                    continue
                if not dry_run:
                    self.client.delete_page(node.id)
                logger.info("Deleted remote page %s (%s)", node.id, node.path)
                deleted += 1
            except (WikiMirrorError, OSError) as exc:
                logger.error("Failed to delete %s: %s", node.path, exc)
                errors.append(f"{node.path}: {exc}")

        changed = pushed + created + deleted
        if not dry_run and changed > 0:
            self._commit(message or f"Push to wiki ({_plural(changed)})")

        result = PushResult(
            pushed=pushed,
            created=created,
            deleted=deleted,
            skipped=skipped,
            errors=errors,
            dry_run=dry_run,
        )
        logger.info(result.summary())
        return result

    def _check_push_preconditions(self) -> None:
        self.vcs.validate()
        if not self.vcs.is_initialized():
            raise GitNotInitializedError(str(self.root))
        vcs_status = self.vcs.status()
        if vcs_status.has_conflicts:
            raise GitMergeConflictError(
                [e.path for e in vcs_status.entries if e.status == "U"]
            )
        if vcs_status.has_changes:
            raise UncommittedChangesError([e.path for e in vcs_status.entries])

    def _push_page(
        self,
        ctx: SyncContext,
        page: LocalPage,
        dry_run: bool,
        message: str | None,
    ) -> str:
        """Push one page and return ``"created"``, ``"updated"`` or
        ``"skipped"``."""
        doc = markdown_to_document(page.body)
        local_hash = content_hash(doc)
        fm = page.front_matter

        if not isinstance(fm, PageFrontMatter):
            return self._create_page(ctx, page, local_hash, dry_run)

        try:
            remote = self.client.get_page(fm.page_id)
        except PageNotFoundError:
            logger.info(
                "Page %s no longer exists remotely; recreating %s",
                fm.page_id,
                page.path,
            )
            return self._create_page(ctx, page, local_hash, dry_run)

        remote_hash = content_hash(canonical_document(remote.raw_markup))
        status = classify(local_hash, fm.content_hash, remote_hash)
        if status == SyncStatus.CONFLICT:
            raise ConflictError(fm.page_id, page.path)
        if status != SyncStatus.LOCAL_MODIFIED:
            return "skipped"

        if dry_run:
            logger.info("Would update %s (%s)", fm.page_id, page.path)
            return "updated"

        version = self.client.update_page(
            fm.page_id,
            document_to_remote_markup(doc),
            comment=message,
            title=fm.title if fm.title != remote.title else None,
        )
        self.tree.write(
            page.path,
            fm.model_copy(
                update={
                    "version": version,
                    "updated": _now(),
                    "content_hash": local_hash,
                    "version_message": message,
                }
            ),
            page.body,
        )
        logger.info("Updated %s to v%d (%s)", fm.page_id, version, page.path)
        return "updated"

    def _create_page(
        self,
        ctx: SyncContext,
        page: LocalPage,
        local_hash: str,
        dry_run: bool,
    ) -> str:
        title = ctx.title_for(page.path)
        if dry_run:
            logger.info("Would create %r (%s)", title, page.path)
            return "created"

        parent_id = ctx.parent_id_for(page.path)
        if parent_id is None:
            raise WikiMirrorError(
                f"Parent page of {page.path} has not been created remotely"
            )
        markup = document_to_remote_markup(markdown_to_document(page.body))
        page_id = self.client.create_page(parent_id, title, markup)
        self.tree.write(
            page.path,
            PageFrontMatter(
                page_id=page_id,
                version=1,
                title=title,
                updated=_now(),
                parent_id=parent_id,
                content_hash=local_hash,
            ),
            page.body,
        )
        ctx.link(page_id, page.path)
        logger.info("Created %s as page %s", page.path, page_id)
        return "created"

    def _was_pulled(self, path: str) -> bool:
        """True if *path* was committed before, i.e. the file was deleted
        locally rather than never pulled."""
        return bool(self.vcs.log(n=1, path=path))

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def status(self) -> StatusResult:
        """Classify every local file and every remote page.  Read-only."""
        ctx = self._context()
        errors = list(ctx.errors)
        files: list[FileStatus] = []

        for path, page in ctx.pages.items():
            try:
                files.append(self._file_status(ctx, page))
            except (WikiMirrorError, OSError) as exc:
                logger.error("Failed to check %s: %s", path, exc)
                errors.append(f"{path}: {exc}")

        nodes, _ = self._walk_remote(errors)
        known = ctx.known_ids()
        for node in nodes:
            if node.id not in known:
                files.append(
                    FileStatus(
                        path=node.path,
                        status=SyncStatus.REMOTE_ONLY,
                        title=node.title,
                        page_id=node.id,
                    )
                )
        return StatusResult.from_files(files, errors)

    def _file_status(self, ctx: SyncContext, page: LocalPage) -> FileStatus:
        fm = page.front_matter
        title = ctx.title_for(page.path)
        if not isinstance(fm, PageFrontMatter):
            return FileStatus(
                path=page.path, status=SyncStatus.LOCAL_ONLY, title=title
            )
        try:
            remote = self.client.get_page(fm.page_id)
            remote_hash: str | None = content_hash(
                canonical_document(remote.raw_markup)
            )
        except PageNotFoundError:
            remote_hash = None
        local_hash = content_hash(markdown_to_document(page.body))
        return FileStatus(
            path=page.path,
            status=classify(local_hash, fm.content_hash, remote_hash),
            title=title,
            page_id=fm.page_id,
        )

    # ------------------------------------------------------------------
    # Remote tree
    # ------------------------------------------------------------------

    def _walk_remote(
        self, errors: list[str]
    ) -> tuple[list[_RemoteNode], RemotePage | None]:
        """List the remote tree depth-first, parents before children.

        Failures are appended to *errors*; a page whose children cannot
        be listed is left out together with its subtree.
        """
        try:
            root = self.client.get_page(self.root_page_id)
        except WikiMirrorError as exc:
            logger.error("Failed to fetch root page %s: %s", self.root_page_id, exc)
            errors.append(f"root page {self.root_page_id}: {exc}")
            return [], None
        nodes: list[_RemoteNode] = []
        self._walk(
            root.id,
            root.title,
            root.parent_id,
            root.position,
            slugify(root.title),
            nodes,
            errors,
        )
        return nodes, root

    def _walk(
        self,
        page_id: str,
        title: str,
        parent_id: str | None,
        position: int | None,
        slug_path: str,
        out: list[_RemoteNode],
        errors: list[str],
    ) -> None:
        try:
            children = self.client.get_all_children(page_id)
        except WikiMirrorError as exc:
            logger.error("Failed to list children of %s: %s", page_id, exc)
            errors.append(f"children of {title} ({page_id}): {exc}")
            return
        if children:
            path = f"{slug_path}/index.md"
        else:
            path = f"{slug_path}.md"
        out.append(
            _RemoteNode(
                id=page_id,
                title=title,
                path=path,
                parent_id=parent_id,
                position=position,
            )
        )
        used: set[str] = set()
        for child in children:
            slug = slugify(child.title)
            if slug in used:
                slug = f"{slug}-{child.id}"
            used.add(slug)
            self._walk(
                child.id,
                child.title,
                page_id,
                child.position,
                f"{slug_path}/{slug}",
                out,
                errors,
            )

    def _fetch_pages(
        self, page_ids: list[str]
    ) -> dict[str, RemotePage | WikiMirrorError]:
        """Fetch pages, on a bounded thread pool if configured.

        Only reads happen here; results are consumed in tree order.
        """
        if self.max_parallel_fetches > 1 and len(page_ids) > 1:
            with ThreadPoolExecutor(
                max_workers=self.max_parallel_fetches
            ) as pool:
                results = list(pool.map(self._fetch_one, page_ids))
        else:
            results = [self._fetch_one(page_id) for page_id in page_ids]
        return dict(results)

    def _fetch_one(
        self, page_id: str
    ) -> tuple[str, RemotePage | WikiMirrorError]:
        try:
            return page_id, self.client.get_page(page_id)
        except WikiMirrorError as exc:
            return page_id, exc

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _commit(
        self,
        message: str,
        author: str | None = None,
        date: datetime | None = None,
    ) -> bool:
        """Stage everything and commit; ``False`` if nothing changed."""
        self.vcs.add_all()
        try:
            commit_hash = self.vcs.commit(message, author=author, date=date)
        except GitNoChangesError:
            logger.debug("Nothing to commit for %r", message)
            return False
        logger.info("Committed %s: %s", commit_hash[:8], message)
        return True


def _author(version: PageVersion) -> str | None:
    if not version.author:
        return None
    return f"{version.author} <{version.email or ''}>"
