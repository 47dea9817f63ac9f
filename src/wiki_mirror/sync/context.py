"""Per-invocation view of the local tree.

A ``SyncContext`` is built once at the start of ``pull``, ``push`` or
``status`` and dropped when the call returns; nothing is cached between
calls.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from wiki_mirror.errors import WikiMirrorError
from wiki_mirror.sync.models import LocalPage, LocalTreeNode
from wiki_mirror.sync.protocols import LocalFileTree

logger = logging.getLogger(__name__)


@dataclass
class SyncContext:
    """Local pages indexed by path and by remote page id.

    Attributes:
        root: Sync root directory.
        root_page_id: Remote id of the mirrored root page.
        pages: Readable pages by relative path, in tree order.
        titles: Title of every page file, readable or not.
        unreadable: Paths whose file or header could not be read.
        errors: One message per unreadable file.
    """

    root: Path
    root_page_id: str
    pages: dict[str, LocalPage] = field(default_factory=dict)
    titles: dict[str, str] = field(default_factory=dict)
    unreadable: set[str] = field(default_factory=set)
    errors: list[str] = field(default_factory=list)
    _paths_by_id: dict[str, str] = field(default_factory=dict)

    @classmethod
    def load(
        cls, tree: LocalFileTree, root: Path, root_page_id: str
    ) -> SyncContext:
        """Read every page file under *root* through *tree*."""
        ctx = cls(root=root, root_page_id=root_page_id)
        for node in _flatten(tree.build(root)):
            ctx.titles[node.path] = node.title
            try:
                page = tree.read(node.path)
            except (WikiMirrorError, OSError) as exc:
                logger.error("Cannot read %s: %s", node.path, exc)
                ctx.unreadable.add(node.path)
                ctx.errors.append(f"{node.path}: {exc}")
                continue
            ctx.pages[node.path] = page
            if page.page_id is not None:
                ctx.link(page.page_id, node.path)
        return ctx

    def link(self, page_id: str, path: str) -> None:
        """Record that *path* holds remote page *page_id*."""
        existing = self._paths_by_id.get(page_id)
        if existing is not None and existing != path:
            logger.warning(
                "Page %s is claimed by both %s and %s; using %s",
                page_id,
                existing,
                path,
                existing,
            )
            return
        self._paths_by_id[page_id] = path

    def path_for(self, page_id: str) -> str | None:
        return self._paths_by_id.get(page_id)

    def page_for(self, page_id: str) -> LocalPage | None:
        path = self._paths_by_id.get(page_id)
        return self.pages.get(path) if path is not None else None

    def known_ids(self) -> set[str]:
        return set(self._paths_by_id)

    def title_for(self, path: str) -> str:
        page = self.pages.get(path)
        if page is not None and page.front_matter is not None:
            return page.front_matter.title
        return self.titles.get(path, PurePosixPath(path).stem)

    def parent_id_for(self, path: str) -> str | None:
        """Resolve the remote parent of the page at *path*.

        Uses the header's ``parentId`` if set, else the id of the nearest
        ancestor ``index.md``, else the root page.  Returns ``None`` only
        when the nearest ancestor page exists locally but has not been
        created remotely yet.
        """
        page = self.pages.get(path)
        if page is not None and page.front_matter is not None:
            if page.front_matter.parent_id:
                return page.front_matter.parent_id

        p = PurePosixPath(path)
        directory = p.parent.parent if p.name == "index.md" else p.parent
        while str(directory) not in ("", "."):
            index = (directory / "index.md").as_posix()
            if index in self.pages or index in self.unreadable:
                index_page = self.pages.get(index)
                if index_page is None:
                    return None
                return index_page.page_id or self._created_id(index)
            directory = directory.parent
        return self.root_page_id

    def _created_id(self, path: str) -> str | None:
        for page_id, linked in self._paths_by_id.items():
            if linked == path:
                return page_id
        return None


def _flatten(nodes: list[LocalTreeNode]) -> list[LocalTreeNode]:
    """Pre-order: a directory page comes before its children."""
    out: list[LocalTreeNode] = []
    for node in nodes:
        out.append(node)
        out.extend(_flatten(node.children))
    return out
