"""Filesystem implementation of the local page tree.

Layout under the sync root::

    handbook/index.md          # page "Handbook" (has children)
    handbook/onboarding.md     # child page without children
    handbook/tools/index.md    # child page with children of its own

Hidden files and directories (``.git``, ``.wiki_mirror``) are ignored,
as is every file that does not end in ``.md``.
"""

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath

from wiki_mirror import frontmatter
from wiki_mirror.errors import WikiMirrorError
from wiki_mirror.file_handler import (
    delete_file,
    read_file_with_encoding,
    write_file_atomic,
)
from wiki_mirror.frontmatter import FrontMatter, PageFrontMatter
from wiki_mirror.sync.models import LocalPage, LocalTreeNode

logger = logging.getLogger(__name__)

INDEX_FILE = "index.md"


def title_from_path(path: str) -> str:
    """Derive a display title from a page file path.

    >>> title_from_path("guides/getting-started.md")
    'getting started'
    >>> title_from_path("guides/index.md")
    'guides'
    """
    p = PurePosixPath(path)
    stem = p.parent.name if p.name == INDEX_FILE else p.stem
    return stem.replace("-", " ").strip() or "untitled"


class FileSystemTree:
    """Reads and writes page files relative to *root*."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def build(self, root: Path | None = None) -> list[LocalTreeNode]:
        """Return the page files under *root* as a tree.

        A directory's ``index.md`` becomes the parent of the directory's
        other pages.  A directory without ``index.md`` contributes its
        pages to the enclosing level.
        """
        base = root if root is not None else self.root
        if not base.is_dir():
            return []
        return self._scan(base, base)

    def _scan(self, base: Path, directory: Path) -> list[LocalTreeNode]:
        nodes: list[LocalTreeNode] = []
        for entry in sorted(directory.iterdir(), key=lambda p: p.name):
            if entry.name.startswith("."):
                continue
            if entry.is_dir():
                index = entry / INDEX_FILE
                children = self._scan(base, entry)
                if index.is_file():
                    nodes.append(self._node(base, index, children))
                else:
                    nodes.extend(children)
            elif (
                entry.suffix == ".md"
                and entry.name != INDEX_FILE
                and entry.is_file()
            ):
                nodes.append(self._node(base, entry, []))
        # A stray index.md directly under the root has no directory page
        root_index = directory / INDEX_FILE
        if directory == base and root_index.is_file():
            nodes.insert(0, self._node(base, root_index, []))
        return nodes

    def _node(
        self, base: Path, path: Path, children: list[LocalTreeNode]
    ) -> LocalTreeNode:
        rel = path.relative_to(base).as_posix()
        page_id: str | None = None
        title = title_from_path(rel)
        try:
            content, _ = read_file_with_encoding(path)
            fm, _ = frontmatter.parse(content, rel)
        except WikiMirrorError as exc:
            # Reported again with context when the page itself is read
            logger.warning("Cannot read header of %s: %s", rel, exc)
            fm = None
        if fm is not None:
            title = fm.title
            if isinstance(fm, PageFrontMatter):
                page_id = fm.page_id
        return LocalTreeNode(
            page_id=page_id, path=rel, title=title, children=children
        )

    def read(self, path: str) -> LocalPage:
        """Read one page file.

        Raises:
            FileSystemError: The file cannot be read.
            FrontMatterError: The header is malformed.
        """
        content, _ = read_file_with_encoding(self.root / path)
        fm, body = frontmatter.parse(content, path)
        return LocalPage(path=path, front_matter=fm, body=body)

    def write(self, path: str, front_matter: FrontMatter, body: str) -> None:
        write_file_atomic(
            self.root / path, frontmatter.serialize(front_matter, body)
        )
        logger.debug("Wrote %s", path)

    def delete(self, path: str) -> None:
        delete_file(self.root / path, stop_at=self.root)
        logger.debug("Deleted %s", path)
