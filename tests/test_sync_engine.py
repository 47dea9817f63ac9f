"""Tests for the core sync engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from wiki_mirror.errors import (
    ApiError,
    GitError,
    GitMergeConflictError,
    GitNoChangesError,
    GitNotInitializedError,
    PageNotFoundError,
    UncommittedChangesError,
)
from wiki_mirror.frontmatter import NewPageFrontMatter, PageFrontMatter, parse, serialize
from wiki_mirror.local_tree import FileSystemTree
from wiki_mirror.sync.engine import REMOTE_BRANCH, SyncEngine
from wiki_mirror.sync.models import (
    PageSummary,
    PageVersion,
    RemotePage,
    SyncStatus,
    VcsLogEntry,
    VcsStatus,
    VcsStatusEntry,
)

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeWikiClient:
    """Minimal wiki client replacement for testing.

    Simulates the remote page tree with in-memory dicts.
    """

    def __init__(self) -> None:
        self.pages: Dict[str, RemotePage] = {}
        self.children: Dict[str, List[str]] = {}
        self.history: Dict[str, List[PageVersion]] = {}
        self.failing: set[str] = set()
        self.created: list[tuple] = []
        self.updated: list[tuple] = []
        self.deleted: list[str] = []
        self._next_id = 1000

    def add_page(
        self,
        page_id: str,
        title: str,
        markup: str,
        parent_id: Optional[str] = None,
        version: int = 1,
    ) -> None:
        self.pages[page_id] = RemotePage(
            id=page_id,
            title=title,
            raw_markup=markup,
            version=version,
            parent_id=parent_id,
            updated=T0,
            author="Alice",
        )
        self.children.setdefault(page_id, [])
        if parent_id is not None:
            self.children.setdefault(parent_id, []).append(page_id)

    def edit_remotely(self, page_id: str, markup: str) -> None:
        page = self.pages[page_id]
        self.pages[page_id] = page.model_copy(
            update={"raw_markup": markup, "version": page.version + 1}
        )

    def get_page(self, page_id: str) -> RemotePage:
        if page_id in self.failing:
            raise ApiError("HTTP 500: boom", status=500, page_id=page_id)
        if page_id not in self.pages:
            raise PageNotFoundError(page_id)
        return self.pages[page_id]

    def get_all_children(self, page_id: str) -> List[PageSummary]:
        return [
            PageSummary(id=child, title=self.pages[child].title, position=i)
            for i, child in enumerate(self.children.get(page_id, []))
        ]

    def get_version_history(self, page_id: str) -> List[PageVersion]:
        return list(self.history.get(page_id, []))

    def create_page(self, parent_id: str, title: str, markup: str) -> str:
        page_id = str(self._next_id)
        self._next_id += 1
        self.created.append((parent_id, title, markup))
        self.add_page(page_id, title, markup, parent_id=parent_id)
        return page_id

    def update_page(
        self,
        page_id: str,
        markup: str,
        comment: Optional[str] = None,
        title: Optional[str] = None,
    ) -> int:
        page = self.pages[page_id]
        self.updated.append((page_id, markup, comment, title))
        self.pages[page_id] = page.model_copy(
            update={
                "raw_markup": markup,
                "version": page.version + 1,
                "title": title or page.title,
            }
        )
        return page.version + 1

    def delete_page(self, page_id: str) -> None:
        self.deleted.append(page_id)
        parent = self.pages.pop(page_id).parent_id
        if parent in self.children:
            self.children[parent].remove(page_id)


@dataclass
class FakeCommit:
    message: str
    author: Optional[str]
    date: Optional[datetime]
    paths: set[str]
    files: dict[str, str]


def _snapshot(root: Path) -> dict[str, str]:
    files = {}
    for path in root.rglob("*"):
        rel = path.relative_to(root)
        if any(part.startswith(".") for part in rel.parts) or not path.is_file():
            continue
        files[rel.as_posix()] = path.read_text(encoding="utf-8")
    return files


class FakeVersionControl:
    """In-memory git stand-in working on snapshots of the sync root."""

    def __init__(self, root: Path, initialized: bool = True) -> None:
        self.root = root
        self.initialized = initialized
        self.conflicted: set[str] = set()
        self.commits: list[FakeCommit] = []
        self.branches: list[str] = []
        self.init_calls = 0
        self._staged: dict[str, str] = {}
        self._committed: dict[str, str] = {}

    def validate(self) -> None:
        pass

    def init(self) -> None:
        self.init_calls += 1
        self.initialized = True

    def is_initialized(self) -> bool:
        return self.initialized

    def status(self) -> VcsStatus:
        current = _snapshot(self.root)
        entries = [
            VcsStatusEntry(path=path, staged=False, status="U")
            for path in sorted(self.conflicted)
        ]
        for path in sorted(set(current) | set(self._committed)):
            if path in self.conflicted:
                continue
            if path not in self._committed:
                entries.append(VcsStatusEntry(path=path, staged=False, status="?"))
            elif path not in current:
                entries.append(VcsStatusEntry(path=path, staged=False, status="D"))
            elif current[path] != self._committed[path]:
                entries.append(VcsStatusEntry(path=path, staged=False, status="M"))
        return VcsStatus(
            has_changes=bool(entries),
            entries=entries,
            has_conflicts=bool(self.conflicted),
        )

    def add_all(self) -> None:
        self._staged = _snapshot(self.root)

    def commit(
        self,
        message: str,
        author: Optional[str] = None,
        date: Optional[datetime] = None,
    ) -> str:
        if self._staged == self._committed:
            raise GitNoChangesError()
        changed = {
            path
            for path in set(self._staged) | set(self._committed)
            if self._staged.get(path) != self._committed.get(path)
        }
        self.commits.append(
            FakeCommit(message, author, date, changed, dict(self._staged))
        )
        self._committed = dict(self._staged)
        return f"{len(self.commits):040x}"

    def commit_all(self, message: str = "local edit") -> None:
        self.add_all()
        self.commit(message)

    def log(
        self, n: Optional[int] = None, path: Optional[str] = None
    ) -> List[VcsLogEntry]:
        entries = [
            VcsLogEntry(
                hash=f"{i + 1:040x}",
                author="tester",
                email="tester@example.com",
                date=T0,
                message=c.message,
            )
            for i, c in reversed(list(enumerate(self.commits)))
            if path is None or path in c.paths
        ]
        return entries[:n] if n is not None else entries

    def diff(self, staged: bool = False, path: Optional[str] = None) -> str:
        return ""

    def create_branch(self, name: str) -> None:
        self.branches.append(name)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _handbook_client() -> FakeWikiClient:
    """Handbook -> (Onboarding, Tools -> Editors)."""
    client = FakeWikiClient()
    client.add_page("100", "Handbook", "<p>Welcome</p>")
    client.add_page(
        "101", "Onboarding", "<p>Hello <strong>world</strong></p>", parent_id="100"
    )
    client.add_page("102", "Tools", "<p>Tooling overview</p>", parent_id="100")
    client.add_page("103", "Editors", "<p>Use any editor</p>", parent_id="102")
    return client


def _setup_engine(
    tmp_path: Path,
    client: Optional[FakeWikiClient] = None,
    initialized: bool = True,
    **kwargs,
) -> tuple[SyncEngine, FakeWikiClient, FakeVersionControl]:
    fake_client = client or _handbook_client()
    vcs = FakeVersionControl(tmp_path, initialized=initialized)
    engine = SyncEngine(
        client=fake_client,  # type: ignore[arg-type]
        vcs=vcs,  # type: ignore[arg-type]
        tree=FileSystemTree(tmp_path),
        root=tmp_path,
        root_page_id="100",
        **kwargs,
    )
    return engine, fake_client, vcs


def _read(tmp_path: Path, rel: str):
    return parse((tmp_path / rel).read_text(encoding="utf-8"), rel)


def _edit_body(tmp_path: Path, rel: str, old: str, new: str) -> None:
    path = tmp_path / rel
    path.write_text(
        path.read_text(encoding="utf-8").replace(old, new), encoding="utf-8"
    )


# ---------------------------------------------------------------------------
# Pull
# ---------------------------------------------------------------------------


class TestPull:
    def test_pull_writes_tree(self, tmp_path: Path) -> None:
        engine, _, vcs = _setup_engine(tmp_path)

        result = engine.pull()

        assert result.pulled == 4
        assert result.skipped == 0
        assert result.errors == []
        assert (tmp_path / "handbook" / "index.md").is_file()
        assert (tmp_path / "handbook" / "onboarding.md").is_file()
        assert (tmp_path / "handbook" / "tools" / "index.md").is_file()
        assert (tmp_path / "handbook" / "tools" / "editors.md").is_file()

        fm, body = _read(tmp_path, "handbook/onboarding.md")
        assert isinstance(fm, PageFrontMatter)
        assert fm.page_id == "101"
        assert fm.parent_id == "100"
        assert fm.version == 1
        assert fm.title == "Onboarding"
        assert body == "Hello **world**\n"

    def test_pull_commits_once(self, tmp_path: Path) -> None:
        engine, _, vcs = _setup_engine(tmp_path)

        result = engine.pull()

        assert result.commits == 1
        assert [c.message for c in vcs.commits] == ["Pull from wiki (4 pages)"]

    def test_second_pull_skips_unchanged(self, tmp_path: Path) -> None:
        engine, _, vcs = _setup_engine(tmp_path)
        engine.pull()

        result = engine.pull()

        assert result.pulled == 0
        assert result.skipped == 4
        assert result.commits == 0
        assert len(vcs.commits) == 1

    def test_remote_change_is_pulled(self, tmp_path: Path) -> None:
        engine, client, _ = _setup_engine(tmp_path)
        engine.pull()
        client.edit_remotely("103", "<p>Use <em>vim</em></p>")

        result = engine.pull()

        assert result.pulled == 1
        assert result.skipped == 3
        fm, body = _read(tmp_path, "handbook/tools/editors.md")
        assert fm.version == 2
        assert body == "Use *vim*\n"

    def test_partial_failure_continues(self, tmp_path: Path) -> None:
        engine, client, _ = _setup_engine(tmp_path)
        client.failing.add("101")

        result = engine.pull()

        assert result.pulled == 3
        assert len(result.errors) == 1
        assert "handbook/onboarding.md" in result.errors[0]
        assert not (tmp_path / "handbook" / "onboarding.md").exists()

    def test_root_failure_is_reported(self, tmp_path: Path) -> None:
        engine, client, vcs = _setup_engine(tmp_path)
        client.failing.add("100")

        result = engine.pull()

        assert result.pulled == 0
        assert len(result.errors) == 1
        assert "root page 100" in result.errors[0]
        assert vcs.commits == []

    def test_refuses_to_overwrite_local_changes(self, tmp_path: Path) -> None:
        engine, _, _ = _setup_engine(tmp_path)
        engine.pull()
        _edit_body(tmp_path, "handbook/onboarding.md", "world", "there")

        result = engine.pull()

        assert result.pulled == 0
        assert result.skipped == 3
        assert len(result.errors) == 1
        assert "local changes not pushed" in result.errors[0]
        _, body = _read(tmp_path, "handbook/onboarding.md")
        assert body == "Hello **there**\n"

    def test_force_overwrites_local_changes(self, tmp_path: Path) -> None:
        engine, _, _ = _setup_engine(tmp_path)
        engine.pull()
        _edit_body(tmp_path, "handbook/onboarding.md", "world", "there")

        result = engine.pull(force=True)

        assert result.pulled == 1
        assert result.skipped == 3
        assert result.errors == []
        _, body = _read(tmp_path, "handbook/onboarding.md")
        assert body == "Hello **world**\n"

    def test_conflict_is_reported(self, tmp_path: Path) -> None:
        engine, client, _ = _setup_engine(tmp_path)
        engine.pull()
        _edit_body(tmp_path, "handbook/onboarding.md", "world", "there")
        client.edit_remotely("101", "<p>Hello moon</p>")

        result = engine.pull()

        assert len(result.errors) == 1
        assert "Conflict on page 101" in result.errors[0]

    def test_renamed_page_moves_file(self, tmp_path: Path) -> None:
        engine, client, _ = _setup_engine(tmp_path)
        engine.pull()
        client.pages["101"] = client.pages["101"].model_copy(
            update={"title": "Getting Started", "version": 2}
        )

        result = engine.pull()

        assert result.pulled == 1
        assert not (tmp_path / "handbook" / "onboarding.md").exists()
        fm, _ = _read(tmp_path, "handbook/getting-started.md")
        assert fm.page_id == "101"
        assert fm.title == "Getting Started"

    def test_duplicate_sibling_titles_get_id_suffix(self, tmp_path: Path) -> None:
        client = FakeWikiClient()
        client.add_page("100", "Handbook", "<p>Welcome</p>")
        client.add_page("201", "Notes", "<p>First</p>", parent_id="100")
        client.add_page("202", "Notes", "<p>Second</p>", parent_id="100")
        engine, _, _ = _setup_engine(tmp_path, client=client)

        result = engine.pull()

        assert result.pulled == 3
        assert (tmp_path / "handbook" / "notes.md").is_file()
        assert (tmp_path / "handbook" / "notes-202.md").is_file()

    def test_progress_callback(self, tmp_path: Path) -> None:
        engine, _, _ = _setup_engine(tmp_path)
        calls = []

        engine.pull(on_progress=lambda *args: calls.append(args))

        assert calls == [
            (1, 4, "Handbook"),
            (2, 4, "Onboarding"),
            (3, 4, "Tools"),
            (4, 4, "Editors"),
        ]

    def test_parallel_fetch_matches_sequential(self, tmp_path: Path) -> None:
        engine, _, _ = _setup_engine(tmp_path, max_parallel_fetches=4)

        result = engine.pull()

        assert result.pulled == 4
        assert result.errors == []

    def test_pull_without_repository_writes_files(self, tmp_path: Path) -> None:
        engine, _, vcs = _setup_engine(tmp_path, initialized=False)

        result = engine.pull()

        assert result.pulled == 4
        assert result.commits == 0
        assert vcs.commits == []


class TestHistoryReplay:
    @staticmethod
    def _client() -> FakeWikiClient:
        client = FakeWikiClient()
        client.add_page("100", "Handbook", "<p>Three</p>", version=3)
        client.history["100"] = [
            PageVersion(
                version=3,
                raw_markup="<p>Three</p>",
                author="Carol",
                email="carol@example.com",
                timestamp=T0 + timedelta(days=2),
            ),
            PageVersion(
                version=1,
                raw_markup="<p>One</p>",
                author="Alice",
                email="alice@example.com",
                timestamp=T0,
                message="Initial draft",
            ),
            PageVersion(
                version=2,
                raw_markup="<p>Two</p>",
                author="Bob",
                email="bob@example.com",
                timestamp=T0 + timedelta(days=1),
            ),
        ]
        return client

    def test_one_commit_per_version(self, tmp_path: Path) -> None:
        engine, _, vcs = _setup_engine(tmp_path, client=self._client())

        result = engine.pull(replay_history=True)

        assert result.pulled == 1
        assert result.commits == 3
        assert [c.message for c in vcs.commits] == [
            "Initial draft",
            "Update Handbook (v2)",
            "Update Handbook (v3)",
        ]
        assert [c.author for c in vcs.commits] == [
            "Alice <alice@example.com>",
            "Bob <bob@example.com>",
            "Carol <carol@example.com>",
        ]
        assert [c.date for c in vcs.commits] == [
            T0,
            T0 + timedelta(days=1),
            T0 + timedelta(days=2),
        ]

    def test_each_commit_holds_its_version(self, tmp_path: Path) -> None:
        engine, _, vcs = _setup_engine(tmp_path, client=self._client())

        engine.pull(replay_history=True)

        bodies = [parse(c.files["handbook.md"])[1] for c in vcs.commits]
        assert bodies == ["One\n", "Two\n", "Three\n"]
        fm, _ = _read(tmp_path, "handbook.md")
        assert fm.version == 3
        assert fm.author_email == "carol@example.com"

    def test_only_newer_versions_are_replayed(self, tmp_path: Path) -> None:
        client = self._client()
        engine, _, vcs = _setup_engine(tmp_path, client=client)
        engine.pull(replay_history=True)
        client.edit_remotely("100", "<p>Four</p>")
        client.history["100"].append(
            PageVersion(
                version=4,
                raw_markup="<p>Four</p>",
                author="Dan",
                email="dan@example.com",
                timestamp=T0 + timedelta(days=3),
            )
        )

        result = engine.pull(replay_history=True)

        assert result.commits == 1
        assert vcs.commits[-1].message == "Update Handbook (v4)"

    def test_replay_progress(self, tmp_path: Path) -> None:
        engine, _, _ = _setup_engine(tmp_path, client=self._client())
        calls = []

        engine.pull(
            replay_history=True, on_progress=lambda *args: calls.append(args)
        )

        assert calls == [
            (1, 3, "Handbook v1"),
            (2, 3, "Handbook v2"),
            (3, 3, "Handbook v3"),
            (1, 1, "Handbook"),
        ]

    def test_replay_needs_repository(self, tmp_path: Path) -> None:
        engine, _, vcs = _setup_engine(
            tmp_path, client=self._client(), initialized=False
        )

        result = engine.pull(replay_history=True)

        assert result.pulled == 1
        assert result.commits == 0
        _, body = _read(tmp_path, "handbook.md")
        assert body == "Three\n"


class TestClone:
    def test_clone_initialises_and_replays(self, tmp_path: Path) -> None:
        engine, _, vcs = _setup_engine(
            tmp_path, client=TestHistoryReplay._client(), initialized=False
        )

        result = engine.clone()

        assert vcs.init_calls == 1
        assert result.pulled == 1
        assert result.commits == 3
        assert vcs.commits[0].message == "Initial draft"
        assert vcs.branches == [REMOTE_BRANCH]

    def test_clone_refuses_existing_repository(self, tmp_path: Path) -> None:
        engine, _, vcs = _setup_engine(tmp_path)

        with pytest.raises(GitError, match="already a git repository"):
            engine.clone()

        assert vcs.init_calls == 0
        assert not (tmp_path / "handbook.md").exists()
        assert vcs.branches == []


# ---------------------------------------------------------------------------
# Push
# ---------------------------------------------------------------------------


def _pulled_engine(tmp_path: Path, **kwargs):
    engine, client, vcs = _setup_engine(tmp_path, **kwargs)
    engine.pull()
    return engine, client, vcs


class TestPush:
    def test_nothing_to_push(self, tmp_path: Path) -> None:
        engine, client, vcs = _pulled_engine(tmp_path)

        result = engine.push()

        assert result.pushed == 0
        assert result.skipped == 4
        assert client.updated == []
        assert len(vcs.commits) == 1

    def test_push_local_change(self, tmp_path: Path) -> None:
        engine, client, vcs = _pulled_engine(tmp_path)
        _edit_body(tmp_path, "handbook/onboarding.md", "world", "there")
        vcs.commit_all()

        result = engine.push(message="Fix greeting")

        assert result.pushed == 1
        assert result.errors == []
        page_id, markup, comment, title = client.updated[0]
        assert page_id == "101"
        assert markup == "<p>Hello <strong>there</strong></p>"
        assert comment == "Fix greeting"
        assert title is None
        fm, _ = _read(tmp_path, "handbook/onboarding.md")
        assert fm.version == 2
        assert fm.version_message == "Fix greeting"
        assert vcs.commits[-1].message == "Fix greeting"

    def test_push_is_idempotent(self, tmp_path: Path) -> None:
        engine, client, vcs = _pulled_engine(tmp_path)
        _edit_body(tmp_path, "handbook/onboarding.md", "world", "there")
        vcs.commit_all()
        engine.push()

        result = engine.push()

        assert result.pushed == 0
        assert result.deleted == 0
        assert len(client.updated) == 1
        assert engine.status().synced == 4

    def test_default_commit_message(self, tmp_path: Path) -> None:
        engine, _, vcs = _pulled_engine(tmp_path)
        _edit_body(tmp_path, "handbook/onboarding.md", "world", "there")
        vcs.commit_all()

        engine.push()

        assert vcs.commits[-1].message == "Push to wiki (1 page)"

    def test_dry_run_changes_nothing(self, tmp_path: Path) -> None:
        engine, client, vcs = _pulled_engine(tmp_path)
        _edit_body(tmp_path, "handbook/onboarding.md", "world", "there")
        (tmp_path / "handbook" / "faq.md").write_text("Ask away.\n")
        vcs.commit_all()
        before = _snapshot(tmp_path)
        commits = len(vcs.commits)

        result = engine.push(dry_run=True)

        assert result.dry_run is True
        assert result.pushed == 1
        assert result.created == 1
        assert client.updated == []
        assert client.created == []
        assert _snapshot(tmp_path) == before
        assert len(vcs.commits) == commits

    def test_conflict_is_skipped(self, tmp_path: Path) -> None:
        engine, client, vcs = _pulled_engine(tmp_path)
        _edit_body(tmp_path, "handbook/onboarding.md", "world", "there")
        vcs.commit_all()
        client.edit_remotely("101", "<p>Hello moon</p>")

        result = engine.push()

        assert result.pushed == 0
        assert result.skipped == 4
        assert len(result.errors) == 1
        assert "Conflict on page 101" in result.errors[0]
        assert client.updated == []

    def test_remote_only_change_is_not_pushed(self, tmp_path: Path) -> None:
        engine, client, _ = _pulled_engine(tmp_path)
        client.edit_remotely("101", "<p>Hello moon</p>")

        result = engine.push()

        assert result.pushed == 0
        assert client.updated == []

    def test_create_new_page(self, tmp_path: Path) -> None:
        engine, client, vcs = _pulled_engine(tmp_path)
        (tmp_path / "handbook" / "faq.md").write_text(
            serialize(NewPageFrontMatter(title="FAQ"), "Ask **away**.\n")
        )
        vcs.commit_all()

        result = engine.push()

        assert result.created == 1
        assert client.created == [("100", "FAQ", "<p>Ask <strong>away</strong>.</p>")]
        fm, body = _read(tmp_path, "handbook/faq.md")
        assert isinstance(fm, PageFrontMatter)
        assert fm.page_id == "1000"
        assert fm.parent_id == "100"
        assert body == "Ask **away**.\n"
        assert client.deleted == []

    def test_create_nested_pages_in_order(self, tmp_path: Path) -> None:
        engine, client, vcs = _pulled_engine(tmp_path)
        guides = tmp_path / "handbook" / "guides"
        guides.mkdir()
        (guides / "index.md").write_text(
            serialize(NewPageFrontMatter(title="Guides"), "All guides.\n")
        )
        (guides / "setup.md").write_text(
            serialize(NewPageFrontMatter(title="Setup"), "Install it.\n")
        )
        vcs.commit_all()

        result = engine.push()

        assert result.created == 2
        assert result.errors == []
        assert client.created[0][:2] == ("100", "Guides")
        assert client.created[1][:2] == ("1000", "Setup")

    def test_recreate_page_deleted_remotely(self, tmp_path: Path) -> None:
        engine, client, _ = _pulled_engine(tmp_path)
        client.delete_page("103")
        client.deleted.clear()

        result = engine.push()

        assert result.created == 1
        assert client.created[0][:2] == ("102", "Editors")

    def test_delete_removed_page(self, tmp_path: Path) -> None:
        engine, client, vcs = _pulled_engine(tmp_path)
        (tmp_path / "handbook" / "onboarding.md").unlink()
        vcs.commit_all()

        result = engine.push()

        assert result.deleted == 1
        assert client.deleted == ["101"]

    def test_never_pulled_remote_page_is_kept(self, tmp_path: Path) -> None:
        engine, client, _ = _pulled_engine(tmp_path)
        client.add_page("104", "Brand New", "<p>New</p>", parent_id="100")

        result = engine.push()

        assert result.deleted == 0
        assert client.deleted == []

    def test_delete_children_before_parents(self, tmp_path: Path) -> None:
        engine, client, vcs = _pulled_engine(tmp_path)
        (tmp_path / "handbook" / "tools" / "index.md").unlink()
        (tmp_path / "handbook" / "tools" / "editors.md").unlink()
        vcs.commit_all()

        result = engine.push()

        assert result.deleted == 2
        assert client.deleted == ["103", "102"]

    def test_dry_run_counts_deletions(self, tmp_path: Path) -> None:
        engine, client, vcs = _pulled_engine(tmp_path)
        (tmp_path / "handbook" / "onboarding.md").unlink()
        vcs.commit_all()

        result = engine.push(dry_run=True)

        assert result.deleted == 1
        assert client.deleted == []


class TestPushPreconditions:
    def test_requires_repository(self, tmp_path: Path) -> None:
        engine, client, _ = _setup_engine(tmp_path, initialized=False)

        with pytest.raises(GitNotInitializedError):
            engine.push()
        assert client.updated == []

    def test_refuses_uncommitted_changes(self, tmp_path: Path) -> None:
        engine, client, _ = _pulled_engine(tmp_path)
        _edit_body(tmp_path, "handbook/onboarding.md", "world", "there")

        with pytest.raises(UncommittedChangesError) as exc_info:
            engine.push()
        assert exc_info.value.paths == ["handbook/onboarding.md"]
        assert client.updated == []

    def test_refuses_merge_conflicts(self, tmp_path: Path) -> None:
        engine, client, vcs = _pulled_engine(tmp_path)
        vcs.conflicted.add("handbook/onboarding.md")

        with pytest.raises(GitMergeConflictError) as exc_info:
            engine.push()
        assert exc_info.value.files == ["handbook/onboarding.md"]


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


class TestStatus:
    def test_all_synced_after_pull(self, tmp_path: Path) -> None:
        engine, _, _ = _pulled_engine(tmp_path)

        result = engine.status()

        assert result.synced == 4
        assert result.errors == []

    def test_every_state_is_reported(self, tmp_path: Path) -> None:
        engine, client, _ = _pulled_engine(tmp_path)
        _edit_body(tmp_path, "handbook/onboarding.md", "world", "there")
        client.edit_remotely("103", "<p>Use vim</p>")
        client.add_page("104", "Brand New", "<p>New</p>", parent_id="100")
        (tmp_path / "handbook" / "faq.md").write_text("Ask away.\n")

        result = engine.status()

        by_path = {f.path: f.status for f in result.files}
        assert by_path["handbook/index.md"] == SyncStatus.SYNCED
        assert by_path["handbook/onboarding.md"] == SyncStatus.LOCAL_MODIFIED
        assert by_path["handbook/tools/editors.md"] == SyncStatus.REMOTE_MODIFIED
        assert by_path["handbook/faq.md"] == SyncStatus.LOCAL_ONLY
        assert by_path["handbook/brand-new.md"] == SyncStatus.REMOTE_ONLY
        assert result.remote_only == 1
        assert result.local_only == 1

    def test_page_missing_remotely_is_local_only(self, tmp_path: Path) -> None:
        engine, client, _ = _pulled_engine(tmp_path)
        client.delete_page("103")

        result = engine.status()

        by_path = {f.path: f.status for f in result.files}
        assert by_path["handbook/tools/editors.md"] == SyncStatus.LOCAL_ONLY

    def test_status_is_read_only(self, tmp_path: Path) -> None:
        engine, client, vcs = _pulled_engine(tmp_path)
        before = _snapshot(tmp_path)

        engine.status()

        assert _snapshot(tmp_path) == before
        assert client.updated == client.created == client.deleted == []
        assert len(vcs.commits) == 1

    def test_unreadable_file_is_reported(self, tmp_path: Path) -> None:
        engine, _, _ = _pulled_engine(tmp_path)
        (tmp_path / "handbook" / "broken.md").write_text(
            "---\npageId: [unclosed\n---\n\nbody\n"
        )

        result = engine.status()

        assert len(result.errors) == 1
        assert "handbook/broken.md" in result.errors[0]
