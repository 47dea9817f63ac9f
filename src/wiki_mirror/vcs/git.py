"""git operations on the sync root, via the ``git`` executable."""

from __future__ import annotations

import logging
import os
import subprocess
from datetime import datetime
from pathlib import Path

from wiki_mirror.errors import (
    GitError,
    GitNoChangesError,
    GitNotInitializedError,
    GitNotInstalledError,
)
from wiki_mirror.sync.models import VcsLogEntry, VcsStatus, VcsStatusEntry

logger = logging.getLogger(__name__)

# Unmerged XY pairs of ``git status --porcelain``
_CONFLICT_CODES = {"DD", "AU", "UD", "UA", "DU", "AA", "UU"}
_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"


def parse_porcelain(output: str) -> VcsStatus:
    """Parse ``git status --porcelain`` (v1) output.

    >>> s = parse_porcelain(" M a.md\\n?? b.md\\nUU c.md\\n")
    >>> [(e.path, e.staged, e.status) for e in s.entries]
    [('a.md', False, 'M'), ('b.md', False, '?'), ('c.md', True, 'U')]
    >>> s.has_conflicts
    True
    """
    entries: list[VcsStatusEntry] = []
    conflicts = False
    for line in output.splitlines():
        if len(line) < 4:
            continue
        code, path = line[:2], line[3:]
        if " -> " in path:
            path = path.split(" -> ", 1)[1]
        path = path.strip('"')
        if code in _CONFLICT_CODES:
            conflicts = True
            entries.append(VcsStatusEntry(path=path, staged=True, status="U"))
        elif code == "??":
            entries.append(VcsStatusEntry(path=path, staged=False, status="?"))
        else:
            staged = code[0] != " "
            entries.append(
                VcsStatusEntry(
                    path=path,
                    staged=staged,
                    status=code[0] if staged else code[1],
                )
            )
    return VcsStatus(
        has_changes=bool(entries), entries=entries, has_conflicts=conflicts
    )


class GitVersionControl:
    """Runs git commands with the sync root as working directory.

    Args:
        root: Sync root (inside a git work tree).
        timeout: Seconds before a single git command is abandoned.
    """

    def __init__(self, root: Path, timeout: float = 60) -> None:
        self.root = root
        self.timeout = timeout

    def _run(
        self,
        *args: str,
        check: bool = True,
        env: dict[str, str] | None = None,
    ) -> subprocess.CompletedProcess:
        command = "git " + " ".join(args)
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=str(self.root),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env={**os.environ, **env} if env else None,
            )
        except FileNotFoundError as exc:
            raise GitNotInstalledError() from exc
        except subprocess.TimeoutExpired as exc:
            raise GitError(f"{command} timed out", command=command) from exc
        if check and result.returncode != 0:
            detail = (result.stderr or result.stdout).strip()
            raise GitError(
                f"{command} failed: {detail}",
                command=command,
                exit_code=result.returncode,
            )
        return result

    def validate(self) -> None:
        self._run("--version")

    def is_initialized(self) -> bool:
        try:
            result = self._run("rev-parse", "--is-inside-work-tree", check=False)
        except GitNotInstalledError:
            logger.debug("git not installed; treating %s as plain directory", self.root)
            return False
        return result.returncode == 0 and result.stdout.strip() == "true"

    def init(self) -> None:
        """Create a repository in the sync root."""
        self.root.mkdir(parents=True, exist_ok=True)
        self._run("init")
        logger.info("Initialised git repository in %s", self.root)

    def _require_repo(self) -> None:
        if not self.is_initialized():
            raise GitNotInitializedError(str(self.root))

    def status(self) -> VcsStatus:
        self._require_repo()
        result = self._run("status", "--porcelain", "--untracked-files=all", ".")
        return parse_porcelain(result.stdout)

    def add_all(self) -> None:
        self._run("add", "-A", ".")

    def commit(
        self,
        message: str,
        author: str | None = None,
        date: datetime | None = None,
    ) -> str:
        """Commit the index and return the new commit hash.

        Raises:
            GitNoChangesError: Nothing is staged.
        """
        staged = self._run("diff", "--cached", "--quiet", check=False)
        if staged.returncode == 0:
            raise GitNoChangesError()

        args = ["commit", "--no-verify", "-m", message]
        if author:
            args.append(f"--author={author}")
        env = None
        if date is not None:
            stamp = date.isoformat()
            env = {"GIT_AUTHOR_DATE": stamp, "GIT_COMMITTER_DATE": stamp}
        self._run(*args, env=env)
        commit_hash = self._run("rev-parse", "HEAD").stdout.strip()
        logger.debug("Committed %s", commit_hash)
        return commit_hash

    def log(self, n: int | None = None, path: str | None = None) -> list[VcsLogEntry]:
        """Return commits, newest first; empty for a repo without commits."""
        args = [
            "log",
            f"--format=%H{_FIELD_SEP}%an{_FIELD_SEP}%ae{_FIELD_SEP}%aI"
            f"{_FIELD_SEP}%s{_RECORD_SEP}",
        ]
        if n is not None:
            args.append(f"-n{n}")
        if path is not None:
            args.extend(["--", path])
        result = self._run(*args, check=False)
        if result.returncode != 0:
            if "does not have any commits" in result.stderr:
                return []
            raise GitError(
                f"git log failed: {result.stderr.strip()}",
                command="git log",
                exit_code=result.returncode,
            )

        entries: list[VcsLogEntry] = []
        for record in result.stdout.split(_RECORD_SEP):
            record = record.strip()
            if not record:
                continue
            commit_hash, author, email, date, subject = record.split(_FIELD_SEP, 4)
            entries.append(
                VcsLogEntry(
                    hash=commit_hash,
                    author=author,
                    email=email,
                    date=datetime.fromisoformat(date),
                    message=subject,
                )
            )
        return entries

    def diff(self, staged: bool = False, path: str | None = None) -> str:
        args = ["diff"]
        if staged:
            args.append("--cached")
        if path is not None:
            args.extend(["--", path])
        return self._run(*args).stdout

    def create_branch(self, name: str) -> None:
        self._run("branch", name)
