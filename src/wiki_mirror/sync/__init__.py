"""Mirror sync engine.

Public API for mirroring a remote wiki page tree into local Markdown
files under version control, and pushing local edits back.

Architecture
------------
Status is derived from three content hashes per page: the local body,
the baseline recorded in the file's front matter at the last sync, and
the remote body.  Both bodies are reduced to the canonical ``Document``
before hashing, so the two sides are directly comparable.

Modules:

- ``engine``    -- ``SyncEngine``: clone, pull, push and status.
- ``context``   -- ``SyncContext``: per-call index of local pages.
- ``status``    -- ``classify``: the three-way status table.
- ``protocols`` -- ``RemoteWikiClient``, ``VersionControl``,
  ``LocalFileTree``: collaborator interfaces.
- ``models``    -- ``SyncStatus``, remote/VCS/local records and the
  ``PullResult`` / ``PushResult`` / ``StatusResult`` contracts.
- ``reporter``  -- Human-readable and JSON result formatting.

Usage example
-------------
::

    from pathlib import Path
    from wiki_mirror.local_tree import FileSystemTree
    from wiki_mirror.remote import ConfluenceClient
    from wiki_mirror.sync import SyncEngine, format_pull_result
    from wiki_mirror.vcs import GitVersionControl

    root = Path("docs")
    engine = SyncEngine(
        client=ConfluenceClient(wiki_config),
        vcs=GitVersionControl(root),
        tree=FileSystemTree(root),
        root=root,
        root_page_id="12345",
    )
    print(format_pull_result(engine.pull(replay_history=True)))
"""

from .context import SyncContext
from .engine import SyncEngine
from .models import (
    FileStatus,
    PullResult,
    PushResult,
    StatusResult,
    SyncStatus,
)
from .reporter import (
    format_pull_result,
    format_push_result,
    format_status,
    result_to_json,
)
from .status import classify

__all__ = [
    "FileStatus",
    "PullResult",
    "PushResult",
    "StatusResult",
    "SyncContext",
    "SyncEngine",
    "SyncStatus",
    "classify",
    "format_pull_result",
    "format_push_result",
    "format_status",
    "result_to_json",
]
