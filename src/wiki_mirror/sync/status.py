"""Three-way reconciliation of page hashes.

Local Markdown and remote storage markup are both reduced to a content
hash of their canonical ``Document`` (see ``wiki_mirror.hashing``), so
the two sides are directly comparable.  The baseline is the hash stored
in the front matter at the last pull or push.
"""

from __future__ import annotations

from wiki_mirror.sync.models import SyncStatus


def classify(
    local_hash: str | None,
    baseline_hash: str | None,
    remote_hash: str | None,
) -> SyncStatus:
    """Derive the sync status of one page.

    Args:
        local_hash: Hash of the local body, ``None`` if there is no file.
        baseline_hash: Hash recorded at the last sync, ``None`` if the
            file was never linked to a remote page.
        remote_hash: Hash of the remote page, ``None`` if it does not
            exist remotely.

    >>> classify("a", "a", "a").value
    'synced'
    >>> classify("b", "a", "a").value
    'local_modified'
    >>> classify("a", "a", "c").value
    'remote_modified'
    >>> classify("b", "a", "c").value
    'conflict'
    >>> classify("b", "a", "b").value
    'synced'
    """
    if local_hash is None:
        return SyncStatus.REMOTE_ONLY
    if baseline_hash is None or remote_hash is None:
        return SyncStatus.LOCAL_ONLY

    local_changed = local_hash != baseline_hash
    remote_changed = remote_hash != baseline_hash

    if not local_changed and not remote_changed:
        return SyncStatus.SYNCED
    if local_changed and not remote_changed:
        return SyncStatus.LOCAL_MODIFIED
    if not local_changed and remote_changed:
        return SyncStatus.REMOTE_MODIFIED
    # Both sides moved to the same content
    if local_hash == remote_hash:
        return SyncStatus.SYNCED
    return SyncStatus.CONFLICT
