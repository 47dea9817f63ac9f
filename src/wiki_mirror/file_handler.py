"""File handler module: encoding-aware reads and atomic writes.

Every page file is replaced in one ``os.replace`` call, so an interrupted
pull leaves either the old file or the new one on disk, never a mix.
"""

from __future__ import annotations

import os
import stat
import tempfile
from pathlib import Path

from charset_normalizer import from_bytes

from wiki_mirror.errors import FileSystemError

# =============================================================================
# File Read/Write
# =============================================================================


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a file with automatic encoding detection.

    Reads raw bytes first, then uses charset-normalizer to detect encoding.
    Defaults to UTF-8 for empty files or when detection fails.

    Args:
        path: Path to the file to read.

    Returns:
        Tuple of (content_string, detected_encoding).

    Raises:
        FileSystemError: The file cannot be read.
    """
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise FileSystemError("read", str(path), str(exc)) from exc
    if not raw:
        return ("", "utf-8")

    try:
        # Page files are written as UTF-8; only guess for hand-made files
        return (raw.decode("utf-8"), "utf-8")
    except UnicodeDecodeError:
        pass

    result = from_bytes(raw).best()
    if result is None:
        return (raw.decode("utf-8", errors="replace"), "utf-8")
    encoding = result.encoding
    if encoding == "ascii":
        encoding = "utf-8"
    return (str(result), encoding)


def write_file_atomic(
    path: Path, content: str, encoding: str = "utf-8"
) -> int:
    """Write content to *path* via a temp file and ``os.replace``.

    Creates parent directories as needed.

    Returns:
        Number of bytes written.

    Raises:
        FileSystemError: The file cannot be written.
    """
    encoded = content.encode(encoding)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp"
        )
    except OSError as exc:
        raise FileSystemError("write", str(path), str(exc)) from exc
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(encoded)
        # mkstemp creates 0600; give the page the mode a plain open() would
        os.chmod(tmp_path, _target_mode(path))
        os.replace(tmp_path, path)
    except BaseException as exc:
        # Clean up temp file on any failure.
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        if isinstance(exc, OSError):
            raise FileSystemError("write", str(path), str(exc)) from exc
        raise
    return len(encoded)


def _target_mode(path: Path) -> int:
    """Mode of the existing file, else ``0o666`` masked by the umask."""
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        pass
    mask = os.umask(0)
    os.umask(mask)
    return 0o666 & ~mask


def delete_file(path: Path, stop_at: Path | None = None) -> None:
    """Delete *path* and prune parent directories left empty.

    Pruning stops at *stop_at* (never removed) or the first non-empty
    directory.

    Raises:
        FileSystemError: The file cannot be removed.
    """
    try:
        path.unlink()
    except FileNotFoundError:
        return
    except OSError as exc:
        raise FileSystemError("delete", str(path), str(exc)) from exc
    if stop_at is None:
        return
    parent = path.parent
    while parent != stop_at and stop_at in parent.parents:
        try:
            parent.rmdir()
        except OSError:
            break
        parent = parent.parent
