# syncshell Path Utilities
# Safe file operations, path normalization and containment checks

import os
import posixpath
import shlex
import shutil
import stat
import tempfile
from pathlib import Path
from typing import Literal

PathState = Literal["file", "directory", "missing"]


def normalize_path(path: str | Path) -> str:
    """
    Normalize a local path to an absolute, canonical string.

    Expands ~ and collapses ``.``/``..`` segments without resolving symlinks,
    so the same folder typed two different ways compares equal.

    Args:
        path: Path string or Path object.

    Returns:
        Absolute normalized path string.
    """
    expanded = os.path.expanduser(str(path))
    return os.path.normcase(os.path.normpath(os.path.abspath(expanded)))


def ensure_dir(path: Path) -> Path:
    """
    Ensure directory exists, creating if necessary.

    Args:
        path: Directory path.

    Returns:
        The path that was ensured.
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def is_sub_path(base: str, target: str, *, posix: bool = False) -> bool:
    """
    Check whether target equals base or lies inside it.

    Args:
        base: Base directory path.
        target: Candidate path.
        posix: Use POSIX path semantics regardless of the host OS.

    Returns:
        True if target does not escape base.
    """
    module = posixpath if posix else os.path
    relative = module.relpath(target, base)
    if relative == ".":
        return True
    if module.isabs(relative):
        return False
    return relative != module.pardir and not relative.startswith(module.pardir + module.sep)


def is_same_or_sub_path(candidate: str, base: str) -> bool:
    """Check if candidate equals base or is nested below it (both normalized)."""
    return candidate == base or candidate.startswith(base.rstrip(os.sep) + os.sep)


def is_path_related(local_path: str, folder_path: str) -> bool:
    """
    Check containment in either direction.

    A session root may be an ancestor or a descendant of the opened folder;
    both count as related.
    """
    local = normalize_path(local_path)
    folder = normalize_path(folder_path)
    return is_same_or_sub_path(local, folder) or is_same_or_sub_path(folder, local)


def get_path_state(path: Path) -> PathState:
    """
    Classify a local path.

    Args:
        path: Path to inspect.

    Returns:
        "directory", "file" or "missing".
    """
    try:
        st = path.stat()
    except FileNotFoundError:
        return "missing"
    return "directory" if stat.S_ISDIR(st.st_mode) else "file"


def safe_copy(source: Path, dest: Path, *, preserve_metadata: bool = True) -> None:
    """
    Atomically copy file or directory over dest.

    Copies into a temporary sibling first and renames it into place, so a
    failed copy never leaves a half-written destination behind.

    Args:
        source: Source path.
        dest: Destination path (replaced if it exists).
        preserve_metadata: Whether to preserve file metadata (default True).

    Raises:
        FileNotFoundError: If source doesn't exist.
    """
    if not source.exists():
        raise FileNotFoundError(f"Source does not exist: {source}")

    ensure_dir(dest.parent)
    temp_dest = dest.parent / f".{dest.name}.tmp.{os.getpid()}"

    try:
        if temp_dest.exists() or temp_dest.is_symlink():
            safe_delete(temp_dest)
        if source.is_dir():
            shutil.copytree(source, temp_dest, symlinks=True)
        elif preserve_metadata:
            shutil.copy2(source, temp_dest, follow_symlinks=False)
        else:
            shutil.copy(source, temp_dest, follow_symlinks=False)

        if dest.exists() or dest.is_symlink():
            safe_delete(dest)
        temp_dest.rename(dest)
    except OSError:
        # Cleanup on failure
        if temp_dest.exists() or temp_dest.is_symlink():
            safe_delete(temp_dest, missing_ok=True)
        raise


def safe_delete(path: Path, *, missing_ok: bool = False) -> bool:
    """
    Safely delete file or directory.

    Args:
        path: Path to delete.
        missing_ok: If True, don't raise error if path doesn't exist.

    Returns:
        True if something was deleted, False if path didn't exist.

    Raises:
        FileNotFoundError: If path doesn't exist and missing_ok is False.
    """
    if not path.exists() and not path.is_symlink():
        if missing_ok:
            return False
        raise FileNotFoundError(f"Path does not exist: {path}")

    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()
    return True


def copy_or_delete(source: Path, dest: Path) -> str:
    """
    Make dest mirror source.

    Removes dest when source is missing, replaces it with a copy otherwise.
    Nothing happens when both resolve to the same location.

    Returns:
        "skipped", "deleted" or "copied".
    """
    if normalize_path(source) == normalize_path(dest):
        return "skipped"

    if get_path_state(source) == "missing":
        safe_delete(dest, missing_ok=True)
        return "deleted"

    safe_copy(source, dest)
    return "copied"


def atomic_write(path: Path, content: str | bytes, *, encoding: str = "utf-8") -> None:
    """
    Atomically write content to file.

    Uses a temporary file and atomic rename.

    Args:
        path: Target file path.
        content: Content to write (str or bytes).
        encoding: Encoding for string content (default utf-8).
    """
    ensure_dir(path.parent)

    # Create temp file in same directory for atomic rename
    fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        if isinstance(content, str):
            with os.fdopen(fd, "w", encoding=encoding) as f:
                f.write(content)
        else:
            with os.fdopen(fd, "wb") as f:
                f.write(content)
        os.replace(temp_path, path)
    except Exception:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise


def quote_shell(value: str) -> str:
    """Quote a value for safe use in a POSIX shell command line."""
    return shlex.quote(value)
