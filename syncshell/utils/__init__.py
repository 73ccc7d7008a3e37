# syncshell Utilities Module
# Helper functions for path handling and hashing

from syncshell.utils.hashing import content_hash, short_hash
from syncshell.utils.paths import (
    atomic_write,
    copy_or_delete,
    ensure_dir,
    get_path_state,
    is_path_related,
    is_same_or_sub_path,
    is_sub_path,
    normalize_path,
    quote_shell,
    safe_copy,
    safe_delete,
)

__all__ = [
    # Paths
    "normalize_path",
    "ensure_dir",
    "is_sub_path",
    "is_same_or_sub_path",
    "is_path_related",
    "get_path_state",
    "safe_copy",
    "safe_delete",
    "copy_or_delete",
    "atomic_write",
    "quote_shell",
    # Hashing
    "content_hash",
    "short_hash",
]
