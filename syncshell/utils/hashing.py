# syncshell Hashing Utilities
# Stable digests for identifiers and fingerprints

import hashlib


def content_hash(content: str | bytes, *, algorithm: str = "sha256") -> str:
    """Hex digest of text (UTF-8 encoded) or raw bytes."""
    data = content.encode("utf-8") if isinstance(content, str) else content
    return hashlib.new(algorithm, data).hexdigest()


def short_hash(*parts: str, length: int = 16) -> str:
    """
    Hash several string parts into a short hex token.

    Parts are joined with NUL, which cannot appear in a path, so
    ("a", "bc") and ("ab", "c") never collide.
    """
    return content_hash("\0".join(parts))[:length]
