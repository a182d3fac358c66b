"""
Storage key derivation for uploaded images.

Conventions:
    - Anonymous uploads: full/{epoch_ms}-{base}.webp and thumbnails/{epoch_ms}-{base}.webp
    - Owner uploads:     users/{owner}/{epoch_ms}-{base}-{hex}.full.webp (and .thumb.webp)

Sanitization collapses runs of characters outside [A-Za-z0-9._-] into "_",
so keys never carry separators or traversal sequences from user input.
"""
from __future__ import annotations

import re
import time
import uuid
from dataclasses import dataclass

_SAFE_RE = re.compile(r"[^A-Za-z0-9._-]+")

FULL_PREFIX = "full/"
THUMB_PREFIX = "thumbnails/"
USERS_PREFIX = "users/"
ALLOWED_PREFIXES = (FULL_PREFIX, THUMB_PREFIX, USERS_PREFIX)


@dataclass(frozen=True)
class DerivedKeys:
    base: str
    full_key: str
    thumb_key: str


def now_ms() -> int:
    return int(time.time() * 1000)


def _strip_extension(filename: str) -> str:
    name = (filename or "").replace("\\", "/").rsplit("/", 1)[-1]
    stem, dot, _ext = name.rpartition(".")
    # ".bashrc"-style names have no extension
    if not dot or not stem:
        return name
    return stem


def sanitize_base_name(filename: str | None) -> str:
    base = _SAFE_RE.sub("_", _strip_extension(filename or ""))
    # a lone "." or ".." must never become a path segment
    if not base or set(base) == {"."}:
        return "image"
    # a trailing dot would meet the ".webp" suffix as ".."
    return base.replace("..", "_").rstrip(".") or "image"


def _sanitize_owner(owner_id: str, *, fallback: str = "user") -> str:
    owner = _SAFE_RE.sub("_", owner_id.strip()).replace("..", "_").strip(".")
    return owner or fallback


def derive_keys(
    original_name: str | None,
    now: int,
    owner_id: str | None = None,
    suffix: str | None = None,
) -> DerivedKeys:
    base = sanitize_base_name(original_name)
    unique = f"{now}-{base}"
    if not owner_id or not owner_id.strip():
        return DerivedKeys(
            base=base,
            full_key=f"{FULL_PREFIX}{unique}.webp",
            thumb_key=f"{THUMB_PREFIX}{unique}.webp",
        )

    owner = _sanitize_owner(owner_id)
    rid = suffix if suffix is not None else uuid.uuid4().hex[:8]
    unique = f"{unique}-{rid}"
    scope = f"{USERS_PREFIX}{owner}"
    return DerivedKeys(
        base=base,
        full_key=f"{scope}/{unique}.full.webp",
        thumb_key=f"{scope}/{unique}.thumb.webp",
    )


def is_allowed_key(key: object) -> bool:
    """Guard for keys coming back from clients (signed URLs, proxy reads)."""
    if not isinstance(key, str) or not key:
        return False
    if ".." in key:
        return False
    return key.startswith(ALLOWED_PREFIXES)
