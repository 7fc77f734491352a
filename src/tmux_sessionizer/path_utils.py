# =============================================================================
# Path Utilities
# =============================================================================
# Canonical paths are the identity of a directory everywhere in the scan:
# deduplication, worktree ownership and exclusion all compare realpaths.

import os
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import TypeVar

T = TypeVar("T")


def expand_path(path: str | Path) -> Path:
    """Expand ~ without resolving symlinks.

    Use this for paths as the user wrote them (config roots, CLI queries),
    where the discovered form should be preserved for reporting.

    Args:
        path: Raw path string (may contain ~).

    Returns:
        Path with ~ expanded.
    """
    return Path(os.path.expanduser(str(path)))


def canonicalize(path: str | Path) -> Path:
    """Return the absolute, symlink-free form of an existing path.

    Args:
        path: Path to resolve (may be relative or contain ~ and symlinks).

    Returns:
        Canonical path.

    Raises:
        OSError: The path or a symlink along it does not resolve
            (broken link, missing component, permission denied, loop).
    """
    return Path(os.path.realpath(expand_path(path), strict=True))


def basename(path: Path) -> str:
    """Last path component; the filesystem root keeps its full form."""
    return path.name or str(path)


def is_hidden(path: Path) -> bool:
    return path.name.startswith(".") and path.name not in (".", "..")


def dedupe_by(items: Iterable[T], key: Callable[[T], object]) -> tuple[list[T], list[T]]:
    """Keep the first item per key, preserving order.

    Returns:
        (kept, dropped) lists.
    """
    seen = set()
    kept = []
    dropped = []
    for item in items:
        item_key = key(item)
        if item_key in seen:
            dropped.append(item)
            continue
        seen.add(item_key)
        kept.append(item)
    return kept, dropped
