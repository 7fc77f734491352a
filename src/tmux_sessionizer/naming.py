# =============================================================================
# Naming Engine
# =============================================================================

import re
from pathlib import Path
from typing import assert_never

from .models import EntryType, GitRepository, GitWorktree, GitWorktreeContainer, Plain
from .path_utils import basename

SESSION_NAME_MAX_LENGTH = 64
DEFAULT_SESSION_NAME = "default_session"

# tmux treats "." and ":" in targets as window/pane separators
_UNSAFE_RUN = re.compile(r"[^A-Za-z0-9_-]+")
_UNDERSCORE_RUN = re.compile(r"_{2,}")
_EDGE_CHARS = "_-"


def display_name_for(resolved_path: Path, entry_type: EntryType) -> str:
    """
    Derive the picker label for an entry.

    Plain directories and repositories show their basename; worktrees are
    prefixed with their repository, e.g. "[proj] feature-a".

    Raises:
        ValueError: entry_type is GitWorktreeContainer, which is never shown.
    """
    if isinstance(entry_type, (Plain, GitRepository)):
        return basename(resolved_path)
    if isinstance(entry_type, GitWorktree):
        return f"[{basename(entry_type.main_worktree)}] {basename(resolved_path)}"
    if isinstance(entry_type, GitWorktreeContainer):
        raise ValueError(f"Worktree containers have no display name: {resolved_path}")
    assert_never(entry_type)


def sanitize_session_name(name: str, max_length: int = SESSION_NAME_MAX_LENGTH) -> str:
    """
    Turn a display name into a tmux-safe session name.

    Each run of characters outside [A-Za-z0-9_-] becomes "_" and runs of
    "_" collapse to one. Leading and trailing "_" and "-" are dropped so the
    name never reads as a tmux flag, then the result is capped at max_length.
    Applying it to its own output changes nothing.

    Examples:
        "my.project"         -> "my_project"
        "[proj] feature-a"   -> "proj_feature-a"
        "a._b"               -> "a_b"
        "..."                -> "default_session"
    """
    sanitized = _UNDERSCORE_RUN.sub("_", _UNSAFE_RUN.sub("_", name)).strip(_EDGE_CHARS)
    sanitized = sanitized[:max_length].strip(_EDGE_CHARS)
    return sanitized or DEFAULT_SESSION_NAME[:max_length]
