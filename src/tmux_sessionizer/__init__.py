"""Discover project directories and git worktrees, then open them as tmux sessions."""

__version__ = "0.1.0"

from .discovery import scan
from .errors import Error, ErrorType, Result
from .models import (
    DirectoryEntry,
    EntryType,
    GitRepository,
    GitWorktree,
    GitWorktreeContainer,
    Plain,
    Selection,
)
from .selection import build_selection, resolve_direct

__all__ = [
    "DirectoryEntry",
    "EntryType",
    "Error",
    "ErrorType",
    "GitRepository",
    "GitWorktree",
    "GitWorktreeContainer",
    "Plain",
    "Result",
    "Selection",
    "build_selection",
    "resolve_direct",
    "scan",
]
