# =============================================================================
# Directory Entry Model
# =============================================================================
# Entry types form a closed set. Consumers branch on all four variants and
# finish with typing.assert_never so a new variant fails type checking.

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Plain:
    """A directory with no git metadata of its own."""


@dataclass(frozen=True)
class GitRepository:
    """A standalone repository (normal or bare)."""


@dataclass(frozen=True)
class GitWorktree:
    """A linked worktree; main_worktree is the owning repository's canonical path."""

    main_worktree: Path


@dataclass(frozen=True)
class GitWorktreeContainer:
    """A directory represented by its linked worktrees. Never emitted."""


EntryType = Plain | GitRepository | GitWorktree | GitWorktreeContainer


@dataclass(frozen=True)
class DirectoryEntry:
    path: Path
    resolved_path: Path
    entry_type: EntryType
    display_name: str = ""

    @property
    def parent_path(self) -> Path | None:
        if isinstance(self.entry_type, GitWorktree):
            return self.entry_type.main_worktree
        return None

    @property
    def is_selectable(self) -> bool:
        return not isinstance(self.entry_type, GitWorktreeContainer)


@dataclass(frozen=True)
class Selection:
    path: Path
    display_name: str
    session_name: str
