# =============================================================================
# Selection Resolver
# =============================================================================

from pathlib import Path
from typing import assert_never

from loguru import logger

from .errors import Error, ErrorType, Result
from .models import (
    DirectoryEntry,
    GitRepository,
    GitWorktree,
    GitWorktreeContainer,
    Plain,
    Selection,
)
from .naming import sanitize_session_name
from .path_utils import canonicalize

# fzf shows the field before the first tab; the whole line comes back on pick
PICKER_SEPARATOR = "\t"


def sort_entries(entries: list[DirectoryEntry]) -> list[DirectoryEntry]:
    return sorted(entries, key=lambda e: (e.display_name, str(e.resolved_path)))


def build_selection(entry: DirectoryEntry) -> Selection:
    """
    Finalize an entry into what the session collaborator receives.

    Raises:
        ValueError: entry is a worktree container.
    """
    entry_type = entry.entry_type
    if isinstance(entry_type, GitWorktreeContainer):
        raise ValueError(f"Worktree containers are not selectable: {entry.resolved_path}")
    if not isinstance(entry_type, (Plain, GitRepository, GitWorktree)):
        assert_never(entry_type)

    return Selection(
        path=entry.resolved_path,
        display_name=entry.display_name,
        session_name=sanitize_session_name(entry.display_name)
    )


# =============================================================================
# Direct mode
# =============================================================================


def _query_as_directory(query: str) -> Path | None:
    """Canonical path of the query when it names an existing directory."""
    try:
        resolved = canonicalize(query)
    except (OSError, ValueError):
        return None
    return resolved if resolved.is_dir() else None


def _exact_matches(entries: list[DirectoryEntry], query: str) -> list[DirectoryEntry]:
    query_dir = _query_as_directory(query)
    return [
        e for e in entries
        if query == e.display_name
        or query == str(e.resolved_path)
        or (query_dir is not None and query_dir == e.resolved_path)
    ]


def _partial_matches(entries: list[DirectoryEntry], query: str) -> list[DirectoryEntry]:
    return [
        e for e in entries
        if query in e.display_name or query in str(e.resolved_path)
    ]


def resolve_direct(entries: list[DirectoryEntry], query: str) -> Result[Selection]:
    """
    Resolve a query string to a single entry.

    Exact matches (display name, canonical path, or a path naming the same
    directory) are tried before partial ones (a substring of the display name
    or of the canonical path). Within the winning tier the match must be
    unique.

    Args:
        entries: Result of scan()
        query: Text the user passed on the command line

    Returns:
        Result with the Selection, or an AMBIGUOUS_SELECTION / NO_MATCH error.
        Ambiguity errors carry the competing display names in
        context["candidates"].
    """
    entries = [e for e in entries if e.is_selectable]

    if query:
        for tier, matcher in (("exact", _exact_matches), ("partial", _partial_matches)):
            matches = matcher(entries, query)
            if len(matches) == 1:
                logger.debug(
                    "Query resolved",
                    operation="resolve_direct",
                    status="success",
                    query=query,
                    tier=tier,
                    resolved=str(matches[0].resolved_path)
                )
                return Result.ok(build_selection(matches[0]))
            if matches:
                return Result.err(Error(
                    error_type=ErrorType.AMBIGUOUS_SELECTION,
                    message=f"'{query}' matches {len(matches)} directories",
                    context={
                        "query": query,
                        "tier": tier,
                        "candidates": [e.display_name for e in sort_entries(matches)],
                    }
                ))

    return Result.err(Error(
        error_type=ErrorType.NO_MATCH,
        message=f"No directory matches '{query}'",
        context={"query": query}
    ))


# =============================================================================
# Picker lines
# =============================================================================


def format_picker_line(entry: DirectoryEntry) -> str:
    return f"{entry.display_name}{PICKER_SEPARATOR}{entry.resolved_path}"


def entry_for_picker_line(entries: list[DirectoryEntry], line: str) -> DirectoryEntry | None:
    """
    Map a line returned by the picker back to its entry.

    Lines are matched whole against the formatted entries, so names that
    themselves contain the separator still map back.
    """
    by_line = {format_picker_line(e): e for e in entries}
    return by_line.get(line.rstrip("\n"))
