# =============================================================================
# Directory Scanner
# =============================================================================
# Enumerates candidate directories under the configured roots. Every
# candidate is canonicalized and tested against the exclusion patterns here,
# so nothing excluded ever reaches the git probe.

import os
import re
import time
from collections.abc import Iterable
from concurrent.futures import Executor
from dataclasses import dataclass
from functools import partial
from pathlib import Path

from loguru import logger

from .errors import Error, ErrorType
from .path_utils import canonicalize, dedupe_by, expand_path, is_hidden

DEFAULT_MAX_DEPTH = 1


@dataclass(frozen=True)
class ScanCandidate:
    path: Path
    resolved_path: Path


def default_worker_count() -> int:
    """Pool size for a scan: one worker per available CPU."""
    return os.cpu_count() or 1


def compile_patterns(patterns: Iterable[str | re.Pattern]) -> list[re.Pattern]:
    """Compile exclusion patterns, passing through ones already compiled.

    Raises:
        re.error: A pattern string is not a valid regular expression.
    """
    return [p if isinstance(p, re.Pattern) else re.compile(p) for p in patterns]


def match_exclusion(
    path: Path,
    resolved_path: Path,
    patterns: list[re.Pattern]
) -> re.Pattern | None:
    """Return the first pattern matching either form of the path, if any."""
    original = str(path)
    canonical = str(resolved_path)
    for pattern in patterns:
        if pattern.search(original) or pattern.search(canonical):
            return pattern
    return None


def list_root_children(
    root: str | Path,
    max_depth: int = DEFAULT_MAX_DEPTH,
    include_hidden: bool = False,
    trace_id: str | None = None
) -> tuple[list[Path], list[Error]]:
    """
    List candidate paths under one root, down to max_depth levels.

    Symlinks are listed without being resolved (resolve_candidate decides
    what they point at) and followed when descending. A directory reached
    twice through links is only descended into once.

    Args:
        root: Root directory as configured (may contain ~)
        max_depth: Deepest level to list, 1 = direct children only
        include_hidden: Also list names starting with "."
        trace_id: Correlation ID for log records

    Returns:
        (candidate paths in listing order, UNREADABLE_PATH errors)
    """
    root_path = expand_path(root)
    errors = []

    if not root_path.is_dir():
        errors.append(Error(
            error_type=ErrorType.UNREADABLE_PATH,
            message="Root is not a directory or is inaccessible, skipping",
            context={"path": str(root_path), "trace_id": trace_id}
        ))
        return [], errors

    found = []
    visited = set()
    level = [root_path]

    for depth in range(1, max_depth + 1):
        next_level = []
        for directory in level:
            try:
                real = os.path.realpath(directory)
                if real in visited:
                    continue
                visited.add(real)
                with os.scandir(directory) as it:
                    children = sorted(it, key=lambda e: e.name)
            except OSError as e:
                errors.append(Error(
                    error_type=ErrorType.UNREADABLE_PATH,
                    message="Could not list directory, skipping",
                    context={"path": str(directory), "error": str(e), "trace_id": trace_id},
                    original_exception=e
                ))
                continue

            for child in children:
                child_path = Path(child.path)
                if not include_hidden and is_hidden(child_path):
                    continue
                try:
                    is_link = child.is_symlink()
                    is_dir = child.is_dir()
                except OSError:
                    is_link, is_dir = False, False
                if not (is_dir or is_link):
                    continue
                found.append(child_path)
                if is_dir and depth < max_depth:
                    next_level.append(child_path)
        level = next_level

    logger.debug(
        "Listed root",
        operation="list_root_children",
        status="success",
        trace_id=trace_id,
        root=str(root_path),
        metrics={"candidates": len(found), "errors": len(errors)}
    )
    return found, errors


def resolve_candidate(
    path: Path,
    patterns: list[re.Pattern],
    trace_id: str | None = None
) -> tuple[ScanCandidate | None, Error | None]:
    """
    Canonicalize one candidate and apply the exclusion patterns.

    Returns:
        (candidate, None) when kept, (None, error) when the path cannot be
        resolved, (None, None) when excluded or not a directory.
    """
    try:
        resolved = canonicalize(path)
    except OSError as e:
        return None, Error(
            error_type=ErrorType.UNREADABLE_PATH,
            message="Could not canonicalize path, skipping",
            context={"path": str(path), "error": str(e), "trace_id": trace_id},
            original_exception=e
        )

    if not resolved.is_dir():
        logger.debug(
            "Skipping non-directory",
            operation="resolve_candidate",
            status="skip",
            trace_id=trace_id,
            path=str(path),
            resolved=str(resolved)
        )
        return None, None

    pattern = match_exclusion(path, resolved, patterns)
    if pattern is not None:
        logger.debug(
            "Skipping excluded path",
            operation="resolve_candidate",
            status="excluded",
            trace_id=trace_id,
            path=str(path),
            resolved=str(resolved),
            pattern=pattern.pattern
        )
        return None, None

    return ScanCandidate(path=path, resolved_path=resolved), None


def resolve_candidates(
    paths: list[Path],
    patterns: list[re.Pattern],
    executor: Executor,
    trace_id: str | None = None
) -> tuple[list[ScanCandidate], list[Error]]:
    """Resolve paths in parallel; results keep the order of paths."""
    candidates = []
    errors = []
    for candidate, error in executor.map(
        partial(resolve_candidate, patterns=patterns, trace_id=trace_id),
        paths
    ):
        if error is not None:
            errors.append(error)
        elif candidate is not None:
            candidates.append(candidate)
    return candidates, errors


def collect_candidates(
    roots: Iterable[str | Path],
    patterns: list[re.Pattern],
    executor: Executor,
    max_depth: int = DEFAULT_MAX_DEPTH,
    include_hidden: bool = False,
    trace_id: str | None = None
) -> tuple[list[ScanCandidate], list[Error]]:
    """
    Enumerate, canonicalize, filter and deduplicate candidates for all roots.

    Roots are listed in parallel, then every listed path is resolved in
    parallel. Results are merged on the calling thread in root order, so the
    first occurrence of a canonical path is the one reported.

    Args:
        roots: Search and additional roots, in precedence order
        patterns: Compiled exclusion patterns
        executor: Shared worker pool for this scan
        max_depth: Listing depth below each root
        include_hidden: Also list hidden directories
        trace_id: Correlation ID for log records

    Returns:
        (unique candidates, UNREADABLE_PATH errors)
    """
    start_time = time.perf_counter()
    roots = list(roots)
    errors = []

    paths = []
    for root_paths, root_errors in executor.map(
        partial(
            list_root_children,
            max_depth=max_depth,
            include_hidden=include_hidden,
            trace_id=trace_id
        ),
        roots
    ):
        paths.extend(root_paths)
        errors.extend(root_errors)

    resolved, resolve_errors = resolve_candidates(paths, patterns, executor, trace_id)
    errors.extend(resolve_errors)

    unique, duplicates = dedupe_by(resolved, key=lambda c: c.resolved_path)
    for duplicate in duplicates:
        logger.debug(
            "Skipping duplicate resolved path",
            operation="collect_candidates",
            status="duplicate",
            trace_id=trace_id,
            path=str(duplicate.path),
            resolved=str(duplicate.resolved_path)
        )

    duration_ms = int((time.perf_counter() - start_time) * 1000)
    logger.debug(
        "Candidate collection complete",
        operation="collect_candidates",
        status="success",
        trace_id=trace_id,
        metrics={
            "roots": len(roots),
            "listed": len(paths),
            "candidates": len(unique),
            "duplicates_removed": len(duplicates),
            "errors": len(errors),
            "duration_ms": duration_ms
        }
    )
    return unique, errors
