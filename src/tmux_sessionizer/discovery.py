# =============================================================================
# Discovery: scan roots into classified, named directory entries
# =============================================================================

import re
import time
import uuid
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from pathlib import Path

from loguru import logger

from .errors import Error, ErrorReport
from .git_classifier import ProbedCandidate, classify, probe_candidate, reachable_worktree_paths
from .models import DirectoryEntry
from .scanner import (
    DEFAULT_MAX_DEPTH,
    ScanCandidate,
    collect_candidates,
    compile_patterns,
    default_worker_count,
    resolve_candidates,
)
from .selection import sort_entries


def _probe_all(
    candidates: list[ScanCandidate],
    executor: ThreadPoolExecutor,
    trace_id: str
) -> tuple[list[ProbedCandidate], list[Error]]:
    probed = []
    errors = []
    for item, error in executor.map(partial(probe_candidate, trace_id=trace_id), candidates):
        probed.append(item)
        if error is not None:
            errors.append(error)
    return probed, errors


def scan(
    roots: Iterable[str | Path],
    excludes: Iterable[str | re.Pattern],
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
    include_hidden: bool = False,
    max_workers: int | None = None
) -> tuple[list[DirectoryEntry], list[Error]]:
    """
    Discover every selectable directory under roots.

    One thread pool serves the whole scan. Workers only return values; the
    calling thread merges them, so no result structure is shared.

    Args:
        roots: Search roots followed by additional roots; earlier roots win
            when two discovered paths resolve to the same directory
        excludes: Regular expressions matched against the discovered and the
            canonical form of each candidate
        max_depth: Levels listed below each root
        include_hidden: Also consider directories whose name starts with "."
        max_workers: Pool size (default: CPU count)

    Returns:
        (entries sorted by display name then path, absorbed warnings)

    Raises:
        re.error: An exclusion pattern string does not compile
    """
    start_time = time.perf_counter()
    trace_id = str(uuid.uuid4())
    patterns = compile_patterns(excludes)
    report = ErrorReport()

    logger.debug(
        "Scan started",
        operation="scan",
        status="started",
        trace_id=trace_id,
        max_depth=max_depth,
        include_hidden=include_hidden
    )

    with ThreadPoolExecutor(max_workers=max_workers or default_worker_count()) as executor:
        candidates, errors = collect_candidates(
            roots, patterns, executor,
            max_depth=max_depth,
            include_hidden=include_hidden,
            trace_id=trace_id
        )
        report.extend_warnings(errors)

        probed, errors = _probe_all(candidates, executor, trace_id)
        report.extend_warnings(errors)

        # Worktrees nested in a scanned repo or holder are one level deeper
        # than the roots reach; they go through the same filters.
        known = {c.resolved_path for c in candidates}
        extra_paths = []
        for item in probed:
            for path in reachable_worktree_paths(item):
                if path not in known:
                    known.add(path)
                    extra_paths.append(path)

        if extra_paths:
            extra, errors = resolve_candidates(extra_paths, patterns, executor, trace_id)
            report.extend_warnings(errors)
            extra_probed, errors = _probe_all(extra, executor, trace_id)
            report.extend_warnings(errors)
            probed.extend(extra_probed)

    entries = sort_entries(classify(probed, trace_id))
    report.log_summary(trace_id)

    duration_ms = int((time.perf_counter() - start_time) * 1000)
    logger.info(
        "Scan complete",
        operation="scan",
        status="success",
        trace_id=trace_id,
        metrics={
            "candidates": len(probed),
            "expanded": len(extra_paths),
            "entries": len(entries),
            "warnings": len(report.warnings),
            "duration_ms": duration_ms
        }
    )
    return entries, report.warnings
