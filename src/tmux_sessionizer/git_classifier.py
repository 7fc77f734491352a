# =============================================================================
# Git Classifier
# =============================================================================
# Repositories are probed through the git CLI. Every probe pins
# GIT_CEILING_DIRECTORIES to the candidate's parent so a plain directory that
# happens to live inside a checkout is never mistaken for that checkout.

import os
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from .errors import Error, ErrorType, Result
from .models import (
    DirectoryEntry,
    EntryType,
    GitRepository,
    GitWorktree,
    GitWorktreeContainer,
    Plain,
)
from .naming import display_name_for
from .path_utils import canonicalize
from .scanner import ScanCandidate

GIT_TIMEOUT_SECONDS = 10

# Variables that would point git at some other repository than the candidate
_REPO_LOCATING_VARS = (
    "GIT_DIR",
    "GIT_WORK_TREE",
    "GIT_COMMON_DIR",
    "GIT_INDEX_FILE",
    "GIT_OBJECT_DIRECTORY",
    "GIT_ALTERNATE_OBJECT_DIRECTORIES",
    "GIT_NAMESPACE",
    "GIT_DISCOVERY_ACROSS_FILESYSTEM",
)


@dataclass(frozen=True)
class GitProbe:
    """What git reports for a repository rooted exactly at a candidate."""

    git_dir: Path
    common_dir: Path
    is_bare: bool
    linked_worktrees: tuple[Path, ...] = ()

    @property
    def is_linked_worktree(self) -> bool:
        # A linked worktree's git dir is <common>/worktrees/<name>
        return self.git_dir != self.common_dir


@dataclass(frozen=True)
class ProbedCandidate:
    candidate: ScanCandidate
    probe: GitProbe | None = None
    holder_children: tuple[Path, ...] = ()


# =============================================================================
# git CLI helpers
# =============================================================================


def git_environment(path: Path) -> dict[str, str]:
    env = {k: v for k, v in os.environ.items() if k not in _REPO_LOCATING_VARS}
    env["GIT_CEILING_DIRECTORIES"] = str(path.parent)
    env["LC_ALL"] = "C"  # stable stderr for "not a git repository"
    return env


def run_git(args: list[str], cwd: Path, timeout: int = GIT_TIMEOUT_SECONDS) -> subprocess.CompletedProcess:
    """
    Run git in cwd with repository discovery confined to cwd.

    Raises:
        FileNotFoundError: git is not installed
        subprocess.TimeoutExpired: git did not answer in time
        OSError: cwd is not accessible
    """
    return subprocess.run(
        ["git", *args],
        cwd=cwd,
        env=git_environment(cwd),
        capture_output=True,
        text=True,
        timeout=timeout,
        check=False,  # Non-zero exits are classified by the caller
    )


def has_git_marker(path: Path) -> bool:
    """Cheap pre-check: a .git entry, or the HEAD/objects/refs layout of a bare repo."""
    try:
        if (path / ".git").exists():
            return True
        return (
            (path / "HEAD").is_file()
            and (path / "objects").is_dir()
            and (path / "refs").is_dir()
        )
    except OSError:
        return False


def read_gitdir_pointer(path: Path) -> Path | None:
    """
    Read the target of a ".git" pointer file.

    Linked worktrees (and submodules) carry a ".git" file holding
    "gitdir: <admin dir>" instead of a ".git" directory.

    Returns:
        The admin directory the pointer names (relative targets are taken
        from path), or None when path has no readable pointer file.
    """
    git_file = path / ".git"
    try:
        if not git_file.is_file():
            return None
        first_line = git_file.read_text(errors="replace").splitlines()[0]
    except (OSError, IndexError):
        return None

    if not first_line.startswith("gitdir:"):
        return None
    target = first_line[len("gitdir:"):].strip()
    if not target:
        return None
    return Path(os.path.normpath(path / target))


def main_path_for_common_dir(common_dir: Path) -> Path:
    """Repository root for a common git dir: <x>/.git -> <x>, a bare repo is its own root."""
    if common_dir.name == ".git":
        return common_dir.parent
    return common_dir


# =============================================================================
# Worktree listing
# =============================================================================


def parse_worktree_porcelain(output: str) -> list[dict]:
    """
    Parse `git worktree list --porcelain` output.

    Format (one block per worktree, blank line between blocks):
        worktree /path
        HEAD sha
        branch refs/heads/name      (or "detached", or "bare")
        prunable gitdir file points to non-existent location   (optional)

    Returns:
        List of dicts: {"path", "branch", "detached", "bare", "prunable"},
        main worktree first.
    """
    worktrees = []
    current = None

    for line in output.split("\n"):
        if line.startswith("worktree "):
            if current is not None:
                worktrees.append(current)
            current = {
                "path": line[len("worktree "):],
                "branch": None,
                "detached": False,
                "bare": False,
                "prunable": False,
            }
        elif current is None:
            continue
        elif line.startswith("branch "):
            current["branch"] = line[len("branch "):].removeprefix("refs/heads/")
        elif line == "detached":
            current["detached"] = True
        elif line == "bare":
            current["bare"] = True
        elif line.startswith("prunable"):
            # Directory is gone; git will prune the admin entry
            current["prunable"] = True

    if current is not None:
        worktrees.append(current)

    return worktrees


def list_linked_worktrees(repo_path: Path, trace_id: str | None = None) -> Result[tuple[Path, ...]]:
    """
    Canonical paths of a repository's linked worktrees (main worktree excluded).

    Prunable worktrees and listed paths that no longer resolve are skipped.
    """
    try:
        result = run_git(["worktree", "list", "--porcelain"], cwd=repo_path)
    except (OSError, subprocess.TimeoutExpired) as e:
        return Result.err(_probe_error("Failed to list worktrees", repo_path, e, trace_id))

    if result.returncode != 0:
        return Result.err(Error(
            error_type=ErrorType.GIT_PROBE_FAILURE,
            message="Failed to list worktrees",
            context={
                "path": str(repo_path),
                "returncode": result.returncode,
                "stderr": result.stderr.strip(),
                "trace_id": trace_id,
            }
        ))

    linked = []
    for worktree in parse_worktree_porcelain(result.stdout)[1:]:
        if worktree["prunable"]:
            continue
        try:
            linked.append(canonicalize(worktree["path"]))
        except OSError:
            logger.debug(
                "Skipping unresolvable worktree path",
                operation="list_linked_worktrees",
                status="skip",
                trace_id=trace_id,
                repo=str(repo_path),
                worktree=worktree["path"]
            )

    # git lists linked worktrees in directory order
    return Result.ok(tuple(sorted(linked)))


# =============================================================================
# Probing
# =============================================================================


def _probe_error(message: str, path: Path, exc: Exception, trace_id: str | None) -> Error:
    if isinstance(exc, FileNotFoundError) and exc.filename in (None, "git"):
        message = f"{message}: git command not found"
    return Error(
        error_type=ErrorType.GIT_PROBE_FAILURE,
        message=message,
        context={"path": str(path), "error": str(exc), "trace_id": trace_id},
        original_exception=exc
    )


def probe_repository(path: Path, trace_id: str | None = None) -> Result[GitProbe | None]:
    """
    Open path as a git repository.

    Args:
        path: Canonical candidate directory
        trace_id: Correlation ID for log records

    Returns:
        Ok(None) when path is not a repository root, Ok(GitProbe) when it is
        one, Err(GIT_PROBE_FAILURE) when its metadata could not be read.
    """
    if not has_git_marker(path):
        return Result.ok(None)

    try:
        result = run_git(
            ["rev-parse", "--git-dir", "--git-common-dir", "--is-bare-repository"],
            cwd=path
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        return Result.err(_probe_error("Failed to open repository", path, e, trace_id))

    if result.returncode != 0:
        if "not a git repository" in result.stderr.lower():
            logger.debug(
                "Git marker present but not a repository",
                operation="probe_repository",
                status="not_a_repo",
                trace_id=trace_id,
                path=str(path)
            )
            return Result.ok(None)
        return Result.err(Error(
            error_type=ErrorType.GIT_PROBE_FAILURE,
            message="Failed to open repository",
            context={
                "path": str(path),
                "returncode": result.returncode,
                "stderr": result.stderr.strip(),
                "trace_id": trace_id,
            }
        ))

    lines = result.stdout.strip().split("\n")
    if len(lines) != 3:
        return Result.err(Error(
            error_type=ErrorType.GIT_PROBE_FAILURE,
            message="Unexpected rev-parse output",
            context={"path": str(path), "stdout": result.stdout, "trace_id": trace_id}
        ))

    try:
        # Relative answers are relative to cwd; absolute ones survive the join
        git_dir = canonicalize(path / lines[0])
        common_dir = canonicalize(path / lines[1])
    except OSError as e:
        return Result.err(_probe_error("Could not resolve git directory", path, e, trace_id))

    probe = GitProbe(
        git_dir=git_dir,
        common_dir=common_dir,
        is_bare=lines[2].strip() == "true"
    )

    if not probe.is_linked_worktree:
        listing = list_linked_worktrees(path, trace_id)
        if listing.is_err():
            return Result.err(listing.error)
        probe = GitProbe(
            git_dir=probe.git_dir,
            common_dir=probe.common_dir,
            is_bare=probe.is_bare,
            linked_worktrees=listing.value
        )

    logger.debug(
        "Repository probed",
        operation="probe_repository",
        status="success",
        trace_id=trace_id,
        path=str(path),
        git_dir=str(probe.git_dir),
        common_dir=str(probe.common_dir),
        is_bare=probe.is_bare,
        metrics={"linked_worktrees": len(probe.linked_worktrees)}
    )
    return Result.ok(probe)


def worktree_holder_children(path: Path, trace_id: str | None = None) -> tuple[Path, ...]:
    """
    Children of a plain directory that only holds worktrees of one repository.

    Uses the .git pointer files alone: every direct child must be a
    directory whose pointer leads into the same <common>/worktrees/ area.
    The caller confirms the relationship once the children are probed.

    Returns:
        Canonical child paths, or () when path is not such a holder.
    """
    try:
        with os.scandir(path) as it:
            children = sorted(it, key=lambda e: e.name)
    except OSError:
        return ()

    if not children:
        return ()

    resolved_children = []
    admin_areas = set()
    for child in children:
        child_path = Path(child.path)
        try:
            if not child.is_dir():
                return ()
            resolved = canonicalize(child_path)
        except OSError:
            return ()
        pointer = read_gitdir_pointer(resolved)
        if pointer is None or pointer.parent.name != "worktrees":
            return ()
        admin_areas.add(os.path.realpath(pointer.parent))
        resolved_children.append(resolved)

    if len(admin_areas) != 1:
        return ()

    logger.debug(
        "Worktree holder detected",
        operation="worktree_holder_children",
        status="candidate",
        trace_id=trace_id,
        path=str(path),
        metrics={"children": len(resolved_children)}
    )
    return tuple(resolved_children)


def probe_candidate(candidate: ScanCandidate, trace_id: str | None = None) -> tuple[ProbedCandidate, Error | None]:
    """
    Probe one candidate. A probe failure degrades it to a plain directory.

    Returns:
        (probed candidate, GIT_PROBE_FAILURE error or None)
    """
    result = probe_repository(candidate.resolved_path, trace_id)
    if result.is_err():
        return ProbedCandidate(candidate=candidate), result.error

    if result.value is not None:
        return ProbedCandidate(candidate=candidate, probe=result.value), None

    return ProbedCandidate(
        candidate=candidate,
        holder_children=worktree_holder_children(candidate.resolved_path, trace_id)
    ), None


def reachable_worktree_paths(probed: ProbedCandidate) -> tuple[Path, ...]:
    """
    Extra candidates reachable through an already-probed candidate.

    A repository contributes the linked worktrees checked out directly inside
    it (the bare repo + ".git" pointer file layout); a worktree holder
    contributes its children.
    """
    if probed.probe is not None:
        root = probed.candidate.resolved_path
        return tuple(wt for wt in probed.probe.linked_worktrees if wt.parent == root)
    return probed.holder_children


# =============================================================================
# Relationship resolution
# =============================================================================


def classify(probed: list[ProbedCandidate], trace_id: str | None = None) -> list[DirectoryEntry]:
    """
    Turn probe results into entries, resolving worktree ownership.

    - A linked worktree belongs to the scanned repository sharing its common
      git dir, or else to the root derived from that common dir.
    - A repository whose linked worktrees are all present as worktree
      entries becomes a container and is dropped.
    - A worktree holder whose children all resolved to worktrees of one
      repository becomes a container and is dropped.

    Returns:
        Entries in input order, containers excluded.
    """
    start_time = time.perf_counter()

    repo_by_common_dir: dict[Path, Path] = {}
    for item in probed:
        if item.probe is not None and not item.probe.is_linked_worktree:
            repo_by_common_dir.setdefault(item.probe.common_dir, item.candidate.resolved_path)

    worktree_mains: dict[Path, Path] = {}
    for item in probed:
        if item.probe is not None and item.probe.is_linked_worktree:
            common_dir = item.probe.common_dir
            worktree_mains[item.candidate.resolved_path] = repo_by_common_dir.get(
                common_dir, main_path_for_common_dir(common_dir)
            )

    entries = []
    containers = 0
    for item in probed:
        entry_type = _entry_type_for(item, worktree_mains)
        if isinstance(entry_type, GitWorktreeContainer):
            containers += 1
            logger.debug(
                "Suppressing worktree container",
                operation="classify",
                status="container",
                trace_id=trace_id,
                path=str(item.candidate.resolved_path)
            )
            continue
        entries.append(DirectoryEntry(
            path=item.candidate.path,
            resolved_path=item.candidate.resolved_path,
            entry_type=entry_type,
            display_name=display_name_for(item.candidate.resolved_path, entry_type)
        ))

    duration_ms = int((time.perf_counter() - start_time) * 1000)
    logger.debug(
        "Classification complete",
        operation="classify",
        status="success",
        trace_id=trace_id,
        metrics={
            "entries": len(entries),
            "worktrees": len(worktree_mains),
            "containers_suppressed": containers,
            "duration_ms": duration_ms
        }
    )
    return entries


def _entry_type_for(item: ProbedCandidate, worktree_mains: dict[Path, Path]) -> EntryType:
    resolved = item.candidate.resolved_path
    probe = item.probe

    if probe is None:
        children = item.holder_children
        if children and all(child in worktree_mains for child in children):
            if len({worktree_mains[child] for child in children}) == 1:
                return GitWorktreeContainer()
        return Plain()

    if probe.is_linked_worktree:
        return GitWorktree(main_worktree=worktree_mains[resolved])

    linked = probe.linked_worktrees
    if linked and all(wt in worktree_mains for wt in linked):
        return GitWorktreeContainer()
    return GitRepository()
