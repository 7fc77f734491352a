"""Pytest configuration and fixtures for tmux-sessionizer tests."""

import os
import shutil
import subprocess
from pathlib import Path

import pytest
from loguru import logger

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Point HOME, config and git at throwaway locations for every test."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for var in (
        "XDG_CONFIG_HOME",
        "XDG_STATE_HOME",
        "XDG_DATA_HOME",
        "XDG_CACHE_HOME",
        "TMUX",
        "TMUX_SESSIONIZER_CONFIG",
        "GIT_DIR",
        "GIT_WORK_TREE",
        "GIT_COMMON_DIR",
        "GIT_INDEX_FILE",
    ):
        monkeypatch.delenv(var, raising=False)

    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")
    yield home
    # setup_logger() may have added sinks holding files under tmp_path
    logger.remove()


@pytest.fixture
def root(tmp_path):
    """A canonical (symlink-free) scan root."""
    path = Path(os.path.realpath(tmp_path)) / "projects"
    path.mkdir()
    return path


def git(*args, cwd):
    return subprocess.run(
        ["git", *args],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )


def make_repo(path: Path) -> Path:
    """Create a repository with one empty commit."""
    path.mkdir(parents=True, exist_ok=True)
    git("init", "-q", cwd=path)
    git("commit", "-q", "--allow-empty", "-m", "init", cwd=path)
    return path


def add_worktree(repo: Path, path: Path, branch: str) -> Path:
    git("worktree", "add", "-q", "-b", branch, str(path), cwd=repo)
    return path


def make_bare_container(path: Path, source: Path) -> Path:
    """
    Bare clone of source at <path>/.bare with a ".git" pointer file, the
    layout used to keep every branch as a sibling worktree.
    """
    path.mkdir(parents=True)
    git("clone", "-q", "--bare", str(source), str(path / ".bare"), cwd=path.parent)
    (path / ".git").write_text("gitdir: ./.bare\n")
    return path
