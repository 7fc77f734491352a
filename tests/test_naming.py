"""Tests for display names and tmux session names."""

import re
from pathlib import Path

import pytest

from tmux_sessionizer.models import GitRepository, GitWorktree, GitWorktreeContainer, Plain
from tmux_sessionizer.naming import (
    DEFAULT_SESSION_NAME,
    SESSION_NAME_MAX_LENGTH,
    display_name_for,
    sanitize_session_name,
)

SAFE = re.compile(r"^[A-Za-z0-9_-]+$")


class TestDisplayName:
    def test_plain_uses_basename(self):
        assert display_name_for(Path("/src/project-a"), Plain()) == "project-a"

    def test_repository_uses_basename(self):
        assert display_name_for(Path("/src/proj"), GitRepository()) == "proj"

    def test_worktree_is_prefixed_with_main(self):
        entry_type = GitWorktree(main_worktree=Path("/src/proj"))
        assert display_name_for(Path("/src/feature-a"), entry_type) == "[proj] feature-a"

    def test_worktree_format(self):
        entry_type = GitWorktree(main_worktree=Path("/x/my_bare_container"))
        name = display_name_for(Path("/x/my_bare_container/feature_a"), entry_type)
        assert re.fullmatch(r"\[.+\] .+", name)

    def test_container_has_no_display_name(self):
        with pytest.raises(ValueError):
            display_name_for(Path("/src/proj"), GitWorktreeContainer())


class TestSanitize:
    @pytest.mark.parametrize(
        "display_name,expected",
        [
            ("proj", "proj"),
            ("my.project", "my_project"),
            ("a:b", "a_b"),
            ("[proj] feature-a", "proj_feature-a"),
            ("two  spaces", "two_spaces"),
            ("a.:.b", "a_b"),
            ("-lead-", "lead"),
            ("under_score", "under_score"),
            ("a._b", "a_b"),
            ("a__b", "a_b"),
            ("a_-_b", "a_-_b"),
            ("ünïcode", "n_code"),
        ],
    )
    def test_sanitize(self, display_name, expected):
        assert sanitize_session_name(display_name) == expected

    @pytest.mark.parametrize("display_name", ["", "...", "[] ", "---", "___"])
    def test_empty_result_falls_back(self, display_name):
        assert sanitize_session_name(display_name) == DEFAULT_SESSION_NAME

    def test_truncates(self):
        name = sanitize_session_name("x" * 200)
        assert len(name) == SESSION_NAME_MAX_LENGTH

    def test_truncation_does_not_leave_trailing_separator(self):
        name = sanitize_session_name("a" * (SESSION_NAME_MAX_LENGTH - 1) + ".b")
        assert name == "a" * (SESSION_NAME_MAX_LENGTH - 1)

    @pytest.mark.parametrize(
        "display_name",
        [
            "proj",
            "[proj] feature-a",
            "my.project:v2",
            "  spaced  out  ",
            "...",
            "x" * 100 + "." + "y" * 10,
            "emoji 🚀 dir",
            "a._b",
        ],
    )
    def test_safe_and_idempotent(self, display_name):
        once = sanitize_session_name(display_name)
        assert SAFE.match(once)
        assert sanitize_session_name(once) == once
