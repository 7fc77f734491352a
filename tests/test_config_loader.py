"""Tests for config loading, validation and template creation."""

import tomllib
from pathlib import Path

import pytest

from tmux_sessionizer import config_loader
from tmux_sessionizer.config_loader import (
    CONFIG_ENV_VAR,
    DEFAULT_CONFIG,
    TEMPLATE,
    atomic_write_file,
    deep_merge,
    default_config_path,
    init_config,
    load_config,
)
from tmux_sessionizer.errors import ErrorType


@pytest.fixture
def config_file(tmp_path):
    return tmp_path / "tmux-sessionizer.toml"


def test_default_path_under_home(isolated_env):
    path = default_config_path()
    assert path.name == "tmux-sessionizer.toml"
    assert path.parent.name == "tmux-sessionizer"
    assert str(path).startswith(str(isolated_env))


def test_env_override(monkeypatch, tmp_path):
    monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "custom.toml"))
    assert default_config_path() == tmp_path / "custom.toml"


def test_missing_file_gives_defaults(config_file):
    result = load_config(config_file)

    assert result.is_ok()
    config = result.value
    assert config.roots == []
    assert config.exclude_patterns == []
    assert config.max_depth == 1
    assert config.include_hidden is False


def test_defaults_are_not_shared(config_file):
    load_config(config_file).value.search_paths.append("/tmp")
    assert DEFAULT_CONFIG["search_paths"] == []


def test_full_config(config_file):
    config_file.write_text(
        'search_paths = ["~/dev", "/srv/work"]\n'
        'additional_paths = ["~/clients"]\n'
        "exclude_patterns = ['/node_modules/', '/\\.venv/']\n"
        "max_depth = 2\n"
        "include_hidden = true\n"
    )

    config = load_config(config_file).value

    assert config.roots == ["~/dev", "/srv/work", "~/clients"]
    assert [p.pattern for p in config.exclude_patterns] == ["/node_modules/", "/\\.venv/"]
    assert config.max_depth == 2
    assert config.include_hidden is True
    assert config.config_path == config_file


def test_partial_config_merges_defaults(config_file):
    config_file.write_text('search_paths = ["~/dev"]\n')

    config = load_config(config_file).value

    assert config.search_paths == ["~/dev"]
    assert config.additional_paths == []
    assert config.max_depth == 1


def test_unknown_keys_are_ignored(config_file):
    config_file.write_text('search_paths = ["~/dev"]\nfuture_option = 3\n')
    assert load_config(config_file).is_ok()


def test_syntax_error_reports_line(config_file):
    config_file.write_text('search_paths = ["~/dev"]\nmax_depth = = 2\ninclude_hidden = true\n')

    result = load_config(config_file)

    assert result.is_err()
    assert result.error.error_type == ErrorType.PARSE_ERROR
    assert result.error.context["line_number"] is not None
    assert "line" in result.error.message.lower()


@pytest.mark.parametrize(
    "content,key",
    [
        ('search_paths = "~/dev"\n', "search_paths"),
        ("additional_paths = [1, 2]\n", "additional_paths"),
        ("max_depth = 0\n", "max_depth"),
        ("max_depth = true\n", "max_depth"),
        ('max_depth = "2"\n', "max_depth"),
        ('include_hidden = "yes"\n', "include_hidden"),
        ("exclude_patterns = ['(unclosed']\n", "exclude_patterns"),
    ],
)
def test_validation_errors(config_file, content, key):
    config_file.write_text(content)

    result = load_config(config_file)

    assert result.is_err()
    assert result.error.error_type == ErrorType.VALIDATION_ERROR
    assert result.error.context["key"] == key


def test_deep_merge():
    base = {"a": 1, "nested": {"x": 1, "y": 2}}
    merged = deep_merge(base, {"nested": {"y": 3}, "b": 2})
    assert merged == {"a": 1, "b": 2, "nested": {"x": 1, "y": 3}}
    assert base["nested"]["y"] == 2


class TestInitConfig:
    def test_writes_template(self, tmp_path):
        path = tmp_path / "sub" / "dir" / "tmux-sessionizer.toml"

        result = init_config(path)

        assert result.value is True
        assert path.read_text() == TEMPLATE
        assert list(path.parent.glob(".*.tmp")) == []

    def test_template_is_valid_and_loads(self, tmp_path):
        path = tmp_path / "tmux-sessionizer.toml"
        init_config(path)

        assert tomllib.loads(TEMPLATE)["search_paths"] == []
        assert load_config(path).is_ok()

    def test_existing_file_is_kept(self, config_file):
        config_file.write_text('search_paths = ["~/mine"]\n')

        result = init_config(config_file)

        assert result.value is False
        assert config_file.read_text() == 'search_paths = ["~/mine"]\n'

    def test_directory_in_the_way(self, config_file):
        config_file.mkdir()
        result = init_config(config_file)
        assert result.error.error_type == ErrorType.VALIDATION_ERROR

    def test_write_failure(self, config_file, monkeypatch):
        def disk_full(path, content):
            raise OSError(f"Disk full - cannot write to {path}")

        monkeypatch.setattr(config_loader, "atomic_write_file", disk_full)

        result = init_config(config_file)

        assert result.error.error_type == ErrorType.FILE_WRITE_ERROR
        assert "Disk full" in result.error.message
        assert not config_file.exists()

    def test_default_location(self, isolated_env):
        result = init_config()
        assert result.value is True
        assert default_config_path().exists()


def test_atomic_write_replaces_content(tmp_path):
    path = tmp_path / "file.txt"
    path.write_text("old")
    atomic_write_file(path, "new")
    assert path.read_text() == "new"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["file.txt", "home"]


def test_config_path_type(config_file):
    assert isinstance(load_config(config_file).value.config_path, Path)
