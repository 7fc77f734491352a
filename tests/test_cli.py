"""Tests for the tmux-sessionizer command line."""

import pytest

from tmux_sessionizer import cli
from tmux_sessionizer.errors import Error, ErrorType, Result


@pytest.fixture
def opened(monkeypatch):
    """Capture selections handed to the session collaborator."""
    selections = []

    def fake_open(selection):
        selections.append(selection)
        return Result.ok(None)

    monkeypatch.setattr(cli, "open_session", fake_open)
    return selections


@pytest.fixture
def config(tmp_path, root):
    path = tmp_path / "config.toml"
    path.write_text(f'search_paths = ["{root}"]\nexclude_patterns = ["/node_modules/"]\n')
    return path


def test_init_config(tmp_path, capsys):
    path = tmp_path / "new.toml"

    assert cli.main(["--init-config", "-c", str(path)]) == 0
    assert path.exists()
    assert "Created config file" in capsys.readouterr().out

    assert cli.main(["--init-config", "-c", str(path)]) == 0
    assert "already exists" in capsys.readouterr().out


def test_no_roots_configured(tmp_path, capsys):
    assert cli.main(["-c", str(tmp_path / "missing.toml")]) == 1
    assert "No search paths configured" in capsys.readouterr().err


def test_config_error(tmp_path, capsys):
    path = tmp_path / "bad.toml"
    path.write_text("search_paths = [\n")
    assert cli.main(["-c", str(path)]) == 1
    assert "Error" in capsys.readouterr().err


def test_list(root, config, capsys):
    (root / "project-b").mkdir()
    (root / "project-a").mkdir()

    assert cli.main(["-c", str(config), "--list"]) == 0

    out = capsys.readouterr().out.splitlines()
    assert out == [f"project-a\t{root}/project-a", f"project-b\t{root}/project-b"]


def test_env_config(root, config, monkeypatch, capsys):
    (root / "proj").mkdir()
    monkeypatch.setenv("TMUX_SESSIONIZER_CONFIG", str(config))

    assert cli.main(["--list"]) == 0
    assert "proj\t" in capsys.readouterr().out


def test_direct_selection(root, config, opened):
    (root / "proj").mkdir()
    (root / "proj-old").mkdir()

    assert cli.main(["-c", str(config), "proj"]) == 0

    assert [s.session_name for s in opened] == ["proj"]
    assert opened[0].path == root / "proj"


def test_direct_selection_sanitizes(root, config, opened):
    (root / "my.project").mkdir()

    assert cli.main(["-c", str(config), "my.project"]) == 0
    assert opened[0].session_name == "my_project"


def test_ambiguous_selection(root, config, opened, capsys):
    (root / "proj-a").mkdir()
    (root / "proj-b").mkdir()

    assert cli.main(["-c", str(config), "proj"]) == 1

    err = capsys.readouterr().err
    assert "matches 2 directories" in err
    assert "  proj-a" in err
    assert "  proj-b" in err
    assert opened == []


def test_no_match(root, config, opened, capsys):
    (root / "proj").mkdir()
    assert cli.main(["-c", str(config), "zeta"]) == 1
    assert "No directory matches" in capsys.readouterr().err
    assert opened == []


def test_picker_selection(root, config, opened, monkeypatch):
    (root / "proj").mkdir()
    monkeypatch.setattr(cli, "pick_entry", lambda entries: Result.ok(entries[0]))

    assert cli.main(["-c", str(config)]) == 0
    assert opened[0].display_name == "proj"


def test_picker_cancel(root, config, opened, monkeypatch):
    (root / "proj").mkdir()
    monkeypatch.setattr(cli, "pick_entry", lambda entries: Result.ok(None))

    assert cli.main(["-c", str(config)]) == 0
    assert opened == []


def test_picker_error(root, config, opened, monkeypatch, capsys):
    (root / "proj").mkdir()
    monkeypatch.setattr(
        cli,
        "pick_entry",
        lambda entries: Result.err(Error(error_type=ErrorType.PICKER_ERROR, message="fzf exploded")),
    )

    assert cli.main(["-c", str(config)]) == 1
    assert "fzf exploded" in capsys.readouterr().err


def test_nothing_found_skips_picker(root, config, opened, monkeypatch, capsys):
    picks = []
    monkeypatch.setattr(cli, "pick_entry", lambda entries: picks.append(entries))

    assert cli.main(["-c", str(config)]) == 0

    assert picks == []
    assert opened == []
    assert "No project directories found" in capsys.readouterr().err


def test_session_error(root, config, monkeypatch, capsys):
    (root / "proj").mkdir()
    monkeypatch.setattr(
        cli,
        "open_session",
        lambda selection: Result.err(Error(error_type=ErrorType.SESSION_ERROR, message="tmux broke")),
    )

    assert cli.main(["-c", str(config), "proj"]) == 1
    assert "tmux broke" in capsys.readouterr().err


def test_warnings_do_not_fail_the_run(root, config, opened):
    (root / "dangling").symlink_to(root / "gone")
    (root / "proj").mkdir()

    assert cli.main(["-c", str(config), "proj"]) == 0


def test_debug_flag_logs_to_stderr(root, config, capsys):
    (root / "proj").mkdir()
    assert cli.main(["-d", "-c", str(config), "--list"]) == 0
    assert '"operation": "scan"' in capsys.readouterr().err
