# =============================================================================
# Configuration Loading
# =============================================================================

import copy
import errno
import os
import re
import tempfile
import time
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

import platformdirs
from loguru import logger

from .errors import Error, ErrorType, Result
from .logging_config import APP_NAME
from .scanner import DEFAULT_MAX_DEPTH

CONFIG_ENV_VAR = "TMUX_SESSIONIZER_CONFIG"
CONFIG_FILENAME = "tmux-sessionizer.toml"

# Safe values that work without a user config; no roots means nothing to
# scan until the user names some
DEFAULT_CONFIG = {
    "search_paths": [],
    "additional_paths": [],
    "exclude_patterns": [],
    "max_depth": DEFAULT_MAX_DEPTH,
    "include_hidden": False,
}


def default_config_path() -> Path:
    """
    Config file location.

    $TMUX_SESSIONIZER_CONFIG wins; otherwise the platform config dir:
    Linux: ~/.config/tmux-sessionizer/tmux-sessionizer.toml
    macOS: ~/Library/Application Support/tmux-sessionizer/tmux-sessionizer.toml
    """
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path(platformdirs.user_config_dir(appname=APP_NAME)) / CONFIG_FILENAME


@dataclass
class SessionizerConfig:
    search_paths: list[str] = field(default_factory=list)
    additional_paths: list[str] = field(default_factory=list)
    exclude_patterns: list[re.Pattern] = field(default_factory=list)
    max_depth: int = DEFAULT_MAX_DEPTH
    include_hidden: bool = False
    config_path: Path | None = None

    @property
    def roots(self) -> list[str]:
        """Search paths first, so they win deduplication ties."""
        return [*self.search_paths, *self.additional_paths]


def extract_toml_error_context(error: tomllib.TOMLDecodeError, file_path: Path) -> dict:
    """
    Extract line context from TOML parse error.

    Args:
        error: The TOMLDecodeError exception
        file_path: Path to the TOML file

    Returns:
        Dict with line_number, line_content, and formatted_message
    """
    error_str = str(error)
    line_number = getattr(error, "lineno", None)
    line_content = None

    if line_number is None:
        # Older tomllib only reports "(at line 15, column 3)" in the message
        line_match = re.search(r"line\s+(\d+)", error_str, re.IGNORECASE)
        if line_match:
            line_number = int(line_match.group(1))

    if line_number:
        try:
            lines = file_path.read_text().splitlines()
            if 0 < line_number <= len(lines):
                line_content = lines[line_number - 1].rstrip()
        except OSError:
            pass

    if line_number:
        formatted = f"Error on line {line_number}"
        if line_content:
            display_line = line_content[:50] + "..." if len(line_content) > 50 else line_content
            formatted += f": {display_line}"
        formatted += f"\n\nDetails: {error_str}"
    else:
        formatted = f"TOML parse error: {error_str}"

    return {
        "line_number": line_number,
        "line_content": line_content,
        "formatted_message": formatted,
        "raw_error": error_str
    }


def deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base dictionary."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _validation_error(message: str, config_path: Path, **context) -> Result[SessionizerConfig]:
    return Result.err(Error(
        error_type=ErrorType.VALIDATION_ERROR,
        message=message,
        context={"config_path": str(config_path), **context}
    ))


def validate(raw: dict, config_path: Path) -> Result[SessionizerConfig]:
    """
    Check types and compile exclusion patterns.

    Unknown keys are ignored so older binaries accept newer files.
    """
    for key in ("search_paths", "additional_paths", "exclude_patterns"):
        value = raw[key]
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            return _validation_error(f"'{key}' must be a list of strings", config_path, key=key)

    max_depth = raw["max_depth"]
    # bool is an int subclass; "max_depth = true" is still a mistake
    if isinstance(max_depth, bool) or not isinstance(max_depth, int) or max_depth < 1:
        return _validation_error(
            "'max_depth' must be an integer of at least 1", config_path, key="max_depth"
        )

    if not isinstance(raw["include_hidden"], bool):
        return _validation_error(
            "'include_hidden' must be true or false", config_path, key="include_hidden"
        )

    patterns = []
    for pattern in raw["exclude_patterns"]:
        try:
            patterns.append(re.compile(pattern))
        except re.error as e:
            return _validation_error(
                f"Invalid exclude pattern '{pattern}': {e}",
                config_path,
                key="exclude_patterns",
                pattern=pattern
            )

    return Result.ok(SessionizerConfig(
        search_paths=list(raw["search_paths"]),
        additional_paths=list(raw["additional_paths"]),
        exclude_patterns=patterns,
        max_depth=max_depth,
        include_hidden=raw["include_hidden"],
        config_path=config_path
    ))


def load_config(config_path: Path | None = None) -> Result[SessionizerConfig]:
    """
    Load configuration from TOML file with defaults fallback.

    Args:
        config_path: Explicit file (default: default_config_path())

    Returns:
        Result[SessionizerConfig]: Ok with merged config (defaults when the
        file does not exist), or Err with PARSE_ERROR / VALIDATION_ERROR
    """
    start_time = time.perf_counter()
    config_path = config_path or default_config_path()
    logger.debug(
        "Loading config from path",
        operation="load_config",
        status="started",
        config_path=str(config_path)
    )

    if not config_path.exists():
        logger.debug(
            "Config file not found, using defaults",
            operation="load_config",
            status="defaults",
            config_path=str(config_path)
        )
        return validate(copy.deepcopy(DEFAULT_CONFIG), config_path)

    try:
        with open(config_path, "rb") as f:
            user_config = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        error_context = extract_toml_error_context(e, config_path)
        logger.error(
            "Invalid TOML syntax in configuration file",
            operation="load_config",
            status="failed",
            file=str(config_path),
            line_number=error_context["line_number"],
            line_content=error_context["line_content"],
            error=error_context["formatted_message"]
        )
        return Result.err(Error(
            error_type=ErrorType.PARSE_ERROR,
            message=error_context["formatted_message"],
            context={"config_path": str(config_path), "line_number": error_context["line_number"]},
            original_exception=e
        ))
    except OSError as e:
        return Result.err(Error(
            error_type=ErrorType.FILE_NOT_FOUND,
            message=f"Cannot read config file: {config_path}",
            context={"config_path": str(config_path), "error": str(e)},
            original_exception=e
        ))

    result = validate(deep_merge(copy.deepcopy(DEFAULT_CONFIG), user_config), config_path)
    if result.is_err():
        logger.error(
            result.error.message,
            operation="load_config",
            status="invalid",
            file=str(config_path)
        )
        return result

    duration_ms = int((time.perf_counter() - start_time) * 1000)
    logger.debug(
        "Config loaded successfully",
        operation="load_config",
        status="success",
        config_path=str(config_path),
        metrics={"roots": len(result.value.roots), "duration_ms": duration_ms}
    )
    return result


# =============================================================================
# Config template
# =============================================================================

TEMPLATE = """\
# tmux-sessionizer configuration
#
# Paths starting with '~' are expanded to your home directory.

# --- Search Paths ---
#
# Directories whose children are offered as projects.
#
# search_paths = [
#   "~/dev",
#   "~/workspaces",
# ]
search_paths = []


# --- Additional Paths ---
#
# Extra roots, scanned the same way. When two roots reach the same
# directory, the search_paths entry is the one reported.
#
# additional_paths = [
#   "~/clients",
#   "/mnt/shared/team-projects",
# ]
additional_paths = []


# --- Exclusion Patterns ---
#
# Regular expressions matched against the full path of each candidate, both
# as discovered and with symlinks resolved. Escape regex characters ('.'
# should be '\\.'). Literal strings are easiest in single quotes.
#
# exclude_patterns = [
#   '/node_modules/',
#   '/target/',
#   '/vendor/',
#   '/__pycache__/',
#   '/\\.venv/',
# ]
exclude_patterns = []


# --- Depth ---
#
# How many levels below each root are offered (1 = direct children only).
# Worktrees checked out inside a scanned repository are found either way.
max_depth = 1


# --- Hidden directories ---
#
# Offer directories whose name starts with '.'.
include_hidden = false
"""


def atomic_write_file(path: Path, content: str) -> None:
    """
    Write file atomically using temp file → fsync → rename pattern.

    Args:
        path: Target file path
        content: Content to write

    Raises:
        OSError: If write fails (including disk full - errno.ENOSPC)
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    temp_fd, temp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp"
    )

    try:
        with os.fdopen(temp_fd, "w") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())

        os.rename(temp_path, path)

        logger.debug(
            "Atomic file write successful",
            operation="atomic_write_file",
            path=str(path)
        )

    except OSError as e:
        try:
            os.unlink(temp_path)
        except OSError:
            pass

        if e.errno == errno.ENOSPC:
            raise OSError(f"Disk full - cannot write to {path}") from e
        raise


def init_config(config_path: Path | None = None) -> Result[bool]:
    """
    Write the commented template config.

    Returns:
        Ok(True) when written, Ok(False) when a file already exists there,
        Err(VALIDATION_ERROR) when the path exists but is not a file, or
        Err(FILE_WRITE_ERROR) when the write fails
    """
    config_path = config_path or default_config_path()

    if config_path.exists():
        if not config_path.is_file():
            return Result.err(Error(
                error_type=ErrorType.VALIDATION_ERROR,
                message=f"Config path exists but is not a file: {config_path}",
                context={"config_path": str(config_path)}
            ))
        logger.info(
            "Config file already exists",
            operation="init_config",
            status="exists",
            config_path=str(config_path)
        )
        return Result.ok(False)

    try:
        atomic_write_file(config_path, TEMPLATE)
    except OSError as e:
        return Result.err(Error(
            error_type=ErrorType.FILE_WRITE_ERROR,
            message=f"Could not write config file: {e}",
            context={"config_path": str(config_path)},
            original_exception=e
        ))

    logger.info(
        "Config template written",
        operation="init_config",
        status="success",
        config_path=str(config_path)
    )
    return Result.ok(True)
