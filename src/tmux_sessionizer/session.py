# =============================================================================
# tmux Session Management
# =============================================================================
# Queries run with captured output and a timeout. Commands that hand the
# terminal to tmux (attach, attached new-session) inherit stdio and block
# until the user detaches.

import os
import shutil
import subprocess

from loguru import logger

from .errors import Error, ErrorType, Result
from .models import Selection

TMUX_COMMAND = "tmux"

# stderr fragments meaning "no such session", not "tmux is broken"
_NO_SESSION_MARKERS = (
    "no server running",
    "failed to connect to server",
    "can't find session",
    "error connecting to",
)


def run(cmd: list[str], timeout: int = 10) -> tuple[int, str, str]:
    try:
        proc = subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            timeout=timeout,
            check=False,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired, PermissionError) as exc:
        return 1, "", str(exc)
    return proc.returncode, proc.stdout, proc.stderr


def tmux(args: list[str], timeout: int = 10) -> tuple[int, str, str]:
    return run([TMUX_COMMAND, *args], timeout=timeout)


def tmux_interactive(args: list[str]) -> int:
    """Run tmux attached to the current terminal; returns its exit code."""
    try:
        return subprocess.run([TMUX_COMMAND, *args], check=False).returncode
    except OSError as exc:
        logger.error(
            "Failed to start tmux",
            operation="tmux_interactive",
            status="failed",
            args=args,
            error=str(exc)
        )
        return 1


def is_inside_tmux() -> bool:
    return bool(os.environ.get("TMUX"))


def exact_target(session_name: str) -> str:
    # "=" disables tmux's prefix matching, so "proj" never hits "proj-old"
    return f"={session_name}"


def _session_error(message: str, session_name: str, **context) -> Error:
    return Error(
        error_type=ErrorType.SESSION_ERROR,
        message=message,
        context={"session_name": session_name, **context}
    )


def session_exists(session_name: str) -> Result[bool]:
    code, _, err = tmux(["has-session", "-t", exact_target(session_name)])
    if code == 0:
        return Result.ok(True)
    if any(marker in err.lower() for marker in _NO_SESSION_MARKERS):
        return Result.ok(False)
    return Result.err(_session_error(
        f"Could not query tmux session '{session_name}'",
        session_name,
        returncode=code,
        stderr=err.strip()
    ))


def create_session(selection: Selection) -> Result[None]:
    """
    Create a session rooted at the selection.

    Inside tmux the session is created detached and the client switched to
    it; outside tmux the new session is attached directly.
    """
    name = selection.session_name
    start_dir = str(selection.path)

    if not is_inside_tmux():
        code = tmux_interactive(["new-session", "-s", name, "-c", start_dir])
        if code != 0:
            return Result.err(_session_error(
                f"Failed to create session '{name}'", name, returncode=code, path=start_dir
            ))
        return Result.ok(None)

    code, _, err = tmux(["new-session", "-d", "-s", name, "-c", start_dir])
    if code != 0:
        return Result.err(_session_error(
            f"Failed to create session '{name}'",
            name,
            returncode=code,
            stderr=err.strip(),
            path=start_dir
        ))
    return switch_or_attach(name)


def switch_or_attach(session_name: str) -> Result[None]:
    target = exact_target(session_name)
    if is_inside_tmux():
        code, _, err = tmux(["switch-client", "-t", target])
        if code != 0:
            return Result.err(_session_error(
                f"Failed to switch client to session '{session_name}'",
                session_name,
                returncode=code,
                stderr=err.strip()
            ))
        return Result.ok(None)

    code = tmux_interactive(["attach-session", "-t", target])
    if code != 0:
        return Result.err(_session_error(
            f"Failed to attach to session '{session_name}'", session_name, returncode=code
        ))
    return Result.ok(None)


def open_session(selection: Selection) -> Result[None]:
    """
    Switch to the selection's session, creating it first when needed.

    A missing tmux server is not an error: creating the session starts one.

    Returns:
        Ok(None), or Err(SESSION_ERROR) when tmux is missing or a tmux
        command fails
    """
    if shutil.which(TMUX_COMMAND) is None:
        return Result.err(_session_error(
            "tmux is required but was not found on PATH", selection.session_name
        ))

    exists = session_exists(selection.session_name)
    if exists.is_err():
        return Result.err(exists.error)

    logger.debug(
        "Opening session",
        operation="open_session",
        status="started",
        session_name=selection.session_name,
        path=str(selection.path),
        exists=exists.value,
        inside_tmux=is_inside_tmux()
    )

    if exists.value:
        return switch_or_attach(selection.session_name)
    return create_session(selection)
