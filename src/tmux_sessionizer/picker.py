# =============================================================================
# fzf Picker
# =============================================================================

import shutil
import subprocess
import time

from loguru import logger

from .errors import Error, ErrorType, Result
from .models import DirectoryEntry
from .selection import PICKER_SEPARATOR, entry_for_picker_line, format_picker_line, sort_entries

FZF_COMMAND = "fzf"
FZF_PROMPT = "Select project: "

# fzf: 1 = no match, 130 = interrupted with Esc/Ctrl-C
FZF_CANCEL_CODES = {1, 130}


def fzf_args() -> list[str]:
    return [
        FZF_COMMAND,
        "--prompt", FZF_PROMPT,
        "--height", "50%",
        "--reverse",
        "--delimiter", PICKER_SEPARATOR,
        # Show and search the display name only; the path rides along
        "--with-nth", "1",
        "--nth", "1",
    ]


def run_fzf(lines: list[str]) -> Result[str | None]:
    """
    Run fzf over lines.

    fzf draws on the terminal directly, so only stdin and stdout are piped.

    Returns:
        Ok(chosen line), Ok(None) when the user cancelled, or Err(PICKER_ERROR)
    """
    if shutil.which(FZF_COMMAND) is None:
        return Result.err(Error(
            error_type=ErrorType.PICKER_ERROR,
            message="fzf is required but was not found on PATH",
            context={"command": FZF_COMMAND}
        ))

    try:
        proc = subprocess.run(
            fzf_args(),
            input="\n".join(lines) + "\n",
            stdout=subprocess.PIPE,
            text=True,
            check=False,  # Exit codes are interpreted below
        )
    except OSError as e:
        return Result.err(Error(
            error_type=ErrorType.PICKER_ERROR,
            message=f"Failed to start fzf: {e}",
            context={"command": FZF_COMMAND},
            original_exception=e
        ))

    if proc.returncode in FZF_CANCEL_CODES:
        return Result.ok(None)
    if proc.returncode != 0:
        return Result.err(Error(
            error_type=ErrorType.PICKER_ERROR,
            message=f"fzf failed (exit code {proc.returncode})",
            context={"returncode": proc.returncode}
        ))

    selected = (proc.stdout or "").strip("\n")
    return Result.ok(selected or None)


def pick_entry(entries: list[DirectoryEntry]) -> Result[DirectoryEntry | None]:
    """
    Let the user choose an entry interactively.

    Returns:
        Ok(entry), Ok(None) on cancellation, or Err(PICKER_ERROR)
    """
    start_time = time.perf_counter()
    entries = sort_entries([e for e in entries if e.is_selectable])

    result = run_fzf([format_picker_line(e) for e in entries])
    if result.is_err():
        return Result.err(result.error)

    duration_ms = int((time.perf_counter() - start_time) * 1000)
    if result.value is None:
        logger.debug(
            "Picker cancelled",
            operation="pick_entry",
            status="cancelled",
            metrics={"entries": len(entries), "duration_ms": duration_ms}
        )
        return Result.ok(None)

    entry = entry_for_picker_line(entries, result.value)
    if entry is None:
        return Result.err(Error(
            error_type=ErrorType.PICKER_ERROR,
            message="Picker returned a line that matches no entry",
            context={"line": result.value}
        ))

    logger.debug(
        "Picker selection",
        operation="pick_entry",
        status="success",
        selected=str(entry.resolved_path),
        metrics={"entries": len(entries), "duration_ms": duration_ms}
    )
    return Result.ok(entry)
