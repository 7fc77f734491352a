# =============================================================================
# Structured Logging Setup (JSONL format)
# =============================================================================

import json
import sys
import traceback
from pathlib import Path

import platformdirs
from loguru import logger

APP_NAME = "tmux-sessionizer"


def json_sink(message):
    """JSONL sink for stderr."""
    record = message.record
    log_entry = {
        "timestamp": record["time"].strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
        "level": record["level"].name.lower(),
        "component": record["function"],
        "operation": record["extra"].get("operation", "unknown"),
        "operation_status": record["extra"].get("status", None),
        "trace_id": record["extra"].get("trace_id"),
        "message": record["message"],
        "context": {k: v for k, v in record["extra"].items()
                    if k not in ("operation", "status", "trace_id", "metrics")},
        "metrics": record["extra"].get("metrics", {}),
        "error": None
    }

    if record["exception"]:
        exc_type, exc_value, exc_tb = record["exception"]
        tb_lines = []
        if exc_tb:
            tb_lines = traceback.format_tb(exc_tb)

        log_entry["error"] = {
            "type": exc_type.__name__ if exc_type else "Unknown",
            "message": str(exc_value) if exc_value else "Unknown error",
            "traceback_lines": tb_lines
        }

    try:
        sys.stderr.write(json.dumps(log_entry, default=str) + "\n")
    except (OSError, TypeError, ValueError) as e:
        # Logging must never take the picker down with it
        try:
            sys.stderr.write(f"[LOG_ERROR] Failed to write log: {e}\n")
        except OSError:
            pass


def setup_logger(debug: bool = False, log_to_file: bool = True):
    """
    Configure Loguru for machine-readable JSONL output.

    stderr stays quiet (WARNING) unless debug is set, so log lines do not
    interleave with the fzf picker. The file sink always records DEBUG.

    Args:
        debug: Lower the stderr level to DEBUG
        log_to_file: Also write a rotated JSONL file in the user log dir
    """
    logger.remove()

    logger.add(
        json_sink,
        level="DEBUG" if debug else "WARNING"
    )

    if not log_to_file:
        return logger

    # Linux: ~/.local/state/tmux-sessionizer/log/
    # macOS: ~/Library/Logs/tmux-sessionizer/
    log_dir = Path(platformdirs.user_log_dir(
        appname=APP_NAME,
        ensure_exists=True
    ))

    logger.add(
        str(log_dir / "sessionizer.jsonl"),
        format="{message}",
        serialize=True,
        rotation="10 MB",
        retention="7 days",
        compression="gz",
        level="DEBUG"
    )

    logger.debug(
        "Logger initialized",
        operation="setup_logger",
        status="success",
        log_dir=str(log_dir),
        debug=debug
    )

    return logger
