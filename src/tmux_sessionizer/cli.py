# =============================================================================
# Command Line Entry Point
# =============================================================================

import argparse
import sys
from pathlib import Path

from loguru import logger

from . import __version__
from .config_loader import default_config_path, init_config, load_config
from .discovery import scan
from .errors import ErrorType
from .logging_config import setup_logger
from .picker import pick_entry
from .selection import build_selection, format_picker_line, resolve_direct
from .session import open_session


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tmux-sessionizer",
        description="Pick a project directory and switch to its tmux session."
    )
    parser.add_argument(
        "selection",
        nargs="?",
        help="Project name or path to open directly instead of using the picker"
    )
    parser.add_argument("-d", "--debug", action="store_true", help="Log debug records to stderr")
    parser.add_argument(
        "-c", "--config",
        type=Path,
        help="Config file (default: $TMUX_SESSIONIZER_CONFIG or the user config dir)"
    )
    parser.add_argument(
        "--init-config",
        action="store_true",
        help="Write a commented config template and exit"
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="Print discovered directories (name<TAB>path) and exit"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def run_init_config(config_path: Path) -> int:
    result = init_config(config_path)
    if result.is_err():
        print(f"Error: {result.error.message}", file=sys.stderr)
        return 1
    if result.value:
        print(f"Created config file: {config_path}")
    else:
        print(f"Config file already exists: {config_path}")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logger(debug=args.debug)

    config_path = args.config.expanduser() if args.config else default_config_path()

    if args.init_config:
        return run_init_config(config_path)

    loaded = load_config(config_path)
    if loaded.is_err():
        print(f"Error: {loaded.error.message}", file=sys.stderr)
        return 1
    config = loaded.value

    if not config.roots:
        print(
            f"No search paths configured. Add search_paths to {config_path} "
            "(tmux-sessionizer --init-config writes a template).",
            file=sys.stderr
        )
        return 1

    entries, _ = scan(
        config.roots,
        config.exclude_patterns,
        max_depth=config.max_depth,
        include_hidden=config.include_hidden
    )

    if args.list:
        for entry in entries:
            print(format_picker_line(entry))
        return 0

    if args.selection is not None:
        resolved = resolve_direct(entries, args.selection)
        if resolved.is_err():
            error = resolved.error
            print(f"Error: {error.message}", file=sys.stderr)
            if error.error_type == ErrorType.AMBIGUOUS_SELECTION:
                for name in error.context["candidates"]:
                    print(f"  {name}", file=sys.stderr)
            return 1
        selection = resolved.value
    elif not entries:
        print("No project directories found under the configured paths.", file=sys.stderr)
        return 0
    else:
        picked = pick_entry(entries)
        if picked.is_err():
            print(f"Error: {picked.error.message}", file=sys.stderr)
            return 1
        if picked.value is None:
            return 0
        selection = build_selection(picked.value)

    logger.debug(
        "Selection finalized",
        operation="main",
        status="selected",
        path=str(selection.path),
        session_name=selection.session_name
    )

    opened = open_session(selection)
    if opened.is_err():
        print(f"Error: {opened.error.message}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
