#!/usr/bin/env python3
"""Cascade CLI entrypoint."""

import sys
import argparse
import logging
from pathlib import Path

from textual.logging import TextualHandler

from cascade.lib.config import ConfigError, load_engine_config
from cascade.tree.grouping import ViewMode
from cascade.commands import show as cmd_show_module
from cascade.commands import watch as cmd_watch_module

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(verbose: bool, tui: bool = False) -> None:
    """Configure the root logger. The TUI owns the terminal, so it logs to the devtools console."""
    level = logging.DEBUG if verbose else logging.WARNING
    handlers = [TextualHandler()] if tui else None
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)


def get_engine_config(args):
    """Load cascade.env from the workspace, exiting on syntax errors."""
    workspace = Path(args.workspace).resolve()
    if not workspace.is_dir():
        print(f"ERROR: Workspace not found: {workspace}")
        sys.exit(2)

    try:
        config = load_engine_config(workspace)
    except ConfigError as e:
        print(f"ERROR: {e}")
        sys.exit(2)

    return config, workspace


def cmd_show(args):
    setup_logging(args.verbose)
    config, workspace = get_engine_config(args)
    return cmd_show_module.cmd_show(args, workspace, config)


def cmd_watch(args):
    setup_logging(args.verbose, tui=True)
    config, workspace = get_engine_config(args)
    return cmd_watch_module.cmd_watch(args, workspace, config)


def add_view_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        '--view',
        choices=[mode.value for mode in ViewMode],
        default=ViewMode.STATUS.value,
        help='Group by status or show the full hierarchy (default: status)',
    )
    parser.add_argument('--archived', action='store_true', help='Include archived items')


def main(argv=None):
    parser = argparse.ArgumentParser(prog='cascade', description='Planning tree with live progress')
    parser.add_argument('--workspace', '-w', default='.', help='Workspace root (default: current directory)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    # cascade show
    p_show = subparsers.add_parser('show', help='Print the planning tree')
    add_view_arguments(p_show)
    p_show.set_defaults(func=cmd_show)

    # cascade watch
    p_watch = subparsers.add_parser('watch', help='Live planning tree')
    add_view_arguments(p_watch)
    p_watch.set_defaults(func=cmd_watch)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
