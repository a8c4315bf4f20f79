"""Command-line front door for inspecting a persisted tab forest.

Reads the forest blob and settings from the JSON config file, then prints
the tree, dumps the raw blob, resets it, or edits settings.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from . import config
from .codec import STORAGE_KEY, decode_forest
from .prefs import JsonPreferenceStore
from .projection import ViewProjection
from .render import DEFAULT_STYLE, format_tree_lines, highlight_json
from .types import CHILD_POLICIES


def _indent_size(value: str) -> int:
    """argparse type for indent sizes within the accepted range."""
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer value: {value!r}") from exc
    if parsed < config.MIN_INDENT_SIZE or parsed > config.MAX_INDENT_SIZE:
        raise argparse.ArgumentTypeError(
            f"value must be between {config.MIN_INDENT_SIZE} and {config.MAX_INDENT_SIZE}"
        )
    return parsed


def _on_off(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in {"on", "true", "yes", "1"}:
        return True
    if lowered in {"off", "false", "no", "0"}:
        return False
    raise argparse.ArgumentTypeError(f"expected on/off, got {value!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tabforest", description="Inspect the persisted tab forest.")
    parser.add_argument("--config", type=Path, default=None, help="Config file path (default: platform config dir).")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug messages to stderr.")
    commands = parser.add_subparsers(dest="command", required=True)

    show = commands.add_parser("show", help="Print the stored forest as an indented tree.")
    show.add_argument("--indent", type=_indent_size, default=None, help="Indent size override.")
    show.add_argument("--all", action="store_true", help="Include rows hidden by collapsed parents.")

    dump = commands.add_parser("dump", help="Print the stored forest blob as JSON.")
    dump.add_argument("--style", default=DEFAULT_STYLE, help="Pygments style name.")
    dump.add_argument("--no-color", action="store_true", help="Disable color output even on TTY.")

    commands.add_parser("reset", help="Delete the stored forest.")

    settings = commands.add_parser("settings", help="Print or update forest settings.")
    settings.add_argument("--auto-collapse", type=_on_off, default=None, metavar="{on,off}")
    settings.add_argument("--child-policy", choices=CHILD_POLICIES, default=None)
    settings.add_argument("--indent", type=_indent_size, default=None)
    return parser


def _show(prefs: JsonPreferenceStore, settings: config.ForestSettings, args: argparse.Namespace) -> str:
    store = decode_forest(prefs.get(STORAGE_KEY))
    store.repair()
    indent = args.indent if args.indent is not None else settings.indent_size
    lines = format_tree_lines(ViewProjection(store).sequence(), indent, include_hidden=args.all)
    if not lines:
        return "(empty forest)\n"
    return "\n".join(lines) + "\n"


def _settings(config_path: Path | None, settings: config.ForestSettings, args: argparse.Namespace) -> str:
    updates: dict[str, object] = {}
    if args.auto_collapse is not None:
        updates["auto_collapse"] = args.auto_collapse
    if args.child_policy is not None:
        updates["child_policy"] = args.child_policy
    if args.indent is not None:
        updates["indent_size"] = args.indent
    if updates:
        settings = replace(settings, **updates)
        try:
            config.write_settings(settings, config_path)
        except OSError as exc:
            raise SystemExit(f"Could not save settings: {exc}") from exc
    return (
        f"auto_collapse: {'on' if settings.auto_collapse else 'off'}\n"
        f"child_policy: {settings.child_policy}\n"
        f"indent_size: {settings.indent_size}\n"
        f"show_close_button: {'on' if settings.show_close_button else 'off'}\n"
    )


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and run one subcommand against the config file."""
    args = build_parser().parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    config_path: Path | None = args.config
    if config_path is not None and config_path.is_dir():
        raise SystemExit(f"Config path is a directory: {config_path}")
    prefs = JsonPreferenceStore(config_path)
    settings = config.load_settings(config_path)

    if args.command == "show":
        sys.stdout.write(_show(prefs, settings, args))
    elif args.command == "dump":
        blob = prefs.get(STORAGE_KEY)
        if blob is None:
            raise SystemExit("No stored forest.")
        no_color = args.no_color or not sys.stdout.isatty()
        sys.stdout.write(highlight_json(blob, args.style, no_color=no_color))
    elif args.command == "reset":
        try:
            prefs.delete(STORAGE_KEY)
        except OSError as exc:
            raise SystemExit(f"Could not reset stored forest: {exc}") from exc
    elif args.command == "settings":
        sys.stdout.write(_settings(config_path, settings, args))


if __name__ == "__main__":
    main()
