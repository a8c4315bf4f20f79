"""Plain-text rendering of projected forest rows for the CLI.

Tab titles come from the host and are sanitized before printing; stored
blobs are pretty-printed and highlighted with Pygments.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable

from pygments import highlight
from pygments.formatters import TerminalFormatter
from pygments.lexers import JsonLexer
from pygments.styles import get_style_by_name
from pygments.util import ClassNotFound

from .types import ProjectedRow

_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f-\x9f]")

DEFAULT_STYLE = "monokai"
TWISTY_COLLAPSED = "+"
TWISTY_EXPANDED = "-"
TWISTY_LEAF = " "


def sanitize_terminal_text(text: str) -> str:
    """Escape terminal control bytes (including newlines) in one-line labels."""
    if _CONTROL_RE.search(text) is None:
        return text
    out: list[str] = []
    for ch in text:
        code = ord(ch)
        # C0 controls + DEL + C1 controls.
        if code < 32 or code == 127 or 0x80 <= code <= 0x9F:
            out.append(f"\\x{code:02x}")
            continue
        out.append(ch)
    return "".join(out)


def format_row(row: ProjectedRow, indent_size: int, indent_unit: int = 10) -> str:
    """Format one row as ``<indent><twisty> <marker><title> [kind] (id)``.

    ``indent_size`` is in pixels as configured for graphical renderers; every
    ``indent_unit`` pixels become one column of indentation.
    """
    columns = max(1, indent_size // max(1, indent_unit))
    if not row.has_children:
        twisty = TWISTY_LEAF
    elif row.collapsed:
        twisty = TWISTY_COLLAPSED
    else:
        twisty = TWISTY_EXPANDED
    marker = "*" if row.selected else ""
    title = sanitize_terminal_text(row.title) or "(untitled)"
    kind = f" [{sanitize_terminal_text(row.kind)}]" if row.kind else ""
    return f"{' ' * (columns * row.level)}{twisty} {marker}{title}{kind} ({sanitize_terminal_text(row.id)})"


def format_tree_lines(
    rows: Iterable[ProjectedRow],
    indent_size: int = 20,
    include_hidden: bool = False,
) -> list[str]:
    """Format projected rows, skipping hidden ones unless ``include_hidden``."""
    return [format_row(row, indent_size) for row in rows if include_hidden or not row.hidden]


def _normalize_style(style: str) -> str:
    try:
        get_style_by_name(style)
    except ClassNotFound:
        return DEFAULT_STYLE
    return style


def highlight_json(blob: str, style: str = DEFAULT_STYLE, no_color: bool = False) -> str:
    """Pretty-print ``blob`` as JSON (raw text when invalid) with ANSI colors."""
    try:
        text = json.dumps(json.loads(blob), indent=2) + "\n"
    except ValueError:
        text = blob if blob.endswith("\n") else blob + "\n"
    if no_color:
        return text
    return highlight(text, JsonLexer(), TerminalFormatter(style=_normalize_style(style)))
