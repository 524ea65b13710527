"""Column-aligned plain-text tables for the listing commands."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any


def to_cell(value: Any) -> str:
    """Format a value for a table cell; absent values print as ``-``."""
    if value is None:
        return "-"
    return str(value)


def format_table(
    headers: Sequence[str], rows: Iterable[Sequence[Any]], padding: int = 2
) -> str:
    """Render *rows* under *headers* with a dashed underline.

    Every column but the last is padded to its widest cell plus *padding*.
    """
    cells = [list(headers), ["-" * len(h) for h in headers]]
    cells.extend([to_cell(v) for v in row] for row in rows)
    widths = [max(len(r[i]) for r in cells) for i in range(len(headers))]

    lines = []
    for row in cells:
        parts = [
            cell.ljust(widths[i] + padding) if i < len(row) - 1 else cell
            for i, cell in enumerate(row)
        ]
        lines.append("".join(parts).rstrip())
    return "\n".join(lines) + "\n"
