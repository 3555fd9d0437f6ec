"""
Result Formatter
Renders a bounded, column-aligned text table from engine result rows.

Row 0 is the header row. Athena names unlabeled expressions ``_col0``,
``_col1`` ...; labeled columns win over those, and ``_col0`` is usually a
row counter, so it is only shown as a last resort.
"""

import logging
from enum import Enum
from typing import List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

ANONYMOUS_COLUMN_PREFIX = "_col"
ROW_COUNTER_COLUMN = "_col0"
COLUMN_PADDING = 2

NULL_CELL = "NULL"
MISSING_CELL = "N/A"

Rows = Sequence[Sequence[Optional[str]]]


class FormatMode(Enum):
    """Rendering mode and its data-row cap"""
    DISPLAY = 20
    SUMMARIZE = 50

    @property
    def cap(self) -> int:
        return self.value


def select_columns(header: Sequence[Optional[str]]) -> List[Tuple[int, str]]:
    """
    Pick (position, label) pairs to render.

    Labeled columns first; failing that, anonymous columns except the row
    counter; failing that, everything. Unlabeled (None) header cells are
    never selected.
    """
    labeled = [(i, h) for i, h in enumerate(header) if h is not None]

    named = [(i, h) for i, h in labeled if not h.startswith(ANONYMOUS_COLUMN_PREFIX)]
    if named:
        return named

    anonymous = [
        (i, h) for i, h in labeled
        if h.startswith(ANONYMOUS_COLUMN_PREFIX) and h != ROW_COUNTER_COLUMN
    ]
    if anonymous:
        logger.info("No normal columns found, using _col format columns")
        return anonymous

    return labeled


def _cell(row: Sequence[Optional[str]], position: int) -> str:
    if position >= len(row):
        return MISSING_CELL
    value = row[position]
    return NULL_CELL if value is None else value


def _render_table(columns: List[Tuple[int, str]], data_rows: Rows) -> List[str]:
    rendered = [[_cell(row, position) for position, _ in columns] for row in data_rows]

    widths = [len(label) for _, label in columns]
    for cells in rendered:
        for i, value in enumerate(cells):
            widths[i] = max(widths[i], len(value))

    def _line(values: Sequence[str]) -> str:
        return "".join(value.ljust(widths[i] + COLUMN_PADDING) for i, value in enumerate(values))

    lines = [_line([label for _, label in columns])]
    lines.append("".join("-" * (width + COLUMN_PADDING) for width in widths))
    lines.extend(_line(cells) for cells in rendered)
    return lines


def format_results(rows: Rows, mode: FormatMode = FormatMode.DISPLAY) -> str:
    """
    Format rows for chat display or for a summarization prompt.

    Only the first ``mode.cap`` data rows are scanned and rendered, so the
    cost and size of the output do not depend on the result size.
    """
    if not rows:
        return "No results found" if mode is FormatMode.DISPLAY else "No data available"

    columns = select_columns(rows[0])
    if not columns:
        return "No displayable columns found"

    data_rows = rows[1:]
    window = data_rows[: mode.cap]
    lines = _render_table(columns, window)

    if mode is FormatMode.DISPLAY:
        if len(data_rows) > mode.cap:
            lines.append(f"...(Results limited to {mode.cap} rows)")
        return "```\n" + "\n".join(lines) + "\n```\n"

    text = "\n".join(lines) + "\n"
    if len(data_rows) > mode.cap:
        text += f"\n... ({len(data_rows) - mode.cap} more rows not displayed)"
    return text
