from __future__ import annotations

import logging
from enum import Enum
from typing import Optional, Sequence

from .errors import OutOfBoundsError
from .store import CellValue, RowStore, is_empty_cell

logger = logging.getLogger(__name__)


class PlacementPolicy(str, Enum):
    # row after the last non-empty row
    APPEND = "append"
    # first blank row after the frozen header, reusing gaps left by deletions
    FIRST_GAP = "first-gap"


def is_row_blank(
    store: RowStore,
    row: int,
    values: Optional[Sequence[CellValue]] = None,
    *,
    ignore_checkbox_columns: bool = True,
) -> bool:
    """True when every cell of `row` is empty.

    With `ignore_checkbox_columns`, a cell that only holds a checkbox value
    does not make the row non-blank (checkboxes are never truly empty).
    """
    if values is None:
        values = store.read_row(row)
    for column, value in enumerate(values, start=1):
        if is_empty_cell(value):
            continue
        if ignore_checkbox_columns and store.is_checkbox_cell(row, column):
            continue
        return False
    return True


def _first_gap_row(store: RowStore, first_free: int, ignore_checkbox_columns: bool) -> int:
    last = store.last_data_row()
    if last < first_free:
        return first_free

    rows = store.read_rows(first_free, last, store.max_columns())
    blank = [
        is_row_blank(store, first_free + i, values, ignore_checkbox_columns=ignore_checkbox_columns)
        for i, values in enumerate(rows)
    ]

    last_real = first_free - 1
    for i in range(len(blank) - 1, -1, -1):
        if not blank[i]:
            last_real = first_free + i
            break

    for i in range(last_real - first_free + 1):
        if blank[i]:
            return first_free + i
    # fully dense: append past the last real row
    return last_real + 1


def reserve_row(store: RowStore, row: int) -> None:
    """Insert a blank row at `row`, growing the table if `row` is past its end."""
    if row < 1:
        raise OutOfBoundsError(f"row index must be >= 1, got {row}")
    allocated = store.max_rows()
    if row > allocated:
        store.grow_by(row - allocated)
    else:
        # keeps the number of trailing empty rows unchanged
        store.insert_blank_row_at(row)


def find_insertion_point(
    store: RowStore,
    policy: PlacementPolicy = PlacementPolicy.APPEND,
    ignore_checkbox_columns: bool = True,
) -> int:
    """Pick and reserve the row new data should be written to.

    The returned row is blank and already inserted into the table, so a
    second caller computing a target afterwards gets a different row.
    Frozen header rows are never returned.
    """
    policy = PlacementPolicy(policy)
    first_free = store.frozen_row_count() + 1

    if policy is PlacementPolicy.APPEND:
        target = max(store.last_data_row() + 1, first_free)
    else:
        target = _first_gap_row(store, first_free, ignore_checkbox_columns)

    reserve_row(store, target)
    logger.debug("reserved row %d (%s)", target, policy.value)
    return target


def rows_in_use(store: RowStore, exclude_frozen: bool = True) -> list[tuple[int, list[CellValue]]]:
    """(row index, values) for every row holding at least one value."""
    start = store.frozen_row_count() + 1 if exclude_frozen else 1
    last = store.last_data_row()
    width = store.last_column()
    if last < start or width == 0:
        return []

    out: list[tuple[int, list[CellValue]]] = []
    for offset, values in enumerate(store.read_rows(start, last, width)):
        if any(not is_empty_cell(v) for v in values):
            out.append((start + offset, values))
    return out
