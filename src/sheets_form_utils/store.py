from __future__ import annotations

from typing import Any, Hashable, Optional, Protocol, Sequence

CellValue = Any


def is_empty_cell(value: CellValue) -> bool:
    return value is None or value == ""


class RowStore(Protocol):
    """A growing grid of rows addressed with 1-based indices.

    Implementations wrap the real backing table (a Google sheet, or the
    in-memory grid used by tests). The append logic only talks to this
    surface. Two wrappers around the same table share an `identity`.
    `refresh()` drops anything cached from earlier reads; the engine calls
    it at the start of each operation.
    """

    @property
    def identity(self) -> Hashable: ...

    def refresh(self) -> None: ...

    def last_data_row(self) -> int: ...

    def last_column(self) -> int: ...

    def frozen_row_count(self) -> int: ...

    def max_rows(self) -> int: ...

    def max_columns(self) -> int: ...

    def read_row(self, index: int, width: Optional[int] = None) -> list[CellValue]: ...

    def read_rows(self, start: int, end: int, width: Optional[int] = None) -> list[list[CellValue]]: ...

    def read_column(self, column: int, from_row: int, to_row: int) -> list[CellValue]: ...

    def write_row(self, index: int, values: Sequence[CellValue], start_column: int = 1) -> None: ...

    def insert_blank_row_at(self, index: int) -> None: ...

    def delete_row(self, index: int) -> None: ...

    def grow_by(self, n: int) -> None: ...

    def is_checkbox_cell(self, row: int, column: int) -> bool: ...


class Workbook(Protocol):
    """A collection of named tables (the tabs of one spreadsheet)."""

    def table(self, name: str) -> Optional[RowStore]: ...

    def add_table(self, name: str) -> RowStore: ...

    def duplicate_table(self, template_name: str, new_name: str) -> RowStore: ...
