from __future__ import annotations

import copy
from typing import Iterable, Optional, Sequence

from .errors import OutOfBoundsError
from .store import CellValue, is_empty_cell

DEFAULT_ROWS = 1000
DEFAULT_COLUMNS = 26


class MemoryRowStore:
    """In-memory table with the same row semantics as a Google sheet.

    `rows` seeds the top of the grid; the rest of the allocated rows are
    blank. Checkbox validation is per column, which is how form sheets
    usually carry it.
    """

    def __init__(
        self,
        rows: Iterable[Sequence[CellValue]] | None = None,
        *,
        frozen_rows: int = 0,
        max_rows: int | None = None,
        max_columns: int | None = None,
        checkbox_columns: Iterable[int] = (),
        row_limit: int | None = None,
        name: str = "Sheet1",
    ) -> None:
        seeded = [list(r) for r in (rows or [])]
        widest = max((len(r) for r in seeded), default=0)

        self.name = name
        self._columns = max(max_columns or DEFAULT_COLUMNS, widest)
        capacity = max(max_rows if max_rows is not None else DEFAULT_ROWS, len(seeded))
        self._rows: list[list[CellValue]] = [self._pad(r) for r in seeded]
        self._rows.extend(self._blank() for _ in range(capacity - len(seeded)))
        self._frozen = frozen_rows
        self._checkbox_columns = set(checkbox_columns)
        self._row_limit = row_limit
        self._identity = object()

    def _blank(self) -> list[CellValue]:
        return [""] * self._columns

    def _pad(self, values: Sequence[CellValue]) -> list[CellValue]:
        out = list(values)
        return out + [""] * (self._columns - len(out))

    def _check_row(self, index: int) -> None:
        if index < 1 or index > len(self._rows):
            raise OutOfBoundsError(f"row {index} outside 1..{len(self._rows)} of {self.name!r}")

    def _check_capacity(self, rows: int) -> None:
        if self._row_limit is not None and rows > self._row_limit:
            raise OutOfBoundsError(f"{self.name!r} cannot grow past {self._row_limit} rows")

    @property
    def identity(self) -> object:
        return self._identity

    def refresh(self) -> None:
        pass

    # -- bounds

    def last_data_row(self) -> int:
        for i in range(len(self._rows), 0, -1):
            if any(not is_empty_cell(v) for v in self._rows[i - 1]):
                return i
        return 0

    def last_column(self) -> int:
        last = 0
        for row in self._rows:
            for c, v in enumerate(row, start=1):
                if not is_empty_cell(v) and c > last:
                    last = c
        return last

    def frozen_row_count(self) -> int:
        return self._frozen

    def max_rows(self) -> int:
        return len(self._rows)

    def max_columns(self) -> int:
        return self._columns

    # -- values

    def read_row(self, index: int, width: Optional[int] = None) -> list[CellValue]:
        self._check_row(index)
        width = self._columns if width is None else width
        out = list(self._rows[index - 1][:width])
        return out + [""] * (width - len(out))

    def read_rows(self, start: int, end: int, width: Optional[int] = None) -> list[list[CellValue]]:
        if end < start:
            return []
        return [self.read_row(i, width) for i in range(start, end + 1)]

    def read_column(self, column: int, from_row: int, to_row: int) -> list[CellValue]:
        if to_row < from_row:
            return []
        self._check_row(from_row)
        self._check_row(to_row)
        return [
            row[column - 1] if column <= len(row) else ""
            for row in self._rows[from_row - 1 : to_row]
        ]

    def write_row(self, index: int, values: Sequence[CellValue], start_column: int = 1) -> None:
        self._check_row(index)
        needed = start_column - 1 + len(values)
        if needed > self._columns:
            self._columns = needed
            self._rows = [self._pad(r) for r in self._rows]
        row = self._rows[index - 1]
        for offset, value in enumerate(values):
            row[start_column - 1 + offset] = value

    # -- structure

    def insert_blank_row_at(self, index: int) -> None:
        if index < 1 or index > len(self._rows) + 1:
            raise OutOfBoundsError(f"cannot insert at row {index} of {self.name!r}")
        self._check_capacity(len(self._rows) + 1)
        self._rows.insert(index - 1, self._blank())

    def delete_row(self, index: int) -> None:
        self._check_row(index)
        del self._rows[index - 1]

    def grow_by(self, n: int) -> None:
        self._check_capacity(len(self._rows) + n)
        self._rows.extend(self._blank() for _ in range(n))

    def is_checkbox_cell(self, row: int, column: int) -> bool:
        return column in self._checkbox_columns

    # -- helpers for callers and tests

    def values(self) -> list[list[CellValue]]:
        """Rows up to the last non-empty one, trimmed like the Sheets values API."""
        last_row = self.last_data_row()
        last_col = self.last_column()
        return [list(r[:last_col]) for r in self._rows[:last_row]]

    def clone(self, name: str) -> "MemoryRowStore":
        twin = copy.deepcopy(self)
        twin.name = name
        twin._identity = object()
        return twin


class MemoryWorkbook:
    def __init__(self, tables: Iterable[MemoryRowStore] = ()) -> None:
        self._tables: dict[str, MemoryRowStore] = {t.name: t for t in tables}

    def table(self, name: str) -> MemoryRowStore | None:
        return self._tables.get(name)

    def add_table(self, name: str) -> MemoryRowStore:
        if name in self._tables:
            raise ValueError(f"table already exists: {name}")
        table = MemoryRowStore(name=name)
        self._tables[name] = table
        return table

    def duplicate_table(self, template_name: str, new_name: str) -> MemoryRowStore:
        template = self._tables.get(template_name)
        if template is None:
            raise KeyError(f"template not found: {template_name}")
        if new_name in self._tables:
            raise ValueError(f"table already exists: {new_name}")
        table = template.clone(new_name)
        self._tables[new_name] = table
        return table

    def names(self) -> list[str]:
        return list(self._tables)
