from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Optional, Sequence

from googleapiclient.discovery import Resource, build

from .errors import OutOfBoundsError
from .store import CellValue

logger = logging.getLogger(__name__)

# Google Sheets caps a spreadsheet at 10 million cells.
MAX_GRID_CELLS = 10_000_000


def column_letter(column: int) -> str:
    if column < 1:
        raise ValueError(f"column must be >= 1, got {column}")
    out = ""
    while column:
        column, rem = divmod(column - 1, 26)
        out = chr(ord("A") + rem) + out
    return out


def quote_title(title: str) -> str:
    return "'" + title.replace("'", "''") + "'"


def a1_range(title: str, row: int, column: int, end_row: int | None = None, end_column: int | None = None) -> str:
    start = f"{column_letter(column)}{row}"
    if end_row is None and end_column is None:
        return f"{quote_title(title)}!{start}"
    end = f"{column_letter(end_column or column)}{end_row or row}"
    return f"{quote_title(title)}!{start}:{end}"


def _json_cell(value: CellValue) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return "" if value is None else value


def _pad(values: list[Any], width: int) -> list[Any]:
    values = list(values[:width])
    return values + [""] * (width - len(values))


class SheetsRowStore:
    """One tab of a Google spreadsheet, through the Sheets v4 API.

    Values are read unformatted (checkboxes come back as booleans, numbers
    as numbers) and written raw. Grid properties and checkbox validation
    are cached and dropped after every structural change made through
    this object. The whole-sheet values behind `last_data_row` and
    `last_column` are fetched once and reused until the next write or
    `refresh()`.
    """

    def __init__(
        self,
        service: Resource,
        *,
        spreadsheet_id: str,
        title: str,
        sheet_id: int | None = None,
    ) -> None:
        self.service = service
        self.spreadsheet_id = spreadsheet_id
        self.title = title
        self._sheet_id = sheet_id
        self._properties: dict | None = None
        self._checkboxes: set[tuple[int, int]] | None = None
        self._snapshot: list[list[Any]] | None = None

    def __repr__(self) -> str:
        return f"SheetsRowStore({self.spreadsheet_id!r}, {self.title!r})"

    # -- API plumbing

    def _grid(self) -> dict:
        if self._properties is None:
            res = (
                self.service.spreadsheets()
                .get(
                    spreadsheetId=self.spreadsheet_id,
                    ranges=[quote_title(self.title)],
                    fields="sheets(properties(sheetId,title,gridProperties))",
                )
                .execute()
            )
            sheets = res.get("sheets", [])
            if not sheets:
                raise KeyError(f"sheet not found: {self.title}")
            self._properties = sheets[0]["properties"]
            self._sheet_id = self._properties["sheetId"]
        return self._properties.get("gridProperties", {})

    @property
    def sheet_id(self) -> int:
        if self._sheet_id is None:
            self._grid()
        return self._sheet_id  # type: ignore[return-value]

    @property
    def identity(self) -> tuple[str, int]:
        return (self.spreadsheet_id, self.sheet_id)

    def refresh(self) -> None:
        self._invalidate()

    def _invalidate(self) -> None:
        self._properties = None
        self._checkboxes = None
        self._snapshot = None

    def _values(self) -> list[list[Any]]:
        # whole-sheet values, trimmed by the API; kept until the next write
        if self._snapshot is None:
            self._snapshot = self._get_values(quote_title(self.title))
        return self._snapshot

    def _batch_update(self, *requests: dict) -> dict:
        logger.debug("batchUpdate %s on %r", [next(iter(r)) for r in requests], self.title)
        res = (
            self.service.spreadsheets()
            .batchUpdate(spreadsheetId=self.spreadsheet_id, body={"requests": list(requests)})
            .execute()
        )
        self._invalidate()
        return res

    def _get_values(self, range_: str, major_dimension: str = "ROWS") -> list[list[Any]]:
        logger.debug("values.get %s", range_)
        res = (
            self.service.spreadsheets()
            .values()
            .get(
                spreadsheetId=self.spreadsheet_id,
                range=range_,
                majorDimension=major_dimension,
                valueRenderOption="UNFORMATTED_VALUE",
            )
            .execute()
        )
        return res.get("values", [])

    def _rows_range(self, start: int, end: int) -> dict:
        return {
            "sheetId": self.sheet_id,
            "dimension": "ROWS",
            "startIndex": start - 1,
            "endIndex": end,
        }

    # -- bounds

    def last_data_row(self) -> int:
        # the values API trims trailing empty rows
        return len(self._values())

    def last_column(self) -> int:
        return max((len(r) for r in self._values()), default=0)

    def frozen_row_count(self) -> int:
        return int(self._grid().get("frozenRowCount", 0))

    def max_rows(self) -> int:
        return int(self._grid().get("rowCount", 0))

    def max_columns(self) -> int:
        return int(self._grid().get("columnCount", 0))

    # -- values

    def read_row(self, index: int, width: Optional[int] = None) -> list[CellValue]:
        return self.read_rows(index, index, width)[0]

    def read_rows(self, start: int, end: int, width: Optional[int] = None) -> list[list[CellValue]]:
        if end < start:
            return []
        if start < 1:
            raise OutOfBoundsError(f"row index must be >= 1, got {start}")
        width = self.max_columns() if width is None else width
        if width < 1:
            return [[] for _ in range(start, end + 1)]
        rows = self._get_values(a1_range(self.title, start, 1, end, width))
        rows = rows + [[]] * (end - start + 1 - len(rows))
        return [_pad(r, width) for r in rows]

    def read_column(self, column: int, from_row: int, to_row: int) -> list[CellValue]:
        if to_row < from_row:
            return []
        cols = self._get_values(a1_range(self.title, from_row, column, to_row, column), "COLUMNS")
        return _pad(cols[0] if cols else [], to_row - from_row + 1)

    def write_row(self, index: int, values: Sequence[CellValue], start_column: int = 1) -> None:
        if not values:
            return
        end_column = start_column + len(values) - 1
        missing = end_column - self.max_columns()
        if missing > 0:
            self._batch_update(
                {"appendDimension": {"sheetId": self.sheet_id, "dimension": "COLUMNS", "length": missing}}
            )
        range_ = a1_range(self.title, index, start_column, index, end_column)
        self._snapshot = None
        logger.debug("values.update %s", range_)
        self.service.spreadsheets().values().update(
            spreadsheetId=self.spreadsheet_id,
            range=range_,
            valueInputOption="RAW",
            body={"values": [[_json_cell(v) for v in values]]},
        ).execute()

    # -- structure

    def insert_blank_row_at(self, index: int) -> None:
        self._batch_update(
            {"insertDimension": {"range": self._rows_range(index, index), "inheritFromBefore": False}}
        )

    def delete_row(self, index: int) -> None:
        self._batch_update({"deleteDimension": {"range": self._rows_range(index, index)}})

    def grow_by(self, n: int) -> None:
        rows, cols = self.max_rows(), max(self.max_columns(), 1)
        if (rows + n) * cols > MAX_GRID_CELLS:
            raise OutOfBoundsError(f"{self.title!r} cannot grow to {rows + n} rows x {cols} columns")
        self._batch_update({"appendDimension": {"sheetId": self.sheet_id, "dimension": "ROWS", "length": n}})

    def is_checkbox_cell(self, row: int, column: int) -> bool:
        if self._checkboxes is None:
            self._checkboxes = self._load_checkboxes()
        return (row, column) in self._checkboxes

    def _load_checkboxes(self) -> set[tuple[int, int]]:
        res = (
            self.service.spreadsheets()
            .get(
                spreadsheetId=self.spreadsheet_id,
                ranges=[quote_title(self.title)],
                fields="sheets(data(startRow,startColumn,rowData(values(dataValidation(condition(type))))))",
            )
            .execute()
        )
        found: set[tuple[int, int]] = set()
        for sheet in res.get("sheets", []):
            for grid in sheet.get("data", []):
                row0 = grid.get("startRow", 0)
                col0 = grid.get("startColumn", 0)
                for r, row_data in enumerate(grid.get("rowData", [])):
                    for c, cell in enumerate(row_data.get("values", [])):
                        condition = (cell.get("dataValidation") or {}).get("condition") or {}
                        if condition.get("type") == "BOOLEAN":
                            found.add((row0 + r + 1, col0 + c + 1))
        return found


class SheetsWorkbook:
    def __init__(self, service: Resource, *, spreadsheet_id: str) -> None:
        self.service = service
        self.spreadsheet_id = spreadsheet_id

    def _sheet_ids(self) -> dict[str, int]:
        res = (
            self.service.spreadsheets()
            .get(spreadsheetId=self.spreadsheet_id, fields="sheets(properties(sheetId,title))")
            .execute()
        )
        return {s["properties"]["title"]: s["properties"]["sheetId"] for s in res.get("sheets", [])}

    def _store(self, title: str, sheet_id: int) -> SheetsRowStore:
        return SheetsRowStore(self.service, spreadsheet_id=self.spreadsheet_id, title=title, sheet_id=sheet_id)

    def _batch_update(self, request: dict) -> dict:
        res = (
            self.service.spreadsheets()
            .batchUpdate(spreadsheetId=self.spreadsheet_id, body={"requests": [request]})
            .execute()
        )
        return res["replies"][0]

    def table(self, name: str) -> SheetsRowStore | None:
        sheet_id = self._sheet_ids().get(name)
        return None if sheet_id is None else self._store(name, sheet_id)

    def add_table(self, name: str) -> SheetsRowStore:
        reply = self._batch_update({"addSheet": {"properties": {"title": name}}})
        return self._store(name, reply["addSheet"]["properties"]["sheetId"])

    def duplicate_table(self, template_name: str, new_name: str) -> SheetsRowStore:
        template_id = self._sheet_ids().get(template_name)
        if template_id is None:
            raise KeyError(f"template sheet not found: {template_name}")
        reply = self._batch_update(
            {"duplicateSheet": {"sourceSheetId": template_id, "newSheetName": new_name}}
        )
        return self._store(new_name, reply["duplicateSheet"]["properties"]["sheetId"])


def sheets_service(creds) -> Resource:
    return build("sheets", "v4", credentials=creds, cache_discovery=False)
