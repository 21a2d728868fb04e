from __future__ import annotations

from enum import Enum
from typing import Optional, Sequence

from .digest import DEFAULT_ALGORITHM, cell_text, compute_digest
from .errors import UnsupportedModeError
from .store import CellValue, RowStore


class DuplicateMode(str, Enum):
    DIGEST = "digest"
    RAW = "raw"


def _coerce_mode(mode: DuplicateMode | str) -> DuplicateMode:
    try:
        return DuplicateMode(mode)
    except ValueError as e:
        raise UnsupportedModeError(f"unknown duplicate check mode: {mode!r}") from e


def _digest_scan(
    candidate: Sequence[CellValue],
    store: RowStore,
    last_row: int,
    skip: int,
    algorithm: str,
) -> bool:
    digest = compute_digest(candidate, skip=skip, algorithm=algorithm)
    column = len(candidate) + 1
    return digest in store.read_column(column, 1, last_row)


def _raw_scan(candidate: Sequence[CellValue], store: RowStore, last_row: int, skip: int) -> bool:
    width = len(candidate)
    wanted = [cell_text(v) for v in candidate[skip:]]
    for values in store.read_rows(1, last_row, width):
        if [cell_text(v) for v in values[skip:width]] == wanted:
            return True
    return False


def is_duplicate(
    candidate: Sequence[CellValue],
    store: RowStore,
    *,
    mode: DuplicateMode | str = DuplicateMode.DIGEST,
    last_row: Optional[int] = None,
    skip: int = 1,
    algorithm: str = DEFAULT_ALGORITHM,
    allow_raw: bool = False,
) -> bool:
    """Check whether `candidate` already occurs in `store`.

    In digest mode the column right after the candidate's last column is
    treated as the digest column written by `add_digest`, so the check is a
    single-column scan. Raw mode compares every row cell by cell; it is
    only available when `allow_raw` is set and raises
    `UnsupportedModeError` otherwise.

    Rows 1..`last_row` are scanned (default: the last non-empty row). The
    first `skip` columns never take part in the comparison.
    """
    mode = _coerce_mode(mode)
    if mode is DuplicateMode.RAW and not allow_raw:
        raise UnsupportedModeError("raw duplicate check is disabled; use digest mode")

    last_row = store.last_data_row() if last_row is None else last_row
    if last_row <= 0:
        return False

    if mode is DuplicateMode.DIGEST:
        return _digest_scan(candidate, store, last_row, skip, algorithm)
    return _raw_scan(candidate, store, last_row, skip)
