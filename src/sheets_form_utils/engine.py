from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Callable, Iterator, Optional, Sequence

from .digest import DEFAULT_ALGORITHM, add_digest
from .duplicates import DuplicateMode, is_duplicate
from .errors import LockTimeoutError
from .placement import PlacementPolicy, find_insertion_point, rows_in_use
from .store import CellValue, RowStore

if TYPE_CHECKING:
    from .config import AppendSettings

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT = 300.0

# One lock for every append in this process, whatever the destination.
_SCRIPT_LOCK = threading.Lock()
_TABLE_LOCKS: dict[Any, threading.Lock] = {}
_TABLE_LOCKS_GUARD = threading.Lock()


def script_lock() -> threading.Lock:
    return _SCRIPT_LOCK


def table_lock(key: Any) -> threading.Lock:
    """Lock keyed by table identity, for callers that want per-table parallelism."""
    with _TABLE_LOCKS_GUARD:
        lock = _TABLE_LOCKS.get(key)
        if lock is None:
            lock = _TABLE_LOCKS[key] = threading.Lock()
        return lock


@dataclass(frozen=True)
class RowLocation:
    store: RowStore
    row: int
    column: int = 1
    width: int = 0

    def values(self) -> list[CellValue]:
        return self.store.read_row(self.row, self.column - 1 + self.width)[self.column - 1 :]


@dataclass(frozen=True)
class AppendResult:
    location: RowLocation
    was_duplicate: bool


@dataclass
class AppendOptions:
    """How a row is appended.

    add_digest: write the row's digest into the column after the row.
    on_duplicate: called with the new RowLocation when the row already
        existed in the destination. It may change the cells, not the span.
        Duplicate detection only runs when this is set.
    use_lock: serialize with other appends. Only turn off for callers that
        are already single-threaded (a bulk sweep holding the lock). The
        default lock is a `threading.Lock`: it serializes appends within
        one Python process only. Separate processes appending to the same
        sheet (two overlapping `form-utils sweep` runs, say) are not
        serialized by it; schedule such jobs so they cannot overlap, or
        pass a cross-process lock as `lock`.
    lock_timeout: seconds to wait for the lock.
    lock: lock to use; defaults to the process-wide `script_lock()`. Any
        object with `acquire(timeout=...)` and `release()` works.
    placement_policy: where the new row goes.
    ignore_checkbox_columns: checkbox-only rows count as blank for FIRST_GAP.
    skip: leading columns left out of the digest (the timestamp).
    """

    add_digest: bool = False
    on_duplicate: Optional[Callable[[RowLocation], None]] = None
    use_lock: bool = True
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT
    lock: Optional[Any] = None
    placement_policy: PlacementPolicy = PlacementPolicy.APPEND
    ignore_checkbox_columns: bool = True
    skip: int = 1
    hash_algorithm: str = DEFAULT_ALGORITHM
    duplicate_mode: DuplicateMode = DuplicateMode.DIGEST
    allow_raw_duplicate_scan: bool = False

    @classmethod
    def from_settings(cls, settings: "AppendSettings", **overrides: Any) -> "AppendOptions":
        opts = cls(
            add_digest=settings.add_digest,
            use_lock=settings.use_lock,
            lock_timeout=settings.lock_timeout,
            placement_policy=settings.placement_policy,
            ignore_checkbox_columns=settings.ignore_checkbox_columns,
            skip=settings.skip,
            hash_algorithm=settings.hash_algorithm,
            duplicate_mode=settings.duplicate_mode,
            allow_raw_duplicate_scan=settings.allow_raw_duplicate_scan,
        )
        return replace(opts, **overrides)


@contextmanager
def _locked(options: AppendOptions) -> Iterator[None]:
    if not options.use_lock:
        yield
        return

    lock = options.lock if options.lock is not None else _SCRIPT_LOCK
    if not lock.acquire(timeout=options.lock_timeout):
        raise LockTimeoutError(f"could not obtain lock within {options.lock_timeout}s")
    try:
        yield
    finally:
        lock.release()


def _discard_reserved(destination: RowStore, row: int) -> None:
    try:
        destination.delete_row(row)
    except Exception:
        logger.exception("could not remove reserved row %d after a failed append", row)


def _append_unlocked(values: Sequence[CellValue], destination: RowStore, options: AppendOptions) -> AppendResult:
    values = list(values)
    width = len(values)

    duplicate = options.on_duplicate is not None and is_duplicate(
        values,
        destination,
        mode=options.duplicate_mode,
        skip=options.skip,
        algorithm=options.hash_algorithm,
        allow_raw=options.allow_raw_duplicate_scan,
    )

    row = find_insertion_point(destination, options.placement_policy, options.ignore_checkbox_columns)
    try:
        destination.write_row(row, values)
        if options.add_digest:
            add_digest(destination, row, width, skip=options.skip, algorithm=options.hash_algorithm)
            width += 1
        location = RowLocation(store=destination, row=row, width=width)
        if duplicate:
            logger.warning("row %d is a duplicate of an existing row", row)
            options.on_duplicate(location)
    except Exception:
        _discard_reserved(destination, row)
        raise

    logger.info("appended row %d", row)
    return AppendResult(location=location, was_duplicate=duplicate)


def append(
    values: Sequence[CellValue],
    destination: RowStore,
    options: AppendOptions | None = None,
) -> AppendResult:
    """Append `values` as a new row of `destination`.

    The lock is held from the duplicate check to the final write, so two
    concurrent appends never get the same row. If writing fails the
    reserved row is removed again and the error is re-raised.
    """
    options = options or AppendOptions()
    with _locked(options):
        destination.refresh()
        return _append_unlocked(values, destination, options)


def copy_row(
    source: RowStore,
    row: int,
    destination: RowStore,
    options: AppendOptions | None = None,
) -> AppendResult:
    options = options or AppendOptions()
    with _locked(options):
        source.refresh()
        destination.refresh()
        values = source.read_row(row, source.last_column())
        return _append_unlocked(values, destination, options)


def move_row(
    source: RowStore,
    row: int,
    destination: RowStore,
    options: AppendOptions | None = None,
) -> AppendResult:
    """Copy row `row` of `source` to `destination`, then delete it from `source`.

    The source row is only deleted once the copy has fully succeeded.
    """
    options = options or AppendOptions()
    with _locked(options):
        source.refresh()
        destination.refresh()
        values = source.read_row(row, source.last_column())
        result = _append_unlocked(values, destination, options)
        if source.identity == destination.identity and result.location.row <= row:
            row += 1
        source.delete_row(row)
        logger.info("moved row %d to row %d", row, result.location.row)
        return result


def sweep_all(
    source: RowStore,
    destination: RowStore,
    delete_from_source: bool = True,
    options: AppendOptions | None = None,
) -> list[AppendResult]:
    """Move (or copy) every non-empty, non-frozen row of `source` to `destination`.

    Rows are moved bottom-up so deleting one never shifts a row that is
    still waiting to be processed.
    """
    options = options or AppendOptions()
    source.refresh()
    rows = rows_in_use(source)
    results: list[AppendResult] = []

    if delete_from_source:
        for row, _ in reversed(rows):
            results.append(move_row(source, row, destination, options))
    else:
        for row, _ in rows:
            results.append(copy_row(source, row, destination, options))

    logger.info(
        "swept %d row(s) %s", len(results), "(moved)" if delete_from_source else "(copied)"
    )
    return results
