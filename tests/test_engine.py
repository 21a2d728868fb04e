import threading
import time

import pytest

from sheets_form_utils.duplicates import is_duplicate
from sheets_form_utils.engine import (
    AppendOptions,
    RowLocation,
    append,
    copy_row,
    move_row,
    script_lock,
    sweep_all,
    table_lock,
)
from sheets_form_utils.errors import LockTimeoutError
from sheets_form_utils.memory_store import MemoryRowStore
from sheets_form_utils.placement import PlacementPolicy, rows_in_use

HEADER = ["Timestamp", "Name", "Answer"]


class FailingWrites(MemoryRowStore):
    def write_row(self, index, values, start_column=1):
        raise ConnectionError("sheet unavailable")


class SlowStore(MemoryRowStore):
    def last_data_row(self):
        time.sleep(0.01)
        return super().last_data_row()


def _responses(*rows):
    return MemoryRowStore([HEADER, *rows], frozen_rows=1, max_rows=20)


def test_append_then_duplicate_round_trip():
    table = _responses()
    result = append(["2021-01-01", "alice", "42"], table, AppendOptions(add_digest=True))

    assert result.location.row == 2
    assert result.location.width == 4
    assert result.was_duplicate is False
    assert is_duplicate(["2021-01-02", "alice", "42"], table) is True
    assert is_duplicate(["2021-01-02", "alice", "43"], table) is False


def test_append_flags_duplicate_after_placing_it():
    table = _responses()
    seen: list[RowLocation] = []
    opts = AppendOptions(add_digest=True, on_duplicate=seen.append)

    first = append(["t1", "alice", "42"], table, opts)
    second = append(["t2", "alice", "42"], table, opts)

    assert first.was_duplicate is False
    assert second.was_duplicate is True
    assert [loc.row for loc in seen] == [3]
    assert seen[0].values()[:3] == ["t2", "alice", "42"]


def test_digest_does_not_collide_when_commas_move_between_cells():
    table = _responses()
    append(["t1", "A, B", "C"], table, AppendOptions(add_digest=True))

    assert is_duplicate(["t2", "A", " B,C"], table) is False
    assert is_duplicate(["t2", "A, B", "C"], table) is True


def test_duplicate_check_skipped_without_callback():
    table = _responses()
    opts = AppendOptions(add_digest=True)
    append(["t1", "alice", "42"], table, opts)
    assert append(["t2", "alice", "42"], table, opts).was_duplicate is False


def test_appends_allocate_consecutive_rows():
    table = _responses()
    rows = [append([f"t{i}", "x", str(i)], table).location.row for i in range(4)]
    assert rows == [2, 3, 4, 5]


def test_append_first_gap_policy():
    table = _responses(["t1", "a", "1"], ["", "", ""], ["t3", "c", "3"])
    result = append(["t9", "z", "9"], table, AppendOptions(placement_policy=PlacementPolicy.FIRST_GAP))
    assert result.location.row == 3
    assert table.read_row(3, 3) == ["t9", "z", "9"]


def test_copy_row_keeps_source():
    source = _responses(["t1", "alice", "42"])
    dest = _responses()
    result = copy_row(source, 2, dest)
    assert dest.read_row(result.location.row, 3) == ["t1", "alice", "42"]
    assert source.read_row(2, 3) == ["t1", "alice", "42"]


def test_move_row_deletes_source_after_copy():
    source = _responses(["t1", "alice", "42"], ["t2", "bob", "7"])
    dest = _responses()
    result = move_row(source, 2, dest)
    assert dest.read_row(result.location.row, 3) == ["t1", "alice", "42"]
    assert source.read_row(2, 3) == ["t2", "bob", "7"]


def test_move_within_same_table_deletes_the_right_row():
    table = _responses(["t1", "a", "1"], ["", "", ""], ["t3", "c", "3"])
    opts = AppendOptions(placement_policy=PlacementPolicy.FIRST_GAP)
    move_row(table, 4, table, opts)
    assert [v for _, v in rows_in_use(table)] == [["t1", "a", "1"], ["t3", "c", "3"]]


class Handle:
    """Separate wrapper object around the same underlying table."""

    def __init__(self, table):
        self._table = table

    def __getattr__(self, name):
        return getattr(self._table, name)


def test_move_within_same_table_through_separate_handles():
    table = _responses(["t1", "a", "1"], ["", "", ""], ["t3", "c", "3"])
    source, destination = Handle(table), Handle(table)
    assert source is not destination
    opts = AppendOptions(placement_policy=PlacementPolicy.FIRST_GAP)

    move_row(source, 4, destination, opts)

    assert [v for _, v in rows_in_use(table)] == [["t1", "a", "1"], ["t3", "c", "3"]]


def test_failed_move_leaves_source_untouched():
    source = _responses(["t1", "alice", "42"])
    dest = FailingWrites([HEADER], frozen_rows=1, max_rows=5)

    with pytest.raises(ConnectionError):
        move_row(source, 2, dest)

    assert source.read_row(2, 3) == ["t1", "alice", "42"]
    # the reserved row was taken back out
    assert dest.max_rows() == 5
    assert rows_in_use(dest) == []
    # and the lock was released
    assert script_lock().acquire(timeout=0)
    script_lock().release()


def test_failing_callback_releases_lock_and_removes_row():
    table = _responses()
    append(["t1", "alice", "42"], table, AppendOptions(add_digest=True))

    def boom(location):
        raise RuntimeError("callback failed")

    with pytest.raises(RuntimeError):
        append(["t2", "alice", "42"], table, AppendOptions(add_digest=True, on_duplicate=boom))

    assert [r for r, _ in rows_in_use(table)] == [2]
    assert script_lock().acquire(timeout=0)
    script_lock().release()


def test_lock_timeout():
    lock = threading.Lock()
    lock.acquire()
    try:
        with pytest.raises(LockTimeoutError):
            append(["t1", "a", "1"], _responses(), AppendOptions(lock=lock, lock_timeout=0.01))
    finally:
        lock.release()


def test_concurrent_appends_get_distinct_rows():
    table = SlowStore([HEADER], frozen_rows=1, max_rows=20)
    opts = AppendOptions(lock=table_lock(id(table)))
    results = []

    def worker(n):
        results.append(append([f"t{n}", f"user{n}", str(n)], table, opts))

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    rows = sorted(r.location.row for r in results)
    assert rows == [2, 3]
    assert sorted(v[1] for _, v in rows_in_use(table)) == ["user0", "user1"]


def test_concurrent_appends_default_lock():
    table = SlowStore([HEADER], frozen_rows=1, max_rows=20)
    results = []

    def worker(n):
        results.append(append([f"t{n}", f"user{n}", str(n)], table, AppendOptions()))

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(r.location.row for r in results) == [2, 3, 4, 5]
    assert sorted(v[1] for _, v in rows_in_use(table)) == ["user0", "user1", "user2", "user3"]


class RecordingLock:
    """Stand-in for a cross-process lock (file lock, lease row, ...)."""

    def __init__(self):
        self.calls = []

    def acquire(self, timeout):
        self.calls.append(("acquire", timeout))
        return True

    def release(self):
        self.calls.append(("release",))


def test_custom_lock_object_is_used():
    lock = RecordingLock()
    append(["t1", "a", "1"], _responses(), AppendOptions(lock=lock, lock_timeout=5))

    assert lock.calls == [("acquire", 5), ("release",)]
    # the process-wide lock was not involved
    assert script_lock().acquire(timeout=0)
    script_lock().release()


def test_sweep_moves_every_row():
    source = _responses(["t2", "a", "2"], ["", "", ""], ["t4", "b", "4"], ["", "", ""], ["t6", "c", "6"])
    dest = _responses()

    results = sweep_all(source, dest, delete_from_source=True)

    assert len(results) == 3
    assert rows_in_use(source) == []
    assert sorted(v[0] for _, v in rows_in_use(dest)) == ["t2", "t4", "t6"]


def test_sweep_copy_keeps_source_in_order():
    source = _responses(["t2", "a", "2"], ["", "", ""], ["t4", "b", "4"])
    dest = _responses()

    sweep_all(source, dest, delete_from_source=False, options=AppendOptions(add_digest=True))

    assert [r for r, _ in rows_in_use(source)] == [2, 4]
    assert [v[0] for _, v in rows_in_use(dest)] == ["t2", "t4"]
    assert is_duplicate(["t9", "b", "4"], dest) is True
