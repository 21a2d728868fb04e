import base64
import hashlib

import pytest

from sheets_form_utils.digest import add_digest, cell_text, compute_digest
from sheets_form_utils.memory_store import MemoryRowStore


def test_digest_matches_sha1_of_joined_values():
    expected = base64.b64encode(hashlib.sha1(b"alice\x1f42").digest()).decode()
    assert compute_digest(["2021-01-01", "alice", "42"]) == expected


def test_digest_is_deterministic():
    row = ["2021-01-01", "alice", "42", True]
    assert compute_digest(row) == compute_digest(list(row))


def test_leading_columns_do_not_affect_digest():
    assert compute_digest(["t1", "a", "b", "c"], skip=1) == compute_digest(["t2", "a", "b", "c"], skip=1)
    assert compute_digest(["t1", "x", "b"], skip=2) == compute_digest(["t2", "y", "b"], skip=2)


def test_different_values_give_different_digests():
    assert compute_digest(["t", "alice", "42"]) != compute_digest(["t", "alice", "43"])
    assert compute_digest(["t", "a", "b"], skip=0) != compute_digest(["u", "a", "b"], skip=0)


def test_comma_position_changes_digest():
    # checkbox answers are stored as "A, B"
    assert compute_digest(["t", "red, blue", "green"]) != compute_digest(["t", "red", " blue,green"])
    assert compute_digest(["t", "a,b"]) != compute_digest(["t", "a", "b"])


def test_numbers_and_text_hash_alike():
    assert compute_digest(["t", 42.0, True]) == compute_digest(["t", "42", "true"])


def test_other_algorithms():
    expected = base64.b64encode(hashlib.sha256(b"a\x1fb").digest()).decode()
    assert compute_digest(["t", "a", "b"], algorithm="sha256") == expected


def test_unknown_algorithm_raises():
    with pytest.raises(ValueError):
        compute_digest(["t", "a"], algorithm="nope")


def test_cell_text():
    assert cell_text(None) == ""
    assert cell_text(False) == "false"
    assert cell_text(3.5) == "3.5"
    assert cell_text(7) == "7"


def test_add_digest_writes_next_to_row():
    store = MemoryRowStore([["2021-01-01", "alice", "42"]])
    digest = add_digest(store, 1, 3)
    assert store.read_row(1, 4) == ["2021-01-01", "alice", "42", digest]
    assert digest == compute_digest(["x", "alice", "42"])
