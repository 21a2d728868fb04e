from __future__ import annotations

import base64
import hashlib
from datetime import date, datetime
from typing import Sequence

from .store import CellValue, RowStore

# ASCII unit separator; form answers never contain it
DIGEST_DELIMITER = "\x1f"
DEFAULT_ALGORITHM = "sha1"


def cell_text(value: CellValue) -> str:
    """Text form of a cell, as the sheet would join it."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def compute_digest(
    values: Sequence[CellValue],
    skip: int = 1,
    algorithm: str = DEFAULT_ALGORITHM,
) -> str:
    """Fingerprint of a row's values, ignoring the first `skip` columns.

    Form sheets put the submission timestamp in column A, so the default
    skip makes two identical answers submitted at different times share a
    digest.
    """
    if skip < 0:
        raise ValueError(f"skip must be >= 0, got {skip}")
    try:
        h = hashlib.new(algorithm)
    except ValueError as e:
        raise ValueError(f"unknown digest algorithm: {algorithm}") from e

    joined = DIGEST_DELIMITER.join(cell_text(v) for v in list(values)[skip:])
    h.update(joined.encode("utf-8"))
    return base64.b64encode(h.digest()).decode("ascii")


def add_digest(
    store: RowStore,
    row: int,
    width: int,
    *,
    skip: int = 1,
    algorithm: str = DEFAULT_ALGORITHM,
    digest: str | None = None,
) -> str:
    """Write the digest of `row` (columns 1..width) into column width + 1."""
    if digest is None:
        digest = compute_digest(store.read_row(row, width), skip=skip, algorithm=algorithm)
    store.write_row(row, [digest], start_column=width + 1)
    return digest
