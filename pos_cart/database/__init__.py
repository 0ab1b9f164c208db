# database/__init__.py
from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional, Union

from ..config import DB_PATH
from . import schema as schema_module
from .seeders.default_data import seed as seed_default_data


def get_connection(
    db_path: Optional[Union[Path, str]] = None,
    check_same_thread: bool = False,
    seed: bool = True,
) -> sqlite3.Connection:
    """
    Returns a sqlite3.Connection with:
      - WAL mode (file databases)
      - foreign_keys ON
      - row_factory = sqlite3.Row (so rows behave like dicts and tuples)
    Ensures schema & seed data are applied idempotently.

    Oracle lookups run on worker threads, so the connection is opened with
    check_same_thread=False by default; InventoryRepo serializes access.
    """
    target = DB_PATH if db_path is None else db_path
    if str(target) != ":memory:":
        Path(target).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(target), check_same_thread=check_same_thread)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    if str(target) != ":memory:":
        conn.execute("PRAGMA journal_mode = WAL;")

    schema_module.init_schema(conn)

    # Seeders should be safe to run repeatedly (idempotent).
    if seed:
        seed_default_data(conn)

    conn.commit()
    return conn


__all__ = [
    "get_connection",
]
