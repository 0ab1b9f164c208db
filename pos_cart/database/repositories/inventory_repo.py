"""
Inventory Oracle over the local sqlite database.

Answers the three questions the cart editor asks (units of an item, stock
per location, default location) plus a few helpers used by the demo window
and the seeder.

Conventions:
- Lookups return plain dicts shaped the way OracleClient parses them.
- Every query runs under one lock; the connection is shared with worker threads.
- sqlite3.Error is raised as OracleUnavailable so the editor degrades softly.
"""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from typing import Dict, List, Optional

from ...modules.cart.model import CartLine
from ...modules.cart.oracle import OracleUnavailable


class InventoryRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()

    # ---------------------------- TX helpers ----------------------------

    @contextmanager
    def _reading(self):
        with self._lock:
            try:
                yield self.conn
            except sqlite3.Error as e:
                raise OracleUnavailable(f"Inventory database error: {e}") from e

    @contextmanager
    def _immediate_tx(self):
        """
        Start an IMMEDIATE transaction, commit on success, rollback on error.
        """
        with self._lock:
            cur = self.conn.cursor()
            try:
                cur.execute("BEGIN IMMEDIATE")
                yield
                self.conn.commit()
            except Exception:
                self.conn.rollback()
                raise
            finally:
                cur.close()

    # ---------------------------- oracle ----------------------------

    def lookup_uom_details(self, item_code: str) -> List[Dict]:
        """
        [{uom, rate, qty, min_price, max_price}, ...] in the item's display order.
        """
        with self._reading() as conn:
            rows = conn.execute(
                """
                SELECT uom, CAST(rate AS REAL) AS rate,
                       CAST(conversion_qty AS REAL) AS qty,
                       CAST(min_price AS REAL) AS min_price,
                       CAST(max_price AS REAL) AS max_price
                FROM item_uoms
                WHERE item_code = ?
                ORDER BY sort_order, item_uom_id
                """,
                (item_code,),
            ).fetchall()
        return [dict(r) for r in rows]

    def lookup_stock_by_location(self, item_code: str) -> List[Dict]:
        """
        [{location, quantities: [{uom, qty}]}] for every location, default first.
        Locations without stock of the item report an empty list.
        """
        with self._reading() as conn:
            rows = conn.execute(
                """
                SELECT l.name AS location, ls.uom AS uom, CAST(ls.qty AS REAL) AS qty
                FROM locations l
                LEFT JOIN location_stock ls
                       ON ls.location_id = l.location_id AND ls.item_code = ?
                ORDER BY l.is_default DESC, l.name, ls.uom
                """,
                (item_code,),
            ).fetchall()
        out: List[Dict] = []
        index: Dict[str, Dict] = {}
        for r in rows:
            entry = index.get(r["location"])
            if entry is None:
                entry = {"location": r["location"], "quantities": []}
                index[r["location"]] = entry
                out.append(entry)
            if r["uom"] is not None:
                entry["quantities"].append({"uom": r["uom"], "qty": float(r["qty"] or 0.0)})
        return out

    def get_default_location(self) -> str:
        with self._reading() as conn:
            row = conn.execute("SELECT name FROM locations WHERE is_default = 1").fetchone()
        if row is None:
            raise OracleUnavailable("No default stock location is configured.")
        return row["name"]

    # ---------------------------- helpers ----------------------------

    def list_items(self) -> List[Dict]:
        with self._reading() as conn:
            rows = conn.execute(
                "SELECT item_code, item_name, description, stock_uom FROM items ORDER BY item_code"
            ).fetchall()
        return [dict(r) for r in rows]

    def new_line(self, item_code: str, quantity: float = 1.0) -> Optional[CartLine]:
        """A cart line for `item_code` in its first listed unit, or None if unknown."""
        with self._reading() as conn:
            item = conn.execute(
                "SELECT item_code, item_name, description, stock_uom FROM items WHERE item_code = ?",
                (item_code,),
            ).fetchone()
        if item is None:
            return None
        uoms = self.lookup_uom_details(item_code)
        first = uoms[0] if uoms else {"uom": item["stock_uom"], "rate": 0.0}
        return CartLine(
            item_code=item["item_code"],
            item_name=item["item_name"],
            item_description=item["description"] or "",
            quantity=float(quantity),
            uom=first["uom"],
            uom_rates={u["uom"]: float(u["rate"] or 0.0) for u in uoms},
            standard_rate=float(first["rate"] or 0.0),
        )

    def set_stock(self, location: str, item_code: str, uom: str, qty: float) -> None:
        with self._immediate_tx():
            loc = self.conn.execute("SELECT location_id FROM locations WHERE name = ?", (location,)).fetchone()
            if loc is None:
                raise ValueError(f"Unknown location: {location}")
            self.conn.execute(
                """
                INSERT INTO location_stock(location_id, item_code, uom, qty) VALUES (?, ?, ?, ?)
                ON CONFLICT(location_id, item_code, uom) DO UPDATE SET qty = excluded.qty
                """,
                (loc["location_id"], item_code, uom, float(qty)),
            )
