import sqlite3

SQL = r"""
PRAGMA foreign_keys = ON;

/* -------- items -------- */
CREATE TABLE IF NOT EXISTS items (
    item_code   TEXT PRIMARY KEY,
    item_name   TEXT NOT NULL,
    description TEXT,
    stock_uom   TEXT NOT NULL DEFAULT 'Nos'
);

/* units an item is sold in, in display order */
CREATE TABLE IF NOT EXISTS item_uoms (
    item_uom_id    INTEGER PRIMARY KEY AUTOINCREMENT,
    item_code      TEXT NOT NULL,
    uom            TEXT NOT NULL,
    rate           NUMERIC NOT NULL DEFAULT 0 CHECK (rate >= 0),
    conversion_qty NUMERIC NOT NULL DEFAULT 1 CHECK (conversion_qty > 0),
    min_price      NUMERIC,
    max_price      NUMERIC,
    sort_order     INTEGER NOT NULL DEFAULT 0,
    UNIQUE (item_code, uom),
    FOREIGN KEY (item_code) REFERENCES items(item_code) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_item_uoms_item ON item_uoms(item_code, sort_order);

/* -------- stock locations -------- */
CREATE TABLE IF NOT EXISTS locations (
    location_id INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT UNIQUE NOT NULL,
    is_default  INTEGER NOT NULL DEFAULT 0 CHECK (is_default IN (0,1))
);
/* one default location */
CREATE UNIQUE INDEX IF NOT EXISTS idx_locations_one_default
ON locations(is_default) WHERE is_default = 1;

CREATE TABLE IF NOT EXISTS location_stock (
    location_id INTEGER NOT NULL,
    item_code   TEXT NOT NULL,
    uom         TEXT NOT NULL,
    qty         NUMERIC NOT NULL DEFAULT 0,
    PRIMARY KEY (location_id, item_code, uom),
    FOREIGN KEY (location_id) REFERENCES locations(location_id) ON DELETE CASCADE,
    FOREIGN KEY (item_code) REFERENCES items(item_code) ON DELETE CASCADE
);
"""


def init_schema(conn: sqlite3.Connection) -> None:
    """Apply the (idempotent) schema on an open connection."""
    conn.executescript(SQL)
    conn.commit()
