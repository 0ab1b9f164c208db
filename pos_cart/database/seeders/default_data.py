def seed(conn):
    # demo catalogue; only when the database has no items yet
    row = conn.execute("SELECT COUNT(*) AS n FROM items").fetchone()
    if row and row["n"] > 0:
        return

    conn.executemany(
        "INSERT INTO locations(name, is_default) VALUES (?, ?)",
        [("Main Store", 1), ("Back Room", 0), ("Warehouse B", 0)],
    )
    conn.executemany(
        "INSERT INTO items(item_code, item_name, description, stock_uom) VALUES (?, ?, ?, ?)",
        [
            ("SKU1", "Ball Pen", "Ball pen, blue", "Nos"),
            ("SKU2", "Notebook A5", "Ruled notebook A5", "Nos"),
            ("SKU3", "Printer Paper", "A4 paper 80gsm", "Ream"),
        ],
    )
    conn.executemany(
        """
        INSERT INTO item_uoms(item_code, uom, rate, conversion_qty, min_price, max_price, sort_order)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        [
            ("SKU1", "Nos", 10, 1, 8, 15, 0),
            ("SKU1", "Box", 100, 12, 90, 140, 1),
            ("SKU2", "Nos", 45, 1, 40, None, 0),
            ("SKU2", "Dozen", 500, 12, 480, 560, 1),
            ("SKU3", "Ream", 1200, 1, 1000, 1500, 0),
            ("SKU3", "Box", 5800, 5, None, None, 1),
        ],
    )
    stock = [
        ("Main Store", "SKU1", "Nos", 3),
        ("Main Store", "SKU1", "Box", 2),
        ("Back Room", "SKU1", "Nos", 20),
        ("Warehouse B", "SKU1", "Box", 10),
        ("Main Store", "SKU2", "Nos", 40),
        ("Main Store", "SKU3", "Ream", 4),
        ("Warehouse B", "SKU3", "Ream", 50),
        ("Warehouse B", "SKU3", "Box", 10),
    ]
    conn.executemany(
        """
        INSERT INTO location_stock(location_id, item_code, uom, qty)
        SELECT location_id, ?, ?, ? FROM locations WHERE name = ?
        """,
        [(code, uom, qty, loc) for loc, code, uom, qty in stock],
    )
    conn.commit()
