# tests/conftest.py
# ---------------------------------------------------------------------
# Ground rules:
# - pytest-qt owns QApplication (use qapp/qtbot fixtures)
# - Inventory answers come from FakeOracle (scriptable) or an in-memory
#   sqlite database built with the real schema + demo seed
# - InlineOracleClient answers immediately; QueuedOracleClient holds
#   answers until the test calls flush() (race tests)
# - Silence benign Qt signal warnings
# ---------------------------------------------------------------------

from __future__ import annotations

import os
import re
from typing import Optional

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PySide6 import QtCore

from pos_cart.config import CartSettings
from pos_cart.database import get_connection
from pos_cart.modules.cart.controller import CartEditorController
from pos_cart.modules.cart.model import CartLine
from pos_cart.modules.cart.oracle import InlineOracleClient, OracleClient, _call


# ---------- Qt: let pytest-qt own the app ----------
@pytest.fixture(scope="session")
def app(qapp):  # alias to match code that expects an `app` fixture
    return qapp


# ---------- Silence benign Qt warnings ----------
_BENIGN_QT_PATTERNS = [
    r"^QObject::connect: .* already connected",
    r"^QObject::disconnect: Unexpected null parameter",
    r"^QBasicTimer::stop: Failed\. Platform timer not running\.",
]

@pytest.fixture(autouse=True, scope="session")
def _silence_benign_qt():
    """Filter common harmless Qt messages during tests."""
    original = QtCore.qInstallMessageHandler(None)
    rx = [re.compile(p) for p in _BENIGN_QT_PATTERNS]

    def handler(msg_type, context, message):
        text = str(message)
        for r in rx:
            if r.search(text):
                return  # swallow benign messages
        # pass everything else through the default handler
        QtCore.qInstallMessageHandler(None)
        try:
            QtCore.qDebug(message)
        finally:
            QtCore.qInstallMessageHandler(handler)

    QtCore.qInstallMessageHandler(handler)
    try:
        yield
    finally:
        QtCore.qInstallMessageHandler(original)


# ---------- Inventory doubles ----------
class FakeOracle:
    """
    Scriptable Inventory Oracle.

    uoms:  {item_code: [{uom, rate, qty, min_price, max_price}]}
    stock: {item_code: {location: {uom: qty}}}
    fail:  names of methods that raise (e.g. {"stock", "uoms"})
    """

    def __init__(self):
        self.default_location = "LocA"
        self.uoms = {
            "SKU1": [
                {"uom": "Nos", "rate": 10, "qty": 1, "min_price": 8, "max_price": 15},
                {"uom": "Box", "rate": 100, "qty": 12},
            ],
        }
        self.stock = {
            "SKU1": {"LocA": {"Nos": 3, "Box": 1}, "LocB": {"Nos": 10, "Box": 4}},
        }
        self.fail: set[str] = set()
        self.calls: list[str] = []

    def lookup_uom_details(self, item_code):
        self.calls.append("uoms")
        if "uoms" in self.fail:
            raise ConnectionError("oracle offline")
        return list(self.uoms.get(item_code, []))

    def lookup_stock_by_location(self, item_code):
        self.calls.append("stock")
        if "stock" in self.fail:
            raise ConnectionError("oracle offline")
        return [
            {"location": loc, "quantities": [{"uom": u, "qty": q} for u, q in qtys.items()]}
            for loc, qtys in self.stock.get(item_code, {}).items()
        ]

    def get_default_location(self):
        if "stock" in self.fail:
            raise ConnectionError("oracle offline")
        return self.default_location


class QueuedOracleClient(OracleClient):
    """Holds every lookup until flush(); answers are delivered in request order."""

    def __init__(self, oracle, parent=None):
        super().__init__(oracle, parent=parent)
        self.queue: list = []

    def _submit(self, request_id, work):
        self.queue.append((request_id, work))

    def flush(self) -> int:
        n = 0
        while self.queue:
            rid, work = self.queue.pop(0)
            ok, value = _call(work)
            self._deliver(rid, ok, value)
            n += 1
        return n


def sku1(**kw) -> CartLine:
    base = dict(item_code="SKU1", item_name="Ball Pen", quantity=1.0, uom="Nos", standard_rate=10.0)
    base.update(kw)
    return CartLine(**base)


@pytest.fixture
def new_line():
    """new_line(**overrides) -> a fresh SKU1 line (qty 1 Nos @ 10)."""
    return sku1


@pytest.fixture
def oracle():
    return FakeOracle()


@pytest.fixture
def settings():
    return CartSettings(price_warning_ms=80, notice_ms=80)


@pytest.fixture
def make_editor(qapp, oracle, settings):
    """
    make_editor(lines, queued=False, settings=None) -> CartEditorController
    The oracle client is reachable as editor.client.
    """
    made = []

    def _make(lines, queued: bool = False, settings_: Optional[CartSettings] = None):
        client = QueuedOracleClient(oracle) if queued else InlineOracleClient(oracle)
        ed = CartEditorController(client, settings_ or settings, lines=lines)
        made.append((ed, client))
        return ed

    yield _make
    for ed, client in made:
        ed.deleteLater()
        client.deleteLater()


@pytest.fixture
def recorder():
    """Collects signal emissions: rec.connect(signal, name); rec[name] -> list of args."""

    class _Rec(dict):
        def connect(self, signal, name):
            if name in self:
                return
            self[name] = []
            signal.connect(lambda *a: self[name].append(a[0] if len(a) == 1 else a))

    return _Rec()


# ---------- SQLite ----------
@pytest.fixture
def db():
    conn = get_connection(":memory:")
    yield conn
    conn.close()
