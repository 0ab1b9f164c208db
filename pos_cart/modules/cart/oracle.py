"""
modules/cart/oracle.py

Purpose
-------
Inventory Oracle contract and the asynchronous client the editing engine uses
to reach it. Lookups run on a QThreadPool; results come back on the UI thread
through a queued signal, so callbacks never run on a worker thread.

Public API
----------
- InventoryOracle (protocol): lookup_uom_details, lookup_stock_by_location, get_default_location
- OracleUnavailable
- UomDetail, StockSnapshot
- OracleClient.uom_details(item_code, on_result, on_error)
- OracleClient.stock(item_code, on_result, on_error)
- InlineOracleClient: same API, answers before returning
"""

from __future__ import annotations

import itertools
import logging
import traceback
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol

from PySide6.QtCore import QObject, QRunnable, QThreadPool, Signal, Slot

from ...utils.helpers import same_uom

_log = logging.getLogger(__name__)


class OracleUnavailable(RuntimeError):
    """The inventory backend could not answer."""


class InventoryOracle(Protocol):
    def lookup_uom_details(self, item_code: str) -> list[dict]: ...
    def lookup_stock_by_location(self, item_code: str) -> list[dict]: ...
    def get_default_location(self) -> str: ...


def _num(x, default=None) -> Optional[float]:
    try:
        return float(x)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class UomDetail:
    uom: str
    rate: float
    qty: float = 1.0
    min_price: Optional[float] = None
    max_price: Optional[float] = None


def parse_uom_details(rows) -> list[UomDetail]:
    """Normalize oracle rows to UomDetail, keeping the oracle's order; rows without a uom are skipped."""
    out = []
    for r in rows or []:
        uom = str(r.get("uom") or "").strip()
        if not uom:
            continue
        out.append(UomDetail(
            uom=uom,
            rate=_num(r.get("rate"), 0.0),
            qty=_num(r.get("qty"), 1.0),
            min_price=_num(r.get("min_price")),
            max_price=_num(r.get("max_price")),
        ))
    return out


def find_uom(details: list[UomDetail], uom: str) -> Optional[UomDetail]:
    return next((d for d in details if same_uom(d.uom, uom)), None)


@dataclass(frozen=True)
class StockSnapshot:
    default_location: Optional[str]
    # [(location, {uom_lower: qty})] in oracle order
    locations: tuple = field(default_factory=tuple)

    def location_names(self) -> list[str]:
        return [name for name, _ in self.locations]

    def available(self, location: Optional[str], uom: str) -> float:
        for name, qtys in self.locations:
            if name == location:
                return float(qtys.get(str(uom or "").strip().lower(), 0.0))
        return 0.0

    def available_at_default(self, uom: str) -> float:
        return self.available(self.default_location, uom)


def parse_stock(rows, default_location: Optional[str]) -> StockSnapshot:
    locs = []
    for r in rows or []:
        name = str(r.get("location") or "").strip()
        if not name:
            continue
        qtys = {}
        for q in r.get("quantities") or []:
            key = str(q.get("uom") or "").strip().lower()
            if key:
                qtys[key] = qtys.get(key, 0.0) + (_num(q.get("qty"), 0.0) or 0.0)
        locs.append((name, qtys))
    return StockSnapshot(default_location=default_location, locations=tuple(locs))


# ----------------------------
# Async plumbing
# ----------------------------

class _Relay(QObject):
    delivered = Signal(int, bool, object)   # request id, ok, value-or-exception


class _LookupRunnable(QRunnable):
    """Runs one oracle call on the pool and relays the outcome."""
    def __init__(self, request_id: int, work: Callable[[], object], relay: _Relay) -> None:
        super().__init__()
        self.setAutoDelete(True)
        self._rid = request_id
        self._work = work
        self._relay = relay

    @Slot()
    def run(self) -> None:  # type: ignore[override]
        ok, value = _call(self._work)
        self._relay.delivered.emit(self._rid, ok, value)


def _call(work: Callable[[], object]):
    try:
        return True, work()
    except OracleUnavailable as exc:
        return False, exc
    except Exception as exc:
        _log.debug("Oracle call failed:\n%s", traceback.format_exc())
        err = OracleUnavailable(f"{exc.__class__.__name__}: {exc}")
        err.__cause__ = exc
        return False, err


@dataclass
class _Job:
    kind: str
    key: str
    on_result: Callable
    on_error: Optional[Callable]


class OracleClient(QObject):
    """
    Non-blocking access to an InventoryOracle, with last-known caches used by
    the resolvers when the backend is unreachable.
    """

    def __init__(self, oracle: InventoryOracle, pool: Optional[QThreadPool] = None, parent=None):
        super().__init__(parent)
        self._oracle = oracle
        self._pool = pool or QThreadPool.globalInstance()
        self._ids = itertools.count(1)
        self._jobs: dict[int, _Job] = {}
        self._uom_cache: dict[str, list[UomDetail]] = {}
        self._stock_cache: dict[str, StockSnapshot] = {}
        self._relay = _Relay()
        self._relay.delivered.connect(self._deliver)

    # ---- public ----
    def uom_details(self, item_code: str, on_result, on_error=None) -> int:
        def work():
            return parse_uom_details(self._oracle.lookup_uom_details(item_code))
        return self._request("uom", item_code, work, on_result, on_error)

    def stock(self, item_code: str, on_result, on_error=None) -> int:
        def work():
            default = self._oracle.get_default_location()
            rows = self._oracle.lookup_stock_by_location(item_code)
            return parse_stock(rows, default)
        return self._request("stock", item_code, work, on_result, on_error)

    def cached_uom_details(self, item_code: str) -> Optional[list[UomDetail]]:
        return self._uom_cache.get(item_code)

    def cached_stock(self, item_code: str) -> Optional[StockSnapshot]:
        return self._stock_cache.get(item_code)

    # ---- plumbing ----
    def _request(self, kind, key, work, on_result, on_error) -> int:
        rid = next(self._ids)
        self._jobs[rid] = _Job(kind, key, on_result, on_error)
        self._submit(rid, work)
        return rid

    def _submit(self, request_id: int, work: Callable[[], object]) -> None:
        self._pool.start(_LookupRunnable(request_id, work, self._relay))

    @Slot(int, bool, object)
    def _deliver(self, request_id: int, ok: bool, value: object) -> None:
        job = self._jobs.pop(request_id, None)
        if job is None:
            return
        if ok:
            if job.kind == "uom":
                self._uom_cache[job.key] = value
            elif job.kind == "stock":
                self._stock_cache[job.key] = value
            job.on_result(value)
            return
        _log.warning("Inventory lookup (%s) for %s failed: %s", job.kind, job.key, value)
        if job.on_error is not None:
            job.on_error(value)


class InlineOracleClient(OracleClient):
    """Answers on the calling thread before the request call returns."""

    def _submit(self, request_id: int, work: Callable[[], object]) -> None:
        ok, value = _call(work)
        self._deliver(request_id, ok, value)
