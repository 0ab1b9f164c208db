"""
modules/cart/allocation.py

Purpose
-------
Split a line's quantity across stock locations when the default location
cannot cover it.

A quantity commit asks the oracle for per-location stock. When the default
location covers the quantity the commit goes through; otherwise an
AllocationRequest is raised and the commit stays open until the operator
resolves it (allocated total equals the requested quantity) or abandons it.

Public API
----------
- AllocationRequest / AllocationCandidate / AllocationError
- build_request(line, snapshot, required_qty, previous_quantity)
- WarehouseAllocationResolver.check(...), .reconcile(...), .open_for(...)
- WarehouseAllocationResolver.resolve(request, allocations=None) -> bool
- WarehouseAllocationResolver.abandon(request)
"""

from __future__ import annotations

import itertools
import logging
import math
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable, Optional, Union

from PySide6.QtCore import QObject, Signal

from ...utils.helpers import fmt_qty, same_uom
from ...utils.loggers import log_event
from .model import CartLine, CartLineStore, WarehouseAllocation
from .oracle import OracleClient, StockSnapshot
from .state import CommitOutcome, FocusState, FocusTicket

_log = logging.getLogger(__name__)
_request_ids = itertools.count(1)

Done = Optional[Callable[[CommitOutcome], None]]


class AllocationError(ValueError):
    """Invalid change to an allocation request."""


@dataclass
class AllocationCandidate:
    location: str
    available: float
    allocated: float = 0.0
    selected: bool = False


@dataclass
class AllocationRequest:
    line_id: int
    row: int
    item_code: str
    item_name: str
    uom: str
    required_qty: float
    previous_quantity: float
    default_location: Optional[str]
    candidates: list[AllocationCandidate] = field(default_factory=list)
    request_id: int = field(default_factory=lambda: next(_request_ids))

    @property
    def available_at_default(self) -> float:
        c = self._find(self.default_location)
        return c.available if c else 0.0

    @property
    def shortage(self) -> float:
        return max(0.0, self.required_qty - self.available_at_default)

    @property
    def total_allocated(self) -> float:
        return sum(c.allocated for c in self.candidates if c.selected)

    @property
    def is_balanced(self) -> bool:
        total = self.total_allocated
        return total > 0 and math.isclose(total, self.required_qty, abs_tol=1e-9)

    def candidate(self, location: str) -> AllocationCandidate:
        c = self._find(location)
        if c is None:
            raise AllocationError(f"Unknown location: {location}")
        return c

    def set_allocated(self, location: str, qty: float) -> None:
        c = self.candidate(location)
        try:
            qty = float(qty)
        except (TypeError, ValueError) as e:
            raise AllocationError(f"Could not parse {qty!r} as a quantity.") from e
        if qty < 0:
            raise AllocationError("Allocated quantity cannot be negative.")
        if qty > c.available + 1e-9:
            raise AllocationError(
                f"Only {fmt_qty(c.available)} {self.uom} available at {location}."
            )
        c.allocated = qty
        c.selected = qty > 0

    def apply(self, entries: Iterable[tuple[str, float]]) -> None:
        """
        Replace the whole split with `entries`. Every entry is checked on a
        copy first; on AllocationError the current split is left as it was.
        """
        trial = replace(self, candidates=[AllocationCandidate(c.location, c.available) for c in self.candidates])
        for loc, qty in entries:
            trial.set_allocated(loc, qty)
        for c, t in zip(self.candidates, trial.candidates):
            c.allocated, c.selected = t.allocated, t.selected

    def set_selected(self, location: str, on: bool) -> None:
        c = self.candidate(location)
        c.selected = bool(on)
        if not on:
            c.allocated = 0.0

    def set_required_qty(self, qty: float) -> None:
        try:
            qty = float(qty)
        except (TypeError, ValueError) as e:
            raise AllocationError(f"Could not parse {qty!r} as a quantity.") from e
        if qty <= 0:
            raise AllocationError("Required quantity must be greater than zero.")
        self.required_qty = qty

    def allocations(self) -> list[WarehouseAllocation]:
        return [
            WarehouseAllocation(c.location, c.allocated)
            for c in self.candidates
            if c.selected and c.allocated > 0
        ]

    def _find(self, location: Optional[str]) -> Optional[AllocationCandidate]:
        return next((c for c in self.candidates if c.location == location), None)


def build_request(
    line: CartLine,
    row: int,
    snapshot: StockSnapshot,
    required_qty: float,
    previous_quantity: float,
    existing: Optional[list[WarehouseAllocation]] = None,
) -> AllocationRequest:
    """
    Candidates for every location the oracle reported. An existing split
    (`existing`, else the line's own) is carried over; otherwise the default
    location is pre-selected with as much as it can cover.
    """
    candidates = [
        AllocationCandidate(name, snapshot.available(name, line.uom))
        for name in snapshot.location_names()
    ]
    req = AllocationRequest(
        line_id=line.line_id,
        row=row,
        item_code=line.item_code,
        item_name=line.item_name,
        uom=line.uom,
        required_qty=float(required_qty),
        previous_quantity=float(previous_quantity),
        default_location=snapshot.default_location,
        candidates=candidates,
    )
    split = line.warehouse_allocations if existing is None else existing
    if split:
        for a in split:
            c = req._find(a.location)
            if c is None:
                # location no longer reported; keep the split visible
                c = AllocationCandidate(a.location, float(a.allocated))
                req.candidates.append(c)
            c.allocated = float(a.allocated)
            c.selected = True
    else:
        c = req._find(snapshot.default_location)
        if c is not None:
            c.selected = True
            c.allocated = max(0.0, min(req.required_qty, c.available))
    return req


@dataclass
class _Open:
    request: AllocationRequest
    done: Done


class WarehouseAllocationResolver(QObject):
    allocationRequested = Signal(object)   # AllocationRequest
    allocationResolved = Signal(object)
    allocationAbandoned = Signal(object)
    notice = Signal(str)

    def __init__(self, store: CartLineStore, client: OracleClient, focus: FocusState, parent=None):
        super().__init__(parent)
        self._store = store
        self._client = client
        self._focus = focus
        self._open: dict[int, _Open] = {}
        self._reconciled: dict[int, tuple[float, str]] = {}

    # ---- queries ----
    def open_request(self, line_id: int) -> Optional[AllocationRequest]:
        o = self._open.get(line_id)
        return o.request if o else None

    def is_reconciled(self, line: CartLine) -> bool:
        key = self._reconciled.get(line.line_id)
        return key is not None and math.isclose(key[0], float(line.quantity)) and same_uom(key[1], line.uom)

    # ---- quantity commit ----
    def check(self, ticket: FocusTicket, required_qty: float, previous_quantity: float, done: Done,
              existing: Optional[list[WarehouseAllocation]] = None) -> None:
        """
        Commit `required_qty` as the line's quantity if the default location
        covers it, else raise an AllocationRequest. The answer is applied only
        while `ticket` is still the current focus. `existing` is the split the line
        carried before the edit started.
        """
        line = self._store.line(ticket.line_id)
        if line is None:
            _call(done, CommitOutcome.DISCARDED)
            return

        def evaluate(snapshot: Optional[StockSnapshot]) -> None:
            if not self._focus.matches(ticket):
                log_event(_log, "allocation", "discarded", "Stock answer arrived after focus moved",
                          {"line_id": ticket.line_id}, level=logging.DEBUG)
                _call(done, CommitOutcome.DISCARDED)
                return
            current = self._store.line(ticket.line_id)
            if current is None:
                _call(done, CommitOutcome.DISCARDED)
                return
            if snapshot is None or required_qty <= snapshot.available_at_default(current.uom) + 1e-9:
                row = self._store.row_of(current.line_id)
                self._store.update(row, {"quantity": float(required_qty), "warehouse_allocations": []})
                self._mark(current.line_id, required_qty, current.uom)
                _call(done, CommitOutcome.COMMITTED)
                return
            self._raise(current, snapshot, required_qty, previous_quantity, done, existing)

        self._fetch(line.item_code, evaluate, soft=True)

    # ---- follow-up after UOM / rate commits ----
    def reconcile(self, line_id: int) -> None:
        """
        Re-check stock for a line whose unit or price changed. Skipped for
        lines already reconciled at their current quantity and unit.
        """
        line = self._store.line(line_id)
        if line is None or float(line.quantity) <= 0 or self.is_reconciled(line):
            return
        if line_id in self._open:
            return
        qty, uom = float(line.quantity), line.uom

        def evaluate(snapshot: Optional[StockSnapshot]) -> None:
            current = self._store.line(line_id)
            # only while the line still holds what was checked
            if current is None or not math.isclose(float(current.quantity), qty) or not same_uom(current.uom, uom):
                return
            if snapshot is None:
                return
            covered = qty <= snapshot.available_at_default(uom) + 1e-9
            if covered or (current.warehouse_allocations and self._split_covers(current, snapshot)):
                self._mark(line_id, qty, uom)
                return
            self._raise(current, snapshot, qty, qty, None)

        self._fetch(line.item_code, evaluate, soft=False)

    # ---- operator re-opens the split ----
    def open_for(self, line_id: int) -> None:
        existing = self._open.get(line_id)
        if existing is not None:
            self.allocationRequested.emit(existing.request)
            return
        line = self._store.line(line_id)
        if line is None or float(line.quantity) <= 0:
            return

        def evaluate(snapshot: Optional[StockSnapshot]) -> None:
            current = self._store.line(line_id)
            if current is None or snapshot is None:
                return
            self._raise(current, snapshot, float(current.quantity), float(current.quantity), None)

        self._fetch(line.item_code, evaluate, soft=False)

    # ---- operator decisions ----
    def resolve(self, request: AllocationRequest, allocations: Union[dict, Iterable, None] = None) -> bool:
        """
        Commit the operator's split. Returns False (request stays open) when
        the allocated total does not equal the requested quantity.
        """
        o = self._open.get(request.line_id)
        if o is None or o.request.request_id != request.request_id:
            return False
        if allocations is not None:
            items = allocations.items() if isinstance(allocations, dict) else allocations
            try:
                request.apply(
                    (e.location, e.allocated) if isinstance(e, WarehouseAllocation) else e for e in items
                )
            except AllocationError as e:
                self.notice.emit(str(e))
                return False
        if not request.is_balanced:
            self.notice.emit(
                f"Allocated {fmt_qty(request.total_allocated)} of {fmt_qty(request.required_qty)} {request.uom}."
            )
            return False
        row = self._store.row_of(request.line_id)
        if row is None:
            self._close(request.line_id, CommitOutcome.DISCARDED)
            return False
        total = request.total_allocated
        self._store.update(row, {"quantity": total, "warehouse_allocations": request.allocations()})
        self._mark(request.line_id, total, request.uom)
        log_event(_log, "allocation", "resolved", "Quantity split across locations",
                  {"row": row, "line_id": request.line_id, "quantity": total,
                   "split": {a.location: a.allocated for a in request.allocations()}})
        self.allocationResolved.emit(request)
        self._close(request.line_id, CommitOutcome.COMMITTED)
        return True

    def abandon(self, request: AllocationRequest) -> None:
        o = self._open.get(request.line_id)
        if o is None or o.request.request_id != request.request_id:
            return
        log_event(_log, "allocation", "abandoned", "Allocation dismissed",
                  {"line_id": request.line_id, "required_qty": request.required_qty})
        self.allocationAbandoned.emit(request)
        self._close(request.line_id, CommitOutcome.ABANDONED)

    def drop(self, line_id: int) -> None:
        """Abandon any open request for a line that is going away."""
        o = self._open.get(line_id)
        if o is not None:
            self.abandon(o.request)
        self._reconciled.pop(line_id, None)

    def reset(self) -> None:
        for line_id in list(self._open):
            self.drop(line_id)
        self._reconciled.clear()

    # ---- internals ----
    def _fetch(self, item_code: str, evaluate, soft: bool) -> None:
        def on_error(exc: Exception) -> None:
            cached = self._client.cached_stock(item_code)
            if cached is not None:
                self.notice.emit(f"Stock service unavailable; using last known stock for {item_code}.")
                evaluate(cached)
                return
            if soft:
                self.notice.emit(f"Stock service unavailable; {item_code} accepted without a stock check.")
            evaluate(None)
        self._client.stock(item_code, evaluate, on_error)

    def _raise(self, line: CartLine, snapshot: StockSnapshot, required_qty: float,
               previous_quantity: float, done: Done,
               existing: Optional[list[WarehouseAllocation]] = None) -> None:
        stale = self._open.get(line.line_id)
        if stale is not None:
            self.abandon(stale.request)
        row = self._store.row_of(line.line_id)
        req = build_request(line, row, snapshot, required_qty, previous_quantity, existing)
        self._open[line.line_id] = _Open(req, done)
        log_event(_log, "allocation", "requested", "Default location short",
                  {"row": row, "line_id": line.line_id, "required_qty": required_qty,
                   "available_at_default": req.available_at_default})
        self.allocationRequested.emit(req)

    def _close(self, line_id: int, outcome: CommitOutcome) -> None:
        o = self._open.pop(line_id, None)
        if o is not None:
            _call(o.done, outcome)

    def _mark(self, line_id: int, qty: float, uom: str) -> None:
        self._reconciled[line_id] = (float(qty), uom)

    @staticmethod
    def _split_covers(line: CartLine, snapshot: StockSnapshot) -> bool:
        return all(
            a.allocated <= snapshot.available(a.location, line.uom) + 1e-9
            for a in line.warehouse_allocations
        )


def _call(done: Done, outcome: CommitOutcome) -> None:
    if done is not None:
        done(outcome)
