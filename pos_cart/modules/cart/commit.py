"""
modules/cart/commit.py

Purpose
-------
Turn an edit buffer into a committed change of one cart line, or reject /
revert it. Quantity, rate and unit commits consult the inventory oracle and
finish asynchronously; every commit reports its end through `commitFinished`.

Commits are serialized per (line, field): a second commit, or a new edit
session, on a field whose previous commit is still open is refused.
"""

from __future__ import annotations

import logging
from typing import Optional

from PySide6.QtCore import QObject, Signal

from ...config import CartSettings
from ...utils.loggers import log_event
from ...utils.validators import parse_non_negative
from .allocation import WarehouseAllocationResolver
from .fields import EditField, LIVE_FIELDS
from .model import CartLineStore
from .oracle import OracleClient, UomDetail, find_uom
from .pricing import PriceBoundClamp, PriceBounds
from .state import CommitOutcome, FocusState, FocusTicket
from .uom import UomRateResolver

_log = logging.getLogger(__name__)


class _Pending:
    """Marker for an open commit; identity tells a live commit from a cancelled one."""
    __slots__ = ("ticket",)

    def __init__(self, ticket: FocusTicket):
        self.ticket = ticket


def _snapshot_attrs(field: EditField) -> tuple[str, ...]:
    if field is EditField.QUANTITY:
        return ("quantity", "warehouse_allocations")
    if field is EditField.UOM:
        return ("uom", "standard_rate", "uom_rates")
    if field is EditField.ACTIONS:
        return ()
    return (field.value,)


class FieldCommitPipeline(QObject):
    commitFinished = Signal(object, object)   # FocusTicket, CommitOutcome
    notice = Signal(str)

    def __init__(
        self,
        store: CartLineStore,
        focus: FocusState,
        client: OracleClient,
        uom: UomRateResolver,
        allocator: WarehouseAllocationResolver,
        clamp: PriceBoundClamp,
        settings: CartSettings,
        parent=None,
    ):
        super().__init__(parent)
        self._store = store
        self._focus = focus
        self._client = client
        self._uom = uom
        self._allocator = allocator
        self._clamp = clamp
        self._settings = settings
        self._pending: dict[tuple[int, EditField], _Pending] = {}
        self._snapshots: dict[tuple[int, EditField], dict] = {}

    # ---- queries ----
    def is_pending(self, line_id: Optional[int], field: Optional[EditField] = None) -> bool:
        if line_id is None:
            return False
        if field is not None:
            return (line_id, field) in self._pending
        return any(k[0] == line_id for k in self._pending)

    def is_negotiating(self, line_id: Optional[int]) -> bool:
        return (
            self.is_pending(line_id, EditField.QUANTITY)
            and self._allocator.open_request(line_id) is not None
        )

    def is_enterable(self, field: EditField) -> bool:
        if field is EditField.ACTIONS:
            return False
        if field is EditField.DESCRIPTION:
            return bool(self._settings.allow_label_editing)
        return True

    # ---- edit session ----
    def begin(self, ticket: FocusTicket) -> bool:
        """Record the committed values an edit session may have to restore."""
        if ticket.line_id is None or not self.is_enterable(ticket.field):
            return False
        if self.is_pending(ticket.line_id, ticket.field):
            return False
        line = self._store.line(ticket.line_id)
        if line is None:
            return False
        self._snapshots[(ticket.line_id, ticket.field)] = {
            a: getattr(line, a) for a in _snapshot_attrs(ticket.field)
        }
        return True

    def preview(self, ticket: FocusTicket, text: str) -> None:
        """Show a keystroke on the line for live totals; the real commit comes later."""
        if ticket.field not in LIVE_FIELDS or not self.is_enterable(ticket.field):
            return
        key = (ticket.line_id, ticket.field)
        if key not in self._snapshots or key in self._pending:
            return
        row = self._store.row_of(ticket.line_id)
        if row is None:
            return
        if ticket.field is EditField.DESCRIPTION:
            self._store.update(row, {"item_description": text}, commit=False)
            return
        value = parse_non_negative(text)
        if value is None:
            return
        if ticket.field is EditField.QUANTITY:
            self._store.update(row, {"quantity": value, "warehouse_allocations": []}, commit=False)
        else:
            self._store.update(row, {"standard_rate": value}, commit=False)

    def cancel(self, ticket: FocusTicket) -> bool:
        """
        Drop an edit session: restore the committed values. A commit still
        waiting on the oracle is abandoned; an open negotiation is not touched.
        """
        key = (ticket.line_id, ticket.field)
        pending = self._pending.get(key)
        if pending is not None and ticket.field is EditField.QUANTITY and self.is_negotiating(ticket.line_id):
            return False
        self._revert(key)
        if pending is not None:
            self._pending.pop(key, None)
            self._finish(ticket, CommitOutcome.ABANDONED)
        return True

    # ---- commit ----
    def commit(self, ticket: FocusTicket, text: str) -> None:
        key = (ticket.line_id, ticket.field)
        if key in self._pending:
            log_event(_log, "commit", "refused", "Commit already in flight",
                      {"line_id": ticket.line_id, "field": ticket.field.value}, level=logging.DEBUG)
            return
        row = self._store.row_of(ticket.line_id) if ticket.line_id is not None else None
        if row is None or not self.is_enterable(ticket.field):
            self._reject(ticket)
            return
        log_event(_log, "commit", "start", "Committing field",
                  {"row": row, "line_id": ticket.line_id, "field": ticket.field.value, "buffer": text},
                  level=logging.DEBUG)

        fld = ticket.field
        if fld is EditField.DESCRIPTION:
            self._store.update(row, {"item_description": str(text)})
            self._finish(ticket, CommitOutcome.COMMITTED)
        elif fld is EditField.DISCOUNT:
            value = parse_non_negative(text, upper=self._settings.max_discount)
            if value is None:
                self._reject(ticket)
                return
            self._store.update(row, {"discount_percentage": value})
            self._finish(ticket, CommitOutcome.COMMITTED)
        elif fld is EditField.QUANTITY:
            value = parse_non_negative(text)
            if value is None:
                self._reject(ticket)
                return
            self._commit_quantity(ticket, row, value)
        elif fld is EditField.RATE:
            value = parse_non_negative(text)
            if value is None:
                self._reject(ticket)
                return
            self._commit_rate(ticket, value)
        elif fld is EditField.UOM:
            pending = _Pending(ticket)
            self._pending[key] = pending
            self._uom.select(ticket, text, lambda outcome: self._after_uom(ticket, key, pending, outcome))

    def cycle_uom(self, ticket: FocusTicket) -> bool:
        """Cycle the unit of the ticket's line; refused while its unit commit is open."""
        if ticket.line_id is None or self._store.line(ticket.line_id) is None:
            return False
        key = (ticket.line_id, EditField.UOM)
        if key in self._pending:
            return False
        pending = _Pending(ticket)
        self._pending[key] = pending
        self._uom.cycle(ticket, lambda outcome: self._after_uom(ticket, key, pending, outcome))
        return True

    # ---- per-field flows ----
    def _commit_quantity(self, ticket: FocusTicket, row: int, value: float) -> None:
        key = (ticket.line_id, ticket.field)
        snap = self._snapshots.get(key) or {}
        line = self._store.at(row)
        previous = float(snap.get("quantity", line.quantity))
        existing = list(snap.get("warehouse_allocations", line.warehouse_allocations))
        pending = _Pending(ticket)
        self._pending[key] = pending
        # the typed quantity stays visible while stock is checked
        self._store.update(row, {"quantity": value, "warehouse_allocations": []}, commit=False)

        def done(outcome: CommitOutcome) -> None:
            if self._pending.get(key) is not pending:
                return  # cancelled meanwhile
            del self._pending[key]
            if outcome is not CommitOutcome.COMMITTED:
                self._revert(key)
            self._finish(ticket, outcome)

        self._allocator.check(ticket, value, previous, done, existing)

    def _commit_rate(self, ticket: FocusTicket, value: float) -> None:
        key = (ticket.line_id, ticket.field)
        pending = _Pending(ticket)
        self._pending[key] = pending
        line = self._store.line(ticket.line_id)
        item_code = line.item_code

        def apply(details: Optional[list[UomDetail]]) -> None:
            if self._pending.get(key) is not pending:
                return
            del self._pending[key]
            if not self._focus.matches(ticket):
                self._revert(key)
                log_event(_log, "commit", "discarded", "Price limits arrived after focus moved",
                          {"line_id": ticket.line_id}, level=logging.DEBUG)
                self._finish(ticket, CommitOutcome.DISCARDED)
                return
            row = self._store.row_of(ticket.line_id)
            if row is None:
                self._finish(ticket, CommitOutcome.DISCARDED)
                return
            current = self._store.at(row)
            bounds = PriceBounds.from_detail(find_uom(details or [], current.uom))
            price = self._clamp.apply(current.line_id, value, bounds)
            self._store.update(row, {"standard_rate": price})
            self._finish(ticket, CommitOutcome.COMMITTED)
            self._allocator.reconcile(current.line_id)

        def on_error(exc: Exception) -> None:
            cached = self._client.cached_uom_details(item_code)
            if cached is None:
                self.notice.emit(f"Price limits for {item_code} are unavailable; price accepted as entered.")
            apply(cached)

        self._client.uom_details(item_code, apply, on_error)

    def _after_uom(self, ticket: FocusTicket, key, pending: _Pending, outcome: CommitOutcome) -> None:
        if self._pending.get(key) is not pending:
            return
        del self._pending[key]
        self._finish(ticket, outcome, key)
        if outcome is CommitOutcome.COMMITTED:
            self._allocator.reconcile(ticket.line_id)

    # ---- bookkeeping ----
    def forget(self, line_id: int) -> None:
        """Drop sessions and in-flight commits of a line that is going away."""
        for key in [k for k in self._pending if k[0] == line_id]:
            del self._pending[key]
        for key in [k for k in self._snapshots if k[0] == line_id]:
            del self._snapshots[key]

    def reset(self) -> None:
        self._pending.clear()
        self._snapshots.clear()

    def _reject(self, ticket: FocusTicket) -> None:
        self._revert((ticket.line_id, ticket.field))
        self._finish(ticket, CommitOutcome.REJECTED)

    def _revert(self, key) -> None:
        snap = self._snapshots.pop(key, None)
        if not snap:
            return
        row = self._store.row_of(key[0])
        if row is None:
            return
        line = self._store.at(row)
        if any(getattr(line, a) != v for a, v in snap.items()):
            self._store.update(row, snap, commit=False)

    def _finish(self, ticket: FocusTicket, outcome: CommitOutcome, key=None) -> None:
        self._snapshots.pop(key or (ticket.line_id, ticket.field), None)
        log_event(_log, "commit", outcome.value, "Commit finished",
                  {"line_id": ticket.line_id, "field": ticket.field.value},
                  level=logging.INFO if outcome is CommitOutcome.COMMITTED else logging.DEBUG)
        self.commitFinished.emit(ticket, outcome)
