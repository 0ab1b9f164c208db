from __future__ import annotations

import logging
from typing import Callable, Optional

from PySide6.QtCore import QObject, Signal

from ...utils.helpers import same_uom
from ...utils.loggers import log_event
from .model import CartLine, CartLineStore
from .oracle import OracleClient, UomDetail
from .state import CommitOutcome, FocusState, FocusTicket

_log = logging.getLogger(__name__)

UomList = list[tuple[str, float]]


def ordered_uoms(details: list[UomDetail]) -> UomList:
    return [(d.uom, float(d.rate or 0.0)) for d in details]


def next_uom(ordered: UomList, current: str) -> Optional[tuple[str, float]]:
    """The unit after `current` (case-insensitive); an unknown current counts as the first."""
    if not ordered:
        return None
    idx = next((i for i, (u, _) in enumerate(ordered) if same_uom(u, current)), 0)
    return ordered[(idx + 1) % len(ordered)]


def match_uom(ordered: UomList, text: str) -> Optional[tuple[str, float]]:
    return next(((u, r) for u, r in ordered if same_uom(u, text)), None)


class UomRateResolver(QObject):
    """
    Moves a line between the units its item is sold in. The unit and its
    rate are always written together in one store update.
    """

    notice = Signal(str)

    def __init__(self, store: CartLineStore, client: OracleClient, focus: FocusState, parent=None):
        super().__init__(parent)
        self._store = store
        self._client = client
        self._focus = focus

    def cycle(self, ticket: FocusTicket, done: Callable[[CommitOutcome], None]) -> None:
        """Advance the line to the next unit in the item's list."""
        def apply(line: CartLine, ordered: UomList) -> CommitOutcome:
            nxt = next_uom(ordered, line.uom)
            if nxt is None:
                return CommitOutcome.REJECTED
            return self._write(line, nxt, ordered, commit=True)
        self._with_uoms(ticket, apply, done)

    def select(self, ticket: FocusTicket, text: str, done: Callable[[CommitOutcome], None]) -> None:
        """Switch to a unit typed by the operator; unknown units revert to the previous one."""
        def apply(line: CartLine, ordered: UomList) -> CommitOutcome:
            if not ordered:
                return CommitOutcome.REJECTED
            hit = match_uom(ordered, text)
            if hit is not None:
                return self._write(line, hit, ordered, commit=True)
            previous = line.uom
            known = match_uom(ordered, previous)
            rate = known[1] if known else float(line.standard_rate)
            self._write(line, (previous, rate), ordered, commit=False)
            self.notice.emit(f"No {str(text).strip()} available. Reverted to {previous}.")
            return CommitOutcome.REVERTED
        self._with_uoms(ticket, apply, done)

    # ---- helpers ----
    def _with_uoms(self, ticket: FocusTicket, apply, done) -> None:
        line = self._store.line(ticket.line_id) if ticket.line_id is not None else None
        if line is None:
            done(CommitOutcome.REJECTED)
            return
        item_code = line.item_code

        def finish(ordered: UomList) -> None:
            if not self._focus.matches(ticket):
                log_event(_log, "uom", "discarded", "UOM answer arrived after focus moved",
                          {"line_id": ticket.line_id}, level=logging.DEBUG)
                done(CommitOutcome.DISCARDED)
                return
            current = self._store.line(ticket.line_id)
            if current is None:
                done(CommitOutcome.DISCARDED)
                return
            done(apply(current, ordered))

        def on_result(details: list[UomDetail]) -> None:
            finish(ordered_uoms(details))

        def on_error(exc: Exception) -> None:
            current = self._store.line(ticket.line_id)
            cached = list(current.uom_rates.items()) if current is not None else []
            if not cached:
                self.notice.emit(f"Units for {item_code} are unavailable right now.")
            finish(cached)

        self._client.uom_details(item_code, on_result, on_error)

    def _write(self, line: CartLine, target: tuple[str, float], ordered: UomList, commit: bool) -> CommitOutcome:
        row = self._store.row_of(line.line_id)
        if row is None:
            return CommitOutcome.DISCARDED
        uom, rate = target
        patch = {"uom": uom, "standard_rate": float(rate), "uom_rates": dict(ordered)}
        self._store.update(row, patch, commit=commit)
        log_event(_log, "uom", "committed" if commit else "reverted", "UOM set",
                  {"row": row, "line_id": line.line_id, "uom": uom, "rate": rate})
        return CommitOutcome.COMMITTED if commit else CommitOutcome.REVERTED
