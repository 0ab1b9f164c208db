from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from PySide6.QtCore import QObject, QTimer, Signal

from ...utils.helpers import fmt_money
from .model import CartLineStore
from .oracle import UomDetail

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PriceBounds:
    min_price: Optional[float] = None
    max_price: Optional[float] = None

    @classmethod
    def from_detail(cls, detail: Optional[UomDetail]) -> "PriceBounds":
        if detail is None:
            return cls()
        return cls(detail.min_price, detail.max_price)

    def normalized(self) -> tuple[Optional[float], Optional[float]]:
        """Zero or missing bounds mean "no bound"; a max below the min collapses onto the min."""
        lo = self.min_price if self.min_price and self.min_price > 0 else None
        hi = self.max_price if self.max_price and self.max_price > 0 else None
        if lo is not None and hi is not None and hi < lo:
            hi = lo
        return lo, hi


def clamp_rate(value: float, bounds: PriceBounds) -> tuple[float, Optional[str]]:
    """
    Clamp a unit price into `bounds`.

    Returns (price, hit) where hit is "min", "max" or None. A price of exactly 0
    is a waived price and is never clamped.
    """
    if value == 0:
        return 0.0, None
    lo, hi = bounds.normalized()
    if lo is not None and value < lo:
        return lo, "min"
    if hi is not None and value > hi:
        return hi, "max"
    return value, None


class PriceBoundClamp(QObject):
    """Applies clamp_rate and flags the clamped line for a bounded interval."""

    priceClamped = Signal(int, float, float, str)   # line_id, requested, applied, "min"/"max"
    notice = Signal(str)

    def __init__(self, store: CartLineStore, warning_ms: int = 3000, parent=None):
        super().__init__(parent)
        self._store = store
        self._warning_ms = int(warning_ms)
        self._timers: dict[int, QTimer] = {}

    def apply(self, line_id: int, value: float, bounds: PriceBounds) -> float:
        price, hit = clamp_rate(value, bounds)
        if hit is None:
            return price
        word = "minimum" if hit == "min" else "maximum"
        _log.warning("Rate %s on line %s clamped to %s %s", value, line_id, word, price)
        self.notice.emit(f"Price {fmt_money(value)} is outside the allowed range; set to {word} {fmt_money(price)}.")
        self.flag(line_id)
        self.priceClamped.emit(line_id, float(value), float(price), hit)
        return price

    def flag(self, line_id: int) -> None:
        """Raise the line's warning flag; re-flagging restarts the interval."""
        timer = self._timers.get(line_id)
        if timer is None:
            timer = QTimer(self)
            timer.setSingleShot(True)
            timer.timeout.connect(lambda lid=line_id: self._clear(lid))
            self._timers[line_id] = timer
        self._store.set_flagged(line_id, True)
        timer.start(self._warning_ms)

    def forget(self, line_id: int) -> None:
        timer = self._timers.pop(line_id, None)
        if timer is not None:
            timer.stop()
            timer.deleteLater()

    def _clear(self, line_id: int) -> None:
        self.forget(line_id)
        self._store.set_flagged(line_id, False)
