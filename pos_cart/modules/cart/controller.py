from __future__ import annotations

import logging
from typing import Iterable, Optional, Union

from PySide6.QtCore import Signal
from PySide6.QtWidgets import QWidget

from ...config import CartSettings
from ...utils.loggers import log_event
from ..base_module import BaseModule
from .allocation import AllocationRequest, WarehouseAllocationResolver
from .commit import FieldCommitPipeline
from .fields import EditField
from .focus import Direction, GridFocusController
from .model import CartFilterProxy, CartLine, CartLineStore
from .oracle import InventoryOracle, OracleClient
from .pricing import PriceBoundClamp
from .state import FocusState
from .uom import UomRateResolver

_log = logging.getLogger(__name__)


class CartEditorController(BaseModule):
    """
    Cart line editing engine behind one sale's item grid.

    Wires the store, its filtered view, the focus controller and the commit
    pipeline with its resolvers, and re-exposes their signals as the editor's
    outward callbacks. Rows in the public API are visible (filtered) rows
    unless a method says otherwise.
    """

    focusChanged = Signal(int, str, bool)        # visible row (-1: none), field, is_editing
    lineCommitted = Signal(int, object)          # store row, patch
    allocationRequested = Signal(object)         # AllocationRequest
    allocationResolved = Signal(object)
    allocationAbandoned = Signal(object)
    lineRemoved = Signal(int)                    # store row
    notice = Signal(str)
    priceClamped = Signal(int, float, float, str)
    scrollRequested = Signal(int)
    editorFocusRequested = Signal(int, str)
    bufferChanged = Signal(str)

    def __init__(
        self,
        oracle: Union[InventoryOracle, OracleClient],
        settings: Optional[CartSettings] = None,
        lines: Optional[Iterable[CartLine]] = None,
        parent=None,
    ):
        super().__init__(parent)
        self.settings = settings or CartSettings()
        self.client = oracle if isinstance(oracle, OracleClient) else OracleClient(oracle, parent=self)

        self.store = CartLineStore(list(lines or []), parent=self)
        self.proxy = CartFilterProxy(self)
        self.proxy.setSourceModel(self.store)
        self.state = FocusState()

        self.uom = UomRateResolver(self.store, self.client, self.state, parent=self)
        self.allocator = WarehouseAllocationResolver(self.store, self.client, self.state, parent=self)
        self.clamp = PriceBoundClamp(self.store, self.settings.price_warning_ms, parent=self)
        self.pipeline = FieldCommitPipeline(
            self.store, self.state, self.client, self.uom, self.allocator, self.clamp, self.settings, parent=self
        )
        self.focus = GridFocusController(self.store, self.proxy, self.pipeline, self.state, self.settings, parent=self)
        self.view = None

        self._wire()

    def get_widget(self) -> QWidget:
        if self.view is None:
            from .view import CartItemsView
            self.view = CartItemsView(self)
        return self.view

    # ---- wiring ----
    def _wire(self):
        f = self.focus
        f.focusChanged.connect(self.focusChanged)
        f.scrollRequested.connect(self.scrollRequested)
        f.editorFocusRequested.connect(self.editorFocusRequested)
        f.bufferChanged.connect(self.bufferChanged)
        f.deleteRequested.connect(self.remove_line)

        self.store.lineCommitted.connect(self.lineCommitted)

        a = self.allocator
        a.allocationRequested.connect(self.allocationRequested)
        a.allocationResolved.connect(self.allocationResolved)
        a.allocationAbandoned.connect(self.allocationAbandoned)

        self.clamp.priceClamped.connect(self.priceClamped)
        for src in (self.pipeline, self.uom, a, self.clamp):
            src.notice.connect(self.notice)

    # ---- lines ----
    def add_line(self, line: CartLine) -> int:
        """Append a line to the sale; returns its store row."""
        if not line.uom:
            line.uom = self.settings.default_uom
        row = self.store.append(line)
        log_event(_log, "cart", "added", "Line added",
                  {"row": row, "line_id": line.line_id, "item_code": line.item_code}, level=logging.DEBUG)
        return row

    def line_at(self, row: int) -> Optional[CartLine]:
        """Line at a visible row."""
        return self.focus.line_at(row)

    def lines(self) -> list[CartLine]:
        return self.store.lines()

    def remove_line(self, row: int) -> bool:
        """Delete the line at store row `row`, abandoning any negotiation on it."""
        if not 0 <= row < self.store.rowCount():
            return False
        line_id = self.store.at(row).line_id
        self.allocator.drop(line_id)
        self.pipeline.forget(line_id)
        self.clamp.forget(line_id)
        self.store.remove(row)
        log_event(_log, "cart", "removed", "Line removed", {"row": row, "line_id": line_id})
        self.lineRemoved.emit(row)
        return True

    def set_filter(self, text: str) -> None:
        self.proxy.set_search(text)

    def reset(self) -> None:
        """Idle on Quantity with an empty buffer; open negotiations are abandoned."""
        self.allocator.reset()
        self.focus.reset()

    # ---- focus contract ----
    def select(self, row: int) -> bool:
        return self.focus.select(row)

    def start_edit(self, row: int, field: EditField) -> bool:
        return self.focus.start_edit(row, EditField(field))

    def navigate(self, direction: Direction) -> bool:
        return self.focus.navigate(Direction(direction))

    def commit_and_exit(self) -> bool:
        return self.focus.commit_and_exit()

    def cancel_edit(self) -> bool:
        return self.focus.cancel_edit()

    def enter(self) -> bool:
        return self.focus.enter()

    def set_buffer(self, text: str) -> None:
        self.focus.set_buffer(text)

    def cycle_uom(self) -> bool:
        return self.focus.cycle_uom()

    # ---- allocation ----
    def resolve_allocation(self, request: AllocationRequest, allocations=None) -> bool:
        return self.allocator.resolve(request, allocations)

    def abandon_allocation(self, request: AllocationRequest) -> None:
        self.allocator.abandon(request)

    def open_allocation(self, row: int) -> bool:
        """Re-open the split for the line at visible row `row`."""
        line = self.line_at(row)
        if line is None:
            return False
        self.allocator.open_for(line.line_id)
        return True
