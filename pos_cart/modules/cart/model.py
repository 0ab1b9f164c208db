from __future__ import annotations

import copy
import itertools
import math
from dataclasses import dataclass, field
from typing import Optional

from PySide6.QtCore import QAbstractTableModel, QModelIndex, QSortFilterProxyModel, Qt, Signal
from PySide6.QtGui import QColor

from ...utils.helpers import fmt_money, fmt_qty
from .fields import EditField, NUMERIC_FIELDS

_line_ids = itertools.count(1)


@dataclass
class WarehouseAllocation:
    location: str
    allocated: float


@dataclass
class CartLine:
    item_code: str
    item_name: str = ""
    item_description: str = ""
    quantity: float = 0.0
    uom: str = "Nos"
    uom_rates: dict[str, float] = field(default_factory=dict)
    discount_percentage: float = 0.0
    standard_rate: float = 0.0
    warehouse_allocations: list[WarehouseAllocation] = field(default_factory=list)
    # synthetic positional identity; item_code is not unique within a cart
    line_id: int = field(default_factory=lambda: next(_line_ids))

    @property
    def label(self) -> str:
        return self.item_description or self.item_name or self.item_code

    @property
    def line_total(self) -> float:
        gross = float(self.quantity) * float(self.standard_rate)
        return gross * (1.0 - float(self.discount_percentage) / 100.0)

    @property
    def allocated_total(self) -> float:
        return sum(float(a.allocated) for a in self.warehouse_allocations)

    def value_text(self, fld: EditField) -> str:
        """Committed value of `fld` as edit-buffer text."""
        if fld is EditField.ACTIONS:
            return ""
        if fld is EditField.DESCRIPTION:
            return self.label
        value = getattr(self, fld.value)
        if fld in NUMERIC_FIELDS:
            return fmt_qty(value)
        return str(value or "")


class CartLineStore(QAbstractTableModel):
    """
    Ordered cart lines for the active sale.

    Every mutation is addressed by row position; `row_of(line_id)` resolves the
    current position of a line whose row may have shifted.
    """
    HEADERS = ["Product Code", "Label", "Qty", "UOM", "Discount", "Unit Price", "Total", "Actions"]
    COLUMN_OF = {
        EditField.DESCRIPTION: 1,
        EditField.QUANTITY: 2,
        EditField.UOM: 3,
        EditField.DISCOUNT: 4,
        EditField.RATE: 5,
        EditField.ACTIONS: 7,
    }
    _MUTABLE = frozenset({
        "item_description", "quantity", "uom", "uom_rates",
        "discount_percentage", "standard_rate", "warehouse_allocations",
    })

    lineUpdated = Signal(int, object)    # row, applied patch (previews included)
    lineCommitted = Signal(int, object)  # row, patch of an authoritative commit
    lineRemoved = Signal(int, int)    # row, line_id

    def __init__(self, lines: Optional[list[CartLine]] = None, parent=None):
        super().__init__(parent)
        self._lines: list[CartLine] = list(lines or [])
        self._flagged: set[int] = set()

    # ---- Qt model API ----
    def rowCount(self, parent=QModelIndex()):
        return 0 if parent.isValid() else len(self._lines)

    def columnCount(self, parent=QModelIndex()):
        return len(self.HEADERS)

    def data(self, index, role=Qt.DisplayRole):
        if not index.isValid():
            return None
        ln = self._lines[index.row()]
        c = index.column()
        if role in (Qt.DisplayRole, Qt.EditRole):
            mapping = [
                ln.item_code,
                ln.label,
                fmt_qty(ln.quantity),
                ln.uom,
                f"{fmt_qty(ln.discount_percentage)}%",
                fmt_money(ln.standard_rate),
                fmt_money(ln.line_total),
                "✕",
            ]
            return mapping[c] if c < len(mapping) else None
        if role == Qt.BackgroundRole and ln.line_id in self._flagged:
            return QColor("#ffd6d6")
        if role == Qt.ToolTipRole and c == 2 and ln.warehouse_allocations:
            return ", ".join(f"{a.location}: {fmt_qty(a.allocated)}" for a in ln.warehouse_allocations)
        if role == Qt.TextAlignmentRole and 2 <= c <= 6:
            return int(Qt.AlignRight | Qt.AlignVCenter)
        return None

    def headerData(self, section, orientation, role=Qt.DisplayRole):
        if orientation == Qt.Horizontal and role == Qt.DisplayRole:
            return self.HEADERS[section] if section < len(self.HEADERS) else None
        return super().headerData(section, orientation, role)

    # ---- reads ----
    def at(self, row: int) -> CartLine:
        return self._lines[row]

    def lines(self) -> list[CartLine]:
        return list(self._lines)

    def row_of(self, line_id: int) -> Optional[int]:
        for i, ln in enumerate(self._lines):
            if ln.line_id == line_id:
                return i
        return None

    def line(self, line_id: int) -> Optional[CartLine]:
        row = self.row_of(line_id)
        return None if row is None else self._lines[row]

    def total(self) -> float:
        return sum(ln.line_total for ln in self._lines)

    # ---- writes (positional) ----
    def append(self, line: CartLine) -> int:
        r = len(self._lines)
        self.beginInsertRows(QModelIndex(), r, r)
        self._lines.append(line)
        self.endInsertRows()
        return r

    def replace(self, lines: list[CartLine]) -> None:
        self.beginResetModel()
        self._lines = list(lines)
        self._flagged.clear()
        self.endResetModel()

    def update(self, row: int, patch: dict, commit: bool = True) -> CartLine:
        """
        Apply `patch` to the line at `row` in one step (single dataChanged).
        `commit=False` marks a preview or a revert: lineCommitted is not emitted.

        Raises:
            IndexError: row out of range.
            KeyError: patch names a field that cannot be edited.
            ValueError: the result would break sum(allocations) == quantity.
        """
        if not 0 <= row < len(self._lines):
            raise IndexError(f"No cart line at row {row}.")
        unknown = set(patch) - self._MUTABLE
        if unknown:
            raise KeyError(f"Not editable: {', '.join(sorted(unknown))}")
        candidate = copy.deepcopy(self._lines[row])
        for k, v in patch.items():
            setattr(candidate, k, copy.deepcopy(v))
        if candidate.warehouse_allocations and not math.isclose(
            candidate.allocated_total, float(candidate.quantity), abs_tol=1e-9
        ):
            raise ValueError(
                f"Allocations total {fmt_qty(candidate.allocated_total)} "
                f"does not match quantity {fmt_qty(candidate.quantity)}."
            )
        self._lines[row] = candidate
        self._emit_row(row)
        self.lineUpdated.emit(row, dict(patch))
        if commit:
            self.lineCommitted.emit(row, dict(patch))
        return candidate

    def remove(self, row: int) -> CartLine:
        if not 0 <= row < len(self._lines):
            raise IndexError(f"No cart line at row {row}.")
        self.beginRemoveRows(QModelIndex(), row, row)
        ln = self._lines.pop(row)
        self.endRemoveRows()
        self._flagged.discard(ln.line_id)
        self.lineRemoved.emit(row, ln.line_id)
        return ln

    # ---- transient warning flag ----
    def set_flagged(self, line_id: int, on: bool) -> None:
        if on:
            self._flagged.add(line_id)
        else:
            self._flagged.discard(line_id)
        row = self.row_of(line_id)
        if row is not None:
            self._emit_row(row)

    def is_flagged(self, line_id: int) -> bool:
        return line_id in self._flagged

    def _emit_row(self, row: int) -> None:
        self.dataChanged.emit(self.index(row, 0), self.index(row, self.columnCount() - 1))


class CartFilterProxy(QSortFilterProxyModel):
    """Visible view of the cart: rows whose code or label contain the search text."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self._search = ""

    def set_search(self, text: str) -> None:
        text = (text or "").strip().lower()
        if text != self._search:
            self._search = text
            self.invalidateFilter()

    def filterAcceptsRow(self, source_row, source_parent):
        if not self._search:
            return True
        src = self.sourceModel()
        ln = src.at(source_row)
        hay = f"{ln.item_code} {ln.item_name} {ln.item_description}".lower()
        return self._search in hay

    def source_row(self, visible_row: int) -> Optional[int]:
        if not 0 <= visible_row < self.rowCount():
            return None
        return self.mapToSource(self.index(visible_row, 0)).row()

    def visible_row(self, source_row: Optional[int]) -> Optional[int]:
        if source_row is None:
            return None
        idx = self.mapFromSource(self.sourceModel().index(source_row, 0))
        return idx.row() if idx.isValid() else None
