from __future__ import annotations

from typing import Callable, Optional

from PySide6.QtCore import Qt
from PySide6.QtWidgets import (
    QDialog,
    QDialogButtonBox,
    QDoubleSpinBox,
    QFormLayout,
    QHeaderView,
    QLabel,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
)

from ...utils.helpers import fmt_qty
from ...utils.ui_helpers import error
from .allocation import AllocationError, AllocationRequest


class AllocationDialog(QDialog):
    """
    Split a line's quantity across stock locations.

    Args:
        request: the open AllocationRequest; edited in place
        resolve: callable(request) -> bool; False keeps the dialog open
    """

    COLS = ["Location", "Available", "Allocate"]

    def __init__(
        self,
        request: AllocationRequest,
        resolve: Optional[Callable[[AllocationRequest], bool]] = None,
        parent=None,
    ):
        super().__init__(parent)
        self.setWindowTitle("Allocate Stock")
        self.setModal(True)
        self.request = request
        self._resolve = resolve
        self._spins: list[QDoubleSpinBox] = []

        head = QLabel(
            f"<b>{request.item_code}</b> {request.item_name}<br>"
            f"Default location ({request.default_location or '-'}) has "
            f"{fmt_qty(request.available_at_default)} {request.uom}; "
            f"short by {fmt_qty(request.shortage)}."
        )
        head.setTextFormat(Qt.RichText)

        self.required = QDoubleSpinBox()
        self.required.setDecimals(3)
        self.required.setRange(0.001, 1e9)
        self.required.setValue(request.required_qty)
        self.required.valueChanged.connect(self._refresh_total)

        form = QFormLayout()
        form.addRow("Required qty", self.required)

        self.table = QTableWidget(len(request.candidates), len(self.COLS))
        self.table.setHorizontalHeaderLabels(self.COLS)
        self.table.verticalHeader().setVisible(False)
        self.table.horizontalHeader().setSectionResizeMode(QHeaderView.Stretch)
        for r, c in enumerate(request.candidates):
            name = QTableWidgetItem(c.location + (" (default)" if c.location == request.default_location else ""))
            name.setFlags(Qt.ItemIsEnabled)
            avail = QTableWidgetItem(fmt_qty(c.available))
            avail.setFlags(Qt.ItemIsEnabled)
            avail.setTextAlignment(int(Qt.AlignRight | Qt.AlignVCenter))
            self.table.setItem(r, 0, name)
            self.table.setItem(r, 1, avail)
            spin = QDoubleSpinBox()
            spin.setDecimals(3)
            spin.setRange(0.0, max(c.available, c.allocated))
            spin.setValue(c.allocated if c.selected else 0.0)
            spin.valueChanged.connect(self._refresh_total)
            self.table.setCellWidget(r, 2, spin)
            self._spins.append(spin)

        self.total = QLabel()

        root = QVBoxLayout(self)
        root.addWidget(head)
        root.addLayout(form)
        root.addWidget(self.table, 1)
        root.addWidget(self.total)

        self.buttons = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        self.buttons.accepted.connect(self.accept)
        self.buttons.rejected.connect(self.reject)
        root.addWidget(self.buttons)

        self._refresh_total()
        if self._spins:
            self._spins[0].setFocus()

    def allocated_total(self) -> float:
        return sum(s.value() for s in self._spins)

    def _refresh_total(self, *_):
        self.total.setText(
            f"Allocated {fmt_qty(self.allocated_total())} of {fmt_qty(self.required.value())} {self.request.uom}"
        )

    def _push(self) -> bool:
        """Copy the widgets' values into the request."""
        try:
            self.request.set_required_qty(self.required.value())
            self.request.apply(
                (c.location, spin.value())
                for c, spin in zip(self.request.candidates, self._spins)
                if spin.value() > 0
            )
        except AllocationError as e:
            error(self, "Allocation", str(e))
            return False
        return True

    def accept(self):
        if not self._push():
            return
        if self._resolve is not None and not self._resolve(self.request):
            error(self, "Allocation", self.total.text() + ". The allocated total must match.")
            return
        super().accept()
