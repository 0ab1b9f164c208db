from __future__ import annotations

from PySide6.QtCore import QEvent, QObject, Qt, QTimer
from PySide6.QtWidgets import QHBoxLayout, QLabel, QLineEdit, QVBoxLayout, QWidget

from ...utils.helpers import fmt_money
from ...widgets.table_view import TableView
from .allocation_dialog import AllocationDialog
from .fields import EditField
from .focus import Direction
from .model import CartLineStore

_ARROWS = {
    Qt.Key_Left: Direction.LEFT,
    Qt.Key_Right: Direction.RIGHT,
    Qt.Key_Up: Direction.UP,
    Qt.Key_Down: Direction.DOWN,
}
_FIELD_AT = {col: fld for fld, col in CartLineStore.COLUMN_OF.items()}


class CartItemsView(QWidget):
    """
    Item grid of the cart editor. Keys and clicks are forwarded to the
    controller; the view only mirrors the focus it reports.
    """

    def __init__(self, controller, parent=None):
        super().__init__(parent)
        self.controller = controller

        self.search = QLineEdit()
        self.search.setPlaceholderText("Filter by code or name…")
        self.table = TableView()
        self.table.setModel(controller.proxy)
        self.table.installEventFilter(self)

        self.editor = QLineEdit(self.table.viewport())
        self.editor.hide()
        self.editor.installEventFilter(self)

        self.notice = QLabel()
        self.notice.setStyleSheet("color: #a15c00;")
        self.notice.hide()
        self._notice_timer = QTimer(self)
        self._notice_timer.setSingleShot(True)
        self._notice_timer.timeout.connect(self.notice.hide)
        self._dialog = None

        self.total = QLabel()
        self.total.setAlignment(Qt.AlignRight | Qt.AlignVCenter)

        bottom = QHBoxLayout()
        bottom.addWidget(self.notice, 1)
        bottom.addWidget(self.total)

        lay = QVBoxLayout(self)
        lay.addWidget(self.search)
        lay.addWidget(self.table, 1)
        lay.addLayout(bottom)

        self._wire()
        self._refresh_total()

    def _wire(self):
        c = self.controller
        self.search.textChanged.connect(c.set_filter)
        self.table.clicked.connect(self._on_clicked)
        self.table.doubleClicked.connect(self._on_double_clicked)
        self.editor.textEdited.connect(c.set_buffer)

        c.focusChanged.connect(self._on_focus_changed)
        c.scrollRequested.connect(self._on_scroll_requested)
        c.editorFocusRequested.connect(self._on_editor_focus_requested)
        c.bufferChanged.connect(self._on_buffer_changed)
        c.allocationRequested.connect(self._on_allocation_requested)
        c.allocationAbandoned.connect(self._on_allocation_abandoned)
        c.notice.connect(self.show_notice)

        for sig in (c.store.dataChanged, c.store.rowsInserted, c.store.rowsRemoved, c.store.modelReset):
            sig.connect(self._refresh_total)

    # ---- controller -> view ----
    def show_notice(self, text: str):
        self.notice.setText(text)
        self.notice.show()
        self._notice_timer.start(self.controller.settings.notice_ms)

    def _on_focus_changed(self, row: int, field: str, editing: bool):
        if row < 0:
            self.table.clearSelection()
        else:
            self.table.selectRow(row)
        if not editing and self.editor.isVisible():
            self.editor.hide()
            self.table.setFocus()

    def _on_scroll_requested(self, row: int):
        self.table.scrollTo(self.controller.proxy.index(row, 0))

    def _on_editor_focus_requested(self, row: int, field: str):
        col = CartLineStore.COLUMN_OF[EditField(field)]
        rect = self.table.visualRect(self.controller.proxy.index(row, col))
        self.editor.setGeometry(rect)
        self.editor.setText(self.controller.state.edit_buffer)
        self.editor.show()
        self.editor.setFocus()
        self.editor.selectAll()

    def _on_buffer_changed(self, text: str):
        if self.editor.isVisible() and self.editor.text() != text:
            self.editor.setText(text)
            self.editor.selectAll()

    def _on_allocation_requested(self, request):
        dlg = AllocationDialog(request, resolve=self.controller.resolve_allocation, parent=self)
        self._dialog = dlg
        try:
            if dlg.exec() != AllocationDialog.Accepted:
                self.controller.abandon_allocation(request)
        finally:
            self._dialog = None

    def _on_allocation_abandoned(self, request):
        # closed from outside, e.g. its line was removed
        dlg = self._dialog
        if dlg is not None and dlg.request.request_id == request.request_id:
            dlg.reject()

    def _refresh_total(self, *_):
        self.total.setText(f"Total: {fmt_money(self.controller.store.total())}")

    # ---- view -> controller ----
    def _on_clicked(self, index):
        c = self.controller
        fld = _FIELD_AT.get(index.column())
        if fld is EditField.ACTIONS:
            src = c.proxy.source_row(index.row())
            if src is not None:
                c.remove_line(src)
            return
        c.select(index.row())

    def _on_double_clicked(self, index):
        fld = _FIELD_AT.get(index.column())
        if fld is not None:
            self.controller.start_edit(index.row(), fld)

    def eventFilter(self, obj: QObject, event: QEvent) -> bool:
        if event.type() == QEvent.KeyPress:
            if obj is self.editor:
                return self._editor_key(event)
            if obj is self.table:
                return self._table_key(event)
        elif event.type() == QEvent.FocusOut and obj is self.editor:
            # blur commits; refused while a commit is already open
            if self.editor.isVisible() and event.reason() != Qt.PopupFocusReason:
                QTimer.singleShot(0, self._commit_on_blur)
        return super().eventFilter(obj, event)

    def _commit_on_blur(self):
        if self.editor.isVisible() and not self.editor.hasFocus():
            self.controller.commit_and_exit()

    def _table_key(self, event) -> bool:
        c = self.controller
        key = event.key()
        if key in _ARROWS:
            c.navigate(_ARROWS[key])
            return True
        if key in (Qt.Key_Return, Qt.Key_Enter):
            c.enter()
            return True
        if key == Qt.Key_Space:
            c.cycle_uom()
            return True
        if key == Qt.Key_Escape:
            c.cancel_edit()
            return True
        return False

    def _editor_key(self, event) -> bool:
        c = self.controller
        key = event.key()
        ed = self.editor
        if key in (Qt.Key_Return, Qt.Key_Enter):
            c.enter()
            return True
        if key == Qt.Key_Escape:
            c.cancel_edit()
            return True
        if key in (Qt.Key_Up, Qt.Key_Down):
            c.navigate(_ARROWS[key])
            return True
        # arrows leave the cell only from its edges
        if key == Qt.Key_Left and ed.cursorPosition() == 0 and not ed.hasSelectedText():
            c.navigate(Direction.LEFT)
            return True
        if key == Qt.Key_Right and ed.cursorPosition() == len(ed.text()) and not ed.hasSelectedText():
            c.navigate(Direction.RIGHT)
            return True
        if key == Qt.Key_Space and c.state.active_field is EditField.UOM:
            c.cycle_uom()
            return True
        return False
