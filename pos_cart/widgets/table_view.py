from PySide6.QtWidgets import QAbstractItemView, QTableView


class TableView(QTableView):
    """Row-select grid; edits go through the cart editor, never the view's own editors."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setAlternatingRowColors(True)
        self.setSelectionBehavior(QTableView.SelectRows)
        self.setSelectionMode(QTableView.SingleSelection)
        self.setEditTriggers(QAbstractItemView.NoEditTriggers)
        self.horizontalHeader().setStretchLastSection(True)
