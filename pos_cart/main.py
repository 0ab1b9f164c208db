import sys

from PySide6.QtWidgets import (
    QApplication,
    QComboBox,
    QHBoxLayout,
    QMainWindow,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from .config import APP_NAME, load_settings
from .database import get_connection
from .database.repositories.inventory_repo import InventoryRepo
from .modules.cart.controller import CartEditorController
from .utils.loggers import get_logger


class MainWindow(QMainWindow):
    def __init__(self, conn):
        super().__init__()
        self.setWindowTitle(APP_NAME)
        self.setMinimumSize(820, 520)

        self.conn = conn
        self.repo = InventoryRepo(conn)
        self.cart = CartEditorController(self.repo, load_settings(), parent=self)

        self.items = QComboBox()
        for it in self.repo.list_items():
            self.items.addItem(f"{it['item_code']} - {it['item_name']}", it["item_code"])
        self.btn_add = QPushButton("Add")
        self.btn_add.clicked.connect(self._add)
        self.btn_new = QPushButton("New Sale")
        self.btn_new.clicked.connect(self._new_sale)

        top = QHBoxLayout()
        top.addWidget(self.items, 1)
        top.addWidget(self.btn_add)
        top.addWidget(self.btn_new)

        host = QWidget()
        lay = QVBoxLayout(host)
        lay.addLayout(top)
        lay.addWidget(self.cart.get_widget(), 1)
        self.setCentralWidget(host)

    def _add(self):
        code = self.items.currentData()
        line = self.repo.new_line(code) if code else None
        if line is not None:
            self.cart.add_line(line)

    def _new_sale(self):
        self.cart.reset()
        self.cart.store.replace([])


def main():
    get_logger("pos_cart")

    app = QApplication.instance()
    if app is None:
        app = QApplication(sys.argv)
    app.setApplicationName(APP_NAME)

    conn = get_connection()

    win = MainWindow(conn)
    win.show()
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
