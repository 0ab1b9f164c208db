from PySide6.QtWidgets import QMessageBox, QWidget


def error(parent: QWidget, title: str, text: str):
    QMessageBox.critical(parent, title, text)
