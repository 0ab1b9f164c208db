# tests/cart/test_cart_view.py
import pytest
from PySide6.QtCore import Qt

from pos_cart.modules.cart.allocation_dialog import AllocationDialog
from pos_cart.modules.cart.fields import EditField


@pytest.fixture
def view(qtbot, make_editor, new_line):
    ed = make_editor([new_line(), new_line(item_code="SKU2", item_name="Notebook")])
    w = ed.get_widget()
    qtbot.addWidget(w)
    w.show()
    return w


def test_keys_drive_the_editor(view, qtbot):
    ed = view.controller
    view.table.setFocus()
    qtbot.keyClick(view.table, Qt.Key_Down)
    assert ed.state.selected_row_index == 0
    qtbot.keyClick(view.table, Qt.Key_Return)
    assert ed.state.is_editing
    assert view.editor.isVisible()
    assert view.editor.text() == "1"

    view.editor.selectAll()
    qtbot.keyClicks(view.editor, "2")
    assert ed.state.edit_buffer == "2"
    qtbot.keyClick(view.editor, Qt.Key_Escape)
    assert not view.editor.isVisible()
    assert ed.store.at(0).quantity == 1


def test_space_cycles_unit_from_grid(view, qtbot):
    ed = view.controller
    ed.select(0)
    qtbot.keyClick(view.table, Qt.Key_Space)
    assert ed.store.at(0).uom == "Box"


def test_search_box_filters_rows(view):
    view.search.setText("notebook")
    assert view.controller.proxy.rowCount() == 1
    assert view.table.model().rowCount() == 1


def test_notice_shows_and_hides(view, qtbot):
    view.show_notice("Price adjusted")
    assert view.notice.isVisible()
    assert view.notice.text() == "Price adjusted"
    qtbot.waitUntil(lambda: not view.notice.isVisible(), timeout=2000)


def test_total_label_follows_store(view):
    ed = view.controller
    ed.start_edit(0, EditField.RATE)
    ed.set_buffer("12")
    assert "22.00" in view.total.text()


def test_allocation_dialog_pushes_values(qtbot, make_editor, new_line):
    ed = make_editor([new_line()])
    requests = []
    ed.allocationRequested.connect(requests.append)
    ed.start_edit(0, EditField.QUANTITY)
    ed.set_buffer("5")
    ed.enter()
    req = requests[0]

    dlg = AllocationDialog(req, resolve=ed.resolve_allocation)
    qtbot.addWidget(dlg)
    assert dlg._spins[0].value() == 3
    dlg._spins[1].setValue(2)
    assert dlg.allocated_total() == 5
    dlg.accept()
    assert dlg.result() == AllocationDialog.Accepted
    assert ed.store.at(0).quantity == 5
    assert [a.location for a in ed.store.at(0).warehouse_allocations] == ["LocA", "LocB"]
