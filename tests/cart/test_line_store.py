# tests/cart/test_line_store.py
import pytest

from pos_cart.modules.cart.fields import EditField
from pos_cart.modules.cart.model import CartFilterProxy, CartLine, CartLineStore, WarehouseAllocation


def _store(*lines):
    return CartLineStore(list(lines))


def test_update_is_positional_for_duplicate_codes(qapp):
    a, b = CartLine("SKU1", quantity=1), CartLine("SKU1", quantity=1)
    store = _store(a, b)
    store.update(1, {"quantity": 4})
    assert [ln.quantity for ln in store.lines()] == [1, 4]
    assert a.line_id != b.line_id
    assert store.row_of(b.line_id) == 1


def test_update_rejects_unknown_fields_and_bad_rows(qapp):
    store = _store(CartLine("SKU1"))
    with pytest.raises(KeyError):
        store.update(0, {"item_code": "X"})
    with pytest.raises(IndexError):
        store.update(3, {"quantity": 1})


def test_allocations_must_sum_to_quantity(qapp):
    store = _store(CartLine("SKU1", quantity=5))
    with pytest.raises(ValueError):
        store.update(0, {"warehouse_allocations": [WarehouseAllocation("LocA", 3)]})
    assert store.at(0).warehouse_allocations == []
    store.update(0, {"warehouse_allocations": [WarehouseAllocation("LocA", 3), WarehouseAllocation("LocB", 2)]})
    assert store.at(0).allocated_total == 5


def test_preview_updates_do_not_count_as_commits(qapp, qtbot):
    store = _store(CartLine("SKU1", quantity=1))
    seen = []
    store.lineCommitted.connect(lambda row, patch: seen.append((row, patch)))
    with qtbot.waitSignal(store.lineUpdated, timeout=1000):
        store.update(0, {"quantity": 2}, commit=False)
    assert seen == []
    store.update(0, {"quantity": 3})
    assert seen == [(0, {"quantity": 3})]


def test_patch_values_are_copied(qapp):
    split = [WarehouseAllocation("LocA", 1)]
    store = _store(CartLine("SKU1", quantity=1))
    store.update(0, {"warehouse_allocations": split})
    split[0].allocated = 99
    assert store.at(0).warehouse_allocations[0].allocated == 1


def test_remove_emits_row_and_id(qapp):
    a, b = CartLine("SKU1"), CartLine("SKU2")
    store = _store(a, b)
    seen = []
    store.lineRemoved.connect(lambda row, lid: seen.append((row, lid)))
    store.remove(0)
    assert seen == [(0, a.line_id)]
    assert store.row_of(b.line_id) == 0


def test_line_total_and_cart_total(qapp):
    store = _store(
        CartLine("SKU1", quantity=2, standard_rate=10, discount_percentage=10),
        CartLine("SKU2", quantity=1, standard_rate=5),
    )
    assert store.at(0).line_total == pytest.approx(18.0)
    assert store.total() == pytest.approx(23.0)
    idx = store.index(0, 6)
    assert store.data(idx) == "18.00"


def test_value_text_seeds_edit_buffers():
    ln = CartLine("SKU1", item_name="Ball Pen", quantity=2.5, uom="Box", standard_rate=1200, discount_percentage=0)
    assert ln.value_text(EditField.QUANTITY) == "2.5"
    assert ln.value_text(EditField.RATE) == "1200"
    assert ln.value_text(EditField.DISCOUNT) == "0"
    assert ln.value_text(EditField.UOM) == "Box"
    assert ln.value_text(EditField.DESCRIPTION) == "Ball Pen"


def test_filter_proxy_maps_rows(qapp):
    store = _store(CartLine("SKU1", item_name="Ball Pen"), CartLine("SKU2", item_name="Notebook"))
    proxy = CartFilterProxy()
    proxy.setSourceModel(store)
    proxy.set_search("NOTE")
    assert proxy.rowCount() == 1
    assert proxy.source_row(0) == 1
    assert proxy.visible_row(0) is None
    assert proxy.visible_row(1) == 0
    assert proxy.source_row(5) is None
