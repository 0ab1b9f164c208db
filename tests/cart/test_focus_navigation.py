# tests/cart/test_focus_navigation.py
import pytest

from pos_cart.config import CartSettings
from pos_cart.modules.cart.fields import EditField, field_order, step
from pos_cart.modules.cart.focus import Direction, EDITING, IDLE


@pytest.mark.parametrize("allow_label", [False, True])
@pytest.mark.parametrize("moves", ["RRRRRRR", "LLLL", "RLRRLRRRLL", "RRRLLLLLLL", "RRRRRLR"])
def test_horizontal_moves_follow_clamped_field_order(make_editor, new_line, allow_label, moves):
    ed = make_editor([new_line()], settings_=CartSettings(allow_label_editing=allow_label))
    ed.select(0)
    order = field_order(allow_label)
    expected = EditField.QUANTITY
    for m in moves:
        delta = 1 if m == "R" else -1
        ed.navigate(Direction.RIGHT if delta > 0 else Direction.LEFT)
        expected = step(order, expected, delta)
        assert ed.state.active_field is expected
        assert ed.state.selected_row_index == 0


def test_right_past_rate_lands_on_actions_of_same_row(make_editor, new_line):
    ed = make_editor([new_line(), new_line()])
    ed.select(1)
    for _ in range(10):
        ed.navigate(Direction.RIGHT)
    assert ed.state.active_field is EditField.ACTIONS
    assert ed.state.selected_row_index == 1


def test_left_from_first_field_is_noop(make_editor, new_line):
    ed = make_editor([new_line()])
    ed.select(0)
    assert ed.navigate(Direction.LEFT) is False
    assert ed.state.active_field is EditField.QUANTITY


def test_vertical_without_selection_picks_first_or_last(make_editor, new_line):
    ed = make_editor([new_line(), new_line(), new_line()])
    assert ed.navigate(Direction.DOWN)
    assert ed.state.selected_row_index == 0

    ed2 = make_editor([new_line(), new_line(), new_line()])
    assert ed2.navigate(Direction.UP)
    assert ed2.state.selected_row_index == 2


def test_vertical_moves_clamp_and_keep_field(make_editor, new_line):
    ed = make_editor([new_line(), new_line()])
    ed.select(0)
    ed.navigate(Direction.RIGHT)  # UOM
    assert ed.navigate(Direction.DOWN)
    assert (ed.state.selected_row_index, ed.state.active_field) == (1, EditField.UOM)
    assert ed.navigate(Direction.DOWN) is False
    assert ed.state.selected_row_index == 1
    ed.navigate(Direction.UP)
    assert ed.navigate(Direction.UP) is False
    assert ed.state.selected_row_index == 0


def test_navigation_on_empty_cart_does_nothing(make_editor):
    ed = make_editor([])
    assert ed.navigate(Direction.DOWN) is False
    assert ed.state.selected_row_index is None


def test_start_edit_seeds_buffer_from_target_row(make_editor, new_line):
    ed = make_editor([new_line(discount_percentage=5), new_line(discount_percentage=7)])
    assert ed.start_edit(0, EditField.DISCOUNT)
    ed.set_buffer("50")
    ed.cancel_edit()
    assert ed.start_edit(1, EditField.DISCOUNT)
    assert ed.state.edit_buffer == "7"
    assert ed.focus.state == EDITING


def test_vertical_move_while_editing_commits_and_reseeds(make_editor, new_line):
    ed = make_editor([new_line(discount_percentage=5), new_line(discount_percentage=7)])
    ed.start_edit(0, EditField.DISCOUNT)
    ed.set_buffer("12.5")
    ed.navigate(Direction.DOWN)

    assert ed.store.at(0).discount_percentage == 12.5
    assert ed.store.at(1).discount_percentage == 7
    assert ed.state.is_editing
    assert ed.state.selected_row_index == 1
    assert ed.state.edit_buffer == "7"


def test_horizontal_move_while_editing_opens_neighbour(make_editor, new_line):
    ed = make_editor([new_line()])
    ed.start_edit(0, EditField.QUANTITY)
    ed.navigate(Direction.RIGHT)
    assert (ed.state.active_field, ed.state.is_editing, ed.state.edit_buffer) == (EditField.UOM, True, "Nos")
    ed.navigate(Direction.RIGHT)
    ed.navigate(Direction.RIGHT)
    assert (ed.state.active_field, ed.state.edit_buffer) == (EditField.RATE, "10")
    ed.navigate(Direction.RIGHT)
    assert ed.state.active_field is EditField.ACTIONS
    assert ed.focus.state == IDLE


def test_unchanged_buffer_is_not_recommitted_on_navigation(make_editor, new_line, recorder):
    ed = make_editor([new_line()])
    recorder.connect(ed.lineCommitted, "committed")
    ed.start_edit(0, EditField.QUANTITY)
    ed.navigate(Direction.RIGHT)
    assert recorder["committed"] == []


def test_editor_focus_requested_once_per_entry(make_editor, new_line, recorder):
    ed = make_editor([new_line(), new_line()])
    recorder.connect(ed.editorFocusRequested, "focus")
    ed.start_edit(0, EditField.QUANTITY)
    ed.set_buffer("2")
    ed.set_buffer("3")
    assert recorder["focus"] == [(0, "quantity")]
    ed.navigate(Direction.DOWN)
    assert recorder["focus"] == [(0, "quantity"), (1, "quantity")]


def test_focus_changes_request_scroll(make_editor, new_line, recorder):
    ed = make_editor([new_line(), new_line(), new_line()])
    recorder.connect(ed.scrollRequested, "scroll")
    recorder.connect(ed.focusChanged, "focus")
    ed.select(2)
    ed.navigate(Direction.UP)
    assert recorder["scroll"] == [2, 1]
    assert recorder["focus"][-1] == (1, "quantity", False)


def test_escape_discards_buffer_and_preview(make_editor, new_line, recorder):
    ed = make_editor([new_line()])
    recorder.connect(ed.lineCommitted, "committed")
    ed.start_edit(0, EditField.RATE)
    ed.set_buffer("12")
    assert ed.store.at(0).standard_rate == 12  # live preview
    assert ed.cancel_edit()
    assert ed.store.at(0).standard_rate == 10
    assert ed.focus.state == IDLE
    assert ed.state.edit_buffer == ""
    assert recorder["committed"] == []


def test_enter_commits_and_advances(make_editor, new_line):
    ed = make_editor([new_line()])
    ed.start_edit(0, EditField.DISCOUNT)
    ed.set_buffer("10")
    ed.enter()
    line = ed.store.at(0)
    assert line.discount_percentage == 10
    assert line.line_total == pytest.approx(9.0)
    assert (ed.state.active_field, ed.state.is_editing, ed.state.edit_buffer) == (EditField.RATE, True, "10")


def test_enter_when_idle_opens_the_targeted_cell(make_editor, new_line):
    ed = make_editor([new_line(quantity=4)])
    ed.select(0)
    ed.enter()
    assert ed.state.is_editing
    assert ed.state.edit_buffer == "4"


def test_commit_and_exit_stays_on_field(make_editor, new_line):
    ed = make_editor([new_line()])
    ed.start_edit(0, EditField.DISCOUNT)
    ed.set_buffer("3")
    assert ed.commit_and_exit()
    assert ed.state.active_field is EditField.DISCOUNT
    assert ed.focus.state == IDLE
    assert ed.store.at(0).discount_percentage == 3


def test_description_not_enterable_without_label_editing(make_editor, new_line):
    ed = make_editor([new_line()])
    assert ed.start_edit(0, EditField.DESCRIPTION) is False
    assert ed.focus.state == IDLE


def test_description_edit_when_enabled(make_editor, new_line):
    ed = make_editor([new_line()], settings_=CartSettings(allow_label_editing=True))
    assert ed.start_edit(0, EditField.DESCRIPTION)
    assert ed.state.edit_buffer == "Ball Pen"
    ed.set_buffer("Ball pen (red)")
    ed.enter()
    assert ed.store.at(0).item_description == "Ball pen (red)"
    assert ed.state.active_field is EditField.QUANTITY
    assert ed.state.is_editing


def test_enter_on_actions_removes_row(make_editor, new_line, recorder):
    first, second = new_line(), new_line(quantity=2)
    ed = make_editor([first, second])
    recorder.connect(ed.lineRemoved, "removed")
    ed.select(0)
    for _ in range(4):
        ed.navigate(Direction.RIGHT)
    assert ed.state.active_field is EditField.ACTIONS
    assert ed.start_edit(0, EditField.ACTIONS) is False
    ed.enter()
    assert recorder["removed"] == [0]
    assert [ln.line_id for ln in ed.lines()] == [second.line_id]
    assert ed.state.selected_row_index == 0
    assert ed.state.line_id == second.line_id


def test_removing_last_row_clears_selection(make_editor, new_line):
    ed = make_editor([new_line()])
    ed.start_edit(0, EditField.DISCOUNT)
    ed.remove_line(0)
    assert ed.state.selected_row_index is None
    assert ed.focus.state == IDLE


def test_focus_follows_line_across_filter(make_editor, new_line):
    other = new_line(item_code="SKU2", item_name="Notebook")
    ed = make_editor([new_line(), new_line(), other])
    ed.select(0)
    ed.set_filter("notebook")
    assert ed.proxy.rowCount() == 1
    assert ed.state.selected_row_index == 0
    assert ed.state.line_id == other.line_id
    ed.set_filter("")
    assert ed.state.selected_row_index == 2
    assert ed.line_at(2).line_id == other.line_id


def test_filter_reindex_scrolls_focused_line_into_view(make_editor, new_line, recorder):
    other = new_line(item_code="SKU2", item_name="Notebook")
    ed = make_editor([new_line(), new_line(), other])
    ed.select(2)
    recorder.connect(ed.scrollRequested, "scroll")
    ed.set_filter("notebook")
    assert recorder["scroll"][-1] == 0
    ed.set_filter("")
    assert recorder["scroll"][-1] == 2
    assert ed.state.selected_row_index == 2


def test_enter_through_a_row_stops_on_rate(make_editor, new_line, recorder):
    ed = make_editor([new_line(), new_line()])
    recorder.connect(ed.lineRemoved, "removed")
    ed.start_edit(0, EditField.QUANTITY)
    for _ in range(4):
        ed.enter()
    assert (ed.state.active_field, ed.state.is_editing) == (EditField.RATE, False)
    ed.enter()
    ed.enter()
    assert recorder["removed"] == []
    assert len(ed.lines()) == 2


def test_reset_returns_to_idle_on_quantity(make_editor, new_line):
    ed = make_editor([new_line()])
    ed.start_edit(0, EditField.RATE)
    ed.set_buffer("12")
    ed.reset()
    assert ed.focus.state == IDLE
    assert ed.state.active_field is EditField.QUANTITY
    assert ed.state.edit_buffer == ""
    assert ed.store.at(0).standard_rate == 10
