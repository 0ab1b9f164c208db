from __future__ import annotations

from enum import Enum


class EditField(str, Enum):
    """Cells of a cart row, in navigation order. Values name the CartLine attribute."""
    DESCRIPTION = "item_description"
    QUANTITY = "quantity"
    UOM = "uom"
    DISCOUNT = "discount_percentage"
    RATE = "standard_rate"
    ACTIONS = "actions"  # virtual: the row's delete affordance


FIELD_ORDER: tuple[EditField, ...] = (
    EditField.DESCRIPTION,
    EditField.QUANTITY,
    EditField.UOM,
    EditField.DISCOUNT,
    EditField.RATE,
    EditField.ACTIONS,
)

NUMERIC_FIELDS = frozenset({EditField.QUANTITY, EditField.DISCOUNT, EditField.RATE})

# fields whose keystrokes may be previewed on the line before the real commit
LIVE_FIELDS = frozenset({EditField.QUANTITY, EditField.RATE, EditField.DESCRIPTION})


def field_order(allow_label_editing: bool) -> tuple[EditField, ...]:
    """Navigable fields; Description is skipped when label editing is off."""
    if allow_label_editing:
        return FIELD_ORDER
    return tuple(f for f in FIELD_ORDER if f is not EditField.DESCRIPTION)


def step(order: tuple[EditField, ...], current: EditField, delta: int) -> EditField:
    """Move `delta` places along `order`, clamped at both ends."""
    try:
        i = order.index(current)
    except ValueError:
        i = 0
    i = max(0, min(len(order) - 1, i + delta))
    return order[i]
