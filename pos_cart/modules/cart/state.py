from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .fields import EditField


class CommitOutcome(Enum):
    COMMITTED = "committed"
    REJECTED = "rejected"      # buffer failed validation; nothing changed
    REVERTED = "reverted"      # value replaced by the previous one (unknown UOM)
    DISCARDED = "discarded"    # oracle answer arrived for a focus that is gone
    ABANDONED = "abandoned"    # operator cancelled while the commit was in flight


@dataclass(frozen=True)
class FocusTicket:
    """Identity of the focus a commit or lookup was issued for."""
    line_id: Optional[int]
    field: EditField
    session: int


@dataclass
class FocusState:
    selected_row_index: Optional[int] = None   # index into the visible (filtered) rows
    active_field: EditField = EditField.QUANTITY
    is_editing: bool = False
    edit_buffer: str = ""
    line_id: Optional[int] = None              # line behind selected_row_index
    session: int = 0                           # bumped on every focus transition

    def ticket(self) -> FocusTicket:
        return FocusTicket(self.line_id, self.active_field, self.session)

    def matches(self, ticket: FocusTicket) -> bool:
        return (
            ticket.line_id is not None
            and ticket.line_id == self.line_id
            and ticket.field is self.active_field
            and ticket.session == self.session
        )

    def bump(self) -> None:
        self.session += 1
