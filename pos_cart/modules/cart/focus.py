"""
modules/cart/focus.py

Purpose
-------
Keyboard navigation over the cart grid: which row and field is targeted,
whether an edit session is open, and how keys move between cells.

States are Idle and EditingField. Entering EditingField always seeds the
edit buffer from the targeted line's committed value and issues exactly one
editorFocusRequested. While a commit issued from here is open (oracle lookup
or allocation negotiation) further moves are held and replayed once it
finishes; the most recent held move wins.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Optional

from PySide6.QtCore import QObject, Signal

from ...config import CartSettings
from .commit import FieldCommitPipeline
from .fields import EditField, field_order, step
from .model import CartFilterProxy, CartLine, CartLineStore
from .state import CommitOutcome, FocusState, FocusTicket

_log = logging.getLogger(__name__)


class Direction(Enum):
    LEFT = "left"
    RIGHT = "right"
    UP = "up"
    DOWN = "down"


IDLE = "Idle"
EDITING = "EditingField"


class GridFocusController(QObject):
    focusChanged = Signal(int, str, bool)        # visible row (-1: none), field, is_editing
    scrollRequested = Signal(int)                # visible row to bring into view
    editorFocusRequested = Signal(int, str)      # once per entry into EditingField
    bufferChanged = Signal(str)                  # buffer replaced by the engine
    deleteRequested = Signal(int)                # store row

    def __init__(
        self,
        store: CartLineStore,
        view: CartFilterProxy,
        pipeline: FieldCommitPipeline,
        focus: FocusState,
        settings: CartSettings,
        parent=None,
    ):
        super().__init__(parent)
        self._store = store
        self._view = view
        self._pipeline = pipeline
        self._focus = focus
        self._order = field_order(settings.allow_label_editing)
        self._seed = ""
        self._awaiting: Optional[tuple[FocusTicket, Callable[[CommitOutcome], None]]] = None
        self._deferred: Optional[Callable[[], object]] = None

        pipeline.commitFinished.connect(self._on_commit_finished)
        for sig in (view.modelReset, view.layoutChanged, view.rowsRemoved, view.rowsInserted):
            sig.connect(self._on_view_changed)

    # ---- state ----
    @property
    def state(self) -> str:
        return EDITING if self._focus.is_editing else IDLE

    @property
    def focus(self) -> FocusState:
        return self._focus

    @property
    def field_order(self) -> tuple[EditField, ...]:
        return self._order

    def is_busy(self) -> bool:
        """A commit issued from here is still open."""
        return self._awaiting is not None

    def row_count(self) -> int:
        return self._view.rowCount()

    def line_at(self, row: Optional[int]) -> Optional[CartLine]:
        src = self._view.source_row(row) if row is not None else None
        return None if src is None else self._store.at(src)

    # ---- public contract ----
    def select(self, row: int) -> bool:
        if self._hold(lambda: self.select(row)):
            return False
        if not 0 <= row < self.row_count():
            return False
        fld = self._focus.active_field
        if self._focus.is_editing:
            return self._commit_then(lambda _o: self._land(row, fld, editing=False))
        self._land(row, fld, editing=False)
        return True

    def start_edit(self, row: int, field: EditField) -> bool:
        if self._hold(lambda: self.start_edit(row, field)):
            return False
        line = self.line_at(row) if 0 <= row < self.row_count() else None
        if line is None or field not in self._order:
            return False
        if not self._pipeline.is_enterable(field):
            # the delete affordance takes focus but never opens an editor
            if self._focus.is_editing:
                self._commit_then(lambda _o: self._land(row, field, editing=False))
            else:
                self._land(row, field, editing=False)
            return False
        if self._pipeline.is_pending(line.line_id, field):
            return False
        st = self._focus
        if st.is_editing:
            if st.line_id == line.line_id and st.active_field is field:
                return True
            return self._commit_then(lambda _o: self._land(row, field, editing=True))
        self._land(row, field, editing=True)
        return self._focus.is_editing

    def navigate(self, direction: Direction) -> bool:
        if self._hold(lambda: self.navigate(direction)):
            return False
        n = self.row_count()
        if n == 0:
            return False
        st = self._focus
        if direction in (Direction.UP, Direction.DOWN):
            if st.selected_row_index is None:
                self._land(0 if direction is Direction.DOWN else n - 1, st.active_field, editing=False)
                return True
            delta = 1 if direction is Direction.DOWN else -1
            target = max(0, min(n - 1, st.selected_row_index + delta))
            if target == st.selected_row_index:
                return False
            fld = st.active_field
            if st.is_editing:
                return self._commit_then(lambda _o: self._land(target, fld, editing=True))
            self._land(target, fld, editing=False)
            return True

        if st.selected_row_index is None:
            return False
        nxt = step(self._order, st.active_field, 1 if direction is Direction.RIGHT else -1)
        if nxt is st.active_field:
            return False
        line_id = st.line_id
        if st.is_editing:
            return self._commit_then(
                lambda _o: self._land(self._row_of_line(line_id), nxt, editing=self._pipeline.is_enterable(nxt))
            )
        self._land(st.selected_row_index, nxt, editing=False)
        return True

    def commit_and_exit(self) -> bool:
        if not self._focus.is_editing or self._awaiting is not None:
            return False
        return self._commit_then(lambda _o: self._exit())

    def enter(self) -> bool:
        """Enter key: open the targeted cell, commit and advance, or delete on Actions."""
        st = self._focus
        if self._awaiting is not None or st.selected_row_index is None:
            return False
        if st.is_editing:
            line_id, fld = st.line_id, st.active_field
            return self._commit_then(lambda outcome: self._advance(line_id, fld, outcome), force=True)
        if st.active_field is EditField.ACTIONS:
            src = self._view.source_row(st.selected_row_index)
            if src is None:
                return False
            self.deleteRequested.emit(src)
            return True
        return self.start_edit(st.selected_row_index, st.active_field)

    def cancel_edit(self) -> bool:
        st = self._focus
        if not st.is_editing:
            return False
        ticket = st.ticket()
        if self._awaiting is not None:
            if self._pipeline.is_negotiating(st.line_id):
                return False
            self._awaiting = None
            self._deferred = None
        self._pipeline.cancel(ticket)
        self._exit()
        return True

    def set_buffer(self, text: str) -> None:
        st = self._focus
        if not st.is_editing or self._awaiting is not None:
            return
        st.edit_buffer = str(text)
        self._pipeline.preview(st.ticket(), st.edit_buffer)

    def cycle_uom(self) -> bool:
        st = self._focus
        if st.selected_row_index is None or st.line_id is None:
            return False
        # a text editor on another field owns the key
        if st.is_editing and st.active_field is not EditField.UOM:
            return False
        return self._pipeline.cycle_uom(st.ticket())

    def reset(self) -> None:
        """Back to Idle on Quantity with an empty buffer; in-flight commits are dropped."""
        self._awaiting = None
        self._deferred = None
        st = self._focus
        if st.is_editing:
            self._pipeline.cancel(st.ticket())
        self._pipeline.reset()
        st.is_editing = False
        st.edit_buffer = ""
        st.active_field = EditField.QUANTITY
        if st.selected_row_index is not None and not 0 <= st.selected_row_index < self.row_count():
            st.selected_row_index = None
        line = self.line_at(st.selected_row_index)
        st.line_id = line.line_id if line else None
        if st.line_id is None:
            st.selected_row_index = None
        st.bump()
        self._emit_focus()

    # ---- transitions ----
    def _hold(self, action: Callable[[], object]) -> bool:
        if self._awaiting is None:
            return False
        self._deferred = action
        return True

    def _commit_then(self, after: Callable[[CommitOutcome], None], force: bool = False) -> bool:
        """
        Commit the open edit, then run `after`. Navigation away from an
        unchanged buffer skips the commit; Enter (`force`) always commits.
        """
        st = self._focus
        ticket = st.ticket()
        if self._pipeline.is_pending(ticket.line_id, ticket.field):
            # a unit cycle on this cell is still answering
            return False
        if not force and st.edit_buffer == self._seed:
            self._pipeline.cancel(ticket)
            after(CommitOutcome.COMMITTED)
            return True
        self._awaiting = (ticket, after)
        self._pipeline.commit(ticket, st.edit_buffer)
        return True

    def _on_commit_finished(self, ticket: FocusTicket, outcome: CommitOutcome) -> None:
        if self._awaiting is not None and self._awaiting[0] == ticket:
            _, after = self._awaiting
            self._awaiting = None
            after(outcome)
            action, self._deferred = self._deferred, None
            if action is not None:
                action()
            return
        st = self._focus
        if (
            outcome is CommitOutcome.COMMITTED
            and st.is_editing
            and st.active_field is EditField.UOM
            and ticket.line_id == st.line_id
        ):
            # unit cycled underneath an open unit editor
            line = self._store.line(st.line_id)
            if line is not None:
                st.edit_buffer = self._seed = line.uom
                self.bufferChanged.emit(st.edit_buffer)

    def _advance(self, line_id: Optional[int], fld: EditField, outcome: CommitOutcome) -> None:
        row = self._row_of_line(line_id)
        if outcome is not CommitOutcome.COMMITTED or row is None:
            self._exit()
            return
        nxt = step(self._order, fld, 1)
        if nxt is fld or not self._pipeline.is_enterable(nxt):
            # Enter never walks onto the delete target
            self._exit()
            return
        self._land(row, nxt, editing=True)

    def _land(self, row: Optional[int], fld: EditField, editing: bool) -> None:
        n = self.row_count()
        if row is None or n == 0:
            self._clear_selection()
            return
        row = max(0, min(n - 1, row))
        line = self.line_at(row)
        st = self._focus
        if (
            not editing and not st.is_editing
            and st.selected_row_index == row and st.line_id == line.line_id and st.active_field is fld
        ):
            return
        st.selected_row_index = row
        st.line_id = line.line_id
        st.active_field = fld
        st.bump()
        st.is_editing = False
        st.edit_buffer = ""
        if editing and self._pipeline.begin(st.ticket()):
            st.is_editing = True
            st.edit_buffer = self._seed = line.value_text(fld)
        _log.debug("focus -> row=%s field=%s editing=%s", row, fld.value, st.is_editing)
        self._emit_focus()
        self.scrollRequested.emit(row)
        if st.is_editing:
            self.bufferChanged.emit(st.edit_buffer)
            self.editorFocusRequested.emit(row, fld.value)

    def _exit(self) -> None:
        st = self._focus
        if not st.is_editing:
            return
        st.is_editing = False
        st.edit_buffer = ""
        st.bump()
        self._emit_focus()

    def _clear_selection(self) -> None:
        st = self._focus
        st.selected_row_index = None
        st.line_id = None
        st.is_editing = False
        st.edit_buffer = ""
        st.bump()
        self._emit_focus()

    def _emit_focus(self) -> None:
        st = self._focus
        row = -1 if st.selected_row_index is None else st.selected_row_index
        self.focusChanged.emit(row, st.active_field.value, st.is_editing)

    def _row_of_line(self, line_id: Optional[int]) -> Optional[int]:
        if line_id is None:
            return None
        return self._view.visible_row(self._store.row_of(line_id))

    def _on_view_changed(self, *_args) -> None:
        st = self._focus
        if st.line_id is None:
            if st.selected_row_index is not None and st.selected_row_index >= self.row_count():
                self._clear_selection()
            return
        vis = self._row_of_line(st.line_id)
        if vis is None:
            # the focused line was removed or filtered out
            if st.is_editing:
                self._awaiting = None
                self._deferred = None
                self._pipeline.cancel(st.ticket())
            st.is_editing = False
            if self.row_count() == 0:
                self._clear_selection()
            else:
                previous = st.selected_row_index or 0
                st.line_id = None
                self._land(previous, st.active_field, editing=False)
            return
        if vis != st.selected_row_index:
            st.selected_row_index = vis
            self._emit_focus()
            self.scrollRequested.emit(vis)
