# core/controller.py - panel coordination (edits -> engine -> fields -> storage)
#
# Qt-free: the desktop shell forwards widget events here and renders what the
# controller pushes back through the view hooks. Any object with a subset of
#   show_fields(dict[Field, str]), show_errors(dict[Field, str]),
#   show_derived(str), show_mode(Mode), move_to(PanelPosition),
#   show_history(list[HistoryEntry], reveal: bool), toast(str)
# can act as the view; missing hooks are skipped.
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, List

from core.config import PanelConfig, load_config
from core.history import HistoryLedger
from core.model import (
    Field, HistoryEntry, LastEdited, Mode, PanelPosition, PanelState, clamp_to_viewport,
)
from core.numbers import fmt_money, fmt_percent, is_num, parse_num_loose
from core.store import PersistentStore
from engine import ComputeResult, Derived, compute
from lore.lorekeeper import log_event


class PanelController:
    def __init__(self, store: PersistentStore, ledger: HistoryLedger | None = None,
                 *, config: PanelConfig | None = None, view: Any = None):
        self.config = config or load_config()
        self.store = store
        self.ledger = ledger or HistoryLedger(
            store, max_entries=self.config.max_history, eps=self.config.eps_money,
        )
        self.view = view
        self.state = PanelState(
            margin=self.config.default_percent, markup=self.config.default_percent,
        )
        self.last_edited = LastEdited.NONE
        self.errors: Dict[Field, str] = {}
        self.derived = Derived()
        self.position: PanelPosition | None = None
        self._suspend = False

    # ---------- view plumbing ----------

    def _call(self, hook: str, *args) -> None:
        fn = getattr(self.view, hook, None) if self.view is not None else None
        if callable(fn):
            fn(*args)

    @contextmanager
    def programmatic(self):
        """Scope in which field writes are not treated as user edits."""
        prev = self._suspend
        self._suspend = True
        try:
            yield
        finally:
            self._suspend = prev

    @property
    def suspended(self) -> bool:
        return self._suspend

    def apply_updates(self, values: Dict[Field, str]) -> None:
        if not values:
            return
        with self.programmatic():
            for f, v in values.items():
                setattr(self.state, f.value, v)
            self._call("show_fields", dict(values))

    # ---------- lifecycle ----------

    def start(self, state: PanelState | None = None) -> ComputeResult:
        """Restore persisted fields and run the initial (cost-driven) computation."""
        self.state = state if state is not None else self.store.load_state(
            default_percent=self.config.default_percent,
        )
        self.last_edited = LastEdited.NONE
        self.apply_updates(self.state.values())
        self._call("show_mode", self.state.mode)
        res = self.recompute()
        self.persist_state()
        return res

    # ---------- computation ----------

    def recompute(self) -> ComputeResult:
        res = compute(self.state.values(), self.state.mode, self.last_edited)
        self.apply_updates(res.updates)
        self.errors = dict(res.errors)
        self.derived = res.derived
        self._call("show_errors", dict(self.errors))
        self._call("show_derived", res.derived_text)
        return res

    def persist_state(self) -> None:
        self.store.save_state(self.state)

    def on_user_edit(self, field: Field | str, text: str) -> bool:
        """
        Entry point for widget edits. Returns False (and does nothing) while a
        programmatic write is in flight.
        """
        if self._suspend:
            return False
        f = Field(field)
        setattr(self.state, f.value, "" if text is None else str(text))
        self.last_edited = LastEdited.for_field(f)
        self.recompute()
        self.persist_state()
        return True

    def set_mode(self, mode: Mode | str) -> ComputeResult:
        """
        Switch Margin/Markup. A valid price stays as it is and the new mode's
        percentage is derived from it; without one, cost + percentage fill price.
        """
        self.state.mode = Mode.coerce(mode)
        price = parse_num_loose(self.state.price)
        if is_num(price) and price > 0:
            self.last_edited = LastEdited.PRICE
        elif self.last_edited is LastEdited.PRICE:
            self.last_edited = LastEdited.NONE
        self._call("show_mode", self.state.mode)
        res = self.recompute()
        self.persist_state()
        return res

    # ---------- history ----------

    def render_history(self, reveal: bool = False) -> List[HistoryEntry]:
        entries = self.ledger.list()
        self._call("show_history", entries, reveal)
        return entries

    def save_to_history(self, show_panel: bool = False) -> HistoryEntry | None:
        entry = self.ledger.append(self.state)
        if show_panel:
            self.render_history(reveal=True)
        return entry

    def select_history(self, index: int) -> bool:
        """Replay a row through the same path as a price edit."""
        entries = self.ledger.list()
        if not 0 <= index < len(entries):
            return False
        e = entries[index]
        self.state.mode = e.mode
        self._call("show_mode", e.mode)
        self.apply_updates({
            Field.COST: fmt_money(e.cost),
            Field.PRICE: fmt_money(e.price),
            Field.MARGIN: fmt_percent(e.margin),
            Field.MARKUP: fmt_percent(e.markup),
        })
        self.last_edited = LastEdited.PRICE
        self.recompute()
        self.persist_state()
        log_event("history", "replay", [f"index={index}"])
        return True

    def delete_history(self, index: int) -> bool:
        removed = self.ledger.remove(index)
        self.render_history()
        return removed

    def clear_history(self) -> None:
        self.ledger.clear()
        self.render_history()
        self._call("toast", "History cleared")

    # ---------- clipboard ----------

    def copy_text(self) -> str:
        """Current price as shown; empty means there is nothing to copy."""
        return (self.state.price or "").strip()

    def on_copied(self, ok: bool) -> HistoryEntry | None:
        if ok:
            self._call("toast", "Copied")
        return self.save_to_history(show_panel=False)

    # ---------- position ----------

    def default_position(self) -> PanelPosition:
        left, top = self.config.default_position
        return PanelPosition(left, top)

    def restore_position(self, pos: PanelPosition | None = None) -> PanelPosition:
        self.position = pos or self.store.load_position() or self.default_position()
        self._call("move_to", self.position)
        return self.position

    def clamp(self, left: float, top: float, size: tuple[float, float],
              viewport: tuple[float, float]) -> PanelPosition:
        return clamp_to_viewport(left, top, size, viewport, padding=self.config.viewport_padding)

    def on_drag_move(self, left: float, top: float, size, viewport) -> PanelPosition:
        pos = self.clamp(left, top, size, viewport)
        self._call("move_to", pos)
        return pos

    def on_drag_end(self, left: float, top: float, size, viewport) -> PanelPosition:
        self.position = self.clamp(left, top, size, viewport)
        self._call("move_to", self.position)
        self.store.save_position(self.position)
        return self.position

    def on_viewport_resize(self, size, viewport) -> PanelPosition:
        cur = self.position or self.default_position()
        pos = self.clamp(cur.left, cur.top, size, viewport)
        if pos != cur:
            self.position = pos
            self._call("move_to", pos)
            self.store.save_position(pos)
        return pos

    def reset_position(self) -> PanelPosition:
        self.position = self.default_position()
        log_event("panel", "reset_position", [f"{self.position.left},{self.position.top}"])
        self._call("move_to", self.position)
        self.store.save_position(self.position)
        self._call("toast", "Position reset")
        return self.position
