# core/history.py - bounded, deduplicated computation history
from __future__ import annotations

from datetime import datetime
from typing import Callable, List

from core.model import HistoryEntry, PanelState
from core.numbers import fmt_money, fmt_percent, near_eq, parse_num_loose
from core.store import PersistentStore
from lore.lorekeeper import log_event

MAX_HISTORY = 20
EPS_MONEY = 0.005


class HistoryLedger:
    """
    Sole writer of the `history` key. Every mutation re-reads the persisted
    list and writes it back whole, so the latest write always wins.
    """
    def __init__(self, store: PersistentStore, *, max_entries: int = MAX_HISTORY,
                 eps: float = EPS_MONEY, clock: Callable[[], int] | None = None):
        self.store = store
        self.max_entries = max_entries
        self.eps = eps
        self._clock = clock

    def list(self) -> List[HistoryEntry]:
        return self.store.load_history()

    def is_duplicate(self, head: HistoryEntry | None, entry: HistoryEntry) -> bool:
        return (
            head is not None
            and head.mode == entry.mode
            and near_eq(head.cost, entry.cost, self.eps)
            and near_eq(head.price, entry.price, self.eps)
        )

    def append(self, state: PanelState) -> HistoryEntry | None:
        """
        Snapshot cost/price of `state`. Returns the stored entry, or None when
        the inputs are not recordable or the head already holds the same result.
        """
        now = self._clock() if self._clock else None
        entry = HistoryEntry.build(
            state.mode,
            parse_num_loose(state.cost),
            parse_num_loose(state.price),
            now_ms=now,
        )
        if entry is None:
            return None
        hist = self.list()
        if self.is_duplicate(hist[0] if hist else None, entry):
            log_event("history", "skip_duplicate")
            return None
        hist.insert(0, entry)
        del hist[self.max_entries:]
        self.store.save_history(hist)
        log_event("history", "append", [f"size={len(hist)}"])
        return entry

    def remove(self, index: int) -> bool:
        hist = self.list()
        if not 0 <= index < len(hist):
            return False
        del hist[index]
        self.store.save_history(hist)
        log_event("history", "remove", [f"index={index}"])
        return True

    def clear(self) -> None:
        self.store.save_history([])
        log_event("history", "clear")


def describe(entry: HistoryEntry) -> tuple[str, str]:
    """Two display lines for a history row (headline, meta)."""
    when = datetime.fromtimestamp(entry.t / 1000.0).strftime("%d.%m %H:%M") if entry.t else ""
    head = f"{entry.mode.label} • C €{fmt_money(entry.cost)} → P €{fmt_money(entry.price)}"
    markup = fmt_percent(entry.markup) or "—"
    meta = f"Margin {fmt_percent(entry.margin)} % • Markup {markup} %"
    if when:
        meta = f"{meta} • {when}"
    return head, meta
