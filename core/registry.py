# core/registry.py - one-panel-per-document presence guard + toggle entry point
from __future__ import annotations

from typing import Any, Callable, Dict

from core.model import PanelPosition, PanelState
from core.store import PersistentStore
from lore.lorekeeper import log_event

DEFAULT_DOCUMENT = "default"


class PanelRegistry:
    """
    Explicit registry of live panels, keyed by host document id.
    One instance is created at startup and handed to every PanelHost.
    """
    def __init__(self):
        self._present: Dict[str, Any] = {}

    def is_present(self, document_id: str = DEFAULT_DOCUMENT) -> bool:
        return document_id in self._present

    def claim(self, document_id: str, owner: Any) -> bool:
        if document_id in self._present and self._present[document_id] is not owner:
            return False
        self._present[document_id] = owner
        return True

    def release(self, document_id: str, owner: Any) -> None:
        if self._present.get(document_id) is owner:
            del self._present[document_id]


# factory(position, state) -> panel; the panel must expose close()
PanelFactory = Callable[[PanelPosition | None, PanelState], Any]


class PanelHost:
    def __init__(self, registry: PanelRegistry, store: PersistentStore, factory: PanelFactory,
                 *, document_id: str = DEFAULT_DOCUMENT, default_percent: str = ""):
        self.registry = registry
        self.store = store
        self.factory = factory
        self.document_id = document_id
        self.default_percent = default_percent
        self.panel = None

    @property
    def is_open(self) -> bool:
        return self.panel is not None

    def handle_toggle(self):
        """Open the panel if closed, close it if open. Returns the live panel or None."""
        if self.panel is not None:
            self.close()
            return None
        if not self.registry.claim(self.document_id, self):
            log_event("panel", "already_present", [self.document_id])
            return None
        try:
            pos = self.store.load_position()
            state = self.store.load_state(default_percent=self.default_percent)
            self.panel = self.factory(pos, state)
        except Exception:
            self.registry.release(self.document_id, self)
            raise
        log_event("panel", "open", [self.document_id])
        return self.panel

    def close(self) -> None:
        panel, self.panel = self.panel, None
        self.registry.release(self.document_id, self)
        if panel is not None:
            log_event("panel", "close", [self.document_id])
            close = getattr(panel, "close", None)
            if callable(close):
                close()

    def panel_closed(self) -> None:
        """Called by the panel when it was closed from its own UI (Esc, ×)."""
        if self.panel is not None:
            self.panel = None
            self.registry.release(self.document_id, self)
            log_event("panel", "closed_by_user", [self.document_id])
