# core/store.py - whole-record persistence with in-memory fallback
#
# Keys are written as whole records (no partial-field updates at this layer).
# The in-memory mirror is always written first; the durable backend is
# best-effort and, after its first failure, skipped for the rest of the session.

import copy
import json
import os
import tempfile
from typing import Any, Dict, List, Mapping, Optional, Protocol

from core.model import HistoryEntry, PanelPosition, PanelState
from lore.lorekeeper import dbg, log_error, log_event

KEY_POSITION = "panelPosition"
KEY_STATE = "panelState"
KEY_HISTORY = "history"


class StorageBackend(Protocol):
    def get(self, key: str) -> Any: ...
    def set(self, items: Mapping[str, Any]) -> None: ...


# ---------- durable backends ----------

class QSettingsBackend:
    """
    QSettings-backed medium. Values are JSON-encoded strings so nested
    records/lists round-trip identically on every platform format.
    """
    def __init__(self, organization: str = "KatePanel", application: str = "KatePanel",
                 *, path: str | None = None, group: str = "panel"):
        from PySide6.QtCore import QSettings
        if path:
            self._s = QSettings(path, QSettings.Format.IniFormat)
        else:
            self._s = QSettings(organization, application)
        self._group = group

    def _key(self, key: str) -> str:
        return f"{self._group}/{key}"

    def get(self, key: str) -> Any:
        raw = self._s.value(self._key(key), None)
        if raw is None:
            return None
        return json.loads(str(raw))

    def set(self, items: Mapping[str, Any]) -> None:
        for k, v in items.items():
            self._s.setValue(self._key(k), json.dumps(v, ensure_ascii=False))
        self._s.sync()
        from PySide6.QtCore import QSettings
        if self._s.status() != QSettings.Status.NoError:
            raise OSError(f"QSettings write failed: {self._s.status()}")


class JsonFileBackend:
    """Single JSON document on disk; replaced atomically on every write."""
    def __init__(self, path: str):
        self.path = path

    def _read_all(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"storage file is not an object: {self.path}")
        return data

    def get(self, key: str) -> Any:
        return self._read_all().get(key)

    def set(self, items: Mapping[str, Any]) -> None:
        data = self._read_all()
        data.update(items)
        folder = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(folder, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".store-", suffix=".json", dir=folder)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp, self.path)
        except BaseException:
            try:
                os.unlink(tmp)
            except OSError:
                pass
            raise


# ---------- store ----------

class PersistentStore:
    def __init__(self, backend: Optional[StorageBackend] = None):
        self._backend = backend
        self._durable_ok = backend is not None
        self._mem: Dict[str, Any] = {
            KEY_POSITION: None,
            KEY_STATE: None,
            KEY_HISTORY: [],
        }

    @property
    def durable(self) -> bool:
        """False once the backend failed (or when none was given)."""
        return self._durable_ok

    def _fall_back(self, where: str, err: Exception) -> None:
        self._durable_ok = False
        log_error(f"storage {where} failed, using memory", err)
        log_event("storage", "fallback", [where, type(err).__name__])

    def get(self, key: str) -> Any:
        if self._durable_ok:
            try:
                val = self._backend.get(key)
            except Exception as e:
                self._fall_back(f"get:{key}", e)
                return copy.deepcopy(self._mem.get(key))
            if val is None:
                val = self._mem.get(key)
            else:
                self._mem[key] = copy.deepcopy(val)
            dbg("get", key)
            return copy.deepcopy(val)
        dbg("get (mem)", key)
        return copy.deepcopy(self._mem.get(key))

    def set(self, items: Mapping[str, Any]) -> None:
        items = {k: copy.deepcopy(v) for k, v in items.items()}
        self._mem.update(items)
        dbg("set mem", ", ".join(items))
        if not self._durable_ok:
            return
        try:
            self._backend.set(items)
        except Exception as e:
            self._fall_back("set:" + ",".join(items), e)

    # ---------- typed helpers ----------

    def load_position(self) -> PanelPosition | None:
        return PanelPosition.from_record(self.get(KEY_POSITION))

    def save_position(self, pos: PanelPosition) -> None:
        self.set({KEY_POSITION: pos.to_record()})

    def load_state(self, *, default_percent: str = "") -> PanelState:
        return PanelState.from_record(self.get(KEY_STATE), default_percent=default_percent)

    def save_state(self, state: PanelState) -> None:
        self.set({KEY_STATE: state.to_record()})

    def load_history(self) -> List[HistoryEntry]:
        raw = self.get(KEY_HISTORY)
        if not isinstance(raw, list):
            return []
        out = []
        for rec in raw:
            entry = HistoryEntry.from_record(rec)
            if entry is not None:
                out.append(entry)
        return out

    def save_history(self, entries: List[HistoryEntry]) -> None:
        self.set({KEY_HISTORY: [e.to_record() for e in entries]})


def make_store(kind: str = "qsettings", *, data_root: str | None = None) -> PersistentStore:
    """
    Build a store for the configured medium. Any failure to construct the
    durable backend degrades to a memory-only store.
    """
    if kind == "memory":
        return PersistentStore(None)
    try:
        if kind == "json":
            from core.config import data_dir
            root = data_root or data_dir()
            return PersistentStore(JsonFileBackend(os.path.join(root, "panel_store.json")))
        return PersistentStore(QSettingsBackend())
    except Exception as e:
        log_error(f"storage backend '{kind}' unavailable", e)
        return PersistentStore(None)
