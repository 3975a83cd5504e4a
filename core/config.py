# core/config.py - panel config loader + env-driven paths

import json, os
from dataclasses import dataclass, field
from typing import Any, Dict

APP_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
DEFAULT_CONFIG_PATH = os.path.join(APP_DIR, "config", "panel.json")

APP_FRIENDLY_NAME = "KatePanel"

# Built-in values; the JSON file only needs to carry what it overrides.
DEFAULTS: Dict[str, Any] = {
    "version": "1.0.0",
    "max_history": 20,
    "eps_money": 0.005,
    "default_percent": "99",
    "default_position": {"left": 24, "top": 24},
    "viewport_padding": 4,
    "storage": "qsettings",
}

STORAGE_BACKENDS = ("qsettings", "json", "memory")

# ---------- simple in-process cache ----------
_CONFIG_CACHE = None
_CONFIG_MTIME = None
_CONFIG_PATH = None


def data_dir() -> str:
    """Writable per-user data root (KATE_DATA_DIR or ~/.katepanel). Created on demand."""
    path = os.environ.get("KATE_DATA_DIR") or os.path.join(
        os.path.expanduser("~"), f".{APP_FRIENDLY_NAME.lower()}"
    )
    os.makedirs(path, exist_ok=True)
    return path


def debug_enabled() -> bool:
    return os.environ.get("KATE_DEBUG", "0") not in ("0", "", "false", "False", "FALSE")


def config_path() -> str:
    return os.environ.get("KATE_CONFIG") or DEFAULT_CONFIG_PATH


@dataclass
class PanelConfig:
    raw: Dict[str, Any] = field(default_factory=dict)

    def _get(self, key: str) -> Any:
        return self.raw.get(key, DEFAULTS[key])

    @property
    def version(self) -> str:
        return str(self._get("version"))

    @property
    def max_history(self) -> int:
        try:
            return max(1, int(self._get("max_history")))
        except (TypeError, ValueError):
            return int(DEFAULTS["max_history"])

    @property
    def eps_money(self) -> float:
        try:
            return abs(float(self._get("eps_money")))
        except (TypeError, ValueError):
            return float(DEFAULTS["eps_money"])

    @property
    def default_percent(self) -> str:
        return str(self._get("default_percent"))

    @property
    def default_position(self) -> tuple[float, float]:
        pos = self._get("default_position")
        try:
            return float(pos["left"]), float(pos["top"])
        except (KeyError, TypeError, ValueError):
            d = DEFAULTS["default_position"]
            return float(d["left"]), float(d["top"])

    @property
    def viewport_padding(self) -> float:
        try:
            return max(0.0, float(self._get("viewport_padding")))
        except (TypeError, ValueError):
            return float(DEFAULTS["viewport_padding"])

    @property
    def storage(self) -> str:
        s = str(self._get("storage")).strip().lower()
        return s if s in STORAGE_BACKENDS else DEFAULTS["storage"]


def _read_config_from_disk(path: str) -> PanelConfig:
    if not os.path.exists(path):
        return PanelConfig({})
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        from lore.lorekeeper import log_error
        log_error(f"config unreadable: {path}", e)
        return PanelConfig({})
    if not isinstance(data, dict):
        return PanelConfig({})
    return PanelConfig(data)


def load_config() -> PanelConfig:
    global _CONFIG_CACHE, _CONFIG_MTIME, _CONFIG_PATH
    path = config_path()
    try:
        mtime = os.path.getmtime(path)
    except OSError:
        mtime = None

    if _CONFIG_CACHE is None or _CONFIG_MTIME != mtime or _CONFIG_PATH != path:
        _CONFIG_CACHE = _read_config_from_disk(path)
        _CONFIG_MTIME = mtime
        _CONFIG_PATH = path
    return _CONFIG_CACHE


def reload_config() -> PanelConfig:
    """
    Force cache invalidation + re-read from disk.
    """
    global _CONFIG_CACHE, _CONFIG_MTIME, _CONFIG_PATH
    _CONFIG_CACHE = None
    _CONFIG_MTIME = None
    _CONFIG_PATH = None
    return load_config()
