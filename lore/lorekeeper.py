# lorekeeper.py - append-only diagnostics chronicle (errors always, events via KATE_DEBUG)
import functools
import os
import sys
import traceback
from datetime import datetime

from core.config import data_dir, debug_enabled

CHRONICLES_NAME = "chronicles.txt"
PREFIX = "KATE:"

DIV = "=" * 79

HEADER = f"""{DIV}
KATE PANEL CHRONICLES - diagnostics ledger
{DIV}
note: append chronologically; never rewrite history
{DIV}
"""


def chronicles_path() -> str:
    return os.path.join(data_dir(), CHRONICLES_NAME)


def _ensure_header(path: str) -> None:
    if not os.path.exists(path):
        with open(path, "w", encoding="utf-8", newline="\n") as f:
            f.write(HEADER)


def _append_block(title: str, lines: list[str]) -> None:
    path = chronicles_path()
    _ensure_header(path)
    ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    block = [DIV, f"{title} - {ts}", DIV]
    block.extend(lines)
    block.append(DIV)
    with open(path, "a", encoding="utf-8", newline="\n") as f:
        f.write("\n".join(block) + "\n")


def dbg(*parts) -> None:
    """Echo a one-line diagnostic to stderr when KATE_DEBUG is on."""
    if not debug_enabled():
        return
    try:
        print(PREFIX, *parts, file=sys.stderr)
    except Exception:
        pass


def log_event(area: str, event: str, details: list[str] | None = None) -> None:
    """
    Record an app event (storage fallback, toggle, history write...).
    Never raises; a broken ledger must not take the panel down.
    """
    if not debug_enabled():
        return
    details = details or []
    dbg(area, event, *details)
    try:
        lines = [f"area: {area}", f"event: {event}"]
        lines.extend([f"- {d}" for d in details])
        _append_block("panel log", lines)
    except Exception:
        pass


def log_error(event: str, err: BaseException) -> None:
    """Always chronicled; the stderr echo follows KATE_DEBUG."""
    dbg("error", event, repr(err))
    try:
        tb = "".join(traceback.format_exception(type(err), err, err.__traceback__))
        lines = [f"error: {event}", "traceback:", tb.strip()]
        _append_block("panel error", lines)
    except Exception:
        pass


def lore_guard(title: str):
    """Decorator: chronicle any exception escaping the wrapped call, then re-raise it."""
    def deco(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except Exception as e:
                log_error(title, e)
                raise
        return wrapper
    return deco
