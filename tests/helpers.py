# tests/helpers.py - fake storage media + recording view
from core.model import Field


class DictBackend:
    """Durable medium that works; counts calls."""
    def __init__(self, data=None):
        self.data = dict(data or {})
        self.gets = 0
        self.sets = 0

    def get(self, key):
        self.gets += 1
        return self.data.get(key)

    def set(self, items):
        self.sets += 1
        self.data.update(items)


class FailingBackend:
    """Durable medium that raises on every call."""
    def __init__(self):
        self.calls = 0

    def get(self, key):
        self.calls += 1
        raise OSError("storage unavailable")

    def set(self, items):
        self.calls += 1
        raise OSError("storage unavailable")


class GetFailsBackend(DictBackend):
    def get(self, key):
        self.gets += 1
        raise RuntimeError("read failed")


class RecordingView:
    """Collects every hook call the controller makes."""
    def __init__(self):
        self.fields = {}
        self.errors = {}
        self.derived = ""
        self.mode = None
        self.position = None
        self.history = None
        self.history_revealed = False
        self.toasts = []
        self.calls = []

    def show_fields(self, values):
        self.calls.append(("show_fields", dict(values)))
        self.fields.update(values)

    def show_errors(self, errors):
        self.errors = dict(errors)

    def show_derived(self, text):
        self.derived = text

    def show_mode(self, mode):
        self.mode = mode

    def move_to(self, pos):
        self.position = pos

    def show_history(self, entries, reveal=False):
        self.history = list(entries)
        self.history_revealed = self.history_revealed or reveal

    def toast(self, msg):
        self.toasts.append(msg)


class EchoView(RecordingView):
    """
    Mimics a widget toolkit that reports programmatic writes as edits:
    every show_fields is fed straight back into the controller.
    """
    def __init__(self):
        super().__init__()
        self.ctl = None
        self.echo_results = []

    def show_fields(self, values):
        super().show_fields(values)
        for f, v in values.items():
            self.echo_results.append(self.ctl.on_user_edit(Field(f), v))
