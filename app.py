# ============================================================================
#  KATE PANEL - floating Margin & Markup calculator (PySide6 shell)
#
#  The shell only forwards widget events into core.controller.PanelController
#  and renders what it pushes back. All pricing rules live in engine.py.
# ============================================================================

import math
import sys
from contextlib import contextmanager

from PySide6.QtGui import QFont, QGuiApplication, QKeySequence, QShortcut
from PySide6.QtCore import Qt, QPoint, QTimer
from PySide6.QtWidgets import (QApplication, QWidget, QVBoxLayout, QHBoxLayout,
    QGridLayout, QLabel, QPushButton, QLineEdit, QListWidget, QListWidgetItem,
    QButtonGroup, QStackedWidget, QFrame, QMenu, QStyle, QSystemTrayIcon)

from core.config import load_config, PanelConfig
from core.controller import PanelController
from core.history import describe
from core.model import Field, HistoryEntry, Mode, PanelPosition, PanelState
from core.numbers import fmt_money, fmt_percent, is_num, parse_num_loose, round_to
from core.registry import PanelHost, PanelRegistry
from core.store import PersistentStore, make_store
from engine import MARKUP_FLOOR_UI
from lore.lorekeeper import dbg, log_error, log_event, lore_guard

APP_TITLE = "Margin & Markup"
PANEL_WIDTH = 360
TOAST_MS = 1200

STYLE = """
#wrap { background: rgba(28,28,32,230); color: #e5e7eb;
        border: 1px solid rgba(255,255,255,30); border-radius: 12px; }
#bar { background: rgba(255,255,255,8); border-top-left-radius: 12px; border-top-right-radius: 12px; }
QLabel { color: #e5e7eb; }
QLabel#title { font-weight: 600; }
QLabel#muted, QLabel#fieldLabel { color: #b8bcc4; font-size: 12px; }
QLabel#err { color: #fca5a5; font-size: 12px; }
QLabel#derived { font-size: 12px; }
QLineEdit { padding: 8px 10px; border-radius: 8px; border: 1px solid rgba(255,255,255,40);
            background: rgba(255,255,255,15); color: #e5e7eb; }
QPushButton { border: 1px solid rgba(255,255,255,36); background: rgba(255,255,255,15);
              color: #e5e7eb; border-radius: 8px; padding: 6px 10px; }
QPushButton:hover { background: rgba(255,255,255,30); }
QPushButton:checked { background: rgba(99,102,241,40); border-color: rgba(99,102,241,100); }
QPushButton#ghost { border: none; background: transparent; font-size: 18px; padding: 2px 6px; }
QPushButton#link { border: none; background: transparent; color: #a5b4fc; font-size: 12px; }
QPushButton#del { border: none; background: transparent; color: #fca5a5; padding: 0 4px; }
QListWidget { background: transparent; border: none; }
QLabel#toast { background: rgba(17,17,20,250); border: 1px solid rgba(255,255,255,30);
               border-radius: 10px; padding: 8px 12px; }
"""


# -------------------------- Numeric line edit --------------------------
class NumberEdit(QLineEdit):
    """
    Free-text numeric input (keeps partially typed text as-is).
    Up/Down step the value; Shift/Ctrl steps ×10.
    """
    def __init__(self, step: float, decimals: int, *, minimum: float | None = None,
                 maximum: float | None = None, placeholder: str = "", parent=None):
        super().__init__(parent)
        self._step = step
        self._decimals = decimals
        self._min = minimum
        self._max = maximum
        self.setPlaceholderText(placeholder)
        self.setInputMethodHints(Qt.ImhFormattedNumbersOnly)

    def keyPressEvent(self, e):  # type: ignore[override]
        if e.key() in (Qt.Key_Up, Qt.Key_Down):
            big = bool(e.modifiers() & (Qt.ShiftModifier | Qt.ControlModifier | Qt.MetaModifier))
            self.step_by((1 if e.key() == Qt.Key_Up else -1) * (10 if big else 1))
            e.accept()
            return
        super().keyPressEvent(e)

    def step_by(self, n: int) -> None:
        cur = parse_num_loose(self.text())
        v = round_to((cur if is_num(cur) else 0.0) + n * self._step, self._decimals)
        # bounds apply to the displayed value; snap to the last whole step inside them
        if self._min is not None and v < self._min:
            v = math.ceil(self._min / self._step - 1e-9) * self._step
        if self._max is not None and v > self._max:
            v = math.floor(self._max / self._step + 1e-9) * self._step
        fmt = fmt_money if self._decimals == 2 else fmt_percent
        self.setText(fmt(v))  # textChanged -> treated as a user edit


# -------------------------- Mode tab --------------------------
class ModeTab(QPushButton):
    """Checkable mode tab. Left/Right move to the neighbouring tab, Enter/Space select this one."""
    def __init__(self, text: str, mode: Mode, panel: "KatePanel"):
        super().__init__(text)
        self.mode = mode
        self._panel = panel
        self.setCheckable(True)

    def keyPressEvent(self, e):  # type: ignore[override]
        k = e.key()
        if k in (Qt.Key_Left, Qt.Key_Right):
            self._panel.step_mode(-1 if k == Qt.Key_Left else 1)
            e.accept()
            return
        if k in (Qt.Key_Return, Qt.Key_Enter, Qt.Key_Space):
            self._panel.select_mode(self.mode)
            e.accept()
            return
        super().keyPressEvent(e)


# -------------------------- Drag handle --------------------------
class DragBar(QFrame):
    """Title bar; left-button drag moves the owning panel."""
    def __init__(self, panel: "KatePanel"):
        super().__init__(panel)
        self.setObjectName("bar")
        self.setCursor(Qt.SizeAllCursor)
        self._panel = panel
        self._start_mouse: QPoint | None = None
        self._start_pos: QPoint | None = None

    def mousePressEvent(self, e):  # type: ignore[override]
        if e.button() != Qt.LeftButton:
            return super().mousePressEvent(e)
        self._start_mouse = e.globalPosition().toPoint()
        self._start_pos = self._panel.local_pos()
        e.accept()

    def mouseMoveEvent(self, e):  # type: ignore[override]
        if self._start_mouse is None:
            return super().mouseMoveEvent(e)
        d = e.globalPosition().toPoint() - self._start_mouse
        self._panel.drag_to(self._start_pos + d, final=False)
        e.accept()

    def mouseReleaseEvent(self, e):  # type: ignore[override]
        if self._start_mouse is None:
            return super().mouseReleaseEvent(e)
        d = e.globalPosition().toPoint() - self._start_mouse
        self._start_mouse = None
        self._panel.drag_to(self._start_pos + d, final=True)
        e.accept()


# -------------------------- Panel --------------------------
class KatePanel(QWidget):
    """Frameless always-on-top tool window; implements the controller's view hooks."""

    def __init__(self, store: PersistentStore, config: PanelConfig, *, on_closed=None):
        super().__init__(None, Qt.Tool | Qt.FramelessWindowHint | Qt.WindowStaysOnTopHint)
        self.setAttribute(Qt.WA_TranslucentBackground, True)
        self.setWindowTitle(APP_TITLE)
        self._on_closed = on_closed
        self.ctl = PanelController(store, config=config, view=self)

        _font = QFont()
        _font.setPointSize(11)
        self.setFont(_font)
        self.setStyleSheet(STYLE)

        self._build()
        self._wire_signals()

        self._toast_timer = QTimer(self)
        self._toast_timer.setSingleShot(True)
        self._toast_timer.timeout.connect(self.toast_label.hide)

    # ---------- layout ----------

    def _build(self):
        outer = QVBoxLayout(self)
        outer.setContentsMargins(0, 0, 0, 0)
        self.wrap = QFrame(self)
        self.wrap.setObjectName("wrap")
        self.wrap.setFixedWidth(PANEL_WIDTH)
        outer.addWidget(self.wrap)

        root = QVBoxLayout(self.wrap)
        root.setContentsMargins(0, 0, 0, 12)
        root.setSpacing(8)

        # Title bar
        self.bar = DragBar(self)
        bar_l = QHBoxLayout(self.bar)
        bar_l.setContentsMargins(12, 8, 8, 8)
        title = QLabel(APP_TITLE); title.setObjectName("title")
        self.history_btn = QPushButton("History")
        self.close_btn = QPushButton("×"); self.close_btn.setObjectName("ghost")
        self.close_btn.setToolTip("Close")
        bar_l.addWidget(title, 1)
        bar_l.addWidget(self.history_btn)
        bar_l.addWidget(self.close_btn)
        root.addWidget(self.bar)

        body = QVBoxLayout()
        body.setContentsMargins(12, 0, 12, 0)
        body.setSpacing(8)
        root.addLayout(body)

        # Cost | Price
        grid = QGridLayout()
        grid.setHorizontalSpacing(8)
        self.cost_edit = NumberEdit(0.01, 2, minimum=0.0, placeholder="e.g. 10,00")
        self.price_edit = NumberEdit(0.01, 2, minimum=0.0, placeholder="compute or type")
        for col, (label, w) in enumerate((("Cost (€)", self.cost_edit), ("Sale price (editable)", self.price_edit))):
            lab = QLabel(label); lab.setObjectName("fieldLabel")
            grid.addWidget(lab, 0, col)
            grid.addWidget(w, 1, col)
        body.addLayout(grid)

        # Mode tabs
        tabs = QHBoxLayout()
        self.tab_margin = ModeTab("Margin %", Mode.MARGIN, self)
        self.tab_markup = ModeTab("Markup %", Mode.MARKUP, self)
        self.mode_tabs = {Mode.MARGIN: self.tab_margin, Mode.MARKUP: self.tab_markup}
        self.tab_margin.setToolTip("Sale price from margin %.\nMargin % is the share of the sale price.")
        self.tab_markup.setToolTip("Markup: add M % on top of cost.")
        self.tabs = QButtonGroup(self)
        self.tabs.setExclusive(True)
        for b in (self.tab_margin, self.tab_markup):
            self.tabs.addButton(b)
            tabs.addWidget(b)
        body.addLayout(tabs)

        # Percent panes
        self.margin_edit = NumberEdit(0.1, 1, minimum=0.0, maximum=99.9999, placeholder="e.g. 99")
        self.markup_edit = NumberEdit(0.1, 1, minimum=MARKUP_FLOOR_UI, placeholder="e.g. 99")
        self.err_margin = QLabel(""); self.err_margin.setObjectName("err")
        self.err_markup = QLabel(""); self.err_markup.setObjectName("err")
        self.panes = QStackedWidget()
        for label, edit, err in (("Margin %", self.margin_edit, self.err_margin),
                                 ("Markup %", self.markup_edit, self.err_markup)):
            pane = QWidget()
            pl = QVBoxLayout(pane)
            pl.setContentsMargins(0, 0, 0, 0)
            pl.setSpacing(4)
            lab = QLabel(label); lab.setObjectName("fieldLabel")
            pl.addWidget(lab)
            pl.addWidget(edit)
            pl.addWidget(err)
            self.panes.addWidget(pane)
        body.addWidget(self.panes)

        # Footer
        foot = QHBoxLayout()
        self.derived_label = QLabel("Derived: —"); self.derived_label.setObjectName("derived")
        self.copy_btn = QPushButton("Copy")
        self.reset_btn = QPushButton("Reset position"); self.reset_btn.setObjectName("link")
        foot.addWidget(self.derived_label, 1)
        foot.addWidget(self.copy_btn)
        foot.addWidget(self.reset_btn)
        body.addLayout(foot)

        # History
        self.hist_panel = QFrame()
        hl = QVBoxLayout(self.hist_panel)
        hl.setContentsMargins(0, 6, 0, 0)
        self.hist_list = QListWidget()
        self.hist_list.setMaximumHeight(220)
        self.hist_empty = QLabel("No entries."); self.hist_empty.setObjectName("muted")
        acts = QHBoxLayout()
        acts.addStretch(1)
        self.save_btn = QPushButton("Save")
        self.clear_btn = QPushButton("Clear")
        acts.addWidget(self.save_btn)
        acts.addWidget(self.clear_btn)
        hl.addWidget(self.hist_list)
        hl.addWidget(self.hist_empty)
        hl.addLayout(acts)
        self.hist_panel.hide()
        body.addWidget(self.hist_panel)

        # Toast (inside the panel, never takes clicks)
        self.toast_label = QLabel("", self.wrap)
        self.toast_label.setObjectName("toast")
        self.toast_label.setAttribute(Qt.WA_TransparentForMouseEvents, True)
        self.toast_label.hide()

        self.edits = {
            Field.COST: self.cost_edit,
            Field.PRICE: self.price_edit,
            Field.MARGIN: self.margin_edit,
            Field.MARKUP: self.markup_edit,
        }

    def _wire_signals(self):
        for field, edit in self.edits.items():
            edit.textChanged.connect(lambda txt, f=field: self.ctl.on_user_edit(f, txt))
            edit.returnPressed.connect(lambda: self.ctl.save_to_history(show_panel=True))
        self.tab_margin.clicked.connect(lambda: self.ctl.set_mode(Mode.MARGIN))
        self.tab_markup.clicked.connect(lambda: self.ctl.set_mode(Mode.MARKUP))
        self.close_btn.clicked.connect(self.close)
        self.history_btn.clicked.connect(self.toggle_history)
        self.save_btn.clicked.connect(lambda: self.ctl.save_to_history(show_panel=True))
        self.clear_btn.clicked.connect(self.ctl.clear_history)
        self.copy_btn.clicked.connect(self.copy_price)
        self.reset_btn.clicked.connect(self.ctl.reset_position)
        self.hist_list.itemClicked.connect(lambda item: self.ctl.select_history(self.hist_list.row(item)))

        QShortcut(QKeySequence(Qt.Key_Escape), self).activated.connect(self.close)
        QShortcut(QKeySequence("Alt+R"), self).activated.connect(self.ctl.reset_position)

        try:
            screen = self.screen() or QGuiApplication.primaryScreen()
            screen.availableGeometryChanged.connect(lambda _g: self.ctl.on_viewport_resize(*self._metrics()))
        except Exception as e:
            # Never hard-fail on wiring (panel is still usable)
            log_error("wire viewport resize", e)

    @contextmanager
    def _block_signals(self, *widgets):
        states = []
        try:
            for w in widgets:
                states.append((w, w.blockSignals(True)))
            yield
        finally:
            for w, prev in states:
                w.blockSignals(prev)

    # ---------- lifecycle ----------

    @lore_guard("panel start failure")
    def start(self, pos: PanelPosition | None, state: PanelState):
        self.adjustSize()
        self.ctl.start(state)
        self.ctl.restore_position(pos)
        self.ctl.on_viewport_resize(*self._metrics())

    def closeEvent(self, ev):  # type: ignore[override]
        log_event("panel", "close_event", [])
        try:
            if self._on_closed:
                self._on_closed()
        finally:
            super().closeEvent(ev)

    # ---------- geometry ----------

    def _viewport(self):
        screen = self.screen() or QGuiApplication.primaryScreen()
        return screen.availableGeometry()

    def _metrics(self):
        geo = self._viewport()
        return (self.width(), self.height()), (geo.width(), geo.height())

    def local_pos(self) -> QPoint:
        return self.pos() - self._viewport().topLeft()

    def drag_to(self, p: QPoint, *, final: bool):
        size, viewport = self._metrics()
        if final:
            self.ctl.on_drag_end(p.x(), p.y(), size, viewport)
        else:
            self.ctl.on_drag_move(p.x(), p.y(), size, viewport)

    # ---------- view hooks ----------

    def show_fields(self, values):
        widgets = [self.edits[f] for f in values]
        with self._block_signals(*widgets):
            for f, txt in values.items():
                if self.edits[f].text() != txt:
                    self.edits[f].setText(txt)

    def show_errors(self, errors):
        self.err_margin.setText(errors.get(Field.MARGIN, ""))
        self.err_markup.setText(errors.get(Field.MARKUP, ""))

    def show_derived(self, text: str):
        self.derived_label.setText(text)

    def show_mode(self, mode: Mode):
        with self._block_signals(self.tab_margin, self.tab_markup):
            self.tab_margin.setChecked(mode is Mode.MARGIN)
            self.tab_markup.setChecked(mode is Mode.MARKUP)
        self.panes.setCurrentIndex(0 if mode is Mode.MARGIN else 1)

    def move_to(self, pos: PanelPosition):
        origin = self._viewport().topLeft()
        self.move(origin.x() + int(round(pos.left)), origin.y() + int(round(pos.top)))

    def show_history(self, entries: list[HistoryEntry], reveal: bool = False):
        self.hist_list.clear()
        for idx, entry in enumerate(entries):
            item = QListWidgetItem(self.hist_list)
            row = self._history_row(idx, entry)
            item.setSizeHint(row.sizeHint())
            self.hist_list.setItemWidget(item, row)
        self.hist_empty.setVisible(not entries)
        self.hist_list.setVisible(bool(entries))
        if reveal:
            self.hist_panel.show()
        self.adjustSize()

    def _history_row(self, idx: int, entry: HistoryEntry) -> QWidget:
        head, meta = describe(entry)
        row = QWidget()
        rl = QHBoxLayout(row)
        rl.setContentsMargins(8, 4, 8, 4)
        texts = QVBoxLayout()
        texts.setSpacing(0)
        texts.addWidget(QLabel(head))
        meta_l = QLabel(meta); meta_l.setObjectName("muted")
        texts.addWidget(meta_l)
        rl.addLayout(texts, 1)
        num = QLabel(f"#{idx + 1}"); num.setObjectName("muted")
        rl.addWidget(num)
        del_btn = QPushButton("Delete"); del_btn.setObjectName("del")
        # deferred: the row (and this button) is rebuilt by the delete
        del_btn.clicked.connect(lambda _=False, i=idx: QTimer.singleShot(0, lambda: self.ctl.delete_history(i)))
        rl.addWidget(del_btn)
        return row

    def toast(self, msg: str = "OK"):
        self.toast_label.setText(msg)
        self.toast_label.adjustSize()
        w = self.wrap
        self.toast_label.move(w.width() - self.toast_label.width() - 12,
                              w.height() - self.toast_label.height() - 12)
        self.toast_label.raise_()
        self.toast_label.show()
        self._toast_timer.start(TOAST_MS)

    # ---------- actions ----------

    def select_mode(self, mode: Mode):
        self.ctl.set_mode(mode)
        self.mode_tabs[self.ctl.state.mode].setFocus()

    def step_mode(self, step: int):
        order = list(self.mode_tabs)
        i = order.index(self.ctl.state.mode)
        self.select_mode(order[(i + step) % len(order)])

    def toggle_history(self):
        log_event("panel", "history_open", [])
        self.ctl.render_history()
        self.hist_panel.setVisible(not self.hist_panel.isVisible())
        self.adjustSize()

    def copy_price(self):
        txt = self.ctl.copy_text()
        if not txt:
            return
        ok = False
        try:
            QGuiApplication.clipboard().setText(txt)
            ok = True
        except Exception as e:
            log_error("clipboard write", e)
        self.ctl.on_copied(ok)


# -------------------------- App bootstrap --------------------------

def _make_tray(app: QApplication, host: PanelHost):
    if not QSystemTrayIcon.isSystemTrayAvailable():
        return None
    tray = QSystemTrayIcon(app.style().standardIcon(QStyle.StandardPixmap.SP_FileDialogDetailedView), app)
    tray.setToolTip(f"{APP_TITLE} {app.applicationVersion()}".strip())
    menu = QMenu()
    menu.addAction("Toggle panel", host.handle_toggle)
    menu.addSeparator()
    menu.addAction("Quit", app.quit)
    tray.setContextMenu(menu)
    tray.activated.connect(
        lambda reason: host.handle_toggle() if reason == QSystemTrayIcon.ActivationReason.Trigger else None
    )
    tray.show()
    tray._menu = menu  # keep a Python reference
    return tray


def main(argv=None) -> int:
    if not ((3, 10) <= sys.version_info):
        raise SystemExit("Please run with Python 3.10 or newer.")

    QGuiApplication.setHighDpiScaleFactorRoundingPolicy(Qt.HighDpiScaleFactorRoundingPolicy.PassThrough)
    app = QApplication.instance() or QApplication(list(argv) if argv is not None else sys.argv)

    cfg = load_config()
    app.setApplicationVersion(cfg.version)
    store = make_store(cfg.storage)
    registry = PanelRegistry()
    host: PanelHost

    def _factory(pos, state):
        panel = KatePanel(store, cfg, on_closed=host.panel_closed)
        panel.start(pos, state)
        panel.show()
        return panel

    host = PanelHost(registry, store, _factory, default_percent=cfg.default_percent)
    tray = _make_tray(app, host)
    app.setQuitOnLastWindowClosed(tray is None)
    dbg("content ready", f"v{cfg.version}", f"storage={cfg.storage}", f"durable={store.durable}")

    host.handle_toggle()
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
