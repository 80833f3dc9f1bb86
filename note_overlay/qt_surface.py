"""PyQt6 note window implementing the overlay surface contract."""
from __future__ import annotations

import logging
from typing import Optional, Protocol

from PyQt6.QtCore import QEvent, QObject, Qt, pyqtSignal
from PyQt6.QtGui import QGuiApplication
from PyQt6.QtWidgets import (
    QFrame,
    QHBoxLayout,
    QLabel,
    QPlainTextEdit,
    QPushButton,
    QSizeGrip,
    QStackedWidget,
    QTextBrowser,
    QVBoxLayout,
    QWidget,
)

from note_store.record import Position, Size

from note_overlay.drag import DragController
from note_overlay.geometry import Rect, format_px, parse_length, resolve_rect
from note_overlay.resize import ResizeCommitTracker
from note_overlay.resources import load_stylesheet
from note_overlay.surface import SurfaceView
from note_overlay.themes import style_to_qss

_LOGGER = logging.getLogger("SiteNotes.Overlay.Qt")

_NATURAL_HEIGHT_PX = 180.0


class NoteEvents(Protocol):
    """User intents raised by the surface; implementations forward them to the core."""

    def toggle_minimize(self) -> None: ...

    def begin_edit(self) -> None: ...

    def commit_edit(self, text: str) -> None: ...

    def commit_position(self, position: Position) -> None: ...

    def commit_size(self, size: Size) -> None: ...


class NoteWindow(QWidget):
    """Frameless always-on-top window; widgets only, no state of its own."""

    def __init__(self) -> None:
        super().__init__(
            None,
            Qt.WindowType.FramelessWindowHint | Qt.WindowType.Tool | Qt.WindowType.WindowStaysOnTopHint,
        )
        self.setAttribute(Qt.WidgetAttribute.WA_TranslucentBackground, True)
        self.setObjectName("noteWindow")

        self.frame = QFrame(self)
        self.frame.setObjectName("noteFrame")
        outer = QVBoxLayout(self)
        outer.setContentsMargins(0, 0, 0, 0)
        outer.addWidget(self.frame)

        self.header = QWidget(self.frame)
        self.header.setObjectName("noteHeader")
        self.header.setCursor(Qt.CursorShape.OpenHandCursor)
        handle = QLabel("⋮⋮", self.header)
        handle.setObjectName("dragHandle")
        self.unsaved_badge = QLabel("Unsaved", self.header)
        self.unsaved_badge.setObjectName("unsavedBadge")
        self.unsaved_badge.setToolTip("The last change could not be saved")
        self.unsaved_badge.hide()
        self.minimize_button = QPushButton("_", self.header)
        self.minimize_button.setObjectName("minimizeButton")
        self.minimize_button.setToolTip("Minimize")
        header_layout = QHBoxLayout(self.header)
        header_layout.setContentsMargins(0, 0, 4, 0)
        header_layout.addWidget(handle)
        header_layout.addStretch(1)
        header_layout.addWidget(self.unsaved_badge)
        header_layout.addWidget(self.minimize_button)

        self.browser = QTextBrowser(self.frame)
        self.browser.setOpenExternalLinks(True)
        self.browser.setToolTip("Double-click to edit")
        self.editor = QPlainTextEdit(self.frame)
        self.stack = QStackedWidget(self.frame)
        self.stack.addWidget(self.browser)
        self.stack.addWidget(self.editor)

        self.size_grip = QSizeGrip(self.frame)
        grip_row = QHBoxLayout()
        grip_row.setContentsMargins(0, 0, 0, 0)
        grip_row.addStretch(1)
        grip_row.addWidget(self.size_grip)

        layout = QVBoxLayout(self.frame)
        layout.setContentsMargins(2, 2, 2, 2)
        layout.setSpacing(0)
        layout.addWidget(self.header)
        layout.addWidget(self.stack, 1)
        layout.addLayout(grip_row)


class QtNoteSurface(QObject):
    """Surface handle created on the GUI thread and driven from the core loop.

    ``mount``/``unmount``/``apply`` may be called from any thread; the work is
    queued onto the GUI thread. The window is rebuilt on every mount.
    """

    _dispatch = pyqtSignal(object)

    def __init__(self, events: NoteEvents, *, stylesheet: str = "overlay") -> None:
        super().__init__()
        self._events = events
        self._base_stylesheet = load_stylesheet(stylesheet)
        self._window: Optional[NoteWindow] = None
        self._view: Optional[SurfaceView] = None
        self._edit_text: Optional[str] = None
        self._commit_pending = False
        self._applying_geometry = False
        self._resize = ResizeCommitTracker()
        self._drag = DragController(
            set_position_fn=self._move_to,
            commit_fn=self._events.commit_position,
            current_origin_fn=self._current_origin,
        )
        self._dispatch.connect(self._run)

    # Surface contract -----------------------------------------------------

    def mount(self) -> None:
        self._dispatch.emit(self._build_window)

    def unmount(self) -> None:
        self._dispatch.emit(self._destroy_window)

    def apply(self, view: SurfaceView) -> None:
        self._dispatch.emit(lambda: self._apply_now(view))

    def edit_buffer(self) -> Optional[str]:
        return self._edit_text

    # GUI thread -----------------------------------------------------------

    def _run(self, callback) -> None:
        try:
            callback()
        except Exception as exc:
            _LOGGER.warning("Surface update failed: %s", exc, exc_info=exc)

    def _build_window(self) -> None:
        if self._window is not None:
            return
        window = NoteWindow()
        window.setStyleSheet(self._base_stylesheet)
        window.minimize_button.clicked.connect(self._events.toggle_minimize)
        window.editor.textChanged.connect(self._remember_edit_text)
        window.header.installEventFilter(self)
        window.browser.viewport().installEventFilter(self)
        window.editor.installEventFilter(self)
        window.size_grip.installEventFilter(self)
        window.installEventFilter(self)
        self._window = window
        _LOGGER.debug("Note window created")

    def _destroy_window(self) -> None:
        window, self._window = self._window, None
        self._view = None
        self._edit_text = None
        self._commit_pending = False
        if window is None:
            return
        window.hide()
        window.deleteLater()
        _LOGGER.debug("Note window destroyed")

    def _apply_now(self, view: SurfaceView) -> None:
        window = self._window
        if window is None:
            return
        self._view = view
        minimized = view.minimized
        window.minimize_button.setText("□" if minimized else "_")
        window.minimize_button.setToolTip("Expand" if minimized else "Minimize")
        window.stack.setVisible(not minimized)
        window.size_grip.setVisible(not minimized)
        window.unsaved_badge.setVisible(view.unsaved)
        window.frame.setStyleSheet(style_to_qss(view.style))

        if view.edit_text is not None and window.stack.currentWidget() is not window.editor:
            window.editor.setPlainText(view.edit_text)
            self._edit_text = view.edit_text
            self._commit_pending = False
            window.stack.setCurrentWidget(window.editor)
            window.editor.setFocus()
        if view.content_html is not None:
            window.browser.setHtml(view.content_html)
            if window.stack.currentWidget() is not window.browser:
                window.stack.setCurrentWidget(window.browser)
                self._edit_text = None
                self._commit_pending = False

        self._resize.sync(view.size or self._resize.last_size, minimized=minimized)
        if not self._drag.active:
            self._apply_geometry(view)
        if view.visible:
            window.show()
            window.raise_()
        else:
            window.hide()

    def _apply_geometry(self, view: SurfaceView) -> None:
        window = self._window
        if window is None:
            return
        area = self._screen_area()
        rect = resolve_rect(
            view.position,
            view.size or Size(),
            area.width,
            area.height,
            minimized=view.minimized,
            natural_height=max(float(window.sizeHint().height()), _NATURAL_HEIGHT_PX),
        )
        self._applying_geometry = True
        try:
            window.setGeometry(
                int(area.left + rect.left), int(area.top + rect.top), int(rect.width), int(rect.height)
            )
        finally:
            self._applying_geometry = False

    def _screen_area(self) -> Rect:
        screen = QGuiApplication.primaryScreen()
        if screen is None:
            return Rect(0.0, 0.0, 1280.0, 800.0)
        geometry = screen.availableGeometry()
        return Rect(float(geometry.x()), float(geometry.y()), float(geometry.width()), float(geometry.height()))

    def _current_origin(self):
        window = self._window
        if window is None:
            return None
        area = self._screen_area()
        frame = window.frameGeometry()
        return float(frame.x()) - area.left, float(frame.y()) - area.top

    def _move_to(self, position: Position) -> None:
        window = self._window
        if window is None:
            return
        area = self._screen_area()
        left = parse_length(position.left, area.width) or 0.0
        top = parse_length(position.top, area.height) or 0.0
        window.move(int(area.left + left), int(area.top + top))

    def _remember_edit_text(self) -> None:
        if self._window is not None:
            self._edit_text = self._window.editor.toPlainText()

    def eventFilter(self, watched, event) -> bool:  # type: ignore[override]
        window = self._window
        if window is None:
            return False
        kind = event.type()
        if watched is window.header:
            return self._handle_header_event(kind, event)
        if watched is window.browser.viewport() and kind == QEvent.Type.MouseButtonDblClick:
            self._events.begin_edit()
            return True
        if watched is window.editor and kind == QEvent.Type.FocusOut:
            if window.stack.currentWidget() is window.editor and not self._commit_pending:
                self._commit_pending = True
                self._events.commit_edit(window.editor.toPlainText())
            return False
        if watched is window and kind == QEvent.Type.Resize and not self._applying_geometry:
            self._resize.observe()
            return False
        if watched is window.size_grip and kind == QEvent.Type.MouseButtonRelease:
            size = self._resize.release(format_px(window.width()), format_px(window.height()))
            if size is not None:
                self._events.commit_size(size)
            return False
        return False

    def _handle_header_event(self, kind, event) -> bool:
        window = self._window
        if window is None:
            return False
        if kind == QEvent.Type.MouseButtonPress and event.button() == Qt.MouseButton.LeftButton:
            point = event.globalPosition()
            origin = self._current_origin() or (0.0, 0.0)
            rect = Rect(origin[0], origin[1], float(window.width()), float(window.height()))
            on_button = isinstance(window.childAt(window.mapFromGlobal(point.toPoint())), QPushButton)
            if self._drag.press(rect, point.x(), point.y(), on_button=on_button):
                window.header.setCursor(Qt.CursorShape.ClosedHandCursor)
                return True
            return False
        if kind == QEvent.Type.MouseMove and self._drag.active:
            point = event.globalPosition()
            self._drag.move(point.x(), point.y())
            return True
        if kind == QEvent.Type.MouseButtonRelease and self._drag.active:
            window.header.setCursor(Qt.CursorShape.OpenHandCursor)
            self._drag.release()
            return True
        return False
