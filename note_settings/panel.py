"""PyQt6 settings form bound to a SettingsController running on the core loop."""
from __future__ import annotations

import logging
from typing import Optional

from PyQt6.QtCore import pyqtSignal
from PyQt6.QtGui import QColor
from PyQt6.QtWidgets import (
    QCheckBox,
    QColorDialog,
    QComboBox,
    QDoubleSpinBox,
    QFormLayout,
    QHBoxLayout,
    QLabel,
    QMessageBox,
    QPlainTextEdit,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from note_overlay.loop_thread import EventLoopThread
from note_settings.controller import SettingsController, SettingsForm

_LOGGER = logging.getLogger("SiteNotes.Settings.Panel")

THEME_CHOICES = [
    ("Glass", "glass"),
    ("Paper", "paper"),
    ("Post-it", "postit"),
    ("Custom", "custom"),
]


class SettingsPanel(QWidget):
    """Widgets for one hostname's note; implements the settings view contract."""

    _dispatch = pyqtSignal(object)

    def __init__(self, loop_thread: EventLoopThread, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._loop_thread = loop_thread
        self.controller: Optional[SettingsController] = None
        self._updating = False
        self._dispatch.connect(self._run)
        self.setWindowTitle("Site Notes")

        self._domain = QLabel("…", self)
        self._domain.setObjectName("currentDomain")
        self._note_input = QPlainTextEdit(self)
        self._note_input.setPlaceholderText("Write a note for this site…")
        self._char_count = QLabel("0 chars", self)
        self._status = QLabel("", self)
        self._status.setObjectName("saveStatus")
        self._toggle_overlay = QCheckBox("Show overlay on page", self)
        self._theme = QComboBox(self)
        for label, value in THEME_CHOICES:
            self._theme.addItem(label, value)
        self._bg_button = QPushButton(self)
        self._text_button = QPushButton(self)
        self._opacity = QDoubleSpinBox(self)
        self._opacity.setRange(0.0, 1.0)
        self._opacity.setSingleStep(0.05)
        self._delete = QPushButton("Delete note", self)

        footer = QHBoxLayout()
        footer.addWidget(self._char_count)
        footer.addStretch(1)
        footer.addWidget(self._status)

        design = QFormLayout()
        design.addRow("Theme", self._theme)
        design.addRow("Background", self._bg_button)
        design.addRow("Text", self._text_button)
        design.addRow("Opacity", self._opacity)

        layout = QVBoxLayout(self)
        layout.addWidget(self._domain)
        layout.addWidget(self._note_input, 1)
        layout.addLayout(footer)
        layout.addWidget(self._toggle_overlay)
        layout.addLayout(design)
        layout.addWidget(self._delete)

        self._note_input.textChanged.connect(self._on_text_changed)
        self._toggle_overlay.toggled.connect(self._on_visible_toggled)
        self._theme.currentIndexChanged.connect(self._on_theme_changed)
        self._bg_button.clicked.connect(lambda: self._pick_color("bg"))
        self._text_button.clicked.connect(lambda: self._pick_color("text"))
        self._opacity.valueChanged.connect(self._on_opacity_changed)
        self._delete.clicked.connect(self._on_delete)

    # SettingsView (called from the core loop) ----------------------------

    def show_domain(self, label: str) -> None:
        self._dispatch.emit(lambda: self._domain.setText(label))

    def set_input_enabled(self, enabled: bool) -> None:
        def _apply() -> None:
            for widget in (self._note_input, self._toggle_overlay, self._theme, self._delete):
                widget.setEnabled(enabled)
            if not enabled:
                self._note_input.setPlaceholderText("Notes are not available for this page")

        self._dispatch.emit(_apply)

    def show_form(self, form: SettingsForm) -> None:
        self._dispatch.emit(lambda: self._show_form_now(form))

    def show_char_count(self, count: int) -> None:
        self._dispatch.emit(lambda: self._char_count.setText(f"{count} chars"))

    def show_status(self, text: str, kind: str) -> None:
        def _apply() -> None:
            self._status.setText(text)
            self._status.setProperty("kind", kind)

        self._dispatch.emit(_apply)

    def apply_palette(self, bg: str, text: str, secondary_bg: str) -> None:
        sheet = (
            f"QWidget {{ background-color: {bg}; color: {text}; }}\n"
            f"QPlainTextEdit, QComboBox, QDoubleSpinBox {{ background-color: {secondary_bg}; }}"
        )
        self._dispatch.emit(lambda: self.setStyleSheet(sheet))

    # GUI thread -----------------------------------------------------------

    def _run(self, callback) -> None:
        try:
            callback()
        except Exception as exc:
            _LOGGER.warning("Settings panel update failed: %s", exc, exc_info=exc)

    def _show_form_now(self, form: SettingsForm) -> None:
        self._updating = True
        try:
            if self._note_input.toPlainText() != form.text:
                self._note_input.setPlainText(form.text)
            self._toggle_overlay.setChecked(form.visible)
            index = self._theme.findData(form.theme)
            self._theme.setCurrentIndex(index if index >= 0 else 0)
            self._bg_button.setText(form.bg)
            self._text_button.setText(form.text_color)
            self._opacity.setValue(float(form.opacity))
        finally:
            self._updating = False

    def _forward(self, callback, *args) -> None:
        if self._updating or self.controller is None:
            return
        self._loop_thread.call_soon(callback, *args)

    def _on_text_changed(self) -> None:
        if self.controller is not None:
            self._forward(self.controller.on_text_input, self._note_input.toPlainText())

    def _on_visible_toggled(self, checked: bool) -> None:
        if self.controller is not None:
            self._forward(self.controller.set_visible, checked)

    def _on_theme_changed(self, _index: int) -> None:
        if self.controller is not None:
            self._forward(self.controller.select_theme, str(self._theme.currentData()))

    def _on_opacity_changed(self, value: float) -> None:
        controller = self.controller
        if controller is not None:
            self._forward(lambda: controller.edit_colors(opacity=value))

    def _pick_color(self, field: str) -> None:
        controller = self.controller
        if controller is None:
            return
        current = self._bg_button.text() if field == "bg" else self._text_button.text()
        color = QColorDialog.getColor(QColor(current), self, "Choose colour")
        if not color.isValid():
            return
        value = color.name()
        if field == "bg":
            self._forward(lambda: controller.edit_colors(bg=value))
        else:
            self._forward(lambda: controller.edit_colors(text_color=value))

    def _on_delete(self) -> None:
        controller = self.controller
        if controller is None:
            return
        answer = QMessageBox.question(self, "Delete note", "Are you sure you want to delete notes for this domain?")
        if answer != QMessageBox.StandardButton.Yes:
            return
        self._loop_thread.submit(controller.delete(), label="delete note")
