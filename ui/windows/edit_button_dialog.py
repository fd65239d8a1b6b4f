from __future__ import annotations

from typing import Optional

from PySide6.QtGui import QColor
from PySide6.QtWidgets import (
    QColorDialog,
    QDialog,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from ui.models.board import Color32, SoundButton


class EditButtonDialog(QDialog):
    """Edit a button's name and color, or ask for a different music file.

    exec() returns SAVE, 0 for Cancel (or Escape), or CHANGE_MUSIC
    when the user wants to pick a new file (name/color edits are kept).
    """

    SAVE = 1
    CHANGE_MUSIC = 2

    def __init__(self, button: SoundButton, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setWindowTitle("Edit Music Button")
        self.setModal(True)
        self._color = button.color

        layout = QVBoxLayout(self)
        layout.addWidget(QLabel("Name:"))
        self.name_edit = QLineEdit(button.label)
        layout.addWidget(self.name_edit)

        layout.addWidget(QLabel("Color:"))
        self.color_button = QPushButton()
        self.color_button.setFixedHeight(28)
        self.color_button.clicked.connect(self._choose_color)
        layout.addWidget(self.color_button)
        self._update_swatch()

        row = QHBoxLayout()
        save_btn = QPushButton("Save")
        save_btn.setDefault(True)
        save_btn.clicked.connect(lambda: self.done(self.SAVE))
        cancel_btn = QPushButton("Cancel")
        cancel_btn.clicked.connect(self.reject)
        change_btn = QPushButton("Change Music")
        change_btn.clicked.connect(lambda: self.done(self.CHANGE_MUSIC))
        row.addWidget(save_btn)
        row.addWidget(cancel_btn)
        row.addWidget(change_btn)
        layout.addLayout(row)

    @property
    def label(self) -> str:
        return self.name_edit.text()

    @property
    def color(self) -> Color32:
        return self._color

    def _update_swatch(self) -> None:
        r, g, b, a = self._color.rgba()
        self.color_button.setStyleSheet(f"background-color: rgba({r}, {g}, {b}, {a});")

    def _choose_color(self) -> None:
        r, g, b, a = self._color.rgba()
        chosen = QColorDialog.getColor(
            QColor(r, g, b, a),
            self,
            "Button color",
            QColorDialog.ColorDialogOption.ShowAlphaChannel,
        )
        if chosen.isValid():
            self._color = Color32(chosen.red(), chosen.green(), chosen.blue(), chosen.alpha())
            self._update_swatch()
