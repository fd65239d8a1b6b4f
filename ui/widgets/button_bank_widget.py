from __future__ import annotations

from typing import Optional

from PySide6.QtCore import Signal
from PySide6.QtWidgets import QGridLayout, QWidget

from ui.widgets.sound_file_button import SoundButtonWidget

GRID_ROWS = 4
GRID_COLS = 5


class ButtonBankWidget(QWidget):
    """Fixed 5x4 grid of SoundButtonWidgets for the active tab.

    Slot i sits at row i // cols, column i % cols. The bank holds no board
    state; refresh() is handed a callable that describes each slot.
    """

    slot_clicked = Signal(int)

    def __init__(self, rows: int = GRID_ROWS, cols: int = GRID_COLS, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._rows = int(rows)
        self._cols = int(cols)
        self.buttons: list[SoundButtonWidget] = []

        layout = QGridLayout(self)
        layout.setContentsMargins(12, 12, 12, 12)
        layout.setSpacing(8)
        for r in range(self._rows):
            for c in range(self._cols):
                w = SoundButtonWidget(r * self._cols + c, self)
                w.clicked.connect(self.slot_clicked)
                layout.addWidget(w, r, c)
                self.buttons.append(w)

    @property
    def slot_count(self) -> int:
        return self._rows * self._cols

    def refresh(self, describe) -> None:
        """Push state into every cell.

        ``describe(index)`` returns (button_or_None, playing, remaining, progress).
        """
        for w in self.buttons:
            button, playing, remaining, progress = describe(w.index)
            w.set_state(button, playing=playing, remaining=remaining, progress=progress)
