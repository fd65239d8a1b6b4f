"""
SoundButtonWidget: one cell of the soundboard grid.

Purely a view. The grid pushes the SoundButton to show plus the live playback
figures on every tick; clicks are reported back by slot index and the
controller decides what they mean (play, fade, edit or add).
"""

from __future__ import annotations

from typing import Optional

from PySide6.QtCore import QPointF, QRectF, Qt, Signal
from PySide6.QtGui import QColor, QFont, QPainter, QPainterPath, QPen
from PySide6.QtWidgets import QSizePolicy, QWidget

from app.soundboard import format_time
from engine.waveform import envelope_index_for_pixel
from ui.models.board import Color32, SoundButton

CORNER_RADIUS = 8.0
EMPTY_TEXT = "Click to add..."


def _qcolor(color: Color32, factor: float = 1.0) -> QColor:
    r, g, b, a = color.gamma_multiply(factor).rgba() if factor != 1.0 else color.rgba()
    return QColor(r, g, b, a)


class SoundButtonWidget(QWidget):
    clicked = Signal(int)

    def __init__(self, index: int, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.index = int(index)
        self._button: Optional[SoundButton] = None
        self._playing = False
        self._remaining = 0.0
        self._progress: Optional[float] = None
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)
        self.setMinimumSize(120, 80)
        self.setCursor(Qt.CursorShape.PointingHandCursor)

    def set_state(
        self,
        button: Optional[SoundButton],
        *,
        playing: bool = False,
        remaining: float = 0.0,
        progress: Optional[float] = None,
    ) -> None:
        self._button = button
        self._playing = bool(playing)
        self._remaining = float(remaining)
        self._progress = progress
        self.update()

    def mouseReleaseEvent(self, event) -> None:
        if event.button() == Qt.MouseButton.LeftButton and self.rect().contains(event.position().toPoint()):
            self.clicked.emit(self.index)
        super().mouseReleaseEvent(event)

    # -------------------------------------------------
    # Painting
    # -------------------------------------------------

    def paintEvent(self, event) -> None:
        painter = QPainter(self)
        try:
            painter.setRenderHint(QPainter.RenderHint.Antialiasing)
            rect = QRectF(self.rect())
            button = self._button
            if button is None or button.is_empty:
                self._paint_empty(painter, rect)
            else:
                self._paint_button(painter, rect, button)
        finally:
            painter.end()

    def _paint_empty(self, painter: QPainter, rect: QRectF) -> None:
        path = QPainterPath()
        path.addRoundedRect(rect, CORNER_RADIUS, CORNER_RADIUS)
        painter.fillPath(path, QColor(64, 64, 64, 128))
        painter.setPen(QColor(255, 255, 255))
        painter.setFont(QFont(self.font().family(), 14))
        painter.drawText(rect, Qt.AlignmentFlag.AlignCenter, EMPTY_TEXT)

    def _paint_button(self, painter: QPainter, rect: QRectF, button: SoundButton) -> None:
        clip = button.clip
        width = int(rect.width())
        base_y = rect.bottom()
        max_h = rect.height() * 0.8

        # Envelope: one vertical line per pixel column, behind the overlay.
        envelope = clip.envelope
        if envelope:
            painter.setPen(QPen(_qcolor(button.color, 0.3), 1.0))
            for x in range(width):
                h = envelope[envelope_index_for_pixel(x, width, len(envelope))]
                y = max(rect.top(), base_y - h * max_h)
                px = rect.left() + x
                painter.drawLine(QPointF(px, base_y), QPointF(px, y))

        path = QPainterPath()
        path.addRoundedRect(rect, CORNER_RADIUS, CORNER_RADIUS)
        painter.fillPath(path, _qcolor(button.color, 0.7))

        painter.setPen(QColor(255, 255, 255))
        painter.setFont(QFont(self.font().family(), 16))
        painter.drawText(rect.adjusted(6, 6, -6, -6), int(Qt.AlignmentFlag.AlignCenter.value) | int(Qt.TextFlag.TextWordWrap.value), button.label)

        if self._playing:
            time_text, time_color = format_time(self._remaining), QColor(255, 255, 0)
        else:
            time_text, time_color = format_time(clip.duration_seconds), QColor(255, 255, 255)
        painter.setPen(time_color)
        painter.setFont(QFont(self.font().family(), 12))
        painter.drawText(
            rect.adjusted(0, 0, -10, -10),
            Qt.AlignmentFlag.AlignRight | Qt.AlignmentFlag.AlignBottom,
            time_text,
        )

        if self._playing and self._progress is not None:
            x = rect.left() + self._progress * rect.width()
            painter.setPen(QPen(QColor(255, 0, 0), 2.0))
            painter.drawLine(QPointF(x, rect.top()), QPointF(x, rect.bottom()))
