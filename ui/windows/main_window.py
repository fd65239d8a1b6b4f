from __future__ import annotations

import os
from typing import Callable, Optional

from PySide6.QtCore import QByteArray, Qt, QTimer, Signal
from PySide6.QtWidgets import (
    QCheckBox,
    QHBoxLayout,
    QInputDialog,
    QLabel,
    QLineEdit,
    QMainWindow,
    QMenu,
    QMessageBox,
    QPushButton,
    QTabBar,
    QVBoxLayout,
    QWidget,
)

from app.soundboard import Soundboard
from engine.audio_engine import AudioEngine
from engine.errors import AudioDeviceError, SoundboardError
from log.log_manager import LogManager
from log.log_record import PlaybackLogRecord
from log.service_log import get_runtime_root
from persistence.preferences import Preferences
from ui.dialogs import pick_audio_file, pick_board_to_open, pick_board_to_save
from ui.widgets.button_bank_widget import ButtonBankWidget
from ui.windows.edit_button_dialog import EditButtonDialog

EDIT_BANNER = "YOU ARE IN EDIT MODE: You can edit music buttons. Click 'Exit Edit Mode' to return to normal mode."
FRAME_INTERVAL_MS = 16


class MainWindow(QMainWindow):
    # Playback records arrive on engine worker threads; this hops them to the GUI thread.
    playback_logged = Signal(object)

    def __init__(
        self,
        *,
        soundboard: Optional[Soundboard] = None,
        preferences: Optional[Preferences] = None,
        engine_factory: Optional[Callable[[], AudioEngine]] = None,
    ) -> None:
        super().__init__()
        self.setWindowTitle("Radio Conductor")

        self.log = LogManager("app")
        self._log_listener = self.playback_logged.emit
        self.log.add_listener(self._log_listener)
        self.playback_logged.connect(self._on_playback_logged)

        self.preferences = preferences or Preferences(get_runtime_root() / "preferences.json", autosave=True, log=self.log)
        if soundboard is None:
            factory = engine_factory or (lambda: AudioEngine(log=self.log))
            soundboard = Soundboard(engine_factory=factory, log=self.log)
        self.soundboard = soundboard

        central = QWidget(self)
        root = QVBoxLayout(central)

        top = QHBoxLayout()
        save_btn = QPushButton("Save")
        save_btn.clicked.connect(self.save_board)
        import_btn = QPushButton("Import")
        import_btn.clicked.connect(self.import_board)
        top.addWidget(save_btn)
        top.addWidget(import_btn)
        top.addStretch(1)
        self.autoload_chk = QCheckBox("Open last board on startup")
        self.autoload_chk.setChecked(bool(self.preferences.get("autoload_last_board", False)))
        self.autoload_chk.toggled.connect(self._on_autoload_toggled)
        top.addWidget(self.autoload_chk)
        root.addLayout(top)

        self.banner = QLabel(EDIT_BANNER)
        self.banner.setWordWrap(True)
        self.banner.setStyleSheet("color: rgb(255, 200, 0); font-weight: bold; font-size: 20px;")
        root.addWidget(self.banner)

        tabs_row = QHBoxLayout()
        self.tab_bar = QTabBar()
        self.tab_bar.setExpanding(False)
        self.tab_bar.currentChanged.connect(self._on_tab_changed)
        self.tab_bar.tabBarDoubleClicked.connect(self._rename_tab)
        self.tab_bar.setContextMenuPolicy(Qt.ContextMenuPolicy.CustomContextMenu)
        self.tab_bar.customContextMenuRequested.connect(self._tab_context_menu)
        add_tab_btn = QPushButton("+")
        add_tab_btn.setFixedWidth(32)
        add_tab_btn.clicked.connect(self._add_tab)
        tabs_row.addWidget(self.tab_bar)
        tabs_row.addWidget(add_tab_btn)
        tabs_row.addStretch(1)
        root.addLayout(tabs_row)

        mode_row = QHBoxLayout()
        self.edit_mode_btn = QPushButton()
        self.edit_mode_btn.clicked.connect(self._toggle_edit_mode)
        mode_row.addWidget(self.edit_mode_btn)
        mode_row.addStretch(1)
        root.addLayout(mode_row)

        self.bank = ButtonBankWidget()
        self.bank.slot_clicked.connect(self._on_slot_clicked)
        root.addWidget(self.bank, 1)

        self.setCentralWidget(central)
        self.statusBar()

        self._restore_geometry()
        self._sync_from_model()

        self._frame_timer = QTimer(self)
        self._frame_timer.setInterval(FRAME_INTERVAL_MS)
        self._frame_timer.timeout.connect(self._on_frame)
        self._frame_timer.start()

    # -------------------------------------------------
    # Model -> widgets
    # -------------------------------------------------

    def _sync_from_model(self) -> None:
        model = self.soundboard.model
        self.tab_bar.blockSignals(True)
        try:
            while self.tab_bar.count():
                self.tab_bar.removeTab(0)
            for tab in model.tabs:
                self.tab_bar.addTab(tab.name)
            self.tab_bar.setCurrentIndex(model.active_tab_index)
        finally:
            self.tab_bar.blockSignals(False)
        self.banner.setVisible(model.edit_mode)
        self.edit_mode_btn.setText("Exit Edit Mode" if model.edit_mode else "Enter Edit Mode")
        self._refresh_bank()

    def _describe_slot(self, index: int):
        sb = self.soundboard
        button = sb.model.active_tab.button_at(index)
        if button is None or button.is_empty:
            return None, False, 0.0, None
        playing = sb.is_playing(index)
        return button, playing, sb.remaining(index), sb.progress(index)

    def _refresh_bank(self) -> None:
        self.bank.refresh(self._describe_slot)

    def _on_frame(self) -> None:
        self.soundboard.tick()
        self._refresh_bank()

    # -------------------------------------------------
    # Tabs / mode
    # -------------------------------------------------

    def _on_tab_changed(self, index: int) -> None:
        if index >= 0:
            self.soundboard.select_tab(index)
            self._refresh_bank()

    def _add_tab(self) -> None:
        self.soundboard.add_tab()
        self._sync_from_model()

    def _rename_tab(self, index: int) -> None:
        if index < 0:
            return
        current = self.soundboard.model.tabs[index].name
        name, ok = QInputDialog.getText(self, "Rename tab", "Tab name:", QLineEdit.EchoMode.Normal, current)
        if ok and self.soundboard.rename_tab(index, name):
            self.tab_bar.setTabText(index, self.soundboard.model.tabs[index].name)

    def _tab_context_menu(self, pos) -> None:
        index = self.tab_bar.tabAt(pos)
        if index < 0:
            return
        menu = QMenu(self)
        rename_action = menu.addAction("Rename")
        remove_action = menu.addAction("Remove tab")
        remove_action.setEnabled(len(self.soundboard.model.tabs) > 1)
        chosen = menu.exec(self.tab_bar.mapToGlobal(pos))
        if chosen == rename_action:
            self._rename_tab(index)
        elif chosen == remove_action:
            name = self.soundboard.model.tabs[index].name
            answer = QMessageBox.question(self, "Remove tab", f"Remove tab '{name}' and its buttons?")
            if answer == QMessageBox.StandardButton.Yes:
                self.soundboard.remove_tab(index)
                self._sync_from_model()

    def _toggle_edit_mode(self) -> None:
        model = self.soundboard.model
        model.edit_mode = not model.edit_mode
        self._sync_from_model()

    # -------------------------------------------------
    # Buttons
    # -------------------------------------------------

    def _on_slot_clicked(self, index: int) -> None:
        sb = self.soundboard
        button = sb.model.active_tab.button_at(index)
        if button is None or button.is_empty:
            sb.request_add(index)
            QTimer.singleShot(0, self._resolve_pending)
            return
        if sb.model.edit_mode:
            self._edit_button(index)
            return
        try:
            sb.press(index)
        except SoundboardError as e:
            QMessageBox.warning(self, "Playback Failed", f"Cannot play {button.label}:\n{e}")
        self._refresh_bank()

    def _edit_button(self, index: int) -> None:
        button = self.soundboard.model.active_tab.button_at(index)
        dlg = EditButtonDialog(button, self)
        result = dlg.exec()
        if result not in (EditButtonDialog.SAVE, EditButtonDialog.CHANGE_MUSIC):
            return
        self.soundboard.edit_button(index, label=dlg.label, color=dlg.color)
        if result == EditButtonDialog.CHANGE_MUSIC:
            self.soundboard.request_change(index)
            QTimer.singleShot(0, self._resolve_pending)
        self._refresh_bank()

    def _resolve_pending(self) -> None:
        try:
            self.soundboard.resolve_pending(lambda: pick_audio_file(self))
        except SoundboardError as e:
            QMessageBox.warning(self, "Import Failed", f"Could not load the music file:\n{e}")
        self._refresh_bank()

    # -------------------------------------------------
    # Board files
    # -------------------------------------------------

    def save_board(self) -> None:
        filename = pick_board_to_save(self)
        if not filename:
            return
        try:
            written = self.soundboard.save(filename)
        except SoundboardError as e:
            QMessageBox.warning(self, "Save Failed", f"Failed to save board:\n{e}")
            return
        self.preferences.set("last_board_path", str(written))
        self.statusBar().showMessage(f"Saved {written}", 5000)

    def import_board(self) -> None:
        filename = pick_board_to_open(self)
        if filename:
            self.load_board_file(filename)

    def load_board_file(self, filename: str) -> bool:
        try:
            self.soundboard.load(filename)
        except AudioDeviceError as e:
            self._sync_from_model()
            QMessageBox.critical(self, "Audio Device", f"Board loaded but the audio output could not be reopened:\n{e}")
            return False
        except SoundboardError as e:
            QMessageBox.warning(self, "Load Failed", f"Failed to load board:\n{e}")
            return False
        self.preferences.set("last_board_path", os.path.abspath(filename))
        self._sync_from_model()
        self.statusBar().showMessage(f"Loaded {filename}", 5000)
        return True

    def _on_autoload_toggled(self, checked: bool) -> None:
        self.preferences.set("autoload_last_board", bool(checked))

    def autoload_last_board(self) -> None:
        if not self.preferences.get("autoload_last_board", False):
            return
        path = self.preferences.get("last_board_path")
        if path and os.path.exists(path):
            self.load_board_file(path)

    # -------------------------------------------------
    # Misc
    # -------------------------------------------------

    def _on_playback_logged(self, record: PlaybackLogRecord) -> None:
        name = os.path.basename(record.file_path)
        self.statusBar().showMessage(f"{name}: {record.reason} after {record.played_seconds:.1f}s", 4000)

    def _restore_geometry(self) -> None:
        geometry = self.preferences.get("window_geometry")
        if geometry:
            self.restoreGeometry(QByteArray.fromBase64(geometry.encode("ascii")))
        else:
            self.resize(1100, 700)

    def closeEvent(self, event) -> None:
        self._frame_timer.stop()
        self.preferences.set("window_geometry", bytes(self.saveGeometry().toBase64()).decode("ascii"))
        self.preferences.close()
        self.log.remove_listener(self._log_listener)
        self.soundboard.close()
        event.accept()
