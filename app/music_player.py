from __future__ import annotations

def main() -> int:
    import os
    import sys
    import traceback
    from pathlib import Path

    from PySide6.QtCore import QTimer
    from PySide6.QtWidgets import QApplication, QMessageBox

    from engine.errors import AudioDeviceError
    from log.service_log import get_runtime_root, setup_service_logger

    # One rotating log per component; the engine and controller share the process.
    for component in ("app", "engine", "waveform"):
        setup_service_logger(component)

    # If the GUI crashes during startup, write a traceback to disk so we don't
    # end up with a silent failure.
    crash_path = Path(get_runtime_root()) / "last_gui_crash.txt"

    def _write_crash() -> None:
        try:
            crash_path.write_text(traceback.format_exc(), encoding="utf-8")
        except OSError:
            pass
        print(f"\n[GUI CRASH] See {crash_path}\n", file=sys.stderr)
        traceback.print_exc()

    try:
        app = QApplication(sys.argv)
        app.setApplicationName("Radio Conductor")

        from ui.windows.main_window import MainWindow

        try:
            w = MainWindow()
        except AudioDeviceError as e:
            QMessageBox.critical(None, "Audio Device", f"Cannot open the audio output:\n{e}")
            return 1
        w.show()
        QTimer.singleShot(0, w.autoload_last_board)

        # Opt-in smoke test hook: quit after N ms.
        exit_ms_raw = str(os.environ.get("RADIO_SMOKE_EXIT_AFTER_MS", "")).strip()
        if exit_ms_raw:
            try:
                exit_ms = int(float(exit_ms_raw))
            except ValueError:
                exit_ms = 0
            if exit_ms > 0:
                QTimer.singleShot(exit_ms, app.quit)

        return app.exec()
    except Exception:
        _write_crash()
        return 1

if __name__ == "__main__":
    raise SystemExit(main())
