from __future__ import annotations

import logging
from datetime import datetime
from logging.handlers import RotatingFileHandler

from log.log_manager import LogManager
from log.log_record import PlaybackLogRecord
from log.service_log import coerce_log_path, setup_service_logger


def _record(reason: str = "fade") -> PlaybackLogRecord:
    now = datetime.now()
    return PlaybackLogRecord(
        slot=(0, 1),
        file_path="/music/a.wav",
        started_at=now,
        stopped_at=now,
        duration_seconds=3.0,
        played_seconds=1.0,
        reason=reason,
    )


def test_log_path_stays_under_service_logs(tmp_path, monkeypatch):
    monkeypatch.setenv("RADIO_SERVICE_LOG_DIR", str(tmp_path / "logs"))
    base = (tmp_path / "logs").resolve()

    assert coerce_log_path(env_value=None, default_filename="radio_app.log") == base / "radio_app.log"
    assert coerce_log_path(env_value="sub/x.log", default_filename="d.log") == base / "sub" / "x.log"
    escaped = coerce_log_path(env_value=str(tmp_path / "elsewhere" / "y.log"), default_filename="d.log")
    assert escaped == base / "y.log"


def test_setup_service_logger_is_idempotent(tmp_path, monkeypatch):
    monkeypatch.setenv("RADIO_SERVICE_LOG_DIR", str(tmp_path))
    monkeypatch.delenv("RADIO_LOG_PATH", raising=False)

    logger = setup_service_logger("pytest_component")
    try:
        again = setup_service_logger("pytest_component")
        handlers = [h for h in again.handlers if isinstance(h, RotatingFileHandler)]
        assert again is logger
        assert len(handlers) == 1
        logger.info("hello")
        handlers[0].flush()
        assert "hello" in (tmp_path / "radio_pytest_component.log").read_text(encoding="utf-8")
    finally:
        for h in list(logger.handlers):
            logger.removeHandler(h)
            h.close()


def test_log_manager_writes_structured_line(caplog):
    log = LogManager("pytest")
    with caplog.at_level(logging.INFO, logger="radio.pytest"):
        log.info(source="import", message="added a.wav", slot=(1, 4), metadata={"duration": 2.0})
    assert "[import] slot=1:4 added a.wav {'duration': 2.0}" in caplog.text


def test_playback_listeners_are_notified_and_isolated(caplog):
    log = LogManager("pytest")
    seen = []

    def broken(_record):
        raise RuntimeError("listener bug")

    log.add_listener(broken)
    log.add_listener(seen.append)
    with caplog.at_level(logging.ERROR, logger="radio.pytest"):
        log.log_playback(_record())
    assert [r.reason for r in seen] == ["fade"], "a failing listener must not block the others"
    assert "listener failed" in caplog.text

    log.remove_listener(seen.append)
    log.log_playback(_record("stopped"))
    assert len(seen) == 1
