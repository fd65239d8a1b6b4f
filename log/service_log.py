from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s [%(processName)s:%(process)d] [%(threadName)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def get_runtime_root() -> Path:
    """Directory containing the executable when frozen, else the repo root.

    This file lives at <root>/log/service_log.py.
    """
    if bool(getattr(sys, "frozen", False)):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parents[1]


def get_service_log_dir() -> Path:
    """Return the directory all service logs are written to.

    Defaults to <runtime_root>/service_logs. Override with RADIO_SERVICE_LOG_DIR
    (relative values resolve against the runtime root).
    """
    override = (os.environ.get("RADIO_SERVICE_LOG_DIR") or "").strip()
    base = Path(override) if override else Path("service_logs")
    if not base.is_absolute():
        base = get_runtime_root() / base
    base.mkdir(parents=True, exist_ok=True)
    return base


def _safe_filename(name: str) -> str:
    name = str(name or "").strip().replace("/", "_").replace("\\", "_")
    name = "".join(ch for ch in name if ch.isalnum() or ch in ("-", "_", "."))
    return name or "service.log"


def coerce_log_path(*, env_value: Optional[str], default_filename: str) -> Path:
    """Compute a log file path that always lives under service_logs/.

    - empty env_value: <service_logs>/<default_filename>
    - relative env_value: <service_logs>/<env_value>
    - absolute env_value outside service_logs: forced back under it by basename
    """
    base = get_service_log_dir().resolve()
    if not env_value:
        return base / _safe_filename(default_filename)

    p = Path(env_value)
    if not p.is_absolute():
        p = base / p
    p = p.resolve()
    if p != base and base not in p.parents:
        p = base / _safe_filename(p.name)
    p.parent.mkdir(parents=True, exist_ok=True)
    return p


def setup_service_logger(component: str) -> logging.Logger:
    """Attach a rotating file handler to the ``radio.<component>`` logger.

    Level is DEBUG with RADIO_LOG_DEBUG=1, else INFO. Log path can be moved with
    RADIO_LOG_PATH (still coerced under service_logs/). Calling this twice for
    the same component is harmless.
    """
    safe_component = "".join(ch for ch in str(component) if ch.isalnum() or ch in ("_", "-")) or "app"
    logger = logging.getLogger(f"radio.{safe_component}")
    if any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
        return logger

    level = logging.DEBUG if os.environ.get("RADIO_LOG_DEBUG", "0") == "1" else logging.INFO
    logger.setLevel(level)
    try:
        log_path = coerce_log_path(
            env_value=os.environ.get("RADIO_LOG_PATH"),
            default_filename=f"radio_{safe_component}.log",
        )
        handler = RotatingFileHandler(log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
    except OSError as e:
        # Keep running with whatever handlers the root logger has.
        logger.warning("Service log setup failed for %s: %s", safe_component, e)
        return logger

    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT))
    logger.addHandler(handler)
    return logger
