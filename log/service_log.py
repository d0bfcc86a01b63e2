from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOGGER_NAME = "jukebox"


def env_truthy(name: str, *, default: bool = False) -> bool:
    v = os.environ.get(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "on")


def get_runtime_root() -> Path:
    """Return the runtime base directory.

    - In PyInstaller/frozen builds: directory containing the executable
    - Otherwise: the current working directory
    """
    if bool(getattr(sys, "frozen", False)):
        return Path(sys.executable).resolve().parent
    return Path.cwd()


def get_service_log_dir() -> Path:
    """Return the directory where service logs are written.

    Defaults to <runtime_root>/service_logs. Override with JUKEBOX_SERVICE_LOG_DIR.
    """
    override = (os.environ.get("JUKEBOX_SERVICE_LOG_DIR") or "").strip()
    if override:
        base = Path(override)
        if not base.is_absolute():
            base = get_runtime_root() / base
    else:
        base = get_runtime_root() / "service_logs"
    return base


def _safe_filename(name: str) -> str:
    name = str(name or "").strip() or "service.log"
    # Remove path separators and other surprising characters.
    name = name.replace("/", "_").replace("\\", "_")
    name = "".join(ch for ch in name if (ch.isalnum() or ch in ("-", "_", ".")))
    return name or "service.log"


def _is_within_dir(path: Path, parent: Path) -> bool:
    path_r = path.resolve()
    parent_r = parent.resolve()
    return path_r == parent_r or parent_r in path_r.parents


def coerce_log_path(
    *,
    env_value: Optional[str],
    default_filename: str,
    allow_absolute_outside_service_dir: bool = False,
) -> Path:
    """Compute a log file path that lives under service_logs/ by default.

    Rules:
    - If env_value is empty: <service_logs>/<default_filename>
    - If env_value is relative: <service_logs>/<env_value>
    - If env_value points to a directory (existing dir or ends with / or \\):
      <that_dir>/<default_filename>
    - If env_value is absolute: use it ONLY if allow_absolute_outside_service_dir
      is True, otherwise force it under service_logs using its basename.
    """
    base = get_service_log_dir()

    if not env_value:
        return (base / _safe_filename(default_filename)).resolve()

    raw = str(env_value)
    p = Path(raw)
    if not p.is_absolute():
        p = base / p

    if raw.endswith(("/", "\\")) or (p.exists() and p.is_dir()):
        p = p / _safe_filename(default_filename)

    if not allow_absolute_outside_service_dir and not _is_within_dir(p, base):
        p = base / _safe_filename(p.name)

    return p.resolve()


def setup_logging() -> Optional[Path]:
    """Attach a rotating file handler to the ``jukebox`` logger.

    Opt-in with JUKEBOX_LOG=1 or by setting JUKEBOX_LOG_PATH (absolute paths
    are honoured). JUKEBOX_DEBUG=1 lowers the level to DEBUG. Nothing is ever
    logged to the console: the terminal belongs to the renderer.

    Returns the log file path, or None when file logging is off.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.propagate = False

    env_path = (os.environ.get("JUKEBOX_LOG_PATH") or "").strip()
    if not (env_path or env_truthy("JUKEBOX_LOG")):
        if not logger.handlers:
            logger.addHandler(logging.NullHandler())
        return None

    for h in logger.handlers:
        if isinstance(h, RotatingFileHandler):
            return Path(h.baseFilename)

    level = logging.DEBUG if env_truthy("JUKEBOX_DEBUG") else logging.INFO
    logger.setLevel(level)

    log_path = coerce_log_path(
        env_value=env_path or None,
        default_filename="jukebox.log",
        allow_absolute_outside_service_dir=True,
    )
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s %(levelname)s [%(processName)s:%(process)d] [%(threadName)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(handler)
    return log_path
