"""Logging setup for the assistant core."""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path

_DEFAULT_LOG_DIR = Path.home() / ".aura" / "logs"
_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "httpx", "httpcore", "openai", "langchain")
_LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}
_CONFIGURED = False
_LOG_PATH: Path | None = None


def setup_logging(
    level: int | None = None,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Configure root logging with a rotating file and an optional console handler.

    When `level` is omitted it is read from `AURA_LOG_LEVEL`
    (`error`, `warning`, `info`, `debug`; default `info`).
    """

    global _CONFIGURED, _LOG_PATH
    if _CONFIGURED and not force and _LOG_PATH is not None:
        return _LOG_PATH

    resolved_level = level if level is not None else level_from_env()
    target_dir = Path(log_dir or os.environ.get("AURA_LOG_DIR") or _DEFAULT_LOG_DIR).expanduser()
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / "aura.log"

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handlers: list[logging.Handler] = []
    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setFormatter(formatter)
    handlers.append(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    logging.basicConfig(level=resolved_level, handlers=handlers, force=True)
    logging.captureWarnings(True)

    quiet_level = max(logging.WARNING, resolved_level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)

    _CONFIGURED = True
    _LOG_PATH = log_path
    return log_path


def level_from_env(default: int = logging.INFO) -> int:
    raw = os.environ.get("AURA_LOG_LEVEL", "").strip().lower()
    return _LEVELS.get(raw, default)
