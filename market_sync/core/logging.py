"""Loguru sinks for the sync service, with stdlib interception and Slack alerts."""

import logging
import sys
from pathlib import Path
from typing import Any

import httpx
from loguru import logger

from market_sync.core.config import settings

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[name]}:{function}:{line} | {message}"

LEVEL_ALIASES = {"WARN": "WARNING", "FATAL": "CRITICAL"}

# Per-request INFO records from these are dropped
QUIET_LOGGERS = {"httpx": "WARNING", "httpcore": "WARNING", "sqlalchemy.engine": "WARNING"}
SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

_configured = False


class InterceptHandler(logging.Handler):
    """Forward stdlib records to Loguru, keeping the caller's frame."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_name == "emit":
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).bind(name=record.name).log(level, record.getMessage())


def _slack_sink(message: Any) -> None:
    record = message.record
    text = (
        f"[market_sync/{settings.ENV}] {record['level'].name} "
        f"{record['extra'].get('name', 'market_sync')}:{record['function']}\n{record['message']}"
    )
    try:
        httpx.post(settings.SLACK_WEBHOOK_URL, json={"text": text}, timeout=5.0)
    except httpx.HTTPError:
        # Never log from inside a sink
        pass


def resolve_level(raw: str | None) -> str:
    level = (raw or "INFO").strip().upper()
    level = LEVEL_ALIASES.get(level, level)
    try:
        logger.level(level)
    except ValueError:
        return "INFO"
    return level


def configure_logging(force: bool = False) -> None:
    global _configured
    if _configured and not force:
        return
    _configured = True

    level = resolve_level(settings.effective_log_level)
    log_dir = Path(settings.LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.configure(extra={"name": "market_sync"})
    logger.add(sys.stdout, level=level, format=LOG_FORMAT, backtrace=False, diagnose=False)
    logger.add(
        log_dir / "market_sync.log",
        level=level,
        format=LOG_FORMAT,
        rotation="10 MB",
        retention="14 days",
        enqueue=True,
        backtrace=False,
        diagnose=False,
    )
    if settings.SLACK_WEBHOOK_URL:
        logger.add(_slack_sink, level="ERROR", enqueue=True)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)
    for name in SERVER_LOGGERS:
        server_logger = logging.getLogger(name)
        server_logger.handlers = [InterceptHandler()]
        server_logger.propagate = False


def get_logger(name: str) -> logger.__class__:
    return logger.bind(name=name)


configure_logging()
