"""
log.py - 파일 로깅 설정

stdio MCP 서버는 stdout을 프로토콜 채널로 쓰므로 로그는 파일로만 남긴다.
로그 파일: <state>/glean/mcp.log (0600)
"""
from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .xdg import ensure_private_file, get_state_dir

LOGGER_NAME = "glean_mcp"
LOG_FILE_NAME = "mcp.log"

_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"
_MAX_BYTES = 1024 * 1024
_BACKUP_COUNT = 3

_handler: RotatingFileHandler | None = None


def setup_logging(state_dir: Path | None = None, trace: bool = False) -> Path:
    """glean_mcp 로거에 파일 핸들러를 붙이고 로그 파일 경로를 반환한다.

    이미 설정되어 있으면 기존 핸들러를 교체한다.
    """
    global _handler
    teardown_logging()

    log_path = (state_dir or get_state_dir()) / LOG_FILE_NAME
    ensure_private_file(log_path)

    handler = RotatingFileHandler(
        log_path, maxBytes=_MAX_BYTES, backupCount=_BACKUP_COUNT, encoding="utf-8"
    )
    handler.setFormatter(logging.Formatter(_FORMAT))

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if trace else logging.INFO)
    logger.addHandler(handler)
    logger.propagate = False

    _handler = handler
    return log_path


def teardown_logging() -> None:
    """setup_logging이 붙인 핸들러를 떼고 닫는다."""
    global _handler
    if _handler is None:
        return
    logging.getLogger(LOGGER_NAME).removeHandler(_handler)
    _handler.close()
    _handler = None
