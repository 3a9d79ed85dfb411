# utils/logger.py
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from dzi_ingest.config.settings import settings

LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s'


def setup_logger(
    name: str = "dzi_ingest",
    level: Optional[str] = None,
    log_dir: Optional[Path] = None,
) -> logging.Logger:
    """로거 설정

    Console always; a daily file under ``log_dir`` when one is given.
    Calling it twice for the same name returns the configured logger.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, (level or "INFO").upper(), logging.INFO))
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / f"{name}_{datetime.now().strftime('%Y%m%d')}.log"
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


# 전역 로거 (dzi_ingest.* 모듈 로거가 여기로 전파됨)
logger = setup_logger(
    level=settings.LOG_LEVEL,
    log_dir=settings.DATA_DIR / "logs" if settings.LOG_TO_FILE else None,
)


def log_request(method: str, path: str, body: dict = None):
    """요청 로깅"""
    logger.info(f"→ {method} {path}")
    if body:
        logger.debug(f"  Body: {_sanitize_body(body)}")


def log_response(status: int, detail: str = None):
    """응답 로깅"""
    if status >= 500:
        logger.error(f"← {status} {detail}")
    elif status >= 400:
        logger.warning(f"← {status} {detail}")
    else:
        logger.info(f"← {status} {detail or 'OK'}")


def log_error(error: Exception, context: str = None):
    """에러 로깅 (traceback 포함)"""
    prefix = f"[{context}] " if context else ""
    logger.error(f"{prefix}{type(error).__name__}: {error}", exc_info=True)


def _sanitize_body(body):
    """청크 바이트는 길이만 남김"""
    if isinstance(body, (bytes, bytearray)):
        return f"<binary, {len(body)} bytes>"
    if isinstance(body, dict):
        return {key: _sanitize_body(value) for key, value in body.items()}
    if isinstance(body, list):
        return [_sanitize_body(value) for value in body]
    return body
