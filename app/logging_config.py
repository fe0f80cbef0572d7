"""
logging_config.py — Loguru setup for Alina Visitor Parking

Loguru is the only backend. Stdlib logging (services use getLogger, as do
uvicorn, SQLAlchemy, APScheduler and EasyOCR) is intercepted and re-emitted
through it.

Business Rules:
- ENVIRONMENT=production: JSON lines on stdout plus a rotating file kept
  14 days for the audit trail
- Anything else: coloured single-line format
- Every record carries extra["request_id"]; main.py binds the real ID per
  request with logger.contextualize(), everything else logs "-"

Called by: app/main.py (on import), scripts/seed_db.py
Depends on: LOG_LEVEL, ENVIRONMENT, LOG_FILE environment variables
"""

import logging
import os
import sys

from loguru import logger

NO_REQUEST = "-"

DEV_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[request_id]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> | "
    "{message}"
)

QUIET_LOGGERS = (
    "httpx",
    "httpcore",
    "uvicorn.access",
    "sqlalchemy.engine",
    "apscheduler.executors",
    "easyocr",
    "PIL",
)


def setup_logging() -> None:
    """Replace all sinks and route stdlib logging through Loguru. Safe to call twice."""
    logger.remove()
    logger.configure(extra={"request_id": NO_REQUEST})

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    is_production = os.getenv("ENVIRONMENT", "development").lower() == "production"

    if is_production:
        logger.add(sys.stdout, level=log_level, format="{message}", serialize=True)
        logger.add(
            os.getenv("LOG_FILE", "/var/log/alina-parking/app.log"),
            level=log_level,
            rotation="50 MB",
            retention="14 days",
            compression="gz",
            serialize=True,
        )
    else:
        logger.add(sys.stdout, level=log_level, format=DEV_FORMAT, colorize=True)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info("Logging configured", level=log_level, production=is_production)


class InterceptHandler(logging.Handler):
    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk past logging's own frames so the record points at the caller
        frame, depth = logging.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())
