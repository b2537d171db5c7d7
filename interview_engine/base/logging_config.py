import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

import sentry_sdk
from pythonjsonlogger import jsonlogger
from sentry_sdk.integrations.logging import LoggingIntegration

from interview_engine.base.config import settings

SERVICE_NAME = "interview-engine"

_sentry_initialized = False


def get_formatter(use_json: bool, service: str) -> logging.Formatter:
    if use_json:
        return jsonlogger.JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={"levelname": "level"},
            static_fields={"service": service, "environment": settings.ENVIRONMENT},
        )
    return logging.Formatter(
        fmt=f"%(asctime)s | %(levelname)s | %(name)s | [svc={service}] | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )


def init_sentry(dsn: str = settings.SENTRY_DSN) -> bool:
    global _sentry_initialized
    if not dsn or _sentry_initialized:
        return _sentry_initialized

    sentry_logging = LoggingIntegration(
        level=logging.ERROR,
        event_level=logging.ERROR
    )
    sentry_sdk.init(
        dsn=dsn,
        environment=settings.ENVIRONMENT,
        integrations=[sentry_logging],
        traces_sample_rate=0.05,
    )
    _sentry_initialized = True
    return True


def setup_logger(
    name: str,
    log_file: Optional[str] = None,
    level: str = settings.LOG_LEVEL,
    use_json: bool = settings.ENABLE_JSON_LOGS,
    service: str = SERVICE_NAME
) -> logging.Logger:
    """
    Sets up a logger with stream handler + optional rotating file handler
    """
    logger = logging.getLogger(name)
    logger.setLevel(level.upper())
    logger.propagate = False  # Avoid double logging in root

    # Clear old handlers
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = get_formatter(use_json, service)

    # === Stream Handler (STDOUT) ===
    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    # === File Handler (Rotating) ===
    if log_file:
        log_dir = Path(settings.LOG_DIR)
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(str(log_dir / log_file), maxBytes=10 * 1024 * 1024, backupCount=5)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if init_sentry():
        logger.debug("[Logging] Sentry integration initialized.")

    return logger


def configure_service_loggers(log_to_files: bool = False) -> None:
    """Attach handlers to the engine's component loggers."""
    for name in (
        "app",
        "interview_scheduler_service",
        "conflict_detector",
        "slot_generator",
        "interview_lifecycle",
        "evaluation_service",
        "meeting_service",
        "notification_service",
        "reporting_service",
        "error_handler",
    ):
        setup_logger(name, log_file=f"{name}.log" if log_to_files else None)

# Usage:
# logger = logging.getLogger("interview_scheduler_service")
# logger.info("[Schedule] Interview created")
