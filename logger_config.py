"""
Logging Configuration for the Fleet Fraud Engine
Console + rotating file logging for stdlib loggers, and structlog setup for
services that emit key/value events.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

LOGS_DIR = Path(__file__).parent / "logs"

AUDIT_LOGGER_NAME = "fraud_engine.audit"


class ColoredFormatter(logging.Formatter):
    """Colored console formatter"""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record):
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


def setup_logging(
    name: str = "fraud_engine",
    level: int = logging.INFO,
    log_to_file: bool = False,
    log_to_console: bool = True,
    log_dir: Optional[Path] = None,
) -> logging.Logger:
    """
    Setup logging with optional rotation

    Args:
        name: Logger name
        level: Logging level
        log_to_file: Enable rotating file logging
        log_to_console: Enable console logging
        log_dir: Directory for log files (defaults to ./logs)

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers = []

    file_formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    console_formatter = ColoredFormatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    if log_to_file:
        log_dir = log_dir or LOGS_DIR
        log_dir.mkdir(parents=True, exist_ok=True)

        # Main rotating log file (10MB max, keep 5 backups)
        main_handler = RotatingFileHandler(
            log_dir / f"{name}.log",
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        main_handler.setLevel(level)
        main_handler.setFormatter(file_formatter)
        logger.addHandler(main_handler)

        # Fraud alert audit trail
        audit_handler = RotatingFileHandler(
            log_dir / "fraud_alerts.log",
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        )
        audit_handler.setLevel(logging.WARNING)
        audit_handler.setFormatter(file_formatter)
        logging.getLogger(AUDIT_LOGGER_NAME).addHandler(audit_handler)

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(console_formatter)
        logger.addHandler(console_handler)

    return logger


def configure_structlog(json_output: bool = False) -> None:
    """
    Route structlog events through the stdlib logging tree so services using
    structlog.get_logger() share handlers with everything else.
    """
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def log_fraud_alert(alert_type: str, details: Dict[str, Any]) -> None:
    """Write one line to the fraud alert audit log"""
    logging.getLogger(AUDIT_LOGGER_NAME).warning(
        f"FRAUD ALERT: {alert_type} {details}"
    )


def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """Get or create a logger with standard configuration"""
    return setup_logging(name, level)
