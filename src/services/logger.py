"""
Logger Service Module
Centralized logging configuration: colored console output plus rotating
log files for the effect orchestrator
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import colorlog

LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}


class LoggerService:
    """
    Installs the root handlers:
    - console (colorlog), level from config
    - effects.log, everything from file_level up, rotated by size
    - errors.log, ERROR and above (failed submissions end up here)
    """

    def __init__(self, config: dict[str, Any] | None = None):
        self.config = self._default_config()
        self.config.update({k: v for k, v in (config or {}).items() if v is not None})
        self.handlers: list[logging.Handler] = []

        self.log_dir = Path(self.config["log_dir"])
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            if not os.access(self.log_dir, os.W_OK):
                raise PermissionError(f"Log directory not writable: {self.log_dir}")
            self.file_logging = True
        except OSError:
            # File handlers fall back to stderr below
            self.file_logging = False

        self._setup_root_logger()

    def _default_config(self) -> dict[str, Any]:
        """Default logging configuration"""
        return {
            "log_dir": "./logs",
            "log_level": "INFO",
            "file_level": "DEBUG",
            "max_bytes": 5 * 1024 * 1024,  # 5MB
            "backup_count": 3,
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            "date_format": "%Y-%m-%d %H:%M:%S",
            "colored_output": True,
        }

    def _setup_root_logger(self):
        root_logger = logging.getLogger()
        root_logger.setLevel(logging.DEBUG)  # Filter at handler level

        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)

        self.handlers = [
            self._create_console_handler(),
            self._create_file_handler("effects.log"),
            self._create_file_handler("errors.log", level=logging.ERROR),
        ]
        for handler in self.handlers:
            root_logger.addHandler(handler)

    def _level(self, name: str) -> int:
        return getattr(logging, str(name).upper(), logging.INFO)

    def _create_console_handler(self) -> logging.Handler:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(self._level(self.config["log_level"]))

        if self.config.get("colored_output"):
            formatter: logging.Formatter = colorlog.ColoredFormatter(
                "%(log_color)s" + self.config["format"],
                datefmt=self.config["date_format"],
                log_colors=LOG_COLORS,
            )
        else:
            formatter = logging.Formatter(self.config["format"], datefmt=self.config["date_format"])
        handler.setFormatter(formatter)
        return handler

    def _create_file_handler(self, filename: str, level: int | None = None) -> logging.Handler:
        handler: logging.Handler
        if self.file_logging:
            try:
                handler = RotatingFileHandler(
                    self.log_dir / filename,
                    maxBytes=self.config["max_bytes"],
                    backupCount=self.config["backup_count"],
                )
            except OSError:
                handler = logging.StreamHandler(sys.stderr)
        else:
            handler = logging.StreamHandler(sys.stderr)

        handler.setLevel(level or self._level(self.config["file_level"]))
        handler.setFormatter(
            logging.Formatter(self.config["format"], datefmt=self.config["date_format"])
        )
        return handler

    def set_level(self, level: str, logger_name: str | None = None):
        """Set the level of one named logger, or of the console handler"""
        if logger_name:
            logging.getLogger(logger_name).setLevel(self._level(level))
        elif self.handlers:
            self.handlers[0].setLevel(self._level(level))

    def cleanup(self):
        """Detach and close the handlers installed on the root logger"""
        root_logger = logging.getLogger()
        for handler in self.handlers:
            root_logger.removeHandler(handler)
            handler.close()
        self.handlers = []


# Global logger service instance
_logger_service: LoggerService | None = None


def setup_logging(config: dict | None = None) -> logging.Logger:
    """
    Setup logging configuration and return root logger

    Args:
        config: Overrides on top of the LOGGING/FILES sections of `config`

    Returns:
        Configured root logger
    """
    global _logger_service

    if _logger_service is not None:
        return logging.getLogger()

    from config import config as app_config

    log_config = {
        "log_dir": str(app_config.FILES.get("log_dir", "./logs")),
        "log_level": app_config.LOGGING.get("level", "INFO"),
        "max_bytes": app_config.LOGGING.get("max_bytes"),
        "backup_count": app_config.LOGGING.get("backup_count"),
        "format": app_config.LOGGING.get("format"),
        "date_format": app_config.LOGGING.get("date_format"),
    }
    if config:
        log_config.update(config)

    _logger_service = LoggerService(log_config)
    return logging.getLogger()


def get_logger(name: str) -> logging.Logger:
    """Get a named logger, configuring logging on first use"""
    if _logger_service is None:
        setup_logging()
    return logging.getLogger(name)


def set_level(level: str, logger_name: str | None = None):
    if _logger_service is None:
        setup_logging()
    _logger_service.set_level(level, logger_name)


def cleanup_logging():
    """Clean up logging resources"""
    global _logger_service

    if _logger_service:
        _logger_service.cleanup()
        _logger_service = None
