"""
Logging Configuration

Console, rotating file and JSON handlers for the cart engine, with structlog
layered over the standard library loggers.
"""

import logging
import logging.handlers
import os
import sys
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import structlog
from pythonjsonlogger import jsonlogger

from lucha_cart.infrastructure.configuration.config import Settings, get_config
from lucha_cart.infrastructure.utilities.constants import FileSettings


class ColoredFormatter(logging.Formatter):
    """Colored log formatter for console output"""

    colors = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'        # Reset
    }

    def format(self, record: logging.LogRecord) -> str:
        # Work on a copy so file handlers sharing the record stay uncolored
        record = logging.makeLogRecord(record.__dict__)
        log_color = self.colors.get(record.levelname, self.colors['RESET'])
        record.levelname = f"{log_color}{record.levelname}{self.colors['RESET']}"
        record.name = f"\033[94m{record.name}\033[0m"  # Blue
        return super().format(record)


class CartJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter with cart-specific fields"""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["thread_name"] = threading.current_thread().name
        log_record["process_id"] = os.getpid()

        if hasattr(record, "storage_mode"):
            log_record["storage_mode"] = record.storage_mode
        if hasattr(record, "storage_key"):
            log_record["storage_key"] = record.storage_key
        if hasattr(record, "error_category"):
            log_record["error_category"] = record.error_category


@dataclass
class LoggingConfigOptions:
    """Which handlers setup_logging() attaches, and at what level"""
    log_level: str = "INFO"
    log_dir: str = FileSettings.LOGS_DIRECTORY
    enable_console: bool = True
    enable_file: bool = False
    enable_json: bool = False
    colored: bool = True
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5

    @classmethod
    def from_settings(cls, settings: Settings) -> "LoggingConfigOptions":
        """Console logging in development, log files in production"""
        production = settings.environment == "production"
        return cls(
            log_level=settings.log_level,
            enable_console=not production,
            enable_file=production,
            enable_json=production,
        )


class LoggingConfig:
    """Logging configuration for the cart engine"""

    def __init__(self, options: LoggingConfigOptions):
        self.options = options

        if self.options.enable_file or self.options.enable_json:
            Path(self.options.log_dir).mkdir(parents=True, exist_ok=True)

        self._configure_structlog()

    def __repr__(self):
        return f"LoggingConfig(options={self.options})"

    def _configure_structlog(self):
        """Configure structlog for structured logging"""
        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.stdlib.PositionalArgumentsFormatter(),
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.UnicodeDecoder(),
                structlog.processors.JSONRenderer()
            ],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

    def setup_logging(self):
        """Attach handlers to the package logger"""
        level = getattr(logging, self.options.log_level.upper())

        package_logger = logging.getLogger("lucha_cart")
        package_logger.setLevel(level)

        # Replace handlers from a previous setup_logging() call
        for handler in list(package_logger.handlers):
            package_logger.removeHandler(handler)
            handler.close()

        fmt = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

        if self.options.enable_console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(level)
            formatter_class = ColoredFormatter if self.options.colored else logging.Formatter
            console_handler.setFormatter(
                formatter_class(fmt=fmt, datefmt='%Y-%m-%d %H:%M:%S')
            )
            package_logger.addHandler(console_handler)

        if self.options.enable_file:
            app_handler = logging.handlers.RotatingFileHandler(
                Path(self.options.log_dir) / FileSettings.MAIN_LOG_FILE,
                maxBytes=self.options.max_file_size,
                backupCount=self.options.backup_count,
                encoding="utf-8",
            )
            app_handler.setLevel(level)
            app_handler.setFormatter(logging.Formatter(fmt))
            package_logger.addHandler(app_handler)

        if self.options.enable_json:
            json_handler = logging.handlers.RotatingFileHandler(
                Path(self.options.log_dir) / FileSettings.JSON_LOG_FILE,
                maxBytes=self.options.max_file_size,
                backupCount=self.options.backup_count,
                encoding="utf-8",
            )
            json_handler.setLevel(level)
            json_handler.setFormatter(CartJsonFormatter())
            package_logger.addHandler(json_handler)

        # SQLAlchemy echoes every statement at INFO
        logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)

        logging.getLogger(__name__).info(
            "Logging configured - Level: %s, Console: %s, File: %s, JSON: %s",
            self.options.log_level,
            self.options.enable_console,
            self.options.enable_file,
            self.options.enable_json
        )


def setup_logging(options: LoggingConfigOptions = None) -> LoggingConfig:
    """Configure the lucha_cart logger; options default to the cart settings"""
    config = LoggingConfig(options or LoggingConfigOptions.from_settings(get_config()))
    config.setup_logging()
    return config


def get_structured_logger(name: str) -> structlog.stdlib.BoundLogger:
    """structlog logger bound to the stdlib logger ``name``"""
    return structlog.get_logger(name)
