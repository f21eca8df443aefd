"""
Centralized logging for the catalog services.

`LoggerManager` hands out one configured `logging.Logger` per name, with a
console handler (colored through colorlog) and a file handler under the log
directory. File output can be plain text or JSON lines (`JsonLogFormatter`),
which is what the enrichment pipeline uses for its per-request trace.
"""

import os
import sys
import logging
import json
from typing import Optional

from colorlog import ColoredFormatter


class LoggerManager:
    """
    Factory for singleton `logging.Logger` instances.

    For every unique logger name the same instance is returned, so handlers
    are attached only once no matter how many modules ask for it.

    - Console output goes to stdout, colored unless `use_color=False`.
    - File output goes to `log_file`, or `<log dir>/<name>.log` where the log
      directory is `CATALOG_LOG_DIR` (default `logs`).
    - Propagation is disabled so records are not emitted twice by ancestors.
    """

    _loggers = {}
    _default_log_dir = "logs"

    @classmethod
    def get_logger(
        cls,
        name: str,
        log_file: Optional[str] = None,
        level: str = "INFO",
        use_json: bool = False,
        use_color: bool = True,
    ) -> logging.Logger:
        """
        Retrieve or create a logger configured for console and file output.

        Args:
            name (str): Unique identifier, usually the module `__name__`.
            log_file (Optional[str]): Full path to a log file. Defaults to
                `<log dir>/<name>.log`.
            level (str): Logging level threshold ("DEBUG", "INFO", ...).
                `CATALOG_LOG_LEVEL` overrides it when set.
            use_json (bool): Format file logs as JSON lines.
            use_color (bool): Enable colored console output.

        Returns:
            logging.Logger: A fully configured logger instance.
        """
        if name in cls._loggers:
            return cls._loggers[name]

        level = os.getenv("CATALOG_LOG_LEVEL", level).upper()

        logger = logging.getLogger(name)
        logger.setLevel(level)
        logger.propagate = False

        if log_file:
            log_dir = os.path.dirname(log_file) or "."
        else:
            log_dir = os.getenv("CATALOG_LOG_DIR", cls._default_log_dir)
            log_file = os.path.join(log_dir, f"{name}.log")
        os.makedirs(log_dir, exist_ok=True)

        logger.addHandler(cls._setup_file_handler(log_file, level, use_json))
        logger.addHandler(cls._setup_console_handler(level, use_color))

        cls._loggers[name] = logger
        return logger

    @staticmethod
    def _setup_file_handler(
        filepath: str, level: str, use_json: bool
    ) -> logging.Handler:
        handler = logging.FileHandler(filepath, encoding="utf-8")
        handler.setLevel(level)
        handler.setFormatter(LoggerManager._get_formatter(use_json=use_json, color=False))
        return handler

    @staticmethod
    def _setup_console_handler(level: str, use_color: bool) -> logging.Handler:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)
        handler.setFormatter(LoggerManager._get_formatter(use_json=False, color=use_color))
        return handler

    @staticmethod
    def _get_formatter(
        use_json: bool = False, color: bool = False
    ) -> logging.Formatter:
        """
        Returns a log formatter object based on configuration.

        Args:
            use_json (bool): Return a `JsonLogFormatter`.
            color (bool): Return a colorlog formatter for terminals.
        """
        if use_json:
            return JsonLogFormatter()

        fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        datefmt = "%Y-%m-%d %H:%M:%S"

        if color:
            return ColoredFormatter(
                fmt="%(log_color)s" + fmt,
                datefmt=datefmt,
                log_colors={
                    'DEBUG': 'cyan',
                    'INFO': 'green',
                    'WARNING': 'yellow',
                    'ERROR': 'red',
                    'CRITICAL': 'bold_red',
                },
            )
        return logging.Formatter(fmt, datefmt)


class JsonLogFormatter(logging.Formatter):
    """
    Formats records as one JSON object per line.

    Example Output:
        {
            "timestamp": "2026-05-07 13:12:01",
            "level": "INFO",
            "logger": "catalog.enrichment.enrichment_service",
            "message": "enrichment.done",
            "title": "Ada Lovelace",
            "state": "done"
        }

    Extra fields are merged from `extra={"extra_data": {...}}`.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "timestamp": self.formatTime(record, "%Y-%m-%d %H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "extra_data"):
            log_record.update(record.extra_data)
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_record, default=str)
