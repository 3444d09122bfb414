"""
Logging setup for the CV Matching API.

Everything logs under the ``cvmatch`` logger tree. ``configure_for_environment``
picks a profile from ``ENVIRONMENT`` and is called once by the application
entry point; importing this module configures nothing.
"""
import logging
import logging.config
import os
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

FORMATS = {
    "simple": "%(levelname)s - %(name)s - %(message)s",
    "detailed": "%(asctime)s | %(levelname)-8s | %(name)-36s | %(funcName)-22s:%(lineno)-4d | %(message)s",
}

# level, console, file, format
PROFILES = {
    "production": (None, True, True, "detailed"),
    "development": ("DEBUG", True, True, "detailed"),
    "testing": ("WARNING", True, False, "simple"),
}

MAX_LOG_BYTES = 10 * 1024 * 1024


def _file_handler(path: Path, level: str) -> Dict[str, Any]:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": level,
        "formatter": "detailed",
        "filename": str(path),
        "maxBytes": MAX_LOG_BYTES,
        "backupCount": 5,
        "encoding": "utf8",
    }


def setup_logging(
    level: str = "INFO",
    enable_console: bool = True,
    enable_file: bool = True,
    format_style: str = "detailed"
) -> None:
    """
    Configure the ``cvmatch`` and ``uvicorn`` loggers.

    Args:
        level: Level for the application loggers
        enable_console: Log to stdout
        enable_file: Log to rotating files under ``LOG_DIR`` (default ``logs``);
            ERROR and above also go to a separate errors file
        format_style: 'simple' or 'detailed' for the console
    """
    stamp = datetime.now().strftime("%Y%m%d")
    log_dir = Path(os.getenv("LOG_DIR", "logs"))

    handlers: Dict[str, Dict[str, Any]] = {}
    app_handlers: List[str] = []
    server_handlers: List[str] = []

    if enable_console:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "level": level,
            "formatter": format_style if format_style in FORMATS else "detailed",
            "stream": "ext://sys.stdout",
        }
        app_handlers.append("console")
        server_handlers.append("console")

    if enable_file:
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers["file"] = _file_handler(log_dir / f"cvmatch_{stamp}.log", level)
        handlers["error_file"] = _file_handler(log_dir / f"cvmatch_errors_{stamp}.log", "ERROR")
        app_handlers += ["file", "error_file"]
        server_handlers.append("file")

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            name: {"format": fmt, "datefmt": "%Y-%m-%d %H:%M:%S"} for name, fmt in FORMATS.items()
        },
        "handlers": handlers,
        "loggers": {
            "cvmatch": {"level": level, "handlers": app_handlers, "propagate": True},
            "uvicorn": {"level": "INFO", "handlers": server_handlers, "propagate": False},
            "uvicorn.access": {"level": "INFO", "handlers": list(server_handlers), "propagate": False},
        },
    })

    get_logger("logging").info(
        f"Logging configured - Level: {level}, Console: {enable_console}, File: {enable_file}"
    )


def get_logger(name: str) -> logging.Logger:
    """Logger namespaced under ``cvmatch.`` (pass ``__name__``)"""
    if name == "cvmatch" or name.startswith("cvmatch."):
        return logging.getLogger(name)
    return logging.getLogger(f"cvmatch.{name}")


def configure_for_environment():
    """Configure logging from ENVIRONMENT and LOG_LEVEL"""
    environment = os.getenv("ENVIRONMENT", "development").lower()
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    level, console, to_file, style = PROFILES.get(environment, (None, True, True, "detailed"))
    setup_logging(level=level or log_level, enable_console=console, enable_file=to_file, format_style=style)


class PerformanceMonitor:
    """Times a block and logs it; slow blocks log a warning, failures an error"""

    def __init__(self, operation_name: str, logger: logging.Logger = None, threshold_ms: float = 1000):
        self.operation_name = operation_name
        self.logger = logger or get_logger("performance")
        self.threshold_ms = threshold_ms
        self.elapsed_ms = None
        self._start = None

    def __enter__(self):
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000
        if exc_type is not None:
            self.logger.error(f"{self.operation_name} failed after {self.elapsed_ms:.2f}ms: {exc_val}")
        elif self.elapsed_ms > self.threshold_ms:
            self.logger.warning(
                f"{self.operation_name} took {self.elapsed_ms:.2f}ms (threshold {self.threshold_ms}ms)"
            )
        else:
            self.logger.info(f"{self.operation_name} completed in {self.elapsed_ms:.2f}ms")
        return False
