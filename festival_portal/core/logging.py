import logging
import sys
from typing import Dict, Any, Optional
from datetime import datetime, timezone
from festival_portal.config import settings

LOG_FORMAT = '%(asctime)s | %(levelname)s | %(name)s | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Libraries that log every request, query or PDF object at DEBUG
NOISY_LOGGERS = ("uvicorn.access", "asyncpg", "httpcore", "httpx", "reportlab")


class ColoredFormatter(logging.Formatter):
    """Level names colored for interactive consoles"""

    COLORS = {
        'DEBUG': '\033[36m',    # Cyan
        'INFO': '\033[32m',     # Green
        'WARNING': '\033[33m',  # Yellow
        'ERROR': '\033[31m',    # Red
        'CRITICAL': '\033[35m', # Magenta
    }
    RESET = '\033[0m'

    def format(self, record):
        # Copy so other handlers see the plain level name
        record = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelname, '')
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def _use_colors(stream) -> bool:
    return not settings.is_production and hasattr(stream, "isatty") and stream.isatty()


def setup_logging(level: Optional[int] = None):
    """
    Configure the root logger once at startup.

    Colored output on a terminal outside production, plain lines otherwise
    (container logs, the scheduled sync running under a process manager).
    """
    level = level if level is not None else (logging.DEBUG if settings.debug else logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    formatter_class = ColoredFormatter if _use_colors(sys.stdout) else logging.Formatter
    console_handler.setFormatter(formatter_class(LOG_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(console_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get logger instance for module"""
    return logging.getLogger(name)


def log_request_context(
    festival_id: Optional[str] = None,
    user_id: Optional[str] = None,
    path: Optional[str] = None
) -> Dict[str, Any]:
    """Context attached to error logs; user ids are truncated"""
    context = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "festival_id": festival_id or "unknown",
    }

    if user_id:
        context["user_id"] = str(user_id)[:8] + "..."
    if path:
        context["path"] = path

    return context
