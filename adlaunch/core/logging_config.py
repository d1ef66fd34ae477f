# adlaunch/core/logging_config.py
"""
Logging configuration for adlaunch.
Provides file-based logging with rotation for debugging step executions
and outbound ad platform calls.
"""
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any, Optional


# Create logs directory
LOGS_DIR = Path(__file__).parent.parent.parent / "logs"
LOGS_DIR.mkdir(exist_ok=True)

# Log files
ERROR_LOG_FILE = LOGS_DIR / "error.log"
DEBUG_LOG_FILE = LOGS_DIR / "debug.log"
ORCHESTRATION_LOG_FILE = LOGS_DIR / "orchestration.log"

ORCHESTRATION_LOGGER = "adlaunch.orchestration"

SENSITIVE_KEYS = {"token", "access_token", "password", "secret", "api_key", "authorization", "developer-token"}


class ColoredFormatter(logging.Formatter):
    """Colored console formatter for better readability"""

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'
    }

    def format(self, record):
        log_color = self.COLORS.get(record.levelname, self.COLORS['RESET'])
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{log_color}{record.levelname}{self.COLORS['RESET']}"
        return super().format(record)


def setup_logging(app_name: str = "adlaunch", level: str = "INFO"):
    """
    Setup logging with console and rotating file handlers.

    Creates three log files:
    - error.log: Only ERROR and CRITICAL messages
    - debug.log: All DEBUG and above messages
    - orchestration.log: Step executions only
    """

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # ═══════════════════════════════════════════════════════════
    # Console Handler - with colors
    # ═══════════════════════════════════════════════════════════
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
    console_handler.setFormatter(ColoredFormatter('%(levelname)s | %(name)s | %(message)s'))
    root_logger.addHandler(console_handler)

    # ═══════════════════════════════════════════════════════════
    # ERROR Log File - Rotating, only errors
    # ═══════════════════════════════════════════════════════════
    error_handler = logging.handlers.RotatingFileHandler(
        ERROR_LOG_FILE,
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=5,
        encoding='utf-8'
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(levelname)s | %(name)s | %(filename)s:%(lineno)d | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    root_logger.addHandler(error_handler)

    # ═══════════════════════════════════════════════════════════
    # DEBUG Log File - Rotating, all messages
    # ═══════════════════════════════════════════════════════════
    debug_handler = logging.handlers.RotatingFileHandler(
        DEBUG_LOG_FILE,
        maxBytes=20 * 1024 * 1024,  # 20 MB
        backupCount=5,
        encoding='utf-8'
    )
    debug_handler.setLevel(logging.DEBUG)
    debug_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(levelname)-8s | %(name)-30s | %(filename)s:%(lineno)d | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    root_logger.addHandler(debug_handler)

    # ═══════════════════════════════════════════════════════════
    # Orchestration Log File - step executions only
    # ═══════════════════════════════════════════════════════════
    orchestration_handler = logging.handlers.RotatingFileHandler(
        ORCHESTRATION_LOG_FILE,
        maxBytes=20 * 1024 * 1024,  # 20 MB
        backupCount=5,
        encoding='utf-8'
    )
    orchestration_handler.setLevel(logging.DEBUG)
    orchestration_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(levelname)-8s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))

    orchestration_logger = logging.getLogger(ORCHESTRATION_LOGGER)
    orchestration_logger.addHandler(orchestration_handler)
    orchestration_logger.setLevel(logging.DEBUG)
    orchestration_logger.propagate = True  # Also send to root handlers

    logger = logging.getLogger(__name__)
    logger.info(f"{'='*60}")
    logger.info(f"Logging initialized for {app_name}")
    logger.info(f"Log directory: {LOGS_DIR}")
    logger.info(f"{'='*60}")

    return root_logger


def get_orchestration_logger(name: Optional[str] = None) -> logging.Logger:
    """Get logger for step execution, optionally scoped to one platform"""
    return logging.getLogger(f"{ORCHESTRATION_LOGGER}.{name}" if name else ORCHESTRATION_LOGGER)


# ═══════════════════════════════════════════════════════════
# Helper functions for outbound API logging
# ═══════════════════════════════════════════════════════════

def mask_sensitive(data: Optional[dict]) -> Optional[dict]:
    """Return a copy of data with secret values hidden"""
    if not data:
        return data
    return {
        key: '***HIDDEN***' if str(key).lower() in SENSITIVE_KEYS else value
        for key, value in data.items()
    }


def log_api_request(logger, method: str, endpoint: str, data: dict = None, headers: dict = None):
    """Log outgoing API request details"""
    logger.debug(f"🌐 API REQUEST: {method} {endpoint}")
    if headers:
        logger.debug(f"Headers: {mask_sensitive(headers)}")
    if data:
        logger.debug(f"Request Data: {mask_sensitive(data)}")


def log_api_response(logger, status_code: int, response_data: Any, error: Exception = None):
    """Log API response details"""
    if error:
        logger.error(f"📥 API RESPONSE: Status {status_code} | {type(error).__name__}: {error}")
    else:
        logger.debug(f"📥 API RESPONSE: Status {status_code} | {response_data}")
