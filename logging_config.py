"""
Logging configuration for the CMS link client
Console on stderr (stdout is reserved for reports), optional rotating file,
JSON output, and masking of credentials that travel in CMS query strings
"""
import json
import logging
import logging.handlers
import os
import re
import sys
from datetime import datetime, timezone
from typing import List, Optional, TextIO

DEFAULT_MAX_BYTES = 10 * 1024 * 1024
DEFAULT_BACKUP_COUNT = 5

TEXT_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Libraries whose INFO/DEBUG output is noise for a CLI
QUIET_LOGGERS = ('aiohttp', 'asyncio')

# password/jsession values appear in login and stream URLs
_SECRET_PARAM = re.compile(r'(?i)\b(password|jsession)=([^&\s\'"]+)')


def mask_secrets(text: str) -> str:
    """Replace password= and jsession= query values with ***"""
    return _SECRET_PARAM.sub(lambda m: f"{m.group(1)}=***", text)


class SecretMaskingFilter(logging.Filter):
    """Rewrites each record's message with credentials masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = mask_secrets(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line"""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
                                 .strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z',
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        if record.exc_info:
            entry["exception"] = mask_secrets(self.formatException(record.exc_info))
        if hasattr(record, "extra_fields"):
            entry.update(record.extra_fields)
        return json.dumps(entry, ensure_ascii=False)


def _level(name: Optional[str]) -> int:
    return getattr(logging, (name or 'INFO').upper(), logging.INFO)


def _formatter(use_json: bool) -> logging.Formatter:
    if use_json:
        return JSONFormatter()
    return logging.Formatter(fmt=TEXT_FORMAT, datefmt=DATE_FORMAT)


def _file_handler(path: str, max_bytes: int, backup_count: int) -> Optional[logging.Handler]:
    try:
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        return logging.handlers.RotatingFileHandler(
            path, maxBytes=max_bytes, backupCount=backup_count, encoding='utf-8'
        )
    except OSError as e:
        logging.getLogger(__name__).warning(f"Could not set up file logging at {path}: {e}")
        return None


def setup_logging(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    json_format: bool = False,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    stream: Optional[TextIO] = None,
):
    """
    Configure the root logger.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL (default: LOG_LEVEL or INFO)
        log_file: Rotating log file (default: LOG_FILE, none if unset)
        json_format: JSON lines instead of text (also LOG_JSON=true)
        max_bytes: Size at which the log file rotates
        backup_count: Rotated files to keep
        stream: Console stream, stderr unless given
    """
    log_level = _level(level or os.getenv('LOG_LEVEL'))
    use_json = json_format or os.getenv('LOG_JSON', 'false').lower() == 'true'
    log_path = log_file or os.getenv('LOG_FILE')

    formatter = _formatter(use_json)
    masking = SecretMaskingFilter()

    handlers: List[logging.Handler] = [logging.StreamHandler(stream or sys.stderr)]
    if log_path:
        file_handler = _file_handler(log_path, max_bytes, backup_count)
        if file_handler is not None:
            handlers.append(file_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(log_level)
    for handler in handlers:
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        handler.addFilter(masking)
        root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    logging.getLogger(__name__).debug(
        f"Logging configured: level={logging.getLevelName(log_level)}, "
        f"json={use_json}, file={log_path or 'none'}"
    )


def setup_logging_from_config():
    """Configure logging from the ``logging`` section of config.json / environment.

    An invalid configuration falls back to environment-only setup so the
    validation error itself still gets logged.
    """
    from config import Config

    try:
        log_config = Config.load().get('logging', {})
    except ValueError as e:
        setup_logging()
        logging.getLogger(__name__).warning(f"Could not load logging config: {e}")
        return

    setup_logging(
        level=log_config.get('level'),
        log_file=log_config.get('log_file'),
        json_format=Config.get_bool('logging.json_format'),
        max_bytes=int(log_config.get('max_bytes') or DEFAULT_MAX_BYTES),
        backup_count=int(log_config.get('backup_count') or DEFAULT_BACKUP_COUNT),
    )
