"""
Process-wide logging setup for the voice activity service.

``setup_logging`` installs a stdout handler and, when a service name is
given, ``<logs_dir>/<service_name>.log``. The log file is truncated on each
start unless ``LOG_APPEND`` is true. Calling it again once configured is a
no-op.
"""

import logging
import logging.handlers
import sys
import threading
from pathlib import Path
from typing import List, Optional

from voice_activity.config import env_bool, env_path

_setup_lock = threading.Lock()
_internal_logger = logging.getLogger(__name__)

DETAILED_FORMAT = "%(asctime)s.%(msecs)03d - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
QUIET_LOGGERS = ("asyncio", "redis", "redis.asyncio", "redis.connection")


def _is_console(handler: logging.Handler) -> bool:
    return isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler)


def _already_configured(root: logging.Logger, wants_file: bool) -> bool:
    has_console = any(_is_console(handler) for handler in root.handlers)
    has_file = any(isinstance(handler, logging.FileHandler) for handler in root.handlers)
    return has_console and (has_file or not wants_file)


def _release(handlers: List[logging.Handler]) -> None:
    for handler in handlers:
        try:
            handler.close()
        except OSError as exc:  # policy_guard: allow-silent-handler
            _internal_logger.debug("Closing log handler %r failed: %s", handler, exc)


def _console_handler(user_friendly: bool) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    if user_friendly:
        handler.setFormatter(logging.Formatter("%(message)s"))
        handler.setLevel(logging.WARNING)
    else:
        handler.setFormatter(logging.Formatter(DETAILED_FORMAT, DATE_FORMAT))
        handler.setLevel(logging.DEBUG)
    return handler


def _file_handler(service_name: str, logs_dir: Path) -> logging.Handler:
    logs_dir.mkdir(parents=True, exist_ok=True)
    mode = "a" if env_bool("LOG_APPEND", or_value=False) else "w"
    handler = logging.handlers.WatchedFileHandler(logs_dir / f"{service_name}.log", mode=mode)
    handler.setFormatter(logging.Formatter(DETAILED_FORMAT, DATE_FORMAT))
    handler.setLevel(logging.INFO)
    return handler


def setup_logging(service_name: Optional[str] = None, user_friendly: bool = False, logs_dir: Optional[Path] = None) -> None:
    with _setup_lock:
        root = logging.getLogger()
        if _already_configured(root, wants_file=bool(service_name)):
            return

        _release(list(root.handlers))
        handlers = [_console_handler(user_friendly)]
        if service_name:
            target = logs_dir or env_path("VOICE_ACTIVITY_LOG_DIR", or_value="logs") or Path("logs")
            handlers.append(_file_handler(service_name, target))
        root.handlers = handlers
        root.setLevel(logging.INFO)

        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
