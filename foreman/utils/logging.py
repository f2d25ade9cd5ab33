"""
Logging Setup

Console output on stderr and an optional log file. An existing log file is
moved aside under a timestamped name so every run starts a fresh one.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from ..config.models import LogLevel

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Log every request at INFO
_CHATTY_LIBRARIES = ("httpx", "httpcore")


def _rotate_log_file(log_file: Path) -> Optional[Path]:
    """Rename an existing log to <stem>_<YYYYmmdd_HHMMSS><suffix>; returns the new path"""
    if not log_file.exists():
        return None

    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    target = log_file.with_name(f"{log_file.stem}_{stamp}{log_file.suffix}")
    try:
        log_file.rename(target)
    except OSError as e:
        # No handlers yet
        sys.stderr.write(f"Warning: could not rotate log file {log_file}: {e}\n")
        return None
    return target


class UTF8StreamHandler(logging.StreamHandler):
    """Writes UTF-8 bytes whenever the stream exposes a binary buffer"""

    def emit(self, record):
        buffer = getattr(self.stream, "buffer", None)
        if buffer is None:
            super().emit(record)
            return
        try:
            buffer.write((self.format(record) + self.terminator).encode("utf-8"))
            buffer.flush()
        except Exception:
            self.handleError(record)


def setup_logging(
    level: LogLevel = LogLevel.WARNING,
    log_file: Optional[Path] = None,
    enable_console: bool = True
) -> None:
    """
    Configure the root logger, replacing handlers installed earlier.

    Args:
        level: Root logging level
        log_file: Optional log file, rotated if it already exists
        enable_console: Log to stderr as well
    """
    handlers: List[logging.Handler] = []
    if enable_console:
        handlers.append(UTF8StreamHandler(sys.stderr))

    rotated = None
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        rotated = _rotate_log_file(log_file)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(level=level.value, format=LOG_FORMAT, handlers=handlers, force=True)

    library_level = logging.DEBUG if level is LogLevel.DEBUG else logging.WARNING
    for name in _CHATTY_LIBRARIES:
        logging.getLogger(name).setLevel(library_level)

    if rotated is not None:
        logging.getLogger(__name__).info(f"Previous log file kept as {rotated}")
