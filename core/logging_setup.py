"""Logging configuration for the Anime4You resolver.

Sets up a dual-handler logging pipeline:

1. **Console** -- :class:`SafeStreamHandler`, which replaces characters
   the console encoding cannot represent instead of raising.
2. **File** -- :class:`CompressedRotatingFileHandler` writing to
   ``logs/resolver.log`` with gzip rotation (10 MiB per file,
   5 backups).

Usage::

    from core.logging_setup import setup_logging
    setup_logging("DEBUG")
"""

import gzip
import logging
import os
import shutil
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from core.config import LOGS_DIR

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"


class CompressedRotatingFileHandler(RotatingFileHandler):
    """RotatingFileHandler that gzip-compresses rotated log files."""

    def rotation_filename(self, default_name: str) -> str:
        """Append ``.gz`` to the rotated file name."""
        return f"{default_name}.gz"

    def rotate(self, source: str, dest: str) -> None:
        """Compress *source* into *dest* and remove *source*.

        Args:
            source: Path to the uncompressed log file.
            dest: Destination path for the compressed file.
        """
        with open(source, "rb") as f_in:
            with gzip.open(dest, "wb") as f_out:
                shutil.copyfileobj(f_in, f_out)
        os.remove(source)


class SafeStreamHandler(logging.StreamHandler):
    """StreamHandler that never fails on unencodable characters.

    Series titles and captcha questions are German and occasionally
    contain characters a narrow console code page cannot print; those
    are replaced rather than aborting the log call.
    """

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            stream = self.stream
            try:
                stream.write(msg + self.terminator)
            except UnicodeEncodeError:
                encoding = getattr(stream, "encoding", None) or "ascii"
                stream.write(
                    msg.encode(encoding, errors="replace").decode(encoding)
                    + self.terminator
                )
            self.flush()
        except Exception:
            self.handleError(record)


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
) -> None:
    """Configure the root logger with console and file handlers.

    Args:
        log_level: Logging level name (``"DEBUG"``, ``"INFO"``, ...).
            Unknown names fall back to ``INFO``.
        log_file: Log file path.  Defaults to ``logs/resolver.log``
            under the project root.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    log_path = log_file or str(LOGS_DIR / "resolver.log")
    log_dir = os.path.dirname(log_path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    file_handler = CompressedRotatingFileHandler(
        log_path,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    stream_handler = SafeStreamHandler(sys.stderr)

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[file_handler, stream_handler],
        force=True,
    )
    # aiohttp's access logging is noise at INFO
    logging.getLogger("aiohttp").setLevel(max(level, logging.WARNING))
