"""Shared utility functions for the resolver core modules.

Provides corruption-safe JSON read/write helpers with backup rotation
and atomic write semantics, used to persist the captcha answer cache.
"""

import json
import logging
import os
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def safe_json_read(
    filepath: str, max_backups: int = 3,
) -> Optional[Dict[str, Any]]:
    """Read JSON with fallback to backups if corrupted.

    Tries the primary file first, then numbered backups
    (``file.json.backup.1``, ``file.json.backup.2``, ...) in order
    until one parses to a JSON object.

    Args:
        filepath: Path to the primary JSON file.
        max_backups: Maximum number of backup files to check.

    Returns:
        Parsed dictionary, or ``None`` if every candidate is missing
        or unreadable.
    """
    paths = [filepath] + [
        f"{filepath}.backup.{i}"
        for i in range(1, max_backups + 1)
    ]
    for path in paths:
        if not os.path.exists(path):
            continue
        try:
            with open(path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as e:
            logger.warning("Skipping unreadable JSON %s: %s", path, e)
            continue
        if isinstance(data, dict):
            if path != filepath:
                logger.warning("Recovered %s from backup %s", filepath, path)
            return data
        logger.warning("Skipping %s: top-level value is not an object", path)
    return None


def atomic_json_write(
    filepath: str,
    data: Dict[str, Any],
    max_backups: int = 3,
) -> None:
    """Durably replace *filepath* with *data* serialised as JSON.

    The write sequence is:
        1. Write to ``<file>.tmp`` and ``fsync`` it.
        2. Rotate existing backups (``backup.2`` -> ``backup.3``, ...)
           and copy the current file to ``backup.1``.
        3. Atomically replace the target with the temporary file.

    Unlike a best-effort save, failures propagate: a caller that needs
    the data on disk must know when it is not.

    Args:
        filepath: Destination path for the JSON file.
        data: Dictionary to serialise and write.
        max_backups: Number of backup generations to keep.

    Raises:
        OSError: If the file cannot be written or replaced.
    """
    dirpath = os.path.dirname(filepath)
    if dirpath:
        os.makedirs(dirpath, exist_ok=True)

    temp_file = filepath + ".tmp"
    with open(temp_file, "w", encoding="utf-8") as fh:
        json.dump(data, fh, ensure_ascii=False, sort_keys=True)
        fh.flush()
        os.fsync(fh.fileno())

    if max_backups > 0 and os.path.exists(filepath):
        backup_base = filepath + ".backup"
        for i in range(max_backups - 1, 0, -1):
            old = f"{backup_base}.{i}"
            if os.path.exists(old):
                os.replace(old, f"{backup_base}.{i + 1}")
        with open(filepath, "rb") as src, open(f"{backup_base}.1", "wb") as dst:
            dst.write(src.read())

    os.replace(temp_file, filepath)
