"""Durable cache of confirmed captcha answers.

Maps the raw question text of a challenge to the icon that was accepted
for it.  The Captcheck pool reuses identical question text for the same
answer, so the first accepted icon stays the reference forever: entries
are never overwritten or evicted.

On disk the cache is a JSON object of ``question -> base64(image)``
written atomically after every insert.
"""

import asyncio
import base64
import binascii
import logging
from typing import Dict, Optional

from core.config import CONFIG_DIR
from core.utils import atomic_json_write, safe_json_read

logger = logging.getLogger(__name__)

DEFAULT_CACHE_FILE = str(CONFIG_DIR / "captcha_answers.json")


class AnswerCache:
    """Question -> reference image store with first-writer-wins inserts.

    Reads are lock-free.  Inserts are serialised by an ``asyncio.Lock``
    and only return once the whole store has been written to disk, so
    two concurrent workers recording the same novel question both
    succeed while exactly one image survives.

    Attributes:
        path: Backing JSON file.
    """

    def __init__(self, path: Optional[str] = None) -> None:
        self.path = path or DEFAULT_CACHE_FILE
        self._entries: Dict[str, bytes] = {}
        self._lock = asyncio.Lock()
        self._load()

    def _load(self) -> None:
        data = safe_json_read(self.path)
        if data is None:
            logger.debug("No answer cache at %s, starting empty", self.path)
            return
        for question, encoded in data.items():
            try:
                self._entries[question] = base64.b64decode(
                    encoded, validate=True,
                )
            except (TypeError, binascii.Error):
                logger.warning(
                    "Dropping undecodable cache entry for %r", question,
                )
        logger.info(
            "Loaded %d cached captcha answer(s) from %s",
            len(self._entries), self.path,
        )

    def lookup(self, question: str) -> Optional[bytes]:
        """Return the reference image for *question*, if any."""
        return self._entries.get(question)

    async def record(self, question: str, image: bytes) -> bool:
        """Insert *image* for *question* unless an entry already exists.

        The store is persisted before this returns.  If persisting fails
        the in-memory insert is rolled back and the error propagates.

        Returns:
            ``True`` if this call inserted the entry, ``False`` if
            another writer got there first.

        Raises:
            OSError: If the cache file cannot be written.
        """
        async with self._lock:
            if question in self._entries:
                logger.debug("Answer for %r already cached", question)
                return False
            self._entries[question] = bytes(image)
            try:
                self._persist()
            except OSError:
                del self._entries[question]
                raise
        logger.info("Cached new captcha answer for %r", question)
        return True

    def _persist(self) -> None:
        atomic_json_write(
            self.path,
            {
                q: base64.b64encode(img).decode("ascii")
                for q, img in self._entries.items()
            },
        )

    def __contains__(self, question: object) -> bool:
        return question in self._entries

    def __len__(self) -> int:
        return len(self._entries)
