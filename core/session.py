"""Per-episode cookie session and the request that establishes it.

A :class:`Session` is created fresh for every resolution attempt, never
shared between episodes, and dropped when the attempt ends.
"""

import logging
import re
from typing import Dict, Iterable, Iterator, Optional, Tuple

from core.errors import ProtocolError
from core.http import SiteClient

logger = logging.getLogger(__name__)

DELETED_SENTINEL = "deleted"

# Only the leading key=value pair of a Set-Cookie header matters
SET_COOKIE_PATTERN = re.compile(r"^\s*([^=;\s]+)=([^;]*)")


class Session:
    """Insertion-ordered cookie mapping for one episode context.

    Writing an existing key replaces it (and moves it to the end).
    Writing the value ``"deleted"`` removes the key instead.
    """

    def __init__(self, cookies: Optional[Iterable[Tuple[str, str]]] = None) -> None:
        self._cookies: Dict[str, str] = {}
        for key, value in cookies or ():
            self.set(key, value)

    def set(self, key: str, value: str) -> None:
        self._cookies.pop(key, None)
        if value != DELETED_SENTINEL:
            self._cookies[key] = value

    def get(self, key: str) -> Optional[str]:
        return self._cookies.get(key)

    def apply_set_cookie(self, header: str) -> None:
        """Fold one ``Set-Cookie`` header value into the session.

        Raises:
            ProtocolError: If the header has no ``key=value`` pair.
        """
        match = SET_COOKIE_PATTERN.match(header)
        if not match:
            raise ProtocolError(
                "Malformed Set-Cookie header",
                field="Set-Cookie",
                expected="key=value; ...",
                observed=header,
            )
        self.set(match.group(1), match.group(2).strip())

    def serialize(self) -> str:
        """Render the ``Cookie`` request header value."""
        return "; ".join(f"{k}={v}" for k, v in self._cookies.items())

    def items(self) -> Iterator[Tuple[str, str]]:
        return iter(list(self._cookies.items()))

    def __contains__(self, key: object) -> bool:
        return key in self._cookies

    def __len__(self) -> int:
        return len(self._cookies)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Session):
            return NotImplemented
        return list(self._cookies.items()) == list(other._cookies.items())

    def __repr__(self) -> str:
        return f"Session({list(self._cookies)!r})"


class SessionStore:
    """Establishes the cookie session for an episode page.

    Does not retry; a failed page view is the caller's decision.
    """

    def __init__(self, client: SiteClient) -> None:
        self.client = client

    async def populate(self, series_id: int, episode: int) -> Session:
        """Visit the episode page and collect its cookies.

        Args:
            series_id: Series (content unit) identifier.
            episode: Episode index within the series.

        Returns:
            A fresh :class:`Session` holding every cookie the page set.

        Raises:
            NetworkError: On transport failure or timeout.
            ProtocolError: If the page answers with a non-success status.
        """
        episode_url = self.client.settings.episode_url(series_id, episode)
        resp = await self.client.get(
            episode_url + "/",
            headers=self.client.headers_for(episode_url),
            expect_ok=False,
        )
        if not resp.ok:
            raise ProtocolError(
                "Episode page refused the session request",
                field="status",
                expected="2xx",
                observed=resp.status,
            )

        session = Session()
        for header in resp.headers.getall("Set-Cookie", []):
            session.apply_set_cookie(header)
        logger.debug(
            "Session for aid=%s epi=%s holds %d cookie(s)",
            series_id, episode, len(session),
        )
        return session
