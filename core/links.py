"""Hoster link extraction from an unlocked episode payload.

The verification endpoint answers an accepted captcha with HTML listing
the hoster buttons for the episode:

* ``<button href='URL' data-src...`` -- a direct link, used as-is.
* ``<button data-src='HASH' class...`` -- an opaque hash that has to be
  posted to ``/check_video.php`` to learn the real link.

Secondary lookups run concurrently; a failing lookup only drops its own
link.  The result is ordered by host priority, highest first, keeping
discovery order between equal priorities.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import List, Optional

from core.errors import NetworkError, ProtocolError
from core.http import SiteClient
from core.session import Session
from hosts.registry import host_name, priority_for

logger = logging.getLogger(__name__)

CHECK_VIDEO_PATH = "/check_video.php"

DIRECT_PATTERN = re.compile(r"<button href='([^']+)' data-src")
INDIRECT_PATTERN = re.compile(r"<button data-src='([^'<]*)' class")


@dataclass(frozen=True)
class ResolvedLink:
    """A hoster link for an episode.

    Attributes:
        url: Hoster page URL.
        host_priority: Priority from the host table (higher first).
        host: Host display name (``"Unknown"`` for unlisted domains).
    """

    url: str
    host_priority: int
    host: str = "Unknown"

    @classmethod
    def from_url(cls, url: str) -> "ResolvedLink":
        return cls(url=url, host_priority=priority_for(url), host=host_name(url))


def order_by_priority(links: List[ResolvedLink]) -> List[ResolvedLink]:
    """Sort descending by priority; ``sorted`` keeps ties in input order."""
    return sorted(links, key=lambda link: -link.host_priority)


class LinkResolver:
    """Turns an unlocked payload into an ordered list of hoster links."""

    def __init__(self, client: SiteClient) -> None:
        self.client = client

    async def extract(self, payload: str, session: Session) -> List[ResolvedLink]:
        """Collect every hoster link offered by *payload*.

        An empty list means no known button was present, which callers
        may treat as "skip this episode".

        Args:
            payload: HTML returned for an accepted captcha.
            session: Cookie session the payload belongs to (read only).
        """
        urls: List[str] = []

        direct = DIRECT_PATTERN.search(payload)
        if direct:
            urls.append(direct.group(1).strip())

        hashes = INDIRECT_PATTERN.findall(payload)
        if hashes:
            resolved = await asyncio.gather(
                *(self._check_video(h, session) for h in hashes)
            )
            urls.extend(url for url in resolved if url)

        links = order_by_priority([ResolvedLink.from_url(u) for u in urls])
        logger.info(
            "Extracted %d link(s): %s",
            len(links), ", ".join(link.host for link in links) or "none",
        )
        return links

    async def _check_video(self, vidhash: str, session: Session) -> Optional[str]:
        """Resolve one opaque hash; ``None`` if the lookup failed."""
        try:
            return await self.resolve_hash(vidhash, session)
        except (NetworkError, ProtocolError) as e:
            logger.warning("Dropping link for hash %r: %s", vidhash, e)
            return None

    async def resolve_hash(self, vidhash: str, session: Session) -> str:
        """Post *vidhash* to the secondary endpoint and return the link.

        Raises:
            NetworkError: On transport failure, timeout or non-2xx status.
            ProtocolError: If the endpoint answers with an empty body.
        """
        settings = self.client.settings
        headers = {
            "User-Agent": settings.user_agent,
            "Referer": settings.site_url + "/",
        }
        cookie = session.serialize()
        if cookie:
            headers["Cookie"] = cookie

        resp = await self.client.post(
            settings.site_url + CHECK_VIDEO_PATH,
            headers=headers,
            data={"vidhash": vidhash},
        )
        url = resp.text().strip()
        if not url:
            raise ProtocolError(
                "Video check returned no link",
                field="check_video.php", expected="URL", observed=url,
            )
        return url
