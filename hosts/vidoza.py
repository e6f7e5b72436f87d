"""Vidoza (``vidoza.net``) video resolver."""

import logging
import re

from core.errors import ProtocolError
from core.http import SiteClient
from hosts.registry import HostedVideo

logger = logging.getLogger(__name__)

SOURCE_PATTERN = re.compile(r'sourcesCode:\s\[\{\ssrc:\s"(.+?)", type', re.DOTALL)
NAME_PATTERN = re.compile(r'var\scurFileName\s=\s"(.*?)";', re.DOTALL)


def parse_page(html: str) -> HostedVideo:
    """Read ``sourcesCode`` and ``curFileName`` from the player script.

    Raises:
        ProtocolError: If either value is missing.
    """
    source = SOURCE_PATTERN.search(html)
    name = NAME_PATTERN.search(html)
    if not source or not name:
        raise ProtocolError(
            "Vidoza page has no video source",
            field="sourcesCode" if not source else "curFileName",
            expected="quoted string",
        )
    return HostedVideo(
        video_url=source.group(1), file_name=name.group(1), host="Vidoza",
    )


async def resolve(client: SiteClient, raw_link: str) -> HostedVideo:
    resp = await client.get(raw_link, headers={"User-Agent": client.settings.user_agent})
    return parse_page(resp.text())
