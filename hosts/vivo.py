"""Vivo (``vivo.sx``) video resolver.

The player page embeds the media URL as a URL-encoded, ROT47-scrambled
``source`` argument to ``InitializeStream``.
"""

import logging
import re
from urllib.parse import unquote

from core.errors import ProtocolError
from core.http import SiteClient
from hosts.registry import HostedVideo

logger = logging.getLogger(__name__)

# The 94 printable ASCII characters "!" .. "~"
ROT47_ALPHABET = "".join(chr(c) for c in range(33, 127))

SOURCE_PATTERN = re.compile(
    r"InitializeStream\s*\(\s*\{.+source:\s*'([A-Za-z0-9%_]+)',", re.DOTALL,
)
NAME_PATTERN = re.compile(
    r'<div\sclass="stream-content"\sdata-name="(.+?)"\sdata', re.DOTALL,
)


def caesar(text: str, alphabet: str, shift: int) -> str:
    """Rotate every character of *text* found in *alphabet* by *shift*.

    Characters outside the alphabet pass through unchanged.
    """
    size = len(alphabet)
    table = str.maketrans(
        alphabet, "".join(alphabet[(i + shift) % size] for i in range(size)),
    )
    return text.translate(table)


def rot47(text: str) -> str:
    return caesar(text, ROT47_ALPHABET, 47)


def parse_page(html: str) -> HostedVideo:
    """Extract the video URL and file name from a Vivo player page.

    Raises:
        ProtocolError: If the page lacks the stream source or name.
    """
    source = SOURCE_PATTERN.search(html)
    if not source:
        raise ProtocolError(
            "Vivo page has no stream source",
            field="InitializeStream.source", expected="URL-encoded token",
        )
    name = NAME_PATTERN.search(html)
    if not name:
        raise ProtocolError(
            "Vivo page has no file name",
            field="stream-content data-name", expected="string",
        )
    return HostedVideo(
        video_url=rot47(unquote(source.group(1))),
        file_name=name.group(1),
        host="Vivo",
    )


async def resolve(client: SiteClient, raw_link: str) -> HostedVideo:
    """Fetch a Vivo page and decode its video URL."""
    url = raw_link.replace("embed/", "")
    resp = await client.get(url, headers={"User-Agent": client.settings.user_agent})
    video = parse_page(resp.text())
    logger.debug("Vivo %s -> %s", url, video.video_url)
    return video
