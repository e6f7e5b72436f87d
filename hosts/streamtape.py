"""Streamtape (``streamtape.com``) video resolver.

The page assembles the link in script as ``innerHTML = "<a>" + '<b>'``
with a protocol-relative prefix.
"""

import re

from core.errors import ProtocolError
from core.http import SiteClient
from hosts.registry import HostedVideo

VIDEO_PATTERN = re.compile(
    r"""document\.getElementById\('.*'\+'.*'\)\.innerHTML\s=\s"(.*)"\s\+\s'(.*)'""",
)
NAME_PATTERN = re.compile(r"<title>(.*)\sat\sStreamtape\.com</title>")


def parse_page(html: str) -> HostedVideo:
    """Join the two script fragments into an absolute https URL.

    Raises:
        ProtocolError: If the title or the script fragments are missing.
    """
    name = NAME_PATTERN.search(html)
    if not name:
        raise ProtocolError(
            "Streamtape page has no file name",
            field="title", expected="'<name> at Streamtape.com'",
        )
    parts = VIDEO_PATTERN.search(html)
    if not parts:
        raise ProtocolError(
            "Streamtape page has no video link",
            field="innerHTML", expected='"<a>" + \'<b>\'',
        )
    link = parts.group(1) + parts.group(2)
    if link.startswith("//"):
        link = "https:" + link
    return HostedVideo(video_url=link, file_name=name.group(1), host="Streamtape")


async def resolve(client: SiteClient, raw_link: str) -> HostedVideo:
    resp = await client.get(raw_link, headers={"User-Agent": client.settings.user_agent})
    return parse_page(resp.text())
