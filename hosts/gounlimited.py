"""GoUnlimited (``gounlimited.to``) video resolver.

The packed player script leaks ``type|<video id>|<file server>'``; the
media file lives at ``https://<file server>.gounlimited.to/<id>/v.mp4``.
"""

import re

from core.errors import ProtocolError
from core.http import SiteClient
from hosts.registry import HostedVideo

SOURCE_PATTERN = re.compile(r"type\|(.*?)\|(.*?)'")


def parse_page(html: str) -> HostedVideo:
    """Rebuild the media URL from the packed player script.

    Raises:
        ProtocolError: If the ``type|id|server`` fragment is missing.
    """
    match = SOURCE_PATTERN.search(html)
    if not match:
        raise ProtocolError(
            "GoUnlimited page has no video source",
            field="type|id|server", expected="packed player script",
        )
    video_id, file_server = match.group(1), match.group(2)
    return HostedVideo(
        video_url=f"https://{file_server}.gounlimited.to/{video_id}/v.mp4",
        file_name="v.mp4",
        host="GoUnlimited",
    )


async def resolve(client: SiteClient, raw_link: str) -> HostedVideo:
    resp = await client.get(raw_link, headers={"User-Agent": client.settings.user_agent})
    return parse_page(resp.text())
