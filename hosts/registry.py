"""Video host registry.

Maps hoster domains to their display name, link priority and the
function that turns a hoster page link into a direct video URL.

Priorities are an explicit lookup table: higher wins when several hosts
offer the same episode, and domains missing from the table rank lowest
(:data:`UNKNOWN_PRIORITY`) but are still returned to the caller.

Resolver functions are referenced by dotted path and imported on first
use, the same way each host module stays independent of the others.

Usage::

    from hosts.registry import priority_for, get_resolver

    priority_for("https://vivo.sx/abc")       # 2
    resolve = get_resolver("https://vivo.sx/abc")
    video = await resolve(client, "https://vivo.sx/abc")
"""

import importlib
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional
from urllib.parse import urlparse

from core.errors import ProtocolError

UNKNOWN_PRIORITY = 0


@dataclass(frozen=True)
class HostedVideo:
    """Direct video location on a hoster.

    Attributes:
        video_url: URL of the media file itself.
        file_name: Name suggested by the hoster page.
        host: Host name from the registry.
    """

    video_url: str
    file_name: str
    host: str


@dataclass(frozen=True)
class HostEntry:
    """One row of the host table.

    Attributes:
        name: Display name.
        priority: Sort priority (higher first).
        resolver: Dotted path ``"module.function"`` of the async resolver.
    """

    name: str
    priority: int
    resolver: str


# ---------------------------------------------------------------------------
# Host table
# ---------------------------------------------------------------------------
HOST_REGISTRY: Dict[str, HostEntry] = {
    "vidoza.net": HostEntry("Vidoza", 3, "hosts.vidoza.resolve"),
    "vivo.sx": HostEntry("Vivo", 2, "hosts.vivo.resolve"),
    "gounlimited.to": HostEntry("GoUnlimited", 1, "hosts.gounlimited.resolve"),
    "streamtape.com": HostEntry("Streamtape", 1, "hosts.streamtape.resolve"),
}

Resolver = Callable[..., Awaitable[HostedVideo]]


def domain_of(url: str) -> str:
    """Lower-cased host name of *url* without a leading ``www.``."""
    host = (urlparse(url.strip()).hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return host


def host_for(url: str) -> Optional[HostEntry]:
    """Registry entry for the domain of *url*, or ``None``."""
    return HOST_REGISTRY.get(domain_of(url))


def host_name(url: str) -> str:
    entry = host_for(url)
    return entry.name if entry else "Unknown"


def priority_for(url: str) -> int:
    """Link priority of *url*; unknown domains get the lowest value."""
    entry = host_for(url)
    return entry.priority if entry else UNKNOWN_PRIORITY


def get_resolver(url: str) -> Resolver:
    """Import and return the resolver function for the domain of *url*.

    Raises:
        ProtocolError: If no resolver is registered for the domain.
    """
    entry = host_for(url)
    if entry is None:
        raise ProtocolError(
            "No resolver for video host",
            field="domain",
            expected=", ".join(sorted(HOST_REGISTRY)),
            observed=domain_of(url),
        )
    module_path, func_name = entry.resolver.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, func_name)
