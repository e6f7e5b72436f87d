"""
Video host resolvers for the Anime4You resolver.

Each hoster module is a pair of stateless functions: ``parse_page(html)``
extracts the media URL from a player page and ``resolve(client, link)``
fetches the page first.  The host table in :mod:`hosts.registry`
selects the module by URL domain and ranks the hosts.

Submodules:
    registry: ``HOST_REGISTRY`` table, ``priority_for`` and ``get_resolver``.
    vivo: ``vivo.sx`` (URL-encoded ROT47 stream source).
    vidoza: ``vidoza.net`` (``sourcesCode`` player config).
    gounlimited: ``gounlimited.to`` (packed player script).
    streamtape: ``streamtape.com`` (two-part ``innerHTML`` link).
"""

from hosts.registry import HOST_REGISTRY, HostedVideo, get_resolver, priority_for

__all__ = ["HOST_REGISTRY", "HostedVideo", "get_resolver", "priority_for"]
