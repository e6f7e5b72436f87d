"""
Core module for the Anime4You link resolver.

This package contains configuration, transport, the per-episode cookie
session, series lookups, link extraction and episode scheduling.

Submodules:
    config: Application settings (``ResolverSettings``) via Pydantic.
    errors: ``ResolverError`` taxonomy (network, protocol, decode, captcha).
    http: ``SiteClient`` aiohttp wrapper with mandatory timeouts.
    session: ``Session`` cookie mapping and ``SessionStore``.
    series: ``Series`` catalogue lookups by id or name.
    links: ``LinkResolver`` turning unlocked HTML into ordered hoster links.
    orchestrator: ``EpisodeScheduler`` sequential / fan-out batch engine.
    logging_setup: Compressed rotating file + safe console logging.
    utils: Corruption-safe JSON read / atomic write helpers.
"""
