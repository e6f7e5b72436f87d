"""Episode scheduling for the Anime4You resolver.

Drives one resolution per episode (session -> captcha -> link
extraction) and isolates failures so one broken episode does not stop a
batch.

Two scheduling modes:
    * **Sequential** (``max_concurrent_episodes == 1``) -- episodes run
      one after another with ``episode_delay_seconds`` between them.
    * **Fan-out** (``max_concurrent_episodes > 1``) -- up to that many
      episodes run at once behind an ``asyncio.Semaphore``.

Classes:
    ErrorType: Classification of per-episode failures.
    EpisodeLinks: Result record for one episode.
    EpisodeScheduler: The scheduling engine.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from core.config import ResolverSettings
from core.errors import (
    DecodeError,
    NetworkError,
    ProtocolError,
    ResolutionExhausted,
    ResolverError,
)
from core.http import SiteClient
from core.links import LinkResolver, ResolvedLink
from hosts.registry import HostedVideo, get_resolver, host_for
from solvers.captcha import CaptchaSolver

logger = logging.getLogger(__name__)


class ErrorType(Enum):
    """Classification of per-episode failures.

    - NETWORK: transport failure or timeout; worth retrying later.
    - PROTOCOL: the site changed shape; retrying will not help.
    - DECODE: a captcha icon could not be decoded.
    - CAPTCHA_EXHAUSTED: every allowed captcha attempt was rejected.
    - UNKNOWN: any other resolver error.
    """

    NETWORK = "network"
    PROTOCOL = "protocol"
    DECODE = "decode"
    CAPTCHA_EXHAUSTED = "captcha_exhausted"
    UNKNOWN = "unknown"


def classify_error(error: BaseException) -> ErrorType:
    if isinstance(error, NetworkError):
        return ErrorType.NETWORK
    if isinstance(error, ProtocolError):
        return ErrorType.PROTOCOL
    if isinstance(error, DecodeError):
        return ErrorType.DECODE
    if isinstance(error, ResolutionExhausted):
        return ErrorType.CAPTCHA_EXHAUSTED
    return ErrorType.UNKNOWN


@dataclass
class EpisodeLinks:
    """Outcome of resolving one episode.

    Attributes:
        episode: Episode index.
        links: Hoster links, highest priority first.
        attempts: Captcha attempts used.
        video: Direct video of the best resolvable link, when requested.
        error: Failure description, ``None`` on success.
        error_type: :class:`ErrorType` of the failure.
    """

    episode: int
    links: List[ResolvedLink] = field(default_factory=list)
    attempts: int = 0
    video: Optional[HostedVideo] = None
    error: Optional[str] = None
    error_type: Optional[ErrorType] = None

    @property
    def success(self) -> bool:
        return self.error is None and bool(self.links)


class EpisodeScheduler:
    """Resolves batches of episodes for one series.

    Attributes:
        settings: Active :class:`ResolverSettings`.
        solver: Shared :class:`CaptchaSolver`.
        link_resolver: Shared :class:`LinkResolver`.
    """

    def __init__(
        self,
        settings: ResolverSettings,
        solver: CaptchaSolver,
        link_resolver: LinkResolver,
        client: Optional[SiteClient] = None,
    ) -> None:
        self.settings = settings
        self.solver = solver
        self.link_resolver = link_resolver
        self.client = client or solver.client

    async def resolve_episode(self, series_id: int, episode: int) -> EpisodeLinks:
        """Resolve one episode; failures are recorded, not raised."""
        result = EpisodeLinks(episode=episode)
        try:
            unlocked = await self.solver.solve(
                series_id, episode, self.settings.max_captcha_attempts,
            )
            result.attempts = unlocked.attempts
            result.links = await self.link_resolver.extract(
                unlocked.payload, unlocked.session,
            )
            if not result.links:
                logger.warning(
                    "[aid=%s epi=%s] No hoster offered a link, skipping",
                    series_id, episode,
                )
            elif self.settings.resolve_hosts:
                result.video = await self.resolve_video(result.links)
        except ResolverError as e:
            result.error = str(e)
            result.error_type = classify_error(e)
            if isinstance(e, ResolutionExhausted):
                result.attempts = e.attempts
            logger.error(
                "[aid=%s epi=%s] %s failure: %s",
                series_id, episode, result.error_type.value, e,
            )
        return result

    async def resolve_video(self, links: Sequence[ResolvedLink]) -> Optional[HostedVideo]:
        """Decode the best link a host resolver understands.

        Links are tried in priority order; unknown hosts and failing
        resolvers fall through to the next link.
        """
        for link in links:
            if host_for(link.url) is None:
                continue
            try:
                resolve = get_resolver(link.url)
                video = await resolve(self.client, link.url)
            except (NetworkError, ProtocolError) as e:
                logger.warning("%s link %s unusable: %s", link.host, link.url, e)
                continue
            logger.info("Resolved %s video: %s", video.host, video.video_url)
            return video
        return None

    async def resolve_episodes(
        self, series_id: int, episodes: Sequence[int],
    ) -> List[EpisodeLinks]:
        """Resolve *episodes* and return results in the same order."""
        if self.settings.max_concurrent_episodes > 1:
            return await self._resolve_concurrently(series_id, episodes)
        return await self._resolve_sequentially(series_id, episodes)

    async def _resolve_sequentially(
        self, series_id: int, episodes: Sequence[int],
    ) -> List[EpisodeLinks]:
        results: List[EpisodeLinks] = []
        for position, episode in enumerate(episodes):
            if position and self.settings.episode_delay_seconds > 0:
                logger.debug(
                    "Waiting %.1fs before episode %d",
                    self.settings.episode_delay_seconds, episode,
                )
                await asyncio.sleep(self.settings.episode_delay_seconds)
            results.append(await self.resolve_episode(series_id, episode))
        return results

    async def _resolve_concurrently(
        self, series_id: int, episodes: Sequence[int],
    ) -> List[EpisodeLinks]:
        semaphore = asyncio.Semaphore(self.settings.max_concurrent_episodes)

        async def resolve_with_semaphore(episode: int) -> EpisodeLinks:
            async with semaphore:
                return await self.resolve_episode(series_id, episode)

        return list(
            await asyncio.gather(*(resolve_with_semaphore(e) for e in episodes))
        )
