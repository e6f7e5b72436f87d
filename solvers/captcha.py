"""Captcha solver for the Anime4You episode gate.

Each attempt walks the same state machine::

    NO_SESSION -> SESSION_ESTABLISHED -> CHALLENGE_ACQUIRED
               -> CANDIDATES_FETCHED -> ACCEPTED | REJECTED

Guess selection:
    * **Cache hit** -- the icon closest (structural dissimilarity) to the
      cached reference image for the same question text is submitted.
    * **Cache miss** -- the first icon is submitted; if the site accepts
      it, that icon becomes the cached reference for the question.

A rejected guess burns the challenge.  The solver never retries inside a
challenge; :meth:`CaptchaSolver.solve` restarts from a fresh session, up
to an explicit attempt budget.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import aiohttp

from core.errors import CaptchaRejected, ResolutionExhausted
from core.http import SiteClient
from core.session import Session, SessionStore
from solvers.answer_cache import AnswerCache
from solvers.challenge import CaptchaChallenge, ChallengeClient
from solvers.similarity import ImageSimilarityMatcher

logger = logging.getLogger(__name__)

VERIFY_PATH = "/Captcheck/humancheck.php"
REJECTION_SENTINEL = "FALSE"


class SolverState(Enum):
    """Progress of a single captcha attempt."""

    NO_SESSION = "no_session"
    SESSION_ESTABLISHED = "session_established"
    CHALLENGE_ACQUIRED = "challenge_acquired"
    CANDIDATES_FETCHED = "candidates_fetched"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


@dataclass(frozen=True)
class UnlockResult:
    """Outcome of an accepted captcha.

    Attributes:
        payload: HTML returned by the verification endpoint.
        session: Cookie session the payload was unlocked with.
        question: Raw question text of the winning challenge.
        answer_index: Index of the submitted candidate.
        cache_hit: Whether the guess came from the answer cache.
        attempts: Attempts used, including the accepted one.
    """

    payload: str
    session: Session
    question: str
    answer_index: int
    cache_hit: bool
    attempts: int = 1


def verification_fields(
    series_id: int,
    episode: int,
    answer_id: str,
    session_token: str,
) -> List[Tuple[str, str]]:
    """Form fields posted to the verification endpoint, in wire order."""
    return [
        ("aid", str(series_id)),
        ("epi", str(episode)),
        ("username", ""),
        ("captcheck_selected_answer", answer_id),
        ("captcheck_session_code", session_token),
    ]


def _multipart(fields: Sequence[Tuple[str, str]]) -> aiohttp.MultipartWriter:
    writer = aiohttp.MultipartWriter("form-data")
    for name, value in fields:
        part = writer.append(value)
        part.set_content_disposition("form-data", name=name)
    return writer


class CaptchaSolver:
    """Cache-guided solver for the Captcheck image challenge.

    Attributes:
        client: Shared :class:`SiteClient`.
        answer_cache: Injected :class:`AnswerCache` handle.
        session_store: Establishes per-episode cookie sessions.
        challenges: Fetches challenges and candidate icons.
        matcher: Perceptual comparison used on cache hits.
    """

    def __init__(
        self,
        client: SiteClient,
        answer_cache: AnswerCache,
        session_store: Optional[SessionStore] = None,
        challenges: Optional[ChallengeClient] = None,
        matcher: Optional[ImageSimilarityMatcher] = None,
    ) -> None:
        self.client = client
        self.answer_cache = answer_cache
        self.session_store = session_store or SessionStore(client)
        self.challenges = challenges or ChallengeClient(client)
        self.matcher = matcher or ImageSimilarityMatcher()

    async def solve(
        self,
        series_id: int,
        episode: int,
        max_attempts: Optional[int],
    ) -> UnlockResult:
        """Run attempts until one is accepted or the budget is spent.

        Only rejections are retried.  Network, protocol and decode
        failures end the run immediately.

        Args:
            series_id: Series identifier.
            episode: Episode index.
            max_attempts: Attempt budget; ``None`` retries without
                limit and must be passed explicitly.

        Raises:
            ResolutionExhausted: If every allowed attempt was rejected.
            NetworkError / ProtocolError / DecodeError: From the attempt.
        """
        if max_attempts is not None and max_attempts < 1:
            raise ValueError("max_attempts must be >= 1 or None")

        attempt = 0
        while max_attempts is None or attempt < max_attempts:
            attempt += 1
            try:
                result = await self.attempt(series_id, episode, attempt)
            except CaptchaRejected as e:
                logger.warning(
                    "[aid=%s epi=%s] Captcha rejected (%d/%s), restarting",
                    series_id, episode, attempt,
                    max_attempts if max_attempts is not None else "inf",
                )
                logger.debug("Rejected: %s", e)
                continue
            logger.info(
                "[aid=%s epi=%s] Captcha solved on attempt %d (%s)",
                series_id, episode, attempt,
                "cache hit" if result.cache_hit else "cache miss",
            )
            return result
        raise ResolutionExhausted(attempt)

    async def attempt(
        self,
        series_id: int,
        episode: int,
        attempt: int = 1,
    ) -> UnlockResult:
        """Run one full attempt against a fresh challenge.

        Raises:
            CaptchaRejected: If the site refused the guess.
            NetworkError / ProtocolError / DecodeError: On any other
                failure; the attempt is abandoned.
        """
        state = SolverState.NO_SESSION
        tag = f"[aid={series_id} epi={episode} #{attempt}]"

        session = await self.session_store.populate(series_id, episode)
        state = self._advance(tag, state, SolverState.SESSION_ESTABLISHED)

        challenge = await self.challenges.fetch(series_id, episode)
        state = self._advance(tag, state, SolverState.CHALLENGE_ACQUIRED)

        images = []
        for answer_id in challenge.answer_ids:
            images.append(
                await self.challenges.fetch_candidate_image(
                    challenge, answer_id, series_id, episode,
                )
            )
        challenge = challenge.with_images(tuple(images))
        state = self._advance(tag, state, SolverState.CANDIDATES_FETCHED)

        index, cache_hit = self.choose_answer(challenge)
        answer_id = challenge.candidates[index].answer_id
        payload = await self.submit(
            session, challenge, answer_id, series_id, episode,
        )

        if payload is None:
            self._advance(tag, state, SolverState.REJECTED)
            raise CaptchaRejected(challenge.question, attempt)

        self._advance(tag, state, SolverState.ACCEPTED)
        if not cache_hit:
            await self._remember(challenge.question, images[index])

        return UnlockResult(
            payload=payload,
            session=session,
            question=challenge.question,
            answer_index=index,
            cache_hit=cache_hit,
            attempts=attempt,
        )

    def choose_answer(self, challenge: CaptchaChallenge) -> Tuple[int, bool]:
        """Pick the candidate to submit.

        Returns:
            ``(index, cache_hit)``.

        Raises:
            DecodeError: If a cached or candidate image cannot be decoded.
        """
        reference = self.answer_cache.lookup(challenge.question)
        if reference is None:
            logger.debug("No cached answer for %r, guessing 0", challenge.prompt)
            return 0, False

        images = [c.image for c in challenge.candidates]
        if any(img is None for img in images):
            raise ValueError("candidate images have not been fetched")
        index = self.matcher.best_match(reference, images)
        logger.debug("Cached answer for %r matches index %d", challenge.prompt, index)
        return index, True

    async def submit(
        self,
        session: Session,
        challenge: CaptchaChallenge,
        answer_id: str,
        series_id: int,
        episode: int,
    ) -> Optional[str]:
        """Post the chosen answer.

        Returns:
            The unlocked HTML payload, or ``None`` if the site answered
            with the ``FALSE`` rejection sentinel.

        Raises:
            NetworkError: On transport failure, timeout or non-2xx status.
        """
        settings = self.client.settings
        headers = self.client.headers_for(settings.episode_url(series_id, episode))
        cookie = session.serialize()
        if cookie:
            headers["Cookie"] = cookie

        form = _multipart(
            verification_fields(
                series_id, episode, answer_id, challenge.session_token,
            )
        )
        resp = await self.client.post(
            settings.site_url + VERIFY_PATH, headers=headers, data=form,
        )
        body = resp.text()
        if body.startswith(REJECTION_SENTINEL):
            return None
        return body

    async def _remember(self, question: str, image: bytes) -> None:
        try:
            await self.answer_cache.record(question, image)
        except OSError:
            # The unlocked payload is still valid; only the cache write failed
            logger.exception("Could not persist captcha answer for %r", question)

    @staticmethod
    def _advance(tag: str, old: SolverState, new: SolverState) -> SolverState:
        logger.debug("%s %s -> %s", tag, old.value, new.value)
        return new
