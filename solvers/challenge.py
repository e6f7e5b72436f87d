"""Captcheck image challenge model and client.

The site guards its hoster links with a Captcheck instance: the API
hands out a session token, a question and four candidate icon ids; the
icon bytes are fetched one by one and the chosen id is posted back
together with the session token.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from core.errors import ProtocolError
from core.http import SiteClient

logger = logging.getLogger(__name__)

CAPTCHA_API_PATH = "/Captcheck/api.php"

# "<anything>: <prompt>." -- the colon prefix is optional
QUESTION_PATTERN = re.compile(r"^(?:.*:)?\s*(?P<prompt>.+?)\s*\.\s*$", re.DOTALL)


def extract_prompt(question: str) -> Optional[str]:
    """Return the human-readable prompt of a raw question, or ``None``.

    Everything up to and including the last colon is discarded, as is the
    trailing period.

    Example::

        >>> extract_prompt("Sicherheitsfrage: Klicke auf den Apfel.")
        'Klicke auf den Apfel'
    """
    match = QUESTION_PATTERN.match(question)
    if not match:
        return None
    return match.group("prompt")


@dataclass(frozen=True)
class CandidateRef:
    """One selectable answer icon.

    Attributes:
        answer_id: Opaque identifier posted back on submit.
        image: Raw raster bytes, ``None`` until fetched.
    """

    answer_id: str
    image: Optional[bytes] = None


@dataclass(frozen=True)
class CaptchaChallenge:
    """A single-use captcha instance.

    Attributes:
        session_token: Captcheck session code.
        id_prefix: Element id prefix used by the widget.
        question: Raw question text as served (the cache key).
        candidates: Answer icons in server display order.
    """

    session_token: str
    id_prefix: str
    question: str
    candidates: Tuple[CandidateRef, ...]

    @property
    def prompt(self) -> str:
        return extract_prompt(self.question) or self.question

    @property
    def answer_ids(self) -> Tuple[str, ...]:
        return tuple(c.answer_id for c in self.candidates)

    def with_images(self, images: Tuple[bytes, ...]) -> "CaptchaChallenge":
        """Return a copy whose candidates carry *images* (same order)."""
        if len(images) != len(self.candidates):
            raise ValueError(
                f"expected {len(self.candidates)} images, got {len(images)}"
            )
        return CaptchaChallenge(
            session_token=self.session_token,
            id_prefix=self.id_prefix,
            question=self.question,
            candidates=tuple(
                CandidateRef(c.answer_id, img)
                for c, img in zip(self.candidates, images)
            ),
        )


def parse_challenge(payload: Any) -> CaptchaChallenge:
    """Validate a ``action=new`` API response and build the challenge.

    Raises:
        ProtocolError: Naming the first missing or mistyped field.
    """
    if not isinstance(payload, dict):
        raise ProtocolError(
            "Captcha response is not an object",
            field="<root>", expected="object", observed=type(payload).__name__,
        )

    session_token = _require_str(payload, "session")
    id_prefix = _require_str(payload, "id_prefix")
    question = _require_str(payload, "question_i")
    if extract_prompt(question) is None:
        raise ProtocolError(
            "Captcha question has an unexpected shape",
            field="question_i",
            expected="'[prefix:] prompt.'",
            observed=question,
        )

    answers = payload.get("answers")
    if answers is None:
        raise ProtocolError(
            "Captcha response is missing a field",
            field="answers", expected="array of strings",
        )
    if not isinstance(answers, list):
        raise ProtocolError(
            "Captcha response field has the wrong type",
            field="answers", expected="array of strings",
            observed=type(answers).__name__,
        )
    if not answers:
        raise ProtocolError(
            "Captcha response offers no answers",
            field="answers", expected="non-empty array", observed=answers,
        )
    for index, answer in enumerate(answers):
        if not isinstance(answer, str):
            raise ProtocolError(
                "Captcha answer id has the wrong type",
                field=f"answers[{index}]", expected="string",
                observed=type(answer).__name__,
            )

    return CaptchaChallenge(
        session_token=session_token,
        id_prefix=id_prefix,
        question=question,
        candidates=tuple(CandidateRef(a) for a in answers),
    )


def _require_str(payload: Dict[str, Any], field: str) -> str:
    if field not in payload:
        raise ProtocolError(
            "Captcha response is missing a field",
            field=field, expected="string",
        )
    value = payload[field]
    if not isinstance(value, str):
        raise ProtocolError(
            "Captcha response field has the wrong type",
            field=field, expected="string", observed=type(value).__name__,
        )
    return value


class ChallengeClient:
    """Fetches challenges and candidate icons from the Captcheck API."""

    def __init__(self, client: SiteClient) -> None:
        self.client = client

    @property
    def api_url(self) -> str:
        return self.client.settings.captcha_site_url + CAPTCHA_API_PATH

    async def fetch(self, series_id: int, episode: int) -> CaptchaChallenge:
        """Request a new challenge bound to an episode page.

        The API ties challenges to the ``Referer`` rather than to the
        session cookie, so no cookie is sent.

        Raises:
            NetworkError: On transport failure, timeout or non-2xx status.
            ProtocolError: If the response does not describe a challenge.
        """
        referer = self.client.settings.episode_url(series_id, episode)
        resp = await self.client.get(
            self.api_url,
            headers=self.client.headers_for(referer),
            params={"action": "new"},
        )
        challenge = parse_challenge(resp.json())
        logger.debug(
            "Challenge %s for aid=%s epi=%s: %r (%d candidates)",
            challenge.session_token, series_id, episode,
            challenge.prompt, len(challenge.candidates),
        )
        return challenge

    async def fetch_candidate_image(
        self,
        challenge: CaptchaChallenge,
        answer_id: str,
        series_id: int,
        episode: int,
    ) -> bytes:
        """Download one candidate icon.

        Raises:
            NetworkError: On transport failure, timeout or non-2xx status.
        """
        referer = self.client.settings.episode_url(series_id, episode)
        resp = await self.client.get(
            self.api_url,
            headers=self.client.headers_for(referer),
            params={
                "action": "img",
                "s": challenge.session_token,
                "c": answer_id,
            },
        )
        return resp.body
