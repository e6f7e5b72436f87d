"""Exception taxonomy for the Anime4You resolver.

Every failure raised by the resolution pipeline derives from
:class:`ResolverError` so callers can isolate one episode's failure from
the rest of a batch.

Classes:
    NetworkError: Transport failure, timeout, or unexpected HTTP status.
    ProtocolError: Upstream response does not have the expected shape.
    DecodeError: Image bytes cannot be decoded as a raster image.
    CaptchaRejected: The verification endpoint refused a guess.
    ResolutionExhausted: The captcha retry budget ran out.
    SeriesNotFound: No catalogue entry matched a name lookup.
"""

from typing import Any, Optional


class ResolverError(Exception):
    """Base class for all resolver failures."""


class NetworkError(ResolverError):
    """Transport-level failure on a call expected to succeed.

    Attributes:
        url: The URL being requested, when known.
        status: HTTP status code for non-success responses.
    """

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status = status


class ProtocolError(ResolverError):
    """The upstream site answered with something we cannot interpret.

    Carries enough detail to diagnose a site change without a debugger.

    Attributes:
        field: Name of the offending field or pattern.
        expected: Human-readable description of what was expected.
        observed: What was actually received (truncated).
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        expected: Optional[str] = None,
        observed: Any = None,
    ) -> None:
        details = []
        if field is not None:
            details.append(f"field={field!r}")
        if expected is not None:
            details.append(f"expected={expected}")
        if observed is not None:
            details.append(f"observed={_truncate(observed)!r}")
        if details:
            message = f"{message} ({', '.join(details)})"
        super().__init__(message)
        self.field = field
        self.expected = expected
        self.observed = observed


class DecodeError(ResolverError):
    """Image bytes could not be decoded."""


class CaptchaRejected(ResolverError):
    """The verification endpoint answered ``FALSE`` for a guess.

    This is an expected branch, not a fault: the challenge is burned and
    the caller restarts from a fresh session.
    """

    def __init__(self, question: str, attempt: int) -> None:
        super().__init__(
            f"Captcha answer rejected on attempt {attempt}: {question!r}"
        )
        self.question = question
        self.attempt = attempt


class ResolutionExhausted(ResolverError):
    """Every allowed captcha attempt was rejected."""

    def __init__(self, attempts: int) -> None:
        super().__init__(
            f"Captcha still unsolved after {attempts} attempt(s)"
        )
        self.attempts = attempts


class SeriesNotFound(ResolverError):
    """No series matched the requested name and language."""


def _truncate(value: Any, limit: int = 120) -> str:
    text = str(value)
    if len(text) > limit:
        return text[:limit] + "..."
    return text
