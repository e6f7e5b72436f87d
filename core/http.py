"""Async HTTP transport shared by every resolver component.

:class:`SiteClient` owns one :class:`aiohttp.ClientSession` configured
with a mandatory timeout and no automatic cookie handling: cookies are
scoped to one episode context and managed explicitly through
:class:`core.session.Session`.

Transport failures are translated into :class:`core.errors.NetworkError`
so callers deal with one taxonomy instead of aiohttp internals.

Example::

    async with SiteClient(settings) as client:
        resp = await client.get(url, headers=browser_headers(ua, referer))
        html = resp.text()
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import aiohttp
from multidict import CIMultiDict, CIMultiDictProxy

from core.config import ResolverSettings
from core.errors import NetworkError, ProtocolError

logger = logging.getLogger(__name__)

ACCEPT_HTML = (
    "text/html,application/xhtml+xml,application/xml;q=0.9,"
    "image/webp,*/*;q=0.8"
)


def browser_headers(user_agent: str, referer: str) -> Dict[str, str]:
    """Build the header set a desktop browser sends for a page view.

    Args:
        user_agent: Browser identification string.
        referer: Page the request pretends to originate from.
    """
    return {
        "User-Agent": user_agent,
        "Referer": referer,
        "Accept": ACCEPT_HTML,
        "DNT": "1",
        "Connection": "keep-alive",
    }


@dataclass(frozen=True)
class HttpResponse:
    """Fully-read HTTP response.

    Attributes:
        url: Final request URL.
        status: HTTP status code.
        headers: Case-insensitive response headers (multi-valued).
        body: Raw response body.
    """

    url: str
    status: int
    headers: CIMultiDictProxy
    body: bytes

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Decode the body as JSON regardless of the declared content type.

        Raises:
            ProtocolError: If the body is not valid JSON.
        """
        try:
            return json.loads(self.body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise ProtocolError(
                f"Response from {self.url} is not JSON",
                field="body",
                expected="JSON document",
                observed=self.body[:80],
            ) from e


class SiteClient:
    """Thin async HTTP client bound to the resolver settings.

    Supports both context-manager and standalone usage; the session is
    created lazily on first request and closed by :meth:`close`.

    Attributes:
        settings: Active :class:`ResolverSettings`.
        timeout: ``aiohttp.ClientTimeout`` applied to every request.
    """

    def __init__(
        self,
        settings: ResolverSettings,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.settings = settings
        self.timeout = aiohttp.ClientTimeout(total=settings.request_timeout)
        self.session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "SiteClient":
        await self._ensure_session()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[Any],
    ) -> None:
        await self.close()

    async def _ensure_session(self) -> None:
        if not self.session:
            self.session = aiohttp.ClientSession(
                timeout=self.timeout,
                cookie_jar=aiohttp.DummyCookieJar(),
            )
            self._owns_session = True

    async def close(self) -> None:
        if self.session and self._owns_session:
            await self.session.close()
        self.session = None

    def headers_for(self, referer: str) -> Dict[str, str]:
        """Browser headers using the configured user agent."""
        return browser_headers(self.settings.user_agent, referer)

    async def get(
        self,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[Mapping[str, str]] = None,
        expect_ok: bool = True,
    ) -> HttpResponse:
        """Issue a GET request and read the whole body.

        Args:
            url: Absolute URL.
            headers: Request headers.
            params: Query string parameters.
            expect_ok: Raise :class:`NetworkError` on non-2xx status.
        """
        return await self._request(
            "GET", url, headers=headers, params=params, expect_ok=expect_ok,
        )

    async def post(
        self,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        data: Any = None,
        expect_ok: bool = True,
    ) -> HttpResponse:
        """Issue a POST request and read the whole body.

        Args:
            url: Absolute URL.
            headers: Request headers.
            data: Form fields (url-encoded) or an
                ``aiohttp.MultipartWriter`` for multipart bodies.
            expect_ok: Raise :class:`NetworkError` on non-2xx status.
        """
        return await self._request(
            "POST", url, headers=headers, data=data, expect_ok=expect_ok,
        )

    async def _request(
        self,
        method: str,
        url: str,
        expect_ok: bool = True,
        **kwargs: Any,
    ) -> HttpResponse:
        await self._ensure_session()
        logger.debug("%s %s", method, url)
        try:
            async with self.session.request(
                method, url, timeout=self.timeout, **kwargs,
            ) as resp:
                body = await resp.read()
                response = HttpResponse(
                    url=str(resp.url),
                    status=resp.status,
                    headers=CIMultiDictProxy(CIMultiDict(resp.headers)),
                    body=body,
                )
        except asyncio.TimeoutError as e:
            raise NetworkError(
                f"{method} {url} timed out after "
                f"{self.settings.request_timeout}s",
                url=url,
            ) from e
        except aiohttp.ClientError as e:
            raise NetworkError(
                f"{method} {url} failed: {e}", url=url,
            ) from e

        if expect_ok and not response.ok:
            raise NetworkError(
                f"{method} {url} returned HTTP {response.status}",
                url=url,
                status=response.status,
            )
        return response
