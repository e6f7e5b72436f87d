import io
from typing import Dict, Iterable, Optional, Tuple
from unittest.mock import AsyncMock, MagicMock

import pytest
from multidict import CIMultiDict, CIMultiDictProxy
from PIL import Image, ImageDraw

from core.config import ResolverSettings
from core.http import HttpResponse, SiteClient, browser_headers


def make_icon(kind: str, size: int = 48, fmt: str = "PNG", quality: int = 95) -> bytes:
    """Render a simple black glyph on a transparent canvas."""
    img = Image.new("RGBA", (size, size), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    s = size
    if kind == "circle":
        draw.ellipse((s * 0.2, s * 0.2, s * 0.8, s * 0.8), fill=(0, 0, 0, 255))
    elif kind == "square":
        draw.rectangle((s * 0.05, s * 0.05, s * 0.45, s * 0.45), fill=(0, 0, 0, 255))
    elif kind == "hbar":
        draw.rectangle((s * 0.05, s * 0.7, s * 0.95, s * 0.9), fill=(0, 0, 0, 255))
    elif kind == "vbar":
        draw.rectangle((s * 0.7, s * 0.05, s * 0.9, s * 0.95), fill=(0, 0, 0, 255))
    elif kind == "triangle":
        draw.polygon([(s * 0.5, s * 0.1), (s * 0.9, s * 0.9), (s * 0.1, s * 0.9)], fill=(0, 0, 0, 255))
    else:
        raise ValueError(kind)

    buf = io.BytesIO()
    if fmt == "JPEG":
        flat = Image.new("RGB", img.size, (255, 255, 255))
        flat.paste(img, mask=img.split()[3])
        flat.save(buf, format="JPEG", quality=quality)
    else:
        img.save(buf, format=fmt)
    return buf.getvalue()


def http_response(
    body: bytes = b"",
    status: int = 200,
    headers: Optional[Iterable[Tuple[str, str]]] = None,
    url: str = "https://www.anime4you.one/",
) -> HttpResponse:
    if isinstance(body, str):
        body = body.encode("utf-8")
    return HttpResponse(
        url=url,
        status=status,
        headers=CIMultiDictProxy(CIMultiDict(list(headers or []))),
        body=body,
    )


@pytest.fixture
def settings(tmp_path) -> ResolverSettings:
    return ResolverSettings(
        _env_file=None,
        answer_cache_file=str(tmp_path / "answers.json"),
        episode_delay_seconds=0,
        request_timeout=5,
    )


@pytest.fixture
def mock_client(settings) -> MagicMock:
    """SiteClient double whose get/post are AsyncMocks."""
    client = MagicMock(spec=SiteClient)
    client.settings = settings
    client.get = AsyncMock()
    client.post = AsyncMock()

    def headers_for(referer: str) -> Dict[str, str]:
        return browser_headers(settings.user_agent, referer)

    client.headers_for.side_effect = headers_for
    return client
