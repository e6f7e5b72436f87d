"""Series catalogue lookups.

A series (the site's ``aid``) is the content unit whose episodes are
resolved one at a time.  Series can be looked up by id, from the show
page, or by name and language, from the site's JSON speed list.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Union

from core.errors import ProtocolError, SeriesNotFound
from core.http import SiteClient

logger = logging.getLogger(__name__)

SPEEDLIST_PATH = "/speedlist.old.txt"

EPISODE_LINK_PATTERN = re.compile(r'href="(/show/1/aid/\d+/epi/\d+/)')
TITLE_PATTERN = re.compile(r'<h3 class="cpfont6">([^<]*)<')
SYNC_PATTERN = re.compile(r'<h5 class="cpfont6 pt-3">([^<]*)&')


class Language(Enum):
    """Audio/subtitle variant of a series.

    Members:
        GERSUB: Japanese audio, German subtitles.
        GERDUB: German audio.
    """

    GERSUB = "gersub"
    GERDUB = "gerdub"


@dataclass(frozen=True)
class Series:
    """Catalogue entry.

    Attributes:
        id: Site identifier (``aid``).
        title: Display title.
        episodes: Number of episodes listed.
        language: :class:`Language`, or the raw label for other variants.
    """

    id: int
    title: str
    episodes: int
    language: Union[Language, str]

    @property
    def language_code(self) -> str:
        if isinstance(self.language, Language):
            return self.language.value
        return self.language


def parse_language(label: str) -> Union[Language, str]:
    """Map a site label (``GerSub``/``gersub``...) to :class:`Language`."""
    try:
        return Language(label.strip().lower())
    except ValueError:
        return label.strip()


def parse_series_page(series_id: int, html: str) -> Series:
    """Build a :class:`Series` from the HTML of ``/show/1/aid/<id>``.

    The last title and synchronisation headings on the page win, and a
    missing synchronisation heading yields ``"unknown"``.
    """
    episodes = EPISODE_LINK_PATTERN.findall(html)
    titles = TITLE_PATTERN.findall(html)
    syncs = SYNC_PATTERN.findall(html)
    return Series(
        id=series_id,
        title=titles[-1].strip() if titles else "",
        episodes=len(episodes),
        language=parse_language(syncs[-1]) if syncs else "unknown",
    )


def parse_speedlist_entry(entry: Any) -> Series:
    """Validate one speed list object.

    Raises:
        ProtocolError: If a field is missing or not a string.
    """
    if not isinstance(entry, dict):
        raise ProtocolError(
            "Speed list element is not an object",
            field="<element>", expected="object",
            observed=type(entry).__name__,
        )
    aid = _field(entry, "aid")
    folgen = _field(entry, "Folgen")
    try:
        series_id, episodes = int(aid), int(folgen)
    except ValueError as e:
        raise ProtocolError(
            "Speed list numbers are not integers",
            field="aid/Folgen", expected="decimal strings",
            observed=f"{aid}/{folgen}",
        ) from e
    return Series(
        id=series_id,
        title=_field(entry, "titel"),
        episodes=episodes,
        language=parse_language(_field(entry, "Untertitel")),
    )


def _field(entry: Dict[str, Any], name: str) -> str:
    if name not in entry:
        raise ProtocolError(
            "Speed list element is missing a field",
            field=name, expected="string",
        )
    value = entry[name]
    if not isinstance(value, str):
        raise ProtocolError(
            "Speed list field has the wrong type",
            field=name, expected="string", observed=type(value).__name__,
        )
    return value


async def fetch_series(client: SiteClient, series_id: int) -> Series:
    """Load a series by id from its show page.

    Raises:
        NetworkError: On transport failure or non-2xx status.
    """
    url = f"{client.settings.site_url}/show/1/aid/{series_id}"
    resp = await client.get(url, headers=client.headers_for(url))
    series = parse_series_page(series_id, resp.text())
    logger.info(
        "Series %d: %r, %d episode(s), %s",
        series.id, series.title, series.episodes, series.language_code,
    )
    return series


async def find_series(
    client: SiteClient, name: str, language: Language,
) -> Series:
    """Find the first series whose title contains *name* in *language*.

    Matching is case-insensitive on the title and exact on the language.

    Raises:
        SeriesNotFound: If nothing matches.
        ProtocolError: If the speed list is malformed.
        NetworkError: On transport failure or non-2xx status.
    """
    url = client.settings.site_url + SPEEDLIST_PATH
    resp = await client.get(url, headers=client.headers_for(client.settings.site_url + "/"))
    listing = resp.json()
    if not isinstance(listing, list):
        raise ProtocolError(
            "Speed list is not an array",
            field="<root>", expected="array", observed=type(listing).__name__,
        )

    needle = name.lower()
    for entry in listing:
        series = parse_speedlist_entry(entry)
        if needle in series.title.lower() and series.language == language:
            logger.info("Matched %r to series %d (%s)", name, series.id, series.title)
            return series
    raise SeriesNotFound(
        f"Series {name!r} with language {language.value!r} not found"
    )


def parse_episode_range(text: str) -> List[int]:
    """Expand ``"2,5"`` into ``[2, 3, 4, 5]``; a single number is one episode.

    Raises:
        ValueError: On malformed input or a descending range.
    """
    parts = [p.strip() for p in text.split(",")]
    if len(parts) == 1:
        first = last = int(parts[0])
    elif len(parts) == 2:
        first, last = int(parts[0]), int(parts[1])
    else:
        raise ValueError(f"expected 'FIRST,LAST', got {text!r}")
    if first < 1 or last < first:
        raise ValueError(f"invalid episode range {text!r}")
    return list(range(first, last + 1))
