"""Application configuration for the Anime4You resolver.

Settings are loaded from environment variables (with ``.env`` file
support) through Pydantic v2 settings.

Key exports:
    ResolverSettings: Root settings model (instantiate once per run).
    BASE_DIR / CONFIG_DIR / LOGS_DIR: Canonical project paths.
    DEFAULT_USER_AGENT: Browser identity sent on every site request.
"""

# pylint: disable=no-member

import logging
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Base Paths
# ---------------------------------------------------------------------------
BASE_DIR: Path = Path(__file__).parent.parent
"""Project root directory (parent of ``core/``)."""

CONFIG_DIR: Path = BASE_DIR / "config"
"""Directory containing runtime state (the captcha answer cache)."""

LOGS_DIR: Path = BASE_DIR / "logs"
"""Directory for log output files."""

DEFAULT_USER_AGENT: str = (
    "Mozilla/5.0 (X11; Linux x86_64; rv:84.0) "
    "Gecko/20100101 Firefox/84.0"
)

logger: logging.Logger = logging.getLogger(__name__)


class ResolverSettings(BaseSettings):
    """Root configuration model.

    All fields can be set via environment variables or a ``.env`` file,
    e.g. ``MAX_CAPTCHA_ATTEMPTS=25`` or ``EPISODE_DELAY_SECONDS=8``.

    Section overview:
        * **Core** -- log level.
        * **Site** -- base URLs and the browser identity.
        * **Network** -- per-request timeout.
        * **Captcha** -- retry budget and answer cache location.
        * **Scheduling** -- politeness delay and episode fan-out.
    """

    # Core
    log_level: str = "INFO"

    # Site
    site_url: str = "https://www.anime4you.one"
    captcha_site_url: str = "https://captcha.anime4you.one"
    user_agent: str = DEFAULT_USER_AGENT

    # Network -- every request is bounded by this many seconds
    request_timeout: float = 30.0

    # Captcha
    # None means "retry until accepted" and has to be chosen explicitly
    max_captcha_attempts: Optional[int] = 10
    answer_cache_file: str = str(CONFIG_DIR / "captcha_answers.json")

    # Scheduling
    episode_delay_seconds: float = 5.0
    # 1 = strictly sequential with episode_delay_seconds between episodes
    max_concurrent_episodes: int = Field(default=1, ge=1)
    resolve_hosts: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @field_validator("request_timeout")
    @classmethod
    def _timeout_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("request_timeout must be positive")
        return value

    @field_validator("max_captcha_attempts")
    @classmethod
    def _attempts_positive(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value < 1:
            raise ValueError("max_captcha_attempts must be >= 1 or None")
        return value

    @field_validator("site_url", "captcha_site_url")
    @classmethod
    def _strip_slash(cls, value: str) -> str:
        return value.rstrip("/")

    def episode_url(self, series_id: int, episode: int) -> str:
        """Return the player page URL for one episode.

        The same URL doubles as the ``Referer`` the site binds captcha
        challenges to.
        """
        return f"{self.site_url}/show/1/aid/{series_id}/epi/{episode}"
