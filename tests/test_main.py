from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from rich.console import Console

import main
from core.config import ResolverSettings
from core.errors import SeriesNotFound
from core.links import ResolvedLink
from core.orchestrator import EpisodeLinks, ErrorType
from core.series import Language, Series


SERIES = Series(id=55, title="Kimi no Uta", episodes=3, language=Language.GERSUB)


@pytest.fixture
def patched_run(tmp_path):
    """Patch network and logging side effects of main.run()."""
    scheduler = MagicMock()
    scheduler.resolve_episodes = AsyncMock(return_value=[
        EpisodeLinks(episode=1, links=[ResolvedLink.from_url("https://vivo.sx/a")]),
    ])
    with patch("main.setup_logging"), \
            patch("main.SiteClient") as site_client, \
            patch("main.ResolverSettings", side_effect=lambda: ResolverSettings(
                _env_file=None, answer_cache_file=str(tmp_path / "a.json"),
            )), \
            patch("main.EpisodeScheduler", return_value=scheduler), \
            patch("main.fetch_series", new_callable=AsyncMock, return_value=SERIES) as fetch, \
            patch("main.find_series", new_callable=AsyncMock, return_value=SERIES) as find, \
            patch("main.render"):
        yield {"client": site_client, "scheduler": scheduler, "fetch": fetch, "find": find}


class TestParser:
    """Command line parsing."""

    def test_id_or_name_required(self):
        with pytest.raises(SystemExit):
            main.build_parser().parse_args([])

    def test_overrides(self):
        args = main.build_parser().parse_args(
            ["-i", "5", "--max-attempts", "0", "--delay", "2", "--concurrency", "3", "--resolve-hosts"],
        )
        settings = ResolverSettings(_env_file=None)
        main.apply_overrides(settings, args)
        assert settings.max_captcha_attempts is None
        assert settings.episode_delay_seconds == 2.0
        assert settings.max_concurrent_episodes == 3
        assert settings.resolve_hosts is True


class TestRun:
    """End-to-end flow of main.run() with the network patched out."""

    @pytest.mark.asyncio
    async def test_by_id_resolves_every_episode(self, patched_run):
        assert await main.run(["-i", "55"]) == 0
        patched_run["scheduler"].resolve_episodes.assert_awaited_once_with(55, [1, 2, 3])

    @pytest.mark.asyncio
    async def test_by_name_with_range(self, patched_run):
        assert await main.run(["-n", "kimi", "-d", "-e", "2,3"]) == 0
        assert patched_run["find"].await_args[0][1:] == ("kimi", Language.GERDUB)
        patched_run["scheduler"].resolve_episodes.assert_awaited_once_with(55, [2, 3])

    @pytest.mark.asyncio
    async def test_lookup_failure_exit_code(self, patched_run):
        patched_run["find"].side_effect = SeriesNotFound("nope")
        assert await main.run(["-n", "missing"]) == 2

    @pytest.mark.asyncio
    async def test_bad_range_exit_code(self, patched_run):
        assert await main.run(["-i", "55", "-e", "9,1"]) == 2

    @pytest.mark.asyncio
    async def test_all_failed_exit_code(self, patched_run):
        patched_run["scheduler"].resolve_episodes.return_value = [
            EpisodeLinks(episode=1, error="boom", error_type=ErrorType.NETWORK),
        ]
        assert await main.run(["-i", "55"]) == 1


def test_render_lists_links_and_errors():
    console = Console(record=True, width=200)
    main.render(
        [
            EpisodeLinks(episode=1, links=[ResolvedLink.from_url("https://vidoza.net/x")]),
            EpisodeLinks(episode=2, error="timed out", error_type=ErrorType.NETWORK),
        ],
        "Kimi no Uta (gersub)",
        console,
    )
    text = console.export_text()
    assert "Vidoza" in text
    assert "https://vidoza.net/x" in text
    assert "timed out" in text
