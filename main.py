"""
Anime4You link resolver - Main Entry Point

Looks up a series, solves the per-episode captcha gate and prints the
hoster links of every requested episode, best host first.

Usage:
    python main.py --id 1234                  # all episodes of series 1234
    python main.py -n "one piece" --gersub -e 2,5
    python main.py -i 1234 --resolve-hosts    # also decode direct video URLs
"""
from dotenv import load_dotenv

# Load environment variables from .env file into os.environ
load_dotenv()

import asyncio
import argparse
import logging
import sys
from typing import List, Optional

from rich import box
from rich.console import Console
from rich.table import Table

from core.config import ResolverSettings
from core.errors import ResolverError
from core.http import SiteClient
from core.links import LinkResolver
from core.logging_setup import setup_logging
from core.orchestrator import EpisodeLinks, EpisodeScheduler
from core.series import Language, fetch_series, find_series, parse_episode_range
from solvers.answer_cache import AnswerCache
from solvers.captcha import CaptchaSolver

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Anime4You episode link resolver")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("-n", "--name", help="Series name (substring match)")
    target.add_argument("-i", "--id", type=int, help="Series id")
    language = parser.add_mutually_exclusive_group()
    language.add_argument(
        "-s", "--gersub", action="store_true",
        help="Japanese audio with German subtitles (default for --name)",
    )
    language.add_argument(
        "-d", "--gerdub", action="store_true", help="German audio",
    )
    parser.add_argument(
        "-e", "--episodes",
        help="'2,5' resolves episodes 2 through 5; default is every episode",
    )
    parser.add_argument(
        "--max-attempts", type=int,
        help="Captcha attempts per episode (0 = retry until solved)",
    )
    parser.add_argument("--delay", type=float, help="Seconds between episodes")
    parser.add_argument("--concurrency", type=int, help="Episodes resolved at once")
    parser.add_argument("--cache-file", help="Captcha answer cache location")
    parser.add_argument(
        "--resolve-hosts", action="store_true",
        help="Decode the direct video URL of the best host",
    )
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING, ...")
    return parser


def apply_overrides(settings: ResolverSettings, args: argparse.Namespace) -> None:
    if args.max_attempts is not None:
        settings.max_captcha_attempts = args.max_attempts or None
    if args.delay is not None:
        settings.episode_delay_seconds = args.delay
    if args.concurrency is not None:
        settings.max_concurrent_episodes = max(1, args.concurrency)
    if args.cache_file:
        settings.answer_cache_file = args.cache_file
    if args.resolve_hosts:
        settings.resolve_hosts = True
    if args.log_level:
        settings.log_level = args.log_level


def render(results: List[EpisodeLinks], title: str, console: Console) -> None:
    table = Table(title=title, box=box.SIMPLE_HEAVY)
    table.add_column("Episode", justify="right")
    table.add_column("Host")
    table.add_column("Prio", justify="right")
    table.add_column("URL", overflow="fold")
    for result in results:
        if result.error:
            table.add_row(str(result.episode), "[red]error[/red]", "", result.error)
            continue
        if not result.links:
            table.add_row(str(result.episode), "[yellow]none[/yellow]", "", "")
            continue
        for position, link in enumerate(result.links):
            table.add_row(
                str(result.episode) if position == 0 else "",
                link.host,
                str(link.host_priority),
                link.url,
            )
        if result.video:
            table.add_row("", f"[green]{result.video.host} video[/green]", "", result.video.video_url)
    console.print(table)


async def run(argv: Optional[List[str]] = None) -> int:
    """
    Main execution flow.

    1. Parses command line arguments and loads settings.
    2. Resolves the series by id or by name + language.
    3. Resolves every requested episode through the scheduler.
    4. Prints the link table.

    Returns:
        Process exit code: 0 if at least one episode produced a link.
    """
    args = build_parser().parse_args(argv)
    settings = ResolverSettings()
    apply_overrides(settings, args)
    setup_logging(settings.log_level)

    cache = AnswerCache(settings.answer_cache_file)
    console = Console()

    async with SiteClient(settings) as client:
        try:
            if args.id is not None:
                series = await fetch_series(client, args.id)
            else:
                language = Language.GERDUB if args.gerdub else Language.GERSUB
                series = await find_series(client, args.name, language)
        except ResolverError as e:
            logger.error("Series lookup failed: %s", e)
            return 2

        if args.episodes:
            try:
                episodes = parse_episode_range(args.episodes)
            except ValueError as e:
                logger.error("%s", e)
                return 2
        else:
            episodes = list(range(1, series.episodes + 1))
        if not episodes:
            logger.warning("Series %d lists no episodes", series.id)
            return 1

        solver = CaptchaSolver(client, cache)
        scheduler = EpisodeScheduler(settings, solver, LinkResolver(client))
        logger.info(
            "Resolving %d episode(s) of %r (aid=%d)",
            len(episodes), series.title, series.id,
        )
        results = await scheduler.resolve_episodes(series.id, episodes)

    render(results, f"{series.title} ({series.language_code})", console)
    return 0 if any(r.success for r in results) else 1


def main() -> None:
    try:
        sys.exit(asyncio.run(run()))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        sys.exit(130)


if __name__ == "__main__":
    main()
