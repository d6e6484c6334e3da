from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from .cache import ResponseCache
from .config import DEFAULT_CONFIG_FILE, ConfigError, Settings
from .github_client import GitHubClient
from .mailer import MailError, build_mailer
from .poller import PollContext, run_cycle, select_repositories
from .store import WatermarkStore

logger = logging.getLogger(__name__)

# Exit status is the failure count; larger values would wrap around
MAX_EXIT_STATUS = 255

DESCRIPTION = """\
Generates mail when new commits are pushed to any designated public GitHub repositories.

Where repository is a GitHub account, a slash, and a repository name, such as
EnterpriseQualityCoding/FizzBuzzEnterpriseEdition to add to the watched
repositories. With no options or operands, repositories previously added are watched.
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="github-commit-alert",
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("repositories", nargs="*", metavar="repository", help="owner/name of a repository")
    parser.add_argument("-l", "--list", action="store_true", help="List the repositories being watched.")
    parser.add_argument(
        "-r", "--remove", action="store_true", help="Repositories specified are removed from those watched."
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Generate output for repositories with no new commits."
    )
    parser.add_argument(
        "-c", "--config", default=DEFAULT_CONFIG_FILE, help=f"Path to the YAML config (default: {DEFAULT_CONFIG_FILE})."
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    try:
        settings = Settings.load(args.config)
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        return 1

    try:
        with WatermarkStore(settings.database_path) as store:
            return _run(parser, args, settings, store)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Run failed: %s", exc)
        return 1


def _run(parser: argparse.ArgumentParser, args: argparse.Namespace, settings: Settings, store: WatermarkStore) -> int:
    if args.remove:
        for operand in args.repositories:
            if store.remove_repo(operand) == 0:
                print(f'Operand "{operand}" was not being watched, so not removed.', file=sys.stderr)
            else:
                print(f'"{operand}" will not be watched.')
        return 0

    repos = select_repositories(args.repositories, store.list_repos())
    if args.list:
        for repo in repos:
            print(repo)
        return 0

    if not repos:
        print("Error: No repositories to watch!\n", file=sys.stderr)
        parser.print_help()
        return 1

    try:
        mailer = build_mailer(
            brevo_api_key=settings.brevo_api_key,
            sendgrid_api_key=settings.sendgrid_api_key,
            from_email=settings.mail.from_email,
            from_name=settings.mail.from_name,
            to_emails=settings.mail.to_emails,
        )
    except MailError as exc:
        logger.error("Configuration error: %s", exc)
        return 1
    logger.info("Using mail provider=%s", mailer.provider)

    cache = ResponseCache(settings.cache_dir, max_age_days=settings.cache_max_age_days)
    cache.prune()
    client = GitHubClient(token=settings.github_token, base_url=settings.github_api_url, cache=cache)
    try:
        ctx = PollContext(store=store, commits=client, mailer=mailer, mail=settings.mail)
        report = run_cycle(ctx, repos)
    finally:
        client.close()
    return min(report.failure_count, MAX_EXIT_STATUS)
