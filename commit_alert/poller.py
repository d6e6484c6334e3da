from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Protocol, Sequence

from .config import MailSettings
from .digest import build_body, build_subject
from .github_client import GitHubError
from .mailer import MailError, MailSender
from .models import Commit, CycleReport, RepoResult
from .store import WatermarkStore
from .utils import dedupe, format_w3c, is_valid_repo_name, parse_iso_datetime

logger = logging.getLogger(__name__)

# Upstream "since" filters are inclusive; skip past the last reported commit
SINCE_EPSILON = timedelta(seconds=1)


class CommitSource(Protocol):
    def list_commits(self, owner: str, name: str, since: Optional[datetime] = None) -> List[Commit]: ...


@dataclass
class PollContext:
    store: WatermarkStore
    commits: CommitSource
    mailer: MailSender
    mail: MailSettings


def select_repositories(operands: Iterable[str], stored: Iterable[str]) -> List[str]:
    """Validated operands followed by stored repositories, without duplicates.

    Malformed operands are dropped with a warning. Stored names are trusted.
    """
    accepted: List[str] = []
    for operand in operands:
        if not is_valid_repo_name(operand):
            logger.warning(
                'Ignoring operand "%s": all operands must be in the form [github_user]/[repository]', operand
            )
            continue
        accepted.append(operand)
    return dedupe([*accepted, *stored])


def query_lower_bound(last_seen: Optional[str]) -> Optional[datetime]:
    if last_seen is None:
        return None
    return parse_iso_datetime(last_seen) + SINCE_EPSILON


def latest_commit_time(commits: Sequence[Commit]) -> datetime:
    # Upstream returns newest first, but ties and out-of-order entries happen,
    # so the maximum is taken explicitly instead of reading commits[0].
    if not commits:
        raise ValueError("commits must not be empty")
    return max(commit.committed_at for commit in commits)


def poll_repository(ctx: PollContext, repo: str) -> RepoResult:
    owner, name = repo.split("/", 1)
    last_seen = ctx.store.get_watermark(repo)
    last_seen_dt = parse_iso_datetime(last_seen) if last_seen is not None else None
    since = query_lower_bound(last_seen)

    try:
        commits = ctx.commits.list_commits(owner, name, since=since)
    except GitHubError as exc:
        logger.error("Failed checking '%s': %s", repo, exc)
        return RepoResult(repo=repo, status="query_failed", error=str(exc))

    if last_seen_dt is not None:
        commits = [c for c in commits if c.committed_at > last_seen_dt]
    if not commits:
        logger.info("No new commits in %s", repo)
        return RepoResult(repo=repo, status="empty")

    latest = latest_commit_time(commits)
    if last_seen_dt is not None:
        latest = max(latest, last_seen_dt)

    subject = build_subject(ctx.mail, repo)
    body = build_body(ctx.mail, repo, commits)
    try:
        ctx.mailer.send(subject, body)
    except MailError as exc:
        logger.error("Mail for %s failed; watermark left at %s: %s", repo, last_seen, exc)
        return RepoResult(repo=repo, status="mail_failed", commit_count=len(commits), error=str(exc))

    watermark = format_w3c(latest)
    ctx.store.set_watermark(repo, watermark)
    logger.info("Reported %s new commits in %s", len(commits), repo)
    return RepoResult(repo=repo, status="reported", commit_count=len(commits), watermark=watermark)


def run_cycle(ctx: PollContext, repos: Sequence[str]) -> CycleReport:
    report = CycleReport()
    for idx, repo in enumerate(repos, start=1):
        logger.debug("---- Checking repository %s/%s: %s ----", idx, len(repos), repo)
        report.results.append(poll_repository(ctx, repo))
    logger.info(
        "Cycle completed. Total=%s Reported=%s QueryFailures=%s MailFailures=%s",
        len(report.results),
        report.reported_count,
        report.failure_count,
        report.mail_failure_count,
    )
    return report
