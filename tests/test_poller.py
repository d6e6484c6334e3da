from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Union

import pytest

from commit_alert.config import MailSettings
from commit_alert.github_client import GitHubApiError
from commit_alert.mailer import MailError
from commit_alert.models import Commit
from commit_alert.poller import (
    PollContext,
    latest_commit_time,
    poll_repository,
    query_lower_bound,
    run_cycle,
    select_repositories,
)
from commit_alert.store import WatermarkStore

T0 = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def _commit(minutes: int, message: str = "msg") -> Commit:
    return Commit(sha=f"sha{minutes}", message=message, committed_at=T0 + timedelta(minutes=minutes))


class FakeSource:
    """Returns canned commits per repo, honouring the since bound like GitHub does."""

    def __init__(self, commits: Dict[str, Union[List[Commit], Exception]], filter_since: bool = True):
        self.commits = commits
        self.filter_since = filter_since
        self.calls: List[tuple] = []

    def list_commits(self, owner: str, name: str, since: Optional[datetime] = None) -> List[Commit]:
        self.calls.append((f"{owner}/{name}", since))
        result = self.commits.get(f"{owner}/{name}", [])
        if isinstance(result, Exception):
            raise result
        if since is not None and self.filter_since:
            return [c for c in result if c.committed_at >= since]
        return list(result)


class FakeMailer:
    provider = "fake"

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[tuple] = []

    def send(self, subject: str, body: str) -> None:
        if self.fail:
            raise MailError("smtp down")
        self.sent.append((subject, body))


@pytest.fixture
def store(tmp_path):
    with WatermarkStore(tmp_path / "db.sqlite") as s:
        yield s


def _ctx(store, source, mailer=None) -> PollContext:
    mail = MailSettings(
        to_emails=("to@example.com",),
        from_email="from@example.com",
        subject_template="New commits in {repo}",
        body_template="{repo}:\n{commits}",
    )
    return PollContext(store=store, commits=source, mailer=mailer or FakeMailer(), mail=mail)


def test_query_lower_bound_adds_one_second():
    assert query_lower_bound(None) is None
    assert query_lower_bound("2024-03-01T12:00:00+00:00") == T0 + timedelta(seconds=1)
    assert query_lower_bound("2024-03-01T12:00:00Z") == T0 + timedelta(seconds=1)


def test_latest_commit_time_scans_all_commits():
    t1, t2, t3 = _commit(1), _commit(2), _commit(3)
    assert latest_commit_time([t2, t3, t1]) == t3.committed_at
    with pytest.raises(ValueError):
        latest_commit_time([])


def test_first_report_sends_mail_and_sets_watermark(store):
    source = FakeSource({"octo/cat": [_commit(5, "Second"), _commit(1, "First")]})
    mailer = FakeMailer()

    result = poll_repository(_ctx(store, source, mailer), "octo/cat")

    assert result.status == "reported"
    assert result.commit_count == 2
    assert source.calls == [("octo/cat", None)]
    assert mailer.sent == [("New commits in octo/cat", "octo/cat:\n 1: Second\n 2: First\n")]
    assert store.get_watermark("octo/cat") == "2024-03-01T12:05:00+00:00"


def test_unsorted_commits_store_maximum_timestamp(store):
    # returned as [T3, T1, T2] and also [T1, T3, T2]
    source = FakeSource({"a/one": [_commit(3), _commit(1), _commit(2)], "a/two": [_commit(1), _commit(3), _commit(2)]})
    ctx = _ctx(store, source)

    poll_repository(ctx, "a/one")
    poll_repository(ctx, "a/two")

    assert store.get_watermark("a/one") == "2024-03-01T12:03:00+00:00"
    assert store.get_watermark("a/two") == "2024-03-01T12:03:00+00:00"


def test_stored_watermark_bounds_query_and_boundary_commit_is_not_reported(store):
    store.set_watermark("octo/cat", "2024-03-01T12:00:00+00:00")
    # an inclusive upstream that ignores the epsilon would return the boundary commit
    source = FakeSource({"octo/cat": [_commit(0, "already reported")]}, filter_since=False)
    mailer = FakeMailer()

    result = poll_repository(_ctx(store, source, mailer), "octo/cat")

    assert source.calls == [("octo/cat", T0 + timedelta(seconds=1))]
    assert result.status == "empty"
    assert mailer.sent == []
    assert store.get_watermark("octo/cat") == "2024-03-01T12:00:00+00:00"


def test_query_failure_leaves_watermark_and_continues(store):
    store.set_watermark("bad/repo", "2024-03-01T12:00:00+00:00")
    source = FakeSource({"bad/repo": GitHubApiError("GitHub returned 404: Not Found"), "good/repo": [_commit(1)]})
    mailer = FakeMailer()

    report = run_cycle(_ctx(store, source, mailer), ["bad/repo", "good/repo"])

    assert report.failure_count == 1
    assert [r.status for r in report.results] == ["query_failed", "reported"]
    assert store.get_watermark("bad/repo") == "2024-03-01T12:00:00+00:00"
    assert store.get_watermark("good/repo") == "2024-03-01T12:01:00+00:00"
    assert len(mailer.sent) == 1


def test_empty_result_sends_nothing(store, caplog):
    caplog.set_level(logging.INFO)
    mailer = FakeMailer()

    result = poll_repository(_ctx(store, FakeSource({}), mailer), "octo/cat")

    assert result.status == "empty"
    assert mailer.sent == []
    assert store.get_watermark("octo/cat") is None
    assert "No new commits in octo/cat" in caplog.text


def test_mail_failure_does_not_advance_watermark(store):
    store.set_watermark("octo/cat", "2024-03-01T12:00:00+00:00")
    source = FakeSource({"octo/cat": [_commit(10)]})

    report = run_cycle(_ctx(store, source, FakeMailer(fail=True)), ["octo/cat"])

    assert report.results[0].status == "mail_failed"
    assert report.failure_count == 0
    assert report.mail_failure_count == 1
    assert store.get_watermark("octo/cat") == "2024-03-01T12:00:00+00:00"


def test_rerun_without_new_commits_is_idempotent(store):
    source = FakeSource({"octo/cat": [_commit(2), _commit(1)], "octo/dog": [_commit(7)]})
    mailer = FakeMailer()
    ctx = _ctx(store, source, mailer)
    repos = ["octo/cat", "octo/dog"]

    run_cycle(ctx, repos)
    state_after_first = {repo: store.get_watermark(repo) for repo in store.list_repos()}
    sent_after_first = len(mailer.sent)
    run_cycle(ctx, repos)

    assert sent_after_first == 2
    assert len(mailer.sent) == 2
    assert {repo: store.get_watermark(repo) for repo in store.list_repos()} == state_after_first


def test_watermark_never_regresses(store):
    store.set_watermark("octo/cat", "2024-03-01T12:10:00+00:00")
    # upstream returns a mix of older and newer commits despite the since bound
    source = FakeSource({"octo/cat": [_commit(5), _commit(11), _commit(3)]}, filter_since=False)
    mailer = FakeMailer()

    result = poll_repository(_ctx(store, source, mailer), "octo/cat")

    assert result.commit_count == 1
    assert store.get_watermark("octo/cat") == "2024-03-01T12:11:00+00:00"


def test_select_repositories_validates_and_dedupes(caplog):
    repos = select_repositories(["badname", "a/b/c", "/name", "new/repo", "old/one"], ["old/one", "old/two"])

    assert repos == ["new/repo", "old/one", "old/two"]
    assert 'Ignoring operand "badname"' in caplog.text
    assert 'Ignoring operand "a/b/c"' in caplog.text


def test_invalid_operands_are_never_queried(store):
    source = FakeSource({})
    repos = select_repositories(["badname", "a/b/c", "ok/repo"], store.list_repos())

    run_cycle(_ctx(store, source), repos)

    assert [call[0] for call in source.calls] == ["ok/repo"]
