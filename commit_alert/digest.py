from __future__ import annotations

from typing import List, Sequence

from .config import MailSettings
from .models import Commit

# Continuation lines of a multi-line commit message line up under the first
CONTINUATION_INDENT = "    "


def format_commit_entry(index: int, message: str) -> str:
    lines = message.rstrip().splitlines() or [""]
    return f"{index:2d}: " + ("\n" + CONTINUATION_INDENT).join(lines)


def build_digest(commits: Sequence[Commit]) -> str:
    """1-indexed listing of commit messages, one entry per commit, newest first."""
    entries: List[str] = [format_commit_entry(idx, commit.message) for idx, commit in enumerate(commits, start=1)]
    return "\n".join(entries) + "\n" if entries else ""


def build_subject(mail: MailSettings, repo: str) -> str:
    return mail.subject_template.format(repo=repo, commits="")


def build_body(mail: MailSettings, repo: str, commits: Sequence[Commit]) -> str:
    return mail.body_template.format(repo=repo, commits=build_digest(commits))
