from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass
class Commit:
    sha: str
    message: str
    committed_at: datetime
    author: Optional[str] = None
    url: Optional[str] = None


@dataclass
class RepoResult:
    repo: str
    status: str  # "reported" | "empty" | "query_failed" | "mail_failed"
    commit_count: int = 0
    watermark: Optional[str] = None
    error: Optional[str] = None


@dataclass
class CycleReport:
    results: List[RepoResult] = field(default_factory=list)

    def _count(self, status: str) -> int:
        return len([r for r in self.results if r.status == status])

    @property
    def reported_count(self) -> int:
        return self._count("reported")

    @property
    def failure_count(self) -> int:
        """Number of repositories whose commit query failed."""
        return self._count("query_failed")

    @property
    def mail_failure_count(self) -> int:
        return self._count("mail_failed")
