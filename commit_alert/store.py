from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)


class WatermarkStore:
    """SQLite-backed mapping of owner/name to the last seen commit time.

    A repository is watched exactly when it has a row here. Timestamps are
    stored as W3C strings, not native date types.
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(self.db_path))
        self.ensure_schema()

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "WatermarkStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def ensure_schema(self) -> None:
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS repos(
              name TEXT NOT NULL PRIMARY KEY,
              last_seen_commit_time TEXT NOT NULL
            )
            """
        )
        self.conn.commit()

    def get_watermark(self, repo: str) -> Optional[str]:
        """Return the stored timestamp for repo, or None if it was never recorded."""
        row = self.conn.execute(
            "SELECT last_seen_commit_time FROM repos WHERE name = ?", (repo,)
        ).fetchone()
        return row[0] if row else None

    def set_watermark(self, repo: str, timestamp: str) -> None:
        with self.conn:
            self.conn.execute(
                """
                INSERT INTO repos(name, last_seen_commit_time) VALUES (?, ?)
                ON CONFLICT(name) DO UPDATE SET last_seen_commit_time = excluded.last_seen_commit_time
                """,
                (repo, timestamp),
            )
        logger.info("Watermark for %s set to %s", repo, timestamp)

    def list_repos(self) -> List[str]:
        cur = self.conn.execute("SELECT name FROM repos ORDER BY name")
        return [row[0] for row in cur.fetchall()]

    def remove_repo(self, repo: str) -> int:
        """Delete repo; return the number of rows removed (0 or 1)."""
        with self.conn:
            cur = self.conn.execute("DELETE FROM repos WHERE name = ?", (repo,))
        return cur.rowcount
