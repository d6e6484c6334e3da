from __future__ import annotations

import hashlib
import json
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachedResponse:
    etag: str
    body: Any
    next_url: Optional[str] = None


class ResponseCache:
    """On-disk ETag cache for GET responses.

    Entries are JSON files named after a hash of the request. Entries not
    written or revalidated within max_age_days are removed by prune().
    """

    def __init__(self, directory: str | Path, max_age_days: int = 30) -> None:
        self.directory = Path(directory)
        self.max_age_seconds = max_age_days * 24 * 60 * 60
        self.directory.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def key_for(url: str, params: Optional[Mapping[str, Any]] = None) -> str:
        query = "&".join(f"{k}={v}" for k, v in sorted((params or {}).items()))
        return hashlib.sha256(f"{url}?{query}".encode("utf-8")).hexdigest()

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[CachedResponse]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
            return CachedResponse(etag=data["etag"], body=data["body"], next_url=data.get("next_url"))
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Discarding unreadable cache entry %s: %s", path.name, exc)
            path.unlink(missing_ok=True)
            return None

    def put(self, key: str, etag: str, body: Any, next_url: Optional[str] = None) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump({"etag": etag, "body": body, "next_url": next_url}, f)
        os.replace(tmp_path, path)

    def touch(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.touch()

    def prune(self, now: Optional[float] = None) -> int:
        """Remove entries older than the configured age; return how many were removed."""
        now = time.time() if now is None else now
        removed = 0
        for path in self.directory.glob("*.json"):
            if now - path.stat().st_mtime > self.max_age_seconds:
                path.unlink(missing_ok=True)
                removed += 1
        if removed:
            logger.info("Pruned %s stale cache entries from %s", removed, self.directory)
        return removed
