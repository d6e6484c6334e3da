"""Mail alerts for new commits in watched GitHub repositories."""

__all__ = [
    "config",
    "models",
    "store",
    "cache",
    "github_client",
    "mailer",
    "digest",
    "poller",
    "cli",
]
