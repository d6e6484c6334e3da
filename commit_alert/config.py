from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Tuple

import yaml

# --------------------------------
# Defaults

DEFAULT_CONFIG_FILE = "config.yml"
DEFAULT_DATABASE = "data/db.sqlite"
DEFAULT_CACHE_DIR = "cache"

# Cached API responses older than this are pruned on startup
DEFAULT_CACHE_MAX_AGE_DAYS = 30

DEFAULT_GITHUB_API_URL = "https://api.github.com"

DEFAULT_SUBJECT_TEMPLATE = "New commits in {repo}"
DEFAULT_BODY_TEMPLATE = "New commits were pushed to https://github.com/{repo}:\n\n{commits}"
DEFAULT_FROM_NAME = "GitHub Commit Alert"

# Placeholders available to the subject and body templates
TEMPLATE_FIELDS = ("repo", "commits")
# --------------------------------


class ConfigError(ValueError):
    """Raised when the configuration is missing or invalid."""


@dataclass(frozen=True)
class MailSettings:
    to_emails: Tuple[str, ...]
    from_email: str
    from_name: str = DEFAULT_FROM_NAME
    subject_template: str = DEFAULT_SUBJECT_TEMPLATE
    body_template: str = DEFAULT_BODY_TEMPLATE


@dataclass
class Settings:
    database_path: Path
    cache_dir: Path
    mail: MailSettings
    sendgrid_api_key: str | None
    brevo_api_key: str | None
    github_token: str | None = None
    github_api_url: str = DEFAULT_GITHUB_API_URL
    cache_max_age_days: int = DEFAULT_CACHE_MAX_AGE_DAYS

    @staticmethod
    def load(path: str | Path = DEFAULT_CONFIG_FILE) -> "Settings":
        """Read the YAML config file and secrets from the environment."""
        config_path = Path(path)
        if not config_path.is_file() or not os.access(config_path, os.R_OK):
            raise ConfigError(
                f"Missing configuration file. Make sure {config_path} exists and is readable. "
                "Do you need to copy it from config.yml.dist?"
            )
        try:
            with config_path.open("r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Error parsing configuration file {config_path}:\n{exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"Configuration file {config_path} must contain a mapping.")

        def optional(name: str) -> str | None:
            value = os.getenv(name)
            if value is None or not value.strip():
                return None
            return value.strip()

        base_dir = config_path.resolve().parent
        cache_section = _section(raw, "cache")
        max_age = cache_section.get("max_age_days", DEFAULT_CACHE_MAX_AGE_DAYS)
        if not isinstance(max_age, int) or isinstance(max_age, bool) or max_age < 0:
            raise ConfigError("cache.max_age_days must be a non-negative integer.")

        return Settings(
            database_path=_resolve(base_dir, raw.get("database") or DEFAULT_DATABASE),
            cache_dir=_resolve(base_dir, cache_section.get("directory") or DEFAULT_CACHE_DIR),
            mail=_parse_mail(_section(raw, "mail")),
            sendgrid_api_key=optional("SENDGRID_API_KEY"),
            brevo_api_key=optional("BREVO_API_KEY"),
            github_token=optional("GITHUB_TOKEN"),
            github_api_url=optional("GITHUB_API_URL") or DEFAULT_GITHUB_API_URL,
            cache_max_age_days=max_age,
        )


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"Configuration section '{name}' must be a mapping.")
    return value


def _resolve(base_dir: Path, value: Any) -> Path:
    path = Path(str(value)).expanduser()
    return path if path.is_absolute() else base_dir / path


def _parse_mail(section: Dict[str, Any]) -> MailSettings:
    to = section.get("to")
    if isinstance(to, str):
        to = [to]
    if not to or not isinstance(to, list) or not all(isinstance(addr, str) and addr.strip() for addr in to):
        raise ConfigError("mail.to must list at least one recipient address.")

    from_email = section.get("from_email")
    if not isinstance(from_email, str) or not from_email.strip():
        raise ConfigError("mail.from_email is required.")

    subject = str(section.get("subject") or DEFAULT_SUBJECT_TEMPLATE)
    body = str(section.get("body") or DEFAULT_BODY_TEMPLATE)
    for key, template in (("mail.subject", subject), ("mail.body", body)):
        check_template(key, template)

    return MailSettings(
        to_emails=tuple(addr.strip() for addr in to),
        from_email=from_email.strip(),
        from_name=str(section.get("from_name") or DEFAULT_FROM_NAME),
        subject_template=subject,
        body_template=body,
    )


def check_template(key: str, template: str) -> None:
    try:
        template.format(**{name: name for name in TEMPLATE_FIELDS})
    except (AttributeError, KeyError, IndexError, ValueError) as exc:
        raise ConfigError(
            f"{key} template is invalid ({exc!r}); available placeholders: "
            + ", ".join("{" + name + "}" for name in TEMPLATE_FIELDS)
        ) from exc
