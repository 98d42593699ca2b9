"""
Runtime settings.

Secrets and locations come from the environment; tunables live in the
`config` table (seeded by startup.init_config) so they can be changed
without a redeploy.
"""
import logging
import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from tvreminder.models.config import Config


logger = logging.getLogger(__name__)


@dataclass
class Settings:
    log_level: str = "INFO"
    reminder_poll_interval: int = 10
    reminder_lookahead_seconds: int = 300
    source_timeout: float = 5.0
    search_result_limit: int = 5
    provider: str = "tvmaze"

    @property
    def lookahead(self) -> timedelta:
        return timedelta(seconds=self.reminder_lookahead_seconds)


@dataclass
class Environment:
    bot_token: Optional[str]
    webhook_url: Optional[str]
    webhook_secret: Optional[str]

    @classmethod
    def from_env(cls) -> "Environment":
        return cls(
            bot_token=os.getenv("TELEGRAM_BOT_TOKEN") or None,
            webhook_url=os.getenv("TELEGRAM_WEBHOOK_URL") or None,
            webhook_secret=os.getenv("TELEGRAM_WEBHOOK_SECRET") or None,
        )


def get_config_value(db: Session, key: str, default=None):
    """Typed value of a config row, or default if missing or unparsable"""
    config = db.query(Config).filter_by(key=key).first()
    if config is None or config.value in (None, ""):
        return default
    try:
        return config.typed_value
    except (ValueError, TypeError) as e:
        logger.warning(f"Config {key}={config.value!r} is not a valid {config.data_type}: {e}")
        return default


def load_settings(db: Session) -> Settings:
    defaults = Settings()
    return Settings(
        log_level=str(get_config_value(db, "log_level", defaults.log_level)).upper(),
        reminder_poll_interval=get_config_value(db, "reminder_poll_interval", defaults.reminder_poll_interval),
        reminder_lookahead_seconds=get_config_value(db, "reminder_lookahead_seconds", defaults.reminder_lookahead_seconds),
        source_timeout=get_config_value(db, "source_timeout", defaults.source_timeout),
        search_result_limit=get_config_value(db, "search_result_limit", defaults.search_result_limit),
        provider=get_config_value(db, "provider", defaults.provider),
    )
