import logging
from tvreminder.database import SessionLocal
from tvreminder.models.config import Config


logger = logging.getLogger(__name__)


DEFAULT_CONFIGS = [
    # key, value, module, data_type, description
    ("log_level", "INFO", "system", "string", "Log level (DEBUG, INFO, WARNING, ERROR)"),
    ("provider", "tvmaze", "source", "string", "Show metadata provider"),
    ("source_timeout", "5", "source", "float", "Timeout in seconds for search / episode listing calls"),
    ("search_result_limit", "5", "source", "int", "Search results offered as buttons"),
    ("reminder_poll_interval", "10", "scheduler", "int", "Seconds between reminder polls"),
    ("reminder_lookahead_seconds", "300", "scheduler", "int", "Reminders due within this window are sent early"),
]


def init_config(session_factory=None):
    """Seed default config rows; existing values are left alone"""
    db = (session_factory or SessionLocal)()
    try:
        for key, value, module, data_type, description in DEFAULT_CONFIGS:
            existing = db.query(Config).filter_by(key=key).first()
            if not existing:
                db.add(Config(
                    key=key,
                    value=value,
                    module=module,
                    data_type=data_type,
                    description=description,
                ))
                logger.info(f"✓ Added config: {key}")
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
    logger.info("✅ Base config initialized")
