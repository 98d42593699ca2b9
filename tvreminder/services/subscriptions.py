"""
Subscription Store

A user's tracked shows, their last-watched episode and notification flag.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from tvreminder.errors import DatabaseError, ShowNotFoundError
from tvreminder.models.show import Show
from tvreminder.services.episode_catalog import EpisodeCatalog


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShowProgress:
    """One row of the /shows list, detached from the DB session"""
    show_id: int
    name: str
    provider_show_id: str
    notifications_enabled: bool
    season: Optional[int] = None
    episode: Optional[int] = None
    next_season: Optional[int] = None
    next_number: Optional[int] = None
    next_title: Optional[str] = None
    next_air_date: Optional[datetime] = None

    @property
    def has_progress(self) -> bool:
        return self.season is not None and self.episode is not None

    @property
    def has_next(self) -> bool:
        return self.next_season is not None and self.next_number is not None


class SubscriptionStore:
    def __init__(self, db: Session, provider: str = "tvmaze"):
        self.db = db
        self.provider = provider

    def add_show(self, user_id: int, name: str, provider_show_id) -> int:
        """Track a show; re-adding returns the existing id"""
        provider_show_id = str(provider_show_id)
        existing = self._find(user_id, provider_show_id)
        if existing:
            logger.debug(f"Show {name!r} already tracked by user {user_id} (#{existing.id})")
            return existing.id

        show = Show(
            user_id=user_id,
            name=name,
            provider=self.provider,
            provider_show_id=provider_show_id,
        )
        try:
            self.db.add(show)
            self.db.flush()
        except IntegrityError as e:
            # Lost a race against a concurrent add; the caller's transaction is rolled back
            raise DatabaseError(f"show {name!r} was added concurrently for user {user_id}") from e
        except SQLAlchemyError as e:
            raise DatabaseError(f"add show {name!r}: {e}") from e

        logger.info(f"✓ User {user_id} now tracks {name!r} (#{show.id})")
        return show.id

    def _find(self, user_id: int, provider_show_id: str) -> Optional[Show]:
        return self.db.query(Show).filter(
            Show.user_id == user_id,
            Show.provider == self.provider,
            Show.provider_show_id == provider_show_id,
        ).first()

    def get_show(self, show_id: int) -> Show:
        show = self.db.get(Show, show_id)
        if show is None:
            raise ShowNotFoundError(f"show #{show_id} not found")
        return show

    def get_user_show(self, user_id: int, show_id: int) -> Show:
        show = self.get_show(show_id)
        if show.user_id != user_id:
            raise ShowNotFoundError(f"show #{show_id} does not belong to user {user_id}")
        return show

    def list_shows(self, user_id: int) -> List[Show]:
        return self.db.query(Show).filter(Show.user_id == user_id).order_by(Show.id.asc()).all()

    def list_shows_with_progress(self, user_id: int) -> List[ShowProgress]:
        catalog = EpisodeCatalog(self.db, self.provider)
        rows = []
        for show in self.list_shows(user_id):
            last = show.last_watched_episode
            season = last.season if last else None
            number = last.number if last else None
            following = catalog.find_next_episode(show.provider_show_id, season, number)
            rows.append(ShowProgress(
                show_id=show.id,
                name=show.name,
                provider_show_id=show.provider_show_id,
                notifications_enabled=bool(show.notifications_enabled),
                season=season,
                episode=number,
                next_season=following.season if following else None,
                next_number=following.number if following else None,
                next_title=following.title if following else None,
                next_air_date=following.aired_at_utc if following else None,
            ))
        return rows

    def update_last_watched(self, show_id: int, episode_id: int):
        show = self.get_show(show_id)
        show.last_watched_episode_id = episode_id
        self.db.flush()
        logger.debug(f"Show #{show_id} last watched -> episode #{episode_id}")

    def toggle_notifications(self, show_id: int) -> bool:
        """Flip the notification flag; returns the new value"""
        show = self.get_show(show_id)
        return self.set_notifications(show_id, not show.notifications_enabled)

    def set_notifications(self, show_id: int, enabled: bool) -> bool:
        show = self.get_show(show_id)
        show.notifications_enabled = enabled
        self.db.flush()
        logger.info(f"Show #{show_id} notifications {'enabled' if enabled else 'disabled'}")
        return enabled
