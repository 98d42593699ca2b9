"""
Reminder Store

Pending notifications, at most one per (user, show). The chaining step
(delete delivered reminder, advance progress, arm the next one) runs on the
caller's session so it commits or rolls back as a unit.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from tvreminder.errors import DatabaseError
from tvreminder.models.episode import CachedEpisode
from tvreminder.models.reminder import Reminder
from tvreminder.models.show import Show
from tvreminder.services.episode_catalog import EpisodeCatalog
from tvreminder.services.subscriptions import SubscriptionStore
from tvreminder.utils.timezone import utc_now


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DueReminder:
    id: int
    user_id: int
    show_id: int
    episode_id: int
    remind_at: datetime
    chat_id: int
    show_name: str
    provider_show_id: str
    episode_title: str
    episode_season: int
    episode_number: int

    def notification_text(self) -> str:
        return (
            f"Episode #{self.episode_number} \"{self.episode_title}\" of \"{self.show_name}\" "
            f"(season {self.episode_season}) is coming out today!"
        )


class ReminderStore:
    def __init__(self, db: Session, provider: str = "tvmaze"):
        self.db = db
        self.provider = provider

    def create_reminder(self, user_id: int, show_id: int, episode_id: int, remind_at: datetime, chat_id: int) -> bool:
        """Arm a reminder; a pending one for the same (user, show) wins and nothing is created"""
        existing = self.get_pending(user_id, show_id)
        if existing:
            logger.debug(f"Reminder for show #{show_id} already pending (#{existing.id}), skipping")
            return False

        self.db.add(Reminder(
            user_id=user_id,
            show_id=show_id,
            episode_id=episode_id,
            remind_at=remind_at,
            chat_id=chat_id,
        ))
        self.db.flush()
        logger.info(f"⏰ Reminder armed: user={user_id} show=#{show_id} episode=#{episode_id} at {remind_at}")
        return True

    def get_pending(self, user_id: int, show_id: int) -> Optional[Reminder]:
        return self.db.query(Reminder).filter(
            Reminder.user_id == user_id,
            Reminder.show_id == show_id,
        ).first()

    def count_pending(self, user_id: int, show_id: int) -> int:
        return self.db.query(Reminder).filter(
            Reminder.user_id == user_id,
            Reminder.show_id == show_id,
        ).count()

    def delete_pending(self, user_id: int, show_id: int) -> int:
        deleted = self.db.query(Reminder).filter(
            Reminder.user_id == user_id,
            Reminder.show_id == show_id,
        ).delete(synchronize_session=False)
        self.db.flush()
        return deleted

    def get_due_reminders(self, lookahead: timedelta = timedelta(minutes=5), now: datetime = None) -> List[DueReminder]:
        """Reminders due before now + lookahead whose show still has notifications enabled"""
        horizon = (now or utc_now()) + lookahead

        rows = self.db.query(Reminder, Show, CachedEpisode).join(
            Show, Show.id == Reminder.show_id
        ).join(
            CachedEpisode, CachedEpisode.id == Reminder.episode_id
        ).filter(
            Reminder.remind_at <= horizon,
            Show.notifications_enabled.is_(True),
        ).order_by(Reminder.remind_at.asc(), Reminder.id.asc()).all()

        return [
            DueReminder(
                id=reminder.id,
                user_id=reminder.user_id,
                show_id=reminder.show_id,
                episode_id=reminder.episode_id,
                remind_at=reminder.remind_at,
                chat_id=reminder.chat_id,
                show_name=show.name,
                provider_show_id=show.provider_show_id,
                episode_title=episode.title or "",
                episode_season=episode.season,
                episode_number=episode.number,
            )
            for reminder, show, episode in rows
        ]

    def chain(self, due: DueReminder) -> Optional[int]:
        """
        Chaining step for a delivered reminder.

        Deletes it, records the delivered episode as last watched and arms a
        reminder for the following episode if its air time is known.
        Returns the id of the next episode that got a reminder, or None.
        """
        deleted = self.db.query(Reminder).filter(Reminder.id == due.id).delete(synchronize_session=False)
        if deleted != 1:
            raise DatabaseError(f"reminder #{due.id} is no longer pending")
        self.db.flush()

        SubscriptionStore(self.db, self.provider).update_last_watched(due.show_id, due.episode_id)

        catalog = EpisodeCatalog(self.db, self.provider)
        following = catalog.find_next_episode(due.provider_show_id, due.episode_season, due.episode_number)
        if following is None or following.aired_at_utc is None:
            logger.info(f"Chain for show #{due.show_id} ends after S{due.episode_season:02d}E{due.episode_number:02d}")
            return None

        if self.create_reminder(due.user_id, due.show_id, following.id, following.aired_at_utc, due.chat_id):
            return following.id
        return None
