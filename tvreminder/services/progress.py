"""
Progress Resolver

The single place that records "watched up to (season, number)" and decides
whether the following episode needs a reminder. Free-text entry, episode
buttons and "mark next as watched" all go through record_progress().
"""
import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tvreminder.errors import DatabaseError, EpisodeNotFoundError, UserError
from tvreminder.services.episode_catalog import EpisodeCatalog
from tvreminder.services.reminders import ReminderStore
from tvreminder.services.subscriptions import SubscriptionStore
from tvreminder.utils.formatting import episode_code, format_air_time
from tvreminder.utils.timezone import utc_now


logger = logging.getLogger(__name__)


class OutcomeKind(enum.Enum):
    NO_NEXT = "no_next"
    REMINDER_SET = "reminder_set"
    ALREADY_AVAILABLE = "already_available"


@dataclass(frozen=True)
class EpisodeRef:
    id: int
    season: int
    number: int
    title: str
    aired_at_utc: Optional[datetime] = None

    @classmethod
    def from_model(cls, episode) -> "EpisodeRef":
        return cls(episode.id, episode.season, episode.number, episode.title or "", episode.aired_at_utc)


@dataclass(frozen=True)
class ProgressOutcome:
    kind: OutcomeKind
    show_name: str
    episode: EpisodeRef
    next_episode: Optional[EpisodeRef] = None

    def describe(self) -> str:
        text = f"Marked \"{self.show_name}\" as watched up to {episode_code(self.episode.season, self.episode.number)}."
        if self.kind is OutcomeKind.REMINDER_SET:
            text += (
                f" Next episode \"{self.next_episode.title}\" is expected to air on "
                f"{format_air_time(self.next_episode.aired_at_utc)}. I'll notify you when it airs."
            )
        elif self.kind is OutcomeKind.ALREADY_AVAILABLE:
            text += f" Next episode \"{self.next_episode.title}\" is already available."
        return text


class ProgressResolver:
    def __init__(self, db: Session, provider: str = "tvmaze"):
        self.db = db
        self.catalog = EpisodeCatalog(db, provider)
        self.subscriptions = SubscriptionStore(db, provider)
        self.reminders = ReminderStore(db, provider)

    def record_progress(
        self,
        user_id: int,
        chat_id: int,
        show_id: int,
        season: int,
        number: int,
        now: datetime = None,
    ) -> ProgressOutcome:
        now = now or utc_now()

        try:
            show = self.subscriptions.get_user_show(user_id, show_id)
        except DatabaseError as e:
            raise UserError(e, "I can't find this show anymore. Please add it again with /add.")

        try:
            current = self.catalog.find_episode_by_number(show.provider_show_id, season, number)
        except EpisodeNotFoundError as e:
            raise UserError(e, "I can't find the episode you specified")

        try:
            following = self.catalog.find_next_episode(show.provider_show_id, season, number)
            self.subscriptions.update_last_watched(show.id, current.id)

            # A pending reminder was armed for an older position; progress re-derives it
            if self.reminders.delete_pending(user_id, show.id):
                logger.debug(f"Dropped stale reminder for show #{show.id}")

            if following is None:
                kind = OutcomeKind.NO_NEXT
            elif following.aired_at_utc is not None and following.aired_at_utc > now:
                self.reminders.create_reminder(user_id, show.id, following.id, following.aired_at_utc, chat_id)
                kind = OutcomeKind.REMINDER_SET
            else:
                kind = OutcomeKind.ALREADY_AVAILABLE
        except (SQLAlchemyError, DatabaseError) as e:
            raise UserError(e, "Failed to update progress")

        outcome = ProgressOutcome(
            kind=kind,
            show_name=show.name,
            episode=EpisodeRef.from_model(current),
            next_episode=EpisodeRef.from_model(following) if following else None,
        )
        logger.info(f"User {user_id}: {show.name!r} watched up to {episode_code(season, number)} ({kind.value})")
        return outcome

    def mark_next_watched(self, user_id: int, chat_id: int, show_id: int, now: datetime = None) -> ProgressOutcome:
        """Advance progress by one episode"""
        try:
            show = self.subscriptions.get_user_show(user_id, show_id)
        except DatabaseError as e:
            raise UserError(e, "I can't find this show anymore. Please add it again with /add.")

        last = show.last_watched_episode
        following = self.catalog.find_next_episode(
            show.provider_show_id,
            last.season if last else None,
            last.number if last else None,
        )
        if following is None:
            raise UserError("no episode after current progress", "No next episode found.")

        return self.record_progress(user_id, chat_id, show.id, following.season, following.number, now=now)
