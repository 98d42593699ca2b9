from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from datetime import timedelta
import logging

from tvreminder.database import session_scope
from tvreminder.errors import TransportError
from tvreminder.modules.transport.base import ChatTransport
from tvreminder.services.reminders import DueReminder, ReminderStore
from tvreminder.services.subscriptions import SubscriptionStore
from tvreminder.utils.timezone import utc_now

logger = logging.getLogger(__name__)


class ReminderScheduler:
    """
    Polls the reminder table on a fixed interval and fires due reminders.

    Delivery happens before the chaining transaction commits: a crash in
    between re-sends the notification on the next poll (at-least-once).
    """

    JOB_ID = "reminder_poll"

    def __init__(
        self,
        transport: ChatTransport,
        session_factory=None,
        interval: int = 10,
        lookahead: timedelta = timedelta(minutes=5),
        provider: str = "tvmaze",
    ):
        self.transport = transport
        self.session_factory = session_factory
        self.interval = interval
        self.lookahead = lookahead
        self.provider = provider
        self.scheduler = None
        self.stopped = False

    def start(self):
        """Register the polling job on an AsyncIOScheduler (needs a running event loop)"""
        if self.scheduler and self.scheduler.running:
            logger.warning("Reminder scheduler already running")
            return

        self.stopped = False
        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self.poll,
            trigger=IntervalTrigger(seconds=self.interval),
            id=self.JOB_ID,
            name="Reminder Poll",
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info(f"✓ Reminder scheduler started (interval: {self.interval}s, lookahead: {self.lookahead})")

    def stop(self):
        """Signal the loop to stop; a running poll finishes its current batch"""
        self.stopped = True
        if self.scheduler and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("Reminder scheduler stopped")

    async def poll(self, now=None) -> int:
        """One polling iteration; returns how many reminders were delivered and chained"""
        if self.stopped:
            return 0

        try:
            with session_scope(self.session_factory) as db:
                due = ReminderStore(db, self.provider).get_due_reminders(self.lookahead, now=now or utc_now())
        except Exception as e:
            logger.error(f"Loading due reminders failed: {e}", exc_info=True)
            return 0

        if not due:
            return 0

        logger.info(f"{len(due)} reminders due")
        fired = 0
        for reminder in due:
            if await self.fire(reminder):
                fired += 1
        return fired

    async def fire(self, reminder: DueReminder) -> bool:
        logger.info(
            f"Sending reminder chat={reminder.chat_id} show={reminder.show_name!r} "
            f"episode={reminder.episode_number} title={reminder.episode_title!r}"
        )
        try:
            await self.transport.send_message(reminder.chat_id, reminder.notification_text())
        except TransportError as e:
            if e.permanent:
                self.mute(reminder, e)
            else:
                logger.error(f"✗ Delivering reminder #{reminder.id} failed, retrying next poll: {e}")
            return False
        except Exception as e:
            logger.error(f"✗ Delivering reminder #{reminder.id} failed, retrying next poll: {e}")
            return False

        try:
            with session_scope(self.session_factory) as db:
                next_episode_id = ReminderStore(db, self.provider).chain(reminder)
        except Exception as e:
            logger.error(f"✗ Chaining reminder #{reminder.id} rolled back, retrying next poll: {e}", exc_info=True)
            return False

        if next_episode_id:
            logger.info(f"✓ Reminder #{reminder.id} delivered, next armed for episode #{next_episode_id}")
        else:
            logger.info(f"✓ Reminder #{reminder.id} delivered, chain ended")
        return True

    def mute(self, reminder: DueReminder, error: TransportError):
        """
        The chat rejects messages for good (e.g. the bot was blocked).

        Notifications for the show are switched off; the reminder stays
        pending and fires once the user turns them back on in /shows.
        """
        logger.warning(f"✗ Chat {reminder.chat_id} rejected reminder #{reminder.id}, muting show #{reminder.show_id}: {error}")
        try:
            with session_scope(self.session_factory) as db:
                SubscriptionStore(db, self.provider).set_notifications(reminder.show_id, False)
        except Exception as e:
            logger.error(f"✗ Muting show #{reminder.show_id} failed: {e}", exc_info=True)
