"""Tests for ReminderScheduler."""

from datetime import timedelta

import pytest

from conftest import add_episode, days
from tvreminder.errors import DatabaseError, TransportError
from tvreminder.models.reminder import Reminder
from tvreminder.models.show import Show
from tvreminder.services.reminders import ReminderStore
from tvreminder.services.scheduler import ReminderScheduler
from tvreminder.services.subscriptions import SubscriptionStore

USER = 7
CHAT = 70


@pytest.fixture
def armed(session_factory, now):
    """Foo S01E06 due now, S01E07 airing in a week"""
    db = session_factory()
    try:
        show_id = SubscriptionStore(db).add_show(USER, "Foo", 100)
        add_episode(db, 100, 1, 5)
        e6 = add_episode(db, 100, 1, 6, "Six", aired_at=now)
        e7 = add_episode(db, 100, 1, 7, "Seven", aired_at=now + days(7))
        ReminderStore(db).create_reminder(USER, show_id, e6.id, now, CHAT)
        db.commit()
        return show_id, e6.id, e7.id
    finally:
        db.close()


def pending(session_factory):
    db = session_factory()
    try:
        return [(r.show_id, r.episode_id) for r in db.query(Reminder).all()]
    finally:
        db.close()


class TestPoll:
    async def test_fires_and_chains(self, transport, session_factory, armed, now) -> None:
        show_id, e6, e7 = armed
        scheduler = ReminderScheduler(transport, session_factory)

        assert await scheduler.poll(now=now) == 1

        assert transport.sent == [(CHAT, 'Episode #6 "Six" of "Foo" (season 1) is coming out today!', None)]
        assert pending(session_factory) == [(show_id, e7)]
        db = session_factory()
        try:
            assert db.get(Show, show_id).last_watched_episode_id == e6
        finally:
            db.close()

    async def test_second_poll_sends_nothing(self, transport, session_factory, armed, now) -> None:
        scheduler = ReminderScheduler(transport, session_factory)
        await scheduler.poll(now=now)

        assert await scheduler.poll(now=now + timedelta(minutes=1)) == 0
        assert len(transport.sent) == 1

    async def test_not_due_yet(self, transport, session_factory, armed, now) -> None:
        scheduler = ReminderScheduler(transport, session_factory, lookahead=timedelta(minutes=5))

        assert await scheduler.poll(now=now - timedelta(hours=1)) == 0
        assert transport.sent == []

    async def test_lookahead_fires_early(self, transport, session_factory, armed, now) -> None:
        scheduler = ReminderScheduler(transport, session_factory, lookahead=timedelta(minutes=5))

        assert await scheduler.poll(now=now - timedelta(minutes=4)) == 1

    async def test_delivery_failure_keeps_reminder(self, transport, session_factory, armed, now) -> None:
        show_id, e6, _ = armed
        transport.fail_sends = True
        scheduler = ReminderScheduler(transport, session_factory)

        assert await scheduler.poll(now=now) == 0

        assert pending(session_factory) == [(show_id, e6)]

    async def test_stopped_scheduler_does_nothing(self, transport, session_factory, armed, now) -> None:
        scheduler = ReminderScheduler(transport, session_factory)
        scheduler.stop()

        assert await scheduler.poll(now=now) == 0
        assert transport.sent == []


def last_watched(session_factory, show_id):
    db = session_factory()
    try:
        return db.get(Show, show_id).last_watched_episode_id
    finally:
        db.close()


class TestChainRollback:
    """A failure inside chaining undoes every write of that transaction."""

    @pytest.mark.parametrize("target", ["update_last_watched", "create_reminder"])
    async def test_failure_keeps_reminder_pending(
        self, monkeypatch, transport, session_factory, armed, now, target
    ) -> None:
        show_id, e6, e7 = armed
        owner = SubscriptionStore if target == "update_last_watched" else ReminderStore

        def broken(*args, **kwargs):
            raise DatabaseError("disk I/O error")

        monkeypatch.setattr(owner, target, broken)
        scheduler = ReminderScheduler(transport, session_factory)

        assert await scheduler.poll(now=now) == 0

        assert len(transport.sent) == 1
        assert pending(session_factory) == [(show_id, e6)]
        assert last_watched(session_factory, show_id) is None

        monkeypatch.undo()

        assert await scheduler.poll(now=now) == 1
        assert len(transport.sent) == 2
        assert pending(session_factory) == [(show_id, e7)]
        assert last_watched(session_factory, show_id) == e6


class TestRejectedDelivery:
    async def test_blocked_chat_mutes_show(self, transport, session_factory, armed, now) -> None:
        show_id, e6, _ = armed
        transport.send_error = TransportError("Forbidden: bot was blocked by the user", 403)
        scheduler = ReminderScheduler(transport, session_factory)

        assert await scheduler.poll(now=now) == 0

        db = session_factory()
        try:
            assert db.get(Show, show_id).notifications_enabled is False
        finally:
            db.close()
        assert pending(session_factory) == [(show_id, e6)]

        # muted shows are no longer selected, so nothing is retried
        transport.send_error = None
        assert await scheduler.poll(now=now) == 0
        assert transport.sent == []

    async def test_rate_limit_is_retried(self, transport, session_factory, armed, now) -> None:
        show_id, _, e7 = armed
        transport.send_error = TransportError("Too Many Requests: retry after 5", 429)
        scheduler = ReminderScheduler(transport, session_factory)

        assert await scheduler.poll(now=now) == 0

        transport.send_error = None
        assert await scheduler.poll(now=now) == 1
        assert pending(session_factory) == [(show_id, e7)]


class TestLifecycle:
    async def test_start_registers_job(self, transport, session_factory) -> None:
        scheduler = ReminderScheduler(transport, session_factory, interval=30)
        scheduler.start()
        try:
            job = scheduler.scheduler.get_job(ReminderScheduler.JOB_ID)
            assert job is not None
            assert job.trigger.interval == timedelta(seconds=30)
        finally:
            scheduler.stop()

        assert scheduler.stopped is True
