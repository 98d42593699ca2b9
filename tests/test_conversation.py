"""Tests for the conversation controller: /add flow, /shows browser, commands."""

import asyncio

import pytest

from conftest import days
from tvreminder.errors import SourceError, UserError
from tvreminder.models.reminder import Reminder
from tvreminder.models.show import Show
from tvreminder.modules.transport.base import ButtonPress, TextMessage
from tvreminder.services.conversation import NO_SHOWS, ConversationController
from tvreminder.services.sessions import (
    AwaitingShowName,
    BrowsingShows,
    ChoosingEpisode,
    ChoosingSeason,
    ChoosingShow,
    Idle,
    SessionStore,
)
from tvreminder.settings import Settings
from tvreminder.utils.timezone import utc_now

USER = 7
CHAT = 70


def text(value: str) -> TextMessage:
    return TextMessage(user_id=USER, chat_id=CHAT, text=value, message_id=1)


def press(data: str = "") -> ButtonPress:
    return ButtonPress(user_id=USER, chat_id=CHAT, message_id=2, callback_id="cb", data=data)


def button_data(options):
    return [button.callback_data for row in options.keyboard for button in row]


@pytest.fixture
def sessions() -> SessionStore:
    return SessionStore()


@pytest.fixture
def controller(transport, source, sessions, session_factory) -> ConversationController:
    future = utc_now() + days(7)
    source.add_show(1, "Foo", [
        (1, 1, "Pilot", None),
        (1, 2, "Second", None),
        (2, 1, "Return", None),
    ])
    source.add_show(2, "Bar", [
        (1, 1, "One", None),
        (1, 2, "Two", None),
        (1, 3, "Three", future),
    ])
    return ConversationController(transport, source, sessions, session_factory, Settings(source_timeout=1.0))


class TestCommands:
    async def test_start(self, controller, transport) -> None:
        await controller.handle_message(text("/start"))
        assert "/add" in transport.last_text

    async def test_help_with_bot_suffix(self, controller, transport) -> None:
        await controller.handle_message(text("/help@tv_reminder_bot"))
        assert transport.last_text.startswith("Commands:")

    async def test_unknown_command(self, controller, transport) -> None:
        await controller.handle_message(text("/launch"))
        assert transport.last_text.startswith("Unknown command: /launch")

    async def test_command_resets_flow(self, controller, sessions) -> None:
        await controller.handle_message(text("/add"))
        await controller.handle_message(text("/help"))

        assert sessions.get(USER) == Idle()

    async def test_free_text_while_idle(self, controller, transport) -> None:
        await controller.handle_message(text("hello"))
        assert transport.last_text.startswith("Unexpected message received")


class TestAddFlow:
    async def test_add_without_name_asks_for_it(self, controller, transport, sessions, source) -> None:
        await controller.handle_message(text("/add"))

        assert transport.last_text == "Enter show name:"
        assert sessions.get(USER) == AwaitingShowName()

        await controller.handle_message(text("foo"))
        assert source.searches == ["foo"]
        assert isinstance(sessions.get(USER), ChoosingShow)

    async def test_add_lists_results_with_cancel(self, controller, transport, sessions) -> None:
        await controller.handle_message(text("/add Foo"))

        _, message, options = transport.sent[-1]
        assert message == "Pick the show you want to add:"
        assert button_data(options) == ["acceptShowName:1", "cancel"]

    async def test_no_results(self, controller, transport, sessions) -> None:
        await controller.handle_message(text("/add Zzz"))

        assert transport.last_text == "No shows found for: Zzz"
        assert sessions.get(USER) == Idle()

    async def test_search_failure_becomes_user_error(self, controller, source) -> None:
        source.error = SourceError("HTTP 500")

        with pytest.raises(UserError) as exc_info:
            await controller.handle_message(text("/add Foo"))
        assert exc_info.value.user_msg == "Error searching show Foo"

    async def test_search_timeout(self, transport, source, sessions, session_factory) -> None:
        async def slow_search(query):
            await asyncio.sleep(1)
            return []

        source.search = slow_search
        controller = ConversationController(
            transport, source, sessions, session_factory, Settings(source_timeout=0.01)
        )

        with pytest.raises(UserError):
            await controller.handle_message(text("/add Foo"))

    async def test_multi_season_show_asks_for_season(self, controller, transport, sessions, session_factory) -> None:
        await controller.handle_message(text("/add Foo"))
        await controller.accept_show(press(), 1)

        _, _, message, options = transport.edited[-1]
        assert message == 'TV show "Foo" added. Which season are you on?'
        assert button_data(options) == ["selectSeason:1", "selectSeason:2", "cancel"]
        assert isinstance(sessions.get(USER), ChoosingSeason)

        db = session_factory()
        try:
            assert db.query(Show).filter_by(user_id=USER, name="Foo").count() == 1
        finally:
            db.close()

    async def test_single_season_show_skips_to_episodes(self, controller, transport, sessions) -> None:
        await controller.handle_message(text("/add Bar"))
        await controller.accept_show(press(), 1)

        _, _, message, options = transport.edited[-1]
        assert message == 'TV show "Bar" added. Which episode of season 1 are you on?'
        assert button_data(options) == ["selectEpisode:1", "selectEpisode:2", "selectEpisode:3", "cancel"]
        state = sessions.get(USER)
        assert isinstance(state, ChoosingEpisode)
        assert state.season == 1

    async def test_accept_without_search_expires(self, controller) -> None:
        with pytest.raises(UserError) as exc_info:
            await controller.accept_show(press(), 1)
        assert "start over with /add" in exc_info.value.user_msg

    async def test_accept_out_of_range(self, controller) -> None:
        await controller.handle_message(text("/add Foo"))
        with pytest.raises(UserError):
            await controller.accept_show(press(), 4)

    async def test_season_then_episode(self, controller, transport, sessions) -> None:
        await controller.handle_message(text("/add Foo"))
        await controller.accept_show(press(), 1)
        await controller.select_season(press(), 1)

        assert transport.last_edit == "Which episode of season 1 are you on?"

        await controller.select_episode(press(), 2)

        assert transport.last_edit.startswith('Marked "Foo" as watched up to S01E02.')
        assert 'Next episode "Return" is already available.' in transport.last_edit
        assert sessions.get(USER) == Idle()

    async def test_episode_with_future_next_arms_reminder(
        self, controller, transport, sessions, session_factory
    ) -> None:
        await controller.handle_message(text("/add Bar"))
        await controller.accept_show(press(), 1)
        await controller.select_episode(press(), 2)

        assert "I'll notify you when it airs." in transport.last_edit
        db = session_factory()
        try:
            assert db.query(Reminder).filter_by(user_id=USER, chat_id=CHAT).count() == 1
        finally:
            db.close()

    async def test_free_text_season_episode(self, controller, transport, sessions) -> None:
        await controller.handle_message(text("/add Foo"))
        await controller.accept_show(press(), 1)
        await controller.handle_message(text("2 1"))

        assert transport.last_text.startswith('Marked "Foo" as watched up to S02E01.')
        assert sessions.get(USER) == Idle()

    @pytest.mark.parametrize("reply, answer", [
        ("1", "Wrong format of the reply, it should be: #season #episode"),
        ("x 1", "Wrong #season"),
        ("1 y", "Wrong #episode"),
    ])
    async def test_free_text_validation(self, controller, transport, sessions, reply, answer) -> None:
        await controller.handle_message(text("/add Foo"))
        await controller.accept_show(press(), 1)
        await controller.handle_message(text(reply))

        assert transport.last_text == answer
        assert isinstance(sessions.get(USER), ChoosingSeason)

    async def test_unknown_episode_ends_session(self, controller, sessions) -> None:
        await controller.handle_message(text("/add Foo"))
        await controller.accept_show(press(), 1)

        with pytest.raises(UserError) as exc_info:
            await controller.handle_message(text("9 9"))

        assert exc_info.value.user_msg == "I can't find the episode you specified"
        assert sessions.get(USER) == Idle()

    async def test_cancel(self, controller, transport, sessions) -> None:
        await controller.handle_message(text("/add Foo"))
        await controller.cancel(press())

        assert transport.last_edit == "Operation cancelled."
        assert sessions.get(USER) == Idle()


class TestShowsBrowser:
    async def _add(self, controller, name, season, number):
        await controller.handle_message(text(f"/add {name}"))
        await controller.accept_show(press(), 1)
        await controller.handle_message(text(f"{season} {number}"))

    async def test_no_shows(self, controller, transport) -> None:
        await controller.handle_message(text("/shows"))
        assert transport.last_text == NO_SHOWS

    async def test_list_and_detail(self, controller, transport, sessions) -> None:
        await self._add(controller, "Foo", 1, 1)
        await self._add(controller, "Bar", 1, 2)

        await controller.handle_message(text("/shows"))

        _, message, options = transport.sent[-1]
        assert message == "Your shows:"
        assert button_data(options) == ["selectShow:0", "selectShow:1"]
        labels = [button.text for row in options.keyboard for button in row]
        assert labels[0] == "Foo (S01E01) - Next Ep Out ✅"
        assert labels[1].startswith("🔔 Bar (S01E02) - Next Ep ")
        assert isinstance(sessions.get(USER), BrowsingShows)

        await controller.select_show(press(), 0)

        _, _, detail, options = transport.edited[-1]
        assert detail.startswith("<b>Foo</b>")
        assert "Current episode: S01E01" in detail
        assert options.parse_mode == "HTML"
        assert button_data(options) == ["toggleNotifications:0", "markNextWatched:0", "backToShows"]

    async def test_toggle_notifications_redraws(self, controller, transport) -> None:
        await self._add(controller, "Foo", 1, 1)
        await controller.handle_message(text("/shows"))

        await controller.toggle_notifications(press(), 0)
        assert "Notifications: Disabled" in transport.last_edit

        await controller.toggle_notifications(press(), 0)
        assert "Notifications: Enabled" in transport.last_edit

    async def test_mark_next_watched(self, controller, transport) -> None:
        await self._add(controller, "Foo", 1, 1)
        await controller.handle_message(text("/shows"))

        await controller.mark_next_watched(press(), 0)

        assert "Current episode: S01E02" in transport.last_edit

    async def test_back_to_shows(self, controller, transport) -> None:
        await self._add(controller, "Foo", 1, 1)
        await controller.handle_message(text("/shows"))
        await controller.select_show(press(), 0)

        await controller.back_to_shows(press())

        assert transport.last_edit == "Your shows:"

    async def test_stale_index(self, controller) -> None:
        await self._add(controller, "Foo", 1, 1)
        await controller.handle_message(text("/shows"))

        with pytest.raises(UserError):
            await controller.select_show(press(), 5)

    async def test_browser_requires_shows_session(self, controller) -> None:
        with pytest.raises(UserError) as exc_info:
            await controller.select_show(press(), 0)
        assert "/shows" in exc_info.value.user_msg

    async def test_history(self, controller, transport) -> None:
        await self._add(controller, "Foo", 1, 2)

        await controller.handle_message(text("/history"))

        assert transport.last_text == "Your shows:\n• Foo - S01E02, notifications on"
