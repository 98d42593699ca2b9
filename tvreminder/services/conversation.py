"""
Conversation Controller

Walks a user through /add (search -> show -> season -> episode), the /shows
browser and the informational commands. Handlers raise UserError; the
dispatcher turns it into chat text.
"""
import asyncio
import logging
from typing import List

from sqlalchemy.exc import SQLAlchemyError

from tvreminder.database import session_scope
from tvreminder.errors import (
    DatabaseError,
    SessionExpiredError,
    SourceError,
    SourceTimeoutError,
    UserError,
)
from tvreminder.modules.sources.base import EpisodeInfo, ShowResult, ShowSource
from tvreminder.modules.transport.base import BotCommand, ButtonPress, ChatTransport, ReplyOptions, TextMessage
from tvreminder.services import keyboards
from tvreminder.services.episode_catalog import EpisodeCatalog
from tvreminder.services.progress import ProgressOutcome, ProgressResolver
from tvreminder.services.sessions import (
    AwaitingShowName,
    BrowsingShows,
    ChoosingEpisode,
    ChoosingSeason,
    ChoosingShow,
    SessionStore,
)
from tvreminder.services.subscriptions import ShowProgress, SubscriptionStore
from tvreminder.settings import Settings
from tvreminder.utils.formatting import dedent
from tvreminder.utils.timezone import utc_now


logger = logging.getLogger(__name__)

COMMANDS = [
    BotCommand("start", "Start the bot"),
    BotCommand("help", "Show help information"),
    BotCommand("add", "Add a TV show to track"),
    BotCommand("shows", "List your tracked shows"),
    BotCommand("history", "Full list of your shows and progress"),
]

START_TEXT = dedent("""
    Hello! I'm a bot that helps you track your TV shows and notify you when new episodes air.

    /add - Add a TV show to track
    /shows - List your tracked shows
""")

HELP_TEXT = dedent("""
    Commands:

    /add <show>
    /shows - list your shows
    /history - full list with progress
    /help - show this help
""")

SESSION_EXPIRED = "Session expired. Please start over with /add."
SHOWS_EXPIRED = "No shows found. Please start over with /shows."
NO_SHOWS = "You have no shows yet. Use /add <show> to add one."


class ConversationController:
    def __init__(
        self,
        transport: ChatTransport,
        source: ShowSource,
        sessions: SessionStore,
        session_factory=None,
        settings: Settings = None,
    ):
        self.transport = transport
        self.source = source
        self.sessions = sessions
        self.session_factory = session_factory
        self.settings = settings or Settings()

    # ── inbound text ───────────────────────────────────────────────────

    async def handle_message(self, msg: TextMessage):
        if msg.is_command:
            await self.handle_command(msg)
            return

        state = self.sessions.get(msg.user_id)
        if isinstance(state, AwaitingShowName):
            await self.search_and_select(msg.user_id, msg.chat_id, msg.text)
        elif isinstance(state, (ChoosingSeason, ChoosingEpisode)):
            await self.accept_season_episode(msg, state)
        else:
            await self.transport.send_message(
                msg.chat_id, "Unexpected message received, see /help for available commands."
            )

    async def handle_command(self, msg: TextMessage):
        command, args = msg.command()
        logger.info(f"User {msg.user_id}: /{command} {args}".rstrip())
        # Any command abandons the flow in progress
        self.sessions.clear(msg.user_id)

        if command == "start":
            await self.transport.send_message(msg.chat_id, START_TEXT)
        elif command == "help":
            await self.transport.send_message(msg.chat_id, HELP_TEXT)
        elif command == "add":
            await self.add_command(msg, args)
        elif command == "shows":
            await self.shows_command(msg)
        elif command == "history":
            await self.history_command(msg)
        else:
            await self.transport.send_message(
                msg.chat_id, f"Unknown command: /{command}. See /help for available commands."
            )

    # ── /add flow ──────────────────────────────────────────────────────

    async def add_command(self, msg: TextMessage, args: str):
        if not args:
            self.sessions.set(msg.user_id, AwaitingShowName())
            await self.transport.send_message(msg.chat_id, "Enter show name:")
            return
        await self.search_and_select(msg.user_id, msg.chat_id, args)

    async def search_and_select(self, user_id: int, chat_id: int, query: str):
        query = (query or "").strip()
        if not query:
            self.sessions.set(user_id, AwaitingShowName())
            await self.transport.send_message(chat_id, "Enter show name:")
            return

        try:
            results = await self._call_source(self.source.search(query))
        except SourceError as e:
            raise UserError(e, f"Error searching show {query}")

        if not results:
            self.sessions.clear(user_id)
            await self.transport.send_message(chat_id, f"No shows found for: {query}")
            return

        self.sessions.set(user_id, ChoosingShow(tuple(results)))
        keyboard = keyboards.search_results_keyboard(results, self.settings.search_result_limit)
        await self.transport.send_message(chat_id, "Pick the show you want to add:", ReplyOptions(keyboard=keyboard))

    async def accept_show(self, press: ButtonPress, position: int):
        try:
            state = self.sessions.expect(press.user_id, ChoosingShow)
        except SessionExpiredError as e:
            raise UserError(e, "No search results found. Please start over with /add.")

        try:
            result: ShowResult = state.pick(position)
        except IndexError as e:
            raise UserError(e, "Invalid show selection.")

        try:
            with session_scope(self.session_factory) as db:
                show_id = SubscriptionStore(db, self.settings.provider).add_show(
                    press.user_id, result.name, result.id
                )
        except (DatabaseError, SQLAlchemyError) as e:
            raise UserError(e, "Error adding show, please try again later.")

        try:
            episodes: List[EpisodeInfo] = await self._call_source(self.source.list_episodes(result.id))
        except SourceError as e:
            raise UserError(e, "Episode fetching failed, please try again later.")

        provider_show_id = str(result.id)
        try:
            with session_scope(self.session_factory) as db:
                catalog = EpisodeCatalog(db, self.settings.provider)
                catalog.cache_show_episodes(provider_show_id, episodes)
                seasons = catalog.list_seasons(provider_show_id)
                episode_keyboard = None
                if len(seasons) == 1:
                    episode_keyboard = keyboards.episodes_keyboard(
                        catalog.list_episodes_by_season(provider_show_id, seasons[0])
                    )
        except SQLAlchemyError as e:
            raise UserError(e, "Error fetching seasons")

        if not seasons:
            self.sessions.clear(press.user_id)
            raise UserError(f"no episodes for show {provider_show_id}", "No episodes are known for this show yet.")

        if len(seasons) == 1:
            # Single season: skip season selection
            self.sessions.set(press.user_id, ChoosingEpisode(show_id, provider_show_id, result.name, seasons[0]))
            text = f"TV show \"{result.name}\" added. Which episode of season {seasons[0]} are you on?"
            await self.transport.edit_message(
                press.chat_id, press.message_id, text, ReplyOptions(keyboard=episode_keyboard)
            )
        else:
            self.sessions.set(press.user_id, ChoosingSeason(show_id, provider_show_id, result.name, tuple(seasons)))
            text = f"TV show \"{result.name}\" added. Which season are you on?"
            await self.transport.edit_message(
                press.chat_id, press.message_id, text, ReplyOptions(keyboard=keyboards.seasons_keyboard(seasons))
            )

    async def select_season(self, press: ButtonPress, season: int):
        try:
            state = self.sessions.expect(press.user_id, ChoosingSeason, ChoosingEpisode)
        except SessionExpiredError as e:
            raise UserError(e, SESSION_EXPIRED)

        try:
            with session_scope(self.session_factory) as db:
                episodes = EpisodeCatalog(db, self.settings.provider).list_episodes_by_season(
                    state.provider_show_id, season
                )
                keyboard = keyboards.episodes_keyboard(episodes)
        except SQLAlchemyError as e:
            raise UserError(e, "Error fetching episodes")

        if not episodes:
            raise UserError(f"season {season} of {state.provider_show_id} is empty", "Error fetching episodes")

        self.sessions.set(
            press.user_id, ChoosingEpisode(state.show_id, state.provider_show_id, state.show_name, season)
        )
        await self.transport.edit_message(
            press.chat_id, press.message_id, f"Which episode of season {season} are you on?",
            ReplyOptions(keyboard=keyboard),
        )

    async def select_episode(self, press: ButtonPress, number: int):
        try:
            state = self.sessions.expect(press.user_id, ChoosingEpisode)
        except SessionExpiredError as e:
            raise UserError(e, SESSION_EXPIRED)

        outcome = self._record_progress(press.user_id, press.chat_id, state.show_id, state.season, number)
        await self.transport.edit_message(press.chat_id, press.message_id, outcome.describe())

    async def accept_season_episode(self, msg: TextMessage, state):
        """Free-text "<season> <episode>" while a show is being configured"""
        parts = msg.text.split()
        if len(parts) != 2:
            await self.transport.send_message(msg.chat_id, "Wrong format of the reply, it should be: #season #episode")
            return
        try:
            season = int(parts[0])
        except ValueError:
            await self.transport.send_message(msg.chat_id, "Wrong #season")
            return
        try:
            number = int(parts[1])
        except ValueError:
            await self.transport.send_message(msg.chat_id, "Wrong #episode")
            return

        outcome = self._record_progress(msg.user_id, msg.chat_id, state.show_id, season, number)
        await self.transport.send_message(msg.chat_id, outcome.describe())

    def _record_progress(self, user_id: int, chat_id: int, show_id: int, season: int, number: int) -> ProgressOutcome:
        """Shared by buttons and free text; the session ends either way"""
        try:
            with session_scope(self.session_factory) as db:
                return ProgressResolver(db, self.settings.provider).record_progress(
                    user_id, chat_id, show_id, season, number
                )
        finally:
            self.sessions.clear(user_id)

    async def cancel(self, press: ButtonPress):
        self.sessions.clear(press.user_id)
        await self.transport.edit_message(press.chat_id, press.message_id, "Operation cancelled.")

    # ── /shows browser ─────────────────────────────────────────────────

    def _load_rows(self, user_id: int) -> List[ShowProgress]:
        try:
            with session_scope(self.session_factory) as db:
                return SubscriptionStore(db, self.settings.provider).list_shows_with_progress(user_id)
        except SQLAlchemyError as e:
            raise UserError(e, "Error: can't list shows at this time")

    async def shows_command(self, msg: TextMessage):
        rows = self._load_rows(msg.user_id)
        if not rows:
            self.sessions.clear(msg.user_id)
            await self.transport.send_message(msg.chat_id, NO_SHOWS)
            return

        self.sessions.set(msg.user_id, BrowsingShows(tuple(rows)))
        await self.transport.send_message(
            msg.chat_id, "Your shows:", ReplyOptions(keyboard=keyboards.shows_keyboard(rows, utc_now()))
        )

    async def history_command(self, msg: TextMessage):
        rows = self._load_rows(msg.user_id)
        if not rows:
            await self.transport.send_message(msg.chat_id, NO_SHOWS)
            return
        await self.transport.send_message(msg.chat_id, keyboards.history_text(rows))

    def _browsing_row(self, user_id: int, index: int) -> ShowProgress:
        try:
            state = self.sessions.expect(user_id, BrowsingShows)
        except SessionExpiredError as e:
            raise UserError(e, SHOWS_EXPIRED)
        try:
            return state.row(index)
        except IndexError as e:
            raise UserError(e, "Invalid show selection.")

    async def select_show(self, press: ButtonPress, index: int):
        row = self._browsing_row(press.user_id, index)
        text, keyboard = keyboards.show_detail(row, index)
        await self.transport.edit_message(
            press.chat_id, press.message_id, text, ReplyOptions(keyboard=keyboard, parse_mode="HTML")
        )

    async def back_to_shows(self, press: ButtonPress):
        try:
            state = self.sessions.expect(press.user_id, BrowsingShows)
        except SessionExpiredError as e:
            raise UserError(e, SHOWS_EXPIRED)
        await self.transport.edit_message(
            press.chat_id, press.message_id, "Your shows:",
            ReplyOptions(keyboard=keyboards.shows_keyboard(state.rows, utc_now())),
        )

    async def toggle_notifications(self, press: ButtonPress, index: int):
        row = self._browsing_row(press.user_id, index)
        try:
            with session_scope(self.session_factory) as db:
                store = SubscriptionStore(db, self.settings.provider)
                store.get_user_show(press.user_id, row.show_id)
                store.toggle_notifications(row.show_id)
        except (DatabaseError, SQLAlchemyError) as e:
            raise UserError(e, "Error toggling notifications")

        await self._refresh_and_redraw(press, index)

    async def mark_next_watched(self, press: ButtonPress, index: int):
        row = self._browsing_row(press.user_id, index)
        with session_scope(self.session_factory) as db:
            ProgressResolver(db, self.settings.provider).mark_next_watched(press.user_id, press.chat_id, row.show_id)

        await self._refresh_and_redraw(press, index)

    async def _refresh_and_redraw(self, press: ButtonPress, index: int):
        rows = self._load_rows(press.user_id)
        self.sessions.set(press.user_id, BrowsingShows(tuple(rows)))
        await self.select_show(press, index)

    # ── helpers ────────────────────────────────────────────────────────

    async def _call_source(self, call):
        """Bound any source call by the configured timeout"""
        try:
            return await asyncio.wait_for(call, timeout=self.settings.source_timeout)
        except asyncio.TimeoutError as e:
            raise SourceTimeoutError(f"show source did not answer within {self.settings.source_timeout}s") from e
