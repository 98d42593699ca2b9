"""
Callback Router

Button data is a CallbackData value ("action:param1:param2") built and
parsed only through encode() / decode(). The router maps actions to the
controller's operations through a closed dispatch table.
"""
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Tuple

from tvreminder.errors import InvalidCallbackError
from tvreminder.modules.transport.base import ButtonPress, ChatTransport


logger = logging.getLogger(__name__)

# Telegram rejects callback_data longer than 64 bytes
MAX_CALLBACK_BYTES = 64

ACCEPT_SHOW_NAME = "acceptShowName"
SELECT_SEASON = "selectSeason"
SELECT_EPISODE = "selectEpisode"
SELECT_SHOW = "selectShow"
BACK_TO_SHOWS = "backToShows"
TOGGLE_NOTIFICATIONS = "toggleNotifications"
MARK_NEXT_WATCHED = "markNextWatched"
CANCEL = "cancel"


@dataclass(frozen=True)
class CallbackData:
    action: str
    params: Tuple[str, ...] = ()

    @classmethod
    def of(cls, action: str, *params) -> "CallbackData":
        return cls(action, tuple(str(p) for p in params))

    def encode(self) -> str:
        data = ":".join((self.action,) + self.params)
        if len(data.encode("utf-8")) > MAX_CALLBACK_BYTES:
            raise ValueError(f"callback data too long: {data!r}")
        return data

    @classmethod
    def decode(cls, data: str) -> "CallbackData":
        if not data or not data.strip():
            raise InvalidCallbackError("empty callback data")
        action, *params = data.split(":")
        if not action:
            raise InvalidCallbackError(f"callback data without action: {data!r}")
        return cls(action, tuple(params))

    def int_param(self, position: int = 0) -> int:
        try:
            return int(self.params[position])
        except IndexError:
            raise InvalidCallbackError(f"{self.action}: missing parameter {position}")
        except ValueError:
            raise InvalidCallbackError(f"{self.action}: parameter {position} is not a number: {self.params[position]!r}")

    def str_param(self, position: int = 0, default: str = None) -> str:
        if position < len(self.params):
            return self.params[position]
        return default


Handler = Callable[[ButtonPress, CallbackData], Awaitable[None]]


class CallbackRouter:
    def __init__(self, controller, transport: ChatTransport):
        self.transport = transport
        self.handlers: Dict[str, Handler] = {
            ACCEPT_SHOW_NAME: lambda press, cb: controller.accept_show(press, cb.int_param()),
            SELECT_SEASON: lambda press, cb: controller.select_season(press, cb.int_param()),
            SELECT_EPISODE: lambda press, cb: controller.select_episode(press, cb.int_param()),
            SELECT_SHOW: lambda press, cb: controller.select_show(press, cb.int_param()),
            BACK_TO_SHOWS: lambda press, cb: controller.back_to_shows(press),
            TOGGLE_NOTIFICATIONS: lambda press, cb: controller.toggle_notifications(press, cb.int_param()),
            MARK_NEXT_WATCHED: lambda press, cb: controller.mark_next_watched(press, cb.int_param()),
            CANCEL: lambda press, cb: controller.cancel(press),
        }

    async def route(self, press: ButtonPress) -> bool:
        """Dispatch a button press; returns False when it was ignored"""
        try:
            callback = CallbackData.decode(press.data)
        except InvalidCallbackError as e:
            logger.warning(f"Ignoring button press from user {press.user_id}: {e}")
            return False

        handler = self.handlers.get(callback.action)
        if handler is None:
            logger.warning(f"Unknown callback action {callback.action!r} from user {press.user_id}, ignoring")
            return False

        try:
            await handler(press, callback)
        except InvalidCallbackError as e:
            logger.warning(f"Ignoring button press from user {press.user_id}: {e}")
            return False
        finally:
            await self.acknowledge(press)
        return True

    async def acknowledge(self, press: ButtonPress):
        try:
            await self.transport.answer_callback(press.callback_id)
        except Exception as e:
            logger.debug(f"answer_callback failed for {press.callback_id}: {e}")
