"""
Telegram Bot API transport
"""
import logging
from typing import List, Optional

import httpx

from tvreminder.errors import TransportError
from tvreminder.modules.transport.base import BotCommand, ChatTransport, Keyboard, ReplyOptions
from tvreminder.utils.network import create_httpx_client


logger = logging.getLogger(__name__)


def keyboard_markup(keyboard: Optional[Keyboard]) -> Optional[dict]:
    if keyboard is None:
        return None
    return {
        "inline_keyboard": [
            [{"text": button.text, "callback_data": button.callback_data} for button in row]
            for row in keyboard
        ]
    }


class TelegramTransport(ChatTransport):
    BASE_URL = "https://api.telegram.org"

    def __init__(self, token: str, timeout: float = 10.0, client: httpx.AsyncClient = None):
        self.token = token
        self.client = client or create_httpx_client(timeout=timeout)

    async def _request(self, method: str, payload: dict) -> dict:
        url = f"{self.BASE_URL}/bot{self.token}/{method}"
        try:
            resp = await self.client.post(url, json=payload)
        except httpx.TimeoutException as e:
            raise TransportError(f"Telegram {method}: timeout") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Telegram {method}: {e}") from e

        try:
            data = resp.json()
        except ValueError:
            data = {}

        if resp.status_code != 200 or not data.get("ok"):
            description = data.get("description") or resp.text[:100]
            raise TransportError(f"Telegram {method}: HTTP {resp.status_code} {description}", resp.status_code)

        return data.get("result")

    @staticmethod
    def _with_options(payload: dict, options: Optional[ReplyOptions]) -> dict:
        if options:
            markup = keyboard_markup(options.keyboard)
            if markup is not None:
                payload["reply_markup"] = markup
            if options.parse_mode:
                payload["parse_mode"] = options.parse_mode
        return payload

    async def send_message(self, chat_id: int, text: str, options: ReplyOptions = None):
        payload = self._with_options({"chat_id": chat_id, "text": text}, options)
        return await self._request("sendMessage", payload)

    async def edit_message(self, chat_id: int, message_id: int, text: str, options: ReplyOptions = None):
        payload = self._with_options(
            {"chat_id": chat_id, "message_id": message_id, "text": text}, options
        )
        return await self._request("editMessageText", payload)

    async def answer_callback(self, callback_id: str):
        return await self._request("answerCallbackQuery", {"callback_query_id": callback_id})

    async def set_commands(self, commands: List[BotCommand]):
        payload = {"commands": [{"command": c.command, "description": c.description} for c in commands]}
        await self._request("setMyCommands", payload)
        logger.info(f"✓ Registered {len(commands)} bot commands")

    async def set_webhook(self, url: str, secret: str = None):
        payload = {"url": url, "allowed_updates": ["message", "callback_query"]}
        if secret:
            payload["secret_token"] = secret
        await self._request("setWebhook", payload)
        logger.info(f"✓ Webhook registered: {url}")

    async def close(self):
        await self.client.aclose()
