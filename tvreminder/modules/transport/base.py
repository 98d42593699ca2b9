from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class Button:
    text: str
    callback_data: str


Keyboard = List[List[Button]]


@dataclass
class ReplyOptions:
    keyboard: Optional[Keyboard] = None
    parse_mode: Optional[str] = None


@dataclass(frozen=True)
class TextMessage:
    """Inbound free text or slash command"""
    user_id: int
    chat_id: int
    text: str
    message_id: Optional[int] = None

    @property
    def is_command(self) -> bool:
        return self.text.startswith("/")

    def command(self) -> Tuple[str, str]:
        """('add', 'the expanse') for '/add@some_bot the expanse'"""
        head, _, args = self.text.strip().partition(" ")
        name = head[1:].split("@", 1)[0].lower()
        return name, args.strip()


@dataclass(frozen=True)
class ButtonPress:
    """Inbound inline button press"""
    user_id: int
    chat_id: int
    message_id: int
    callback_id: str
    data: str


@dataclass(frozen=True)
class BotCommand:
    command: str
    description: str


class ChatTransport(ABC):
    """Outbound side of the chat platform"""

    @abstractmethod
    async def send_message(self, chat_id: int, text: str, options: ReplyOptions = None):
        """Send a new message"""

    @abstractmethod
    async def edit_message(self, chat_id: int, message_id: int, text: str, options: ReplyOptions = None):
        """Replace text (and keyboard) of an earlier message"""

    @abstractmethod
    async def answer_callback(self, callback_id: str):
        """Stop the loading indicator of a pressed button"""

    async def set_commands(self, commands: List[BotCommand]):
        """Publish the command menu (optional)"""
