from tvreminder.modules.transport.base import (
    BotCommand,
    Button,
    ButtonPress,
    ChatTransport,
    Keyboard,
    ReplyOptions,
    TextMessage,
)

__all__ = [
    "BotCommand",
    "Button",
    "ButtonPress",
    "ChatTransport",
    "Keyboard",
    "ReplyOptions",
    "TextMessage",
]
