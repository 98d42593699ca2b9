from fastapi import APIRouter, Header, HTTPException, Request
from pydantic import BaseModel, Field
from typing import Optional
import hmac
import logging

from tvreminder.modules.transport.base import ButtonPress, TextMessage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/telegram", tags=["telegram"])


class TelegramUser(BaseModel):
    id: int


class TelegramChat(BaseModel):
    id: int


class TelegramMessage(BaseModel):
    message_id: int
    chat: TelegramChat
    from_user: Optional[TelegramUser] = Field(default=None, alias="from")
    text: Optional[str] = None


class TelegramCallbackQuery(BaseModel):
    id: str
    from_user: TelegramUser = Field(alias="from")
    message: Optional[TelegramMessage] = None
    data: Optional[str] = None


class TelegramUpdate(BaseModel):
    update_id: int
    message: Optional[TelegramMessage] = None
    callback_query: Optional[TelegramCallbackQuery] = None


def to_event(update: TelegramUpdate):
    """Inbound event for an update, or None for updates the bot does not handle"""
    if update.callback_query is not None:
        cb = update.callback_query
        if cb.message is None or cb.data is None:
            return None
        return ButtonPress(
            user_id=cb.from_user.id,
            chat_id=cb.message.chat.id,
            message_id=cb.message.message_id,
            callback_id=cb.id,
            data=cb.data,
        )

    msg = update.message
    if msg is None or msg.from_user is None or msg.text is None:
        return None
    return TextMessage(
        user_id=msg.from_user.id,
        chat_id=msg.chat.id,
        text=msg.text,
        message_id=msg.message_id,
    )


@router.post("/webhook")
async def telegram_webhook(
    update: TelegramUpdate,
    request: Request,
    x_telegram_bot_api_secret_token: Optional[str] = Header(default=None),
):
    """Telegram webhook: queue the update for the single update worker"""
    secret = getattr(request.app.state, "webhook_secret", None)
    if secret and not hmac.compare_digest(x_telegram_bot_api_secret_token or "", secret):
        logger.warning(f"Rejected webhook update {update.update_id}: bad secret token")
        raise HTTPException(status_code=403, detail="invalid secret token")

    event = to_event(update)
    if event is None:
        logger.debug(f"Ignoring update {update.update_id}")
        return {"ok": True, "queued": False}

    queued = request.app.state.update_worker.submit(event)
    return {"ok": True, "queued": queued}
