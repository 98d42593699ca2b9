import asyncio
import logging
from typing import Optional, Union

from tvreminder.errors import UserError, get_user_message
from tvreminder.modules.transport.base import ButtonPress, ChatTransport, TextMessage
from tvreminder.services.callbacks import CallbackRouter
from tvreminder.services.conversation import ConversationController
from tvreminder.services.sessions import SessionStore

logger = logging.getLogger(__name__)

InboundEvent = Union[TextMessage, ButtonPress]

GENERIC_ERROR = "Something went wrong, please try again later."


class Dispatcher:
    """Routes inbound events and is the only place that turns errors into chat text"""

    def __init__(
        self,
        controller: ConversationController,
        router: CallbackRouter,
        transport: ChatTransport,
        sessions: SessionStore,
    ):
        self.controller = controller
        self.router = router
        self.transport = transport
        self.sessions = sessions

    async def dispatch(self, event: InboundEvent):
        try:
            async with self.sessions.locked(event.user_id):
                if isinstance(event, ButtonPress):
                    await self.router.route(event)
                else:
                    await self.controller.handle_message(event)
        except UserError as e:
            logger.warning(f"User {event.user_id}: {e} -> {e.user_msg!r}")
            await self._reply(event.chat_id, get_user_message(e))
        except Exception as e:
            logger.error(f"✗ Handling event for user {event.user_id} failed: {e}", exc_info=True)
            await self._reply(event.chat_id, GENERIC_ERROR)

    async def _reply(self, chat_id: int, text: str):
        try:
            await self.transport.send_message(chat_id, text)
        except Exception as e:
            logger.error(f"✗ Could not deliver error message to chat {chat_id}: {e}")


class UpdateWorker:
    """Processes inbound events one at a time, in arrival order"""

    def __init__(self, dispatcher: Dispatcher, max_queue: int = 1000):
        self.dispatcher = dispatcher
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue)
        self.task: Optional[asyncio.Task] = None

    def start(self):
        if self.task and not self.task.done():
            logger.warning("Update worker already running")
            return
        self.task = asyncio.create_task(self._worker_loop(), name="update-worker")
        logger.info("✓ Update worker started")

    async def stop(self):
        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
            self.task = None
        logger.info("Update worker stopped")

    def submit(self, event: InboundEvent) -> bool:
        try:
            self.queue.put_nowait(event)
            return True
        except asyncio.QueueFull:
            logger.warning(f"Update queue full, dropping event from user {event.user_id}")
            return False

    async def _worker_loop(self):
        while True:
            event = await self.queue.get()
            try:
                await self.dispatcher.dispatch(event)
            finally:
                self.queue.task_done()
