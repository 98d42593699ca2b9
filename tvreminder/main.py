from fastapi import FastAPI
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import os


# Setup logging FIRST
from tvreminder.utils.logger import setup_logging, change_log_level_runtime

setup_logging(os.getenv("LOG_LEVEL", "INFO"))

from tvreminder import __version__
from tvreminder.api import webhook
from tvreminder.database import SessionLocal, init_db
from tvreminder.modules.sources.tvmaze import TVMazeSource
from tvreminder.modules.transport.telegram import TelegramTransport
from tvreminder.services.callbacks import CallbackRouter
from tvreminder.services.conversation import COMMANDS, ConversationController
from tvreminder.services.dispatcher import Dispatcher, UpdateWorker
from tvreminder.services.scheduler import ReminderScheduler
from tvreminder.services.sessions import SessionStore
from tvreminder.settings import Environment, load_settings
from tvreminder.startup import init_config


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting TV Reminder {__version__}...")

    env = Environment.from_env()
    if not env.bot_token:
        raise RuntimeError("❌ TELEGRAM_BOT_TOKEN environment variable not set!")

    try:
        init_db()
        init_config()
    except Exception as e:
        logger.error(f"✗ Database init failed: {e}")
        raise

    db = SessionLocal()
    try:
        settings = load_settings(db)
    finally:
        db.close()
    change_log_level_runtime(settings.log_level)

    transport = TelegramTransport(env.bot_token)
    source = TVMazeSource(timeout=settings.source_timeout)
    sessions = SessionStore()
    controller = ConversationController(transport, source, sessions, SessionLocal, settings)
    router = CallbackRouter(controller, transport)
    dispatcher = Dispatcher(controller, router, transport, sessions)

    update_worker = UpdateWorker(dispatcher)
    update_worker.start()

    scheduler = ReminderScheduler(
        transport,
        SessionLocal,
        interval=settings.reminder_poll_interval,
        lookahead=settings.lookahead,
        provider=settings.provider,
    )
    scheduler.start()

    try:
        await transport.set_commands(COMMANDS)
        if env.webhook_url:
            await transport.set_webhook(env.webhook_url, env.webhook_secret)
        else:
            logger.warning("TELEGRAM_WEBHOOK_URL not set - expecting the webhook to be registered externally")
    except Exception as e:
        logger.error(f"✗ Telegram setup failed: {e}")
        scheduler.stop()
        await update_worker.stop()
        await transport.close()
        raise

    app.state.update_worker = update_worker
    app.state.webhook_secret = env.webhook_secret
    app.state.scheduler = scheduler

    yield

    logger.info("Shutting down TV Reminder...")
    scheduler.stop()
    await update_worker.stop()
    await transport.close()


app = FastAPI(
    title="TV Reminder",
    description="Track TV shows and get notified when the next episode airs",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(webhook.router)


@app.get("/health")
async def health_check():
    scheduler = getattr(app.state, "scheduler", None)
    return {
        "status": "ok",
        "version": __version__,
        "scheduler_running": bool(scheduler and not scheduler.stopped),
    }


@app.get("/")
async def root():
    return JSONResponse({
        "app": "TV Reminder",
        "version": __version__,
        "webhook": "/telegram/webhook",
        "health": "/health",
    })


def run():
    import uvicorn
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))


if __name__ == "__main__":
    run()
