"""
Telegram webhook handler - FastAPI app for serverless hosting.

Configuration is read once per process, on the first request, and reused.
Each request gets its own bot and pipeline; no update state is carried over.
"""

import logging
from functools import lru_cache

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from telegram import Bot, Update

from config import BotConfig, setup_logging
from pipeline import Outcome, UploadPipeline
from storage import BunnyStorage

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Bunny video upload bot webhook")

LIVENESS_TEXT = "Bunny video upload bot is running."
OTHER_METHODS = ["GET", "HEAD", "PUT", "PATCH", "DELETE", "OPTIONS"]


@lru_cache(maxsize=1)
def get_config() -> BotConfig:
    """Load the configuration once. A ``ConfigError`` is not cached."""
    config = BotConfig.from_env()
    config.log_summary(logger)
    return config


async def process_update(data: dict) -> Outcome:
    """Run one update through the upload pipeline."""
    config = get_config()
    async with Bot(**config.bot_kwargs()) as bot:
        update = Update.de_json(data, bot)
        pipeline = UploadPipeline(bot, BunnyStorage(config), config)
        return await pipeline.process(update)


@app.post("/")
@app.post("/api/webhook")
async def webhook(request: Request):
    """Handle Telegram webhook updates"""
    try:
        data = await request.json()
        outcome = await process_update(data)
    except Exception:
        logger.exception("Webhook update failed")
        return PlainTextResponse("Internal Server Error", status_code=500)

    logger.info(f"Webhook update finished as {outcome.value}")
    return PlainTextResponse("OK")


@app.api_route("/", methods=OTHER_METHODS)
@app.api_route("/api/webhook", methods=OTHER_METHODS)
async def liveness():
    """Health check"""
    return PlainTextResponse(LIVENESS_TEXT)
