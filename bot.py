import sys
import logging

from telegram import Update
from telegram.ext import Application, CommandHandler, MessageHandler, filters, ContextTypes

from config import BotConfig, ConfigError, setup_logging
from pipeline import ALLOWED_EXTENSIONS, UploadPipeline
from storage import BunnyStorage

logger = logging.getLogger(__name__)

PIPELINE_KEY = 'pipeline'


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /start and /help commands."""
    await context.bot_data[PIPELINE_KEY].process(update)


async def handle_message(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle any non-command message: video, document or plain text."""
    outcome = await context.bot_data[PIPELINE_KEY].process(update)
    logger.debug(f"Update {update.update_id} finished as {outcome.value}")


async def handle_error(update: object, context: ContextTypes.DEFAULT_TYPE):
    """Log exceptions escaping a handler."""
    update_id = update.update_id if isinstance(update, Update) else None
    logger.error(f"Unhandled error while processing update {update_id}", exc_info=context.error)


def build_application(config: BotConfig) -> Application:
    builder = Application.builder().token(config.telegram_token)
    if config.telegram_api_url:
        builder = builder.base_url(config.telegram_api_url)
    if config.telegram_file_url:
        builder = builder.base_file_url(config.telegram_file_url)
    application = builder.build()
    application.bot_data[PIPELINE_KEY] = UploadPipeline(application.bot, BunnyStorage(config), config)

    application.add_handler(CommandHandler(["start", "help"], start_command, filters=filters.UpdateType.MESSAGE))
    application.add_handler(MessageHandler(filters.UpdateType.MESSAGE & ~filters.COMMAND, handle_message))
    # Unknown commands get the same guidance reply as plain text
    application.add_handler(MessageHandler(filters.UpdateType.MESSAGE & filters.COMMAND, handle_message))
    application.add_error_handler(handle_error)

    async def post_init(application: Application) -> None:
        await application.bot.set_my_commands([
            ("start", "Start the bot"),
            ("help", "Show help message")
        ])
        logger.info("Bot commands set successfully")

    application.post_init = post_init
    return application


def main() -> None:
    """Start the bot using polling."""
    setup_logging()

    try:
        config = BotConfig.from_env()
    except ConfigError as e:
        logger.error(str(e))
        sys.exit(1)

    config.log_summary(logger)
    logger.info(f"ALLOWED_EXTENSIONS: {', '.join(ALLOWED_EXTENSIONS)}")

    application = build_application(config)

    # Run the bot until the user presses Ctrl-C
    logger.info("Bot started...")
    application.run_polling(allowed_updates=Update.ALL_TYPES)


if __name__ == '__main__':
    main()
