from unittest.mock import AsyncMock, MagicMock

import pytest
from telegram.ext import CommandHandler, MessageHandler

import bot as polling_bot
from conftest import make_update
from pipeline import Outcome, UploadPipeline


def test_build_application_wires_pipeline(config):
    application = polling_bot.build_application(config)

    pipeline = application.bot_data[polling_bot.PIPELINE_KEY]
    assert isinstance(pipeline, UploadPipeline)
    assert pipeline.bot is application.bot
    assert pipeline.config is config

    handlers = application.handlers[0]
    assert isinstance(handlers[0], CommandHandler)
    assert handlers[0].commands == frozenset({'start', 'help'})
    assert isinstance(handlers[1], MessageHandler)
    assert application.error_handlers


def test_message_handler_skips_commands(config):
    application = polling_bot.build_application(config)
    message_handler = application.handlers[0][1]

    assert message_handler.check_update(make_update(text='/start')) in (None, False)
    assert message_handler.check_update(make_update(text='hello'))


async def test_handlers_delegate_to_pipeline():
    pipeline = MagicMock()
    pipeline.process = AsyncMock(return_value=Outcome.REJECTED_NO_ATTACHMENT)
    context = MagicMock()
    context.bot_data = {polling_bot.PIPELINE_KEY: pipeline}
    update = make_update(text='hello')

    await polling_bot.handle_message(update, context)
    await polling_bot.start_command(update, context)

    assert pipeline.process.await_count == 2


async def test_error_handler_logs(caplog):
    context = MagicMock()
    context.error = RuntimeError('kaput')

    await polling_bot.handle_error(make_update(text='hello'), context)

    assert 'update 100' in caplog.text


def test_main_exits_without_config(monkeypatch):
    for name in ('TELEGRAM_TOKEN', 'BUNNY_STORAGE_ZONE', 'BUNNY_API_KEY', 'BUNNY_PULL_ZONE'):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr('config.load_dotenv', lambda: False)

    with pytest.raises(SystemExit) as excinfo:
        polling_bot.main()

    assert excinfo.value.code == 1


def command_update(text):
    update = make_update(text=text)
    update.message.set_bot(MagicMock(username='BunnyUploadBot'))
    return update


def test_start_goes_to_command_handler(config):
    application = polling_bot.build_application(config)
    update = command_update('/start')

    matching = [h for h in application.handlers[0] if h.check_update(update)]

    assert matching[0].callback is polling_bot.start_command


@pytest.mark.parametrize('text', ['/foo', '/starts', '/start@OtherBot'])
def test_unknown_commands_reach_pipeline(config, text):
    application = polling_bot.build_application(config)
    update = command_update(text)

    matching = [h for h in application.handlers[0] if h.check_update(update)]

    assert matching
    assert matching[0].callback is polling_bot.handle_message


async def test_unknown_command_gets_guidance(config):
    application = polling_bot.build_application(config)
    pipeline = application.bot_data[polling_bot.PIPELINE_KEY]
    pipeline.bot = AsyncMock()

    outcome = await pipeline.process(make_update(text='/foo'))

    assert outcome is Outcome.REJECTED_NO_ATTACHMENT
    pipeline.bot.send_message.assert_awaited_once()


def test_local_bot_api_server(config):
    from dataclasses import replace

    local = replace(
        config,
        telegram_api_url='http://telegram-bot-api:8081/bot',
        telegram_file_url='http://telegram-bot-api:8081/file/bot',
    )

    application = polling_bot.build_application(local)

    assert application.bot.base_url.startswith('http://telegram-bot-api:8081/bot')
    assert application.bot.base_file_url.startswith('http://telegram-bot-api:8081/file/bot')
