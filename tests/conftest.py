from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from telegram import Chat, Document, Message, MessageEntity, Update, User, Video

from config import BotConfig

CHAT_ID = 4242
FIXED_MILLIS = 1717171717171


@pytest.fixture
def config():
    return BotConfig(
        telegram_token='123456:TEST-TOKEN-VALUE',
        storage_zone='my-zone',
        storage_access_key='storage-secret-key',
        public_base_url='https://cdn.example.com',
    )


@pytest.fixture
def file_bytes():
    return b'\x00\x00\x00\x18ftypmp42' + b'\x00' * 64


@pytest.fixture
def bot(file_bytes):
    bot = AsyncMock()
    tg_file = MagicMock()
    tg_file.download_as_bytearray = AsyncMock(return_value=bytearray(file_bytes))
    bot.get_file = AsyncMock(return_value=tg_file)
    bot.send_message = AsyncMock()
    return bot


@pytest.fixture
def storage():
    storage = MagicMock()
    storage.upload = AsyncMock()
    return storage


def make_message(text=None, document=None, video=None, first_name='Ana'):
    entities = None
    if text and text.startswith('/'):
        command = text.split()[0]
        entities = [MessageEntity(type=MessageEntity.BOT_COMMAND, offset=0, length=len(command))]
    return Message(
        message_id=1,
        date=datetime.now(timezone.utc),
        chat=Chat(id=CHAT_ID, type=Chat.PRIVATE),
        from_user=User(id=7, first_name=first_name, is_bot=False) if first_name is not None else None,
        text=text,
        entities=entities,
        document=document,
        video=video,
    )


def make_update(**kwargs):
    return Update(update_id=100, message=make_message(**kwargs))


def make_document(file_name='clip.mp4', file_size=5_242_880, file_id='H1'):
    return Document(file_id=file_id, file_unique_id=f'u-{file_id}', file_name=file_name, file_size=file_size)


def make_video(file_name='clip.mov', file_size=1024, file_id='V1'):
    return Video(
        file_id=file_id,
        file_unique_id=f'u-{file_id}',
        width=1280,
        height=720,
        duration=10,
        file_name=file_name,
        file_size=file_size,
    )


def sent_texts(bot):
    return [c.kwargs['text'] for c in bot.send_message.call_args_list]
