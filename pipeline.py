import os
import re
import time
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union

from telegram import Bot, InlineKeyboardButton, InlineKeyboardMarkup, Message, Update
from telegram.constants import ParseMode
from telegram.helpers import escape_markdown

from config import BotConfig
from storage import BunnyStorage

logger = logging.getLogger(__name__)

# Eligibility policy
ALLOWED_EXTENSIONS = ('.mp4', '.mkv', '.avi', '.mov', '.webm')
DEFAULT_FILENAME = 'video.mp4'

COMMAND_PATTERN = re.compile(r'^/(start|help)(@\w+)?(\s|$)', re.IGNORECASE)

FAILURE_MESSAGE = "❌ Oops! Something went wrong while processing your file."


class Outcome(Enum):
    IGNORED = 'ignored'
    GREETED = 'greeted'
    REJECTED_NO_ATTACHMENT = 'rejected_no_attachment'
    REJECTED_EXTENSION = 'rejected_extension'
    COMPLETED = 'completed'
    FAILED = 'failed'


@dataclass(frozen=True)
class InboundFile:
    """A video attachment extracted from an incoming message."""
    original_name: Optional[str]
    size_bytes: int
    remote_handle: str


@dataclass(frozen=True)
class StoredAsset:
    generated_name: str
    public_url: str


# Inbound event variants, resolved once per update by classify().

@dataclass(frozen=True)
class Command:
    first_name: Optional[str]


@dataclass(frozen=True)
class DocumentAttachment:
    file: InboundFile


@dataclass(frozen=True)
class VideoAttachment:
    file: InboundFile


@dataclass(frozen=True)
class NoAttachment:
    pass


InboundEvent = Union[Command, DocumentAttachment, VideoAttachment, NoAttachment]


def classify(message: Message) -> InboundEvent:
    """Resolve a message into exactly one inbound event variant."""
    if message.text and COMMAND_PATTERN.match(message.text):
        first_name = message.from_user.first_name if message.from_user else None
        return Command(first_name=first_name)

    if message.document:
        return DocumentAttachment(_inbound_file(message.document))
    if message.video:
        return VideoAttachment(_inbound_file(message.video))
    return NoAttachment()


def _inbound_file(attachment) -> InboundFile:
    return InboundFile(
        original_name=attachment.file_name or None,
        size_bytes=attachment.file_size or 0,
        remote_handle=attachment.file_id,
    )


def derive_extension(original_name: Optional[str]) -> str:
    """Lower-cased extension of the filename, falling back to the default name."""
    return os.path.splitext(original_name or DEFAULT_FILENAME)[1].lower()


def is_allowed_extension(ext: str) -> bool:
    return ext in ALLOWED_EXTENSIONS


def current_millis() -> int:
    return time.time_ns() // 1_000_000


def generate_name(ext: str, clock: Callable[[], int] = current_millis) -> str:
    # Millisecond timestamps can collide for uploads finishing in the same millisecond.
    return f"{clock()}{ext}"


def build_public_url(public_base_url: str, generated_name: str) -> str:
    return f"{public_base_url}/{generated_name}"


def format_size(size_bytes: Optional[int]) -> str:
    """Format a byte count as megabytes with two decimals, e.g. ``5.00 MB``."""
    return f"{(size_bytes or 0) / (1024 * 1024):.2f} MB"


def _md(text: str) -> str:
    return escape_markdown(text, version=1)


def greeting_text(first_name: Optional[str]) -> str:
    name = _md(first_name) if first_name else 'there'
    return (
        f"👋 Hello *{name}*!\n\n"
        "🎥 Send me a video file like .mp4, .mkv, .avi, .mov or video documents.\n\n"
        "🔗 I will upload it to BunnyCDN and send you a streamable link!\n\n"
        "📤 Just send your video now to get started.\n\n"
        "⚠️ Max file size depends on Telegram limits (20MB on the public Bot API, up to 2GB with a local Bot API server).\n\n"
        "Happy Streaming! 🚀"
    )


def guidance_text() -> str:
    return (
        "📎 Please send a video file (as a video or as a document).\n"
        f"Supported extensions: {', '.join(ALLOWED_EXTENSIONS)}."
    )


def rejection_text(ext: str) -> str:
    shown = _md(ext) if ext else 'unknown'
    return (
        f"⚠️ Unsupported file type *{shown}*.\n"
        f"Please send video files with extensions: {', '.join(ALLOWED_EXTENSIONS)}."
    )


def downloading_text(display_name: str, size_bytes: int) -> str:
    return f"⏳ Downloading your file *{_md(display_name)}* ({format_size(size_bytes)})..."


def uploading_text(display_name: str) -> str:
    return f"📤 Uploading *{_md(display_name)}* to BunnyCDN..."


def success_text(asset: StoredAsset) -> str:
    return (
        "✅ Upload complete!\n\n"
        "🎬 *Stream Link:*\n"
        f"[{asset.generated_name}]({asset.public_url})\n\n"
        "Click the button below to play ▶️"
    )


class UploadPipeline:
    """Turns one Telegram update into exactly one terminal reply.

    Used by both the polling bot and the webhook handler. The pipeline holds
    no per-update state, so a single instance can serve concurrent updates.
    """

    def __init__(
        self,
        bot: Bot,
        storage: BunnyStorage,
        config: BotConfig,
        clock: Callable[[], int] = current_millis,
    ):
        self.bot = bot
        self.storage = storage
        self.config = config
        self.clock = clock

    async def process(self, update: Update) -> Outcome:
        message = update.message
        if not message:
            logger.debug(f"Ignoring update {update.update_id} without a new message")
            return Outcome.IGNORED

        chat_id = message.chat_id
        event = classify(message)

        if isinstance(event, Command):
            logger.info(f"Chat {chat_id} issued start/help command")
            await self._send(chat_id, greeting_text(event.first_name))
            return Outcome.GREETED

        if isinstance(event, NoAttachment):
            logger.info(f"Chat {chat_id} sent a message without a video attachment")
            await self._send(chat_id, guidance_text())
            return Outcome.REJECTED_NO_ATTACHMENT

        return await self.upload_file(chat_id, event.file)

    async def upload_file(self, chat_id: int, file: InboundFile) -> Outcome:
        ext = derive_extension(file.original_name)
        if not is_allowed_extension(ext):
            logger.info(f"Chat {chat_id} sent unsupported file type {ext!r}")
            await self._send(chat_id, rejection_text(ext))
            return Outcome.REJECTED_EXTENSION

        # Generated once; the same name is uploaded and reported.
        generated_name = generate_name(ext, self.clock)
        display_name = file.original_name or generated_name
        logger.info(
            f"Chat {chat_id}: processing {display_name} ({format_size(file.size_bytes)}) as {generated_name}"
        )

        await self._notify(chat_id, downloading_text(display_name, file.size_bytes))
        try:
            data = await self._download(file)
            logger.info(f"Chat {chat_id}: downloaded {len(data)} bytes for {generated_name}")

            await self._notify(chat_id, uploading_text(display_name))
            await self.storage.upload(generated_name, data)
        except Exception:
            logger.exception(f"Chat {chat_id}: failed to relay {generated_name}")
            await self._send(chat_id, FAILURE_MESSAGE)
            return Outcome.FAILED

        asset = StoredAsset(
            generated_name=generated_name,
            public_url=build_public_url(self.config.public_base_url, generated_name),
        )
        keyboard = InlineKeyboardMarkup([[InlineKeyboardButton("▶️ Play Video", url=asset.public_url)]])
        await self._send(chat_id, success_text(asset), reply_markup=keyboard, disable_web_page_preview=False)
        logger.info(f"Chat {chat_id}: upload complete, {asset.public_url}")
        return Outcome.COMPLETED

    async def _download(self, file: InboundFile) -> bytes:
        """Resolve the file handle and buffer the whole file in memory."""
        tg_file = await self.bot.get_file(file.remote_handle)
        buffer = await tg_file.download_as_bytearray(read_timeout=self.config.download_timeout)
        return bytes(buffer)

    async def _send(self, chat_id: int, text: str, **kwargs) -> None:
        await self.bot.send_message(chat_id=chat_id, text=text, parse_mode=ParseMode.MARKDOWN, **kwargs)

    async def _notify(self, chat_id: int, text: str) -> None:
        """Best-effort progress message: failures are logged and dropped."""
        try:
            await self._send(chat_id, text)
        except Exception as e:
            logger.warning(f"Chat {chat_id}: could not send progress message: {e}")
