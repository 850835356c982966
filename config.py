import os
import sys
import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

DEFAULT_STORAGE_ENDPOINT = 'https://storage.bunnycdn.com'
DEFAULT_UPLOAD_TIMEOUT = 1800  # 30 minutes
DEFAULT_DOWNLOAD_TIMEOUT = 300  # 5 minutes

REQUIRED_VARS = ('TELEGRAM_TOKEN', 'BUNNY_STORAGE_ZONE', 'BUNNY_API_KEY', 'BUNNY_PULL_ZONE')


class ConfigError(Exception):
    """Raised when the environment does not describe a usable configuration."""
    pass


def setup_logging() -> None:
    """Configure root logging once for either entrypoint."""
    debug = os.getenv('ENABLE_DEBUG_LOGGING', 'false').lower() == 'true'
    logging.basicConfig(
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        level=logging.DEBUG if debug else logging.INFO,
        handlers=[logging.StreamHandler(sys.stdout)]
    )
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('telegram').setLevel(logging.WARNING)
    logging.getLogger('telegram.ext').setLevel(logging.WARNING)


def mask_secret(value: str) -> str:
    if len(value) <= 8:
        return '***'
    return f"{value[:4]}...{value[-4:]}"


def _parse_seconds(env: Mapping[str, str], name: str, default: int) -> int:
    raw = (env.get(name) or '').strip()
    if not raw:
        return default
    try:
        seconds = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer number of seconds, got {raw!r}")
    if seconds <= 0:
        raise ConfigError(f"{name} must be positive, got {seconds}")
    return seconds


@dataclass(frozen=True)
class BotConfig:
    telegram_token: str
    storage_zone: str
    storage_access_key: str
    public_base_url: str
    storage_endpoint: str = DEFAULT_STORAGE_ENDPOINT
    upload_timeout: int = DEFAULT_UPLOAD_TIMEOUT
    download_timeout: int = DEFAULT_DOWNLOAD_TIMEOUT
    telegram_api_url: Optional[str] = None
    telegram_file_url: Optional[str] = None

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> 'BotConfig':
        """Build the configuration from the environment.

        When ``env`` is omitted, a ``.env`` file is loaded into the process
        environment first. All missing required variables are reported in a
        single ``ConfigError``.
        """
        if env is None:
            load_dotenv()
            env = os.environ

        values = {name: (env.get(name) or '').strip() for name in REQUIRED_VARS}
        missing = [name for name, value in values.items() if not value]
        if missing:
            raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")

        endpoint = (env.get('BUNNY_STORAGE_ENDPOINT') or '').strip() or DEFAULT_STORAGE_ENDPOINT

        return cls(
            telegram_token=values['TELEGRAM_TOKEN'],
            storage_zone=values['BUNNY_STORAGE_ZONE'].strip('/'),
            storage_access_key=values['BUNNY_API_KEY'],
            public_base_url=values['BUNNY_PULL_ZONE'].rstrip('/'),
            storage_endpoint=endpoint.rstrip('/'),
            upload_timeout=_parse_seconds(env, 'UPLOAD_TIMEOUT', DEFAULT_UPLOAD_TIMEOUT),
            download_timeout=_parse_seconds(env, 'DOWNLOAD_TIMEOUT', DEFAULT_DOWNLOAD_TIMEOUT),
            telegram_api_url=(env.get('TELEGRAM_API_URL') or '').strip() or None,
            telegram_file_url=(env.get('TELEGRAM_FILE_URL') or '').strip() or None,
        )

    def log_summary(self, logger: logging.Logger) -> None:
        logger.info("Starting bot with configuration:")
        logger.info(f"TELEGRAM_TOKEN: {mask_secret(self.telegram_token)}")
        logger.info(f"BUNNY_STORAGE_ZONE: {self.storage_zone}")
        logger.info(f"BUNNY_API_KEY: {mask_secret(self.storage_access_key)}")
        logger.info(f"BUNNY_PULL_ZONE: {self.public_base_url}")
        logger.info(f"BUNNY_STORAGE_ENDPOINT: {self.storage_endpoint}")
        logger.info(f"UPLOAD_TIMEOUT: {self.upload_timeout}")
        logger.info(f"DOWNLOAD_TIMEOUT: {self.download_timeout}")
        logger.info(f"TELEGRAM_API_URL: {self.telegram_api_url or 'default'}")
        logger.info(f"TELEGRAM_FILE_URL: {self.telegram_file_url or 'default'}")

    def bot_kwargs(self) -> dict:
        """Keyword arguments for a standalone ``telegram.Bot``."""
        kwargs = {'token': self.telegram_token}
        if self.telegram_api_url:
            kwargs['base_url'] = self.telegram_api_url
        if self.telegram_file_url:
            kwargs['base_file_url'] = self.telegram_file_url
        return kwargs
