"""BunnyCDN storage zone client."""

import logging
from typing import Optional

import httpx

from config import BotConfig

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the storage API answers with a non-2xx status."""

    def __init__(self, status_code: int, detail: str = ''):
        self.status_code = status_code
        self.detail = detail
        message = f"Storage upload failed with HTTP {status_code}"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class BunnyStorage:
    """Uploads in-memory buffers to a BunnyCDN storage zone."""

    def __init__(self, config: BotConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.endpoint = config.storage_endpoint
        self.zone = config.storage_zone
        self.access_key = config.storage_access_key
        self.timeout = config.upload_timeout
        self.transport = transport

    def object_url(self, name: str) -> str:
        return f"{self.endpoint}/{self.zone}/{name}"

    async def upload(self, name: str, data: bytes) -> None:
        """PUT ``data`` under ``name``. Raises ``StorageError`` on a non-2xx answer."""
        url = self.object_url(name)
        headers = {
            'AccessKey': self.access_key,
            'Content-Type': 'application/octet-stream',
        }
        logger.debug(f"PUT {url} ({len(data)} bytes)")
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.put(url, content=data, headers=headers)

        if not response.is_success:
            raise StorageError(response.status_code, response.text[:200])
        logger.info(f"Stored {name} in zone {self.zone} (HTTP {response.status_code})")
