"""
Local filesystem object storage.

Objects are written below a root directory with aiofiles and served by the
app under /media, so the public URL is the configured base URL plus the key.
"""

from pathlib import Path

import aiofiles
import aiofiles.os

from wagate.core.errors import StorageError
from wagate.core.logging.logger import get_logger
from wagate.domain.interfaces import IObjectStorage


class LocalObjectStorage(IObjectStorage):
    def __init__(self, root_dir: str | Path, public_base_url: str):
        self.root_dir = Path(root_dir).resolve()
        self.public_base_url = public_base_url.rstrip("/")
        self.logger = get_logger(__name__)

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    def _path_for(self, key: str) -> Path:
        path = (self.root_dir / key).resolve()
        if not path.is_relative_to(self.root_dir):
            raise StorageError(f"Storage key escapes the media root: {key}")
        return path

    async def put_object(self, key: str, data: bytes, content_type: str) -> str:
        path = self._path_for(key)
        try:
            await aiofiles.os.makedirs(path.parent, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)
        except OSError as e:
            raise StorageError(f"Failed to write {key}: {e}") from e

        self.logger.debug(f"Stored {len(data)} bytes ({content_type}) at {key}")
        return self.public_url(key)

    async def get_object(self, key: str) -> bytes | None:
        path = self._path_for(key)
        if not path.exists():
            return None
        async with aiofiles.open(path, "rb") as f:
            return await f.read()

    async def delete_object(self, key: str) -> bool:
        path = self._path_for(key)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Failed to delete {key}: {e}") from e
        return True
