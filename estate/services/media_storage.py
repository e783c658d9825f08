"""
Local disk storage for uploaded listing media.

Swap out LocalMediaStorage for S3 / Cloudinary / etc. by implementing the same
store()/delete() pair; the property workflow only sees the returned URIs.
"""

from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os

from estate.config import settings
from estate.utils.errors import BadRequestError
from estate.utils.ids import generate_document_id
from estate.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)


class LocalMediaStorage:
    """Writes files under <root>/<category>/ and returns '<base_url>/<category>/<name>' URIs."""

    def __init__(self, root: Optional[str] = None, base_url: Optional[str] = None):
        self.root = Path(root or settings.MEDIA_ROOT)
        self.base_url = settings.MEDIA_BASE_URL if base_url is None else base_url.rstrip("/")

    def _path_for(self, uri: str) -> Optional[Path]:
        relative = uri[len(self.base_url):] if self.base_url and uri.startswith(self.base_url) else uri
        relative = relative.lstrip("/")
        path = (self.root / relative).resolve()
        # Never touch anything outside the media root
        if self.root.resolve() not in path.parents:
            return None
        return path

    async def store(self, content: bytes, category: str, filename: str = "") -> str:
        if not content:
            raise BadRequestError("No file uploaded")
        if not category or "/" in category or category.startswith("."):
            raise BadRequestError(f"Invalid upload category: {category!r}")

        ext = Path(filename).suffix.lower()
        name = f"{generate_document_id().lower()}{ext}"
        directory = self.root / category
        await aiofiles.os.makedirs(directory, exist_ok=True)

        async with aiofiles.open(directory / name, "wb") as out:
            await out.write(content)

        uri = f"{self.base_url}/{category}/{name}"
        logger.debug("Stored upload", uri=uri, size=len(content))
        return uri

    async def delete(self, uri: str) -> None:
        """Remove the file behind a URI. Missing files are ignored."""
        path = self._path_for(uri)
        if path is None:
            logger.warning("Refusing to delete path outside media root", uri=uri)
            return
        if await aiofiles.os.path.exists(path):
            await aiofiles.os.remove(path)
            logger.debug("Deleted upload", uri=uri)
