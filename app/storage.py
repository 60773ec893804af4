import logging
import uuid
from pathlib import Path

from app.config import settings
from app.schemas import ThumbnailUpload

logger = logging.getLogger(__name__)


class ThumbnailStorage:
    """
    Stores uploaded thumbnails on the local filesystem.
    Paths handed out are relative to the storage root, e.g. "thumbnails/ab12....jpg".
    """

    def __init__(self, root: str, directory: str = "thumbnails"):
        self.root = Path(root)
        self.directory = directory

    def store(self, upload: ThumbnailUpload) -> str:
        """Write the upload under a random name and return its relative path."""
        target_dir = self.root / self.directory
        target_dir.mkdir(parents=True, exist_ok=True)

        name = uuid.uuid4().hex
        if upload.extension:
            name = f"{name}.{upload.extension}"

        (target_dir / name).write_bytes(upload.content)
        path = f"{self.directory}/{name}"
        logger.info(f"Stored thumbnail '{upload.filename}' as '{path}' ({len(upload.content)} bytes)")
        return path

    def delete(self, path: str) -> None:
        """Remove a stored file. A file that is already gone is ignored."""
        if not self.exists(path):
            logger.warning(f"Stored file '{path}' is already gone")
            return
        (self.root / path).unlink()
        logger.info(f"Deleted stored file '{path}'")

    def exists(self, path: str) -> bool:
        return (self.root / path).is_file()


def get_storage() -> ThumbnailStorage:
    """FastAPI dependency returning the storage configured in settings."""
    return ThumbnailStorage(settings.STORAGE_DIR, settings.THUMBNAIL_DIR)
