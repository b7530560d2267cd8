import logging
import os
import uuid
from typing import Optional, Tuple

from studio.services.url import build_media_url
from studio.utils.errors import StorageUploadError

logger = logging.getLogger(__name__)

RENDERED_FOLDER = "rendered-videos"


class MediaStorage:
    """
    Local object storage. Files land under  <root>/<folder>/<file_name>
    and are served by the /media static mount.
    """

    def __init__(self, root: str, base_url: str):
        self.root = root
        self.base_url = base_url

    def save(self, content: bytes, file_name: Optional[str] = None,
             folder: str = RENDERED_FOLDER, extension: str = "mp4") -> Tuple[str, str]:
        """
        Returns:
            file_name: stored name (generated when not given)
            url: public URL
        """
        safe_filename = os.path.basename(file_name or "").replace(" ", "_")
        if safe_filename in ("", ".", ".."):
            safe_filename = f"{uuid.uuid4().hex}.{extension}"

        target = os.path.join(self.root, folder)
        file_path = os.path.join(target, safe_filename)

        # upsert: an existing file with the same name is overwritten
        try:
            os.makedirs(target, exist_ok=True)
            with open(file_path, "wb") as f:
                f.write(content)
        except OSError as e:
            raise StorageUploadError(f"Upload failed: {e}") from e

        logger.info(f"Stored {len(content)} bytes at {file_path}")
        return safe_filename, build_media_url(self.base_url, f"{folder}/{safe_filename}")
