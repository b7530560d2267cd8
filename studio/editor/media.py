import base64
import mimetypes
import os
from dataclasses import dataclass
from typing import Optional

from studio.utils.errors import MediaValidationError


@dataclass
class MediaFile:
    """A file picked by the user: either a path on disk or raw bytes."""
    name: str
    mime_type: Optional[str] = None
    path: Optional[str] = None
    content: Optional[bytes] = None

    def __post_init__(self):
        if not self.mime_type:
            guessed, _ = mimetypes.guess_type(self.name)
            self.mime_type = guessed or "application/octet-stream"

    @classmethod
    def from_path(cls, path: str, mime_type: Optional[str] = None) -> "MediaFile":
        return cls(name=os.path.basename(path), mime_type=mime_type, path=path)


def is_image(file: MediaFile) -> bool:
    return file.mime_type.startswith("image/")


def is_video(file: MediaFile) -> bool:
    return file.mime_type.startswith("video/")


def read_bytes(file: MediaFile) -> bytes:
    if file.content is not None:
        return file.content

    if not file.path:
        raise MediaValidationError(f"Could not read {file.name}")

    try:
        with open(file.path, "rb") as f:
            return f.read()
    except OSError as e:
        raise MediaValidationError(f"Could not read {file.name}: {e}") from e


def read_as_data_url(file: MediaFile) -> str:
    """
    Embeds the file as  data:<mime>;base64,<payload>
    so previews need no server round trip.
    """
    encoded = base64.b64encode(read_bytes(file)).decode("ascii")
    return f"data:{file.mime_type};base64,{encoded}"
