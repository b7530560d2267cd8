"""
Preview player: cycles through iterations, showing each one for its own
duration, and renders the current one through a read-only canvas.
"""
import asyncio
import json
import logging
from typing import Callable, List, Optional, Sequence
from urllib.parse import parse_qs, urlencode, urlparse

from pydantic import ValidationError

from studio.editor.canvas import CanvasEditor, CanvasRect
from studio.editor.data_manager import DEFAULT_DURATION_MS, MS_PER_SECOND
from studio.editor.notify import Notifier
from studio.models.template_model import (
    DataIteration,
    Placeholder,
    SharedTemplateData,
    dump,
)
from studio.utils.errors import StudioError, TemplateApiError

logger = logging.getLogger(__name__)


class AsyncioScheduler:
    """call_later on the running event loop; handles expose cancel()."""

    def call_later(self, delay: float, callback: Callable[[], None]):
        return asyncio.get_running_loop().call_later(delay, callback)


def build_share_link(preview_url: str, template_id: str) -> str:
    return f"{preview_url}?{urlencode({'id': template_id})}"


class PreviewPlayer:
    def __init__(
        self,
        placeholders: Sequence[Placeholder],
        iterations: Sequence[DataIteration],
        background_image: Optional[str] = None,
        background_video: Optional[str] = None,
        scheduler=None,
        sharing_client=None,
        preview_url: str = "/preview",
        clipboard: Optional[Callable[[str], None]] = None,
        presentation=None,
        notifier: Optional[Notifier] = None,
        rect: CanvasRect = CanvasRect(),
        on_close: Optional[Callable[["PreviewPlayer"], None]] = None,
    ):
        self.placeholders = placeholders
        self.iterations: List[DataIteration] = list(iterations)
        self.background_image = background_image
        self.background_video = background_video

        self.scheduler = scheduler or AsyncioScheduler()
        self.sharing_client = sharing_client
        self.preview_url = preview_url
        self.clipboard = clipboard
        self.presentation = presentation
        self.notifier = notifier or Notifier()
        self.rect = rect
        self.on_close = on_close

        self.current_index = 0
        self.is_playing = False
        self._timer = None

    # -------------------------------------------------
    # Timer (at most one armed at any time)
    # -------------------------------------------------

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _rearm(self) -> None:
        self._cancel_timer()
        if not self.is_playing or not self.iterations:
            return

        duration = self.iterations[self.current_index].duration or DEFAULT_DURATION_MS
        self._timer = self.scheduler.call_later(duration / MS_PER_SECOND, self._advance)

    def _advance(self) -> None:
        self._timer = None
        if not self.iterations:
            return
        self.current_index = (self.current_index + 1) % len(self.iterations)
        self._rearm()

    # -------------------------------------------------
    # Transport controls
    # -------------------------------------------------

    def play(self) -> None:
        if not self.iterations:
            return
        self.is_playing = True
        self._rearm()

    def pause(self) -> None:
        self.is_playing = False
        self._cancel_timer()

    def next(self) -> None:
        if not self.iterations:
            return
        self.current_index = (self.current_index + 1) % len(self.iterations)
        self._rearm()

    def previous(self) -> None:
        if not self.iterations:
            return
        n = len(self.iterations)
        self.current_index = (self.current_index - 1 + n) % n
        self._rearm()

    def set_iterations(self, iterations: Sequence[DataIteration]) -> None:
        self.iterations = list(iterations)
        if self.current_index >= len(self.iterations):
            self.current_index = 0
        self._rearm()

    def set_background(self, image: Optional[str], video: Optional[str]) -> None:
        self.background_image = image
        self.background_video = video

    def close(self) -> None:
        """Unmount: nothing may fire afterwards."""
        self.is_playing = False
        self._cancel_timer()
        if self.on_close is not None:
            self.on_close(self)
            self.on_close = None

    @property
    def has_timer(self) -> bool:
        return self._timer is not None

    # -------------------------------------------------
    # Rendering
    # -------------------------------------------------

    @property
    def current(self) -> Optional[DataIteration]:
        if not self.iterations:
            return None
        return self.iterations[self.current_index]

    def status_text(self) -> str:
        if not self.iterations:
            return "No iterations to preview"
        return f"Iteration {self.current_index + 1} of {len(self.iterations)}"

    def canvas(self) -> CanvasEditor:
        current = self.current
        return CanvasEditor(
            self.placeholders,
            is_preview=True,
            current_data=current.values if current else None,
            rect=self.rect,
            background_image=self.background_image,
            background_video=self.background_video,
        )

    # -------------------------------------------------
    # Share / fullscreen
    # -------------------------------------------------

    def payload(self) -> dict:
        return dump(SharedTemplateData(
            backgroundImage=self.background_image,
            backgroundVideo=self.background_video,
            placeholders=list(self.placeholders),
            iterations=self.iterations,
        ))

    def share(self) -> Optional[str]:
        if self.sharing_client is None:
            self.notifier.error("Sharing is not available")
            return None

        try:
            record = self.sharing_client.create(self.payload())
            template_id = record.get("id") if isinstance(record, dict) else None
            if not template_id:
                raise TemplateApiError("Template service returned no id")
        except StudioError as e:
            logger.error(f"Share failed: {e}")
            self.notifier.error(f"Failed to share template: {e}")
            return None

        link = build_share_link(self.preview_url, template_id)
        if self.clipboard is not None:
            try:
                self.clipboard(link)
            except Exception as e:
                logger.warning(f"Clipboard write failed: {e}")
                self.notifier.error(f"Share link created but could not be copied: {link}")
                return link

        self.notifier.success("Share link copied to clipboard!")
        return link

    def toggle_fullscreen(self) -> bool:
        if self.presentation is None:
            self.notifier.error("Fullscreen is not supported")
            return False

        if self.presentation.is_fullscreen:
            self.presentation.exit_fullscreen()
            return False

        try:
            self.presentation.request_fullscreen()
        except Exception as e:
            logger.warning(f"Fullscreen request failed: {e}")
            self.notifier.error("Could not enter fullscreen")
            return False
        return True


def parse_preview_link(link_or_id: str):
    """Returns ("id", value) or ("data", decoded json)."""
    link_or_id = (link_or_id or "").strip()
    if not link_or_id:
        raise TemplateApiError("No template data found")

    if "?" not in link_or_id and "://" not in link_or_id:
        return "id", link_or_id

    query = parse_qs(urlparse(link_or_id).query)
    if query.get("id"):
        return "id", query["id"][0]

    if query.get("data"):
        try:
            return "data", json.loads(query["data"][0])
        except ValueError as e:
            raise TemplateApiError("Invalid preview link") from e

    raise TemplateApiError("No template data found")


def load_shared_preview(client, link_or_id: str, **player_kwargs) -> PreviewPlayer:
    """Fetch a shared template and build a player that replays it as stored."""
    kind, value = parse_preview_link(link_or_id)

    if kind == "id":
        record = client.get(value)
        raw = record.get("template_data") if isinstance(record, dict) else None
    else:
        raw = value

    try:
        data = SharedTemplateData.model_validate(raw)
    except ValidationError as e:
        raise TemplateApiError("Invalid preview link") from e

    return PreviewPlayer(
        data.placeholders,
        data.iterations,
        background_image=data.backgroundImage,
        background_video=data.backgroundVideo,
        sharing_client=client,
        **player_kwargs,
    )
