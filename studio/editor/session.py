import logging
from typing import List, Optional

from studio.editor.canvas import CanvasEditor, CanvasRect
from studio.editor.data_manager import DataManager
from studio.editor.media import MediaFile, is_image, is_video, read_as_data_url
from studio.editor.notify import Notifier
from studio.editor.player import PreviewPlayer
from studio.models.template_model import (
    DataIteration,
    Placeholder,
    SharedTemplateData,
    TemplateData,
    dump,
    new_id,
)
from studio.utils.errors import MediaValidationError

logger = logging.getLogger(__name__)

IMAGE_DEFAULT_SIZE = 150


class StudioSession:
    """
    Everything one editor page holds: background, placeholders and the
    iterations that fill them. Canvas, data manager and player read the
    same lists.
    """

    def __init__(self, name: str = "Untitled template", notifier: Optional[Notifier] = None):
        self.template_id = new_id()
        self.name = name
        self.background_image: Optional[str] = None
        self.background_video: Optional[str] = None
        self.placeholders: List[Placeholder] = []
        self.notifier = notifier or Notifier()

        self.players: List[PreviewPlayer] = []
        self.canvases: List[CanvasEditor] = []
        self.data = DataManager(self.placeholders, on_change=self._iterations_changed, notifier=self.notifier)

    @property
    def iterations(self) -> List[DataIteration]:
        return self.data.iterations

    def _iterations_changed(self, iterations: List[DataIteration]) -> None:
        for player in self.players:
            player.set_iterations(iterations)

    def _background_changed(self) -> None:
        for view in [*self.players, *self.canvases]:
            view.set_background(self.background_image, self.background_video)

    def _detach(self, view) -> None:
        if view in self.players:
            self.players.remove(view)
        if view in self.canvases:
            self.canvases.remove(view)

    # -------------------------------------------------
    # Placeholders
    # -------------------------------------------------

    def add_placeholder(self, fields: dict) -> Placeholder:
        fields = {k: v for k, v in fields.items() if k != "id"}
        if fields.get("type") == "image":
            fields.setdefault("width", IMAGE_DEFAULT_SIZE)
            fields.setdefault("height", IMAGE_DEFAULT_SIZE)
            fields.setdefault("objectFit", "cover")

        placeholder = Placeholder(**fields)
        self.placeholders.append(placeholder)
        self.notifier.success("Placeholder added")
        return placeholder

    def update_placeholder(self, placeholder_id: str, updates: dict) -> None:
        for idx, p in enumerate(self.placeholders):
            if p.id == placeholder_id:
                merged = {**p.model_dump(), **updates, "id": placeholder_id}
                self.placeholders[idx] = Placeholder(**merged)
                return

    def delete_placeholder(self, placeholder_id: str) -> None:
        self.placeholders[:] = [p for p in self.placeholders if p.id != placeholder_id]
        self.data.remove_placeholder(placeholder_id)
        self.notifier.success("Placeholder deleted")

    # -------------------------------------------------
    # Background media
    # -------------------------------------------------

    def upload_background(self, file: MediaFile) -> bool:
        if not (is_image(file) or is_video(file)):
            self.notifier.error("Please upload an image or video file")
            return False

        try:
            data_url = read_as_data_url(file)
        except MediaValidationError as e:
            self.notifier.error(str(e))
            return False

        if is_video(file):
            self.background_video = data_url
            self.background_image = None
            self.notifier.success("Background video uploaded")
        else:
            self.background_image = data_url
            self.background_video = None
            self.notifier.success("Background image uploaded")
        self._background_changed()
        return True

    # -------------------------------------------------
    # Views
    # -------------------------------------------------

    def template_data(self) -> TemplateData:
        return TemplateData(
            id=self.template_id,
            name=self.name,
            backgroundImage=self.background_image,
            backgroundVideo=self.background_video,
            placeholders=list(self.placeholders),
        )

    def shared_payload(self) -> dict:
        return dump(SharedTemplateData(
            backgroundImage=self.background_image,
            backgroundVideo=self.background_video,
            placeholders=list(self.placeholders),
            iterations=self.iterations,
        ))

    def canvas(self, rect: CanvasRect = CanvasRect()) -> CanvasEditor:
        canvas = CanvasEditor(
            self.placeholders,
            on_add=self.add_placeholder,
            on_update=self.update_placeholder,
            on_delete=self.delete_placeholder,
            rect=rect,
            background_image=self.background_image,
            background_video=self.background_video,
            on_close=self._detach,
        )
        self.canvases.append(canvas)
        return canvas

    def player(self, **kwargs) -> PreviewPlayer:
        kwargs.setdefault("notifier", self.notifier)
        kwargs["on_close"] = self._detach
        player = PreviewPlayer(
            self.placeholders,
            self.iterations,
            background_image=self.background_image,
            background_video=self.background_video,
            **kwargs,
        )
        self.players.append(player)
        return player
