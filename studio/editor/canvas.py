"""
Canvas editor: placeholders positioned over a background.

Pointer input arrives as plain calls (`click`, `pointer_down`,
`pointer_move`, `pointer_up`) carrying client coordinates. Positions are
stored as percentages of the canvas so they survive any resolution.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Union

from studio.models.template_model import Placeholder, PlaceholderType, Value

logger = logging.getLogger(__name__)

DEFAULT_FONT_SIZE = 24
DEFAULT_COLOR = "#000000"

EDITABLE_FIELDS = ("name", "type", "fontSize", "color")


@dataclass(frozen=True)
class CanvasRect:
    left: float = 0
    top: float = 0
    width: float = 1280
    height: float = 720


def clamp(value: float, low: float = 0, high: float = 100) -> float:
    return max(low, min(high, value))


def to_percent(rect: CanvasRect, px: float, py: float):
    """(pointer - origin) / size * 100, clamped to the canvas."""
    x = (px - rect.left) / rect.width * 100
    y = (py - rect.top) / rect.height * 100
    return clamp(x), clamp(y)


@dataclass
class PlaceholderView:
    id: str
    kind: PlaceholderType
    label: str
    x: float
    y: float
    fontSize: Union[int, float]
    color: str
    selected: bool = False


class PointerHub:
    """Document-level pointer listeners (move / up)."""

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {"move": [], "up": []}

    def add(self, event: str, fn: Callable) -> None:
        self._listeners[event].append(fn)

    def remove(self, event: str, fn: Callable) -> None:
        if fn in self._listeners[event]:
            self._listeners[event].remove(fn)

    def dispatch(self, event: str, px: float, py: float) -> None:
        for fn in list(self._listeners[event]):
            fn(px, py)

    def count(self) -> int:
        return sum(len(v) for v in self._listeners.values())


class DragSession:
    """
    One drag gesture. Acquired on pointer-down, released exactly once on
    pointer-up (or when the editor starts another drag / is closed).
    """

    def __init__(self, editor: "CanvasEditor", placeholder_id: str):
        self.editor = editor
        self.placeholder_id = placeholder_id
        self.active = True

        editor.pointers.add("move", self.move)
        editor.pointers.add("up", self._on_up)

    def move(self, px: float, py: float) -> None:
        if not self.active:
            return
        x, y = to_percent(self.editor.rect, px, py)
        self.editor.on_update(self.placeholder_id, {"x": x, "y": y})

    def _on_up(self, px: float, py: float) -> None:
        self.release()

    def release(self) -> None:
        if not self.active:
            return
        self.active = False
        self.editor.pointers.remove("move", self.move)
        self.editor.pointers.remove("up", self._on_up)
        if self.editor.drag is self:
            self.editor.drag = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False


class PlaceholderEditor:
    """Inline property editor for the selected placeholder."""

    def __init__(self, canvas: "CanvasEditor", placeholder: Placeholder):
        self.canvas = canvas
        self.placeholder = placeholder

    def update(self, **fields) -> None:
        unknown = set(fields) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Not editable: {', '.join(sorted(unknown))}")
        self.canvas.on_update(self.placeholder.id, fields)

    def delete(self) -> None:
        self.canvas.on_delete(self.placeholder.id)
        self.canvas.selected_id = None


def _noop(*args):
    return None


class CanvasEditor:
    def __init__(
        self,
        placeholders: Sequence[Placeholder],
        on_add: Callable[[dict], None] = _noop,
        on_update: Callable[[str, dict], None] = _noop,
        on_delete: Callable[[str], None] = _noop,
        is_preview: bool = False,
        current_data: Optional[Dict[str, Value]] = None,
        rect: CanvasRect = CanvasRect(),
        background_image: Optional[str] = None,
        background_video: Optional[str] = None,
        on_close: Optional[Callable[["CanvasEditor"], None]] = None,
    ):
        self.placeholders = placeholders
        self.on_add = on_add
        self.on_update = on_update
        self.on_delete = on_delete
        self.is_preview = is_preview
        self.current_data = current_data
        self.rect = rect
        self.background_image = background_image
        self.background_video = background_video
        self.on_close = on_close

        self.pointers = PointerHub()
        self.drag: Optional[DragSession] = None
        self.selected_id: Optional[str] = None

    def _find(self, placeholder_id: str) -> Optional[Placeholder]:
        return next((p for p in self.placeholders if p.id == placeholder_id), None)

    # -------------------------------------------------
    # Pointer input
    # -------------------------------------------------

    def click(self, px: float, py: float, target_placeholder_id: Optional[str] = None) -> None:
        if self.is_preview:
            return

        # a click on a placeholder selects it and stops there
        if target_placeholder_id is not None:
            self.select(target_placeholder_id)
            return

        x, y = to_percent(self.rect, px, py)
        self.on_add({
            "name": f"Placeholder {len(self.placeholders) + 1}",
            "type": "text",
            "x": x,
            "y": y,
            "fontSize": DEFAULT_FONT_SIZE,
            "color": DEFAULT_COLOR,
        })

    def pointer_down(self, placeholder_id: str, px: float = 0, py: float = 0) -> Optional[DragSession]:
        if self.is_preview:
            return None

        if self.drag is not None:
            self.drag.release()

        self.selected_id = placeholder_id
        self.drag = DragSession(self, placeholder_id)
        return self.drag

    def pointer_move(self, px: float, py: float) -> None:
        self.pointers.dispatch("move", px, py)

    def pointer_up(self, px: float = 0, py: float = 0) -> None:
        self.pointers.dispatch("up", px, py)

    @property
    def is_dragging(self) -> bool:
        return self.drag is not None

    # -------------------------------------------------
    # Selection
    # -------------------------------------------------

    def select(self, placeholder_id: Optional[str]) -> None:
        if self.is_preview:
            return
        self.selected_id = placeholder_id

    @property
    def selected(self) -> Optional[Placeholder]:
        if self.selected_id is None:
            return None
        return self._find(self.selected_id)

    def editor(self) -> Optional[PlaceholderEditor]:
        if self.is_preview:
            return None
        placeholder = self.selected
        if placeholder is None:
            return None
        return PlaceholderEditor(self, placeholder)

    # -------------------------------------------------
    # Rendering
    # -------------------------------------------------

    def label_for(self, placeholder: Placeholder) -> str:
        if self.current_data is not None and placeholder.id in self.current_data:
            return str(self.current_data[placeholder.id])
        return placeholder.name

    def render(self) -> List[PlaceholderView]:
        return [
            PlaceholderView(
                id=p.id,
                kind=p.type,
                label=self.label_for(p),
                x=p.x,
                y=p.y,
                fontSize=p.fontSize,
                color=p.color,
                selected=(p.id == self.selected_id and not self.is_dragging),
            )
            for p in self.placeholders
        ]

    def hint(self) -> Optional[str]:
        if not self.is_preview and not self.placeholders:
            return "Click anywhere to add a placeholder"
        return None

    def set_background(self, image: Optional[str], video: Optional[str]) -> None:
        self.background_image = image
        self.background_video = video

    def close(self) -> None:
        if self.drag is not None:
            self.drag.release()
        if self.on_close is not None:
            self.on_close(self)
            self.on_close = None
