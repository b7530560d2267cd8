from pydantic import BaseModel, Field
from typing import Optional, List, Literal, Union


class Position(BaseModel):
    x: float
    y: float


class OverlayStyle(BaseModel):
    fontSize: Optional[Union[int, float]] = None
    color: Optional[str] = None
    fontFamily: Optional[str] = None


class RenderPlaceholder(BaseModel):
    id: str
    type: Literal["text", "image"]
    value: str
    startTime: float = Field(ge=0)      # seconds
    duration: float = Field(gt=0)       # seconds
    position: Optional[Position] = None
    style: Optional[OverlayStyle] = None


class RenderRequest(BaseModel):
    templateUrl: str
    placeholders: List[RenderPlaceholder]
    outputFormat: Literal["mp4", "webm"] = "mp4"
    quality: Literal["low", "medium", "high"] = "medium"


class RenderResult(BaseModel):
    success: bool = True
    videoUrl: str
    renderId: Optional[str] = None
    fileName: str
