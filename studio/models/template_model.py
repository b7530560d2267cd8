from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict, Union, Literal
import uuid

PlaceholderType = Literal["text", "price", "category", "image", "video"]
ObjectFit = Literal["cover", "contain", "fill", "none"]

# text-like placeholders render their value as a label
TEXT_TYPES = ("text", "price", "category")

Value = Union[str, int, float]


def new_id() -> str:
    return str(uuid.uuid4())


class Placeholder(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = Field(default_factory=new_id)
    name: str
    type: PlaceholderType = "text"
    x: float = Field(ge=0, le=100)        # % of canvas width
    y: float = Field(ge=0, le=100)        # % of canvas height
    fontSize: Union[int, float] = 24
    color: str = "#000000"

    # image / video only
    width: Optional[Union[int, float]] = None
    height: Optional[Union[int, float]] = None
    objectFit: Optional[ObjectFit] = None


class DataIteration(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = Field(default_factory=new_id)
    values: Dict[str, Value] = Field(default_factory=dict)
    duration: Union[int, float] = Field(default=2000, gt=0)   # milliseconds


class TemplateData(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = Field(default_factory=new_id)
    name: str = "Untitled template"
    backgroundImage: Optional[str] = None     # data url or remote url
    backgroundVideo: Optional[str] = None
    placeholders: List[Placeholder] = Field(default_factory=list)


class SharedTemplateData(BaseModel):
    """What the editor shares: the template plus its iterations."""
    model_config = ConfigDict(extra="allow")

    backgroundImage: Optional[str] = None
    backgroundVideo: Optional[str] = None
    placeholders: List[Placeholder] = Field(default_factory=list)
    iterations: List[DataIteration] = Field(default_factory=list)


class SharedTemplate(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    template_data: SharedTemplateData


class TemplateBody(BaseModel):
    """Request body for POST / PUT."""
    template_data: SharedTemplateData


def dump(model: BaseModel) -> dict:
    """Wire representation: unset optionals are left out."""
    return model.model_dump(mode="json", exclude_none=True)
