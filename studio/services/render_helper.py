from typing import List, Optional

from studio.models.render_model import OverlayStyle, Position, RenderPlaceholder, RenderRequest
from studio.models.template_model import TEXT_TYPES, SharedTemplateData

MS_PER_SECOND = 1000

# -------------------------------------------------
# BACKGROUND (image / video)
# -------------------------------------------------

def find_background(template: SharedTemplateData) -> Optional[str]:
    """
    Background video wins over image (the editor only ever keeps one)
    """
    return template.backgroundVideo or template.backgroundImage


def is_remote(url: Optional[str]) -> bool:
    return bool(url) and url.startswith(("http://", "https://"))


RENDERABLE_TYPES = TEXT_TYPES + ("image",)


# -------------------------------------------------
# ITERATIONS -> TIMED OVERLAYS
# -------------------------------------------------

def build_render_placeholders(template: SharedTemplateData) -> List[RenderPlaceholder]:
    """
    Iteration k starts where iteration k-1 ended; every filled placeholder
    becomes one overlay for that window. Video placeholders are skipped.
    """
    overlays = []
    renderable = [p for p in template.placeholders if p.type in RENDERABLE_TYPES]

    start = 0.0
    for iteration in template.iterations:
        length = iteration.duration / MS_PER_SECOND

        for p in renderable:
            value = iteration.values.get(p.id)
            if value is None or value == "":
                continue

            overlays.append(RenderPlaceholder(
                id=p.id,
                type="image" if p.type == "image" else "text",
                value=str(value),
                startTime=start,
                duration=length,
                position=Position(x=p.x, y=p.y),
                style=None if p.type == "image" else OverlayStyle(fontSize=p.fontSize, color=p.color),
            ))

        start += length

    return overlays


def build_render_request(
    template: SharedTemplateData,
    template_url: Optional[str] = None,
    output_format: str = "mp4",
    quality: str = "medium",
) -> RenderRequest:
    url = template_url or find_background(template)
    if not is_remote(url):
        raise ValueError("A remote template video URL is required to render")

    return RenderRequest(
        templateUrl=url,
        placeholders=build_render_placeholders(template),
        outputFormat=output_format,
        quality=quality,
    )
