from typing import Optional


def build_media_url(base_url: str, path: Optional[str]) -> Optional[str]:
    if not path:
        return None
    return f"{base_url.rstrip('/')}/media/{path.lstrip('/')}"
