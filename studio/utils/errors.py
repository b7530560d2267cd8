from typing import Optional


class StudioError(Exception):
    """Base class for everything the studio raises on purpose."""


# -----------------------------------------------------------
# Editor side
# -----------------------------------------------------------
class MediaValidationError(StudioError):
    """Selected file is not acceptable (wrong MIME type, unreadable)."""


class TemplateApiError(StudioError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


# -----------------------------------------------------------
# Backend side
# -----------------------------------------------------------
class TemplateNotFound(StudioError):
    pass


class RenderConfigurationError(StudioError):
    pass


class TemplateFetchError(StudioError):
    """Template video behind templateUrl could not be reached."""


class RenderProviderError(StudioError):
    pass


class RenderTimeoutError(StudioError):
    pass


class StorageUploadError(StudioError):
    pass
