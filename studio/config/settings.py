from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from typing import Annotated, List, Optional

PROVIDER_ORDER = ("shotstack", "creatomate")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_ignore_empty=True, extra="ignore")

    # Mongo
    mongo_url: str = "mongodb://localhost:27017"
    database_name: str = "template_studio"
    template_store: str = "mongo"          # mongo / memory

    # Public URLs
    base_url: str = "http://127.0.0.1:8000"
    local_media_root: str = "media"
    templates_api_url: str = "http://127.0.0.1:8000/templates"
    preview_url: str = "http://127.0.0.1:3000/preview"
    cors_origins: Annotated[List[str], NoDecode] = ["*"]   # comma separated in the env

    # Render providers
    render_provider: Optional[str] = None
    shotstack_api_key: Optional[str] = None
    shotstack_api_url: str = "https://api.shotstack.io/v1"
    creatomate_api_key: Optional[str] = None
    creatomate_api_url: str = "https://api.creatomate.com/v1"
    creatomate_template_id: Optional[str] = None
    render_poll_interval: float = 5.0
    render_max_attempts: int = 60     # 5 minutes at the default interval

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_origins(cls, value):
        if isinstance(value, str):
            return [o.strip() for o in value.split(",") if o.strip()]
        return value

    @classmethod
    def from_env(cls, env_file: Optional[str] = ".env") -> "Settings":
        return cls(_env_file=env_file)

    def api_key_for(self, provider: str) -> Optional[str]:
        return {
            "shotstack": self.shotstack_api_key,
            "creatomate": self.creatomate_api_key,
        }.get(provider)

    def resolve_provider(self) -> Optional[str]:
        """
        Explicit RENDER_PROVIDER wins, otherwise the first provider
        (shotstack, then creatomate) that has a key configured.
        """
        if self.render_provider:
            name = self.render_provider.lower()
            if name in PROVIDER_ORDER and self.api_key_for(name):
                return name
            return None

        for name in PROVIDER_ORDER:
            if self.api_key_for(name):
                return name

        return None
