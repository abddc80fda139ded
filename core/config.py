"""Orchestrator configuration using pydantic-settings"""

from typing import Literal, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings

from core.providers.base import _mask_secret


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Provider mode
    provider_mode: Literal["mock", "live"] = "mock"

    # Render service
    render_api_key: str = Field(
        "", validation_alias=AliasChoices("SHOTSTACK_API_KEY", "render_api_key")
    )
    render_env: Literal["stage", "v1"] = Field(
        "stage", validation_alias=AliasChoices("SHOTSTACK_ENV", "render_env")
    )
    render_base_url: Optional[str] = None
    render_poll_interval: float = 5.0
    render_max_attempts: int = 60

    # Orchestration
    max_concurrency: Optional[int] = None
    serialize_user_runs: bool = True

    # Storage
    store_path: str = "artifacts/store"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    @property
    def effective_render_url(self) -> str:
        return self.render_base_url or f"https://api.shotstack.io/{self.render_env}"

    def __repr__(self) -> str:
        return (
            f"Settings(provider_mode={self.provider_mode!r}, "
            f"render_api_key={_mask_secret(self.render_api_key or None)}, "
            f"render_base_url={self.effective_render_url!r}, "
            f"max_concurrency={self.max_concurrency}, store_path={self.store_path!r})"
        )


def get_settings() -> Settings:
    return Settings()
