"""Chat server configuration via CHAT_* environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from shared.validators import StringListEnvSettingsSource, parse_string_list

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class ChatServerSettings(BaseSettings):
    model_config = {"env_prefix": "CHAT_"}

    log_dir: str | None = Field(default=None, min_length=1)
    static_dir: str = Field(default="frontend/public", min_length=1)
    cors_origins: list[str] = ["http://localhost:3000"]
    # When set, WebSocket upgrades from any other Origin are refused.
    ws_allowed_origin: str | None = None

    rate_limit_per_second: float = Field(default=20.0, gt=0)
    rate_limit_burst: int = Field(default=40, ge=1)
    max_decode_errors: int = Field(default=5, ge=1)
    # Per-connection outbound buffering; a client that stops reading loses frames past the limit.
    send_timeout_seconds: float = Field(default=5.0, gt=0)
    send_queue_size: int = Field(default=256, ge=1)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v, allow_empty=True)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return init_settings, StringListEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings
