from __future__ import annotations

import os
from pathlib import Path
from typing import ClassVar

from pydantic import BaseModel, Field, HttpUrl, TypeAdapter, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources import PydanticBaseSettingsSource, YamlConfigSettingsSource

from domain.canvas_model import CanvasModelConfig
from domain.models import MIN_CONTAINER_HEIGHT, MIN_CONTAINER_WIDTH, Size

DEFAULT_CONFIG_PATH = Path("config/canvas/app.yaml")

_HTTP_URL_ADAPTER = TypeAdapter(HttpUrl)


class ApiSettings(BaseModel):
    enabled: bool = False
    base_url: str = "http://localhost:5000/api"
    timeout_seconds: float = Field(default=30.0, gt=0)
    canvas_id: str = "default"
    auth_token: str | None = None

    @field_validator("base_url", mode="after")
    @classmethod
    def validate_base_url(cls, value: str) -> str:
        normalized = value.strip()
        _HTTP_URL_ADAPTER.validate_python(normalized)
        return normalized.rstrip("/")


class EditorSettings(BaseModel):
    min_container_width: float = Field(default=MIN_CONTAINER_WIDTH, gt=0)
    min_container_height: float = Field(default=MIN_CONTAINER_HEIGHT, gt=0)
    default_container_width: float = MIN_CONTAINER_WIDTH
    default_container_height: float = MIN_CONTAINER_HEIGHT
    placement_width: float = Field(default=500.0, ge=0)
    placement_height: float = Field(default=300.0, ge=0)
    history_limit: int | None = Field(default=None, ge=1)

    @field_validator("history_limit", mode="before")
    @classmethod
    def blank_history_limit(cls, value: object) -> object:
        if isinstance(value, str) and value.strip().lower() in {"", "none", "unlimited"}:
            return None
        return value

    def to_model_config(self) -> CanvasModelConfig:
        return CanvasModelConfig(
            min_container_size=Size(self.min_container_width, self.min_container_height),
            default_container_size=Size(
                self.default_container_width, self.default_container_height
            ),
            placement_area=Size(self.placement_width, self.placement_height),
            history_limit=self.history_limit,
        )


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CANVAS_", env_nested_delimiter="__")

    api: ApiSettings = ApiSettings()
    editor: EditorSettings = EditorSettings()

    _yaml_path: ClassVar[Path | None] = None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        sources: list[PydanticBaseSettingsSource] = [
            init_settings,
            env_settings,
            dotenv_settings,
            file_secret_settings,
        ]
        if cls._yaml_path:
            sources.append(YamlConfigSettingsSource(settings_cls, yaml_file=cls._yaml_path))
        return tuple(sources)


def load_settings(config_path: Path | None = None) -> AppSettings:
    env_path = os.getenv("CANVAS_CONFIG_PATH")
    resolved_path: Path | None = None

    if config_path is not None:
        resolved_path = config_path
    elif env_path:
        resolved_path = Path(env_path)
    elif DEFAULT_CONFIG_PATH.exists():
        resolved_path = DEFAULT_CONFIG_PATH

    previous = AppSettings._yaml_path
    try:
        if resolved_path is not None:
            if not resolved_path.exists():
                msg = f"Config file not found: {resolved_path}"
                raise FileNotFoundError(msg)
            AppSettings._yaml_path = resolved_path
        return AppSettings()
    finally:
        AppSettings._yaml_path = previous
