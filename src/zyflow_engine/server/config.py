"""Configuration for the REST server.

The server starts without external credentials. Scheduler and connector
credentials are only checked when a pass actually needs them.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from zyflow_engine.engine.config import EngineSettings


class ServerSettings(EngineSettings):
    """Engine settings plus HTTP hosting concerns."""

    host: str = Field(default="127.0.0.1", validation_alias="ZYFLOW_HOST")
    port: int = Field(default=8000, validation_alias="ZYFLOW_PORT", ge=1, le=65535)

    cors_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000",
        validation_alias="ZYFLOW_CORS_ORIGINS",
        description="Comma-separated list of allowed CORS origins.",
    )

    model_config = SettingsConfigDict(env_prefix="", env_file=".env", extra="ignore")

    def parsed_cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
