"""Configuration settings for asset_pipe_client.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: call options > constructor
arguments > env vars > defaults.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BUILD_SERVER = "http://127.0.0.1:7100"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the ASSET_PIPE_ prefix.
    Client constructor arguments and CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="ASSET_PIPE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Build server
    server: str = Field(
        default=DEFAULT_BUILD_SERVER,
        description="Base URI of the asset build server",
    )
    server_id: str | None = Field(
        default=None,
        description="Identity token sent as the origin-server-id header",
    )
    tag: str | None = Field(
        default=None,
        description="Tag under which feeds and instructions are published",
    )

    # Bundling flags; None leaves the decision to the build server
    minify: bool | None = Field(
        default=None,
        description="Ask the build server to minify bundles",
    )
    source_maps: bool | None = Field(
        default=None,
        description="Ask the build server to produce source maps",
    )
    rebundle: bool | None = Field(
        default=None,
        description="Ask the build server to rebundle dependent bundles on publish",
    )

    # Operational modes
    development: bool = Field(
        default=False,
        description="Serve unbundled assets locally instead of publishing",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Timeouts (in seconds)
    request_timeout: float = Field(
        default=30.0,
        ge=1,
        description="Timeout for requests to the build server",
    )


class RequestOptions(BaseModel):
    """Bundling flags for a single publish or bundle-instruction call.

    Unset fields fall back to the client's defaults.

    Attributes:
        minify: Ask the build server to minify the bundle.
        source_maps: Ask the build server to produce source maps.
        rebundle: Ask the build server to rebuild bundles that include
            the published feed (publish only).
    """

    model_config = ConfigDict(extra="forbid")

    minify: bool | None = Field(default=None)
    source_maps: bool | None = Field(default=None)
    rebundle: bool | None = Field(default=None)

    def merged_over(self, defaults: RequestOptions) -> RequestOptions:
        """Return options where fields set here override ``defaults``."""
        data = defaults.model_dump()
        data.update(self.model_dump(exclude_none=True))
        return RequestOptions(**data)


def get_settings() -> Settings:
    """Get the application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = [
    "DEFAULT_BUILD_SERVER",
    "RequestOptions",
    "Settings",
    "get_settings",
    "print_settings_json",
]
