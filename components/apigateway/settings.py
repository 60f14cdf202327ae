from __future__ import annotations
from typing import List, Literal
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

APP_NAME = "devio-api"


class GatewaySettings(BaseSettings):
    """Process-level settings. Read once at startup and never re-evaluated per request."""
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    app_version: str = Field(default="0.1.0")
    app_environment: Literal["development", "production"] = Field(default="production")
    # Comma-separated; entries like https://*.example.com allow any subdomain.
    cors_allowed_origins: str = Field(default="")
    force_https: bool = Field(default=False)
    # Empty -> in-memory credential store.
    identity_db_path: str = Field(default="")

    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.cors_allowed_origins.split(",") if o.strip()]
