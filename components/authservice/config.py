from __future__ import annotations
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

MIN_SECRET_BYTES = 32


class AuthSettings(BaseSettings):
    """Token and credential settings, read from AUTH_* environment variables."""
    model_config = SettingsConfigDict(env_prefix="AUTH_", env_file=".env", case_sensitive=False, extra="ignore")

    secret: SecretStr = Field(default=SecretStr(""))
    kid: str = Field(default="primary")
    issuer: str = Field(default="devio-api")
    audience: str = Field(default="https://localhost")
    token_lifetime_seconds: int = Field(default=7200, gt=0)  # 2 hours
    hash_iterations: int = Field(default=260_000, gt=0)
    min_secret_bytes: int = Field(default=MIN_SECRET_BYTES, ge=16)

    def secret_bytes(self) -> bytes:
        return self.secret.get_secret_value().encode("utf-8")
