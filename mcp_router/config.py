"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central settings pulled from .env / environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./mcp_router.db"
    database_url_sync: str = "sqlite:///./mcp_router.db"

    store_backend: str = "memory"
    """Where pack and caller state lives: ``memory`` or ``sql``."""

    # App
    app_env: str = "development"
    log_level: str = "INFO"

    # MCP
    mcp_server_name: str = "mcp-tool-router"
    mcp_server_version: str = "3.0.0"

    public_tool: str = "ml_ping"
    """The only tool an anonymous caller may invoke."""

    stdio_caller_id: int | None = None
    """Caller id bound to the stdio transport (single-user mode)."""

    caller_header: str = "X-MCP-User-Id"
    """HTTP header the SSE / debug transports read the caller id from."""

    # FastAPI
    fastapi_host: str = "0.0.0.0"
    fastapi_port: int = 8000
    allowed_origins: str = "*"

    # Rate Limiting
    rate_limit_enabled: bool = True
    rate_limit_requests: int = 60
    rate_limit_window_seconds: int = 60
    rate_limit_admin_multiplier: int = 10
    rate_limit_premium_multiplier: int = 3
    admin_role: str = "administrator"
    premium_role: str = "mcp_premium"

    rate_limit_atomic: bool = False
    """Check and count a request in one locked step instead of check-then-increment."""

    # Audit
    redacted_keys: list[str] = ["password", "token", "api_key", "secret", "key"]

    # Packs (memory backend only; the sql backend reads the packs table)
    active_packs: list[str] = []


settings = Settings()
