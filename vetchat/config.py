"""Application configuration via environment variables."""

from __future__ import annotations

import logging

from pydantic_settings import BaseSettings

log = logging.getLogger("vetchat.config")


class Settings(BaseSettings):
    # LLM
    llm_provider: str = "claude"  # "claude", "ollama" or "mock"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-3-5-haiku-latest"
    ollama_model: str = "qwen2.5:7b"
    ollama_url: str = "http://localhost:11434"
    llm_timeout_seconds: float = 30.0

    # Admin auth
    admin_api_key: str = ""

    # Persistence: empty keeps everything in memory
    data_dir: str = ""

    # Reset a booking left untouched this long (0 disables)
    booking_ttl_minutes: int = 60

    # Server
    host: str = "127.0.0.1"
    port: int = 8080
    debug: bool = False
    cors_origins: str = "*"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def validate_startup(self) -> list[str]:
        """Validate configuration at startup. Returns warnings, raises on errors."""
        warnings: list[str] = []
        _placeholders = {"sk-ant-...", "your_api_key_here"}

        if self.llm_provider not in {"claude", "ollama", "mock"}:
            raise ValueError(
                f"LLM_PROVIDER={self.llm_provider!r} is not supported. "
                "Use claude, ollama or mock."
            )

        # LLM key, required for Claude
        if self.llm_provider == "claude":
            if not self.anthropic_api_key or self.anthropic_api_key in _placeholders:
                raise ValueError(
                    "ANTHROPIC_API_KEY is missing or still a placeholder. "
                    "Set it in .env, or set LLM_PROVIDER=mock for canned replies."
                )

        if self.llm_provider == "mock":
            warnings.append("LLM_PROVIDER=mock: chat replies are keyword-based canned text.")

        # Admin API key, warn if unset
        if not self.admin_api_key:
            if self.debug:
                warnings.append(
                    "ADMIN_API_KEY not set. Admin APIs are open (DEBUG=true)."
                )
            else:
                warnings.append(
                    "ADMIN_API_KEY not set. Admin APIs are locked in production. "
                    "Set ADMIN_API_KEY in .env to enable admin access."
                )

        if not self.data_dir:
            warnings.append("DATA_DIR not set, conversations and appointments are kept in memory only.")

        if self.booking_ttl_minutes < 0:
            raise ValueError("BOOKING_TTL_MINUTES must be >= 0.")

        return warnings


settings = Settings()
