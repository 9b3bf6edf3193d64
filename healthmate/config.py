"""Configuration management with pydantic-settings and validation."""

from pydantic_settings import BaseSettings
from pydantic import field_validator

from .errors import ConfigurationError


# Environment variable names for credentials checked at request time
CREDENTIAL_ENV_VARS = {
    "ai_gateway_api_key": "AI_GATEWAY_API_KEY",
    "anthropic_api_key": "ANTHROPIC_API_KEY",
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Completion service
    completion_provider: str = "gateway"
    ai_gateway_api_key: str = ""
    ai_gateway_url: str = "https://ai.gateway.lovable.dev/v1/chat/completions"
    ai_model: str = "google/gemini-2.5-flash"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-5-20250929"
    completion_timeout: float = 60.0
    completion_max_tokens: int = 2048

    # Database Configuration
    database_url: str = "sqlite:///./healthmate.db"
    create_tables_on_startup: bool = True

    # Retention
    max_saved_plans: int = 10
    chat_history_limit: int = 20

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @field_validator("database_url", mode="before")
    @classmethod
    def fix_database_url(cls, v):
        """Hosted Postgres hands out postgres:// but SQLAlchemy requires postgresql://."""
        if isinstance(v, str) and v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql://", 1)
        return v

    @field_validator("completion_provider", mode="before")
    @classmethod
    def normalize_provider(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
        if v not in ("gateway", "anthropic"):
            raise ValueError(f"Unknown completion provider: {v!r}")
        return v

    @field_validator("chat_history_limit")
    @classmethod
    def check_not_negative(cls, v):
        if v < 0:
            raise ValueError("chat_history_limit cannot be negative")
        return v

    @field_validator("max_saved_plans")
    @classmethod
    def check_positive(cls, v):
        if v < 1:
            raise ValueError("max_saved_plans must be at least 1")
        return v

    def require(self, field_name: str) -> str:
        """Return a credential, raising ConfigurationError if it is empty.

        Credentials are optional at startup so the service can boot without
        them; a request that needs one fails with the variable name instead.
        """
        value = getattr(self, field_name)
        if not value or not str(value).strip():
            env_name = CREDENTIAL_ENV_VARS.get(field_name, field_name.upper())
            raise ConfigurationError(f"{env_name} is not configured")
        return value


def get_settings() -> Settings:
    """Load and validate settings from environment.

    Reads the environment on every call, so keys rotated at runtime are
    picked up by the next request.

    Raises:
        ValidationError: If environment variables are invalid.
    """
    return Settings()
