"""Configuration settings for the application."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Pydantic settings class for the application."""

    # Define the settings with default values and types
    # These will be loaded from environment variables or a .env file if not provided
    API_PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "info"  # Options: debug, info, warning, error, critical
    HTTP_TIMEOUT: float = 30.0

    # Supabase (PostgREST + edge functions)
    SUPABASE_URL: str = "http://localhost:54321"
    SUPABASE_SERVICE_ROLE_KEY: str | None = None

    # Model gateway configuration
    MODEL_BACKEND: str = "gateway"  # Options: gateway, openai, anthropic
    AI_GATEWAY_URL: str = "https://ai.gateway.lovable.dev/v1"
    LOVABLE_API_KEY: str | None = None
    AI_MODEL: str = "google/gemini-2.5-flash"
    OPENAI_API_KEY: str | None = None
    OPENAI_BASE_URL: str | None = None
    ANTHROPIC_API_KEY: str | None = None
    ANTHROPIC_MODEL: str = "claude-3-5-haiku-latest"

    # Tool configuration
    TAVILY_API_KEY: str | None = None
    EMBEDDING_BACKEND: str = "remote"  # Options: remote, local
    EMBED_MODEL: str = "all-MiniLM-L6-v2"

    class Config:
        """Configuration for Pydantic settings."""

        # Load environment variables from a .env file
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
