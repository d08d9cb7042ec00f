import os
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """
    Application settings with validation.
    Loaded from environment variables (or the .env file named by DOTENV_PATH).
    """

    # --- Data store ---
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_service_key: str = Field(..., description="Supabase service key")
    lookup_timeout: float = Field(
        default=5.0,
        description="Timeout in seconds for each data store query",
        ge=0.5,
        le=60,
    )

    # --- Chat model ---
    chat_model: str = Field(
        default="llama-3.1-8b-instant",
        description="Model used for free-form answers (llama*/gpt*/gemini*)",
    )
    groq_api_key: str | None = Field(default=None, description="Groq API key")
    groq_base_url: str = Field(
        default="https://api.groq.com/openai/v1",
        description="OpenAI-compatible Groq endpoint",
    )
    openai_api_key: str | None = Field(default=None, description="OpenAI API key")
    google_api_key: str | None = Field(default=None, description="Google API key for Gemini")

    # --- LLM Service Configuration ---
    llm_timeout: int = Field(
        default=10,
        description="Timeout in seconds for a model generation call",
        ge=1,
        le=120,
    )
    llm_probe_timeout: float = Field(
        default=3.0,
        description="Timeout in seconds for the model availability probe",
        ge=0.5,
        le=30,
    )
    llm_max_retries: int = Field(
        default=1,
        description="Attempts per model call (1 means no retry)",
        ge=1,
        le=5,
    )
    llm_rate_limit: int = Field(
        default=3,
        description="Maximum concurrent model requests (rate limiting)",
        ge=1,
        le=10,
    )
    llm_max_tokens: int = Field(default=200, description="Max tokens per reply", ge=16, le=4096)
    llm_temperature: float = Field(default=0.7, description="Sampling temperature", ge=0, le=2)

    # --- Conversation ---
    history_window: int = Field(
        default=5,
        description="Prior turns included in the model prompt",
        ge=0,
        le=50,
    )

    # --- Lookups ---
    daily_appointment_capacity: int = Field(
        default=16,
        description="Appointment slots offered per day",
        ge=1,
        le=200,
    )
    doctor_result_limit: int = Field(default=5, ge=1, le=50)
    appointment_result_limit: int = Field(default=5, ge=1, le=50)
    medical_excerpt_chars: int = Field(default=400, ge=80, le=4000)

    # --- Logging ---
    log_level: str = Field(default="INFO", description="Root logging level")
    structured_logs: bool = Field(default=True, description="Emit JSON logs")

    class Config:
        """Pydantic config."""

        env_file = os.getenv("DOTENV_PATH", ".env")
        case_sensitive = False
        extra = "ignore"

    def chat_api_key(self) -> str | None:
        """API key matching the configured chat model's provider."""
        if "gpt" in self.chat_model:
            return self.openai_api_key
        if "gemini" in self.chat_model:
            return self.google_api_key
        return self.groq_api_key


_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get or create settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If required env vars are missing or invalid
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings (tests change the environment between cases)."""
    global _settings
    _settings = None
