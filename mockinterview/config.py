"""Application configuration."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    """Application settings."""

    # MongoDB
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_db_name: str = "mock_interviews"

    # Application
    app_name: str = "Mock Interview Voice API"
    app_version: str = "1.0.0"
    debug: bool = False

    # CORS
    allowed_origins: str = "http://localhost:3000,http://localhost:5173"

    # Text generation
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    chat_max_tokens: int = 200
    chat_temperature: float = 0.7
    extraction_max_tokens: int = 500
    extraction_temperature: float = 0.3
    questions_max_tokens: int = 1000
    questions_temperature: float = 0.7
    feedback_max_tokens: int = 1500
    feedback_temperature: float = 0.2

    # Interview definitions
    default_question_amount: int = 5
    max_question_amount: int = 20
    min_utterance_length: int = 10

    # Voice engine timings (seconds)
    heartbeat_interval: float = 5.0
    listen_restart_delay: float = 1.0
    post_speech_delay: float = 0.8
    transient_retry_delay: float = 1.5
    unknown_retry_delay: float = 2.0
    max_recognition_retries: int = 3
    speech_stop_timeout: float = 2.0
    probe_timeout: float = 10.0
    closing_timeout: float = 30.0

    # HTTP interview client
    api_base_url: str = "http://localhost:8000"
    request_timeout: float = 30.0

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def allowed_origins_list(self) -> List[str]:
        """Get allowed origins as a list."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]


settings = Settings()
