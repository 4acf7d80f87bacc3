"""Environment-based configuration for the CV validator service."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """CV validator settings, loaded from environment variables."""

    # Server
    PORT: int = 8092

    # Chat-completion provider (empty key = AI validation disabled, local dev default)
    OPENROUTER_API_KEY: str = ""
    MODEL_API_URL: str = "https://openrouter.ai/api/v1"
    MODEL_ID: str = "google/gemini-2.0-flash-001"
    MODEL_TEMPERATURE: float = 0.1

    # Provider timeouts and retry
    MODEL_TIMEOUT_SECONDS: int = 120
    MODEL_CONNECT_TIMEOUT: int = 30
    MODEL_RETRY_ATTEMPTS: int = 3
    MODEL_RETRY_DELAY: float = 2.0
    MODEL_RETRY_BACKOFF: float = 2.0

    # Document resolution
    DOCUMENT_FETCH_TIMEOUT: int = 30
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024
    MAX_IMAGE_SIDE: int = 2048

    # Whole validation task, from entering "validating" to the terminal write
    TASK_MAX_DURATION_SECONDS: int = 300

    # Object storage
    STORAGE_BUCKET: str = "cvs"
    STORAGE_PUBLIC_URL: str = "http://localhost:9000"

    model_config = {"env_prefix": "", "case_sensitive": True}


settings = Settings()
