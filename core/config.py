"""
Application configuration using Pydantic Settings
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # HTTP transport
    HTTP_CONNECT_TIMEOUT: float = 120.0
    HTTP_READ_TIMEOUT: float = 120.0

    # Retry defaults
    MAX_RETRY_DURATION: int = 600
    EXPONENTIAL_RETRY_BASE_SECONDS: float = 0.1

    # Checkpoints
    CHECKPOINT_DATABASE_URL: str = "sqlite:///checkpoints.db"

    # Delimited schema detection
    SCHEMA_DETECTION_SAMPLE_SIZE: int = 1000

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
