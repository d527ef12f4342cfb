from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    pulse_db_url: str = "sqlite+aiosqlite:///data/pulseboard.db"

    # Logging
    pulse_log_level: str = "info"

    # CORS
    pulse_cors_origins: str = "http://localhost:3000"

    # Rollups
    pulse_warm_days: int = 30  # history folded into a freshly created aggregator

    # Historical folds larger than max_points * factor periods are logged as expensive
    pulse_large_request_factor: int = 100

    model_config = {"env_prefix": "", "case_sensitive": False, "env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
