"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with MSGBOARD_ prefix.
No config files — just env vars (12-factor app style).
"""

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All app configuration. Set via MSGBOARD_* env vars."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./msgboard.db"
    create_schema: bool = True  # create tables on startup (no migrations)

    # Server
    environment: str = "development"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 4000

    # CORS
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    # Real-time
    subscriptions_path: str = "/subscriptions"
    subscriber_queue_size: int = 0  # 0 = unbounded, >0 = drop-oldest

    model_config = {"env_prefix": "MSGBOARD_"}

    @model_validator(mode="after")
    def validate_realtime_settings(self):
        if self.subscriber_queue_size < 0:
            raise ValueError(
                "MSGBOARD_SUBSCRIBER_QUEUE_SIZE must be 0 (unbounded) or positive"
            )
        if not self.subscriptions_path.startswith("/"):
            raise ValueError("MSGBOARD_SUBSCRIPTIONS_PATH must start with '/'")
        return self


# Default instance — create_app() falls back to this
settings = Settings()
