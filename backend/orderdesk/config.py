from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "OrderDesk"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Durable local store (survives process restarts)
    LOCAL_DB_URL: str = "sqlite+aiosqlite:///./orderdesk_offline.db"

    # Order server
    SERVER_BASE_URL: str = "http://localhost:5000/api"
    SERVER_API_TOKEN: str = ""
    REQUEST_TIMEOUT_SECONDS: float = 30
    # Hard ceiling on generate / sync-offline / send-emails (documents + e-mail)
    SEND_TIMEOUT_SECONDS: float = 60

    # Offline orders
    OFFLINE_CODE_PREFIX: str = "OFF-"
    SNAPSHOT_RENDER_TIMEOUT_SECONDS: float = 10

    # Connectivity probing (empty URL = rely on host events only)
    CONNECTIVITY_PROBE_URL: str = ""
    CONNECTIVITY_PROBE_INTERVAL_SECONDS: float = 5

    # Reference data
    REFERENCE_PAGE_SIZE: int = 10000

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/1"
    ORDER_SYNC_INTERVAL_SECONDS: int = 300
    REFERENCE_SYNC_INTERVAL_MINUTES: int = 60

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
    }


settings = Settings()
