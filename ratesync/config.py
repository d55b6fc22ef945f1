from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    cron_secret: str = ""
    webhook_secret: str = ""
    database_url: str = "sqlite+aiosqlite:///./ratesync.db"
    log_level: str = "INFO"
    pricing_timezone: str = "UTC"

    # Batch shape
    horizon_days: int = 90
    occupancy_lookback_days: int = 7
    pull_lookback_hours: int = 24

    # Execution limits
    batch_concurrency: int = 4
    entity_timeout_seconds: float = 120.0
    run_budget_seconds: float = 280.0  # below the scheduler's 300s cap
    run_lease_seconds: float = 600.0
    channel_timeout_seconds: float = 30.0

    # Channels
    agoda_base_url: str = "https://sandbox-api.agoda.io/ycs/v2"
    expedia_base_url: str = "https://test.ean.com"
    expedia_client_id: str = ""
    expedia_client_secret: str = ""
