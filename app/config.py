from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database (durable event log)
    uptime_db_url: str = "sqlite+aiosqlite:///data/uptime.db"

    # Logging
    uptime_log_level: str = "info"

    # CORS
    uptime_cors_origins: str = "http://localhost:3000"

    # Timers (seconds)
    uptime_probe_interval_seconds: float = 30.0
    uptime_tail_interval_seconds: float = 10.0
    uptime_cleanup_interval_seconds: float = 3600.0

    # Projection bounds
    uptime_max_records_per_service: int = 1000
    uptime_max_age_hours: int = 168  # 7 days

    # Stream tailing
    uptime_stream_prefix: str = "service-uptime"
    uptime_max_stream_errors: int = 5
    uptime_tail_batch_size: int = 100

    # Shutdown
    uptime_shutdown_grace_seconds: float = 1.0

    # Probes
    uptime_probe_timeout_seconds: float = 2.0
    uptime_http_probe_url: str = "http://localhost:8000"
    uptime_ws_probe_url: str = "ws://localhost:8000"
    uptime_eventlog_probe_url: str = "http://localhost:8000"

    model_config = {"env_prefix": "", "case_sensitive": False, "env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
