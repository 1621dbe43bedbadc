from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Identity
    app_key: str | None = None
    app_version: str = "0.0"
    device_id: str | None = None

    # Collector
    collector_url: str = "https://cloud.count.ly"
    collector_api_path: str = "/i"
    collector_timeout_seconds: float = 10.0

    # Geo enrichment (only sent when set)
    geo_country_code: str | None = None
    geo_city: str | None = None
    geo_ip_address: str | None = None

    # Scheduling / delivery
    heartbeat_interval_ms: int = 500
    dispatch_fail_timeout_seconds: int = 60
    session_extend_after_seconds: int = 60
    event_batch_size: int = 10

    # Persistence
    store_path: str = "__data.json"

    # Merged verbatim into begin_session metrics
    device_metrics: dict[str, str] = {}

    # Logging
    debug: bool = False
    app_log_level: str = "INFO"
    app_log_json: bool = False
    app_log_redaction_patterns: list[str] = [
        "password",
        "token",
        "secret",
        "authorization",
        "cookie",
        "app_key",
    ]

    otel_service_name: str = "telemetry-client"
    app_environment: str = "production"

    @field_validator("collector_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value[:-1] if value.endswith("/") else value

    @field_validator(
        "heartbeat_interval_ms",
        "dispatch_fail_timeout_seconds",
        "session_extend_after_seconds",
        "event_batch_size",
    )
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug else self.app_log_level


settings = Settings()
