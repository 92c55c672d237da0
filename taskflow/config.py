from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=5000, alias="PORT")
    environment: str = Field(default="production", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    service_name: str = Field(default="taskflow-backend", alias="OTEL_SERVICE_NAME")

    internal_health_timeout_ms: int = Field(default=2000, alias="INTERNAL_HEALTH_TIMEOUT_MS")
    enable_delay_injection: bool = Field(default=True, alias="ENABLE_DELAY_INJECTION")
    cors_allow_origins: str = Field(default="*", alias="CORS_ALLOW_ORIGINS")

    otel_sdk_disabled: bool = Field(default=False, alias="OTEL_SDK_DISABLED")
    otlp_endpoint: str = Field(default="http://localhost:4318", alias="OTEL_EXPORTER_OTLP_ENDPOINT")
    otlp_traces_endpoint: str | None = Field(default=None, alias="OTEL_EXPORTER_OTLP_TRACES_ENDPOINT")

    @property
    def traces_endpoint(self) -> str:
        if self.otlp_traces_endpoint:
            return self.otlp_traces_endpoint
        return f"{self.otlp_endpoint.rstrip('/')}/v1/traces"

    @property
    def internal_health_timeout_seconds(self) -> float:
        return max(self.internal_health_timeout_ms, 0) / 1000.0

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_allow_origins.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
