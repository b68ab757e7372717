from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """애플리케이션 설정"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Inspector API
    inspector_api_key: str | None = None
    inspector_app_id: str | None = None
    inspector_base_url: str = "https://app.inspector.dev/api/apps"
    http_timeout: float = 30.0  # seconds

    # Tools
    default_hours: int = 24
    max_errors_without_limit: int = 10  # limit 미지정 시 컨텍스트 보호용 상한
    worst_transactions_limit: int = 10

    # Logging
    log_level: str = "INFO"


settings = Settings()
