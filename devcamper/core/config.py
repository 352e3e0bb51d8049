import os
from dataclasses import dataclass

from dotenv import load_dotenv
from fastapi import Request

DEFAULT_JWT_SECRET_KEY = "change-me"


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if value is None:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    """Runtime configuration, built once at startup and handed to each component."""

    app_env: str = "development"
    port: int = 5000
    database_url: str = "sqlite:///./devcamper.db"
    log_level: str = "INFO"
    cors_origins: tuple[str, ...] = ("*",)

    jwt_secret_key: str = DEFAULT_JWT_SECRET_KEY
    jwt_algorithm: str = "HS256"
    jwt_expires_minutes: int = 30 * 24 * 60
    jwt_cookie_expire_days: int = 30

    max_file_upload_size: int = 1_000_000
    file_upload_path: str = "./public/uploads"

    smtp_host: str = ""
    smtp_port: int = 2525
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = False
    from_email: str = "noreply@devcamper.io"
    from_name: str = "DevCamper"

    geocoder_provider_url: str = "https://www.mapquestapi.com/geocoding/v1/address"
    geocoder_api_key: str = ""
    geocoder_timeout_seconds: int = 10

    @property
    def is_production(self) -> bool:
        return self.app_env.strip().lower() == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        return cls(
            app_env=os.getenv("APP_ENV", "development"),
            port=int(os.getenv("PORT", "5000")),
            database_url=os.getenv("DATABASE_URL", "sqlite:///./devcamper.db"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            cors_origins=tuple(_get_list(os.getenv("CORS_ORIGINS"), ["*"])),
            jwt_secret_key=os.getenv("JWT_SECRET_KEY", DEFAULT_JWT_SECRET_KEY),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            jwt_expires_minutes=int(os.getenv("JWT_EXPIRES_MINUTES", str(30 * 24 * 60))),
            jwt_cookie_expire_days=int(os.getenv("JWT_COOKIE_EXPIRE_DAYS", "30")),
            max_file_upload_size=int(os.getenv("MAX_FILE_UPLOAD_SIZE", "1000000")),
            file_upload_path=os.getenv("FILE_UPLOAD_PATH", "./public/uploads"),
            smtp_host=os.getenv("SMTP_HOST", ""),
            smtp_port=int(os.getenv("SMTP_PORT", "2525")),
            smtp_username=os.getenv("SMTP_USERNAME", ""),
            smtp_password=os.getenv("SMTP_PASSWORD", ""),
            smtp_use_tls=_get_bool(os.getenv("SMTP_USE_TLS"), default=False),
            from_email=os.getenv("FROM_EMAIL", "noreply@devcamper.io"),
            from_name=os.getenv("FROM_NAME", "DevCamper"),
            geocoder_provider_url=os.getenv(
                "GEOCODER_PROVIDER_URL",
                "https://www.mapquestapi.com/geocoding/v1/address",
            ),
            geocoder_api_key=os.getenv("GEOCODER_API_KEY", ""),
            geocoder_timeout_seconds=int(os.getenv("GEOCODER_TIMEOUT_SECONDS", "10")),
        )

    def validate_runtime_config(self) -> None:
        if self.is_production and self.jwt_secret_key == DEFAULT_JWT_SECRET_KEY:
            raise RuntimeError("JWT_SECRET_KEY must be set in production.")


def get_settings(request: Request) -> Settings:
    return request.app.state.settings
