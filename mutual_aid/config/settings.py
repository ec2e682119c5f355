from typing import Optional, Dict, Any, Union
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import PostgresDsn, field_validator
from pathlib import Path

# Define the root directory of the mutual_aid package
SERVICE_ROOT_DIR = Path(__file__).parent.parent.resolve()
# Path to the repository root (two levels up from this settings.py)
PROJECT_ROOT_DIR = SERVICE_ROOT_DIR.parent


class Settings(BaseSettings):
    # Application settings
    APP_NAME: str = "MutualAidDirectory"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 3002

    # Security settings
    CORS_ORIGINS: Union[str, list[str]] = "http://localhost:5173,http://localhost:3000"
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: Union[str, list[str]] = "GET,POST,PATCH,DELETE"
    CORS_ALLOW_HEADERS: Union[str, list[str]] = "Content-Type,Authorization"

    # Auth tokens
    JWT_SECRET: str = "change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRES_HOURS: int = 24
    JWT_AUDIENCE: str = "mutual-aid-app"
    JWT_ISSUER: str = "mutual-aid-auth"
    BCRYPT_ROUNDS: int = 12

    # Login throttling
    LOGIN_MAX_ATTEMPTS: int = 5
    LOGIN_WINDOW_SECONDS: int = 15 * 60
    LOGIN_SWEEP_INTERVAL_SECONDS: int = 5 * 60

    # Geocoding
    GEOCODER_URL: str = "https://nominatim.openstreetmap.org/search"
    GEOCODER_USER_AGENT: str = "MutualAidApp/1.0"
    GEOCODER_TIMEOUT_SECONDS: float = 5.0
    GEOCODER_MAX_ATTEMPTS: int = 3
    GEOCODER_BASE_DELAY_SECONDS: float = 1.0

    # Global per-request deadline
    REQUEST_TIMEOUT_SECONDS: float = 15.0

    # Per-client limit on /api/ requests, and the JSON body cap
    API_RATE_LIMIT_ENABLED: bool = True
    API_RATE_LIMIT_MAX_REQUESTS: int = 100
    API_RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60
    MAX_BODY_BYTES: int = 10 * 1024

    # Content-Security-Policy sent with every response
    CONTENT_SECURITY_POLICY: str = (
        "default-src 'self'; script-src 'self' 'unsafe-inline'; style-src 'self' 'unsafe-inline'; "
        "img-src 'self' data: https:; connect-src 'self' https://nominatim.openstreetmap.org"
    )

    # Database settings
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_USER: str = "user"
    DB_PASSWORD: str = "password"
    DB_NAME: str = "mutual_aid"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 0
    DATABASE_URL: Optional[str] = None

    @field_validator("DATABASE_URL", mode='before')
    @classmethod
    def assemble_db_connection(cls, v: Optional[str], values: Dict[str, Any]) -> Any:
        if isinstance(v, str):
            return v
        db_user = values.data.get("DB_USER")
        db_password = values.data.get("DB_PASSWORD")
        db_host = values.data.get("DB_HOST")
        db_port = values.data.get("DB_PORT")
        db_name = values.data.get("DB_NAME")

        return str(PostgresDsn.build(
            scheme="postgresql+asyncpg",
            username=db_user,
            password=db_password,
            host=db_host,
            port=int(db_port),
            path=f"{db_name or ''}",
        ))

    def model_post_init(self, __context) -> None:
        """Parse comma-separated strings into lists after model initialization."""
        if isinstance(self.CORS_ORIGINS, str):
            self.CORS_ORIGINS = [origin.strip() for origin in self.CORS_ORIGINS.split(',') if origin.strip()]

        if isinstance(self.CORS_ALLOW_METHODS, str):
            self.CORS_ALLOW_METHODS = [method.strip() for method in self.CORS_ALLOW_METHODS.split(',') if method.strip()]

        if isinstance(self.CORS_ALLOW_HEADERS, str):
            if self.CORS_ALLOW_HEADERS == "*":
                self.CORS_ALLOW_HEADERS = ["*"]
            else:
                self.CORS_ALLOW_HEADERS = [header.strip() for header in self.CORS_ALLOW_HEADERS.split(',') if header.strip()]

    # Logging configuration path (can be overridden by env var)
    LOGGING_CONFIG_PATH: str = str(SERVICE_ROOT_DIR / "config" / "logging_config.yaml")

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT_DIR / ".env"),  # Load variables from project root .env
        env_file_encoding='utf-8',
        extra='ignore'
    )


# Instantiate settings
settings = Settings()
