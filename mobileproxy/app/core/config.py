import json
import re
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _parse_cors_origins(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, list):
        items = [str(v).strip() for v in raw]
        return [v for v in items if v]

    raw = str(raw).strip()
    if not raw or raw == "[]":
        return []
    if raw == "*":
        return ["*"]

    # Prefer JSON, but tolerate bare host lists so a misconfigured
    # deployment still starts.
    if raw.startswith(("[", '"', "'")):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            items = [str(v).strip() for v in parsed]
            return [v for v in items if v]
        if isinstance(parsed, str):
            raw = parsed.strip()
            if not raw or raw == "[]":
                return []
            if raw == "*":
                return ["*"]

    origins: list[str] = []
    for part in (p for p in re.split(r"[,\s]+", raw) if p):
        if part == "*":
            return ["*"]
        if "://" in part:
            origins.append(part)
            continue
        # Browsers send the scheme in Origin, so a bare host allows both.
        origins.append(f"http://{part}")
        origins.append(f"https://{part}")

    return list(dict.fromkeys(origins))


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Debug mode - echoes exception messages in 500 responses
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 8080

    # Generative API (Google AI Studio endpoint, key passed as ?key=)
    studio_api_url: str = ""
    studio_api_key: str = ""
    generative_timeout: float = 20.0
    generative_max_output_tokens: int = 500
    generative_temperature: float = 0.7

    # Image annotation API
    vision_api_key: str = ""
    vision_api_url: str = "https://vision.googleapis.com/v1/images:annotate"
    vision_timeout: float = 20.0

    # Maps web services
    maps_api_key: str = ""
    maps_base_url: str = "https://maps.googleapis.com/maps/api"
    maps_timeout: float = 10.0

    # Firebase project used for the user directory (Firestore) and push (FCM).
    # Credentials come from Application Default Credentials and are refreshed
    # automatically; google_access_token pins a pre-minted token for local use.
    firebase_project_id: str = ""
    google_access_token: str = ""
    firestore_base_url: str = "https://firestore.googleapis.com/v1"
    fcm_base_url: str = "https://fcm.googleapis.com/v1"
    directory_timeout: float = 10.0
    push_timeout: float = 10.0
    push_max_concurrency: int = 20

    # Run without any third-party calls (mock generative + push, empty directory)
    mock_upstreams: bool = Field(default=False, validation_alias="MOBILEPROXY_MOCK_UPSTREAMS")

    # Rate limiting (sliding window per user id or client IP)
    max_per_minute: int = 30
    rate_limit_window_seconds: int = 60
    rate_limit_max_keys: int = 10000
    # Key anonymous callers by the first X-Forwarded-For hop (only behind a trusted proxy)
    trust_forwarded_for: bool = False

    # Response cache for /chat
    cache_ttl_seconds: int = 60

    # Background sweep of idle limiter keys and expired cache entries
    sweep_interval_seconds: float = 60.0

    # HTTP client connection pool
    httpx_connect_timeout: float = 5.0
    httpx_pool_timeout: float = 5.0
    httpx_keepalive_expiry: float = 30.0
    httpx_max_connections: int = 100
    httpx_max_keepalive_connections: int = 20

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # CORS settings; NoDecode so a bare host value doesn't crash JSON parsing
    cors_origins: Annotated[list[str], NoDecode] = ["*"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def decode_cors_origins(cls, v: Any) -> list[str]:
        return _parse_cors_origins(v)

    @field_validator(
        "max_per_minute",
        "rate_limit_window_seconds",
        "rate_limit_max_keys",
        "push_max_concurrency",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate limiter and concurrency values are positive."""
        if v < 1:
            raise ValueError("value must be at least 1")
        return v

    @field_validator("cache_ttl_seconds")
    @classmethod
    def validate_cache_ttl(cls, v: int) -> int:
        if v < 1:
            raise ValueError("cache_ttl_seconds must be at least 1")
        return v

    @field_validator(
        "generative_timeout",
        "vision_timeout",
        "maps_timeout",
        "directory_timeout",
        "push_timeout",
        "sweep_interval_seconds",
    )
    @classmethod
    def validate_timeout_positive(cls, v: float) -> float:
        """Validate timeout values are positive."""
        if v <= 0:
            raise ValueError("Timeout values must be positive")
        return v

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
