import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

# Values shipped in the sample .env that mean "not filled in yet"
PLACEHOLDER_MARKERS = ("your-project-id", "your_api_key_here", "changeme")


def _is_placeholder(value: Optional[str]) -> bool:
    if not value or not value.strip():
        return True
    lowered = value.strip().lower()
    return any(marker in lowered for marker in PLACEHOLDER_MARKERS)


@dataclass(frozen=True)
class Settings:
    backend_url: Optional[str]
    api_key: Optional[str]
    storage_dir: str = os.path.join("data", "storage")
    cache_path: Optional[str] = os.path.join("data", "offline_cache.json")
    timezone: str = "UTC"
    sync_interval: float = 30.0
    log_level: str = "INFO"
    minio_endpoint: Optional[str] = None
    minio_access_key: Optional[str] = None
    minio_secret_key: Optional[str] = None
    minio_use_ssl: bool = True

    @property
    def is_configured(self) -> bool:
        """False when the backend URL or API key is missing or a placeholder."""
        return not (_is_placeholder(self.backend_url) or _is_placeholder(self.api_key))

    @property
    def database_url(self) -> str:
        # Fallback mode: nothing persists past the process
        if not self.is_configured:
            return "sqlite://"
        return self.backend_url.strip()

    @property
    def signing_key(self) -> str:
        return self.api_key.strip() if self.is_configured else "local-only-signing-key"

    @property
    def uses_minio(self) -> bool:
        return bool(self.minio_endpoint and self.minio_access_key and self.minio_secret_key)


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Read settings from the environment (and a .env file when present)."""
    load_dotenv(env_file)

    backend_url = os.getenv("CLINIC_BACKEND_URL")
    api_key = os.getenv("CLINIC_API_KEY")
    configured = not (_is_placeholder(backend_url) or _is_placeholder(api_key))

    cache_path = os.getenv("CLINIC_CACHE_PATH", os.path.join("data", "offline_cache.json"))

    return Settings(
        backend_url=backend_url,
        api_key=api_key,
        storage_dir=os.getenv("CLINIC_STORAGE_DIR", os.path.join("data", "storage")),
        cache_path=cache_path if configured else None,
        timezone=os.getenv("CLINIC_TIMEZONE", "UTC"),
        sync_interval=float(os.getenv("CLINIC_SYNC_INTERVAL", "30")),
        log_level=os.getenv("CLINIC_LOG_LEVEL", "INFO"),
        minio_endpoint=os.getenv("MINIO_ENDPOINT"),
        minio_access_key=os.getenv("MINIO_ACCESS_KEY"),
        minio_secret_key=os.getenv("MINIO_SECRET_KEY"),
        minio_use_ssl=os.getenv("MINIO_USE_SSL", "true").strip().lower() in {"1", "true", "yes"},
    )
