"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All secrets (Pohoda credentials, database URL) come from environment variables
    - get_settings() is cached (lru_cache) — single instance per process
    - Credential and XML encodings are TextEncoding members, never free strings

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support (ADR: developer UX)
    - Missing Pohoda credentials do not fail startup: health probes and job listing
      still work, the lifespan logs a warning instead
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pohoda_export.core.domain_types import TextEncoding


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = (
        "postgresql+asyncpg://courses:courses@db:5432/courses"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosting platforms hand out postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Pohoda mServer
    pohoda_enabled: bool = True  # False writes dataPacks to pohoda_export_directory
    pohoda_export_directory: str = "pohoda_exports"
    pohoda_base_url: str = "http://localhost:444"
    pohoda_username: str = ""
    pohoda_password: str = ""
    pohoda_application: str = "CourseShop"
    pohoda_instance: str | None = None
    pohoda_check_duplicity: bool = True
    pohoda_timeout_seconds: float = 30.0
    pohoda_encoding_name: TextEncoding = TextEncoding.WINDOWS_1250
    pohoda_xml_encoding: TextEncoding = TextEncoding.UTF8
    pohoda_payload_dir: str | None = "logs/pohoda_payloads"  # empty disables
    pohoda_invoice_due_days: int = 14

    @field_validator("pohoda_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("pohoda_encoding_name", "pohoda_xml_encoding", mode="before")
    @classmethod
    def parse_encoding(cls, v):
        """Accept any known alias (cp1250, latin2, utf8) for the code page."""
        if isinstance(v, str):
            return TextEncoding.from_name(v)
        return v

    # Export worker
    pohoda_export_worker_enabled: bool = True
    pohoda_export_worker_interval_seconds: float = 30.0
    pohoda_export_worker_batch_size: int = 10
    pohoda_export_worker_concurrency: int = 2

    # Retry policy
    pohoda_max_retry_attempts: int = 5
    pohoda_retry_base_delay_seconds: float = 30.0
    pohoda_retry_max_delay_seconds: float = 600.0
    pohoda_retry_jitter: float = 0.0  # fraction, 0.25 → ±25%

    # API
    cors_origins: list[str] = ["http://localhost:5173"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    @property
    def pohoda_credentials_configured(self) -> bool:
        return bool(self.pohoda_username)


@lru_cache
def get_settings() -> Settings:
    return Settings()
