from __future__ import annotations

import os

from dotenv import load_dotenv

from stockres.app.db.models.core_types import CompletionPolicy, StorageBackend

load_dotenv()


def _bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    def __init__(self) -> None:
        self.database_url: str = os.getenv("DATABASE_URL", "sqlite:///./data.db")
        self.database_echo: bool = _bool("DATABASE_ECHO")

        # "sql" (SQLite / Postgres) ou "supabase" (API table distante)
        self.storage_backend = StorageBackend(os.getenv("STORAGE_BACKEND", "sql").strip().lower())

        self.supabase_url: str = os.getenv("SUPABASE_URL", "").rstrip("/")
        self.supabase_key: str = os.getenv("SUPABASE_KEY", "")
        self.remote_timeout_seconds: float = float(os.getenv("REMOTE_TIMEOUT_SECONDS", "10"))
        self.cas_max_retries: int = int(os.getenv("CAS_MAX_RETRIES", "5"))

        self.completion_policy = CompletionPolicy(os.getenv("COMPLETION_POLICY", "check").strip().lower())
        self.default_vat_rate: float = float(os.getenv("DEFAULT_VAT_RATE", "7"))

        self.log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
        self.log_file: str | None = os.getenv("LOG_FILE") or None

        self.api_base_url: str = os.getenv("API_BASE_URL", "http://localhost:8000").rstrip("/")


settings = Settings()
