"""
VerdictTrace - Application Configuration

Environment-driven settings for the external collaborators
(relational store, search cluster, LLM, email). Values come from the
process environment, optionally seeded from a local .env file.

Mutable scan thresholds are NOT here - they live in the settings table
and are read per scan by SettingsService.
"""
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv


load_dotenv()


def _env(key: str, default: str = "") -> str:
    """Get an environment variable, treating empty strings as unset."""
    value = os.getenv(key)
    return value if value not in (None, "") else default


@dataclass(frozen=True)
class AppConfig:
    """Static configuration resolved once per process."""
    app_name: str
    app_url: str

    database_url: str

    es_host: str
    es_api_key: str
    es_index_complaints: str
    es_timeout: float

    llm_base_url: str
    llm_api_key: str
    llm_model: str
    llm_timeout: float

    brevo_api_url: str
    brevo_api_key: str
    brevo_sender_name: str
    brevo_sender_email: str
    notification_timeout: float

    internal_api_key: str


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Build the AppConfig from the environment (cached)."""
    return AppConfig(
        app_name=_env("APP_NAME", "VerdictTrace"),
        app_url=_env("APP_URL", "http://localhost:8080"),
        database_url=_env(
            "DATABASE_URL",
            f"postgresql://{_env('USER', 'postgres')}@localhost:5432/verdict_trace",
        ),
        es_host=_env("ES_HOST", "http://localhost:9200"),
        es_api_key=_env("ES_API_KEY"),
        es_index_complaints=_env("ES_INDEX_COMPLAINTS", "verdictrace_complaints"),
        es_timeout=float(_env("ES_TIMEOUT", "30")),
        llm_base_url=_env("LLM_BASE_URL", "https://api.openai.com/v1"),
        llm_api_key=_env("LLM_API_KEY"),
        llm_model=_env("LLM_MODEL", "gpt-4o"),
        llm_timeout=float(_env("LLM_TIMEOUT", "60")),
        brevo_api_url=_env("BREVO_API_URL", "https://api.brevo.com/v3/smtp/email"),
        brevo_api_key=_env("BREVO_API_KEY"),
        brevo_sender_name=_env("BREVO_SENDER_NAME", "VerdictTrace"),
        brevo_sender_email=_env("BREVO_SENDER_EMAIL", "alerts@yourdomain.com"),
        notification_timeout=float(_env("NOTIFICATION_TIMEOUT", "15")),
        internal_api_key=_env("INTERNAL_API_KEY", "scheduler-internal-key-change-in-production"),
    )
