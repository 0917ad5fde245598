"""Application settings from environment."""
import os
from functools import lru_cache
from pathlib import Path

# Project root (parent of robochat/)
_ROOT = Path(__file__).resolve().parent.parent.parent
_PACKAGE_DIR = Path(__file__).resolve().parent.parent


@lru_cache
def get_settings() -> "Settings":
    return Settings()


def _float_env(name: str, default: float, low: float, high: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return max(low, min(high, float(raw)))
    except ValueError:
        return default


def _int_env(name: str, default: int, low: int, high: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return max(low, min(high, int(raw)))
    except ValueError:
        return default


class Settings:
    """Central config. Load .env in main/run_api before using. Key settings are @property so they read env at access time."""

    # Chat-completion provider (DeepSeek by default, any OpenAI-compatible endpoint works)
    @property
    def llm_api_key(self) -> str:
        return (os.getenv("DEEPSEEK_API_KEY", "") or os.getenv("VITE_DEEPSEEK_API_KEY", "")).strip()

    @property
    def llm_api_url(self) -> str:
        return os.getenv("LLM_API_URL", "https://api.deepseek.com/v1/chat/completions").strip()

    @property
    def llm_model(self) -> str:
        return (os.getenv("LLM_MODEL", "") or "deepseek-chat").strip()

    @property
    def llm_timeout_seconds(self) -> float:
        return _float_env("LLM_TIMEOUT_SECONDS", 60.0, 1.0, 300.0)

    @property
    def llm_max_retries(self) -> int:
        return _int_env("LLM_MAX_RETRIES", 3, 1, 10)

    @property
    def llm_retry_base_delay(self) -> float:
        return _float_env("LLM_RETRY_BASE_DELAY", 1.0, 0.0, 30.0)

    # Only the last N non-system messages are sent to the model
    @property
    def max_context_messages(self) -> int:
        return _int_env("MAX_CONTEXT_MESSAGES", 40, 1, 500)

    # Contact form
    @property
    def contact_config_path(self) -> Path:
        raw = os.getenv("CONTACT_CONFIG_PATH", "").strip()
        return Path(raw) if raw else _PACKAGE_DIR / "contact_config.json"

    @property
    def contact_data_dir(self) -> Path:
        raw = os.getenv("CONTACT_DATA_DIR", "").strip()
        return Path(raw) if raw else _ROOT / "contact-data"

    @property
    def contact_session_ttl_seconds(self) -> float:
        return _float_env("CONTACT_SESSION_TTL_SECONDS", 3600.0, 60.0, 7 * 24 * 3600.0)

    @property
    def contact_sweep_interval_seconds(self) -> float:
        return _float_env("CONTACT_SWEEP_INTERVAL_SECONDS", 60.0, 1.0, 3600.0)

    # Wizard prompts are one short sentence; keep generation cheap
    @property
    def contact_llm_max_tokens(self) -> int:
        return _int_env("CONTACT_LLM_MAX_TOKENS", 150, 16, 2000)

    @property
    def contact_recipient_email(self) -> str:
        return os.getenv("CONTACT_RECIPIENT_EMAIL", "").strip()

    # "file" (one JSON file per submission) or "supabase"
    @property
    def submission_store(self) -> str:
        return os.getenv("SUBMISSION_STORE", "file").strip().lower() or "file"

    # Email (SMTP, or SendGrid for send-only)
    @property
    def email_smtp_host(self) -> str:
        return os.getenv("EMAIL_SMTP_HOST", "").strip()

    @property
    def email_smtp_port(self) -> int:
        return _int_env("EMAIL_SMTP_PORT", 465, 1, 65535)

    @property
    def email_smtp_user(self) -> str:
        return (os.getenv("EMAIL_SMTP_USER", "") or os.getenv("SMTP_USER", "")).strip()

    @property
    def email_smtp_password(self) -> str:
        return (os.getenv("EMAIL_SMTP_PASSWORD", "") or os.getenv("SMTP_PASS", "")).strip()

    @property
    def email_smtp_timeout_seconds(self) -> float:
        return _float_env("EMAIL_SMTP_TIMEOUT_SECONDS", 15.0, 1.0, 120.0)

    @property
    def sendgrid_api_key(self) -> str:
        return os.getenv("SENDGRID_API_KEY", "").strip()

    @property
    def email_enabled(self) -> bool:
        """True if we can send (SMTP or SendGrid)."""
        has_smtp = bool(self.email_smtp_host and self.email_smtp_user and self.email_smtp_password)
        return has_smtp or bool(self.sendgrid_api_key)

    # Supabase (optional): use SERVICE ROLE key (Settings → API), not the anon/publishable key
    @property
    def supabase_url(self) -> str:
        return os.getenv("SUPABASE_URL", "").strip()

    @property
    def supabase_key(self) -> str:
        return (os.getenv("SUPABASE_SERVICE_ROLE_KEY", "") or os.getenv("SUPABASE_KEY", "")).strip()

    @property
    def supabase_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    # Server (run_api.py)
    @property
    def host(self) -> str:
        return os.getenv("HOST", "127.0.0.1").strip() or "127.0.0.1"

    @property
    def port(self) -> int:
        return _int_env("PORT", 8000, 1, 65535)

    @property
    def api_reload(self) -> bool:
        return os.getenv("API_RELOAD", "true").strip().lower() in ("1", "true", "yes")

    # API
    @property
    def api_title(self) -> str:
        return os.getenv("API_TITLE", "Robochat API").strip()

    @property
    def api_version(self) -> str:
        return os.getenv("API_VERSION", "0.1.0").strip()

    # CORS: comma-separated origins (e.g. http://localhost:5173) or * for all
    @property
    def cors_origins(self) -> list[str]:
        raw = os.getenv("CORS_ORIGINS", "*").strip()
        if not raw or raw == "*":
            return ["*"]
        return [o.strip() for o in raw.split(",") if o.strip()]
