"""Supabase client for submission storage. Requires SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY (use the service role key, not anon)."""
import logging

from robochat.core.config import get_settings

logger = logging.getLogger(__name__)

_supabase = None


def get_supabase_client():
    """Return the Supabase client or None if disabled or unreachable."""
    global _supabase
    if _supabase is not None:
        return _supabase
    settings = get_settings()
    if not settings.supabase_enabled:
        logger.info(
            "Supabase disabled: SUPABASE_URL and/or SUPABASE_SERVICE_ROLE_KEY not set or empty. "
            "Submissions can only be stored in files."
        )
        return None
    try:
        from supabase import create_client
        _supabase = create_client(settings.supabase_url, settings.supabase_key)
        logger.info("Supabase client connected (submission storage enabled).")
        return _supabase
    except Exception as e:
        logger.warning("Supabase client failed to connect: %s", e)
        return None
