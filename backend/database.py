from functools import lru_cache

from supabase import create_client, Client

from config import settings


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """Shared Supabase client (tables, storage and auth)."""
    if not settings.supabase_url or not settings.supabase_key:
        raise RuntimeError("SUPABASE_URL and SUPABASE_KEY must be set.")
    return create_client(settings.supabase_url, settings.supabase_key)
