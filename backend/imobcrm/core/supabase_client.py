"""
Supabase client connection - Lazy initialization
"""
from typing import Optional
from supabase import create_client, Client
from .config import settings

_supabase_client: Optional[Client] = None


def get_supabase_client() -> Client:
    """Create and return the service-role Supabase client (created on first use)"""
    global _supabase_client

    if _supabase_client is None:
        _supabase_client = create_client(
            settings.SUPABASE_URL,
            settings.SUPABASE_KEY
        )

    return _supabase_client


class SupabaseProxy:
    """Module-level handle that defers client creation until an attribute is used"""

    def __getattr__(self, name):
        client = get_supabase_client()
        return getattr(client, name)


supabase = SupabaseProxy()
