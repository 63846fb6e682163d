"""
Supabase Client
===============
Provides the configured Supabase client used by the prediction service
and the auth helper.

Uses the service_role key because the backend writes predictions,
training examples and model parameters on behalf of authenticated users.
"""

from functools import lru_cache

from supabase import Client, create_client

from pulse.config import get_settings


@lru_cache
def get_supabase_client() -> Client:
    settings = get_settings()
    return create_client(settings.supabase_url, settings.supabase_service_key)
