# shopstar/core/supabase_client.py
from functools import lru_cache

from supabase import create_client, Client


@lru_cache
def supabase_admin(url: str, service_role_key: str) -> Client:
    """
    Create a Supabase client with the service role key.

    Use cases:
      - uploading product images to Storage
      - deleting objects from Storage

    WARNING:
      - Never expose service role key to frontend.
      - Only backend should call this.
    """
    return create_client(url, service_role_key)
