"""Database client and operations."""

from .supabase_client import ConflictCheckCriteria, SupabaseClient, get_db_client

__all__ = ["ConflictCheckCriteria", "SupabaseClient", "get_db_client"]
