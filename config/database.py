"""
Database connection management.

Provides the Supabase client singleton used by the data-access services.
"""

from supabase import create_client, Client
from functools import lru_cache
import structlog

from config.settings import settings

logger = structlog.get_logger(__name__)


class DatabaseConnectionError(Exception):
    """Failed to connect to database."""
    pass


@lru_cache()
def get_supabase_client() -> Client:
    """
    Get cached Supabase client instance.

    Call get_supabase_client.cache_clear() to reconnect.

    Returns:
        Client: Supabase client

    Raises:
        DatabaseConnectionError: If connection fails
    """
    try:
        logger.info(
            "connecting_to_supabase",
            url=settings.supabase_url[:30] + "..."  # Log partial URL only
        )

        client = create_client(
            settings.supabase_url,
            settings.supabase_service_key or settings.supabase_key
        )

        client.table("assemblies").select("id").limit(1).execute()

        logger.info("supabase_connected", status="success")
        return client

    except Exception as e:
        logger.error(
            "supabase_connection_failed",
            error=str(e),
            error_type=type(e).__name__
        )
        raise DatabaseConnectionError(f"Failed to connect to Supabase: {e}") from e



# ===================
# HELPER FUNCTIONS
# ===================

def check_connection() -> dict:
    """
    Check database connection health.

    Returns:
        dict: Connection status with assembly and activity counts
    """
    try:
        client = get_supabase_client()

        assemblies = client.table("assemblies").select("id", count="exact").execute()
        activities = client.table("assembly_activities").select("id", count="exact").execute()

        return {
            "status": "healthy",
            "assemblies_count": assemblies.count,
            "activities_count": activities.count
        }

    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e)
        }

