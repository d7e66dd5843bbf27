import logging

from supabase import create_client, Client

from dsz_sync.core.config import Settings
from dsz_sync.core.exceptions import NotInitialized

logger = logging.getLogger("supabase_client")


class SupabaseClient:
    """Supabase client wrapper for the catalog, mapping and order tables."""

    _instance: Client | None = None

    def __init__(self, settings: Settings) -> None:
        self._url = settings.supabase_url
        self._key = settings.supabase_service_role_key
        self._bucket = settings.supabase_storage_bucket

        if not self._url or not self._key:
            raise NotInitialized(
                "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set for catalog access"
            )

    def get_client(self) -> Client:
        """Get or create the shared Supabase client."""
        if SupabaseClient._instance is None:
            SupabaseClient._instance = create_client(self._url, self._key)
            logger.info("supabase client initialized url=%s", self._url)
        return SupabaseClient._instance

    @property
    def client(self) -> Client:
        return self.get_client()

    @property
    def storage_bucket(self) -> str:
        return self._bucket

    @property
    def storage_public_base(self) -> str:
        """Public URL prefix for objects in the media bucket."""
        return f"{self._url.rstrip('/')}/storage/v1/object/public/{self._bucket}"


def get_supabase_client(settings: Settings) -> SupabaseClient:
    return SupabaseClient(settings)
