"""Environment-driven settings for the workflow core."""

import os


class Settings:
    """Settings read once from the environment."""

    # Document store (Supabase / PostgREST)
    SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
    SUPABASE_SERVICE_ROLE_KEY = os.environ.get("SUPABASE_SERVICE_ROLE_KEY", "")

    # Uploaded media
    MEDIA_ROOT = os.environ.get("MEDIA_ROOT", "media")
    # Empty keeps URIs root-relative, e.g. /property/01HX....jpg
    MEDIA_BASE_URL = os.environ.get("MEDIA_BASE_URL", "").rstrip("/")

    # Read-side pagination defaults
    NOTIFICATION_PAGE_SIZE = int(os.environ.get("NOTIFICATION_PAGE_SIZE", "10"))
    PROPERTY_PAGE_SIZE = int(os.environ.get("PROPERTY_PAGE_SIZE", "10"))
    MAX_PAGE_SIZE = int(os.environ.get("MAX_PAGE_SIZE", "100"))


settings = Settings()
