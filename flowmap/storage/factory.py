"""
Backend Factory for Flowmap.

Creates the persistence backend named in the app configuration
(see flowmap.config.load_settings).
"""

import logging
from typing import Optional, TYPE_CHECKING

from flowmap.storage.http_backend import HttpBackend, DEFAULT_BASE_URL, DEFAULT_TIMEOUT

if TYPE_CHECKING:
    from flowmap.storage.protocol import CanvasBackend

logger = logging.getLogger(__name__)

DEFAULT_BACKEND = "http"
BACKEND_TYPES = ("http", "supabase")


def get_backend_type(config: dict) -> str:
    backend_type = config.get("backend") or DEFAULT_BACKEND
    if backend_type not in BACKEND_TYPES:
        logger.warning(f"Unknown backend '{backend_type}', falling back to {DEFAULT_BACKEND}")
        return DEFAULT_BACKEND
    return backend_type


def create_backend(config: dict, supabase_client=None, access_token: Optional[str] = None) -> "CanvasBackend":
    """
    Create a backend instance from configuration.

    Args:
        config: Settings dict (backend, api_base_url, request_timeout,
                supabase_url, supabase_key)
        supabase_client: Optional pre-authenticated Supabase client
        access_token: Optional bearer token for the HTTP API

    Returns:
        HttpBackend or SupabaseBackend
    """
    backend_type = get_backend_type(config)

    if backend_type == "supabase":
        from flowmap.storage.supabase_backend import SupabaseBackend
        logger.info("Using Supabase backend")
        return SupabaseBackend(
            client=supabase_client,
            supabase_url=config.get("supabase_url"),
            supabase_key=config.get("supabase_key"),
        )

    base_url = config.get("api_base_url") or DEFAULT_BASE_URL
    logger.info(f"Using HTTP backend at {base_url}")
    return HttpBackend(
        base_url=base_url,
        timeout=float(config.get("request_timeout") or DEFAULT_TIMEOUT),
        access_token=access_token,
    )
