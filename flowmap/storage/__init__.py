"""
Persistence backends for Flowmap.

- HttpBackend: the JSON API with {data, error} envelopes (default)
- SupabaseBackend: direct table access through supabase-py
"""

from flowmap.storage.protocol import CanvasBackend, RESOURCES
from flowmap.storage.http_backend import HttpBackend
from flowmap.storage.factory import create_backend, get_backend_type

__all__ = [
    'CanvasBackend',
    'RESOURCES',
    'HttpBackend',
    'create_backend',
    'get_backend_type',
]
