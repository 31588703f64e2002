"""
Supabase Storage Backend for Flowmap.

Implements the CanvasBackend protocol by talking to the Supabase tables
directly (sections, steps, connections, tabs), with the same server-side
semantics as the HTTP routes:
- placeholder names on create ("Untitled" steps, "New Section" sections)
- tab position = max(existing) + 1, 0 for the first tab
- Postgres unique violation 23505 -> duplicate
- no matching row (PGRST116 / empty result) -> not_found

Row Level Security is enforced by Supabase; pass an authenticated client
(or URL and key) from the auth layer.
"""

import logging
import os
from typing import Dict, Any, List, Optional

from supabase import create_client, Client

from flowmap import errors
from flowmap.constants import DEFAULT_STEP_NAME, DEFAULT_SECTION_NAME
from flowmap.errors import MutationError

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
NO_ROWS = "PGRST116"

# Optional columns copied through on create when present in the payload
_STEP_CREATE_OPTIONAL = (
    "section_id", "status", "step_type", "executor", "notes", "video_url",
    "attributes", "time_minutes", "frequency_per_month",
)
_SECTION_CREATE_OPTIONAL = ("width", "height")


class SupabaseBackend:
    """Cloud-based storage backend using Supabase PostgreSQL."""

    def __init__(
        self,
        client: Optional[Client] = None,
        supabase_url: Optional[str] = None,
        supabase_key: Optional[str] = None,
    ):
        """
        Initialize SupabaseBackend.

        Args:
            client: Optional pre-configured (e.g. authenticated) Supabase client
            supabase_url: Supabase project URL (or use SUPABASE_URL env)
            supabase_key: Supabase publishable key (or use SUPABASE_KEY env)
        """
        if client:
            self._client = client
        else:
            url = supabase_url or os.environ.get("SUPABASE_URL")
            key = supabase_key or os.environ.get("SUPABASE_KEY")

            if not url or not key:
                raise ValueError(
                    "Supabase URL and key required. "
                    "Set SUPABASE_URL and SUPABASE_KEY environment variables."
                )

            self._client = create_client(url, key)

    @property
    def backend_type(self) -> str:
        return "supabase"

    # --- CanvasBackend ---

    def create(self, resource: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        operation = f"create {resource}"
        row = self._build_insert(resource, payload, operation)

        try:
            response = self._client.table(resource).insert(row).execute()
        except Exception as e:
            code = getattr(e, "code", None)
            if code == UNIQUE_VIOLATION:
                message = ("Connection already exists between these steps"
                           if resource == "connections" else "Record already exists")
                raise MutationError(errors.DUPLICATE, message, operation=operation, status=409) from e
            logger.error(f"Failed to {operation}: {e}")
            raise MutationError(errors.CREATE_FAILED, _message_of(e), operation=operation, status=500) from e

        created = _first_row(response)
        if created is None:
            raise MutationError(errors.CREATE_FAILED, "Insert returned no row", operation=operation, status=500)
        logger.info(f"Created {resource} row {created.get('id')}")
        return created

    def update(self, resource: str, entity_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        operation = f"update {resource}"
        try:
            response = self._client.table(resource)\
                .update(fields)\
                .eq("id", entity_id)\
                .execute()
        except Exception as e:
            if getattr(e, "code", None) == NO_ROWS:
                raise MutationError(errors.NOT_FOUND, f"{resource} {entity_id} not found",
                                    operation=operation, status=404) from e
            logger.error(f"Failed to {operation} {entity_id}: {e}")
            raise MutationError(errors.UPDATE_FAILED, _message_of(e), operation=operation, status=500) from e

        updated = _first_row(response)
        if updated is None:
            raise MutationError(errors.NOT_FOUND, f"{resource} {entity_id} not found",
                                operation=operation, status=404)
        return updated

    def delete(self, resource: str, entity_id: str) -> bool:
        operation = f"delete {resource}"
        try:
            self._client.table(resource)\
                .delete()\
                .eq("id", entity_id)\
                .execute()
        except Exception as e:
            logger.error(f"Failed to {operation} {entity_id}: {e}")
            raise MutationError(errors.DELETE_FAILED, _message_of(e), operation=operation, status=500) from e
        logger.info(f"Deleted {resource} row {entity_id}")
        return True

    def list(self, resource: str, workspace_id: str, tab_id: Optional[str] = None) -> List[Dict[str, Any]]:
        operation = f"list {resource}"
        try:
            query = self._client.table(resource)\
                .select("*")\
                .eq("workspace_id", workspace_id)
            if tab_id and resource != "tabs":
                query = query.eq("tab_id", tab_id)
            if resource == "tabs":
                query = query.order("position")
            else:
                query = query.order("created_at")
            response = query.execute()
        except Exception as e:
            logger.error(f"Failed to {operation}: {e}")
            raise MutationError(errors.QUERY_FAILED, _message_of(e), operation=operation, status=500) from e
        return list(response.data or [])

    # --- Server-side create semantics ---

    def _build_insert(self, resource: str, payload: Dict[str, Any], operation: str) -> Dict[str, Any]:
        workspace_id = payload.get("workspace_id")
        if not workspace_id:
            raise MutationError(errors.VALIDATION, "workspace_id is required", operation=operation, status=400)

        if resource == "tabs":
            name = (payload.get("name") or "").strip()
            if not name:
                raise MutationError(errors.VALIDATION, "Tab name is required", operation=operation, status=400)
            return {"workspace_id": workspace_id, "name": name, "position": self._next_tab_position(workspace_id)}

        tab_id = payload.get("tab_id")
        if not tab_id:
            raise MutationError(errors.VALIDATION, "tab_id is required", operation=operation, status=400)

        if resource == "connections":
            source = payload.get("source_step_id")
            target = payload.get("target_step_id")
            if not source:
                raise MutationError(errors.VALIDATION, "source_step_id is required", operation=operation, status=400)
            if not target:
                raise MutationError(errors.VALIDATION, "target_step_id is required", operation=operation, status=400)
            if source == target:
                raise MutationError(errors.VALIDATION, "source and target steps must be different",
                                    operation=operation, status=400)
            return {"workspace_id": workspace_id, "tab_id": tab_id,
                    "source_step_id": source, "target_step_id": target}

        if resource == "steps":
            default_name, optional = DEFAULT_STEP_NAME, _STEP_CREATE_OPTIONAL
        elif resource == "sections":
            default_name, optional = DEFAULT_SECTION_NAME, _SECTION_CREATE_OPTIONAL
        else:
            raise ValueError(f"Unknown resource: {resource}")

        row = {
            "workspace_id": workspace_id,
            "tab_id": tab_id,
            "name": (payload.get("name") or "").strip() or default_name,
            "position_x": payload.get("position_x") or 0,
            "position_y": payload.get("position_y") or 0,
        }
        for key in optional:
            if key in payload:
                row[key] = payload[key]
        return row

    def _next_tab_position(self, workspace_id: str) -> int:
        try:
            response = self._client.table("tabs")\
                .select("position")\
                .eq("workspace_id", workspace_id)\
                .order("position", desc=True)\
                .limit(1)\
                .execute()
        except Exception as e:
            logger.warning(f"Failed to read tab positions for {workspace_id}: {e}")
            return 0
        rows = response.data or []
        if not rows:
            return 0
        return int(rows[0].get("position") or 0) + 1


def _first_row(response) -> Optional[Dict[str, Any]]:
    data = getattr(response, "data", None)
    if isinstance(data, list):
        return data[0] if data else None
    return data or None


def _message_of(e: Exception) -> str:
    return getattr(e, "message", None) or str(e)
