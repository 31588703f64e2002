"""
CanvasBackend Protocol Definition.

This module defines the interface that all persistence backends implement.
Both HttpBackend (the /api/v1 routes) and SupabaseBackend (direct table
access) conform to this protocol.

Resources are addressed by name: 'sections', 'steps', 'connections', 'tabs'.
Rows are plain dicts in the wire format described in flowmap.models.
Every failure is raised as flowmap.errors.MutationError.
"""

from typing import Protocol, Dict, Any, List, Optional, runtime_checkable

RESOURCES = ('sections', 'steps', 'connections', 'tabs')


@runtime_checkable
class CanvasBackend(Protocol):
    """Abstract protocol for canvas persistence."""

    @property
    def backend_type(self) -> str:
        """Return the backend type identifier ('http' or 'supabase')."""
        ...

    def create(self, resource: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert a row and return the server-confirmed record.

        The server fills ids, timestamps and defaults (placeholder names,
        tab position).
        """
        ...

    def update(self, resource: str, entity_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Apply a partial update and return the full updated record."""
        ...

    def delete(self, resource: str, entity_id: str) -> bool:
        """Delete a row. Returns True on success."""
        ...

    def list(self, resource: str, workspace_id: str, tab_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        List rows of a workspace, optionally narrowed to one tab.

        Steps come back ordered by creation time, tabs by position.
        """
        ...
