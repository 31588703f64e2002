"""
Mutation Gateway - the only path from the canvas to persistence.

One method per (entity, operation). Each method validates its input on the
client side first, filters update payloads to the per-entity allow-list,
then makes exactly one backend call. There are no retries and no batching.

Successful creates/updates return the server-confirmed record (a model
instance); deletes return True. Every failure surfaces as MutationError.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, TypeVar

from flowmap import errors
from flowmap.constants import (
    STEP_STATUSES,
    EXECUTORS,
    STEP_UPDATE_FIELDS,
    SECTION_UPDATE_FIELDS,
    TAB_UPDATE_FIELDS,
)
from flowmap.errors import MutationError
from flowmap.models import Section, Step, Connection, Tab
from flowmap.storage.protocol import CanvasBackend

logger = logging.getLogger(__name__)

T = TypeVar('T')


def filter_fields(fields: Dict[str, Any], allowed: tuple, operation: str = "") -> Dict[str, Any]:
    """Keep only allow-listed keys. Dropped keys are logged, never sent."""
    kept = {k: v for k, v in fields.items() if k in allowed}
    dropped = sorted(set(fields) - set(kept))
    if dropped:
        logger.debug(f"{operation}: dropping non-updatable fields {dropped}")
    return kept


def _validation(message: str, operation: str) -> MutationError:
    logger.warning(f"{operation} rejected: {message}")
    return MutationError(errors.VALIDATION, message, operation=operation, status=400)


def _require(value: Optional[str], name: str, operation: str) -> None:
    if not value:
        raise _validation(f"{name} is required", operation)


def _check_step_enums(fields: Dict[str, Any], operation: str) -> None:
    status = fields.get('status')
    if status is not None and status not in STEP_STATUSES:
        raise _validation(f"Invalid status: {status}", operation)
    executor = fields.get('executor')
    if executor is not None and executor not in EXECUTORS:
        raise _validation(f"Invalid executor: {executor}", operation)


class MutationGateway:
    """Validates and forwards canvas mutations to a CanvasBackend."""

    def __init__(self, backend: CanvasBackend):
        self.backend = backend

    # --- Sections ---

    def create_section(self, workspace_id: str, tab_id: str, name: Optional[str] = None,
                       position_x: Optional[float] = None, position_y: Optional[float] = None,
                       width: Optional[float] = None, height: Optional[float] = None) -> Section:
        operation = "create section"
        _require(workspace_id, "workspace_id", operation)
        _require(tab_id, "tab_id", operation)
        payload = _compact({
            'workspace_id': workspace_id,
            'tab_id': tab_id,
            'name': name,
            'position_x': position_x,
            'position_y': position_y,
            'width': width,
            'height': height,
        })
        row = self._call(operation, errors.CREATE_FAILED, lambda: self.backend.create('sections', payload))
        section = Section.from_dict(row)
        logger.info(f"Section created: {section.id}")
        return section

    def update_section(self, section_id: str, fields: Dict[str, Any]) -> Section:
        operation = "update section"
        _require(section_id, "id", operation)
        update = filter_fields(fields, SECTION_UPDATE_FIELDS, operation)
        if not update:
            raise _validation("No updatable fields provided", operation)
        row = self._call(operation, errors.UPDATE_FAILED,
                         lambda: self.backend.update('sections', section_id, update))
        return Section.from_dict(row)

    def delete_section(self, section_id: str) -> bool:
        operation = "delete section"
        _require(section_id, "id", operation)
        self._call(operation, errors.DELETE_FAILED, lambda: self.backend.delete('sections', section_id))
        logger.info(f"Section deleted: {section_id}")
        return True

    # --- Steps ---

    def create_step(self, workspace_id: str, tab_id: str, name: Optional[str] = None,
                    position_x: Optional[float] = None, position_y: Optional[float] = None,
                    **fields) -> Step:
        """
        Create a step. Extra keyword fields (section_id, status, executor, ...)
        are accepted if they are in the step allow-list.
        """
        operation = "create step"
        _require(workspace_id, "workspace_id", operation)
        _require(tab_id, "tab_id", operation)
        extra = filter_fields(fields, STEP_UPDATE_FIELDS, operation)
        _check_step_enums(extra, operation)
        payload = _compact({
            'workspace_id': workspace_id,
            'tab_id': tab_id,
            'name': name,
            'position_x': position_x,
            'position_y': position_y,
        })
        payload.update(extra)
        row = self._call(operation, errors.CREATE_FAILED, lambda: self.backend.create('steps', payload))
        step = Step.from_dict(row)
        logger.info(f"Step created: {step.id}")
        return step

    def update_step(self, step_id: str, fields: Dict[str, Any]) -> Step:
        operation = "update step"
        _require(step_id, "id", operation)
        update = filter_fields(fields, STEP_UPDATE_FIELDS, operation)
        if not update:
            raise _validation("No updatable fields provided", operation)
        _check_step_enums(update, operation)
        row = self._call(operation, errors.UPDATE_FAILED,
                         lambda: self.backend.update('steps', step_id, update))
        return Step.from_dict(row)

    def delete_step(self, step_id: str) -> bool:
        operation = "delete step"
        _require(step_id, "id", operation)
        self._call(operation, errors.DELETE_FAILED, lambda: self.backend.delete('steps', step_id))
        logger.info(f"Step deleted: {step_id}")
        return True

    # --- Connections (create/delete only) ---

    def create_connection(self, workspace_id: str, tab_id: str,
                          source_step_id: str, target_step_id: str) -> Connection:
        operation = "create connection"
        _require(workspace_id, "workspace_id", operation)
        _require(tab_id, "tab_id", operation)
        _require(source_step_id, "source_step_id", operation)
        _require(target_step_id, "target_step_id", operation)
        if source_step_id == target_step_id:
            raise _validation("source and target steps must be different", operation)
        payload = {
            'workspace_id': workspace_id,
            'tab_id': tab_id,
            'source_step_id': source_step_id,
            'target_step_id': target_step_id,
        }
        row = self._call(operation, errors.CREATE_FAILED, lambda: self.backend.create('connections', payload))
        connection = Connection.from_dict(row)
        logger.info(f"Connection created: {source_step_id} -> {target_step_id}")
        return connection

    def delete_connection(self, connection_id: str) -> bool:
        operation = "delete connection"
        _require(connection_id, "id", operation)
        self._call(operation, errors.DELETE_FAILED, lambda: self.backend.delete('connections', connection_id))
        return True

    # --- Tabs ---

    def create_tab(self, workspace_id: str, name: str) -> Tab:
        operation = "create tab"
        _require(workspace_id, "workspace_id", operation)
        name = (name or "").strip()
        if not name:
            raise _validation("Tab name is required", operation)
        row = self._call(operation, errors.CREATE_FAILED,
                         lambda: self.backend.create('tabs', {'workspace_id': workspace_id, 'name': name}))
        tab = Tab.from_dict(row)
        logger.info(f"Tab created: {tab.id} ({tab.name})")
        return tab

    def update_tab(self, tab_id: str, fields: Dict[str, Any]) -> Tab:
        operation = "update tab"
        _require(tab_id, "id", operation)
        update = filter_fields(fields, TAB_UPDATE_FIELDS, operation)
        if not update:
            raise _validation("No updatable fields provided", operation)
        if 'name' in update:
            update['name'] = (update['name'] or "").strip()
            if not update['name']:
                raise _validation("Tab name is required", operation)
        row = self._call(operation, errors.UPDATE_FAILED, lambda: self.backend.update('tabs', tab_id, update))
        return Tab.from_dict(row)

    def delete_tab(self, tab_id: str) -> bool:
        operation = "delete tab"
        _require(tab_id, "id", operation)
        self._call(operation, errors.DELETE_FAILED, lambda: self.backend.delete('tabs', tab_id))
        logger.info(f"Tab deleted: {tab_id}")
        return True

    # --- Reads ---

    def list_sections(self, workspace_id: str, tab_id: Optional[str] = None) -> List[Section]:
        rows = self._list('sections', workspace_id, tab_id)
        return [Section.from_dict(r) for r in rows]

    def list_steps(self, workspace_id: str, tab_id: Optional[str] = None) -> List[Step]:
        rows = self._list('steps', workspace_id, tab_id)
        return [Step.from_dict(r) for r in rows]

    def list_connections(self, workspace_id: str, tab_id: Optional[str] = None) -> List[Connection]:
        rows = self._list('connections', workspace_id, tab_id)
        return [Connection.from_dict(r) for r in rows]

    def list_tabs(self, workspace_id: str) -> List[Tab]:
        rows = self._list('tabs', workspace_id, None)
        return sorted((Tab.from_dict(r) for r in rows), key=lambda t: t.position)

    # --- Internals ---

    def _list(self, resource: str, workspace_id: str, tab_id: Optional[str]) -> List[Dict[str, Any]]:
        operation = f"list {resource}"
        _require(workspace_id, "workspace_id", operation)
        return self._call(operation, errors.QUERY_FAILED,
                          lambda: self.backend.list(resource, workspace_id, tab_id))

    def _call(self, operation: str, failure_kind: str, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except MutationError as e:
            if not e.operation:
                e.operation = operation
            logger.error(f"{operation} failed ({e.kind}): {e}")
            raise
        except Exception as e:
            logger.error(f"{operation} failed: {e}")
            raise MutationError(failure_kind, str(e) or f"{operation} failed", operation=operation) from e


def _compact(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in payload.items() if v is not None}
