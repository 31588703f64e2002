import logging
from dataclasses import replace
from typing import Callable, Iterable, List, Optional, Tuple, Union

from flowmap.models import Section, Step, Connection
from flowmap.selection import SelectionController

logger = logging.getLogger(__name__)

Entity = Union[Section, Step, Connection]


class EntityStore:
    """
    Canonical sections, steps and connections for one tab.

    Each collection is a tuple kept in insertion order and unique by id.
    Every mutator builds the new tuple first and swaps it in with a single
    assignment, so a reader never sees a half-applied change.

    Cascades on delete:
    - Step: every Connection touching the step is removed.
    - Section: steps inside it are orphaned (section_id -> None), never deleted.

    The store does no I/O. Persistence is driven by the caller (MutationGateway),
    which keeps the store usable for read-only rendering and tests.
    """

    def __init__(self, selection: Optional[SelectionController] = None):
        self._sections: Tuple[Section, ...] = ()
        self._steps: Tuple[Step, ...] = ()
        self._connections: Tuple[Connection, ...] = ()
        self._selection = selection
        self._listeners: List[Callable[["EntityStore"], None]] = []
        self.version = 0

    # --- Read access ---

    @property
    def sections(self) -> Tuple[Section, ...]:
        return self._sections

    @property
    def steps(self) -> Tuple[Step, ...]:
        return self._steps

    @property
    def connections(self) -> Tuple[Connection, ...]:
        return self._connections

    def get_section(self, section_id: Optional[str]) -> Optional[Section]:
        return _find(self._sections, section_id)

    def get_step(self, step_id: Optional[str]) -> Optional[Step]:
        return _find(self._steps, step_id)

    def get_connection(self, connection_id: Optional[str]) -> Optional[Connection]:
        return _find(self._connections, connection_id)

    def steps_in_section(self, section_id: str) -> List[Step]:
        return [s for s in self._steps if s.section_id == section_id]

    # --- Change listeners ---

    def subscribe(self, callback: Callable[["EntityStore"], None]) -> None:
        self._listeners.append(callback)

    def unsubscribe(self, callback: Callable[["EntityStore"], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _changed(self) -> None:
        self.version += 1
        for callback in list(self._listeners):
            try:
                callback(self)
            except Exception as e:
                logger.error(f"Store listener failed: {e}")

    # --- Mutators ---

    def load(self, sections: Iterable[Section], steps: Iterable[Step],
             connections: Iterable[Connection]) -> None:
        """Replace all three collections, e.g. after switching tabs."""
        self._sections = _dedupe(sections)
        self._steps = _dedupe(steps)
        self._connections = _dedupe(connections)
        self._changed()

    def apply_create(self, entity: Entity) -> None:
        """Append a confirmed record. A record whose id is already present is replaced in place."""
        current = self._collection_for(entity)
        if any(e.id == entity.id for e in current):
            logger.warning(f"apply_create: {type(entity).__name__} {entity.id} already present, replacing")
            self._swap(entity, tuple(entity if e.id == entity.id else e for e in current))
        else:
            self._swap(entity, current + (entity,))
        self._changed()

    def apply_update(self, entity: Entity) -> bool:
        """Replace the record with the same id. Returns False (no-op) if it is not present."""
        current = self._collection_for(entity)
        if not any(e.id == entity.id for e in current):
            logger.debug(f"apply_update: {type(entity).__name__} {entity.id} not in store, ignoring")
            return False
        self._swap(entity, tuple(entity if e.id == entity.id else e for e in current))
        self._changed()
        return True

    def apply_delete(self, kind: str, entity_id: str) -> bool:
        """
        Remove a record and apply the delete cascades.

        Returns False if nothing with that id was present.
        """
        if kind == 'step':
            found = any(s.id == entity_id for s in self._steps)
            steps = tuple(s for s in self._steps if s.id != entity_id)
            connections = tuple(c for c in self._connections if not c.touches(entity_id))
            self._steps, self._connections = steps, connections
        elif kind == 'section':
            found = any(s.id == entity_id for s in self._sections)
            sections = tuple(s for s in self._sections if s.id != entity_id)
            steps = tuple(
                replace(s, section_id=None) if s.section_id == entity_id else s
                for s in self._steps
            )
            self._sections, self._steps = sections, steps
        elif kind == 'connection':
            found = any(c.id == entity_id for c in self._connections)
            self._connections = tuple(c for c in self._connections if c.id != entity_id)
        else:
            raise ValueError(f"Unknown entity kind: {kind}")

        if self._selection is not None:
            self._selection.clear_if(kind, entity_id)

        self._changed()
        return found

    def set_step_position(self, step_id: str, x: float, y: float) -> Optional[Step]:
        """Local-only position change (drag end, before the server confirms)."""
        step = self.get_step(step_id)
        if step is None:
            return None
        moved = replace(step, position_x=x, position_y=y)
        self.apply_update(moved)
        return moved

    def set_section_position(self, section_id: str, x: float, y: float) -> Optional[Section]:
        section = self.get_section(section_id)
        if section is None:
            return None
        moved = replace(section, position_x=x, position_y=y)
        self.apply_update(moved)
        return moved

    # --- Internals ---

    def _collection_for(self, entity: Entity) -> tuple:
        if isinstance(entity, Section):
            return self._sections
        if isinstance(entity, Step):
            return self._steps
        if isinstance(entity, Connection):
            return self._connections
        raise TypeError(f"Unsupported entity type: {type(entity).__name__}")

    def _swap(self, entity: Entity, new_collection: tuple) -> None:
        if isinstance(entity, Section):
            self._sections = new_collection
        elif isinstance(entity, Step):
            self._steps = new_collection
        else:
            self._connections = new_collection


def _find(collection: tuple, entity_id: Optional[str]):
    if entity_id is None:
        return None
    for e in collection:
        if e.id == entity_id:
            return e
    return None


def _dedupe(items: Iterable[Entity]) -> tuple:
    """Keep first-seen order, last record wins for a repeated id."""
    by_id = {}
    for item in items:
        by_id[item.id] = item
    return tuple(by_id.values())
