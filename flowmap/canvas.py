"""
Canvas Controller - turns canvas gestures into store and gateway calls.

Flow for every gesture:
  gesture -> EntityStore (optimistic for deletes and drags, after
  confirmation for creates) -> MutationGateway -> confirmed record replaces
  the local one, or a notification is shown.

Optimistic deletes and drags are NOT rolled back when the server call
fails; the user sees the failure notification and the canvas keeps the
local state until the next load().

Handlers are coroutines that run on the event loop. Only the blocking
gateway call is handed to run_blocking (run.io_bound in the app); the store,
the selection and the sequencer are touched on the loop alone.
"""

import logging
import random
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple, Union

from flowmap.constants import (
    DEFAULT_STEP_NAME,
    DEFAULT_SECTION_NAME,
    STEP_SPAWN_ORIGIN,
    STEP_SPAWN_WINDOW,
    SECTION_SPAWN_ORIGIN,
    SECTION_SPAWN_WINDOW,
)
from flowmap.entity_store import EntityStore
from flowmap.errors import MutationError
from flowmap.gateway import MutationGateway
from flowmap.graph_projection import (
    project,
    parse_node_id,
    parse_edge_id,
    clamp_to_parent,
)
from flowmap.models import Section, Step, Connection
from flowmap.selection import SelectionController
from flowmap.sequencing import RequestSequencer

logger = logging.getLogger(__name__)

# notify(message, type) - type follows ui.notify: 'positive', 'negative', 'warning', 'info'
Notifier = Callable[[str, str], None]

# run_blocking(fn, *args) -> awaitable result; run.io_bound in the app
BlockingRunner = Callable[..., Awaitable[Any]]

DELETE_KEYS = ('Delete', 'Backspace')


def log_notifier(message: str, kind: str = 'info') -> None:
    """Default notifier when no UI is attached."""
    level = logging.WARNING if kind in ('negative', 'warning') else logging.INFO
    logger.log(level, f"[notify:{kind}] {message}")


class CanvasController:
    """Owns the canvas state for one (workspace, tab)."""

    def __init__(self, gateway: MutationGateway, workspace_id: str, tab_id: str,
                 store: Optional[EntityStore] = None,
                 selection: Optional[SelectionController] = None,
                 notify: Optional[Notifier] = None,
                 rng: Optional[random.Random] = None,
                 run_blocking: Optional[BlockingRunner] = None):
        self.gateway = gateway
        self.workspace_id = workspace_id
        self.tab_id = tab_id
        self.selection = selection or SelectionController()
        self.store = store or EntityStore(selection=self.selection)
        self.notify: Notifier = notify or log_notifier
        self.sequencer = RequestSequencer()
        self._rng = rng or random.Random()
        self._run_blocking = run_blocking

    async def run_io(self, fn: Callable[..., Any], *args) -> Any:
        """Run one blocking gateway call, off the loop when a runner is set."""
        if self._run_blocking is not None:
            return await self._run_blocking(fn, *args)
        return fn(*args)

    # --- Loading / rendering ---

    async def load(self) -> bool:
        """Pull sections, steps and connections for the tab. Returns False on failure."""
        def fetch():
            return (
                self.gateway.list_sections(self.workspace_id, self.tab_id),
                self.gateway.list_steps(self.workspace_id, self.tab_id),
                self.gateway.list_connections(self.workspace_id, self.tab_id),
            )

        try:
            sections, steps, connections = await self.run_io(fetch)
        except MutationError as e:
            logger.error(f"Failed to load tab {self.tab_id}: {e}")
            self.notify("Failed to load canvas", 'negative')
            return False
        self.store.load(sections, steps, connections)
        self.selection.clear()
        logger.info(f"Loaded tab {self.tab_id}: {len(sections)} sections, "
                    f"{len(steps)} steps, {len(connections)} connections")
        return True

    def project(self) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
        return project(
            self.store.sections,
            self.store.steps,
            self.store.connections,
            self.selection.selected_step_id,
            self.selection.selected_section_id,
        )

    def detail_target(self) -> Optional[Union[Step, Section]]:
        """The entity the detail panel shows, or None when nothing is selected."""
        if self.selection.selected_step_id:
            return self.store.get_step(self.selection.selected_step_id)
        if self.selection.selected_section_id:
            return self.store.get_section(self.selection.selected_section_id)
        return None

    # --- Create ---

    async def add_step(self) -> Optional[Step]:
        x = STEP_SPAWN_ORIGIN[0] + self._rng.random() * STEP_SPAWN_WINDOW[0]
        y = STEP_SPAWN_ORIGIN[1] + self._rng.random() * STEP_SPAWN_WINDOW[1]
        try:
            step = await self.run_io(lambda: self.gateway.create_step(
                self.workspace_id, self.tab_id,
                name=DEFAULT_STEP_NAME, position_x=x, position_y=y,
            ))
        except MutationError:
            self.notify("Failed to create step", 'negative')
            return None
        self.store.apply_create(step)
        self.selection.select_step(step.id)
        return step

    async def add_section(self) -> Optional[Section]:
        x = SECTION_SPAWN_ORIGIN[0] + self._rng.random() * SECTION_SPAWN_WINDOW[0]
        y = SECTION_SPAWN_ORIGIN[1] + self._rng.random() * SECTION_SPAWN_WINDOW[1]
        try:
            section = await self.run_io(lambda: self.gateway.create_section(
                self.workspace_id, self.tab_id,
                name=DEFAULT_SECTION_NAME, position_x=x, position_y=y,
            ))
        except MutationError:
            self.notify("Failed to create section", 'negative')
            return None
        self.store.apply_create(section)
        return section

    # --- Drag ---

    async def on_node_drag_end(self, node_id: str, x: float, y: float) -> bool:
        """Persist a node's final position. Returns True if the server confirmed it."""
        kind, entity_id = parse_node_id(node_id)
        if kind == 'step':
            step = self.store.get_step(entity_id)
            if step is None:
                return False
            parent = self.store.get_section(step.section_id)
            if parent is not None:
                x, y = clamp_to_parent(x, y, parent.width, parent.height)
            self.store.set_step_position(entity_id, x, y)
            return await self._persist_position(kind, entity_id, x, y, self.gateway.update_step,
                                                "Failed to move step")
        if kind == 'section':
            if self.store.get_section(entity_id) is None:
                return False
            self.store.set_section_position(entity_id, x, y)
            return await self._persist_position(kind, entity_id, x, y, self.gateway.update_section,
                                                "Failed to move section")
        logger.debug(f"Ignoring drag end for unknown node {node_id}")
        return False

    async def _persist_position(self, kind: str, entity_id: str, x: float, y: float,
                                update: Callable[[str, Dict[str, Any]], Any], failure_message: str) -> bool:
        key = (kind, entity_id, 'position')
        seq = self.sequencer.issue(key)
        try:
            confirmed = await self.run_io(update, entity_id, {'position_x': x, 'position_y': y})
        except MutationError:
            self.notify(failure_message, 'negative')
            return False
        if self.sequencer.is_current(key, seq):
            self.store.apply_update(confirmed)
        return True

    # --- Connections ---

    async def on_connect(self, source_node_id: str, target_node_id: str) -> Optional[Connection]:
        source_kind, source_id = parse_node_id(source_node_id)
        target_kind, target_id = parse_node_id(target_node_id)
        if source_kind != 'step' or target_kind != 'step':
            logger.debug(f"Ignoring connect between {source_node_id} and {target_node_id}")
            return None
        try:
            connection = await self.run_io(self.gateway.create_connection,
                                           self.workspace_id, self.tab_id, source_id, target_id)
        except MutationError as e:
            if e.is_duplicate:
                self.notify("Connection already exists", 'warning')
            else:
                self.notify("Failed to create connection", 'negative')
            return None
        self.store.apply_create(connection)
        return connection

    async def on_edges_removed(self, edge_ids: Iterable[str]) -> int:
        """Delete connections removed on the canvas. Returns how many the server confirmed."""
        confirmed = 0
        for edge_id in edge_ids:
            connection_id = parse_edge_id(edge_id)
            if connection_id is None:
                continue
            self.store.apply_delete('connection', connection_id)
            try:
                await self.run_io(self.gateway.delete_connection, connection_id)
                confirmed += 1
            except MutationError:
                self.notify("Failed to delete connection", 'negative')
        return confirmed

    # --- Selection ---

    def on_node_click(self, node_id: str) -> None:
        kind, entity_id = parse_node_id(node_id)
        if kind == 'step':
            self.selection.select_step(entity_id)
        elif kind == 'section':
            self.selection.select_section(entity_id)

    def on_pane_click(self) -> None:
        self.selection.clear()

    # --- Delete ---

    async def delete_step(self, step_id: str) -> bool:
        self.store.apply_delete('step', step_id)
        try:
            await self.run_io(self.gateway.delete_step, step_id)
        except MutationError:
            self.notify("Failed to delete step", 'negative')
            return False
        return True

    async def delete_section(self, section_id: str) -> bool:
        self.store.apply_delete('section', section_id)
        try:
            await self.run_io(self.gateway.delete_section, section_id)
        except MutationError:
            self.notify("Failed to delete section", 'negative')
            return False
        return True

    async def delete_selection(self) -> bool:
        state = self.selection.state
        if state.selected_step_id:
            return await self.delete_step(state.selected_step_id)
        if state.selected_section_id:
            return await self.delete_section(state.selected_section_id)
        return False

    # --- Keyboard ---

    async def handle_key(self, key: str, meta: bool = False, ctrl: bool = False,
                         text_input_focused: bool = False) -> bool:
        """
        Canvas keyboard shortcuts. Returns True when the key triggered a
        canvas action, False when it was left alone.

        Delete / Backspace: delete the selected step or section
        n: add a step
        s: add a section
        """
        if text_input_focused:
            return False
        if key in DELETE_KEYS:
            if self.selection.state.is_empty:
                return False
            await self.delete_selection()
            return True
        if meta or ctrl:
            return False
        if key == 'n':
            await self.add_step()
            return True
        if key == 's':
            await self.add_section()
            return True
        return False
