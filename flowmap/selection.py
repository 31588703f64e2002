"""
Selection Controller - which step or section the detail panel is bound to.

At most one entity is selected: a step XOR a section. Selecting one clears
the other; clicking empty canvas clears both. The EntityStore calls
clear_if() when the selected entity is deleted.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectionState:
    """Immutable snapshot of the current selection."""
    selected_step_id: Optional[str] = None
    selected_section_id: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.selected_step_id is None and self.selected_section_id is None

    @property
    def kind(self) -> Optional[str]:
        if self.selected_step_id is not None:
            return 'step'
        if self.selected_section_id is not None:
            return 'section'
        return None


class SelectionController:
    """Tracks the selected step or section and notifies on change."""

    def __init__(self, on_change: Optional[Callable[[SelectionState], None]] = None):
        self._state = SelectionState()
        self._on_change = on_change

    @property
    def state(self) -> SelectionState:
        return self._state

    @property
    def selected_step_id(self) -> Optional[str]:
        return self._state.selected_step_id

    @property
    def selected_section_id(self) -> Optional[str]:
        return self._state.selected_section_id

    def set_on_change(self, callback: Callable[[SelectionState], None]):
        self._on_change = callback

    def select_step(self, step_id: Optional[str]) -> SelectionState:
        if step_id is None:
            new_state = SelectionState(selected_section_id=self._state.selected_section_id)
        else:
            new_state = SelectionState(selected_step_id=step_id)
        return self._set(new_state)

    def select_section(self, section_id: Optional[str]) -> SelectionState:
        if section_id is None:
            new_state = SelectionState(selected_step_id=self._state.selected_step_id)
        else:
            new_state = SelectionState(selected_section_id=section_id)
        return self._set(new_state)

    def clear(self) -> SelectionState:
        return self._set(SelectionState())

    def clear_if(self, kind: str, entity_id: str) -> SelectionState:
        """Drop the selection when it points at a deleted entity."""
        if kind == 'step' and self._state.selected_step_id == entity_id:
            return self.select_step(None)
        if kind == 'section' and self._state.selected_section_id == entity_id:
            return self.select_section(None)
        return self._state

    def _set(self, new_state: SelectionState) -> SelectionState:
        if new_state == self._state:
            return self._state
        self._state = new_state
        logger.debug(f"Selection changed: {new_state}")
        if self._on_change:
            self._on_change(new_state)
        return self._state
