"""
Detail Panel Binders - field edits for the selected step or section.

Write policy:
- name: trailing-edge debounce (FieldDebouncer). Each keystroke cancels the
  pending write and schedules a new one; the latest value wins. A value that
  is blank after trimming is never written.
- everything else: written immediately on change.

Every write goes through the MutationGateway and the confirmed record is
applied to the EntityStore. A failed write shows "Failed to update <field>"
and leaves the store untouched. Responses that come back for an older
write of the same field are dropped (see flowmap.sequencing).

Writes are coroutines on the event loop; only the gateway call itself is
handed to CanvasController.run_io.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from flowmap.canvas import CanvasController, Notifier
from flowmap.constants import NAME_DEBOUNCE_SECONDS
from flowmap.errors import MutationError
from flowmap.models import Section, Step
from flowmap.summary import status_counts, step_monthly_cost
from flowmap.video import parse_embed_url

logger = logging.getLogger(__name__)


class FieldDebouncer:
    """
    Trailing-edge debounce on the running asyncio loop.

    A scheduled write is "pending" while it sleeps and "in flight" once its
    callback has started. cancel() only drops a pending write; a write in
    flight is left to finish.
    """

    def __init__(self, delay_seconds: float, callback: Callable[[Any], Union[None, Awaitable[None]]]):
        self.delay_seconds = delay_seconds
        self._callback = callback
        self._task: Optional[asyncio.Task] = None
        self._in_flight: Optional[asyncio.Task] = None
        self._pending_value: Any = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def in_flight(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()

    def push(self, value: Any) -> None:
        """Schedule a write of value, replacing any pending one. Needs a running loop."""
        self.cancel()
        self._pending_value = value
        self._task = asyncio.create_task(self._fire(value))

    async def _fire(self, value: Any) -> None:
        await asyncio.sleep(self.delay_seconds)
        task = asyncio.current_task()
        self._task = None
        self._in_flight = task
        try:
            await self._invoke(value)
        finally:
            if self._in_flight is task:
                self._in_flight = None

    async def _invoke(self, value: Any) -> None:
        result = self._callback(value)
        if inspect.isawaitable(result):
            await result

    def cancel(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
        self._task = None

    async def flush_now(self) -> None:
        """
        Write the pending value immediately (e.g. on blur or panel close).
        A write already in flight is awaited, not repeated.
        """
        if self.pending:
            value = self._pending_value
            self.cancel()
            self._in_flight = asyncio.create_task(self._invoke(value))
        if self.in_flight:
            await self._in_flight


class PanelBinder:
    """Shared write path for step and section panels."""

    kind = ''

    def __init__(self, canvas: CanvasController, entity_id: str,
                 notify: Optional[Notifier] = None,
                 debounce_seconds: float = NAME_DEBOUNCE_SECONDS):
        self.canvas = canvas
        self.entity_id = entity_id
        self.notify: Notifier = notify or canvas.notify
        self.name_debouncer = FieldDebouncer(debounce_seconds, self.commit_name)

    # --- Hooks for subclasses ---

    def _lookup(self):
        raise NotImplementedError

    def _update_fn(self) -> Callable[[str, Dict[str, Any]], Any]:
        raise NotImplementedError

    async def _delete(self) -> bool:
        raise NotImplementedError

    # --- Common API ---

    @property
    def entity(self):
        return self._lookup()

    async def write_field(self, field: str, value: Any) -> bool:
        """Immediate write of one field. Returns True if the server accepted it."""
        key = (self.kind, self.entity_id, field)
        seq = self.canvas.sequencer.issue(key)
        try:
            confirmed = await self.canvas.run_io(self._update_fn(), self.entity_id, {field: value})
        except MutationError as e:
            logger.warning(f"Update of {self.kind} {self.entity_id}.{field} failed: {e}")
            self.notify(f"Failed to update {field}", 'negative')
            return False
        if self.canvas.sequencer.is_current(key, seq):
            self.canvas.store.apply_update(confirmed)
        return True

    def on_name_input(self, value: str) -> None:
        """Called on every keystroke in the name field."""
        self.name_debouncer.push(value)

    async def commit_name(self, value: str) -> bool:
        trimmed = (value or "").strip()
        if not trimmed:
            return False
        return await self.write_field('name', trimmed)

    async def set_notes(self, html: Optional[str]) -> bool:
        return await self.write_field('notes', html)

    async def delete(self) -> bool:
        self.name_debouncer.cancel()
        return await self._delete()

    def close(self) -> None:
        self.name_debouncer.cancel()

    async def finish(self) -> None:
        """Panel is going away: flush a pending name, unless the entity is gone."""
        if self.entity is None:
            self.close()
            return
        await self.name_debouncer.flush_now()
        self.close()


class StepPanelBinder(PanelBinder):
    kind = 'step'

    def _lookup(self) -> Optional[Step]:
        return self.canvas.store.get_step(self.entity_id)

    def _update_fn(self):
        return self.canvas.gateway.update_step

    async def _delete(self) -> bool:
        if not await self.canvas.delete_step(self.entity_id):
            return False
        self.notify("Step deleted", 'positive')
        return True

    async def set_status(self, status: str) -> bool:
        return await self.write_field('status', status)

    async def set_executor(self, executor: str) -> bool:
        return await self.write_field('executor', executor)

    async def set_step_type(self, step_type: Optional[str]) -> bool:
        return await self.write_field('step_type', step_type or None)

    async def set_time_minutes(self, raw: Union[str, int, float, None]) -> bool:
        return await self._write_int('time_minutes', raw)

    async def set_frequency_per_month(self, raw: Union[str, int, float, None]) -> bool:
        return await self._write_int('frequency_per_month', raw)

    async def set_video_url(self, url: Optional[str]) -> bool:
        return await self.write_field('video_url', (url or "").strip() or None)

    async def _write_int(self, field: str, raw: Union[str, int, float, None]) -> bool:
        try:
            value = _parse_optional_int(raw)
        except (ValueError, OverflowError):
            logger.debug(f"Ignoring non-numeric {field}: {raw!r}")
            return False
        return await self.write_field(field, value)

    # --- Derived, never persisted ---

    def monthly_cost(self) -> Optional[str]:
        step = self.entity
        if step is None:
            return None
        return step_monthly_cost(step)

    def embed_url(self) -> Optional[str]:
        step = self.entity
        if step is None:
            return None
        return parse_embed_url(step.video_url)


class SectionPanelBinder(PanelBinder):
    kind = 'section'

    def _lookup(self) -> Optional[Section]:
        return self.canvas.store.get_section(self.entity_id)

    def _update_fn(self):
        return self.canvas.gateway.update_section

    async def _delete(self) -> bool:
        if not await self.canvas.delete_section(self.entity_id):
            return False
        self.notify("Section deleted", 'positive')
        return True

    async def set_summary(self, summary: Optional[str]) -> bool:
        return await self.write_field('summary', summary or None)

    def steps(self) -> List[Step]:
        return self.canvas.store.steps_in_section(self.entity_id)

    def status_distribution(self) -> Dict[str, int]:
        return status_counts(self.steps())


def _parse_optional_int(raw: Union[str, int, float, None]) -> Optional[int]:
    """'' / None -> None, '15' -> 15. Non-numeric text raises ValueError."""
    if raw is None:
        return None
    if isinstance(raw, (int, float)):
        return int(raw)
    text = raw.strip()
    if not text:
        return None
    return int(float(text))


def binder_for(canvas: CanvasController, **kwargs) -> Optional[PanelBinder]:
    """Binder for whatever is selected, or None when nothing is."""
    state = canvas.selection.state
    if state.selected_step_id and canvas.store.get_step(state.selected_step_id):
        return StepPanelBinder(canvas, state.selected_step_id, **kwargs)
    if state.selected_section_id and canvas.store.get_section(state.selected_section_id):
        return SectionPanelBinder(canvas, state.selected_section_id, **kwargs)
    return None
