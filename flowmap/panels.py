"""
NiceGUI rendering for the detail panels and the workspace summary.

The panels hold no state of their own: every value is read from the binder's
current entity, and every edit goes through the binder. Binder writes are
coroutines on the event loop; only the gateway call leaves it.
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from nicegui import ui

from flowmap.constants import (
    STEP_STATUSES,
    EXECUTORS,
    STATUS_LABELS,
    EXECUTOR_LABELS,
    EXECUTOR_ICONS,
    STATUS_COLORS,
)
from flowmap.detail_panel import StepPanelBinder, SectionPanelBinder
from flowmap.summary import WorkspaceSummary

logger = logging.getLogger(__name__)

LABEL_CLASSES = 'text-[11px] font-medium text-gray-400 uppercase tracking-wide'


def render_status_badge(status: str, count: Optional[int] = None):
    color = STATUS_COLORS.get(status, STATUS_COLORS['draft'])
    text = STATUS_LABELS.get(status, status)
    if count is not None:
        text = f"{text}: {count}"
    ui.badge(text).style(f'background-color: {color}')


def render_editable_notes(
    text: Optional[str],
    on_change: Callable[[str], Union[None, Awaitable[Any]]],
    label: str = "Notes",
    placeholder: str = "_No notes yet_",
):
    """
    Markdown preview that switches to a textarea on click.
    on_change fires once on blur, with the new text, only if it changed.
    """
    if label:
        ui.label(label).classes(LABEL_CLASSES)

    original = text or ''
    with ui.column().classes('w-full').style('gap: 0;'):
        preview = ui.markdown(original if original.strip() else placeholder).classes(
            'w-full bg-zinc-800 rounded p-2 text-sm text-gray-200 max-h-60 overflow-y-auto '
            'cursor-pointer hover:bg-zinc-700 transition-colors'
        )
        editor = ui.textarea(value=original).props('filled rows=8').classes('w-full text-sm hidden')

        def show_editor():
            preview.set_visibility(False)
            editor.set_visibility(True)
            editor.classes(remove='hidden')
            editor.run_method('focus')

        async def hide_editor():
            nonlocal original
            editor.set_visibility(False)
            editor.classes(add='hidden')
            preview.set_visibility(True)
            new_text = editor.value or ''
            preview.set_content(new_text if new_text.strip() else placeholder)
            if new_text != original:
                original = new_text
                result = on_change(new_text)
                if inspect.isawaitable(result):
                    await result

        preview.on('click', show_editor)
        editor.on('blur', hide_editor)


def render_video(binder: StepPanelBinder):
    ui.label('Video').classes(LABEL_CLASSES)
    step = binder.entity
    url_input = ui.input(placeholder='Paste a Loom or YouTube link', value=step.video_url or '').classes('w-full')

    embed_container = ui.column().classes('w-full')

    def render_embed():
        embed_container.clear()
        current = binder.entity
        with embed_container:
            embed = binder.embed_url()
            if embed:
                ui.html(
                    f'<iframe src="{embed}" style="width:100%;aspect-ratio:16/9;border:0" allowfullscreen></iframe>'
                ).classes('w-full')
            elif current is not None and current.video_url:
                ui.label('Unsupported video link').classes('text-xs text-gray-500')

    async def save_url():
        if await binder.set_video_url(url_input.value):
            render_embed()

    url_input.on('blur', save_url)
    url_input.on('keydown.enter', save_url)
    render_embed()


def render_step_panel(binder: StepPanelBinder, on_close: Callable[[], None]):
    """Detail panel for a step. The canvas re-renders itself when the store changes."""
    step = binder.entity
    if step is None:
        return

    with ui.row().classes('w-full items-center justify-between'):
        ui.label('Step').classes('text-xs font-bold text-gray-400')
        ui.button(icon='close', on_click=on_close).props('flat dense round')

    name_input = ui.input(value=step.name).props('dense borderless').classes('w-full text-lg font-bold')
    name_input.on_value_change(lambda e: binder.on_name_input(e.value or ''))

    with ui.row().classes('w-full gap-2'):
        status_select = ui.select(
            {s: STATUS_LABELS[s] for s in STEP_STATUSES}, value=step.status, label='Status'
        ).classes('flex-1')
        executor_select = ui.select(
            {e: EXECUTOR_LABELS[e] for e in EXECUTORS}, value=step.executor, label='Executor'
        ).classes('flex-1')
    status_select.on_value_change(lambda e: binder.set_status(e.value))
    executor_select.on_value_change(lambda e: binder.set_executor(e.value))

    step_type_input = ui.input('Type', value=step.step_type or '').classes('w-full')
    step_type_input.on_value_change(lambda e: binder.set_step_type(e.value))

    ui.separator()

    with ui.row().classes('w-full gap-2'):
        time_input = ui.number('Time (min)', value=step.time_minutes, min=0, format='%d').classes('flex-1')
        freq_input = ui.number('Per month', value=step.frequency_per_month, min=0, format='%d').classes('flex-1')
    cost_label = ui.label('').classes('text-xs text-gray-400')

    def refresh_cost():
        cost = binder.monthly_cost()
        cost_label.set_text(f"Monthly cost: {cost} / month" if cost else '')

    async def save_time(e):
        await binder.set_time_minutes(e.value)
        refresh_cost()

    async def save_frequency(e):
        await binder.set_frequency_per_month(e.value)
        refresh_cost()

    time_input.on_value_change(save_time)
    freq_input.on_value_change(save_frequency)
    refresh_cost()

    ui.separator()
    render_editable_notes(step.notes, binder.set_notes)

    ui.separator()
    render_video(binder)

    async def do_delete():
        ok = await binder.delete()
        if ok:
            on_close()

    ui.button('Delete Step', icon='delete', on_click=do_delete).props('color=negative outline').classes('w-full mt-4')


def render_section_panel(binder: SectionPanelBinder, on_close: Callable[[], None]):
    section = binder.entity
    if section is None:
        return

    with ui.row().classes('w-full items-center justify-between'):
        ui.label('Section').classes('text-xs font-bold text-gray-400')
        ui.button(icon='close', on_click=on_close).props('flat dense round')

    name_input = ui.input(value=section.name).props('dense borderless').classes('w-full text-lg font-bold')
    name_input.on_value_change(lambda e: binder.on_name_input(e.value or ''))

    summary_input = ui.textarea('Summary', value=section.summary or '').props('rows=2').classes('w-full')
    summary_input.on('blur', lambda: binder.set_summary(summary_input.value))

    steps = binder.steps()
    ui.label(f'Steps ({len(steps)})').classes(LABEL_CLASSES + ' mt-2')
    with ui.row().classes('gap-1'):
        for status, count in binder.status_distribution().items():
            render_status_badge(status, count)
    with ui.column().classes('w-full gap-1'):
        for step in steps:
            with ui.row().classes('items-center gap-2'):
                icon = EXECUTOR_ICONS.get(step.executor)
                if icon:
                    ui.icon(icon).classes('text-gray-400')
                ui.label(step.name).classes('text-sm')

    ui.separator()
    render_editable_notes(section.notes, binder.set_notes)

    async def do_delete():
        ok = await binder.delete()
        if ok:
            on_close()

    ui.button('Delete Section', icon='delete', on_click=do_delete).props('color=negative outline').classes('w-full mt-4')


def render_workspace_summary(summary: WorkspaceSummary):
    """Shown when nothing is selected."""
    ui.label('Workspace Summary').classes('text-[11px] font-semibold uppercase tracking-wide text-gray-400')
    with ui.row().classes('w-full gap-2'):
        for label, value in (('Sections', summary.section_count),
                             ('Steps', summary.step_count),
                             ('Connections', summary.connection_count)):
            with ui.card().classes('flex-1 p-2 bg-zinc-800'):
                ui.label(str(value)).classes('text-lg font-bold')
                ui.label(label).classes('text-xs text-gray-400')

    if summary.total_monthly_label:
        ui.label('Total monthly time').classes(LABEL_CLASSES + ' mt-2')
        ui.label(summary.total_monthly_label).classes('text-lg font-bold')

    if summary.status_counts:
        ui.label('By status').classes(LABEL_CLASSES + ' mt-2')
        with ui.row().classes('gap-1'):
            for status, count in summary.status_counts.items():
                render_status_badge(status, count)

    if summary.executor_counts:
        ui.label('By executor').classes(LABEL_CLASSES + ' mt-2')
        with ui.column().classes('gap-1'):
            for executor, count in summary.executor_counts.items():
                with ui.row().classes('items-center gap-2'):
                    ui.label(EXECUTOR_LABELS.get(executor, executor)).classes('text-sm')
                    ui.label(str(count)).classes('text-sm text-gray-500')
