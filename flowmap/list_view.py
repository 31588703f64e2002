"""Step list page: every step of the workspace in one searchable table."""

import logging
from typing import Dict, List

from nicegui import ui, run

from flowmap.constants import STEP_STATUSES, EXECUTORS, STATUS_LABELS, EXECUTOR_LABELS
from flowmap.errors import MutationError
from flowmap.gateway import MutationGateway
from flowmap.models import Step
from flowmap.step_list import (
    SORT_FIELDS,
    DEFAULT_SORT,
    toggle_sort,
    visible_steps,
    table_rows,
    empty_message,
)

logger = logging.getLogger(__name__)

COLUMN_LABELS = {
    'name': 'Name',
    'status': 'Status',
    'executor': 'Executor',
    'section': 'Section',
    'tab': 'Tab',
    'created_at': 'Created',
}


def _load(gateway: MutationGateway, workspace_id: str):
    steps = gateway.list_steps(workspace_id)
    section_names = {s.id: s.name for s in gateway.list_sections(workspace_id)}
    tab_names = {t.id: t.name for t in gateway.list_tabs(workspace_id)}
    return steps, section_names, tab_names


async def render_step_list(gateway: MutationGateway, workspace_id: str):
    """Render the list into the current page. Data is fetched once per visit."""
    steps: List[Step] = []
    section_names: Dict[str, str] = {}
    tab_names: Dict[str, str] = {}
    view = {'search': '', 'status': None, 'executor': None, 'sort': DEFAULT_SORT}

    try:
        steps, section_names, tab_names = await run.io_bound(_load, gateway, workspace_id)
    except MutationError as e:
        logger.error(f"Failed to load steps for workspace {workspace_id}: {e}")
        ui.notify("Failed to load steps", type='negative', position='bottom')

    @ui.refreshable
    def results():
        shown = visible_steps(steps, view['search'], view['status'], view['executor'], view['sort'],
                              section_names, tab_names)
        if not shown:
            ui.label(empty_message(view['search'], view['status'], view['executor'])).classes('text-gray-500 p-4')
            return
        columns = [{'name': f, 'label': COLUMN_LABELS[f], 'field': f, 'align': 'left'} for f in SORT_FIELDS]
        ui.table(columns=columns, rows=table_rows(shown, section_names, tab_names), row_key='id') \
            .classes('w-full').props('flat dense')

    @ui.refreshable
    def sort_bar():
        field, direction = view['sort']
        with ui.row().classes('items-center gap-1'):
            ui.label('Sort:').classes('text-sm text-gray-500')
            for name in SORT_FIELDS:
                icon = ('arrow_upward' if direction == 'asc' else 'arrow_downward') if name == field else None
                ui.button(COLUMN_LABELS[name], icon=icon, on_click=lambda n=name: on_sort(n)) \
                    .props(f'flat dense no-caps {"color=primary" if name == field else "color=grey"}')

    def on_sort(name: str):
        view['sort'] = toggle_sort(view['sort'][0], view['sort'][1], name)
        sort_bar.refresh()
        results.refresh()

    def set_filter(key: str, value):
        # '' is the "All" option of the selects; a cleared search is None
        if key == 'search':
            view[key] = value or ''
        else:
            view[key] = value or None
        results.refresh()

    with ui.column().classes('w-full max-w-5xl mx-auto p-4 gap-3'):
        with ui.row().classes('w-full items-center gap-3'):
            ui.input(placeholder='Search steps...', on_change=lambda e: set_filter('search', e.value)) \
                .props('dense clearable').classes('flex-1')
            ui.select({'': 'All statuses', **{s: STATUS_LABELS[s] for s in STEP_STATUSES}}, value='',
                      on_change=lambda e: set_filter('status', e.value)).props('dense').classes('w-40')
            ui.select({'': 'All executors', **{x: EXECUTOR_LABELS[x] for x in EXECUTORS}}, value='',
                      on_change=lambda e: set_filter('executor', e.value)).props('dense').classes('w-40')
        sort_bar()
        results()
