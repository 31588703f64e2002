"""
Main NiceGUI application for Flowmap.

Renders one workspace: a tab bar, the canvas (ui.echart graph series) and a
detail panel on the right. All canvas logic lives in flowmap.canvas; this
file only wires NiceGUI events to it.

Gestures:
- click a node: select it; click the background: clear the selection
- drag a node: move it (persisted on release)
- Ctrl+click a step, then Ctrl+click another step: connect them
- Ctrl+click a connection: delete it
- keys: Delete/Backspace delete the selection, n adds a step, s adds a section
- scroll / drag the background: pan and zoom, saved per tab

Handlers await the controller coroutines, which hand only the blocking gateway
call to run.io_bound; store and selection changes stay on the event loop. A
short ui.timer re-renders the chart and panel when they change.
"""

import logging
import sys
import time
from collections import deque

from nicegui import ui, run

from dotenv import load_dotenv

from flowmap.paths import get_env_path

load_dotenv(get_env_path())
load_dotenv()

from flowmap.canvas import CanvasController
from flowmap.chart_builder import (
    build_echart_options,
    normalize_click_payload,
    resolve_click,
    drop_position,
    REQUESTED_EVENT_KEYS,
    parse_viewport,
)
from flowmap.config import load_settings, name_debounce_seconds
from flowmap.detail_panel import FieldDebouncer, StepPanelBinder, SectionPanelBinder, binder_for
from flowmap.gateway import MutationGateway
from flowmap.list_view import render_step_list
from flowmap.panels import render_step_panel, render_section_panel, render_workspace_summary
from flowmap.storage.factory import create_backend
from flowmap.summary import summarize_workspace
from flowmap.tab_bar import render_tab_bar
from flowmap.workspace_context import WorkspaceContext, TabController

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)
logger = logging.getLogger(__name__)

# Seconds after a node/edge click during which a background click is a ghost
GHOST_CLICK_WINDOW = 0.3
SYNC_INTERVAL = 0.2
# Pan/zoom is saved once the view has been still this long
VIEWPORT_SAVE_DELAY = 0.5

ui.add_head_html('''
    <style>
        ::-webkit-scrollbar { width: 8px; height: 8px; }
        ::-webkit-scrollbar-track { background: transparent; }
        ::-webkit-scrollbar-thumb { background: #52525b; border-radius: 9999px; }
    </style>
''', shared=True)


@ui.page('/')
def index_page():
    settings = load_settings()
    workspace_id = settings.get('workspace_id')
    if workspace_id:
        ui.navigate.to(f'/w/{workspace_id}')
        return
    with ui.column().classes('absolute-center items-center'):
        ui.icon('account_tree', size='xl').classes('text-primary mb-4')
        ui.label('No workspace selected').classes('text-xl font-bold')
        ui.label('Set FLOWMAP_WORKSPACE_ID or open /w/<workspace id>').classes('text-gray-500')


@ui.page('/w/{workspace_id}')
async def workspace_page(workspace_id: str):
    ui.dark_mode().enable()
    settings = load_settings()
    gateway = MutationGateway(create_backend(settings))
    debounce = name_debounce_seconds(settings)

    # Notifications may be raised from run.io_bound threads; they are shown by the sync timer
    notifications = deque()

    def queue_notify(message: str, kind: str = 'info'):
        notifications.append((message, kind))

    context = WorkspaceContext(workspace_id=workspace_id)
    tabs = TabController(context, gateway, notify=queue_notify)

    state = {
        'canvas': None,
        'binder': None,
        'chart': None,
        'rendered_version': -1,
        'rendered_selection': None,
        'panel_target': None,
        'panel_version': -1,
        'panel': None,
        'is_ctrl_pressed': False,
        'connect_source': None,
        'last_selection_time': 0.0,
        'last_nodes': [],
        'viewport': None,
    }

    # --- Rendering ---

    def refresh_chart_ui():
        canvas = state['canvas']
        chart = state['chart']
        if canvas is None or chart is None:
            return
        nodes, edges = canvas.project()
        state['last_nodes'] = nodes
        chart.options.clear()
        chart.options.update(build_echart_options(nodes, edges, state['viewport']))
        chart.update()
        state['rendered_version'] = canvas.store.version
        state['rendered_selection'] = canvas.selection.state

    def close_panel():
        canvas = state['canvas']
        if canvas is not None:
            canvas.on_pane_click()

    async def render_panel():
        canvas = state['canvas']
        if state['binder'] is not None:
            # pending name edits belong to the previous target
            await state['binder'].finish()
            state['binder'] = None

        panel = state['panel']
        panel.clear()
        with panel:
            if canvas is None:
                return
            binder = binder_for(canvas, debounce_seconds=debounce)
            state['binder'] = binder
            if isinstance(binder, StepPanelBinder):
                render_step_panel(binder, on_close=close_panel)
            elif isinstance(binder, SectionPanelBinder):
                render_section_panel(binder, on_close=close_panel)
            else:
                store = canvas.store
                render_workspace_summary(summarize_workspace(store.sections, store.steps, store.connections))

        target = canvas.detail_target() if canvas else None
        state['panel_target'] = target.id if target is not None else None
        state['panel_version'] = canvas.store.version if canvas else -1

    @ui.refreshable
    def tab_bar():
        render_tab_bar(tabs, on_changed=on_tabs_changed)

    async def sync_ui():
        while notifications:
            message, kind = notifications.popleft()
            ui.notify(message, type=kind, position='bottom')

        canvas = state['canvas']
        if canvas is None:
            return
        if (canvas.store.version != state['rendered_version']
                or canvas.selection.state != state['rendered_selection']):
            refresh_chart_ui()
        target = canvas.detail_target()
        target_id = target.id if target is not None else None
        # The summary follows store changes; an open editor is only rebuilt on a new target
        if target_id != state['panel_target'] or (target_id is None and canvas.store.version != state['panel_version']):
            await render_panel()

    # --- Tabs ---

    async def open_tab(tab_id: str):
        viewport_debouncer.cancel()
        tab = context.get_tab(tab_id)
        state['viewport'] = tab.viewport if tab is not None else None
        canvas = CanvasController(gateway, workspace_id, tab_id, notify=queue_notify,
                                  run_blocking=run.io_bound)
        state['canvas'] = canvas
        state['connect_source'] = None
        await canvas.load()
        refresh_chart_ui()
        await render_panel()

    async def on_tabs_changed():
        tab_bar.refresh()
        active = context.active_tab_id
        canvas = state['canvas']
        if active and (canvas is None or canvas.tab_id != active):
            await open_tab(active)

    # --- Canvas events ---

    async def handle_chart_click(event):
        canvas = state['canvas']
        if canvas is None:
            return
        payload = normalize_click_payload(event.args if hasattr(event, 'args') else event)
        kind, ident = resolve_click(payload)
        if kind == 'pane':
            return

        state['last_selection_time'] = time.time()

        if kind == 'edge':
            if state['is_ctrl_pressed']:
                await canvas.on_edges_removed([ident])
            return

        if state['is_ctrl_pressed']:
            source = state['connect_source']
            if source is None:
                state['connect_source'] = ident
                ui.notify('Select the target step', position='bottom', timeout=1000)
                return
            state['connect_source'] = None
            if source != ident:
                await canvas.on_connect(source, ident)
            return

        canvas.on_node_click(ident)

    def handle_background_click(event):
        canvas = state['canvas']
        if canvas is None:
            return
        # 'click' also fires after a node click; ignore that ghost
        if time.time() - state['last_selection_time'] < GHOST_CLICK_WINDOW:
            return
        canvas.on_pane_click()

    async def handle_mouse_up(event):
        canvas = state['canvas']
        chart = state['chart']
        if canvas is None or chart is None:
            return
        payload = normalize_click_payload(event.args if hasattr(event, 'args') else event)
        kind, node_id = resolve_click(payload)
        if kind != 'node':
            return
        node = next((n for n in state['last_nodes'] if n['id'] == node_id), None)
        if node is None:
            return

        try:
            layout = await ui.run_javascript(f'''
                const chart = getElement({chart.id}).chart;
                const data = chart.getModel().getSeriesByIndex(0).getData();
                const idx = data.indexOfName("{node_id}");
                return idx < 0 ? null : data.getItemLayout(idx);
            ''')
        except TimeoutError:
            logger.warning(f"Could not read position of {node_id}")
            return
        if not layout:
            return

        x, y = drop_position(node, layout[0], layout[1], state['last_nodes'])
        if abs(x - node['position']['x']) < 0.5 and abs(y - node['position']['y']) < 0.5:
            return  # plain click, not a drag
        await canvas.on_node_drag_end(node_id, x, y)

    async def handle_keyboard(e):
        if e.key == 'Control':
            state['is_ctrl_pressed'] = e.action.keydown
            if not e.action.keydown:
                state['connect_source'] = None
            return
        if not e.action.keydown or e.action.repeat:
            return
        canvas = state['canvas']
        if canvas is None:
            return
        if e.key == 'Escape':
            canvas.on_pane_click()
            return
        # ui.keyboard ignores events from inputs and textareas, so no text field has focus here
        await canvas.handle_key(e.key.name, e.modifiers.meta, e.modifiers.ctrl, False)

    async def save_viewport(_):
        canvas = state['canvas']
        chart = state['chart']
        if canvas is None or chart is None:
            return
        try:
            raw = await ui.run_javascript(f'''
                const series = getElement({chart.id}).chart.getOption().series[0];
                return {{center: series.center, zoom: series.zoom}};
            ''')
        except TimeoutError:
            logger.warning(f"Could not read viewport of tab {canvas.tab_id}")
            return
        viewport = parse_viewport(raw)
        if viewport is None:
            return
        state['viewport'] = viewport
        await run.io_bound(tabs.save_viewport, canvas.tab_id, viewport['x'], viewport['y'], viewport['zoom'])

    viewport_debouncer = FieldDebouncer(VIEWPORT_SAVE_DELAY, save_viewport)

    ui.keyboard(on_key=handle_keyboard)

    # --- Layout ---

    with ui.header().classes('bg-zinc-900 items-center gap-2 py-1'):
        ui.icon('account_tree', size='md').classes('text-primary')
        ui.label('Flowmap').classes('text-lg font-bold')
        tab_bar_container = ui.row().classes('flex-1')

        async def add_step():
            if state['canvas'] is not None:
                await state['canvas'].add_step()

        async def add_section():
            if state['canvas'] is not None:
                await state['canvas'].add_section()

        ui.button('Step', icon='add', on_click=add_step).props('flat dense no-caps')
        ui.button('Section', icon='crop_square', on_click=add_section).props('flat dense no-caps')
        ui.button(icon='list', on_click=lambda: ui.navigate.to(f'/w/{workspace_id}/list')) \
            .props('flat dense').tooltip('All steps')

    with ui.row().classes('w-full no-wrap gap-0').style('height: calc(100vh - 56px)'):
        state['chart'] = ui.echart(build_echart_options([], [])).classes('flex-1 h-full')
        state['chart'].on('chart:click', handle_chart_click, REQUESTED_EVENT_KEYS)
        state['chart'].on('click', handle_background_click)
        state['chart'].on('chart:mouseup', handle_mouse_up, REQUESTED_EVENT_KEYS)
        state['chart'].on('chart:graphroam', lambda: viewport_debouncer.push(None))
        state['panel'] = ui.column().classes('w-96 h-full overflow-y-auto p-4 bg-zinc-900 gap-3')

    ui.timer(SYNC_INTERVAL, sync_ui)

    # --- Initial load ---

    await run.io_bound(tabs.refresh)
    if not context.tabs:
        await run.io_bound(tabs.add_tab)
    if context.tabs and context.active_tab_id is None:
        context.set_active_tab(tabs.sorted_tabs()[0].id)

    with tab_bar_container:
        tab_bar()

    if context.active_tab_id:
        await open_tab(context.active_tab_id)


@ui.page('/w/{workspace_id}/list')
async def step_list_page(workspace_id: str):
    ui.dark_mode().enable()
    gateway = MutationGateway(create_backend(load_settings()))
    with ui.header().classes('bg-zinc-900 items-center gap-2 py-1'):
        ui.button(icon='arrow_back', on_click=lambda: ui.navigate.to(f'/w/{workspace_id}')).props('flat dense')
        ui.label('All steps').classes('text-lg font-bold')
    await render_step_list(gateway, workspace_id)


if __name__ in {"__main__", "__mp_main__"}:
    ui.run(
        title='Flowmap',
        port=8081,
        reload=not getattr(sys, 'frozen', False),
    )
