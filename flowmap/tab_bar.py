"""Tab bar: one button per tab, double-click to rename, add and delete."""

from typing import Awaitable, Callable

from nicegui import ui, run

from flowmap.workspace_context import TabController


def render_tab_bar(controller: TabController, on_changed: Callable[[], Awaitable[None]]):
    """
    Render the tabs of controller.context into the current container.
    on_changed is awaited after any structural change so the caller can
    re-render the bar (and the canvas, if the active tab moved).
    """
    tabs = controller.sorted_tabs()
    active_id = controller.context.active_tab_id

    with ui.row().classes('items-center gap-1 px-2'):
        for tab in tabs:
            is_active = tab.id == active_id
            with ui.button_group().props('flat'):
                btn = ui.button(tab.name).props(f'flat no-caps {"color=primary" if is_active else "color=grey"}')

                def make_select(tab_id):
                    async def handler():
                        controller.select_tab(tab_id)
                        await on_changed()
                    return handler

                def make_rename(tab_id, current_name):
                    def handler():
                        open_rename_dialog(controller, tab_id, current_name, on_changed)
                    return handler

                btn.on_click(make_select(tab.id))
                btn.on('dblclick', make_rename(tab.id, tab.name))

                if len(tabs) > 1:
                    def make_delete(tab_id):
                        async def handler():
                            ok = await run.io_bound(controller.delete_tab, tab_id)
                            if ok:
                                await on_changed()
                        return handler

                    ui.button(icon='close', on_click=make_delete(tab.id)).props('flat dense size=xs color=grey')

        async def do_add():
            tab = await run.io_bound(controller.add_tab)
            if tab is not None:
                await on_changed()

        ui.button(icon='add', on_click=do_add).props('flat dense round color=grey').tooltip('Add tab')


def open_rename_dialog(controller: TabController, tab_id: str, current_name: str,
                       on_changed: Callable[[], Awaitable[None]]):
    with ui.dialog() as dialog, ui.card().classes('w-80'):
        ui.label('Rename tab').classes('text-lg font-bold')
        name_input = ui.input('Name', value=current_name).classes('w-full')

        async def do_rename():
            ok = await run.io_bound(controller.rename_tab, tab_id, name_input.value or '')
            dialog.close()
            if ok:
                await on_changed()

        name_input.on('keydown.enter', do_rename)
        with ui.row().classes('w-full justify-end'):
            ui.button('Cancel', on_click=dialog.close).props('flat')
            ui.button('Rename', on_click=do_rename).props('color=primary')
    dialog.open()
