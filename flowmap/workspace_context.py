"""
Workspace context and tab operations.

WorkspaceContext is passed explicitly to whoever needs the active workspace
and tab (canvas page, tab bar, step list). It holds no globals.

Tabs are resynchronized from the server only after a structural change
(create, rename, delete). There is no polling.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from flowmap.constants import TAB_NAME_TEMPLATE
from flowmap.errors import MutationError
from flowmap.gateway import MutationGateway
from flowmap.models import Tab

logger = logging.getLogger(__name__)


@dataclass
class WorkspaceContext:
    """The workspace being edited and its tabs."""
    workspace_id: str
    workspace_name: str = ""
    tabs: List[Tab] = field(default_factory=list)
    active_tab_id: Optional[str] = None
    refresh_tabs: Optional[Callable[[], None]] = None

    def get_tab(self, tab_id: Optional[str]) -> Optional[Tab]:
        for tab in self.tabs:
            if tab.id == tab_id:
                return tab
        return None

    @property
    def active_tab(self) -> Optional[Tab]:
        return self.get_tab(self.active_tab_id)

    def set_active_tab(self, tab_id: str) -> None:
        self.active_tab_id = tab_id


class TabController:
    """Add, rename, delete and select tabs of one workspace."""

    def __init__(self, context: WorkspaceContext, gateway: MutationGateway,
                 notify: Optional[Callable[[str, str], None]] = None,
                 on_tab_selected: Optional[Callable[[str], None]] = None):
        self.context = context
        self.gateway = gateway
        self.notify = notify or (lambda message, kind='info': logger.info(f"[notify:{kind}] {message}"))
        self._on_tab_selected = on_tab_selected
        if context.refresh_tabs is None:
            context.refresh_tabs = self.refresh

    def set_on_tab_selected(self, callback: Callable[[str], None]):
        self._on_tab_selected = callback

    def sorted_tabs(self) -> List[Tab]:
        return sorted(self.context.tabs, key=lambda t: t.position)

    def refresh(self) -> bool:
        try:
            tabs = self.gateway.list_tabs(self.context.workspace_id)
        except MutationError as e:
            logger.warning(f"Tab refresh failed: {e}")
            return False
        self.context.tabs = tabs
        return True

    def select_tab(self, tab_id: str) -> None:
        if self.context.active_tab_id == tab_id:
            return
        self.context.set_active_tab(tab_id)
        logger.info(f"Switched to tab {tab_id}")
        if self._on_tab_selected:
            self._on_tab_selected(tab_id)

    def add_tab(self) -> Optional[Tab]:
        name = TAB_NAME_TEMPLATE.format(n=len(self.context.tabs) + 1)
        try:
            tab = self.gateway.create_tab(self.context.workspace_id, name)
        except MutationError:
            self.notify("Failed to create tab", 'negative')
            return None
        self.context.refresh_tabs()
        self.select_tab(tab.id)
        return tab

    def rename_tab(self, tab_id: str, name: str) -> bool:
        trimmed = (name or "").strip()
        if not trimmed:
            return False
        try:
            self.gateway.update_tab(tab_id, {'name': trimmed})
        except MutationError:
            self.notify("Failed to rename tab", 'negative')
            return False
        self.context.refresh_tabs()
        return True

    def delete_tab(self, tab_id: str) -> bool:
        if len(self.context.tabs) <= 1:
            self.notify("Cannot delete the last tab", 'negative')
            return False
        try:
            self.gateway.delete_tab(tab_id)
        except MutationError:
            self.notify("Failed to delete tab", 'negative')
            return False
        self.context.refresh_tabs()
        if self.context.active_tab_id == tab_id:
            remaining = [t for t in self.sorted_tabs() if t.id != tab_id]
            if remaining:
                self.select_tab(remaining[0].id)
        return True

    def save_viewport(self, tab_id: str, x: float, y: float, zoom: float) -> bool:
        """Persist the pan/zoom of a tab. Not a structural change, so no refresh."""
        try:
            tab = self.gateway.update_tab(tab_id, {'viewport': {'x': x, 'y': y, 'zoom': zoom}})
        except MutationError as e:
            logger.debug(f"Viewport save for tab {tab_id} failed: {e}")
            return False
        # keep the local copy so switching back restores this view
        self.context.tabs = [tab if t.id == tab_id else t for t in self.context.tabs]
        return True
