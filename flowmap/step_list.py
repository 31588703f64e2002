"""
Workspace-wide step list: search, filter and sort.

Sorting by section or tab compares the display names, looked up through the
id -> name maps the caller passes in. Steps without a section sort as "".
"""

from typing import Dict, Iterable, List, Optional, Tuple

from flowmap.constants import STATUS_LABELS, EXECUTOR_LABELS
from flowmap.models import Step

SORT_FIELDS = ('name', 'status', 'executor', 'created_at', 'section', 'tab')
DEFAULT_SORT = ('created_at', 'desc')


def filter_steps(steps: Iterable[Step], search: str = "", status: Optional[str] = None,
                 executor: Optional[str] = None) -> List[Step]:
    result = list(steps)
    query = (search or "").strip().lower()
    if query:
        result = [s for s in result if query in s.name.lower()]
    if status:
        result = [s for s in result if s.status == status]
    if executor:
        result = [s for s in result if s.executor == executor]
    return result


def sort_steps(steps: Iterable[Step], sort_field: str = 'created_at', direction: str = 'desc',
               section_names: Optional[Dict[str, str]] = None,
               tab_names: Optional[Dict[str, str]] = None) -> List[Step]:
    section_names = section_names or {}
    tab_names = tab_names or {}

    if sort_field == 'name':
        key = lambda s: s.name.lower()
    elif sort_field == 'status':
        key = lambda s: s.status
    elif sort_field == 'executor':
        key = lambda s: s.executor
    elif sort_field == 'section':
        key = lambda s: section_names.get(s.section_id or "", "").lower()
    elif sort_field == 'tab':
        key = lambda s: tab_names.get(s.tab_id, "").lower()
    else:
        # created_at is ISO-8601, so string order is time order
        key = lambda s: s.created_at

    # sorted() is stable, so ties keep their input order either way
    return sorted(steps, key=key, reverse=(direction == 'desc'))


def toggle_sort(current_field: str, current_direction: str, clicked_field: str) -> Tuple[str, str]:
    """Clicking the active column flips direction; a new column starts ascending."""
    if clicked_field == current_field:
        return current_field, 'desc' if current_direction == 'asc' else 'asc'
    return clicked_field, 'asc'


def empty_message(search: str = "", status: Optional[str] = None, executor: Optional[str] = None) -> str:
    if search or status or executor:
        return "No steps match your filters"
    return "No steps yet"


def table_rows(steps: Iterable[Step], section_names: Optional[Dict[str, str]] = None,
               tab_names: Optional[Dict[str, str]] = None) -> List[Dict[str, str]]:
    """Rows for the list page table, one per step, in the given order."""
    section_names = section_names or {}
    tab_names = tab_names or {}
    return [
        {
            'id': s.id,
            'name': s.name,
            'status': STATUS_LABELS.get(s.status, s.status),
            'executor': EXECUTOR_LABELS.get(s.executor, s.executor),
            'section': section_names.get(s.section_id or "", ""),
            'tab': tab_names.get(s.tab_id, ""),
            'created_at': s.created_at[:10],
        }
        for s in steps
    ]


def visible_steps(steps: Iterable[Step], search: str = "", status: Optional[str] = None,
                  executor: Optional[str] = None, sort: Tuple[str, str] = DEFAULT_SORT,
                  section_names: Optional[Dict[str, str]] = None,
                  tab_names: Optional[Dict[str, str]] = None) -> List[Step]:
    """Filter, then sort."""
    matching = filter_steps(steps, search, status, executor)
    return sort_steps(matching, sort[0], sort[1], section_names, tab_names)
