from unittest.mock import MagicMock

import pytest

from flowmap import errors
from flowmap.errors import MutationError
from flowmap.gateway import MutationGateway, filter_fields
from flowmap.models import Step, Section, Connection


def _row(**kwargs):
    row = {'id': 'x1', 'workspace_id': 'ws-1', 'tab_id': 'tab-1', 'name': 'Untitled'}
    row.update(kwargs)
    return row


@pytest.fixture
def backend():
    return MagicMock()


@pytest.fixture
def gw(backend):
    return MutationGateway(backend)


def test_filter_fields_drops_unknown_keys():
    kept = filter_fields({'name': 'a', 'id': 'nope', 'created_at': 'x'}, ('name',))
    assert kept == {'name': 'a'}


def test_create_step_sends_payload_and_returns_record(gw, backend):
    backend.create.return_value = _row(id='s9', position_x=120, position_y=140)
    step = gw.create_step('ws-1', 'tab-1', position_x=120, position_y=140)

    backend.create.assert_called_once_with('steps', {
        'workspace_id': 'ws-1', 'tab_id': 'tab-1', 'position_x': 120, 'position_y': 140,
    })
    assert isinstance(step, Step)
    assert step.id == 's9'
    assert step.status == 'draft'


def test_create_step_requires_tab(gw, backend):
    with pytest.raises(MutationError) as exc:
        gw.create_step('ws-1', '')
    assert exc.value.kind == errors.VALIDATION
    backend.create.assert_not_called()


def test_create_step_rejects_bad_status(gw, backend):
    with pytest.raises(MutationError) as exc:
        gw.create_step('ws-1', 'tab-1', status='done')
    assert exc.value.is_validation
    backend.create.assert_not_called()


def test_update_step_filters_to_allow_list(gw, backend):
    backend.update.return_value = _row(id='s1', name='Renamed')
    gw.update_step('s1', {'name': 'Renamed', 'id': 'other', 'workspace_id': 'ws-2'})
    backend.update.assert_called_once_with('steps', 's1', {'name': 'Renamed'})


def test_update_with_no_allowed_fields_is_validation_error(gw, backend):
    with pytest.raises(MutationError) as exc:
        gw.update_step('s1', {'created_at': 'now'})
    assert exc.value.kind == errors.VALIDATION
    backend.update.assert_not_called()


def test_update_step_rejects_bad_executor(gw, backend):
    with pytest.raises(MutationError):
        gw.update_step('s1', {'executor': 'robot'})
    backend.update.assert_not_called()


def test_update_section_filters_fields(gw, backend):
    backend.update.return_value = _row(id='sec1', summary='hi')
    section = gw.update_section('sec1', {'summary': 'hi', 'status': 'live'})
    backend.update.assert_called_once_with('sections', 'sec1', {'summary': 'hi'})
    assert isinstance(section, Section)


def test_self_loop_rejected_before_persistence(gw, backend):
    with pytest.raises(MutationError) as exc:
        gw.create_connection('ws-1', 'tab-1', 'a', 'a')
    assert exc.value.is_validation
    backend.create.assert_not_called()


def test_create_connection(gw, backend):
    backend.create.return_value = {'id': 'c1', 'source_step_id': 'a', 'target_step_id': 'b'}
    conn = gw.create_connection('ws-1', 'tab-1', 'a', 'b')
    assert isinstance(conn, Connection)
    assert (conn.source_step_id, conn.target_step_id) == ('a', 'b')


def test_backend_mutation_error_is_propagated_with_operation(gw, backend):
    backend.create.side_effect = MutationError(errors.DUPLICATE, "Connection already exists between these steps")
    with pytest.raises(MutationError) as exc:
        gw.create_connection('ws-1', 'tab-1', 'a', 'b')
    assert exc.value.is_duplicate
    assert exc.value.operation == "create connection"


def test_unexpected_exception_is_wrapped(gw, backend):
    backend.delete.side_effect = RuntimeError("socket closed")
    with pytest.raises(MutationError) as exc:
        gw.delete_step('s1')
    assert exc.value.kind == errors.DELETE_FAILED
    assert "socket closed" in exc.value.message


def test_delete_returns_true(gw, backend):
    backend.delete.return_value = True
    assert gw.delete_section('sec1') is True
    backend.delete.assert_called_once_with('sections', 'sec1')


def test_create_tab_trims_name(gw, backend):
    backend.create.return_value = {'id': 't2', 'name': 'Ops', 'position': 1}
    tab = gw.create_tab('ws-1', '  Ops ')
    backend.create.assert_called_once_with('tabs', {'workspace_id': 'ws-1', 'name': 'Ops'})
    assert tab.position == 1


def test_create_tab_blank_name_rejected(gw, backend):
    with pytest.raises(MutationError):
        gw.create_tab('ws-1', '   ')
    backend.create.assert_not_called()


def test_update_tab_blank_name_rejected(gw, backend):
    with pytest.raises(MutationError):
        gw.update_tab('t1', {'name': ' '})
    backend.update.assert_not_called()


def test_list_tabs_sorted_by_position(gw, backend):
    backend.list.return_value = [
        {'id': 't3', 'name': 'C', 'position': 2},
        {'id': 't1', 'name': 'A', 'position': 0},
        {'id': 't2', 'name': 'B', 'position': 1},
    ]
    assert [t.id for t in gw.list_tabs('ws-1')] == ['t1', 't2', 't3']
    backend.list.assert_called_once_with('tabs', 'ws-1', None)


def test_list_failure_is_query_failed(gw, backend):
    backend.list.side_effect = ValueError("boom")
    with pytest.raises(MutationError) as exc:
        gw.list_steps('ws-1', 'tab-1')
    assert exc.value.kind == errors.QUERY_FAILED
