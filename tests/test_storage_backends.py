"""
Tests for storage backends.

Tests both HttpBackend and SupabaseBackend implementations against mocked
transports, plus backend selection in the factory.
"""

import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from flowmap import errors
from flowmap.errors import MutationError
from flowmap.storage.protocol import CanvasBackend
from flowmap.storage.http_backend import HttpBackend
from flowmap.storage.factory import create_backend, get_backend_type


def _response(status=200, body=None, content_type='application/json', reason='OK'):
    response = MagicMock()
    response.status_code = status
    response.ok = status < 400
    response.reason = reason
    response.headers = {'content-type': content_type}
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = body
    return response


class TestHttpBackend:
    """Tests for HttpBackend with a mocked requests.Session."""

    @pytest.fixture
    def session(self):
        session = MagicMock()
        session.headers = {}
        return session

    @pytest.fixture
    def backend(self, session):
        return HttpBackend(base_url="http://api.test/api/v1/", session=session, access_token="tok")

    def test_sets_auth_header(self, backend, session):
        assert session.headers['Authorization'] == "Bearer tok"
        assert session.headers['Content-Type'] == 'application/json'

    def test_create_posts_payload_and_unwraps_data(self, backend, session):
        session.request.return_value = _response(201, {'data': {'id': 's1', 'name': 'Untitled'}, 'error': None})

        row = backend.create('steps', {'workspace_id': 'ws-1', 'tab_id': 'tab-1'})

        assert row == {'id': 's1', 'name': 'Untitled'}
        method, url = session.request.call_args[0]
        assert (method, url) == ('POST', "http://api.test/api/v1/steps")
        assert session.request.call_args[1]['json'] == {'workspace_id': 'ws-1', 'tab_id': 'tab-1'}

    def test_update_uses_patch(self, backend, session):
        session.request.return_value = _response(200, {'data': {'id': 's1'}, 'error': None})
        backend.update('steps', 's1', {'name': 'x'})
        method, url = session.request.call_args[0]
        assert (method, url) == ('PATCH', "http://api.test/api/v1/steps/s1")

    def test_delete_returns_true(self, backend, session):
        session.request.return_value = _response(200, {'data': {'deleted': True}, 'error': None})
        assert backend.delete('connections', 'c1') is True

    def test_envelope_error_code_becomes_kind(self, backend, session):
        session.request.return_value = _response(409, {
            'data': None,
            'error': {'code': 'duplicate', 'message': 'Connection already exists between these steps'},
        }, reason='Conflict')

        with pytest.raises(MutationError) as exc:
            backend.create('connections', {})
        assert exc.value.is_duplicate
        assert exc.value.status == 409
        assert exc.value.message == 'Connection already exists between these steps'

    def test_error_without_code_uses_status(self, backend, session):
        session.request.return_value = _response(404, {'data': None, 'error': {'message': 'gone'}})
        with pytest.raises(MutationError) as exc:
            backend.update('steps', 's1', {'name': 'x'})
        assert exc.value.kind == errors.NOT_FOUND

    def test_non_json_response_is_classified_by_status(self, backend, session):
        session.request.return_value = _response(502, None, content_type='text/html', reason='Bad Gateway')
        with pytest.raises(MutationError) as exc:
            backend.delete('steps', 's1')
        assert exc.value.kind == errors.DELETE_FAILED
        assert "502" in exc.value.message

    def test_invalid_json_body(self, backend, session):
        session.request.return_value = _response(200, json.JSONDecodeError("bad", "x", 0))
        with pytest.raises(MutationError) as exc:
            backend.update('sections', 'sec1', {'name': 'x'})
        assert exc.value.kind == errors.UPDATE_FAILED

    def test_null_data_without_error_is_failure(self, backend, session):
        session.request.return_value = _response(200, {'data': None, 'error': None})
        with pytest.raises(MutationError) as exc:
            backend.create('steps', {})
        assert exc.value.kind == errors.CREATE_FAILED
        assert "null data" in exc.value.message

    def test_transport_error_is_request_failed(self, backend, session):
        session.request.side_effect = requests.ConnectionError("refused")
        with pytest.raises(MutationError) as exc:
            backend.list('steps', 'ws-1', 'tab-1')
        assert exc.value.kind == errors.REQUEST_FAILED

    def test_list_passes_workspace_and_tab(self, backend, session):
        session.request.return_value = _response(200, {'data': [{'id': 'a'}], 'error': None})
        assert backend.list('steps', 'ws-1', 'tab-1') == [{'id': 'a'}]
        assert session.request.call_args[1]['params'] == {'workspace_id': 'ws-1', 'tab_id': 'tab-1'}

    def test_tabs_come_from_workspace_record(self, backend, session):
        session.request.return_value = _response(200, {'data': {
            'id': 'ws-1',
            'tabs': [{'id': 't2', 'position': 1}, {'id': 't1', 'position': 0}],
        }, 'error': None})

        tabs = backend.list('tabs', 'ws-1')

        assert [t['id'] for t in tabs] == ['t1', 't2']
        method, url = session.request.call_args[0]
        assert url == "http://api.test/api/v1/workspaces/ws-1"


class FakeApiError(Exception):
    """Shape of postgrest errors: a code and a message."""
    def __init__(self, code, message):
        super().__init__(message)
        self.code = code
        self.message = message


class TestSupabaseBackendMocked:
    """Tests for SupabaseBackend using mocks."""

    @pytest.fixture
    def mock_supabase(self):
        """Create a mock Supabase client."""
        mock = MagicMock()

        # Mock table operations
        mock_table = MagicMock()
        for name in ('select', 'insert', 'update', 'delete', 'eq', 'order', 'limit'):
            getattr(mock_table, name).return_value = mock_table
        mock_table.execute.return_value = MagicMock(data=[])

        mock.table.return_value = mock_table
        return mock

    @pytest.fixture
    def backend(self, mock_supabase):
        from flowmap.storage.supabase_backend import SupabaseBackend
        return SupabaseBackend(client=mock_supabase)

    def test_requires_url_and_key(self, monkeypatch):
        from flowmap.storage.supabase_backend import SupabaseBackend
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.delenv("SUPABASE_KEY", raising=False)
        with pytest.raises(ValueError):
            SupabaseBackend()

    @patch('flowmap.storage.supabase_backend.create_client')
    def test_creates_client_from_url_and_key(self, mock_create_client, mock_supabase):
        from flowmap.storage.supabase_backend import SupabaseBackend
        mock_create_client.return_value = mock_supabase
        backend = SupabaseBackend(supabase_url="https://test.supabase.co", supabase_key="test-key")
        mock_create_client.assert_called_once_with("https://test.supabase.co", "test-key")
        assert backend.backend_type == "supabase"

    def test_create_step_fills_placeholder_name(self, backend, mock_supabase):
        table = mock_supabase.table.return_value
        table.execute.return_value = MagicMock(data=[{'id': 's1', 'name': 'Untitled'}])

        row = backend.create('steps', {'workspace_id': 'ws-1', 'tab_id': 'tab-1', 'name': '  ',
                                       'position_x': 150})

        inserted = table.insert.call_args[0][0]
        assert inserted['name'] == 'Untitled'
        assert inserted['position_x'] == 150
        assert inserted['position_y'] == 0
        assert row['id'] == 's1'

    def test_create_section_default_name(self, backend, mock_supabase):
        table = mock_supabase.table.return_value
        table.execute.return_value = MagicMock(data=[{'id': 'sec1'}])
        backend.create('sections', {'workspace_id': 'ws-1', 'tab_id': 'tab-1'})
        assert table.insert.call_args[0][0]['name'] == 'New Section'

    def test_duplicate_connection(self, backend, mock_supabase):
        table = mock_supabase.table.return_value
        table.execute.side_effect = FakeApiError("23505", "duplicate key value")

        with pytest.raises(MutationError) as exc:
            backend.create('connections', {'workspace_id': 'ws-1', 'tab_id': 'tab-1',
                                           'source_step_id': 'a', 'target_step_id': 'b'})
        assert exc.value.is_duplicate
        assert exc.value.message == "Connection already exists between these steps"

    def test_self_loop_rejected(self, backend, mock_supabase):
        with pytest.raises(MutationError) as exc:
            backend.create('connections', {'workspace_id': 'ws-1', 'tab_id': 'tab-1',
                                           'source_step_id': 'a', 'target_step_id': 'a'})
        assert exc.value.is_validation
        mock_supabase.table.return_value.insert.assert_not_called()

    def test_other_insert_error_is_create_failed(self, backend, mock_supabase):
        mock_supabase.table.return_value.execute.side_effect = FakeApiError("42501", "permission denied")
        with pytest.raises(MutationError) as exc:
            backend.create('steps', {'workspace_id': 'ws-1', 'tab_id': 'tab-1'})
        assert exc.value.kind == errors.CREATE_FAILED
        assert exc.value.message == "permission denied"

    def test_tab_position_is_max_plus_one(self, backend, mock_supabase):
        table = mock_supabase.table.return_value
        table.execute.side_effect = [
            MagicMock(data=[{'position': 2}]),
            MagicMock(data=[{'id': 't4', 'name': 'Ops', 'position': 3}]),
        ]
        backend.create('tabs', {'workspace_id': 'ws-1', 'name': 'Ops'})
        assert table.insert.call_args[0][0] == {'workspace_id': 'ws-1', 'name': 'Ops', 'position': 3}

    def test_first_tab_position_is_zero(self, backend, mock_supabase):
        table = mock_supabase.table.return_value
        table.execute.side_effect = [
            MagicMock(data=[]),
            MagicMock(data=[{'id': 't1', 'name': 'Main', 'position': 0}]),
        ]
        backend.create('tabs', {'workspace_id': 'ws-1', 'name': 'Main'})
        assert table.insert.call_args[0][0]['position'] == 0

    def test_update_with_no_row_is_not_found(self, backend, mock_supabase):
        mock_supabase.table.return_value.execute.return_value = MagicMock(data=[])
        with pytest.raises(MutationError) as exc:
            backend.update('steps', 'ghost', {'name': 'x'})
        assert exc.value.kind == errors.NOT_FOUND

    def test_delete(self, backend, mock_supabase):
        table = mock_supabase.table.return_value
        assert backend.delete('steps', 's1') is True
        table.eq.assert_called_with("id", "s1")

    def test_list_filters_by_tab(self, backend, mock_supabase):
        table = mock_supabase.table.return_value
        table.execute.return_value = MagicMock(data=[{'id': 'a'}])
        assert backend.list('steps', 'ws-1', 'tab-1') == [{'id': 'a'}]
        table.eq.assert_any_call("workspace_id", "ws-1")
        table.eq.assert_any_call("tab_id", "tab-1")
        table.order.assert_called_with("created_at")

    def test_list_failure_is_query_failed(self, backend, mock_supabase):
        mock_supabase.table.return_value.execute.side_effect = FakeApiError("500", "down")
        with pytest.raises(MutationError) as exc:
            backend.list('connections', 'ws-1', 'tab-1')
        assert exc.value.kind == errors.QUERY_FAILED


class TestFactory:

    def test_get_backend_type_default(self):
        assert get_backend_type({}) == "http"

    def test_get_backend_type_unknown_falls_back(self):
        assert get_backend_type({"backend": "git"}) == "http"

    def test_create_http_backend(self):
        backend = create_backend({"api_base_url": "http://x/api/v1", "request_timeout": 3})
        assert isinstance(backend, HttpBackend)
        assert backend.base_url == "http://x/api/v1"
        assert backend.timeout == 3.0

    def test_create_supabase_backend(self):
        client = MagicMock()
        backend = create_backend({"backend": "supabase"}, supabase_client=client)
        assert backend.backend_type == "supabase"


class TestStorageProtocol:
    """Backends implement the protocol."""

    def test_http_backend_implements_protocol(self):
        assert isinstance(HttpBackend(session=MagicMock(headers={})), CanvasBackend)

    def test_supabase_backend_implements_protocol(self):
        from flowmap.storage.supabase_backend import SupabaseBackend
        assert isinstance(SupabaseBackend(client=MagicMock()), CanvasBackend)
