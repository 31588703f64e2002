import asyncio
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from flowmap import panels
from flowmap.canvas import CanvasController
from flowmap.detail_panel import StepPanelBinder
from tests.factories import WORKSPACE, TAB, make_step


def _element():
    element = MagicMock()
    element.classes.return_value = element
    element.props.return_value = element
    element.style.return_value = element
    return element


@pytest.fixture
def created():
    """Elements built by the panel, per ui factory name, in creation order."""
    return {}


@pytest.fixture
def fake_ui(created):
    def factory(name):
        def make(*args, **kwargs):
            element = _element()
            created.setdefault(name, []).append(element)
            return element
        return make

    with patch('flowmap.panels.ui') as ui:
        for name in ('input', 'number', 'select', 'label'):
            getattr(ui, name).side_effect = factory(name)
        yield ui


@pytest.fixture
def binder(gateway, notify):
    canvas = CanvasController(gateway, WORKSPACE, TAB, notify=notify)
    canvas.store.load([], [make_step("a", frequency_per_month=24)], [])
    return StepPanelBinder(canvas, "a")


def _blur_handlers(element):
    return [c for c in element.on.call_args_list if c.args and c.args[0] == 'blur']


def test_number_fields_save_on_change_and_refresh_cost(fake_ui, created, binder, gateway):
    gateway.update_step.return_value = make_step("a", time_minutes=15, frequency_per_month=24)
    panels.render_step_panel(binder, on_close=MagicMock())

    time_input, freq_input = created['number']
    for number in (time_input, freq_input):
        assert number.on_value_change.call_count == 1
        assert _blur_handlers(number) == []

    handler = time_input.on_value_change.call_args.args[0]
    asyncio.run(handler(SimpleNamespace(value=15)))

    gateway.update_step.assert_called_once_with("a", {'time_minutes': 15})
    texts = [c.args[0] for label in created['label'] for c in label.set_text.call_args_list]
    assert texts[-1] == "Monthly cost: 6.0h / month"


def test_frequency_change_writes_immediately(fake_ui, created, binder, gateway):
    gateway.update_step.return_value = make_step("a", frequency_per_month=30)
    panels.render_step_panel(binder, on_close=MagicMock())

    handler = created['number'][1].on_value_change.call_args.args[0]
    asyncio.run(handler(SimpleNamespace(value=30)))

    gateway.update_step.assert_called_once_with("a", {'frequency_per_month': 30})


def test_step_type_saves_on_change(fake_ui, created, binder, gateway):
    gateway.update_step.return_value = make_step("a", step_type="Review")
    panels.render_step_panel(binder, on_close=MagicMock())

    # name, type, video url
    step_type_input = created['input'][1]
    assert _blur_handlers(step_type_input) == []
    handler = step_type_input.on_value_change.call_args.args[0]
    asyncio.run(handler(SimpleNamespace(value="Review")))

    gateway.update_step.assert_called_once_with("a", {'step_type': 'Review'})


def test_status_and_executor_save_on_change(fake_ui, created, binder, gateway):
    gateway.update_step.return_value = make_step("a", status="testing")
    panels.render_step_panel(binder, on_close=MagicMock())

    status_select, executor_select = created['select']
    asyncio.run(status_select.on_value_change.call_args.args[0](SimpleNamespace(value="testing")))
    assert executor_select.on_value_change.call_count == 1

    gateway.update_step.assert_called_once_with("a", {'status': 'testing'})
