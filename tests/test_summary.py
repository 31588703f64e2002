from flowmap.summary import (
    monthly_cost_hours,
    format_hours,
    step_monthly_cost,
    status_counts,
    executor_counts,
    summarize_workspace,
)
from tests.factories import make_section, make_step, make_connection


def test_monthly_cost_hours():
    assert monthly_cost_hours(15, 24) == 6.0
    assert monthly_cost_hours(None, 24) is None
    assert monthly_cost_hours(15, 0) is None


def test_format_hours():
    assert format_hours(6.0) == "6.0h"
    assert format_hours(1.5) == "1.5h"
    assert format_hours(None) is None


def test_step_monthly_cost():
    assert step_monthly_cost(make_step("a", time_minutes=30, frequency_per_month=4)) == "2.0h"
    assert step_monthly_cost(make_step("b", time_minutes=30)) is None


def test_counts():
    steps = [make_step(status="live", executor="person"),
             make_step(status="draft"),
             make_step(status="live", executor="ai_agent")]
    assert status_counts(steps) == {"live": 2, "draft": 1}
    assert executor_counts(steps) == {"person": 1, "empty": 1, "ai_agent": 1}


def test_summarize_workspace():
    steps = [make_step("a", time_minutes=15, frequency_per_month=24),
             make_step("b", time_minutes=10, frequency_per_month=6),
             make_step("c")]
    summary = summarize_workspace([make_section()], steps, [make_connection("a", "b")])

    assert summary.section_count == 1
    assert summary.step_count == 3
    assert summary.connection_count == 1
    assert summary.total_monthly_minutes == 420
    assert summary.total_monthly_label == "7.0h"


def test_empty_workspace_has_no_cost_label():
    summary = summarize_workspace([], [], [])
    assert summary.total_monthly_label is None
    assert summary.status_counts == {}
