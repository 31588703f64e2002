"""
Derived figures for steps, sections and whole workspaces.

Nothing here is persisted. Monthly cost is time_minutes * frequency_per_month
converted to hours, and only exists when both inputs are set and non-zero.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Sequence

from flowmap.models import Section, Step, Connection


def monthly_cost_hours(time_minutes: Optional[int], frequency_per_month: Optional[int]) -> Optional[float]:
    if not time_minutes or not frequency_per_month:
        return None
    return time_minutes * frequency_per_month / 60


def format_hours(hours: Optional[float]) -> Optional[str]:
    """6.0 -> '6.0h'. None stays None."""
    if hours is None:
        return None
    return f"{hours:.1f}h"


def step_monthly_cost(step: Step) -> Optional[str]:
    return format_hours(monthly_cost_hours(step.time_minutes, step.frequency_per_month))


def status_counts(steps: Iterable[Step]) -> Dict[str, int]:
    """Counts per status, in first-seen order."""
    return dict(Counter(s.status for s in steps))


def executor_counts(steps: Iterable[Step]) -> Dict[str, int]:
    return dict(Counter(s.executor for s in steps))


@dataclass
class WorkspaceSummary:
    section_count: int = 0
    step_count: int = 0
    connection_count: int = 0
    total_monthly_minutes: int = 0
    status_counts: Dict[str, int] = field(default_factory=dict)
    executor_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def total_monthly_hours(self) -> float:
        return self.total_monthly_minutes / 60

    @property
    def total_monthly_label(self) -> Optional[str]:
        if self.total_monthly_minutes <= 0:
            return None
        return format_hours(self.total_monthly_hours)


def summarize_workspace(sections: Sequence[Section], steps: Sequence[Step],
                        connections: Sequence[Connection]) -> WorkspaceSummary:
    total = 0
    for step in steps:
        if step.time_minutes and step.frequency_per_month:
            total += step.time_minutes * step.frequency_per_month

    return WorkspaceSummary(
        section_count=len(sections),
        step_count=len(steps),
        connection_count=len(connections),
        total_monthly_minutes=total,
        status_counts=status_counts(steps),
        executor_counts=executor_counts(steps),
    )
