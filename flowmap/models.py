"""
Record types for the canvas.

Records are immutable snapshots of what the persistence layer returned.
Local edits never mutate a record in place; they build a new one with
dataclasses.replace() and swap it into the EntityStore.

Expected wire format (one dict per record, as returned by the API):
  Section:    {id, workspace_id, tab_id, name, summary, position_x, position_y,
               width, height, notes, created_at, updated_at}
  Step:       {id, workspace_id, tab_id, section_id, name, position_x, position_y,
               status, step_type, executor, notes, video_url, attributes,
               time_minutes, frequency_per_month, created_at, updated_at}
  Connection: {id, workspace_id, tab_id, source_step_id, target_step_id, created_at}
  Tab:        {id, workspace_id, name, position, viewport, created_at, updated_at}
"""

from dataclasses import dataclass, field, asdict
from typing import Dict, Any, Optional, Literal

from flowmap.constants import DEFAULT_SECTION_WIDTH, DEFAULT_SECTION_HEIGHT

StepStatus = Literal['draft', 'in_progress', 'testing', 'live', 'archived']
ExecutorType = Literal['person', 'automation', 'ai_agent', 'empty']
EntityKind = Literal['section', 'step', 'connection']


def _as_float(value: Any, default: float = 0.0) -> float:
    if value is None:
        return default
    return float(value)


@dataclass(frozen=True)
class Section:
    """A rectangular container. Steps point at it through Step.section_id."""
    id: str
    workspace_id: str
    tab_id: str
    name: str
    position_x: float = 0.0
    position_y: float = 0.0
    width: float = DEFAULT_SECTION_WIDTH
    height: float = DEFAULT_SECTION_HEIGHT
    summary: Optional[str] = None
    notes: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Section":
        return cls(
            id=data["id"],
            workspace_id=data.get("workspace_id", ""),
            tab_id=data.get("tab_id", ""),
            name=data.get("name") or "",
            position_x=_as_float(data.get("position_x")),
            position_y=_as_float(data.get("position_y")),
            width=_as_float(data.get("width"), DEFAULT_SECTION_WIDTH),
            height=_as_float(data.get("height"), DEFAULT_SECTION_HEIGHT),
            summary=data.get("summary"),
            notes=data.get("notes"),
            created_at=data.get("created_at") or "",
            updated_at=data.get("updated_at") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Step:
    """The atomic unit of a process map."""
    id: str
    workspace_id: str
    tab_id: str
    name: str
    position_x: float = 0.0
    position_y: float = 0.0
    section_id: Optional[str] = None
    status: str = "draft"
    step_type: Optional[str] = None
    executor: str = "empty"
    notes: Optional[str] = None
    video_url: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict)
    time_minutes: Optional[int] = None
    frequency_per_month: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Step":
        return cls(
            id=data["id"],
            workspace_id=data.get("workspace_id", ""),
            tab_id=data.get("tab_id", ""),
            name=data.get("name") or "",
            position_x=_as_float(data.get("position_x")),
            position_y=_as_float(data.get("position_y")),
            section_id=data.get("section_id"),
            status=data.get("status") or "draft",
            step_type=data.get("step_type"),
            executor=data.get("executor") or "empty",
            notes=data.get("notes"),
            video_url=data.get("video_url"),
            attributes=dict(data.get("attributes") or {}),
            time_minutes=data.get("time_minutes"),
            frequency_per_month=data.get("frequency_per_month"),
            created_at=data.get("created_at") or "",
            updated_at=data.get("updated_at") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Connection:
    """Directed edge between two distinct steps. Immutable once created."""
    id: str
    workspace_id: str
    tab_id: str
    source_step_id: str
    target_step_id: str
    created_at: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Connection":
        return cls(
            id=data["id"],
            workspace_id=data.get("workspace_id", ""),
            tab_id=data.get("tab_id", ""),
            source_step_id=data["source_step_id"],
            target_step_id=data["target_step_id"],
            created_at=data.get("created_at") or "",
        )

    def touches(self, step_id: str) -> bool:
        return self.source_step_id == step_id or self.target_step_id == step_id

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Tab:
    """One canvas inside a workspace."""
    id: str
    workspace_id: str
    name: str
    position: int = 0
    viewport: Optional[Dict[str, float]] = None
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Tab":
        return cls(
            id=data["id"],
            workspace_id=data.get("workspace_id", ""),
            name=data.get("name") or "",
            position=int(data.get("position") or 0),
            viewport=data.get("viewport"),
            created_at=data.get("created_at") or "",
            updated_at=data.get("updated_at") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
