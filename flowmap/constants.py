"""
Shared constants for the canvas core.

Placeholder names and default placement windows match what the toolbar and
keyboard shortcuts create. Allow-lists mirror the fields the persistence
endpoints accept on update. Keep them in sync with the API!
"""

# --- Placeholders ---

DEFAULT_STEP_NAME = "Untitled"
DEFAULT_SECTION_NAME = "New Section"
TAB_NAME_TEMPLATE = "Tab {n}"

# --- Default placement (random offset inside a window) ---

# Steps: x in [100, 500), y in [100, 400)
STEP_SPAWN_ORIGIN = (100.0, 100.0)
STEP_SPAWN_WINDOW = (400.0, 300.0)

# Sections: x in [50, 250), y in [50, 250)
SECTION_SPAWN_ORIGIN = (50.0, 50.0)
SECTION_SPAWN_WINDOW = (200.0, 200.0)

# --- Node geometry ---

DEFAULT_SECTION_WIDTH = 400.0
DEFAULT_SECTION_HEIGHT = 300.0

# Rendered step card footprint, used to keep children inside their section
STEP_NODE_WIDTH = 180.0
STEP_NODE_HEIGHT = 60.0

# --- Node / edge id prefixes ---

STEP_PREFIX = "step-"
SECTION_PREFIX = "section-"
EDGE_PREFIX = "edge-"

# --- Enums ---

STEP_STATUSES = ("draft", "in_progress", "testing", "live", "archived")
EXECUTORS = ("person", "automation", "ai_agent", "empty")

STATUS_LABELS = {
    "draft": "Draft",
    "in_progress": "In Progress",
    "testing": "Testing",
    "live": "Live",
    "archived": "Archived",
}

EXECUTOR_LABELS = {
    "person": "Person",
    "automation": "Automation",
    "ai_agent": "AI Agent",
    "empty": "Unassigned",
}

EXECUTOR_ICONS = {
    "person": "person",
    "automation": "settings",
    "ai_agent": "smart_toy",
    "empty": "",
}

STATUS_COLORS = {
    "draft": "#6b7280",
    "in_progress": "#3b82f6",
    "testing": "#f59e0b",
    "live": "#22c55e",
    "archived": "#52525b",
}

# --- Update allow-lists ---

STEP_UPDATE_FIELDS = (
    "section_id",
    "name",
    "position_x",
    "position_y",
    "status",
    "step_type",
    "executor",
    "notes",
    "video_url",
    "attributes",
    "time_minutes",
    "frequency_per_month",
)

SECTION_UPDATE_FIELDS = (
    "name",
    "summary",
    "position_x",
    "position_y",
    "width",
    "height",
    "notes",
)

TAB_UPDATE_FIELDS = ("name", "position", "viewport")

# --- Detail panel ---

NAME_DEBOUNCE_SECONDS = 0.5
