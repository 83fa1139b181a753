"""Centralised configuration constants for the factory grid."""
from __future__ import annotations

from pathlib import Path

# ---------------------------------------------------------------------------
# Grid / display
# ---------------------------------------------------------------------------
# The grid spans [-GRID_WIDTH, GRID_WIDTH) x [-GRID_HEIGHT, GRID_HEIGHT).
GRID_WIDTH: int = 6
GRID_HEIGHT: int = 6
BLOCK_SIZE: int = 50
PANEL_HEIGHT: int = 120
FRAME_RATE: int = 60

# ---------------------------------------------------------------------------
# File paths
# ---------------------------------------------------------------------------
SAVE_FILE: Path = Path("factory_save.json")
COMPONENTS_FILE: Path = Path("data/components.json")

# ---------------------------------------------------------------------------
# Component kind constants
# ---------------------------------------------------------------------------
CURSOR: str = "cursor"
ROTATE: str = "rotate"
CONVEYOR: str = "conveyor"
SQUARE: str = "square"

TOOL_KINDS: tuple[str, ...] = (CURSOR, ROTATE)

# ---------------------------------------------------------------------------
# Directions
# ---------------------------------------------------------------------------
DEFAULT_DIRECTION: str = "right"

# ---------------------------------------------------------------------------
# Simulation tuning
# ---------------------------------------------------------------------------
EVENT_LOG_LIMIT: int = 12   # most recent events kept for display
HEADLESS_TICKS: int = 120   # default number of headless ticks
HEADLESS_DT: float = 0.25   # default headless timestep, in simulation ticks
