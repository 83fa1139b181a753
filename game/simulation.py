"""FactorySim: the tick evaluator for a bounded grid of conveyors and producers.

The simulation has no pygame dependency and is safe to import in headless /
test contexts.  A front-end drives it through five calls: :meth:`place`,
:meth:`rotate`, :meth:`remove`, :meth:`tick` and :meth:`get_cell`.
"""
from __future__ import annotations

import json
import logging
import math
import re
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from config import DEFAULT_DIRECTION, EVENT_LOG_LIMIT, GRID_HEIGHT, GRID_WIDTH, SAVE_FILE
from game.entities import CellSnapshot, Coord, Direction, Package, ProducerCell
from game.errors import EngineBusy, EngineNotReady, PlacementError, UnknownComponent
from game.grid import GridStore
from game.production import ProductionReport, update_production
from game.transport import TransportReport, swap_buffers, update_transport
from recipe_catalog import RecipeCatalog, load_recipe_catalog

logger = logging.getLogger(__name__)

CELL_KEY_RE = re.compile(r"^(-?\d+)x(-?\d+)$")


def cell_key(x: int, y: int) -> str:
    return f"{x}x{y}"


def parse_cell_key(key: Any) -> Optional[Coord]:
    if not isinstance(key, str):
        return None
    match = CELL_KEY_RE.fullmatch(key)
    if match is None:
        return None
    return int(match.group(1)), int(match.group(2))


class EngineState(Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"


class FactorySim:
    """Tick-based factory grid simulation.

    All per-frame state changes happen inside :meth:`tick`, which swaps the
    conveyor buffers, moves packages, then runs producers, in that order.
    The grid is serialisable to/from the ``"{x}x{y}"`` keyed mapping used by
    save files via :meth:`to_dict` and :meth:`load_components`.

    Cells are processed one after another in placement order; there is no
    atomicity across cells within a tick.
    """

    def __init__(
        self,
        catalog: Optional[RecipeCatalog] = None,
        *,
        width: int = GRID_WIDTH,
        height: int = GRID_HEIGHT,
        ready: bool = True,
    ) -> None:
        self.catalog: RecipeCatalog = catalog if catalog is not None else load_recipe_catalog()
        self.grid = GridStore(width, height)
        self.state = EngineState.READY if ready else EngineState.UNINITIALIZED
        self.time: float = 0.0
        self.tick_count: int = 0
        self.dropped_ticks: int = 0
        self.last_transport = TransportReport()
        self.last_production = ProductionReport()
        self.event_log: List[str] = []
        self._ticking = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def ready(self) -> bool:
        return self.state is EngineState.READY

    @property
    def busy(self) -> bool:
        return self._ticking

    def mark_ready(self) -> None:
        """Signal that external assets finished loading; ticks start counting."""
        if self.state is EngineState.READY:
            return
        self.state = EngineState.READY
        self._log_event("Factory ready")

    def _log_event(self, message: str) -> None:
        logger.info(message)
        self.event_log.append(message)
        self.event_log = self.event_log[-EVENT_LOG_LIMIT:]

    def _check_mutable(self) -> None:
        if not self.ready:
            raise EngineNotReady("factory is still loading")
        if self._ticking:
            raise EngineBusy("cannot change the grid during a tick")

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def place(self, x: int, y: int, kind: str, direction: Direction | str | None = None) -> None:
        self._check_mutable()
        self._place(x, y, kind, direction)
        self._log_event(f"Placed {kind} at ({x}, {y})")

    def _place(self, x: int, y: int, kind: str, direction: Direction | str | None) -> None:
        facing = Direction.parse(direction, default=Direction(DEFAULT_DIRECTION))
        recipe = self.catalog.get(kind)
        if recipe is None:
            self.grid.check_free(x, y)
            raise UnknownComponent(kind, x, y)
        self.grid.place(x, y, recipe, facing)

    def rotate(self, x: int, y: int) -> Direction:
        self._check_mutable()
        return self.grid.rotate(x, y)

    def remove(self, x: int, y: int) -> None:
        self._check_mutable()
        cell = self.grid.remove(x, y)
        self._log_event(f"Removed {cell.kind} at ({x}, {y})")

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def get_cell(self, x: int, y: int) -> Optional[CellSnapshot]:
        cell = self.grid.get(x, y)
        if cell is None:
            return None
        return CellSnapshot.of((x, y), cell)

    def cells(self) -> List[CellSnapshot]:
        return [CellSnapshot.of(coord, cell) for coord, cell in self.grid.items()]

    def packages(self) -> Iterator[Tuple[Coord, Package]]:
        """Every in-flight package with the conveyor that currently holds it."""
        for coord, cell in self.grid.conveyors():
            for package in cell.packages:
                yield coord, package
            for package in cell.next_packages:
                yield coord, package

    def describe_cell(self, x: int, y: int) -> str:
        """Tooltip text: name, description and ``resource: amount/capacity`` lines."""
        cell = self.grid.get(x, y)
        if cell is None:
            return ""
        recipe = self.catalog[cell.kind]
        lines = [recipe.display_name or recipe.key, recipe.description]
        if isinstance(cell, ProducerCell):
            stock = {**cell.production_stock, **cell.consumption_stock}
            parts = []
            for resource, amount in stock.items():
                capacity = recipe.consumption_capacity.get(resource, recipe.production_capacity.get(resource))
                parts.append(f"{resource}: {_format_amount(amount)}/{_format_amount(capacity)}")
            lines.append("Stock: " + ", ".join(parts))
        return "\n".join(line for line in lines if line)

    # ------------------------------------------------------------------
    # Main tick
    # ------------------------------------------------------------------

    @contextmanager
    def _tick_guard(self) -> Iterator[None]:
        self._ticking = True
        try:
            yield
        finally:
            self._ticking = False

    def tick(self, elapsed: float) -> bool:
        """Advance the whole grid by ``elapsed`` simulation ticks.

        Returns ``False`` without touching the grid when the engine is not
        ready, when a previous tick is still running, or when ``elapsed`` is
        not a positive number.
        """
        if not self.ready or self._ticking:
            self.dropped_ticks += 1
            logger.debug("Tick dropped (ready=%s, busy=%s)", self.ready, self._ticking)
            return False
        if not (elapsed > 0) or math.isinf(elapsed):
            self.dropped_ticks += 1
            return False

        with self._tick_guard():
            swap_buffers(self.grid)
            self.last_transport = update_transport(self.grid, elapsed)
            self.last_production = update_production(self.grid, self.catalog, elapsed)
            self.time += elapsed
            self.tick_count += 1
        return True

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        components: Dict[str, Dict[str, Any]] = {}
        for (x, y), cell in self.grid.items():
            entry: Dict[str, Any] = {"type": cell.kind, "direction": cell.direction.value}
            if isinstance(cell, ProducerCell):
                entry["consumption_stock"] = dict(cell.consumption_stock)
                entry["production_stock"] = dict(cell.production_stock)
                entry["ticks_done"] = cell.ticks_done
            components[cell_key(x, y)] = entry
        return components

    def load_components(self, data: Any) -> int:
        """Replace the grid with the contents of a saved component mapping.

        Unusable entries are dropped and logged; returns how many were kept.
        """
        if self._ticking:
            raise EngineBusy("cannot load during a tick")
        self.grid.clear()
        if not isinstance(data, Mapping):
            if data is not None:
                self._log_event("Saved factory layout was malformed; starting empty")
            return 0

        kept = 0
        for key, raw in data.items():
            coord = parse_cell_key(key)
            if coord is None or not isinstance(raw, Mapping) or raw.get("type") is None:
                self._log_event(f"Dropped saved component {key!r}")
                continue
            x, y = coord
            kind = raw["type"]
            try:
                self._place(x, y, str(kind), raw.get("direction"))
            except PlacementError as exc:
                self._log_event(f"Dropped saved component {key!r}: {exc}")
                continue
            cell = self.grid.get(x, y)
            if isinstance(cell, ProducerCell):
                _restore_stock(cell.consumption_stock, raw.get("consumption_stock"))
                _restore_stock(cell.production_stock, raw.get("production_stock"))
                cell.ticks_done = _coerce_ticks(raw.get("ticks_done"))
            kept += 1
        return kept

    @classmethod
    def from_dict(cls, data: Any, catalog: Optional[RecipeCatalog] = None, *, ready: bool = True) -> "FactorySim":
        sim = cls(catalog, ready=ready)
        sim.load_components(data)
        return sim

    # ------------------------------------------------------------------
    # Save / Load helpers
    # ------------------------------------------------------------------

    def save(self, path: Path = SAVE_FILE) -> None:
        path.write_text(json.dumps(self.to_dict(), indent=2))

    @classmethod
    def load(
        cls, path: Path = SAVE_FILE, catalog: Optional[RecipeCatalog] = None, *, ready: bool = True
    ) -> "FactorySim":
        try:
            data = json.loads(path.read_text())
        except (json.JSONDecodeError, UnicodeDecodeError, OSError):
            logger.warning("Save file %s is unreadable; starting empty", path)
            data = {}
        return cls.from_dict(data, catalog, ready=ready)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def package_count(self) -> int:
        return sum(len(cell.packages) + len(cell.next_packages) for _, cell in self.grid.conveyors())

    def conveyor_count(self) -> int:
        return sum(1 for _ in self.grid.conveyors())


def _format_amount(value: Any) -> str:
    if value is None:
        return "?"
    if isinstance(value, float):
        if math.isinf(value):
            return "∞"
        if value.is_integer():
            return str(int(value))
    return str(value)


def _restore_stock(stock: Dict[str, float], saved: Any) -> None:
    if not isinstance(saved, Mapping):
        return
    for resource in stock:
        amount = saved.get(resource)
        if isinstance(amount, bool) or not isinstance(amount, (int, float)):
            continue
        if math.isfinite(amount) and amount >= 0:
            stock[resource] = amount


def _coerce_ticks(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    if not math.isfinite(value) or value < 0:
        return 0.0
    return float(value)
