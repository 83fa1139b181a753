"""Producer cycles and export onto outbound conveyors."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from game.entities import ConveyorCell, Coord, Direction, Package, ProducerCell
from game.grid import GridStore
from recipe_catalog import RecipeDefinition

logger = logging.getLogger(__name__)

# (offset, required facing) pairs, scanned in order: below facing up, above
# facing down, right facing right, left facing left.
EXPORT_PRECEDENCE: Tuple[Tuple[Coord, Direction], ...] = (
    ((0, 1), Direction.UP),
    ((0, -1), Direction.DOWN),
    ((1, 0), Direction.RIGHT),
    ((-1, 0), Direction.LEFT),
)


@dataclass
class ProductionReport:
    cycles: int = 0
    exported: int = 0


def can_produce(cell: ProducerCell, recipe: RecipeDefinition) -> bool:
    """True when one more cycle fits in output capacity and input stock covers it."""
    for resource, rate in recipe.production.items():
        if cell.production_stock.get(resource, 0) + rate > recipe.production_capacity[resource]:
            return False
    for resource, rate in recipe.consumption.items():
        if cell.consumption_stock.get(resource, 0) < rate:
            return False
    if recipe.gate is not None and not recipe.gate():
        return False
    return True


def run_production(cell: ProducerCell, recipe: RecipeDefinition, elapsed: float) -> int:
    """Accumulate ``elapsed`` and apply every cycle that is due; returns cycles run.

    Time keeps accumulating while production is blocked, so a producer
    catches up once capacity frees.  Kinds with no cycle never accumulate.
    """
    if recipe.tick <= 0:
        return 0
    cell.ticks_done += elapsed

    completed = 0
    while cell.ticks_done >= recipe.tick and can_produce(cell, recipe):
        cycles = math.floor(cell.ticks_done / recipe.tick)
        if recipe.on_produce is not None:
            recipe.on_produce(cycles)
        for resource, rate in recipe.consumption.items():
            cell.consumption_stock[resource] -= rate * cycles
        for resource, rate in recipe.production.items():
            cell.production_stock[resource] += rate * cycles
        cell.ticks_done -= cycles * recipe.tick
        completed += cycles
    return completed


def find_export_target(grid: GridStore, x: int, y: int) -> Optional[Tuple[Coord, ConveyorCell]]:
    """First neighbouring conveyor in :data:`EXPORT_PRECEDENCE` with the required facing."""
    for (dx, dy), facing in EXPORT_PRECEDENCE:
        neighbour = grid.get(x + dx, y + dy)
        if isinstance(neighbour, ConveyorCell) and neighbour.direction is facing:
            return (x + dx, y + dy), neighbour
    return None


def export_one(grid: GridStore, coord: Coord, cell: ProducerCell) -> Optional[Package]:
    """Hand at most one unit of output stock to an outbound conveyor."""
    x, y = coord
    found = find_export_target(grid, x, y)
    if found is None:
        return None
    _, conveyor = found
    for resource, amount in cell.production_stock.items():
        if amount >= 1:
            cell.production_stock[resource] -= 1
            package = Package(item=resource, x=x, y=y, anchor_x=x, anchor_y=y)
            conveyor.next_packages.append(package)
            return package
    return None


def update_production(
    grid: GridStore, catalog: Mapping[str, RecipeDefinition], elapsed: float
) -> ProductionReport:
    report = ProductionReport()
    for coord, cell in grid.producers():
        recipe = catalog.get(cell.kind)
        if recipe is None:
            logger.warning("No recipe for %s at %s; skipping", cell.kind, coord)
            continue
        report.cycles += run_production(cell, recipe, elapsed)
        if export_one(grid, coord, cell) is not None:
            report.exported += 1
    return report
