"""Grid store: bounded, one-component-per-cell mapping of coordinates to cells.

Coordinates are centred on the origin; the floor spans
``[-width, width) x [-height, height)``.  Cells are kept in insertion order,
which is also the order the tick processes them in.
"""
from __future__ import annotations

from typing import Dict, Iterator, Optional, Tuple

from game.entities import Cell, ConveyorCell, Coord, Direction, ProducerCell
from game.errors import CellOccupied, NoSuchCell, OutOfBounds, UnknownComponent
from recipe_catalog import RecipeDefinition


class GridStore:
    def __init__(self, width: int, height: int) -> None:
        self.width = width
        self.height = height
        self._cells: Dict[Coord, Cell] = {}

    def __len__(self) -> int:
        return len(self._cells)

    def __contains__(self, coord: object) -> bool:
        return coord in self._cells

    def in_bounds(self, x: int, y: int) -> bool:
        return -self.width <= x < self.width and -self.height <= y < self.height

    def get(self, x: int, y: int) -> Optional[Cell]:
        return self._cells.get((x, y))

    def items(self) -> list[Tuple[Coord, Cell]]:
        """Snapshot of ``(coord, cell)`` pairs in placement order."""
        return list(self._cells.items())

    def conveyors(self) -> Iterator[Tuple[Coord, ConveyorCell]]:
        for coord, cell in self.items():
            if isinstance(cell, ConveyorCell):
                yield coord, cell

    def producers(self) -> Iterator[Tuple[Coord, ProducerCell]]:
        for coord, cell in self.items():
            if isinstance(cell, ProducerCell):
                yield coord, cell

    def clear(self) -> None:
        self._cells.clear()

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def check_free(self, x: int, y: int) -> None:
        if not self.in_bounds(x, y):
            raise OutOfBounds(x, y)
        if (x, y) in self._cells:
            raise CellOccupied(x, y)

    def place(self, x: int, y: int, recipe: RecipeDefinition, direction: Direction) -> Cell:
        self.check_free(x, y)
        if not recipe.buildable:
            raise UnknownComponent(recipe.key, x, y)

        cell: Cell
        if recipe.is_conveyor:
            cell = ConveyorCell(direction=direction)
        else:
            cell = ProducerCell(
                kind=recipe.key,
                direction=direction,
                consumption_stock={resource: 0 for resource in recipe.consumption_capacity},
                production_stock={resource: 0 for resource in recipe.production_capacity},
            )
        self._cells[(x, y)] = cell
        return cell

    def rotate(self, x: int, y: int) -> Direction:
        cell = self._cells.get((x, y))
        if cell is None:
            raise NoSuchCell(x, y)
        cell.direction = cell.direction.rotated()
        return cell.direction

    def remove(self, x: int, y: int) -> Cell:
        cell = self._cells.pop((x, y), None)
        if cell is None:
            raise NoSuchCell(x, y)
        if isinstance(cell, ConveyorCell):
            cell.packages.clear()
            cell.next_packages.clear()
        return cell
