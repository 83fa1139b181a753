"""Core dataclasses for the factory grid simulation."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Tuple, Union

from config import CONVEYOR

Coord = Tuple[int, int]


class Direction(Enum):
    """Cardinal facing, listed clockwise starting at ``UP``."""

    UP = "up"
    RIGHT = "right"
    DOWN = "down"
    LEFT = "left"

    @classmethod
    def parse(cls, value: "Direction | str | None", default: "Direction | None" = None) -> "Direction":
        if isinstance(value, Direction):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        if default is not None:
            return default
        raise ValueError(f"unknown direction: {value!r}")

    def rotated(self, steps: int = 1) -> "Direction":
        """Rotate clockwise by ``steps`` quarter turns."""
        order = list(Direction)
        return order[(order.index(self) + steps) % len(order)]

    @property
    def horizontal(self) -> bool:
        return self in (Direction.LEFT, Direction.RIGHT)

    @property
    def sign(self) -> int:
        return -1 if self in (Direction.LEFT, Direction.UP) else 1

    def delta(self) -> Coord:
        """(dx, dy) for one step; y grows downward."""
        if self.horizontal:
            return self.sign, 0
        return 0, self.sign


@dataclass
class Package:
    """A single unit of a resource travelling on conveyors.

    Positions are in cell units.  ``anchor_x``/``anchor_y`` mark the point the
    current leg started from; a leg ends one cell further along the owning
    conveyor's axis.
    """

    item: str
    x: float
    y: float
    anchor_x: float
    anchor_y: float

    def position(self, direction: Direction) -> float:
        return self.x if direction.horizontal else self.y

    def anchor(self, direction: Direction) -> float:
        return self.anchor_x if direction.horizontal else self.anchor_y


@dataclass
class ProducerCell:
    """A component that converts consumed stock into produced stock."""

    kind: str
    direction: Direction = Direction.RIGHT
    consumption_stock: Dict[str, float] = field(default_factory=dict)
    production_stock: Dict[str, float] = field(default_factory=dict)
    ticks_done: float = 0.0


@dataclass
class ConveyorCell:
    """A conveyor; ``direction`` is the direction of travel."""

    direction: Direction = Direction.RIGHT
    packages: List[Package] = field(default_factory=list)
    next_packages: List[Package] = field(default_factory=list)

    kind: str = field(default=CONVEYOR, init=False)


Cell = Union[ProducerCell, ConveyorCell]


@dataclass(frozen=True)
class PackageSnapshot:
    item: str
    x: float
    y: float
    staged: bool = False


@dataclass(frozen=True)
class CellSnapshot:
    """Read-only copy of one cell, safe to hand to a renderer."""

    x: int
    y: int
    kind: str
    direction: Direction
    consumption_stock: Dict[str, float] = field(default_factory=dict)
    production_stock: Dict[str, float] = field(default_factory=dict)
    ticks_done: float = 0.0
    packages: Tuple[PackageSnapshot, ...] = ()

    @property
    def is_conveyor(self) -> bool:
        return self.kind == CONVEYOR

    @classmethod
    def of(cls, coord: Coord, cell: Cell) -> "CellSnapshot":
        x, y = coord
        if isinstance(cell, ConveyorCell):
            packages = tuple(PackageSnapshot(p.item, p.x, p.y) for p in cell.packages) + tuple(
                PackageSnapshot(p.item, p.x, p.y, staged=True) for p in cell.next_packages
            )
            return cls(x=x, y=y, kind=cell.kind, direction=cell.direction, packages=packages)
        return cls(
            x=x,
            y=y,
            kind=cell.kind,
            direction=cell.direction,
            consumption_stock=dict(cell.consumption_stock),
            production_stock=dict(cell.production_stock),
            ticks_done=cell.ticks_done,
        )
