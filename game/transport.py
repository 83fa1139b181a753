"""Conveyor transport.

Every conveyor owns two package lists: ``packages`` (moving this tick) and
``next_packages`` (staged, start moving next tick).  Hand-offs always land in
the receiving conveyor's staged list, and all staged lists are merged before
any conveyor moves, so a package never takes two steps in one tick no matter
which order the grid is iterated in.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from game.entities import ConveyorCell, Coord, Package, ProducerCell
from game.grid import GridStore

logger = logging.getLogger(__name__)

# Float slack when deciding that a package has reached the end of its leg.
POSITION_EPSILON = 1e-9


@dataclass
class TransportReport:
    moved: int = 0
    handed_off: int = 0
    delivered: int = 0
    dropped: int = 0

    def merge(self, other: "TransportReport") -> None:
        self.moved += other.moved
        self.handed_off += other.handed_off
        self.delivered += other.delivered
        self.dropped += other.dropped


def swap_buffers(grid: GridStore) -> None:
    for _, cell in grid.conveyors():
        if cell.next_packages:
            cell.packages.extend(cell.next_packages)
            cell.next_packages = []


def _set_anchor(package: Package, horizontal: bool, value: float) -> None:
    if horizontal:
        package.anchor_x = value
    else:
        package.anchor_y = value


def _advance(package: Package, horizontal: bool, sign: int, target: float, elapsed: float) -> None:
    position = package.x if horizontal else package.y
    remaining = abs(target - position)
    # At most one cell per call, however large ``elapsed`` is.
    new_position = target if remaining <= elapsed + POSITION_EPSILON else position + sign * elapsed
    if horizontal:
        package.x = new_position
    else:
        package.y = new_position


def advance_conveyor(grid: GridStore, coord: Coord, cell: ConveyorCell, elapsed: float) -> TransportReport:
    """Move or hand off every active package on one conveyor."""
    report = TransportReport()
    x, y = coord
    # Read fresh each tick; a rotation applies to packages not yet processed.
    direction = cell.direction
    horizontal = direction.horizontal
    sign = direction.sign
    dx, dy = direction.delta()

    remaining: list[Package] = []
    for package in cell.packages:
        target = package.anchor(direction) + sign
        if package.position(direction) * sign < target * sign:
            _advance(package, horizontal, sign, target, elapsed)
            remaining.append(package)
            report.moved += 1
            continue

        neighbour = grid.get(x + dx, y + dy)
        if neighbour is None:
            report.dropped += 1
        elif isinstance(neighbour, ConveyorCell):
            _set_anchor(package, horizontal, target)
            neighbour.next_packages.append(package)
            report.handed_off += 1
        elif isinstance(neighbour, ProducerCell):
            if package.item in neighbour.consumption_stock:
                neighbour.consumption_stock[package.item] += 1
                report.delivered += 1
            else:
                report.dropped += 1
    cell.packages = remaining
    return report


def update_transport(grid: GridStore, elapsed: float) -> TransportReport:
    report = TransportReport()
    for coord, cell in grid.conveyors():
        report.merge(advance_conveyor(grid, coord, cell, elapsed))
    if report.dropped:
        logger.debug("%d package(s) left the line this tick", report.dropped)
    return report
