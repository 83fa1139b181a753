"""Errors raised by the grid mutation API.

A tick never raises these; they only come out of ``place``, ``rotate`` and
``remove``.  Failed calls leave the grid untouched.
"""
from __future__ import annotations

from typing import Optional, Tuple


class FactoryError(Exception):
    """Base class for recoverable engine errors."""


class PlacementError(FactoryError):
    def __init__(self, message: str, coord: Optional[Tuple[int, int]] = None) -> None:
        super().__init__(message)
        self.coord = coord


class OutOfBounds(PlacementError):
    def __init__(self, x: int, y: int) -> None:
        super().__init__(f"({x}, {y}) is outside the factory floor", (x, y))


class CellOccupied(PlacementError):
    def __init__(self, x: int, y: int) -> None:
        super().__init__(f"({x}, {y}) already holds a component", (x, y))


class UnknownComponent(PlacementError):
    def __init__(self, kind: str, x: int, y: int) -> None:
        super().__init__(f"{kind!r} is not a buildable component", (x, y))
        self.kind = kind


class CellError(FactoryError):
    def __init__(self, message: str, coord: Optional[Tuple[int, int]] = None) -> None:
        super().__init__(message)
        self.coord = coord


class NoSuchCell(CellError):
    def __init__(self, x: int, y: int) -> None:
        super().__init__(f"no component at ({x}, {y})", (x, y))


class EngineNotReady(FactoryError):
    """Mutation attempted before asset loading finished."""


class EngineBusy(FactoryError):
    """Mutation attempted while a tick is being evaluated."""
