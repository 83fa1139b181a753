"""Factory grid simulation package.

Public API:
    from game import FactorySim, Direction, CellSnapshot, Package
"""
from game.entities import CellSnapshot, ConveyorCell, Direction, Package, ProducerCell
from game.errors import (
    CellError,
    CellOccupied,
    EngineBusy,
    EngineNotReady,
    FactoryError,
    NoSuchCell,
    OutOfBounds,
    PlacementError,
    UnknownComponent,
)
from game.simulation import EngineState, FactorySim

__all__ = [
    "CellError",
    "CellOccupied",
    "CellSnapshot",
    "ConveyorCell",
    "Direction",
    "EngineBusy",
    "EngineNotReady",
    "EngineState",
    "FactoryError",
    "FactorySim",
    "NoSuchCell",
    "OutOfBounds",
    "Package",
    "PlacementError",
    "ProducerCell",
    "UnknownComponent",
]
