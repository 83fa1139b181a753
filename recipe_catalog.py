from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Iterator, Mapping, Optional

from config import COMPONENTS_FILE, CONVEYOR, CURSOR, ROTATE, SQUARE

logger = logging.getLogger(__name__)

KIND_ID_RE = re.compile(r"^[a-z][a-z0-9_]*$")


class InvalidRecipe(ValueError):
    """A recipe references a resource it never declares a capacity for."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"invalid recipe {key!r}: {reason}")
        self.key = key
        self.reason = reason


@dataclass(frozen=True)
class RecipeDefinition:
    """Immutable production rule for one component kind.

    ``tick`` is the number of simulation ticks per production cycle; ``0``
    means the kind never produces (conveyors and palette tools).  Resource maps
    keep their declaration order, which decides export precedence.
    """

    key: str
    display_name: str = ""
    description: str = ""
    tick: float = 0
    consumption: Mapping[str, float] = field(default_factory=dict)
    consumption_capacity: Mapping[str, float] = field(default_factory=dict)
    production: Mapping[str, float] = field(default_factory=dict)
    production_capacity: Mapping[str, float] = field(default_factory=dict)
    on_produce: Optional[Callable[[int], None]] = field(default=None, compare=False)
    gate: Optional[Callable[[], bool]] = field(default=None, compare=False)
    tool: bool = False

    @property
    def is_conveyor(self) -> bool:
        return self.key == CONVEYOR

    @property
    def buildable(self) -> bool:
        return not self.tool


def validate_recipe(recipe: RecipeDefinition) -> None:
    if recipe.tick < 0:
        raise InvalidRecipe(recipe.key, "tick interval must not be negative")
    for resource in recipe.consumption:
        if resource not in recipe.consumption_capacity:
            raise InvalidRecipe(recipe.key, f"consumes {resource!r} without a consumption capacity")
    for resource in recipe.production:
        if resource not in recipe.production_capacity:
            raise InvalidRecipe(recipe.key, f"produces {resource!r} without a production capacity")


class RecipeCatalog(Mapping[str, RecipeDefinition]):
    """Read-only lookup of component kind -> recipe.

    Every entry is validated on construction, so a bad catalog fails at
    startup instead of during a tick.
    """

    def __init__(self, recipes: Iterable[RecipeDefinition]) -> None:
        entries: Dict[str, RecipeDefinition] = {}
        for recipe in recipes:
            validate_recipe(recipe)
            entries[recipe.key] = recipe
        self._entries = entries

    def __getitem__(self, key: str) -> RecipeDefinition:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


DEFAULT_RECIPE_DEFINITIONS: Dict[str, RecipeDefinition] = {
    CURSOR: RecipeDefinition(
        key=CURSOR,
        display_name="Cursor",
        description="Use this to move.",
        tool=True,
    ),
    ROTATE: RecipeDefinition(
        key=ROTATE,
        display_name="Rotate",
        description="Use this to rotate components.",
        tool=True,
    ),
    CONVEYOR: RecipeDefinition(
        key=CONVEYOR,
        display_name="Conveyor",
        description="Moves 1 item per tick.",
        tick=1,
    ),
    SQUARE: RecipeDefinition(
        key=SQUARE,
        display_name="???",
        description="Produces 1 square every 1 tick.",
        tick=1,
        production={"square": 1},
        production_capacity={"square": math.inf},
    ),
}


def default_recipe_catalog() -> RecipeCatalog:
    return RecipeCatalog(DEFAULT_RECIPE_DEFINITIONS.values())


def _is_valid_kind_id(value: str) -> bool:
    return bool(KIND_ID_RE.fullmatch(value))


def _is_amount(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    return isinstance(value, (int, float)) and not math.isnan(value) and value >= 0


def _coerce_amount_map(value: Any) -> Dict[str, float] | None:
    if value is None:
        return {}
    if not isinstance(value, dict):
        return None
    parsed: Dict[str, float] = {}
    for resource, amount in value.items():
        if not isinstance(resource, str) or not _is_valid_kind_id(resource):
            return None
        if not _is_amount(amount):
            return None
        parsed[resource] = amount
    return parsed


def _parse_recipe_entry(key: str, entry: Dict[str, Any]) -> RecipeDefinition | None:
    if not _is_valid_kind_id(key):
        return None

    display_name = entry.get("display_name", key)
    description = entry.get("description", "")
    tick = entry.get("tick", 0)
    tool = entry.get("tool", False)

    if not isinstance(display_name, str) or not display_name.strip():
        return None
    if not isinstance(description, str):
        return None
    if not _is_amount(tick) or math.isinf(tick):
        return None
    if not isinstance(tool, bool):
        return None

    consumption = _coerce_amount_map(entry.get("consumption"))
    consumption_capacity = _coerce_amount_map(entry.get("consumption_capacity"))
    production = _coerce_amount_map(entry.get("production"))
    production_capacity = _coerce_amount_map(entry.get("production_capacity"))
    if consumption is None or consumption_capacity is None:
        return None
    if production is None or production_capacity is None:
        return None

    return RecipeDefinition(
        key=key,
        display_name=display_name.strip(),
        description=description,
        tick=tick,
        consumption=consumption,
        consumption_capacity=consumption_capacity,
        production=production,
        production_capacity=production_capacity,
        tool=tool,
    )


def load_recipe_catalog(path: Path = COMPONENTS_FILE) -> RecipeCatalog:
    """Load the component catalog from ``path``.

    Falls back to the built-in palette when the file is missing or unreadable.
    Malformed entries are skipped; a well-formed entry that references an
    undeclared resource raises :class:`InvalidRecipe`.
    """
    if not path.exists():
        return default_recipe_catalog()

    try:
        raw = json.loads(path.read_text())
    except (json.JSONDecodeError, UnicodeDecodeError, OSError):
        logger.warning("Component catalog %s is unreadable; using defaults", path)
        return default_recipe_catalog()

    if not isinstance(raw, dict):
        return default_recipe_catalog()

    recipes: Dict[str, RecipeDefinition] = {}
    for key, entry in raw.items():
        if not isinstance(key, str) or not isinstance(entry, dict):
            continue
        recipe = _parse_recipe_entry(key, entry)
        if recipe is None:
            logger.warning("Skipping malformed component entry %r", key)
            continue
        recipes[key] = recipe

    if not recipes:
        return default_recipe_catalog()

    return RecipeCatalog(recipes.values())
