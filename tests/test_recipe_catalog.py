import json
import math
import tempfile
import unittest
from pathlib import Path

from recipe_catalog import (
    DEFAULT_RECIPE_DEFINITIONS,
    InvalidRecipe,
    RecipeCatalog,
    RecipeDefinition,
    load_recipe_catalog,
)


def _write(tmpdir: str, payload) -> Path:
    path = Path(tmpdir) / "components.json"
    path.write_text(json.dumps(payload))
    return path


class RecipeCatalogTests(unittest.TestCase):
    def test_loads_defaults_when_file_missing(self):
        catalog = load_recipe_catalog(Path("does_not_exist.json"))
        self.assertEqual(list(catalog), list(DEFAULT_RECIPE_DEFINITIONS))
        self.assertTrue(catalog["cursor"].tool)
        self.assertTrue(catalog["rotate"].tool)
        self.assertTrue(catalog["conveyor"].is_conveyor)
        self.assertEqual(1, catalog["square"].tick)
        self.assertEqual(math.inf, catalog["square"].production_capacity["square"])

    def test_tools_are_not_buildable(self):
        catalog = load_recipe_catalog(Path("does_not_exist.json"))
        self.assertEqual(["conveyor", "square"], [key for key, recipe in catalog.items() if recipe.buildable])

    def test_falls_back_on_unreadable_json(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "components.json"
            path.write_text("{not json")
            catalog = load_recipe_catalog(path)
        self.assertIn("square", catalog)

    def test_falls_back_on_undecodable_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "components.json"
            path.write_bytes(b"\xff\xfe{bad")
            catalog = load_recipe_catalog(path)
        self.assertEqual(list(catalog), list(DEFAULT_RECIPE_DEFINITIONS))

    def test_falls_back_on_non_object_document(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            catalog = load_recipe_catalog(_write(tmpdir, ["conveyor"]))
        self.assertEqual(list(catalog), list(DEFAULT_RECIPE_DEFINITIONS))

    def test_filters_malformed_entries(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = _write(
                tmpdir,
                {
                    "conveyor": {"display_name": "Conveyor", "tick": 1},
                    "smelter": {
                        "display_name": "Smelter",
                        "tick": 2,
                        "consumption": {"ore": 2},
                        "consumption_capacity": {"ore": 5},
                        "production": {"bar": 1},
                        "production_capacity": {"bar": 3},
                    },
                    "Bad-Key": {"display_name": "Bad", "tick": 1},
                    "negative": {"display_name": "Negative", "tick": -1},
                    "bad_amount": {"display_name": "Bad", "tick": 1, "production": {"x": "lots"}},
                    "blank_name": {"display_name": "   ", "tick": 1},
                },
            )
            catalog = load_recipe_catalog(path)

        self.assertEqual(["conveyor", "smelter"], list(catalog))
        self.assertEqual({"ore": 2}, dict(catalog["smelter"].consumption))
        self.assertEqual(2, catalog["smelter"].tick)

    def test_accepts_infinite_capacity(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "components.json"
            path.write_text(
                '{"mine": {"display_name": "Mine", "tick": 1, '
                '"production": {"ore": 1}, "production_capacity": {"ore": Infinity}}}'
            )
            catalog = load_recipe_catalog(path)
        self.assertTrue(math.isinf(catalog["mine"].production_capacity["ore"]))

    def test_undeclared_resource_is_fatal(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = _write(
                tmpdir,
                {
                    "smelter": {
                        "display_name": "Smelter",
                        "tick": 1,
                        "consumption": {"ore": 2},
                        "consumption_capacity": {},
                    }
                },
            )
            with self.assertRaises(InvalidRecipe) as ctx:
                load_recipe_catalog(path)
        self.assertEqual("smelter", ctx.exception.key)

    def test_catalog_rejects_undeclared_production(self):
        bad = RecipeDefinition(key="press", tick=1, production={"plate": 1}, production_capacity={"sheet": 4})
        with self.assertRaises(InvalidRecipe):
            RecipeCatalog([bad])

    def test_catalog_rejects_negative_tick(self):
        with self.assertRaises(InvalidRecipe):
            RecipeCatalog([RecipeDefinition(key="clock", tick=-1)])

    def test_capacity_without_rate_is_allowed(self):
        storage = RecipeDefinition(key="crate", consumption_capacity={"ore": 10})
        catalog = RecipeCatalog([storage])
        self.assertEqual(0, catalog["crate"].tick)
        self.assertTrue(catalog["crate"].buildable)
        self.assertFalse(catalog["crate"].is_conveyor)

    def test_catalog_is_read_only_mapping(self):
        catalog = RecipeCatalog(DEFAULT_RECIPE_DEFINITIONS.values())
        with self.assertRaises(TypeError):
            catalog["new"] = RecipeDefinition(key="new")  # type: ignore[index]
        self.assertIsNone(catalog.get("missing"))

    def test_capacity_maps_keep_declaration_order(self):
        recipe = RecipeDefinition(
            key="mixer",
            tick=1,
            production={"b": 1, "a": 1},
            production_capacity={"b": 2, "a": 2},
        )
        catalog = RecipeCatalog([recipe])
        self.assertEqual(["b", "a"], list(catalog["mixer"].production_capacity))


if __name__ == "__main__":
    unittest.main()
