"""Tests for the FactorySim engine: lifecycle, tick ordering and inspection."""
from __future__ import annotations

import math
import unittest

from config import EVENT_LOG_LIMIT
from game import Direction, EngineBusy, EngineNotReady, EngineState, FactorySim
from game.entities import Package
from recipe_catalog import RecipeCatalog, RecipeDefinition, default_recipe_catalog

SMELTER = RecipeDefinition(
    key="smelter",
    display_name="Smelter",
    description="Turns ore into bars.",
    tick=1,
    consumption={"ore": 2},
    consumption_capacity={"ore": 5},
    production={"bar": 1},
    production_capacity={"bar": 3},
)


def _catalog(*extra: RecipeDefinition) -> RecipeCatalog:
    return RecipeCatalog([*default_recipe_catalog().values(), SMELTER, *extra])


class TestLifecycle(unittest.TestCase):
    def test_default_sim_is_ready(self):
        sim = FactorySim(_catalog())
        self.assertIs(EngineState.READY, sim.state)
        self.assertTrue(sim.tick(1))
        self.assertEqual(1, sim.tick_count)

    def test_ticks_dropped_until_ready(self):
        sim = FactorySim(_catalog(), ready=False)
        self.assertFalse(sim.ready)
        self.assertFalse(sim.tick(1))
        self.assertEqual(0, sim.tick_count)
        self.assertEqual(1, sim.dropped_ticks)

        sim.mark_ready()
        self.assertTrue(sim.tick(1))
        self.assertEqual(1.0, sim.time)
        self.assertIn("Factory ready", sim.event_log)

    def test_mutation_rejected_until_ready(self):
        sim = FactorySim(_catalog(), ready=False)
        with self.assertRaises(EngineNotReady):
            sim.place(0, 0, "conveyor")
        self.assertEqual(0, len(sim.grid))

    def test_mark_ready_is_idempotent(self):
        sim = FactorySim(_catalog(), ready=False)
        sim.mark_ready()
        sim.mark_ready()
        self.assertEqual(1, sim.event_log.count("Factory ready"))

    def test_non_positive_and_infinite_elapsed_are_ignored(self):
        sim = FactorySim(_catalog())
        sim.place(0, 0, "square")
        for elapsed in (0, -1, math.inf, math.nan):
            self.assertFalse(sim.tick(elapsed))
        self.assertEqual(0, sim.tick_count)
        self.assertEqual(0.0, sim.get_cell(0, 0).ticks_done)


class TestReentrancy(unittest.TestCase):
    def test_tick_from_hook_is_dropped(self):
        outcomes = []
        holder = {}

        def hook(cycles):
            outcomes.append(holder["sim"].tick(1))

        recursive = RecipeDefinition(
            key="recursive", tick=1, production={"x": 1}, production_capacity={"x": 10}, on_produce=hook
        )
        sim = FactorySim(_catalog(recursive))
        holder["sim"] = sim
        sim.place(0, 0, "recursive")

        self.assertTrue(sim.tick(1))
        self.assertEqual([False], outcomes)
        self.assertEqual(1, sim.tick_count)
        self.assertEqual(1, sim.get_cell(0, 0).production_stock["x"])
        self.assertFalse(sim.busy)

    def test_mutation_from_hook_raises_busy(self):
        holder = {}
        errors = []

        def hook(cycles):
            try:
                holder["sim"].place(2, 2, "conveyor")
            except EngineBusy as exc:
                errors.append(exc)

        builder = RecipeDefinition(
            key="builder", tick=1, production={"x": 1}, production_capacity={"x": 10}, on_produce=hook
        )
        sim = FactorySim(_catalog(builder))
        holder["sim"] = sim
        sim.place(0, 0, "builder")
        sim.tick(1)

        self.assertEqual(1, len(errors))
        self.assertIsNone(sim.get_cell(2, 2))
        sim.place(2, 2, "conveyor")
        self.assertIsNotNone(sim.get_cell(2, 2))

    def test_busy_flag_clears_when_hook_raises(self):
        def hook(cycles):
            raise ValueError("boom")

        faulty = RecipeDefinition(
            key="faulty", tick=1, production={"x": 1}, production_capacity={"x": 10}, on_produce=hook
        )
        sim = FactorySim(_catalog(faulty))
        sim.place(0, 0, "faulty")
        with self.assertRaises(ValueError):
            sim.tick(1)
        self.assertFalse(sim.busy)


class TestTickOrdering(unittest.TestCase):
    def test_square_line_pipeline(self):
        sim = FactorySim(_catalog())
        sim.place(0, 0, "square", Direction.RIGHT)
        sim.place(1, 0, "conveyor", Direction.RIGHT)
        sim.place(2, 0, "conveyor", Direction.RIGHT)

        sim.tick(1)
        self.assertEqual(1, sim.package_count)
        sim.tick(1)
        sim.tick(1)
        sim.tick(1)
        # One new square per tick; the oldest has reached the end of the line.
        self.assertEqual(4, sim.package_count)
        sim.tick(1)
        self.assertEqual(1, sim.last_transport.dropped)
        self.assertEqual(4, sim.package_count)
        self.assertEqual(0, sim.get_cell(0, 0).production_stock["square"])

    def test_delivery_then_production_in_same_tick(self):
        sim = FactorySim(_catalog())
        sim.place(0, 0, "conveyor", Direction.RIGHT)
        sim.place(1, 0, "smelter")
        sim.grid.get(1, 0).consumption_stock["ore"] = 1
        sim.grid.get(0, 0).packages.append(Package("ore", 0, 0, -1, 0))

        sim.tick(1)
        cell = sim.get_cell(1, 0)
        self.assertEqual(0, cell.consumption_stock["ore"])
        self.assertEqual(1, cell.production_stock["bar"])

    def test_counts(self):
        sim = FactorySim(_catalog())
        sim.place(0, 0, "conveyor")
        sim.place(1, 0, "conveyor")
        sim.place(2, 0, "smelter")
        self.assertEqual(2, sim.conveyor_count())
        self.assertEqual(3, len(sim.cells()))


class TestInspection(unittest.TestCase):
    def test_describe_producer(self):
        sim = FactorySim(_catalog())
        sim.place(0, 0, "smelter")
        sim.grid.get(0, 0).consumption_stock["ore"] = 4
        text = sim.describe_cell(0, 0)
        self.assertEqual(
            "Smelter\nTurns ore into bars.\nStock: bar: 0/3, ore: 4/5",
            text,
        )

    def test_describe_infinite_capacity(self):
        sim = FactorySim(_catalog())
        sim.place(0, 0, "square")
        self.assertIn("square: 0/∞", sim.describe_cell(0, 0))

    def test_describe_empty_cell(self):
        self.assertEqual("", FactorySim(_catalog()).describe_cell(0, 0))

    def test_conveyor_snapshot_lists_packages(self):
        sim = FactorySim(_catalog())
        sim.place(0, 0, "conveyor")
        cell = sim.grid.get(0, 0)
        cell.packages.append(Package("square", 0, 0, -1, 0))
        cell.next_packages.append(Package("square", -1, 0, -1, 0))
        snapshot = sim.get_cell(0, 0)
        self.assertTrue(snapshot.is_conveyor)
        self.assertEqual([False, True], [p.staged for p in snapshot.packages])
        self.assertEqual(2, len(list(sim.packages())))

    def test_event_log_is_bounded(self):
        sim = FactorySim(_catalog())
        for x in range(-6, 6):
            sim.place(x, 0, "conveyor")
            sim.place(x, 1, "conveyor")
        self.assertEqual(EVENT_LOG_LIMIT, len(sim.event_log))
        self.assertEqual("Placed conveyor at (5, 1)", sim.event_log[-1])


if __name__ == "__main__":
    unittest.main()
