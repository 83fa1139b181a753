from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

try:
    import pygame  # type: ignore
except Exception:
    pygame = None

from config import (
    BLOCK_SIZE,
    COMPONENTS_FILE,
    CONVEYOR,
    CURSOR,
    FRAME_RATE,
    HEADLESS_DT,
    HEADLESS_TICKS,
    PANEL_HEIGHT,
    ROTATE,
    SAVE_FILE,
    SQUARE,
)
from game import Direction, FactoryError, FactorySim
from game.entities import CellSnapshot
from recipe_catalog import InvalidRecipe, RecipeCatalog, load_recipe_catalog


def build_demo_line(sim: FactorySim) -> None:
    """A square producer feeding a conveyor line that runs off the right edge."""
    y = 0
    start = -sim.grid.width
    sim.place(start, y, SQUARE, Direction.RIGHT)
    for x in range(start + 1, sim.grid.width):
        sim.place(x, y, CONVEYOR, Direction.RIGHT)


def run_headless(
    ticks: int,
    dt: float,
    load_save: bool,
    catalog: RecipeCatalog,
    save: bool = False,
    save_path: Path = SAVE_FILE,
) -> FactorySim:
    if load_save and save_path.exists():
        sim = FactorySim.load(save_path, catalog)
    else:
        sim = FactorySim(catalog)
        build_demo_line(sim)

    delivered = dropped = cycles = 0
    for _ in range(ticks):
        if not sim.tick(dt):
            continue
        delivered += sim.last_transport.delivered
        dropped += sim.last_transport.dropped
        cycles += sim.last_production.cycles

    if save:
        sim.save(save_path)
    print(
        f"headless_done t={sim.time:.2f} ticks={sim.tick_count} cells={len(sim.grid)} "
        f"conveyors={sim.conveyor_count()} packages={sim.package_count} "
        f"flow[cycles={cycles},delivered={delivered},dropped={dropped}]"
    )
    return sim


class GameUI:
    def __init__(self, sim: FactorySim):
        if pygame is None:
            raise RuntimeError("pygame is required for graphical mode; relaunch with --headless")
        pygame.init()
        if not pygame.display.get_init():
            raise RuntimeError("Display subsystem is unavailable. Relaunch with --headless.")
        self.sim = sim
        self.width = sim.grid.width * 2 * BLOCK_SIZE
        self.height = sim.grid.height * 2 * BLOCK_SIZE
        self.screen = pygame.display.set_mode((self.width, self.height + PANEL_HEIGHT))
        pygame.display.set_caption("The Factory")
        self.clock = pygame.time.Clock()
        self.font = pygame.font.SysFont("arial", 18)
        self.small = pygame.font.SysFont("arial", 14)
        self.running = True
        self.selected = CONVEYOR
        self.direction = Direction.RIGHT
        self.status = ""

        self.palette = {
            "bg": (30, 28, 26),
            "floor": (112, 100, 93),
            "grid_line": (92, 82, 76),
            "panel": (20, 25, 38),
            "text": (230, 236, 248),
            "muted": (161, 177, 205),
            CONVEYOR: (74, 126, 230),
            "producer": (230, 190, 102),
            "package": (242, 246, 255),
        }
        # Fonts and surfaces are ready; the engine may start ticking.
        self.sim.mark_ready()

    def to_cell(self, px: int, py: int) -> Optional[Tuple[int, int]]:
        if py >= self.height:
            return None
        return px // BLOCK_SIZE - self.sim.grid.width, py // BLOCK_SIZE - self.sim.grid.height

    def to_screen(self, x: float, y: float) -> Tuple[int, int]:
        return (
            int((x + self.sim.grid.width + 0.5) * BLOCK_SIZE),
            int((y + self.sim.grid.height + 0.5) * BLOCK_SIZE),
        )

    def click(self, button: int, px: int, py: int) -> None:
        cell = self.to_cell(px, py)
        if cell is None:
            return
        x, y = cell
        try:
            if button == 3:
                self.sim.remove(x, y)
            elif self.selected == ROTATE:
                self.sim.rotate(x, y)
            elif self.selected != CURSOR:
                self.sim.place(x, y, self.selected, self.direction)
        except FactoryError as exc:
            self.status = str(exc)

    def handle_input(self) -> None:
        palette_kinds = list(self.sim.catalog)
        for ev in pygame.event.get():
            if ev.type == pygame.QUIT:
                self.running = False
            if ev.type == pygame.KEYDOWN:
                if pygame.K_1 <= ev.key <= pygame.K_9:
                    idx = ev.key - pygame.K_1
                    if idx < len(palette_kinds):
                        self.selected = palette_kinds[idx]
                elif ev.key == pygame.K_d:
                    self.direction = self.direction.rotated()
                elif ev.key == pygame.K_s:
                    self.sim.save()
                elif ev.key == pygame.K_l and SAVE_FILE.exists():
                    self.sim = FactorySim.load(SAVE_FILE, self.sim.catalog)
            if ev.type == pygame.MOUSEBUTTONUP and ev.button in (1, 3):
                self.click(ev.button, *ev.pos)

    def _draw_arrow(self, cell: CellSnapshot, rect) -> None:
        cx, cy = rect.center
        dx, dy = cell.direction.delta()
        tip = (cx + dx * 14, cy + dy * 14)
        side = (dy * 9, -dx * 9)
        base = (cx - dx * 8, cy - dy * 8)
        points = [tip, (base[0] + side[0], base[1] + side[1]), (base[0] - side[0], base[1] - side[1])]
        pygame.draw.polygon(self.screen, self.palette["text"], points)

    def draw_cell(self, cell: CellSnapshot) -> None:
        left, top = self.to_screen(cell.x - 0.5, cell.y - 0.5)
        rect = pygame.Rect(left + 1, top + 1, BLOCK_SIZE - 2, BLOCK_SIZE - 2)
        color = self.palette[CONVEYOR] if cell.is_conveyor else self.palette["producer"]
        pygame.draw.rect(self.screen, color, rect, border_radius=8)
        self._draw_arrow(cell, rect)

    def draw(self) -> None:
        self.screen.fill(self.palette["bg"])
        pygame.draw.rect(self.screen, self.palette["floor"], (0, 0, self.width, self.height))
        for x in range(0, self.width + 1, BLOCK_SIZE):
            pygame.draw.line(self.screen, self.palette["grid_line"], (x, 0), (x, self.height), 1)
        for y in range(0, self.height + 1, BLOCK_SIZE):
            pygame.draw.line(self.screen, self.palette["grid_line"], (0, y), (self.width, y), 1)

        for cell in self.sim.cells():
            self.draw_cell(cell)
        for _, package in self.sim.packages():
            px, py = self.to_screen(package.x, package.y)
            pygame.draw.rect(self.screen, self.palette["package"], (px - 10, py - 5, 20, 10))

        panel_y = self.height + 8
        text = (
            f"Tool: {self.selected} | Facing: {self.direction.value} "
            f"(1-9 select, D turn, right click remove, S save, L load)"
        )
        self.screen.blit(self.small.render(text, True, self.palette["text"]), (10, panel_y))

        hovered = self.to_cell(*pygame.mouse.get_pos())
        if hovered is not None:
            for row, line in enumerate(self.sim.describe_cell(*hovered).splitlines()):
                self.screen.blit(self.small.render(line, True, self.palette["muted"]), (10, panel_y + 22 + row * 18))
        if self.status:
            self.screen.blit(self.font.render(self.status, True, (255, 236, 160)), (10, panel_y + 84))

        pygame.display.flip()

    def run(self) -> None:
        while self.running:
            # One simulation tick per second of wall time.
            dt = self.clock.tick(FRAME_RATE) / 1000.0
            self.handle_input()
            self.sim.tick(dt)
            self.draw()
        pygame.quit()


def main() -> None:
    parser = argparse.ArgumentParser(description="Factory grid prototype")
    parser.add_argument("--headless", action="store_true", help="run simulation without graphics")
    parser.add_argument("--ticks", type=int, default=HEADLESS_TICKS, help="headless ticks to run")
    parser.add_argument("--dt", type=float, default=HEADLESS_DT, help="headless timestep")
    parser.add_argument("--load", action="store_true", help="load the saved factory layout")
    parser.add_argument("--save", action="store_true", help="save the layout after a headless run")
    parser.add_argument("--catalog", type=Path, default=COMPONENTS_FILE, help="component catalog JSON")
    parser.add_argument("--verbose", action="store_true", help="log engine events")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        catalog = load_recipe_catalog(args.catalog)
    except InvalidRecipe as exc:
        print(f"Startup error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    if args.headless:
        run_headless(args.ticks, args.dt, args.load, catalog, save=args.save)
        return

    # Ticks are dropped until the front-end has its assets.
    if args.load and SAVE_FILE.exists():
        sim = FactorySim.load(SAVE_FILE, catalog, ready=False)
    else:
        sim = FactorySim(catalog, ready=False)
    try:
        ui = GameUI(sim)
    except RuntimeError as exc:
        print(f"Startup error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc
    ui.run()


if __name__ == "__main__":
    main()
