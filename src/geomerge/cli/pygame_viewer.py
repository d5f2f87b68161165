from __future__ import annotations

import argparse
import importlib.metadata
import itertools
import os
import platform
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from geomerge.cli.viewer import DEFAULT_STORE_PATH, describe_outcome, start_session
from geomerge.config import GameConfig
from geomerge.content.io import GameStorage, JsonFileKeyValueStore
from geomerge.sim.grid import CellBounds, CellIndex, to_cell_index
from geomerge.sim.hash import state_hash
from geomerge.sim.interactions import InteractionOutcome, is_within_reach
from geomerge.sim.state import GameState
from geomerge.sim.viewport import ClickCallback, ViewportBounds

CELL_PIXELS = 40
WINDOW_SIZE = (880, 760)
HUD_HEIGHT = 64
FRAME_RATE = 30

BACKGROUND_COLOR = (30, 32, 38)
BORDER_COLOR = (70, 74, 84)
REACHABLE_FILL_COLOR = (44, 58, 52)
MARKER_COLOR = (242, 196, 84)
MARKER_OUTLINE_COLOR = (20, 20, 20)
PLAYER_COLOR = (110, 190, 255)
HUD_TEXT_COLOR = (236, 236, 236)

KEY_DIRECTIONS = {
    "K_UP": "north",
    "K_w": "north",
    "K_DOWN": "south",
    "K_s": "south",
    "K_RIGHT": "east",
    "K_d": "east",
    "K_LEFT": "west",
    "K_a": "west",
}

pygame: Any | None = None


@dataclass
class PygameMapView:
    """Map camera: a geographic center plus a fixed pixel window below the HUD."""

    cell_size: float
    center: tuple[float, float] = (0.0, 0.0)
    window_size: tuple[int, int] = WINDOW_SIZE

    @property
    def map_height(self) -> int:
        return self.window_size[1] - HUD_HEIGHT

    def get_bounds(self) -> ViewportBounds:
        half_rows = self.map_height / 2 / CELL_PIXELS * self.cell_size
        half_cols = self.window_size[0] / 2 / CELL_PIXELS * self.cell_size
        lat, lng = self.center
        return ViewportBounds(south=lat - half_rows, west=lng - half_cols, north=lat + half_rows, east=lng + half_cols)

    def set_center(self, lat: float, lng: float) -> None:
        self.center = (lat, lng)

    def world_to_pixel(self, lat: float, lng: float) -> tuple[float, float]:
        x = self.window_size[0] / 2 + (lng - self.center[1]) / self.cell_size * CELL_PIXELS
        y = HUD_HEIGHT + self.map_height / 2 - (lat - self.center[0]) / self.cell_size * CELL_PIXELS
        return (x, y)

    def pixel_to_world(self, pixel_x: float, pixel_y: float) -> tuple[float, float]:
        lng = self.center[1] + (pixel_x - self.window_size[0] / 2) / CELL_PIXELS * self.cell_size
        lat = self.center[0] - (pixel_y - HUD_HEIGHT - self.map_height / 2) / CELL_PIXELS * self.cell_size
        return (lat, lng)


@dataclass
class BorderRecord:
    cell: CellIndex
    bounds: CellBounds
    on_click: ClickCallback


@dataclass
class MarkerRecord:
    cell: CellIndex
    center: tuple[float, float]
    value: int
    on_click: ClickCallback


@dataclass
class PygameRenderer:
    """Keeps drawable records; ``draw`` paints them every frame."""

    borders: dict[int, BorderRecord] = field(default_factory=dict)
    markers: dict[int, MarkerRecord] = field(default_factory=dict)
    player_position: tuple[float, float] | None = None
    _handles: Any = field(default_factory=lambda: itertools.count(1), init=False, repr=False)

    def create_cell_border(self, cell: CellIndex, bounds: CellBounds, on_click: ClickCallback) -> int:
        handle = next(self._handles)
        self.borders[handle] = BorderRecord(cell=cell, bounds=bounds, on_click=on_click)
        return handle

    def remove_cell_border(self, handle: int) -> None:
        del self.borders[handle]

    def create_token_marker(
        self,
        cell: CellIndex,
        center: tuple[float, float],
        value: int,
        on_click: ClickCallback,
    ) -> int:
        handle = next(self._handles)
        self.markers[handle] = MarkerRecord(cell=cell, center=center, value=value, on_click=on_click)
        return handle

    def update_token_marker(self, handle: int, value: int) -> None:
        self.markers[handle].value = value

    def remove_token_marker(self, handle: int) -> None:
        del self.markers[handle]

    def move_player_marker(self, lat: float, lng: float) -> None:
        self.player_position = (lat, lng)

    def click_target(self, cell: CellIndex) -> ClickCallback | None:
        for marker in self.markers.values():
            if marker.cell == cell:
                return marker.on_click
        for border in self.borders.values():
            if border.cell == cell:
                return border.on_click
        return None

    def draw(self, screen: Any, font: Any, map_view: PygameMapView, state: GameState) -> None:
        for border in self.borders.values():
            left, top = map_view.world_to_pixel(border.bounds.max_lat, border.bounds.min_lng)
            rect = pygame.Rect(int(left), int(top), CELL_PIXELS, CELL_PIXELS)
            if is_within_reach(state, border.cell):
                pygame.draw.rect(screen, REACHABLE_FILL_COLOR, rect)
            pygame.draw.rect(screen, BORDER_COLOR, rect, 1)

        for marker in self.markers.values():
            x, y = map_view.world_to_pixel(*marker.center)
            pygame.draw.circle(screen, MARKER_COLOR, (int(x), int(y)), CELL_PIXELS // 3)
            pygame.draw.circle(screen, MARKER_OUTLINE_COLOR, (int(x), int(y)), CELL_PIXELS // 3, 1)
            label = font.render(str(marker.value), True, MARKER_OUTLINE_COLOR)
            screen.blit(label, label.get_rect(center=(int(x), int(y))))

        if self.player_position is not None:
            x, y = map_view.world_to_pixel(*self.player_position)
            pygame.draw.circle(screen, PLAYER_COLOR, (int(x), int(y)), 7)
            pygame.draw.circle(screen, MARKER_OUTLINE_COLOR, (int(x), int(y)), 7, 1)


def _draw_hud(screen: Any, font: Any, state: GameState, status_message: str | None) -> None:
    held = state.player.held_token
    cell = state.player_cell()
    lines = [
        f"cell={cell.key} | held={held if held is not None else '-'} | modified={len(state.overlay)}",
        "arrows/WASD move | click interact | G sensor | N new game | F5 save | ESC quit",
    ]
    if status_message:
        lines[0] += f" | {status_message}"
    y = 10
    for line in lines:
        surface = font.render(line, True, HUD_TEXT_COLOR)
        screen.blit(surface, (12, y))
        y += 24


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="geomerge", description="Run the geomerge pygame viewer.")
    parser.add_argument("--save-path", default=DEFAULT_STORE_PATH, help="Key-value JSON file holding the saved game.")
    parser.add_argument("--namespace", default=None, help="Seed namespace for generated tokens.")
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Force SDL dummy video driver, draw one frame and exit.",
    )
    return parser


def _print_startup_banner() -> None:
    try:
        pygame_version = importlib.metadata.version("pygame")
    except importlib.metadata.PackageNotFoundError:
        pygame_version = "not-installed"
    print(
        "[geomerge.viewer] startup "
        f"python={platform.python_version()} "
        f"pygame={pygame_version} "
        f"platform={platform.platform()}"
    )


def _ensure_pygame_imported() -> Any:
    global pygame
    if pygame is None:
        import pygame as pygame_module

        pygame = pygame_module
    return pygame


def run_pygame_viewer(
    *,
    save_path: str = DEFAULT_STORE_PATH,
    namespace: str | None = None,
    headless: bool = False,
) -> int:
    if headless:
        os.environ["SDL_VIDEODRIVER"] = "dummy"
        print("[geomerge.viewer] warning: headless mode active; no window will open.")

    _print_startup_banner()
    pygame_module = _ensure_pygame_imported()

    try:
        pygame_module.init()
    except Exception as exc:
        print(
            "[geomerge.viewer] failed during pygame.init(): "
            f"{exc}. Hint: set SDL_VIDEODRIVER=dummy or pass --headless.",
            file=sys.stderr,
        )
        return 1

    overrides = {"namespace": namespace} if namespace else {}
    config = GameConfig.from_env(**overrides)
    storage = GameStorage(JsonFileKeyValueStore(Path(save_path)))
    renderer = PygameRenderer()
    map_view = PygameMapView(cell_size=config.cell_size_degrees)
    status_message: str | None = None

    def report_outcome(outcome: InteractionOutcome) -> None:
        nonlocal status_message
        status_message = describe_outcome(outcome)

    def report_movement_error(message: str) -> None:
        nonlocal status_message
        status_message = f"sensor: {message}"
        print(f"[geomerge.viewer] position feed error: {message}", file=sys.stderr)

    handles = start_session(
        config,
        storage=storage,
        renderer=renderer,
        map_view=map_view,
        on_outcome=report_outcome,
        on_movement_error=report_movement_error,
    )
    session = handles.session

    try:
        pygame_module.display.set_caption("geomerge")
        screen = pygame_module.display.set_mode(map_view.window_size)
        font = pygame_module.font.Font(None, 22)
    except Exception as exc:
        print(
            "[geomerge.viewer] failed during pygame.display.set_mode(...): "
            f"{exc}. Hint: GUI sessions require a valid display; use --headless otherwise.",
            file=sys.stderr,
        )
        pygame_module.quit()
        return 1

    print(f"[geomerge.viewer] display initialized: {pygame_module.display.get_driver()}, window size={map_view.window_size}")
    key_directions = {getattr(pygame_module, name): direction for name, direction in KEY_DIRECTIONS.items()}
    clock = pygame_module.time.Clock()

    running = True
    while running:
        for event in pygame_module.event.get():
            if event.type == pygame_module.QUIT:
                running = False
            elif event.type == pygame_module.KEYDOWN and event.key == pygame_module.K_ESCAPE:
                running = False
            elif event.type == pygame_module.KEYDOWN and event.key in key_directions:
                handles.movement.use_discrete()
                handles.movement.discrete.move(key_directions[event.key])
            elif event.type == pygame_module.KEYDOWN and event.key == pygame_module.K_g:
                handles.movement.use_position_feed()
            elif event.type == pygame_module.KEYDOWN and event.key == pygame_module.K_n:
                session.new_game()
                status_message = "new game"
            elif event.type == pygame_module.KEYDOWN and event.key == pygame_module.K_F5:
                storage.save(session.state)
                status_message = "saved"
                print(f"[geomerge.viewer] saved path={save_path} state_hash={state_hash(session.state)}")
            elif event.type == pygame_module.MOUSEBUTTONDOWN and event.button == 1 and event.pos[1] > HUD_HEIGHT:
                lat, lng = map_view.pixel_to_world(*event.pos)
                on_click = renderer.click_target(to_cell_index(lat, lng, config.cell_size_degrees))
                if on_click is not None:
                    on_click()

        screen.fill(BACKGROUND_COLOR)
        renderer.draw(screen, font, map_view, session.state)
        _draw_hud(screen, font, session.state, status_message)
        pygame_module.display.flip()
        if headless:
            break
        clock.tick(FRAME_RATE)

    pygame_module.quit()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    return run_pygame_viewer(save_path=args.save_path, namespace=args.namespace, headless=args.headless)


if __name__ == "__main__":
    raise SystemExit(main())
