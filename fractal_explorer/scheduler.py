"""Parallel tiled rendering with generation-based discarding of stale work."""

from __future__ import annotations

import logging
import math
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .coloring import ColorScheme, colorize
from .formula import evaluate_grid
from .framebuffer import Framebuffer, RenderSnapshot
from .params import FractalParams
from .viewport import Viewport

logger = logging.getLogger(__name__)


class GenerationCounter:
    """Monotonic render generation shared between the engine and the workers."""

    def __init__(self, start: int = 0) -> None:
        self._value = int(start)
        self._lock = threading.Lock()

    @property
    def current(self) -> int:
        with self._lock:
            return self._value

    def advance(self) -> int:
        with self._lock:
            self._value += 1
            return self._value

    def observe(self, generation: int) -> int:
        """Raise the counter to ``generation`` if it is newer; return the current value."""

        with self._lock:
            if generation > self._value:
                self._value = generation
            return self._value

    def is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._value


@dataclass(frozen=True)
class Tile:
    """Pixel rectangle ``[x0, x1) x [y0, y1)`` of the output image."""

    x0: int
    x1: int
    y0: int
    y1: int

    @property
    def width(self) -> int:
        return self.x1 - self.x0

    @property
    def height(self) -> int:
        return self.y1 - self.y0


def _edges(length: int, parts: int) -> list[int]:
    return [length * i // parts for i in range(parts + 1)]


def plan_tiles(width: int, height: int, target_tiles: int) -> list[Tile]:
    """Split the image into a grid of about ``target_tiles`` non-empty tiles.

    The grid keeps tiles roughly square; tiles cover every pixel exactly once.
    """

    if width <= 0 or height <= 0:
        raise ValueError(f"cannot tile an empty image {width}x{height}")
    target = max(int(target_tiles), 1)
    cols = max(1, min(width, int(round(math.sqrt(target * width / height)))))
    rows = max(1, min(height, math.ceil(target / cols)))

    xs = _edges(width, cols)
    ys = _edges(height, rows)
    return [
        Tile(x0=xs[i], x1=xs[i + 1], y0=ys[j], y1=ys[j + 1])
        for j in range(rows)
        for i in range(cols)
    ]


def render_tile(snapshot: RenderSnapshot, tile: Tile, *, device: Optional[str] = None) -> np.ndarray:
    """Compute the RGB pixels of one tile into a tile-local buffer."""

    points = snapshot.viewport.plane_grid(tile.x0, tile.x1, tile.y0, tile.y1)
    grid = evaluate_grid(points, snapshot.params, device=device)
    return colorize(grid, snapshot.scheme, snapshot.params.max_iterations)


class TileScheduler:
    """Fan tiles of one generation out to a thread pool and merge the results.

    Merging stops as soon as a newer generation has been requested: queued
    tiles are cancelled, running ones finish and their pixels are dropped.
    """

    def __init__(
        self,
        workers: int = 1,
        *,
        tiles_per_worker: int = 4,
        counter: Optional[GenerationCounter] = None,
        device: Optional[str] = None,
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self.workers = int(workers)
        self.tiles_per_worker = int(tiles_per_worker)
        self.counter = counter if counter is not None else GenerationCounter()
        self.device = device
        self._executor = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="fractal-tile")

    def __enter__(self) -> "TileScheduler":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=True)

    def render(
        self,
        generation: int,
        viewport: Viewport,
        params: FractalParams,
        scheme: ColorScheme,
    ) -> Optional[Framebuffer]:
        """Render ``generation``; ``None`` if a newer generation superseded it."""

        self.counter.observe(generation)
        snapshot = RenderSnapshot(generation=generation, viewport=viewport, params=params, scheme=scheme)
        return self.render_snapshot(snapshot)

    def render_snapshot(self, snapshot: RenderSnapshot) -> Optional[Framebuffer]:
        generation = snapshot.generation
        if not self.counter.is_current(generation):
            logger.debug("generation %d superseded before dispatch", generation)
            return None

        viewport = snapshot.viewport
        tiles = plan_tiles(viewport.width, viewport.height, self.workers * self.tiles_per_worker)
        futures: dict[Future, Tile] = {
            self._executor.submit(render_tile, snapshot, tile, device=self.device): tile
            for tile in tiles
        }
        logger.debug("generation %d: %d tiles dispatched", generation, len(tiles))

        canvas = np.empty((viewport.height, viewport.width, 3), dtype=np.uint8)
        pending = set(futures)
        try:
            while pending:
                done, pending = wait(pending, return_when=FIRST_COMPLETED)
                if not self.counter.is_current(generation):
                    logger.debug("generation %d superseded, discarding %d tiles", generation, len(futures))
                    return None
                for future in done:
                    tile = futures[future]
                    canvas[tile.y0:tile.y1, tile.x0:tile.x1] = future.result()
        finally:
            for future in pending:
                future.cancel()

        if not self.counter.is_current(generation):
            logger.debug("generation %d superseded after merge", generation)
            return None
        return Framebuffer(pixels=canvas, snapshot=snapshot)
