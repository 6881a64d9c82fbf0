"""Interactive render orchestration: state ownership, generations and publishing."""

from __future__ import annotations

import enum
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

import numpy as np

from .coloring import ColorScheme, default_scheme, random_color_scheme
from .config import EngineConfig, configure_logging, select_device
from .framebuffer import Framebuffer, RenderSnapshot
from .params import FractalParams, random_params
from .scheduler import GenerationCounter, TileScheduler
from .viewport import Viewport

logger = logging.getLogger(__name__)

DEFAULT_SIZE = (800, 600)


class EngineState(str, enum.Enum):
    IDLE = "idle"
    RENDERING = "rendering"


class RenderEngine:
    """Owns the view, fractal and colors and keeps the latest finished image.

    Every mutation starts a new render generation. Generations run in the
    background and only the newest one is ever published, so a burst of
    mutations (a drag, say) shows the final state once it is computed.
    """

    def __init__(
        self,
        viewport: Optional[Viewport] = None,
        params: Optional[FractalParams] = None,
        scheme: Optional[ColorScheme] = None,
        *,
        config: Optional[EngineConfig] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.config = config if config is not None else EngineConfig()
        configure_logging(verbose=self.config.verbose)

        self._viewport = viewport if viewport is not None else Viewport.default(*DEFAULT_SIZE)
        self._params = params if params is not None else FractalParams()
        self._scheme = scheme if scheme is not None else default_scheme()
        self._rng = rng if rng is not None else np.random.default_rng(self.config.seed)

        self._lock = threading.Lock()
        self._settled = threading.Condition(self._lock)
        self._counter = GenerationCounter()
        self._framebuffer: Optional[Framebuffer] = None
        self._in_flight: dict[int, Future] = {}
        self._failure: Optional[BaseException] = None

        device = select_device(self.config.device)
        self._scheduler = TileScheduler(
            self.config.workers,
            tiles_per_worker=self.config.tiles_per_worker,
            counter=self._counter,
            device=device,
        )
        self._dispatcher = ThreadPoolExecutor(
            max_workers=self.config.dispatch_threads,
            thread_name_prefix="fractal-dispatch",
        )
        logger.debug(
            "engine started: %d workers, %d tiles per worker, device %s",
            self.config.workers,
            self.config.tiles_per_worker,
            device,
        )

    def __enter__(self) -> "RenderEngine":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._dispatcher.shutdown(wait=True, cancel_futures=True)
        self._scheduler.shutdown(wait=True)

    @property
    def viewport(self) -> Viewport:
        with self._lock:
            return self._viewport

    @property
    def params(self) -> FractalParams:
        with self._lock:
            return self._params

    @property
    def scheme(self) -> ColorScheme:
        with self._lock:
            return self._scheme

    @property
    def generation(self) -> int:
        """Most recently requested generation."""

        return self._counter.current

    @property
    def state(self) -> EngineState:
        with self._lock:
            busy = any(not future.done() for future in self._in_flight.values())
        return EngineState.RENDERING if busy else EngineState.IDLE

    def request_render(self) -> int:
        """Snapshot the current inputs under a new generation and render it in the background."""

        with self._lock:
            generation = self._counter.advance()
            snapshot = RenderSnapshot(
                generation=generation,
                viewport=self._viewport,
                params=self._params,
                scheme=self._scheme,
            )
            future = self._dispatcher.submit(self._run, snapshot)
            self._in_flight[generation] = future
        future.add_done_callback(lambda f, g=generation: self._settle(g, f))
        logger.debug("generation %d requested", generation)
        return generation

    def _run(self, snapshot: RenderSnapshot) -> Optional[Framebuffer]:
        framebuffer = self._scheduler.render_snapshot(snapshot)
        if framebuffer is not None:
            self._publish(framebuffer)
        return framebuffer

    def _publish(self, framebuffer: Framebuffer) -> None:
        with self._lock:
            if not self._counter.is_current(framebuffer.generation):
                logger.debug("generation %d finished after being superseded", framebuffer.generation)
                return
            if self._framebuffer is not None and self._framebuffer.generation >= framebuffer.generation:
                return
            self._framebuffer = framebuffer
        logger.debug("generation %d published", framebuffer.generation)

    def _settle(self, generation: int, future: Future) -> None:
        error = None if future.cancelled() else future.exception()
        with self._settled:
            self._in_flight.pop(generation, None)
            # Held until a wait() reports it.
            if error is not None and self._failure is None:
                self._failure = error
            self._settled.notify_all()
        if error is not None:
            logger.error("generation %d failed", generation, exc_info=error)

    def wait(self, timeout: Optional[float] = None) -> Optional[Framebuffer]:
        """Block until every dispatched generation has settled.

        Re-raises the first failure since the previous ``wait`` (even one that
        finished before this call) and returns the current framebuffer.
        """

        with self._settled:
            if not self._settled.wait_for(lambda: not self._in_flight, timeout=timeout):
                raise TimeoutError(f"{len(self._in_flight)} render generations still running")
            failure, self._failure = self._failure, None
        if failure is not None:
            raise failure
        return self.current_framebuffer()

    def current_framebuffer(self) -> Optional[Framebuffer]:
        with self._lock:
            return self._framebuffer

    poll_framebuffer = current_framebuffer

    def set_viewport(self, viewport: Viewport) -> int:
        if not isinstance(viewport, Viewport):
            raise TypeError(f"expected a Viewport, got {type(viewport).__name__}")
        with self._lock:
            self._viewport = viewport
        return self.request_render()

    def pan(self, dx: float, dy: float) -> int:
        with self._lock:
            self._viewport = self._viewport.pan(dx, dy)
        return self.request_render()

    def zoom(self, factor: float, anchor: Optional[tuple[float, float]] = None) -> int:
        """Zoom about ``anchor``; raises ``PrecisionLimit`` or ``DegenerateViewport`` and keeps the view."""

        with self._lock:
            self._viewport = self._viewport.zoom(factor, anchor)
        return self.request_render()

    def resize(self, width: int, height: int) -> int:
        with self._lock:
            self._viewport = self._viewport.resize(width, height)
        return self.request_render()

    def set_params(self, params: FractalParams) -> int:
        if not isinstance(params, FractalParams):
            raise TypeError(f"expected FractalParams, got {type(params).__name__}")
        params.validate()
        with self._lock:
            self._params = params
        return self.request_render()

    def set_color_scheme(self, scheme: ColorScheme) -> int:
        if not isinstance(scheme, ColorScheme):
            raise TypeError(f"expected a ColorScheme, got {type(scheme).__name__}")
        with self._lock:
            self._scheme = scheme
        return self.request_render()

    def randomize_params(self, rng: Optional[np.random.Generator] = None, *, colors: bool = False) -> int:
        """Replace the fractal with a random valid one, keeping iteration cap and escape radius."""

        rng = rng if rng is not None else self._rng
        with self._lock:
            current = self._params
        params = random_params(
            rng,
            max_iterations=current.max_iterations,
            escape_radius=current.escape_radius,
        )
        scheme = random_color_scheme(rng) if colors else None
        with self._lock:
            self._params = params
            if scheme is not None:
                self._scheme = scheme
        return self.request_render()
