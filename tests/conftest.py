import pytest

from fractal_explorer import ColorScheme, EngineConfig, FractalParams, RenderEngine, TileScheduler, Viewport


@pytest.fixture
def mandelbrot_params():
    return FractalParams(power=2.0, escape_radius=2.0, max_iterations=100)


@pytest.fixture
def gray_scheme():
    return ColorScheme(stops=((0, 0, 0), (255, 255, 255)))


@pytest.fixture
def small_viewport():
    return Viewport.from_bounds(-2.0, 1.0, -1.5, 1.5, width=24, height=16)


@pytest.fixture
def config():
    return EngineConfig(workers=2, tiles_per_worker=2, dispatch_threads=2, device="/CPU:0", seed=7)


@pytest.fixture
def scheduler():
    with TileScheduler(2, tiles_per_worker=3, device="/CPU:0") as sched:
        yield sched


@pytest.fixture
def engine(small_viewport, mandelbrot_params, gray_scheme, config):
    with RenderEngine(small_viewport, mandelbrot_params, gray_scheme, config=config) as eng:
        yield eng
