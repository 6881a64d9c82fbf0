import threading

import numpy as np
import pytest

import fractal_explorer.scheduler as scheduler_module
from fractal_explorer import (
    ColorScheme,
    FractalParams,
    GenerationCounter,
    TileScheduler,
    Viewport,
    evaluate,
    plan_tiles,
)

BLUE_OUTSIDE = ColorScheme(stops=((0, 0, 255),), interior=(0, 0, 0))


@pytest.mark.parametrize(
    "width,height,target",
    [(24, 16, 6), (800, 600, 32), (7, 3, 100), (1, 1, 8), (640, 10, 4), (5, 900, 12)],
)
def test_plan_tiles_partitions_the_image(width, height, target):
    tiles = plan_tiles(width, height, target)
    coverage = np.zeros((height, width), dtype=np.int32)
    for tile in tiles:
        assert tile.width > 0 and tile.height > 0
        coverage[tile.y0:tile.y1, tile.x0:tile.x1] += 1
    assert np.all(coverage == 1)


def test_plan_tiles_scales_with_target():
    assert len(plan_tiles(800, 600, 1)) == 1
    assert len(plan_tiles(800, 600, 32)) >= 32
    assert len(plan_tiles(800, 600, 32)) <= 40


def test_plan_tiles_rejects_empty_image():
    with pytest.raises(ValueError):
        plan_tiles(0, 10, 4)


def test_generation_counter():
    counter = GenerationCounter()
    assert counter.current == 0
    assert counter.advance() == 1
    assert counter.observe(5) == 5
    assert counter.observe(3) == 5
    assert counter.is_current(5)
    assert not counter.is_current(1)


def test_four_by_four_scenario(scheduler):
    viewport = Viewport.from_bounds(-2.0, 1.0, -1.5, 1.5, width=4, height=4)
    assert viewport.center == complex(-0.5, 0.0)
    params = FractalParams(power=2.0, escape_radius=2.0, max_iterations=100)

    frame = scheduler.render(1, viewport, params, BLUE_OUTSIDE)

    assert frame is not None
    assert frame.pixels.shape == (4, 4, 3)
    for px, py in [(0, 0), (3, 0), (0, 3), (3, 3)]:
        assert frame.pixel(px, py) == (0, 0, 255)
        assert evaluate(viewport.pixel_to_plane(px, py), params).escaped
    assert frame.pixel(2, 2) == (0, 0, 0)
    assert not evaluate(viewport.pixel_to_plane(2, 2), params).escaped


def test_tiled_render_matches_single_tile(small_viewport, gray_scheme):
    params = FractalParams(power=2.0, escape_radius=2.0, max_iterations=30)
    with TileScheduler(1, tiles_per_worker=1) as single:
        whole = single.render(1, small_viewport, params, gray_scheme)
    with TileScheduler(3, tiles_per_worker=4) as tiled:
        pieces = tiled.render(1, small_viewport, params, gray_scheme)
    # Tiles are evaluated independently; only last-bit rounding may differ.
    same = np.all(whole.pixels == pieces.pixels, axis=-1)
    assert same.mean() >= 0.98


def test_framebuffer_is_tagged_and_read_only(scheduler, small_viewport, mandelbrot_params, gray_scheme):
    frame = scheduler.render(4, small_viewport, mandelbrot_params, gray_scheme)
    assert frame.generation == 4
    assert (frame.width, frame.height) == (24, 16)
    assert frame.snapshot.params == mandelbrot_params
    with pytest.raises(ValueError):
        frame.pixels[0, 0, 0] = 1


def test_older_generation_is_not_rendered(scheduler, small_viewport, mandelbrot_params, gray_scheme):
    assert scheduler.render(2, small_viewport, mandelbrot_params, gray_scheme) is not None
    assert scheduler.render(1, small_viewport, mandelbrot_params, gray_scheme) is None
    assert scheduler.counter.current == 2


def test_superseded_generation_is_discarded(monkeypatch, scheduler, small_viewport, gray_scheme):
    release = threading.Event()
    original = scheduler_module.render_tile

    def slow_tile(snapshot, tile, **kwargs):
        if snapshot.generation == 1:
            release.wait(timeout=30)
        return original(snapshot, tile, **kwargs)

    monkeypatch.setattr(scheduler_module, "render_tile", slow_tile)

    old = FractalParams(power=2.0, max_iterations=50)
    new = FractalParams(power=3.0, max_iterations=50)
    results = {}

    worker = threading.Thread(
        target=lambda: results.update(old=scheduler.render(1, small_viewport, old, gray_scheme))
    )
    worker.start()
    scheduler.counter.observe(2)
    release.set()
    worker.join(timeout=30)

    assert not worker.is_alive()
    assert results["old"] is None

    frame = scheduler.render(2, small_viewport, new, gray_scheme)
    assert frame is not None
    assert frame.generation == 2
    assert frame.snapshot.params == new


def test_tile_failure_propagates(monkeypatch, scheduler, small_viewport, mandelbrot_params, gray_scheme):
    def broken_tile(snapshot, tile, **kwargs):
        raise RuntimeError("kernel failed")

    monkeypatch.setattr(scheduler_module, "render_tile", broken_tile)
    with pytest.raises(RuntimeError, match="kernel failed"):
        scheduler.render(1, small_viewport, mandelbrot_params, gray_scheme)
