import math

import numpy as np
import pytest

from fractal_explorer import EscapeResult, FractalParams, Variant, evaluate, evaluate_grid


def plane_points(low, high, n):
    axis = np.linspace(low, high, n)
    X, Y = np.meshgrid(axis, axis[::-1])
    return X + 1j * Y


def test_origin_is_interior_for_quadratic_mandelbrot():
    params = FractalParams(power=2.0, max_iterations=1000, escape_radius=2.0)
    result = evaluate(0j, params)
    assert result.escaped is False
    assert result.iterations == 1000
    assert result.smoothed_value == 1000.0


def test_far_point_escapes_quickly():
    params = FractalParams(power=2.0, max_iterations=1000, escape_radius=2.0)
    result = evaluate(2 + 2j, params)
    assert result.escaped is True
    assert result.iterations < 5
    assert math.isfinite(result.smoothed_value)


def test_known_escape_count():
    # z1 = 1, z2 = 2, z3 = 5 -> exceeds radius 2 on the third step.
    params = FractalParams(power=2.0, max_iterations=50, escape_radius=2.0)
    assert evaluate(1 + 0j, params).iterations == 3


@pytest.mark.parametrize("variant", list(Variant))
def test_evaluate_is_deterministic(variant):
    params = FractalParams(variant=variant, power=2.7, shape_constant=0.3 - 0.4j, max_iterations=200)
    point = -0.41 + 0.57j
    first = evaluate(point, params)
    assert isinstance(first, EscapeResult)
    for _ in range(3):
        assert evaluate(point, params) == first


@pytest.mark.parametrize("variant", list(Variant))
def test_iterations_bounded_by_cap(variant):
    params = FractalParams(variant=variant, power=3.0, shape_constant=0.5j, max_iterations=40)
    points = plane_points(-1.5, 1.5, 9)
    grid = evaluate_grid(points, params)
    assert grid.shape == (9, 9)
    assert grid.iterations.min() >= 0
    assert grid.iterations.max() <= 40
    assert np.all(grid.iterations[~grid.escaped] == 40)
    assert np.all(np.isfinite(grid.smooth))


@pytest.mark.parametrize("variant", [Variant.SPIRAL, Variant.FLOWER, Variant.BUTTERFLY])
def test_point_seeded_variants_escape_immediately_outside_radius(variant):
    params = FractalParams(variant=variant, shape_constant=0.2 + 0.1j, max_iterations=30, escape_radius=2.0)
    result = evaluate(10 + 10j, params)
    assert result.escaped is True
    assert result.iterations == 0


@pytest.mark.parametrize("variant", [Variant.MANDELBROT, Variant.PHOENIX])
def test_origin_seeded_variants_take_one_step(variant):
    params = FractalParams(variant=variant, shape_constant=0.2 + 0.1j, max_iterations=30, escape_radius=2.0)
    result = evaluate(10 + 10j, params)
    assert result.escaped is True
    assert result.iterations == 1


def test_phoenix_without_memory_term_matches_mandelbrot():
    points = plane_points(-2.0, 1.0, 7)
    mandel = evaluate_grid(points, FractalParams(Variant.MANDELBROT, 2.0, 0j, 60))
    phoenix = evaluate_grid(points, FractalParams(Variant.PHOENIX, 2.0, 0j, 60))
    np.testing.assert_array_equal(mandel.iterations, phoenix.iterations)
    np.testing.assert_array_equal(mandel.escaped, phoenix.escaped)


def test_butterfly_is_mirror_symmetric():
    params = FractalParams(Variant.BUTTERFLY, 2.0, -0.4 + 0.3j, 80)
    for point in (0.3 + 0.2j, 0.7 - 0.1j, 1.1 + 0.5j):
        left = evaluate(complex(-point.real, point.imag), params)
        right = evaluate(point, params)
        # The fold makes the first iterate identical for mirrored seeds.
        assert left.iterations == right.iterations
        assert left.escaped == right.escaped


def test_variants_produce_distinct_images():
    points = plane_points(-1.5, 1.5, 15)
    images = {
        variant: evaluate_grid(
            points, FractalParams(variant, 2.5, 0.45 + 0.35j, 50, escape_radius=2.0)
        ).iterations.tobytes()
        for variant in Variant
    }
    assert len(set(images.values())) == len(Variant)


def test_smoothed_value_is_continuous_extension():
    params = FractalParams(power=2.0, max_iterations=200, escape_radius=2.0)
    result = evaluate(0.5 + 0.5j, params)
    assert result.escaped
    assert result.iterations - 1 <= result.smoothed_value <= result.iterations + 2


def test_grid_and_scalar_agree():
    params = FractalParams(Variant.MANDELBROT, 2.0, 0j, 20)
    points = plane_points(-1.7, 0.9, 5)
    grid = evaluate_grid(points, params)
    for row in range(5):
        for col in range(5):
            single = evaluate(points[row, col], params)
            expected = grid.result_at(row, col)
            assert single.escaped == expected.escaped
            assert single.iterations == expected.iterations
            assert single.smoothed_value == pytest.approx(expected.smoothed_value)


def test_grid_must_be_two_dimensional():
    with pytest.raises(ValueError):
        evaluate_grid(np.zeros(4, dtype=np.complex128), FractalParams())
