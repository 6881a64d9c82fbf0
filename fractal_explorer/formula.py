"""Escape-time iteration for every fractal variant."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np
import tensorflow as tf

from .params import FractalParams, Variant

SMOOTH_EPS = 1e-12

_FLOAT64_MAX = float(np.finfo(np.float64).max)


@dataclass(frozen=True)
class EscapeResult:
    """Outcome of iterating a single point."""

    escaped: bool
    iterations: int
    smoothed_value: float


@dataclass(frozen=True)
class EscapeGrid:
    """Per-pixel escape data for a rectangle of points."""

    escaped: np.ndarray
    iterations: np.ndarray
    smooth: np.ndarray

    @property
    def shape(self) -> tuple[int, ...]:
        return self.iterations.shape

    def result_at(self, row: int, col: int) -> EscapeResult:
        return EscapeResult(
            escaped=bool(self.escaped[row, col]),
            iterations=int(self.iterations[row, col]),
            smoothed_value=float(self.smooth[row, col]),
        )


def _power(z: tf.Tensor, power: tf.Tensor) -> tf.Tensor:
    """Principal-branch ``z ** power`` in polar form; ``0 ** power`` is 0."""

    r = tf.abs(z)
    theta = tf.math.angle(z)
    rp = tf.pow(r, power)
    return tf.complex(rp * tf.cos(theta * power), rp * tf.sin(theta * power))


def _rotation(angle: tf.Tensor) -> tf.Tensor:
    return tf.complex(tf.cos(angle), tf.sin(angle))


def _mandelbrot_step(z, z_prev, c, power, shape):
    return _power(z, power) + c


def _spiral_step(z, z_prev, c, power, shape):
    return _rotation(tf.math.angle(shape)) * _power(z, power) + shape


def _flower_step(z, z_prev, c, power, shape):
    one = tf.constant(1.0, dtype=power.dtype)
    return (_power(z, power - one) * tf.sin(z) + shape) * _rotation(tf.abs(shape))


def _phoenix_step(z, z_prev, c, power, shape):
    return _power(z, power) + c + shape * z_prev


def _butterfly_step(z, z_prev, c, power, shape):
    folded = tf.complex(tf.abs(tf.math.real(z)), tf.math.imag(z))
    return _power(folded, power) + shape


StepFn = Callable[[tf.Tensor, tf.Tensor, tf.Tensor, tf.Tensor, tf.Tensor], tf.Tensor]

_STEPS: dict[Variant, StepFn] = {
    Variant.MANDELBROT: _mandelbrot_step,
    Variant.SPIRAL: _spiral_step,
    Variant.FLOWER: _flower_step,
    Variant.PHOENIX: _phoenix_step,
    Variant.BUTTERFLY: _butterfly_step,
}


def _bounded(z: tf.Tensor, radius_sq: tf.Tensor) -> tf.Tensor:
    mag_sq = tf.square(tf.math.real(z)) + tf.square(tf.math.imag(z))
    return tf.logical_and(tf.math.is_finite(mag_sq), mag_sq <= radius_sq)


@tf.function(reduce_retracing=True)
def _escape_run(
    c: tf.Tensor,
    power: tf.Tensor,
    shape: tf.Tensor,
    radius_sq: tf.Tensor,
    max_iterations: tf.Tensor,
    variant_name: str,
) -> tuple[tf.Tensor, tf.Tensor, tf.Tensor]:
    """Iterate ``variant_name`` over ``c`` until every point escaped or the cap is hit."""

    variant = Variant(variant_name)
    step = _STEPS[variant]

    z = tf.identity(c) if variant.seeds_with_point else tf.zeros_like(c)
    z_prev = tf.zeros_like(c)
    ns = tf.zeros(tf.shape(c), tf.int32)
    active = _bounded(z, radius_sq)
    i = tf.constant(0, dtype=tf.int32)

    def cond(i, z, z_prev, ns, active):
        return tf.logical_and(tf.less(i, max_iterations), tf.reduce_any(active))

    def body(i, z, z_prev, ns, active):
        z_next = step(z, z_prev, c, power, shape)
        z_prev = tf.where(active, z, z_prev)
        z = tf.where(active, z_next, z)
        ns = ns + tf.cast(active, tf.int32)
        active = tf.logical_and(active, _bounded(z, radius_sq))
        return i + 1, z, z_prev, ns, active

    _, z, _, ns, active = tf.while_loop(cond, body, (i, z, z_prev, ns, active))
    return z, ns, active


def evaluate_grid(points: np.ndarray, params: FractalParams, *, device: Optional[str] = None) -> EscapeGrid:
    """Run the escape-time kernel of ``params.variant`` over a 2-D array of points."""

    points = np.asarray(points, dtype=np.complex128)
    if points.ndim != 2:
        raise ValueError(f"points must be a 2-D array, got shape {points.shape}")

    max_iterations = tf.constant(params.max_iterations, dtype=tf.int32)

    with tf.device(device if device is not None else "/CPU:0"):
        c = tf.convert_to_tensor(points, dtype=tf.complex128)
        power = tf.constant(params.power, dtype=tf.float64)
        shape = tf.constant(params.shape_constant, dtype=tf.complex128)
        radius_sq = tf.constant(params.escape_radius ** 2, dtype=tf.float64)

        zs, ns, active = _escape_run(c, power, shape, radius_sq, max_iterations, params.variant.value)

        # Escaping exactly on the last allowed step still counts as bounded.
        escaped = tf.logical_and(tf.logical_not(active), tf.less(ns, max_iterations))

        az = tf.abs(zs)
        az = tf.where(tf.math.is_finite(az), az, tf.constant(_FLOAT64_MAX, dtype=az.dtype))
        eps = tf.constant(SMOOTH_EPS, dtype=az.dtype)
        az_safe = tf.maximum(az, tf.constant(1.0, dtype=az.dtype) + eps)
        log_az = tf.math.log(az_safe)
        log_log_az = tf.math.log(tf.maximum(log_az, eps))
        ns_float = tf.cast(ns, tf.float64)
        smooth_escape = ns_float + tf.constant(1.0, dtype=tf.float64) - log_log_az / tf.math.log(power)
        smooth = tf.where(escaped, smooth_escape, tf.cast(max_iterations, tf.float64))

    return EscapeGrid(
        escaped=escaped.numpy(),
        iterations=ns.numpy(),
        smooth=smooth.numpy(),
    )


def evaluate(point: complex, params: FractalParams, *, device: Optional[str] = None) -> EscapeResult:
    """Iterate a single point with the same kernel as :func:`evaluate_grid`."""

    grid = evaluate_grid(np.array([[complex(point)]], dtype=np.complex128), params, device=device)
    return grid.result_at(0, 0)
