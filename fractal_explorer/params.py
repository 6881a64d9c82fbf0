"""Fractal definitions: the variant family and its numeric parameters."""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .errors import InvalidParams

POWER_RANGE = (2.0, 4.0)
SHAPE_CONSTANT_LIMIT = 2.0
RANDOM_SHAPE_MAGNITUDE = (0.1, 0.9)
RANDOM_ITERATIONS = 500


class Variant(str, enum.Enum):
    """Closed set of iteration formulas understood by the kernel."""

    MANDELBROT = "mandelbrot"
    SPIRAL = "spiral"
    FLOWER = "flower"
    PHOENIX = "phoenix"
    BUTTERFLY = "butterfly"

    @property
    def seeds_with_point(self) -> bool:
        """Whether iteration starts at the sampled point instead of the origin."""

        return self in (Variant.SPIRAL, Variant.FLOWER, Variant.BUTTERFLY)


@dataclass(frozen=True)
class FractalParams:
    """Everything that defines one fractal image, apart from view and colors."""

    variant: Variant = Variant.MANDELBROT
    power: float = 2.0
    shape_constant: complex = 0.5 + 0j
    max_iterations: int = 1000
    escape_radius: float = 2.0

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "variant", Variant(self.variant))
        except ValueError as exc:
            raise InvalidParams(f"unknown fractal variant {self.variant!r}") from exc
        object.__setattr__(self, "power", float(self.power))
        object.__setattr__(self, "shape_constant", complex(self.shape_constant))
        object.__setattr__(self, "escape_radius", float(self.escape_radius))
        if isinstance(self.max_iterations, float) and not self.max_iterations.is_integer():
            raise InvalidParams(f"max_iterations must be a whole number, got {self.max_iterations!r}")
        object.__setattr__(self, "max_iterations", int(self.max_iterations))
        self.validate()

    def validate(self) -> None:
        low, high = POWER_RANGE
        if not (low <= self.power <= high):
            raise InvalidParams(f"power must lie in [{low}, {high}], got {self.power!r}")
        k = self.shape_constant
        if not (math.isfinite(k.real) and math.isfinite(k.imag)) or abs(k) > SHAPE_CONSTANT_LIMIT:
            raise InvalidParams(
                f"shape_constant must be finite with magnitude <= {SHAPE_CONSTANT_LIMIT}, got {k!r}"
            )
        if self.max_iterations < 1:
            raise InvalidParams(f"max_iterations must be at least 1, got {self.max_iterations}")
        if not math.isfinite(self.escape_radius) or self.escape_radius <= 1.0:
            raise InvalidParams(f"escape_radius must be finite and greater than 1, got {self.escape_radius!r}")


def random_params(
    rng: Optional[np.random.Generator] = None,
    *,
    max_iterations: int = RANDOM_ITERATIONS,
    escape_radius: float = 2.0,
) -> FractalParams:
    """Draw a valid :class:`FractalParams` from ``rng``.

    Power is uniform over the accepted range; the shape constant has a
    magnitude in ``RANDOM_SHAPE_MAGNITUDE`` and a uniform angle.
    """

    if rng is None:
        rng = np.random.default_rng()
    variants = list(Variant)
    variant = variants[int(rng.integers(len(variants)))]
    power = float(rng.uniform(*POWER_RANGE))
    magnitude = float(rng.uniform(*RANDOM_SHAPE_MAGNITUDE))
    angle = float(rng.uniform(0.0, 2.0 * math.pi))
    return FractalParams(
        variant=variant,
        power=power,
        shape_constant=complex(magnitude * math.cos(angle), magnitude * math.sin(angle)),
        max_iterations=max_iterations,
        escape_radius=escape_radius,
    )
