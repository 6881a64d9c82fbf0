"""Mapping between output pixels and the complex plane, with pan and zoom."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Optional

import numpy as np

from .errors import DegenerateViewport, PrecisionLimit

# Minimum pixel spacing, in units of float64 spacing at the view's magnitude.
PRECISION_HEADROOM = 64.0

DEFAULT_REGION = (-2.0, 1.0, -1.5, 1.5)


@dataclass(frozen=True)
class Viewport:
    """A rectangular window on the complex plane sampled on a pixel grid.

    ``scale`` is the width of one (square) pixel in plane units. Pixel
    ``(px, py)`` refers to the centre of that pixel, rows grow downwards and
    the imaginary axis points up.
    """

    center: complex
    scale: float
    width: int
    height: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "center", complex(self.center))
        object.__setattr__(self, "scale", float(self.scale))
        if not (math.isfinite(self.center.real) and math.isfinite(self.center.imag)):
            raise DegenerateViewport(f"viewport center must be finite, got {self.center!r}")
        if not math.isfinite(self.scale) or self.scale <= 0.0:
            raise DegenerateViewport(f"viewport scale must be positive and finite, got {self.scale!r}")
        if int(self.width) != self.width or int(self.height) != self.height:
            raise DegenerateViewport("viewport dimensions must be whole pixels")
        object.__setattr__(self, "width", int(self.width))
        object.__setattr__(self, "height", int(self.height))
        if self.width <= 0 or self.height <= 0:
            raise DegenerateViewport(
                f"viewport dimensions must be positive, got {self.width}x{self.height}"
            )

    @classmethod
    def from_bounds(
        cls,
        x_min: float,
        x_max: float,
        y_min: float,
        y_max: float,
        width: int,
        height: int,
    ) -> "Viewport":
        """Fit the plane rectangle into ``width`` x ``height`` pixels, keeping pixels square."""

        if width <= 0 or height <= 0:
            raise DegenerateViewport(f"viewport dimensions must be positive, got {width}x{height}")
        x_width = np.float64(x_max) - np.float64(x_min)
        y_width = np.float64(y_max) - np.float64(y_min)
        if x_width <= 0 or y_width <= 0:
            raise DegenerateViewport("plane bounds must have positive extent")
        scale = max(x_width / width, y_width / height)
        center = complex((x_min + x_max) / 2.0, (y_min + y_max) / 2.0)
        return cls(center=center, scale=float(scale), width=width, height=height)

    @classmethod
    def default(cls, width: int, height: int) -> "Viewport":
        return cls.from_bounds(*DEFAULT_REGION, width=width, height=height)

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        """Plane extent ``(x_min, x_max, y_min, y_max)`` covered by the pixel grid."""

        half_w = self.width / 2.0 * self.scale
        half_h = self.height / 2.0 * self.scale
        return (
            self.center.real - half_w,
            self.center.real + half_w,
            self.center.imag - half_h,
            self.center.imag + half_h,
        )

    def _offsets(self, px: float, py: float) -> tuple[float, float]:
        return px + 0.5 - self.width / 2.0, py + 0.5 - self.height / 2.0

    def pixel_to_plane(self, px: float, py: float) -> complex:
        dx, dy = self._offsets(px, py)
        return complex(dx * self.scale + self.center.real, self.center.imag - dy * self.scale)

    def plane_to_pixel(self, point: complex) -> tuple[float, float]:
        point = complex(point)
        px = (point.real - self.center.real) / self.scale + self.width / 2.0 - 0.5
        py = (self.center.imag - point.imag) / self.scale + self.height / 2.0 - 0.5
        return px, py

    def plane_grid(self, x0: int, x1: int, y0: int, y1: int) -> np.ndarray:
        """Plane coordinates of the pixel rectangle ``[x0, x1) x [y0, y1)``.

        Uses the same arithmetic as :meth:`pixel_to_plane`, element for element.
        """

        cols = np.arange(x0, x1, dtype=np.float64) + 0.5 - self.width / 2.0
        rows = np.arange(y0, y1, dtype=np.float64) + 0.5 - self.height / 2.0
        xs = cols * self.scale + self.center.real
        ys = self.center.imag - rows * self.scale
        X, Y = np.meshgrid(xs, ys)
        grid = np.empty(X.shape, dtype=np.complex128)
        grid.real = X
        grid.imag = Y
        return grid

    def precision_floor(self, anchor: Optional[complex] = None) -> float:
        magnitude = max(abs(self.center.real), abs(self.center.imag), 1.0)
        if anchor is not None:
            magnitude = max(magnitude, abs(anchor.real), abs(anchor.imag))
        return PRECISION_HEADROOM * float(np.finfo(np.float64).eps) * magnitude

    def pan(self, dx: float, dy: float) -> "Viewport":
        """Move the view so the point now at ``centre pixel + (dx, dy)`` becomes the centre."""

        if not (math.isfinite(dx) and math.isfinite(dy)):
            raise DegenerateViewport("pan offsets must be finite")
        center = complex(self.center.real + dx * self.scale, self.center.imag - dy * self.scale)
        return replace(self, center=center)

    def zoom(self, factor: float, anchor: Optional[tuple[float, float]] = None) -> "Viewport":
        """Scale the view by ``factor`` keeping the plane point under ``anchor`` fixed.

        ``factor < 1`` zooms in. ``anchor`` is a pixel position and defaults to
        the middle of the view.
        """

        if not math.isfinite(factor) or factor <= 0.0:
            raise DegenerateViewport(f"zoom factor must be positive and finite, got {factor!r}")
        if anchor is None:
            anchor = (self.width / 2.0 - 0.5, self.height / 2.0 - 0.5)
        ax, ay = anchor
        fixed = self.pixel_to_plane(ax, ay)
        new_scale = self.scale * factor
        if not math.isfinite(new_scale) or new_scale <= 0.0:
            raise DegenerateViewport(f"zoom would produce an invalid scale {new_scale!r}")
        if factor < 1.0:
            floor = self.precision_floor(fixed)
            if new_scale < floor:
                raise PrecisionLimit(new_scale, floor)

        dx, dy = self._offsets(ax, ay)
        center = complex(fixed.real - dx * new_scale, fixed.imag + dy * new_scale)
        return replace(self, center=center, scale=new_scale)

    def resize(self, width: int, height: int) -> "Viewport":
        """Change the pixel grid, keeping centre and scale."""

        return replace(self, width=width, height=height)
