"""Exceptions raised when a requested mutation of the render state is refused."""

from __future__ import annotations


class FractalEngineError(Exception):
    """Base class for recoverable engine errors."""


class InvalidParams(FractalEngineError, ValueError):
    """Fractal parameters or a color scheme fall outside the accepted domain."""


class DegenerateViewport(FractalEngineError, ValueError):
    """A viewport with a non-positive scale or an empty pixel grid was requested."""


class PrecisionLimit(FractalEngineError):
    """Zooming further in would exceed what float64 coordinates can resolve."""

    def __init__(self, scale: float, floor: float) -> None:
        super().__init__(f"scale {scale:.3e} is below the precision floor {floor:.3e}")
        self.scale = scale
        self.floor = floor
