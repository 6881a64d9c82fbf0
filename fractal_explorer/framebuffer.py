"""Completed images handed from the scheduler to the display side."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .coloring import ColorScheme
from .params import FractalParams
from .viewport import Viewport


@dataclass(frozen=True)
class RenderSnapshot:
    """Immutable copy of the render inputs for one generation."""

    generation: int
    viewport: Viewport
    params: FractalParams
    scheme: ColorScheme


@dataclass(frozen=True)
class Framebuffer:
    """A fully merged ``height x width`` RGB image for one generation."""

    pixels: np.ndarray
    snapshot: RenderSnapshot

    def __post_init__(self) -> None:
        expected = (self.snapshot.viewport.height, self.snapshot.viewport.width, 3)
        if self.pixels.shape != expected or self.pixels.dtype != np.uint8:
            raise ValueError(
                f"framebuffer must be uint8 with shape {expected}, got {self.pixels.dtype} {self.pixels.shape}"
            )
        self.pixels.setflags(write=False)

    @property
    def generation(self) -> int:
        return self.snapshot.generation

    @property
    def width(self) -> int:
        return self.snapshot.viewport.width

    @property
    def height(self) -> int:
        return self.snapshot.viewport.height

    def pixel(self, px: int, py: int) -> tuple[int, int, int]:
        r, g, b = self.pixels[py, px]
        return int(r), int(g), int(b)
