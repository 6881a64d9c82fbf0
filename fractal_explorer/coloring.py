"""Turning escape data into RGB pixels."""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from typing import Optional, Sequence, Union

import numpy as np
from matplotlib import colormaps as _mpl_colormaps
from matplotlib import colors as _mpl_colors

from .errors import InvalidParams
from .formula import EscapeGrid, EscapeResult

RGB = tuple[int, int, int]
ColorLike = Union[str, Sequence[int]]


class MappingMode(str, enum.Enum):
    DISCRETE = "discrete"
    CONTINUOUS = "continuous"


def _to_rgb(color: ColorLike) -> RGB:
    """Accept ``(r, g, b)`` bytes or any matplotlib color string such as ``"#1a2b3c"``."""

    if isinstance(color, str):
        try:
            rgb01 = _mpl_colors.to_rgb(color)
        except ValueError as exc:
            raise InvalidParams(f"unrecognised color {color!r}") from exc
        return tuple(int(round(channel * 255)) for channel in rgb01)  # type: ignore[return-value]
    channels = tuple(color)
    if len(channels) != 3:
        raise InvalidParams(f"colors need exactly three channels, got {color!r}")
    for channel in channels:
        if int(channel) != channel or not 0 <= channel <= 255:
            raise InvalidParams(f"color channels must be integers in 0..255, got {color!r}")
    return tuple(int(channel) for channel in channels)  # type: ignore[return-value]


@dataclass(frozen=True)
class ColorScheme:
    """Evenly spaced color stops plus the rules for mapping escape data onto them."""

    stops: tuple[RGB, ...]
    mode: MappingMode = MappingMode.CONTINUOUS
    interior: RGB = (0, 0, 0)
    gamma: float = 1.0
    invert: bool = False

    def __post_init__(self) -> None:
        stops = tuple(_to_rgb(stop) for stop in self.stops)
        if not stops:
            raise InvalidParams("a color scheme needs at least one stop")
        object.__setattr__(self, "stops", stops)
        object.__setattr__(self, "interior", _to_rgb(self.interior))
        try:
            object.__setattr__(self, "mode", MappingMode(self.mode))
        except ValueError as exc:
            raise InvalidParams(f"unknown mapping mode {self.mode!r}") from exc
        gamma = float(self.gamma)
        if not math.isfinite(gamma) or gamma <= 0.0:
            raise InvalidParams(f"gamma must be positive, got {self.gamma!r}")
        object.__setattr__(self, "gamma", gamma)

    @classmethod
    def from_colormap(cls, name: str, stops: int = 16, **kwargs) -> "ColorScheme":
        """Sample ``stops`` colors from a matplotlib colormap such as ``"twilight_shifted"``."""

        if stops < 1:
            raise InvalidParams("a color scheme needs at least one stop")
        try:
            cmap = _mpl_colormaps[name]
        except KeyError as exc:
            raise InvalidParams(f"unknown colormap {name!r}") from exc
        samples = cmap(np.linspace(0.0, 1.0, stops))[:, :3]
        rgb = np.uint8(np.clip(np.round(samples * 255), 0, 255))
        return cls(stops=tuple(tuple(int(v) for v in row) for row in rgb), **kwargs)

    @classmethod
    def from_hsv(
        cls,
        hue_offset: float = 0.0,
        saturation: float = 1.0,
        value: float = 1.0,
        stops: int = 36,
        **kwargs,
    ) -> "ColorScheme":
        """A full turn of the hue wheel starting at ``hue_offset`` degrees."""

        if stops < 1:
            raise InvalidParams("a color scheme needs at least one stop")
        if not (0.0 <= saturation <= 1.0 and 0.0 <= value <= 1.0):
            raise InvalidParams("saturation and value must lie in [0, 1]")
        hues = ((hue_offset + np.linspace(0.0, 360.0, stops, endpoint=False)) % 360.0) / 360.0
        hsv = np.stack([hues, np.full(stops, saturation), np.full(stops, value)], axis=-1)
        rgb = np.uint8(np.clip(np.round(_mpl_colors.hsv_to_rgb(hsv) * 255), 0, 255))
        return cls(stops=tuple(tuple(int(v) for v in row) for row in rgb), **kwargs)


DEFAULT_SCHEME_NAME = "twilight_shifted"


def default_scheme() -> ColorScheme:
    return ColorScheme.from_colormap(DEFAULT_SCHEME_NAME)


def random_color_scheme(rng: Optional[np.random.Generator] = None, *, stops: int = 36) -> ColorScheme:
    """Random hue-wheel palette with strong saturation and brightness."""

    if rng is None:
        rng = np.random.default_rng()
    return ColorScheme.from_hsv(
        hue_offset=float(rng.uniform(0.0, 360.0)),
        saturation=float(rng.uniform(0.7, 1.0)),
        value=float(rng.uniform(0.7, 1.0)),
        stops=stops,
    )


def _palette_positions(grid: EscapeGrid, scheme: ColorScheme, max_iterations: int) -> np.ndarray:
    """Position of every pixel along the palette, from 0 to ``len(stops) - 1``."""

    n_stops = len(scheme.stops)
    if scheme.mode is MappingMode.DISCRETE:
        iters = np.asarray(grid.iterations, dtype=np.int64)
        buckets = iters * n_stops // max(max_iterations, 1)
        return np.clip(buckets, 0, n_stops - 1).astype(np.float64)

    t = np.asarray(grid.smooth, dtype=np.float64) / float(max(max_iterations, 1))
    t = np.clip(np.nan_to_num(t, nan=0.0), 0.0, 1.0)
    if scheme.gamma != 1.0:
        t = t ** scheme.gamma
    if scheme.invert:
        t = 1.0 - t
    return t * (n_stops - 1)


def colorize(grid: EscapeGrid, scheme: ColorScheme, max_iterations: int) -> np.ndarray:
    """Map an :class:`EscapeGrid` to a ``(rows, cols, 3)`` ``uint8`` image."""

    palette = np.asarray(scheme.stops, dtype=np.float64)
    positions = _palette_positions(grid, scheme, max_iterations)
    knots = np.arange(len(scheme.stops), dtype=np.float64)

    rgb = np.empty(positions.shape + (3,), dtype=np.float64)
    for k in (0, 1, 2):
        rgb[..., k] = np.interp(positions, knots, palette[:, k])

    inside = ~np.asarray(grid.escaped, dtype=bool)
    rgb[inside] = scheme.interior
    return np.uint8(np.clip(np.round(rgb), 0, 255))


def map_color(result: EscapeResult, scheme: ColorScheme, max_iterations: int) -> RGB:
    """Color of a single escape result; agrees with :func:`colorize` pixel for pixel."""

    grid = EscapeGrid(
        escaped=np.array([[result.escaped]], dtype=bool),
        iterations=np.array([[result.iterations]], dtype=np.int32),
        smooth=np.array([[result.smoothed_value]], dtype=np.float64),
    )
    pixel = colorize(grid, scheme, max_iterations)[0, 0]
    return int(pixel[0]), int(pixel[1]), int(pixel[2])
