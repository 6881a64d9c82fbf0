"""Public API for the interactive fractal render engine."""

from .config import EngineConfig, configure_logging, select_device
from .errors import DegenerateViewport, FractalEngineError, InvalidParams, PrecisionLimit
from .viewport import Viewport
from .params import FractalParams, Variant, random_params
from .formula import EscapeGrid, EscapeResult, evaluate, evaluate_grid
from .coloring import (
    ColorScheme,
    MappingMode,
    colorize,
    default_scheme,
    map_color,
    random_color_scheme,
)
from .framebuffer import Framebuffer, RenderSnapshot
from .scheduler import GenerationCounter, Tile, TileScheduler, plan_tiles, render_tile
from .engine import EngineState, RenderEngine

__all__ = [
    "ColorScheme",
    "DegenerateViewport",
    "EngineConfig",
    "EngineState",
    "EscapeGrid",
    "EscapeResult",
    "FractalEngineError",
    "FractalParams",
    "Framebuffer",
    "GenerationCounter",
    "InvalidParams",
    "MappingMode",
    "PrecisionLimit",
    "RenderEngine",
    "RenderSnapshot",
    "Tile",
    "TileScheduler",
    "Variant",
    "Viewport",
    "colorize",
    "configure_logging",
    "default_scheme",
    "evaluate",
    "evaluate_grid",
    "map_color",
    "plan_tiles",
    "random_color_scheme",
    "random_params",
    "render_tile",
    "select_device",
]
