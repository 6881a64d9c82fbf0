"""Runtime configuration, logging and TensorFlow setup for the render engine."""

from __future__ import annotations

import logging
import os
import warnings
from dataclasses import dataclass, field
from typing import Mapping, Optional

_TRUTHY = {"1", "true", "yes", "on"}

_env_verbose = os.environ.get("FRACTAL_VERBOSE", "").strip().lower() in _TRUTHY
_env_log_level = os.environ.get("TF_CPP_MIN_LOG_LEVEL")
_suppress_messages = (not _env_verbose) and _env_log_level != "0"

# TensorFlow reads this once, when it is first imported.
if _suppress_messages and _env_log_level is None:
    os.environ["TF_CPP_MIN_LOG_LEVEL"] = "3"

if _suppress_messages:
    warnings.filterwarnings(
        "ignore",
        message=r"Protobuf gencode version .* is exactly one major version older than the runtime version .*",
        category=UserWarning,
        module="google.protobuf",
    )

logger = logging.getLogger(__name__)

_PACKAGE_LOGGER = "fractal_explorer"
_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _default_workers() -> int:
    return max(os.cpu_count() or 1, 1)


@dataclass(frozen=True)
class EngineConfig:
    """Settings for the tile worker pool and the TensorFlow device."""

    workers: int = field(default_factory=_default_workers)
    tiles_per_worker: int = 4
    dispatch_threads: int = 2
    device: Optional[str] = None
    verbose: bool = False
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        if self.workers < 1:
            raise ValueError("workers must be at least 1")
        if self.tiles_per_worker < 1:
            raise ValueError("tiles_per_worker must be at least 1")
        if self.dispatch_threads < 1:
            raise ValueError("dispatch_threads must be at least 1")

    @property
    def target_tiles(self) -> int:
        return self.workers * self.tiles_per_worker

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        """Build a config from ``FRACTAL_*`` environment variables."""

        env = os.environ if environ is None else environ
        kwargs: dict = {}
        for name, key in (
            ("workers", "FRACTAL_WORKERS"),
            ("tiles_per_worker", "FRACTAL_TILES_PER_WORKER"),
            ("dispatch_threads", "FRACTAL_DISPATCH_THREADS"),
            ("seed", "FRACTAL_SEED"),
        ):
            raw = env.get(key)
            if raw is None or raw.strip() == "":
                continue
            try:
                kwargs[name] = int(raw)
            except ValueError as exc:
                raise ValueError(f"{key} must be an integer, got {raw!r}") from exc

        device = env.get("FRACTAL_DEVICE")
        if device:
            kwargs["device"] = device.strip()
        verbose = env.get("FRACTAL_VERBOSE")
        if verbose is not None:
            kwargs["verbose"] = verbose.strip().lower() in _TRUTHY
        return cls(**kwargs)


def configure_logging(verbose: bool = False) -> logging.Logger:
    """Attach a stream handler to the package logger and align TensorFlow's logger."""

    package_logger = logging.getLogger(_PACKAGE_LOGGER)
    level = logging.DEBUG if verbose else logging.WARNING
    package_logger.setLevel(level)
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        package_logger.addHandler(handler)

    import tensorflow as tf

    tf_logger = tf.get_logger()
    tf_level = "INFO" if verbose else "ERROR"
    tf_logger.setLevel(tf_level)
    for handler in tf_logger.handlers:
        handler.setLevel(tf_level)
    return package_logger


def select_device(requested: Optional[str] = None) -> str:
    """Return the TensorFlow device string to run the escape-time kernel on.

    An explicit ``requested`` device wins. Otherwise the first visible GPU is
    used, with memory growth enabled, and the CPU when no GPU is present.
    """

    if requested:
        return requested

    import tensorflow as tf

    gpus = tf.config.list_physical_devices("GPU")
    if not gpus:
        logger.debug("No GPU found, using CPU")
        return "/CPU:0"
    try:
        for gpu in gpus:
            tf.config.experimental.set_memory_growth(gpu, True)
    except RuntimeError as exc:
        # Memory growth can only be set before the GPUs are initialized.
        logger.debug("Could not configure GPU memory growth: %s", exc)
        return "/CPU:0"
    logger.debug("GPU found, using %s", gpus[0].name)
    return "/GPU:0"
