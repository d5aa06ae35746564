"""
Engine settings and logging setup.

Settings live in a small JSON file (``engine_config.json`` next to this
module by default). Unknown keys are ignored and missing keys fall back to
the dataclass defaults, so an empty ``{}`` is a valid config.
"""

import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from primdist.sites import UNBOUNDED_MAX_QTY

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class EngineConfig:
    """Settings for one generation pass."""
    horizon_months: tuple = field(default_factory=lambda: tuple(range(1, 13)))
    workers: int = 1
    unbounded_max_qty: int = UNBOUNDED_MAX_QTY
    duty_decimals: int = 4
    data_dir: str | None = None
    log_level: str = "INFO"


def load_engine_config(config_path: str | None = None) -> EngineConfig:
    """
    Loads engine settings from JSON.
    If no path is provided, looks for engine_config.json in this package.
    """
    if config_path is None:
        final_path = Path(__file__).parent / "engine_config.json"
    else:
        final_path = Path(config_path)

    with open(final_path) as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise TypeError(f"Expected dict from {final_path}, got {type(data)}")
    return config_from_dict(data)


def config_from_dict(data: dict[str, Any]) -> EngineConfig:
    known = {f.name for f in fields(EngineConfig)}
    kwargs = {k: v for k, v in data.items() if k in known}
    if "horizon_months" in kwargs:
        kwargs["horizon_months"] = tuple(int(m) for m in kwargs["horizon_months"])
    if "workers" in kwargs:
        kwargs["workers"] = max(1, int(kwargs["workers"]))
    return EngineConfig(**kwargs)


def configure_logging(level: str = "INFO") -> None:
    """Install one stream handler on the package logger."""
    pkg_logger = logging.getLogger("primdist")
    pkg_logger.setLevel(level.upper())
    if not pkg_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        pkg_logger.addHandler(handler)
