"""
Annotator configuration.

Defaults reproduce the canvas the annotations are drawn on (800x450 at
15 fps). A YAML or JSON file can override any subset of the fields.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

import yaml

from .core.edge_detection import EdgeDetectionOptions

logger = logging.getLogger(__name__)

DEFAULT_FRAME_RATE = 15

NUMERIC_FIELDS = (
    "fps",
    "display_width",
    "display_height",
    "dot_hit_radius",
    "click_threshold_ms",
    "history_size",
)


class ConfigError(ValueError):
    """Raised when a configuration file is malformed."""


@dataclass
class AnnotatorConfig:
    """Session-wide settings for interaction, history and auto-detection."""

    fps: float = DEFAULT_FRAME_RATE
    display_width: int = 800
    display_height: int = 450

    # Interaction
    dot_hit_radius: float = 8.0
    click_threshold_ms: float = 300.0

    history_size: int = 50

    manual_dot_color: str = "black"
    manual_line_color: str = "#000000"

    edge: EdgeDetectionOptions = field(default_factory=EdgeDetectionOptions)

    @property
    def display_size(self):
        return (self.display_width, self.display_height)

    def to_json(self) -> dict:
        data = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "edge"}
        data["edge"] = self.edge.to_dict()
        return data

    @staticmethod
    def from_dict(data: dict) -> "AnnotatorConfig":
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a mapping")
        known = {f.name for f in fields(AnnotatorConfig)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {', '.join(unknown)}")

        kwargs = {k: v for k, v in data.items() if k in known and k != "edge"}
        for name in NUMERIC_FIELDS:
            value = kwargs.get(name)
            if value is not None and (
                not isinstance(value, (int, float)) or isinstance(value, bool)
            ):
                raise ConfigError(f"{name} must be a number, got {value!r}")

        edge_data = data.get("edge") or {}
        if not isinstance(edge_data, dict):
            raise ConfigError(f"edge must be a mapping, got {edge_data!r}")
        try:
            edge = EdgeDetectionOptions.from_dict(edge_data)
            cfg = AnnotatorConfig(edge=edge, **kwargs)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid configuration: {exc}") from exc

        if cfg.fps <= 0:
            raise ConfigError(f"fps must be positive, got {cfg.fps}")
        if cfg.history_size < 1:
            raise ConfigError(f"history_size must be >= 1, got {cfg.history_size}")
        return cfg


def load_config(path: Optional[Path] = None) -> AnnotatorConfig:
    """
    Load configuration from a YAML or JSON file.

    Args:
        path (Path, optional): Config file; None returns the defaults

    Returns:
        AnnotatorConfig: Parsed configuration

    Raises:
        FileNotFoundError: If `path` does not exist
        ConfigError: If the file cannot be parsed
    """
    if path is None:
        return AnnotatorConfig()
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot parse {path}: {exc}") from exc
    logger.info(f"Loaded configuration from {path}")
    return AnnotatorConfig.from_dict(data or {})


def save_config(config: AnnotatorConfig, path: Path) -> None:
    path = Path(path)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config.to_json(), f, sort_keys=False)
