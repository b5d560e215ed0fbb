"""Configuration loading and validation utilities for curriculum training runs."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping

import yaml


@dataclass(frozen=True)
class TrainingConfig:
    """Validated training configuration container.

    Provides typed field access for known parameters and dictionary-style
    access for extensible optional parameters.
    """

    seed: int = 0
    tick_interval: float = 0.03
    max_level: int = 4
    epsilon: float = 0.1
    learning_rate: float = 0.1
    discount: float = 0.9
    proposal_model: str = "gemini-3-pro-preview"
    proposal_timeout: float = 60.0
    proposal_workers: int = 2
    master_mode_ticks: int = 300
    master_exploit: bool = True
    maze_width: int = 10
    maze_height: int = 10
    extras: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        """Return a configuration value by key.

        Args:
            key: Configuration key name.
            default: Value to return if key does not exist.

        Returns:
            Value associated with ``key`` or ``default``.
        """
        if key in _KNOWN_KEYS:
            return getattr(self, key)
        return self.extras.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        """Return a full dictionary view of the configuration."""
        payload = {key: getattr(self, key) for key in _KNOWN_KEYS}
        payload.update(self.extras)
        return payload


_KNOWN_KEYS: tuple[str, ...] = tuple(f.name for f in fields(TrainingConfig) if f.name != "extras")


class ConfigLoader:
    """Load and validate training configuration files (YAML or JSON)."""

    @staticmethod
    def load(path: str | Path) -> TrainingConfig:
        """Load a training config from ``path``.

        Args:
            path: Path to a YAML or JSON config file.

        Returns:
            A validated ``TrainingConfig`` instance.
        """
        payload = _read_config_payload(path)
        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ValueError("Config file must contain a mapping object.")
        return build_config(payload)


def _read_config_payload(path: str | Path) -> Any:
    """Read raw config payload from JSON or YAML file."""
    config_path = Path(path)
    suffix = config_path.suffix.lower()
    if not config_path.exists():
        raise ValueError(f"Config file not found: {config_path}")
    content = config_path.read_text(encoding="utf-8")

    if suffix == ".json":
        return json.loads(content)

    if suffix in {".yaml", ".yml"}:
        try:
            return yaml.safe_load(content)
        except yaml.YAMLError as exc:
            raise ValueError(f"Failed to parse YAML config '{config_path}': {exc}") from exc

    raise ValueError(f"Unsupported config extension: {suffix}")


def build_config(payload: Mapping[str, Any]) -> TrainingConfig:
    """Validate raw mapping and build ``TrainingConfig``."""
    defaults = TrainingConfig()
    try:
        config = TrainingConfig(
            seed=int(payload.get("seed", defaults.seed)),
            tick_interval=float(payload.get("tick_interval", defaults.tick_interval)),
            max_level=int(payload.get("max_level", defaults.max_level)),
            epsilon=float(payload.get("epsilon", defaults.epsilon)),
            learning_rate=float(payload.get("learning_rate", defaults.learning_rate)),
            discount=float(payload.get("discount", defaults.discount)),
            proposal_model=str(payload.get("proposal_model", defaults.proposal_model)),
            proposal_timeout=float(payload.get("proposal_timeout", defaults.proposal_timeout)),
            proposal_workers=int(payload.get("proposal_workers", defaults.proposal_workers)),
            master_mode_ticks=int(payload.get("master_mode_ticks", defaults.master_mode_ticks)),
            master_exploit=_parse_bool(payload.get("master_exploit", defaults.master_exploit)),
            maze_width=int(payload.get("maze_width", defaults.maze_width)),
            maze_height=int(payload.get("maze_height", defaults.maze_height)),
            extras={k: v for k, v in payload.items() if k not in _KNOWN_KEYS},
        )
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid config value: {exc}") from exc

    if config.tick_interval <= 0.0:
        raise ValueError("tick_interval must be > 0")
    if config.max_level < 1:
        raise ValueError("max_level must be >= 1")
    for name in ("epsilon", "learning_rate", "discount"):
        if not 0.0 <= float(getattr(config, name)) <= 1.0:
            raise ValueError(f"{name} must be in [0.0, 1.0]")
    if config.proposal_timeout <= 0.0:
        raise ValueError("proposal_timeout must be > 0")
    if config.proposal_workers <= 0:
        raise ValueError("proposal_workers must be > 0")
    if config.maze_width < 3 or config.maze_height < 3:
        raise ValueError("maze_width and maze_height must be >= 3")
    if not config.proposal_model:
        raise ValueError("proposal_model must be non-empty")
    return config


def _parse_bool(value: Any) -> bool:
    """Accept real booleans plus the usual textual spellings from JSON/YAML."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "on", "1"}:
            return True
        if lowered in {"false", "no", "off", "0"}:
            return False
    raise ValueError(f"expected a boolean, got {value!r}")
