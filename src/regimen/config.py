"""
Engine Configuration

Dataclass configuration for the plan engine.

Loads config/engine.yaml (inside the package, or the directory named by
REGIMEN_CONFIG) if available, else uses defaults. A few values can be
overridden from the environment or a .env file.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from dotenv import load_dotenv

from .errors import ConfigError

logger = logging.getLogger(__name__)


PACKAGE_DIR = Path(__file__).parent
DEFAULT_CONFIG_DIR = PACKAGE_DIR / "config"
DEFAULT_CATALOG_PATH = PACKAGE_DIR / "data" / "exercises.yaml"


# =============================================================================
# YAML loading
# =============================================================================

def load_yaml(path: Path) -> Dict[str, Any]:
    """
    Load a YAML mapping, raising ConfigError on anything unusable.

    Args:
        path: YAML file

    Returns:
        Parsed mapping
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        raise ConfigError(f"Empty or invalid config file: {path}")
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a mapping at the top of {path}")

    return data


def config_dir() -> Path:
    """Directory holding engine/safety/split/media YAML files."""
    load_dotenv()
    override = os.getenv("REGIMEN_CONFIG")
    return Path(override) if override else DEFAULT_CONFIG_DIR


def catalog_path() -> Path:
    """Exercise catalog file (REGIMEN_CATALOG overrides the built-in one)."""
    load_dotenv()
    override = os.getenv("REGIMEN_CATALOG")
    return Path(override) if override else DEFAULT_CATALOG_PATH


def _env_float(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or raw == '':
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from e


def _bounds(raw: Any, where: str) -> Tuple[int, int]:
    try:
        low, high = int(raw[0]), int(raw[1])
    except (TypeError, ValueError, IndexError) as e:
        raise ConfigError(f"{where}: expected [min, max], got {raw!r}") from e
    if low < 0 or high < low:
        raise ConfigError(f"{where}: invalid bounds [{low}, {high}]")
    return low, high


# =============================================================================
# Configuration
# =============================================================================

DEFAULT_DISTRIBUTION = {
    'beginner': {'compound': (2, 3), 'auxiliary': (2, 3), 'isolation': (1, 2)},
    'intermediate': {'compound': (3, 4), 'auxiliary': (2, 3), 'isolation': (2, 3)},
    'advanced': {'compound': (3, 5), 'auxiliary': (2, 4), 'isolation': (2, 4)},
}


@dataclass
class EngineConfig:
    """Configuration for the rule-based plan engine.

    Loads from config/engine.yaml if available, else uses defaults.
    """

    # Safety
    min_pool_size: int = 20  # Below this the gentle pool is used

    # Exercise selection
    distribution: Dict[str, Dict[str, Tuple[int, int]]] = field(
        default_factory=lambda: {k: dict(v) for k, v in DEFAULT_DISTRIBUTION.items()}
    )
    cardio_bounds: Tuple[int, int] = (1, 2)  # Added on cardio-type days
    minutes_per_exercise: Dict[str, int] = field(
        default_factory=lambda: {'beginner': 8, 'intermediate': 7, 'advanced': 6}
    )
    warmup_cooldown_minutes: int = 10
    high_frequency_days: int = 5  # Splits this long get one fewer exercise per day
    major_muscles: Tuple[str, ...] = ('pecs', 'lats', 'quads', 'hamstrings', 'delts')
    min_weekly_hits: int = 2

    # Splits
    default_split: str = 'full_body_3x'

    # Media
    placeholder_url: str = 'https://static.regimen.app/media/placeholder.gif'
    lookup_timeout_seconds: float = 0.3
    max_workers: int = 8

    # Planner
    deadline_seconds: float = 2.0
    max_coaching_tips: int = 5
    max_notes_per_exercise: int = 2
    max_notes_per_workout: int = 6
    default_weight_kg: float = 70.0

    @classmethod
    def from_yaml(cls, path: Optional[Path] = None) -> 'EngineConfig':
        """
        Load config from YAML file, then apply environment overrides.

        Args:
            path: engine.yaml location (default: config dir)

        Returns:
            EngineConfig
        """
        if path is None:
            path = config_dir() / "engine.yaml"
        path = Path(path)

        yaml_config = load_yaml(path) if path.exists() else {}
        if not yaml_config:
            logger.info(f"No engine config at {path}, using defaults")

        kwargs: Dict[str, Any] = {}

        # Safety
        if 'safety' in yaml_config:
            s = yaml_config['safety']
            kwargs['min_pool_size'] = int(s.get('min_pool_size', 20))

        # Selection
        if 'selection' in yaml_config:
            sel = yaml_config['selection']
            if 'distribution' in sel:
                kwargs['distribution'] = {
                    level: {
                        bucket: _bounds(b, f"selection.distribution.{level}.{bucket}")
                        for bucket, b in buckets.items()
                    }
                    for level, buckets in sel['distribution'].items()
                }
            if 'cardio_bounds' in sel:
                kwargs['cardio_bounds'] = _bounds(sel['cardio_bounds'], "selection.cardio_bounds")
            if 'minutes_per_exercise' in sel:
                kwargs['minutes_per_exercise'] = {k: int(v) for k, v in sel['minutes_per_exercise'].items()}
            kwargs['warmup_cooldown_minutes'] = int(sel.get('warmup_cooldown_minutes', 10))
            kwargs['high_frequency_days'] = int(sel.get('high_frequency_days', 5))
            if 'major_muscles' in sel:
                kwargs['major_muscles'] = tuple(m.lower() for m in sel['major_muscles'])
            kwargs['min_weekly_hits'] = int(sel.get('min_weekly_hits', 2))

        # Splits
        if 'splits' in yaml_config:
            kwargs['default_split'] = yaml_config['splits'].get('default_split', 'full_body_3x')

        # Media
        if 'media' in yaml_config:
            m = yaml_config['media']
            kwargs['placeholder_url'] = m.get('placeholder_url', cls.placeholder_url)
            kwargs['lookup_timeout_seconds'] = float(m.get('lookup_timeout_seconds', 0.3))
            kwargs['max_workers'] = int(m.get('max_workers', 8))

        # Planner
        if 'planner' in yaml_config:
            p = yaml_config['planner']
            kwargs['deadline_seconds'] = float(p.get('deadline_seconds', 2.0))
            kwargs['max_coaching_tips'] = int(p.get('max_coaching_tips', 5))
            kwargs['max_notes_per_exercise'] = int(p.get('max_notes_per_exercise', 2))
            kwargs['max_notes_per_workout'] = int(p.get('max_notes_per_workout', 6))
            kwargs['default_weight_kg'] = float(p.get('default_weight_kg', 70.0))

        config = cls(**kwargs)

        # Environment overrides
        load_dotenv()
        config.deadline_seconds = _env_float("REGIMEN_DEADLINE_SECONDS", config.deadline_seconds)
        config.lookup_timeout_seconds = _env_float("REGIMEN_MEDIA_TIMEOUT", config.lookup_timeout_seconds)

        errors = config.validate()
        if errors:
            raise ConfigError("; ".join(errors))

        return config

    def validate(self) -> list:
        """
        Validate the configuration.

        Returns:
            List of error messages. Empty list if valid.
        """
        errors = []

        for level in ('beginner', 'intermediate', 'advanced'):
            buckets = self.distribution.get(level)
            if not buckets:
                errors.append(f"No distribution defined for {level}")
                continue
            for bucket in ('compound', 'auxiliary', 'isolation'):
                if bucket not in buckets:
                    errors.append(f"Distribution for {level} is missing '{bucket}'")
            if level not in self.minutes_per_exercise:
                errors.append(f"No minutes_per_exercise defined for {level}")

        if self.min_pool_size < 1:
            errors.append("min_pool_size must be at least 1")
        if self.deadline_seconds <= 0:
            errors.append("deadline_seconds must be positive")
        if self.lookup_timeout_seconds <= 0:
            errors.append("lookup_timeout_seconds must be positive")
        if self.max_workers < 1:
            errors.append("max_workers must be at least 1")
        if not self.placeholder_url:
            errors.append("placeholder_url must not be empty")

        return errors

    def bounds_for(self, level: str) -> Dict[str, Tuple[int, int]]:
        """Per-classification [min, max] counts for an experience level."""
        return self.distribution[level]
