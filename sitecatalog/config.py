"""
Merge configuration.

A merge_config.json only needs the values it changes; everything else comes
from DEFAULT_CONFIG:

    {
      "matching": {"name_similarity_threshold": 0.6},
      "validity": {"off_land_policy": "reject"},
      "enrichment": {"enabled": true, "workers": 8}
    }
"""

import copy
import json
from pathlib import Path
from typing import Dict, Optional, Union

from .constants import (
    ENRICHMENT_DELAY_S,
    ENRICHMENT_TIMEOUT_S,
    ENRICHMENT_WORKERS,
    GRID_PRECISIONS,
    MAX_SLUG_LENGTH,
    MAX_SLUG_SUFFIX,
    MIN_SUBSTRING_KEY_LENGTH,
    NAME_CORROBORATED_M,
    NAME_KEY_MATCH_M,
    NAME_SIMILARITY_THRESHOLD,
    NEAR_CERTAIN_M,
)
from .errors import ConfigError

REQUIRED_SECTIONS = ['matching', 'validity', 'identifiers', 'enrichment', 'output']

DEFAULT_CONFIG = {
    'matching': {
        'near_certain_m': NEAR_CERTAIN_M,
        'name_corroborated_m': NAME_CORROBORATED_M,
        'name_key_m': NAME_KEY_MATCH_M,
        'name_similarity_threshold': NAME_SIMILARITY_THRESHOLD,
        'min_substring_key_length': MIN_SUBSTRING_KEY_LENGTH,
        'grid_precisions': list(GRID_PRECISIONS),
    },
    'validity': {
        'off_land_policy': 'flag',  # 'flag' or 'reject'
        'region_filter_kinds': ['knowledge_base'],
        'regions': None,  # None = built-in megalithic region list
    },
    'identifiers': {
        'max_slug_length': MAX_SLUG_LENGTH,
        'max_slug_suffix': MAX_SLUG_SUFFIX,
    },
    'enrichment': {
        'enabled': False,
        'delay_s': ENRICHMENT_DELAY_S,
        'timeout_s': ENRICHMENT_TIMEOUT_S,
        'workers': ENRICHMENT_WORKERS,
    },
    'output': {
        'dir': 'data/catalog',
        'geojson': True,
        'media': True,
        'progress': True,
    },
}


def deep_merge(base: Dict, override: Dict) -> Dict:
    """Recursively merge override into a copy of base."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise ConfigError(message)


def validate_config(config: Dict) -> Dict:
    """
    Check sections and value ranges.

    Raises:
        ConfigError: first problem found
    """
    for section in REQUIRED_SECTIONS:
        _require(isinstance(config.get(section), dict), f"Missing required config section: {section}")

    try:
        m = config['matching']
        near = float(m['near_certain_m'])
        corroborated = float(m['name_corroborated_m'])
        name_key = float(m['name_key_m'])
        _require(0 < near <= corroborated,
                 "matching radii must satisfy 0 < near_certain_m <= name_corroborated_m")
        _require(name_key > 0, "matching.name_key_m must be positive")
        _require(0 <= float(m['name_similarity_threshold']) < 1,
                 "matching.name_similarity_threshold must be in [0, 1)")
        _require(int(m['min_substring_key_length']) >= 1,
                 "matching.min_substring_key_length must be at least 1")
        precisions = m['grid_precisions']
        _require(isinstance(precisions, list) and precisions
                 and all(isinstance(p, int) and 0 <= p <= 6 for p in precisions),
                 "matching.grid_precisions must be a non-empty list of integers in [0, 6]")

        v = config['validity']
        _require(v['off_land_policy'] in ('flag', 'reject'),
                 f"validity.off_land_policy must be 'flag' or 'reject', got {v['off_land_policy']!r}")
        _require(isinstance(v['region_filter_kinds'], list),
                 "validity.region_filter_kinds must be a list")
        _require(v['regions'] is None or isinstance(v['regions'], list),
                 "validity.regions must be a list or null")

        ids = config['identifiers']
        _require(int(ids['max_slug_length']) >= 8, "identifiers.max_slug_length must be at least 8")
        _require(int(ids['max_slug_suffix']) >= 1, "identifiers.max_slug_suffix must be at least 1")

        e = config['enrichment']
        _require(float(e['delay_s']) >= 0, "enrichment.delay_s must not be negative")
        _require(float(e['timeout_s']) > 0, "enrichment.timeout_s must be positive")
        _require(int(e['workers']) >= 1, "enrichment.workers must be at least 1")
    except KeyError as e:
        raise ConfigError(f"Missing config value: {e}") from e
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid config value: {e}") from e

    return config


def load_config(config_path: Optional[Union[str, Path]] = None,
                overrides: Optional[Dict] = None) -> Dict:
    """
    Load merge configuration over the defaults.

    Args:
        config_path: merge_config.json; None uses the defaults only
        overrides: Extra values merged last (e.g. from CLI flags)

    Raises:
        ConfigError: unreadable file, invalid JSON, or invalid values
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if config_path is not None:
        try:
            with open(config_path, encoding='utf-8') as f:
                user_config = json.load(f)
        except OSError as e:
            raise ConfigError(f"Cannot read config {config_path}: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in config {config_path}: {e}") from e

        if not isinstance(user_config, dict):
            raise ConfigError(f"Config {config_path} must be a JSON object")
        config = deep_merge(config, user_config)

    if overrides:
        config = deep_merge(config, overrides)

    return validate_config(config)
