"""
Application configuration.

``config/config.yaml`` holds the runtime sections, ``config/gestures.yaml``
the classifier thresholds (exposed as the ``gestures`` section). Every
component receives a plain dict section and supplies its own defaults, so a
missing file or key never stops the app; it only produces a warning.
"""

import os
import logging

import yaml

logger = logging.getLogger(__name__)

_BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
_CONFIG_DIR = os.path.join(_BASE_DIR, "config")

# Keys worth type-checking at load time, per section
SCHEMA = {
    "camera": {"device_id": int, "width": int, "height": int, "fps": int},
    "mediapipe": {
        "max_num_hands": int,
        "min_detection_confidence": float,
        "min_tracking_confidence": float,
    },
    "interaction": {
        "card_spacing": float,
        "visible_cards": int,
        "dead_zone": float,
        "scroll_gain": float,
        "lift_threshold": float,
        "flip_duration": float,
        "ashes_duration": float,
        "transition_duration": float,
    },
    "session": {"removal_delay": float, "analysis_delay": float, "spread_size": int},
    "reading": {"model": str, "api_key_env": str, "language": str},
}


def _read_yaml(path: str):
    """Parsed YAML mapping, or None if the file does not exist."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except FileNotFoundError:
        return None


def _type_ok(value, expected: type) -> bool:
    if expected is float:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    return isinstance(value, expected)


def validate(data: dict, schema: dict = SCHEMA) -> list:
    """Human readable problems with ``data``; empty when it matches ``schema``."""
    problems = []
    for section, fields in schema.items():
        values = data.get(section)
        if values is None:
            problems.append(f"Missing config section: '{section}'")
        elif not isinstance(values, dict):
            problems.append(f"Section '{section}' should be a mapping, got {type(values).__name__}")
        else:
            problems.extend(
                f"{section}.{key}: expected {expected.__name__}, got {values[key]!r}"
                for key, expected in fields.items()
                if key in values and not _type_ok(values[key], expected)
            )
    return problems


def _deep_merge(base: dict, override: dict) -> dict:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(merged.get(key), dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Config:
    """Process-wide configuration singleton."""

    _instance = None
    _data = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def load(self, config_path=None, gestures_path=None):
        """Read both YAML files, replacing anything loaded before."""
        config_path = config_path or os.path.join(_CONFIG_DIR, "config.yaml")
        gestures_path = gestures_path or os.path.join(_CONFIG_DIR, "gestures.yaml")

        data = _read_yaml(config_path)
        if data is None:
            logger.warning("No config at %s, running on built-in defaults", config_path)
            data = {}
        else:
            logger.info("Config loaded from %s", config_path)

        gestures = _read_yaml(gestures_path)
        if gestures is None:
            logger.warning("No gesture thresholds at %s, using defaults", gestures_path)
        else:
            data["gestures"] = gestures

        self._data = data
        self._validate()
        return self

    def update(self, overrides: dict):
        """Layer runtime overrides (command line flags) on top of the files."""
        self._data = _deep_merge(self._data, overrides)
        return self

    def _validate(self) -> list:
        problems = validate(self._data)
        for problem in problems:
            logger.warning("Config: %s", problem)
        return problems

    def get(self, key_path: str, default=None):
        """Dotted lookup, e.g. ``get("session.spread_size", 3)``."""
        node = self._data
        for key in key_path.split("."):
            if not isinstance(node, dict) or key not in node:
                return default
            node = node[key]
        return node

    def get_section(self, section: str) -> dict:
        return self._data.get(section) or {}

    @property
    def camera(self) -> dict:
        return self.get_section("camera")

    @property
    def mediapipe(self) -> dict:
        return self.get_section("mediapipe")

    @property
    def interaction(self) -> dict:
        return self.get_section("interaction")

    @property
    def session(self) -> dict:
        return self.get_section("session")

    @property
    def reading(self) -> dict:
        return self.get_section("reading")

    @property
    def visualization(self) -> dict:
        return self.get_section("visualization")

    @property
    def gestures(self) -> dict:
        return self.get_section("gestures")

    @property
    def base_dir(self) -> str:
        return _BASE_DIR

    @classmethod
    def reset(cls):
        """Drop the singleton (for testing)."""
        cls._instance = None
        cls._data = {}
