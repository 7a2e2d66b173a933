"""
Configuration management for audiocc.

Loads and validates a TOML config against the bounds below. Every tunable
parameter is bounded and validated at startup; missing values fall back
to DEFAULT_CONFIG.
"""

import copy
import os
from pathlib import Path
from typing import Dict, Any, Optional
import toml
import logging

from audiocc.errors import AudioccError

logger = logging.getLogger(__name__)

QUALITIES = ("copy", "320", "v0")


class ConfigError(AudioccError):
    """Raised when config validation fails."""
    pass


class Config:
    """Configuration loader and validator."""

    # Numeric ranges are (min, max); tuples of strings enumerate allowed values.
    PARAM_BOUNDS = {
        "tools": {
            "ffmpeg": None,
            "ffprobe": None,
        },
        "transcode": {
            "quality": QUALITIES,
            "fix": None,
            "embed_cover": None,
            "cover_width": (100, 3000),
            "cover_qscale": (1, 31),
        },
        "pipeline": {
            "workers": (1, 64),
            "scratch_prefix": None,
        },
        "library": {
            "unknown_artist": None,
            "unknown_album": None,
        },
    }

    DEFAULT_CONFIG = {
        "config_version": "1.0",
        "tools": {
            "ffmpeg": "ffmpeg",
            "ffprobe": "ffprobe",
        },
        "transcode": {
            "quality": "v0",
            "fix": False,
            "embed_cover": True,
            "cover_width": 500,
            "cover_qscale": 2,
        },
        "pipeline": {
            "workers": 1,
            "scratch_prefix": ".audiocc-",
        },
        "library": {
            "unknown_artist": "Unknown Artist",
            "unknown_album": "Unknown Album",
        },
    }

    def __init__(self, config_dict: Dict[str, Any]):
        """Initialize config from dictionary."""
        self.data = config_dict
        self._validate()

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "Config":
        """
        Load config from TOML file.

        Args:
            config_path: Path to audiocc.toml. If None, uses AUDIOCC_CONFIG_PATH
                        env var or defaults to configs/audiocc.toml.

        Returns:
            Config instance.

        Raises:
            ConfigError: If config is invalid or cannot be parsed.
        """
        if config_path is None:
            config_path = os.getenv("AUDIOCC_CONFIG_PATH", "configs/audiocc.toml")

        config_path = Path(config_path)

        if not config_path.exists():
            logger.warning(f"Config file not found: {config_path}. Using defaults.")
            return cls(copy.deepcopy(cls.DEFAULT_CONFIG))

        try:
            config_dict = toml.load(config_path)
        except (toml.TomlDecodeError, OSError) as e:
            raise ConfigError(f"Failed to load config from {config_path}: {e}")

        logger.info(f"Loaded config from {config_path}")
        return cls(config_dict)

    def _validate(self) -> None:
        """
        Validate all config parameters against PARAM_BOUNDS.

        Raises:
            ConfigError: If any parameter is out of bounds.
        """
        for section, params in self.PARAM_BOUNDS.items():
            if section not in self.data:
                logger.warning(f"Missing config section: {section}. Using defaults.")
                self.data[section] = copy.deepcopy(self.DEFAULT_CONFIG.get(section, {}))
                continue

            section_data = self.data[section]

            for param, bounds in params.items():
                if param not in section_data:
                    default_val = self.DEFAULT_CONFIG.get(section, {}).get(param)
                    if default_val is not None:
                        logger.warning(f"Missing param {section}.{param}. Using default: {default_val}")
                        section_data[param] = default_val
                    continue

                value = section_data[param]

                if bounds is None:
                    continue

                # Enumerated string values
                if all(isinstance(b, str) for b in bounds):
                    if str(value) not in bounds:
                        raise ConfigError(
                            f"Parameter {section}.{param}={value!r} not one of {list(bounds)}"
                        )
                    section_data[param] = str(value)
                    continue

                min_val, max_val = bounds
                if not isinstance(value, (int, float)) or not (min_val <= value <= max_val):
                    raise ConfigError(
                        f"Parameter {section}.{param}={value} out of bounds "
                        f"[{min_val}, {max_val}]"
                    )

        transcode = self.data["transcode"]
        if transcode.get("fix") and transcode.get("quality") == "copy":
            raise ConfigError(
                "Parameter transcode.fix=true needs an encoding quality, not 'copy'"
            )

        logger.debug("Config validation passed")

    def get(self, section: str, param: str, default: Any = None) -> Any:
        """Get a config parameter safely."""
        return self.data.get(section, {}).get(param, default)

    def __getitem__(self, section: str) -> Dict[str, Any]:
        """Allow dict-like access: config["transcode"]"""
        return self.data.get(section, {})

    def __repr__(self) -> str:
        version = self.data.get('config_version', 'unknown')
        return f"Config(version={version})"
