"""
Configuration manager for speed estimation and timing sessions.
"""

import copy
import json
import logging
import os
from typing import Dict, Any, Optional, Callable

from .errors import ConfigurationError
from .estimator import EstimatorConfig
from .sensors import GateConfig
from .math.units import SpeedUnit
from .logger import setup_logging
from .sessions import DragSession, LapSession, Track, RunMetrics, LapRecord

logger = logging.getLogger(__name__)


class Config:
    """Configuration manager for the timing system."""

    DEFAULT_CONFIG = {
        # Estimator tuning
        "estimator": EstimatorConfig().to_dict(),

        # GPS validity gate
        "gps_gate": GateConfig().to_dict(),

        # Drag runs
        "drag": {
            "launch_speed": 0.44704,
            "distance_source": "gps"
        },

        # Lap sessions
        "lap": {
            "crossing_radius": 10.0,
            "min_lap_time": 5.0
        },

        # Display
        "speed_unit": "mph",

        # Logging
        "log_level": "INFO",
        "log_file": None
    }

    def __init__(self, config_file: Optional[str] = None):
        """
        Initialize configuration.

        Args:
            config_file: Path to a JSON configuration file, defaults only if None
        """
        self.config_file = config_file
        self.config = copy.deepcopy(self.DEFAULT_CONFIG)

        if config_file is None:
            return

        if os.path.exists(config_file):
            self.load_config()
        else:
            logger.warning("Config file %s not found, using defaults", config_file)

    def load_config(self) -> bool:
        """
        Load configuration from file.

        Returns:
            True if loaded successfully
        """
        try:
            with open(self.config_file, 'r') as f:
                file_config = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to load config %s: %s", self.config_file, e)
            return False

        if not isinstance(file_config, dict):
            logger.error("Config file %s does not contain an object", self.config_file)
            return False

        # File config overrides defaults
        self._merge_config(self.config, file_config)

        logger.info("Configuration loaded from %s", self.config_file)
        return True

    def save_config(self) -> bool:
        """
        Save current configuration to file.

        Returns:
            True if saved successfully
        """
        if self.config_file is None:
            logger.error("No config file set, nothing saved")
            return False

        try:
            with open(self.config_file, 'w') as f:
                json.dump(self.config, f, indent=2)
        except (OSError, TypeError) as e:
            logger.error("Failed to save config %s: %s", self.config_file, e)
            return False

        logger.info("Configuration saved to %s", self.config_file)
        return True

    def _merge_config(self, base: Dict[str, Any], override: Dict[str, Any]):
        """Recursively merge configuration dictionaries."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._merge_config(base[key], value)
            else:
                base[key] = value

    def get(self, key: str, default=None):
        """Get configuration value with optional default."""
        keys = key.split('.')
        value = self.config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any):
        """Set configuration value."""
        keys = key.split('.')
        config = self.config

        for k in keys[:-1]:
            if k not in config:
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value

    # Property accessors for common configuration values
    @property
    def launch_speed(self) -> float:
        return self.config["drag"]["launch_speed"]

    @property
    def distance_source(self) -> str:
        return self.config["drag"]["distance_source"]

    @property
    def crossing_radius(self) -> float:
        return self.config["lap"]["crossing_radius"]

    @property
    def min_lap_time(self) -> float:
        return self.config["lap"]["min_lap_time"]

    @property
    def speed_unit(self) -> SpeedUnit:
        try:
            return SpeedUnit(self.config["speed_unit"])
        except ValueError as e:
            raise ConfigurationError(f"Unknown speed unit {self.config['speed_unit']!r}") from e

    @property
    def log_level(self) -> str:
        return self.config["log_level"]

    @property
    def log_file(self) -> Optional[str]:
        return self.config["log_file"]

    def estimator_config(self) -> EstimatorConfig:
        return EstimatorConfig.from_dict(self.config["estimator"])

    def gate_config(self) -> GateConfig:
        return GateConfig.from_dict(self.config["gps_gate"])

    def setup_logging(self):
        """Install log handlers for the configured level and file."""
        return setup_logging(self.log_level, self.log_file)

    def create_drag_session(self, target_speed: Optional[float] = None,
                            target_distance: Optional[float] = None,
                            on_finish: Optional[Callable[[RunMetrics], None]] = None) -> DragSession:
        """Build a drag session with a fresh estimator from this configuration."""
        return DragSession(
            target_speed=target_speed,
            target_distance=target_distance,
            launch_speed=self.launch_speed,
            distance_source=self.distance_source,
            estimator_config=self.estimator_config(),
            gate_config=self.gate_config(),
            on_finish=on_finish
        )

    def create_lap_session(self, track: Track,
                           on_finish: Optional[Callable[[LapRecord], None]] = None) -> LapSession:
        """Build a lap session with a fresh estimator from this configuration."""
        return LapSession(
            track,
            crossing_radius=self.crossing_radius,
            min_lap_time=self.min_lap_time,
            estimator_config=self.estimator_config(),
            gate_config=self.gate_config(),
            on_finish=on_finish
        )

    def print_config(self):
        """Print current configuration."""
        print("=== Speed Fusion Configuration ===")
        print(json.dumps(self.config, indent=2))
