"""
Configuration Manager

This module handles persistent storage and retrieval of the cross-reference
engine's settings. Settings are stored in a JSON file in the user's
application data directory.

Inputs:
    - User preferences (reference line toggle and style)
    - Numeric tolerances (geometry epsilon, pelvic consistency tolerance)
    - Measurement update throttle interval

Outputs:
    - Loaded configuration values
    - Saved configuration file

Requirements:
    - json module (standard library)
    - pathlib module (standard library)
    - os module (standard library)
"""

import json
import os
from pathlib import Path
from typing import Any, Dict


class ConfigManager:
    """
    Manages application configuration and user preferences.

    Handles loading and saving of settings including:
    - Reference line visibility, colour and thickness
    - Geometry epsilon used for near-zero and equality tests
    - Pelvic parameter consistency tolerance (degrees)
    - Pelvic parameter update throttle (milliseconds)
    """

    def __init__(self, config_filename: str = "mpr_crossref_config.json"):
        """
        Initialize the configuration manager.

        Args:
            config_filename: Name of the configuration file to use
        """
        # Get application data directory
        if os.name == 'nt':  # Windows
            app_data = os.getenv('APPDATA', os.path.expanduser('~'))
            self.config_dir = Path(app_data) / "MPRCrossReference"
        else:  # Mac/Linux
            self.config_dir = Path.home() / ".config" / "MPRCrossReference"

        # Create config directory if it doesn't exist
        self.config_dir.mkdir(parents=True, exist_ok=True)

        # Full path to config file
        self.config_path = self.config_dir / config_filename

        # Default configuration values
        self.default_config = {
            "reference_lines_enabled": False,
            "reference_line_color_r": 255,  # Red default
            "reference_line_color_g": 0,
            "reference_line_color_b": 0,
            "reference_line_color_a": 204,  # 80% opacity
            "reference_line_thickness": 1.5,  # Viewport pixels (cosmetic pen)
            "geometry_epsilon": 1e-9,
            "pelvic_consistency_tolerance_deg": 2.0,  # Allowed |PI - (PT + SS)|
            "pelvic_update_throttle_ms": 100,  # Coalescing window for handle drags
        }

        # Load configuration
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """
        Load configuration from file, or return defaults if file doesn't exist.

        Returns:
            Dictionary containing configuration values
        """
        if self.config_path.exists():
            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    loaded_config = json.load(f)
                    # Merge with defaults to ensure all keys exist
                    config = self.default_config.copy()
                    config.update(loaded_config)
                    return config
            except (json.JSONDecodeError, IOError) as e:
                # If file is corrupted, use defaults
                print(f"Warning: Could not load config file: {e}")
                return self.default_config.copy()
        else:
            return self.default_config.copy()

    def save_config(self) -> bool:
        """
        Save current configuration to file.

        Returns:
            True if save was successful, False otherwise
        """
        try:
            with open(self.config_path, 'w', encoding='utf-8') as f:
                json.dump(self.config, f, indent=4, ensure_ascii=False)
            return True
        except IOError as e:
            print(f"Error saving config file: {e}")
            return False

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            key: Configuration key to retrieve
            default: Default value if key doesn't exist

        Returns:
            Configuration value or default
        """
        return self.config.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """
        Set a configuration value.

        Args:
            key: Configuration key to set
            value: Value to set
        """
        self.config[key] = value

    def get_reference_lines_enabled(self) -> bool:
        """Get whether reference lines are shown on startup."""
        return bool(self.config.get("reference_lines_enabled", False))

    def set_reference_lines_enabled(self, enabled: bool) -> None:
        """Set whether reference lines are shown on startup."""
        self.config["reference_lines_enabled"] = bool(enabled)
        self.save_config()

    def get_reference_line_color(self) -> tuple:
        """
        Get reference line colour.

        Returns:
            Tuple of (r, g, b, a) values (0-255)
        """
        return (
            self.config.get("reference_line_color_r", 255),
            self.config.get("reference_line_color_g", 0),
            self.config.get("reference_line_color_b", 0),
            self.config.get("reference_line_color_a", 204),
        )

    def set_reference_line_color(self, r: int, g: int, b: int, a: int = 204) -> None:
        """
        Set reference line colour.

        Args:
            r: Red component (0-255)
            g: Green component (0-255)
            b: Blue component (0-255)
            a: Alpha component (0-255)
        """
        self.config["reference_line_color_r"] = max(0, min(255, r))
        self.config["reference_line_color_g"] = max(0, min(255, g))
        self.config["reference_line_color_b"] = max(0, min(255, b))
        self.config["reference_line_color_a"] = max(0, min(255, a))
        self.save_config()

    def get_reference_line_thickness(self) -> float:
        """Get reference line width in viewport pixels."""
        return float(self.config.get("reference_line_thickness", 1.5))

    def set_reference_line_thickness(self, thickness: float) -> None:
        """Set reference line width in viewport pixels (minimum 0.5)."""
        self.config["reference_line_thickness"] = max(0.5, float(thickness))
        self.save_config()

    def get_geometry_epsilon(self) -> float:
        """
        Get the tolerance used for near-zero and equality tests.

        Returns:
            Epsilon, falling back to 1e-9 for unusable stored values
        """
        try:
            epsilon = float(self.config.get("geometry_epsilon", 1e-9))
        except (TypeError, ValueError):
            return 1e-9
        return epsilon if epsilon > 0 else 1e-9

    def set_geometry_epsilon(self, epsilon: float) -> None:
        """Set the geometry epsilon (must be positive)."""
        if epsilon > 0:
            self.config["geometry_epsilon"] = float(epsilon)
            self.save_config()

    def get_pelvic_consistency_tolerance(self) -> float:
        """Get the allowed |PI - (PT + SS)| in degrees."""
        return float(self.config.get("pelvic_consistency_tolerance_deg", 2.0))

    def set_pelvic_consistency_tolerance(self, tolerance_deg: float) -> None:
        """Set the allowed |PI - (PT + SS)| in degrees (not negative)."""
        self.config["pelvic_consistency_tolerance_deg"] = max(0.0, float(tolerance_deg))
        self.save_config()

    def get_pelvic_update_throttle_ms(self) -> int:
        """Get the pelvic parameter recompute coalescing window in ms."""
        return int(self.config.get("pelvic_update_throttle_ms", 100))

    def set_pelvic_update_throttle_ms(self, interval_ms: int) -> None:
        """Set the pelvic parameter recompute coalescing window in ms (not negative)."""
        self.config["pelvic_update_throttle_ms"] = max(0, int(interval_ms))
        self.save_config()
