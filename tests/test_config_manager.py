"""
Tests for ConfigManager reference line and measurement settings.

Covers defaults, get/set round-trip, clamping and persistence.
Uses a dedicated test config filename to avoid overwriting user config; cleans up after tests.
"""

import os
import sys
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from utils.config_manager import ConfigManager


TEST_CONFIG_FILENAME = "mpr_crossref_config_test.json"


class TestCrossReferenceConfig(unittest.TestCase):
    """Tests for the cross-reference config keys and getters/setters."""

    def setUp(self):
        """Create a ConfigManager using a test config file."""
        self.config = ConfigManager(config_filename=TEST_CONFIG_FILENAME)
        self.config_path = self.config.config_path
        if self.config_path.exists():
            self.config_path.unlink()
            self.config = ConfigManager(config_filename=TEST_CONFIG_FILENAME)

    def tearDown(self):
        """Remove test config file if it was created."""
        if self.config_path.exists():
            try:
                self.config_path.unlink()
            except OSError:
                pass

    def test_defaults(self):
        self.assertFalse(self.config.get_reference_lines_enabled())
        self.assertEqual(self.config.get_reference_line_color(), (255, 0, 0, 204))
        self.assertEqual(self.config.get_reference_line_thickness(), 1.5)
        self.assertEqual(self.config.get_geometry_epsilon(), 1e-9)
        self.assertEqual(self.config.get_pelvic_consistency_tolerance(), 2.0)
        self.assertEqual(self.config.get_pelvic_update_throttle_ms(), 100)

    def test_enabled_persists_across_instances(self):
        """Setting a value should be written to disk and read back by a new manager."""
        self.config.set_reference_lines_enabled(True)
        reloaded = ConfigManager(config_filename=TEST_CONFIG_FILENAME)
        self.assertTrue(reloaded.get_reference_lines_enabled())

    def test_color_is_clamped(self):
        self.config.set_reference_line_color(300, -5, 10, 128)
        self.assertEqual(self.config.get_reference_line_color(), (255, 0, 10, 128))

    def test_thickness_minimum(self):
        self.config.set_reference_line_thickness(0.1)
        self.assertEqual(self.config.get_reference_line_thickness(), 0.5)

    def test_non_positive_epsilon_ignored(self):
        self.config.set_geometry_epsilon(0)
        self.assertEqual(self.config.get_geometry_epsilon(), 1e-9)
        self.config.set_geometry_epsilon(1e-6)
        self.assertEqual(self.config.get_geometry_epsilon(), 1e-6)

    def test_unusable_stored_epsilon_falls_back(self):
        self.config.set("geometry_epsilon", "abc")
        self.assertEqual(self.config.get_geometry_epsilon(), 1e-9)

    def test_tolerance_and_throttle_not_negative(self):
        self.config.set_pelvic_consistency_tolerance(-1)
        self.config.set_pelvic_update_throttle_ms(-20)
        self.assertEqual(self.config.get_pelvic_consistency_tolerance(), 0.0)
        self.assertEqual(self.config.get_pelvic_update_throttle_ms(), 0)

    def test_corrupted_file_uses_defaults(self):
        with open(self.config_path, "w", encoding="utf-8") as f:
            f.write("{not json")
        reloaded = ConfigManager(config_filename=TEST_CONFIG_FILENAME)
        self.assertEqual(reloaded.get_reference_line_thickness(), 1.5)


if __name__ == "__main__":
    unittest.main()
