"""
Tests for image geometry construction (core.image_geometry).

Covers validity checks on malformed metadata, corner placement, orientation
classification, pixel <-> patient transforms and dataset extraction.
Runnable with pytest or unittest.
"""

import math
import os
import sys
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import numpy as np
from pydicom.dataset import Dataset

from core.image_geometry import (
    ORIENTATION_AXIAL,
    ORIENTATION_CORONAL,
    ORIENTATION_SAGITTAL,
    ORIENTATION_UNKNOWN,
    ImageMetadata,
    build_image_geometry,
    classify_orientation,
    get_directional_markers,
    metadata_from_dataset,
)


def _axial_metadata(z=5.0):
    return ImageMetadata((0.0, 0.0, z), (1, 0, 0, 0, 1, 0), (1.0, 1.0), 10, 10)


class TestBuildImageGeometry(unittest.TestCase):
    """Tests for build_image_geometry."""

    def test_axial_corners(self):
        geometry = build_image_geometry(ImageMetadata((0, 0, 5), (1, 0, 0, 0, 1, 0), (2.0, 0.5), 4, 8))
        self.assertTrue(geometry.is_valid)
        self.assertEqual(geometry.orientation, ORIENTATION_AXIAL)
        # Columns step along the row direction by column spacing (0.5 mm)
        np.testing.assert_allclose(geometry.top_right, [4.0, 0.0, 5.0])
        # Rows step along the column direction by row spacing (2.0 mm)
        np.testing.assert_allclose(geometry.bottom_left, [0.0, 8.0, 5.0])
        np.testing.assert_allclose(geometry.bottom_right, [4.0, 8.0, 5.0])
        np.testing.assert_allclose(geometry.normal, [0.0, 0.0, 1.0])

    def test_corners_in_walk_order(self):
        geometry = build_image_geometry(_axial_metadata())
        corners = geometry.corners()
        np.testing.assert_allclose(corners[0], geometry.top_left)
        np.testing.assert_allclose(corners[1], geometry.top_right)
        np.testing.assert_allclose(corners[2], geometry.bottom_right)
        np.testing.assert_allclose(corners[3], geometry.bottom_left)

    def test_vectors_are_read_only(self):
        geometry = build_image_geometry(_axial_metadata())
        with self.assertRaises(ValueError):
            geometry.normal[0] = 2.0

    def test_missing_position_is_invalid(self):
        geometry = build_image_geometry(ImageMetadata(None, (1, 0, 0, 0, 1, 0), (1, 1), 10, 10))
        self.assertFalse(geometry.is_valid)
        self.assertIn("ImagePositionPatient", geometry.reason)

    def test_five_cosines_is_invalid(self):
        geometry = build_image_geometry(ImageMetadata((0, 0, 0), (1, 0, 0, 0, 1), (1, 1), 10, 10))
        self.assertFalse(geometry.is_valid)

    def test_zero_spacing_is_invalid(self):
        geometry = build_image_geometry(ImageMetadata((0, 0, 0), (1, 0, 0, 0, 1, 0), (0, 1), 10, 10))
        self.assertFalse(geometry.is_valid)

    def test_zero_rows_is_invalid(self):
        geometry = build_image_geometry(ImageMetadata((0, 0, 0), (1, 0, 0, 0, 1, 0), (1, 1), 0, 10))
        self.assertFalse(geometry.is_valid)

    def test_parallel_directions_are_invalid(self):
        geometry = build_image_geometry(ImageMetadata((0, 0, 0), (1, 0, 0, 1, 0, 0), (1, 1), 10, 10))
        self.assertFalse(geometry.is_valid)

    def test_zero_direction_is_invalid(self):
        geometry = build_image_geometry(ImageMetadata((0, 0, 0), (0, 0, 0, 0, 1, 0), (1, 1), 10, 10))
        self.assertFalse(geometry.is_valid)

    def test_slightly_non_unit_cosines_are_normalised(self):
        geometry = build_image_geometry(ImageMetadata((0, 0, 0), (1.0001, 0, 0, 0, 0.9999, 0), (1, 1), 10, 10))
        self.assertTrue(geometry.is_valid)
        self.assertAlmostEqual(float(np.linalg.norm(geometry.row_direction)), 1.0)

    def test_none_metadata_is_rejected(self):
        with self.assertRaises(AssertionError):
            build_image_geometry(None)

    def test_round_trip_on_oblique_plane(self):
        angle = math.radians(30)
        metadata = ImageMetadata(
            (-50.0, 20.0, 7.5),
            (math.cos(angle), math.sin(angle), 0, 0, 0, -1),
            (0.8, 1.2),
            64,
            48,
        )
        geometry = build_image_geometry(metadata)
        self.assertTrue(geometry.is_valid)
        for x, y in [(0, 0), (12.5, 40.0), (47, 63)]:
            patient = geometry.image_to_patient_point(x, y)
            back = geometry.patient_to_image_point(patient)
            self.assertAlmostEqual(float(back[0]), x, places=6)
            self.assertAlmostEqual(float(back[1]), y, places=6)
            self.assertAlmostEqual(float(back[2]), 0.0, places=6)

    def test_pixel_origin_is_top_left(self):
        geometry = build_image_geometry(_axial_metadata(z=-3.0))
        np.testing.assert_allclose(geometry.image_to_patient_point(0, 0), [0.0, 0.0, -3.0])


class TestClassifyOrientation(unittest.TestCase):
    """Tests for classify_orientation."""

    def test_dominant_axis(self):
        self.assertEqual(classify_orientation((0.99, 0.01, 0.01)), ORIENTATION_SAGITTAL)
        self.assertEqual(classify_orientation((0.01, -0.99, 0.01)), ORIENTATION_CORONAL)
        self.assertEqual(classify_orientation((0.0, 0.1, -0.9)), ORIENTATION_AXIAL)

    def test_tie_is_unknown(self):
        self.assertEqual(classify_orientation((0.5, 0.5, 0.5)), ORIENTATION_UNKNOWN)
        self.assertEqual(classify_orientation((-0.7, 0.7, 0.0)), ORIENTATION_UNKNOWN)

    def test_near_equal_but_distinct_is_classified(self):
        self.assertEqual(classify_orientation((0.58, 0.57, 0.57)), ORIENTATION_SAGITTAL)

    def test_zero_normal_is_unknown(self):
        self.assertEqual(classify_orientation((0.0, 0.0, 0.0)), ORIENTATION_UNKNOWN)


class TestDirectionalMarkers(unittest.TestCase):
    """Tests for get_directional_markers."""

    def test_axial_markers(self):
        self.assertEqual(
            get_directional_markers("axial"),
            {"top": "A", "bottom": "P", "left": "R", "right": "L"},
        )

    def test_case_insensitive(self):
        self.assertEqual(get_directional_markers("Sagittal")["top"], "S")

    def test_unknown_is_blank(self):
        self.assertEqual(set(get_directional_markers("oblique").values()), {""})


class TestMetadataFromDataset(unittest.TestCase):
    """Tests for metadata_from_dataset."""

    def test_extracts_geometry_tags(self):
        ds = Dataset()
        ds.ImagePositionPatient = [1, 2, 3]
        ds.ImageOrientationPatient = [0, 1, 0, 0, 0, -1]
        ds.PixelSpacing = [0.5, 0.5]
        ds.Rows = 20
        ds.Columns = 30
        metadata = metadata_from_dataset(ds)
        self.assertEqual(metadata.position_patient, (1.0, 2.0, 3.0))
        self.assertEqual(metadata.rows, 20)
        self.assertEqual(metadata.columns, 30)
        geometry = build_image_geometry(metadata)
        self.assertTrue(geometry.is_valid)
        self.assertEqual(geometry.orientation, ORIENTATION_SAGITTAL)

    def test_empty_dataset_gives_invalid_geometry(self):
        metadata = metadata_from_dataset(Dataset())
        self.assertIsNone(metadata.position_patient)
        self.assertIsNone(metadata.rows)
        self.assertFalse(build_image_geometry(metadata).is_valid)


if __name__ == "__main__":
    unittest.main()
