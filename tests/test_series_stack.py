"""
Tests for series grouping and slice ordering (core.series_stack).
Runnable with pytest or unittest.
"""

import os
import sys
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from pydicom.dataset import Dataset

from core.series_stack import (
    build_viewport_states,
    get_series_orientation,
    group_by_series,
    sort_datasets_for_stack,
)

SAGITTAL_IOP = [0, 1, 0, 0, 0, -1]
AXIAL_IOP = [1, 0, 0, 0, 1, 0]
OBLIQUE_IOP = [0.7071068, 0.7071068, 0, 0, 0, -1]


def make_slice(series_uid, orientation, position=None, instance_number=None):
    ds = Dataset()
    ds.SeriesInstanceUID = series_uid
    ds.ImageOrientationPatient = orientation
    if position is not None:
        ds.ImagePositionPatient = position
    if instance_number is not None:
        ds.InstanceNumber = instance_number
    ds.PixelSpacing = [1, 1]
    ds.Rows = 10
    ds.Columns = 10
    return ds


class TestSeriesOrientation(unittest.TestCase):
    """Tests for get_series_orientation."""

    def test_classifies_sagittal_and_axial(self):
        self.assertEqual(get_series_orientation(make_slice("1", SAGITTAL_IOP)), "sagittal")
        self.assertEqual(get_series_orientation(make_slice("1", AXIAL_IOP)), "axial")

    def test_oblique_is_unknown(self):
        self.assertEqual(get_series_orientation(make_slice("1", OBLIQUE_IOP)), "unknown")

    def test_missing_orientation_is_unknown(self):
        self.assertEqual(get_series_orientation(Dataset()), "unknown")


class TestSortDatasets(unittest.TestCase):
    """Tests for sort_datasets_for_stack."""

    def test_sorted_along_normal(self):
        # Sagittal normal is -x, so larger x comes first
        items = [
            ("x3", make_slice("s", SAGITTAL_IOP, [3, 0, 10], 1)),
            ("x7", make_slice("s", SAGITTAL_IOP, [7, 0, 10], 2)),
            ("x5", make_slice("s", SAGITTAL_IOP, [5, 0, 10], 3)),
        ]
        ordered = [image_id for image_id, _ in sort_datasets_for_stack(items)]
        self.assertEqual(ordered, ["x7", "x5", "x3"])

    def test_unpositioned_slices_last_by_instance_number(self):
        items = [
            ("n2", make_slice("s", AXIAL_IOP, None, 2)),
            ("z1", make_slice("s", AXIAL_IOP, [0, 0, 1], 9)),
            ("n1", make_slice("s", AXIAL_IOP, None, 1)),
        ]
        ordered = [image_id for image_id, _ in sort_datasets_for_stack(items)]
        self.assertEqual(ordered, ["z1", "n1", "n2"])

    def test_empty(self):
        self.assertEqual(sort_datasets_for_stack([]), [])


class TestBuildViewportStates(unittest.TestCase):
    """Tests for group_by_series and build_viewport_states."""

    def setUp(self):
        self.datasets = {
            "ax_2": make_slice("ax", AXIAL_IOP, [0, 0, 2], 2),
            "sag_1": make_slice("sag", SAGITTAL_IOP, [1, 0, 10], 1),
            "ax_1": make_slice("ax", AXIAL_IOP, [0, 0, 1], 1),
            "obl_1": make_slice("obl", OBLIQUE_IOP, [0, 0, 0], 1),
            "ax_other": make_slice("ax2", AXIAL_IOP, [0, 0, 5], 1),
        }

    def test_group_by_series(self):
        groups = group_by_series(self.datasets)
        self.assertEqual(list(groups.keys()), ["ax", "sag", "obl", "ax2"])
        self.assertEqual([image_id for image_id, _ in groups["ax"]], ["ax_2", "ax_1"])

    def test_first_series_per_orientation(self):
        states = build_viewport_states(self.datasets)
        self.assertEqual(set(states.keys()), {"axial", "sagittal"})
        self.assertEqual(states["axial"].image_ids, ["ax_1", "ax_2"])
        self.assertEqual(states["sagittal"].current_image_id(), "sag_1")


if __name__ == "__main__":
    unittest.main()
