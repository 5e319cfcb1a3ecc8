"""
Series Stack Builder

This module turns a set of parsed DICOM images into the per-viewport image
stacks the cross-reference controller works on: images are grouped by series,
each series is classified as sagittal/axial/coronal from its orientation
cosines, and slices are ordered along the slice normal.

Inputs:
    - Mapping of image id -> pydicom Dataset

Outputs:
    - Ordered image stacks (ViewportState) keyed by orientation

Requirements:
    - numpy for slice position projection
    - pydicom for Dataset type
    - dicom_utils for tag lookups
"""

from typing import Dict, List, Optional, Tuple
import numpy as np
from pydicom.dataset import Dataset

from core.cross_reference_controller import VIEWPORT_ORIENTATIONS, ViewportState
from core.image_geometry import ORIENTATION_UNKNOWN, classify_orientation
from utils.dicom_utils import (
    get_image_orientation,
    get_image_position,
    get_instance_number,
    get_series_uid,
)


def _slice_normal(dataset: Dataset) -> Optional[np.ndarray]:
    """Cross product of the row and column cosines, or None."""
    orientation = get_image_orientation(dataset)
    if orientation is None:
        return None
    return np.cross(np.array(orientation[:3]), np.array(orientation[3:]))


def get_series_orientation(dataset: Dataset) -> str:
    """
    Classify the plane of an image from ImageOrientationPatient.

    Args:
        dataset: pydicom Dataset

    Returns:
        "sagittal", "axial", "coronal" or "unknown"
    """
    normal = _slice_normal(dataset)
    if normal is None:
        return ORIENTATION_UNKNOWN
    return classify_orientation(normal)


def _sort_key(dataset: Dataset, normal: Optional[np.ndarray]) -> Tuple[int, float, int]:
    """
    Sort key placing slices along the normal, then by InstanceNumber.

    Slices without a usable position sort after positioned ones.
    """
    instance_number = get_instance_number(dataset)
    instance_key = instance_number if instance_number is not None else 0
    position = get_image_position(dataset)
    if normal is None or position is None:
        return (1, 0.0, instance_key)
    return (0, float(np.dot(normal, np.array(position))), instance_key)


def sort_datasets_for_stack(items: List[Tuple[str, Dataset]]) -> List[Tuple[str, Dataset]]:
    """
    Order the images of one series for scrolling.

    Args:
        items: (image_id, dataset) pairs of one series

    Returns:
        Pairs sorted by position along the slice normal, falling back to
        InstanceNumber
    """
    if not items:
        return []
    normal = None
    for _, dataset in items:
        normal = _slice_normal(dataset)
        if normal is not None:
            break
    return sorted(items, key=lambda item: _sort_key(item[1], normal))


def group_by_series(datasets_by_id: Dict[str, Dataset]) -> Dict[str, List[Tuple[str, Dataset]]]:
    """
    Group images by SeriesInstanceUID, keeping first-seen series order.

    Args:
        datasets_by_id: Mapping of image id -> Dataset

    Returns:
        Mapping of series UID -> (image_id, dataset) pairs
    """
    series: Dict[str, List[Tuple[str, Dataset]]] = {}
    for image_id, dataset in datasets_by_id.items():
        series.setdefault(get_series_uid(dataset), []).append((image_id, dataset))
    return series


def build_viewport_states(datasets_by_id: Dict[str, Dataset]) -> Dict[str, ViewportState]:
    """
    Build one image stack per MPR orientation.

    When several series share an orientation the first one wins; series of
    unknown orientation are not assigned.

    Args:
        datasets_by_id: Mapping of image id -> Dataset for one study

    Returns:
        Mapping of orientation -> ViewportState (only orientations found)
    """
    states: Dict[str, ViewportState] = {}
    for series_uid, items in group_by_series(datasets_by_id).items():
        orientation = get_series_orientation(items[0][1])
        if orientation not in VIEWPORT_ORIENTATIONS:
            print(f"Warning: Series {series_uid or '<no uid>'} has no MPR orientation; skipped")
            continue
        if orientation in states:
            continue
        ordered = sort_datasets_for_stack(items)
        states[orientation] = ViewportState(orientation, [image_id for image_id, _ in ordered])
    return states
