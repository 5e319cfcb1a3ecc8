"""
Image Geometry

This module turns a single image's patient-space metadata into a 3D plane
description: direction cosines, slice normal, the four corners of the image
rectangle in patient coordinates and the affine transforms between pixel
space and patient space.

Inputs:
    - ImageMetadata records (position, orientation, pixel spacing, rows, columns)
    - pydicom.Dataset objects (via metadata_from_dataset)

Outputs:
    - ImageGeometry objects (check is_valid before use)
    - Orientation classification and directional markers

Requirements:
    - numpy for vector and matrix math
    - pydicom for Dataset type
    - dicom_utils for tag extraction
    - geometry_math for tolerant comparisons
"""

import math
from typing import Dict, Literal, Optional, Sequence, Tuple
import numpy as np
from pydicom.dataset import Dataset

from utils.dicom_utils import (
    get_image_orientation,
    get_image_position,
    get_matrix_size,
    get_pixel_spacing,
)
from utils.geometry_math import (
    GEOMETRY_EPSILON,
    are_equal,
    is_nearly_zero,
    make_read_only,
    normalize,
    transform_point,
)

Orientation = Literal["sagittal", "axial", "coronal", "unknown"]

ORIENTATION_SAGITTAL: Orientation = "sagittal"
ORIENTATION_AXIAL: Orientation = "axial"
ORIENTATION_CORONAL: Orientation = "coronal"
ORIENTATION_UNKNOWN: Orientation = "unknown"

# Dominant normal axis (x, y, z) -> anatomical plane
_AXIS_ORIENTATIONS: Tuple[Orientation, Orientation, Orientation] = (
    ORIENTATION_SAGITTAL,
    ORIENTATION_CORONAL,
    ORIENTATION_AXIAL,
)

_DIRECTIONAL_MARKERS: Dict[str, Dict[str, str]] = {
    ORIENTATION_SAGITTAL: {"top": "S", "bottom": "I", "left": "A", "right": "P"},
    ORIENTATION_AXIAL: {"top": "A", "bottom": "P", "left": "R", "right": "L"},
    ORIENTATION_CORONAL: {"top": "S", "bottom": "I", "left": "R", "right": "L"},
}


class ImageMetadata:
    """
    Geometry-relevant metadata of one image, as supplied by the DICOM parser.

    Any field may be None or malformed; build_image_geometry() decides
    whether the record is usable.
    """

    def __init__(
        self,
        position_patient: Optional[Sequence[float]] = None,
        orientation_patient: Optional[Sequence[float]] = None,
        pixel_spacing: Optional[Sequence[float]] = None,
        rows: Optional[int] = None,
        columns: Optional[int] = None,
    ):
        """
        Initialize the metadata record.

        Args:
            position_patient: ImagePositionPatient (3 values, mm)
            orientation_patient: ImageOrientationPatient (6 direction cosines)
            pixel_spacing: (row_spacing, column_spacing) in mm
            rows: Number of pixel rows
            columns: Number of pixel columns
        """
        self.position_patient = position_patient
        self.orientation_patient = orientation_patient
        self.pixel_spacing = pixel_spacing
        self.rows = rows
        self.columns = columns

    def __repr__(self) -> str:
        return (
            f"ImageMetadata(position_patient={self.position_patient}, "
            f"orientation_patient={self.orientation_patient}, "
            f"pixel_spacing={self.pixel_spacing}, rows={self.rows}, columns={self.columns})"
        )


class ImageGeometry:
    """
    Patient-space plane of one image.

    Built once per image id by build_image_geometry() and never mutated
    afterwards. Invalid geometries keep is_valid=False and carry no vectors.
    """

    def __init__(self, is_valid: bool = False, reason: str = ""):
        self.is_valid = is_valid
        # Why the geometry is invalid (empty when valid)
        self.reason = reason
        self.rows: int = 0
        self.columns: int = 0
        self.pixel_spacing: Tuple[float, float] = (0.0, 0.0)
        self.row_direction: Optional[np.ndarray] = None
        self.column_direction: Optional[np.ndarray] = None
        self.normal: Optional[np.ndarray] = None
        self.orientation: Orientation = ORIENTATION_UNKNOWN
        self.top_left: Optional[np.ndarray] = None
        self.top_right: Optional[np.ndarray] = None
        self.bottom_left: Optional[np.ndarray] = None
        self.bottom_right: Optional[np.ndarray] = None
        self.image_to_patient: Optional[np.ndarray] = None
        self.patient_to_image: Optional[np.ndarray] = None

    @property
    def origin(self) -> Optional[np.ndarray]:
        """Top-left corner in patient space (ImagePositionPatient)."""
        return self.top_left

    def corners(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """
        Get the image rectangle corners in edge-walk order.

        Returns:
            (top_left, top_right, bottom_right, bottom_left)
        """
        return (self.top_left, self.top_right, self.bottom_right, self.bottom_left)

    def image_to_patient_point(self, x: float, y: float) -> np.ndarray:
        """
        Map a pixel position (column x, row y) to patient coordinates.

        Args:
            x: Column position in pixels
            y: Row position in pixels

        Returns:
            (X, Y, Z) in mm
        """
        return transform_point(self.image_to_patient, (x, y, 0.0))

    def patient_to_image_point(self, point: Sequence[float]) -> np.ndarray:
        """
        Map a patient-space point into this image's pixel space.

        The third component is the distance from the image plane in mm.

        Args:
            point: (X, Y, Z) in mm

        Returns:
            (x, y, distance) array
        """
        return transform_point(self.patient_to_image, point)

    def __repr__(self) -> str:
        if not self.is_valid:
            return f"ImageGeometry(invalid: {self.reason})"
        return (
            f"ImageGeometry({self.orientation}, {self.rows}x{self.columns}, "
            f"origin={self.top_left.tolist()})"
        )


def classify_orientation(normal: Sequence[float], epsilon: float = GEOMETRY_EPSILON) -> Orientation:
    """
    Classify a slice normal by its dominant axis.

    Args:
        normal: Slice normal (row cosine x column cosine)
        epsilon: Tolerance for near-zero and tie comparisons

    Returns:
        "sagittal" (x), "coronal" (y), "axial" (z), or "unknown" when the
        normal is near zero or two components tie for the largest magnitude
    """
    magnitudes = [abs(float(v)) for v in normal]
    if len(magnitudes) != 3:
        return ORIENTATION_UNKNOWN

    dominant = max(range(3), key=lambda i: magnitudes[i])
    largest = magnitudes[dominant]
    if is_nearly_zero(largest, epsilon):
        return ORIENTATION_UNKNOWN

    for axis in range(3):
        if axis != dominant and are_equal(magnitudes[axis], largest, epsilon):
            return ORIENTATION_UNKNOWN

    return _AXIS_ORIENTATIONS[dominant]


def get_directional_markers(orientation: str) -> Dict[str, str]:
    """
    Get the patient-direction letters shown at the viewport edges.

    Args:
        orientation: "sagittal", "axial" or "coronal" (case-insensitive)

    Returns:
        Dict with 'top', 'bottom', 'left', 'right' letters (empty for unknown)
    """
    markers = _DIRECTIONAL_MARKERS.get(str(orientation).lower())
    if markers is None:
        return {"top": "", "bottom": "", "left": "", "right": ""}
    return dict(markers)


def _as_float_vector(values: Optional[Sequence[float]], count: int) -> Optional[np.ndarray]:
    """Convert a metadata field to a finite float array of exact length, or None."""
    if values is None:
        return None
    try:
        if len(values) != count:
            return None
        array = np.array([float(v) for v in values], dtype=float)
    except (TypeError, ValueError):
        return None
    if not np.all(np.isfinite(array)):
        return None
    return array


def _as_positive_int(value) -> Optional[int]:
    """Convert rows/columns to a positive int, or None."""
    try:
        if value is None or isinstance(value, bool):
            return None
        as_float = float(value)
        if not math.isfinite(as_float) or as_float != int(as_float):
            return None
        as_int = int(as_float)
    except (TypeError, ValueError):
        return None
    return as_int if as_int > 0 else None


def _invalid(reason: str) -> ImageGeometry:
    """Report and return an invalid geometry."""
    print(f"Warning: Cannot build image geometry: {reason}")
    return ImageGeometry(is_valid=False, reason=reason)


def build_image_geometry(metadata: ImageMetadata, epsilon: float = GEOMETRY_EPSILON) -> ImageGeometry:
    """
    Build the patient-space geometry of one image.

    Never raises for missing or malformed metadata; the returned geometry
    has is_valid=False instead. Callers must check is_valid before use.

    Args:
        metadata: Image metadata record (must not be None)
        epsilon: Tolerance for degenerate-vector and determinant checks

    Returns:
        ImageGeometry
    """
    assert metadata is not None, "build_image_geometry() requires a metadata record"

    position = _as_float_vector(metadata.position_patient, 3)
    if position is None:
        return _invalid("ImagePositionPatient missing or malformed")

    orientation = _as_float_vector(metadata.orientation_patient, 6)
    if orientation is None:
        return _invalid("ImageOrientationPatient missing or malformed")

    spacing = _as_float_vector(metadata.pixel_spacing, 2)
    if spacing is None or spacing[0] <= 0 or spacing[1] <= 0:
        return _invalid("PixelSpacing missing or malformed")

    rows = _as_positive_int(metadata.rows)
    columns = _as_positive_int(metadata.columns)
    if rows is None or columns is None:
        return _invalid("Rows/Columns missing or malformed")

    # Normalising absorbs small rounding errors in the stored cosines
    row_direction = normalize(orientation[:3], epsilon)
    column_direction = normalize(orientation[3:], epsilon)
    if row_direction is None or column_direction is None:
        return _invalid("ImageOrientationPatient has a zero-length direction")

    normal = normalize(np.cross(row_direction, column_direction), epsilon)
    if normal is None:
        return _invalid("ImageOrientationPatient row and column directions are parallel")

    row_spacing, column_spacing = float(spacing[0]), float(spacing[1])

    top_left = position
    top_right = top_left + row_direction * column_spacing * columns
    bottom_left = top_left + column_direction * row_spacing * rows
    bottom_right = bottom_left + (top_right - top_left)

    image_to_patient = np.identity(4)
    image_to_patient[:3, 0] = row_direction * column_spacing
    image_to_patient[:3, 1] = column_direction * row_spacing
    image_to_patient[:3, 2] = normal
    image_to_patient[:3, 3] = top_left

    if is_nearly_zero(float(np.linalg.det(image_to_patient)), epsilon):
        return _invalid("image-to-patient transform is singular")
    patient_to_image = np.linalg.inv(image_to_patient)

    geometry = ImageGeometry(is_valid=True)
    geometry.rows = rows
    geometry.columns = columns
    geometry.pixel_spacing = (row_spacing, column_spacing)
    geometry.row_direction = make_read_only(row_direction)
    geometry.column_direction = make_read_only(column_direction)
    geometry.normal = make_read_only(normal)
    geometry.orientation = classify_orientation(normal, epsilon)
    geometry.top_left = make_read_only(top_left)
    geometry.top_right = make_read_only(top_right)
    geometry.bottom_left = make_read_only(bottom_left)
    geometry.bottom_right = make_read_only(bottom_right)
    geometry.image_to_patient = make_read_only(image_to_patient)
    geometry.patient_to_image = make_read_only(patient_to_image)
    return geometry


def metadata_from_dataset(dataset: Dataset) -> ImageMetadata:
    """
    Extract the geometry-relevant tags from a parsed DICOM dataset.

    Args:
        dataset: pydicom Dataset (must not be None)

    Returns:
        ImageMetadata with None for every tag that is absent or malformed
    """
    assert dataset is not None, "metadata_from_dataset() requires a dataset"

    matrix_size = get_matrix_size(dataset)
    rows, columns = matrix_size if matrix_size is not None else (None, None)
    return ImageMetadata(
        position_patient=get_image_position(dataset),
        orientation_patient=get_image_orientation(dataset),
        pixel_spacing=get_pixel_spacing(dataset),
        rows=rows,
        columns=columns,
    )
