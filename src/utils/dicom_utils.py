"""
DICOM Utility Functions

This module provides the tag lookups the cross-reference engine needs from a
parsed DICOM dataset:
- Image Position (Patient) and Image Orientation (Patient)
- Pixel spacing (with Imager Pixel Spacing fallback)
- Matrix size (Rows / Columns)
- Instance number and series identifiers for stack ordering

Every getter enforces the exact value multiplicity of its tag and returns
None instead of raising when the tag is absent or malformed.

Inputs:
    - pydicom.Dataset objects

Outputs:
    - Plain Python floats/ints/tuples, or None

Requirements:
    - pydicom library
"""

from typing import List, Optional, Tuple
from pydicom.dataset import Dataset


def _get_float_values(dataset: Dataset, keyword: str, count: int) -> Optional[List[float]]:
    """
    Read a multi-valued numeric tag with an exact value multiplicity.

    Args:
        dataset: pydicom Dataset
        keyword: DICOM keyword (e.g. 'ImagePositionPatient')
        count: Required number of values

    Returns:
        List of floats, or None if the tag is missing, has the wrong arity
        or contains non-numeric values
    """
    if dataset is None or keyword not in dataset:
        return None
    try:
        raw = dataset.data_element(keyword).value
        if raw is None:
            return None
        # A single value comes back as a scalar rather than a MultiValue
        if isinstance(raw, (str, bytes)) or not hasattr(raw, '__len__'):
            raw = [raw]
        if len(raw) != count:
            return None
        return [float(v) for v in raw]
    except (TypeError, ValueError, AttributeError):
        return None


def _get_int(dataset: Dataset, keyword: str) -> Optional[int]:
    """Read a single integer tag, or None if absent or malformed."""
    if dataset is None or keyword not in dataset:
        return None
    try:
        value = dataset.data_element(keyword).value
        if value is None or value == '':
            return None
        return int(value)
    except (TypeError, ValueError):
        return None


def get_image_position(dataset: Dataset) -> Optional[Tuple[float, float, float]]:
    """
    Get ImagePositionPatient (0020,0032).

    Args:
        dataset: pydicom Dataset

    Returns:
        (X, Y, Z) of the top-left pixel centre in mm, or None if not available
    """
    values = _get_float_values(dataset, 'ImagePositionPatient', 3)
    if values is None:
        return None
    return (values[0], values[1], values[2])


def get_image_orientation(dataset: Dataset) -> Optional[Tuple[float, ...]]:
    """
    Get ImageOrientationPatient (0020,0037).

    Args:
        dataset: pydicom Dataset

    Returns:
        Six direction cosines (row cosine followed by column cosine), or None
    """
    values = _get_float_values(dataset, 'ImageOrientationPatient', 6)
    if values is None:
        return None
    return tuple(values)


def get_pixel_spacing(dataset: Dataset) -> Optional[Tuple[float, float]]:
    """
    Get pixel spacing from DICOM dataset.
    Checks Pixel Spacing (0028,0030) first and falls back to
    Imager Pixel Spacing (0018,1164).

    Args:
        dataset: pydicom Dataset

    Returns:
        Tuple of (row_spacing, column_spacing) in mm, or None if not available
    """
    for keyword in ('PixelSpacing', 'ImagerPixelSpacing'):
        values = _get_float_values(dataset, keyword, 2)
        if values is not None and values[0] > 0 and values[1] > 0:
            return (values[0], values[1])
    return None


def get_matrix_size(dataset: Dataset) -> Optional[Tuple[int, int]]:
    """
    Get the image matrix size.

    Args:
        dataset: pydicom Dataset

    Returns:
        Tuple of (rows, columns), or None if either is missing
    """
    rows = _get_int(dataset, 'Rows')
    columns = _get_int(dataset, 'Columns')
    if rows is None or columns is None:
        return None
    return (rows, columns)


def get_instance_number(dataset: Dataset) -> Optional[int]:
    """Get InstanceNumber (0020,0013), or None."""
    return _get_int(dataset, 'InstanceNumber')


def get_series_uid(dataset: Dataset) -> str:
    """Get SeriesInstanceUID as a string, empty if not present."""
    if dataset is None:
        return ""
    return str(getattr(dataset, 'SeriesInstanceUID', '') or '')
