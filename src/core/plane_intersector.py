"""
Plane Intersector

This module computes the reference line: the segment where the plane of a
source image crosses the rectangle of a destination image, expressed both in
patient space and in the destination's pixel space.

The source rectangle's four edges are walked in order (TL -> TR -> BR -> BL -> TL)
and each edge is intersected with the destination plane. A valid reference
line has exactly two crossings; anything else (parallel, tangent or
coincident planes) means no line.

Inputs:
    - Source ImageGeometry (plane to project)
    - Destination ImageGeometry (image the line is drawn on)

Outputs:
    - ReferenceSegment in destination pixel coordinates, or None

Requirements:
    - numpy for vector math
    - image_geometry for ImageGeometry
"""

from typing import List, Optional, Tuple
import numpy as np

from core.image_geometry import ORIENTATION_UNKNOWN, ImageGeometry
from utils.geometry_math import GEOMETRY_EPSILON, are_equal


class ReferenceSegment:
    """
    A reference line on the destination image.

    start_pixel/end_pixel are rounded (x, y) pixel positions; the patient-space
    endpoints are kept for diagnostics and tests.
    """

    def __init__(
        self,
        start_pixel: Tuple[int, int],
        end_pixel: Tuple[int, int],
        start_patient: Optional[np.ndarray] = None,
        end_patient: Optional[np.ndarray] = None,
    ):
        self.start_pixel = start_pixel
        self.end_pixel = end_pixel
        self.start_patient = start_patient
        self.end_patient = end_patient

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ReferenceSegment):
            return NotImplemented
        return self.start_pixel == other.start_pixel and self.end_pixel == other.end_pixel

    def __hash__(self) -> int:
        return hash((self.start_pixel, self.end_pixel))

    def __repr__(self) -> str:
        return f"ReferenceSegment({self.start_pixel} -> {self.end_pixel})"


def should_skip_pair(source: ImageGeometry, destination: ImageGeometry,
                     epsilon: float = GEOMETRY_EPSILON) -> bool:
    """
    Decide whether a source/destination pair can never produce a line.

    The intersector itself does not special-case coplanar views; callers use
    this check to avoid calling it for same-orientation pairs.

    Args:
        source: Source geometry
        destination: Destination geometry
        epsilon: Tolerance for the parallel-normal test

    Returns:
        True if either geometry is invalid, both share a known orientation,
        or their normals are parallel
    """
    if not source.is_valid or not destination.is_valid:
        return True
    if source.orientation == destination.orientation and source.orientation != ORIENTATION_UNKNOWN:
        return True
    alignment = abs(float(np.dot(source.normal, destination.normal)))
    return are_equal(alignment, 1.0, epsilon)


def intersect_image_planes(
    source: ImageGeometry,
    destination: ImageGeometry,
    epsilon: float = GEOMETRY_EPSILON,
) -> Optional[Tuple[np.ndarray, np.ndarray]]:
    """
    Intersect the destination plane with the edges of the source rectangle.

    Args:
        source: Geometry whose rectangle is projected
        destination: Geometry whose plane cuts the source rectangle
        epsilon: Edges whose endpoint distances differ by less than this are
            treated as parallel to the plane

    Returns:
        The two patient-space crossing points, or None unless there are
        exactly two crossings
    """
    if not source.is_valid or not destination.is_valid:
        return None

    plane_normal = destination.normal
    plane_point = destination.top_left

    corners = source.corners()
    distances = [float(np.dot(plane_normal, corner - plane_point)) for corner in corners]

    crossings: List[np.ndarray] = []
    for index in range(4):
        next_index = (index + 1) % 4
        n_a = distances[index]
        n_b = distances[next_index]
        if are_equal(n_a, n_b, epsilon):
            continue
        t = (0.0 - n_a) / (n_b - n_a)
        # t == 0 is the previous edge's t == 1, so each corner is counted once
        if 0.0 < t <= 1.0:
            point_a = corners[index]
            point_b = corners[next_index]
            crossings.append(point_a + (point_b - point_a) * t)

    if len(crossings) != 2:
        return None
    return (crossings[0], crossings[1])


def _to_pixel(destination: ImageGeometry, point: np.ndarray) -> Tuple[int, int]:
    """Project a patient-space point into destination pixels, rounded."""
    projected = destination.patient_to_image_point(point)
    return (int(round(float(projected[0]))), int(round(float(projected[1]))))


def compute_reference_segment(
    source: ImageGeometry,
    destination: ImageGeometry,
    epsilon: float = GEOMETRY_EPSILON,
) -> Optional[ReferenceSegment]:
    """
    Compute the reference line of source drawn on destination.

    Pure function of the two geometries; safe to call repeatedly.

    Args:
        source: Geometry of the active viewport's current slice
        destination: Geometry of the image the line is drawn on
        epsilon: Numeric tolerance

    Returns:
        ReferenceSegment in destination pixel space, or None if there is
        no valid intersection
    """
    points = intersect_image_planes(source, destination, epsilon)
    if points is None:
        return None

    start_patient, end_patient = points
    return ReferenceSegment(
        start_pixel=_to_pixel(destination, start_patient),
        end_pixel=_to_pixel(destination, end_patient),
        start_patient=start_patient,
        end_patient=end_patient,
    )
