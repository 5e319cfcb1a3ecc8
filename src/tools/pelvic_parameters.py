"""
Pelvic Parameter Calculations

This module computes the spino-pelvic angles from four points placed on a
sagittal image:
- Sacral Slope (SS): sacral endplate line vs. the horizontal
- Pelvic Tilt (PT): sacral midpoint -> femoral head line vs. the vertical
- Pelvic Incidence (PI): perpendicular to the sacral endplate vs. the
  sacral midpoint -> femoral head line

and checks the geometric relationship PI = PT + SS within a tolerance.

All calculations are pure functions of pixel coordinates (x to the right,
y downwards). PelvicMeasurement holds the handles and the lazily recomputed
result; drawing is left to the rendering layer.

Inputs:
    - Handle positions in image pixel coordinates

Outputs:
    - PelvicParameters (ss, pt, pi rounded to 0.1 degree, is_valid)
    - Label text for on-canvas display

Requirements:
    - math module (standard library)
"""

import math
from typing import Dict, Optional, Tuple

Point = Tuple[float, float]

# Handles in placement order
FEMORAL_HEAD = "femoral_head"
SACRAL_MIDPOINT = "sacral_midpoint"
SACRAL_LINE_START = "sacral_line_start"
SACRAL_LINE_END = "sacral_line_end"
HANDLE_NAMES = (FEMORAL_HEAD, SACRAL_MIDPOINT, SACRAL_LINE_START, SACRAL_LINE_END)

# Allowed |PI - (PT + SS)| in degrees
DEFAULT_CONSISTENCY_TOLERANCE_DEG = 2.0


def angle_to_horizontal(point1: Point, point2: Point) -> float:
    """
    Signed angle of point1 -> point2 from the positive x axis.

    Args:
        point1: Start (x, y)
        point2: End (x, y)

    Returns:
        Angle in degrees (-180, 180]; positive is clockwise on screen
    """
    dx = point2[0] - point1[0]
    dy = point2[1] - point1[1]
    return math.degrees(math.atan2(dy, dx))


def angle_to_vertical(point1: Point, point2: Point) -> float:
    """
    Signed angle of point1 -> point2 from straight up (negative y).

    Args:
        point1: Start (x, y)
        point2: End (x, y)

    Returns:
        Angle in degrees (-180, 180]; positive is clockwise from vertical
    """
    dx = point2[0] - point1[0]
    dy = point2[1] - point1[1]
    return math.degrees(math.atan2(dx, -dy))


def fold_to_line_angle(angle_deg: float) -> float:
    """
    Reduce a direction angle to the angle between two lines.

    A line has no direction, so 160 degrees and 20 degrees describe the same
    inclination.

    Args:
        angle_deg: Any angle in degrees

    Returns:
        Angle in [0, 90]
    """
    reduced = abs(angle_deg) % 180.0
    return min(reduced, 180.0 - reduced)


def perpendicular(line_start: Point, line_end: Point) -> Point:
    """
    Unit vector perpendicular to a line (rotated 90 degrees).

    Args:
        line_start: (x, y)
        line_end: (x, y)

    Returns:
        Normalised (x, y), or (0, 0) for a zero-length line
    """
    dx = line_end[0] - line_start[0]
    dy = line_end[1] - line_start[1]
    length = math.hypot(dx, dy)
    if length == 0:
        return (0.0, 0.0)
    return (-dy / length, dx / length)


def midpoint(point1: Point, point2: Point) -> Point:
    """Midpoint of two points."""
    return ((point1[0] + point2[0]) / 2.0, (point1[1] + point2[1]) / 2.0)


def angle_between_vectors(vector1: Point, vector2: Point) -> float:
    """
    Unsigned angle between two vectors.

    Args:
        vector1: (x, y)
        vector2: (x, y)

    Returns:
        Angle in degrees [0, 180]; 0 if either vector has zero length
    """
    magnitude1 = math.hypot(vector1[0], vector1[1])
    magnitude2 = math.hypot(vector2[0], vector2[1])
    if magnitude1 == 0 or magnitude2 == 0:
        return 0.0

    cos_angle = (vector1[0] * vector2[0] + vector1[1] * vector2[1]) / (magnitude1 * magnitude2)
    # Rounding can push the cosine just outside acos' domain
    cos_angle = max(-1.0, min(1.0, cos_angle))
    return math.degrees(math.acos(cos_angle))


def sacral_slope(sacral_line_start: Point, sacral_line_end: Point) -> float:
    """Sacral Slope in degrees [0, 90]."""
    return fold_to_line_angle(angle_to_horizontal(sacral_line_start, sacral_line_end))


def pelvic_tilt(sacral_midpoint: Point, femoral_head: Point) -> float:
    """Pelvic Tilt in degrees [0, 90]."""
    return fold_to_line_angle(angle_to_vertical(sacral_midpoint, femoral_head))


def pelvic_incidence(sacral_line_start: Point, sacral_line_end: Point,
                     sacral_midpoint: Point, femoral_head: Point) -> float:
    """
    Pelvic Incidence in degrees [0, 90].

    Args:
        sacral_line_start: Sacral endplate start (x, y)
        sacral_line_end: Sacral endplate end (x, y)
        sacral_midpoint: Sacral endplate midpoint (x, y)
        femoral_head: Femoral head centre (x, y)

    Returns:
        Angle between the endplate perpendicular and the line to the femoral head
    """
    normal = perpendicular(sacral_line_start, sacral_line_end)
    to_femoral_head = (femoral_head[0] - sacral_midpoint[0], femoral_head[1] - sacral_midpoint[1])
    return fold_to_line_angle(angle_between_vectors(normal, to_femoral_head))


class PelvicParameters:
    """Result of one pelvic parameter calculation."""

    def __init__(self, ss: float, pt: float, pi: float, is_valid: bool):
        """
        Args:
            ss: Sacral Slope (degrees, rounded to 0.1)
            pt: Pelvic Tilt (degrees, rounded to 0.1)
            pi: Pelvic Incidence (degrees, rounded to 0.1)
            is_valid: Whether |PI - (PT + SS)| is within tolerance
        """
        self.ss = ss
        self.pt = pt
        self.pi = pi
        self.is_valid = is_valid

    def to_dict(self) -> Dict[str, object]:
        return {"ss": self.ss, "pt": self.pt, "pi": self.pi, "is_valid": self.is_valid}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PelvicParameters):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"PelvicParameters(ss={self.ss}, pt={self.pt}, pi={self.pi}, is_valid={self.is_valid})"


def calculate_pelvic_parameters(handles: Dict[str, Optional[Point]],
                                tolerance_deg: float = DEFAULT_CONSISTENCY_TOLERANCE_DEG
                                ) -> Optional[PelvicParameters]:
    """
    Calculate SS, PT and PI and check PI = PT + SS.

    Args:
        handles: Mapping of handle name -> (x, y) or None
        tolerance_deg: Allowed |PI - (PT + SS)| in degrees

    Returns:
        PelvicParameters, or None if any of the four handles is missing
    """
    femoral_head = handles.get(FEMORAL_HEAD)
    sacral_mid = handles.get(SACRAL_MIDPOINT)
    line_start = handles.get(SACRAL_LINE_START)
    line_end = handles.get(SACRAL_LINE_END)
    if femoral_head is None or sacral_mid is None or line_start is None or line_end is None:
        return None

    ss = sacral_slope(line_start, line_end)
    pt = pelvic_tilt(sacral_mid, femoral_head)
    pi = pelvic_incidence(line_start, line_end, sacral_mid, femoral_head)

    # Checked on unrounded values
    is_valid = abs(pi - (pt + ss)) <= tolerance_deg

    return PelvicParameters(round(ss, 1), round(pt, 1), round(pi, 1), is_valid)


def format_pelvic_label(stats: Optional[PelvicParameters]) -> str:
    """
    Build the on-canvas label for a measurement.

    Args:
        stats: Calculated parameters, or None while handles are missing

    Returns:
        Multi-line label text (empty if nothing to show)
    """
    if stats is None:
        return ""
    lines = [
        f"SS: {stats.ss:.1f}°",
        f"PT: {stats.pt:.1f}°",
        f"PI: {stats.pi:.1f}°",
    ]
    if not stats.is_valid:
        lines.append("PI ≠ PT + SS")
    return "\n".join(lines)


class PelvicMeasurement:
    """
    Four handles on one image plus their cached result.

    Moving a handle sets invalidated; update_stats() recomputes only when
    invalidated.
    """

    def __init__(self, image_id: str = "",
                 tolerance_deg: float = DEFAULT_CONSISTENCY_TOLERANCE_DEG,
                 **initial_handles: Optional[Point]):
        """
        Initialize a measurement.

        Args:
            image_id: Image the handles were placed on
            tolerance_deg: Allowed |PI - (PT + SS)| in degrees
            **initial_handles: Optional handle positions keyed by handle name
        """
        self.image_id = image_id
        self.tolerance_deg = tolerance_deg
        self.handles: Dict[str, Optional[Point]] = {name: None for name in HANDLE_NAMES}
        self.invalidated = True
        self.cached_stats: Optional[PelvicParameters] = None
        for name, point in initial_handles.items():
            if point is not None:
                self.move_handle(name, point)

    def is_complete(self) -> bool:
        """Return True when all four handles are placed."""
        return all(point is not None for point in self.handles.values())

    def next_missing_handle(self) -> Optional[str]:
        """Get the next handle to place, in placement order."""
        for name in HANDLE_NAMES:
            if self.handles[name] is None:
                return name
        return None

    def move_handle(self, name: str, point: Point) -> None:
        """
        Place or move a handle.

        Args:
            name: One of HANDLE_NAMES
            point: New (x, y) in pixel coordinates
        """
        if name not in self.handles:
            raise ValueError(f"Unknown pelvic handle: {name!r}")
        self.handles[name] = (float(point[0]), float(point[1]))
        self.invalidated = True

    def update_stats(self) -> Optional[PelvicParameters]:
        """
        Recompute the cached result if a handle moved.

        Returns:
            Current PelvicParameters, or None while handles are missing
        """
        if self.invalidated:
            self.cached_stats = calculate_pelvic_parameters(self.handles, self.tolerance_deg)
            self.invalidated = False
        return self.cached_stats

    def label_anchor(self) -> Optional[Point]:
        """Point the label is drawn next to: the sacral line midpoint, else the femoral head."""
        start = self.handles[SACRAL_LINE_START]
        end = self.handles[SACRAL_LINE_END]
        if start is not None and end is not None:
            return midpoint(start, end)
        return self.handles[FEMORAL_HEAD]
