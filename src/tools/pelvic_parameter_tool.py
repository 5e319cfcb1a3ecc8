"""
Pelvic Parameter Tool

This module manages pelvic parameter measurements (SS, PT, PI) on images and
coalesces recomputation while handles are dragged: every handle move marks the
measurement invalidated and restarts a single-shot timer, and only the last
position inside the window is computed.

Inputs:
    - Handle placement and drag positions (image pixel coordinates)
    - Image identifiers the measurements belong to

Outputs:
    - PelvicMeasurement objects per image
    - stats_updated signal with the recomputed PelvicParameters

Requirements:
    - PySide6 for QTimer and signals
    - pelvic_parameters for the calculations
    - ConfigManager for tolerance and throttle interval
"""

from typing import Dict, List, Optional
from PySide6.QtCore import QObject, QTimer, Signal

from tools.pelvic_parameters import (
    DEFAULT_CONSISTENCY_TOLERANCE_DEG,
    FEMORAL_HEAD,
    PelvicMeasurement,
    PelvicParameters,
    Point,
)


class PelvicParameterTool(QObject):
    """
    Creates, edits and recomputes pelvic parameter measurements.

    Features:
    - Measurements stored per image id
    - Handle drags batched through a single-shot QTimer
    - flush() to force pending recomputation (e.g. on mouse release)
    """

    # Signals
    stats_updated = Signal(object, object)  # (PelvicMeasurement, PelvicParameters or None)

    def __init__(self, config_manager=None, parent: Optional[QObject] = None):
        """
        Initialize the tool.

        Args:
            config_manager: Optional ConfigManager for tolerance and throttle interval
            parent: Optional Qt parent
        """
        super().__init__(parent)
        if config_manager is not None:
            self.tolerance_deg = config_manager.get_pelvic_consistency_tolerance()
            self.throttle_ms = config_manager.get_pelvic_update_throttle_ms()
        else:
            self.tolerance_deg = DEFAULT_CONSISTENCY_TOLERANCE_DEG
            self.throttle_ms = 100

        # image id -> measurements placed on that image
        self.measurements: Dict[str, List[PelvicMeasurement]] = {}
        self._dirty: List[PelvicMeasurement] = []
        self._update_timer: Optional[QTimer] = None

    def create_measurement(self, image_id: str, femoral_head: Point) -> PelvicMeasurement:
        """
        Start a measurement with its first handle.

        Args:
            image_id: Image the measurement is placed on
            femoral_head: Femoral head centre (x, y)

        Returns:
            New PelvicMeasurement
        """
        measurement = PelvicMeasurement(image_id, self.tolerance_deg)
        measurement.move_handle(FEMORAL_HEAD, femoral_head)
        self.measurements.setdefault(image_id, []).append(measurement)
        self._schedule_update(measurement)
        return measurement

    def place_next_handle(self, measurement: PelvicMeasurement, point: Point) -> Optional[str]:
        """
        Place the next missing handle of a measurement.

        Args:
            measurement: Measurement being built
            point: Click position (x, y)

        Returns:
            Name of the handle placed, or None if all four were already placed
        """
        name = measurement.next_missing_handle()
        if name is None:
            return None
        measurement.move_handle(name, point)
        self._schedule_update(measurement)
        return name

    def move_handle(self, measurement: PelvicMeasurement, name: str, point: Point) -> None:
        """
        Drag a handle. Recomputation is deferred until the drag settles.

        Args:
            measurement: Measurement being edited
            name: Handle name
            point: New position (x, y)
        """
        measurement.move_handle(name, point)
        self._schedule_update(measurement)

    def _schedule_update(self, measurement: PelvicMeasurement) -> None:
        """Mark a measurement dirty and restart the batch timer."""
        if measurement not in self._dirty:
            self._dirty.append(measurement)

        if self.throttle_ms <= 0:
            self.flush()
            return

        if self._update_timer is not None:
            self._update_timer.stop()

        self._update_timer = QTimer()
        self._update_timer.setSingleShot(True)
        self._update_timer.timeout.connect(self.flush)
        self._update_timer.start(self.throttle_ms)

    def has_pending_updates(self) -> bool:
        """Return True while handle moves are waiting to be computed."""
        return bool(self._dirty)

    def flush(self) -> None:
        """Recompute every dirty measurement now."""
        if self._update_timer is not None:
            self._update_timer.stop()
            self._update_timer = None

        dirty = self._dirty
        self._dirty = []
        for measurement in dirty:
            stats = measurement.update_stats()
            self.stats_updated.emit(measurement, stats)

    def get_measurements_for_image(self, image_id: str) -> List[PelvicMeasurement]:
        """Get the measurements placed on an image."""
        return list(self.measurements.get(image_id, []))

    def get_stats(self, measurement: PelvicMeasurement) -> Optional[PelvicParameters]:
        """Get the last computed result of a measurement (pending moves excluded)."""
        return measurement.cached_stats

    def delete_measurement(self, measurement: PelvicMeasurement) -> None:
        """Remove one measurement."""
        image_measurements = self.measurements.get(measurement.image_id, [])
        if measurement in image_measurements:
            image_measurements.remove(measurement)
            if not image_measurements:
                del self.measurements[measurement.image_id]
        if measurement in self._dirty:
            self._dirty.remove(measurement)

    def clear_measurements(self, image_id: Optional[str] = None) -> None:
        """
        Remove measurements.

        Args:
            image_id: Only clear this image's measurements; all if None
        """
        if image_id is None:
            self.measurements.clear()
            self._dirty = []
        else:
            removed = self.measurements.pop(image_id, [])
            self._dirty = [m for m in self._dirty if m not in removed]
        if not self._dirty and self._update_timer is not None:
            self._update_timer.stop()
            self._update_timer = None
