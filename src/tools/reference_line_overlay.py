"""
Reference Line Overlay

This module draws reference lines computed by the CrossReferenceController on
the graphics scene of a viewport. The image item sits at the scene origin with
one scene unit per pixel, so a ReferenceSegment's pixel coordinates are used
as scene coordinates directly.

Inputs:
    - ReferenceSegment objects (or None to clear)
    - QGraphicsScene of each viewport

Outputs:
    - A QGraphicsLineItem per viewport, shown or hidden

Requirements:
    - PySide6 for graphics components
    - ConfigManager for line colour and thickness
"""

from typing import Dict, Optional
from PySide6.QtCore import QLineF
from PySide6.QtGui import QColor, QPen
from PySide6.QtWidgets import QGraphicsLineItem, QGraphicsScene

from core.plane_intersector import ReferenceSegment

# Above the image and annotations, below text overlays
REFERENCE_LINE_Z_VALUE = 150


class ReferenceLineOverlay:
    """
    Owns the reference line item of one viewport scene.

    The line item is created lazily and kept; show_segment() moves it and
    clear() hides it, so redraws never leave a blank frame in between.
    """

    def __init__(self, scene: QGraphicsScene, config_manager=None):
        """
        Initialize the overlay.

        Args:
            scene: Viewport scene to draw into
            config_manager: Optional ConfigManager for line style
        """
        self.scene = scene
        self.config_manager = config_manager
        self.line_item: Optional[QGraphicsLineItem] = None
        self.segment: Optional[ReferenceSegment] = None

    def _create_pen(self) -> QPen:
        if self.config_manager:
            color = self.config_manager.get_reference_line_color()
            thickness = self.config_manager.get_reference_line_thickness()
        else:
            color = (255, 0, 0, 204)  # Red, 80% opacity
            thickness = 1.5
        pen = QPen(QColor(*color), thickness)
        pen.setCosmetic(True)  # Width in viewport pixels, independent of zoom
        return pen

    def _ensure_line_item(self) -> QGraphicsLineItem:
        if self.line_item is None or self.line_item.scene() is not self.scene:
            self.line_item = QGraphicsLineItem()
            self.line_item.setPen(self._create_pen())
            self.line_item.setZValue(REFERENCE_LINE_Z_VALUE)
            self.scene.addItem(self.line_item)
        return self.line_item

    def show_segment(self, segment: Optional[ReferenceSegment]) -> None:
        """
        Draw a segment, or clear the line when segment is None.

        Args:
            segment: Line in the viewport's pixel coordinates
        """
        if segment is None:
            self.clear()
            return
        line_item = self._ensure_line_item()
        start_x, start_y = segment.start_pixel
        end_x, end_y = segment.end_pixel
        line_item.setLine(QLineF(start_x, start_y, end_x, end_y))
        line_item.setVisible(True)
        self.segment = segment

    def clear(self) -> None:
        """Hide the line."""
        if self.line_item is not None:
            self.line_item.setVisible(False)
        self.segment = None

    def is_visible(self) -> bool:
        """Return True if a line is currently drawn."""
        return self.line_item is not None and self.line_item.isVisible()

    def update_style(self, config_manager=None) -> None:
        """Re-apply colour and thickness after a settings change."""
        if config_manager is not None:
            self.config_manager = config_manager
        if self.line_item is not None:
            self.line_item.setPen(self._create_pen())

    def remove(self) -> None:
        """Remove the line item from the scene."""
        if self.line_item is not None and self.line_item.scene() is not None:
            self.line_item.scene().removeItem(self.line_item)
        self.line_item = None
        self.segment = None


def connect_overlays(controller, overlays: Dict[str, ReferenceLineOverlay]) -> None:
    """
    Route a controller's segment_changed signal to per-viewport overlays.

    Args:
        controller: CrossReferenceController
        overlays: Mapping of orientation -> ReferenceLineOverlay
    """
    def on_segment_changed(orientation: str, segment: Optional[ReferenceSegment]) -> None:
        overlay = overlays.get(orientation)
        if overlay is not None:
            overlay.show_segment(segment)

    controller.segment_changed.connect(on_segment_changed)
