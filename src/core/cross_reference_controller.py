"""
Cross-Reference Controller

This module keeps the reference lines of the three MPR viewports (sagittal,
axial, coronal) up to date. It owns the viewport states, tracks which viewport
is active, and for every other viewport computes the line where the active
viewport's current slice crosses that viewport's current image.

Each recomputation for a destination viewport is issued with a RequestToken.
Image loads may complete late and out of order; a result is only applied if
its token is still the latest one issued for that destination, so the overlay
always reflects the most recent request. In-flight loads are never aborted,
their results are just ignored.

The visible line is never cleared eagerly: it is replaced once the new result
is ready, or cleared when the recomputation finds there is no line.

Inputs:
    - Events: ReferenceLinesToggled, ActiveViewportChanged, SliceChanged,
      LayoutChanged (or the equivalent methods)
    - Series assignment per viewport (set_viewport)
    - An image loader (see core.image_loaders)

Outputs:
    - segment_changed(orientation, ReferenceSegment or None) signal

Requirements:
    - PySide6 for signals
    - image_geometry, plane_intersector, geometry_cache
    - debug_log for stale-result tracing
"""

from typing import Callable, Dict, List, Optional, Sequence
from PySide6.QtCore import QObject, Signal

from core.geometry_cache import GeometryCache
from core.image_geometry import (
    ORIENTATION_AXIAL,
    ORIENTATION_CORONAL,
    ORIENTATION_SAGITTAL,
    ImageGeometry,
    build_image_geometry,
)
from core.image_loaders import LoadedImage
from core.plane_intersector import ReferenceSegment, compute_reference_segment, should_skip_pair
from utils.debug_log import debug_log
from utils.geometry_math import GEOMETRY_EPSILON

VIEWPORT_ORIENTATIONS = (ORIENTATION_SAGITTAL, ORIENTATION_AXIAL, ORIENTATION_CORONAL)

STATE_IDLE = "idle"
STATE_ACTIVE = "active"


class ViewportState:
    """Image stack shown in one viewport and the slice currently displayed."""

    def __init__(self, orientation: str, image_ids: Optional[Sequence[str]] = None,
                 current_index: int = 0):
        self.orientation = orientation
        self.image_ids: List[str] = list(image_ids or [])
        self.current_index = current_index

    def current_image_id(self) -> Optional[str]:
        """
        Get the id of the displayed image.

        Returns:
            Image id, or None if the stack is empty or the index is out of range
        """
        if 0 <= self.current_index < len(self.image_ids):
            return self.image_ids[self.current_index]
        return None

    def __repr__(self) -> str:
        return (f"ViewportState({self.orientation!r}, {len(self.image_ids)} images, "
                f"index={self.current_index})")


class RequestToken:
    """Immutable (orientation, generation) pair identifying one recomputation."""

    __slots__ = ("orientation", "generation")

    def __init__(self, orientation: str, generation: int):
        object.__setattr__(self, "orientation", orientation)
        object.__setattr__(self, "generation", generation)

    def __setattr__(self, name, value):
        raise AttributeError("RequestToken is immutable")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RequestToken):
            return NotImplemented
        return self.orientation == other.orientation and self.generation == other.generation

    def __hash__(self) -> int:
        return hash((self.orientation, self.generation))

    def __repr__(self) -> str:
        return f"RequestToken({self.orientation!r}, {self.generation})"


class RequestTokenRegistry:
    """Monotonic generation counter per destination viewport."""

    def __init__(self):
        self._generations: Dict[str, int] = {}

    def issue(self, orientation: str) -> RequestToken:
        """Advance the generation for orientation and return the new token."""
        generation = self._generations.get(orientation, 0) + 1
        self._generations[orientation] = generation
        return RequestToken(orientation, generation)

    def current(self, orientation: str) -> RequestToken:
        """Get the latest token issued for orientation."""
        return RequestToken(orientation, self._generations.get(orientation, 0))

    def is_current(self, token: RequestToken) -> bool:
        """Return True if no newer token has been issued for the token's viewport."""
        return self._generations.get(token.orientation, 0) == token.generation


class ReferenceLinesToggled:
    """Reference lines were switched on or off."""

    def __init__(self, enabled: bool):
        self.enabled = enabled


class ActiveViewportChanged:
    """A viewport was activated (None deactivates all)."""

    def __init__(self, orientation: Optional[str]):
        self.orientation = orientation


class SliceChanged:
    """A viewport scrolled to another slice."""

    def __init__(self, orientation: str, index: int):
        self.orientation = orientation
        self.index = index


class LayoutChanged:
    """The viewport layout changed (resize, viewport shown/hidden)."""


class CrossReferenceController(QObject):
    """
    Computes and distributes reference lines between the MPR viewports.

    States:
    - idle: no active viewport, every line is cleared
    - active: lines on the two other viewports are sourced from the active one
    """

    # Signals
    segment_changed = Signal(str, object)  # (orientation, ReferenceSegment or None)
    active_viewport_changed = Signal(object)  # orientation or None

    def __init__(self, image_loader, geometry_cache: Optional[GeometryCache] = None,
                 config_manager=None, parent: Optional[QObject] = None):
        """
        Initialize the controller.

        Args:
            image_loader: Object with load_image(image_id, on_loaded)
            geometry_cache: Optional shared GeometryCache
            config_manager: Optional ConfigManager for epsilon and initial toggle state
            parent: Optional Qt parent
        """
        super().__init__(parent)
        self.image_loader = image_loader
        self.geometry_cache = geometry_cache if geometry_cache is not None else GeometryCache()

        if config_manager is not None:
            self.epsilon = config_manager.get_geometry_epsilon()
            self.enabled = config_manager.get_reference_lines_enabled()
        else:
            self.epsilon = GEOMETRY_EPSILON
            self.enabled = False

        self.viewports: Dict[str, ViewportState] = {
            orientation: ViewportState(orientation) for orientation in VIEWPORT_ORIENTATIONS
        }
        self.active_orientation: Optional[str] = None
        self.tokens = RequestTokenRegistry()
        self._segments: Dict[str, Optional[ReferenceSegment]] = {
            orientation: None for orientation in VIEWPORT_ORIENTATIONS
        }

        # Image id -> callbacks waiting on one shared load
        self._pending_loads: Dict[str, List[Callable[[ImageGeometry], None]]] = {}
        # Bumped by clear(); loads started before a clear never populate the cache
        self._load_epoch = 0
        # Per viewport, bumped by set_viewport(); loads for a replaced stack never populate the cache
        self._owner_epochs: Dict[str, int] = {}

    @property
    def state(self) -> str:
        """Current controller state: 'idle' or 'active'."""
        return STATE_IDLE if self.active_orientation is None else STATE_ACTIVE

    def _require_orientation(self, orientation: str) -> None:
        if orientation not in self.viewports:
            raise ValueError(f"Unknown viewport orientation: {orientation!r}")

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def dispatch(self, event) -> None:
        """
        Route an event object to its handler.

        Args:
            event: ReferenceLinesToggled, ActiveViewportChanged, SliceChanged
                or LayoutChanged
        """
        if isinstance(event, ReferenceLinesToggled):
            self.set_reference_lines_enabled(event.enabled)
        elif isinstance(event, ActiveViewportChanged):
            self.set_active_viewport(event.orientation)
        elif isinstance(event, SliceChanged):
            self.on_slice_changed(event.orientation, event.index)
        elif isinstance(event, LayoutChanged):
            self.on_layout_changed()
        else:
            raise TypeError(f"Unsupported cross-reference event: {event!r}")

    def set_reference_lines_enabled(self, enabled: bool) -> None:
        """Show or hide reference lines on every viewport."""
        self.enabled = bool(enabled)
        self.refresh_all()

    def set_active_viewport(self, orientation: Optional[str]) -> None:
        """
        Make a viewport the reference line source.

        Args:
            orientation: Viewport to activate, or None to return to idle
        """
        if orientation is not None:
            self._require_orientation(orientation)
        if orientation == self.active_orientation:
            return
        self.active_orientation = orientation
        self.active_viewport_changed.emit(orientation)
        self.refresh_all()

    def set_viewport(self, orientation: str, image_ids: Sequence[str], current_index: int = 0) -> None:
        """
        Assign an image stack to a viewport.

        Geometries cached for the viewport's previous stack are dropped.

        Args:
            orientation: Target viewport
            image_ids: Ordered image ids of the stack
            current_index: Slice to display
        """
        self._require_orientation(orientation)
        self.geometry_cache.clear(owner=orientation)
        self._owner_epochs[orientation] = self._owner_epochs.get(orientation, 0) + 1
        self.viewports[orientation] = ViewportState(orientation, image_ids, current_index)
        self.refresh_all()

    def on_slice_changed(self, orientation: str, index: int) -> None:
        """
        Handle a slice scroll in one viewport.

        When the active viewport scrolls, both other viewports recompute.
        When another viewport scrolls, only its own line is recomputed
        (still sourced from the active viewport).

        Args:
            orientation: Viewport that scrolled
            index: New slice index
        """
        self._require_orientation(orientation)
        viewport = self.viewports[orientation]
        if viewport.current_index == index:
            return
        viewport.current_index = index

        if orientation == self.active_orientation:
            for destination in VIEWPORT_ORIENTATIONS:
                if destination != orientation:
                    self._refresh(destination)
        else:
            self._refresh(orientation)

    def on_layout_changed(self) -> None:
        """Recompute every line after a layout change."""
        self.refresh_all()

    def clear(self) -> None:
        """
        Discard the loaded study.

        Empties every viewport and the geometry cache, returns to idle and
        clears all lines. Pending loads complete into the void.
        """
        self._load_epoch += 1
        self._pending_loads = {}
        self.geometry_cache.clear()
        self.viewports = {
            orientation: ViewportState(orientation) for orientation in VIEWPORT_ORIENTATIONS
        }
        if self.active_orientation is not None:
            self.active_orientation = None
            self.active_viewport_changed.emit(None)
        self.refresh_all()

    # ------------------------------------------------------------------
    # Outputs
    # ------------------------------------------------------------------

    def get_segment(self, orientation: str) -> Optional[ReferenceSegment]:
        """Get the line currently shown on a viewport (None if cleared)."""
        self._require_orientation(orientation)
        return self._segments[orientation]

    # ------------------------------------------------------------------
    # Recomputation
    # ------------------------------------------------------------------

    def refresh_all(self) -> None:
        """Recompute the line of every viewport."""
        for orientation in VIEWPORT_ORIENTATIONS:
            self._refresh(orientation)

    def _refresh(self, destination: str) -> None:
        """Issue a new request for one destination viewport."""
        token = self.tokens.issue(destination)

        if not self.enabled or self.active_orientation is None or destination == self.active_orientation:
            self._apply(token, None)
            return

        source_orientation = self.active_orientation
        source_id = self.viewports[source_orientation].current_image_id()
        destination_id = self.viewports[destination].current_image_id()
        if source_id is None or destination_id is None:
            self._apply(token, None)
            return

        def on_source_geometry(source_geometry: ImageGeometry) -> None:
            if not self.tokens.is_current(token):
                self._drop_stale(token, "source")
                return
            self._resolve_geometry(
                destination_id,
                destination,
                lambda destination_geometry: self._finish(token, source_geometry, destination_geometry),
            )

        self._resolve_geometry(source_id, source_orientation, on_source_geometry)

    def _finish(self, token: RequestToken, source: ImageGeometry, destination: ImageGeometry) -> None:
        """Compute and apply the line once both geometries are available."""
        if not self.tokens.is_current(token):
            self._drop_stale(token, "destination")
            return

        if should_skip_pair(source, destination, self.epsilon):
            self._apply(token, None)
            return

        self._apply(token, compute_reference_segment(source, destination, self.epsilon))

    def _apply(self, token: RequestToken, segment: Optional[ReferenceSegment]) -> None:
        """Replace the visible line of the token's viewport if it changed."""
        orientation = token.orientation
        if self._segments[orientation] == segment:
            return
        self._segments[orientation] = segment
        self.segment_changed.emit(orientation, segment)

    def _drop_stale(self, token: RequestToken, stage: str) -> None:
        debug_log(
            "cross_reference_controller.py:_drop_stale",
            "Dropped stale reference line result",
            {
                "orientation": token.orientation,
                "generation": token.generation,
                "current": self.tokens.current(token.orientation).generation,
                "stage": stage,
            },
        )

    def _resolve_geometry(self, image_id: str, owner: str,
                          callback: Callable[[ImageGeometry], None]) -> None:
        """
        Get the geometry of an image, loading it if it is not cached.

        Args:
            image_id: Image identifier
            owner: Viewport the image belongs to (cache owner key)
            callback: Receives the ImageGeometry (possibly invalid)
        """
        geometry = self.geometry_cache.get(image_id)
        if geometry is not None:
            callback(geometry)
            return

        waiting = self._pending_loads.get(image_id)
        if waiting is not None:
            waiting.append(callback)
            return

        waiting = [callback]
        self._pending_loads[image_id] = waiting
        epoch = self._load_epoch
        owner_epoch = self._owner_epochs.get(owner, 0)
        completed = [False]

        def on_loaded(loaded: Optional[LoadedImage]) -> None:
            if completed[0]:
                return
            completed[0] = True
            if self._pending_loads.get(image_id) is waiting:
                del self._pending_loads[image_id]

            loaded_geometry = self._geometry_from_loaded(image_id, loaded)
            # Failed loads are not cached so a later request can retry
            if (loaded is not None and epoch == self._load_epoch
                    and owner_epoch == self._owner_epochs.get(owner, 0)):
                self.geometry_cache.put(image_id, loaded_geometry, owner=owner)
            for waiting_callback in waiting:
                waiting_callback(loaded_geometry)

        try:
            self.image_loader.load_image(image_id, on_loaded)
        except Exception as e:
            print(f"Warning: Image loader failed for {image_id}: {e}")
            on_loaded(None)

    def _geometry_from_loaded(self, image_id: str, loaded: Optional[LoadedImage]) -> ImageGeometry:
        if loaded is None or loaded.metadata is None:
            return ImageGeometry(is_valid=False, reason=f"image {image_id} could not be loaded")
        return build_image_geometry(loaded.metadata, self.epsilon)
