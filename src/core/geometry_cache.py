"""
Geometry Cache

Memoizes ImageGeometry objects per image identifier so that scrolling through
a stack never rebuilds the same geometry twice.

Inputs:
    - Image identifiers
    - ImageGeometry objects built by the caller

Outputs:
    - Cached ImageGeometry objects

Requirements:
    - image_geometry for ImageGeometry
"""

from typing import Dict, Optional, Set

from core.image_geometry import ImageGeometry


class GeometryCache:
    """
    Image id -> ImageGeometry map.

    Populated on first use by the caller (get() never builds anything) and
    emptied when the owning study or series is discarded. There is no other
    eviction; one study's worth of slices is small.
    """

    def __init__(self):
        """Initialize an empty cache."""
        self._geometries: Dict[str, ImageGeometry] = {}
        # Owner (series UID) -> image ids registered under it
        self._owners: Dict[str, Set[str]] = {}
        self.hits = 0
        self.misses = 0

    def get(self, image_id: str) -> Optional[ImageGeometry]:
        """
        Look up a geometry.

        Args:
            image_id: Image identifier

        Returns:
            The cached ImageGeometry (same object on every call), or None
        """
        geometry = self._geometries.get(image_id)
        if geometry is None:
            self.misses += 1
        else:
            self.hits += 1
        return geometry

    def put(self, image_id: str, geometry: ImageGeometry, owner: Optional[str] = None) -> None:
        """
        Store a geometry.

        Args:
            image_id: Image identifier
            geometry: Geometry to cache (invalid geometries are cached too)
            owner: Optional owning series/study key for partial clears
        """
        self._geometries[image_id] = geometry
        if owner is not None:
            self._owners.setdefault(owner, set()).add(image_id)

    def contains(self, image_id: str) -> bool:
        """Return True if a geometry is cached for image_id."""
        return image_id in self._geometries

    def __contains__(self, image_id: str) -> bool:
        return self.contains(image_id)

    def __len__(self) -> int:
        return len(self._geometries)

    def clear(self, owner: Optional[str] = None) -> None:
        """
        Drop cached geometries.

        Args:
            owner: If given, only drop entries registered under this owner;
                otherwise drop everything
        """
        if owner is None:
            self._geometries.clear()
            self._owners.clear()
            return

        for image_id in self._owners.pop(owner, set()):
            self._geometries.pop(image_id, None)
