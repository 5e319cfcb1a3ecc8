"""
Image Loaders

This module provides the image payload loaders the cross-reference controller
resolves source and destination images through. A loader receives an image id
and reports the result through a callback, which may run immediately or on a
later turn of the Qt event loop.

Loader interface:
    load_image(image_id, on_loaded) -> None
    on_loaded(LoadedImage or None)   # None when the image cannot be loaded

Inputs:
    - Image identifiers
    - In-memory pydicom datasets or DICOM file paths

Outputs:
    - LoadedImage objects (geometry metadata plus optional pixel array)

Requirements:
    - pydicom for reading DICOM headers
    - PySide6 for deferred completion (QTimer)
    - numpy for pixel arrays
"""

from typing import Callable, Dict, Optional
import numpy as np
import pydicom
from pydicom.dataset import Dataset
from pydicom.errors import InvalidDicomError
from PySide6.QtCore import QTimer

from core.image_geometry import ImageMetadata, metadata_from_dataset


class LoadedImage:
    """Payload returned by an image loader."""

    def __init__(self, image_id: str, metadata: ImageMetadata,
                 pixel_array: Optional[np.ndarray] = None):
        """
        Args:
            image_id: Image identifier
            metadata: Geometry-relevant metadata
            pixel_array: Optional decoded pixels
        """
        self.image_id = image_id
        self.metadata = metadata
        self.pixel_array = pixel_array

    def __repr__(self) -> str:
        return f"LoadedImage({self.image_id!r})"


LoadCallback = Callable[[Optional[LoadedImage]], None]


def _loaded_from_dataset(image_id: str, dataset: Dataset, include_pixels: bool) -> LoadedImage:
    """Wrap a dataset as a LoadedImage, decoding pixels when asked to."""
    pixel_array = None
    if include_pixels and 'PixelData' in dataset:
        try:
            pixel_array = dataset.pixel_array
        except Exception as e:
            # Geometry is still usable without pixels
            print(f"Warning: Could not decode pixel data for {image_id}: {e}")
    return LoadedImage(image_id, metadata_from_dataset(dataset), pixel_array)


class DatasetImageLoader:
    """
    Resolves image ids from datasets already parsed into memory.

    Completes synchronously: on_loaded runs before load_image() returns.
    """

    def __init__(self, datasets_by_id: Optional[Dict[str, Dataset]] = None,
                 include_pixels: bool = False):
        """
        Initialize the loader.

        Args:
            datasets_by_id: Mapping of image id -> pydicom Dataset
            include_pixels: Whether to decode pixel data into LoadedImage.pixel_array
        """
        self.datasets_by_id: Dict[str, Dataset] = dict(datasets_by_id or {})
        self.include_pixels = include_pixels

    def add_dataset(self, image_id: str, dataset: Dataset) -> None:
        """Register a dataset under an image id."""
        self.datasets_by_id[image_id] = dataset

    def remove_dataset(self, image_id: str) -> None:
        """Forget a dataset."""
        self.datasets_by_id.pop(image_id, None)

    def load_image(self, image_id: str, on_loaded: LoadCallback) -> None:
        """
        Resolve an image id.

        Args:
            image_id: Image identifier
            on_loaded: Callback receiving the LoadedImage, or None if unknown
        """
        dataset = self.datasets_by_id.get(image_id)
        if dataset is None:
            on_loaded(None)
            return
        on_loaded(_loaded_from_dataset(image_id, dataset, self.include_pixels))


class FileImageLoader:
    """
    Reads DICOM headers from disk on demand.

    Pixel data is skipped unless include_pixels is set; the geometry only
    needs the header.
    """

    def __init__(self, paths_by_id: Optional[Dict[str, str]] = None,
                 include_pixels: bool = False):
        """
        Initialize the loader.

        Args:
            paths_by_id: Mapping of image id -> file path
            include_pixels: Whether to read and decode pixel data
        """
        self.paths_by_id: Dict[str, str] = dict(paths_by_id or {})
        self.include_pixels = include_pixels

    def load_image(self, image_id: str, on_loaded: LoadCallback) -> None:
        """
        Read the file registered for an image id.

        Args:
            image_id: Image identifier
            on_loaded: Callback receiving the LoadedImage, or None on read failure
        """
        path = self.paths_by_id.get(image_id)
        if path is None:
            on_loaded(None)
            return
        try:
            dataset = pydicom.dcmread(path, stop_before_pixels=not self.include_pixels, force=True)
        except (InvalidDicomError, OSError) as e:
            print(f"Warning: Could not read {path}: {e}")
            on_loaded(None)
            return
        on_loaded(_loaded_from_dataset(image_id, dataset, self.include_pixels))


class DeferredImageLoader:
    """
    Wraps another loader so results arrive on a later event-loop turn.

    Models a network- or disk-backed source whose completions can arrive in
    any order relative to later requests. Requires a running Qt event loop.
    """

    def __init__(self, inner, delay_ms: int = 0):
        """
        Args:
            inner: Loader to delegate to
            delay_ms: Delay before the inner loader is invoked
        """
        self.inner = inner
        self.delay_ms = delay_ms

    def load_image(self, image_id: str, on_loaded: LoadCallback) -> None:
        """Schedule the inner load on the Qt event loop."""
        QTimer.singleShot(self.delay_ms, lambda: self._run_inner(image_id, on_loaded))

    def _run_inner(self, image_id: str, on_loaded: LoadCallback) -> None:
        # Nobody up the stack can catch an exception raised from a timer slot
        try:
            self.inner.load_image(image_id, on_loaded)
        except Exception as e:
            print(f"Warning: Deferred load failed for {image_id}: {e}")
            on_loaded(None)
