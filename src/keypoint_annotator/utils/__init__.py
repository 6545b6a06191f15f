"""
Utility modules for the keypoint annotator.

Geometry helpers for hit-testing and box selection, raster primitives used by
the edge detector, and frame/time conversion plus OpenCV frame loading.
"""

from .geometry import distance_between_points, is_dot_inside_box, normalize_selection_box
from .image_processing import gaussian_blur, to_grayscale, validate_frame
from .video_io import frame_to_seconds, load_image_frame, read_video_frame, seconds_to_frame

__all__ = [
    "distance_between_points",
    "frame_to_seconds",
    "gaussian_blur",
    "is_dot_inside_box",
    "load_image_frame",
    "normalize_selection_box",
    "read_video_frame",
    "seconds_to_frame",
    "to_grayscale",
    "validate_frame",
]
