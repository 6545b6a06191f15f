"""
Utility functions for video I/O and frame/time conversion.
"""
import logging
import math

import cv2
import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_DISPLAY_SIZE = (800, 450)


def seconds_to_frame(played_seconds, fps):
    """Frame index nearest to a playback time."""
    return int(math.floor(played_seconds * fps + 0.5))


def frame_to_seconds(frame, fps):
    """Playback time of a frame index."""
    return frame / fps


def format_clock(time_seconds):
    """
    Format a playback time as M:SS.

    Args:
        time_seconds (float): Time in seconds

    Returns:
        str: e.g. "1:05"
    """
    minutes = int(time_seconds // 60)
    seconds = int(time_seconds % 60)
    return f"{minutes}:{seconds:02d}"


def _to_display_rgba(frame_bgr, display_size):
    if display_size is not None:
        width, height = display_size
        frame_bgr = cv2.resize(
            frame_bgr, (int(width), int(height)), interpolation=cv2.INTER_AREA
        )
    if frame_bgr.ndim == 2:
        return cv2.cvtColor(frame_bgr, cv2.COLOR_GRAY2RGBA)
    if frame_bgr.shape[2] == 4:
        return cv2.cvtColor(frame_bgr, cv2.COLOR_BGRA2RGBA)
    return cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGBA)


def read_video_frame(video_path, frame_index, display_size=DEFAULT_DISPLAY_SIZE):
    """
    Grab one frame from a video file as an RGBA raster.

    The frame is scaled to the display resolution so that detected keypoints
    land in the same coordinate space as manual clicks on the canvas.

    Args:
        video_path (str): Path to the video file
        frame_index (int): 0-based frame index
        display_size (tuple): (width, height) to scale to, or None to keep native size

    Returns:
        np.ndarray or None: HxWx4 uint8 RGBA frame, or None if it could not be read
    """
    cap = cv2.VideoCapture(str(video_path))
    try:
        if not cap.isOpened():
            logger.warning(f"Cannot open video: {video_path}")
            return None
        total = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))
        if frame_index < 0 or (total > 0 and frame_index >= total):
            logger.warning(
                f"Frame {frame_index} out of range for {video_path} ({total} frames)"
            )
            return None
        cap.set(cv2.CAP_PROP_POS_FRAMES, int(frame_index))
        ok, frame = cap.read()
        if not ok or frame is None:
            logger.warning(f"Failed to read frame {frame_index} from {video_path}")
            return None
        return _to_display_rgba(frame, display_size)
    finally:
        cap.release()


def load_image_frame(image_path, display_size=None):
    """
    Load a still image as an RGBA raster.

    Args:
        image_path (str): Path to an image readable by OpenCV
        display_size (tuple, optional): (width, height) to scale to

    Returns:
        np.ndarray or None: HxWx4 uint8 RGBA frame, or None if unreadable
    """
    frame = cv2.imread(str(image_path), cv2.IMREAD_UNCHANGED)
    if frame is None:
        logger.warning(f"Cannot read image: {image_path}")
        return None
    if frame.dtype != np.uint8:
        frame = cv2.convertScaleAbs(frame)
    return _to_display_rgba(frame, display_size)
