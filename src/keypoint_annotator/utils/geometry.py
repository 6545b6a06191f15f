"""
Utility functions for geometry operations on annotation canvases.
"""

import math


def distance_between_points(ax: float, ay: float, bx: float, by: float) -> float:
    """
    Euclidean distance between two canvas points.

    Args:
        ax, ay (float): First point
        bx, by (float): Second point

    Returns:
        float: Distance in pixels
    """
    dx = ax - bx
    dy = ay - by
    return math.sqrt(dx * dx + dy * dy)


def is_point_near_dot(x: float, y: float, dot: object, threshold_px: float) -> bool:
    """Return True when (x, y) lies strictly within `threshold_px` of a dot."""
    return distance_between_points(x, y, dot.x, dot.y) < threshold_px


def normalize_selection_box(box: dict) -> dict:
    """
    Normalize a drag-drawn box so that width and height are non-negative.

    A box dragged up or to the left carries negative extents; the normalized
    box starts at its minimum corner instead.

    Args:
        box (dict): Box with keys x, y, width, height

    Returns:
        dict: Box with the min corner as origin and absolute extents
    """
    x, y = box["x"], box["y"]
    w, h = box["width"], box["height"]
    return {
        "x": min(x, x + w),
        "y": min(y, y + h),
        "width": abs(w),
        "height": abs(h),
    }


def is_dot_inside_box(dot: object, box: dict) -> bool:
    """Inclusive containment test of a dot against an already-normalized box."""
    return (
        box["x"] <= dot.x <= box["x"] + box["width"]
        and box["y"] <= dot.y <= box["y"] + box["height"]
    )


def clamp_box_to_frame(box: dict, width: int, height: int):
    """
    Clamp a region to integer pixel bounds of a frame.

    Args:
        box (dict): Region with keys x, y, width, height (may exceed the frame)
        width (int): Frame width
        height (int): Frame height

    Returns:
        tuple: (x, y, w, h) in integer pixels, or None if the clamped region is empty
    """
    box = normalize_selection_box(box)
    x0 = max(0, int(math.floor(box["x"])))
    y0 = max(0, int(math.floor(box["y"])))
    x1 = min(width, int(math.floor(box["x"] + box["width"])))
    y1 = min(height, int(math.floor(box["y"] + box["height"])))
    if x1 <= x0 or y1 <= y0:
        return None
    return (x0, y0, x1 - x0, y1 - y0)
