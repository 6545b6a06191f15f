"""
Utility functions for raster processing of annotation frames.

These are the low-level building blocks of the edge detection pipeline:
frame validation, grayscale conversion, Gaussian smoothing, gradient
estimation, non-maximum suppression and thresholding.
"""

import logging
import math
from collections import deque

import cv2
import numpy as np

logger = logging.getLogger(__name__)

# 3x3 derivative kernels, row-major
SOBEL_X = np.array([[-1, 0, 1], [-2, 0, 2], [-1, 0, 1]], dtype=np.float64)
SOBEL_Y = np.array([[-1, -2, -1], [0, 0, 0], [1, 2, 1]], dtype=np.float64)
SCHARR_X = np.array([[-3, 0, 3], [-10, 0, 10], [-3, 0, 3]], dtype=np.float64)
SCHARR_Y = np.array([[-3, -10, -3], [0, 0, 0], [3, 10, 3]], dtype=np.float64)

_NEIGHBORS_8 = ((-1, -1), (0, -1), (1, -1), (-1, 0), (1, 0), (-1, 1), (0, 1), (1, 1))


def validate_frame(frame):
    """
    Check that a frame buffer is a usable raster.

    Accepts HxWx4 (RGBA), HxWx3 (RGB) or HxW (already gray) arrays.

    Args:
        frame: Candidate frame buffer

    Returns:
        np.ndarray or None: The frame as an array, or None if it cannot be processed
    """
    if frame is None:
        return None
    try:
        arr = np.asarray(frame)
    except (TypeError, ValueError):
        logger.warning("Frame buffer could not be converted to an array")
        return None

    if arr.ndim == 3 and arr.shape[2] in (3, 4):
        pass
    elif arr.ndim != 2:
        logger.warning(f"Unsupported frame buffer shape: {arr.shape}")
        return None

    if arr.shape[0] == 0 or arr.shape[1] == 0:
        logger.warning("Zero-area frame buffer")
        return None
    if not np.issubdtype(arr.dtype, np.number):
        logger.warning(f"Non-numeric frame buffer dtype: {arr.dtype}")
        return None
    return arr


def to_grayscale(frame):
    """
    Convert an RGB(A) raster to luminance.

    gray = 0.299 R + 0.587 G + 0.114 B; alpha is ignored.

    Args:
        frame (np.ndarray): HxWx3, HxWx4 or HxW array

    Returns:
        np.ndarray: HxW float64 grayscale image
    """
    if frame.ndim == 2:
        return frame.astype(np.float64)
    rgb = frame[..., :3].astype(np.float64)
    return 0.299 * rgb[..., 0] + 0.587 * rgb[..., 1] + 0.114 * rgb[..., 2]


def gaussian_kernel(radius):
    """Normalized 1-D Gaussian of size ceil(2*radius)+1 and sigma radius/3."""
    size = int(math.ceil(radius * 2)) + 1
    sigma = radius / 3.0
    half = size // 2
    xs = np.arange(size, dtype=np.float64) - half
    kernel = np.exp(-(xs * xs) / (2.0 * sigma * sigma))
    return kernel / kernel.sum()


def gaussian_blur(gray, radius):
    """
    Separable Gaussian blur, horizontal pass then vertical pass.

    Taps that fall outside the image are dropped and the remaining weights are
    renormalized, so a flat image stays flat up to its border.

    Args:
        gray (np.ndarray): HxW float image
        radius (float): Blur radius (> 0)

    Returns:
        np.ndarray: Blurred HxW float64 image
    """
    kernel = gaussian_kernel(radius)
    gray = gray.astype(np.float64)
    blurred = cv2.sepFilter2D(
        gray, cv2.CV_64F, kernel, kernel, borderType=cv2.BORDER_CONSTANT
    )
    # in-bounds weight per pixel; separable, so one pass over ones suffices
    weights = cv2.sepFilter2D(
        np.ones_like(gray), cv2.CV_64F, kernel, kernel, borderType=cv2.BORDER_CONSTANT
    )
    return blurred / weights


def _interior_filter(image, kernel):
    response = cv2.filter2D(
        image, cv2.CV_64F, kernel, borderType=cv2.BORDER_CONSTANT
    )
    response[0, :] = 0.0
    response[-1, :] = 0.0
    response[:, 0] = 0.0
    response[:, -1] = 0.0
    return response


def compute_gradients(blurred):
    """
    Estimate gradient magnitude and direction on interior pixels.

    The magnitude is the mean of the Sobel and Scharr Euclidean magnitudes;
    the direction is atan2 of the Sobel response. The one-pixel border is
    left at zero.

    Args:
        blurred (np.ndarray): HxW float64 image

    Returns:
        tuple: (magnitude, direction) HxW float64 arrays
    """
    blurred = blurred.astype(np.float64)
    if blurred.shape[0] < 3 or blurred.shape[1] < 3:
        zeros = np.zeros_like(blurred)
        return zeros, zeros.copy()

    sx = _interior_filter(blurred, SOBEL_X)
    sy = _interior_filter(blurred, SOBEL_Y)
    cx = _interior_filter(blurred, SCHARR_X)
    cy = _interior_filter(blurred, SCHARR_Y)

    magnitude = (np.hypot(sx, sy) + np.hypot(cx, cy)) / 2.0
    direction = np.arctan2(sy, sx)
    return magnitude, direction


def non_maximum_suppression(magnitude, direction):
    """
    Thin gradient ridges to single-pixel width.

    Each interior pixel is compared against its two neighbours along the
    bucketed gradient direction and zeroed unless it is >= both.

    Args:
        magnitude (np.ndarray): HxW gradient magnitude
        direction (np.ndarray): HxW gradient direction in radians

    Returns:
        np.ndarray: HxW suppressed magnitude (border is zero)
    """
    h, w = magnitude.shape
    suppressed = np.zeros_like(magnitude)
    if h < 3 or w < 3:
        return suppressed

    mag = magnitude[1:-1, 1:-1]
    d = direction[1:-1, 1:-1]
    p8 = math.pi / 8.0

    # Shifted views: name = (row offset, col offset) relative to the centre
    left = magnitude[1:-1, :-2]
    right = magnitude[1:-1, 2:]
    up = magnitude[:-2, 1:-1]
    down = magnitude[2:, 1:-1]
    up_right = magnitude[:-2, 2:]
    down_left = magnitude[2:, :-2]
    up_left = magnitude[:-2, :-2]
    down_right = magnitude[2:, 2:]

    horizontal = ((d >= -p8) & (d < p8)) | (d >= 7 * p8) | (d < -7 * p8)
    diagonal = ((d >= p8) & (d < 3 * p8)) | ((d >= -7 * p8) & (d < -5 * p8))
    vertical = ((d >= 3 * p8) & (d < 5 * p8)) | ((d >= -5 * p8) & (d < -3 * p8))
    anti_diagonal = ~(horizontal | diagonal | vertical)

    n1 = np.select(
        [horizontal, diagonal, vertical, anti_diagonal],
        [left, up_right, up, up_left],
    )
    n2 = np.select(
        [horizontal, diagonal, vertical, anti_diagonal],
        [right, down_left, down, down_right],
    )
    keep = (mag >= n1) & (mag >= n2)
    suppressed[1:-1, 1:-1] = np.where(keep, mag, 0.0)
    return suppressed


def hysteresis_threshold(suppressed, low, high):
    """
    Two-level edge classification.

    Pixels >= high are strong edges. Any pixel >= low that is 8-connected to a
    strong edge through a chain of >= low pixels is promoted to an edge. The
    flood uses an explicit stack so large edge maps cannot exhaust the
    interpreter's recursion limit.

    Args:
        suppressed (np.ndarray): HxW thinned magnitude
        low (float): Weak threshold
        high (float): Strong threshold

    Returns:
        np.ndarray: HxW boolean edge map
    """
    h, w = suppressed.shape
    edges = suppressed >= high
    weak = suppressed >= low
    visited = edges.copy()

    stack = deque((int(x), int(y)) for y, x in np.argwhere(edges))
    while stack:
        x, y = stack.pop()
        for dx, dy in _NEIGHBORS_8:
            nx, ny = x + dx, y + dy
            if nx < 0 or nx >= w or ny < 0 or ny >= h:
                continue
            if visited[ny, nx] or not weak[ny, nx]:
                continue
            visited[ny, nx] = True
            edges[ny, nx] = True
            stack.append((nx, ny))
    return edges


def gradient_threshold(blurred, threshold):
    """
    Single-threshold edge map from central differences.

    |dx| and |dy| are central differences on interior pixels combined as a
    Euclidean norm; pixels whose norm is >= threshold are edges.

    Args:
        blurred (np.ndarray): HxW float image
        threshold (float): Edge threshold

    Returns:
        np.ndarray: HxW boolean edge map
    """
    h, w = blurred.shape
    edges = np.zeros((h, w), dtype=bool)
    if h < 3 or w < 3:
        return edges
    dx = blurred[1:-1, 2:] - blurred[1:-1, :-2]
    dy = blurred[2:, 1:-1] - blurred[:-2, 1:-1]
    edges[1:-1, 1:-1] = np.hypot(dx, dy) >= threshold
    return edges
