"""
Edge-based keypoint generation.

This module turns a video frame into a small graph of dots and lines that
outline the main subject: a Canny-style edge map is traced into contours,
the contours closest to the frame centre are kept, simplified with
Ramer-Douglas-Peucker and emitted as connected dots.

Both stages that can come up empty have an ordered list of fallback
strategies; each is tried only when the previous one produced nothing.
"""

import logging
import math
from dataclasses import asdict, dataclass

import numpy as np

from ..utils.geometry import clamp_box_to_frame
from ..utils.image_processing import (
    compute_gradients,
    gaussian_blur,
    gradient_threshold,
    hysteresis_threshold,
    non_maximum_suppression,
    to_grayscale,
    validate_frame,
)
from .models import Dot, KeypointGraph, LineSegment, new_id

logger = logging.getLogger(__name__)

AUTO_DOT_COLOR = "blue"
AUTO_LINE_COLOR = "#0066cc"

# Simplification tolerance used for every segment, independent of
# EdgeDetectionOptions.simplify_tolerance.
RDP_TOLERANCE = 2.0

MIN_ASPECT_RATIO = 0.05
MAX_ASPECT_RATIO = 20.0
MIN_CONTOUR_AREA = 10.0
MAIN_SUBJECT_FRACTION = 0.7
POINTS_PER_SEGMENT_BUDGET = 5

# Clockwise Moore neighbourhood starting east; image y grows downwards.
_MOORE_OFFSETS = ((1, 0), (1, 1), (0, 1), (-1, 1), (-1, 0), (-1, -1), (0, -1), (1, -1))


@dataclass
class EdgeDetectionOptions:
    """Tunable parameters of the edge detector (all must be positive)."""

    threshold: float = 50.0
    blur_radius: float = 2.0
    min_edge_length: float = 8.0
    max_keypoints: int = 120
    simplify_tolerance: float = 3.0

    def __post_init__(self):
        for name, value in asdict(self).items():
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                raise ValueError(f"Edge option {name} must be a number, got {value!r}")
            if not value > 0:
                raise ValueError(f"Edge option {name} must be positive, got {value}")

    def to_dict(self) -> dict:
        return asdict(self)

    @staticmethod
    def from_dict(data: dict) -> "EdgeDetectionOptions":
        data = data or {}
        if not isinstance(data, dict):
            raise ValueError(f"Edge options must be a mapping, got {data!r}")
        fields = EdgeDetectionOptions.__dataclass_fields__
        known = {k: v for k, v in data.items() if k in fields}
        return EdgeDetectionOptions(**known)


# -----------------------------
# Edge map strategies
# -----------------------------


def _hysteresis_edges(blurred, options):
    magnitude, direction = compute_gradients(blurred)
    suppressed = non_maximum_suppression(magnitude, direction)
    high = options.threshold
    return hysteresis_threshold(suppressed, 0.5 * high, high)


def _gradient_threshold_edges(blurred, options):
    return gradient_threshold(blurred, options.threshold)


EDGE_MAP_STRATEGIES = (
    ("hysteresis", _hysteresis_edges),
    ("gradient_threshold", _gradient_threshold_edges),
)


def build_edge_map(blurred, options):
    """
    Boolean edge map from the first strategy that finds any edge.

    Returns:
        tuple: (edges, strategy_name); strategy_name is None if every strategy came up empty
    """
    edges = np.zeros(blurred.shape, dtype=bool)
    for name, strategy in EDGE_MAP_STRATEGIES:
        edges = strategy(blurred, options)
        count = int(edges.sum())
        logger.debug(f"Edge strategy {name}: {count} edge pixels")
        if count > 0:
            return edges, name
    return edges, None


# -----------------------------
# Contours
# -----------------------------


def trace_contour(edges, visited, start_x, start_y):
    """
    Moore-neighbour border following from one start pixel.

    At each step the neighbourhood is scanned clockwise beginning 90 degrees
    to the left of the direction the current pixel was entered from. The walk
    stops when it comes back to the start pixel or no unvisited edge
    neighbour remains.

    Args:
        edges (np.ndarray): HxW boolean edge map
        visited (np.ndarray): HxW boolean mask, updated in place
        start_x, start_y (int): Start pixel

    Returns:
        list: Traced (x, y) pixels in walk order
    """
    h, w = edges.shape
    points = [(start_x, start_y)]
    visited[start_y, start_x] = True
    x, y, heading = start_x, start_y, 0

    while True:
        step = None
        for turn in range(8):
            d = (heading + 6 + turn) % 8
            dx, dy = _MOORE_OFFSETS[d]
            nx, ny = x + dx, y + dy
            if nx < 0 or nx >= w or ny < 0 or ny >= h or not edges[ny, nx]:
                continue
            if nx == start_x and ny == start_y and len(points) > 2:
                return points
            if not visited[ny, nx]:
                step = (nx, ny, d)
                break
        if step is None:
            return points
        x, y, heading = step
        visited[y, x] = True
        points.append((x, y))


def contour_area(points):
    """Shoelace area of the polygon closed over `points`."""
    if len(points) < 3:
        return 0.0
    pts = np.asarray(points, dtype=np.float64)
    xs, ys = pts[:, 0], pts[:, 1]
    return 0.5 * abs(float(np.dot(xs, np.roll(ys, -1)) - np.dot(ys, np.roll(xs, -1))))


def contour_aspect_ratio(points):
    pts = np.asarray(points, dtype=np.float64)
    width = pts[:, 0].max() - pts[:, 0].min() + 1.0
    height = pts[:, 1].max() - pts[:, 1].min() + 1.0
    return width / height


def is_valid_contour(points, min_length):
    if len(points) < min_length:
        return False
    aspect = contour_aspect_ratio(points)
    if aspect < MIN_ASPECT_RATIO or aspect > MAX_ASPECT_RATIO:
        return False
    return contour_area(points) >= MIN_CONTOUR_AREA


def _traced_contours(edges, options):
    visited = np.zeros(edges.shape, dtype=bool)
    contours = []
    rejected = 0
    for y, x in np.argwhere(edges):
        if visited[y, x]:
            continue
        points = trace_contour(edges, visited, int(x), int(y))
        if is_valid_contour(points, options.min_edge_length):
            contours.append(points)
        else:
            rejected += 1
    logger.debug(f"Contour tracing kept {len(contours)}, rejected {rejected}")
    return contours


def _single_pixel_segments(edges, options):
    return [[(int(x), int(y))] for y, x in np.argwhere(edges)]


SEGMENT_STRATEGIES = (
    ("contour_trace", _traced_contours),
    ("single_pixel", _single_pixel_segments),
)


def extract_segments(edges, options):
    """
    Segments from the first strategy that yields any.

    Returns:
        tuple: (segments, strategy_name)
    """
    for name, strategy in SEGMENT_STRATEGIES:
        segments = strategy(edges, options)
        if segments:
            logger.debug(f"Segment strategy {name}: {len(segments)} segments")
            return segments, name
    return [], None


def filter_main_subject(segments, width, height):
    """Keep the 70% of segments whose centroids are closest to the frame centre."""
    if not segments:
        return []
    cx, cy = width / 2.0, height / 2.0

    def centre_distance(segment):
        pts = np.asarray(segment, dtype=np.float64)
        return math.hypot(pts[:, 0].mean() - cx, pts[:, 1].mean() - cy)

    ordered = sorted(segments, key=centre_distance)
    keep = max(1, int(math.floor(len(ordered) * MAIN_SUBJECT_FRACTION)))
    return ordered[:keep]


# -----------------------------
# Simplification
# -----------------------------


def point_to_segment_distance(point, start, end):
    px, py = point
    sx, sy = start
    ex, ey = end
    dx, dy = ex - sx, ey - sy
    len_sq = dx * dx + dy * dy
    if len_sq == 0:
        return math.hypot(px - sx, py - sy)
    t = ((px - sx) * dx + (py - sy) * dy) / len_sq
    t = min(1.0, max(0.0, t))
    return math.hypot(px - (sx + t * dx), py - (sy + t * dy))


def simplify_polyline(points, tolerance):
    """
    Ramer-Douglas-Peucker simplification, first and last point always kept.

    Args:
        points (list): (x, y) polyline
        tolerance (float): Maximum allowed deviation

    Returns:
        list: Simplified polyline in original order
    """
    if len(points) <= 2:
        return list(points)

    keep = [False] * len(points)
    keep[0] = keep[-1] = True
    stack = [(0, len(points) - 1)]
    while stack:
        start, end = stack.pop()
        if end - start <= 1:
            continue
        max_dist, max_index = 0.0, start
        for i in range(start + 1, end):
            dist = point_to_segment_distance(points[i], points[start], points[end])
            if dist > max_dist:
                max_dist, max_index = dist, i
        if max_dist > tolerance:
            keep[max_index] = True
            stack.append((start, max_index))
            stack.append((max_index, end))
    return [p for p, k in zip(points, keep) if k]


# -----------------------------
# Emission
# -----------------------------


def segments_to_graph(segments, origin=(0, 0), id_factory=new_id):
    """
    Convert simplified polylines into deduplicated dots and connecting lines.

    Points that round to the same pixel share one dot. Consecutive distinct
    points of a polyline are joined by a line.
    """
    ox, oy = origin
    graph = KeypointGraph()
    dot_ids = {}
    for polyline in segments:
        prev_id = None
        for x, y in polyline:
            key = (int(math.floor(x + 0.5)), int(math.floor(y + 0.5)))
            dot_id = dot_ids.get(key)
            if dot_id is None:
                dot_id = id_factory()
                dot_ids[key] = dot_id
                graph.dots.append(
                    Dot(id=dot_id, x=float(x + ox), y=float(y + oy), color=AUTO_DOT_COLOR)
                )
            if prev_id is not None and prev_id != dot_id:
                graph.lines.append(
                    LineSegment(
                        id=id_factory(),
                        start_dot_id=prev_id,
                        end_dot_id=dot_id,
                        color=AUTO_LINE_COLOR,
                    )
                )
            prev_id = dot_id
    return graph


class EdgeDetector:
    """
    Generates keypoint graphs from frame buffers.

    Pure function of its inputs: the same frame, options and id factory
    always produce the same graph. With the default uuid factory only the
    ids differ between runs.
    """

    def __init__(self, options=None, id_factory=new_id):
        """
        Initialize the detector.

        Args:
            options (EdgeDetectionOptions, optional): Detection parameters
            id_factory (callable): Generator for dot and line ids
        """
        self.options = options or EdgeDetectionOptions()
        self.id_factory = id_factory

    def detect(self, frame, bounding_box=None):
        """
        Detect edges in a frame and convert them to dots and lines.

        Args:
            frame: HxWx4 RGBA (or RGB / gray) frame buffer
            bounding_box (dict, optional): Region {x, y, width, height} to restrict
                processing to; clamped to the frame

        Returns:
            KeypointGraph: Dots in full-frame coordinates and their lines; empty
                for unreadable or zero-area input
        """
        arr = validate_frame(frame)
        if arr is None:
            return KeypointGraph()

        gray = to_grayscale(arr)
        origin = (0, 0)
        if bounding_box is not None:
            region = clamp_box_to_frame(bounding_box, gray.shape[1], gray.shape[0])
            if region is None:
                logger.warning(f"Region {bounding_box} does not overlap the frame")
                return KeypointGraph()
            x0, y0, w, h = region
            gray = gray[y0 : y0 + h, x0 : x0 + w]
            origin = (x0, y0)

        height, width = gray.shape
        opts = self.options
        blurred = gaussian_blur(gray, opts.blur_radius)

        edges, edge_strategy = build_edge_map(blurred, opts)
        if edge_strategy is None:
            logger.debug("No edges found by any strategy")
            return KeypointGraph()

        segments, _ = extract_segments(edges, opts)
        segments = filter_main_subject(segments, width, height)
        segments = segments[: int(opts.max_keypoints // POINTS_PER_SEGMENT_BUDGET)]
        simplified = [simplify_polyline(s, RDP_TOLERANCE) for s in segments]

        graph = segments_to_graph(simplified, origin=origin, id_factory=self.id_factory)
        logger.debug(
            f"Edge detection on {width}x{height} ({edge_strategy}): "
            f"{len(graph.dots)} dots, {len(graph.lines)} lines"
        )
        return graph


def detect_edges(frame, options=None, bounding_box=None, id_factory=new_id):
    """
    Convenience wrapper around EdgeDetector.detect.

    Coordinates and topology depend only on the frame and options, but ids
    come from `id_factory`. The default draws uuid4 values, so two calls on
    the same frame differ in ids; pass a deterministic factory (for example
    a counter) when results must be bit-for-bit reproducible.
    """
    return EdgeDetector(options, id_factory=id_factory).detect(frame, bounding_box)
