"""
Contract for external object detectors.

Detector backends (ONNX/YOLO sessions and the like) live outside this
package. They hand back axis-aligned boxes, which are used here only to pick
the region of interest the edge detector should work on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetectionBox:
    """Axis-aligned detection in canvas pixels."""

    x: float
    y: float
    width: float
    height: float
    score: float
    class_id: int
    class_name: Optional[str] = None

    def to_region(self) -> dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    @staticmethod
    def from_json(data: dict) -> "DetectionBox":
        return DetectionBox(
            x=float(data["x"]),
            y=float(data["y"]),
            width=float(data["width"]),
            height=float(data["height"]),
            score=float(data.get("score", 1.0)),
            class_id=int(data.get("classId", data.get("class_id", 0))),
            class_name=data.get("className", data.get("class_name")),
        )


def iou(a: DetectionBox, b: DetectionBox) -> float:
    """Intersection over union of two boxes."""
    ix1, iy1 = max(a.x, b.x), max(a.y, b.y)
    ix2 = min(a.x + a.width, b.x + b.width)
    iy2 = min(a.y + a.height, b.y + b.height)
    inter = max(0.0, ix2 - ix1) * max(0.0, iy2 - iy1)
    union = max(0.0, a.width) * max(0.0, a.height) + max(0.0, b.width) * max(
        0.0, b.height
    )
    union -= inter
    return inter / union if union > 0 else 0.0


def _matches(det: DetectionBox, class_filter: Sequence[Union[int, str]]) -> bool:
    if not class_filter:
        return True
    for wanted in class_filter:
        if isinstance(wanted, str):
            if det.class_name == wanted:
                return True
        elif det.class_id == wanted:
            return True
    return False


def select_subject_region(
    detections: Iterable[DetectionBox],
    class_filter: Sequence[Union[int, str]] = (),
    min_score: float = 0.0,
) -> Optional[dict]:
    """
    Region of the best-scoring detection that passes the filters.

    Args:
        detections: Boxes returned by a detector
        class_filter: Class ids or names to accept; empty accepts all
        min_score (float): Minimum confidence

    Returns:
        dict or None: {x, y, width, height} region for the edge detector
    """
    candidates = [
        d
        for d in detections
        if d.score >= min_score and d.width > 0 and d.height > 0 and _matches(d, class_filter)
    ]
    if not candidates:
        logger.debug("No detection passed the subject filters")
        return None
    best = max(candidates, key=lambda d: d.score)
    return best.to_region()
