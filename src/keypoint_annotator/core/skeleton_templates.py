"""
Built-in skeleton templates and their placement on the canvas.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .models import Dot, IdFactory, KeypointGraph, LineSegment, new_id

logger = logging.getLogger(__name__)

TEMPLATE_DOT_COLOR = "red"
TEMPLATE_LINE_COLOR = "#000000"
DEFAULT_CENTER = (400.0, 300.0)


@dataclass(frozen=True)
class TemplateDot:
    key: str
    x: float
    y: float
    label: str


@dataclass(frozen=True)
class TemplateLine:
    start_key: str
    end_key: str
    label: str = ""


@dataclass(frozen=True)
class SkeletonTemplate:
    """Named dot/line graph whose lines refer to dots by template-local keys."""

    id: str
    name: str
    description: str
    dots: Tuple[TemplateDot, ...]
    lines: Tuple[TemplateLine, ...] = field(default_factory=tuple)

    def centroid(self) -> Tuple[float, float]:
        n = len(self.dots)
        return (
            sum(d.x for d in self.dots) / n,
            sum(d.y for d in self.dots) / n,
        )


def _dots(*rows) -> Tuple[TemplateDot, ...]:
    return tuple(TemplateDot(key, x, y, label) for key, x, y, label in rows)


def _lines(*rows) -> Tuple[TemplateLine, ...]:
    return tuple(TemplateLine(a, b, label) for a, b, label in rows)


HUMAN_POSE = SkeletonTemplate(
    id="human-pose",
    name="Human Pose",
    description="17-point human body pose (COCO format)",
    dots=_dots(
        ("nose", 400, 100, "Nose"),
        ("left-eye", 390, 90, "Left Eye"),
        ("right-eye", 410, 90, "Right Eye"),
        ("left-ear", 380, 95, "Left Ear"),
        ("right-ear", 420, 95, "Right Ear"),
        ("left-shoulder", 350, 150, "Left Shoulder"),
        ("right-shoulder", 450, 150, "Right Shoulder"),
        ("left-elbow", 320, 200, "Left Elbow"),
        ("right-elbow", 480, 200, "Right Elbow"),
        ("left-wrist", 290, 250, "Left Wrist"),
        ("right-wrist", 510, 250, "Right Wrist"),
        ("left-hip", 370, 300, "Left Hip"),
        ("right-hip", 430, 300, "Right Hip"),
        ("left-knee", 360, 380, "Left Knee"),
        ("right-knee", 440, 380, "Right Knee"),
        ("left-ankle", 350, 450, "Left Ankle"),
        ("right-ankle", 450, 450, "Right Ankle"),
    ),
    lines=_lines(
        ("nose", "left-eye", "Face"),
        ("nose", "right-eye", "Face"),
        ("left-eye", "left-ear", "Face"),
        ("right-eye", "right-ear", "Face"),
        ("nose", "left-shoulder", "Torso"),
        ("nose", "right-shoulder", "Torso"),
        ("left-shoulder", "right-shoulder", "Torso"),
        ("left-shoulder", "left-elbow", "Left Arm"),
        ("left-elbow", "left-wrist", "Left Arm"),
        ("right-shoulder", "right-elbow", "Right Arm"),
        ("right-elbow", "right-wrist", "Right Arm"),
        ("left-shoulder", "left-hip", "Torso"),
        ("right-shoulder", "right-hip", "Torso"),
        ("left-hip", "right-hip", "Torso"),
        ("left-hip", "left-knee", "Left Leg"),
        ("left-knee", "left-ankle", "Left Leg"),
        ("right-hip", "right-knee", "Right Leg"),
        ("right-knee", "right-ankle", "Right Leg"),
    ),
)

HAND_POSE = SkeletonTemplate(
    id="hand-pose",
    name="Hand Pose",
    description="21-point hand keypoints",
    dots=_dots(
        ("wrist", 400, 300, "Wrist"),
        ("thumb-cmc", 420, 320, "Thumb CMC"),
        ("thumb-mcp", 440, 340, "Thumb MCP"),
        ("thumb-ip", 460, 360, "Thumb IP"),
        ("thumb-tip", 480, 380, "Thumb Tip"),
        ("index-mcp", 380, 320, "Index MCP"),
        ("index-pip", 360, 340, "Index PIP"),
        ("index-dip", 340, 360, "Index DIP"),
        ("index-tip", 320, 380, "Index Tip"),
        ("middle-mcp", 400, 320, "Middle MCP"),
        ("middle-pip", 400, 340, "Middle PIP"),
        ("middle-dip", 400, 360, "Middle DIP"),
        ("middle-tip", 400, 380, "Middle Tip"),
        ("ring-mcp", 420, 320, "Ring MCP"),
        ("ring-pip", 440, 340, "Ring PIP"),
        ("ring-dip", 460, 360, "Ring DIP"),
        ("ring-tip", 480, 380, "Ring Tip"),
        ("pinky-mcp", 440, 320, "Pinky MCP"),
        ("pinky-pip", 460, 340, "Pinky PIP"),
        ("pinky-dip", 480, 360, "Pinky DIP"),
        ("pinky-tip", 500, 380, "Pinky Tip"),
    ),
    lines=_lines(
        ("wrist", "thumb-cmc", "Thumb"),
        ("thumb-cmc", "thumb-mcp", "Thumb"),
        ("thumb-mcp", "thumb-ip", "Thumb"),
        ("thumb-ip", "thumb-tip", "Thumb"),
        ("wrist", "index-mcp", "Index"),
        ("index-mcp", "index-pip", "Index"),
        ("index-pip", "index-dip", "Index"),
        ("index-dip", "index-tip", "Index"),
        ("wrist", "middle-mcp", "Middle"),
        ("middle-mcp", "middle-pip", "Middle"),
        ("middle-pip", "middle-dip", "Middle"),
        ("middle-dip", "middle-tip", "Middle"),
        ("wrist", "ring-mcp", "Ring"),
        ("ring-mcp", "ring-pip", "Ring"),
        ("ring-pip", "ring-dip", "Ring"),
        ("ring-dip", "ring-tip", "Ring"),
        ("wrist", "pinky-mcp", "Pinky"),
        ("pinky-mcp", "pinky-pip", "Pinky"),
        ("pinky-pip", "pinky-dip", "Pinky"),
        ("pinky-dip", "pinky-tip", "Pinky"),
    ),
)

FACE_LANDMARKS = SkeletonTemplate(
    id="face-landmarks",
    name="Face Landmarks",
    description="Basic facial keypoints",
    dots=_dots(
        ("nose-tip", 400, 200, "Nose Tip"),
        ("left-eye-inner", 380, 180, "Left Eye Inner"),
        ("left-eye-outer", 360, 180, "Left Eye Outer"),
        ("right-eye-inner", 420, 180, "Right Eye Inner"),
        ("right-eye-outer", 440, 180, "Right Eye Outer"),
        ("left-mouth", 370, 220, "Left Mouth"),
        ("right-mouth", 430, 220, "Right Mouth"),
        ("chin", 400, 240, "Chin"),
    ),
    lines=_lines(
        ("left-eye-inner", "left-eye-outer", "Left Eye"),
        ("right-eye-inner", "right-eye-outer", "Right Eye"),
        ("left-mouth", "right-mouth", "Mouth"),
        ("nose-tip", "chin", "Face Center"),
    ),
)

SKELETON_TEMPLATES: Dict[str, SkeletonTemplate] = {
    t.id: t for t in (HUMAN_POSE, HAND_POSE, FACE_LANDMARKS)
}


def list_templates() -> List[SkeletonTemplate]:
    return list(SKELETON_TEMPLATES.values())


def get_template(template_id: str) -> Optional[SkeletonTemplate]:
    return SKELETON_TEMPLATES.get(template_id)


def apply_skeleton_template(
    template: SkeletonTemplate,
    center_x: float = DEFAULT_CENTER[0],
    center_y: float = DEFAULT_CENTER[1],
    id_factory: IdFactory = new_id,
) -> KeypointGraph:
    """
    Instantiate a template so that its dot centroid lands on (center_x, center_y).

    Every dot receives a fresh id and line endpoints are rewritten from
    template keys to those ids. An endpoint key the template does not define
    maps to an empty id.

    Args:
        template (SkeletonTemplate): Template to place
        center_x, center_y (float): Target centroid in canvas pixels
        id_factory (callable): Id generator

    Returns:
        KeypointGraph: New dots (red) and lines (black)
    """
    if not template.dots:
        return KeypointGraph()

    cx, cy = template.centroid()
    dx, dy = center_x - cx, center_y - cy

    graph = KeypointGraph()
    key_to_id = {}
    for tdot in template.dots:
        dot = Dot(
            id=id_factory(),
            x=tdot.x + dx,
            y=tdot.y + dy,
            color=TEMPLATE_DOT_COLOR,
        )
        key_to_id[tdot.key] = dot.id
        graph.dots.append(dot)

    for tline in template.lines:
        start = key_to_id.get(tline.start_key, "")
        end = key_to_id.get(tline.end_key, "")
        if not start or not end:
            logger.warning(
                f"Template {template.id}: line {tline.start_key}->{tline.end_key} "
                "references an unknown dot key"
            )
        graph.lines.append(
            LineSegment(
                id=id_factory(),
                start_dot_id=start,
                end_dot_id=end,
                color=TEMPLATE_LINE_COLOR,
            )
        )
    return graph
