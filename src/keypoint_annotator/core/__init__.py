"""
Core annotation components.

Data model, annotation store operations, edge detection, undo/redo history,
skeleton templates and the detector contract. The interaction controller
lives in `core.interaction` and is imported from there.
"""
from .models import Annotation, AnnotationFrame, Dot, KeypointGraph, LineSegment
from .edge_detection import EdgeDetectionOptions, EdgeDetector, detect_edges
from .history import UndoRedoManager
from .skeleton_templates import apply_skeleton_template, get_template, list_templates
from .detections import DetectionBox, select_subject_region


__all__ = [
    "Annotation",
    "AnnotationFrame",
    "DetectionBox",
    "Dot",
    "EdgeDetectionOptions",
    "EdgeDetector",
    "KeypointGraph",
    "LineSegment",
    "UndoRedoManager",
    "apply_skeleton_template",
    "detect_edges",
    "get_template",
    "list_templates",
    "select_subject_region",
]
