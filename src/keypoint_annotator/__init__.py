"""
Keypoint Annotator Package

Frame-indexed keypoint annotation for video: dots and connecting lines per
frame, grouped into annotations that track one subject over time.

Key Features:
- Annotation store with pure, frame-scoped mutation operations
- Classical edge-detection pipeline that proposes keypoints from a frame
- Bounded undo/redo history over deep-copied snapshots
- Click, drag and box-select interaction state machine
- Built-in skeleton templates (human pose, hand, face)
- CSV export of dots and lines with frame timestamps
"""

__version__ = "1.0.0"

from .app.launcher import main, parse_arguments, setup_logging

__all__ = ["main", "parse_arguments", "setup_logging", "__version__"]
