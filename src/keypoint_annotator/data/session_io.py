"""
Save and load annotation sessions as JSON.

A session file is `{"version": 1, "fps": <float>, "annotations": [...]}`
where the annotations list uses the collection interchange form. A bare
annotations list is also accepted on load.
"""

import json
import logging
from pathlib import Path

from ..core.models import (
    AnnotationFormatError,
    collection_from_json,
    collection_to_json,
)

logger = logging.getLogger(__name__)

SESSION_VERSION = 1


def save_session(annotations, path, fps=None):
    """
    Write an annotation collection to a session file.

    Args:
        annotations (list): Annotation collection
        path (str or Path): Destination file
        fps (float, optional): Frame rate to record alongside the annotations
    """
    path = Path(path)
    payload = {
        "version": SESSION_VERSION,
        "fps": fps,
        "annotations": collection_to_json(annotations),
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
    logger.info(f"Saved {len(annotations)} annotation(s) to {path}")


def load_session(path):
    """
    Read a session file.

    Returns:
        tuple: (annotations, fps) where fps is None if the file does not record it

    Raises:
        FileNotFoundError: If `path` does not exist
        AnnotationFormatError: If the content is not a valid session
    """
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            raise AnnotationFormatError(f"{path} is not valid JSON: {exc}") from exc

    fps = None
    if isinstance(data, dict):
        version = data.get("version", SESSION_VERSION)
        if version != SESSION_VERSION:
            raise AnnotationFormatError(f"Unsupported session version: {version}")
        fps = data.get("fps")
        data = data.get("annotations", [])

    annotations = collection_from_json(data)
    logger.info(f"Loaded {len(annotations)} annotation(s) from {path}")
    return annotations, fps
