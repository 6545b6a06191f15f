"""
Annotation data model.

An annotation collection is a list of `Annotation` objects, each tracking one
subject across time as a list of per-frame `AnnotationFrame` records holding
dots (keypoints) and lines (connections between two dots of the same frame).

Tracking identity: when annotations are propagated from an earlier frame, the
copied dots and lines keep their ids. A dot id therefore names the same
tracked point across frames of one annotation, and is only unique within a
single frame record.
"""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field
from typing import Callable, List, Optional


class AnnotationFormatError(ValueError):
    """Raised when serialized annotation data cannot be parsed."""


def new_id() -> str:
    """Fresh unique identifier for dots, lines and annotations."""
    return uuid.uuid4().hex


IdFactory = Callable[[], str]


@dataclass
class Dot:
    """Single keypoint in canvas pixel space."""

    id: str
    x: float
    y: float
    color: str = "black"

    def to_json(self) -> dict:
        return {"id": self.id, "x": self.x, "y": self.y, "color": self.color}

    @staticmethod
    def from_json(data: dict) -> "Dot":
        try:
            return Dot(
                id=str(data["id"]),
                x=float(data["x"]),
                y=float(data["y"]),
                color=str(data.get("color", "black")),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise AnnotationFormatError(f"Invalid dot: {data!r}") from exc


@dataclass
class LineSegment:
    """Connection between two dots of the same frame record."""

    id: str
    start_dot_id: str
    end_dot_id: str
    color: str = "#000000"

    def touches(self, dot_id: str) -> bool:
        return self.start_dot_id == dot_id or self.end_dot_id == dot_id

    def to_json(self) -> dict:
        return {
            "id": self.id,
            "startDotId": self.start_dot_id,
            "endDotId": self.end_dot_id,
            "color": self.color,
        }

    @staticmethod
    def from_json(data: dict) -> "LineSegment":
        try:
            return LineSegment(
                id=str(data["id"]),
                start_dot_id=str(data["startDotId"]),
                end_dot_id=str(data["endDotId"]),
                color=str(data.get("color", "#000000")),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise AnnotationFormatError(f"Invalid line: {data!r}") from exc


@dataclass
class AnnotationFrame:
    """Dots and lines of one annotation at one frame index."""

    frame: int
    dots: List[Dot] = field(default_factory=list)
    lines: List[LineSegment] = field(default_factory=list)

    def find_dot(self, dot_id: str) -> Optional[Dot]:
        for dot in self.dots:
            if dot.id == dot_id:
                return dot
        return None

    def to_json(self) -> dict:
        return {
            "frame": self.frame,
            "dots": [d.to_json() for d in self.dots],
            "lines": [l.to_json() for l in self.lines],
        }

    @staticmethod
    def from_json(data: dict) -> "AnnotationFrame":
        try:
            frame = int(data["frame"])
        except (KeyError, TypeError, ValueError) as exc:
            raise AnnotationFormatError(f"Invalid frame record: {data!r}") from exc
        if frame < 0:
            raise AnnotationFormatError(f"Negative frame index: {frame}")
        return AnnotationFrame(
            frame=frame,
            dots=[Dot.from_json(d) for d in data.get("dots", [])],
            lines=[LineSegment.from_json(l) for l in data.get("lines", [])],
        )


@dataclass
class Annotation:
    """One tracked subject (e.g. a person) across frames."""

    id: str
    label: str = ""
    frames: List[AnnotationFrame] = field(default_factory=list)

    def get_frame(self, frame: int) -> Optional[AnnotationFrame]:
        for record in self.frames:
            if record.frame == frame:
                return record
        return None

    def is_empty(self) -> bool:
        """No frames, or a single frame without dots."""
        if not self.frames:
            return True
        return len(self.frames) == 1 and not self.frames[0].dots

    def to_json(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "frames": [f.to_json() for f in self.frames],
        }

    @staticmethod
    def from_json(data: dict) -> "Annotation":
        if not isinstance(data, dict) or "id" not in data:
            raise AnnotationFormatError(f"Invalid annotation: {data!r}")
        frames = [AnnotationFrame.from_json(f) for f in data.get("frames", [])]
        numbers = [f.frame for f in frames]
        if len(numbers) != len(set(numbers)):
            raise AnnotationFormatError(
                f"Annotation {data['id']} has duplicate frame records"
            )
        return Annotation(
            id=str(data["id"]), label=str(data.get("label", "")), frames=frames
        )


@dataclass
class KeypointGraph:
    """Free-standing dots and lines produced by a detector or template."""

    dots: List[Dot] = field(default_factory=list)
    lines: List[LineSegment] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.dots and not self.lines


AnnotationCollection = List[Annotation]


def clone_collection(annotations: AnnotationCollection) -> AnnotationCollection:
    """Structurally independent copy of a collection."""
    return copy.deepcopy(list(annotations))


def collection_to_json(annotations: AnnotationCollection) -> list:
    return [a.to_json() for a in annotations]


def collection_from_json(data: list) -> AnnotationCollection:
    """
    Parse the JSON interchange form of a collection.

    Raises:
        AnnotationFormatError: If the payload is not a list of annotations or
            annotation ids repeat.
    """
    if not isinstance(data, list):
        raise AnnotationFormatError("Annotation collection must be a JSON list")
    annotations = [Annotation.from_json(a) for a in data]
    ids = [a.id for a in annotations]
    if len(ids) != len(set(ids)):
        raise AnnotationFormatError("Duplicate annotation ids in collection")
    return annotations
