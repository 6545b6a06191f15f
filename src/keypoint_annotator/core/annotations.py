"""
Annotation store operations.

Every mutation takes a collection and returns a new, structurally independent
collection; the input is never modified. Lookups that miss (unknown
annotation, frame or dot) degrade to no-ops so an interactive editing loop
is never interrupted.

Callers must uphold one invariant the store does not check on insert: a line
may only reference dots present in the same frame record. `add_line` trusts
its caller; every removal path cascades so that invariant is preserved.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from ..utils.geometry import is_point_near_dot
from .models import (
    Annotation,
    AnnotationCollection,
    AnnotationFrame,
    Dot,
    IdFactory,
    KeypointGraph,
    LineSegment,
    clone_collection,
    new_id,
)

logger = logging.getLogger(__name__)

DEFAULT_DOT_COLOR = "black"
DEFAULT_LINE_COLOR = "#000000"

# -----------------------------
# Lookups
# -----------------------------


def find_annotation(
    annotations: AnnotationCollection, annotation_id: str
) -> Optional[Annotation]:
    for ann in annotations:
        if ann.id == annotation_id:
            return ann
    return None


def get_frame(ann: Annotation, frame: int) -> Optional[AnnotationFrame]:
    return ann.get_frame(frame)


def get_dot(ann: Annotation, frame: int, dot_id: str) -> Optional[Dot]:
    record = ann.get_frame(frame)
    return record.find_dot(dot_id) if record else None


def find_dot_owner(
    annotations: AnnotationCollection, frame: int, dot_id: str
) -> Optional[Annotation]:
    """Annotation holding `dot_id` in its record at `frame`."""
    for ann in annotations:
        if get_dot(ann, frame, dot_id) is not None:
            return ann
    return None


def annotations_at_frame(
    annotations: AnnotationCollection, frame: int
) -> List[Annotation]:
    """Annotations that have a record at `frame` (the on-screen set)."""
    return [a for a in annotations if a.get_frame(frame) is not None]


def dots_at_frame(
    annotations: AnnotationCollection, frame: int
) -> List[Tuple[str, Dot]]:
    """All (annotation_id, dot) pairs visible at `frame`."""
    out = []
    for ann in annotations:
        record = ann.get_frame(frame)
        if record:
            out.extend((ann.id, dot) for dot in record.dots)
    return out


def find_dot_near(
    annotations: AnnotationCollection, frame: int, x: float, y: float, radius: float
) -> Optional[Tuple[str, Dot]]:
    """First dot at `frame` strictly within `radius` pixels of (x, y)."""
    for ann_id, dot in dots_at_frame(annotations, frame):
        if is_point_near_dot(x, y, dot, radius):
            return ann_id, dot
    return None


def has_frame_records(annotations: AnnotationCollection, frame: int) -> bool:
    return any(a.get_frame(frame) is not None for a in annotations)


def _owner_in_any_frame(annotations: AnnotationCollection, dot_id: str) -> Optional[Annotation]:
    for ann in annotations:
        if any(record.find_dot(dot_id) is not None for record in ann.frames):
            return ann
    return None


# -----------------------------
# In-place helpers (operate on already cloned structures)
# -----------------------------


def upsert_frame(ann: Annotation, frame: int) -> AnnotationFrame:
    record = ann.get_frame(frame)
    if record is None:
        record = AnnotationFrame(frame=frame)
        ann.frames.append(record)
    return record


def remove_frame(ann: Annotation, frame: int) -> None:
    ann.frames = [f for f in ann.frames if f.frame != frame]


def remove_dot_from_frame(record: AnnotationFrame, dot_id: str) -> None:
    record.dots = [d for d in record.dots if d.id != dot_id]
    record.lines = [l for l in record.lines if not l.touches(dot_id)]


def filter_empty_frames(ann: Annotation, current_frame: int) -> Optional[Annotation]:
    """
    Drop the record at `current_frame` if it has no dots.

    Returns:
        Annotation or None: The annotation, or None when no frames remain
    """
    remaining = [f for f in ann.frames if f.dots or f.frame != current_frame]
    if not remaining:
        return None
    ann.frames = remaining
    return ann


def clone_frame(record: AnnotationFrame, frame: Optional[int] = None) -> AnnotationFrame:
    """Fresh containers with the same ids and coordinates."""
    return AnnotationFrame(
        frame=record.frame if frame is None else frame,
        dots=[Dot(d.id, d.x, d.y, d.color) for d in record.dots],
        lines=[
            LineSegment(l.id, l.start_dot_id, l.end_dot_id, l.color)
            for l in record.lines
        ],
    )


def prune_empty(annotations: AnnotationCollection) -> AnnotationCollection:
    """Remove logically empty annotations."""
    kept = [a for a in annotations if not a.is_empty()]
    if len(kept) != len(annotations):
        logger.debug(f"Pruned {len(annotations) - len(kept)} empty annotation(s)")
    return kept


# -----------------------------
# Mutations
# -----------------------------


def add_dot(
    annotations: AnnotationCollection,
    frame: int,
    point: Tuple[float, float],
    selection: Sequence[Dot] = (),
    color: str = DEFAULT_DOT_COLOR,
    dot_id: Optional[str] = None,
    id_factory: IdFactory = new_id,
) -> AnnotationCollection:
    """
    Place a dot on the canvas at `frame`.

    With an empty selection a new unlabeled annotation is created around the
    dot. Otherwise the dot joins the annotation owning the selected dot,
    creating its record at `frame` if needed. No line is created here.

    Args:
        annotations: Current collection
        frame (int): Frame index
        point (tuple): (x, y) canvas position
        selection (sequence): Currently selected dots
        color (str): Dot color
        dot_id (str, optional): Id to use instead of a generated one
        id_factory (callable): Id generator

    Returns:
        New collection (unchanged copy if the selected dot has no owner)
    """
    result = clone_collection(annotations)
    x, y = point
    dot = Dot(id=dot_id or id_factory(), x=float(x), y=float(y), color=color)

    if not selection:
        result.append(
            Annotation(
                id=id_factory(),
                label="",
                frames=[AnnotationFrame(frame=frame, dots=[dot], lines=[])],
            )
        )
        return result

    owner = find_dot_owner(result, frame, selection[0].id) or _owner_in_any_frame(
        result, selection[0].id
    )
    if owner is None:
        logger.debug(f"Selected dot {selection[0].id} has no owning annotation")
        return result
    upsert_frame(owner, frame).dots.append(dot)
    return result


def add_line(
    annotations: AnnotationCollection,
    annotation_id: str,
    frame: int,
    start_dot_id: str,
    end_dot_id: str,
    color: str = DEFAULT_LINE_COLOR,
    line_id: Optional[str] = None,
    id_factory: IdFactory = new_id,
) -> AnnotationCollection:
    """Append a line to an existing frame record; no-op if the record is absent."""
    result = clone_collection(annotations)
    ann = find_annotation(result, annotation_id)
    record = ann.get_frame(frame) if ann else None
    if record is None:
        return result
    record.lines.append(
        LineSegment(
            id=line_id or id_factory(),
            start_dot_id=start_dot_id,
            end_dot_id=end_dot_id,
            color=color,
        )
    )
    return result


def remove_dot(
    annotations: AnnotationCollection, annotation_id: str, frame: int, dot_id: str
) -> AnnotationCollection:
    """
    Delete a dot and every line of that frame touching it.

    If the frame record is left without dots, the whole annotation is removed
    from the collection, not just the record.
    """
    result = clone_collection(annotations)
    ann = find_annotation(result, annotation_id)
    record = ann.get_frame(frame) if ann else None
    if record is None:
        return result
    remove_dot_from_frame(record, dot_id)
    if not record.dots:
        result = [a for a in result if a.id != annotation_id]
    return result


def remove_line(
    annotations: AnnotationCollection, annotation_id: str, frame: int, line_id: str
) -> AnnotationCollection:
    result = clone_collection(annotations)
    ann = find_annotation(result, annotation_id)
    record = ann.get_frame(frame) if ann else None
    if record is not None:
        record.lines = [l for l in record.lines if l.id != line_id]
    return result


def delete_all_selected(
    annotations: AnnotationCollection, frame: int, selected_dot_ids: Iterable[str]
) -> AnnotationCollection:
    """
    Batch delete of bounding-box selected dots at `frame`.

    Removes the dots and every line touching them in that frame only, drops
    records at `frame` left without dots, and drops annotations left without
    frames.
    """
    selected = set(selected_dot_ids)
    result = []
    for ann in clone_collection(annotations):
        record = ann.get_frame(frame)
        if record is not None:
            record.dots = [d for d in record.dots if d.id not in selected]
            record.lines = [
                l
                for l in record.lines
                if l.start_dot_id not in selected and l.end_dot_id not in selected
            ]
        kept = filter_empty_frames(ann, frame)
        if kept is not None:
            result.append(kept)
    return prune_empty(result)


remove_dots_in_box = delete_all_selected


def move_dot(
    annotations: AnnotationCollection,
    annotation_id: str,
    frame: int,
    dot_id: str,
    new_x: float,
    new_y: float,
) -> AnnotationCollection:
    result = clone_collection(annotations)
    ann = find_annotation(result, annotation_id)
    dot = get_dot(ann, frame, dot_id) if ann else None
    if dot is not None:
        dot.x = float(new_x)
        dot.y = float(new_y)
    return result


def find_previous_annotated_frame(
    annotations: AnnotationCollection, current_frame: int
) -> Optional[int]:
    """Nearest frame index below `current_frame` with any record, if any."""
    frame = current_frame - 1
    while frame >= 0:
        if has_frame_records(annotations, frame):
            return frame
        frame -= 1
    return None


def propagate_previous_frame(
    annotations: AnnotationCollection, current_frame: int
) -> AnnotationCollection:
    """
    Copy the nearest earlier annotated frame onto `current_frame`.

    For every annotation with a record at that earlier frame, its record at
    `current_frame` is replaced (or created) by a copy with the same dot and
    line ids, so dot ids keep naming the same tracked point. Frame 0 is never
    used as a source. Frames in between are left untouched.
    """
    result = clone_collection(annotations)
    source = find_previous_annotated_frame(result, current_frame)
    if not source:
        logger.debug(f"No earlier annotated frame to propagate onto {current_frame}")
        return result

    copied = 0
    for ann in result:
        record = ann.get_frame(source)
        if record is None:
            continue
        ann.frames = [f for f in ann.frames if f.frame != current_frame]
        ann.frames.append(clone_frame(record, frame=current_frame))
        copied += 1
    logger.debug(f"Propagated {copied} annotation(s) from frame {source} to {current_frame}")
    return result


def set_label(
    annotations: AnnotationCollection, annotation_id: str, new_label: str
) -> AnnotationCollection:
    result = clone_collection(annotations)
    ann = find_annotation(result, annotation_id)
    if ann is not None:
        ann.label = new_label
    return result


def remove_annotation(
    annotations: AnnotationCollection, annotation_id: str
) -> AnnotationCollection:
    return [a for a in clone_collection(annotations) if a.id != annotation_id]


def delete_frame(annotations: AnnotationCollection, frame: int) -> AnnotationCollection:
    """Remove every annotation's record at `frame`, dropping annotations left empty."""
    result = []
    for ann in clone_collection(annotations):
        remove_frame(ann, frame)
        if ann.frames:
            result.append(ann)
    return prune_empty(result)


def merge_detected(
    annotations: AnnotationCollection,
    frame: int,
    graph: KeypointGraph,
    label: str = "",
    id_factory: IdFactory = new_id,
) -> AnnotationCollection:
    """Insert detector or template output as a new annotation at `frame`."""
    result = clone_collection(annotations)
    if not graph.dots:
        return result
    record = AnnotationFrame(
        frame=frame,
        dots=[Dot(d.id, d.x, d.y, d.color) for d in graph.dots],
        lines=[
            LineSegment(l.id, l.start_dot_id, l.end_dot_id, l.color)
            for l in graph.lines
        ],
    )
    result.append(Annotation(id=id_factory(), label=label, frames=[record]))
    return result
