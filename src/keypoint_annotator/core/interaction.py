"""
Pointer-driven editing of an annotation session.

`AnnotationSession` owns the annotation collection, the undo/redo history and
the transient selection state of one editing session. `InteractionController`
consumes tagged input events and decides which store mutation to run.

Every committed mutation is recorded in the history after it is applied. A
dot drag is committed once, when the drag ends, so intermediate positions
are not individually undoable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Tuple

from ..config import AnnotatorConfig
from ..utils.geometry import (
    is_dot_inside_box,
    is_point_near_dot,
    normalize_selection_box,
)
from ..utils.video_io import frame_to_seconds, seconds_to_frame
from . import annotations as store
from .edge_detection import EdgeDetector
from .history import UndoRedoManager
from .models import AnnotationCollection, Dot, IdFactory, KeypointGraph, new_id
from .skeleton_templates import apply_skeleton_template, get_template

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    PRIMARY_CLICK = "primaryClick"
    SECONDARY_CLICK = "secondaryClick"
    MIDDLE_CLICK = "middleClick"
    DRAG_START = "dragStart"
    DRAG_MOVE = "dragMove"
    DRAG_END = "dragEnd"


@dataclass(frozen=True)
class InputEvent:
    """
    One pointer event on the canvas.

    `position` is in canvas pixels; `screen_position` is where a confirmation
    popup should open. Target fields name the dot or line under the pointer
    when the caller already knows it.
    """

    type: EventType
    position: Tuple[float, float]
    target_dot_id: Optional[str] = None
    target_annotation_id: Optional[str] = None
    target_line_id: Optional[str] = None
    timestamp_ms: float = 0.0
    screen_position: Optional[Tuple[float, float]] = None


class DeleteKind(str, Enum):
    DOT = "dot"
    LINE = "line"
    SELECTED_DOTS = "selectedDots"


@dataclass
class PendingDelete:
    """A delete awaiting user confirmation."""

    kind: DeleteKind
    position: Tuple[float, float]
    annotation_id: Optional[str] = None
    dot_id: Optional[str] = None
    line_id: Optional[str] = None
    dot_ids: List[str] = field(default_factory=list)


@dataclass
class SelectionState:
    selected_points: List[Dot] = field(default_factory=list)
    previous_dot: Optional[Dot] = None
    selected_annotation_id: Optional[str] = None
    bounding_box_selected_dots: List[Dot] = field(default_factory=list)
    selection_box: Optional[dict] = None
    is_selecting: bool = False
    mouse_down_time_ms: Optional[float] = None
    delete_line_id: Optional[str] = None
    dragging_dot: Optional[Tuple[str, str]] = None  # (annotation_id, dot_id)
    hovered_dot_id: Optional[str] = None
    hovered_line_id: Optional[str] = None

    def reset(self) -> None:
        """Clear the click selection; the bounding-box set is kept."""
        self.selected_points = []
        self.previous_dot = None
        self.delete_line_id = None
        self.selection_box = None


class AnnotationSession:
    """Annotation store, history and selection of one editing session."""

    def __init__(
        self,
        annotations: Optional[AnnotationCollection] = None,
        config: Optional[AnnotatorConfig] = None,
        id_factory: IdFactory = new_id,
    ):
        self.config = config or AnnotatorConfig()
        self.id_factory = id_factory
        self.annotations: AnnotationCollection = store.clone_collection(
            annotations or []
        )
        self.history = UndoRedoManager(self.annotations, self.config.history_size)
        self.selection = SelectionState()
        self.current_frame = 0
        self.is_playing = False

    # ----- frames -----
    def set_frame(self, frame: int) -> None:
        """Move to another frame; transient selection does not carry over."""
        frame = max(0, int(frame))
        if frame == self.current_frame:
            return
        self.current_frame = frame
        self.selection.reset()
        self.selection.bounding_box_selected_dots = []

    def set_time(self, seconds: float) -> None:
        self.set_frame(seconds_to_frame(seconds, self.config.fps))

    @property
    def current_time(self) -> float:
        return frame_to_seconds(self.current_frame, self.config.fps)

    def current_annotations(self) -> AnnotationCollection:
        return store.annotations_at_frame(self.annotations, self.current_frame)

    # ----- mutations -----
    def commit(self, action: str, annotations: AnnotationCollection) -> None:
        """Install a new collection and record it in the history."""
        self.annotations = annotations
        self.history.save_state(annotations, action)

    def apply(self, action: str, mutation: Callable, *args, **kwargs) -> None:
        """Run a store mutation against the live collection and commit the result."""
        self.commit(action, mutation(self.annotations, *args, **kwargs))

    def undo(self) -> bool:
        restored = self.history.undo()
        if restored is None:
            return False
        self.annotations = restored
        self.selection.reset()
        self.selection.bounding_box_selected_dots = []
        return True

    def redo(self) -> bool:
        restored = self.history.redo()
        if restored is None:
            return False
        self.annotations = restored
        self.selection.reset()
        self.selection.bounding_box_selected_dots = []
        return True

    def propagate_previous_frame(self) -> None:
        self.apply(
            "Load previous frame",
            store.propagate_previous_frame,
            self.current_frame,
        )

    def set_label(self, annotation_id: str, label: str) -> None:
        self.apply("Rename annotation", store.set_label, annotation_id, label)

    def remove_annotation(self, annotation_id: str) -> None:
        self.apply("Delete annotation", store.remove_annotation, annotation_id)

    def merge_graph(self, action: str, graph: KeypointGraph, label: str = "") -> bool:
        """Add a detector or template graph as a new annotation at the current frame."""
        dot_ids = {d.id for d in graph.dots}
        valid = [
            l for l in graph.lines if l.start_dot_id in dot_ids and l.end_dot_id in dot_ids
        ]
        if len(valid) != len(graph.lines):
            logger.warning(
                f"{action}: dropped {len(graph.lines) - len(valid)} line(s) with unknown endpoints"
            )
        graph = KeypointGraph(dots=graph.dots, lines=valid)
        if not graph.dots:
            return False
        self.apply(
            action,
            store.merge_detected,
            self.current_frame,
            graph,
            label,
            id_factory=self.id_factory,
        )
        return True

    def detect_edges(self, frame_buffer, options=None, bounding_box=None) -> bool:
        """
        Run edge detection on a frame buffer and merge the result.

        Ids come from the session's `id_factory`; repeat runs only match
        bit-for-bit when it is deterministic.
        """
        detector = EdgeDetector(options or self.config.edge, id_factory=self.id_factory)
        graph = detector.detect(frame_buffer, bounding_box)
        logger.info(
            f"Edge detection at frame {self.current_frame}: {len(graph.dots)} dots"
        )
        return self.merge_graph("Edge detection", graph)

    def apply_template(self, template_id: str, center_x: float, center_y: float) -> bool:
        template = get_template(template_id)
        if template is None:
            logger.warning(f"Unknown skeleton template: {template_id}")
            return False
        graph = apply_skeleton_template(
            template, center_x, center_y, id_factory=self.id_factory
        )
        logger.info(f"Applied template {template_id} at frame {self.current_frame}")
        return self.merge_graph(f"Apply {template.name}", graph, label=template.name)


class InteractionController:
    """State machine turning pointer events into store mutations."""

    def __init__(self, session: AnnotationSession):
        self.session = session
        self.pending_delete: Optional[PendingDelete] = None

    @property
    def state(self) -> SelectionState:
        return self.session.selection

    def handle(self, event: InputEvent) -> Optional[PendingDelete]:
        """
        Dispatch one input event.

        Returns:
            PendingDelete or None: A delete confirmation to show, if the event opened one
        """
        handlers = {
            EventType.PRIMARY_CLICK: self._on_primary_click,
            EventType.SECONDARY_CLICK: self._on_secondary_click,
            EventType.MIDDLE_CLICK: self._on_middle_click,
            EventType.DRAG_START: self._on_drag_start,
            EventType.DRAG_MOVE: self._on_drag_move,
            EventType.DRAG_END: self._on_drag_end,
        }
        return handlers[EventType(event.type)](event)

    # ----- hit testing -----
    def _resolve_dot(self, event: InputEvent) -> Optional[Tuple[str, Dot]]:
        session = self.session
        if event.target_dot_id is not None:
            owner = (
                store.find_annotation(session.annotations, event.target_annotation_id)
                if event.target_annotation_id
                else store.find_dot_owner(
                    session.annotations, session.current_frame, event.target_dot_id
                )
            )
            if owner is None:
                return None
            dot = store.get_dot(owner, session.current_frame, event.target_dot_id)
            return (owner.id, dot) if dot else None
        x, y = event.position
        return store.find_dot_near(
            session.annotations,
            session.current_frame,
            x,
            y,
            session.config.dot_hit_radius,
        )

    def _in_box_selection(self, dot_id: str) -> bool:
        return any(d.id == dot_id for d in self.state.bounding_box_selected_dots)

    # ----- clicks -----
    def _on_primary_click(self, event: InputEvent) -> None:
        session = self.session
        if session.is_playing:
            return None
        if event.target_line_id is not None:
            self.state.delete_line_id = event.target_line_id
            return None

        hit = self._resolve_dot(event)
        if hit is not None:
            self.handle_dot_click(*hit)
            return None
        if self.state.bounding_box_selected_dots:
            # releasing a box selection must not drop a dot
            return None
        self._add_dot(event.position)
        return None

    def _add_dot(self, position: Tuple[float, float]) -> None:
        session = self.session
        state = self.state
        dot_id = session.id_factory()
        cfg = session.config

        if not state.selected_points:
            session.apply(
                "Add dot",
                store.add_dot,
                session.current_frame,
                position,
                (),
                color=cfg.manual_dot_color,
                dot_id=dot_id,
                id_factory=session.id_factory,
            )
            return

        anchor = state.selected_points[0]
        owner = store.find_dot_owner(session.annotations, session.current_frame, anchor.id)
        if owner is None:
            state.reset()
            return
        with_dot = store.add_dot(
            session.annotations,
            session.current_frame,
            position,
            [anchor],
            color=cfg.manual_dot_color,
            dot_id=dot_id,
            id_factory=session.id_factory,
        )
        with_line = store.add_line(
            with_dot,
            owner.id,
            session.current_frame,
            anchor.id,
            dot_id,
            color=cfg.manual_line_color,
            id_factory=session.id_factory,
        )
        session.commit("Add connected dot", with_line)
        new_dot = store.get_dot(
            store.find_annotation(session.annotations, owner.id),
            session.current_frame,
            dot_id,
        )
        state.previous_dot = anchor
        state.selected_points = [new_dot]
        state.selected_annotation_id = owner.id

    def handle_dot_click(self, annotation_id: str, dot: Dot) -> None:
        """
        Select a dot, joining it to the previously selected one with a line.

        With one dot selected, clicking a different dot of the same annotation
        creates a line between them and slides the selection onto the clicked
        dot. With two selected, the click restarts the selection.
        """
        session = self.session
        state = self.state

        if len(state.selected_points) == 2:
            state.selected_points = [dot]
            state.previous_dot = None
        elif len(state.selected_points) == 1 and state.selected_points[0].id != dot.id:
            first = state.selected_points[0]
            if state.selected_annotation_id == annotation_id:
                session.apply(
                    "Add line",
                    store.add_line,
                    annotation_id,
                    session.current_frame,
                    first.id,
                    dot.id,
                    color=session.config.manual_line_color,
                    id_factory=session.id_factory,
                )
                state.previous_dot = first
            else:
                state.previous_dot = None
            state.selected_points = [dot]
        else:
            state.selected_points = [dot]
            state.previous_dot = None
        state.selected_annotation_id = annotation_id

    def _on_secondary_click(self, event: InputEvent) -> Optional[PendingDelete]:
        state = self.state
        screen = event.screen_position or event.position

        if event.target_line_id is not None and event.target_annotation_id:
            self.pending_delete = PendingDelete(
                kind=DeleteKind.LINE,
                position=screen,
                annotation_id=event.target_annotation_id,
                line_id=event.target_line_id,
            )
            return self.pending_delete

        hit = self._resolve_dot(event)
        if hit is not None:
            annotation_id, dot = hit
            if self._in_box_selection(dot.id):
                self.pending_delete = PendingDelete(
                    kind=DeleteKind.SELECTED_DOTS,
                    position=screen,
                    dot_ids=[d.id for d in state.bounding_box_selected_dots],
                )
            else:
                self.pending_delete = PendingDelete(
                    kind=DeleteKind.DOT,
                    position=screen,
                    annotation_id=annotation_id,
                    dot_id=dot.id,
                )
            return self.pending_delete

        x, y = event.position
        radius = self.session.config.dot_hit_radius
        on_box_selection = any(
            is_point_near_dot(x, y, d, radius) for d in state.bounding_box_selected_dots
        )
        state.reset()
        if not on_box_selection:
            state.bounding_box_selected_dots = []
        return None

    def _on_middle_click(self, event: InputEvent) -> None:
        session = self.session
        if session.is_playing:
            return None
        self.state.bounding_box_selected_dots = []
        self.state.reset()
        session.apply("Delete frame", store.delete_frame, session.current_frame)
        return None

    # ----- confirmations -----
    def confirm_delete(self) -> bool:
        """Carry out the pending delete. Returns False if nothing was pending."""
        pending = self.pending_delete
        if pending is None:
            return False
        session = self.session
        frame = session.current_frame
        if pending.kind == DeleteKind.DOT:
            session.apply(
                "Delete dot", store.remove_dot, pending.annotation_id, frame, pending.dot_id
            )
            self.state.selected_points = []
            self.state.previous_dot = None
        elif pending.kind == DeleteKind.LINE:
            session.apply(
                "Delete line", store.remove_line, pending.annotation_id, frame, pending.line_id
            )
            self.state.delete_line_id = None
        else:
            session.apply(
                "Delete selected dots", store.delete_all_selected, frame, pending.dot_ids
            )
            self.state.bounding_box_selected_dots = []
            self.state.selected_points = []
        self.pending_delete = None
        return True

    def cancel_delete(self) -> None:
        self.pending_delete = None

    # ----- drags -----
    def _on_drag_start(self, event: InputEvent) -> None:
        state = self.state
        if event.target_dot_id is not None:
            hit = self._resolve_dot(event)
            if hit is not None:
                state.dragging_dot = (hit[0], hit[1].id)
            return None

        x, y = event.position
        state.mouse_down_time_ms = event.timestamp_ms
        state.selection_box = {"x": x, "y": y, "width": 0.0, "height": 0.0}
        state.is_selecting = True
        return None

    def _held_past_click_threshold(self, event: InputEvent) -> bool:
        start = self.state.mouse_down_time_ms
        if start is None:
            return False
        return event.timestamp_ms - start > self.session.config.click_threshold_ms

    def _on_drag_move(self, event: InputEvent) -> None:
        session = self.session
        state = self.state
        x, y = event.position

        if state.dragging_dot is not None:
            annotation_id, dot_id = state.dragging_dot
            session.annotations = store.move_dot(
                session.annotations, annotation_id, session.current_frame, dot_id, x, y
            )
            return None

        if not state.is_selecting or state.selection_box is None:
            return None
        if not self._held_past_click_threshold(event):
            return None
        box = dict(state.selection_box)
        box["width"] = x - box["x"]
        box["height"] = y - box["y"]
        state.selection_box = box
        state.bounding_box_selected_dots = self.dots_in_box(box)
        return None

    def _on_drag_end(self, event: InputEvent) -> None:
        session = self.session
        state = self.state

        if state.dragging_dot is not None:
            state.dragging_dot = None
            if session.annotations != session.history.current_state():
                session.commit("Move dot", session.annotations)
            return None

        if (
            state.is_selecting
            and state.selection_box is not None
            and self._held_past_click_threshold(event)
        ):
            state.bounding_box_selected_dots = self.dots_in_box(state.selection_box)
        state.is_selecting = False
        state.selection_box = None
        state.mouse_down_time_ms = None
        return None

    def dots_in_box(self, box: dict) -> List[Dot]:
        """Dots of the current frame inside a (possibly unnormalized) box."""
        normalized = normalize_selection_box(box)
        return [
            dot
            for _, dot in store.dots_at_frame(
                self.session.annotations, self.session.current_frame
            )
            if is_dot_inside_box(dot, normalized)
        ]
