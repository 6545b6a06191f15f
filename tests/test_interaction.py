"""
Tests for the annotation session and the pointer interaction controller.

Tests cover:
- Dot placement and connected-dot placement from canvas clicks
- Dot click selection window and line creation
- Box selection timing, containment and batch deletion
- Context-click confirmations, middle-click frame deletion
- Dot dragging as a single undo step
- Session-level detection, templates and frame changes
"""

import pytest

from tests.helpers.factories import make_counter_ids
from keypoint_annotator.config import AnnotatorConfig
from keypoint_annotator.core import annotations as store
from keypoint_annotator.core.interaction import (
    AnnotationSession,
    DeleteKind,
    EventType,
    InputEvent,
    InteractionController,
)


@pytest.fixture
def session():
    return AnnotationSession(id_factory=make_counter_ids())


@pytest.fixture
def controller(session):
    session.set_frame(1)
    return InteractionController(session)


def click(x, y, **kwargs):
    return InputEvent(EventType.PRIMARY_CLICK, (x, y), **kwargs)


def context_click(x, y, **kwargs):
    return InputEvent(EventType.SECONDARY_CLICK, (x, y), **kwargs)


def _place_dots(controller, *points):
    """Each click on empty canvas with no selection starts a new annotation."""
    for x, y in points:
        controller.handle(click(x, y))
        controller.state.reset()


class TestCanvasClicks:
    def test_click_on_empty_canvas_creates_annotation(self, controller, session):
        controller.handle(click(10, 20))
        assert len(session.annotations) == 1
        record = session.annotations[0].get_frame(1)
        assert [(d.x, d.y) for d in record.dots] == [(10.0, 20.0)]
        assert record.lines == []
        assert session.history.history_info()["current_action"] == "Add dot"

    def test_click_with_selected_dot_adds_connected_dot(self, controller, session):
        controller.handle(click(10, 20))
        dot_a = session.annotations[0].get_frame(1).dots[0]

        controller.handle(click(12, 21))  # within 8px: selects A
        assert [d.id for d in controller.state.selected_points] == [dot_a.id]

        controller.handle(click(50, 60))
        assert len(session.annotations) == 1
        record = session.annotations[0].get_frame(1)
        assert len(record.dots) == 2
        dot_b = record.dots[1]
        assert len(record.lines) == 1
        assert record.lines[0].start_dot_id == dot_a.id
        assert record.lines[0].end_dot_id == dot_b.id
        assert controller.state.previous_dot.id == dot_a.id
        assert [d.id for d in controller.state.selected_points] == [dot_b.id]

    def test_clicks_ignored_while_playing(self, controller, session):
        session.is_playing = True
        controller.handle(click(10, 20))
        assert session.annotations == []

    def test_line_click_marks_line(self, controller):
        controller.handle(click(0, 0, target_line_id="L1", target_annotation_id="A"))
        assert controller.state.delete_line_id == "L1"


class TestDotClicks:
    def _two_dots(self, controller, session):
        controller.handle(click(10, 10))
        ann = session.annotations[0]
        a = ann.get_frame(1).dots[0]
        session.apply("Add dot", store.add_dot, 1, (100, 100), [a], dot_id="b")
        return ann.id, a.id, "b"

    def test_second_dot_creates_line_and_shifts_window(self, controller, session):
        ann_id, a, b = self._two_dots(controller, session)
        controller.handle(click(10, 10, target_dot_id=a))
        controller.handle(click(100, 100, target_dot_id=b))

        lines = session.annotations[0].get_frame(1).lines
        assert [(l.start_dot_id, l.end_dot_id) for l in lines] == [(a, b)]
        assert controller.state.previous_dot.id == a
        assert [d.id for d in controller.state.selected_points] == [b]
        assert controller.state.selected_annotation_id == ann_id

    def test_same_dot_twice_creates_no_line(self, controller, session):
        _, a, _ = self._two_dots(controller, session)
        controller.handle(click(10, 10, target_dot_id=a))
        controller.handle(click(10, 10, target_dot_id=a))
        assert session.annotations[0].get_frame(1).lines == []

    def test_dots_of_different_annotations_are_not_joined(self, controller, session):
        _place_dots(controller, (10, 10), (200, 200))
        first = session.annotations[0].get_frame(1).dots[0].id
        second = session.annotations[1].get_frame(1).dots[0].id
        controller.handle(click(10, 10, target_dot_id=first))
        controller.handle(click(200, 200, target_dot_id=second))
        assert all(not a.get_frame(1).lines for a in session.annotations)
        assert [d.id for d in controller.state.selected_points] == [second]


class TestBoxSelection:
    def _drag(self, controller, start, end, held_ms):
        controller.handle(InputEvent(EventType.DRAG_START, start, timestamp_ms=0))
        controller.handle(InputEvent(EventType.DRAG_MOVE, end, timestamp_ms=held_ms))
        controller.handle(InputEvent(EventType.DRAG_END, end, timestamp_ms=held_ms + 10))

    def test_box_selects_contained_dots(self, controller, session):
        _place_dots(controller, (10, 10), (50, 50), (200, 200))
        self._drag(controller, (100, 100), (0, 0), held_ms=400)
        selected = {(d.x, d.y) for d in controller.state.bounding_box_selected_dots}
        assert selected == {(10.0, 10.0), (50.0, 50.0)}
        assert controller.state.selection_box is None
        assert not controller.state.is_selecting

    def test_quick_drag_is_not_a_box(self, controller, session):
        _place_dots(controller, (10, 10))
        self._drag(controller, (0, 0), (100, 100), held_ms=100)
        assert controller.state.bounding_box_selected_dots == []
        assert controller.state.selection_box is None

    def test_click_does_not_add_dot_while_box_selected(self, controller, session):
        _place_dots(controller, (10, 10))
        self._drag(controller, (0, 0), (100, 100), held_ms=400)
        controller.handle(click(300, 300))
        assert len(session.annotations) == 1

    def test_delete_box_selection(self, controller, session):
        _place_dots(controller, (10, 10), (50, 50), (200, 200))
        self._drag(controller, (0, 0), (100, 100), held_ms=400)
        pending = controller.handle(context_click(10, 10))
        assert pending.kind == DeleteKind.SELECTED_DOTS
        assert len(pending.dot_ids) == 2

        assert controller.confirm_delete()
        remaining = store.dots_at_frame(session.annotations, 1)
        assert [(d.x, d.y) for _, d in remaining] == [(200.0, 200.0)]
        assert len(session.annotations) == 1
        assert controller.state.bounding_box_selected_dots == []


class TestContextAndMiddleClicks:
    def test_context_click_on_dot_deletes_after_confirm(self, controller, session):
        _place_dots(controller, (10, 10))
        pending = controller.handle(context_click(11, 11, screen_position=(500, 400)))
        assert pending.kind == DeleteKind.DOT
        assert pending.position == (500, 400)
        assert len(session.annotations) == 1  # nothing deleted yet

        controller.confirm_delete()
        assert session.annotations == []
        assert controller.pending_delete is None

    def test_cancel_keeps_dot(self, controller, session):
        _place_dots(controller, (10, 10))
        controller.handle(context_click(10, 10))
        controller.cancel_delete()
        assert not controller.confirm_delete()
        assert len(session.annotations) == 1

    def test_context_click_on_line(self, controller, session):
        controller.handle(click(10, 10))
        ann = session.annotations[0]
        a = ann.get_frame(1).dots[0]
        session.apply("Add dot", store.add_dot, 1, (40, 40), [a], dot_id="b")
        session.apply("Add line", store.add_line, ann.id, 1, a.id, "b", line_id="L")

        pending = controller.handle(
            context_click(25, 25, target_line_id="L", target_annotation_id=ann.id)
        )
        assert pending.kind == DeleteKind.LINE
        controller.confirm_delete()
        record = session.annotations[0].get_frame(1)
        assert record.lines == []
        assert len(record.dots) == 2

    def test_context_click_on_empty_canvas_resets_selection(self, controller, session):
        controller.handle(click(10, 10))
        controller.handle(click(10, 10))
        assert controller.state.selected_points
        assert controller.handle(context_click(300, 300)) is None
        assert controller.state.selected_points == []
        assert controller.state.previous_dot is None
        assert len(session.annotations) == 1

    def test_middle_click_deletes_current_frame(self, controller, session):
        _place_dots(controller, (10, 10), (50, 50))
        session.set_frame(2)
        _place_dots(controller, (70, 70))
        controller.handle(InputEvent(EventType.MIDDLE_CLICK, (0, 0)))
        assert store.dots_at_frame(session.annotations, 2) == []
        assert len(store.dots_at_frame(session.annotations, 1)) == 2


class TestDotDrag:
    def test_drag_moves_dot_with_single_undo_entry(self, controller, session):
        controller.handle(click(10, 10))
        dot_id = session.annotations[0].get_frame(1).dots[0].id
        saved = len(session.history)

        controller.handle(InputEvent(EventType.DRAG_START, (10, 10), target_dot_id=dot_id))
        for x in (20, 30, 40):
            controller.handle(InputEvent(EventType.DRAG_MOVE, (x, x)))
        controller.handle(InputEvent(EventType.DRAG_END, (40, 40)))

        dot = session.annotations[0].get_frame(1).dots[0]
        assert (dot.x, dot.y) == (40.0, 40.0)
        assert len(session.history) == saved + 1

        assert session.undo()
        dot = session.annotations[0].get_frame(1).dots[0]
        assert (dot.x, dot.y) == (10.0, 10.0)

    def test_press_and_release_without_moving_adds_no_undo_entry(self, controller, session):
        controller.handle(click(10, 10))
        dot_id = session.annotations[0].get_frame(1).dots[0].id
        saved = len(session.history)

        controller.handle(InputEvent(EventType.DRAG_START, (10, 10), target_dot_id=dot_id))
        controller.handle(InputEvent(EventType.DRAG_END, (10, 10)))

        assert len(session.history) == saved
        assert controller.state.dragging_dot is None
        assert session.history.history_info()["current_action"] == "Add dot"


class TestAnnotationSession:
    def test_undo_redo(self, controller, session):
        controller.handle(click(10, 10))
        assert session.undo()
        assert session.annotations == []
        assert not session.undo()
        assert session.redo()
        assert len(session.annotations) == 1

    def test_frame_change_resets_selection(self, controller, session):
        controller.handle(click(10, 10))
        controller.handle(click(10, 10))
        controller.state.bounding_box_selected_dots = list(controller.state.selected_points)
        session.set_frame(5)
        assert controller.state.selected_points == []
        assert controller.state.bounding_box_selected_dots == []

    def test_set_time_uses_fps(self):
        session = AnnotationSession(config=AnnotatorConfig(fps=10))
        session.set_time(1.26)
        assert session.current_frame == 13
        assert session.current_time == pytest.approx(1.3)

    def test_apply_template(self, session):
        session.set_frame(3)
        assert session.apply_template("hand-pose", 400, 300)
        ann = session.annotations[0]
        assert ann.label == "Hand Pose"
        record = ann.get_frame(3)
        assert len(record.dots) == 21
        assert len(record.lines) == 20

    def test_unknown_template(self, session):
        assert not session.apply_template("tail-pose", 0, 0)
        assert session.annotations == []

    def test_detect_edges_merges_at_current_frame(self, session, square_frame):
        session.set_frame(4)
        assert session.detect_edges(square_frame)
        assert len(session.annotations) == 1
        assert session.annotations[0].get_frame(4).dots
        assert session.history.history_info()["current_action"] == "Edge detection"

    def test_detect_edges_on_flat_frame_changes_nothing(self, session, uniform_frame):
        assert not session.detect_edges(uniform_frame)
        assert session.annotations == []
        assert len(session.history) == 1

    def test_propagate_previous_frame(self, controller, session):
        _place_dots(controller, (10, 10))
        session.set_frame(3)
        session.propagate_previous_frame()
        assert len(store.dots_at_frame(session.annotations, 3)) == 1

    def test_history_size_from_config(self):
        session = AnnotationSession(config=AnnotatorConfig(history_size=3))
        assert session.history.max_history == 3
