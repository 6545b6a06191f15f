"""
Tests for annotation store operations.

Tests cover:
- Dot placement with and without a selection
- Cascading dot deletion and pruning of emptied annotations
- Batch deletion of box-selected dots
- Frame propagation, frame deletion and detector merges
- Input collections are never modified
"""

import pytest

from keypoint_annotator.core import annotations as store
from keypoint_annotator.core.models import (
    Annotation,
    AnnotationFrame,
    Dot,
    KeypointGraph,
    LineSegment,
    collection_to_json,
)


def _triangle(frame=1):
    """One annotation holding a triangle of dots a, b, c at `frame`."""
    return [
        Annotation(
            id="ann",
            label="subject",
            frames=[
                AnnotationFrame(
                    frame=frame,
                    dots=[Dot("a", 0, 0), Dot("b", 10, 0), Dot("c", 5, 8)],
                    lines=[
                        LineSegment("ab", "a", "b"),
                        LineSegment("bc", "b", "c"),
                        LineSegment("ca", "c", "a"),
                    ],
                )
            ],
        )
    ]


class TestAddDot:
    def test_empty_selection_creates_annotation(self, counter_ids):
        result = store.add_dot([], 1, (10, 20), id_factory=counter_ids)
        assert len(result) == 1
        ann = result[0]
        assert ann.label == ""
        assert len(ann.frames) == 1
        record = ann.frames[0]
        assert record.frame == 1
        assert [(d.x, d.y) for d in record.dots] == [(10.0, 20.0)]
        assert record.lines == []

    def test_selection_appends_to_owner(self):
        result = store.add_dot(_triangle(), 1, (3, 3), [Dot("a", 0, 0)], dot_id="new")
        assert len(result) == 1
        record = result[0].get_frame(1)
        assert [d.id for d in record.dots] == ["a", "b", "c", "new"]
        assert len(record.lines) == 3

    def test_selection_creates_missing_frame_record(self):
        result = store.add_dot(_triangle(), 2, (3, 3), [Dot("a", 0, 0)], dot_id="x")
        assert len(result) == 1
        record = result[0].get_frame(2)
        assert [d.id for d in record.dots] == ["x"]
        assert record.lines == []
        assert len(result[0].get_frame(1).dots) == 3

    def test_unknown_selection_is_noop(self):
        before = _triangle()
        result = store.add_dot(before, 1, (3, 3), [Dot("ghost", 0, 0)])
        assert collection_to_json(result) == collection_to_json(before)

    def test_input_not_mutated(self):
        before = _triangle()
        snapshot = collection_to_json(before)
        store.add_dot(before, 1, (3, 3), [Dot("a", 0, 0)])
        assert collection_to_json(before) == snapshot


class TestLines:
    def test_add_line(self, counter_ids):
        result = store.add_line(_triangle(), "ann", 1, "a", "c", id_factory=counter_ids)
        lines = result[0].get_frame(1).lines
        assert lines[-1].start_dot_id == "a"
        assert lines[-1].end_dot_id == "c"
        assert lines[-1].id == "id-1"

    def test_add_line_missing_frame_is_noop(self):
        result = store.add_line(_triangle(), "ann", 7, "a", "c")
        assert result[0].get_frame(7) is None
        assert len(result[0].get_frame(1).lines) == 3

    def test_remove_line_keeps_dots(self):
        result = store.remove_line(_triangle(), "ann", 1, "bc")
        record = result[0].get_frame(1)
        assert [l.id for l in record.lines] == ["ab", "ca"]
        assert len(record.dots) == 3


class TestRemoveDot:
    def test_cascades_to_lines(self):
        result = store.remove_dot(_triangle(), "ann", 1, "a")
        record = result[0].get_frame(1)
        assert [d.id for d in record.dots] == ["b", "c"]
        assert all(not l.touches("a") for l in record.lines)
        assert [l.id for l in record.lines] == ["bc"]

    def test_last_dot_prunes_annotation(self):
        collection = [
            Annotation("solo", frames=[AnnotationFrame(1, dots=[Dot("d", 1, 1)])]),
            _triangle()[0],
        ]
        result = store.remove_dot(collection, "solo", 1, "d")
        assert [a.id for a in result] == ["ann"]

    def test_emptied_frame_prunes_whole_annotation(self):
        collection = [
            Annotation(
                "multi",
                frames=[
                    AnnotationFrame(1, dots=[Dot("d", 1, 1)]),
                    AnnotationFrame(2, dots=[Dot("d", 2, 2)]),
                ],
            )
        ]
        assert store.remove_dot(collection, "multi", 1, "d") == []

    def test_missing_targets_are_noops(self):
        before = _triangle()
        for args in (("nope", 1, "a"), ("ann", 9, "a"), ("ann", 1, "zz")):
            result = store.remove_dot(before, *args)
            assert collection_to_json(result) == collection_to_json(before)


class TestDeleteAllSelected:
    def test_removes_selected_and_touching_lines(self):
        result = store.delete_all_selected(_triangle(), 1, ["a", "b"])
        record = result[0].get_frame(1)
        assert [d.id for d in record.dots] == ["c"]
        assert record.lines == []

    def test_prunes_emptied_annotations(self):
        collection = _triangle() + [
            Annotation("other", frames=[AnnotationFrame(1, dots=[Dot("z", 50, 50)])])
        ]
        result = store.delete_all_selected(collection, 1, ["z"])
        assert [a.id for a in result] == ["ann"]

    def test_only_touches_given_frame(self):
        collection = _triangle(1)
        collection[0].frames.append(
            AnnotationFrame(2, dots=[Dot("a", 0, 0)], lines=[])
        )
        result = store.delete_all_selected(collection, 1, ["a", "b", "c"])
        assert len(result) == 1
        assert [f.frame for f in result[0].frames] == [2]
        assert result[0].get_frame(2).dots[0].id == "a"

    def test_alias(self):
        assert store.remove_dots_in_box is store.delete_all_selected


class TestMoveAndLabel:
    def test_move_dot(self):
        result = store.move_dot(_triangle(), "ann", 1, "c", 42, 24)
        dot = store.get_dot(result[0], 1, "c")
        assert (dot.x, dot.y) == (42.0, 24.0)

    def test_move_missing_dot_is_noop(self):
        before = _triangle()
        result = store.move_dot(before, "ann", 1, "zz", 1, 1)
        assert collection_to_json(result) == collection_to_json(before)

    def test_set_label_and_remove(self):
        labeled = store.set_label(_triangle(), "ann", "runner")
        assert labeled[0].label == "runner"
        assert store.remove_annotation(labeled, "ann") == []


class TestPropagation:
    def test_copies_nearest_earlier_frame(self):
        result = store.propagate_previous_frame(_triangle(frame=3), 5)
        ann = result[0]
        assert ann.get_frame(4) is None
        copied = ann.get_frame(5)
        source = ann.get_frame(3)
        assert [d.to_json() for d in copied.dots] == [d.to_json() for d in source.dots]
        assert [l.to_json() for l in copied.lines] == [
            l.to_json() for l in source.lines
        ]
        assert copied.dots[0] is not source.dots[0]

    def test_copy_is_independent(self):
        result = store.propagate_previous_frame(_triangle(frame=3), 5)
        moved = store.move_dot(result, "ann", 5, "a", 99, 99)
        assert store.get_dot(moved[0], 3, "a").x == 0.0

    def test_replaces_existing_record(self):
        collection = _triangle(frame=3)
        collection[0].frames.append(AnnotationFrame(5, dots=[Dot("old", 1, 1)]))
        result = store.propagate_previous_frame(collection, 5)
        frames = [f.frame for f in result[0].frames]
        assert frames.count(5) == 1
        assert [d.id for d in result[0].get_frame(5).dots] == ["a", "b", "c"]

    def test_frame_zero_is_not_a_source(self):
        result = store.propagate_previous_frame(_triangle(frame=0), 2)
        assert result[0].get_frame(2) is None

    def test_nothing_earlier(self):
        result = store.propagate_previous_frame(_triangle(frame=3), 3)
        assert [f.frame for f in result[0].frames] == [3]

    def test_find_previous_annotated_frame(self):
        assert store.find_previous_annotated_frame(_triangle(frame=3), 10) == 3
        assert store.find_previous_annotated_frame(_triangle(frame=3), 3) is None


class TestFrameOperations:
    def test_delete_frame(self):
        collection = _triangle(1) + [
            Annotation(
                "two",
                frames=[
                    AnnotationFrame(1, dots=[Dot("x", 1, 1)]),
                    AnnotationFrame(2, dots=[Dot("x", 1, 1)]),
                ],
            )
        ]
        result = store.delete_frame(collection, 1)
        assert [a.id for a in result] == ["two"]
        assert [f.frame for f in result[0].frames] == [2]

    def test_lookups(self):
        collection = _triangle(1)
        assert store.find_annotation(collection, "ann") is collection[0]
        assert store.find_dot_owner(collection, 1, "b") is collection[0]
        assert store.find_dot_owner(collection, 2, "b") is None
        assert len(store.dots_at_frame(collection, 1)) == 3
        assert store.annotations_at_frame(collection, 2) == []
        hit = store.find_dot_near(collection, 1, 9, 1, 8)
        assert hit[0] == "ann" and hit[1].id == "b"
        assert store.find_dot_near(collection, 1, 50, 50, 8) is None

    def test_merge_detected(self, counter_ids):
        graph = KeypointGraph(
            dots=[Dot("p", 1, 1), Dot("q", 2, 2)], lines=[LineSegment("pq", "p", "q")]
        )
        result = store.merge_detected(_triangle(), 4, graph, "auto", id_factory=counter_ids)
        assert len(result) == 2
        merged = result[1]
        assert merged.id == "id-1"
        assert merged.label == "auto"
        assert [d.id for d in merged.get_frame(4).dots] == ["p", "q"]

    def test_merge_empty_graph_is_noop(self):
        assert len(store.merge_detected(_triangle(), 4, KeypointGraph())) == 1

    @pytest.mark.parametrize("frame_dots,expected", [([], True), ([Dot("d", 0, 0)], False)])
    def test_prune_empty(self, frame_dots, expected):
        ann = Annotation("e", frames=[AnnotationFrame(1, dots=frame_dots)])
        assert (store.prune_empty([ann]) == []) is expected
