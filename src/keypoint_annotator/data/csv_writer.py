"""
Tabular export of annotation collections.

Two tables are produced, one row per dot and one row per line:

- dots:  annotationId, label, frame, timeSeconds, dotId, x, y, color
- lines: annotationId, label, frame, timeSeconds, lineId, startDotId, endDotId, color

`timeSeconds` is `frame / fps` with three decimals; dot coordinates are
rounded to whole pixels.
"""

import csv
import io
import logging
import math
from pathlib import Path

from ..utils.video_io import frame_to_seconds

logger = logging.getLogger(__name__)

DOT_HEADER = [
    "annotationId",
    "label",
    "frame",
    "timeSeconds",
    "dotId",
    "x",
    "y",
    "color",
]
LINE_HEADER = [
    "annotationId",
    "label",
    "frame",
    "timeSeconds",
    "lineId",
    "startDotId",
    "endDotId",
    "color",
]


def _round_px(value):
    return int(math.floor(value + 0.5))


def _time_cell(frame, fps):
    return f"{frame_to_seconds(frame, fps):.3f}"


def iter_dot_rows(annotations, fps):
    """Yield one dot-table row per dot, in collection order."""
    for ann in annotations:
        for record in ann.frames:
            t = _time_cell(record.frame, fps)
            for dot in record.dots:
                yield [
                    ann.id,
                    ann.label,
                    record.frame,
                    t,
                    dot.id,
                    _round_px(dot.x),
                    _round_px(dot.y),
                    dot.color,
                ]


def iter_line_rows(annotations, fps):
    """Yield one line-table row per line, in collection order."""
    for ann in annotations:
        for record in ann.frames:
            t = _time_cell(record.frame, fps)
            for line in record.lines:
                yield [
                    ann.id,
                    ann.label,
                    record.frame,
                    t,
                    line.id,
                    line.start_dot_id,
                    line.end_dot_id,
                    line.color,
                ]


def _render(header, rows):
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buf.getvalue().rstrip("\n")


def annotations_to_dots_csv(annotations, fps) -> str:
    return _render(DOT_HEADER, iter_dot_rows(annotations, fps))


def annotations_to_lines_csv(annotations, fps) -> str:
    return _render(LINE_HEADER, iter_line_rows(annotations, fps))


def write_annotation_csvs(annotations, fps, out_dir, stem="annotations"):
    """
    Write the dot and line tables next to each other.

    Args:
        annotations (list): Annotation collection
        fps (float): Frame rate used for timeSeconds
        out_dir (str or Path): Output directory, created if missing
        stem (str): File name prefix

    Returns:
        tuple: (dots_path, lines_path)
    """
    if fps <= 0:
        raise ValueError(f"fps must be positive, got {fps}")
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    dots_path = out_dir / f"{stem}_dots.csv"
    lines_path = out_dir / f"{stem}_lines.csv"

    n_dots = n_lines = 0
    with open(dots_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f, lineterminator="\n")
        writer.writerow(DOT_HEADER)
        for row in iter_dot_rows(annotations, fps):
            writer.writerow(row)
            n_dots += 1
    with open(lines_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f, lineterminator="\n")
        writer.writerow(LINE_HEADER)
        for row in iter_line_rows(annotations, fps):
            writer.writerow(row)
            n_lines += 1

    logger.info(f"Wrote {n_dots} dot rows to {dots_path}")
    logger.info(f"Wrote {n_lines} line rows to {lines_path}")
    return dots_path, lines_path
