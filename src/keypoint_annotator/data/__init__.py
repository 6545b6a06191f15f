"""Annotation export and session persistence."""

from .csv_writer import (
    DOT_HEADER,
    LINE_HEADER,
    annotations_to_dots_csv,
    annotations_to_lines_csv,
    write_annotation_csvs,
)
from .session_io import load_session, save_session

__all__ = [
    "DOT_HEADER",
    "LINE_HEADER",
    "annotations_to_dots_csv",
    "annotations_to_lines_csv",
    "load_session",
    "save_session",
    "write_annotation_csvs",
]
