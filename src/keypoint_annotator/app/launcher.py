#!/usr/bin/env python3
"""
Command-line entry point for the keypoint annotator.

Runs the annotation core headlessly against session files: auto-detect
keypoints on a frame, drop a skeleton template, export CSV tables, or dump
the effective configuration.
"""

import argparse
import logging
import os
import sys
from pathlib import Path

from .. import __version__
from ..config import ConfigError, load_config, save_config
from ..core.interaction import AnnotationSession
from ..core.models import AnnotationFormatError
from ..core.skeleton_templates import SKELETON_TEMPLATES
from ..data.csv_writer import write_annotation_csvs
from ..data.session_io import load_session, save_session
from ..utils.video_io import load_image_frame, read_video_frame

IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg", ".bmp", ".tif", ".tiff", ".webp"}


def setup_logging(log_level=logging.INFO):
    """Set up console logging for the annotator."""
    handlers = [logging.StreamHandler(sys.stdout)]

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )

    logger = logging.getLogger(__name__)
    logger.debug(f"Python version: {sys.version}")
    logger.debug(f"Working directory: {os.getcwd()}")


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Keypoint annotator - edit and export video keypoint annotations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  keypoint-annotator detect clip.mp4 --frame 30 --session run.json
  keypoint-annotator detect frame.png --roi 100 50 300 200 --session run.json
  keypoint-annotator template human-pose --frame 30 --center 400 225 --session run.json
  keypoint-annotator export run.json --fps 15 --out-dir exports/
  keypoint-annotator --config base.yaml config annotator.yaml
        """,
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Set the logging level (default: INFO)",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="YAML or JSON configuration file (default: built-in settings)",
    )
    parser.add_argument(
        "--version", action="version", version=f"Keypoint Annotator {__version__}"
    )

    sub = parser.add_subparsers(dest="command", required=True)

    detect = sub.add_parser("detect", help="Auto-detect keypoints on one frame")
    detect.add_argument("source", help="Video or image file")
    detect.add_argument("--frame", type=int, default=0, help="Frame index (default: 0)")
    detect.add_argument(
        "--roi",
        type=float,
        nargs=4,
        metavar=("X", "Y", "W", "H"),
        help="Restrict detection to this region (display pixels)",
    )
    detect.add_argument("--session", required=True, help="Session file to update")
    detect.add_argument("--out", help="Write the result here instead of --session")

    template = sub.add_parser("template", help="Insert a skeleton template")
    template.add_argument("name", choices=sorted(SKELETON_TEMPLATES))
    template.add_argument("--frame", type=int, default=0, help="Frame index (default: 0)")
    template.add_argument(
        "--center",
        type=float,
        nargs=2,
        metavar=("X", "Y"),
        default=(400.0, 300.0),
        help="Where to center the template (default: 400 300)",
    )
    template.add_argument("--session", required=True, help="Session file to update")

    export = sub.add_parser("export", help="Export a session to dot/line CSV tables")
    export.add_argument("session", help="Session file")
    export.add_argument("--fps", type=float, help="Frame rate (default: session or config)")
    export.add_argument("--out-dir", default=".", help="Output directory")
    export.add_argument("--stem", help="File name prefix (default: session file name)")

    dump = sub.add_parser("config", help="Write the effective configuration as YAML")
    dump.add_argument("out", help="Destination YAML file")

    return parser.parse_args(argv)


def _open_session(path, config):
    path = Path(path)
    if path.exists():
        annotations, _ = load_session(path)
    else:
        annotations = []
    return AnnotationSession(annotations, config)


def _read_frame(source, frame_index, config):
    # Both paths land in display space, where clicked dots live
    source = Path(source)
    if source.suffix.lower() in IMAGE_SUFFIXES:
        return load_image_frame(source, config.display_size)
    return read_video_frame(source, frame_index, config.display_size)


def run_detect(args, config):
    logger = logging.getLogger(__name__)
    frame = _read_frame(args.source, args.frame, config)
    if frame is None:
        logger.error(f"Could not read frame {args.frame} from {args.source}")
        return 1

    session = _open_session(args.session, config)
    session.set_frame(args.frame)
    roi = None
    if args.roi:
        x, y, w, h = args.roi
        roi = {"x": x, "y": y, "width": w, "height": h}
    if not session.detect_edges(frame, bounding_box=roi):
        logger.warning("No keypoints detected; session left unchanged")
    save_session(session.annotations, args.out or args.session, fps=config.fps)
    return 0


def run_template(args, config):
    session = _open_session(args.session, config)
    session.set_frame(args.frame)
    cx, cy = args.center
    session.apply_template(args.name, cx, cy)
    save_session(session.annotations, args.session, fps=config.fps)
    return 0


def run_export(args, config):
    annotations, session_fps = load_session(args.session)
    fps = args.fps or session_fps or config.fps
    stem = args.stem or Path(args.session).stem
    write_annotation_csvs(annotations, fps, args.out_dir, stem)
    return 0


def run_config(args, config):
    save_config(config, args.out)
    logging.getLogger(__name__).info(f"Wrote configuration to {args.out}")
    return 0


COMMANDS = {
    "detect": run_detect,
    "template": run_template,
    "export": run_export,
    "config": run_config,
}


def main(argv=None):
    """
    Application entry point.

    Parses command line arguments, sets up logging, loads configuration and
    dispatches to the selected subcommand.
    """
    args = parse_arguments(argv)

    log_level = getattr(logging, args.log_level.upper())
    setup_logging(log_level=log_level)
    logger = logging.getLogger(__name__)

    try:
        config = load_config(args.config)
        exit_code = COMMANDS[args.command](args, config)
    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        print(f"Error: File not found: {e}")
        sys.exit(1)
    except (AnnotationFormatError, ConfigError) as e:
        logger.error(f"Invalid input: {e}")
        print(f"Error: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        print(f"Error: Unexpected error: {e}")
        sys.exit(1)

    if exit_code:
        sys.exit(exit_code)
    return exit_code


if __name__ == "__main__":
    main()
