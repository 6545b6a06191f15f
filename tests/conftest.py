import sys
from pathlib import Path

import numpy as np
import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"

# Add both src and repo root to path for imports
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from tests.helpers.factories import make_counter_ids  # noqa: E402


@pytest.fixture
def counter_ids():
    return make_counter_ids()


@pytest.fixture
def square_frame():
    """100x100 RGBA frame: black background with a white 40x40 square in the middle."""
    frame = np.zeros((100, 100, 4), dtype=np.uint8)
    frame[..., 3] = 255
    frame[30:70, 30:70, :3] = 255
    return frame


@pytest.fixture
def uniform_frame():
    frame = np.full((60, 80, 4), 128, dtype=np.uint8)
    frame[..., 3] = 255
    return frame
