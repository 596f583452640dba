import os
import sys
from pathlib import Path

os.environ.setdefault("AMAP_API_KEY", "test-key")
os.environ.setdefault("CALL_DELAY_SECONDS", "0")
os.environ.setdefault("BATCH_DELAY_SECONDS", "0")

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import pytest

from helpers import FakeAmap


@pytest.fixture
def fake_amap() -> FakeAmap:
    return FakeAmap()
