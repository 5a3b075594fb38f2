import sys
from pathlib import Path

import pytest

# Add the project root to sys.path so tests can import velofuse without
# installing the package.
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from velofuse import FusionConfig, FusionPipeline  # noqa: E402


@pytest.fixture
def pipeline():
    return FusionPipeline(FusionConfig(dt=1.0, measurement_variance=1.0, process_variance=0.0))
