import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Make the package importable without installing it
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from soilcarbon.config import load_config


@pytest.fixture
def cfg():
    return load_config()


@pytest.fixture
def fake_ee():
    return MagicMock(name="ee")
