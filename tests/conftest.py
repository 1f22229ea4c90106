import pytest
import sys
from pathlib import Path

# Ensure src/ is in the python path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

@pytest.fixture
def graveyard(tmp_path):
    """
    Returns an existing, empty graveyard directory for tests.
    """
    path = tmp_path / "graveyard"
    path.mkdir()
    return path
