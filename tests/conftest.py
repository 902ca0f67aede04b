"""
Shared pytest fixtures for bracket engine tests.

Running tests:
    pytest tests/
"""
import pytest
import sys
import os
import tempfile

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

# Keep the app's import-time store out of the repository
os.environ.setdefault('PTM_DATA_DIR', tempfile.mkdtemp(prefix='ptm-test-'))

from ptm.models import Participant
from ptm.store import MatchStore


def make_participants(*names):
    """Participants with ids p1, p2, ... in the given order."""
    return [Participant(id=f"p{i}", name=name) for i, name in enumerate(names, start=1)]


@pytest.fixture
def people():
    """Factory fixture building participants from names."""
    return make_participants


@pytest.fixture
def five_participants():
    return make_participants("A", "B", "C", "D", "E")


@pytest.fixture
def eight_participants():
    return make_participants("A", "B", "C", "D", "E", "F", "G", "H")


@pytest.fixture
def temp_store(tmp_path):
    return MatchStore(str(tmp_path))


@pytest.fixture
def client(temp_store, monkeypatch):
    """Create a test client backed by a temporary store."""
    import app as app_module
    monkeypatch.setattr(app_module, 'store', temp_store)
    app_module.app.config['TESTING'] = True
    with app_module.app.test_client() as client:
        yield client
