"""Shared pytest fixtures"""

import pytest

from core.ledger import CreditLedger
from core.store import InMemoryStore, LocalJsonStore
from core.tracker import JobTracker
from tests.mocks.adapters import (
    ScriptedImageGenerator,
    ScriptedMerger,
    ScriptedVideoGenerator,
    ScriptedVoiceoverGenerator,
)
from tests.mocks.fixtures import make_plan, make_scene


# ============================================================
# Storage and Ledger
# ============================================================

@pytest.fixture
def store():
    """Fresh in-memory store for each test"""
    return InMemoryStore()


@pytest.fixture
def local_store(tmp_path):
    """JSON file store under a temporary directory"""
    return LocalJsonStore(base_path=str(tmp_path / "store"))


@pytest.fixture
def ledger(store):
    return CreditLedger(store)


@pytest.fixture
def tracker(store, ledger):
    return JobTracker(store, ledger)


# ============================================================
# Adapters
# ============================================================

@pytest.fixture
def image_adapter():
    return ScriptedImageGenerator()


@pytest.fixture
def video_adapter():
    return ScriptedVideoGenerator()


@pytest.fixture
def voice_adapter():
    return ScriptedVoiceoverGenerator()


@pytest.fixture
def merger():
    return ScriptedMerger()


# ============================================================
# Test Data Fixtures
# ============================================================

@pytest.fixture
def sample_scene():
    """Single sample scene"""
    return make_scene()


@pytest.fixture
def sample_plan():
    """Three 5s scenes with a voiceover"""
    return make_plan()


# ============================================================
# Markers Configuration
# ============================================================

def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
