"""
Test Configuration and Shared Fixtures

Fixtures:
- segment: single westbound I-70 segment (Idaho Springs to Georgetown)
- corridor_segments: the bundled segments.v1.json segments
- mock_settings: Settings with mock feeds and no external keys
- fake_store: in-memory stand-in for the MongoDB history store
"""
import logging

import pytest

from corridor.config import Settings
from corridor.models.schemas import SegmentConfigFile
from tests.factories import BUNDLED_SEGMENTS, FakeHistoryStore, make_segment

# Configure logging for tests
logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "api: API endpoint tests")

def pytest_collection_modifyitems(config, items):
    """Add markers based on test location."""
    for item in items:
        if "test_api" in str(item.fspath):
            item.add_marker(pytest.mark.api)
        else:
            item.add_marker(pytest.mark.unit)

@pytest.fixture
def segment():
    return make_segment()

@pytest.fixture
def corridor_segments():
    """Segments from the bundled config file, in file order"""
    return SegmentConfigFile.model_validate_json(BUNDLED_SEGMENTS.read_text(encoding="utf-8")).segments

@pytest.fixture
def mock_settings():
    return Settings(
        _env_file=None,
        use_mocks=True,
        cdot_api_key=None,
        anthropic_api_key=None,
        narrative_enabled=False,
        segments_config_path=str(BUNDLED_SEGMENTS),
        segments_config_url=None,
        weather_surface_scope="corridor",
    )

@pytest.fixture
def fake_store():
    return FakeHistoryStore()
