import pytest

from backend.tests.support import FakeYouTubeClient


@pytest.fixture
def fake_client():
    return FakeYouTubeClient()
