import pytest

from tests.epathway_scraper.fake_portal import FakePortal


@pytest.fixture
def portal() -> FakePortal:
    return FakePortal()
