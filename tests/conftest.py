"""Shared fixtures for harvester tests."""

import pytest

from serpharvest.config import HarvestConfig
from serpharvest.dedup import BroadcastHub, KeywordDedupSet
from serpharvest.export import ResultCollector
from serpharvest.testing import FakeCaptchaSolver


@pytest.fixture
def config():
    """Harvest config with every delay zeroed."""
    return HarvestConfig(
        click_delay_min=0,
        click_delay_max=0,
        submit_delay=0,
        settle_delay=0,
        challenge_max_attempts=3,
    )


@pytest.fixture
def sink():
    return ResultCollector()


@pytest.fixture
def solver():
    return FakeCaptchaSolver(points=[(10.0, 20.0), (30.0, 40.0)])


@pytest.fixture
def hub():
    return BroadcastHub()


@pytest.fixture
def dedup(hub):
    replica = KeywordDedupSet(hub=hub)
    yield replica
    replica.close()
