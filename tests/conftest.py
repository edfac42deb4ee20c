"""Shared fixtures: built-in registries, fake HTTP session, profile factory."""
import time

import pytest
import requests

from regimen.catalog import ExerciseCatalog
from regimen.config import EngineConfig
from regimen.engine import MediaResolver, Routines, SafetyFilter, SplitRegistry, WorkoutPlanner
from regimen.models import UserProfile


class FakeResponse:
    def __init__(self, status_code=200):
        self.status_code = status_code


class FakeSession:
    """Stands in for requests.Session; records HEAD calls."""

    def __init__(self, status_code=200, error=None, delay=0.0):
        self.status_code = status_code
        self.error = error
        self.delay = delay
        self.calls = []

    def head(self, url, timeout=None, allow_redirects=False):
        self.calls.append(url)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return FakeResponse(self.status_code)


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def failing_session():
    return FakeSession(error=requests.ConnectionError("connection refused"))


@pytest.fixture(scope="session")
def config():
    return EngineConfig.from_yaml()


@pytest.fixture(scope="session")
def catalog():
    return ExerciseCatalog.from_yaml()


@pytest.fixture(scope="session")
def safety():
    return SafetyFilter.from_yaml()


@pytest.fixture(scope="session")
def registry():
    return SplitRegistry.from_yaml()


@pytest.fixture(scope="session")
def routines():
    return Routines.from_yaml()


@pytest.fixture
def media(config, fake_session):
    return MediaResolver.from_yaml(config=config, session=fake_session)


@pytest.fixture
def planner(fake_session):
    return WorkoutPlanner.from_config(session=fake_session)


PROFILES = {
    "beginner": {
        'experience_level': 'beginner',
        'primary_goals': ['general_fitness'],
        'available_equipment': [],
        'age': 30,
        'weekly_frequency': 3,
        'session_duration': 45,
    },
    "intermediate": {
        'experience_level': 'intermediate',
        'primary_goals': ['muscle_gain'],
        'available_equipment': ['dumbbell', 'band'],
        'age': 35,
        'weekly_frequency': 4,
        'session_duration': 60,
    },
}


@pytest.fixture
def make_profile():
    """Build a validated profile from a named base profile plus overrides."""
    def _make(base="beginner", **overrides):
        data = dict(PROFILES[base])
        data.update(overrides)
        return UserProfile.from_dict(data)
    return _make


@pytest.fixture
def profile_data():
    """Raw profile dict (mutable copy) for a named base profile."""
    def _data(base="beginner", **overrides):
        data = dict(PROFILES[base])
        data.update(overrides)
        return data
    return _data


@pytest.fixture
def session_factory():
    return FakeSession
