"""Shared fixtures."""

import pytest

from autoapply.events import EventLog
from autoapply.notifications.dispatcher import DispatchGateway
from autoapply.profile.models import (
    CandidateProfile,
    PersonalInfo,
    Preferences,
    ProfileStore,
    ProviderName,
    SkillSet,
)
from fakes import FakeClock, FakeSession, FlakyStore


@pytest.fixture
def profile():
    return CandidateProfile(
        personal_info=PersonalInfo(
            name="Jane Perera",
            email="jane@example.com",
            phone="+94 77 123 4567",
        ),
        desired_roles=["Data Engineer", "Backend Developer"],
        skills=SkillSet(must_have=["Python", "SQL"], nice_to_have=["Airflow"]),
        preferences=Preferences(ai_provider=ProviderName.GEMINI),
    )


@pytest.fixture
def profiles(profile):
    return ProfileStore(profile)


@pytest.fixture
def events():
    return EventLog()


@pytest.fixture
def relay_session():
    return FakeSession()


@pytest.fixture
def dispatcher(relay_session):
    return DispatchGateway(timeout=5, session=relay_session)


@pytest.fixture
def store():
    return FlakyStore()


@pytest.fixture
def clock():
    return FakeClock()
