"""Fixtures shared by service tests: a seeded in-memory store and a
fully wired container."""
import pytest

from guardian.shared.database import InMemoryStore
from guardian.shared.database.records import ProfileRepository
from guardian.shared.models import Principal, Profile, Role
from guardian.shared.storage import LocalBlobStore
from guardian.services.alert_engine import HeartRateThresholds
from guardian.services.container import build_container
from guardian.services.duress_service import DuressSettings
from guardian.services.notification_service import FanoutConfig

PROFILES = [
    Profile(id="official-1", role=Role.OFFICIAL, full_name="Dana Reyes", phone="15550100"),
    Profile(id="official-2", role=Role.OFFICIAL, full_name="Sam Okafor"),
    Profile(id="admin-1", role=Role.SECURITY_ADMIN, full_name="Lee Park", phone="15550001"),
    Profile(id="team-1", role=Role.SECURITY_TEAM, full_name="Ari Cohen", phone="15550002"),
    Profile(id="team-retired", role=Role.SECURITY_TEAM, is_active=False),
]


@pytest.fixture
def store():
    store = InMemoryStore()
    profiles = ProfileRepository(store)
    for profile in PROFILES:
        profiles.add(profile)
        store.insert("sessions", {"token": f"token-{profile.id}", "user_id": profile.id})
    return store


@pytest.fixture
def container(store):
    return build_container(
        store=store,
        blob_store=LocalBlobStore("http://blobs.test/audio-recordings"),
        fanout_config=FanoutConfig(),
        thresholds=HeartRateThresholds(),
        duress_settings=DuressSettings(),
    )


@pytest.fixture
def official():
    return Principal(user_id="official-1", role=Role.OFFICIAL)


@pytest.fixture
def other_official():
    return Principal(user_id="official-2", role=Role.OFFICIAL)


@pytest.fixture
def security_admin():
    return Principal(user_id="admin-1", role=Role.SECURITY_ADMIN)


@pytest.fixture
def auth():
    """Authorization headers for a seeded user."""
    def headers(user_id):
        return {"Authorization": f"Bearer token-{user_id}"}
    return headers
