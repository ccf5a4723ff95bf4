"""Tests for the identity gate and the shared action dispatcher."""
import json
import pytest
from datetime import timedelta
from flask import Flask

from guardian.shared.auth import TokenIdentityResolver, bearer_token
from guardian.shared.database import InMemoryStore
from guardian.shared.database.records import ProfileRepository
from guardian.shared.errors import Forbidden, Unauthorized
from guardian.shared.http import dispatch_action, require_fields
from guardian.shared.models import Profile, Role
from guardian.shared.utils import utcnow


@pytest.fixture
def store():
    store = InMemoryStore()
    profiles = ProfileRepository(store)
    profiles.add(Profile(id="u1", role=Role.SECURITY_TEAM))
    profiles.add(Profile(id="u2", role=Role.OFFICIAL, is_active=False))
    store.insert("sessions", {"token": "good", "user_id": "u1"})
    store.insert("sessions", {"token": "old", "user_id": "u1", "expires_at": utcnow() - timedelta(minutes=1)})
    store.insert("sessions", {"token": "inactive", "user_id": "u2"})
    return store


class TestBearerToken:

    def test_extracts_token(self):
        assert bearer_token("Bearer abc") == "abc"
        assert bearer_token("bearer abc ") == "abc"

    @pytest.mark.parametrize("header", [None, "", "Basic abc", "Bearer ", "abc"])
    def test_rejects_other_headers(self, header):
        assert bearer_token(header) is None


class TestTokenIdentityResolver:

    def test_resolves_principal(self, store):
        principal = TokenIdentityResolver(store).resolve("Bearer good")
        assert principal.user_id == "u1"
        assert principal.role is Role.SECURITY_TEAM
        assert principal.is_security

    @pytest.mark.parametrize("header", [None, "Bearer unknown", "Bearer old", "Bearer inactive"])
    def test_rejects(self, store, header):
        with pytest.raises(Unauthorized):
            TokenIdentityResolver(store).resolve(header)


@pytest.fixture
def client(store):
    app = Flask(__name__)
    resolver = TokenIdentityResolver(store)

    def echo(principal, data):
        require_fields(data, "value")
        return {"user_id": principal.user_id, "value": data["value"]}

    def forbidden(principal, data):
        raise Forbidden("nope")

    def broken(principal, data):
        raise RuntimeError("database exploded")

    def download(principal, data):
        return {"ok": True}, {"Content-Disposition": 'attachment; filename="x.json"'}

    actions = {"echo": echo, "forbidden": forbidden, "broken": broken, "download": download}

    @app.route("/things", methods=["POST"])
    def things():
        return dispatch_action("things", resolver, actions)

    with app.test_client() as client:
        yield client


def post(client, body, token="good"):
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    return client.post("/things", json=body, headers=headers)


class TestDispatchAction:

    def test_success_shape(self, client):
        response = post(client, {"action": "echo", "value": 3})
        assert response.status_code == 200
        assert json.loads(response.data) == {"success": True, "user_id": "u1", "value": 3}

    def test_unauthenticated(self, client):
        response = post(client, {"action": "echo", "value": 3}, token=None)
        assert response.status_code == 401
        assert json.loads(response.data) == {"error": "Unauthorized"}

    def test_unknown_action(self, client):
        response = post(client, {"action": "launch"})
        assert response.status_code == 400
        assert json.loads(response.data) == {"error": "Invalid action"}

    def test_missing_body(self, client):
        response = client.post("/things", data="not json", headers={"Authorization": "Bearer good"})
        assert response.status_code == 400

    def test_validation_error(self, client):
        response = post(client, {"action": "echo"})
        assert response.status_code == 400
        assert "value" in json.loads(response.data)["error"]

    def test_domain_error_status(self, client):
        response = post(client, {"action": "forbidden"})
        assert response.status_code == 403
        assert json.loads(response.data) == {"error": "nope"}

    def test_unexpected_error_is_opaque(self, client):
        response = post(client, {"action": "broken"})
        assert response.status_code == 500
        assert json.loads(response.data) == {"error": "Internal server error"}

    def test_extra_headers(self, client):
        response = post(client, {"action": "download"})
        assert response.headers["Content-Disposition"] == 'attachment; filename="x.json"'
