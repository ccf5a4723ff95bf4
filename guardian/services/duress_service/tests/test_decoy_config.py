"""Tests for decoy-mode configuration and duress validation."""
from datetime import timedelta
from unittest.mock import patch

import pytest

from guardian.shared.database.records import NotificationRepository
from guardian.shared.database.store import eq
from guardian.shared.errors import NotFound, Unauthorized, ValidationError
from guardian.shared.models import ActivationGesture, DecoyAppType, TriggerSource
from guardian.shared.utils import utcnow
from guardian.services.duress_service import DuressSettings, DuressVerifier


@pytest.fixture
def decoy(container):
    return container.decoy


class TestSetup:

    def test_defaults(self, decoy):
        config = decoy.setup("official-1", "blue-umbrella")

        assert config.enabled is True
        assert config.silent_alert_enabled is True
        assert config.app_type is DecoyAppType.CALCULATOR
        assert config.activation_gesture is ActivationGesture.TRIPLE_TAP
        assert config.fake_interface_active is False

    def test_secret_is_hashed_and_never_public(self, decoy):
        config = decoy.setup("official-1", "blue-umbrella")

        assert config.duress_password_secret != "blue-umbrella"
        assert config.duress_password_secret.startswith("$argon2")
        assert "duress_password_secret" not in config.to_public_dict()
        assert "blue-umbrella" not in str(config.to_public_dict())

    def test_setup_again_replaces_in_place(self, store, decoy):
        first = decoy.setup("official-1", "blue-umbrella", app_type="notes")
        second = decoy.setup("official-1", "green-kettle")

        assert second.id == first.id
        assert second.app_type is DecoyAppType.CALCULATOR
        assert len(store.query("decoy_configs")) == 1

    def test_password_required(self, decoy):
        with pytest.raises(ValidationError):
            decoy.setup("official-1", "")

    def test_unknown_app_type(self, decoy):
        with pytest.raises(ValidationError):
            decoy.setup("official-1", "blue-umbrella", app_type="banking")

    def test_update_requires_config(self, decoy):
        with pytest.raises(NotFound):
            decoy.update("official-2", {"enabled": False})

    def test_update_rehashes_password(self, container, decoy):
        decoy.setup("official-1", "blue-umbrella")
        decoy.update("official-1", {"duress_password": "green-kettle", "app_type": "weather"})

        verifier = DuressVerifier(decoy.configs)
        assert verifier.verify("official-1", "green-kettle").matched
        assert not verifier.verify("official-1", "blue-umbrella").matched
        assert decoy.get_config("official-1").app_type is DecoyAppType.WEATHER


class TestFakeInterface:

    def test_activate_and_deactivate(self, decoy):
        decoy.setup("official-1", "blue-umbrella")

        assert decoy.activate_fake_interface("official-1").fake_interface_in_effect()
        assert not decoy.deactivate_fake_interface("official-1").fake_interface_active

    def test_requires_config(self, decoy):
        with pytest.raises(NotFound):
            decoy.activate_fake_interface("official-2")

    def test_no_expiry_by_default(self, decoy):
        decoy.setup("official-1", "blue-umbrella")

        config = decoy.activate_fake_interface("official-1")

        assert config.fake_interface_expires_at is None
        assert config.fake_interface_in_effect(utcnow() + timedelta(days=30))

    def test_ttl_lapses(self, decoy):
        decoy.settings = DuressSettings(fake_interface_ttl_seconds=60)
        decoy.setup("official-1", "blue-umbrella")

        config = decoy.activate_fake_interface("official-1")

        assert config.fake_interface_in_effect()
        assert not config.fake_interface_in_effect(utcnow() + timedelta(seconds=61))
        assert config.to_public_dict()["fake_interface_expires_at"] is not None

    def test_settings_from_env(self, monkeypatch):
        monkeypatch.setenv("FAKE_INTERFACE_TTL_SECONDS", "900")
        assert DuressSettings.from_env().fake_interface_ttl_seconds == 900

        monkeypatch.delenv("FAKE_INTERFACE_TTL_SECONDS")
        assert DuressSettings.from_env().fake_interface_ttl_seconds is None


class TestValidateDuress:

    def test_match_raises_silent_alert_and_fake_interface(self, store, decoy):
        decoy.setup("official-1", "blue-umbrella")

        result = decoy.validate_duress("official-1", "blue-umbrella", {"lat": 3.0, "lng": 4.0})

        assert result.to_dict() == {
            "valid": True,
            "fake_interface_active": True,
            "silent_alert_triggered": True,
        }
        [alert] = store.query("alerts")
        assert alert["trigger_source"] == TriggerSource.DURESS_PASSWORD.value
        assert alert["level"] == "critical"
        assert alert["message"] == "Silent duress alert triggered via decoy mode"
        notifications = NotificationRepository(store).for_alert(alert["id"])
        assert notifications and all(n.payload["silent"] for n in notifications)
        assert len(store.query("location_logs", [eq("alert_id", alert["id"])])) == 1

    def test_silent_alert_disabled(self, store, decoy):
        decoy.setup("official-1", "blue-umbrella", silent_alert_enabled=False)

        result = decoy.validate_duress("official-1", "blue-umbrella")

        assert result.silent_alert_triggered is False
        assert result.fake_interface_active is True
        assert store.query("alerts") == []

    @pytest.mark.parametrize("case", ["missing", "disabled", "wrong"])
    def test_failures_are_indistinguishable(self, store, decoy, case):
        if case != "missing":
            decoy.setup("official-1", "blue-umbrella", enabled=case != "disabled")
        password = "red-umbrella" if case == "wrong" else "blue-umbrella"

        with pytest.raises(Unauthorized) as exc:
            decoy.validate_duress("official-1", password)

        assert exc.value.message == "Invalid duress credentials"
        assert store.query("alerts") == []

    @pytest.mark.parametrize("case", ["missing", "disabled", "wrong"])
    def test_every_failure_runs_one_verification(self, decoy, case):
        if case != "missing":
            decoy.setup("official-1", "blue-umbrella", enabled=case != "disabled")

        with patch(
            "guardian.services.duress_service.verifier.verify_duress_secret",
            return_value=False,
        ) as verify:
            with pytest.raises(Unauthorized):
                decoy.validate_duress("official-1", "red-umbrella")

        assert verify.call_count == 1
