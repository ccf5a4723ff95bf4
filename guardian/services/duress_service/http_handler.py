"""Duress Service HTTP handler - decoy-mode endpoint.

A failed validate_duress always answers 401 with the same body, whether
the user has no configuration, a disabled one, or typed the wrong
password.
"""
import logging
import os
from typing import Any, Dict, Optional

from flask import Flask, jsonify

from guardian.shared.http import dispatch_action
from guardian.shared.models import Principal
from guardian.services.container import Container, get_container

logger = logging.getLogger(__name__)


def create_app(container: Optional[Container] = None) -> Flask:
    app = Flask(__name__)

    def services() -> Container:
        return container or get_container()

    @app.route("/health", methods=["GET"])
    def health():
        """Health check endpoint."""
        return jsonify({
            "status": "healthy",
            "service": "duress-service",
        }), 200

    @app.route("/decoy-mode", methods=["POST"])
    def decoy_mode():
        """Decoy-mode actions.
        
        Actions:
            validate_duress: duress_password, location?
            setup: duress_password, enabled?, app_type?, activation_gesture?,
                silent_alert_enabled?
            update: any of the setup fields
            get_config
            activate_fake_interface
            deactivate_fake_interface
        """
        c = services()
        return dispatch_action("decoy-mode", c.resolver, decoy_actions(c))

    return app


def decoy_actions(c: Container):
    decoy = c.decoy

    def validate_duress(p: Principal, data: Dict[str, Any]):
        result = decoy.validate_duress(
            p.user_id,
            data.get("duress_password"),
            data.get("location"),
        )
        return result.to_dict()

    def setup(p: Principal, data: Dict[str, Any]):
        config = decoy.setup(
            p.user_id,
            data.get("duress_password"),
            enabled=data.get("enabled"),
            app_type=data.get("app_type"),
            activation_gesture=data.get("activation_gesture"),
            silent_alert_enabled=data.get("silent_alert_enabled"),
        )
        return {"config": config.to_public_dict()}

    def update(p: Principal, data: Dict[str, Any]):
        return {"config": decoy.update(p.user_id, data).to_public_dict()}

    def get_config(p: Principal, data: Dict[str, Any]):
        config = decoy.get_config(p.user_id)
        return {"config": config.to_public_dict() if config else None}

    def activate_fake_interface(p: Principal, data: Dict[str, Any]):
        config = decoy.activate_fake_interface(p.user_id)
        return {"fake_interface_active": config.fake_interface_in_effect()}

    def deactivate_fake_interface(p: Principal, data: Dict[str, Any]):
        decoy.deactivate_fake_interface(p.user_id)
        return {"fake_interface_active": False}

    return {
        "validate_duress": validate_duress,
        "setup": setup,
        "update": update,
        "get_config": get_config,
        "activate_fake_interface": activate_fake_interface,
        "deactivate_fake_interface": deactivate_fake_interface,
    }


app = create_app()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    port = int(os.getenv("PORT", "8002"))
    app.run(host="0.0.0.0", port=port, debug=False)
