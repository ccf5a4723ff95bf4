"""Location Service HTTP handler - location-tracking endpoint."""
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
            "service": "location-service",
        }), 200

    @app.route("/location-tracking", methods=["POST"])
    def location_tracking():
        """Location actions.
        
        Actions:
            submit: latitude, longitude, accuracy?, altitude?, heading?,
                speed?, event_id?, alert_id?
            history: user_id?, start_time?, end_time?, event_id?, alert_id?
        """
        c = services()
        return dispatch_action("location-tracking", c.resolver, location_actions(c))

    return app


def location_actions(c: Container):
    tracker = c.locations

    def submit(p: Principal, data: Dict[str, Any]):
        ping = tracker.submit(
            p.user_id,
            data.get("latitude"),
            data.get("longitude"),
            accuracy=data.get("accuracy"),
            altitude=data.get("altitude"),
            heading=data.get("heading"),
            speed=data.get("speed"),
            event_id=data.get("event_id"),
            alert_id=data.get("alert_id"),
        )
        return {"location": ping.to_dict()}

    def history(p: Principal, data: Dict[str, Any]):
        pings = tracker.history(
            p,
            target_user_id=data.get("user_id"),
            start_time=data.get("start_time"),
            end_time=data.get("end_time"),
            event_id=data.get("event_id"),
            alert_id=data.get("alert_id"),
        )
        return {"locations": [ping.to_dict() for ping in pings]}

    return {"submit": submit, "history": history}


app = create_app()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    port = int(os.getenv("PORT", "8004"))
    app.run(host="0.0.0.0", port=port, debug=False)
