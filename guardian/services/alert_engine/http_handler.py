"""Alert Engine HTTP handler - emergency-alert and wearable-device endpoints.

Both endpoints take ``{"action": ..., ...}`` with a bearer token and
answer ``{success: true, ...}`` or ``{error}``.
"""
import logging
import os
from typing import Any, Dict, Optional

from flask import Flask, jsonify

from guardian.shared.http import dispatch_action, require_fields
from guardian.shared.models import Principal
from guardian.services.container import Container, get_container
from .wearables import TriggerResult

logger = logging.getLogger(__name__)


def create_app(container: Optional[Container] = None) -> Flask:
    """Build the Flask app; the container defaults to the process-wide one."""
    app = Flask(__name__)

    def services() -> Container:
        return container or get_container()

    @app.route("/health", methods=["GET"])
    def health():
        """Health check endpoint."""
        return jsonify({
            "status": "healthy",
            "service": "alert-engine",
        }), 200

    @app.route("/emergency-alert", methods=["POST"])
    def emergency_alert():
        """Alert lifecycle actions.
        
        Actions:
            create: level, location?, message?, event_id?
            silent_duress: duress_password, location?
            start_recording: alert_id?
            stop_recording: file_path, alert_id?, duration_seconds?
            fetch_active
            resolve: alert_id
            cancel: alert_id
        """
        c = services()
        return dispatch_action("emergency-alert", c.resolver, emergency_actions(c))

    @app.route("/wearable-device", methods=["POST"])
    def wearable_device():
        """Wearable registry and trigger actions.
        
        Actions:
            pair: name, device_type, mac_address?, bluetooth_device_id?, gesture_config?
            unpair: device_id
            update_status: device_id, battery_level?, firmware_version?,
                is_connected?, heart_rate?
            trigger_button: device_id, location?
            trigger_heartrate: device_id, heart_rate, previous_heart_rate?, location?
            trigger_gesture: device_id, gesture_type, location?
            get_devices
        """
        c = services()
        return dispatch_action("wearable-device", c.resolver, wearable_actions(c))

    return app


def emergency_actions(c: Container):
    lifecycle = c.lifecycle

    def create(p: Principal, data: Dict[str, Any]):
        alert = lifecycle.create_alert(
            owner_id=p.user_id,
            level=data.get("level"),
            location=data.get("location"),
            message=data.get("message"),
            event_id=data.get("event_id"),
        )
        return {"alert": alert.to_dict()}

    def silent_duress(p: Principal, data: Dict[str, Any]):
        alert = lifecycle.create_duress_alert(
            owner_id=p.user_id,
            supplied_password=data.get("duress_password"),
            location=data.get("location"),
        )
        return {"alert": alert.to_dict()}

    def start_recording(p: Principal, data: Dict[str, Any]):
        slot = lifecycle.reserve_audio_upload(p.user_id, data.get("alert_id"))
        return {
            "upload_url": slot.handle.upload_url,
            "file_path": slot.handle.file_path,
            "expires_in": slot.handle.expires_in,
            "alert_id": slot.alert_id,
        }

    def stop_recording(p: Principal, data: Dict[str, Any]):
        recording = lifecycle.attach_audio(
            user_id=p.user_id,
            file_path=data.get("file_path"),
            alert_id=data.get("alert_id"),
            duration_seconds=data.get("duration_seconds"),
        )
        return {"recording": recording.to_dict()}

    def fetch_active(p: Principal, data: Dict[str, Any]):
        alert = lifecycle.fetch_active(p.user_id)
        return {"alert": alert.to_dict() if alert else None}

    def resolve(p: Principal, data: Dict[str, Any]):
        require_fields(data, "alert_id", message="Alert ID is required")
        return {"alert": lifecycle.resolve(p, data["alert_id"]).to_dict()}

    def cancel(p: Principal, data: Dict[str, Any]):
        require_fields(data, "alert_id", message="Alert ID is required")
        return {"alert": lifecycle.cancel(p, data["alert_id"]).to_dict()}

    return {
        "create": create,
        "silent_duress": silent_duress,
        "start_recording": start_recording,
        "stop_recording": stop_recording,
        "fetch_active": fetch_active,
        "resolve": resolve,
        "cancel": cancel,
    }


def wearable_actions(c: Container):
    wearables = c.wearables

    def pair(p: Principal, data: Dict[str, Any]):
        device = wearables.pair(
            user_id=p.user_id,
            name=data.get("name"),
            device_type=data.get("device_type"),
            mac_address=data.get("mac_address"),
            bluetooth_device_id=data.get("bluetooth_device_id"),
            gesture_config=data.get("gesture_config"),
        )
        return {"device": device.to_dict()}

    def unpair(p: Principal, data: Dict[str, Any]):
        wearables.unpair(p.user_id, data.get("device_id"))
        return {}

    def update_status(p: Principal, data: Dict[str, Any]):
        device = wearables.update_status(p.user_id, data.get("device_id"), data)
        return {"device": device.to_dict()}

    def trigger_button(p: Principal, data: Dict[str, Any]):
        return _trigger_response(wearables.trigger_button(
            p.user_id, data.get("device_id"), data.get("location"),
        ))

    def trigger_heartrate(p: Principal, data: Dict[str, Any]):
        return _trigger_response(wearables.trigger_heartrate(
            p.user_id,
            data.get("device_id"),
            data.get("heart_rate"),
            previous_heart_rate=data.get("previous_heart_rate"),
            location=data.get("location"),
        ))

    def trigger_gesture(p: Principal, data: Dict[str, Any]):
        return _trigger_response(wearables.trigger_gesture(
            p.user_id, data.get("device_id"), data.get("gesture_type"), data.get("location"),
        ))

    def get_devices(p: Principal, data: Dict[str, Any]):
        return {"devices": [d.to_dict() for d in wearables.get_devices(p.user_id)]}

    return {
        "pair": pair,
        "unpair": unpair,
        "update_status": update_status,
        "trigger_button": trigger_button,
        "trigger_heartrate": trigger_heartrate,
        "trigger_gesture": trigger_gesture,
        "get_devices": get_devices,
    }


def _trigger_response(result: TriggerResult) -> Dict[str, Any]:
    if result.escalated:
        return {"alert": result.alert.to_dict()}
    return {"message": result.message}


app = create_app()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    port = int(os.getenv("PORT", "8001"))
    app.run(host="0.0.0.0", port=port, debug=False)
