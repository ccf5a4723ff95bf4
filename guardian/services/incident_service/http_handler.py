"""Incident Service HTTP handler - incident-reporting endpoint."""
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
            "service": "incident-service",
        }), 200

    @app.route("/incident-reporting", methods=["POST"])
    def incident_reporting():
        """Incident report actions.
        
        Actions:
            create: title, description, alert_id?, event_id?, location?, attachments?
            update: report_id, title?, description?, location?, attachments?, status?
            get: report_id
            list
            generate_timeline: alert_id? | event_id? | report_id?
            export_json: report_id
            export_pdf: report_id
        """
        c = services()
        return dispatch_action("incident-reporting", c.resolver, report_actions(c))

    return app


def report_actions(c: Container):
    reports = c.reports

    def create(p: Principal, data: Dict[str, Any]):
        report = reports.create(
            p,
            title=data.get("title"),
            description=data.get("description"),
            alert_id=data.get("alert_id"),
            event_id=data.get("event_id"),
            location=data.get("location"),
            attachments=data.get("attachments"),
        )
        return {"report": report.to_dict()}

    def update(p: Principal, data: Dict[str, Any]):
        return {"report": reports.update(p, data.get("report_id"), data).to_dict()}

    def get(p: Principal, data: Dict[str, Any]):
        return {"report": reports.get(p, data.get("report_id")).to_dict()}

    def list_reports(p: Principal, data: Dict[str, Any]):
        return {"reports": [r.to_dict() for r in reports.list(p)]}

    def generate_timeline(p: Principal, data: Dict[str, Any]):
        timeline = reports.generate_timeline(
            p,
            alert_id=data.get("alert_id"),
            event_id=data.get("event_id"),
            report_id=data.get("report_id"),
        )
        return {"timeline": timeline.to_list()}

    def export_json(p: Principal, data: Dict[str, Any]):
        exported = reports.export_json(p, data.get("report_id"))
        filename = f"incident_report_{exported['report']['id']}.json"
        return {"data": exported}, {"Content-Disposition": f'attachment; filename="{filename}"'}

    def export_pdf(p: Principal, data: Dict[str, Any]):
        return reports.export_pdf(p, data.get("report_id"))

    return {
        "create": create,
        "update": update,
        "get": get,
        "list": list_reports,
        "generate_timeline": generate_timeline,
        "export_json": export_json,
        "export_pdf": export_pdf,
    }


app = create_app()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    port = int(os.getenv("PORT", "8005"))
    app.run(host="0.0.0.0", port=port, debug=False)
