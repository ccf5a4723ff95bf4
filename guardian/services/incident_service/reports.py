"""Incident reports: after-action records with an embedded timeline."""
import logging
import uuid
from typing import Any, Dict, List, Optional

from guardian.shared.database.records import (
    AlertRepository,
    AudioRepository,
    EventRepository,
    IncidentReportRepository,
)
from guardian.shared.errors import Forbidden, NotFound, ValidationError
from guardian.shared.models import GeoPoint, IncidentReport, Principal, is_security_role
from guardian.shared.utils import hash_pii, isoformat, utcnow
from .timeline import IncidentTimeline, TimelineSources, build_timeline

logger = logging.getLogger(__name__)

REPORT_STATUSES = ("draft", "submitted")

# Fields an owner may change after creation
_EDITABLE_FIELDS = ("title", "description", "location", "attachments", "status")

PDF_NOT_IMPLEMENTED = "PDF generation not implemented. Use export_json for data export."


class IncidentReportService:
    """Creates, reads and exports incident reports."""

    def __init__(
        self,
        reports: IncidentReportRepository,
        sources: TimelineSources,
    ):
        self.reports = reports
        self.sources = sources

    @property
    def alerts(self) -> AlertRepository:
        return self.sources.alerts

    @property
    def audio(self) -> AudioRepository:
        return self.sources.audio

    @property
    def events(self) -> EventRepository:
        return self.sources.events

    def create(
        self,
        principal: Principal,
        title: Optional[str],
        description: Optional[str],
        alert_id: Optional[str] = None,
        event_id: Optional[str] = None,
        location: Optional[Dict[str, Any]] = None,
        attachments: Optional[List[str]] = None,
    ) -> IncidentReport:
        """Create a draft report.
        
        The timeline of the referenced alert/event is embedded at creation
        time, as are the URLs of the alert's audio recordings.
        
        Raises:
            ValidationError: Missing title or description, bad location
            Forbidden: Official referencing another user's alert
        """
        if not title or not description:
            raise ValidationError("Title and description are required")
        point = GeoPoint.from_payload(location)
        if alert_id:
            self._check_alert_access(principal, alert_id)

        timeline = None
        if alert_id or event_id:
            timeline = build_timeline(self.sources, alert_id, event_id).to_list()

        audio_files: List[str] = []
        if alert_id:
            audio_files = [r.file_url for r in self.audio.for_alert(alert_id)]

        report = self.reports.add(IncidentReport(
            id=str(uuid.uuid4()),
            user_id=principal.user_id,
            title=title,
            description=description,
            alert_id=alert_id or None,
            event_id=event_id or None,
            location=point.to_dict() if point else None,
            attachments=list(attachments or []),
            audio_files=audio_files,
            timeline=timeline,
        ))

        logger.info(
            "INCIDENT_REPORT_CREATED",
            extra={
                "report_id": report.id,
                "author_hash": hash_pii(principal.user_id),
                "alert_id": report.alert_id,
                "event_id": report.event_id,
                "timeline_entries": len(timeline or []),
            }
        )
        return report

    def update(self, principal: Principal, report_id: Optional[str], changes: Dict[str, Any]) -> IncidentReport:
        """Owner-only partial update of the editable fields.
        
        Raises:
            NotFound: Unknown or deleted report
            Forbidden: Caller is not the author
        """
        report = self._live_report(report_id)
        if report.user_id != principal.user_id:
            raise Forbidden("Only the author may update this report")

        values: Dict[str, Any] = {}
        for name in _EDITABLE_FIELDS:
            if name in changes and changes[name] is not None:
                values[name] = changes[name]

        if "title" in values and not values["title"]:
            raise ValidationError("Title must not be empty")
        if "description" in values and not values["description"]:
            raise ValidationError("Description must not be empty")
        if "status" in values and values["status"] not in REPORT_STATUSES:
            raise ValidationError(f"Status must be one of: {', '.join(REPORT_STATUSES)}")
        if "location" in values:
            values["location"] = GeoPoint.from_payload(values["location"]).to_dict()
        if "attachments" in values:
            values["attachments"] = list(values["attachments"])

        return self.reports.update_fields(report.id, values)

    def get(self, principal: Principal, report_id: Optional[str]) -> IncidentReport:
        report = self._live_report(report_id)
        self._check_read_access(principal, report)
        return report

    def list(self, principal: Principal) -> List[IncidentReport]:
        """Officials see their own reports; security roles see reports for
        events they are assigned to."""
        if not is_security_role(principal.role):
            return self.reports.list_live(user_id=principal.user_id)

        event_ids = self.events.assigned_event_ids(principal.user_id)
        if not event_ids:
            return []
        return self.reports.list_live(event_ids=event_ids)

    def generate_timeline(
        self,
        principal: Principal,
        alert_id: Optional[str] = None,
        event_id: Optional[str] = None,
        report_id: Optional[str] = None,
    ) -> IncidentTimeline:
        """Rebuild a timeline from current store state.
        
        With a report id the report's own alert/event are used and the
        result is written back onto the report.
        
        Raises:
            ValidationError: No alert, event or report id
            NotFound: Unknown report
        """
        if not alert_id and not event_id and not report_id:
            raise ValidationError("Alert ID, Event ID, or Report ID is required")

        report = None
        if report_id:
            report = self._live_report(report_id)
            self._check_read_access(principal, report)
            alert_id, event_id = report.alert_id, report.event_id
        elif alert_id:
            self._check_alert_access(principal, alert_id)

        timeline = build_timeline(self.sources, alert_id, event_id)

        if report is not None:
            self.reports.update_fields(report.id, {"timeline": timeline.to_list()})
            logger.info(
                "INCIDENT_REPORT_TIMELINE_REFRESHED",
                extra={"report_id": report.id, "timeline_entries": len(timeline)}
            )

        return timeline

    def export_json(self, principal: Principal, report_id: Optional[str]) -> Dict[str, Any]:
        """Report plus its alert and event, for download."""
        report = self.get(principal, report_id)

        alert = self.alerts.find_by_id(report.alert_id) if report.alert_id else None
        event = self.events.find_by_id(report.event_id) if report.event_id else None

        logger.info("INCIDENT_REPORT_EXPORTED", extra={"report_id": report.id, "format": "json"})

        return {
            "report": report.to_dict(),
            "alert": alert.to_dict() if alert else None,
            "event": event.to_dict() if event else None,
            "exported_at": isoformat(utcnow()),
        }

    def export_pdf(self, principal: Principal, report_id: Optional[str]) -> Dict[str, Any]:
        """Structured data a renderer would lay out; no document is produced."""
        report = self.get(principal, report_id)
        return {
            "message": PDF_NOT_IMPLEMENTED,
            "data": {
                "title": report.title,
                "description": report.description,
                "timeline": report.timeline,
                "location": report.location,
                "attachments": report.attachments,
                "audio_files": report.audio_files,
                "created_at": isoformat(report.created_at),
            },
        }

    def _live_report(self, report_id: Optional[str]) -> IncidentReport:
        if not report_id:
            raise ValidationError("Report ID is required")
        report = self.reports.find_live(report_id)
        if report is None:
            raise NotFound("Report not found")
        return report

    def _check_read_access(self, principal: Principal, report: IncidentReport) -> None:
        if report.user_id == principal.user_id:
            return
        if is_security_role(principal.role):
            return
        raise Forbidden("Not permitted to view this report")

    def _check_alert_access(self, principal: Principal, alert_id: str) -> None:
        if is_security_role(principal.role):
            return
        alert = self.alerts.find_by_id(alert_id)
        if alert is not None and alert.user_id != principal.user_id:
            raise Forbidden("Not permitted to report on this alert")
