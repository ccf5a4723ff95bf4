"""Incident Service: timeline reconstruction and incident reports."""

from .reports import IncidentReportService
from .timeline import (
    IncidentTimeline,
    TimelineEntry,
    TimelineSources,
    build_timeline,
    merge_streams,
)

__all__ = [
    "IncidentReportService",
    "IncidentTimeline",
    "TimelineEntry",
    "TimelineSources",
    "build_timeline",
    "merge_streams",
]
