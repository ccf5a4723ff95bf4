"""Guardian services.

One Flask app per subsystem, each exposing a single action endpoint:
- emergency-alert: alert lifecycle and audio evidence (alert_engine)
- wearable-device: device registry and wearable triggers (alert_engine)
- decoy-mode: duress validation and decoy configuration (duress_service)
- location-tracking: GPS submission and history (location_service)
- incident-reporting: timelines and incident reports (incident_service)

All alerts fan out through notification_service.
"""
