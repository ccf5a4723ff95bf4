"""Location Service: GPS submission and history."""

from .tracker import LocationTracker

__all__ = ["LocationTracker"]
