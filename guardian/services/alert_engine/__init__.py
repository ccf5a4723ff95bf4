"""Alert Engine: alert lifecycle and wearable triggers.

Every trigger source (manual, duress password, wearable button,
heart rate, gesture) creates alerts through AlertLifecycleManager.
"""

from .config import HeartRateThresholds
from .lifecycle import AlertLifecycleManager, AudioUploadSlot
from .wearables import TriggerResult, WearableService

__all__ = [
    "HeartRateThresholds",
    "AlertLifecycleManager",
    "AudioUploadSlot",
    "TriggerResult",
    "WearableService",
]
