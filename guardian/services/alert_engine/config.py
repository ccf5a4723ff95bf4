"""Wearable escalation thresholds.

A reading at or above ``absolute_bpm``, or a jump larger than
``spike_delta`` over the previous reading, escalates to an alert.
"""
import os
from dataclasses import dataclass


@dataclass(frozen=True)
class HeartRateThresholds:
    """Heart-rate escalation thresholds.
    
    A spike takes precedence over the absolute threshold when both apply:
    a spike escalates at ``spike_level``, a sustained high rate at
    ``sustained_level``.
    """
    absolute_bpm: int = 150
    spike_delta: int = 30
    spike_level: str = "high"
    sustained_level: str = "medium"

    @classmethod
    def from_env(cls) -> "HeartRateThresholds":
        """Environment variables:
            HEART_RATE_ALERT_BPM (default 150)
            HEART_RATE_SPIKE_DELTA (default 30)
        """
        return cls(
            absolute_bpm=int(os.getenv("HEART_RATE_ALERT_BPM", "150")),
            spike_delta=int(os.getenv("HEART_RATE_SPIKE_DELTA", "30")),
        )

    def is_spike(self, heart_rate: float, previous: float) -> bool:
        # A missing or zero previous reading never counts as a spike
        if not previous:
            return False
        return (heart_rate - previous) > self.spike_delta

    def is_sustained_high(self, heart_rate: float) -> bool:
        return heart_rate >= self.absolute_bpm
