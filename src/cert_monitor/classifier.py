"""
Expiry classification for monitored certificates.

Maps the whole days left before a certificate expires to an urgency tier and
to the silence window that follows a notification at that tier.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from .models import MS_PER_DAY, MonitorRecord, Tier


@dataclass
class ExpiryThresholds:
    """Upper bounds (in days, inclusive) of each notifying tier."""
    notice: int = 30
    warning: int = 10
    critical: int = 5


@dataclass
class SilencePeriods:
    """Silence windows in days applied after notifying at a tier."""
    notice: int = 7
    warning: int = 3


def remaining_days(expire_time: int, now: int) -> int:
    """Whole days between ``now`` and ``expire_time`` (epoch ms), floored."""
    return (expire_time - now) // MS_PER_DAY


def is_silenced(record: MonitorRecord, now: int) -> bool:
    """True while ``now`` has not passed the record's silence_time."""
    return bool(record.silence_time) and now <= record.silence_time


class ExpiryClassifier:
    """
    Tier rules, first match wins:

    - days > notice                 -> NONE
    - warning < days <= notice      -> NOTICE   (silence for notice window)
    - critical < days <= warning    -> WARNING  (silence for warning window)
    - days <= critical              -> CRITICAL (never silenced)
    """

    def __init__(
        self,
        thresholds: Optional[ExpiryThresholds] = None,
        silence_periods: Optional[SilencePeriods] = None
    ):
        self.thresholds = thresholds or ExpiryThresholds()
        self.silence_periods = silence_periods or SilencePeriods()

    def classify(self, days: int) -> str:
        if days > self.thresholds.notice:
            return Tier.NONE
        if days > self.thresholds.warning:
            return Tier.NOTICE
        if days > self.thresholds.critical:
            return Tier.WARNING
        return Tier.CRITICAL

    def silence_window_ms(self, tier: str) -> int:
        windows: Dict[str, int] = {
            Tier.NOTICE: int(self.silence_periods.notice * MS_PER_DAY),
            Tier.WARNING: int(self.silence_periods.warning * MS_PER_DAY),
        }
        return windows.get(tier, 0)

    def silence_until(self, tier: str, now: int) -> Optional[int]:
        """New silence_time after notifying at ``tier``, or None when the tier is not silenced."""
        window = self.silence_window_ms(tier)
        return now + window if window > 0 else None
