import hashlib
import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Optional

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def truncate_to_window(moment: datetime, window: timedelta) -> datetime:
    """
    Floor a timestamp to the start of its fixed window.

    Windows are aligned to the Unix epoch, so a one hour window
    behaves like date_trunc('hour', ...).
    """
    moment = ensure_utc(moment)
    window_seconds = int(window.total_seconds())
    epoch_seconds = int(moment.timestamp())
    start = epoch_seconds - (epoch_seconds % window_seconds)
    return datetime.fromtimestamp(start, tz=timezone.utc)


def minutes_until(later: datetime, now: datetime) -> int:
    """Whole minutes (rounded up, at least 1) from now until later."""
    seconds = (ensure_utc(later) - ensure_utc(now)).total_seconds()
    return max(1, math.ceil(seconds / 60))


def pluralize(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


class DeviceFingerprinter:
    """
    Pure logic for deriving a device fingerprint from client signals.
    """

    FINGERPRINT_LENGTH = 32

    @staticmethod
    def calculate(
        user_agent: Optional[str],
        accept_language: Optional[str] = None,
        screen_resolution: Optional[str] = None,
        timezone_name: Optional[str] = None
    ) -> Optional[str]:
        """
        Create a deterministic hash of the client signals.
        Formula: SHA256(user_agent|accept_language|screen_resolution|timezone)[:32]

        Returns None when no signal at all is available, so callers fall
        back to keying by network address alone.
        """
        parts = [user_agent, accept_language, screen_resolution, timezone_name]
        if not any(p and p.strip() for p in parts):
            return None
        raw_string = "|".join((p or "").strip() for p in parts)
        digest = hashlib.sha256(raw_string.encode('utf-8')).hexdigest()
        return digest[:DeviceFingerprinter.FINGERPRINT_LENGTH]
