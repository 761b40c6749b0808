"""
Common Schema Types
==================

Bounded Context: Shared Data Structures

Design Principles:
- Immutability: frozen=True prevents accidental mutation
- Type Safety: All fields explicitly typed
- Validation: Constructor validates invariants

Types:
- Timestamp: UTC timestamp at second resolution, ``YYYY-MM-DDTHH:MM:SSZ``
"""

from dataclasses import dataclass
from datetime import datetime, timezone

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def utc_now() -> datetime:
    """Current wall-clock time, timezone-aware UTC."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Timestamp:
    """
    Immutable UTC timestamp wrapper.

    The value is always ``YYYY-MM-DDTHH:MM:SSZ`` (no fractional seconds, no
    offset other than ``Z``).

    Attributes:
        value: Formatted timestamp string

    Example:
        >>> Timestamp.from_datetime(datetime(2024, 1, 1, tzinfo=timezone.utc)).value
        '2024-01-01T00:00:00Z'
    """
    value: str

    def __post_init__(self):
        """Validate format."""
        try:
            datetime.strptime(self.value, TIMESTAMP_FORMAT)
        except (TypeError, ValueError) as e:
            raise ValueError(
                f"Timestamp must match {TIMESTAMP_FORMAT}, got {self.value!r}"
            ) from e

    @classmethod
    def now(cls) -> 'Timestamp':
        """Create timestamp from current time."""
        return cls.from_datetime(utc_now())

    @classmethod
    def from_datetime(cls, dt: datetime) -> 'Timestamp':
        """
        Create timestamp from datetime object.

        Naive datetimes are taken to be UTC already; aware ones are
        converted.
        """
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return cls(value=dt.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT))

    def to_datetime(self) -> datetime:
        """Parse to a timezone-aware UTC datetime."""
        return datetime.strptime(self.value, TIMESTAMP_FORMAT).replace(
            tzinfo=timezone.utc
        )

    def __str__(self) -> str:
        return self.value
