"""Form relay models."""

from dataclasses import dataclass
from typing import Any, Literal

# Decoded submission. Insertion order is rendering order.
FieldMap = dict[str, Any]

TimezoneSource = Literal["hint", "geoip", "default"]


@dataclass(frozen=True)
class TimezoneResolution:
    """Outcome of display-timezone resolution.

    ``zone`` is always usable as a label; ``source`` tells whether it came
    from the submission, the IP lookup, or the configured default.
    """

    zone: str
    source: TimezoneSource

    @property
    def defaulted(self) -> bool:
        return self.source == "default"


@dataclass(frozen=True)
class SubmissionTimes:
    """One submission instant rendered in the reference and display zones."""

    reference: str
    local: str
    local_zone: str


@dataclass(frozen=True)
class DeliveryAttempt:
    """Result of a single sendMessage call. Contains NO message text."""

    ok: bool
    parse_mode: str
    status_code: int | None = None
    error: str | None = None
