"""Form relay pipeline: fields -> timestamps -> message -> delivery."""

from __future__ import annotations

from datetime import datetime

from formrelay.config import RelayConfig
from formrelay.infra.time import format_in_zone, load_zone, utc_now
from formrelay.observability.logging import get_logger
from formrelay.observability.redaction import safe_log_context
from formrelay.telegram.sender import TelegramSender

from .formatter import build_message, get_dialect
from .models import FieldMap, SubmissionTimes, TimezoneResolution
from .timezone import TimezoneResolver, timezone_hint

logger = get_logger(__name__)


class FormRelay:
    """Turns one decoded submission into one delivered chat message."""

    def __init__(
        self,
        config: RelayConfig,
        *,
        sender: TelegramSender | None = None,
        resolver: TimezoneResolver | None = None,
    ) -> None:
        self.config = config
        self.dialect = get_dialect(config.message_format)
        self.sender = sender or TelegramSender(config)
        self.resolver = resolver or TimezoneResolver(config)

    def submission_times(
        self, instant: datetime, resolution: TimezoneResolution
    ) -> SubmissionTimes:
        """Render ``instant`` in the reference zone and the resolved zone.

        An identifier the tz database does not know is still shown as the
        local zone label, but its clock falls back to the reference zone.
        """
        reference_zone = load_zone(self.config.default_timezone)
        if reference_zone is None:
            raise ValueError(f"unknown default timezone {self.config.default_timezone!r}")

        local_zone = load_zone(resolution.zone)
        if local_zone is None:
            logger.warning(
                "unknown display timezone, using reference clock",
                extra={"extra_fields": safe_log_context(source=resolution.source)},
            )
            local_zone = reference_zone

        return SubmissionTimes(
            reference=format_in_zone(instant, reference_zone),
            local=format_in_zone(instant, local_zone),
            local_zone=resolution.zone,
        )

    def render(self, fields: FieldMap, client_ip: str | None, instant: datetime) -> str:
        resolution = self.resolver.resolve(timezone_hint(fields), client_ip)
        times = self.submission_times(instant, resolution)
        return build_message(
            fields,
            self.config.skip_fields,
            times,
            self.dialect,
            reference_flag=self.config.reference_flag,
            reference_name=self.config.reference_name,
        )

    def relay(self, fields: FieldMap, client_ip: str | None = None) -> bool:
        """Format and deliver a submission. Returns the delivery outcome."""
        instant = utc_now()
        message = self.render(fields, client_ip, instant)

        logger.info(
            "relaying form submission",
            extra={
                "extra_fields": safe_log_context(
                    field_count=len(fields),
                    text_len=len(message),
                    dialect=self.dialect.name,
                )
            },
        )
        return self.sender.send(message, self.dialect)
