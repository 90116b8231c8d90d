"""Tests for the relay pipeline without HTTP."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

from formrelay.relay.models import TimezoneResolution
from formrelay.relay.service import FormRelay

from .helpers import make_config

INSTANT = datetime(2024, 7, 1, 9, 0, 0, tzinfo=timezone.utc)


def _relay(**overrides) -> tuple[FormRelay, MagicMock, MagicMock]:
    sender = MagicMock()
    sender.send.return_value = True
    resolver = MagicMock()
    resolver.resolve.return_value = TimezoneResolution(zone="Asia/Tokyo", source="geoip")
    relay = FormRelay(make_config(**overrides), sender=sender, resolver=resolver)
    return relay, sender, resolver


class TestSubmissionTimes:
    """Tests for FormRelay.submission_times()."""

    def test_reference_and_local(self):
        relay, _, _ = _relay()
        times = relay.submission_times(INSTANT, TimezoneResolution("Asia/Tokyo", "hint"))
        assert times.reference == "2024-07-01 12:00:00"
        assert times.local == "2024-07-01 18:00:00"
        assert times.local_zone == "Asia/Tokyo"

    def test_unknown_zone_keeps_label_uses_reference_clock(self):
        relay, _, _ = _relay()
        times = relay.submission_times(INSTANT, TimezoneResolution("Bogus/Zone", "hint"))
        assert times.local == times.reference
        assert times.local_zone == "Bogus/Zone"


class TestRelay:
    """Tests for FormRelay.relay()."""

    def test_passes_hint_and_ip_to_resolver(self):
        relay, _, resolver = _relay()
        relay.relay({"name": "Jane", "timezone": "Asia/Tokyo"}, "203.0.113.7")
        resolver.resolve.assert_called_once_with("Asia/Tokyo", "203.0.113.7")

    def test_returns_sender_outcome(self):
        relay, sender, _ = _relay()
        sender.send.return_value = False
        assert relay.relay({"name": "Jane"}) is False

    def test_uses_configured_dialect(self):
        relay, sender, _ = _relay(message_format="Markdown")
        relay.relay({"name": "Jane"})
        text, dialect = sender.send.call_args.args
        assert dialect.parse_mode == "MarkdownV2"
        assert text.startswith("*")

    def test_custom_reference_label_and_flag(self):
        relay, _, _ = _relay(reference_label="Kiev", reference_flag="#")
        message = relay.render({"name": "Jane"}, None, INSTANT)
        assert "# <b>Kiev:</b> 2024-07-01 12:00:00" in message
