"""Tests for display timezone resolution."""

from unittest.mock import patch

import pytest
import requests

from formrelay.relay.models import TimezoneResolution
from formrelay.relay.timezone import (
    TimezoneResolver,
    is_lookup_candidate,
    timezone_hint,
)

from .helpers import LogRecorder, make_config

PUBLIC_IP = "203.0.113.7"


def _resolver(**overrides) -> TimezoneResolver:
    return TimezoneResolver(make_config(**overrides))


class TestHint:
    """Tests for the explicit timezone hint."""

    def test_hint_returned_verbatim(self):
        result = _resolver(detect_timezone=True).resolve("Asia/Tokyo", PUBLIC_IP)
        assert result == TimezoneResolution(zone="Asia/Tokyo", source="hint")

    @pytest.mark.parametrize("detect", [True, False])
    def test_hint_wins_regardless_of_toggle(self, detect):
        with patch("formrelay.relay.timezone._do_request") as mock_request:
            result = _resolver(detect_timezone=detect).resolve("Asia/Tokyo", PUBLIC_IP)
        assert result.zone == "Asia/Tokyo"
        mock_request.assert_not_called()

    def test_hint_not_validated(self):
        assert _resolver().resolve("Not/AZone", None).zone == "Not/AZone"

    def test_timezone_hint_from_fields(self):
        assert timezone_hint({"timezone": "Asia/Tokyo"}) == "Asia/Tokyo"
        assert timezone_hint({"name": "Jane"}) is None
        assert timezone_hint({"timezone": ""}) is None
        assert timezone_hint({"timezone": ["Asia/Tokyo"]}) is None


class TestLookup:
    """Tests for the IP geolocation path."""

    def test_lookup_success(self):
        with patch(
            "formrelay.relay.timezone._do_request",
            return_value={"ip": PUBLIC_IP, "timezone": "America/Chicago"},
        ) as mock_request:
            result = _resolver(detect_timezone=True).resolve(None, PUBLIC_IP)

        assert result == TimezoneResolution(zone="America/Chicago", source="geoip")
        url, timeout = mock_request.call_args.args
        assert url == f"https://ipinfo.io/{PUBLIC_IP}/json"
        assert timeout == 5.0

    def test_lookup_uses_configured_timeout(self):
        with patch(
            "formrelay.relay.timezone._do_request", return_value={"timezone": "UTC"}
        ) as mock_request:
            _resolver(detect_timezone=True, geo_lookup_timeout=2.5).resolve(None, PUBLIC_IP)
        assert mock_request.call_args.args[1] == 2.5

    def test_lookup_disabled_returns_default(self):
        with patch("formrelay.relay.timezone._do_request") as mock_request:
            result = _resolver(detect_timezone=False).resolve(None, PUBLIC_IP)
        assert result == TimezoneResolution(zone="Europe/Kyiv", source="default")
        assert result.defaulted
        mock_request.assert_not_called()

    @pytest.mark.parametrize("ip", ["127.0.0.1", "::1", "127.0.0.2", None, "", "not-an-ip"])
    def test_unusable_address_skips_lookup(self, ip):
        with patch("formrelay.relay.timezone._do_request") as mock_request:
            result = _resolver(detect_timezone=True).resolve(None, ip)
        assert result.defaulted
        mock_request.assert_not_called()

    @pytest.mark.parametrize(
        "error",
        [
            requests.ConnectionError("boom"),
            requests.Timeout("slow"),
            requests.HTTPError("429"),
            ValueError("bad json"),
        ],
    )
    def test_lookup_failure_degrades_to_default(self, error):
        recorder = LogRecorder()
        with patch("formrelay.relay.timezone.logger", recorder):
            with patch("formrelay.relay.timezone._do_request", side_effect=error):
                result = _resolver(detect_timezone=True).resolve(None, PUBLIC_IP)

        assert result == TimezoneResolution(zone="Europe/Kyiv", source="default")
        assert recorder.messages("warning") == ["timezone lookup failed"]
        assert PUBLIC_IP not in recorder.get_all_logged_content()

    @pytest.mark.parametrize("body", [{}, {"timezone": ""}, {"timezone": 3}, ["x"]])
    def test_missing_timezone_field_degrades_to_default(self, body):
        with patch("formrelay.relay.timezone._do_request", return_value=body):
            result = _resolver(detect_timezone=True).resolve(None, PUBLIC_IP)
        assert result.defaulted


class TestLookupCandidate:
    """Tests for is_lookup_candidate()."""

    @pytest.mark.parametrize("ip", [PUBLIC_IP, "2001:db8::1", "10.0.0.5"])
    def test_valid(self, ip):
        assert is_lookup_candidate(ip)

    @pytest.mark.parametrize("ip", ["127.0.0.1", "::1", "", None, "999.1.1.1", "testclient"])
    def test_invalid(self, ip):
        assert not is_lookup_candidate(ip)
