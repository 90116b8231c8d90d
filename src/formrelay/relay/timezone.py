"""Display timezone resolution for a submitter.

Priority:
1. ``timezone`` field sent with the form (returned verbatim)
2. IP geolocation lookup (ipinfo.io), when enabled
3. Configured default timezone

Lookup problems never reach the caller; they are logged and the default
is returned.
"""

from __future__ import annotations

import ipaddress
from typing import Any

import requests

from formrelay.config import RelayConfig
from formrelay.observability.logging import get_logger
from formrelay.observability.redaction import hash_identifier, safe_log_context

from .models import FieldMap, TimezoneResolution

logger = get_logger(__name__)

TIMEZONE_HINT_FIELD = "timezone"


def timezone_hint(fields: FieldMap) -> str | None:
    """Return the explicit timezone hint from the submission, if any."""
    hint = fields.get(TIMEZONE_HINT_FIELD)
    if isinstance(hint, str) and hint:
        return hint
    return None


def is_lookup_candidate(client_ip: str | None) -> bool:
    """True for a syntactically valid, non-loopback address."""
    if not client_ip:
        return False
    try:
        address = ipaddress.ip_address(client_ip)
    except ValueError:
        return False
    return not address.is_loopback


def _do_request(url: str, timeout: float) -> dict[str, Any]:
    """Execute HTTP GET and decode the JSON body. Raises on error."""
    resp = requests.get(url, timeout=timeout)
    resp.raise_for_status()
    return resp.json()


class TimezoneResolver:
    """Resolves the zone shown on the "Local" timestamp line."""

    def __init__(self, config: RelayConfig) -> None:
        self._default = config.default_timezone
        self._lookup_enabled = config.detect_timezone
        self._lookup_url = config.geo_lookup_url
        self._lookup_timeout = config.geo_lookup_timeout

    def resolve(self, hint: str | None, client_ip: str | None) -> TimezoneResolution:
        if hint:
            return TimezoneResolution(zone=hint, source="hint")

        if self._lookup_enabled and is_lookup_candidate(client_ip):
            zone = self.lookup(client_ip)  # type: ignore[arg-type]
            if zone:
                return TimezoneResolution(zone=zone, source="geoip")

        return TimezoneResolution(zone=self._default, source="default")

    def lookup(self, client_ip: str) -> str | None:
        """Query the geolocation service for ``client_ip``'s timezone.

        Returns:
            Timezone identifier, or None on any failure.
        """
        url = f"{self._lookup_url}/{client_ip}/json"
        log_ctx = safe_log_context(ip_hash=hash_identifier(client_ip))

        try:
            data = _do_request(url, self._lookup_timeout)
        except (requests.RequestException, ValueError) as e:
            logger.warning(
                "timezone lookup failed",
                extra={"extra_fields": safe_log_context(**log_ctx, error_type=type(e).__name__)},
            )
            return None

        zone = data.get("timezone") if isinstance(data, dict) else None
        if not isinstance(zone, str) or not zone:
            logger.info(
                "timezone lookup returned no timezone",
                extra={"extra_fields": log_ctx},
            )
            return None

        return zone
