"""Form submission webhook - relays submitted fields to Telegram.

Security:
- Submitted values exist only in memory while the request is handled
- Logs contain field counts and lengths, NEVER field values

Responses:
- 405 text/plain for any method other than POST
- 400 text/plain for malformed JSON or an empty submission
- 200 application/json {"success": bool} otherwise, whatever the
  delivery outcome
"""

from fastapi import APIRouter, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from formrelay.observability.logging import get_logger
from formrelay.observability.redaction import safe_log_context
from formrelay.relay.decoder import RelayError, decode_request
from formrelay.relay.service import FormRelay

router = APIRouter(tags=["webhooks"])

logger = get_logger(__name__)

# Non-POST methods must reach the handler to get the plain-text 405
WEBHOOK_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]

FORWARDED_FOR_HEADER = "X-Forwarded-For"


class RelayResponse(BaseModel):
    success: bool


def _get_relay(request: Request) -> FormRelay:
    """Get the relay built by the app factory (allows test injection)."""
    return request.app.state.relay


def _client_ip(request: Request, trust_forwarded_for: bool) -> str | None:
    """Best-effort submitter address for the timezone lookup."""
    if trust_forwarded_for:
        forwarded = request.headers.get(FORWARDED_FOR_HEADER, "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    return request.client.host if request.client else None


@router.api_route("/", methods=WEBHOOK_METHODS)
@router.api_route("/webhook", methods=WEBHOOK_METHODS)
async def form_webhook(request: Request) -> Response:
    """Receive a form submission and forward it to the configured chat."""
    try:
        fields = await decode_request(request)
    except RelayError as e:
        logger.warning(
            "form submission rejected",
            extra={
                "extra_fields": safe_log_context(
                    method=request.method,
                    status=e.status_code,
                    reason=type(e).__name__,
                )
            },
        )
        return PlainTextResponse(e.detail, status_code=e.status_code)

    relay = _get_relay(request)
    client_ip = _client_ip(request, relay.config.trust_forwarded_for)

    # Geolocation and delivery are blocking HTTP calls
    success = await run_in_threadpool(relay.relay, fields, client_ip)

    return JSONResponse(RelayResponse(success=success).model_dump())
