"""Outbound chat messages via the Telegram Bot API.

Security: NEVER log the bot token, chat id or message text. Only log
hashes, lengths and status codes.
"""

from __future__ import annotations

from typing import Any

import requests

from formrelay.config import RelayConfig
from formrelay.observability.logging import get_logger
from formrelay.observability.redaction import hash_identifier, redact_string, safe_log_context
from formrelay.relay.formatter import HTML_DIALECT, Dialect, escape_html
from formrelay.relay.models import DeliveryAttempt

logger = get_logger(__name__)

# Telegram rejects longer texts; we only warn, the API has the final say
TELEGRAM_MAX_MESSAGE_LENGTH = 4096

FALLBACK_NOTICE = (
    "<b>\U0001F4DD Error with Markdown formatting</b>\n\n"
    "The message is being sent using HTML format instead.\n\n"
)


def build_fallback_message(original_text: str) -> str:
    """Wrap a rejected MarkdownV2 message as HTML.

    The original text is entity-escaped and every newline gets a
    ``<br />`` tag in front of it.
    """
    return FALLBACK_NOTICE + escape_html(original_text).replace("\n", "<br />\n")


def _do_request(url: str, data: dict[str, str], timeout: float) -> requests.Response:
    """Execute HTTP POST (form-encoded). Raises on transport error."""
    return requests.post(url, data=data, timeout=timeout, verify=True)


class TelegramSender:
    """Delivers formatted messages to one configured chat."""

    def __init__(self, config: RelayConfig) -> None:
        self._bot_token = config.bot_token
        self._chat_id = config.chat_id
        self._api_base = config.telegram_api_base
        self._timeout = config.telegram_timeout

    @property
    def configured(self) -> bool:
        return bool(self._bot_token and self._chat_id)

    def send(self, text: str, dialect: Dialect) -> bool:
        """Send ``text`` and report whether Telegram accepted it.

        A MarkdownV2 message rejected with HTTP 400 (usually an escaping
        defect) is re-sent once as HTML. The fallback's outcome is final.
        """
        if not self.configured:
            logger.error("telegram delivery skipped: bot token or chat id missing")
            return False

        attempt = self.send_once(text, dialect.parse_mode)
        if attempt.ok:
            return True

        if attempt.parse_mode == "MarkdownV2" and attempt.status_code == 400:
            logger.warning(
                "markdown message rejected, retrying as html",
                extra={"extra_fields": safe_log_context(text_len=len(text))},
            )
            fallback = self.send_once(build_fallback_message(text), HTML_DIALECT.parse_mode)
            return fallback.ok

        return False

    def send_once(self, text: str, parse_mode: str) -> DeliveryAttempt:
        """Issue a single sendMessage call. Never raises."""
        url = f"{self._api_base}/bot{self._bot_token}/sendMessage"
        params = {
            "chat_id": self._chat_id,
            "text": text,
            "parse_mode": parse_mode,
        }

        log_ctx = safe_log_context(
            chat_hash=hash_identifier(self._chat_id),
            text_len=len(text),
            parse_mode=parse_mode,
        )

        if len(text) > TELEGRAM_MAX_MESSAGE_LENGTH:
            logger.warning(
                "message exceeds telegram length limit",
                extra={"extra_fields": safe_log_context(**log_ctx, limit=TELEGRAM_MAX_MESSAGE_LENGTH)},
            )

        try:
            resp = _do_request(url, params, self._timeout)
        except requests.RequestException as e:
            # Exception text may embed the URL, and with it the bot token
            error = redact_string(str(e))
            logger.error(
                "telegram api error",
                extra={"extra_fields": safe_log_context(**log_ctx, error=error)},
            )
            return DeliveryAttempt(ok=False, parse_mode=parse_mode, error=error)

        if resp.status_code != 200:
            logger.error(
                "telegram api error",
                extra={"extra_fields": safe_log_context(**log_ctx, http_status=resp.status_code)},
            )
            return DeliveryAttempt(ok=False, parse_mode=parse_mode, status_code=resp.status_code)

        try:
            body: Any = resp.json()
        except ValueError:
            logger.error(
                "telegram api returned invalid json",
                extra={"extra_fields": safe_log_context(**log_ctx, http_status=resp.status_code)},
            )
            return DeliveryAttempt(
                ok=False, parse_mode=parse_mode, status_code=resp.status_code, error="invalid json"
            )

        ok = isinstance(body, dict) and body.get("ok") is True
        if ok:
            logger.info("telegram message sent", extra={"extra_fields": log_ctx})
        else:
            logger.error(
                "telegram api reported failure",
                extra={"extra_fields": safe_log_context(**log_ctx, http_status=resp.status_code)},
            )
        return DeliveryAttempt(ok=ok, parse_mode=parse_mode, status_code=resp.status_code)
