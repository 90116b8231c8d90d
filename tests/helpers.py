"""Test helpers shared across modules."""

from unittest.mock import MagicMock

from formrelay.config import RelayConfig

TEST_BOT_TOKEN = "123456789:AAtesttokenvaluexxxxxxxxxxxxxxxxxx"
TEST_CHAT_ID = "-1001234567890"


def make_config(**overrides) -> RelayConfig:
    """RelayConfig with test credentials and IP lookup disabled."""
    values = {
        "bot_token": TEST_BOT_TOKEN,
        "chat_id": TEST_CHAT_ID,
        "default_timezone": "Europe/Kyiv",
        "detect_timezone": False,
    }
    values.update(overrides)
    return RelayConfig(**values)


def fake_response(status_code: int = 200, body=None, json_error: bool = False) -> MagicMock:
    """Stand-in for requests.Response."""
    resp = MagicMock()
    resp.status_code = status_code
    if json_error:
        resp.json.side_effect = ValueError("not json")
    else:
        resp.json.return_value = {"ok": True} if body is None else body
    return resp


class LogRecorder:
    """Simple recorder to capture log calls deterministically."""

    def __init__(self):
        self.calls: list[tuple[str, tuple, dict]] = []

    def _record(self, level: str, *args, **kwargs):
        self.calls.append((level, args, kwargs))

    def info(self, *args, **kwargs):
        self._record("info", *args, **kwargs)

    def warning(self, *args, **kwargs):
        self._record("warning", *args, **kwargs)

    def error(self, *args, **kwargs):
        self._record("error", *args, **kwargs)

    def exception(self, *args, **kwargs):
        self._record("exception", *args, **kwargs)

    def debug(self, *args, **kwargs):
        self._record("debug", *args, **kwargs)

    def get_all_logged_content(self) -> str:
        """Concatenate all args and kwargs from all calls into one string."""
        parts = []
        for _, args, kwargs in self.calls:
            parts.append(str(args))
            parts.append(str(kwargs))
        return " ".join(parts)

    def messages(self, level: str | None = None) -> list[str]:
        return [str(args[0]) for lvl, args, _ in self.calls if level is None or lvl == level]
