"""Decode inbound form submissions into a FieldMap.

Two encodings are accepted: a JSON object body, or regular form fields
(url-encoded or multipart, with file parts reduced to a placeholder).
"""

import json
from typing import Any

from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException
from starlette.formparsers import MultiPartException
from starlette.requests import Request

from .models import FieldMap

FILE_PLACEHOLDER = "File uploaded: {filename}"


class RelayError(Exception):
    """Base class for request rejections surfaced as HTTP errors."""

    status_code = 400
    detail = "Bad request"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.detail)
        if detail:
            self.detail = detail


class MethodNotAllowedError(RelayError):
    """Raised for any method other than POST."""

    status_code = 405
    detail = "Method not allowed"


class InvalidPayloadError(RelayError):
    """Raised when a JSON body cannot be parsed into a non-empty object."""

    detail = "Invalid JSON data"


class EmptyPayloadError(RelayError):
    """Raised when the decoded submission has no fields."""

    detail = "No form data received"


def is_json_request(content_type: str | None) -> bool:
    return "application/json" in (content_type or "")


def decode_json_body(body: bytes) -> FieldMap:
    """Parse a JSON body into a FieldMap.

    Raises:
        InvalidPayloadError: If the body is not JSON, is falsy (``{}``,
            ``null``, ``0``...), or is not an object.
    """
    try:
        decoded = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        raise InvalidPayloadError() from None

    if not decoded or not isinstance(decoded, dict):
        raise InvalidPayloadError()

    return dict(decoded)


def collect_form_items(items: list[tuple[str, Any]]) -> FieldMap:
    """Fold multi-valued form items into a FieldMap.

    - Repeated keys, and PHP-style ``name[]`` keys, become lists.
    - File parts with a filename become a placeholder string; empty file
      inputs are dropped.
    """
    fields: FieldMap = {}
    list_keys: set[str] = set()

    for raw_key, value in items:
        if isinstance(value, UploadFile):
            if not value.filename:
                continue
            value = FILE_PLACEHOLDER.format(filename=value.filename)

        key = raw_key
        if raw_key.endswith("[]"):
            key = raw_key[:-2]
            list_keys.add(key)

        if key not in fields:
            fields[key] = [value] if key in list_keys else value
            continue

        existing = fields[key]
        if key in list_keys and isinstance(existing, list):
            existing.append(value)
        else:
            fields[key] = [existing, value]
            list_keys.add(key)

    return fields


async def decode_form(request: Request) -> FieldMap:
    """Parse url-encoded or multipart fields; upload temp files are closed on return.

    A body the form parser rejects counts as an empty submission.
    """
    try:
        async with request.form() as form:
            return collect_form_items(list(form.multi_items()))
    except (MultiPartException, HTTPException):
        raise EmptyPayloadError() from None


async def decode_request(request: Request) -> FieldMap:
    """Extract the submitted fields from a request.

    Raises:
        MethodNotAllowedError: If the method is not POST.
        InvalidPayloadError: If a JSON body is malformed or empty.
        EmptyPayloadError: If no fields were submitted.
    """
    if request.method != "POST":
        raise MethodNotAllowedError()

    if is_json_request(request.headers.get("content-type")):
        fields = decode_json_body(await request.body())
    else:
        fields = await decode_form(request)

    if not fields:
        raise EmptyPayloadError()

    return fields
