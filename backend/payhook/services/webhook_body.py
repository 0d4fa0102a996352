"""Decode webhook request bodies (JSON or form-encoded) into plain Python data.

Form bodies use the bracket convention for nesting, as sent by providers
that post ``application/x-www-form-urlencoded``:

    event=sale_completed&sale[amount]=25&sale[transaction_id]=abc
    -> {"event": "sale_completed", "sale": {"amount": "25", "transaction_id": "abc"}}

``key[]=a&key[]=b`` collects into a list.
"""

import json
import re
from typing import Any
from urllib.parse import parse_qsl

from payhook.core.exceptions import WebhookPayloadError

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

_BRACKET_KEY_RE = re.compile(r"^([^\[\]]+)((?:\[[^\[\]]*\])*)$")
_BRACKET_PART_RE = re.compile(r"\[([^\[\]]*)\]")


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-standard JSON constant: {name}")


def _split_key(key: str) -> list[str]:
    match = _BRACKET_KEY_RE.match(key)
    if not match:
        return [key]
    return [match.group(1), *_BRACKET_PART_RE.findall(match.group(2))]


def _assign(target: dict[str, Any], parts: list[str], value: str) -> None:
    is_list = len(parts) > 1 and parts[-1] == ""
    if is_list:
        parts = parts[:-1]

    node = target
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child

    key = parts[-1]
    if is_list:
        items = node.get(key)
        if not isinstance(items, list):
            items = []
            node[key] = items
        items.append(value)
    else:
        node[key] = value


def parse_form(body: bytes) -> dict[str, Any]:
    """Expand a urlencoded body into nested dicts."""
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise WebhookPayloadError("Form body is not valid UTF-8") from e

    result: dict[str, Any] = {}
    for key, value in parse_qsl(text, keep_blank_values=True):
        _assign(result, _split_key(key), value)
    return result


def parse_json(body: bytes) -> Any:
    """Decode a JSON body. NaN/Infinity are rejected so records stay valid JSON."""
    if not body.strip():
        return {}
    try:
        return json.loads(body, parse_constant=_reject_constant)
    except (ValueError, UnicodeDecodeError) as e:
        raise WebhookPayloadError("Invalid JSON body") from e


def parse_webhook_body(body: bytes, content_type: str | None) -> Any:
    """Decode a webhook body according to its Content-Type header.

    Raises:
        WebhookPayloadError: the body cannot be decoded
    """
    media_type = (content_type or "").split(";", 1)[0].strip().lower()
    if media_type == FORM_CONTENT_TYPE:
        return parse_form(body)
    return parse_json(body)
