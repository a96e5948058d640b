"""URL state codec for builder share links.

One query parameter per field, keyed by the field's short ``url_key``;
set fields are comma-joined.  Only values that differ from the default
snapshot are written, and decoding fills the snapshot back in, so
``decode_url_state(encode_url_state(s)) == s`` for every state.
Decoding never resolves; callers run the resolver on the result.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit

from stackctl.domain.command import EMPTY_SET, split_list
from stackctl.domain.fields import DEFAULT_PROJECT_NAME, FIELDS, Field
from stackctl.domain.stack import StackState

NAME_KEY = "name"

_FIELDS_BY_KEY: dict[str, Field] = {f.url_key: f for f in FIELDS}


class UrlStateError(ValueError):
    """Raised when a share link carries a value that cannot be decoded."""


def _encode_value(field: Field, value: Any) -> str:
    if field.is_bool:
        return "true" if value else "false"
    if field.is_multi:
        return ",".join(value) if value else EMPTY_SET
    return str(value)


def _decode_value(field: Field, raw: str) -> Any:
    if field.is_bool:
        lowered = raw.strip().lower()
        if lowered not in ("true", "false"):
            msg = f"Invalid value for {field.url_key}: {raw!r} (expected true or false)"
            raise UrlStateError(msg)
        return lowered == "true"
    if field.is_multi:
        return split_list(raw)
    return raw


def encode_url_state(state: StackState) -> str:
    """Encode *state* as a query string (without the leading ``?``)."""
    params: list[tuple[str, str]] = []
    if state.project_name != DEFAULT_PROJECT_NAME:
        params.append((NAME_KEY, state.project_name))
    for field in FIELDS:
        value = state.get(field.id)
        if value != field.default:
            params.append((field.url_key, _encode_value(field, value)))
    return urlencode(params, safe=",")


def decode_url_state(query: str) -> StackState:
    """Decode a query string or full share URL into an unresolved state.

    Unknown keys are ignored; the last occurrence of a repeated key wins.
    """
    if "?" in query or "://" in query:
        query = urlsplit(query).query
    updates: dict[str, Any] = {}
    for key, raw in parse_qsl(query.lstrip("?"), keep_blank_values=True):
        if key == NAME_KEY:
            updates["project_name"] = raw
            continue
        field = _FIELDS_BY_KEY.get(key)
        if field is not None:
            updates[field.id] = _decode_value(field, raw)
    return StackState().with_values(**updates)


def share_url(state: StackState, base_url: str) -> str:
    """Full share link for *state* under *base_url*."""
    query = encode_url_state(state)
    return f"{base_url}?{query}" if query else base_url
