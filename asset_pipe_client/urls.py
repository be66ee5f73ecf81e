"""URL helpers for talking to the asset build server."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit


def _serialize_param(value: Any) -> str:
    """Convert a query parameter value to its string form."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def build_url(base_url: str, params: Mapping[str, Any] | None = None) -> str:
    """Append query parameters to a base URL.

    Parameters whose value is None are omitted entirely. Booleans are
    written as ``true``/``false``, dicts and lists as compact JSON, and
    everything else via ``str()``. Parameters keep the mapping's order;
    a parameter already present on the base URL is replaced.

    Args:
        base_url: Absolute base URL.
        params: Query parameters to add.

    Returns:
        The full URL. An empty path is normalized to ``/``.
    """
    parts = urlsplit(base_url)
    query: dict[str, str] = dict(parse_qsl(parts.query, keep_blank_values=True))

    for name, value in (params or {}).items():
        if value is None:
            continue
        query[name] = _serialize_param(value)

    return urlunsplit(
        (
            parts.scheme,
            parts.netloc,
            parts.path or "/",
            urlencode(query, quote_via=quote, safe=""),
            parts.fragment,
        )
    )


def join_url(base_url: str, *segments: str) -> str:
    """Join path segments onto a base URL with exactly one slash between each.

    Args:
        base_url: Base URL, with or without a trailing slash.
        segments: Path segments to append.

    Returns:
        Joined URL.
    """
    url = base_url.rstrip("/")
    for segment in segments:
        url = f"{url}/{segment.strip('/')}"
    return url


__all__ = ["build_url", "join_url"]
