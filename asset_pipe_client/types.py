"""Shared type definitions for asset_pipe_client.

This module contains enums, TypedDicts, and type aliases shared across
modules to avoid circular imports.
"""

from collections.abc import AsyncIterable, Iterable
from enum import Enum
from typing import Any, TypedDict


class AssetType(str, Enum):
    """Kind of asset feed. State for the two types never interacts."""

    JS = "js"
    CSS = "css"


class VerificationState(str, Enum):
    """State of the background bundle existence check for one asset type."""

    IDLE = "idle"
    VERIFYING = "verifying"


class JSFeedRecord(TypedDict, total=False):
    """A single module record in a JavaScript feed."""

    id: str
    file: str
    source: str
    deps: dict[str, str]
    entry: bool


class CSSFeedRecord(TypedDict, total=False):
    """A single stylesheet record in a CSS feed."""

    id: str
    file: str
    content: str


# Writers may emit any JSON-serializable mapping
FeedRecord = dict[str, Any]

# Request bodies accepted by the transport
RequestBody = bytes | str | Iterable[bytes] | AsyncIterable[bytes]


__all__ = [
    "AssetType",
    "CSSFeedRecord",
    "FeedRecord",
    "JSFeedRecord",
    "RequestBody",
    "VerificationState",
]
