"""Feed writers and feed serialization.

A writer turns entrypoint files into a sequence of feed records. The client
only depends on the FeedWriter protocol; FileFeedWriter is the default
implementation, which reads each entrypoint, applies registered transforms
and emits one record per file.

Feeds are serialized incrementally as a JSON array so they can be streamed
into a request body without building the whole document in memory.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable, Iterator
from pathlib import Path
from typing import Any, Protocol

from asset_pipe_client.hashing import hash_content
from asset_pipe_client.types import AssetType, FeedRecord

logger = logging.getLogger(__name__)

# Transforms rewrite the source of one file: (source, options) -> source
Transform = Callable[[str, dict[str, Any]], str]

# Plugins are invoked once with the writer they are registered on
Plugin = Callable[[Any, dict[str, Any]], None]


class FeedWriter(Protocol):
    """Interface of an asset writer the client can publish from."""

    def transform(self, transform: Transform, options: dict[str, Any] | None = None) -> None:
        """Register a source transform."""
        ...

    def plugin(self, plugin: Plugin, options: dict[str, Any] | None = None) -> None:
        """Register a plugin."""
        ...

    def bundle(self) -> Iterable[FeedRecord]:
        """Produce the feed records."""
        ...


WriterFactory = Callable[[list[str], AssetType], FeedWriter]


class FileFeedWriter:
    """Default writer producing one feed record per entrypoint file."""

    def __init__(self, files: list[str], asset_type: AssetType) -> None:
        self.files = list(files)
        self.asset_type = AssetType(asset_type)
        self.transforms: list[tuple[Transform, dict[str, Any]]] = []

    def transform(self, transform: Transform, options: dict[str, Any] | None = None) -> None:
        self.transforms.append((transform, options or {}))

    def plugin(self, plugin: Plugin, options: dict[str, Any] | None = None) -> None:
        plugin(self, options or {})

    def _read(self, file: str) -> str:
        source = Path(file).read_text(encoding="utf-8")
        for transform, options in self.transforms:
            source = transform(source, options)
        return source

    def bundle(self) -> Iterator[FeedRecord]:
        """Yield feed records for the entrypoint files, in order.

        Raises:
            OSError: If an entrypoint cannot be read.
        """
        for file in self.files:
            source = self._read(file)
            record_id = hash_content(source)
            logger.debug("Feed record %s for %s", record_id[:16], file)
            if self.asset_type is AssetType.JS:
                yield {
                    "id": record_id,
                    "file": file,
                    "source": source,
                    "deps": {},
                    "entry": True,
                }
            else:
                yield {"id": record_id, "file": file, "content": source}


def create_writer(files: list[str], asset_type: AssetType) -> FeedWriter:
    """Default WriterFactory."""
    return FileFeedWriter(files, asset_type)


def serialize_feed(records: Iterable[FeedRecord]) -> Iterator[bytes]:
    """Serialize feed records as a JSON array, one chunk per record.

    Args:
        records: Feed records, consumed lazily.

    Yields:
        UTF-8 encoded chunks that together form a JSON array.
    """
    yield b"["
    for index, record in enumerate(records):
        prefix = b"," if index else b""
        yield prefix + json.dumps(record, separators=(",", ":")).encode("utf-8")
    yield b"]"


def serialize_publish_body(
    tag: str, asset_type: AssetType, records: Iterable[FeedRecord]
) -> Iterator[bytes]:
    """Serialize a publish request: ``{"tag", "type", "data": [records...]}``.

    The records array is streamed with serialize_feed.
    """
    head = {"tag": tag, "type": AssetType(asset_type).value}
    yield json.dumps(head, separators=(",", ":"))[:-1].encode("utf-8")
    yield b',"data":'
    yield from serialize_feed(records)
    yield b"}"


def write_feed(records: Iterable[FeedRecord], destination: Path) -> int:
    """Write a serialized feed to a local file.

    Args:
        records: Feed records.
        destination: Output file path.

    Returns:
        Number of bytes written.
    """
    destination.parent.mkdir(parents=True, exist_ok=True)
    total = 0
    with destination.open("wb") as f:
        for chunk in serialize_feed(records):
            f.write(chunk)
            total += len(chunk)
    logger.info("Wrote feed to %s (%d bytes)", destination, total)
    return total


__all__ = [
    "FeedWriter",
    "FileFeedWriter",
    "Plugin",
    "Transform",
    "WriterFactory",
    "create_writer",
    "serialize_feed",
    "serialize_publish_body",
    "write_feed",
]
