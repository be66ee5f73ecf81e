"""Hashing helpers for bundle identities and feed record ids.

A bundle identity is the SHA-256 digest over an ordered list of feed
hashes. It names the combined bundle file (``{identity}.{type}``) on the
asset build server, so the digest must match the one the server computes:
each feed hash is fed to the hasher in order, without a separator.
Hashes issued by the server have a fixed length; for arbitrary strings the
concatenation is ambiguous (``["ab", "c"]`` and ``["a", "bc"]`` collide).
"""

from __future__ import annotations

import hashlib
from collections.abc import Sequence

from asset_pipe_client.errors import ValidationError


def hash_array(items: Sequence[str]) -> str:
    """Compute the bundle identity for an ordered list of feed hashes.

    The identity is order-sensitive: ``["a", "b"]`` and ``["b", "a"]``
    describe different bundles.

    Args:
        items: Feed hashes in bundle order.

    Returns:
        SHA-256 hex digest.

    Raises:
        ValidationError: If items is not a list of strings.
    """
    if isinstance(items, (str, bytes)) or not isinstance(items, Sequence):
        raise ValidationError(
            f"Expected a list of feed hashes, got {type(items).__name__}"
        )

    sha256 = hashlib.sha256()
    for item in items:
        if not isinstance(item, str):
            raise ValidationError(
                f"Expected feed hashes to be strings, got {type(item).__name__}"
            )
        sha256.update(item.encode("utf-8"))
    return sha256.hexdigest()


def hash_content(data: bytes | str) -> str:
    """Compute the SHA-256 hex digest of a single piece of content."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


__all__ = ["hash_array", "hash_content"]
