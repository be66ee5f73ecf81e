"""Pydantic schemas for validating arguments to public client operations.

Arguments are validated before any network activity. Pydantic failures
are re-raised as asset_pipe_client.errors.ValidationError so callers only
need to handle one exception type.
"""

from __future__ import annotations

import re
from pathlib import PurePath
from typing import Annotated, Any, TypeVar

import pydantic
from pydantic import BaseModel, ConfigDict, Field, StringConstraints, TypeAdapter

from asset_pipe_client.errors import ValidationError
from asset_pipe_client.types import AssetType

# Entrypoint file names: letters, digits, dot, underscore and dash, ending in .js/.css
FILE_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9._-]+\.(js|css)$")

Tag = Annotated[str, StringConstraints(pattern=r"^[a-zA-Z0-9]+$", strict=True)]
FeedHash = Annotated[str, StringConstraints(min_length=1, strict=True)]
StrictStr = Annotated[str, StringConstraints(strict=True)]

T = TypeVar("T")


def _entry_file(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError(f"entrypoint filename must be a string, got {type(value).__name__}")
    value = value.strip()
    name = PurePath(value).name
    if not FILE_NAME_PATTERN.match(name):
        raise ValueError(
            f"entrypoint filename must end in .js or .css, got '{value}'"
        )
    return value


class EntrypointsSchema(BaseModel):
    """Entrypoint files to publish, per asset type.

    Attributes:
        js: JavaScript entrypoint paths (a single path is accepted).
        css: CSS entrypoint paths (a single path is accepted).
    """

    model_config = ConfigDict(extra="forbid")

    js: list[str] | None = Field(default=None)
    css: list[str] | None = Field(default=None)

    @pydantic.field_validator("js", "css", mode="before")
    @classmethod
    def validate_files(cls, v: Any, info: pydantic.ValidationInfo) -> list[str] | None:
        """Normalize to a list and check each file matches the asset type."""
        if v is None:
            return v
        files = [v] if isinstance(v, str) else v
        if not isinstance(files, (list, tuple)):
            raise ValueError("entrypoints must be a path or a list of paths")
        normalized = [_entry_file(f) for f in files]
        for f in normalized:
            if not f.endswith(f".{info.field_name}"):
                raise ValueError(
                    f"{info.field_name} entrypoint must have a .{info.field_name} extension, got '{f}'"
                )
        return normalized

    def present(self) -> dict[AssetType, list[str]]:
        """Return the asset types that have at least one entrypoint."""
        result: dict[AssetType, list[str]] = {}
        if self.js:
            result[AssetType.JS] = self.js
        if self.css:
            result[AssetType.CSS] = self.css
        return result


class InstructionsSchema(BaseModel):
    """Bundle instructions per asset type: ordered lists of tags."""

    model_config = ConfigDict(extra="forbid")

    js: list[StrictStr] | None = Field(default=None)
    css: list[StrictStr] | None = Field(default=None)

    def present(self) -> dict[AssetType, list[str]]:
        """Return the asset types with a non-empty instruction."""
        result: dict[AssetType, list[str]] = {}
        if self.js:
            result[AssetType.JS] = list(self.js)
        if self.css:
            result[AssetType.CSS] = list(self.css)
        return result


_tag_adapter: TypeAdapter[str] = TypeAdapter(Tag)
_type_adapter: TypeAdapter[AssetType] = TypeAdapter(AssetType)
_files_adapter: TypeAdapter[list[str]] = TypeAdapter(list[StrictStr])
_hashes_adapter: TypeAdapter[list[str]] = TypeAdapter(list[FeedHash])
_sources_adapter: TypeAdapter[list[str]] = TypeAdapter(list[FeedHash])


def _validate(adapter: TypeAdapter[T], value: Any, label: str) -> T:
    try:
        return adapter.validate_python(value)
    except pydantic.ValidationError as e:
        raise ValidationError(
            f"Invalid {label}: {e.errors()[0]['msg']}",
            details=[dict(err) for err in e.errors(include_url=False)],
        ) from e


def validate_tag(value: Any) -> str:
    """Validate a tag (alphanumeric string)."""
    return _validate(_tag_adapter, value, "tag")


def validate_asset_type(value: Any) -> AssetType:
    """Validate an asset type ('js' or 'css')."""
    return _validate(_type_adapter, value, "file type")


def validate_files(value: Any) -> list[str]:
    """Validate a list of file paths."""
    return _validate(_files_adapter, value, "entrypoint filenames")


def validate_hashes(value: Any) -> list[str]:
    """Validate a list of feed hashes."""
    return _validate(_hashes_adapter, value, "feed hashes")


def validate_sources(value: Any) -> list[str]:
    """Validate a list of feed identifiers for a remote bundle."""
    return _validate(_sources_adapter, value, "bundle sources")


def validate_entrypoints(value: Any) -> EntrypointsSchema:
    """Validate an entrypoints mapping (``{"js": ..., "css": ...}``)."""
    if value is None:
        return EntrypointsSchema()
    if isinstance(value, EntrypointsSchema):
        return value
    try:
        return EntrypointsSchema.model_validate(value)
    except pydantic.ValidationError as e:
        raise ValidationError(
            f"Invalid entrypoints: {e.errors()[0]['msg']}",
            details=[dict(err) for err in e.errors(include_url=False)],
        ) from e


def validate_instructions(value: Any) -> InstructionsSchema:
    """Validate a bundle instructions mapping (``{"js": [...], "css": [...]}``)."""
    if value is None:
        return InstructionsSchema()
    if isinstance(value, InstructionsSchema):
        return value
    try:
        return InstructionsSchema.model_validate(value)
    except pydantic.ValidationError as e:
        raise ValidationError(
            f"Invalid bundle instruction: {e.errors()[0]['msg']}",
            details=[dict(err) for err in e.errors(include_url=False)],
        ) from e


__all__ = [
    "EntrypointsSchema",
    "FILE_NAME_PATTERN",
    "InstructionsSchema",
    "validate_asset_type",
    "validate_entrypoints",
    "validate_files",
    "validate_hashes",
    "validate_instructions",
    "validate_sources",
    "validate_tag",
]
