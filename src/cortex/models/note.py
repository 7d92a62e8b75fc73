"""
Note records as read from the note store.

JSON columns (tags_json, frontmatter_json) are parsed here, once, at the
store boundary. Malformed JSON never reaches filters or ranking: it is
replaced by an empty collection and logged at debug level.
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Mapping

from pydantic import Field, ValidationInfo, field_validator

from cortex.core.exceptions import MalformedMetadataError
from cortex.core.logging import logger
from cortex.core.utils.datetime_utils import parse_iso_datetime, utc_now
from cortex.models.base import CortexBaseModel


def _parse_json_field(raw: Any, expected: type, field: str, note_id: Any) -> Any:
    """Decode a JSON column, returning None when it is unusable."""
    try:
        value = json.loads(raw)
    except (TypeError, ValueError) as e:
        error = MalformedMetadataError(
            f"Invalid JSON in {field}", context={"note_id": note_id, "field": field}, cause=e
        )
        logger.debug("Malformed note JSON ignored", **error.context, error=str(e))
        return None

    if not isinstance(value, expected):
        logger.debug(
            "Unexpected JSON type ignored",
            note_id=note_id,
            field=field,
            found=type(value).__name__,
        )
        return None
    return value


class NoteRecord(CortexBaseModel):
    """
    Read-only view of a stored note.

    Tags keep their stored order with duplicates removed; metadata is the
    parsed frontmatter.
    """

    id: str = Field(..., min_length=1, description="Note ID")
    title: str = Field("", description="Note title")
    content: str = Field("", description="Markdown body")
    path: str = Field("", description="Relative file path")
    tags: List[str] = Field(default_factory=list, description="Ordered unique tags")
    created_at: datetime = Field(default_factory=utc_now, description="UTC creation time")
    updated_at: datetime = Field(default_factory=utc_now, description="UTC update time")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Parsed frontmatter")

    @field_validator("title", "content", "path", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("tags", mode="before")
    @classmethod
    def parse_tags(cls, v: Any, info: ValidationInfo) -> List[str]:
        """Accept a list or its JSON text; drop non-strings and repeats."""
        if v is None:
            return []
        if isinstance(v, (str, bytes)):
            v = _parse_json_field(v, list, "tags", info.data.get("id"))
            if v is None:
                return []
        if not isinstance(v, (list, tuple)):
            return []

        unique: List[str] = []
        for tag in v:
            if isinstance(tag, str) and tag not in unique:
                unique.append(tag)
        return unique

    @field_validator("metadata", mode="before")
    @classmethod
    def parse_metadata(cls, v: Any, info: ValidationInfo) -> Dict[str, Any]:
        """Accept a mapping or its JSON text."""
        if v is None:
            return {}
        if isinstance(v, (str, bytes)):
            v = _parse_json_field(v, dict, "metadata", info.data.get("id"))
            return v if v is not None else {}
        if isinstance(v, Mapping):
            return {str(k): val for k, val in v.items()}
        return {}

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def normalize_timestamp(cls, v: Any) -> datetime:
        """Store timestamps arrive as ISO text, epoch numbers or datetimes."""
        if v is None:
            return utc_now()
        return parse_iso_datetime(v)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "NoteRecord":
        """
        Build a record from a notes table row.

        Args:
            row: Mapping with id, title, content, path, tags_json,
                frontmatter_json, created_at, updated_at

        Returns:
            NoteRecord with JSON columns decoded
        """
        return cls(
            id=str(row["id"]),
            title=row.get("title"),
            content=row.get("content"),
            path=row.get("path"),
            tags=row.get("tags_json", row.get("tags")),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
            metadata=row.get("frontmatter_json", row.get("metadata")),
        )
