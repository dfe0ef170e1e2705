from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Numeric timestamps in legacy data count seconds from this reference date.
LEGACY_REFERENCE_DATE = datetime(2001, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TimestampedRecord(BaseModel):
    """Shared shape of every persisted record: an id and a creation time."""

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    timestamp: datetime = Field(default_factory=utc_now)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _accept_legacy_timestamp(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return LEGACY_REFERENCE_DATE + timedelta(seconds=value)
        return value

    @field_validator("timestamp")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def display_timestamp(self) -> str:
        return self.timestamp.astimezone().strftime("%Y-%m-%d %H:%M")


class HistoryRecord(TimestampedRecord):
    kind: Literal["history"] = "history"
    keyword: str
    content: str


class Note(TimestampedRecord):
    kind: Literal["note"] = "note"
    title: str
    content: str


class WebImport(TimestampedRecord):
    kind: Literal["web_import"] = "web_import"
    url: str
    title: str
    content: str


Record = Annotated[Union[HistoryRecord, Note, WebImport], Field(discriminator="kind")]


__all__ = [
    "HistoryRecord",
    "LEGACY_REFERENCE_DATE",
    "Note",
    "Record",
    "TimestampedRecord",
    "WebImport",
    "utc_now",
]
