from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, field_validator


class ExtractionClock(BaseModel, frozen=True):
    now: datetime

    @field_validator('now')
    @classmethod
    def now_must_be_timezone_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None or value.utcoffset() is None:
            raise ValueError('ExtractionClock value must be timezone-aware')
        return value

    @classmethod
    def utc_now(cls) -> ExtractionClock:
        return cls(now=datetime.now(timezone.utc))
