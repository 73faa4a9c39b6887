"""Pydantic schemas for messages.

Learn: Pydantic v2 models validate request/response data. Separate
"Create" schemas (input) from "Read" schemas (output) for clean APIs.

The wire format is camelCase with string ids:
    {"id": "1", "user": "A", "content": "hi", "parentId": null, "createdAt": "..."}
Python code uses snake_case attribute names; aliases handle the translation.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class MessageCreate(BaseModel):
    user: str = Field(..., min_length=1, max_length=100)
    content: str = Field(..., min_length=1)
    parent_id: Optional[str] = Field(default=None, max_length=64)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_validator("parent_id", mode="before")
    @classmethod
    def _parent_id_as_str(cls, v):
        # clients may send a numeric id; booleans are not ids
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class MessageUpdate(BaseModel):
    user: str = Field(..., min_length=1, max_length=100)
    content: str = Field(..., min_length=1)


class MessageRead(BaseModel):
    """Snapshot of a message — what routes return and what the bus carries.

    Frozen so a snapshot handed to many subscribers can't be changed by any
    one of them.
    """

    id: str
    user: str
    content: str
    parent_id: Optional[str] = None
    created_at: str

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, v):
        return str(v)

    @field_validator("created_at", mode="before")
    @classmethod
    def _timestamp_as_str(cls, v):
        if isinstance(v, datetime):
            # SQLite hands back naive datetimes; they were stored as UTC
            if v.tzinfo is None:
                v = v.replace(tzinfo=timezone.utc)
            return v.isoformat()
        return v
