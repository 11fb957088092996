"""Comment data models."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LineSide(str, Enum):
    """Which side of the diff a line comment is keyed by."""

    OLD = "old"  # pre-change line number (deleted lines)
    NEW = "new"  # post-change line number (added and context lines)


class CommentType(str, Enum):
    NOTE = "note"
    SUGGESTION = "suggestion"
    ISSUE = "issue"
    PRAISE = "praise"

    @property
    def label(self) -> str:
        return self.value.upper()

    @property
    def is_action_item(self) -> bool:
        return self in (CommentType.ISSUE, CommentType.SUGGESTION)


class LineContext(BaseModel):
    """Snapshot of the diff line a comment was anchored to."""

    model_config = ConfigDict(frozen=True)

    old_line: Optional[int] = Field(default=None, ge=0)
    new_line: Optional[int] = Field(default=None, ge=0)
    content: str = ""

    def line_for(self, side: LineSide) -> Optional[int]:
        return self.old_line if side is LineSide.OLD else self.new_line


class Comment(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    content: str
    comment_type: CommentType
    created_at: datetime
    line_context: Optional[LineContext] = None
    # None for file-level comments
    side: Optional[LineSide] = None

    @classmethod
    def create(
        cls,
        content: str,
        comment_type: CommentType,
        side: Optional[LineSide] = None,
        line_context: Optional[LineContext] = None,
    ) -> Comment:
        """Build a new comment with a fresh random id."""
        return cls(
            id=str(uuid.uuid4()),
            content=content,
            comment_type=comment_type,
            created_at=utc_now(),
            line_context=line_context,
            side=side,
        )
