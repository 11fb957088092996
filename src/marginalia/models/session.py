"""Review session data models."""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from pydantic import AwareDatetime, BaseModel, Field, NonNegativeInt, field_validator, model_validator

from .comment import Comment, CommentType, LineContext, LineSide, utc_now

logger = logging.getLogger(__name__)


class FileStatus(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"
    UNKNOWN = "unknown"

    @property
    def glyph(self) -> str:
        return _STATUS_GLYPHS[self]


_STATUS_GLYPHS = {
    FileStatus.ADDED: "A",
    FileStatus.MODIFIED: "M",
    FileStatus.DELETED: "D",
    FileStatus.RENAMED: "R",
    FileStatus.UNKNOWN: "?",
}


def _check_anchor(line: int, comment: Comment) -> None:
    if comment.side is None or comment.line_context is None:
        return
    anchored = comment.line_context.line_for(comment.side)
    if anchored is not None and anchored != line:
        raise ValueError(
            f"Comment is anchored to {comment.side.value}-side line {anchored}, not line {line}"
        )


class FileReview(BaseModel):
    """Review state for a single changed file."""

    status: FileStatus
    reviewed: bool = False
    file_comments: list[Comment] = []
    line_comments: dict[NonNegativeInt, list[Comment]] = {}

    @field_validator("line_comments", mode="before")
    @classmethod
    def _default_line_side(cls, value):
        # Records written before sides were tracked key every line comment
        # by its new-side number.
        if not isinstance(value, dict):
            return value
        filled = {}
        for line, comments in value.items():
            if isinstance(comments, list):
                comments = [
                    {**c, "side": LineSide.NEW.value} if isinstance(c, dict) and c.get("side") is None else c
                    for c in comments
                ]
            filled[line] = comments
        return filled

    @model_validator(mode="after")
    def _check_anchors(self) -> FileReview:
        for line, bucket in self.line_comments.items():
            for comment in bucket:
                _check_anchor(line, comment)
        return self

    @property
    def comment_count(self) -> int:
        return len(self.file_comments) + sum(len(b) for b in self.line_comments.values())

    def add_file_comment(self, comment: Comment) -> None:
        self.file_comments.append(comment)

    def add_line_comment(self, line: int, comment: Comment) -> Comment:
        """Append a comment to the bucket for ``line``.

        The bucket key must be the line number on the comment's own side;
        a comment without a side is stored as a new-side comment.
        """
        if line < 0:
            raise ValueError(f"Line number must be non-negative, got {line}")
        if comment.side is None:
            comment = comment.model_copy(update={"side": LineSide.NEW})
        _check_anchor(line, comment)
        self.line_comments.setdefault(line, []).append(comment)
        return comment

    def remove_comment(self, comment_id: str) -> bool:
        """Remove a comment by id. Returns True if found and removed."""
        for i, c in enumerate(self.file_comments):
            if c.id == comment_id:
                self.file_comments.pop(i)
                return True
        for line, bucket in self.line_comments.items():
            for i, c in enumerate(bucket):
                if c.id == comment_id:
                    bucket.pop(i)
                    if not bucket:
                        del self.line_comments[line]
                    return True
        return False

    def iter_comments(self):
        """Yield ``(line, comment)`` pairs in report order.

        File comments come first with ``line`` None, then line comments by
        ascending line number, insertion order within a line.
        """
        for comment in self.file_comments:
            yield None, comment
        for line in sorted(self.line_comments):
            for comment in self.line_comments[line]:
                yield line, comment


class FileHandle:
    """Mutable view of one file in a session.

    Every change made through the handle refreshes the session's
    ``updated_at``.
    """

    def __init__(self, session: ReviewSession, path: str) -> None:
        self._session = session
        self.path = path

    @property
    def review(self) -> FileReview:
        return self._session.files[self.path]

    @property
    def reviewed(self) -> bool:
        return self.review.reviewed

    def set_reviewed(self, value: bool = True) -> None:
        self.review.reviewed = value
        self._session.touch()

    def toggle_reviewed(self) -> bool:
        self.set_reviewed(not self.review.reviewed)
        return self.review.reviewed

    def add_file_comment(self, comment: Comment) -> Comment:
        self.review.add_file_comment(comment)
        self._session.touch()
        return comment

    def add_line_comment(self, line: int, comment: Comment) -> Comment:
        stored = self.review.add_line_comment(line, comment)
        self._session.touch()
        return stored

    def comment_on_line(
        self,
        content: str,
        comment_type: CommentType,
        side: LineSide,
        old_line: Optional[int] = None,
        new_line: Optional[int] = None,
        line_text: str = "",
    ) -> Comment:
        """Anchor a new comment to a diff line, keyed by the line on ``side``."""
        context = LineContext(old_line=old_line, new_line=new_line, content=line_text)
        line = context.line_for(side)
        if line is None:
            raise ValueError(f"No {side.value}-side line number to anchor the comment to")
        comment = Comment.create(content, comment_type, side=side, line_context=context)
        return self.add_line_comment(line, comment)

    def remove_comment(self, comment_id: str) -> bool:
        removed = self.review.remove_comment(comment_id)
        if removed:
            self._session.touch()
        return removed


def normalize_path(path: Union[str, Path]) -> str:
    return Path(path).as_posix()


class ReviewSession(BaseModel):
    repo_path: Path
    base_commit: str
    branch_name: Optional[str] = None
    created_at: AwareDatetime = Field(default_factory=utc_now)
    updated_at: AwareDatetime = Field(default_factory=utc_now)
    session_notes: Optional[str] = None
    files: dict[str, FileReview] = {}

    @classmethod
    def create(
        cls,
        repo_path: Union[str, Path],
        base_commit: str,
        branch_name: Optional[str] = None,
    ) -> ReviewSession:
        now = utc_now()
        return cls(
            repo_path=Path(repo_path),
            base_commit=base_commit,
            branch_name=branch_name,
            created_at=now,
            updated_at=now,
        )

    def touch(self) -> None:
        """Refresh ``updated_at`` without ever moving it backwards."""
        self.updated_at = max(self.updated_at, utc_now())

    def add_file(self, path: Union[str, Path], status: FileStatus) -> FileReview:
        key = normalize_path(path)
        if key in self.files:
            logger.debug("Replacing existing review entry for %s", key)
        review = FileReview(status=status)
        self.files[key] = review
        self.touch()
        return review

    def get_file(self, path: Union[str, Path]) -> Optional[FileReview]:
        return self.files.get(normalize_path(path))

    def get_file_mut(self, path: Union[str, Path]) -> Optional[FileHandle]:
        """Return a mutable handle for ``path``, or None if it is not tracked."""
        key = normalize_path(path)
        if key not in self.files:
            return None
        return FileHandle(self, key)

    def set_notes(self, notes: Optional[str]) -> None:
        self.session_notes = notes if notes and notes.strip() else None
        self.touch()

    def reviewed_count(self) -> int:
        return sum(1 for f in self.files.values() if f.reviewed)

    @property
    def file_count(self) -> int:
        return len(self.files)
