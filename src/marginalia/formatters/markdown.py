"""Markdown review report and its exports.

The report imposes its own ordering: files by path string, line comments by
line number, insertion order within a line. Two sessions with equal content
render to identical text no matter how their mappings were filled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timezone
from pathlib import Path
from typing import Optional

import pyperclip

from ..errors import ClipboardError
from ..models.comment import Comment, CommentType
from ..models.session import ReviewSession
from ..utils.files import atomic_write_text

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S UTC"


@dataclass(frozen=True)
class ActionItem:
    file: str
    line: Optional[int]
    content: str
    comment_type: CommentType

    @property
    def location(self) -> str:
        if self.line is None:
            return f"**`{self.file}`**"
        return f"**`{self.file}`:{self.line}**"


def repo_display_name(session: ReviewSession) -> str:
    return session.repo_path.name or "unknown"


def _quote(comment: Comment) -> str:
    return f"> **[{comment.comment_type.label}]** {comment.content}"


def collect_action_items(session: ReviewSession) -> list[ActionItem]:
    """Return every Issue and Suggestion in report order."""
    items: list[ActionItem] = []
    for path in sorted(session.files):
        for line, comment in session.files[path].iter_comments():
            if comment.comment_type.is_action_item:
                items.append(ActionItem(path, line, comment.content, comment.comment_type))
    return items


def generate_markdown(session: ReviewSession) -> str:
    """Render a review session as a Markdown document."""
    updated = session.updated_at.astimezone(timezone.utc)
    lines = [
        f"# Code Review: {repo_display_name(session)}",
        "",
        f"**Reviewed:** {updated.strftime(TIMESTAMP_FORMAT)}",
        f"**Base Commit:** `{session.base_commit}`",
        f"**Files Reviewed:** {session.reviewed_count()}/{session.file_count}",
        "",
    ]

    if session.session_notes:
        lines.extend(["## Summary", "", session.session_notes, ""])

    lines.extend(["## Files", ""])

    for path in sorted(session.files):
        review = session.files[path]
        mark = "REVIEWED" if review.reviewed else "PENDING"
        lines.extend([f"### {review.status.glyph} `{path}` [{mark}]", ""])

        if review.file_comments:
            lines.extend(["#### File Comments", ""])
            for comment in review.file_comments:
                lines.extend([_quote(comment), ""])

        if review.line_comments:
            lines.extend(["#### Line Comments", ""])
            for line in sorted(review.line_comments):
                for comment in review.line_comments[line]:
                    lines.extend([f"**Line {line}:**", "", _quote(comment), ""])

        lines.extend(["---", ""])

    action_items = collect_action_items(session)
    if action_items:
        lines.extend(["## Action Items", ""])
        for i, item in enumerate(action_items, start=1):
            lines.append(f"{i}. {item.location} - {item.content}")

    return "\n".join(lines) + "\n"


def export_to_clipboard(session: ReviewSession) -> str:
    """Render the report and copy it to the system clipboard.

    Returns the rendered document. The session is only read.
    """
    content = generate_markdown(session)
    try:
        pyperclip.copy(content)
    except pyperclip.PyperclipException as e:
        raise ClipboardError(f"Failed to copy to clipboard: {e}") from e
    logger.debug("Copied %d characters to clipboard", len(content))
    return content


def export_to_file(session: ReviewSession, output_path: Path) -> Path:
    """Render the report and write it to ``output_path``."""
    content = generate_markdown(session)
    path = atomic_write_text(Path(output_path), content)
    logger.debug("Wrote review report to %s", path)
    return path
