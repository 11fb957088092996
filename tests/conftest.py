"""Shared fixtures for marginalia tests."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from marginalia.models.comment import Comment, CommentType, LineSide
from marginalia.models.session import FileStatus, ReviewSession

FIXED_TIME = datetime(2025, 1, 15, 10, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
def fixed_time() -> datetime:
    return FIXED_TIME


@pytest.fixture
def review_session() -> ReviewSession:
    """One modified, reviewed file with a file-level suggestion and a line-42 issue."""
    session = ReviewSession.create("/tmp/test-repo", "abc1234def")
    session.add_file("src/main.rs", FileStatus.MODIFIED)

    handle = session.get_file_mut("src/main.rs")
    handle.set_reviewed(True)
    handle.add_file_comment(Comment.create("Consider adding documentation", CommentType.SUGGESTION))
    handle.add_line_comment(
        42,
        Comment.create("Magic number should be a constant", CommentType.ISSUE, side=LineSide.NEW),
    )

    session.updated_at = FIXED_TIME
    return session


@pytest.fixture
def sessions_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point session storage at a temporary directory."""
    path = tmp_path / "sessions"
    monkeypatch.setenv("MARGINALIA_DATA_DIR", str(path))
    return path


@pytest.fixture
def tmp_repo(tmp_path: Path) -> Path:
    """Create a directory standing in for a repository work tree."""
    repo = tmp_path / "test-repo"
    repo.mkdir()
    (repo / "src").mkdir()
    (repo / "src" / "main.py").write_text("print('hello')\n", encoding="utf-8")
    return repo
