"""Tests for models/session.py."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from marginalia.models.comment import Comment, CommentType, LineContext, LineSide
from marginalia.models.session import FileReview, FileStatus, ReviewSession

PAST = datetime(2020, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def session() -> ReviewSession:
    s = ReviewSession.create("/tmp/repo", "deadbeef")
    s.add_file("a.py", FileStatus.MODIFIED)
    s.add_file("b.py", FileStatus.ADDED)
    return s


class TestCreate:
    def test_new_session_is_empty(self):
        s = ReviewSession.create("/tmp/repo", "deadbeef")
        assert s.repo_path == Path("/tmp/repo")
        assert s.base_commit == "deadbeef"
        assert s.files == {}
        assert s.session_notes is None
        assert s.updated_at == s.created_at

    def test_branch_is_optional(self):
        s = ReviewSession.create("/tmp/repo", "deadbeef", branch_name="main")
        assert s.branch_name == "main"


class TestAddFile:
    def test_fresh_review(self, session: ReviewSession):
        review = session.get_file("a.py")
        assert review.status is FileStatus.MODIFIED
        assert review.reviewed is False
        assert review.file_comments == []
        assert review.line_comments == {}

    def test_last_write_wins(self, session: ReviewSession):
        session.get_file_mut("a.py").set_reviewed(True)
        session.add_file("a.py", FileStatus.RENAMED)
        review = session.get_file("a.py")
        assert review.status is FileStatus.RENAMED
        assert review.reviewed is False
        assert session.file_count == 2

    def test_paths_are_normalized(self):
        s = ReviewSession.create("/tmp/repo", "deadbeef")
        s.add_file(Path("src") / "main.py", FileStatus.ADDED)
        assert "src/main.py" in s.files
        assert s.get_file("src/main.py") is not None

    def test_refreshes_updated_at(self, session: ReviewSession):
        session.updated_at = PAST
        session.add_file("c.py", FileStatus.DELETED)
        assert session.updated_at > PAST


class TestGetFileMut:
    def test_missing_path_returns_none(self, session: ReviewSession):
        assert session.get_file_mut("nope.py") is None
        assert "nope.py" not in session.files

    def test_handle_mutates_session(self, session: ReviewSession):
        handle = session.get_file_mut("a.py")
        handle.set_reviewed(True)
        assert session.files["a.py"].reviewed is True

    def test_toggle(self, session: ReviewSession):
        handle = session.get_file_mut("b.py")
        assert handle.toggle_reviewed() is True
        assert handle.toggle_reviewed() is False

    @pytest.mark.parametrize(
        "mutate",
        [
            lambda h: h.set_reviewed(True),
            lambda h: h.add_file_comment(Comment.create("x", CommentType.NOTE)),
            lambda h: h.add_line_comment(3, Comment.create("x", CommentType.NOTE, side=LineSide.NEW)),
        ],
    )
    def test_every_mutation_refreshes_updated_at(self, session: ReviewSession, mutate):
        session.updated_at = PAST
        mutate(session.get_file_mut("a.py"))
        assert session.updated_at > PAST

    def test_updated_at_never_moves_back(self, session: ReviewSession):
        future = datetime(2999, 1, 1, tzinfo=timezone.utc)
        session.updated_at = future
        session.get_file_mut("a.py").set_reviewed(True)
        assert session.updated_at == future


class TestReviewedCount:
    def test_counts_reviewed_files(self, session: ReviewSession):
        assert session.reviewed_count() == 0
        session.get_file_mut("a.py").set_reviewed(True)
        assert session.reviewed_count() == 1
        assert session.file_count == 2

    def test_ignores_comments(self, session: ReviewSession):
        handle = session.get_file_mut("b.py")
        handle.add_file_comment(Comment.create("Broken", CommentType.ISSUE))
        assert session.reviewed_count() == 0


class TestNotes:
    def test_set_and_clear(self, session: ReviewSession):
        session.set_notes("Two follow-ups")
        assert session.session_notes == "Two follow-ups"
        session.set_notes("   ")
        assert session.session_notes is None

    def test_refreshes_updated_at(self, session: ReviewSession):
        session.updated_at = PAST
        session.set_notes("x")
        assert session.updated_at > PAST


class TestLineAnchoring:
    def test_bucket_created_on_first_comment(self):
        review = FileReview(status=FileStatus.MODIFIED)
        review.add_line_comment(5, Comment.create("x", CommentType.NOTE, side=LineSide.NEW))
        assert list(review.line_comments) == [5]

    def test_shared_line_keeps_insertion_order(self):
        review = FileReview(status=FileStatus.MODIFIED)
        first = Comment.create("first", CommentType.NOTE, side=LineSide.NEW)
        second = Comment.create("second", CommentType.ISSUE, side=LineSide.NEW)
        review.add_line_comment(7, first)
        review.add_line_comment(7, second)
        assert [c.content for c in review.line_comments[7]] == ["first", "second"]

    def test_old_and_new_side_on_same_line_both_kept(self, session: ReviewSession):
        handle = session.get_file_mut("a.py")
        handle.comment_on_line("old side", CommentType.NOTE, LineSide.OLD, old_line=10, new_line=None)
        handle.comment_on_line("new side", CommentType.ISSUE, LineSide.NEW, old_line=None, new_line=10)
        bucket = session.files["a.py"].line_comments[10]
        assert [(c.content, c.side) for c in bucket] == [
            ("old side", LineSide.OLD),
            ("new side", LineSide.NEW),
        ]

    def test_missing_side_defaults_to_new(self):
        review = FileReview(status=FileStatus.MODIFIED)
        stored = review.add_line_comment(3, Comment.create("x", CommentType.NOTE))
        assert stored.side is LineSide.NEW
        assert review.line_comments[3][0].side is LineSide.NEW

    def test_comment_on_line_keys_by_side(self, session: ReviewSession):
        handle = session.get_file_mut("a.py")
        comment = handle.comment_on_line(
            "renumbered", CommentType.NOTE, LineSide.OLD, old_line=20, new_line=24, line_text="x = 1"
        )
        review = session.files["a.py"]
        assert review.line_comments[20] == [comment]
        assert 24 not in review.line_comments
        assert comment.line_context.content == "x = 1"

    def test_comment_on_line_requires_line_for_side(self, session: ReviewSession):
        handle = session.get_file_mut("a.py")
        with pytest.raises(ValueError):
            handle.comment_on_line("x", CommentType.NOTE, LineSide.OLD, old_line=None, new_line=4)

    def test_rejects_key_not_matching_context(self):
        review = FileReview(status=FileStatus.MODIFIED)
        comment = Comment.create(
            "x", CommentType.NOTE, side=LineSide.NEW, line_context=LineContext(old_line=9, new_line=11)
        )
        with pytest.raises(ValueError):
            review.add_line_comment(9, comment)
        assert review.line_comments == {}

    def test_adding_does_not_touch_existing_comments(self):
        review = FileReview(status=FileStatus.MODIFIED)
        existing = Comment.create("file", CommentType.NOTE)
        review.add_file_comment(existing)
        review.add_line_comment(1, Comment.create("line", CommentType.NOTE, side=LineSide.NEW))
        assert review.file_comments == [existing]


class TestRemoveComment:
    def test_removes_file_comment(self, session: ReviewSession):
        handle = session.get_file_mut("a.py")
        comment = handle.add_file_comment(Comment.create("x", CommentType.NOTE))
        assert handle.remove_comment(comment.id) is True
        assert session.files["a.py"].file_comments == []

    def test_drops_empty_bucket(self, session: ReviewSession):
        handle = session.get_file_mut("a.py")
        comment = handle.add_line_comment(4, Comment.create("x", CommentType.NOTE, side=LineSide.NEW))
        assert handle.remove_comment(comment.id) is True
        assert session.files["a.py"].line_comments == {}

    def test_unknown_id(self, session: ReviewSession):
        session.updated_at = PAST
        assert session.get_file_mut("a.py").remove_comment("missing") is False
        assert session.updated_at == PAST


class TestIterComments:
    def test_file_comments_then_ascending_lines(self):
        review = FileReview(status=FileStatus.MODIFIED)
        review.add_line_comment(30, Comment.create("l30", CommentType.NOTE, side=LineSide.NEW))
        review.add_line_comment(2, Comment.create("l2", CommentType.NOTE, side=LineSide.NEW))
        review.add_file_comment(Comment.create("file", CommentType.NOTE))
        assert [(line, c.content) for line, c in review.iter_comments()] == [
            (None, "file"),
            (2, "l2"),
            (30, "l30"),
        ]
        assert review.comment_count == 3
