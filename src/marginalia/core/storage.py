"""Session persistence.

One JSON file per (repository, base commit) pair. Records are validated
against the session models on load, so truncated or hand-edited files are
reported as corrupted instead of being coerced into a half-valid session.

Record layout:
  {"version": "1.0", "session": {...ReviewSession fields...}}
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, ValidationError

from ..errors import CorruptedSessionError, SerializationError, SessionIOError, SessionNotFoundError
from ..models.session import ReviewSession
from ..utils.files import atomic_write_text

logger = logging.getLogger(__name__)

RECORD_VERSION = "1.0"


class SessionRecord(BaseModel):
    version: str = RECORD_VERSION
    session: ReviewSession


def _major(version: str) -> str:
    return version.split(".", 1)[0]


def encode_session(session: ReviewSession) -> str:
    try:
        return SessionRecord(session=session).model_dump_json(indent=2)
    except ValueError as e:  # PydanticSerializationError
        raise SerializationError(str(e)) from e


def decode_session(text: Union[str, bytes]) -> ReviewSession:
    """Parse a session record, raising CorruptedSessionError on any defect."""
    try:
        record = SessionRecord.model_validate_json(text)
    except ValidationError as e:
        raise CorruptedSessionError(f"{e.error_count()} validation error(s): {e.errors()[0]['msg']}") from e
    if _major(record.version) != _major(RECORD_VERSION):
        raise CorruptedSessionError(f"unsupported record version {record.version!r}")
    return record.session


def session_file_path(sessions_dir: Path, repo_path: Union[str, Path], base_commit: str) -> Path:
    repo_path = Path(repo_path)
    digest = hashlib.sha1(repo_path.as_posix().encode("utf-8")).hexdigest()[:8]
    name = repo_path.name or "unknown"
    return Path(sessions_dir) / f"{name}-{digest}-{base_commit[:12]}.json"


def save_session(session: ReviewSession, sessions_dir: Path) -> Path:
    path = session_file_path(sessions_dir, session.repo_path, session.base_commit)
    atomic_write_text(path, encode_session(session))
    logger.debug("Saved session for %s to %s", session.repo_path, path)
    return path


def load_session(sessions_dir: Path, repo_path: Union[str, Path], base_commit: str) -> ReviewSession:
    path = session_file_path(sessions_dir, repo_path, base_commit)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise SessionNotFoundError(str(path)) from e
    except OSError as e:
        raise SessionIOError(str(e)) from e
    logger.debug("Loaded session from %s", path)
    return decode_session(text)


def load_or_create_session(
    sessions_dir: Path,
    repo_path: Union[str, Path],
    base_commit: str,
    branch_name: Optional[str] = None,
) -> tuple[ReviewSession, bool]:
    """Load the saved session for this repo and commit, or start a new one.

    Returns ``(session, created)``.
    """
    try:
        return load_session(sessions_dir, repo_path, base_commit), False
    except SessionNotFoundError:
        return ReviewSession.create(repo_path, base_commit, branch_name), True


def list_sessions(sessions_dir: Path) -> list[Path]:
    sessions_dir = Path(sessions_dir)
    if not sessions_dir.is_dir():
        return []
    return sorted(sessions_dir.glob("*.json"))
