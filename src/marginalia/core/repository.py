"""Repository resolution and changed-file discovery.

Thin wrapper over the git command line. Everything here runs once, when a
session is started; the session never re-resolves these values.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from ..errors import GitError, NoChangesError, NotARepositoryError
from ..models.session import FileStatus

logger = logging.getLogger(__name__)

# Head commit reported for a repository without any commits yet
NO_COMMIT = "HEAD"

GIT_TIMEOUT = 30

_STATUS_LETTERS = {
    "A": FileStatus.ADDED,
    "C": FileStatus.ADDED,
    "M": FileStatus.MODIFIED,
    "T": FileStatus.MODIFIED,
    "D": FileStatus.DELETED,
    "R": FileStatus.RENAMED,
}


@dataclass
class RepoInfo:
    root_path: Path
    head_commit: str
    branch_name: Optional[str] = None

    @property
    def has_commits(self) -> bool:
        return self.head_commit != NO_COMMIT


@dataclass
class ChangedFile:
    path: str
    status: FileStatus


def _run_git(args: list[str], cwd: Path) -> subprocess.CompletedProcess:
    logger.debug("git %s (in %s)", " ".join(args), cwd)
    try:
        return subprocess.run(
            ["git", "-C", str(cwd), *args],
            capture_output=True, text=True, encoding="utf-8", errors="surrogateescape",
            timeout=GIT_TIMEOUT,
        )
    except FileNotFoundError as e:
        raise GitError("git executable not found") from e
    except subprocess.TimeoutExpired as e:
        raise GitError(f"git {args[0]} timed out after {GIT_TIMEOUT}s") from e


def _git_output(args: list[str], cwd: Path) -> str:
    result = _run_git(args, cwd)
    if result.returncode != 0:
        raise GitError(result.stderr.strip() or f"git {args[0]} exited with {result.returncode}")
    return result.stdout


def discover_repo(path: Path = Path(".")) -> RepoInfo:
    """Resolve the work tree root, head commit and branch for ``path``."""
    path = Path(path)
    if not path.is_dir():
        raise NotARepositoryError(str(path))

    top = _run_git(["rev-parse", "--show-toplevel"], path)
    if top.returncode != 0 or not top.stdout.strip():
        raise NotARepositoryError(str(path))
    root_path = Path(top.stdout.strip())

    head = _run_git(["rev-parse", "--verify", "-q", "HEAD"], root_path)
    head_commit = head.stdout.strip() if head.returncode == 0 and head.stdout.strip() else NO_COMMIT

    # symbolic-ref fails for detached and tag checkouts
    branch = _run_git(["symbolic-ref", "--short", "-q", "HEAD"], root_path)
    branch_name = branch.stdout.strip() if branch.returncode == 0 and branch.stdout.strip() else None

    return RepoInfo(root_path=root_path, head_commit=head_commit, branch_name=branch_name)


def parse_name_status(output: str) -> list[ChangedFile]:
    """Parse ``git diff --name-status -z`` output.

    Records are NUL separated: a status field followed by one path, or by
    source and destination paths for renames and copies. Renames and copies
    report the destination path.
    """
    fields = output.split("\0")
    changed: list[ChangedFile] = []
    i = 0
    while i < len(fields):
        field = fields[i]
        code = field[:1]
        if not code:
            i += 1
            continue
        width = 2 if code in ("R", "C") else 1
        paths = fields[i + 1:i + 1 + width]
        i += 1 + width
        if len(paths) < width or not paths[-1]:
            raise GitError(f"truncated name-status record for status {field!r}")
        status = _STATUS_LETTERS.get(code, FileStatus.UNKNOWN)
        changed.append(ChangedFile(path=paths[-1], status=status))
    return changed


def get_changed_files(repo: RepoInfo, exclude: Iterable[str] = ()) -> list[ChangedFile]:
    """List files changed against the head commit, plus untracked files.

    Paths listed in ``exclude`` (relative to the work tree root) are left out.
    """
    by_path: dict[str, ChangedFile] = {}

    if repo.has_commits:
        diff = _git_output(["diff", "--name-status", "-z", "-M", repo.head_commit], repo.root_path)
        for change in parse_name_status(diff):
            by_path[change.path] = change
        listing = ["ls-files", "--others", "--exclude-standard", "-z"]
    else:
        listing = ["ls-files", "--cached", "--others", "--exclude-standard", "-z"]

    for path in _git_output(listing, repo.root_path).split("\0"):
        if path and path not in by_path:
            by_path[path] = ChangedFile(path=path, status=FileStatus.ADDED)

    for path in exclude:
        if by_path.pop(path, None) is not None:
            logger.debug("Skipping %s", path)

    if not by_path:
        raise NoChangesError(str(repo.root_path))
    return [by_path[p] for p in sorted(by_path)]
