"""marginalia (mg) - offline, file-by-file code review.

Commands:
  start           open (or resume) the review session for the current commit
  status          list tracked files and their review state
  reviewed        mark a file reviewed (or --undo)
  comment         add a file or line comment
  delete-comment  remove a comment by id
  notes           set or clear the session summary
  export          render the review report to clipboard, stdout or a file
  sessions        list saved sessions
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from .. import __version__
from ..errors import MarginaliaError, TerminalError
from ..models.comment import CommentType, LineSide
from ..models.session import FileHandle, ReviewSession

console = Console()
logger = logging.getLogger(__name__)


class _ErrorReportingGroup(click.Group):
    """Print domain errors in red and exit with status 1."""

    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except MarginaliaError as e:
            console.print(f"  [red]ERROR[/red] {escape(str(e))}")
            ctx.exit(1)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _open_context(ctx: click.Context) -> tuple:
    """Resolve the repository and its effective configuration."""
    from ..core.config import get_effective_config
    from ..core.repository import discover_repo

    repo = discover_repo(ctx.obj["project"])
    config = get_effective_config(repo.root_path)
    sessions_dir = Path(config["storage"]["sessions_dir"]).expanduser()
    return repo, config, sessions_dir


def _load(ctx: click.Context) -> tuple:
    from ..core.storage import load_session

    repo, config, sessions_dir = _open_context(ctx)
    session = load_session(sessions_dir, repo.root_path, repo.head_commit)
    return session, config, sessions_dir


def _save(session: ReviewSession, sessions_dir: Path) -> Path:
    from ..core.storage import save_session

    return save_session(session, sessions_dir)


def _report_paths(repo, config: dict) -> list[str]:
    """Return the default report path relative to the work tree, if it lies inside it."""
    report = Path(config["export"]["path"])
    if not report.is_absolute():
        report = repo.root_path / report
    try:
        return [report.relative_to(repo.root_path).as_posix()]
    except ValueError:
        return []


def _require_file(session: ReviewSession, path: str) -> FileHandle:
    handle = session.get_file_mut(path)
    if handle is None:
        raise click.ClickException(f"File is not part of this review: {path}")
    return handle


@click.group(cls=_ErrorReportingGroup)
@click.version_option(version=__version__, prog_name="mg")
@click.option(
    "--project", "-p",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    show_default=True,
    help="Path inside the repository to review.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def mg_cli(ctx: click.Context, project: str, verbose: bool) -> None:
    """Review a change set file by file and export the review as Markdown."""
    ctx.ensure_object(dict)
    ctx.obj["project"] = Path(project)
    _setup_logging(verbose)


@mg_cli.command()
@click.pass_context
def start(ctx: click.Context) -> None:
    """Open the review session for the current commit, registering changed files."""
    from ..core.repository import get_changed_files
    from ..core.storage import load_or_create_session

    repo, config, sessions_dir = _open_context(ctx)
    changes = get_changed_files(repo, exclude=_report_paths(repo, config))
    session, created = load_or_create_session(
        sessions_dir, repo.root_path, repo.head_commit, repo.branch_name
    )

    added = 0
    for change in changes:
        if session.get_file(change.path) is None:
            session.add_file(change.path, change.status)
            added += 1
    path = _save(session, sessions_dir)

    verb = "Started" if created else "Resumed"
    branch = f" on {escape(repo.branch_name)}" if repo.branch_name else ""
    console.print(f"  [green]{verb}[/green] review of {escape(repo.root_path.name)}{branch} at {repo.head_commit[:12]}")
    console.print(f"  Files:   {session.file_count} ({added} new)")
    console.print(f"  Session: {escape(str(path))}")


@mg_cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """List tracked files in path order."""
    session, _config, _dir = _load(ctx)

    console.print(f"  Base commit: {session.base_commit}")
    console.print(f"  Reviewed:    {session.reviewed_count()}/{session.file_count}")
    console.print()
    for path in sorted(session.files):
        review = session.files[path]
        mark = "[green]REVIEWED[/green]" if review.reviewed else "[yellow]PENDING[/yellow]"
        count = review.comment_count
        suffix = f" ({count} comment{'s' if count != 1 else ''})" if count else ""
        console.print(f"  {review.status.glyph} {escape(path)} {mark}{suffix}", soft_wrap=True)


@mg_cli.command()
@click.argument("path")
@click.option("--undo", is_flag=True, help="Mark the file as pending again.")
@click.pass_context
def reviewed(ctx: click.Context, path: str, undo: bool) -> None:
    """Mark PATH as reviewed."""
    session, _config, sessions_dir = _load(ctx)
    handle = _require_file(session, path)
    handle.set_reviewed(not undo)
    _save(session, sessions_dir)
    state = "pending" if undo else "reviewed"
    console.print(f"  Marked {escape(handle.path)} as {state} ({session.reviewed_count()}/{session.file_count})")


def _default_comment_type(config: dict) -> CommentType:
    value = config["comments"].get("default_type", "note")
    try:
        return CommentType(value)
    except ValueError:
        logger.warning("Unknown comments.default_type %r in config, using note", value)
        return CommentType.NOTE


def _read_comment_text(text: Optional[str]) -> str:
    if text is None:
        try:
            text = click.edit("\n# Write your comment above. Lines starting with '#' are ignored.\n")
        except click.ClickException as e:
            raise TerminalError(e.message) from e
        if text is not None:
            text = "\n".join(line for line in text.splitlines() if not line.startswith("#"))
    if not text or not text.strip():
        raise click.ClickException("Empty comment, nothing added")
    return text.strip()


@mg_cli.command()
@click.argument("path")
@click.argument("text", required=False)
@click.option("--line", "-l", type=click.IntRange(min=0), help="Diff line to anchor the comment to.")
@click.option(
    "--side", "-s",
    type=click.Choice([s.value for s in LineSide]),
    default=LineSide.NEW.value,
    show_default=True,
    help="Which line numbering --line refers to.",
)
@click.option("--type", "-t", "comment_type", type=click.Choice([t.value for t in CommentType]))
@click.pass_context
def comment(
    ctx: click.Context,
    path: str,
    text: str | None,
    line: int | None,
    side: str,
    comment_type: str | None,
) -> None:
    """Add a comment to PATH, or to one of its lines with --line.

    Without TEXT, your editor is opened.

    Example: mg comment src/app.py "Magic number" -l 42 -t issue
    """
    from ..models.comment import Comment

    session, config, sessions_dir = _load(ctx)
    handle = _require_file(session, path)
    ctype = CommentType(comment_type) if comment_type else _default_comment_type(config)
    body = _read_comment_text(text)

    if line is None:
        added = handle.add_file_comment(Comment.create(body, ctype))
        where = handle.path
    else:
        line_side = LineSide(side)
        added = handle.comment_on_line(
            body,
            ctype,
            line_side,
            old_line=line if line_side is LineSide.OLD else None,
            new_line=line if line_side is LineSide.NEW else None,
        )
        where = f"{handle.path}:{line} ({line_side.value})"

    _save(session, sessions_dir)
    tag = escape(f"[{ctype.label}]")
    console.print(f"  Added {tag} to {escape(where)}  [dim]{added.id[:8]}[/dim]")


@mg_cli.command("delete-comment")
@click.argument("path")
@click.argument("comment_id")
@click.pass_context
def delete_comment(ctx: click.Context, path: str, comment_id: str) -> None:
    """Remove a comment from PATH by id (a unique prefix is enough)."""
    session, _config, sessions_dir = _load(ctx)
    handle = _require_file(session, path)

    matches = [c.id for _, c in handle.review.iter_comments() if c.id.startswith(comment_id)]
    if len(matches) != 1:
        problem = "No comment" if not matches else "More than one comment"
        raise click.ClickException(f"{problem} matches id {comment_id!r} in {path}")

    handle.remove_comment(matches[0])
    _save(session, sessions_dir)
    console.print(f"  Deleted comment {matches[0][:8]} from {escape(handle.path)}")


@mg_cli.command()
@click.argument("text", required=False)
@click.option("--clear", is_flag=True, help="Remove the session summary.")
@click.pass_context
def notes(ctx: click.Context, text: str | None, clear: bool) -> None:
    """Set the session summary shown at the top of the report."""
    session, _config, sessions_dir = _load(ctx)
    if clear:
        session.set_notes(None)
    else:
        if text is None:
            text = click.edit(session.session_notes or "")
            if text is None:
                raise click.ClickException("Summary unchanged")
        session.set_notes(text)
    _save(session, sessions_dir)
    console.print("  Summary cleared" if session.session_notes is None else "  Summary updated")


@mg_cli.command()
@click.option("--to", "target", type=click.Choice(["clipboard", "stdout", "file"]), help="Export destination.")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Output file for --to file.")
@click.pass_context
def export(ctx: click.Context, target: str | None, output: str | None) -> None:
    """Render the review report."""
    from ..formatters.markdown import export_to_clipboard, export_to_file, generate_markdown

    session, config, _dir = _load(ctx)
    target = target or ("file" if output else config["export"]["target"])

    if target == "stdout":
        click.echo(generate_markdown(session), nl=False)
    elif target == "file":
        out = Path(output) if output else session.repo_path / config["export"]["path"]
        written = export_to_file(session, out)
        console.print(f"  Review written to {escape(str(written))}")
    else:
        export_to_clipboard(session)
        console.print(f"  [green]Copied[/green] review of {session.file_count} files to clipboard")


@mg_cli.command()
@click.pass_context
def sessions(ctx: click.Context) -> None:
    """List saved review sessions."""
    from ..core.storage import list_sessions

    _repo, _config, sessions_dir = _open_context(ctx)
    paths = list_sessions(sessions_dir)
    if not paths:
        console.print(f"  No saved sessions in {escape(str(sessions_dir))}")
        return
    for path in paths:
        console.print(f"  {escape(path.name)}")


def main() -> None:
    mg_cli()


if __name__ == "__main__":
    main()
