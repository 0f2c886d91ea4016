import json
from collections.abc import Callable
from functools import wraps
from typing import Any

import click
from pydantic import ValidationError

from lemma.storage.errors import InvalidCommitMessageError, PathValidationError, StorageError


class _InvalidInput(click.ClickException):
    """Rejected caller input (bad path, empty commit message, bad git settings)."""

    exit_code = 2


def _service():
    from lemma.storage.log import setup_logging
    from lemma.storage.service import StorageService
    from lemma.storage.settings import get_settings

    settings = get_settings()
    setup_logging(settings)
    return StorageService.from_settings(settings)


def _handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Turn storage errors into click errors with a distinct exit status."""

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except (PathValidationError, InvalidCommitMessageError, ValidationError) as exc:
            raise _InvalidInput(str(exc)) from exc
        except StorageError as exc:
            raise click.ClickException(str(exc)) from exc

    return wrapper


def _workspace_options(func: Callable[..., Any]) -> Callable[..., Any]:
    func = click.option("--workspace", "workspace_id", required=True, help="Workspace id.")(func)
    func = click.option("--user", "user_id", required=True, help="Owner user id.")(func)
    return func


def _git_options(func: Callable[..., Any]) -> Callable[..., Any]:
    options = [
        click.option("--remote-url", required=True, help="Remote repository URL."),
        click.option("--username", required=True, help="Remote account name."),
        click.option("--token", required=True, envvar="LEMMA_GIT_TOKEN", help="Access token (or LEMMA_GIT_TOKEN)."),
        click.option("--name", "commit_name", required=True, help="Commit author name."),
        click.option("--email", "commit_email", required=True, help="Commit author email."),
        click.option("--auto-commit/--no-auto-commit", default=False, help="Commit after every file change."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _git_config(**fields: Any):
    from lemma.storage.models.git import GitConfig

    return GitConfig(enabled=True, **fields)


def _echo_json(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2))


@click.group()
def main() -> None:
    """Lemma - workspace storage engine with git sync."""


# ---------------------------------------------------------------------------
# Workspaces
# ---------------------------------------------------------------------------


@main.command()
@_workspace_options
@_handle_errors
def init(user_id: str, workspace_id: str) -> None:
    """Create a workspace directory."""
    root = _service().initialize_user_workspace(user_id, workspace_id)
    click.echo(f"Workspace ready at {root}.")


@main.command()
@_workspace_options
@click.confirmation_option(prompt="Delete the workspace and all of its files?")
@_handle_errors
def delete(user_id: str, workspace_id: str) -> None:
    """Delete a workspace directory and everything in it."""
    _service().delete_user_workspace(user_id, workspace_id)
    click.echo(f"Workspace {user_id}/{workspace_id} deleted.")


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


@main.command()
@_workspace_options
@click.option("--hidden/--no-hidden", "show_hidden", default=None, help="Include dotfiles (default: from settings).")
@_handle_errors
def tree(user_id: str, workspace_id: str, show_hidden: bool | None) -> None:
    """Print the workspace file tree as JSON."""
    nodes = _service().list_files(user_id, workspace_id, show_hidden=show_hidden)
    _echo_json([node.model_dump(mode="json", by_alias=True) for node in nodes])


@main.command()
@_workspace_options
@click.argument("filename")
@click.option("--case-sensitive", is_flag=True, default=False, help="Match the name exactly.")
@_handle_errors
def find(user_id: str, workspace_id: str, filename: str, case_sensitive: bool) -> None:
    """List every path whose file name is FILENAME."""
    for path in _service().find_file_by_name(user_id, workspace_id, filename, case_sensitive=case_sensitive):
        click.echo(path)


@main.command()
@_workspace_options
@click.argument("path")
@_handle_errors
def cat(user_id: str, workspace_id: str, path: str) -> None:
    """Write a file's raw content to stdout."""
    content = _service().get_file_content(user_id, workspace_id, path)
    stdout = click.get_binary_stream("stdout")
    stdout.write(content)
    stdout.flush()


@main.command()
@click.option("--user", "user_id", default=None, help="Owner user id.")
@click.option("--workspace", "workspace_id", default=None, help="Workspace id.")
@click.option("--all", "all_workspaces", is_flag=True, default=False, help="Count across every workspace.")
@_handle_errors
def stats(user_id: str | None, workspace_id: str | None, all_workspaces: bool) -> None:
    """Print file count and total size as JSON."""
    service = _service()
    if all_workspaces:
        result = service.get_total_file_stats()
    elif user_id is None or workspace_id is None:
        msg = "Pass --user and --workspace, or --all."
        raise click.UsageError(msg)
    else:
        result = service.get_file_stats(user_id, workspace_id)
    _echo_json(result.model_dump(mode="json", by_alias=True))


# ---------------------------------------------------------------------------
# Git sync
# ---------------------------------------------------------------------------


@main.group()
def git() -> None:
    """Git synchronization commands."""


@git.command()
@_workspace_options
@_git_options
@_handle_errors
def setup(user_id: str, workspace_id: str, **fields: Any) -> None:
    """Clone into, attach to, or update the workspace from the remote."""
    _service().setup_git_repo(user_id, workspace_id, _git_config(**fields))
    click.echo(f"Git enabled for workspace {user_id}/{workspace_id}.")


@git.command()
@_workspace_options
@_git_options
@click.option("-m", "--message", required=True, help="Commit message.")
@_handle_errors
def commit(user_id: str, workspace_id: str, message: str, **fields: Any) -> None:
    """Stage every change, commit and push."""
    service = _service()
    config = _git_config(**fields)
    if not message.strip():
        msg = "Commit message is required"
        raise InvalidCommitMessageError(msg)
    service.setup_git_repo(user_id, workspace_id, config)
    commit_hash = service.stage_commit_and_push(user_id, workspace_id, message)
    click.echo(commit_hash)


@git.command()
@_workspace_options
@_git_options
@_handle_errors
def pull(user_id: str, workspace_id: str, **fields: Any) -> None:
    """Fast-forward the workspace to the remote branch."""
    service = _service()
    service.setup_git_repo(user_id, workspace_id, _git_config(**fields))
    service.pull(user_id, workspace_id)
    click.echo(f"Workspace {user_id}/{workspace_id} is up to date.")


@git.command()
@_workspace_options
@_handle_errors
def disable(user_id: str, workspace_id: str) -> None:
    """Remove git metadata from the workspace, keeping every file."""
    _service().disable_git_repo(user_id, workspace_id)
    click.echo(f"Git disabled for workspace {user_id}/{workspace_id}.")


if __name__ == "__main__":
    main()
