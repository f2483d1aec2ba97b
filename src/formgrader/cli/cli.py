"""Typer CLI entrypoint for formgrader workspaces."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Coroutine
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Annotated, Any, TypeVar

import typer
from pydantic import TypeAdapter, ValidationError
from rich.console import Console
from rich.logging import RichHandler

from formgrader.cli.rendering import (
    render_message,
    render_reimport,
    render_workspace,
    render_workspace_list,
)
from formgrader.config import ConfigError, GraderConfig, LogLevel, load_config
from formgrader.workspace import (
    CommentUpdate,
    CreateWorkspaceRequest,
    ParsedFormsData,
    QuestionScoringCriteria,
    ScoreUpdate,
    UpdateWorkspaceRequest,
    Workspace,
    WorkspaceError,
    WorkspaceErrorCode,
    WorkspaceRepository,
)

app = typer.Typer(help="Formgrader workspace CLI")
T = TypeVar("T")

_CONSOLE = Console()
_LOGGING_CONFIGURED = False
_CRITERIA_ADAPTER = TypeAdapter(list[QuestionScoringCriteria])
_EXIT_CODES = {
    WorkspaceErrorCode.NOT_FOUND: 1,
    WorkspaceErrorCode.INVALID_INPUT: 2,
    WorkspaceErrorCode.INCOMPATIBLE_DATA: 2,
    WorkspaceErrorCode.IO_FAILED: 3,
}


class ScoreValue(StrEnum):
    """Score cell values accepted on the command line."""

    TRUE = "true"
    FALSE = "false"
    CLEAR = "clear"

    def to_cell(self) -> bool | None:
        """Return the tri-state score-matrix value."""
        if self == ScoreValue.CLEAR:
            return None
        return self == ScoreValue.TRUE


@dataclass(frozen=True)
class _CliState:
    """Per-invocation collaborators resolved by the app callback."""

    repository: WorkspaceRepository


def configure_logging(level: LogLevel = LogLevel.INFO) -> None:
    """Configure Rich-backed logging once for CLI commands."""
    global _LOGGING_CONFIGURED  # noqa: PLW0603
    if _LOGGING_CONFIGURED:
        return
    logging.basicConfig(
        level=level.to_logging(),
        format="%(message)s",
        handlers=[RichHandler(show_path=False, rich_tracebacks=True)],
    )
    _LOGGING_CONFIGURED = True


def _default_config_file() -> Path:
    """Return default config path under `.formgrader/` in the working directory.

    Returns:
        Existing JSON config when present, else the YAML path.
    """
    config_dir = Path.cwd() / ".formgrader"
    json_path = config_dir / "config.json"
    if json_path.exists():
        return json_path
    return config_dir / "config.yaml"


def _fail(error: WorkspaceError) -> typer.Exit:
    """Render a workspace error and build the matching exit."""
    render_message(_CONSOLE, str(error), ok=False)
    return typer.Exit(code=_EXIT_CODES[error.code])


def _run(coroutine: Coroutine[Any, Any, T]) -> T:
    """Run one repository coroutine, mapping I/O failures to workspace errors.

    Args:
        coroutine: Repository operation to await.

    Returns:
        Operation result.

    Raises:
        WorkspaceError: If the operation failed with an ``OSError``.
    """
    try:
        return asyncio.run(coroutine)
    except OSError as exc:
        raise WorkspaceError(
            WorkspaceErrorCode.IO_FAILED,
            f"Error: workspace storage failed: {exc}",
            data={"reason": str(exc)},
        ) from exc


def _state(ctx: typer.Context) -> _CliState:
    state = ctx.obj
    if not isinstance(state, _CliState):  # pragma: no cover - callback always runs
        raise typer.Exit(code=2)
    return state


def _not_found(workspace_id: str) -> WorkspaceError:
    return WorkspaceError(
        WorkspaceErrorCode.NOT_FOUND,
        f"Error: workspace '{workspace_id}' not found.",
        data={"workspace_id": workspace_id},
    )


def _read_json_file(path: Path) -> object:
    """Read one JSON input file.

    Raises:
        WorkspaceError: If the file is unreadable or not JSON.
    """
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise WorkspaceError(
            WorkspaceErrorCode.INVALID_INPUT,
            f"Error: cannot read JSON input '{path.name}'.",
            data={"path": str(path), "reason": str(exc)},
        ) from exc


def load_forms_data(path: Path) -> ParsedFormsData:
    """Load a parsed response table exported as JSON.

    Args:
        path: JSON file holding a ``ParsedFormsData`` payload.

    Returns:
        Validated response table.

    Raises:
        WorkspaceError: If the file is unreadable or invalid.
    """
    payload = _read_json_file(path)
    try:
        return ParsedFormsData.model_validate(payload)
    except ValidationError as exc:
        raise WorkspaceError(
            WorkspaceErrorCode.INVALID_INPUT,
            f"Error: invalid response table in '{path.name}'.",
            data={"path": str(path), "validation_errors": exc.errors()},
        ) from exc


def load_scoring_criteria(path: Path) -> list[QuestionScoringCriteria]:
    """Load a full scoring-criteria list from JSON.

    Args:
        path: JSON file holding a list of question criteria.

    Returns:
        Validated criteria list.

    Raises:
        WorkspaceError: If the file is unreadable or invalid.
    """
    payload = _read_json_file(path)
    try:
        return _CRITERIA_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        raise WorkspaceError(
            WorkspaceErrorCode.INVALID_INPUT,
            f"Error: invalid scoring criteria in '{path.name}'.",
            data={"path": str(path), "validation_errors": exc.errors()},
        ) from exc


def _require(workspace: Workspace | None, workspace_id: str) -> Workspace:
    if workspace is None:
        raise _not_found(workspace_id)
    return workspace


@app.callback()
def main(
    ctx: typer.Context,
    config_file: Annotated[
        Path | None,
        typer.Option(
            file_okay=True,
            dir_okay=False,
            help="Path to formgrader config YAML/JSON file.",
        ),
    ] = None,
    data_root: Annotated[
        Path | None,
        typer.Option(
            file_okay=False,
            dir_okay=True,
            help="Workspace document directory (overrides config).",
        ),
    ] = None,
) -> None:
    """Manage grading workspaces stored as JSON documents.

    Args:
        ctx: Typer context receiving the resolved repository.
        config_file: Optional config file override.
        data_root: Optional data root override.
    """
    try:
        config = load_config(config_file or _default_config_file())
    except ConfigError as exc:
        render_message(_CONSOLE, str(exc), ok=False)
        raise typer.Exit(code=2) from exc
    configure_logging(config.logging.level)
    ctx.obj = _CliState(repository=_build_repository(config, data_root))


def _build_repository(config: GraderConfig, data_root: Path | None) -> WorkspaceRepository:
    return WorkspaceRepository(
        data_root=data_root or config.storage.resolve_data_root(),
        keep_backups=config.storage.keep_backups,
    )


@app.command("list")
def list_command(ctx: typer.Context) -> None:
    """List workspaces, most recently updated first."""
    repository = _state(ctx).repository
    try:
        summaries = _run(repository.list_workspaces())
    except WorkspaceError as exc:
        raise _fail(exc) from exc
    render_workspace_list(_CONSOLE, summaries)


@app.command("show")
def show_command(
    ctx: typer.Context,
    workspace_id: Annotated[str, typer.Argument(help="Workspace id.")],
) -> None:
    """Print one full workspace document."""
    repository = _state(ctx).repository
    try:
        workspace = _require(_run(repository.get(workspace_id)), workspace_id)
    except WorkspaceError as exc:
        raise _fail(exc) from exc
    render_workspace(_CONSOLE, workspace, title="Workspace")


@app.command("create")
def create_command(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Workspace display name.")],
    forms_json: Annotated[
        Path,
        typer.Argument(dir_okay=False, help="Parsed response table JSON file."),
    ],
    description: Annotated[
        str | None, typer.Option(help="Optional workspace description.")
    ] = None,
    file_name: Annotated[
        str | None,
        typer.Option(help="Original sheet file name (defaults to the JSON name)."),
    ] = None,
) -> None:
    """Create a workspace from a parsed response table."""
    repository = _state(ctx).repository
    try:
        forms_data = load_forms_data(forms_json)
        try:
            request = CreateWorkspaceRequest(
                name=name,
                description=description,
                file_name=file_name or forms_json.name,
                forms_data=forms_data,
            )
        except ValidationError as exc:
            raise WorkspaceError(
                WorkspaceErrorCode.INVALID_INPUT,
                "Error: invalid workspace name.",
                data={"validation_errors": exc.errors()},
            ) from exc
        workspace = _run(repository.create(request))
    except WorkspaceError as exc:
        raise _fail(exc) from exc
    render_message(_CONSOLE, f"Created workspace {workspace.id} ({workspace.name}).")


@app.command("rename")
def rename_command(
    ctx: typer.Context,
    workspace_id: Annotated[str, typer.Argument(help="Workspace id.")],
    name: Annotated[str | None, typer.Option(help="New display name.")] = None,
    description: Annotated[str | None, typer.Option(help="New description.")] = None,
) -> None:
    """Rename a workspace and/or change its description."""
    repository = _state(ctx).repository
    try:
        try:
            updates = UpdateWorkspaceRequest(name=name, description=description)
        except ValidationError as exc:
            raise WorkspaceError(
                WorkspaceErrorCode.INVALID_INPUT,
                "Error: invalid workspace name.",
                data={"validation_errors": exc.errors()},
            ) from exc
        workspace = _require(_run(repository.update(workspace_id, updates)), workspace_id)
    except WorkspaceError as exc:
        raise _fail(exc) from exc
    render_message(_CONSOLE, f"Updated workspace {workspace.id} ({workspace.name}).")


@app.command("delete")
def delete_command(
    ctx: typer.Context,
    workspace_id: Annotated[str, typer.Argument(help="Workspace id.")],
) -> None:
    """Delete a workspace document."""
    repository = _state(ctx).repository
    try:
        if not _run(repository.delete(workspace_id)):
            raise _not_found(workspace_id)
    except WorkspaceError as exc:
        raise _fail(exc) from exc
    render_message(_CONSOLE, f"Deleted workspace {workspace_id}.")


@app.command("reimport")
def reimport_command(
    ctx: typer.Context,
    workspace_id: Annotated[str, typer.Argument(help="Workspace id.")],
    forms_json: Annotated[
        Path,
        typer.Argument(dir_okay=False, help="Re-exported response table JSON file."),
    ],
    file_name: Annotated[
        str | None,
        typer.Option(help="New sheet file name (defaults to the JSON name)."),
    ] = None,
) -> None:
    """Merge a re-exported response table into a workspace by email."""
    repository = _state(ctx).repository
    try:
        forms_data = load_forms_data(forms_json)
        result = _run(
            repository.reimport(workspace_id, forms_data, file_name or forms_json.name)
        )
    except WorkspaceError as exc:
        raise _fail(exc) from exc
    render_reimport(_CONSOLE, result)
    if not result.success:
        code = result.code or WorkspaceErrorCode.INCOMPATIBLE_DATA
        raise typer.Exit(code=_EXIT_CODES[code])


@app.command("criteria")
def criteria_command(
    ctx: typer.Context,
    workspace_id: Annotated[str, typer.Argument(help="Workspace id.")],
    criteria_json: Annotated[
        Path,
        typer.Argument(dir_okay=False, help="Scoring criteria JSON file."),
    ],
) -> None:
    """Replace scoring criteria for all questions."""
    repository = _state(ctx).repository
    try:
        criteria = load_scoring_criteria(criteria_json)
        workspace = _require(
            _run(repository.replace_scoring_criteria(workspace_id, criteria)),
            workspace_id,
        )
    except WorkspaceError as exc:
        raise _fail(exc) from exc
    total = sum(len(question.criteria) for question in criteria)
    render_message(
        _CONSOLE, f"Saved {total} criteria for workspace {workspace.id}."
    )


@app.command("titles")
def titles_command(
    ctx: typer.Context,
    workspace_id: Annotated[str, typer.Argument(help="Workspace id.")],
    titles: Annotated[
        list[str] | None, typer.Argument(help="Display titles in question order.")
    ] = None,
) -> None:
    """Set display-title overrides, padded or truncated to the question count."""
    repository = _state(ctx).repository
    try:
        workspace = _require(
            _run(repository.set_question_titles(workspace_id, titles or [])),
            workspace_id,
        )
    except WorkspaceError as exc:
        raise _fail(exc) from exc
    count = len(workspace.question_titles or [])
    render_message(_CONSOLE, f"Saved {count} question titles for {workspace.id}.")


@app.command("score")
def score_command(
    ctx: typer.Context,
    workspace_id: Annotated[str, typer.Argument(help="Workspace id.")],
    question_index: Annotated[int, typer.Argument(min=0, help="Question index.")],
    response_id: Annotated[int, typer.Argument(help="Response id.")],
    criterion_id: Annotated[str, typer.Argument(help="Criterion id.")],
    value: Annotated[ScoreValue, typer.Argument(help="true, false, or clear.")],
) -> None:
    """Set one score cell."""
    repository = _state(ctx).repository
    try:
        try:
            update = ScoreUpdate(
                question_index=question_index,
                response_id=response_id,
                criterion_id=criterion_id,
                value=value.to_cell(),
            )
        except ValidationError as exc:
            raise WorkspaceError(
                WorkspaceErrorCode.INVALID_INPUT,
                "Error: invalid score cell.",
                data={"validation_errors": exc.errors()},
            ) from exc
        _require(_run(repository.upsert_score(workspace_id, update)), workspace_id)
    except WorkspaceError as exc:
        raise _fail(exc) from exc
    render_message(
        _CONSOLE,
        f"Score Q{question_index} / R{response_id} / {criterion_id} = {value.value}.",
    )


@app.command("comment")
def comment_command(
    ctx: typer.Context,
    workspace_id: Annotated[str, typer.Argument(help="Workspace id.")],
    question_index: Annotated[int, typer.Argument(min=0, help="Question index.")],
    response_id: Annotated[int, typer.Argument(help="Response id.")],
    text: Annotated[str, typer.Argument(help="Comment text; empty clears it.")],
) -> None:
    """Set the comment for one question/response pair."""
    repository = _state(ctx).repository
    try:
        try:
            update = CommentUpdate(
                question_index=question_index, response_id=response_id, comment=text
            )
        except ValidationError as exc:
            raise WorkspaceError(
                WorkspaceErrorCode.INVALID_INPUT,
                "Error: invalid comment cell.",
                data={"validation_errors": exc.errors()},
            ) from exc
        _require(_run(repository.upsert_comment(workspace_id, update)), workspace_id)
    except WorkspaceError as exc:
        raise _fail(exc) from exc
    render_message(_CONSOLE, f"Comment saved for Q{question_index} / R{response_id}.")
