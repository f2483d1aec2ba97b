"""Grading workspace documents, repository, and partial-update operations."""

from formgrader.workspace.diffing import (
    detect_data_differences,
    format_change_counts,
    generate_diff_summary,
    merge_responses,
    validate_data_compatibility,
)
from formgrader.workspace.errors import WorkspaceError, WorkspaceErrorCode
from formgrader.workspace.models import (
    CommentUpdate,
    CreateWorkspaceRequest,
    DataDiffResult,
    DataValidationResult,
    FormsResponse,
    ParsedFormsData,
    QuestionScoringCriteria,
    ReimportDetails,
    ReimportResult,
    ScoreUpdate,
    ScoringCriterion,
    UpdateWorkspaceRequest,
    Workspace,
    WorkspaceSummary,
    new_criterion_id,
)
from formgrader.workspace.repository import (
    WorkspaceRepository,
    generate_workspace_id,
    is_valid_workspace_id,
)

__all__ = [
    "CommentUpdate",
    "CreateWorkspaceRequest",
    "DataDiffResult",
    "DataValidationResult",
    "FormsResponse",
    "ParsedFormsData",
    "QuestionScoringCriteria",
    "ReimportDetails",
    "ReimportResult",
    "ScoreUpdate",
    "ScoringCriterion",
    "UpdateWorkspaceRequest",
    "Workspace",
    "WorkspaceError",
    "WorkspaceErrorCode",
    "WorkspaceRepository",
    "WorkspaceSummary",
    "detect_data_differences",
    "format_change_counts",
    "generate_diff_summary",
    "generate_workspace_id",
    "is_valid_workspace_id",
    "merge_responses",
    "new_criterion_id",
    "validate_data_compatibility",
]
