"""Workspace document, request, and result models."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from formgrader.workspace.errors import WorkspaceErrorCode

# question index -> response id -> criterion id -> satisfied / not satisfied / ungraded
ScoreMatrix = dict[int, dict[int, dict[str, bool | None]]]
# question index -> response id -> comment
CommentMap = dict[int, dict[int, str]]
# question index -> response id -> automatically correct
AutoCorrectMask = dict[int, dict[int, bool]]


def utc_now() -> datetime:
    """Return current timezone-aware UTC timestamp.

    Returns:
        Current UTC datetime.
    """
    return datetime.now(UTC)


def new_criterion_id() -> str:
    """Generate a fresh scoring-criterion identifier.

    Returns:
        Identifier that is never reused for another criterion.
    """
    return f"crit_{uuid.uuid4().hex[:12]}"


class FormsResponse(BaseModel):
    """One respondent row from an exported response sheet."""

    model_config = ConfigDict(extra="forbid")

    id: int
    email: str
    name: str = ""
    started_at: str = ""
    completed_at: str = ""
    answers: dict[str, str] = Field(default_factory=dict)

    @field_validator("email", mode="before")
    @classmethod
    def _coerce_email(cls, value: object) -> object:
        if isinstance(value, int | float):
            return str(value)
        return value

    @field_validator("answers", mode="before")
    @classmethod
    def _coerce_answers(cls, value: object) -> object:
        """Spreadsheet cells may arrive as numbers; answers are compared as text."""
        if not isinstance(value, dict):
            return value
        return {
            str(key): "" if answer is None else str(answer)
            for key, answer in value.items()
        }

    def answer_for(self, question: str) -> str | None:
        """Return the answer text for one question column, if present."""
        return self.answers.get(question)


class ParsedFormsData(BaseModel):
    """Normalized response table produced by the spreadsheet parser."""

    model_config = ConfigDict(extra="forbid")

    total_responses: int = Field(default=0, ge=0)
    questions: list[str] = Field(default_factory=list)
    responses: list[FormsResponse] = Field(default_factory=list)
    auto_correct_mask: AutoCorrectMask | None = None


class ScoringCriterion(BaseModel):
    """One gradable criterion of a question."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=new_criterion_id, min_length=1)
    description: str = ""
    max_score: int = Field(default=1, ge=1)


class QuestionScoringCriteria(BaseModel):
    """Ordered criteria list for one question."""

    model_config = ConfigDict(extra="forbid")

    question_index: int = Field(ge=0)
    question_text: str = ""
    criteria: list[ScoringCriterion] = Field(default_factory=list)


class Workspace(BaseModel):
    """Full persisted grading workspace document."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1)
    name: str
    description: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    file_name: str
    forms_data: ParsedFormsData
    scoring_criteria: list[QuestionScoringCriteria] | None = None
    scores: ScoreMatrix | None = None
    comments: CommentMap | None = None
    question_titles: list[str] | None = None
    auto_correct_mask: AutoCorrectMask | None = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        """Timestamps written without an offset are read as UTC."""
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    def to_summary(self) -> WorkspaceSummary:
        """Project document into its lightweight listing row.

        Returns:
            Summary model.
        """
        return WorkspaceSummary(
            id=self.id,
            name=self.name,
            description=self.description,
            created_at=self.created_at,
            updated_at=self.updated_at,
            file_name=self.file_name,
            total_responses=len(self.forms_data.responses),
            total_questions=len(self.forms_data.questions),
        )


class WorkspaceSummary(BaseModel):
    """Listing row for one workspace."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    name: str
    description: str | None = None
    created_at: datetime
    updated_at: datetime
    file_name: str
    total_responses: int
    total_questions: int


class CreateWorkspaceRequest(BaseModel):
    """Input for creating a workspace from a freshly parsed sheet."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    description: str | None = None
    file_name: str
    forms_data: ParsedFormsData


class UpdateWorkspaceRequest(BaseModel):
    """Rename/describe overlay; unset fields are left alone."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1)
    description: str | None = None


class ScoreUpdate(BaseModel):
    """Coordinates and value of one score-matrix cell."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    question_index: int = Field(ge=0)
    response_id: int
    criterion_id: str = Field(min_length=1)
    value: bool | None


class CommentUpdate(BaseModel):
    """Coordinates and text of one comment-map entry."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    question_index: int = Field(ge=0)
    response_id: int
    comment: str


class DataValidationResult(BaseModel):
    """Outcome of the question-set compatibility check."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    is_valid: bool
    errors: tuple[str, ...] = ()


class DataDiffResult(BaseModel):
    """Email-keyed difference between two response tables."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    added: tuple[FormsResponse, ...] = ()
    removed: tuple[FormsResponse, ...] = ()
    updated: tuple[FormsResponse, ...] = ()


class ReimportDetails(BaseModel):
    """Counts reported by a successful reimport."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    added: int = 0
    updated: int = 0
    removed: int = 0
    total_responses: int = 0


class ReimportResult(BaseModel):
    """Outcome of a bulk reimport."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    success: bool
    error: str | None = None
    code: WorkspaceErrorCode | None = None
    details: ReimportDetails | list[str] | None = None
