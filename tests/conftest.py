"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest

from formgrader.storage import PathSerializer
from formgrader.workspace import (
    CreateWorkspaceRequest,
    FormsResponse,
    ParsedFormsData,
    WorkspaceRepository,
)

QUESTIONS = ["What is 2 + 2?", "Explain recursion."]


@pytest.fixture
def data_root(tmp_path: Path) -> Path:
    """Temporary workspace document directory."""
    return tmp_path / "data" / "workspaces"


@pytest.fixture
def serializer() -> PathSerializer:
    """Isolated per-path queue so tests never share chains."""
    return PathSerializer()


@pytest.fixture
def repository(data_root: Path, serializer: PathSerializer) -> WorkspaceRepository:
    """Repository over the temporary data root."""
    return WorkspaceRepository(data_root=data_root, serializer=serializer)


@pytest.fixture
def forms_data() -> ParsedFormsData:
    """Two-question, two-respondent response table."""
    responses = [
        FormsResponse(
            id=1,
            email="alice@example.com",
            name="Alice",
            started_at="2024-04-01T09:00:00",
            completed_at="2024-04-01T09:10:00",
            answers={QUESTIONS[0]: "4", QUESTIONS[1]: "A function calling itself."},
        ),
        FormsResponse(
            id=2,
            email="bob@example.com",
            name="Bob",
            started_at="2024-04-01T09:05:00",
            completed_at="2024-04-01T09:20:00",
            answers={QUESTIONS[0]: "5", QUESTIONS[1]: "Looping."},
        ),
    ]
    return ParsedFormsData(
        total_responses=len(responses),
        questions=list(QUESTIONS),
        responses=responses,
        auto_correct_mask={0: {1: True}},
    )


@pytest.fixture
def create_request(forms_data: ParsedFormsData) -> CreateWorkspaceRequest:
    """Create request for the standard response table."""
    return CreateWorkspaceRequest(
        name="Unit 3 quiz",
        description="Week 12",
        file_name="quiz.xlsx",
        forms_data=forms_data,
    )
