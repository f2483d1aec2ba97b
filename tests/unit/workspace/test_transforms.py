"""Unit tests for pure workspace document transforms."""

from __future__ import annotations

import pytest

from formgrader.workspace import (
    CommentUpdate,
    ParsedFormsData,
    QuestionScoringCriteria,
    ScoreUpdate,
    ScoringCriterion,
    UpdateWorkspaceRequest,
    Workspace,
)
from formgrader.workspace.transforms import (
    apply_comment,
    apply_metadata,
    apply_question_titles,
    apply_score,
    apply_scoring_criteria,
    effective_auto_correct_mask,
    ensure_path,
    normalize_question_titles,
)


def _workspace(forms_data: ParsedFormsData, **overrides: object) -> Workspace:
    """Build an in-memory workspace around the standard table."""
    payload: dict[str, object] = {
        "id": "ws_test_abc123",
        "name": "Quiz",
        "file_name": "quiz.xlsx",
        "forms_data": forms_data,
    }
    payload.update(overrides)
    return Workspace.model_validate(payload)


def _criteria(question_index: int, *ids: str) -> QuestionScoringCriteria:
    return QuestionScoringCriteria(
        question_index=question_index,
        question_text=f"Question {question_index}",
        criteria=[ScoringCriterion(id=cid, description=cid, max_score=1) for cid in ids],
    )


@pytest.mark.unit
def test_ensure_path_creates_and_reuses_levels() -> None:
    """Helper should create missing levels and return existing ones."""
    root: dict[object, object] = {0: {5: {"keep": True}}}

    existing = ensure_path(root, (0, 5))
    created = ensure_path(root, (1, 9))

    assert existing == {"keep": True}
    assert created == {}
    assert root[1] == {9: {}}


@pytest.mark.unit
def test_apply_score_sets_single_cell_without_mutating_input(
    forms_data: ParsedFormsData,
) -> None:
    """Score upsert should touch exactly one cell of a copied matrix."""
    # Arrange - workspace with one existing cell
    workspace = _workspace(forms_data, scores={0: {1: {"c1": True}}})

    # Act - set another cell
    updated = apply_score(
        workspace,
        ScoreUpdate(question_index=1, response_id=2, criterion_id="c9", value=False),
    )

    # Assert - both cells present, original untouched, timestamp refreshed
    assert updated.scores == {0: {1: {"c1": True}}, 1: {2: {"c9": False}}}
    assert workspace.scores == {0: {1: {"c1": True}}}
    assert updated.updated_at >= workspace.updated_at


@pytest.mark.unit
def test_apply_score_clear_stores_null(forms_data: ParsedFormsData) -> None:
    """A None value marks the cell ungraded rather than deleting it."""
    workspace = _workspace(forms_data, scores={0: {1: {"c1": True}}})

    updated = apply_score(
        workspace,
        ScoreUpdate(question_index=0, response_id=1, criterion_id="c1", value=None),
    )

    assert updated.scores == {0: {1: {"c1": None}}}


@pytest.mark.unit
def test_apply_comment_overwrites_latest(forms_data: ParsedFormsData) -> None:
    """Comment upsert keeps only the newest text."""
    workspace = _workspace(forms_data, comments={0: {1: "old"}})

    updated = apply_comment(
        workspace, CommentUpdate(question_index=0, response_id=1, comment="new")
    )

    assert updated.comments == {0: {1: "new"}}
    assert workspace.comments == {0: {1: "old"}}


@pytest.mark.unit
def test_new_criterion_is_seeded_from_auto_correct_mask(
    forms_data: ParsedFormsData,
) -> None:
    """New criterion cells are True for masked responses and None otherwise."""
    # Arrange - standard table masks question 0 / response 1 as correct
    workspace = _workspace(forms_data)

    # Act - add a first criterion to question 0
    updated = apply_scoring_criteria(workspace, [_criteria(0, "c1")])

    # Assert - every response gets an explicit cell
    assert updated.scores == {0: {1: {"c1": True}, 2: {"c1": None}}}
    assert updated.scoring_criteria == [_criteria(0, "c1")]


@pytest.mark.unit
def test_adding_criterion_preserves_existing_scores(forms_data: ParsedFormsData) -> None:
    """Existing criteria cells are never rewritten by a criteria replace."""
    # Arrange - c1 graded (response 1 marked False despite the mask)
    workspace = _workspace(
        forms_data,
        scoring_criteria=[_criteria(0, "c1")],
        scores={0: {1: {"c1": False}, 2: {"c1": True}}},
    )

    # Act - add c2 next to c1
    updated = apply_scoring_criteria(workspace, [_criteria(0, "c1", "c2")])

    # Assert - c1 untouched, c2 seeded
    assert updated.scores is not None
    assert updated.scores[0][1] == {"c1": False, "c2": True}
    assert updated.scores[0][2] == {"c1": True, "c2": None}


@pytest.mark.unit
def test_new_criterion_keeps_pre_existing_value(forms_data: ParsedFormsData) -> None:
    """A cell that already holds a value is not overwritten by seeding."""
    workspace = _workspace(forms_data, scores={0: {2: {"c1": False}}})

    updated = apply_scoring_criteria(workspace, [_criteria(0, "c1")])

    assert updated.scores is not None
    assert updated.scores[0][2] == {"c1": False}


@pytest.mark.unit
def test_removed_criterion_cells_are_orphaned_not_deleted(
    forms_data: ParsedFormsData,
) -> None:
    """Dropping a criterion leaves its cells in place."""
    workspace = _workspace(
        forms_data,
        scoring_criteria=[_criteria(1, "old")],
        scores={1: {1: {"old": True}}},
    )

    updated = apply_scoring_criteria(workspace, [_criteria(1, "fresh")])

    assert updated.scores is not None
    assert updated.scores[1][1] == {"old": True, "fresh": None}


@pytest.mark.unit
def test_workspace_level_mask_joins_table_mask(forms_data: ParsedFormsData) -> None:
    """Auto-correct marks from the workspace and the table are combined."""
    workspace = _workspace(forms_data, auto_correct_mask={0: {2: True}, 1: {1: True}})

    mask = effective_auto_correct_mask(workspace)

    assert mask == {0: {1: True, 2: True}, 1: {1: True}}


@pytest.mark.unit
@pytest.mark.parametrize(
    ("titles", "expected"),
    [
        (["One"], ["One", ""]),
        (["One", "Two", "Three"], ["One", "Two"]),
        ([], ["", ""]),
    ],
)
def test_normalize_question_titles(titles: list[str], expected: list[str]) -> None:
    """Titles are padded or truncated to the question count."""
    assert normalize_question_titles(titles, 2) == expected


@pytest.mark.unit
def test_apply_question_titles_uses_question_count(forms_data: ParsedFormsData) -> None:
    """Stored titles align with the response table questions."""
    updated = apply_question_titles(_workspace(forms_data), ["Arithmetic"])

    assert updated.question_titles == ["Arithmetic", ""]


@pytest.mark.unit
def test_apply_metadata_overlays_only_provided_fields(
    forms_data: ParsedFormsData,
) -> None:
    """Rename keeps the description when only the name is given."""
    workspace = _workspace(forms_data, description="keep me")

    updated = apply_metadata(workspace, UpdateWorkspaceRequest(name="Renamed"))

    assert updated.name == "Renamed"
    assert updated.description == "keep me"
