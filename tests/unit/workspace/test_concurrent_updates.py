"""Concurrency tests for serialized workspace mutations."""

from __future__ import annotations

import asyncio

import pytest

from formgrader.storage import PathSerializer
from formgrader.workspace import (
    CommentUpdate,
    CreateWorkspaceRequest,
    QuestionScoringCriteria,
    ScoreUpdate,
    ScoringCriterion,
    UpdateWorkspaceRequest,
    WorkspaceRepository,
)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_concurrent_score_upserts_lose_no_updates(
    repository: WorkspaceRepository, create_request: CreateWorkspaceRequest
) -> None:
    """Many simultaneous upserts to different cells all persist."""
    # Arrange - workspace and 20 distinct cells
    created = await repository.create(create_request)
    updates = [
        ScoreUpdate(
            question_index=index % 2,
            response_id=1 + index % 2,
            criterion_id=f"c{index}",
            value=index % 3 != 0,
        )
        for index in range(20)
    ]

    # Act - fire all upserts at once
    await asyncio.gather(
        *(repository.upsert_score(created.id, update) for update in updates)
    )
    loaded = await repository.get(created.id)

    # Assert - every cell present with its value
    assert loaded is not None and loaded.scores is not None
    for update in updates:
        cell = loaded.scores[update.question_index][update.response_id]
        assert cell[update.criterion_id] is update.value


@pytest.mark.unit
@pytest.mark.asyncio
async def test_mixed_operations_compose_in_call_order(
    repository: WorkspaceRepository, create_request: CreateWorkspaceRequest
) -> None:
    """Criteria edit, score, comment, titles, and rename racing each other compose."""
    # Arrange - workspace
    created = await repository.create(create_request)
    criteria = [
        QuestionScoringCriteria(
            question_index=1, criteria=[ScoringCriterion(id="k1", description="clear")]
        )
    ]

    # Act - submit every operation kind concurrently
    await asyncio.gather(
        repository.upsert_score(
            created.id,
            ScoreUpdate(question_index=1, response_id=1, criterion_id="k1", value=False),
        ),
        repository.replace_scoring_criteria(created.id, criteria),
        repository.upsert_comment(
            created.id, CommentUpdate(question_index=1, response_id=1, comment="ok")
        ),
        repository.set_question_titles(created.id, ["A", "B"]),
        repository.update(created.id, UpdateWorkspaceRequest(name="Raced")),
    )
    loaded = await repository.get(created.id)

    # Assert - score set first survives the later criteria seeding
    assert loaded is not None
    assert loaded.scores == {1: {1: {"k1": False}, 2: {"k1": None}}}
    assert loaded.scoring_criteria == criteria
    assert loaded.comments == {1: {1: "ok"}}
    assert loaded.question_titles == ["A", "B"]
    assert loaded.name == "Raced"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_slow_operation_on_one_workspace_does_not_block_another(
    repository: WorkspaceRepository,
    serializer: PathSerializer,
    create_request: CreateWorkspaceRequest,
) -> None:
    """A held slot on workspace A delays A's queue only."""
    # Arrange - two workspaces; hold A's slot open
    first = await repository.create(create_request)
    second = await repository.create(create_request)
    release = asyncio.Event()

    async def _hold() -> None:
        await release.wait()

    holder = asyncio.create_task(serializer.run(repository.path_for(first.id), _hold))
    await asyncio.sleep(0)
    queued_on_first = asyncio.create_task(
        repository.upsert_score(
            first.id,
            ScoreUpdate(question_index=0, response_id=1, criterion_id="c1", value=True),
        )
    )

    # Act - update B while A is held
    on_second = await asyncio.wait_for(
        repository.upsert_score(
            second.id,
            ScoreUpdate(question_index=0, response_id=1, criterion_id="c1", value=True),
        ),
        timeout=2.0,
    )

    # Assert - B completed, A still queued until release
    assert on_second is not None
    assert not queued_on_first.done()
    release.set()
    await holder
    on_first = await queued_on_first
    assert on_first is not None
    assert on_first.scores == {0: {1: {"c1": True}}}
    assert serializer.pending_keys() == frozenset()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_delete_racing_upsert_never_resurrects_document(
    repository: WorkspaceRepository, create_request: CreateWorkspaceRequest
) -> None:
    """An upsert queued behind a delete sees not-found and writes nothing."""
    created = await repository.create(create_request)

    deleted, upserted = await asyncio.gather(
        repository.delete(created.id),
        repository.upsert_score(
            created.id,
            ScoreUpdate(question_index=0, response_id=1, criterion_id="c1", value=True),
        ),
    )

    assert deleted is True
    assert upserted is None
    assert not repository.path_for(created.id).exists()
