"""Pure workspace document transforms applied inside a serialized slot.

Every function returns a new ``Workspace`` and leaves its input untouched,
so a failed write never leaves a half-mutated document in memory.
"""

from __future__ import annotations

import copy
from collections.abc import Hashable, MutableMapping, Sequence
from typing import Any

from formgrader.workspace.models import (
    AutoCorrectMask,
    CommentUpdate,
    FormsResponse,
    ParsedFormsData,
    QuestionScoringCriteria,
    ScoreMatrix,
    ScoreUpdate,
    UpdateWorkspaceRequest,
    Workspace,
    utc_now,
)


def ensure_path(
    root: MutableMapping[Any, Any], keys: Sequence[Hashable]
) -> MutableMapping[Any, Any]:
    """Return the mapping at `keys` below `root`, creating empty levels.

    Args:
        root: Outermost mapping.
        keys: Keys of each intermediate level, outermost first.

    Returns:
        Innermost mapping, ready for a single-cell write.
    """
    node = root
    for key in keys:
        child = node.get(key)
        if child is None:
            child = {}
            node[key] = child
        node = child
    return node


def apply_metadata(workspace: Workspace, updates: UpdateWorkspaceRequest) -> Workspace:
    """Overlay the provided name/description onto the document."""
    overlay = updates.model_dump(exclude_none=True)
    return workspace.model_copy(update={**overlay, "updated_at": utc_now()})


def apply_score(workspace: Workspace, update: ScoreUpdate) -> Workspace:
    """Set exactly one score-matrix cell, creating intermediate maps.

    Args:
        workspace: Current document.
        update: Cell coordinates and tri-state value.

    Returns:
        Updated document.
    """
    scores: ScoreMatrix = copy.deepcopy(workspace.scores) if workspace.scores else {}
    cell = ensure_path(scores, (update.question_index, update.response_id))
    cell[update.criterion_id] = update.value
    return workspace.model_copy(update={"scores": scores, "updated_at": utc_now()})


def apply_comment(workspace: Workspace, update: CommentUpdate) -> Workspace:
    """Set exactly one comment entry; the latest text wins."""
    comments = copy.deepcopy(workspace.comments) if workspace.comments else {}
    row = ensure_path(comments, (update.question_index,))
    row[update.response_id] = update.comment
    return workspace.model_copy(update={"comments": comments, "updated_at": utc_now()})


def effective_auto_correct_mask(workspace: Workspace) -> AutoCorrectMask:
    """Union of the response table's mask and the workspace-level mask."""
    merged: AutoCorrectMask = {}
    for source in (workspace.forms_data.auto_correct_mask, workspace.auto_correct_mask):
        for question_index, rows in (source or {}).items():
            target = merged.setdefault(question_index, {})
            for response_id, correct in rows.items():
                target[response_id] = target.get(response_id, False) or correct
    return merged


def apply_scoring_criteria(
    workspace: Workspace, criteria: Sequence[QuestionScoringCriteria]
) -> Workspace:
    """Replace all criteria and seed score cells for newly added criteria.

    A criterion is new when its id was absent from the previous criteria of
    the same question. For each response, its cell is set to ``True`` when the
    auto-correct mask marks the pair, else ``None``; cells that already hold a
    value and cells of pre-existing criteria are never touched.

    Args:
        workspace: Current document.
        criteria: Full replacement criteria list.

    Returns:
        Updated document.
    """
    previous_ids: dict[int, set[str]] = {
        question.question_index: {criterion.id for criterion in question.criteria}
        for question in workspace.scoring_criteria or ()
    }
    mask = effective_auto_correct_mask(workspace)
    scores: ScoreMatrix = copy.deepcopy(workspace.scores) if workspace.scores else {}
    response_ids = [response.id for response in workspace.forms_data.responses]

    for question in criteria:
        known = previous_ids.get(question.question_index, set())
        question_mask = mask.get(question.question_index, {})
        for criterion in question.criteria:
            if criterion.id in known:
                continue
            for response_id in response_ids:
                cell = ensure_path(scores, (question.question_index, response_id))
                if cell.get(criterion.id) is None:
                    cell[criterion.id] = True if question_mask.get(response_id) else None

    return workspace.model_copy(
        update={
            "scoring_criteria": [item.model_copy(deep=True) for item in criteria],
            "scores": scores,
            "updated_at": utc_now(),
        }
    )


def normalize_question_titles(titles: Sequence[str], question_count: int) -> list[str]:
    """Pad with empty strings or truncate so there is one title per question."""
    padded = list(titles[:question_count])
    padded.extend("" for _ in range(question_count - len(padded)))
    return padded


def apply_question_titles(workspace: Workspace, titles: Sequence[str]) -> Workspace:
    """Store display-title overrides aligned to the question list."""
    normalized = normalize_question_titles(titles, len(workspace.forms_data.questions))
    return workspace.model_copy(
        update={"question_titles": normalized, "updated_at": utc_now()}
    )


def apply_reimport(
    workspace: Workspace,
    incoming: ParsedFormsData,
    merged: Sequence[FormsResponse],
    file_name: str,
) -> Workspace:
    """Persist merged responses under the incoming question/metadata set."""
    forms_data = incoming.model_copy(
        update={"responses": list(merged), "total_responses": len(merged)},
        deep=True,
    )
    return workspace.model_copy(
        update={
            "forms_data": forms_data,
            "file_name": file_name,
            "updated_at": utc_now(),
        }
    )
