"""Reimport compatibility checks and email-keyed response diffs."""

from __future__ import annotations

from collections.abc import Sequence

from formgrader.workspace.models import (
    DataDiffResult,
    DataValidationResult,
    FormsResponse,
    ParsedFormsData,
)


def validate_data_compatibility(
    existing: ParsedFormsData, incoming: ParsedFormsData
) -> DataValidationResult:
    """Require identical questions, in identical order, in both tables.

    Stored scores, comments, and criteria are keyed by question position,
    so any reorder or rewording is reported per question.

    Args:
        existing: Response table currently stored in the workspace.
        incoming: Freshly parsed response table.

    Returns:
        Validation result with one message per discrepancy.
    """
    errors: list[str] = []
    old_questions = existing.questions
    new_questions = incoming.questions
    if len(old_questions) != len(new_questions):
        errors.append(
            "Question count differs. "
            f"Existing: {len(old_questions)}, new: {len(new_questions)}"
        )
    for index in range(max(len(old_questions), len(new_questions))):
        number = index + 1
        old = old_questions[index] if index < len(old_questions) else None
        new = new_questions[index] if index < len(new_questions) else None
        if old is None and new is not None:
            errors.append(f'Question {number}: new data has an extra question - "{new}"')
        elif old is not None and new is None:
            errors.append(
                f'Question {number}: existing question missing from new data - "{old}"'
            )
        elif old != new:
            errors.append(
                f"Question {number}: question text differs\n"
                f'Existing: "{old}"\n'
                f'New: "{new}"'
            )
    return DataValidationResult(is_valid=not errors, errors=tuple(errors))


def detect_data_differences(
    existing: ParsedFormsData, incoming: ParsedFormsData
) -> DataDiffResult:
    """Classify respondents as added, removed, or updated by email.

    Args:
        existing: Response table currently stored in the workspace.
        incoming: Freshly parsed response table.

    Returns:
        Diff with new-side records for added/updated and old-side for removed.
    """
    old_by_email = _index_by_email(existing.responses)
    new_by_email = _index_by_email(incoming.responses)
    added = [r for r in incoming.responses if r.email not in old_by_email]
    removed = [r for r in existing.responses if r.email not in new_by_email]
    updated = [
        r
        for r in incoming.responses
        if r.email in old_by_email
        and not responses_equal(old_by_email[r.email], r, existing.questions)
    ]
    return DataDiffResult(
        added=tuple(added), removed=tuple(removed), updated=tuple(updated)
    )


def responses_equal(
    left: FormsResponse, right: FormsResponse, questions: Sequence[str]
) -> bool:
    """Compare identity fields, completion time, and every question's answer."""
    if (
        left.email != right.email
        or left.name != right.name
        or left.completed_at != right.completed_at
    ):
        return False
    return all(left.answer_for(q) == right.answer_for(q) for q in questions)


def merge_responses(
    existing: Sequence[FormsResponse], diff: DataDiffResult
) -> list[FormsResponse]:
    """Apply a diff to the stored responses, keyed by email.

    Survivors keep their position, updated records replace their old
    counterpart in place, and added records are appended.

    Args:
        existing: Stored response list.
        diff: Diff computed against the incoming table.

    Returns:
        Merged response list.
    """
    removed = {r.email for r in diff.removed}
    merged: dict[str, FormsResponse] = {
        r.email: r for r in existing if r.email not in removed
    }
    for response in diff.updated:
        merged[response.email] = response
    for response in diff.added:
        merged[response.email] = response
    return list(merged.values())


def generate_diff_summary(diff: DataDiffResult) -> str:
    """Render diff counts for operators.

    Args:
        diff: Diff result.

    Returns:
        Comma-separated non-zero counts, or ``"No changes"``.
    """
    return format_change_counts(
        added=len(diff.added), updated=len(diff.updated), removed=len(diff.removed)
    )


def format_change_counts(*, added: int, updated: int, removed: int) -> str:
    """Format non-zero change counts, or ``"No changes"``."""
    parts: list[str] = []
    if added:
        parts.append(f"Added: {added}")
    if updated:
        parts.append(f"Updated: {updated}")
    if removed:
        parts.append(f"Removed: {removed}")
    return ", ".join(parts) if parts else "No changes"


def _index_by_email(responses: Sequence[FormsResponse]) -> dict[str, FormsResponse]:
    return {response.email: response for response in responses}
