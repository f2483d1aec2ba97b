"""Filesystem-backed workspace repository with serialized partial updates."""

from __future__ import annotations

import logging
import random
import re
import string
import time
from collections.abc import Callable, Sequence
from pathlib import Path

import aiofiles
import aiofiles.os
from pydantic import ValidationError

from formgrader.storage import PathSerializer, atomic_write_json, default_serializer
from formgrader.workspace.diffing import (
    detect_data_differences,
    merge_responses,
    validate_data_compatibility,
)
from formgrader.workspace.errors import WorkspaceErrorCode
from formgrader.workspace.models import (
    CommentUpdate,
    CreateWorkspaceRequest,
    ParsedFormsData,
    QuestionScoringCriteria,
    ReimportDetails,
    ReimportResult,
    ScoreUpdate,
    UpdateWorkspaceRequest,
    Workspace,
    WorkspaceSummary,
    utc_now,
)
from formgrader.workspace.transforms import (
    apply_comment,
    apply_metadata,
    apply_question_titles,
    apply_reimport,
    apply_score,
    apply_scoring_criteria,
)

_LOGGER = logging.getLogger(__name__)

_WORKSPACE_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
_BASE36_ALPHABET = string.digits + string.ascii_lowercase
_DOCUMENT_SUFFIX = ".json"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_workspace_id() -> str:
    """Return ``ws_<base36 millis>_<6 base36 chars>``.

    Ids sort by creation time. No collision check is performed.

    Returns:
        New workspace identifier.
    """
    timestamp = _to_base36(int(time.time() * 1000))
    suffix = "".join(random.choices(_BASE36_ALPHABET, k=6))  # nosec B311
    return f"ws_{timestamp}_{suffix}"


def is_valid_workspace_id(workspace_id: str) -> bool:
    """Return whether `workspace_id` maps to a file inside the data root."""
    return bool(_WORKSPACE_ID_PATTERN.match(workspace_id))


class WorkspaceRepository:
    """CRUD and fine-grained mutations over `<data_root>/<id>.json` documents.

    Every mutation runs as one read-modify-write inside the serializer slot
    of the document path. Missing workspaces are reported as ``None`` (or a
    failed ``ReimportResult``), never as exceptions; I/O errors propagate.
    """

    def __init__(
        self,
        *,
        data_root: Path,
        serializer: PathSerializer | None = None,
        keep_backups: bool = True,
    ) -> None:
        """Store repository location and collaborators.

        Args:
            data_root: Directory holding one JSON document per workspace.
            serializer: Per-path queue; defaults to the process-wide one.
            keep_backups: Whether writes keep a `.bak` previous generation.
        """
        self._data_root = data_root
        self._serializer = serializer or default_serializer()
        self._keep_backups = keep_backups

    @property
    def data_root(self) -> Path:
        """Directory holding workspace documents."""
        return self._data_root

    def path_for(self, workspace_id: str) -> Path:
        """Return the document path derived from `workspace_id`."""
        return self._data_root / f"{workspace_id}{_DOCUMENT_SUFFIX}"

    async def create(self, request: CreateWorkspaceRequest) -> Workspace:
        """Create and persist a new workspace.

        Args:
            request: Name, description, source file name, and parsed table.

        Returns:
            Persisted workspace document.
        """
        now = utc_now()
        workspace = Workspace(
            id=generate_workspace_id(),
            name=request.name,
            description=request.description,
            created_at=now,
            updated_at=now,
            file_name=request.file_name,
            forms_data=request.forms_data.model_copy(
                update={"total_responses": len(request.forms_data.responses)},
                deep=True,
            ),
        )
        path = self.path_for(workspace.id)

        async def _write() -> None:
            await self._write(path, workspace)

        await self._serializer.run(path, _write)
        _LOGGER.info("Created workspace %s (%s)", workspace.id, workspace.file_name)
        return workspace

    async def get(self, workspace_id: str) -> Workspace | None:
        """Load one workspace.

        Args:
            workspace_id: Workspace identifier.

        Returns:
            Parsed document, or ``None`` when missing or unreadable.
        """
        if not is_valid_workspace_id(workspace_id):
            return None
        path = self.path_for(workspace_id)
        try:
            return await self._read(path)
        except FileNotFoundError:
            return None
        except (UnicodeDecodeError, ValidationError) as exc:
            _LOGGER.warning("Workspace %s is unreadable: %s", workspace_id, exc)
            return None

    async def list_workspaces(self) -> list[WorkspaceSummary]:
        """Summarize every readable workspace, newest update first.

        Unreadable documents are logged and skipped.

        Returns:
            Summaries sorted by ``updated_at`` descending.
        """
        if not await aiofiles.os.path.isdir(self._data_root):
            return []
        summaries: list[WorkspaceSummary] = []
        for name in sorted(await aiofiles.os.listdir(self._data_root)):
            if not name.endswith(_DOCUMENT_SUFFIX):
                continue
            path = self._data_root / name
            try:
                workspace = await self._read(path)
            except (OSError, ValueError) as exc:
                _LOGGER.warning("Skipping workspace file %s: %s", name, exc)
                continue
            summaries.append(workspace.to_summary())
        return sorted(summaries, key=lambda item: item.updated_at, reverse=True)

    async def delete(self, workspace_id: str) -> bool:
        """Remove one workspace document.

        Args:
            workspace_id: Workspace identifier.

        Returns:
            ``True`` when a document was removed, ``False`` when absent.
        """
        if not is_valid_workspace_id(workspace_id):
            return False
        path = self.path_for(workspace_id)

        async def _remove() -> bool:
            try:
                await aiofiles.os.remove(path)
            except FileNotFoundError:
                return False
            return True

        removed = await self._serializer.run(path, _remove)
        if removed:
            _LOGGER.info("Deleted workspace %s", workspace_id)
        return removed

    async def update(
        self, workspace_id: str, updates: UpdateWorkspaceRequest
    ) -> Workspace | None:
        """Overlay name/description and refresh the update timestamp."""
        return await self._mutate(
            workspace_id, lambda workspace: apply_metadata(workspace, updates)
        )

    async def upsert_score(
        self, workspace_id: str, update: ScoreUpdate
    ) -> Workspace | None:
        """Set one score cell without reading or changing any other cell."""
        return await self._mutate(
            workspace_id, lambda workspace: apply_score(workspace, update)
        )

    async def upsert_comment(
        self, workspace_id: str, update: CommentUpdate
    ) -> Workspace | None:
        """Set one comment; an empty string clears it."""
        return await self._mutate(
            workspace_id, lambda workspace: apply_comment(workspace, update)
        )

    async def replace_scoring_criteria(
        self, workspace_id: str, criteria: Sequence[QuestionScoringCriteria]
    ) -> Workspace | None:
        """Replace criteria for all questions and seed cells of new criteria."""
        return await self._mutate(
            workspace_id, lambda workspace: apply_scoring_criteria(workspace, criteria)
        )

    async def set_question_titles(
        self, workspace_id: str, titles: Sequence[str]
    ) -> Workspace | None:
        """Store display titles normalized to the question count."""
        return await self._mutate(
            workspace_id, lambda workspace: apply_question_titles(workspace, titles)
        )

    async def reimport(
        self, workspace_id: str, new_data: ParsedFormsData, file_name: str
    ) -> ReimportResult:
        """Merge a re-exported response table into an existing workspace.

        The question lists must match exactly; otherwise nothing is written
        and the per-question discrepancies are returned. Respondents are
        matched by email. Scores and comments keyed by a displaced response
        id are left in place and no longer line up with a response.

        Args:
            workspace_id: Workspace identifier.
            new_data: Freshly parsed response table.
            file_name: Source file name of the new export.

        Returns:
            Reimport outcome with counts or validation errors.
        """
        if not is_valid_workspace_id(workspace_id):
            return _not_found_result()
        path = self.path_for(workspace_id)

        async def _reimport() -> ReimportResult:
            existing = await self.get(workspace_id)
            if existing is None:
                return _not_found_result()
            validation = validate_data_compatibility(existing.forms_data, new_data)
            if not validation.is_valid:
                _LOGGER.info(
                    "Rejected reimport for %s: %d question mismatch(es)",
                    workspace_id,
                    len(validation.errors),
                )
                return ReimportResult(
                    success=False,
                    error="Incompatible data",
                    code=WorkspaceErrorCode.INCOMPATIBLE_DATA,
                    details=list(validation.errors),
                )
            diff = detect_data_differences(existing.forms_data, new_data)
            merged = merge_responses(existing.forms_data.responses, diff)
            updated = apply_reimport(existing, new_data, merged, file_name)
            await self._write(path, updated)
            _LOGGER.info(
                "Reimported %s: added=%d updated=%d removed=%d",
                workspace_id,
                len(diff.added),
                len(diff.updated),
                len(diff.removed),
            )
            return ReimportResult(
                success=True,
                details=ReimportDetails(
                    added=len(diff.added),
                    updated=len(diff.updated),
                    removed=len(diff.removed),
                    total_responses=len(merged),
                ),
            )

        return await self._serializer.run(path, _reimport)

    async def _mutate(
        self, workspace_id: str, transform: Callable[[Workspace], Workspace]
    ) -> Workspace | None:
        """Run get -> transform -> atomic write inside the path's slot."""
        if not is_valid_workspace_id(workspace_id):
            return None
        path = self.path_for(workspace_id)

        async def _operation() -> Workspace | None:
            existing = await self.get(workspace_id)
            if existing is None:
                return None
            updated = transform(existing)
            await self._write(path, updated)
            _LOGGER.debug("Updated workspace %s", workspace_id)
            return updated

        return await self._serializer.run(path, _operation)

    async def _read(self, path: Path) -> Workspace:
        async with aiofiles.open(path, encoding="utf-8") as handle:
            raw = await handle.read()
        return Workspace.model_validate_json(raw)

    async def _write(self, path: Path, workspace: Workspace) -> None:
        await atomic_write_json(
            path,
            workspace.model_dump(mode="json"),
            keep_backup=self._keep_backups,
        )


def _not_found_result() -> ReimportResult:
    return ReimportResult(
        success=False,
        error="Workspace not found",
        code=WorkspaceErrorCode.NOT_FOUND,
    )
