"""Deterministic workspace error contracts."""

from __future__ import annotations

from enum import StrEnum


class WorkspaceErrorCode(StrEnum):
    """Stable workspace outcome codes mapped to statuses at the boundary."""

    NOT_FOUND = "workspace_not_found"
    INCOMPATIBLE_DATA = "workspace_incompatible_data"
    IO_FAILED = "workspace_io_failed"
    INVALID_INPUT = "workspace_invalid_input"


class WorkspaceError(RuntimeError):
    """Workspace failure with stable deterministic code."""

    def __init__(
        self,
        code: WorkspaceErrorCode,
        message: str,
        *,
        data: dict[str, object] | None = None,
    ) -> None:
        """Create workspace failure.

        Args:
            code: Stable workspace error code.
            message: Human-readable error message.
            data: Optional structured payload for diagnostics.
        """
        super().__init__(message)
        self.code = code
        self.data = data or {}
