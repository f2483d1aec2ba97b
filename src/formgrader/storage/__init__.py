"""File storage primitives: atomic JSON writes and per-path serialization."""

from formgrader.storage.atomic_write import (
    atomic_write_json,
    backup_path_for,
    backup_previous,
    temp_path_for,
)
from formgrader.storage.serial_queue import (
    PathSerializer,
    default_serializer,
    reset_serial_queue,
    with_serialized,
)

__all__ = [
    "PathSerializer",
    "atomic_write_json",
    "backup_path_for",
    "backup_previous",
    "default_serializer",
    "reset_serial_queue",
    "temp_path_for",
    "with_serialized",
]
