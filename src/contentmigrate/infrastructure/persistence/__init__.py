"""Persistence infrastructure."""

from contentmigrate.infrastructure.persistence.snapshot_store import (
    JsonSnapshotStore,
    SnapshotDecodeError,
)

__all__ = ["JsonSnapshotStore", "SnapshotDecodeError"]
