"""SQLite storage for the mirrored catalog and its snapshots."""

from .dao import (
    AgencyDAO,
    AgencyRecord,
    AgencyTitleDAO,
    ScrapeStatus,
    SnapshotDAO,
    SnapshotRecord,
    TitleDAO,
    TitleRecord,
    reset_catalog,
)
from .migrations import MigrationRunner, connect

__all__ = [
    "AgencyDAO",
    "AgencyRecord",
    "AgencyTitleDAO",
    "MigrationRunner",
    "ScrapeStatus",
    "SnapshotDAO",
    "SnapshotRecord",
    "TitleDAO",
    "TitleRecord",
    "connect",
    "reset_catalog",
]
