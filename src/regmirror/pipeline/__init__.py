"""Catalog synchronization and snapshot ingestion pipeline.

Run order: :func:`resolve_workload` → :class:`MetadataSynchronizer` (which
drives :class:`LinkResolver`) → :class:`SnapshotIngestionEngine`.
"""

from .dates import fetch_dates, normalize_dates
from .ingest import IngestReport, SnapshotIngestionEngine, TitleResult
from .links import LinkResolver, LinkSummary
from .metadata import MetadataSynchronizer, SyncSummary
from .workload import CUSTOM, DEMO, Workload, parse_limit, parse_title_list, resolve_workload

__all__ = [
    "CUSTOM",
    "DEMO",
    "IngestReport",
    "LinkResolver",
    "LinkSummary",
    "MetadataSynchronizer",
    "SnapshotIngestionEngine",
    "SyncSummary",
    "TitleResult",
    "Workload",
    "fetch_dates",
    "normalize_dates",
    "parse_limit",
    "parse_title_list",
    "resolve_workload",
]
