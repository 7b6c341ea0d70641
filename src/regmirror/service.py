"""Caller-facing operations of the mirror.

:class:`RegistryMirror` wires the storage connection, the registry client
and the pipeline stages together. The caller owns its lifecycle: build it
with :meth:`RegistryMirror.from_settings` (or pass your own connection and
client) and :meth:`close` it when done.
"""

from __future__ import annotations

import logging
import sqlite3
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Sequence, Union

import requests

from .config import Settings
from .db import AgencyDAO, AgencyTitleDAO, SnapshotDAO, TitleDAO, connect
from .pipeline import (
    LinkResolver,
    MetadataSynchronizer,
    SnapshotIngestionEngine,
    fetch_dates,
    resolve_workload,
)
from .sources import RegistryClient, limiter_for_pause

logger = logging.getLogger(__name__)


class RegistryMirror:
    def __init__(
        self,
        connection: sqlite3.Connection,
        client,
        settings: Optional[Settings] = None,
        *,
        cancel=None,
    ):
        self.connection = connection
        self.client = client
        self.settings = settings or Settings()
        self.cancel = cancel

    @classmethod
    def from_settings(cls, settings: Settings, *, session: requests.Session | None = None) -> "RegistryMirror":
        connection = connect(settings.database)
        client = RegistryClient(
            settings.api_base,
            session=session,
            limiter=limiter_for_pause(settings.request_pause_s),
            timeout_s=settings.timeout_s,
            user_agent=settings.user_agent,
        )
        return cls(connection, client, settings)

    def close(self) -> None:
        self.connection.close()

    # ------------------------------------------------------------------
    # Pipeline operations
    # ------------------------------------------------------------------
    def synchronize_metadata(self, reset: bool = False) -> Dict[str, Any]:
        """Refresh agencies, titles, links and version dates.

        ``reset=True`` wipes every stored row first. That cannot be undone;
        callers must obtain an explicit confirmation before passing it.
        """

        resolver = LinkResolver(self.connection, fallback_links=self.settings.link_fallback)
        synchronizer = MetadataSynchronizer(self.connection, self.client, link_resolver=resolver)
        return synchronizer.synchronize(reset=reset).to_dict()

    def ingest_snapshots(
        self,
        mode: str,
        titles: Optional[str] = None,
        limit: Union[int, str, None] = None,
    ) -> Dict[str, Any]:
        workload = resolve_workload(mode, titles, limit, settings=self.settings)
        engine = SnapshotIngestionEngine(self.connection, self.client, cancel=self.cancel)
        report = engine.ingest(workload.target_titles, workload.snapshot_limit)
        return {
            "mode": workload.mode,
            "targetTitles": list(workload.target_titles),
            "snapshotLimit": workload.snapshot_limit,
            "attempted": report.attempted,
            "succeeded": report.succeeded,
            "skipped": report.skipped,
            "failed": report.failed,
            "cancelled": report.cancelled,
            "titles": [result.to_dict() for result in report.titles],
            "summaryMessage": report.summary_message(),
        }

    def ingest_dates(self, title_number: int, dates: Sequence[str]) -> Dict[str, Any]:
        """Materialize specific version dates of one title."""

        engine = SnapshotIngestionEngine(self.connection, self.client, cancel=self.cancel)
        report = engine.ingest_dates(title_number, dates)
        return {
            "titleNumber": title_number,
            "attempted": report.attempted,
            "succeeded": report.succeeded,
            "skipped": report.skipped,
            "failed": report.failed,
            "summaryMessage": report.summary_message(),
        }

    def preview_dates(self, title_number: int) -> List[str]:
        """Live version dates from the registry, newest first; nothing is stored."""

        return fetch_dates(self.client, title_number)

    # ------------------------------------------------------------------
    # Read-only projections
    # ------------------------------------------------------------------
    def list_catalog(self) -> List[Dict[str, Any]]:
        snapshots = SnapshotDAO(self.connection)
        return [
            {
                "number": title.number,
                "name": title.name,
                "allDates": list(title.snapshot_dates),
                "loadedDates": snapshots.loaded_dates(title.number),
            }
            for title in TitleDAO(self.connection).list_all()
        ]

    def list_history(self, title_number: int) -> List[Dict[str, Any]]:
        return [
            {
                "effectiveDate": snap.effective_date,
                "wordCount": snap.word_count,
                "restrictionCount": snap.restriction_count,
                "checksum": snap.checksum,
                "restrictionDensityScore": snap.restriction_density_score,
            }
            for snap in SnapshotDAO(self.connection).history(title_number)
        ]

    def dashboard(self) -> Dict[str, Any]:
        """Agency table and per-date trend built from the latest snapshots."""

        titles = {title.number: title for title in TitleDAO(self.connection).list_all()}
        snapshots = SnapshotDAO(self.connection)
        links = AgencyTitleDAO(self.connection)

        agencies = []
        for agency in AgencyDAO(self.connection).list_all():
            numbers = links.titles_for_agency(agency.id)
            if not numbers:
                continue
            total_words = 0
            densities = []
            last_updated = None
            for number in numbers:
                title = titles.get(number)
                if title is not None and title.last_scraped is not None:
                    if last_updated is None or title.last_scraped > last_updated:
                        last_updated = title.last_scraped
                latest = snapshots.latest_for_title(number)
                if latest is not None:
                    total_words += latest.word_count
                    densities.append(latest.restriction_density_score)
            agencies.append(
                {
                    "id": agency.id,
                    "name": agency.name,
                    "totalTitles": len(numbers),
                    "totalWordCount": total_words,
                    "avgRestrictionScore": round(sum(densities) / len(densities), 2) if densities else 0.0,
                    "lastUpdated": last_updated.date().isoformat() if last_updated else "N/A",
                }
            )

        grouped: "OrderedDict[str, list]" = OrderedDict()
        for snap in snapshots.list_all():
            grouped.setdefault(snap.effective_date, []).append(snap)
        history = [
            {
                "date": day,
                "totalWords": sum(s.word_count for s in group),
                "avgRestrictionScore": round(
                    sum(s.restriction_density_score for s in group) / len(group), 2
                ),
            }
            for day, group in grouped.items()
        ]
        return {"agencies": agencies, "history": history}


__all__ = ["RegistryMirror"]
