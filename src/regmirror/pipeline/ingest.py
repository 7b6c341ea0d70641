"""Snapshot ingestion: fetch the newest versions of each title and score them.

For every target title the engine re-reads the version dates from the
registry, keeps the newest ``snapshot_limit`` of them and materializes a
snapshot for each date not stored yet. A stored ``(title, date)`` row is the
only idempotency signal; its content is never refreshed.

Failures are contained per item: a document that cannot be fetched or
parsed is counted and the run moves on to the next date.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Sequence

from ..db import SnapshotDAO, SnapshotRecord, TitleDAO
from ..errors import RegistryError, SnapshotExistsError
from ..metrics import compute_metrics, normalize_document
from .dates import fetch_dates, newest

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class TitleResult:
    title_number: int
    known: bool = True
    attempted: int = 0
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    completed: bool = False
    failed_dates: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "titleNumber": self.title_number,
            "known": self.known,
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "skipped": self.skipped,
            "failed": self.failed,
            "completed": self.completed,
            "failedDates": list(self.failed_dates),
        }


@dataclass
class IngestReport:
    titles: List[TitleResult] = field(default_factory=list)
    cancelled: bool = False

    @property
    def attempted(self) -> int:
        return sum(t.attempted for t in self.titles)

    @property
    def succeeded(self) -> int:
        return sum(t.succeeded for t in self.titles)

    @property
    def skipped(self) -> int:
        return sum(t.skipped for t in self.titles)

    @property
    def failed(self) -> int:
        return sum(t.failed for t in self.titles)

    @property
    def unknown_titles(self) -> List[int]:
        return [t.title_number for t in self.titles if not t.known]

    def result_for(self, title_number: int) -> Optional[TitleResult]:
        for result in self.titles:
            if result.title_number == title_number:
                return result
        return None

    def summary_message(self) -> str:
        processed = sum(1 for t in self.titles if t.known)
        detail = (
            f"{self.succeeded} snapshots stored, {self.skipped} already loaded "
            f"across {processed} titles"
        )
        if self.unknown_titles:
            detail += f"; unknown titles skipped: {', '.join(map(str, self.unknown_titles))}"
        if self.cancelled:
            return f"Cancelled after {self.attempted} dates: {detail}"
        if self.failed:
            noun = "error" if self.failed == 1 else "errors"
            return f"Completed with {self.failed} {noun}: {detail}"
        return f"Completed cleanly: {detail}"


class SnapshotIngestionEngine:
    """Sequential fetch-and-score loop over titles and their newest dates.

    ``cancel`` is any object with ``is_set()`` (a :class:`threading.Event`
    works). It is checked before each title and each date; a cancelled title
    keeps its previous scrape status.
    """

    def __init__(
        self,
        connection: sqlite3.Connection,
        client,
        *,
        cancel=None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.client = client
        self.titles = TitleDAO(connection)
        self.snapshots = SnapshotDAO(connection)
        self.cancel = cancel
        self.clock = clock

    def _cancelled(self) -> bool:
        return self.cancel is not None and self.cancel.is_set()

    # ------------------------------------------------------------------
    def ingest(self, target_titles: Iterable[int], snapshot_limit: int) -> IngestReport:
        report = IngestReport()
        for number in target_titles:
            if self._cancelled():
                report.cancelled = True
                break
            result = TitleResult(title_number=number)
            report.titles.append(result)

            if not self.titles.exists(number):
                logger.warning("Title %s is not in the catalog; skipping", number)
                result.known = False
                continue

            try:
                dates = fetch_dates(self.client, number)
            except RegistryError as exc:
                logger.warning("Could not refresh dates for title %s: %s", number, exc)
                result.attempted += 1
                result.failed += 1
                continue
            self.titles.set_snapshot_dates(number, dates)

            selected = newest(dates, snapshot_limit)
            logger.info(
                "Title %s: %s known versions, processing newest %s",
                number,
                len(dates),
                len(selected),
            )
            if not self._process_dates(result, selected):
                report.cancelled = True
                break
            self._complete(result)

        logger.info(report.summary_message())
        return report

    def ingest_dates(self, title_number: int, dates: Sequence[str]) -> IngestReport:
        """Materialize explicit ``dates`` of one title.

        Only dates already listed in the title's stored version dates are
        fetched; the rest are counted as skipped.
        """

        report = IngestReport()
        result = TitleResult(title_number=title_number)
        report.titles.append(result)

        title = self.titles.get(title_number)
        if title is None:
            logger.warning("Title %s is not in the catalog; skipping", title_number)
            result.known = False
            return report

        known = set(title.snapshot_dates)
        selected: List[str] = []
        for date in dict.fromkeys(dates):
            if date in known:
                selected.append(date)
            else:
                logger.warning("Title %s has no version dated %s; skipping", title_number, date)
                result.attempted += 1
                result.skipped += 1

        if self._process_dates(result, selected):
            self._complete(result)
        else:
            report.cancelled = True
        logger.info(report.summary_message())
        return report

    # ------------------------------------------------------------------
    def _process_dates(self, result: TitleResult, dates: Sequence[str]) -> bool:
        """Run every date of ``dates``; ``False`` when cancelled part-way."""

        for date in dates:
            if self._cancelled():
                logger.warning("Cancelled while processing title %s", result.title_number)
                return False
            result.attempted += 1
            outcome = self._ingest_one(result.title_number, date)
            if outcome == "stored":
                result.succeeded += 1
            elif outcome == "skipped":
                result.skipped += 1
            else:
                result.failed += 1
                result.failed_dates.append(date)
        return True

    def _ingest_one(self, title_number: int, date: str) -> str:
        if self.snapshots.exists(title_number, date):
            logger.debug("Skipping title %s @ %s (already loaded)", title_number, date)
            return "skipped"

        try:
            raw = self.client.fetch_document(title_number, date)
            text = normalize_document(raw)
        except RegistryError as exc:
            logger.warning("Failed to fetch/parse title %s @ %s: %s", title_number, date, exc)
            return "failed"

        metrics = compute_metrics(text)
        record = SnapshotRecord(
            title_number=title_number,
            effective_date=date,
            word_count=metrics.word_count,
            restriction_count=metrics.restriction_count,
            checksum=metrics.checksum,
            restriction_density_score=metrics.density_score,
        )
        try:
            self.snapshots.create(record)
        except SnapshotExistsError:
            logger.info("Title %s @ %s was stored concurrently; skipping", title_number, date)
            return "skipped"
        logger.info(
            "Stored title %s @ %s: %s words, %s restrictions",
            title_number,
            date,
            metrics.word_count,
            metrics.restriction_count,
        )
        return "stored"

    def _complete(self, result: TitleResult) -> None:
        self.titles.mark_completed(result.title_number, self.clock())
        result.completed = True
