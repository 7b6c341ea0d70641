from __future__ import annotations

import threading
from datetime import datetime, timezone

import pytest
from conftest import make_document

from regmirror.db import ScrapeStatus, SnapshotDAO, TitleDAO
from regmirror.metrics import compute_metrics, normalize_document
from regmirror.pipeline import MetadataSynchronizer, SnapshotIngestionEngine

FIXED_NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def synced(connection, registry):
    MetadataSynchronizer(connection, registry).synchronize()
    registry.calls.clear()
    return connection


def engine_for(connection, registry, **kwargs):
    return SnapshotIngestionEngine(connection, registry, clock=lambda: FIXED_NOW, **kwargs)


def test_cap_selects_newest_dates_only(synced, registry):
    report = engine_for(synced, registry).ingest([14], 3)

    assert registry.document_calls() == [
        (14, "2024-06-01"),
        (14, "2024-01-05"),
        (14, "2023-11-20"),
    ]
    result = report.result_for(14)
    assert (result.attempted, result.succeeded, result.skipped, result.failed) == (3, 3, 0, 0)
    assert SnapshotDAO(synced).loaded_dates(14) == ["2024-06-01", "2024-01-05", "2023-11-20"]


def test_snapshot_metrics_match_document(synced, registry):
    engine_for(synced, registry).ingest([1], 1)

    stored = SnapshotDAO(synced).history(1)[0]
    expected = compute_metrics(normalize_document(make_document(1, "2024-06-01")))
    assert stored.effective_date == "2024-06-01"
    assert stored.checksum == expected.checksum
    assert stored.word_count == expected.word_count
    assert stored.restriction_count == expected.restriction_count == 5
    assert stored.restriction_density_score == pytest.approx(expected.density_score)


def test_second_run_is_a_no_op(synced, registry):
    engine = engine_for(synced, registry)
    engine.ingest([1, 2], 3)
    rows_before = [(s.title_number, s.effective_date, s.checksum) for s in SnapshotDAO(synced).list_all()]
    registry.calls.clear()

    report = engine.ingest([1, 2], 3)

    assert report.succeeded == 0
    assert report.failed == 0
    assert report.skipped == 6
    assert registry.document_calls() == []
    rows_after = [(s.title_number, s.effective_date, s.checksum) for s in SnapshotDAO(synced).list_all()]
    assert rows_after == rows_before


def test_existing_snapshot_is_never_refreshed(synced, registry):
    engine = engine_for(synced, registry)
    engine.ingest([1], 1)
    original = SnapshotDAO(synced).history(1)[0].checksum

    registry.documents[(1, "2024-06-01")] = make_document(1, "2024-06-01", extra=" Changed.")
    engine.ingest([1], 1)

    assert SnapshotDAO(synced).history(1)[0].checksum == original


def test_partial_failure_is_counted_and_title_still_completed(synced, registry):
    registry.failing_documents.add((14, "2024-01-05"))

    report = engine_for(synced, registry).ingest([14], 3)

    result = report.result_for(14)
    assert (result.succeeded, result.failed) == (2, 1)
    assert result.failed_dates == ["2024-01-05"]
    assert SnapshotDAO(synced).loaded_dates(14) == ["2024-06-01", "2023-11-20"]
    title = TitleDAO(synced).get(14)
    assert title.scrape_status is ScrapeStatus.COMPLETED
    assert title.last_scraped == FIXED_NOW
    assert report.summary_message().startswith("Completed with 1 error:")


def test_malformed_document_counts_as_failure(synced, registry):
    registry.documents[(2, "2024-06-01")] = b"<ECFR><P>broken"

    report = engine_for(synced, registry).ingest([2], 2)

    assert (report.succeeded, report.failed) == (1, 1)
    assert SnapshotDAO(synced).loaded_dates(2) == ["2024-01-05"]


def test_unknown_titles_are_skipped_not_failed(synced, registry):
    report = engine_for(synced, registry).ingest([40, 1], 1)

    assert report.unknown_titles == [40]
    assert report.failed == 0
    assert report.succeeded == 1
    assert ("versions", 40) not in registry.calls
    assert "unknown titles skipped: 40" in report.summary_message()


def test_dates_are_refreshed_at_ingest_time(synced, registry):
    registry.versions[3] = ["2026-01-01"] + registry.versions[3]

    engine_for(synced, registry).ingest([3], 1)

    assert TitleDAO(synced).get(3).snapshot_dates[0] == "2026-01-01"
    assert SnapshotDAO(synced).loaded_dates(3) == ["2026-01-01"]


def test_date_refresh_failure_skips_title(synced, registry):
    registry.failing_versions.add(5)

    report = engine_for(synced, registry).ingest([5, 1], 1)

    assert (report.result_for(5).attempted, report.result_for(5).failed) == (1, 1)
    assert report.failed <= report.attempted
    assert report.result_for(5).completed is False
    assert TitleDAO(synced).get(5).scrape_status is ScrapeStatus.PENDING
    assert report.result_for(1).succeeded == 1


def test_concurrent_insert_is_treated_as_skip(synced, registry):
    engine = engine_for(synced, registry)
    snapshots = engine.snapshots
    real_exists = snapshots.exists
    # simulate another worker storing the row between check and create
    snapshots.exists = lambda title, date: False
    engine.ingest([1], 1)
    report = engine.ingest([1], 1)
    snapshots.exists = real_exists

    assert report.skipped == 1
    assert report.failed == 0
    assert SnapshotDAO(synced).count() == 1


def test_cancel_before_run_leaves_status_untouched(synced, registry):
    cancel = threading.Event()
    cancel.set()

    report = engine_for(synced, registry, cancel=cancel).ingest([1, 2], 3)

    assert report.cancelled is True
    assert report.titles == []
    assert TitleDAO(synced).get(1).scrape_status is ScrapeStatus.PENDING
    assert report.summary_message().startswith("Cancelled")


def test_cancel_mid_title_keeps_previous_status(synced, registry):
    cancel = threading.Event()
    original = registry.fetch_document

    def fetch_then_cancel(title_number, date):
        cancel.set()
        return original(title_number, date)

    registry.fetch_document = fetch_then_cancel
    report = engine_for(synced, registry, cancel=cancel).ingest([1, 2], 3)

    assert report.cancelled is True
    assert report.result_for(1).succeeded == 1
    assert report.result_for(2) is None
    assert TitleDAO(synced).get(1).scrape_status is ScrapeStatus.PENDING


def test_ingest_explicit_dates(synced, registry):
    report = engine_for(synced, registry).ingest_dates(14, ["2021-02-14", "1900-01-01", "2021-02-14"])

    result = report.result_for(14)
    assert (result.succeeded, result.skipped) == (1, 1)
    assert registry.document_calls() == [(14, "2021-02-14")]
    assert TitleDAO(synced).get(14).scrape_status is ScrapeStatus.COMPLETED


def test_ingest_explicit_dates_for_unknown_title(synced, registry):
    report = engine_for(synced, registry).ingest_dates(77, ["2024-01-05"])
    assert report.unknown_titles == [77]
    assert registry.document_calls() == []


def test_summary_pluralizes_error_count(synced, registry):
    registry.failing_documents.update({(14, "2024-06-01"), (14, "2024-01-05")})

    report = engine_for(synced, registry).ingest([14], 3)

    assert report.summary_message().startswith("Completed with 2 errors:")
