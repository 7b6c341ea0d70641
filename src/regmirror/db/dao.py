from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, List, Optional

from ..errors import ResetError, SnapshotExistsError

logger = logging.getLogger(__name__)


class ScrapeStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


@dataclass
class AgencyRecord:
    id: int
    name: str
    short_name: Optional[str]
    slug: Optional[str]


@dataclass
class TitleRecord:
    number: int
    name: str
    snapshot_dates: List[str] = field(default_factory=list)
    scrape_status: ScrapeStatus = ScrapeStatus.PENDING
    last_scraped: Optional[datetime] = None


@dataclass
class SnapshotRecord:
    title_number: int
    effective_date: str
    word_count: int
    restriction_count: int
    checksum: str
    restriction_density_score: float
    created_at: Optional[str] = None


class BaseDAO:
    def __init__(self, connection: sqlite3.Connection):
        self.connection = connection

    def _fetchone(self, query: str, params: Iterable[Any] = ()) -> Optional[sqlite3.Row]:
        self.connection.row_factory = sqlite3.Row
        cursor = self.connection.execute(query, tuple(params))
        return cursor.fetchone()

    def _fetchall(self, query: str, params: Iterable[Any] = ()) -> list[sqlite3.Row]:
        self.connection.row_factory = sqlite3.Row
        cursor = self.connection.execute(query, tuple(params))
        return list(cursor.fetchall())

    def _count(self, table: str) -> int:
        row = self._fetchone(f"SELECT COUNT(*) AS n FROM {table}")
        return int(row["n"]) if row else 0


class AgencyDAO(BaseDAO):
    """CRUD helpers for :class:`agencies` rows, keyed by ``name``."""

    def upsert(self, name: str, *, slug: str | None = None, short_name: str | None = None) -> int:
        # identity is the name; only descriptive fields follow the registry
        self.connection.execute(
            """
            INSERT INTO agencies (name, short_name, slug) VALUES (?, ?, ?)
            ON CONFLICT(name) DO UPDATE SET
                slug=COALESCE(excluded.slug, agencies.slug),
                short_name=COALESCE(excluded.short_name, agencies.short_name)
            """,
            (name, short_name, slug),
        )
        self.connection.commit()
        row = self._fetchone("SELECT id FROM agencies WHERE name = ?", (name,))
        return int(row["id"])

    def get_by_name(self, name: str) -> Optional[AgencyRecord]:
        row = self._fetchone(
            "SELECT id, name, short_name, slug FROM agencies WHERE name = ?", (name,)
        )
        return _agency(row) if row else None

    def list_all(self) -> list[AgencyRecord]:
        rows = self._fetchall("SELECT id, name, short_name, slug FROM agencies ORDER BY name")
        return [_agency(row) for row in rows]

    def count(self) -> int:
        return self._count("agencies")


class TitleDAO(BaseDAO):
    """CRUD helpers for :class:`regulation_titles` rows."""

    def upsert(self, number: int, name: str) -> None:
        """Create the title or follow a rename; dates and status are left alone."""

        self.connection.execute(
            """
            INSERT INTO regulation_titles (title_number, title_name) VALUES (?, ?)
            ON CONFLICT(title_number) DO UPDATE SET title_name=excluded.title_name
            """,
            (number, name),
        )
        self.connection.commit()

    def get(self, number: int) -> Optional[TitleRecord]:
        row = self._fetchone(
            """
            SELECT title_number, title_name, snapshot_dates, scrape_status, last_scraped
            FROM regulation_titles WHERE title_number = ?
            """,
            (number,),
        )
        return _title(row) if row else None

    def exists(self, number: int) -> bool:
        row = self._fetchone(
            "SELECT 1 FROM regulation_titles WHERE title_number = ?", (number,)
        )
        return row is not None

    def list_all(self) -> list[TitleRecord]:
        rows = self._fetchall(
            """
            SELECT title_number, title_name, snapshot_dates, scrape_status, last_scraped
            FROM regulation_titles ORDER BY title_number
            """
        )
        return [_title(row) for row in rows]

    def numbers(self) -> list[int]:
        rows = self._fetchall("SELECT title_number FROM regulation_titles ORDER BY title_number")
        return [int(row["title_number"]) for row in rows]

    def set_snapshot_dates(self, number: int, dates: Iterable[str]) -> list[str]:
        """Store ``dates`` plus every date already materialized as a snapshot.

        Dates are ISO strings; the stored list is deduplicated, newest first,
        and is returned.
        """

        rows = self._fetchall(
            "SELECT effective_date FROM regulation_snapshots WHERE title_number = ?",
            (number,),
        )
        merged = set(dates) | {row["effective_date"] for row in rows}
        stored = sorted(merged, reverse=True)
        self.connection.execute(
            "UPDATE regulation_titles SET snapshot_dates = ? WHERE title_number = ?",
            (json.dumps(stored), number),
        )
        self.connection.commit()
        return stored

    def mark_completed(self, number: int, when: datetime) -> None:
        self.connection.execute(
            """
            UPDATE regulation_titles SET scrape_status = ?, last_scraped = ?
            WHERE title_number = ?
            """,
            (ScrapeStatus.COMPLETED.value, when.isoformat(), number),
        )
        self.connection.commit()

    def count(self) -> int:
        return self._count("regulation_titles")


class AgencyTitleDAO(BaseDAO):
    """Link rows stating that an agency administers a title."""

    def upsert(self, agency_id: int, title_number: int) -> bool:
        """Insert the link if missing; return ``True`` when a row was created."""

        cursor = self.connection.execute(
            """
            INSERT INTO agency_titles (agency_id, title_number) VALUES (?, ?)
            ON CONFLICT(agency_id, title_number) DO NOTHING
            """,
            (agency_id, title_number),
        )
        self.connection.commit()
        return cursor.rowcount == 1

    def titles_for_agency(self, agency_id: int) -> list[int]:
        rows = self._fetchall(
            "SELECT title_number FROM agency_titles WHERE agency_id = ? ORDER BY title_number",
            (agency_id,),
        )
        return [int(row["title_number"]) for row in rows]

    def count(self) -> int:
        return self._count("agency_titles")


class SnapshotDAO(BaseDAO):
    """Create-only access to :class:`regulation_snapshots`."""

    _COLUMNS = (
        "title_number, effective_date, word_count, restriction_count, checksum, "
        "restriction_density_score, created_at"
    )

    def exists(self, title_number: int, effective_date: str) -> bool:
        row = self._fetchone(
            "SELECT 1 FROM regulation_snapshots WHERE title_number = ? AND effective_date = ?",
            (title_number, effective_date),
        )
        return row is not None

    def create(self, record: SnapshotRecord) -> None:
        """Insert ``record``; an existing ``(title, date)`` row raises :class:`SnapshotExistsError`."""

        created_at = record.created_at or datetime.now().astimezone().isoformat()
        try:
            with self.connection:
                self.connection.execute(
                    f"INSERT INTO regulation_snapshots ({self._COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        record.title_number,
                        record.effective_date,
                        record.word_count,
                        record.restriction_count,
                        record.checksum,
                        record.restriction_density_score,
                        created_at,
                    ),
                )
        except sqlite3.IntegrityError as exc:
            if "UNIQUE" in str(exc).upper():
                raise SnapshotExistsError(record.title_number, record.effective_date) from exc
            raise

    def loaded_dates(self, title_number: int) -> list[str]:
        rows = self._fetchall(
            """
            SELECT effective_date FROM regulation_snapshots
            WHERE title_number = ? ORDER BY effective_date DESC
            """,
            (title_number,),
        )
        return [row["effective_date"] for row in rows]

    def history(self, title_number: int) -> list[SnapshotRecord]:
        rows = self._fetchall(
            f"""
            SELECT {self._COLUMNS} FROM regulation_snapshots
            WHERE title_number = ? ORDER BY effective_date ASC
            """,
            (title_number,),
        )
        return [_snapshot(row) for row in rows]

    def latest_for_title(self, title_number: int) -> Optional[SnapshotRecord]:
        row = self._fetchone(
            f"""
            SELECT {self._COLUMNS} FROM regulation_snapshots
            WHERE title_number = ? ORDER BY effective_date DESC LIMIT 1
            """,
            (title_number,),
        )
        return _snapshot(row) if row else None

    def list_all(self) -> list[SnapshotRecord]:
        rows = self._fetchall(
            f"""
            SELECT {self._COLUMNS} FROM regulation_snapshots
            ORDER BY effective_date ASC, title_number ASC
            """
        )
        return [_snapshot(row) for row in rows]

    def count(self) -> int:
        return self._count("regulation_snapshots")


# Children before parents so foreign keys hold at every step.
RESET_ORDER = ("regulation_snapshots", "agency_titles", "regulation_titles", "agencies")


def reset_catalog(connection: sqlite3.Connection) -> None:
    """Delete every catalog row in one transaction.

    Any failure rolls the whole wipe back and surfaces as :class:`ResetError`.
    """

    logger.warning("Wiping catalog tables: %s", ", ".join(RESET_ORDER))
    try:
        with connection:
            for table in RESET_ORDER:
                connection.execute(f"DELETE FROM {table}")
    except sqlite3.Error as exc:
        logger.error("Catalog wipe failed: %s", exc)
        raise ResetError(f"Catalog reset failed: {exc}") from exc


def _agency(row: sqlite3.Row) -> AgencyRecord:
    return AgencyRecord(
        id=int(row["id"]),
        name=row["name"],
        short_name=row["short_name"],
        slug=row["slug"],
    )


def _title(row: sqlite3.Row) -> TitleRecord:
    last = row["last_scraped"]
    return TitleRecord(
        number=int(row["title_number"]),
        name=row["title_name"],
        snapshot_dates=json.loads(row["snapshot_dates"] or "[]"),
        scrape_status=ScrapeStatus(row["scrape_status"]),
        last_scraped=datetime.fromisoformat(last) if last else None,
    )


def _snapshot(row: sqlite3.Row) -> SnapshotRecord:
    return SnapshotRecord(
        title_number=int(row["title_number"]),
        effective_date=row["effective_date"],
        word_count=int(row["word_count"]),
        restriction_count=int(row["restriction_count"]),
        checksum=row["checksum"],
        restriction_density_score=float(row["restriction_density_score"]),
        created_at=row["created_at"],
    )
