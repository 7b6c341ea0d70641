from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from typing import List, Optional

from ..db import AgencyDAO, TitleDAO, reset_catalog
from ..errors import RegistryError
from .dates import fetch_dates
from .links import LinkResolver, LinkSummary

logger = logging.getLogger(__name__)


@dataclass
class SyncSummary:
    reset_performed: bool = False
    agency_count: int = 0
    title_count: int = 0
    links: LinkSummary = field(default_factory=LinkSummary)
    date_failures: List[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "resetPerformed": self.reset_performed,
            "agencyCount": self.agency_count,
            "titleCount": self.title_count,
            "linksCreated": self.links.created,
            "dateFailures": list(self.date_failures),
        }


class MetadataSynchronizer:
    """Refresh the global catalog: agencies, titles, links and version dates.

    The client's rate limiter paces the per-title version requests. Listing
    agencies or titles is required for a meaningful sync, so failures there
    propagate; a failed version listing only affects that one title.
    """

    def __init__(
        self,
        connection: sqlite3.Connection,
        client,
        *,
        link_resolver: Optional[LinkResolver] = None,
    ):
        self.connection = connection
        self.client = client
        self.agencies = AgencyDAO(connection)
        self.titles = TitleDAO(connection)
        self.link_resolver = link_resolver or LinkResolver(connection)

    def synchronize(self, reset: bool = False) -> SyncSummary:
        logger.info("Starting metadata sync (reset=%s)", reset)
        summary = SyncSummary()

        if reset:
            reset_catalog(self.connection)
            summary.reset_performed = True

        agency_payloads = self.client.list_agencies()
        for payload in agency_payloads:
            name = payload.display
            if not name:
                logger.debug("Skipping agency without a name: %r", payload.slug)
                continue
            self.agencies.upsert(name, slug=payload.slug, short_name=payload.short_name)
            summary.agency_count += 1

        title_payloads = self.client.list_titles()
        for title in title_payloads:
            self.titles.upsert(title.number, title.name)
            summary.title_count += 1
        logger.info(
            "Catalog upserted: %s agencies, %s titles",
            summary.agency_count,
            summary.title_count,
        )

        summary.links = self.link_resolver.resolve_links(agency_payloads)

        for number in self.titles.numbers():
            if self.refresh_dates(number) is None:
                summary.date_failures.append(number)

        if summary.date_failures:
            logger.warning(
                "Version dates unavailable for %s titles: %s",
                len(summary.date_failures),
                summary.date_failures,
            )
        logger.info("Metadata sync finished")
        return summary

    def refresh_dates(self, title_number: int) -> Optional[List[str]]:
        """Fetch, normalize and store a title's version dates.

        Returns the stored list, or ``None`` when the registry call failed and
        the previously stored dates were kept.
        """

        try:
            dates = fetch_dates(self.client, title_number)
        except RegistryError as exc:
            logger.warning("Skipped dates for title %s: %s", title_number, exc)
            return None
        stored = self.titles.set_snapshot_dates(title_number, dates)
        logger.debug("Title %s has %s known versions", title_number, len(stored))
        return stored
