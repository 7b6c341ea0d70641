from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Iterable, Sequence

from ..config import LinkFallback
from ..db import AgencyDAO, AgencyTitleDAO, TitleDAO
from ..sources.schemas import AgencyPayload

logger = logging.getLogger(__name__)


@dataclass
class LinkSummary:
    created: int = 0
    existing: int = 0
    skipped: int = 0
    fallback_applied: bool = False

    @property
    def resolved(self) -> int:
        return self.created + self.existing


class LinkResolver:
    """Derive agency → title links from the registry's cross references.

    Every link is written through an upsert, so running the resolver after
    each synchronization neither duplicates rows nor fails on them.
    """

    def __init__(
        self,
        connection: sqlite3.Connection,
        *,
        fallback_links: Sequence[LinkFallback] = (),
    ):
        self.agencies = AgencyDAO(connection)
        self.titles = TitleDAO(connection)
        self.links = AgencyTitleDAO(connection)
        self.fallback_links = tuple(fallback_links)

    def resolve_links(self, agencies: Iterable[AgencyPayload]) -> LinkSummary:
        summary = LinkSummary()
        known_titles = set(self.titles.numbers())

        for payload in agencies:
            name = payload.display
            if not name or not payload.cfr_references:
                continue
            agency = self.agencies.get_by_name(name)
            if agency is None:
                continue
            for ref in payload.cfr_references:
                number = ref.title_number
                if number is None or number not in known_titles:
                    summary.skipped += 1
                    continue
                if self.links.upsert(agency.id, number):
                    summary.created += 1
                else:
                    summary.existing += 1

        if summary.resolved == 0:
            logger.warning(
                "No agency/title links could be resolved from cross references "
                "(%s references skipped)",
                summary.skipped,
            )
            self._apply_fallback(summary, known_titles)

        logger.info(
            "Links: %s created, %s already present, %s skipped",
            summary.created,
            summary.existing,
            summary.skipped,
        )
        return summary

    def _apply_fallback(self, summary: LinkSummary, known_titles: set[int]) -> None:
        if not self.fallback_links:
            logger.warning("No fallback links configured; catalog has no associations")
            return
        for pair in self.fallback_links:
            agency = self.agencies.get_by_name(pair.agency)
            if agency is None or pair.title not in known_titles:
                logger.warning(
                    "Fallback link %r -> title %s ignored: agency or title unknown",
                    pair.agency,
                    pair.title,
                )
                continue
            if self.links.upsert(agency.id, pair.title):
                summary.created += 1
            else:
                summary.existing += 1
            summary.fallback_applied = True
