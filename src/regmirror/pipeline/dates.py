from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, List

logger = logging.getLogger(__name__)


def normalize_dates(raw_dates: Iterable[str]) -> List[str]:
    """Deduplicate version dates and order them newest first.

    Each value is parsed as an ISO-8601 calendar date and re-emitted in
    canonical ``YYYY-MM-DD`` form, so ``"2024-01-05"`` and ``" 2024-01-05"``
    collapse to one entry. Values that are not dates are dropped.
    """

    parsed: set[date] = set()
    for raw in raw_dates:
        try:
            parsed.add(date.fromisoformat(str(raw).strip()))
        except ValueError:
            logger.warning("Ignoring malformed version date %r", raw)
    return [d.isoformat() for d in sorted(parsed, reverse=True)]


def newest(dates: List[str], limit: int) -> List[str]:
    """The first ``limit`` entries of an already newest-first list."""

    return list(dates[: max(limit, 0)])


def fetch_dates(client, title_number: int) -> List[str]:
    """Current version dates of a title from the registry, newest first.

    Registry failures propagate as :class:`~regmirror.errors.RegistryError`.
    """

    return normalize_dates(client.list_version_dates(title_number))
