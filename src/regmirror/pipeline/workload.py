"""Turn a run request into the concrete list of titles and snapshot cap."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from ..config import Settings

logger = logging.getLogger(__name__)

DEMO = "demo"
CUSTOM = "custom"
MODES = (DEMO, CUSTOM)


@dataclass(frozen=True)
class Workload:
    mode: str
    target_titles: Tuple[int, ...]
    snapshot_limit: int


def parse_title_list(text: Optional[str]) -> List[int]:
    """Parse ``"1, 14, 40abc,  "`` into ``[1, 14]``.

    Tokens are comma separated and trimmed; anything that is not a positive
    decimal integer is dropped. Order and repeats are kept.
    """

    if not text:
        return []
    titles: List[int] = []
    for token in text.split(","):
        token = token.strip()
        if not token.isdecimal():
            if token:
                logger.debug("Ignoring non-numeric title token %r", token)
            continue
        number = int(token)
        if number >= 1:
            titles.append(number)
    return titles


def parse_limit(value: Union[int, str, None], default: int) -> int:
    """Snapshot cap from user input; falls back to ``default``, floors at 1."""

    if value is None or isinstance(value, bool):
        return max(default, 1)
    try:
        limit = int(str(value).strip())
    except ValueError:
        logger.warning("Snapshot limit %r is not a number; using %s", value, default)
        return max(default, 1)
    if limit < 1:
        logger.warning("Snapshot limit %s is below 1; using 1", limit)
        return 1
    return limit


def resolve_workload(
    mode: str,
    titles: Optional[str] = None,
    limit: Union[int, str, None] = None,
    *,
    settings: Optional[Settings] = None,
) -> Workload:
    """Resolve ``mode`` plus optional overrides into a :class:`Workload`.

    This never raises: malformed input degrades to the configured defaults.
    """

    settings = settings or Settings()
    mode = (mode or "").strip().lower()
    if mode not in MODES:
        logger.warning("Unknown ingestion mode %r; falling back to %s", mode, DEMO)
        mode = DEMO

    if mode == DEMO:
        workload = Workload(
            mode=DEMO,
            target_titles=tuple(settings.demo_titles),
            snapshot_limit=max(settings.demo_snapshot_limit, 1),
        )
    else:
        workload = Workload(
            mode=CUSTOM,
            target_titles=tuple(parse_title_list(titles)),
            snapshot_limit=parse_limit(limit, settings.default_snapshot_limit),
        )

    if workload.snapshot_limit > settings.high_load_threshold:
        logger.warning(
            "High load: %s snapshots per title requested for %s titles; "
            "downloading and parsing full documents will take a while",
            workload.snapshot_limit,
            len(workload.target_titles),
        )
    if not workload.target_titles:
        logger.warning("Workload has no target titles")
    return workload
