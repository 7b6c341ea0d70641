"""Deterministic metrics computed for every stored snapshot.

The registry serves documents as XML. :func:`normalize_document` flattens a
document into one whitespace-normalized string; the remaining functions
operate on that string only, so the same document always yields the same
checksum and counts.
"""

from __future__ import annotations

import hashlib
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass

from .errors import DocumentParseError

# Terms that express a binding obligation or prohibition.
RESTRICTION_TERMS = ("shall", "must", "may not", "required", "prohibited")

_RESTRICTION_RE = re.compile(
    r"\b(?:" + "|".join(term.replace(" ", r"\s+") for term in RESTRICTION_TERMS) + r")\b",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class SnapshotMetrics:
    checksum: str
    word_count: int
    restriction_count: int
    density_score: float


def normalize_document(raw: bytes | str) -> str:
    """Flatten an XML document into its text content.

    Text and tail fragments are collected in document order and every run
    of whitespace becomes a single space. Markup, attributes and comments
    do not contribute.
    """

    try:
        root = ET.fromstring(raw)
    except ET.ParseError as exc:
        raise DocumentParseError(f"Malformed document XML: {exc}") from exc
    return " ".join(" ".join(root.itertext()).split())


def checksum(text: str) -> str:
    """SHA-256 hex digest of ``text`` (change detection, not security)."""

    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def word_count(text: str) -> int:
    # str.split() without a separator yields [] for blank input
    return len(text.split())


def restriction_count(text: str) -> int:
    return sum(1 for _ in _RESTRICTION_RE.finditer(text))


def density_score(words: int, restrictions: int) -> float:
    """Restriction terms per thousand words; ``0.0`` for an empty text."""

    if words <= 0:
        return 0.0
    return restrictions / words * 1000


def compute_metrics(text: str) -> SnapshotMetrics:
    words = word_count(text)
    restrictions = restriction_count(text)
    return SnapshotMetrics(
        checksum=checksum(text),
        word_count=words,
        restriction_count=restrictions,
        density_score=density_score(words, restrictions),
    )


__all__ = [
    "RESTRICTION_TERMS",
    "SnapshotMetrics",
    "checksum",
    "compute_metrics",
    "density_score",
    "normalize_document",
    "restriction_count",
    "word_count",
]
