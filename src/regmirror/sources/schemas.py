"""Typed views of the registry's JSON payloads.

Only the fields the mirror relies on are declared; anything else the
registry sends is ignored. A payload that lacks a required field fails
validation instead of being filled with a default.
"""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class CrossReference(_Payload):
    """One ``cfr_references`` entry of an agency.

    ``title`` is kept as sent; :attr:`title_number` decides whether it is
    usable as a link target.
    """

    title: Any = None

    @property
    def title_number(self) -> Optional[int]:
        value = self.title
        # bool is an int subclass; ``true`` is not a title number
        if isinstance(value, bool) or not isinstance(value, int):
            return None
        return value if value >= 1 else None


class AgencyPayload(_Payload):
    name: Optional[str] = None
    short_name: Optional[str] = None
    slug: Optional[str] = None
    cfr_references: List[CrossReference] = Field(default_factory=list)
    children: List["AgencyPayload"] = Field(default_factory=list)

    @property
    def display(self) -> Optional[str]:
        """Business key used for the local agency row."""

        for candidate in (self.name, self.short_name):
            if candidate and candidate.strip():
                return candidate.strip()
        return None


class AgencyListing(_Payload):
    agencies: List[AgencyPayload]

    def flattened(self) -> List[AgencyPayload]:
        """Top-level agencies followed by their sub-agencies, depth first."""

        out: List[AgencyPayload] = []
        stack = list(reversed(self.agencies))
        while stack:
            agency = stack.pop()
            out.append(agency)
            stack.extend(reversed(agency.children))
        return out


class TitlePayload(_Payload):
    number: int = Field(ge=1)
    name: str

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title name must not be blank")
        return value


class TitleListing(_Payload):
    titles: List[TitlePayload]


class ContentVersion(_Payload):
    issue_date: str


class VersionListing(_Payload):
    content_versions: List[ContentVersion]


AgencyPayload.model_rebuild()


__all__ = [
    "AgencyListing",
    "AgencyPayload",
    "ContentVersion",
    "CrossReference",
    "TitleListing",
    "TitlePayload",
    "VersionListing",
]
