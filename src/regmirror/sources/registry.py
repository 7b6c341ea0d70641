from __future__ import annotations

import logging
from typing import Any, List, Type, TypeVar

import requests
from pydantic import BaseModel, ValidationError

from ..errors import RegistryFetchError, RegistryParseError
from .rate_limit import NullRateLimiter
from .schemas import (
    AgencyListing,
    AgencyPayload,
    TitleListing,
    TitlePayload,
    VersionListing,
)

logger = logging.getLogger(__name__)

_M = TypeVar("_M", bound=BaseModel)


class RegistryClient:
    """Read-only accessor for the regulatory registry API.

    Every public method is one blocking GET. Calls share ``limiter`` so the
    pause between consecutive requests holds across all endpoints. Nothing
    is retried here; callers decide what a failure means for their loop.
    """

    def __init__(
        self,
        api_base: str = "https://www.ecfr.gov/api",
        *,
        session: requests.Session | None = None,
        limiter=None,
        timeout_s: float = 30.0,
        user_agent: str | None = None,
    ):
        self.api_base = api_base.rstrip("/")
        self.session = session or requests.Session()
        self.limiter = limiter or NullRateLimiter()
        self.timeout_s = timeout_s
        self.user_agent = user_agent or "regmirror/0.1"

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------
    def agencies_url(self) -> str:
        return f"{self.api_base}/admin/v1/agencies.json"

    def titles_url(self) -> str:
        return f"{self.api_base}/versioner/v1/titles.json"

    def versions_url(self, title_number: int) -> str:
        return f"{self.api_base}/versioner/v1/versions/title-{title_number}.json"

    def document_url(self, title_number: int, date: str) -> str:
        return f"{self.api_base}/versioner/v1/full/{date}/title-{title_number}.xml"

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def list_agencies(self) -> List[AgencyPayload]:
        """Return every agency, sub-agencies included, in listing order."""

        listing = self._get_model(self.agencies_url(), AgencyListing)
        return listing.flattened()

    def list_titles(self) -> List[TitlePayload]:
        listing = self._get_model(self.titles_url(), TitleListing)
        return list(listing.titles)

    def list_version_dates(self, title_number: int) -> List[str]:
        """Raw ``issue_date`` values for a title; duplicates and order as sent."""

        listing = self._get_model(self.versions_url(title_number), VersionListing)
        return [version.issue_date for version in listing.content_versions]

    def fetch_document(self, title_number: int, date: str) -> bytes:
        """Full-text XML of ``title_number`` as of ``date``."""

        return self._get(self.document_url(title_number, date)).content

    # ------------------------------------------------------------------
    # Network helpers
    # ------------------------------------------------------------------
    def _get(self, url: str) -> Any:
        self.limiter.acquire()
        logger.debug("Fetching %s", url)
        headers = {"User-Agent": self.user_agent}
        try:
            resp = self.session.get(url, headers=headers, timeout=self.timeout_s)
        except requests.RequestException as exc:
            raise RegistryFetchError(f"Request to {url} failed: {exc}", url=url) from exc
        try:
            resp.raise_for_status()
        except requests.HTTPError as exc:
            raise RegistryFetchError(
                f"{url} answered HTTP {resp.status_code}",
                url=url,
                status_code=resp.status_code,
            ) from exc
        return resp

    def _get_model(self, url: str, model: Type[_M]) -> _M:
        resp = self._get(url)
        try:
            payload = resp.json()
        except ValueError as exc:
            raise RegistryParseError(f"{url} did not return JSON", url=url) from exc
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise RegistryParseError(
                f"{url} returned an unexpected {model.__name__} payload: {exc}",
                url=url,
            ) from exc


__all__ = ["RegistryClient"]
