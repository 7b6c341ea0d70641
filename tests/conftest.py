from __future__ import annotations

from typing import Dict, Iterable, List, Tuple

import pytest
from hypothesis import HealthCheck, settings

from regmirror.db import connect
from regmirror.errors import RegistryFetchError
from regmirror.sources.schemas import AgencyListing, AgencyPayload, TitlePayload

settings.register_profile(
    "ci",
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)
settings.load_profile("ci")


def make_document(title_number: int, date: str, extra: str = "") -> bytes:
    """Small registry-style XML document; content varies with title and date."""

    return (
        f"<ECFR><DIV1 N=\"{title_number}\" TYPE=\"TITLE\">"
        f"<HEAD>Title {title_number} as of {date}</HEAD>"
        "<P>Each applicant shall file a report. The report must be signed.</P>"
        "<P>An applicant may not transfer a permit.  Records are required "
        f"and tampering is prohibited.{extra}</P>"
        "</DIV1></ECFR>"
    ).encode("utf-8")


class FakeRegistry:
    """In-memory stand-in for :class:`regmirror.sources.RegistryClient`."""

    def __init__(
        self,
        agencies: Iterable[dict] = (),
        titles: Iterable[Tuple[int, str]] = (),
        versions: Dict[int, List[str]] | None = None,
    ):
        self.agencies = AgencyListing.model_validate({"agencies": list(agencies)}).flattened()
        self.titles = [TitlePayload(number=n, name=name) for n, name in titles]
        self.versions: Dict[int, List[str]] = dict(versions or {})
        self.documents: Dict[Tuple[int, str], bytes] = {}
        self.failing_documents: set[Tuple[int, str]] = set()
        self.failing_versions: set[int] = set()
        self.calls: List[tuple] = []

    def list_agencies(self) -> List[AgencyPayload]:
        self.calls.append(("agencies",))
        return list(self.agencies)

    def list_titles(self) -> List[TitlePayload]:
        self.calls.append(("titles",))
        return list(self.titles)

    def list_version_dates(self, title_number: int) -> List[str]:
        self.calls.append(("versions", title_number))
        if title_number in self.failing_versions:
            raise RegistryFetchError("versions unavailable", status_code=503)
        return list(self.versions.get(title_number, []))

    def fetch_document(self, title_number: int, date: str) -> bytes:
        self.calls.append(("document", title_number, date))
        if (title_number, date) in self.failing_documents:
            raise RegistryFetchError("document unavailable", status_code=404)
        return self.documents.get((title_number, date), make_document(title_number, date))

    def document_calls(self) -> List[tuple]:
        return [call[1:] for call in self.calls if call[0] == "document"]


def ten_dates() -> List[str]:
    # unsorted with a duplicate, as the registry sends them
    return [
        "2023-03-01", "2024-01-05", "2022-06-30", "2024-01-05", "2023-11-20",
        "2021-02-14", "2024-06-01", "2022-01-10", "2023-07-04", "2020-12-31",
        "2021-09-09",
    ]


@pytest.fixture()
def registry() -> FakeRegistry:
    titles = [
        (1, "General Provisions"),
        (2, "Grants and Agreements"),
        (3, "The President"),
        (4, "Accounts"),
        (5, "Administrative Personnel"),
        (14, "Aeronautics and Space"),
    ]
    agencies = [
        {
            "name": "Federal Aviation Administration",
            "short_name": "FAA",
            "slug": "federal-aviation-administration",
            "cfr_references": [{"title": 14, "chapter": "I"}],
        },
        {
            "name": "Office of Personnel Management",
            "slug": "office-of-personnel-management",
            "cfr_references": [{"title": 5, "chapter": "I"}, {"title": 99}],
            "children": [
                {
                    "name": "Merit Systems Protection Board",
                    "slug": "merit-systems-protection-board",
                    "cfr_references": [{"title": 5, "chapter": "II"}],
                }
            ],
        },
        {"short_name": "NARA", "slug": "nara", "cfr_references": [{"title": 1}]},
    ]
    versions = {number: ten_dates() for number, _ in titles}
    return FakeRegistry(agencies=agencies, titles=titles, versions=versions)


@pytest.fixture()
def connection():
    conn = connect(":memory:")
    yield conn
    conn.close()
