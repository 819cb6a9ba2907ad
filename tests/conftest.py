"""Shared fixtures: in-memory repositories recording every call."""

from collections import Counter
from typing import Any, Dict, List, Optional

import pytest

from console_core.client import TransportError
from console_core.repositories import Repositories


class FakeBackend:
    """Serves canned payloads shaped like the real backend envelopes.

    ``fail`` maps a call name (``"branches"``, ``"user_sites.search"``...) to
    the exception it should raise.
    """

    def __init__(self, data: Dict[str, Any]):
        self.data = data
        self.calls: Counter = Counter()
        self.fail: Dict[str, Exception] = {}
        self.sale_queries: List[Dict[str, Any]] = []
        self.objective_queries: List[Dict[str, Any]] = []
        self.created: List[Dict[str, Any]] = []
        self.updated: List[Any] = []

    async def hit(self, name: str) -> None:
        self.calls[name] += 1
        if name in self.fail:
            raise self.fail[name]

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())


class _Repo:
    def __init__(self, backend: FakeBackend, name: str):
        self.backend = backend
        self.name = name


class FakeUsers(_Repo):
    async def list_users(self, active_only: bool) -> Any:
        await self.backend.hit("users_active" if active_only else "users")
        rows = self.backend.data["users"]
        if active_only:
            rows = [r for r in rows if r.get("UserActive")]
        return {"data": rows, "total": len(rows)}


class FakeList(_Repo):
    async def list(self, *args: Any) -> Any:
        await self.backend.hit(self.name)
        return self.backend.data[self.name]


class FakeUserSites(_Repo):
    async def list_all(self) -> Any:
        await self.backend.hit("user_sites")
        return self.backend.data["user_sites"]

    async def get_by_id(self, assignment_id: int) -> Any:
        await self.backend.hit("user_sites.get")
        for row in self.backend.data["user_sites"]:
            if row.get("id") == assignment_id:
                return row
        return None

    async def search(self, filters: Dict[str, Any]) -> Any:
        await self.backend.hit("user_sites.search")
        return [r for r in self.backend.data["user_sites"] if r.get("idSite") == filters.get("idSite")]


class FakePeriods(_Repo):
    async def list_active(self, page: int, page_size: int) -> Any:
        await self.backend.hit("periods")
        return self.backend.data["periods"]


class FakeObjectives(_Repo):
    async def list_view(self, period_id: int, site_id: Optional[int] = None) -> Any:
        await self.backend.hit("objectives")
        self.backend.objective_queries.append({"period_id": period_id, "site_id": site_id})
        rows = [r for r in self.backend.data["objectives"] if r.get("periodeID") == period_id]
        if site_id is not None:
            rows = [r for r in rows if r.get("SiteID") == site_id]
        return {"success": True, "data": rows}


class FakeSales(_Repo):
    async def list(self, page, page_size, bounds=None, branch_id=None, agency_id=None) -> Any:
        await self.backend.hit("sales")
        self.backend.sale_queries.append(
            {"page": page, "page_size": page_size, "bounds": bounds, "branch_id": branch_id, "agency_id": agency_id}
        )
        rows = self.backend.data["sales"]
        if branch_id is not None:
            rows = [r for r in rows if r.get("idFiliale") == branch_id]
        if agency_id is not None:
            rows = [r for r in rows if r.get("idSuccursale") == agency_id]
        return {
            "success": True,
            "data": {
                "data": rows[:page_size],
                "pagination": {"page": page, "pageSize": page_size, "totalCount": len(rows)},
            },
        }

    async def create(self, payload: Dict[str, Any]) -> Any:
        await self.backend.hit("sales.create")
        self.backend.created.append(dict(payload))
        return {"success": True, "data": {"VenteId": 99, **payload}}

    async def update(self, sale_id: int, payload: Dict[str, Any]) -> Any:
        await self.backend.hit("sales.update")
        self.backend.updated.append((sale_id, dict(payload)))
        return {"success": True, "data": {"VenteId": sale_id, **payload}}


def sample_data() -> Dict[str, Any]:
    return {
        "users": [
            {"UserId": 1, "FullName": "Ana", "SiteId": 7, "GroupementType": "Succursale", "UserActive": True},
            {"UserId": 2, "FullName": "Ben", "SiteId": 7, "GroupementType": "Succursale", "UserActive": False},
            {"UserId": 3, "FullName": "Cyd", "SiteId": 3, "GroupementType": "Filiale", "UserActive": True},
        ],
        "groupements": {"success": True, "data": [
            {"id": 1, "name": "Filiale", "active": True},
            {"id": 2, "name": "Succursale", "active": True},
        ]},
        "branches": {"data": {"data": [
            {"id": 3, "name": "Casablanca", "active": True},
            {"id": 4, "name": "Rabat", "active": False},
        ]}},
        "agencies": {"data": {"items": [
            {"id": 7, "name": "Agadir", "active": True},
            {"id": 8, "name": "Fes", "active": True},
        ]}},
        "brands": {"data": {"results": [
            {"id": 10, "name": "Alpha", "idFiliale": 3, "active": True},
            {"id": 11, "name": "Beta", "idSuccursale": 7, "active": True},
            {"id": 12, "name": "Gamma", "idSuccursale": 7, "active": False},
        ]}},
        "user_sites": [
            {"id": 21, "idGroupement": 2, "groupement_name": "Succursale", "idSite": 7, "site_name": "Agadir"},
            {"id": 22, "idGroupement": 1, "groupement_name": "Filiale", "idSite": 3, "site_name": "Casablanca", "active": False},
        ],
        "periods": {"data": {"data": [
            {"id": 5, "name": "Jan 2026", "year": 2026, "month": 1, "startedDate": "2026-01-01", "endDate": "2026-01-31"},
            {"id": 6, "name": "Q1 2026", "year": 2026, "month": 3, "startedDate": "2026-01-15", "endDate": "2026-03-20"},
        ]}},
        "objectives": [
            {"id": 1, "periodeID": 6, "SiteID": 7},
            {"id": 2, "periodeID": 6, "SiteID": 3},
            {"id": 3, "periodeID": 5, "SiteID": 7},
        ],
        "sales": [
            {"VenteId": 1, "idSuccursale": 7},
            {"VenteId": 2, "idSuccursale": 7},
            {"VenteId": 3, "idFiliale": 3},
        ],
    }


def make_repositories(backend: FakeBackend) -> Repositories:
    return Repositories(
        users=FakeUsers(backend, "users"),
        groupements=FakeList(backend, "groupements"),
        branches=FakeList(backend, "branches"),
        agencies=FakeList(backend, "agencies"),
        brands=FakeList(backend, "brands"),
        user_sites=FakeUserSites(backend, "user_sites"),
        periods=FakePeriods(backend, "periods"),
        objectives=FakeObjectives(backend, "objectives"),
        sales=FakeSales(backend, "sales"),
    )


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend(sample_data())


@pytest.fixture
def repos(backend: FakeBackend) -> Repositories:
    return make_repositories(backend)


@pytest.fixture
def backend_error() -> TransportError:
    return TransportError("HTTP 500 from /api/filiales", status_code=500, payload={"success": False, "error": "Branches unavailable"})

