"""Backend repositories.

The protocols are what the engine depends on; the ``Http*`` classes talk to
the console REST API through :class:`console_core.client.ApiClient`. Every
method returns the raw decoded payload, leaving shape handling to
:mod:`console_core.canonical`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Protocol

from console_core.client import ApiClient
from console_core.periods import MonthBounds


class UserRepository(Protocol):
    async def list_users(self, active_only: bool) -> Any: ...


class GroupementRepository(Protocol):
    async def list(self) -> Any: ...


class SiteRepository(Protocol):
    async def list(self, page: int, page_size: int) -> Any: ...


class BrandRepository(Protocol):
    async def list(self, only_active: bool, page: int, page_size: int) -> Any: ...


class UserSiteRepository(Protocol):
    async def list_all(self) -> Any: ...

    async def get_by_id(self, assignment_id: int) -> Any: ...

    async def search(self, filters: Mapping[str, Any]) -> Any: ...


class PeriodRepository(Protocol):
    async def list_active(self, page: int, page_size: int) -> Any: ...


class ObjectiveRepository(Protocol):
    async def list_view(self, period_id: int, site_id: Optional[int] = None) -> Any: ...


class SaleRepository(Protocol):
    async def list(
        self,
        page: int,
        page_size: int,
        bounds: Optional[MonthBounds] = None,
        branch_id: Optional[int] = None,
        agency_id: Optional[int] = None,
    ) -> Any: ...

    async def create(self, payload: Mapping[str, Any]) -> Any: ...

    async def update(self, sale_id: int, payload: Mapping[str, Any]) -> Any: ...


def unwrap(body: Any) -> Any:
    """Inner ``data`` of a ``{success, message, data}`` envelope, else the body."""
    if isinstance(body, Mapping) and "data" in body and body.get("data") is not None:
        return body["data"]
    return body


class _HttpRepository:
    def __init__(self, client: ApiClient):
        self.client = client


class HttpUserRepository(_HttpRepository):
    async def list_users(self, active_only: bool) -> Any:
        return unwrap(await self.client.get("/api/auth/users", {"active_only": active_only}))


class HttpGroupementRepository(_HttpRepository):
    async def list(self) -> Any:
        return unwrap(await self.client.get("/api/groupements"))


class HttpSiteRepository(_HttpRepository):
    """Branches (``/api/filiales``) or agencies (``/api/succursales``)."""

    def __init__(self, client: ApiClient, path: str):
        super().__init__(client)
        self.path = path

    async def list(self, page: int, page_size: int) -> Any:
        return await self.client.get(self.path, {"page": page, "pageSize": page_size})


class HttpBrandRepository(_HttpRepository):
    async def list(self, only_active: bool, page: int, page_size: int) -> Any:
        return await self.client.get(
            "/api/marques",
            {"onlyActive": only_active, "page": page, "pageSize": page_size},
        )


class HttpUserSiteRepository(_HttpRepository):
    async def list_all(self) -> Any:
        return unwrap(await self.client.get("/api/user-sites"))

    async def get_by_id(self, assignment_id: int) -> Any:
        return unwrap(await self.client.get(f"/api/user-sites/{int(assignment_id)}"))

    async def search(self, filters: Mapping[str, Any]) -> Any:
        return unwrap(await self.client.get("/api/user-sites/search", filters))


class HttpPeriodRepository(_HttpRepository):
    async def list_active(self, page: int, page_size: int) -> Any:
        return await self.client.get("/api/periode", {"page": page, "pageSize": page_size})


class HttpObjectiveRepository(_HttpRepository):
    async def list_view(self, period_id: int, site_id: Optional[int] = None) -> Any:
        return await self.client.get("/api/objectifs/view", {"periodeId": period_id, "siteId": site_id})


class HttpSaleRepository(_HttpRepository):
    async def list(
        self,
        page: int,
        page_size: int,
        bounds: Optional[MonthBounds] = None,
        branch_id: Optional[int] = None,
        agency_id: Optional[int] = None,
    ) -> Any:
        params: Dict[str, Any] = {"page": page, "pageSize": page_size}
        if bounds is not None:
            params.update(bounds.as_params())
        params["idFiliale"] = branch_id
        params["idSuccursale"] = agency_id
        return await self.client.get("/api/ventes", params)

    async def create(self, payload: Mapping[str, Any]) -> Any:
        return await self.client.post("/api/ventes", json=dict(payload))

    async def update(self, sale_id: int, payload: Mapping[str, Any]) -> Any:
        return await self.client.patch(f"/api/ventes/{int(sale_id)}", json=dict(payload))


@dataclass
class Repositories:
    users: UserRepository
    groupements: GroupementRepository
    branches: SiteRepository
    agencies: SiteRepository
    brands: BrandRepository
    user_sites: UserSiteRepository
    periods: PeriodRepository
    objectives: ObjectiveRepository
    sales: SaleRepository


def build_repositories(client: ApiClient) -> Repositories:
    return Repositories(
        users=HttpUserRepository(client),
        groupements=HttpGroupementRepository(client),
        branches=HttpSiteRepository(client, "/api/filiales"),
        agencies=HttpSiteRepository(client, "/api/succursales"),
        brands=HttpBrandRepository(client),
        user_sites=HttpUserSiteRepository(client),
        periods=HttpPeriodRepository(client),
        objectives=HttpObjectiveRepository(client),
        sales=HttpSaleRepository(client),
    )
