"""JSON API tests with the registry swapped for in-memory repositories."""

from fastapi.testclient import TestClient

from console_api.main import EngineRegistry, app, get_registry


def _client(repos):
    registry = EngineRegistry(repos)
    app.dependency_overrides[get_registry] = lambda: registry
    return TestClient(app), registry


def teardown_function(_):
    app.dependency_overrides.clear()


def test_initial_state_is_empty(repos):
    client, _ = _client(repos)
    res = client.get("/dashboard/global")
    assert res.status_code == 200
    body = res.json()
    assert body["stats"]["users"] == {"total": 0, "active": 0}
    assert body["period_kpis"]["period_label"] == "no active period"
    assert body["loading"] is False


def test_reload_global_then_export(repos):
    client, _ = _client(repos)
    res = client.post("/dashboard/global/reload")
    assert res.status_code == 200
    body = res.json()
    assert body["stats"]["sites"] == {"total": 4, "active": 3}
    assert body["period_kpis"]["sale_count"] == 3

    csv = client.get("/dashboard/global/export")
    assert csv.status_code == 200
    assert csv.headers["content-type"].startswith("text/csv")
    assert "Users,3,2,1" in csv.text


def test_reload_scoped_with_identity(repos):
    client, _ = _client(repos)
    res = client.post(
        "/dashboard/scoped/reload",
        json={"user_id": 1, "details": {"siteId": 7, "groupementType": "Succursale"}},
    )
    body = res.json()
    assert body["assignment"]["site_type"] == "Agency"
    assert body["stats"]["agencies"] == {"total": 1, "active": 1}


def test_scoped_without_assignment_then_clear_error(repos, backend):
    client, _ = _client(repos)
    body = client.post("/dashboard/scoped/reload", json={"user_id": 4}).json()
    assert body["error"] == "No active site assignment was found for this user."
    assert backend.total_calls == 0

    cleared = client.post("/dashboard/scoped/clear-error", params={"user_id": 4}).json()
    assert cleared["error"] is None


def test_scoped_dashboards_are_kept_per_user(repos):
    client, _ = _client(repos)
    client.post(
        "/dashboard/scoped/reload",
        json={"user_id": 1, "details": {"siteId": 7, "groupementType": "Succursale"}},
    )
    client.post(
        "/dashboard/scoped/reload",
        json={"user_id": 3, "details": {"siteId": 3, "groupementType": "Filiale"}},
    )

    agency = client.get("/dashboard/scoped", params={"user_id": 1}).json()
    assert agency["assignment"]["site_id"] == 7
    assert agency["stats"]["agencies"] == {"total": 1, "active": 1}
    assert agency["stats"]["branches"] == {"total": 0, "active": 0}
    assert agency["period_kpis"]["sale_count"] == 2

    branch = client.get("/dashboard/scoped", params={"user_id": 3}).json()
    assert branch["assignment"]["site_id"] == 3
    assert branch["stats"]["branches"] == {"total": 1, "active": 1}
    assert branch["stats"]["agencies"] == {"total": 0, "active": 0}
    assert branch["period_kpis"]["sale_count"] == 1

    assert "Agencies,1,1,0" in client.get("/dashboard/scoped/export", params={"user_id": 1}).text
    assert "Agencies,0,0,0" in client.get("/dashboard/scoped/export", params={"user_id": 3}).text

    unknown = client.get("/dashboard/scoped", params={"user_id": 2}).json()
    assert unknown["assignment"] is None
    assert unknown["stats"]["users"] == {"total": 0, "active": 0}


def test_scoped_routes_require_a_user(repos, backend):
    client, _ = _client(repos)
    assert client.get("/dashboard/scoped").status_code == 422
    assert client.get("/dashboard/scoped/export").status_code == 422
    assert client.post("/dashboard/scoped/clear-error").status_code == 422
    res = client.post("/dashboard/scoped/reload", json={"details": {"siteId": 7, "groupementType": "Succursale"}})
    assert res.status_code == 422
    assert res.json()["type"] == "ValueError"
    assert backend.total_calls == 0


def test_unknown_mode_is_rejected(repos):
    client, _ = _client(repos)
    assert client.get("/dashboard/regional").status_code == 422


def test_sales_list_merges_pagination(repos):
    client, registry = _client(repos)
    body = client.get("/sales", params={"page": 1, "page_size": 2}).json()
    assert [item["id"] for item in body["items"]] == [1, 2]
    assert body["pagination"] == {"page": 1, "page_size": 2, "total_records": 3, "total_pages": 2}
    assert registry.sales_pagination.total_records == 3


def test_sales_create_builds_payload(repos, backend):
    client, _ = _client(repos)
    res = client.post(
        "/sales",
        json={"target_type": "brand", "type_sale_id": "1", "agency_id": "7", "brand_id": "11", "model_id": "4", "year": "2026", "month": "2"},
    )
    assert res.status_code == 200
    sent = backend.created[0]
    assert sent["idSuccursale"] == 7
    assert sent["idModele"] is None
    assert sent["venteMonth"] == 2


def test_sales_patch_sends_only_given_keys(repos, backend):
    client, _ = _client(repos)
    res = client.patch("/sales/5", json={"margin": "", "unit_price": "12.5"})
    assert res.status_code == 200
    assert backend.updated == [(5, {"marge": None, "prixVente": 12.5})]


def test_backend_failure_is_reported_as_json(repos, backend):
    backend.fail["sales"] = RuntimeError("sales offline")
    client, _ = _client(repos)
    res = client.get("/sales")
    assert res.status_code == 500
    assert res.json() == {"error": "sales offline", "type": "RuntimeError"}
