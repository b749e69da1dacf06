import uuid


def _create(client, **body) -> dict:
    body.setdefault("type", "Virtual machine")
    r = client.post("/resources", json=body)
    assert r.status_code == 201, r.text
    return r.json()["data"]


def test_tag_vocabulary_and_popular_pairs(client):
    key = f"CostCenter{uuid.uuid4().hex[:8]}"
    _create(client, name="tv-1", tags={key: "CC-100"})
    _create(client, name="tv-2", tags={key: "CC-100"})
    _create(client, name="tv-3", tags={key: "CC-200"})

    r = client.get("/tags")
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["tags"][key] == ["CC-100", "CC-200"]
    assert len(data["popular_tags"]) <= 20
    counts = [p["count"] for p in data["popular_tags"]]
    assert counts == sorted(counts, reverse=True)


def test_tag_suggestions_exact_match_first(client):
    token = uuid.uuid4().hex[:8]
    _create(client, name="ts-1", tags={f"team{token}": "x", "Purpose": f"team{token}"})
    _create(client, name="ts-2", tags={f"team{token}suffix": "y"})

    r = client.get("/tags/suggestions", params={"q": f"TEAM{token}"})
    assert r.status_code == 200
    suggestions = r.json()["data"]
    displays = [s["display"] for s in suggestions]
    # Both exact hits (key and value) come before the partial one
    assert set(displays[:2]) == {f"team{token}:x", f"Purpose:team{token}"}
    assert displays[2] == f"team{token}suffix:y"
    assert all(set(s) == {"key", "value", "display"} for s in suggestions)

    assert len(client.get("/tags/suggestions").json()["data"]) <= 10


def test_dashboard_summary_honors_filters(client):
    sub = client.post("/subscriptions", json={"name": f"dash-{uuid.uuid4().hex[:8]}"}).json()["data"]
    rg = client.post("/resource-groups", json={"name": "dash-rg", "subscription_id": sub["id"]}).json()["data"]
    common = {"subscription_id": sub["id"], "resource_group_id": rg["id"]}
    _create(client, name="d-1", type="Disk", location="westeurope", environment="PRD", **common)
    _create(client, name="d-2", type="Disk", location="westeurope", environment="UAT", **common)
    _create(client, name="d-3", type="Virtual machine", location="eastus", **common)
    _create(client, name="d-4", type="Virtual machine", location="eastus", environment="PRD", **common)

    r = client.get("/dashboard/summary", params={"subscription_id": sub["id"]})
    assert r.status_code == 200, r.text
    summary = r.json()["data"]
    assert summary["total_resources"] == 4
    assert summary["total_subscriptions"] == 1
    assert summary["total_resource_groups"] == 1
    assert summary["total_locations"] == 2
    assert {"name": "Disk", "count": 2, "percentage": 50.0} in summary["resource_types"]
    environments = {e["name"]: e["count"] for e in summary["environments"]}
    assert environments == {"PRD": 2, "UAT": 1, "Unknown": 1}

    prd = client.get("/api/v1/dashboard/summary", params={"subscription_id": sub["id"], "environment": "PRD"}).json()
    assert prd["data"]["total_resources"] == 2
    assert {l["name"] for l in prd["data"]["locations"]} == {"westeurope", "eastus"}
    assert all(l["percentage"] == 50.0 for l in prd["data"]["locations"])


def test_health_and_stats(client):
    for path in ("/health", "/", "/api/v1/health"):
        r = client.get(path)
        assert r.status_code == 200, path
        body = r.json()
        assert body["success"] is True
        assert body["data"]["status"] == "healthy"
        assert body["data"]["version"]

    stats = client.get("/stats").json()["data"]
    assert set(stats) == {"total_resources", "total_subscriptions", "total_resource_groups", "total_applications"}
    assert all(v >= 0 for v in stats.values())


def test_unknown_route_uses_error_envelope(client):
    r = client.get("/does-not-exist")
    assert r.status_code == 404
    assert r.json() == {"success": False, "message": "Not Found"}
