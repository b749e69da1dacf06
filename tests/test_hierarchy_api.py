import asyncio
import os
import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.inventory.models import ResourceApplicationMap


def _name(kind: str) -> str:
    return f"{kind}-{uuid.uuid4().hex[:10]}"


async def _count_links(resource_id: int) -> int:
    engine = create_async_engine(os.environ["DATABASE_URL"])
    session_maker = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    try:
        async with session_maker() as session:
            res = await session.execute(
                select(func.count()).select_from(ResourceApplicationMap).where(
                    ResourceApplicationMap.resource_id == resource_id
                )
            )
            return int(res.scalar_one())
    finally:
        await engine.dispose()


def _post(client, path: str, body: dict) -> dict:
    r = client.post(path, json=body)
    assert r.status_code == 201, r.text
    return r.json()["data"]


def test_subscription_crud_and_unique_name(client):
    name = _name("sub")
    sub = _post(client, "/subscriptions", {"name": name, "tenant_id": "tenant-1"})
    assert sub["name"] == name

    dup = client.post("/subscriptions", json={"name": name})
    assert dup.status_code == 409
    assert dup.json()["success"] is False

    renamed = client.put(f"/subscriptions/{sub['id']}", json={"name": f"{name}-renamed"})
    assert renamed.status_code == 200
    assert renamed.json()["data"]["name"] == f"{name}-renamed"
    assert renamed.json()["data"]["tenant_id"] == "tenant-1"

    listed = client.get("/api/v1/subscriptions").json()["data"]
    assert any(s["id"] == sub["id"] for s in listed)

    assert client.post("/subscriptions", json={"name": "   "}).status_code == 400
    assert client.get("/subscriptions/987654321").status_code == 404


def test_deleting_subscription_with_resource_group_conflicts(client):
    sub = _post(client, "/subscriptions", {"name": _name("sub")})
    group = _post(client, "/resource-groups", {"name": _name("rg"), "subscription_id": sub["id"]})

    r = client.delete(f"/subscriptions/{sub['id']}")
    assert r.status_code == 409
    assert r.json()["success"] is False
    assert client.get(f"/subscriptions/{sub['id']}").status_code == 200

    assert client.delete(f"/resource-groups/{group['id']}").status_code == 200
    assert client.delete(f"/subscriptions/{sub['id']}").status_code == 200
    assert client.get(f"/subscriptions/{sub['id']}").status_code == 404


def test_resource_group_rules(client):
    sub = _post(client, "/subscriptions", {"name": _name("sub")})
    other = _post(client, "/subscriptions", {"name": _name("sub")})
    rg_name = _name("rg")
    group = _post(client, "/resource-groups", {"name": rg_name, "subscription_id": sub["id"]})

    # Same name allowed in another subscription, not in the same one
    assert client.post("/resource-groups", json={"name": rg_name, "subscription_id": sub["id"]}).status_code == 409
    _post(client, "/resource-groups", {"name": rg_name, "subscription_id": other["id"]})

    missing = client.post("/resource-groups", json={"name": _name("rg"), "subscription_id": 987654321})
    assert missing.status_code == 404

    filtered = client.get("/resource-groups", params={"subscription_id": sub["id"]}).json()["data"]
    assert [g["id"] for g in filtered] == [group["id"]]
    nested = client.get(f"/subscriptions/{sub['id']}/resource-groups").json()["data"]
    assert [g["id"] for g in nested] == [group["id"]]

    # A group holding resources cannot be deleted
    r = client.post(
        "/resources",
        json={"name": _name("vm"), "type": "Virtual machine", "subscription_id": sub["id"], "resource_group_id": group["id"]},
    )
    assert r.status_code == 201, r.text
    assert client.delete(f"/resource-groups/{group['id']}").status_code == 409

    # Resource group and subscription must agree
    mismatch = client.post(
        "/resources",
        json={"name": _name("vm"), "type": "Disk", "subscription_id": other["id"], "resource_group_id": group["id"]},
    )
    assert mismatch.status_code == 400


def test_subscription_resources_use_query_engine(client):
    sub = _post(client, "/subscriptions", {"name": _name("sub")})
    for i in range(3):
        r = client.post(
            "/resources",
            json={
                "name": f"sr-{i}",
                "type": "Disk",
                "subscription_id": sub["id"],
                "tags": {"Environment": "Production" if i else "Staging"},
            },
        )
        assert r.status_code == 201, r.text

    page = client.get(f"/subscriptions/{sub['id']}/resources", params={"size": 2}).json()
    assert page["pagination"] == {"page": 1, "size": 2, "total": 3, "total_pages": 2}
    assert all(item["subscription_id"] == sub["id"] for item in page["data"])

    prod = client.get(
        f"/subscriptions/{sub['id']}/resources",
        params={"tags": "Environment:Production", "sort_field": "name"},
    ).json()
    assert [item["name"] for item in prod["data"]] == ["sr-1", "sr-2"]

    assert client.get(f"/subscriptions/{sub['id']}/resources", params={"sort_field": "bogus"}).status_code == 400
    assert client.get("/subscriptions/987654321/resources").status_code == 404


def test_application_links_are_idempotent(client):
    app_row = _post(
        client,
        "/applications",
        {"code": _name("AP"), "name": "Payments", "owner_team": "Core", "owner_email": "core@example.com"},
    )
    resource = _post(client, "/resources", {"name": _name("vm"), "type": "Virtual machine"})

    first = client.post(f"/resources/{resource['id']}/applications", json={"application_id": app_row["id"]})
    second = client.post(f"/resources/{resource['id']}/applications", json={"application_id": app_row["id"]})
    assert first.status_code == 200, first.text
    assert second.status_code == 200
    assert first.json()["data"]["relation_type"] == "uses"
    assert asyncio.run(_count_links(resource["id"])) == 1

    # A different relation is a separate link
    owns = client.post(
        f"/resources/{resource['id']}/applications",
        json={"application_id": app_row["id"], "relation_type": "owns"},
    )
    assert owns.status_code == 200
    links = client.get(f"/resources/{resource['id']}/applications").json()["data"]
    assert sorted(link["relation_type"] for link in links) == ["owns", "uses"]
    assert links[0]["application"]["name"] == "Payments"

    linked = client.get(f"/applications/{app_row['id']}/resources").json()["data"]
    assert {item["relation_type"] for item in linked} == {"owns", "uses"}
    assert all(item["resource"]["id"] == resource["id"] for item in linked)

    r = client.delete(
        f"/resources/{resource['id']}/applications/{app_row['id']}", params={"relation_type": "owns"}
    )
    assert r.status_code == 200
    assert asyncio.run(_count_links(resource["id"])) == 1

    # Deleting the resource removes its remaining links
    assert client.delete(f"/resources/{resource['id']}").status_code == 200
    assert asyncio.run(_count_links(resource["id"])) == 0


def test_application_crud_and_validation(client):
    code = _name("AP")
    created = _post(client, "/applications", {"code": code, "name": "Billing"})
    assert client.post("/applications", json={"code": code}).status_code == 409
    assert client.post("/applications", json={"code": _name("AP"), "owner_email": "not-an-email"}).status_code == 400

    updated = client.put(f"/applications/{created['id']}", json={"owner_team": "Finance"}).json()["data"]
    assert updated["owner_team"] == "Finance"
    assert updated["name"] == "Billing"

    missing = client.post("/resources/987654321/applications", json={"application_id": created["id"]})
    assert missing.status_code == 404

    assert client.delete(f"/applications/{created['id']}").status_code == 200
    assert client.get(f"/applications/{created['id']}").status_code == 404
