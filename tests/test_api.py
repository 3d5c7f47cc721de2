"""Test the marketplace HTTP surface."""
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from api.main import app
from core.database import get_session, get_session_factory

BASE = "/api/marketplace"


@pytest_asyncio.fixture
async def client(factory):
    async def override_session():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_session_factory] = lambda: factory
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def as_user(user_id, role="customer"):
    return {"X-User-ID": str(user_id), "X-User-Role": role}


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_owner_updates_library_book_status(client, seed):
    item_id = f"library-{seed.library_book}"
    resp = await client.put(
        f"{BASE}/items/{item_id}/availability",
        json={"availability_status": "coming_soon"},
        headers=as_user(seed.owner, "bookstore_owner"),
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["item"]["id"] == item_id
    assert body["item"]["availability_status"] == "coming_soon"

    resp = await client.get(f"{BASE}/items/{item_id}")
    assert resp.json()["availability_status"] == "coming_soon"
    assert resp.json()["is_orderable"] is False


@pytest.mark.asyncio
async def test_status_change_errors(client, seed):
    url = f"{BASE}/items/library-{seed.library_book}/availability"

    resp = await client.put(url, json={"availability_status": "unavailable"},
                            headers=as_user(seed.other_owner, "bookstore_owner"))
    assert resp.status_code == 403
    assert resp.json()["error"] == "authorization_error"

    resp = await client.put(url, json={"availability_status": "sold_out"},
                            headers=as_user(seed.owner, "bookstore_owner"))
    assert resp.status_code == 400
    assert resp.json()["error"] == "validation_error"

    resp = await client.put(url, json={"availability_status": "unavailable"})
    assert resp.status_code == 401

    resp = await client.put(f"{BASE}/items/library-999/availability",
                            json={"availability_status": "unavailable"},
                            headers=as_user(seed.owner, "bookstore_owner"))
    assert resp.status_code == 404

    resp = await client.get(f"{BASE}/items/library-{seed.library_book}")
    assert resp.json()["availability_status"] == "available"


@pytest.mark.asyncio
async def test_malformed_item_id(client, seed):
    resp = await client.get(f"{BASE}/items/library-abc")
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_catalog_namespaces_library_ids(client, seed):
    resp = await client.get(f"{BASE}/catalog")
    assert resp.status_code == 200
    ids = [item["id"] for item in resp.json()["data"]]
    assert ids == [str(seed.regular_book), str(seed.marketplace_book), f"library-{seed.library_book}"]

    await client.put(
        f"{BASE}/items/library-{seed.library_book}/availability",
        json={"availability_status": "unavailable"},
        headers=as_user(seed.owner, "bookstore_owner"),
    )
    resp = await client.get(f"{BASE}/catalog", params={"orderable_only": "true"})
    ids = [item["id"] for item in resp.json()["data"]]
    assert f"library-{seed.library_book}" not in ids
    assert all(item["is_orderable"] for item in resp.json()["data"])


@pytest.mark.asyncio
async def test_review_lifecycle(client, seed):
    reader = seed.readers[0]
    url = f"{BASE}/bookstores/{seed.store}/reviews"

    resp = await client.post(url, json={"rating": 5, "review_title": "Great"}, headers=as_user(reader))
    assert resp.status_code == 200
    resp = await client.put(url, json={"rating": 3}, headers=as_user(reader))
    assert resp.status_code == 200

    stats = (await client.get(f"{BASE}/bookstores/{seed.store}/stats")).json()
    assert stats["bookstore"]["rating"] == 3.0
    assert stats["bookstore"]["total_reviews"] == 1
    assert stats["distribution"] == {"1": 0, "2": 0, "3": 1, "4": 0, "5": 0}

    resp = await client.post(url, json={"rating": 6}, headers=as_user(reader))
    assert resp.status_code == 400

    resp = await client.delete(f"{url}/mine", headers=as_user(reader))
    assert resp.status_code == 204

    stats = (await client.get(f"{BASE}/bookstores/{seed.store}/stats")).json()
    assert stats["bookstore"]["rating"] == 0.0
    assert stats["bookstore"]["total_reviews"] == 0


@pytest.mark.asyncio
async def test_review_by_id_and_helpful(client, seed):
    url = f"{BASE}/bookstores/{seed.store}/reviews"
    review = (await client.post(url, json={"rating": 2}, headers=as_user(seed.readers[0]))).json()["data"]

    resp = await client.put(f"{BASE}/reviews/{review['id']}", json={"rating": 5},
                            headers=as_user(seed.readers[1]))
    assert resp.status_code == 403

    resp = await client.post(f"{BASE}/reviews/{review['id']}/helpful", headers=as_user(seed.readers[1]))
    assert resp.json()["data"]["helpful_count"] == 1

    listing = (await client.get(url)).json()
    assert listing["pagination"]["total"] == 1
    assert listing["data"][0]["helpful_count"] == 1

    resp = await client.delete(f"{BASE}/reviews/{review['id']}", headers=as_user(seed.admin, "admin"))
    assert resp.status_code == 204


@pytest.mark.asyncio
async def test_helpful_vote_requires_caller(client, seed):
    url = f"{BASE}/bookstores/{seed.store}/reviews"
    review = (await client.post(url, json={"rating": 4}, headers=as_user(seed.readers[0]))).json()["data"]

    resp = await client.post(f"{BASE}/reviews/{review['id']}/helpful")
    assert resp.status_code == 401

    listing = (await client.get(url)).json()
    assert listing["data"][0]["helpful_count"] == 0


@pytest.mark.asyncio
async def test_review_payload_includes_reviewer(client, seed):
    url = f"{BASE}/bookstores/{seed.store}/reviews"
    resp = await client.post(url, json={"rating": 5}, headers=as_user(seed.readers[0]))
    assert resp.json()["data"]["user"] == {"id": seed.readers[0], "full_name": "Reader 1"}

    stats = (await client.get(f"{BASE}/bookstores/{seed.store}/stats")).json()
    assert stats["recent_reviews"][0]["user"]["full_name"] == "Reader 1"


@pytest.mark.asyncio
async def test_out_of_range_ids_are_rejected(client, seed):
    resp = await client.get(f"{BASE}/items/library-99999999999999999999")
    assert resp.status_code == 400
    assert resp.json()["error"] == "validation_error"

    resp = await client.get(f"{BASE}/items/2147483648")
    assert resp.status_code == 400

    resp = await client.get(f"{BASE}/bookstores/99999999999999999999/stats")
    assert resp.status_code == 422

    resp = await client.post(f"{BASE}/reviews/99999999999999999999/helpful", headers=as_user(seed.readers[0]))
    assert resp.status_code == 422

    resp = await client.get(f"{BASE}/bookstores/{seed.store}/reviews", params={"page": 10**20})
    assert resp.status_code == 422
