"""
Tests for the expense category catalogue.
"""
from centrehub.models.models import ExpenseCategory
from centrehub.routes.categories import DEFAULT_CATEGORIES, seed_default_categories


class TestSeed:

    def test_seed_is_idempotent(self, db):
        first = seed_default_categories(db)
        assert first > len(DEFAULT_CATEGORIES)
        assert seed_default_categories(db) == 0
        assert db.query(ExpenseCategory).count() == len(DEFAULT_CATEGORIES)


class TestRoutes:

    def test_list_in_catalogue_order(self, client, db, lucknow_headers):
        seed_default_categories(db)
        body = client.get("/categories", headers=lucknow_headers).json()
        assert [c["name"] for c in body] == list(DEFAULT_CATEGORIES)
        kitchen = next(c for c in body if c["name"] == "Kitchen")
        assert [i["name"] for i in kitchen["items"]][:3] == ["Milk", "Tea", "Biscuits"]

    def test_admin_creates_category(self, client, admin_headers):
        r = client.post("/categories", json={"name": " Outings ", "items": ["Bus", "Bus", " Tickets "]}, headers=admin_headers)
        assert r.status_code == 201
        assert r.json()["name"] == "Outings"
        assert [i["name"] for i in r.json()["items"]] == ["Bus", "Tickets"]
        assert client.post("/categories", json={"name": "Outings"}, headers=admin_headers).status_code == 400

    def test_staff_cannot_create_category(self, client, lucknow_headers):
        assert client.post("/categories", json={"name": "Outings"}, headers=lucknow_headers).status_code == 403

    def test_staff_adds_custom_item(self, client, db, lucknow_headers):
        seed_default_categories(db)
        kitchen = db.query(ExpenseCategory).filter(ExpenseCategory.name == "Kitchen").one()
        r = client.post(f"/categories/{kitchen.id}/items", json={"name": "Jaggery"}, headers=lucknow_headers)
        assert r.status_code == 201
        assert r.json()["is_custom"] is True
        dup = client.post(f"/categories/{kitchen.id}/items", json={"name": "Milk"}, headers=lucknow_headers)
        assert dup.status_code == 400


class TestHealth:

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "ok"
        assert r.headers["X-Request-ID"]
