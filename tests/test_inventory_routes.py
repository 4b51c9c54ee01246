"""
Tests for inventory routes: stock mutations, asset lifecycle and alerts.
"""
import pytest


def _post(client, headers, item, action, **body):
    return client.post(f"/inventory/{item.id}/{action}", json=body, headers=headers)


class TestCrud:

    def test_create_in_own_centre(self, client, lucknow_headers):
        r = client.post(
            "/inventory",
            json={"item_name": " Flashcards ", "quantity": 10, "original_quantity": 10, "category": "Therapy Materials"},
            headers=lucknow_headers,
        )
        assert r.status_code == 201
        body = r.json()
        assert body["item_name"] == "Flashcards"
        assert body["centre"] == "Lucknow"
        assert body["damaged"] == 0
        assert body["last_updated"] is not None

    def test_original_quantity_optional(self, client, lucknow_headers):
        r = client.post("/inventory", json={"item_name": "Chalk", "quantity": 4}, headers=lucknow_headers)
        assert r.json()["original_quantity"] is None

    def test_assigned_to_dropped_for_stock(self, client, lucknow_headers):
        r = client.post(
            "/inventory",
            json={"item_name": "Soap", "quantity": 4, "assigned_to": "Ravi"},
            headers=lucknow_headers,
        )
        assert r.json()["assigned_to"] is None

    def test_negative_quantity_rejected(self, client, lucknow_headers):
        r = client.post("/inventory", json={"item_name": "Soap", "quantity": -1}, headers=lucknow_headers)
        assert r.status_code == 422

    def test_list_scoped_and_searchable(self, client, add_item, lucknow_headers, admin_headers):
        add_item("Sensory Toys", 5)
        add_item("Puzzles", 5)
        add_item("Puzzles", 5, centre="Gorakhpur")
        assert len(client.get("/inventory", headers=lucknow_headers).json()) == 2
        assert len(client.get("/inventory?search=puzz", headers=admin_headers).json()) == 2
        assert len(client.get("/inventory?centre=Gorakhpur", headers=admin_headers).json()) == 1

    def test_update_fields(self, client, add_item, lucknow_headers):
        item = add_item("Chair", 2, item_type="Asset")
        r = client.put(f"/inventory/{item.id}", json={"item_name": "Blue Chair", "status": "Discarded"}, headers=lucknow_headers)
        assert r.status_code == 200
        assert r.json()["item_name"] == "Blue Chair"
        assert r.json()["status"] == "Discarded"

    def test_delete_admin_only(self, client, add_item, lucknow_headers, admin_headers):
        item = add_item("Chair", 2)
        assert client.delete(f"/inventory/{item.id}", headers=lucknow_headers).status_code == 403
        assert client.delete(f"/inventory/{item.id}", headers=admin_headers).status_code == 200

    def test_other_centre_hidden(self, client, add_item, gorakhpur_headers):
        item = add_item("Chair", 2, centre="Lucknow")
        assert _post(client, gorakhpur_headers, item, "use", amount=1).status_code == 404


class TestStockMutations:

    def test_use(self, client, add_item, lucknow_headers):
        item = add_item("Milk", 5)
        r = _post(client, lucknow_headers, item, "use", amount=2)
        assert r.json()["quantity"] == 3
        assert r.json()["last_used"] is not None

    def test_use_cannot_exceed_quantity(self, client, add_item, lucknow_headers):
        item = add_item("Milk", 1)
        assert _post(client, lucknow_headers, item, "use", amount=2).status_code == 400

    def test_damage_then_repair(self, client, add_item, lucknow_headers):
        item = add_item("Puzzles", 5)
        body = _post(client, lucknow_headers, item, "damage", amount=3).json()
        assert (body["quantity"], body["damaged"]) == (2, 3)

        body = _post(client, lucknow_headers, item, "repair", amount=2).json()
        assert (body["quantity"], body["damaged"], body["repaired"]) == (4, 1, 2)

    def test_repair_floors_damaged_at_zero(self, client, add_item, lucknow_headers):
        item = add_item("Puzzles", 5)
        _post(client, lucknow_headers, item, "damage", amount=1)
        body = _post(client, lucknow_headers, item, "repair", amount=3).json()
        assert body["damaged"] == 0
        assert body["quantity"] == 5
        assert body["repaired"] == 3

    def test_damage_cannot_exceed_quantity(self, client, add_item, lucknow_headers):
        item = add_item("Puzzles", 1)
        assert _post(client, lucknow_headers, item, "damage", amount=2).status_code == 400

    def test_set_quantity(self, client, add_item, lucknow_headers):
        item = add_item("Soap", 1)
        assert _post(client, lucknow_headers, item, "quantity", quantity=12).json()["quantity"] == 12
        assert _post(client, lucknow_headers, item, "quantity", quantity=-3).status_code == 422

    @pytest.mark.parametrize("action", ["use", "damage", "repair"])
    def test_amount_must_be_positive(self, client, add_item, lucknow_headers, action):
        item = add_item("Soap", 5)
        assert _post(client, lucknow_headers, item, action, amount=0).status_code == 422


class TestAssets:

    def test_asset_lifecycle(self, client, add_item, lucknow_headers):
        projector = add_item("Projector", 1, item_type="Asset")
        body = _post(client, lucknow_headers, projector, "assign", assigned_to="Therapy Room 2").json()
        assert (body["status"], body["assigned_to"]) == ("Assigned", "Therapy Room 2")

        body = _post(client, lucknow_headers, projector, "damage", amount=1).json()
        assert body["status"] == "Needs Repair"

        body = _post(client, lucknow_headers, projector, "repair", amount=1).json()
        assert body["status"] == "Available"
        assert body["quantity"] == 1

    def test_stock_cannot_be_assigned(self, client, add_item, lucknow_headers):
        item = add_item("Milk", 3)
        assert _post(client, lucknow_headers, item, "assign", assigned_to="Ravi").status_code == 400


class TestAlerts:

    def test_alert_tiers(self, client, add_item, lucknow_headers):
        add_item("Empty", 0)
        add_item("Two", 2)
        add_item("Five", 5, original_quantity=50)
        add_item("Plenty", 40, original_quantity=50)
        body = client.get("/inventory/alerts", headers=lucknow_headers).json()
        assert sorted(i["item_name"] for i in body["low_stock"]) == ["Empty", "Two"]
        assert [i["item_name"] for i in body["critical"]] == ["Empty"]
        assert [i["item_name"] for i in body["out_of_stock"]] == ["Empty"]
        assert [i["item_name"] for i in body["relative_low_stock"]] == ["Five"]
