"""
HTTP tests for the /api/queue routes.
"""

import pytest


def _create(client, name, **fields):
    body = {"productName": name, "quantity": 1}
    body.update(fields)
    resp = client.post("/api/queue", json=body)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["data"]


def _names(client):
    return [i["productName"] for i in client.get("/api/queue").get_json()["data"]]


class TestQueueCrud:
    """Tests for create, read, update and delete."""

    def test_create_and_get(self, client):
        item = _create(client, "Poster", quantity=3, details="A2 <b>gloss</b>")

        assert item["position"] == 0
        assert item["details"] == "A2 gloss"
        assert item["status"] == "pending"

        resp = client.get(f"/api/queue/{item['id']}")
        assert resp.status_code == 200
        assert resp.get_json() == {"success": True, "data": item}

    def test_list_in_print_order(self, client):
        for name in ["First", "Second", "Third"]:
            _create(client, name)

        assert _names(client) == ["First", "Second", "Third"]

    def test_missing_quantity(self, client):
        resp = client.post("/api/queue", json={"productName": "Poster"})

        body = resp.get_json()
        assert resp.status_code == 400
        assert body["success"] is False
        assert body["error"] == "Validation failed"
        assert "quantity" in body["message"]

    @pytest.mark.parametrize("quantity", [0, -1, "two", True, 1.5])
    def test_invalid_quantity(self, client, quantity):
        resp = client.post("/api/queue", json={"productName": "Poster", "quantity": quantity})

        assert resp.status_code == 400

    def test_body_must_be_json(self, client):
        resp = client.post("/api/queue", data="productName=Poster")

        assert resp.status_code == 400

    def test_unknown_item(self, client):
        resp = client.get("/api/queue/999")

        assert resp.status_code == 404
        assert resp.get_json()["message"] == "Queue item not found"

    def test_invalid_id(self, client):
        assert client.get("/api/queue/abc").status_code == 400

    def test_update(self, client):
        item = _create(client, "Flyer", details="A5")

        resp = client.put(f"/api/queue/{item['id']}", json={"quantity": 100, "details": None})

        data = resp.get_json()["data"]
        assert resp.status_code == 200
        assert data["quantity"] == 100
        assert data["details"] is None
        assert data["productName"] == "Flyer"

    def test_update_position(self, client):
        items = [_create(client, name) for name in "ABCD"]

        client.put(f"/api/queue/{items[3]['id']}", json={"position": 0})

        assert _names(client) == ["D", "A", "B", "C"]

    def test_delete(self, client):
        items = [_create(client, name) for name in "ABC"]

        resp = client.delete(f"/api/queue/{items[1]['id']}")

        assert resp.status_code == 200
        positions = [i["position"] for i in client.get("/api/queue").get_json()["data"]]
        assert positions == [0, 2]

    def test_delete_unknown(self, client):
        assert client.delete("/api/queue/77").status_code == 404


class TestQueueBatch:
    """Tests for POST /api/queue/batch."""

    def test_batch(self, client):
        _create(client, "Existing")

        resp = client.post("/api/queue/batch", json={"items": [
            {"productName": "Bolt", "details": "M3", "quantity": 7, "invoiceId": 4},
            {"productName": "Washer", "quantity": 10, "invoiceId": 4},
        ]})

        data = resp.get_json()["data"]
        assert resp.status_code == 201
        assert [i["position"] for i in data] == [1, 2]
        assert [i["invoiceId"] for i in data] == [4, 4]

    def test_batch_base_position(self, client):
        resp = client.post("/api/queue/batch", json={
            "items": [{"productName": "A", "quantity": 1}, {"productName": "B", "quantity": 1}],
            "basePosition": 10,
        })

        assert [i["position"] for i in resp.get_json()["data"]] == [10, 11]

    def test_batch_empty(self, client):
        resp = client.post("/api/queue/batch", json={"items": []})

        assert resp.status_code == 201
        assert resp.get_json()["data"] == []

    def test_batch_invalid_item_creates_nothing(self, client):
        resp = client.post("/api/queue/batch", json={"items": [
            {"productName": "Good", "quantity": 1},
            {"productName": "", "quantity": 1},
        ]})

        assert resp.status_code == 400
        assert resp.get_json()["message"].startswith("items[1]")
        assert _names(client) == []

    def test_batch_requires_array(self, client):
        resp = client.post("/api/queue/batch", json={"items": "Bolt"})

        assert resp.status_code == 400


class TestQueueReorder:
    """Tests for PATCH /api/queue/reorder and status changes."""

    def test_reorder(self, client):
        items = [_create(client, name) for name in "ABCDEF"]

        resp = client.patch("/api/queue/reorder", json={"itemId": items[5]["id"], "newPosition": 2})

        assert resp.status_code == 200
        assert resp.get_json()["success"] is True
        assert _names(client) == ["A", "B", "F", "C", "D", "E"]

    def test_reorder_missing_fields(self, client):
        resp = client.patch("/api/queue/reorder", json={"itemId": 1})

        assert resp.status_code == 400

    def test_reorder_negative_position(self, client):
        item = _create(client, "A")

        resp = client.patch("/api/queue/reorder", json={"itemId": item["id"], "newPosition": -1})

        assert resp.status_code == 400

    def test_reorder_unknown_item(self, client):
        resp = client.patch("/api/queue/reorder", json={"itemId": 555, "newPosition": 0})

        assert resp.status_code == 404

    def test_status(self, client):
        item = _create(client, "A")

        resp = client.patch(f"/api/queue/{item['id']}/status", json={"status": "completed"})

        assert resp.status_code == 200
        assert resp.get_json()["data"]["status"] == "completed"

    def test_status_invalid(self, client):
        item = _create(client, "A")

        resp = client.patch(f"/api/queue/{item['id']}/status", json={"status": "lost"})

        assert resp.status_code == 400

    def test_status_required(self, client):
        item = _create(client, "A")

        resp = client.patch(f"/api/queue/{item['id']}/status", json={})

        assert resp.status_code == 400


class TestInsertPositions:
    """Tests for creates at positions that are already taken."""

    def _positions(self, client):
        return [i["position"] for i in client.get("/api/queue").get_json()["data"]]

    def test_create_at_taken_position(self, client):
        for name in "ABC":
            _create(client, name)

        item = _create(client, "X", position=1)

        assert item["position"] == 1
        assert _names(client) == ["A", "X", "B", "C"]
        assert self._positions(client) == [0, 1, 2, 3]

    def test_batch_at_taken_base_position(self, client):
        for name in "ABC":
            _create(client, name)

        resp = client.post("/api/queue/batch", json={
            "items": [{"productName": "X", "quantity": 1}, {"productName": "Y", "quantity": 1}],
            "basePosition": 0,
        })

        assert resp.status_code == 201
        assert _names(client) == ["X", "Y", "A", "B", "C"]
        assert self._positions(client) == [0, 1, 2, 3, 4]
