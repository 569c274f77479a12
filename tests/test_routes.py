from tests.conftest import make_token


def test_health(client):
    assert client.get("/").get_json()["status"] == "ok"
    assert client.get("/health").status_code == 200


def test_auth_errors(client, users):
    assert client.get("/orders/my-orders").status_code == 401
    bad = {"Authorization": f"Bearer {make_token(users['b1'].id, secret='other')}"}
    assert client.get("/orders/my-orders", headers=bad).status_code == 401
    ghost = {"Authorization": f"Bearer {make_token(999)}"}
    assert client.get("/orders/my-orders", headers=ghost).status_code == 404


def test_order_flow_over_http(client, users, products, auth):
    b1, a1 = users["b1"], users["a1"]

    r = client.post("/orders", json={"product_id": products["p1"].id, "quantity": 3}, headers=auth(b1))
    assert r.status_code == 201
    order = r.get_json()
    assert order["status"] == "open"
    assert order["artisan_approved"] is False
    oid = order["id"]

    # Buyers cannot approve, other artisans do not own the product
    assert client.put(f"/orders/{oid}/approve", headers=auth(b1)).status_code == 403
    assert client.put(f"/orders/{oid}/approve", headers=auth(users["a2"])).status_code == 403
    assert client.put(f"/orders/{oid}/deliver", headers=auth(a1)).status_code == 409

    r = client.put(f"/orders/{oid}/approve", headers=auth(a1))
    assert r.status_code == 200
    assert r.get_json()["order"]["artisan_location"] == {"lat": 10.0, "lng": 20.0}

    summary = client.get(f"/orders/{oid}/summary", headers=auth(b1)).get_json()
    assert summary["status"] == "approved"
    assert summary["product"]["name"] == "Wildflower Honey"

    r = client.put(f"/orders/{oid}/deliver", headers=auth(a1))
    assert r.status_code == 200
    assert r.get_json()["order"]["status"] == "delivered"

    r = client.patch(f"/orders/{oid}/cancel", json={}, headers=auth(b1))
    assert r.status_code == 409
    assert "delivered" in r.get_json()["error"]

    track = client.get(f"/orders/{oid}/track", headers=auth(b1)).get_json()
    assert track["status"] == "delivered"
    assert {e["status"] for e in track["events"]} == {
        "Order Placed", "Order Confirmed & Processing", "Delivered",
    }

    mine = client.get("/orders/my-orders", headers=auth(b1)).get_json()
    assert [o["id"] for o in mine] == [oid]
    incoming = client.get("/orders/artisan-orders", headers=auth(a1)).get_json()
    assert incoming[0]["buyer_name"] == "Bea Buyer"

    analytics = client.get("/artisans/analytics", headers=auth(a1)).get_json()
    assert analytics["top_products"][0]["total_quantity_sold"] == 3
    assert analytics["monthly_revenue"][0]["revenue"] == 37.5


def test_create_order_errors(client, users, products, auth):
    b1 = users["b1"]
    assert client.post("/orders", json={"quantity": 1}, headers=auth(b1)).status_code == 400
    assert client.post("/orders", json={"product_id": 999, "quantity": 1}, headers=auth(b1)).status_code == 404
    r = client.post("/orders", json={"product_id": products["p1"].id, "quantity": 1}, headers=auth(users["a1"]))
    assert r.status_code == 403


def test_cancel_with_message_and_stale_version(client, users, products, auth):
    b1 = users["b1"]
    oid = client.post(
        "/orders", json={"product_id": products["p1"].id, "quantity": 1}, headers=auth(b1)
    ).get_json()["id"]

    r = client.patch(f"/orders/{oid}/cancel", json={"version": 5}, headers=auth(b1))
    assert r.status_code == 409

    r = client.patch(
        f"/orders/{oid}/cancel",
        json={"cancellation_message": "Changed my mind", "version": 1},
        headers=auth(b1),
    )
    assert r.status_code == 200
    assert r.get_json()["order"]["cancellation_message"] == "Changed my mind"


def test_chat_flow_over_http(client, users, auth):
    b1, a1 = users["b1"], users["a1"]

    r = client.post("/conversations", json={"user_id": a1.id}, headers=auth(b1))
    assert r.status_code == 200
    cid = r.get_json()["conversation_id"]

    r = client.post("/messages", json={"conversation_id": cid, "content": "Hi"}, headers=auth(b1))
    assert r.status_code == 201
    assert r.get_json()["sender_model"] == "BuyerUser"

    assert client.get("/conversations/unread-count", headers=auth(a1)).get_json() == {"unread_count": 1}

    convs = client.get("/conversations", headers=auth(a1)).get_json()
    assert len(convs) == 1
    assert convs[0]["unread_count"] == 1
    assert convs[0]["last_message"]["content"] == "Hi"
    assert convs[0]["participant_model"] == ["BuyerUser", "ArtisanUser"]

    assert client.patch(f"/conversations/{cid}/read", headers=auth(a1)).status_code == 200
    assert client.get("/conversations/unread-count", headers=auth(a1)).get_json() == {"unread_count": 0}

    msgs = client.get(f"/conversations/{cid}/messages", headers=auth(a1)).get_json()
    assert [m["content"] for m in msgs] == ["Hi"]

    details = client.get(f"/conversations/{cid}", headers=auth(b1)).get_json()
    assert [p["id"] for p in details["participants"]] == [b1.id, a1.id]


def test_chat_errors_over_http(client, users, auth):
    b1, b2, a1 = users["b1"], users["b2"], users["a1"]
    assert client.post("/conversations", json={"user_id": b2.id}, headers=auth(b1)).status_code == 400
    cid = client.post("/conversations", json={"user_id": a1.id}, headers=auth(b1)).get_json()["conversation_id"]

    assert client.post("/messages", json={"conversation_id": cid, "content": ""}, headers=auth(b1)).status_code == 400
    assert client.post("/messages", json={"conversation_id": cid, "content": "x"}, headers=auth(b2)).status_code == 403
    assert client.post("/messages", json={"conversation_id": 999, "content": "x"}, headers=auth(b1)).status_code == 404
    assert client.get(f"/conversations/{cid}/messages", headers=auth(b2)).status_code == 403


def test_analytics_is_artisan_only(client, users, auth):
    assert client.get("/artisans/analytics", headers=auth(users["b1"])).status_code == 403
    r = client.get("/artisans/analytics/top-products?limit=2", headers=auth(users["a2"]))
    assert r.status_code == 200
    assert r.get_json() == []
    r = client.get("/artisans/analytics/monthly-revenue?months=3", headers=auth(users["a2"]))
    assert r.get_json() == []
