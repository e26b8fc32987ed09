from datetime import timedelta
from decimal import Decimal

from promo_engine.engine.clock import utcnow

API = "/api/v1/promotions"


def promotion_payload(**overrides):
    current = utcnow()
    data = {
        "name": "Rentrée",
        "type": "AUTOMATIC",
        "discount_type": "PERCENTAGE",
        "discount_value": "20",
        "max_discount": "15",
        "start_date": (current - timedelta(days=1)).isoformat(),
        "end_date": (current + timedelta(days=10)).isoformat(),
    }
    data.update(overrides)
    return data


def create(client, **overrides):
    response = client.post(f"{API}/", json=promotion_payload(**overrides))
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_root_and_health(client):
    assert client.get("/").status_code == 200

    body = client.get("/health").json()
    assert body["status"] == "ok"
    assert body["database"] == "ok"


def test_create_and_get(client):
    created = create(client, type="COUPON", code="back2school")

    assert created["code"] == "BACK2SCHOOL"
    assert created["status"] == "active"

    response = client.get(f"{API}/{created['id']}")
    assert response.status_code == 200
    assert response.json()["data"]["name"] == "Rentrée"


def test_error_envelope(client):
    create(client, type="COUPON", code="DUP")

    response = client.post(f"{API}/", json=promotion_payload(type="COUPON", code="dup"))
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"]["type"] == "http_error"

    response = client.get(f"{API}/does-not-exist")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == 404


def test_create_validation(client):
    current = utcnow()
    response = client.post(f"{API}/", json=promotion_payload(
        start_date=current.isoformat(), end_date=(current - timedelta(days=1)).isoformat()
    ))
    assert response.status_code == 400

    response = client.post(f"{API}/", json=promotion_payload(usage_count=3))
    assert response.status_code == 422


def test_update_deactivate_delete(client):
    created = create(client)

    response = client.patch(f"{API}/{created['id']}", json={"priority": 4})
    assert response.status_code == 200
    assert response.json()["data"]["priority"] == 4

    response = client.patch(f"{API}/{created['id']}", json={"usage_count": 0})
    assert response.status_code == 422

    response = client.post(f"{API}/{created['id']}/deactivate")
    assert response.json()["data"]["status"] == "inactive"

    response = client.delete(f"{API}/{created['id']}")
    assert response.status_code == 200
    assert client.get(f"{API}/{created['id']}").status_code == 404


def test_list(client):
    create(client, name="A", priority=1)
    create(client, name="B", priority=9)
    create(client, name="C", type="COUPON", code="CCC")

    body = client.get(f"{API}/", params={"type": "AUTOMATIC"}).json()
    assert body["total"] == 2
    assert [p["name"] for p in body["data"]] == ["B", "A"]

    body = client.get(f"{API}/", params={"limit": 1}).json()
    assert body["total"] == 3
    assert len(body["data"]) == 1


def test_evaluate_cart(client):
    create(client)

    response = client.post(f"{API}/evaluate", json={
        "items": [{"product_id": "p1", "unit_price": "120", "quantity": 1}],
    })

    assert response.status_code == 200
    data = response.json()["data"]
    assert Decimal(data["subtotal"]) == Decimal("120")
    assert Decimal(data["total_discount"]) == Decimal("15")
    assert Decimal(data["final_total"]) == Decimal("105")
    assert data["currency"] == "USD"


def test_evaluate_rejects_invalid_items(client):
    response = client.post(f"{API}/evaluate", json={
        "items": [{"product_id": "p1", "unit_price": "-1", "quantity": 1}],
    })
    assert response.status_code == 422


def test_validate_coupon(client):
    current = utcnow()
    create(client, type="COUPON", code="SAVE10", max_discount=None,
           discount_type="FIXED_AMOUNT", discount_value="10")
    create(client, type="COUPON", code="OLD",
           start_date=(current - timedelta(days=20)).isoformat(),
           end_date=(current - timedelta(days=10)).isoformat())
    items = [{"product_id": "p1", "unit_price": "25", "quantity": 2}]

    data = client.post(f"{API}/validate-coupon", json={"code": "save10", "items": items}).json()["data"]
    assert data["valid"] is True
    assert Decimal(data["discount_amount"]) == Decimal("10")

    data = client.post(f"{API}/validate-coupon", json={"code": "old", "items": items}).json()["data"]
    assert data["valid"] is False
    assert data["reason"] == "code_expired"
    assert Decimal(data["evaluation"]["final_total"]) == Decimal("50")


def test_redeem_and_delete_guard(client):
    created = create(client, usage_limit=1)
    payload = {
        "promotion_id": created["id"],
        "customer_id": "c1",
        "order_id": "order-1",
        "discount_amount": "15",
        "subtotal": "120",
        "total": "105",
    }

    data = client.post(f"{API}/redeem", json=payload).json()["data"]
    assert data["redeemed"] is True
    assert data["record"]["order_id"] == "order-1"

    # Rejouer la même commande ne consomme pas une seconde utilisation
    assert client.post(f"{API}/redeem", json=payload).json()["data"]["redeemed"] is True

    response = client.post(f"{API}/redeem", json={**payload, "order_id": "order-2"})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["redeemed"] is False
    assert data["reason"] == "usage_limit_exceeded"

    assert client.get(f"{API}/{created['id']}").json()["data"]["usage_count"] == 1
    assert client.delete(f"{API}/{created['id']}").status_code == 400


def test_product_promotions(client):
    create(client, name="Sacs", type="PRODUCT_DISCOUNT", apply_to="PRODUCT", product_ids=["bag"])
    create(client, name="Invisible", type="PRODUCT_DISCOUNT", apply_to="PRODUCT",
           product_ids=["bag"], show_on_website=False)

    response = client.get(f"{API}/products/bag")
    assert response.status_code == 200
    assert [p["name"] for p in response.json()] == ["Sacs"]


def test_stats(client):
    create(client)
    body = client.get(f"{API}/stats").json()

    assert body["success"] is True
    assert body["data"]["overview"]["total"] == 1
    assert body["data"]["by_type"] == {"AUTOMATIC": 1}


def test_usage_history(client):
    created = create(client)
    payload = {
        "promotion_id": created["id"],
        "customer_id": "c1",
        "discount_amount": "15",
        "subtotal": "120",
        "total": "105",
    }
    client.post(f"{API}/redeem", json={**payload, "order_id": "order-1"})
    client.post(f"{API}/redeem", json={**payload, "order_id": "order-2"})

    detail = client.get(f"{API}/{created['id']}").json()["data"]
    assert [u["order_id"] for u in detail["recent_usages"]] == ["order-2", "order-1"]
    assert Decimal(detail["recent_usages"][0]["discount_amount"]) == Decimal("15")

    response = client.get(f"{API}/{created['id']}/usages", params={"limit": 1})
    assert response.status_code == 200
    assert [u["order_id"] for u in response.json()] == ["order-2"]

    assert client.get(f"{API}/does-not-exist/usages").status_code == 404
