"""Tests for Expense API endpoints."""


def create_expense(client, **overrides):
    payload = {
        "shop_id": "shop-1",
        "category": "Rent",
        "description": "May rent",
        "amount": 250000,
        "spent_at": "2024-05-01T08:00:00Z",
    }
    payload.update(overrides)
    return client.post("/api/v1/expenses/", json=payload)


def test_create_expense(client):
    response = create_expense(client)

    assert response.status_code == 201
    data = response.json()
    assert data["category"] == "Rent"
    assert data["amount"] == 250000
    assert data["shop_id"] == "shop-1"


def test_create_expense_requires_positive_amount(client):
    response = create_expense(client, amount=0)

    assert response.status_code == 422


def test_list_expenses_with_total(client):
    create_expense(client, category="Transport", amount=5000)
    create_expense(client, category="Electricity", amount=12000.50)
    create_expense(client, shop_id="shop-2", amount=999)

    data = client.get("/api/v1/expenses/?shop_id=shop-1").json()

    assert data["total"] == 2
    assert data["total_amount"] == 17000.50


def test_list_expenses_by_day(client):
    create_expense(client, spent_at="2024-05-01T10:00:00Z")
    create_expense(client, spent_at="2024-05-03T10:00:00Z")

    data = client.get("/api/v1/expenses/?day=2024-05-03").json()

    assert data["total"] == 1
    assert data["items"][0]["spent_at"].startswith("2024-05-03")


def test_get_and_delete_expense(client):
    expense_id = create_expense(client).json()["id"]

    assert client.get(f"/api/v1/expenses/{expense_id}").status_code == 200
    assert client.delete(f"/api/v1/expenses/{expense_id}").status_code == 204
    assert client.get(f"/api/v1/expenses/{expense_id}").status_code == 404


def test_delete_expense_not_found(client):
    response = client.delete("/api/v1/expenses/9999")

    assert response.status_code == 404
