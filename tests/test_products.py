"""Tests for Product API endpoints."""


def test_create_product(client):
    """Test creating a new product."""
    response = client.post(
        "/api/v1/products/",
        json={
            "shop_id": "shop-1",
            "name": "Cooking Oil 1L",
            "category": "Groceries",
            "cost_price": 3200,
            "selling_price": 3800,
            "stock": 12,
            "min_stock_alert": 3
        }
    )

    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "Cooking Oil 1L"
    assert data["shop_id"] == "shop-1"
    assert data["cost_price"] == 3200
    assert data["selling_price"] == 3800
    assert data["stock"] == 12
    assert data["is_low_stock"] is False
    assert data["last_restock_date"] is not None
    assert "id" in data
    assert "created_at" in data


def test_create_product_without_stock_has_no_restock_date(make_product):
    """A product created empty has never been restocked."""
    product = make_product(stock=0)

    assert product["last_restock_date"] is None
    assert product["is_low_stock"] is True


def test_create_product_invalid_price(client):
    """Test creating product with a negative price fails."""
    response = client.post(
        "/api/v1/products/",
        json={
            "shop_id": "shop-1",
            "name": "Test Product",
            "cost_price": 10,
            "selling_price": -10.00,
            "stock": 10
        }
    )

    assert response.status_code == 422


def test_create_product_invalid_stock(client):
    """Test creating product with negative stock fails."""
    response = client.post(
        "/api/v1/products/",
        json={
            "shop_id": "shop-1",
            "name": "Test Product",
            "cost_price": 10,
            "selling_price": 99.99,
            "stock": -5
        }
    )

    assert response.status_code == 422


def test_get_product(client, make_product):
    """Test getting a product by ID."""
    product_id = make_product(name="Rice 5kg")["id"]

    response = client.get(f"/api/v1/products/{product_id}")

    assert response.status_code == 200
    data = response.json()
    assert data["id"] == product_id
    assert data["name"] == "Rice 5kg"


def test_get_product_not_found(client):
    """Test getting non-existent product returns 404."""
    response = client.get("/api/v1/products/9999")

    assert response.status_code == 404


def test_get_product_cached_falls_back_to_database(client, make_product, redis_stub):
    """A cache miss reads the database and fills the cache."""
    product_id = make_product()["id"]

    response = client.get(f"/api/v1/products/{product_id}/cached")

    assert response.status_code == 200
    assert response.json()["id"] == product_id
    assert redis_stub.setex.called


def test_list_products_by_shop(client, make_product):
    """Test listing a shop's products with pagination."""
    for i in range(15):
        make_product(name=f"Product {i}")
    make_product(shop_id="shop-2", name="Other shop")

    response = client.get("/api/v1/products/?shop_id=shop-1&page=1&page_size=10")

    assert response.status_code == 200
    data = response.json()
    assert len(data["items"]) == 10
    assert data["total"] == 15
    assert data["total_pages"] == 2
    assert all(item["shop_id"] == "shop-1" for item in data["items"])


def test_search_products(client, make_product):
    """Test searching products by name."""
    make_product(name="Maize Flour 2kg")
    make_product(name="Soap Bar")
    make_product(name="Maize Flour 5kg")

    response = client.get("/api/v1/products/?search=Maize")

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert all("Maize" in item["name"] for item in data["items"])


def test_list_low_stock_products(client, make_product):
    """Only products at or below their alert threshold are listed."""
    make_product(name="Plenty", stock=20, min_stock_alert=5)
    make_product(name="At threshold", stock=5, min_stock_alert=5)
    make_product(name="Empty", stock=0, min_stock_alert=1)

    response = client.get("/api/v1/products/?low_stock=true")

    names = {item["name"] for item in response.json()["items"]}
    assert names == {"At threshold", "Empty"}


def test_update_product(client, make_product):
    """Test updating non-stock fields keeps stock and restock date."""
    product = make_product(name="Original Name", stock=10)

    response = client.put(
        f"/api/v1/products/{product['id']}",
        json={"name": "Updated Name", "selling_price": 175}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Updated Name"
    assert data["selling_price"] == 175
    assert data["stock"] == 10
    assert data["last_restock_date"] == product["last_restock_date"]


def test_update_product_not_found(client):
    response = client.put("/api/v1/products/9999", json={"name": "Ghost"})

    assert response.status_code == 404


def test_stock_increase_stamps_restock_date(client, make_product):
    """Raising stock from 4 to 9 counts as a restock."""
    product = make_product(stock=4)

    response = client.put(f"/api/v1/products/{product['id']}", json={"stock": 9})

    data = response.json()
    assert data["stock"] == 9
    assert data["last_restock_date"] is not None
    assert data["last_restock_date"] != product["last_restock_date"]


def test_stock_decrease_or_same_preserves_restock_date(client, make_product):
    """Lowering or re-saving stock carries the previous restock date forward."""
    product = make_product(stock=4)
    restocked = client.put(f"/api/v1/products/{product['id']}", json={"stock": 9}).json()

    lowered = client.put(f"/api/v1/products/{product['id']}", json={"stock": 2}).json()
    unchanged = client.put(f"/api/v1/products/{product['id']}", json={"stock": 2}).json()

    assert lowered["stock"] == 2
    assert lowered["last_restock_date"] == restocked["last_restock_date"]
    assert unchanged["last_restock_date"] == restocked["last_restock_date"]


def test_stock_adjustment_restock(client, make_product):
    """A positive adjustment adds units and stamps the restock date."""
    product = make_product(stock=0)

    response = client.post(
        f"/api/v1/products/{product['id']}/stock-adjustments",
        json={"delta": 24}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["stock"] == 24
    assert data["last_restock_date"] is not None


def test_stock_adjustment_cannot_go_negative(client, make_product):
    """Removing more than is on hand is rejected without any change."""
    product = make_product(stock=3)

    response = client.post(
        f"/api/v1/products/{product['id']}/stock-adjustments",
        json={"delta": -4}
    )

    assert response.status_code == 400
    assert "Insufficient stock" in response.json()["detail"]
    assert client.get(f"/api/v1/products/{product['id']}").json()["stock"] == 3


def test_stock_adjustment_rejects_zero(client, make_product):
    product = make_product()

    response = client.post(
        f"/api/v1/products/{product['id']}/stock-adjustments",
        json={"delta": 0}
    )

    assert response.status_code == 422


def test_stock_write_off_keeps_restock_date(client, make_product):
    """A negative adjustment never touches the restock date."""
    product = make_product(stock=10)

    data = client.post(
        f"/api/v1/products/{product['id']}/stock-adjustments",
        json={"delta": -3}
    ).json()

    assert data["stock"] == 7
    assert data["last_restock_date"] == product["last_restock_date"]


def test_delete_product(client, make_product):
    """Test deleting a product."""
    product_id = make_product(name="To Delete")["id"]

    response = client.delete(f"/api/v1/products/{product_id}")
    assert response.status_code == 204

    get_response = client.get(f"/api/v1/products/{product_id}")
    assert get_response.status_code == 404


def test_delete_product_keeps_sales_history(client, make_product):
    """Past sales keep their product name after the product is gone."""
    product = make_product(name="Bread")
    sale = client.post(
        "/api/v1/sales/",
        json={"shop_id": "shop-1", "product_id": product["id"], "quantity": 2}
    ).json()

    client.delete(f"/api/v1/products/{product['id']}")

    data = client.get(f"/api/v1/sales/{sale['id']}").json()
    assert data["product_name"] == "Bread"
    assert data["product_id"] is None
    assert data["total_amount"] == 300


def test_delete_product_not_found(client):
    response = client.delete("/api/v1/products/9999")

    assert response.status_code == 404
