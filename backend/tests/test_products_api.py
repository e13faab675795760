from database import PRODUCTS, object_id


def test_list_products(client, make_product):
    make_product(name="Basic White T-Shirt", category="TShirt")
    make_product(name="Classic Black Hoodie", category="Hoodie")

    response = client.get("/api/products")

    assert response.status_code == 200
    names = {p["name"] for p in response.json()}
    assert names == {"Basic White T-Shirt", "Classic Black Hoodie"}
    assert all("id" in p for p in response.json())


def test_filter_by_name_and_category(client, make_product):
    make_product(name="Basic White T-Shirt", category="TShirt")
    make_product(name="Classic Black Hoodie", category="Hoodie")
    make_product(name="Graphic T-Shirt (Limited)", category="TShirt")

    by_name = client.get("/api/products", params={"q": "hoodie"}).json()
    by_category = client.get("/api/products", params={"category": "tshirt"}).json()
    # Regex metacharacters in the query are literal
    literal = client.get("/api/products", params={"q": "(Limited)"}).json()

    assert [p["name"] for p in by_name] == ["Classic Black Hoodie"]
    assert len(by_category) == 2
    assert [p["name"] for p in literal] == ["Graphic T-Shirt (Limited)"]


def test_featured_products(client, make_product):
    make_product(name="Tee")
    make_product(name="Hoodie", featured=True)

    response = client.get("/api/products/featured")

    assert [p["name"] for p in response.json()] == ["Hoodie"]


def test_get_product_and_stock(client, make_product):
    pid = make_product(name="Tee", stock=7)

    product = client.get(f"/api/products/{pid}")
    stock = client.get(f"/api/products/{pid}/stock")

    assert product.status_code == 200
    assert product.json()["id"] == pid
    assert stock.json() == {"stock": 7}


def test_unknown_and_malformed_ids_are_not_found(client):
    for product_id in ("5f1d7f3e9b1e8a3b4c5d6e7f", "not-an-id"):
        response = client.get(f"/api/products/{product_id}")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"


def test_admin_creates_product(client, admin_headers):
    body = {"name": "Bucket Hat", "price": 19.99, "category": "Accessories", "stock": 4, "sizes": ["One Size"]}

    response = client.post("/api/products", json=body, headers=admin_headers)

    assert response.status_code == 201
    product = response.json()
    assert product["name"] == "Bucket Hat"
    assert product["stock"] == 4
    assert product["ratings"] == []


def test_negative_price_rejected(client, admin_headers):
    body = {"name": "Bucket Hat", "price": -1, "category": "Accessories"}

    response = client.post("/api/products", json=body, headers=admin_headers)

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_customer_cannot_manage_products(client, customer_headers, make_product):
    pid = make_product()
    body = {"name": "Bucket Hat", "price": 19.99, "category": "Accessories"}

    assert client.post("/api/products", json=body, headers=customer_headers).status_code == 403
    assert client.put(f"/api/products/{pid}", json={"price": 1.0}, headers=customer_headers).status_code == 403
    response = client.delete(f"/api/products/{pid}", headers=customer_headers)
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "FORBIDDEN"


def test_partial_update_keeps_other_fields(client, admin_headers, make_product):
    pid = make_product(name="Tee", price=29.99, stock=10, featured=True)

    response = client.put(f"/api/products/{pid}", json={"stock": 0, "featured": False}, headers=admin_headers)

    assert response.status_code == 200
    product = response.json()
    assert product["stock"] == 0
    assert product["featured"] is False
    assert product["name"] == "Tee"
    assert product["price"] == 29.99


def test_update_unknown_product(client, admin_headers):
    response = client.put("/api/products/5f1d7f3e9b1e8a3b4c5d6e7f", json={"price": 1.0}, headers=admin_headers)

    assert response.status_code == 404


def test_admin_deletes_product(client, db, admin_headers, make_product):
    pid = make_product()

    response = client.delete(f"/api/products/{pid}", headers=admin_headers)

    assert response.json() == {"msg": "Product removed"}
    assert db[PRODUCTS].count_documents({}) == 0
    assert client.delete(f"/api/products/{pid}", headers=admin_headers).status_code == 404


def test_review_once_per_user(client, db, customer, customer_headers, other_headers, make_product):
    pid = make_product()

    first = client.post(f"/api/products/{pid}/review", json={"rating": 5, "review": "Great fit"}, headers=customer_headers)
    second = client.post(f"/api/products/{pid}/review", json={"rating": 1}, headers=customer_headers)
    other = client.post(f"/api/products/{pid}/review", json={"rating": 4}, headers=other_headers)

    assert first.status_code == 200
    assert first.json()[0]["user_id"] == str(customer["_id"])
    assert second.status_code == 400
    assert second.json()["error"]["code"] == "ALREADY_EXISTS"
    assert other.status_code == 200
    assert len(db[PRODUCTS].find_one({"_id": object_id(pid)})["ratings"]) == 2


def test_rating_out_of_range(client, customer_headers, make_product):
    pid = make_product()

    response = client.post(f"/api/products/{pid}/review", json={"rating": 6}, headers=customer_headers)

    assert response.status_code == 422
