from cart import add_item, get_or_create_cart
from database import CARTS, USERS
from schemas import CartItemPayload


def _add(client, headers, product_id, quantity=1, **extra):
    return client.post("/api/users/cart", json={"product_id": product_id, "quantity": quantity, **extra}, headers=headers)


def test_cart_created_on_first_read(client, db, customer, customer_headers):
    response = client.get("/api/users/cart", headers=customer_headers)

    assert response.status_code == 200
    assert response.json()["items"] == []
    assert response.json()["total_amount"] == 0
    assert db[CARTS].count_documents({"user_id": str(customer["_id"])}) == 1


def test_cart_requires_login(client):
    response = client.get("/api/users/cart")

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHORIZED"


def test_x_auth_token_header_is_accepted(client, customer_headers):
    token = customer_headers["Authorization"].split(" ", 1)[1]

    response = client.get("/api/users/cart", headers={"x-auth-token": token})

    assert response.status_code == 200


def test_invalid_token_is_unauthorized(client):
    response = client.get("/api/users/cart", headers={"Authorization": "Bearer not-a-token"})

    assert response.status_code == 401


def test_add_item_uses_product_price(client, customer_headers, make_product):
    pid = make_product(name="Tee", price=29.99, stock=5)

    response = _add(client, customer_headers, pid, 2, size="M", color="White")

    assert response.status_code == 200
    cart = response.json()
    assert len(cart["items"]) == 1
    item = cart["items"][0]
    assert item["price"] == 29.99
    assert item["size"] == "M"
    assert item["product"]["name"] == "Tee"
    assert cart["total_amount"] == 59.98


def test_same_variant_merges_into_one_line(client, customer_headers, make_product):
    pid = make_product(stock=5)

    _add(client, customer_headers, pid, 1, size="M")
    cart = _add(client, customer_headers, pid, 2, size="M").json()

    assert len(cart["items"]) == 1
    assert cart["items"][0]["quantity"] == 3


def test_different_variants_are_separate_lines(client, customer_headers, make_product):
    pid = make_product(stock=5)

    _add(client, customer_headers, pid, 1, size="M")
    cart = _add(client, customer_headers, pid, 1, size="L").json()

    assert len(cart["items"]) == 2
    assert {item["size"] for item in cart["items"]} == {"M", "L"}


def test_adding_beyond_stock_reports_cart_quantity(client, customer_headers, make_product):
    pid = make_product(stock=3)
    _add(client, customer_headers, pid, 2)

    response = _add(client, customer_headers, pid, 2)

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "INSUFFICIENT_STOCK"
    assert error["context"]["available_stock"] == 3
    assert error["context"]["cart_quantity"] == 2
    assert error["context"]["requested_quantity"] == 4


def test_adding_more_than_stock_to_empty_cart(client, customer_headers, make_product):
    pid = make_product(stock=1)

    response = _add(client, customer_headers, pid, 2)

    assert response.status_code == 400
    assert response.json()["error"]["context"]["available_stock"] == 1


def test_adding_unknown_product(client, customer_headers):
    response = _add(client, customer_headers, "5f1d7f3e9b1e8a3b4c5d6e7f")

    assert response.status_code == 404


def test_update_quantity(client, customer_headers, make_product):
    pid = make_product(price=10.0, stock=5)
    item_id = _add(client, customer_headers, pid, 1).json()["items"][0]["item_id"]

    response = client.put(f"/api/users/cart/{item_id}", json={"quantity": 4}, headers=customer_headers)

    assert response.status_code == 200
    assert response.json()["items"][0]["quantity"] == 4
    assert response.json()["total_amount"] == 40.0


def test_update_to_zero_removes_line(client, customer_headers, make_product):
    pid = make_product(stock=5)
    item_id = _add(client, customer_headers, pid, 1).json()["items"][0]["item_id"]

    cart = client.put(f"/api/users/cart/{item_id}", json={"quantity": 0}, headers=customer_headers).json()

    assert cart["items"] == []
    assert cart["total_amount"] == 0


def test_update_beyond_stock(client, customer_headers, make_product):
    pid = make_product(stock=2)
    item_id = _add(client, customer_headers, pid, 1).json()["items"][0]["item_id"]

    response = client.put(f"/api/users/cart/{item_id}", json={"quantity": 3}, headers=customer_headers)

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INSUFFICIENT_STOCK"


def test_update_unknown_line(client, customer_headers, make_product):
    _add(client, customer_headers, make_product(stock=2), 1)

    response = client.put("/api/users/cart/missing", json={"quantity": 1}, headers=customer_headers)

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


def test_update_without_cart(client, customer_headers):
    response = client.put("/api/users/cart/missing", json={"quantity": 1}, headers=customer_headers)

    assert response.status_code == 404


def test_remove_line(client, customer_headers, make_product):
    keep = make_product(name="Tee", price=10.0, stock=5)
    drop = make_product(name="Lace", price=5.0, stock=5)
    _add(client, customer_headers, keep, 1)
    item_id = _add(client, customer_headers, drop, 1).json()["items"][1]["item_id"]

    cart = client.delete(f"/api/users/cart/{item_id}", headers=customer_headers).json()

    assert [item["product"]["name"] for item in cart["items"]] == ["Tee"]
    assert cart["total_amount"] == 10.0


def test_remove_absent_line_is_lenient(client, customer_headers, make_product):
    _add(client, customer_headers, make_product(stock=5), 1)

    response = client.delete("/api/users/cart/missing", headers=customer_headers)

    assert response.status_code == 200
    assert len(response.json()["items"]) == 1


def test_cart_is_per_user(client, customer_headers, other_headers, make_product):
    _add(client, customer_headers, make_product(stock=5), 1)

    assert client.get("/api/users/cart", headers=other_headers).json()["items"] == []


def test_deleted_user_token_is_rejected(client, db, customer, customer_headers):
    db[USERS].delete_one({"_id": customer["_id"]})

    assert client.get("/api/users/cart", headers=customer_headers).status_code == 401


def test_get_or_create_cart_keeps_existing_cart(db, customer, make_product):
    user_id = str(customer["_id"])
    add_item(db, user_id, CartItemPayload(product_id=make_product(stock=5), quantity=2))

    cart = get_or_create_cart(db, user_id)

    assert len(cart["items"]) == 1
    assert db[CARTS].count_documents({"user_id": user_id}) == 1


def test_get_or_create_cart_upserts_once(db, customer):
    user_id = str(customer["_id"])

    first = get_or_create_cart(db, user_id)
    second = get_or_create_cart(db, user_id)

    assert first["_id"] == second["_id"]
    assert first["items"] == []
    assert first["created_at"] is not None
    assert db[CARTS].count_documents({"user_id": user_id}) == 1
