from conftest import add_to_cart, make_product


def test_add_defaults_to_first_variant(client, user_headers, product):
    response = add_to_cart(client, user_headers, product.id, quantity=2)
    assert response.status_code == 200

    cart = response.json()["data"]
    assert len(cart["items"]) == 1
    line = cart["items"][0]
    assert line["variant_name"] == "30ml"
    assert line["quantity"] == 2
    assert line["total"] == 1000.0
    assert cart["total_amount"] == 1000.0


def test_adding_same_line_accumulates(client, user_headers, product):
    add_to_cart(client, user_headers, product.id, "50ml", 1)
    cart = add_to_cart(client, user_headers, product.id, "50ml", 1).json()["data"]
    assert [(i["variant_name"], i["quantity"]) for i in cart["items"]] == [("50ml", 2)]


def test_unknown_variant(client, user_headers, product):
    response = add_to_cart(client, user_headers, product.id, "1L")
    assert response.status_code == 400
    assert response.json()["error"] == "Variant '1L' not found"


def test_unknown_product(client, user_headers):
    assert add_to_cart(client, user_headers, 999).status_code == 404


def test_stock_is_checked(client, user_headers, product):
    response = add_to_cart(client, user_headers, product.id, "50ml", 4)
    assert response.status_code == 400
    assert "Insufficient stock" in response.json()["error"]


def test_per_product_quantity_cap(client, user_headers, product):
    add_to_cart(client, user_headers, product.id, "30ml", 8)
    response = add_to_cart(client, user_headers, product.id, "30ml", 3)
    assert response.status_code == 400
    assert "maximum 10 per product" in response.json()["error"]


def test_distinct_line_cap(client, session, user_headers):
    for i in range(10):
        product = make_product(session, name=f"Toner {i}")
        assert add_to_cart(client, user_headers, product.id).status_code == 200

    extra = make_product(session, name="Toner extra")
    response = add_to_cart(client, user_headers, extra.id)
    assert response.status_code == 400
    assert "maximum 10 products in cart" in response.json()["error"]


def test_offer_price_is_applied(client, session, user_headers):
    product = make_product(session, name="Night Cream", offer_percentage=20)
    cart = add_to_cart(client, user_headers, product.id, quantity=1).json()["data"]
    assert cart["items"][0]["price"] == 400.0


def test_update_quantity(client, user_headers, product):
    add_to_cart(client, user_headers, product.id, "30ml", 1)
    response = client.put("/api/users/cart/update", headers=user_headers,
                          json={"productId": product.id, "variantName": "30ml", "quantity": 5})
    assert response.json()["data"]["items"][0]["quantity"] == 5

    response = client.put("/api/users/cart/update", headers=user_headers,
                          json={"productId": product.id, "variantName": "30ml", "quantity": 0})
    assert response.json()["data"]["items"] == []


def test_update_missing_line(client, user_headers, product):
    response = client.put("/api/users/cart/update", headers=user_headers,
                          json={"productId": product.id, "quantity": 2})
    assert response.status_code == 404


def test_remove(client, user_headers, product):
    add_to_cart(client, user_headers, product.id, "30ml", 1)
    add_to_cart(client, user_headers, product.id, "50ml", 1)

    response = client.request("DELETE", "/api/users/cart/remove", headers=user_headers,
                              json={"productId": product.id, "variantName": "30ml"})
    assert response.status_code == 200
    assert [i["variant_name"] for i in response.json()["data"]["items"]] == ["50ml"]


def test_cart_requires_login(client):
    assert client.get("/api/users/cart").status_code == 401
