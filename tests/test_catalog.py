from conftest import add_to_cart, place_order

NEW_PRODUCT = {
    "name": "Hydrating Gel",
    "slug": "hydrating-gel",
    "price": 650,
    "offerPercentage": 10,
    "variants": [{"size": "50ml", "price": 650, "stock": 12}, {"size": "100ml", "price": 1100, "stock": 4}],
}


def test_public_listing_and_detail(client, product):
    response = client.get("/api/users/products")
    data = response.json()["data"]
    assert data["total"] == 1
    assert data["products"][0]["slug"] == product.slug

    detail = client.get(f"/api/users/products/{product.slug}").json()["data"]
    assert [v["size"] for v in detail["variants"]] == ["30ml", "50ml"]
    assert detail["variants"][0]["available_stock"] == 20

    assert client.get(f"/api/users/products/{product.id}").status_code == 200
    assert client.get("/api/users/products/does-not-exist").status_code == 404


def test_search(client, product):
    assert client.get("/api/users/products", params={"search": "vitamin"}).json()["data"]["total"] == 1
    assert client.get("/api/users/products", params={"search": "retinol"}).json()["data"]["total"] == 0


def test_admin_creates_product(client, admin_headers):
    response = client.post("/api/admin/products", json=NEW_PRODUCT, headers=admin_headers)
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["offer_price"] == 585
    assert [v["offer_price"] for v in data["variants"]] == [585.0, 990.0]

    duplicate = client.post("/api/admin/products", json=NEW_PRODUCT, headers=admin_headers)
    assert duplicate.status_code == 409


def test_product_needs_a_variant(client, admin_headers):
    response = client.post("/api/admin/products", json={**NEW_PRODUCT, "variants": []}, headers=admin_headers)
    assert response.status_code == 422


def test_update_upserts_variants_by_size(client, admin_headers, product):
    response = client.put(f"/api/admin/products/{product.id}", headers=admin_headers, json={
        "name": "Vitamin C Serum 2.0",
        "variants": [{"size": "30ml", "price": 550, "stock": 15}, {"size": "100ml", "price": 1400, "stock": 2}],
    })
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["name"] == "Vitamin C Serum 2.0"
    assert {v["size"]: (v["price"], v["stock"]) for v in data["variants"]} == {
        "30ml": (550, 15), "50ml": (800, 3), "100ml": (1400, 2)
    }


def test_deactivated_product_leaves_storefront(client, admin_headers, product):
    assert client.delete(f"/api/admin/products/{product.id}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/users/products/{product.slug}").status_code == 404
    assert client.get(f"/api/admin/products/{product.id}", headers=admin_headers).json()["data"]["is_active"] is False
    assert client.get("/api/admin/products", params={"status": "inactive"},
                      headers=admin_headers).json()["data"]["total"] == 1


def test_stock_cannot_drop_below_reservations(client, admin_headers, user_headers, product, address):
    add_to_cart(client, user_headers, product.id, "50ml", 2)
    place_order(client, user_headers, address.id)
    variant = product.variants[1]

    url = f"/api/admin/products/{product.id}/variants/{variant.id}/stock"
    response = client.put(url, json={"stock": 1}, headers=admin_headers)
    assert response.status_code == 400

    response = client.put(url, json={"stock": 9}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["stock"] == 9
