from conftest import make_product, make_user, auth_headers

ADDRESS = {
    "name": "Asha Menon",
    "email": "asha@example.com",
    "phoneNumber": "9876543210",
    "street": "12 MG Road",
    "city": "Kochi",
    "state": "Kerala",
    "postalCode": "682001",
}


def test_wishlist_toggle(client, user_headers, product):
    response = client.post("/api/users/wishlist/toggle", json={"productId": product.id}, headers=user_headers)
    assert response.json()["message"] == "Added to wishlist"
    assert [p["id"] for p in response.json()["data"]["products"]] == [product.id]

    response = client.post("/api/users/wishlist/toggle", json={"productId": product.id}, headers=user_headers)
    assert response.json()["data"]["added"] is False
    assert client.get("/api/users/wishlist", headers=user_headers).json()["data"]["products"] == []


def test_wishlist_merge_skips_unknown_and_duplicates(client, session, user_headers, product):
    other = make_product(session, name="Sunscreen")
    client.post("/api/users/wishlist/toggle", json={"productId": product.id}, headers=user_headers)

    response = client.post("/api/users/wishlist/merge", headers=user_headers,
                           json={"productIds": [product.id, other.id, 999, other.id]})
    assert response.status_code == 200
    assert [p["id"] for p in response.json()["data"]["products"]] == [product.id, other.id]


def test_first_address_becomes_primary(client, user_headers):
    first = client.post("/api/users/addresses", json=ADDRESS, headers=user_headers).json()["data"]
    second = client.post("/api/users/addresses", json={**ADDRESS, "city": "Thrissur"}, headers=user_headers).json()["data"]
    assert first["is_primary"] is True
    assert second["is_primary"] is False


def test_only_one_primary(client, user_headers):
    first = client.post("/api/users/addresses", json=ADDRESS, headers=user_headers).json()["data"]
    second = client.post("/api/users/addresses", json={**ADDRESS, "isPrimary": True}, headers=user_headers).json()["data"]

    addresses = client.get("/api/users/addresses", headers=user_headers).json()["data"]
    primary = [a["id"] for a in addresses if a["is_primary"]]
    assert primary == [second["id"]]

    client.patch(f"/api/users/addresses/{first['id']}/primary", headers=user_headers)
    addresses = client.get("/api/users/addresses", headers=user_headers).json()["data"]
    assert [a["id"] for a in addresses if a["is_primary"]] == [first["id"]]


def test_deleting_primary_promotes_another(client, user_headers):
    first = client.post("/api/users/addresses", json=ADDRESS, headers=user_headers).json()["data"]
    second = client.post("/api/users/addresses", json=ADDRESS, headers=user_headers).json()["data"]

    assert client.delete(f"/api/users/addresses/{first['id']}", headers=user_headers).status_code == 200
    addresses = client.get("/api/users/addresses", headers=user_headers).json()["data"]
    assert [(a["id"], a["is_primary"]) for a in addresses] == [(second["id"], True)]


def test_address_limit(client, user_headers):
    for _ in range(5):
        assert client.post("/api/users/addresses", json=ADDRESS, headers=user_headers).status_code == 200
    response = client.post("/api/users/addresses", json=ADDRESS, headers=user_headers)
    assert response.status_code == 400
    assert "Maximum 5 addresses" in response.json()["error"]


def test_address_validation(client, user_headers):
    response = client.post("/api/users/addresses", json={**ADDRESS, "postalCode": "6820"}, headers=user_headers)
    assert response.status_code == 422
    assert response.json()["success"] is False


def test_addresses_are_private(client, session, user_headers):
    created = client.post("/api/users/addresses", json=ADDRESS, headers=user_headers).json()["data"]
    stranger = auth_headers(session, make_user(session, "stranger@example.com"))
    assert client.get(f"/api/users/addresses/{created['id']}", headers=stranger).status_code == 404
