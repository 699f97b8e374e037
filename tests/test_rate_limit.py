from storefront.core.rate_limit import AUTH_LIMIT_MESSAGE, OTP_LIMIT_MESSAGE


def test_login_attempts_are_limited(client, user):
    body = {"email": user.email, "password": "wrong-password"}
    for _ in range(10):
        assert client.post("/api/users/auth/login", json=body).status_code == 401

    response = client.post("/api/users/auth/login", json=body)
    assert response.status_code == 429
    assert response.json() == {"success": False, "error": AUTH_LIMIT_MESSAGE}


def test_auth_endpoints_share_one_window(client, user):
    for _ in range(5):
        client.post("/api/users/auth/login", json={"email": user.email, "password": "wrong-password"})
    for _ in range(5):
        client.post("/api/users/auth/reset-password", json={
            "email": user.email, "otp": "123456", "newPassword": "whatever-123"
        })

    response = client.post("/api/users/auth/login", json={"email": user.email, "password": "wrong-password"})
    assert response.status_code == 429


def test_otp_requests_are_limited(client):
    for i in range(5):
        response = client.post("/api/users/auth/request-otp", json={"email": f"user{i}@example.com"})
        assert response.status_code == 200

    response = client.post("/api/users/auth/request-otp", json={"email": "user9@example.com"})
    assert response.status_code == 429
    assert response.json()["error"] == OTP_LIMIT_MESSAGE


def test_other_endpoints_are_not_limited(client):
    for _ in range(15):
        assert client.get("/api/users/products").status_code == 200
