from datetime import datetime, timedelta

import pytest

from conftest import make_order, make_product, make_user
from storefront.models.order import OrderStatus
from storefront.models.product import Product
from storefront.models.review import Review

COMMENT = "Lovely texture, fades spots"


def post_review(client, headers, product_id, rating=5, comment=COMMENT, **extra):
    return client.post("/api/users/reviews", headers=headers,
                       json={"productId": product_id, "rating": rating, "comment": comment, **extra})


def add_review(session, product, rating, user=None, order=None, **kwargs):
    review = Review(product_id=product.id, user_id=user.id if user else None, order_id=order.id if order else None,
                    rating=rating, comment=COMMENT, **kwargs)
    session.add(review)
    session.commit()
    session.refresh(review)
    return review


@pytest.fixture(name="delivered")
def delivered_fixture(session, user, product):
    return make_order(session, user, product)


def test_review_a_delivered_product(client, session, user_headers, product, delivered):
    response = post_review(client, user_headers, product.id, rating=4)
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["order_id"] == delivered.id
    assert data["is_verified"] is True
    assert data["user"]["name"] == "Asha"

    session.expire_all()
    stored = session.get(Product, product.id)
    assert (stored.reviews_count, stored.average_rating) == (1, 4.0)


@pytest.mark.parametrize("status", [OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.CANCELLED])
def test_only_delivered_orders_qualify(client, session, user, user_headers, product, status):
    make_order(session, user, product, order_status=status)
    response = post_review(client, user_headers, product.id)
    assert response.status_code == 400
    assert response.json()["error"] == "You can only review products that have been delivered to you."


def test_other_users_order_does_not_qualify(client, session, user_headers, product):
    stranger = make_user(session, "other@example.com")
    order = make_order(session, stranger, product)
    response = post_review(client, user_headers, product.id, orderId=order.id)
    assert response.status_code == 400


def test_one_review_per_product_per_order(client, session, user, user_headers, product, delivered):
    assert post_review(client, user_headers, product.id).status_code == 201

    again = post_review(client, user_headers, product.id)
    assert again.status_code == 409
    assert again.json()["error"] == "You have already reviewed this product for this order."
    assert post_review(client, user_headers, product.id, orderId=delivered.id).status_code == 409

    # A second delivery of the same product can be reviewed
    second = make_order(session, user, product)
    response = post_review(client, user_headers, product.id)
    assert response.status_code == 201
    assert response.json()["data"]["order_id"] == second.id


@pytest.mark.parametrize("rating,comment,error", [
    (0, COMMENT, "Rating must be between 1 and 5"),
    (6, COMMENT, "Rating must be between 1 and 5"),
    (5, "   too short   ", "Comment must be at least 10 characters long"),
])
def test_review_validation(client, user_headers, product, delivered, rating, comment, error):
    response = post_review(client, user_headers, product.id, rating=rating, comment=comment)
    assert response.status_code == 422
    assert error in response.json()["error"]


def test_can_review(client, session, user, user_headers, product, delivered):
    url = f"/api/users/reviews/can-review/{product.slug}"
    assert client.get(url, headers=user_headers).json()["data"] == {"can_review": True, "order_id": delivered.id}

    post_review(client, user_headers, product.id)
    assert client.get(url, headers=user_headers).json()["data"] == {"can_review": False, "order_id": None}
    checked = client.get(url, params={"orderId": delivered.id}, headers=user_headers).json()["data"]
    assert checked["can_review"] is False


def test_product_reviews_stats_and_sorting(client, session, user, product):
    other = make_user(session, "other@example.com")
    add_review(session, product, 2, user=user)
    add_review(session, product, 5, user=other, created_at=datetime.utcnow() - timedelta(days=2))
    add_review(session, product, 4, is_admin_review=True, is_pinned=True)

    data = client.get(f"/api/users/reviews/product/{product.slug}").json()["data"]
    assert data["total"] == 3
    assert data["stats"]["average_rating"] == 3.7
    assert data["stats"]["rating_breakdown"] == {"1": 0, "2": 1, "3": 0, "4": 1, "5": 1}
    # Pinned first, then newest
    assert [r["rating"] for r in data["reviews"]] == [4, 2, 5]
    assert data["reviews"][0]["user"]["name"] == "Sking Cosmetics Team"

    low = client.get(f"/api/users/reviews/product/{product.id}", params={"sort": "rating_low"}).json()["data"]
    assert [r["rating"] for r in low["reviews"]] == [4, 2, 5]
    high = client.get(f"/api/users/reviews/product/{product.id}", params={"sort": "rating_high"}).json()["data"]
    assert [r["rating"] for r in high["reviews"]] == [4, 5, 2]


def test_blocked_reviews_are_hidden_until_expiry(client, session, user, product):
    add_review(session, product, 5, user=user)
    add_review(session, product, 1, is_blocked=True)
    add_review(session, product, 3, is_blocked=True, blocked_until=datetime.utcnow() - timedelta(hours=1))

    data = client.get(f"/api/users/reviews/product/{product.id}", params={"sort": "oldest"}).json()["data"]
    assert [r["rating"] for r in data["reviews"]] == [5, 3]
    assert data["stats"]["total_reviews"] == 2


def test_reviews_for_unknown_product(client):
    assert client.get("/api/users/reviews/product/nope").status_code == 404


# Admin moderation

def test_admin_blocks_and_unblocks(client, session, admin_headers, user, product):
    review = add_review(session, product, 1, user=user)

    response = client.post("/api/admin/reviews/block", headers=admin_headers,
                           json={"reviewId": review.id, "duration": "week", "reason": "Spam"})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["is_blocked"] is True
    assert data["block_reason"] == "Spam"
    assert data["blocked_until"] is not None
    assert client.get(f"/api/users/reviews/product/{product.id}").json()["data"]["total"] == 0
    session.expire_all()
    assert session.get(Product, product.id).reviews_count == 0

    permanent = client.post("/api/admin/reviews/block", headers=admin_headers,
                            json={"reviewId": review.id, "duration": "permanent"})
    assert permanent.json()["data"]["blocked_until"] is None

    client.patch(f"/api/admin/reviews/{review.id}/unblock", headers=admin_headers)
    assert client.get(f"/api/users/reviews/product/{product.id}").json()["data"]["total"] == 1
    session.expire_all()
    assert session.get(Product, product.id).reviews_count == 1


def test_block_rejects_unknown_duration(client, session, admin_headers, user, product):
    review = add_review(session, product, 1, user=user)
    response = client.post("/api/admin/reviews/block", headers=admin_headers,
                           json={"reviewId": review.id, "duration": "year"})
    assert response.status_code == 422


def test_admin_list_filters(client, session, admin_headers, user, product):
    serum = add_review(session, product, 5, user=user)
    cream = make_product(session, name="Night Cream")
    add_review(session, cream, 2, user=user, is_blocked=True)

    data = client.get("/api/admin/reviews", params={"status": "blocked"}, headers=admin_headers).json()["data"]
    assert [r["product_id"] for r in data["reviews"]] == [cream.id]

    by_product = client.get(f"/api/admin/reviews/product/{product.id}", headers=admin_headers).json()["data"]
    assert [r["id"] for r in by_product["reviews"]] == [serum.id]

    by_user = client.get(f"/api/admin/reviews/user/{user.id}", headers=admin_headers).json()["data"]
    assert by_user["total"] == 2

    sorted_asc = client.get("/api/admin/reviews", params={"sortBy": "rating", "sortOrder": "asc"},
                            headers=admin_headers).json()["data"]
    assert [r["rating"] for r in sorted_asc["reviews"]] == [2, 5]


def test_admin_review_pin_and_delete(client, session, admin_headers, product):
    response = client.post("/api/admin/reviews", headers=admin_headers,
                           json={"productId": product.id, "rating": 5, "comment": "Our bestselling serum"})
    assert response.status_code == 201
    review = response.json()["data"]
    assert review["is_admin_review"] is True
    assert review["user"]["name"] == "Sking Cosmetics Team"

    pinned = client.patch(f"/api/admin/reviews/{review['id']}/pin", headers=admin_headers)
    assert pinned.json()["message"] == "Review pinned"
    unpinned = client.patch(f"/api/admin/reviews/{review['id']}/pin", headers=admin_headers)
    assert unpinned.json()["data"]["is_pinned"] is False

    assert client.delete(f"/api/admin/reviews/{review['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/admin/reviews/{review['id']}", headers=admin_headers).status_code == 404
    session.expire_all()
    assert session.get(Product, product.id).reviews_count == 0


def test_reviews_need_login(client, product):
    assert post_review(client, {}, product.id).status_code == 401
    assert client.get("/api/admin/reviews").status_code == 401
