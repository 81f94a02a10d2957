import io
from unittest import mock

from conftest import order_payload, razorpay_details, auth_headers, make_user, open_gateway_order
from core.extensions import db
from models.cartModels import CartItem
from models.productModels import Product
from models.userModel import User


class TestDashboards:

    def test_overview_excludes_admin_orders(self, client, user, admin, admin_headers, products):
        open_gateway_order(user, 500)
        client.post("/api/orders", json=order_payload([(products[0], 1)]), headers=auth_headers(user))
        client.post("/api/orders", json=order_payload([(products[1], 2)], "razorpay",
                                                      payment_details=razorpay_details()),
                    headers=auth_headers(user))
        client.post("/api/orders", json=order_payload([(products[0], 5)]), headers=admin_headers)

        data = client.get("/api/admin/dashboard", headers=admin_headers).get_json()["data"]

        assert data["orders"]["total"] == 2
        assert data["orders"]["by_status"]["pending"] == 1
        assert data["orders"]["by_status"]["confirmed"] == 1
        assert data["revenue"]["total_revenue"] == 650
        assert data["revenue"]["collected_revenue"] == 500
        assert data["customers"]["total"] == 1
        assert len(data["recent_orders"]) == 2

    def test_stats_and_quick_actions(self, client, user, admin_headers, products):
        client.post("/api/orders", json=order_payload([(products[2], 3)]), headers=auth_headers(user))

        stats = client.get("/api/admin/dashboard/stats", headers=admin_headers).get_json()["data"]
        actions = client.get("/api/admin/dashboard/quick-actions", headers=admin_headers).get_json()["data"]
        order_stats = client.get("/api/admin/orders/stats", headers=admin_headers).get_json()["data"]

        assert stats["overview"]["total_orders"] == 1
        assert stats["overview"]["total_revenue"] == 0
        assert actions["pending_orders"] == 1
        assert actions["low_stock_products"] == 2
        assert order_stats["total_revenue"] == 1800
        assert order_stats["todays_orders"] == 1

    def test_analytics_trends(self, client, user, admin_headers, products):
        client.post("/api/orders", json=order_payload([(products[1], 2)], "upi"), headers=auth_headers(user))
        client.post("/api/orders", json=order_payload([(products[0], 1)]), headers=auth_headers(user))

        revenue = client.get("/api/admin/analytics?date_range=7", headers=admin_headers).get_json()["data"]
        orders = client.get("/api/admin/analytics?filter_type=orders", headers=admin_headers).get_json()["data"]

        assert revenue["trends"][0]["revenue"] == 500
        assert revenue["trends"][0]["orders"] == 1
        assert orders["trends"][0]["orders"] == 2

    def test_bad_filter_type(self, client, admin_headers):
        assert client.get("/api/admin/analytics?filter_type=views", headers=admin_headers).status_code == 400

    def test_customers_are_kept_out(self, client, user_headers):
        response = client.get("/api/admin/dashboard", headers=user_headers)

        assert response.status_code == 403
        assert response.get_json()["message"] == "Access denied. Admin privileges required."


class TestAdminOrders:

    def test_search_and_filter(self, client, user, other_user, admin_headers, products):
        client.post("/api/orders", json=order_payload([(products[0], 1)]), headers=auth_headers(user))
        client.post("/api/orders", json=order_payload([(products[0], 1)], "upi"), headers=auth_headers(other_user))

        by_name = client.get("/api/admin/orders?search=ravi", headers=admin_headers).get_json()["data"]
        by_status = client.get("/api/admin/orders?status=pending", headers=admin_headers).get_json()["data"]

        assert [o["user"]["email"] for o in by_name["orders"]] == ["ravi@example.com"]
        assert [o["user"]["email"] for o in by_status["orders"]] == ["jane@example.com"]

    def test_detail(self, client, user, admin_headers, products):
        created = client.post("/api/orders", json=order_payload([(products[0], 1)]), headers=auth_headers(user))
        order_id = created.get_json()["data"]["order"]["id"]

        detail = client.get(f"/api/admin/orders/{order_id}", headers=admin_headers)

        assert detail.get_json()["data"]["order"]["user"]["id"] == user.id
        assert client.get("/api/admin/orders/999", headers=admin_headers).status_code == 404


class TestAdminProducts:

    def test_create_with_json(self, client, admin_headers):
        response = client.post("/api/admin/products", headers=admin_headers, json={
            "name": "Til Thekua", "description": "Sesame thekua", "price": 180, "stock": 30,
            "category": "Traditional", "tags": "sesame, winter",
        })

        product = response.get_json()["data"]["product"]
        assert response.status_code == 201
        assert product["tags"] == ["sesame", "winter"]
        assert product["selling_price"] == 180

    def test_create_with_image_upload(self, client, admin_headers):
        upload = {"secure_url": "https://cdn.example/p.jpg", "public_id": "thekua/products/p"}
        with mock.patch("services.uploads.cloudinary.uploader.upload", return_value=upload):
            response = client.post("/api/admin/products", headers=admin_headers, content_type="multipart/form-data",
                                   data={
                                       "name": "Gift Hamper", "description": "Hamper", "price": "999",
                                       "stock": "4", "category": "Gift Boxes", "is_featured": "true",
                                       "image": (io.BytesIO(b"fake-image"), "hamper.jpg", "image/jpeg"),
                                   })

        product = response.get_json()["data"]["product"]
        assert response.status_code == 201
        assert product["image_url"] == "https://cdn.example/p.jpg"
        assert product["is_featured"] is True

    def test_create_validation(self, client, admin_headers):
        response = client.post("/api/admin/products", headers=admin_headers, json={
            "name": "Bad", "description": "Bad", "price": 10, "category": "Electronics", "stock": -2,
        })

        fields = {e["field"] for e in response.get_json()["errors"]}
        assert fields == {"category", "stock"}

    def test_update_and_delete(self, client, user_headers, admin_headers, products):
        client.post("/api/cart/add", json={"product_id": products[0].id, "quantity": 1}, headers=user_headers)

        updated = client.put(f"/api/admin/products/{products[0].id}", headers=admin_headers,
                             json={"discount": 20, "is_active": False})
        assert updated.get_json()["data"]["product"]["selling_price"] == 80

        with mock.patch("services.uploads.cloudinary.uploader.destroy") as destroy:
            response = client.delete(f"/api/admin/products/{products[0].id}", headers=admin_headers)

        assert response.status_code == 200
        assert db.session.get(Product, products[0].id) is None
        assert CartItem.query.count() == 0
        destroy.assert_not_called()

    def test_list_includes_inactive(self, client, admin_headers, products):
        products[0].is_active = False
        db.session.commit()

        data = client.get("/api/admin/products?status=inactive", headers=admin_headers).get_json()["data"]

        assert [p["id"] for p in data["products"]] == [products[0].id]


class TestAdminUsers:

    def test_create_update_and_list(self, client, admin_headers):
        created = client.post("/api/admin/users", headers=admin_headers, json={
            "first_name": "Meera", "last_name": "Rai", "email": "meera@example.com", "password": "Welcome123",
        })
        user_id = created.get_json()["data"]["user"]["id"]

        client.put(f"/api/admin/users/{user_id}", headers=admin_headers, json={"is_active": False, "last_name": "Roy"})

        user = db.session.get(User, user_id)
        assert created.status_code == 201
        assert user.is_active is False
        assert user.last_name == "Roy"

        listed = client.get("/api/admin/users?status=inactive", headers=admin_headers).get_json()["data"]
        assert [u["email"] for u in listed["users"]] == ["meera@example.com"]

    def test_detail_has_order_summary(self, client, user, admin_headers, products):
        client.post("/api/orders", json=order_payload([(products[0], 2)]), headers=auth_headers(user))

        data = client.get(f"/api/admin/users/{user.id}", headers=admin_headers).get_json()["data"]

        assert data["order_summary"]["total_orders"] == 1
        assert data["order_summary"]["total_spent"] == 250

    def test_delete(self, client, admin_headers, app):
        target = make_user(email="temp@example.com")

        assert client.delete(f"/api/admin/users/{target.id}", headers=admin_headers).status_code == 200
        assert db.session.get(User, target.id) is None

    def test_user_with_orders_is_not_deleted(self, client, user, admin_headers, products):
        client.post("/api/orders", json=order_payload([(products[0], 1)]), headers=auth_headers(user))

        assert client.delete(f"/api/admin/users/{user.id}", headers=admin_headers).status_code == 409

    def test_admin_cannot_delete_or_demote_self(self, client, admin, admin_headers):
        assert client.delete(f"/api/admin/users/{admin.id}", headers=admin_headers).status_code == 400
        assert client.put(f"/api/admin/users/{admin.id}", headers=admin_headers,
                          json={"role": "user"}).status_code == 400


class TestCustomers:

    def test_list_carries_order_totals(self, client, user, other_user, admin, admin_headers, products):
        client.post("/api/orders", json=order_payload([(products[0], 1)]), headers=auth_headers(user))
        client.post("/api/orders", json=order_payload([(products[1], 2)], "upi"), headers=auth_headers(user))

        data = client.get("/api/admin/customers", headers=admin_headers).get_json()["data"]
        customers = {c["email"]: c for c in data["customers"]}

        assert set(customers) == {"jane@example.com", "ravi@example.com"}
        assert customers["jane@example.com"]["total_orders"] == 2
        assert customers["jane@example.com"]["total_spent"] == 650
        assert customers["jane@example.com"]["average_order_value"] == 325
        assert customers["jane@example.com"]["last_order_date"] is not None
        assert customers["ravi@example.com"]["total_orders"] == 0
        assert customers["ravi@example.com"]["total_spent"] == 0
        assert data["pagination"]["total"] == 2

    def test_search_and_status_filters(self, client, user, other_user, admin_headers):
        other_user.is_active = False
        db.session.commit()

        by_name = client.get("/api/admin/customers?search=ravi", headers=admin_headers).get_json()["data"]
        active = client.get("/api/admin/customers?status=active", headers=admin_headers).get_json()["data"]

        assert [c["email"] for c in by_name["customers"]] == ["ravi@example.com"]
        assert [c["email"] for c in active["customers"]] == ["jane@example.com"]

    def test_stats_rank_top_spenders(self, client, user, other_user, admin_headers, products):
        client.post("/api/orders", json=order_payload([(products[2], 1)]), headers=auth_headers(other_user))
        client.post("/api/orders", json=order_payload([(products[0], 1)]), headers=auth_headers(user))

        stats = client.get("/api/admin/customers/stats", headers=admin_headers).get_json()["data"]

        assert stats["total_customers"] == 2
        assert stats["new_customers_today"] == 2
        assert [c["email"] for c in stats["top_spenders"]] == ["ravi@example.com", "jane@example.com"]
        assert stats["top_spenders"][0]["total_spent"] == 600

    def test_update_customer_status(self, client, user, admin, admin_headers):
        response = client.put(f"/api/admin/customers/{user.id}", headers=admin_headers, json={"is_active": False})

        assert response.status_code == 200
        assert db.session.get(User, user.id).is_active is False
        assert client.put(f"/api/admin/customers/{user.id}", headers=admin_headers,
                          json={"is_active": "no"}).status_code == 400
        assert client.put(f"/api/admin/customers/{admin.id}", headers=admin_headers,
                          json={"is_active": False}).status_code == 404

    def test_activity_feed(self, client, user, admin_headers, products):
        client.post("/api/orders", json=order_payload([(products[0], 1)]), headers=auth_headers(user))
        latest = client.post("/api/orders", json=order_payload([(products[1], 2)]), headers=auth_headers(user))

        data = client.get("/api/admin/activity?limit=1", headers=admin_headers).get_json()["data"]

        activity = data["activities"][0]
        assert data["pagination"]["total"] == 2
        assert activity["metadata"]["order_number"] == latest.get_json()["data"]["order"]["order_number"]
        assert activity["description"] == "Jane Doe placed an order for ₹500.00"
        assert activity["user"]["email"] == "jane@example.com"


class TestAdminInputTypes:

    def test_non_string_tracking_number(self, client, user, admin_headers, products):
        created = client.post("/api/orders", json=order_payload([(products[0], 1)]), headers=auth_headers(user))
        order_id = created.get_json()["data"]["order"]["id"]

        response = client.put(f"/api/admin/orders/{order_id}/status", headers=admin_headers,
                              json={"order_status": "shipped", "tracking_number": 12345})

        assert response.status_code == 400
        assert response.get_json()["errors"][0]["field"] == "tracking_number"

    def test_non_string_product_name(self, client, admin_headers):
        response = client.post("/api/admin/products", headers=admin_headers, json={
            "name": {"en": "Thekua"}, "description": "Sweet", "price": 100, "category": "Thekua",
        })

        assert response.status_code == 400
        assert response.get_json()["errors"][0]["field"] == "name"

    def test_non_finite_price_is_rejected(self, client, admin_headers, products):
        response = client.put(f"/api/admin/products/{products[0].id}", headers=admin_headers,
                              json={"price": "nan", "discount": "inf"})

        assert response.status_code == 400
        assert db.session.get(Product, products[0].id).price == 100


class TestSettingsAndProfile:

    def test_update_single_settings_group(self, client, admin_headers):
        response = client.put("/api/admin/settings/notifications", headers=admin_headers,
                              json={"low_stock_alerts": False})

        assert response.status_code == 200
        assert response.get_json()["data"]["settings"]["low_stock_alerts"] is False
        assert client.put("/api/admin/settings/billing", headers=admin_headers,
                          json={"x": 1}).status_code == 404

    def test_settings_default_then_saved(self, client, admin_headers):
        defaults = client.get("/api/admin/settings", headers=admin_headers).get_json()["data"]["settings"]
        assert defaults["store"]["name"] == "TheKua"
        assert defaults["features"]["enable_coupons"] is True

        response = client.put("/api/admin/settings", headers=admin_headers,
                              json={"store": {"name": "TheKua Patna"}, "features": {"enable_chat": True}})

        settings = response.get_json()["data"]["settings"]
        assert settings["store"]["name"] == "TheKua Patna"
        assert settings["store"]["currency"] == "INR"
        assert settings["features"]["enable_chat"] is True

    def test_settings_reject_unknown_keys_and_types(self, client, admin_headers):
        response = client.put("/api/admin/settings", headers=admin_headers,
                              json={"store": {"colour": "red"}, "security": {"session_timeout": "long"}})

        assert response.status_code == 400
        assert len(response.get_json()["errors"]) == 2

    def test_profile_and_password(self, client, admin, admin_headers):
        profile = client.put("/api/admin/profile", headers=admin_headers,
                             json={"first_name": "Head", "email": "owner@thekua.in"})
        assert profile.get_json()["data"]["user"]["email"] == "owner@thekua.in"

        password = client.put("/api/admin/password", headers=admin_headers,
                              json={"current_password": "Admin@123", "new_password": "Stronger123"})
        assert password.status_code == 200
        assert db.session.get(User, admin.id).check_password("Stronger123")
