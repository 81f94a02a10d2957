from conftest import order_payload, razorpay_details, auth_headers, make_product, open_gateway_order
from core.extensions import db
from models.orderModels import Order
from models.productModels import Product


def place(client, headers, payload, **kwargs):
    return client.post("/api/orders", json=payload, headers=headers, **kwargs)


class TestOrderCreation:

    def test_cod_order_is_pending(self, client, user_headers, products):
        response = place(client, user_headers, order_payload([(products[0], 2)]))

        assert response.status_code == 201
        order = response.get_json()["data"]["order"]
        assert order["order_status"] == "pending"
        assert order["payment_status"] == "pending"
        assert order["order_number"].startswith("THK")
        assert order["items"][0]["product"]["name"] == "Classic Gur Thekua"
        assert order["items"][0]["price"] == 100

    def test_razorpay_with_valid_signature_is_confirmed_and_paid(self, client, user, user_headers, products):
        open_gateway_order(user, 500)
        payload = order_payload([(products[1], 2)], "razorpay", payment_details=razorpay_details())
        response = place(client, user_headers, payload)

        assert response.status_code == 201
        order = response.get_json()["data"]["order"]
        assert order["order_status"] == "confirmed"
        assert order["payment_status"] == "completed"
        assert order["payment_details"]["razorpay_payment_id"] == "pay_TEST123"

    def test_razorpay_without_details_is_rejected_and_not_persisted(self, client, user_headers, products):
        response = place(client, user_headers, order_payload([(products[0], 1)], "razorpay"))

        assert response.status_code == 400
        assert response.get_json()["message"] == "Razorpay payment details are required"
        assert Order.query.count() == 0

    def test_razorpay_signed_with_wrong_secret_is_rejected(self, client, user_headers, products):
        details = razorpay_details(secret="not-the-secret")
        response = place(client, user_headers, order_payload([(products[0], 1)], "razorpay", payment_details=details))

        assert response.status_code == 400
        assert response.get_json()["message"] == "Invalid payment signature"
        assert Order.query.count() == 0
        assert db.session.get(Product, products[0].id).stock == 20

    def test_signature_for_a_different_payment_is_rejected(self, client, user_headers, products):
        details = razorpay_details()
        details["razorpay_payment_id"] = "pay_OTHER"
        response = place(client, user_headers, order_payload([(products[0], 1)], "razorpay", payment_details=details))

        assert response.status_code == 400
        assert Order.query.count() == 0

    def test_razorpay_amount_must_match_gateway_order(self, client, user, user_headers, products):
        open_gateway_order(user, 100)
        payload = order_payload([(products[2], 3)], "razorpay", payment_details=razorpay_details())

        response = place(client, user_headers, payload)

        assert response.status_code == 400
        assert response.get_json()["message"] == "Payment amount does not match order total"
        assert Order.query.count() == 0
        assert db.session.get(Product, products[2].id).stock == 3

    def test_razorpay_order_must_have_been_opened_by_the_shop(self, client, user_headers, products):
        payload = order_payload([(products[0], 1)], "razorpay", payment_details=razorpay_details())

        response = place(client, user_headers, payload)

        assert response.status_code == 400
        assert response.get_json()["message"] == "Unknown Razorpay order"
        assert Order.query.count() == 0

    def test_razorpay_order_of_another_user_is_rejected(self, client, other_user, user_headers, products):
        open_gateway_order(other_user, 150)
        payload = order_payload([(products[0], 1)], "razorpay", payment_details=razorpay_details())

        assert place(client, user_headers, payload).status_code == 400

    def test_razorpay_order_settles_one_order_only(self, client, user, user_headers, products):
        open_gateway_order(user, 150)
        place(client, user_headers, order_payload([(products[0], 1)], "razorpay",
                                                  payment_details=razorpay_details()))

        second = place(client, user_headers, order_payload([(products[0], 1)], "razorpay",
                                                           payment_details=razorpay_details(payment_id="pay_SECOND")))

        assert second.status_code == 409
        assert Order.query.count() == 1

    def test_upi_order_is_confirmed_and_paid(self, client, user_headers, products):
        payload = order_payload([(products[0], 1)], "upi", payment_details={"transaction_id": "UPI123"})
        response = place(client, user_headers, payload)

        order = response.get_json()["data"]["order"]
        assert response.status_code == 201
        assert order["order_status"] == "confirmed"
        assert order["payment_status"] == "completed"
        assert order["payment_details"]["transaction_id"] == "UPI123"

    def test_unknown_payment_method(self, client, user_headers, products):
        response = place(client, user_headers, order_payload([(products[0], 1)], "bitcoin"))

        assert response.status_code == 400
        assert response.get_json()["errors"][0]["field"] == "payment_method"

    def test_missing_address_fields_are_reported(self, client, user_headers, products):
        payload = order_payload([(products[0], 1)])
        payload["shipping_address"]["postal_code"] = "012345"
        del payload["shipping_address"]["city"]
        response = place(client, user_headers, payload)

        fields = {e["field"] for e in response.get_json()["errors"]}
        assert response.status_code == 400
        assert fields == {"shipping_address.city", "shipping_address.postal_code"}

    def test_empty_items_without_cart(self, client, user_headers, products):
        response = place(client, user_headers, order_payload([]))

        assert response.status_code == 400
        assert Order.query.count() == 0

    def test_explicit_empty_items_do_not_fall_back_to_cart(self, client, user_headers, products):
        client.post("/api/cart/add", json={"product_id": products[2].id, "quantity": 2}, headers=user_headers)

        response = place(client, user_headers, order_payload([]))

        assert response.status_code == 400
        assert response.get_json()["errors"][0]["field"] == "items"
        assert Order.query.count() == 0
        assert db.session.get(Product, products[2].id).stock == 3

    def test_non_string_fields_are_validation_errors(self, client, user_headers, products):
        bad_method = place(client, user_headers, {**order_payload([(products[0], 1)]), "payment_method": 1})
        bad_coupon = place(client, user_headers, order_payload([(products[0], 1)], coupon_code=["SAVE10"]))
        bad_details = place(client, user_headers, order_payload([(products[0], 1)], "razorpay",
                                                                payment_details="pay_123"))

        assert bad_method.status_code == 400
        assert bad_method.get_json()["errors"][0]["field"] == "payment_method"
        assert bad_coupon.status_code == 400
        assert bad_coupon.get_json()["errors"][0]["field"] == "coupon_code"
        assert bad_details.status_code == 400
        assert Order.query.count() == 0

    def test_inactive_product_is_rejected(self, client, user_headers, app):
        product = make_product("Retired Thekua", is_active=False)
        response = place(client, user_headers, order_payload([(product, 1)]))

        assert response.status_code == 400

    def test_requires_token(self, client, products):
        response = place(client, {}, order_payload([(products[0], 1)]))

        assert response.status_code == 401
        assert response.get_json()["status"] == "error"


class TestPricing:

    def test_subtotal_of_500_ships_free(self, client, user_headers, products):
        response = place(client, user_headers, order_payload([(products[1], 2)]))

        order = response.get_json()["data"]["order"]
        assert order["subtotal"] == 500
        assert order["shipping_charge"] == 0
        assert order["final_amount"] == 500

    def test_subtotal_below_500_pays_shipping(self, client, user_headers, app):
        product = make_product("Mini Thekua", price=499)
        response = place(client, user_headers, order_payload([(product, 1)]))

        order = response.get_json()["data"]["order"]
        assert order["shipping_charge"] == 50
        assert order["final_amount"] == 549
        assert order["total_amount"] == 499

    def test_client_supplied_prices_are_ignored(self, client, user_headers, products):
        payload = order_payload([(products[0], 1)], total_amount=1, final_amount=1)
        payload["items"][0]["price"] = 1
        response = place(client, user_headers, payload)

        order = response.get_json()["data"]["order"]
        assert order["items"][0]["price"] == 100
        assert order["final_amount"] == 150

    def test_product_discount_sets_line_price(self, client, user_headers, app):
        product = make_product("Festive Thekua", price=200, discount=10)
        response = place(client, user_headers, order_payload([(product, 1)]))

        assert response.get_json()["data"]["order"]["items"][0]["price"] == 180

    def test_quote_matches_order(self, client, user_headers, products):
        payload = order_payload([(products[0], 3)])
        quote = client.post("/api/orders/quote", json=payload, headers=user_headers).get_json()["data"]["quote"]
        order = place(client, user_headers, payload).get_json()["data"]["order"]

        assert quote["subtotal"] == order["subtotal"] == 300
        assert quote["final_amount"] == order["final_amount"] == 350


class TestStock:

    def test_order_decrements_stock(self, client, user_headers, products):
        place(client, user_headers, order_payload([(products[1], 3)]))

        product = db.session.get(Product, products[1].id)
        assert product.stock == 2
        assert product.sold_count == 3

    def test_overselling_is_refused(self, client, user_headers, products):
        response = place(client, user_headers, order_payload([(products[0], 1), (products[2], 4)]))

        assert response.status_code == 409
        assert Order.query.count() == 0
        assert db.session.get(Product, products[0].id).stock == 20
        assert db.session.get(Product, products[2].id).stock == 3

    def test_last_unit_goes_to_one_buyer(self, client, user, other_user, products):
        first = place(client, auth_headers(user), order_payload([(products[2], 3)]))
        second = place(client, auth_headers(other_user), order_payload([(products[2], 1)]))

        assert first.status_code == 201
        assert second.status_code == 409
        assert db.session.get(Product, products[2].id).stock == 0


class TestIdempotency:

    def test_repeated_key_returns_the_first_order(self, client, user_headers, products):
        headers = {**user_headers, "Idempotency-Key": "checkout-1"}
        first = place(client, headers, order_payload([(products[0], 1)]))
        second = place(client, headers, order_payload([(products[0], 1)]))

        assert first.status_code == 201
        assert second.status_code == 200
        assert first.get_json()["data"]["order"]["id"] == second.get_json()["data"]["order"]["id"]
        assert Order.query.count() == 1
        assert db.session.get(Product, products[0].id).stock == 19

    def test_repeated_razorpay_payment_returns_existing_order(self, client, user, user_headers, products):
        open_gateway_order(user, 150)
        payload = order_payload([(products[0], 1)], "razorpay", payment_details=razorpay_details())
        place(client, user_headers, payload)
        response = place(client, user_headers, payload)

        assert response.status_code == 200
        assert Order.query.count() == 1

    def test_payment_reused_by_another_user_conflicts(self, client, user, other_user, products):
        open_gateway_order(user, 150)
        payload = order_payload([(products[0], 1)], "razorpay", payment_details=razorpay_details())
        place(client, auth_headers(user), payload)
        response = place(client, auth_headers(other_user), payload)

        assert response.status_code == 409


class TestCartCheckout:

    def test_items_default_to_cart_and_cart_is_emptied(self, client, user_headers, products):
        client.post("/api/cart/add", json={"product_id": products[0].id, "quantity": 2}, headers=user_headers)
        payload = order_payload([])
        del payload["items"]
        response = place(client, user_headers, payload)

        assert response.status_code == 201
        assert response.get_json()["data"]["order"]["subtotal"] == 200
        cart = client.get("/api/cart", headers=user_headers).get_json()["data"]["cart"]
        assert cart["items"] == []


class TestOrderAccess:

    def test_list_own_orders(self, client, user, other_user, products):
        place(client, auth_headers(user), order_payload([(products[0], 1)]))
        place(client, auth_headers(other_user), order_payload([(products[0], 1)]))

        data = client.get("/api/orders", headers=auth_headers(user)).get_json()["data"]
        assert len(data["orders"]) == 1
        assert data["pagination"]["total"] == 1

    def test_other_users_order_is_forbidden(self, client, user, other_user, products):
        order_id = place(client, auth_headers(user), order_payload([(products[0], 1)])).get_json()["data"]["order"]["id"]

        assert client.get(f"/api/orders/{order_id}", headers=auth_headers(other_user)).status_code == 403
        assert client.get("/api/orders/9999", headers=auth_headers(user)).status_code == 404
