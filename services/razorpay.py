"""Thin client for the Razorpay REST API plus the two HMAC checks the shop relies on.

Checkout signatures are HMAC-SHA256 over ``"{order_id}|{payment_id}"`` keyed by the
API secret; webhook signatures are HMAC-SHA256 over the raw request body keyed by
the webhook secret. Both are hex digests.
"""
from core.imports import current_app, hashlib, hmac, requests
from core.errors import GatewayError


def _hex_hmac(secret, message):
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def payment_signature(gateway_order_id, gateway_payment_id, secret=None):
    secret = secret or current_app.config["RAZORPAY_KEY_SECRET"]
    return _hex_hmac(secret, f"{gateway_order_id}|{gateway_payment_id}")


def verify_payment_signature(gateway_order_id, gateway_payment_id, signature, secret=None):
    if not (gateway_order_id and gateway_payment_id and signature):
        return False
    secret = secret or current_app.config.get("RAZORPAY_KEY_SECRET")
    if not secret:
        current_app.logger.error("RAZORPAY_SECRET_KEY is not configured; rejecting payment signature")
        return False
    expected = payment_signature(gateway_order_id, gateway_payment_id, secret)
    return hmac.compare_digest(expected, str(signature))


def verify_webhook_signature(body, signature, secret=None):
    secret = secret or current_app.config.get("RAZORPAY_WEBHOOK_SECRET")
    if not secret or not signature:
        return False
    return hmac.compare_digest(_hex_hmac(secret, body), signature)


def to_subunits(amount):
    # paise for INR
    return int(round(amount * 100))


def create_gateway_order(amount, receipt, notes=None, currency=None):
    config = current_app.config
    payload = {
        "amount": to_subunits(amount),
        "currency": currency or config["CURRENCY"],
        "receipt": receipt[:40],
        "notes": notes or {},
    }
    try:
        response = requests.post(
            f"{config['RAZORPAY_API_URL']}/orders",
            json=payload,
            auth=(config["RAZORPAY_KEY_ID"], config["RAZORPAY_KEY_SECRET"]),
            timeout=config["RAZORPAY_TIMEOUT"],
        )
    except requests.RequestException as exc:
        current_app.logger.error("Razorpay order creation failed: %s", exc)
        raise GatewayError("Failed to create Razorpay order") from exc

    if response.status_code not in (200, 201):
        current_app.logger.error("Razorpay order creation returned %s: %s", response.status_code, response.text)
        raise GatewayError("Failed to create Razorpay order")

    return response.json()


def fetch_gateway_payment(gateway_payment_id):
    config = current_app.config
    try:
        response = requests.get(
            f"{config['RAZORPAY_API_URL']}/payments/{gateway_payment_id}",
            auth=(config["RAZORPAY_KEY_ID"], config["RAZORPAY_KEY_SECRET"]),
            timeout=config["RAZORPAY_TIMEOUT"],
        )
    except requests.RequestException as exc:
        current_app.logger.error("Razorpay payment lookup failed: %s", exc)
        raise GatewayError("Failed to retrieve Razorpay payment") from exc

    if response.status_code != 200:
        current_app.logger.error("Razorpay payment lookup returned %s: %s", response.status_code, response.text)
        raise GatewayError("Failed to retrieve Razorpay payment")

    return response.json()
