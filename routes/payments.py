from core.imports import Blueprint, jwt_required, request, current_app, datetime
from core.errors import ValidationError, NotFoundError, GatewayError
from core.responses import success, error
from core.validators import field_error
from core.security import get_current_user, admin_required
from core.extensions import db
from models.orderModels import Order, GatewayOrder
from routes.orders import checkout
from services.orders import build_quote, quote_to_dict, cart_items_for
from services.razorpay import create_gateway_order, fetch_gateway_payment, verify_webhook_signature, to_subunits
from services.webhooks import event_id_for, process_event

payments_bp = Blueprint("payments", __name__)


@payments_bp.route('/api/payments/create-razorpay-order', methods=['POST'])
@jwt_required()
def create_razorpay_order():
    """
    Open a Razorpay order for the current cart
    ---
    tags:
      - Payments
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            items:
              type: array
              items:
                type: object
                properties:
                  product_id:
                    type: integer
                  quantity:
                    type: integer
            coupon_code:
              type: string
    responses:
      200:
        description: Gateway order id, amount in paise and the public key id
      502:
        description: Razorpay could not be reached
    """
    user = get_current_user()
    data = request.get_json(silent=True) or {}
    items = data["items"] if "items" in data else cart_items_for(user)
    quote = build_quote(items, data.get("coupon_code"), user)

    gateway_order = create_gateway_order(
        quote["final_amount"],
        receipt=f"thekua_{user.id}_{int(datetime.utcnow().timestamp())}",
        notes={"user_id": str(user.id), "email": user.email},
    )
    if not gateway_order.get("id"):
        raise GatewayError("Failed to create Razorpay order")

    record = GatewayOrder(
        gateway_order_id=gateway_order["id"],
        user_id=user.id,
        amount=gateway_order.get("amount", to_subunits(quote["final_amount"])),
        currency=gateway_order.get("currency", current_app.config["CURRENCY"]),
    )
    db.session.add(record)
    db.session.commit()
    current_app.logger.info("Razorpay order %s opened for user %s (%s paise)", record.gateway_order_id, user.id,
                            record.amount)

    return success({
        "razorpay_order_id": record.gateway_order_id,
        "amount": record.amount,
        "currency": record.currency,
        "key_id": current_app.config["RAZORPAY_KEY_ID"],
        "quote": quote_to_dict(quote),
    }, "Razorpay order created")


@payments_bp.route('/api/payments/verify-razorpay-payment', methods=['POST'])
@jwt_required()
def verify_razorpay_payment():
    """
    Verify a Razorpay checkout and place the order
    ---
    tags:
      - Payments
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          required:
            - razorpay_order_id
            - razorpay_payment_id
            - razorpay_signature
            - shipping_address
          properties:
            razorpay_order_id:
              type: string
            razorpay_payment_id:
              type: string
            razorpay_signature:
              type: string
            items:
              type: array
              items:
                type: object
            shipping_address:
              type: object
            coupon_code:
              type: string
    responses:
      201:
        description: Payment verified and order placed
      400:
        description: Missing details, invalid signature, or an amount that does not match the Razorpay order
    """
    data = request.get_json(silent=True) or {}
    details = data.get("payment_details") or {}
    if not isinstance(details, dict):
        raise ValidationError(errors=[field_error("payment_details", "Payment details must be an object")])
    details = dict(details)
    for key in ("razorpay_order_id", "razorpay_payment_id", "razorpay_signature"):
        if data.get(key):
            details[key] = data[key]
    return checkout({**data, "payment_details": details}, payment_method="razorpay")


@payments_bp.route('/api/payments/cod-order', methods=['POST'])
@jwt_required()
def cod_order():
    return checkout(payment_method="cod")


@payments_bp.route('/api/payments/webhook', methods=['POST'])
def razorpay_webhook():
    """
    Razorpay webhook receiver
    ---
    tags:
      - Payments
    parameters:
      - name: X-Razorpay-Signature
        in: header
        type: string
        required: true
      - name: X-Razorpay-Event-Id
        in: header
        type: string
        required: false
    responses:
      200:
        description: Event processed, or already processed earlier
      400:
        description: Bad signature or payload
    """
    raw_body = request.get_data()
    signature = request.headers.get("X-Razorpay-Signature")

    if not verify_webhook_signature(raw_body, signature):
        current_app.logger.warning("Rejected Razorpay webhook with invalid signature")
        return error("Invalid signature", 400)

    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Invalid webhook payload")

    result = process_event(event_id_for(request.headers, payload, raw_body), payload)
    message = "Event already processed" if result["duplicate"] else "Event processed"
    return success(result, message)


@payments_bp.route('/api/payments/orders/<int:order_id>/gateway-payment', methods=['GET'])
@admin_required
def gateway_payment(order_id):
    """
    Admin: look up the Razorpay payment behind an order
    ---
    tags:
      - Payments
    security:
      - Bearer: []
    parameters:
      - name: order_id
        in: path
        type: integer
        required: true
    responses:
      200:
        description: Payment record as Razorpay reports it
      404:
        description: Order not found or not paid through Razorpay
      502:
        description: Razorpay could not be reached
    """
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    if not order.gateway_payment_id:
        raise NotFoundError("Order has no gateway payment")

    payment = fetch_gateway_payment(order.gateway_payment_id)
    return success({
        "order_number": order.order_number,
        "payment_status": order.payment_status,
        "gateway_payment": payment,
    })
