from core.imports import Blueprint, jwt_required, request
from core.responses import success, paginate
from core.security import get_current_user
from core.validators import parse_int
from models.orderModels import Order, ORDER_STATUSES
from services.orders import create_order, build_quote, quote_to_dict, get_order_for_user, cancel_order

orders_bp = Blueprint("orders", __name__)


def checkout(data=None, payment_method=None):
    """Shared body of every order-creating endpoint."""
    user = get_current_user()
    if data is None:
        data = request.get_json(silent=True) or {}
    if payment_method:
        data = {**data, "payment_method": payment_method}
    idempotency_key = (request.headers.get("Idempotency-Key") or "").strip()[:100] or None

    order, created = create_order(user, data, idempotency_key=idempotency_key)
    if not created:
        return success({"order": order.to_dict()}, "Order already placed")
    return success({"order": order.to_dict()}, "Order placed successfully", 201)


@orders_bp.route('/api/orders/quote', methods=['POST'])
@jwt_required()
def quote_order():
    """
    Price a cart before checkout
    ---
    tags:
      - Orders
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
                    example: 1
                  quantity:
                    type: integer
                    example: 2
            coupon_code:
              type: string
              example: "WELCOME10"
    responses:
      200:
        description: Subtotal, shipping, discount and final amount
      400:
        description: Invalid items or coupon
    """
    user = get_current_user()
    data = request.get_json(silent=True) or {}
    quote = build_quote(data.get("items"), data.get("coupon_code"), user)
    return success({"quote": quote_to_dict(quote)})


@orders_bp.route('/api/orders', methods=['POST'])
@jwt_required()
def place_order():
    """
    Create a new order for the logged-in user
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      - name: Idempotency-Key
        in: header
        type: string
        required: false
        description: "Repeating a key returns the first order instead of creating another"
      - name: body
        in: body
        required: true
        schema:
          type: object
          required:
            - payment_method
            - shipping_address
          properties:
            payment_method:
              type: string
              enum: [cod, razorpay, upi]
            items:
              type: array
              description: "Optional; defaults to the user's cart"
              items:
                type: object
                properties:
                  product_id:
                    type: integer
                    example: 2
                  quantity:
                    type: integer
                    example: 3
            shipping_address:
              type: object
              properties:
                full_name:
                  type: string
                  example: "Jane Doe"
                phone:
                  type: string
                  example: "9123456780"
                email:
                  type: string
                  example: "jane@example.com"
                street:
                  type: string
                  example: "12 Boring Road"
                city:
                  type: string
                  example: "Patna"
                state:
                  type: string
                  example: "Bihar"
                postal_code:
                  type: string
                  example: "800001"
                country:
                  type: string
                  example: "India"
            payment_details:
              type: object
              properties:
                razorpay_order_id:
                  type: string
                razorpay_payment_id:
                  type: string
                razorpay_signature:
                  type: string
            coupon_code:
              type: string
            notes:
              type: string
    responses:
      201:
        description: Order created
      200:
        description: Repeated request, the original order is returned
      400:
        description: Validation failure or invalid payment signature
      409:
        description: Insufficient stock
    """
    return checkout()


@orders_bp.route('/api/orders', methods=['GET'])
@jwt_required()
def get_user_orders():
    user = get_current_user()
    query = Order.query.filter_by(user_id=user.id)
    status = request.args.get("status")
    if status in ORDER_STATUSES:
        query = query.filter(Order.order_status == status)
    query = query.order_by(Order.created_at.desc(), Order.id.desc())

    page = parse_int(request.args.get("page"), 1)
    limit = parse_int(request.args.get("limit"), 10, maximum=50)
    orders, pagination = paginate(query, page, limit)
    return success({"orders": [order.to_dict() for order in orders], "pagination": pagination})


@orders_bp.route('/api/orders/<int:order_id>', methods=['GET'])
@jwt_required()
def get_order_details(order_id):
    order = get_order_for_user(order_id, get_current_user())
    return success({"order": order.to_dict()})


@orders_bp.route('/api/orders/<int:order_id>/cancel', methods=['PUT'])
@jwt_required()
def cancel_user_order(order_id):
    """
    Cancel an order that has not shipped yet
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    parameters:
      - name: order_id
        in: path
        type: integer
        required: true
      - name: body
        in: body
        required: false
        schema:
          type: object
          properties:
            reason:
              type: string
              example: "Ordered by mistake"
    responses:
      200:
        description: Order cancelled
      400:
        description: Order cannot be cancelled at this stage
      403:
        description: Order belongs to another user
      404:
        description: Order not found
    """
    user = get_current_user()
    order = get_order_for_user(order_id, user)
    data = request.get_json(silent=True) or {}
    cancel_order(order, user, data.get("reason"))
    return success({"order": order.to_dict()}, "Order cancelled successfully")
