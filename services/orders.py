"""Checkout pricing, order creation and the order status lifecycle.

Prices always come from the catalog, never from the client: each line snapshots
the product's selling price, the subtotal is the sum of line subtotals, shipping
is a step function of the subtotal and a coupon may take a discount off. Stock is
reserved with a conditional decrement inside the same transaction as the order
insert, so two checkouts racing for the last unit cannot both succeed.
"""
from core.imports import current_app, datetime, IntegrityError, or_
from core.extensions import db
from core.errors import ValidationError, PaymentError, AuthorizationError, ConflictError, NotFoundError
from core.validators import field_error, validate_shipping_address, parse_quantity, clean_string
from models.productModels import Product
from models.couponModels import Coupon
from models.cartModels import Cart, CartItem
from models.orderModels import (
    Order, OrderItem, GatewayOrder, PAYMENT_METHODS, ORDER_STATUSES, ORDER_TRANSITIONS, CANCELLABLE_STATUSES,
)
from services.razorpay import verify_payment_signature, to_subunits

# payment method -> (order_status, payment_status) at creation
INITIAL_STATUS = {
    "cod": ("pending", "pending"),
    "razorpay": ("confirmed", "completed"),
    "upi": ("confirmed", "completed"),
}


def compute_shipping(subtotal, threshold=None, fee=None):
    if threshold is None:
        threshold = current_app.config["FREE_SHIPPING_THRESHOLD"]
    if fee is None:
        fee = current_app.config["SHIPPING_FEE"]
    if subtotal <= 0:
        return 0
    return 0 if subtotal >= threshold else fee


def compute_final_amount(subtotal, shipping_charge, discount):
    return max(round(subtotal + shipping_charge - discount, 2), 0)


def _normalize_items(raw_items):
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("Order items are required", errors=[field_error("items", "Order items are required")])

    quantities = {}
    for index, item in enumerate(raw_items):
        if not isinstance(item, dict):
            raise ValidationError(errors=[field_error(f"items[{index}]", "Invalid item")])
        product_id = item.get("product_id")
        if isinstance(product_id, bool) or not isinstance(product_id, int):
            raise ValidationError(errors=[field_error(f"items[{index}].product_id", "Product id must be an integer")])
        quantity = parse_quantity(item.get("quantity", 1), field=f"items[{index}].quantity")
        quantities[product_id] = quantities.get(product_id, 0) + quantity
    return quantities


def price_items(raw_items):
    """Resolve requested items against the catalog.

    Returns a list of line dicts (product, quantity, unit price, subtotal,
    snapshot) and the subtotal.
    """
    quantities = _normalize_items(raw_items)
    products = {
        p.id: p for p in Product.query.filter(Product.id.in_(quantities.keys())).all()
    }

    lines = []
    errors = []
    for product_id, quantity in quantities.items():
        product = products.get(product_id)
        if product is None or not product.is_active:
            errors.append(field_error("items", f"Product with id {product_id} not found or unavailable"))
            continue
        unit_price = product.selling_price
        lines.append({
            "product": product,
            "quantity": quantity,
            "price": unit_price,
            "subtotal": round(unit_price * quantity, 2),
            "snapshot": product.snapshot(),
        })
    if errors:
        raise ValidationError(errors=errors)

    subtotal = round(sum(line["subtotal"] for line in lines), 2)
    return lines, subtotal


def is_first_order(user):
    if user is None:
        return True
    return not Order.query.filter(Order.user_id == user.id, Order.order_status != "cancelled").count()


def resolve_coupon(code, subtotal, categories, user=None):
    """Return (coupon, discount) for a code, or raise ValidationError when it can't apply."""
    if not code:
        return None, 0
    coupon = Coupon.query.filter_by(code=clean_string(code, "coupon_code").upper(), is_active=True).first()
    if coupon is None:
        raise ValidationError("Invalid coupon code", errors=[field_error("coupon_code", "Invalid coupon code")])
    valid, message = coupon.check_applicable(subtotal, categories, is_first_order(user))
    if not valid:
        raise ValidationError(message, errors=[field_error("coupon_code", message)])
    return coupon, coupon.calculate_discount(subtotal)


def build_quote(raw_items, coupon_code=None, user=None):
    lines, subtotal = price_items(raw_items)
    categories = {line["snapshot"]["category"] for line in lines}
    coupon, discount = resolve_coupon(coupon_code, subtotal, categories, user)
    shipping_charge = compute_shipping(subtotal)
    return {
        "lines": lines,
        "coupon": coupon,
        "subtotal": subtotal,
        "shipping_charge": shipping_charge,
        "discount": discount,
        "total_amount": subtotal,
        "final_amount": compute_final_amount(subtotal, shipping_charge, discount),
    }


def quote_to_dict(quote):
    return {
        "items": [
            {"product": line["snapshot"], "quantity": line["quantity"],
             "price": line["price"], "subtotal": line["subtotal"]}
            for line in quote["lines"]
        ],
        "subtotal": quote["subtotal"],
        "shipping_charge": quote["shipping_charge"],
        "discount": quote["discount"],
        "total_amount": quote["total_amount"],
        "final_amount": quote["final_amount"],
        "coupon_code": quote["coupon"].code if quote["coupon"] else None,
        "free_shipping_threshold": current_app.config["FREE_SHIPPING_THRESHOLD"],
    }


def reserve_stock(items):
    """Decrement stock for (product_id, quantity) pairs; ConflictError if any line can't be covered."""
    for product_id, quantity in items:
        result = db.session.execute(
            db.update(Product)
            .where(Product.id == product_id, Product.stock >= quantity)
            .values(stock=Product.stock - quantity, sold_count=Product.sold_count + quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            product = db.session.get(Product, product_id)
            name = product.name if product else product_id
            raise ConflictError(f"Insufficient stock for '{name}'")
    _expire_products(product_id for product_id, _ in items)


def release_stock(order):
    for item in order.order_items:
        if item.product_id is None:
            continue
        db.session.execute(
            db.update(Product)
            .where(Product.id == item.product_id)
            .values(stock=Product.stock + item.quantity,
                    sold_count=db.case((Product.sold_count >= item.quantity, Product.sold_count - item.quantity), else_=0))
            .execution_options(synchronize_session=False)
        )
    _expire_products(item.product_id for item in order.order_items)
    order.stock_released = True


def _expire_products(product_ids):
    ids = set(product_ids)
    for obj in list(db.session.identity_map.values()):
        if isinstance(obj, Product) and obj.id in ids:
            db.session.expire(obj)


def _consume_coupon(coupon):
    result = db.session.execute(
        db.update(Coupon)
        .where(Coupon.id == coupon.id,
               or_(Coupon.usage_limit.is_(None), Coupon.used_count < Coupon.usage_limit))
        .values(used_count=Coupon.used_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError("Coupon usage limit reached")
    db.session.expire(coupon)


def cart_items_for(user):
    cart = Cart.query.filter_by(user_id=user.id).first()
    if not cart:
        return []
    return [{"product_id": ci.product_id, "quantity": ci.quantity} for ci in cart.cart_items]


def _remove_purchased_from_cart(user, product_ids):
    cart = Cart.query.filter_by(user_id=user.id).first()
    if cart:
        CartItem.query.filter(CartItem.cart_id == cart.id, CartItem.product_id.in_(product_ids)) \
            .delete(synchronize_session=False)


def _payment_details(payment_method, details):
    """Validate gateway details for the chosen method and return what gets stored on the order."""
    details = details or {}
    if not isinstance(details, dict):
        raise ValidationError(errors=[field_error("payment_details", "Payment details must be an object")])
    if payment_method == "razorpay":
        gateway_order_id = details.get("razorpay_order_id")
        gateway_payment_id = details.get("razorpay_payment_id")
        signature = details.get("razorpay_signature")
        if not (gateway_order_id and gateway_payment_id and signature):
            raise ValidationError(
                "Razorpay payment details are required",
                errors=[field_error("payment_details", "Razorpay payment details are required")],
            )
        if not verify_payment_signature(gateway_order_id, gateway_payment_id, signature):
            raise PaymentError("Invalid payment signature")
        return {
            "razorpay_order_id": gateway_order_id,
            "razorpay_payment_id": gateway_payment_id,
            "payment_method": "razorpay",
            "paid_at": datetime.utcnow().isoformat(),
        }
    if payment_method == "upi":
        stored = {"payment_method": "upi", "paid_at": datetime.utcnow().isoformat()}
        if details.get("transaction_id"):
            stored["transaction_id"] = str(details["transaction_id"])
        return stored
    return None


def _paid_gateway_order(user, gateway_order_id, final_amount):
    """The shop's record of the Razorpay order this payment settles, checked against the order total."""
    gateway_order = GatewayOrder.query.filter_by(gateway_order_id=gateway_order_id).first()
    if gateway_order is None or gateway_order.user_id != user.id:
        raise PaymentError("Unknown Razorpay order")
    if gateway_order.order_id is not None:
        raise ConflictError("Razorpay order already used for another order")
    if gateway_order.amount != to_subunits(final_amount):
        current_app.logger.warning(
            "Razorpay order %s was opened for %s paise but the order totals %.2f",
            gateway_order_id, gateway_order.amount, final_amount,
        )
        raise PaymentError("Payment amount does not match order total")
    return gateway_order


def _existing_order(user, idempotency_key, gateway_payment_id):
    if gateway_payment_id:
        order = Order.query.filter_by(gateway_payment_id=gateway_payment_id).first()
        if order is not None:
            if order.user_id != user.id:
                raise ConflictError("Payment already used for another order")
            return order
    if idempotency_key:
        return Order.query.filter_by(user_id=user.id, idempotency_key=idempotency_key).first()
    return None


def create_order(user, data, idempotency_key=None):
    """Create an order from a checkout payload.

    Returns ``(order, created)``; ``created`` is False when the request repeats an
    earlier one (same idempotency key or same gateway payment id).
    """
    data = data or {}
    payment_method = clean_string(data.get("payment_method"), "payment_method").lower()
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(
            "Invalid payment method",
            errors=[field_error("payment_method", f"Payment method must be one of: {', '.join(PAYMENT_METHODS)}")],
        )

    shipping_address = validate_shipping_address(data.get("shipping_address"))
    payment_details = _payment_details(payment_method, data.get("payment_details"))
    gateway_payment_id = payment_details.get("razorpay_payment_id") if payment_details else None

    existing = _existing_order(user, idempotency_key, gateway_payment_id)
    if existing is not None:
        current_app.logger.info("Duplicate checkout for user %s returned order %s", user.id, existing.order_number)
        return existing, False

    raw_items = data["items"] if "items" in data else cart_items_for(user)
    quote = build_quote(raw_items, data.get("coupon_code"), user)
    order_status, payment_status = INITIAL_STATUS[payment_method]
    gateway_order = None
    if payment_method == "razorpay":
        gateway_order = _paid_gateway_order(user, payment_details["razorpay_order_id"], quote["final_amount"])

    order = Order(
        user_id=user.id,
        shipping_address=shipping_address,
        payment_method=payment_method,
        payment_status=payment_status,
        order_status=order_status,
        payment_details=payment_details,
        gateway_order_id=payment_details.get("razorpay_order_id") if payment_details else None,
        gateway_payment_id=gateway_payment_id,
        idempotency_key=idempotency_key,
        subtotal=quote["subtotal"],
        shipping_charge=quote["shipping_charge"],
        discount=quote["discount"],
        total_amount=quote["total_amount"],
        final_amount=quote["final_amount"],
        coupon_code=quote["coupon"].code if quote["coupon"] else None,
        notes=clean_string(data.get("notes"), "notes") or None,
    )
    for line in quote["lines"]:
        order.order_items.append(OrderItem(
            product_id=line["product"].id,
            product=line["snapshot"],
            quantity=line["quantity"],
            price=line["price"],
            subtotal=line["subtotal"],
        ))

    try:
        db.session.add(order)
        db.session.flush()
        order.order_number = f"THK{order.id:06d}"
        if gateway_order is not None:
            gateway_order.order_id = order.id
        reserve_stock([(line["product"].id, line["quantity"]) for line in quote["lines"]])
        if quote["coupon"]:
            _consume_coupon(quote["coupon"])
        _remove_purchased_from_cart(user, [line["product"].id for line in quote["lines"]])
        db.session.commit()
    except ConflictError:
        db.session.rollback()
        raise
    except IntegrityError:
        db.session.rollback()
        existing = _existing_order(user, idempotency_key, gateway_payment_id)
        if existing is not None:
            return existing, False
        raise

    current_app.logger.info(
        "Order %s created for user %s (%s, %s/%s, final %.2f)",
        order.order_number, user.id, payment_method, order_status, payment_status, order.final_amount,
    )
    return order, True


def get_order_for_user(order_id, user):
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    if order.user_id != user.id:
        raise AuthorizationError("You are not allowed to access this order")
    return order


def cancel_order(order, user, reason=None):
    if order.user_id != user.id:
        raise AuthorizationError("You are not allowed to cancel this order")
    if order.order_status not in CANCELLABLE_STATUSES:
        raise ValidationError("Order cannot be cancelled at this stage")

    order.set_status("cancelled")
    order.cancellation_reason = clean_string(reason, "reason") or "Cancelled by customer"
    if not order.stock_released:
        release_stock(order)
    db.session.commit()
    current_app.logger.info("Order %s cancelled by user %s", order.order_number, user.id)
    return order


def _reclaim_stock(order, enforce):
    """Take stock back for an order leaving ``cancelled``.

    With transitions enforced a shortage is a conflict; otherwise the status
    write still goes through and the order stays marked as released.
    """
    try:
        reserve_stock([(item.product_id, item.quantity) for item in order.order_items if item.product_id])
    except ConflictError as exc:
        db.session.rollback()
        if enforce:
            raise
        current_app.logger.warning("Order %s reopened without stock: %s", order.order_number, exc.message)
        return
    order.stock_released = False


def can_transition(current_status, new_status):
    return new_status == current_status or new_status in ORDER_TRANSITIONS.get(current_status, ())


def update_order_status(order, new_status, tracking_number=None, estimated_delivery=None,
                        admin_notes=None, enforce=None):
    """Admin status write.

    Only enum membership is checked unless ``enforce`` (or the
    ENFORCE_ORDER_TRANSITIONS setting) asks for the adjacency table.
    """
    if new_status not in ORDER_STATUSES:
        raise ValidationError("Invalid order status",
                              errors=[field_error("order_status", f"Must be one of: {', '.join(ORDER_STATUSES)}")])
    if enforce is None:
        enforce = current_app.config.get("ENFORCE_ORDER_TRANSITIONS", False)
    previous = order.order_status
    if enforce and not can_transition(previous, new_status):
        raise ConflictError(f"Cannot change order status from {previous} to {new_status}")

    if new_status == "cancelled" and not order.stock_released:
        release_stock(order)
    elif new_status != "cancelled" and order.stock_released:
        _reclaim_stock(order, enforce)

    order.set_status(new_status)
    if tracking_number:
        order.tracking_number = tracking_number
    if estimated_delivery:
        order.estimated_delivery = estimated_delivery
    if admin_notes:
        order.admin_notes = admin_notes
    db.session.commit()

    current_app.logger.info("Order %s status changed %s -> %s", order.order_number, previous, new_status)
    return order
