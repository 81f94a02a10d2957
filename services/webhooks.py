from core.imports import current_app, datetime, hashlib, IntegrityError
from core.extensions import db
from models.orderModels import Order, ProcessedWebhookEvent

HANDLED_EVENTS = ("payment.captured", "order.paid", "payment.failed", "refund.processed")


def event_id_for(headers, payload, raw_body):
    event_id = headers.get("X-Razorpay-Event-Id") or payload.get("id")
    if event_id:
        return str(event_id)
    return "sha256:" + hashlib.sha256(raw_body).hexdigest()


def _entities(payload):
    body = payload.get("payload") or {}
    payment = (body.get("payment") or {}).get("entity") or {}
    refund = (body.get("refund") or {}).get("entity") or {}
    gateway_order = (body.get("order") or {}).get("entity") or {}
    return payment, refund, gateway_order


def _find_order(payment, refund, gateway_order):
    payment_id = payment.get("id") or refund.get("payment_id")
    if payment_id:
        order = Order.query.filter_by(gateway_payment_id=payment_id).first()
        if order is not None:
            return order
    gateway_order_id = payment.get("order_id") or gateway_order.get("id")
    if gateway_order_id:
        return Order.query.filter_by(gateway_order_id=gateway_order_id).first()
    return None


def _apply(event_type, order, payment, refund):
    details = dict(order.payment_details or {})
    if event_type in ("payment.captured", "order.paid"):
        order.payment_status = "completed"
        if order.order_status == "pending":
            order.set_status("confirmed")
        if payment.get("id"):
            details["razorpay_payment_id"] = payment["id"]
            if order.gateway_payment_id is None:
                order.gateway_payment_id = payment["id"]
        details.setdefault("paid_at", datetime.utcnow().isoformat())
    elif event_type == "payment.failed":
        if order.payment_status != "completed":
            order.payment_status = "failed"
        if payment.get("error_description"):
            details["failure_reason"] = payment["error_description"]
    elif event_type == "refund.processed":
        order.payment_status = "refunded"
        details["refund"] = {
            "refund_id": refund.get("id"),
            "amount": (refund.get("amount") or 0) / 100,
            "refunded_at": datetime.utcnow().isoformat(),
        }
    order.payment_details = details


def process_event(event_id, payload):
    """Apply a verified gateway event once.

    Returns a dict describing the outcome; repeated event ids are reported as
    duplicates and change nothing.
    """
    event_type = payload.get("event") or "unknown"

    if ProcessedWebhookEvent.query.filter_by(event_id=event_id).first():
        current_app.logger.info("Webhook event %s (%s) already processed", event_id, event_type)
        return {"duplicate": True, "event": event_type}

    order = None
    if event_type in HANDLED_EVENTS:
        payment, refund, gateway_order = _entities(payload)
        order = _find_order(payment, refund, gateway_order)
        if order is None:
            current_app.logger.warning("Webhook event %s (%s) references no known order", event_id, event_type)
        else:
            _apply(event_type, order, payment, refund)
    else:
        current_app.logger.info("Ignoring unhandled webhook event %s (%s)", event_id, event_type)

    db.session.add(ProcessedWebhookEvent(
        event_id=event_id, event_type=event_type, order_id=order.id if order else None,
    ))
    try:
        db.session.commit()
    except IntegrityError:
        # a concurrent delivery of the same event won the insert
        db.session.rollback()
        return {"duplicate": True, "event": event_type}

    if order is not None:
        current_app.logger.info(
            "Webhook %s applied to order %s: payment=%s order=%s",
            event_type, order.order_number, order.payment_status, order.order_status,
        )
    return {"duplicate": False, "event": event_type, "order_number": order.order_number if order else None}
