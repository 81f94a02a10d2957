from core.extensions import db
from core.imports import datetime

PAYMENT_METHODS = ("cod", "razorpay", "upi")
PAYMENT_STATUSES = ("pending", "completed", "failed", "refunded")
ORDER_STATUSES = ("pending", "confirmed", "processing", "shipped", "delivered", "cancelled")
CANCELLABLE_STATUSES = ("pending", "confirmed")

ORDER_TRANSITIONS = {
    "pending": ("confirmed", "processing", "cancelled"),
    "confirmed": ("processing", "shipped", "cancelled"),
    "processing": ("shipped", "cancelled"),
    "shipped": ("delivered",),
    "delivered": (),
    "cancelled": (),
}


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(20), unique=True, nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    shipping_address = db.Column(db.JSON, nullable=False)
    payment_method = db.Column(db.String(20), nullable=False)
    payment_status = db.Column(db.String(20), default="pending", nullable=False)
    order_status = db.Column(db.String(20), default="pending", nullable=False, index=True)
    payment_details = db.Column(db.JSON, nullable=True)
    gateway_order_id = db.Column(db.String(100), nullable=True, index=True)
    gateway_payment_id = db.Column(db.String(100), unique=True, nullable=True)
    idempotency_key = db.Column(db.String(100), nullable=True)

    subtotal = db.Column(db.Float, nullable=False, default=0)
    shipping_charge = db.Column(db.Float, nullable=False, default=0)
    discount = db.Column(db.Float, nullable=False, default=0)
    total_amount = db.Column(db.Float, nullable=False, default=0)
    final_amount = db.Column(db.Float, nullable=False, default=0)
    coupon_code = db.Column(db.String(20), nullable=True)

    # set while the order holds no stock (after cancellation)
    stock_released = db.Column(db.Boolean, default=False, nullable=False)

    notes = db.Column(db.Text, nullable=True)
    admin_notes = db.Column(db.Text, nullable=True)
    tracking_number = db.Column(db.String(100), nullable=True)
    estimated_delivery = db.Column(db.DateTime, nullable=True)
    delivered_at = db.Column(db.DateTime, nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancellation_reason = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    order_items = db.relationship("OrderItem", backref="order", cascade="all, delete-orphan",
                                  order_by="OrderItem.id")

    __table_args__ = (
        db.UniqueConstraint("user_id", "idempotency_key", name="uq_orders_user_idempotency_key"),
    )

    def set_status(self, new_status):
        self.order_status = new_status
        now = datetime.utcnow()
        if new_status == "delivered" and not self.delivered_at:
            self.delivered_at = now
        if new_status == "cancelled" and not self.cancelled_at:
            self.cancelled_at = now

    @property
    def age_days(self):
        return (datetime.utcnow() - self.created_at).days if self.created_at else 0

    def to_dict(self, include_user=False):
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "user_id": self.user_id,
            "items": [item.to_dict() for item in self.order_items],
            "shipping_address": self.shipping_address,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "order_status": self.order_status,
            "payment_details": self.payment_details or {},
            "subtotal": self.subtotal,
            "shipping_charge": self.shipping_charge,
            "discount": self.discount,
            "total_amount": self.total_amount,
            "final_amount": self.final_amount,
            "coupon_code": self.coupon_code,
            "notes": self.notes,
            "tracking_number": self.tracking_number,
            "estimated_delivery": self.estimated_delivery.isoformat() if self.estimated_delivery else None,
            "delivered_at": self.delivered_at.isoformat() if self.delivered_at else None,
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
            "cancellation_reason": self.cancellation_reason,
            "order_age": self.age_days,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_user:
            data["admin_notes"] = self.admin_notes
            data["user"] = {
                "id": self.user.id,
                "first_name": self.user.first_name,
                "last_name": self.user.last_name,
                "email": self.user.email,
                "phone": self.user.phone,
            } if self.user else None
        return data


class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False)
    product_id = db.Column(db.Integer, nullable=True)  # plain id, the product may be deleted later
    product = db.Column(db.JSON, nullable=False)  # snapshot: id, name, price, image, category
    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Float, nullable=False)  # price per unit at purchase time
    subtotal = db.Column(db.Float, nullable=False)

    def to_dict(self):
        return {
            "product": self.product,
            "quantity": self.quantity,
            "price": self.price,
            "subtotal": self.subtotal,
        }


class ProcessedWebhookEvent(db.Model):
    __tablename__ = "processed_webhook_events"

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.String(128), unique=True, nullable=False)
    event_type = db.Column(db.String(64), nullable=False)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True)
    processed_at = db.Column(db.DateTime, default=datetime.utcnow)


class GatewayOrder(db.Model):
    """A Razorpay order opened by the shop, with the amount it was opened for."""
    __tablename__ = "gateway_orders"

    id = db.Column(db.Integer, primary_key=True)
    gateway_order_id = db.Column(db.String(100), unique=True, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    amount = db.Column(db.Integer, nullable=False)  # paise
    currency = db.Column(db.String(10), nullable=False)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
