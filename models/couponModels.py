from core.extensions import db
from core.imports import datetime

COUPON_TYPES = ("percentage", "fixed")


class Coupon(db.Model):
    __tablename__ = "coupons"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(20), unique=True, nullable=False, index=True)
    description = db.Column(db.String(200), nullable=False)
    type = db.Column(db.String(20), nullable=False)  # percentage, fixed
    discount = db.Column(db.Float, nullable=False)
    min_order_amount = db.Column(db.Float, default=0, nullable=False)
    max_discount_amount = db.Column(db.Float, nullable=True)
    usage_limit = db.Column(db.Integer, nullable=True)
    used_count = db.Column(db.Integer, default=0, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    start_date = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)
    applicable_categories = db.Column(db.JSON, default=list)
    is_first_order_only = db.Column(db.Boolean, default=False, nullable=False)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_currently_valid(self):
        now = datetime.utcnow()
        return (
            self.is_active
            and self.start_date <= now <= self.end_date
            and (self.usage_limit is None or self.used_count < self.usage_limit)
        )

    def check_applicable(self, order_amount, categories=(), is_first_order=False):
        """Return (valid, message) for applying this coupon to a cart."""
        if not self.is_currently_valid:
            return False, "Coupon has expired or is inactive"
        if order_amount < self.min_order_amount:
            return False, f"Minimum order amount ₹{self.min_order_amount:g} required"
        if self.is_first_order_only and not is_first_order:
            return False, "This coupon is valid only for first orders"
        if self.applicable_categories:
            if not any(category in self.applicable_categories for category in categories):
                return False, "Coupon not applicable to items in your cart"
        return True, "Coupon is valid"

    def calculate_discount(self, order_amount):
        if self.type == "percentage":
            amount = round(order_amount * self.discount / 100)
        else:
            amount = self.discount
        if self.max_discount_amount and amount > self.max_discount_amount:
            amount = self.max_discount_amount
        return min(amount, order_amount)

    def to_dict(self):
        return {
            "id": self.id,
            "code": self.code,
            "description": self.description,
            "type": self.type,
            "discount": self.discount,
            "min_order_amount": self.min_order_amount,
            "max_discount_amount": self.max_discount_amount,
            "usage_limit": self.usage_limit,
            "used_count": self.used_count,
            "is_active": self.is_active,
            "is_currently_valid": self.is_currently_valid,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "applicable_categories": self.applicable_categories or [],
            "is_first_order_only": self.is_first_order_only,
        }
