from core.extensions import db
from core.imports import datetime

CATEGORIES = (
    "Thekua", "Sweets", "Snacks", "Traditional", "Festival Special",
    "Gift Boxes", "Organic", "Sugar-Free",
)


class Product(db.Model):
    __tablename__ = "products"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False, index=True)
    description = db.Column(db.Text, nullable=False)
    category = db.Column(db.String(50), nullable=False, default="Thekua", index=True)
    price = db.Column(db.Float, nullable=False)
    discount = db.Column(db.Float, default=0, nullable=False)  # percentage, 0-100
    stock = db.Column(db.Integer, default=0, nullable=False)
    weight = db.Column(db.String(50), nullable=True)
    tags = db.Column(db.JSON, default=list)

    image_url = db.Column(db.String(500), nullable=True)
    image_public_id = db.Column(db.String(255), nullable=True)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    is_featured = db.Column(db.Boolean, default=False, nullable=False)

    sold_count = db.Column(db.Integer, default=0, nullable=False)
    views = db.Column(db.Integer, default=0, nullable=False)
    rating_average = db.Column(db.Float, default=0, nullable=False)
    rating_count = db.Column(db.Integer, default=0, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
    )

    @property
    def selling_price(self):
        return round(self.price * (100 - (self.discount or 0)) / 100, 2)

    def snapshot(self):
        """Fields copied into an order line so later edits don't rewrite history."""
        return {
            "id": self.id,
            "name": self.name,
            "price": self.selling_price,
            "image": self.image_url,
            "category": self.category,
        }

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "price": self.price,
            "discount": self.discount,
            "selling_price": self.selling_price,
            "stock": self.stock,
            "in_stock": self.stock > 0,
            "weight": self.weight,
            "tags": self.tags or [],
            "image_url": self.image_url,
            "is_active": self.is_active,
            "is_featured": self.is_featured,
            "sold_count": self.sold_count,
            "views": self.views,
            "ratings": {"average": self.rating_average, "count": self.rating_count},
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
