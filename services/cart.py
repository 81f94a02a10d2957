from core.extensions import db
from core.errors import NotFoundError, ValidationError
from core.validators import field_error, parse_quantity
from models.cartModels import Cart, CartItem
from models.productModels import Product
from services.orders import compute_shipping


def get_or_create_cart(user):
    cart = Cart.query.filter_by(user_id=user.id).first()
    if not cart:
        cart = Cart(user_id=user.id)
        db.session.add(cart)
        db.session.flush()
    return cart


def _available_product(product_id):
    product = db.session.get(Product, product_id) if isinstance(product_id, int) else None
    if product is None or not product.is_active:
        raise NotFoundError("Product not found")
    return product


def set_item(user, product_id, quantity, increment=False):
    """Add or set a cart line; the stored quantity never exceeds available stock."""
    quantity = parse_quantity(quantity)
    product = _available_product(product_id)
    if product.stock < 1:
        raise ValidationError(f"'{product.name}' is out of stock",
                              errors=[field_error("product_id", "Product is out of stock")])

    cart = get_or_create_cart(user)
    item = CartItem.query.filter_by(cart_id=cart.id, product_id=product.id).first()
    if item is None:
        item = CartItem(cart_id=cart.id, product_id=product.id, quantity=0)
        db.session.add(item)
    item.quantity = min((item.quantity if increment else 0) + quantity, product.stock)
    db.session.commit()
    return item


def remove_item(user, product_id):
    cart = Cart.query.filter_by(user_id=user.id).first()
    item = CartItem.query.filter_by(cart_id=cart.id, product_id=product_id).first() if cart else None
    if item is None:
        raise NotFoundError("Cart item not found")
    db.session.delete(item)
    db.session.commit()


def clear_cart(user):
    cart = Cart.query.filter_by(user_id=user.id).first()
    if cart:
        CartItem.query.filter_by(cart_id=cart.id).delete()
        db.session.commit()


def merge_cart(user, items):
    """Fold a client-side (offline) cart into the server cart.

    Quantities for the same product are summed and capped at stock; unknown,
    inactive or sold-out products are skipped and reported back.
    """
    if not items:
        return []
    if not isinstance(items, list):
        raise ValidationError(errors=[field_error("cart", "Cart must be a list of items")])

    cart = get_or_create_cart(user)
    skipped = []
    for entry in items:
        product_id = entry.get("product_id") if isinstance(entry, dict) else None
        quantity = entry.get("quantity", 1) if isinstance(entry, dict) else None
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            skipped.append(product_id)
            continue
        product = db.session.get(Product, product_id) if isinstance(product_id, int) else None
        if product is None or not product.is_active or product.stock < 1:
            skipped.append(product_id)
            continue
        item = CartItem.query.filter_by(cart_id=cart.id, product_id=product.id).first()
        if item is None:
            item = CartItem(cart_id=cart.id, product_id=product.id, quantity=0)
            db.session.add(item)
            db.session.flush()
        item.quantity = min(item.quantity + quantity, product.stock)
    db.session.commit()
    return skipped


def serialize_cart(user):
    cart = Cart.query.filter_by(user_id=user.id).first()
    items = []
    subtotal = 0
    for item in (cart.cart_items if cart else []):
        product = item.product
        if product is None:
            continue
        line_total = round(product.selling_price * item.quantity, 2)
        subtotal += line_total
        items.append({
            "id": item.id,
            "product_id": product.id,
            "name": product.name,
            "image": product.image_url,
            "category": product.category,
            "price": product.selling_price,
            "quantity": item.quantity,
            "available_stock": product.stock,
            "is_active": product.is_active,
            "line_total": line_total,
        })
    subtotal = round(subtotal, 2)
    shipping = compute_shipping(subtotal)
    return {
        "items": items,
        "item_count": sum(i["quantity"] for i in items),
        "subtotal": subtotal,
        "shipping_charge": shipping,
        "total": round(subtotal + shipping, 2),
    }
