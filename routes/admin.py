from core.imports import Blueprint, request, current_app, func, or_
from core.extensions import db
from core.errors import ValidationError, NotFoundError, ConflictError
from core.responses import success, paginate
from core.security import admin_required, get_current_user
from core.validators import (
    field_error, parse_int, parse_bool, parse_amount, parse_datetime, is_valid_email, normalize_email,
    password_errors, clean_string, PROFILE_PHONE_RE,
)
from models.cartModels import CartItem
from models.orderModels import Order, GatewayOrder, ORDER_STATUSES, PAYMENT_STATUSES
from models.productModels import Product, CATEGORIES
from models.userModel import User, ROLES
from routes.user import apply_profile_update
from services import analytics
from services.orders import update_order_status
from services.settings import SETTING_GROUPS, load_settings, save_settings
from services.uploads import upload_image, delete_image

admin_bp = Blueprint('admin', __name__)

ORDER_SORTS = {
    "newest": (Order.created_at.desc(), Order.id.desc()),
    "oldest": (Order.created_at.asc(), Order.id.asc()),
    "amount_desc": (Order.final_amount.desc(), Order.id.desc()),
    "amount_asc": (Order.final_amount.asc(), Order.id.asc()),
}


def seed_products():
    sample_products = [
        {
            "name": "Classic Gur Thekua (500g)",
            "description": "Crisp wheat-flour thekua sweetened with jaggery and fried in pure ghee.",
            "category": "Thekua",
            "price": 249,
            "discount": 0,
            "stock": 120,
            "weight": "500g",
            "tags": ["chhath", "jaggery", "ghee"],
            "is_featured": True,
        },
        {
            "name": "Coconut Thekua (250g)",
            "description": "Thekua with desiccated coconut and cardamom.",
            "category": "Thekua",
            "price": 149,
            "discount": 10,
            "stock": 80,
            "weight": "250g",
            "tags": ["coconut"],
            "is_featured": False,
        },
        {
            "name": "Sugar-Free Thekua (250g)",
            "description": "Dates-sweetened thekua for a guilt-free snack.",
            "category": "Sugar-Free",
            "price": 199,
            "discount": 0,
            "stock": 40,
            "weight": "250g",
            "tags": ["sugar-free", "dates"],
            "is_featured": True,
        },
        {
            "name": "Chhath Puja Gift Box",
            "description": "Assorted thekua, khajur and laddoo packed for gifting.",
            "category": "Gift Boxes",
            "price": 799,
            "discount": 5,
            "stock": 25,
            "weight": "1kg",
            "tags": ["gift", "festival"],
            "is_featured": True,
        },
    ]

    for data in sample_products:
        exists = Product.query.filter_by(name=data["name"]).first()
        if not exists:
            db.session.add(Product(**data))
    db.session.commit()
    print("✅ Sample products seeded successfully")


def get_or_404(model, object_id, label):
    obj = db.session.get(model, object_id)
    if obj is None:
        raise NotFoundError(f"{label} not found")
    return obj


# =========================
# Dashboard and analytics
# =========================
@admin_bp.route('/api/admin/dashboard', methods=['GET'])
@admin_required
def dashboard():
    """
    Admin: store overview
    ---
    tags:
      - Admin
    security:
      - Bearer: []
    responses:
      200:
        description: Orders, customers, products, revenue, recent orders and top products
      403:
        description: Admin privileges required
    """
    return success(analytics.dashboard_overview())


@admin_bp.route('/api/admin/dashboard/stats', methods=['GET'])
@admin_required
def dashboard_stats():
    return success(analytics.dashboard_stats())


@admin_bp.route('/api/admin/dashboard/quick-actions', methods=['GET'])
@admin_required
def quick_actions():
    return success(analytics.quick_actions())


@admin_bp.route('/api/admin/analytics', methods=['GET'])
@admin_required
def get_analytics():
    """
    Admin: daily revenue or order trends
    ---
    tags:
      - Admin
    security:
      - Bearer: []
    parameters:
      - name: date_range
        in: query
        type: integer
        default: 30
        description: Number of days to look back
      - name: filter_type
        in: query
        type: string
        enum: [revenue, orders]
        default: revenue
    responses:
      200:
        description: Trend buckets plus order totals for the window
    """
    days = parse_int(request.args.get("date_range"), 30, maximum=365)
    filter_type = request.args.get("filter_type", "revenue")
    if filter_type not in ("revenue", "orders"):
        raise ValidationError(errors=[field_error("filter_type", "Must be revenue or orders")])

    return success({
        "date_range": days,
        "filter_type": filter_type,
        "trends": analytics.trends(days, filter_type),
        "order_status": analytics.order_status_counts(),
    })


@admin_bp.route('/api/admin/orders/stats', methods=['GET'])
@admin_required
def order_stats():
    return success(analytics.order_stats())


# =========================
# Orders
# =========================
@admin_bp.route('/api/admin/orders', methods=['GET'])
@admin_required
def list_orders():
    args = request.args
    query = Order.query.join(User, Order.user_id == User.id)

    if args.get("status") in ORDER_STATUSES:
        query = query.filter(Order.order_status == args["status"])
    if args.get("payment_status") in PAYMENT_STATUSES:
        query = query.filter(Order.payment_status == args["payment_status"])
    if args.get("search"):
        term = f"%{args['search'].strip()}%"
        query = query.filter(or_(
            Order.order_number.ilike(term),
            User.first_name.ilike(term),
            User.last_name.ilike(term),
            User.email.ilike(term),
            User.phone.ilike(term),
        ))

    query = query.order_by(*ORDER_SORTS.get(args.get("sort"), ORDER_SORTS["newest"]))
    orders, pagination = paginate(query, parse_int(args.get("page"), 1), parse_int(args.get("limit"), 20, maximum=100))
    return success({"orders": [o.to_dict(include_user=True) for o in orders], "pagination": pagination})


@admin_bp.route('/api/admin/orders/<int:order_id>', methods=['GET'])
@admin_required
def order_details(order_id):
    order = get_or_404(Order, order_id, "Order")
    return success({"order": order.to_dict(include_user=True)})


@admin_bp.route('/api/admin/orders/<int:order_id>/status', methods=['PUT'])
@admin_required
def update_status(order_id):
    """
    Admin: set an order's status
    ---
    tags:
      - Admin
    security:
      - Bearer: []
    parameters:
      - name: order_id
        in: path
        type: integer
        required: true
      - name: body
        in: body
        required: true
        schema:
          type: object
          required:
            - order_status
          properties:
            order_status:
              type: string
              enum: [pending, confirmed, processing, shipped, delivered, cancelled]
            tracking_number:
              type: string
              example: "DTDC123456789"
            estimated_delivery:
              type: string
              example: "2026-11-02T00:00:00Z"
            admin_notes:
              type: string
    responses:
      200:
        description: Status updated
      400:
        description: Invalid order status
      404:
        description: Order not found
      409:
        description: Transition not allowed while transitions are enforced
    """
    order = get_or_404(Order, order_id, "Order")
    data = request.get_json(silent=True) or {}
    update_order_status(
        order,
        data.get("order_status"),
        tracking_number=clean_string(data.get("tracking_number"), "tracking_number") or None,
        estimated_delivery=parse_datetime(data.get("estimated_delivery"), "estimated_delivery"),
        admin_notes=clean_string(data.get("admin_notes"), "admin_notes") or None,
    )
    return success({"order": order.to_dict(include_user=True)}, "Order status updated successfully")


# =========================
# Products
# =========================
def product_payload():
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


def clean_product_data(data, partial=False):
    values = {}
    errors = []

    if not partial:
        for field in ("name", "description", "price"):
            if data.get(field) in (None, ""):
                errors.append(field_error(field, f"{field.capitalize()} is required"))
        if errors:
            raise ValidationError(errors=errors)

    for field in ("name", "description", "weight"):
        if field in data:
            values[field] = clean_string(data.get(field), field) or None
    if "name" in values and (not values["name"] or len(values["name"]) > 150):
        errors.append(field_error("name", "Name must be 1-150 characters"))
    if "description" in values and not values["description"]:
        errors.append(field_error("description", "Description is required"))

    if "category" in data:
        if data["category"] not in CATEGORIES:
            errors.append(field_error("category", f"Category must be one of: {', '.join(CATEGORIES)}"))
        values["category"] = data["category"]
    if "price" in data:
        values["price"] = parse_amount(data["price"], "price", minimum=0.01)
    if "discount" in data:
        values["discount"] = parse_amount(data["discount"] or 0, "discount")
        if values["discount"] > 100:
            errors.append(field_error("discount", "Discount must be between 0 and 100"))
    if "stock" in data:
        try:
            values["stock"] = int(data["stock"])
        except (TypeError, ValueError, OverflowError):
            values["stock"] = -1
        if values["stock"] < 0:
            errors.append(field_error("stock", "Stock must be a non-negative integer"))
    if "tags" in data:
        tags = data["tags"]
        if isinstance(tags, str):
            tags = [t.strip() for t in tags.split(",")]
        if isinstance(tags, list):
            values["tags"] = [str(t) for t in tags if str(t).strip()]
        elif tags is None:
            values["tags"] = []
        else:
            errors.append(field_error("tags", "Tags must be a list or a comma-separated string"))
    for field in ("is_active", "is_featured"):
        if field in data:
            values[field] = bool(parse_bool(data[field]))

    if errors:
        raise ValidationError(errors=errors)
    return values


@admin_bp.route('/api/admin/products', methods=['GET'])
@admin_required
def list_products():
    args = request.args
    query = Product.query
    if args.get("search"):
        term = f"%{args['search'].strip()}%"
        query = query.filter(or_(Product.name.ilike(term), Product.description.ilike(term)))
    if args.get("category") in CATEGORIES:
        query = query.filter(Product.category == args["category"])
    if args.get("status") in ("active", "inactive"):
        query = query.filter(Product.is_active.is_(args["status"] == "active"))
    if args.get("status") == "low_stock":
        query = query.filter(Product.stock <= current_app.config["LOW_STOCK_THRESHOLD"])

    query = query.order_by(Product.created_at.desc(), Product.id.desc())
    products, pagination = paginate(query, parse_int(args.get("page"), 1), parse_int(args.get("limit"), 20, maximum=100))
    return success({"products": [p.to_dict() for p in products], "pagination": pagination})


@admin_bp.route('/api/admin/products/<int:product_id>', methods=['GET'])
@admin_required
def product_details(product_id):
    return success({"product": get_or_404(Product, product_id, "Product").to_dict()})


@admin_bp.route('/api/admin/products', methods=['POST'])
@admin_required
def create_product():
    """
    Admin: create a product
    ---
    tags:
      - Admin
    security:
      - Bearer: []
    consumes:
      - application/json
      - multipart/form-data
    parameters:
      - name: name
        in: formData
        type: string
        required: true
      - name: description
        in: formData
        type: string
        required: true
      - name: price
        in: formData
        type: number
        required: true
      - name: category
        in: formData
        type: string
      - name: discount
        in: formData
        type: number
      - name: stock
        in: formData
        type: integer
      - name: image
        in: formData
        type: file
    responses:
      201:
        description: Product created
      400:
        description: Validation failed
    """
    values = clean_product_data(product_payload())
    product = Product(**values)

    image = request.files.get("image")
    if image is not None and image.filename:
        product.image_url, product.image_public_id = upload_image(image, "products")

    db.session.add(product)
    db.session.commit()
    current_app.logger.info("Product %s created", product.id)
    return success({"product": product.to_dict()}, "Product created successfully", 201)


@admin_bp.route('/api/admin/products/<int:product_id>', methods=['PUT'])
@admin_required
def update_product(product_id):
    product = get_or_404(Product, product_id, "Product")
    values = clean_product_data(product_payload(), partial=True)
    for key, value in values.items():
        setattr(product, key, value)

    old_public_id = None
    image = request.files.get("image")
    if image is not None and image.filename:
        old_public_id = product.image_public_id
        product.image_url, product.image_public_id = upload_image(image, "products")

    db.session.commit()
    delete_image(old_public_id)
    return success({"product": product.to_dict()}, "Product updated successfully")


@admin_bp.route('/api/admin/products/<int:product_id>', methods=['DELETE'])
@admin_required
def delete_product(product_id):
    product = get_or_404(Product, product_id, "Product")
    public_id = product.image_public_id
    # cart lines go with the product; order lines keep their snapshot
    CartItem.query.filter_by(product_id=product.id).delete(synchronize_session=False)
    db.session.delete(product)
    db.session.commit()

    delete_image(public_id)
    current_app.logger.info("Product %s deleted", product_id)
    return success(message="Product deleted successfully")


# =========================
# Users
# =========================
@admin_bp.route('/api/admin/users', methods=['GET'])
@admin_required
def list_users():
    args = request.args
    query = User.query
    if args.get("search"):
        term = f"%{args['search'].strip()}%"
        query = query.filter(or_(
            User.first_name.ilike(term), User.last_name.ilike(term), User.email.ilike(term), User.phone.ilike(term),
        ))
    if args.get("role") in ROLES:
        query = query.filter(User.role == args["role"])
    if args.get("status") in ("active", "inactive"):
        query = query.filter(User.is_active.is_(args["status"] == "active"))

    query = query.order_by(User.created_at.desc(), User.id.desc())
    users, pagination = paginate(query, parse_int(args.get("page"), 1), parse_int(args.get("limit"), 20, maximum=100))
    return success({"users": [u.to_dict() for u in users], "pagination": pagination})


@admin_bp.route('/api/admin/users/<int:user_id>', methods=['GET'])
@admin_required
def user_details(user_id):
    user = get_or_404(User, user_id, "User")
    orders = Order.query.filter_by(user_id=user.id)
    total_spent = orders.filter(Order.order_status != "cancelled") \
        .with_entities(func.coalesce(func.sum(Order.final_amount), 0)).scalar()
    recent = orders.order_by(Order.created_at.desc(), Order.id.desc()).limit(5).all()
    return success({
        "user": user.to_dict(),
        "order_summary": {
            "total_orders": orders.count(),
            "total_spent": round(float(total_spent), 2),
            "recent_orders": [o.to_dict() for o in recent],
        },
    })


@admin_bp.route('/api/admin/users', methods=['POST'])
@admin_required
def create_user():
    data = request.get_json(silent=True) or {}
    email = normalize_email(data.get("email"))
    role = data.get("role", "user")

    errors = []
    for field in ("first_name", "last_name"):
        if not clean_string(data.get(field), field):
            errors.append(field_error(field, f"{field.replace('_', ' ').capitalize()} is required"))
    if not is_valid_email(email):
        errors.append(field_error("email", "Please provide a valid email address"))
    if role not in ROLES:
        errors.append(field_error("role", f"Role must be one of: {', '.join(ROLES)}"))
    phone = clean_string(data.get("phone"), "phone") or None
    if phone and not PROFILE_PHONE_RE.match(phone):
        errors.append(field_error("phone", "Please provide a valid phone number"))
    errors.extend(password_errors(data.get("password")))
    if errors:
        raise ValidationError(errors=errors)

    if User.query.filter_by(email=email).first():
        raise ConflictError("User already exists")

    user = User(
        first_name=clean_string(data["first_name"], "first_name"),
        last_name=clean_string(data["last_name"], "last_name"),
        email=email,
        phone=phone,
        role=role,
        is_active=bool(parse_bool(data.get("is_active", True))),
    )
    user.set_password(data["password"])
    db.session.add(user)
    db.session.commit()

    current_app.logger.info("Admin %s created %s account %s", get_current_user().id, role, email)
    return success({"user": user.to_dict()}, "User created successfully", 201)


@admin_bp.route('/api/admin/users/<int:user_id>', methods=['PUT'])
@admin_required
def update_user(user_id):
    user = get_or_404(User, user_id, "User")
    admin = get_current_user()
    data = request.get_json(silent=True) or {}

    if "role" in data:
        if data["role"] not in ROLES:
            raise ValidationError(errors=[field_error("role", f"Role must be one of: {', '.join(ROLES)}")])
        if user.id == admin.id and data["role"] != "admin":
            raise ValidationError("You cannot remove your own admin role")
        user.role = data["role"]
    if "is_active" in data:
        is_active = bool(parse_bool(data["is_active"]))
        if user.id == admin.id and not is_active:
            raise ValidationError("You cannot deactivate your own account")
        user.is_active = is_active

    apply_profile_update(user, data)
    return success({"user": user.to_dict()}, "User updated successfully")


@admin_bp.route('/api/admin/users/<int:user_id>', methods=['DELETE'])
@admin_required
def delete_user(user_id):
    """
    Admin: delete a user account
    ---
    tags:
      - Admin
    security:
      - Bearer: []
    parameters:
      - name: user_id
        in: path
        type: integer
        required: true
    responses:
      200:
        description: User deleted
      400:
        description: Admins cannot delete themselves
      404:
        description: User not found
      409:
        description: User has orders; deactivate instead
    """
    user = get_or_404(User, user_id, "User")
    if user.id == get_current_user().id:
        raise ValidationError("You cannot delete your own account")
    if user.orders.count():
        raise ConflictError("User has orders and cannot be deleted. Deactivate the account instead.")

    avatar_public_id = user.avatar_public_id
    GatewayOrder.query.filter_by(user_id=user.id).delete()
    db.session.delete(user)
    db.session.commit()

    delete_image(avatar_public_id)
    current_app.logger.info("User %s deleted", user_id)
    return success(message="User deleted successfully")


# =========================
# Customers and activity
# =========================
@admin_bp.route('/api/admin/customers', methods=['GET'])
@admin_required
def list_customers():
    """
    Admin: customers with their order totals
    ---
    tags:
      - Admin
    security:
      - Bearer: []
    parameters:
      - name: search
        in: query
        type: string
      - name: status
        in: query
        type: string
        enum: [active, inactive]
      - name: page
        in: query
        type: integer
      - name: limit
        in: query
        type: integer
    responses:
      200:
        description: Paginated customers with total orders, spend and last order date
    """
    args = request.args
    query, _ = analytics.customers_query()
    if args.get("search"):
        term = f"%{args['search'].strip()}%"
        query = query.filter(or_(
            User.first_name.ilike(term), User.last_name.ilike(term), User.email.ilike(term), User.phone.ilike(term),
        ))
    if args.get("status") in ("active", "inactive"):
        query = query.filter(User.is_active.is_(args["status"] == "active"))

    query = query.order_by(User.created_at.desc(), User.id.desc())
    rows, pagination = paginate(query, parse_int(args.get("page"), 1), parse_int(args.get("limit"), 10, maximum=100))
    return success({"customers": [analytics.customer_to_dict(row) for row in rows], "pagination": pagination})


@admin_bp.route('/api/admin/customers/stats', methods=['GET'])
@admin_required
def customer_stats():
    return success(analytics.customer_stats())


@admin_bp.route('/api/admin/customers/<int:customer_id>', methods=['PUT'])
@admin_required
def update_customer(customer_id):
    customer = db.session.get(User, customer_id)
    if customer is None or customer.is_admin:
        raise NotFoundError("Customer not found")
    is_active = (request.get_json(silent=True) or {}).get("is_active")
    if not isinstance(is_active, bool):
        raise ValidationError(errors=[field_error("is_active", "Must be true or false")])

    customer.is_active = is_active
    db.session.commit()
    current_app.logger.info("Customer %s %s", customer.id, "activated" if is_active else "deactivated")
    return success({"customer": customer.to_dict()}, "Customer updated successfully")


@admin_bp.route('/api/admin/activity', methods=['GET'])
@admin_required
def activity():
    args = request.args
    orders, pagination = paginate(
        analytics.activity_query(), parse_int(args.get("page"), 1), parse_int(args.get("limit"), 20, maximum=100),
    )
    return success({"activities": [analytics.activity_to_dict(o) for o in orders], "pagination": pagination})


# =========================
# Settings and own profile
# =========================
@admin_bp.route('/api/admin/settings', methods=['GET'])
@admin_required
def get_settings():
    return success({"settings": load_settings()})


@admin_bp.route('/api/admin/settings', methods=['PUT'])
@admin_required
def update_settings():
    settings = save_settings(request.get_json(silent=True), get_current_user())
    return success({"settings": settings}, "Settings updated successfully")


@admin_bp.route('/api/admin/settings/<group>', methods=['PUT'])
@admin_required
def update_settings_group(group):
    if group not in SETTING_GROUPS:
        raise NotFoundError("Settings group not found")
    settings = save_settings({group: request.get_json(silent=True)}, get_current_user())
    return success({"settings": settings[group]}, f"{group.capitalize()} settings updated successfully")


@admin_bp.route('/api/admin/profile', methods=['GET'])
@admin_required
def get_profile():
    return success({"user": get_current_user().to_dict()})


@admin_bp.route('/api/admin/profile', methods=['PUT'])
@admin_required
def update_profile():
    admin = get_current_user()
    data = request.get_json(silent=True) or {}

    if "email" in data:
        email = normalize_email(data["email"])
        if not is_valid_email(email):
            raise ValidationError(errors=[field_error("email", "Please provide a valid email address")])
        if User.query.filter(User.email == email, User.id != admin.id).first():
            raise ConflictError("Email is already in use")
        admin.email = email

    apply_profile_update(admin, data)
    return success({"user": admin.to_dict()}, "Profile updated successfully")


@admin_bp.route('/api/admin/password', methods=['PUT'])
@admin_required
def change_password():
    admin = get_current_user()
    data = request.get_json(silent=True) or {}

    errors = [] if data.get("current_password") else [field_error("current_password", "Current password is required")]
    errors.extend(password_errors(data.get("new_password"), field="new_password"))
    if errors:
        raise ValidationError(errors=errors)
    if not admin.check_password(data["current_password"]):
        raise ValidationError("Current password is incorrect")

    admin.set_password(data["new_password"])
    db.session.commit()
    current_app.logger.info("Admin %s changed password", admin.id)
    return success(message="Password updated successfully")
