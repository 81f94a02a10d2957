from core.imports import Blueprint, jwt_required, request, current_app, datetime, or_
from core.extensions import db
from core.errors import ValidationError, NotFoundError, ConflictError
from core.responses import success, paginate
from core.security import get_current_user, admin_required
from core.validators import field_error, parse_int, parse_bool, parse_datetime, parse_amount, clean_string
from models.couponModels import Coupon, COUPON_TYPES
from services.orders import price_items, is_first_order

coupons_bp = Blueprint("coupons", __name__)

EDITABLE_FIELDS = (
    "code", "description", "type", "discount", "min_order_amount", "max_discount_amount",
    "usage_limit", "start_date", "end_date", "applicable_categories", "is_first_order_only", "is_active",
)


def clean_coupon_data(data, partial=False):
    """Validate a create/update payload and return the column values to write."""
    values = {}
    errors = []

    if not partial:
        for field in ("code", "description", "type", "discount", "end_date"):
            if data.get(field) in (None, ""):
                errors.append(field_error(field, f"{field.replace('_', ' ').capitalize()} is required"))
        if errors:
            raise ValidationError("Code, description, type, discount, and end date are required", errors=errors)

    for field in EDITABLE_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if field == "code":
            value = clean_string(value, "code").upper()
            if not 3 <= len(value) <= 20:
                errors.append(field_error("code", "Code must be 3-20 characters"))
        elif field == "description":
            value = clean_string(value, "description")
            if not value or len(value) > 200:
                errors.append(field_error("description", "Description must be 1-200 characters"))
        elif field == "type":
            if value not in COUPON_TYPES:
                errors.append(field_error("type", f"Type must be one of: {', '.join(COUPON_TYPES)}"))
        elif field in ("discount", "min_order_amount"):
            value = parse_amount(value or 0, field)
        elif field == "max_discount_amount":
            value = parse_amount(value, field) if value not in (None, "") else None
        elif field == "usage_limit":
            value = parse_int(value, None) if value not in (None, "") else None
        elif field in ("start_date", "end_date"):
            value = parse_datetime(value, field)
        elif field == "applicable_categories":
            if not isinstance(value or [], list):
                errors.append(field_error(field, "Must be a list of categories"))
            value = list(value or [])
        else:
            value = bool(parse_bool(value))
        values[field] = value

    coupon_type = values.get("type", data.get("_current_type"))
    discount = values.get("discount")
    if discount is not None:
        if coupon_type == "percentage" and not 0 < discount <= 100:
            errors.append(field_error("discount", "Percentage discount must be between 1 and 100"))
        elif coupon_type == "fixed" and discount <= 0:
            errors.append(field_error("discount", "Fixed discount must be greater than 0"))

    start = values.get("start_date") or data.get("_current_start")
    end = values.get("end_date") or data.get("_current_end")
    if start and end and end <= start:
        errors.append(field_error("end_date", "End date must be after start date"))

    if errors:
        raise ValidationError(errors=errors)
    return values


def get_coupon_or_404(coupon_id):
    coupon = db.session.get(Coupon, coupon_id)
    if coupon is None:
        raise NotFoundError("Coupon not found")
    return coupon


@coupons_bp.route('/api/coupons/active', methods=['GET'])
@jwt_required()
def active_coupons():
    now = datetime.utcnow()
    coupons = Coupon.query.filter(
        Coupon.is_active.is_(True), Coupon.start_date <= now, Coupon.end_date >= now,
    ).order_by(Coupon.end_date).all()
    public_fields = ("code", "description", "type", "discount", "min_order_amount",
                     "max_discount_amount", "is_first_order_only", "end_date")
    return success({"coupons": [
        {key: value for key, value in c.to_dict().items() if key in public_fields}
        for c in coupons if c.is_currently_valid
    ]})


@coupons_bp.route('/api/coupons/validate', methods=['POST'])
@jwt_required()
def validate_coupon():
    """
    Check a coupon code against a cart
    ---
    tags:
      - Coupons
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
            - code
          properties:
            code:
              type: string
              example: "WELCOME10"
            items:
              type: array
              description: "Priced from the catalog when given"
              items:
                type: object
            order_amount:
              type: number
              example: 650
            categories:
              type: array
              items:
                type: string
    responses:
      200:
        description: Coupon is valid, returns the discount amount
      400:
        description: Coupon cannot be applied
      404:
        description: Invalid coupon code
    """
    user = get_current_user()
    data = request.get_json(silent=True) or {}
    code = clean_string(data.get("code"), "code").upper()
    if not code:
        raise ValidationError("Coupon code is required", errors=[field_error("code", "Coupon code is required")])

    if data.get("items"):
        lines, order_amount = price_items(data["items"])
        categories = {line["snapshot"]["category"] for line in lines}
    else:
        order_amount = parse_amount(data.get("order_amount"), "order_amount")
        categories = data.get("categories") or []
        if not isinstance(categories, list) or not all(isinstance(c, str) for c in categories):
            raise ValidationError(errors=[field_error("categories", "Must be a list of categories")])
        categories = set(categories)

    coupon = Coupon.query.filter_by(code=code, is_active=True).first()
    if coupon is None:
        raise NotFoundError("Invalid coupon code")

    valid, message = coupon.check_applicable(order_amount, categories, is_first_order(user))
    if not valid:
        raise ValidationError(message)

    return success({"coupon": {
        "code": coupon.code,
        "type": coupon.type,
        "discount": coupon.discount,
        "discount_amount": coupon.calculate_discount(order_amount),
    }}, "Coupon is valid")


# =========================
# Admin coupon management
# =========================
@coupons_bp.route('/api/coupons', methods=['GET'])
@admin_required
def list_coupons():
    query = Coupon.query
    search = request.args.get("search")
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(Coupon.code.ilike(term), Coupon.description.ilike(term)))
    status = request.args.get("status")
    if status in ("active", "inactive"):
        query = query.filter(Coupon.is_active.is_(status == "active"))
    query = query.order_by(Coupon.created_at.desc(), Coupon.id.desc())

    coupons, pagination = paginate(
        query, parse_int(request.args.get("page"), 1), parse_int(request.args.get("limit"), 10, maximum=100),
    )
    return success({"coupons": [c.to_dict() for c in coupons], "pagination": pagination})


@coupons_bp.route('/api/coupons', methods=['POST'])
@admin_required
def create_coupon():
    """
    Admin: create a coupon
    ---
    tags:
      - Coupons
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
          required: [code, description, type, discount, end_date]
          properties:
            code: { type: string, example: "WELCOME10" }
            description: { type: string, example: "10% off your first order" }
            type: { type: string, enum: [percentage, fixed] }
            discount: { type: number, example: 10 }
            min_order_amount: { type: number, example: 300 }
            max_discount_amount: { type: number, example: 100 }
            usage_limit: { type: integer, example: 500 }
            start_date: { type: string, example: "2026-01-01T00:00:00Z" }
            end_date: { type: string, example: "2026-12-31T23:59:59Z" }
            applicable_categories: { type: array, items: { type: string } }
            is_first_order_only: { type: boolean }
    responses:
      201:
        description: Coupon created
      400:
        description: Validation failed
      409:
        description: Coupon code already exists
    """
    admin = get_current_user()
    values = clean_coupon_data(request.get_json(silent=True) or {})
    if Coupon.query.filter_by(code=values["code"]).first():
        raise ConflictError("Coupon code already exists")

    values.setdefault("start_date", None)
    if values["start_date"] is None:
        values["start_date"] = datetime.utcnow()
    coupon = Coupon(created_by=admin.id, **values)
    db.session.add(coupon)
    db.session.commit()

    current_app.logger.info("Coupon %s created by admin %s", coupon.code, admin.id)
    return success({"coupon": coupon.to_dict()}, "Coupon created successfully", 201)


@coupons_bp.route('/api/coupons/<int:coupon_id>', methods=['PUT'])
@admin_required
def update_coupon(coupon_id):
    coupon = get_coupon_or_404(coupon_id)
    data = dict(request.get_json(silent=True) or {})
    data.update(_current_type=coupon.type, _current_start=coupon.start_date, _current_end=coupon.end_date)
    values = clean_coupon_data(data, partial=True)

    if "code" in values and Coupon.query.filter(Coupon.code == values["code"], Coupon.id != coupon.id).first():
        raise ConflictError("Coupon code already exists")

    for key, value in values.items():
        if key in ("start_date", "end_date") and value is None:
            continue
        setattr(coupon, key, value)
    db.session.commit()
    return success({"coupon": coupon.to_dict()}, "Coupon updated successfully")


@coupons_bp.route('/api/coupons/<int:coupon_id>', methods=['DELETE'])
@admin_required
def delete_coupon(coupon_id):
    coupon = get_coupon_or_404(coupon_id)
    db.session.delete(coupon)
    db.session.commit()
    current_app.logger.info("Coupon %s deleted", coupon.code)
    return success(message="Coupon deleted successfully")


@coupons_bp.route('/api/coupons/<int:coupon_id>/toggle-status', methods=['POST'])
@admin_required
def toggle_coupon_status(coupon_id):
    coupon = get_coupon_or_404(coupon_id)
    coupon.is_active = not coupon.is_active
    db.session.commit()
    state = "activated" if coupon.is_active else "deactivated"
    return success({"coupon": coupon.to_dict()}, f"Coupon {state} successfully")
