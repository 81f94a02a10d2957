from core.imports import Blueprint, request, jwt_required, secrets, datetime, current_app
from core.extensions import db
from core.errors import ValidationError, ConflictError, AuthorizationError, APIError
from core.responses import success, error
from core.security import issue_token, get_current_user
from core.validators import field_error, is_valid_email, normalize_email, password_errors, clean_string, PROFILE_PHONE_RE
from models.userModel import User
from services.cart import merge_cart, serialize_cart
from services.mailer import send_password_reset_email

auth_bp = Blueprint('auth', __name__)

RESET_MESSAGE = "If an account with this email exists, a password reset link has been sent."


def seed_demo_admin():
    admin = User.query.filter_by(email="admin@thekua.in").first()
    if not admin:
        raw_password = "Admin@123"  # demo login password
        admin = User(
            first_name="Store",
            last_name="Admin",
            email="admin@thekua.in",
            phone="9876543210",
            role="admin",
        )
        admin.set_password(raw_password)
        db.session.add(admin)
        db.session.commit()

        print(f"✅ Demo admin created (email=admin@thekua.in, password={raw_password})")
    else:
        print("ℹ️ Demo admin already exists.")
    return admin


def seed_demo_customer():
    customer = User.query.filter_by(email="demo@thekua.in").first()
    if not customer:
        raw_password = "Password123"
        customer = User(
            first_name="Jane",
            last_name="Doe",
            email="demo@thekua.in",
            phone="9123456780",
            role="user",
        )
        customer.set_password(raw_password)
        db.session.add(customer)
        db.session.commit()

        print(f"✅ Demo customer created (email=demo@thekua.in, password={raw_password})")
    else:
        print("ℹ️ Demo customer already exists.")
    return customer


@auth_bp.route('/api/auth/register', methods=['POST'])
def register():
    """
    Register a new customer account
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          required:
            - first_name
            - last_name
            - email
            - password
          properties:
            first_name:
              type: string
              example: "Jane"
            last_name:
              type: string
              example: "Doe"
            email:
              type: string
              example: "jane@example.com"
            password:
              type: string
              example: "Secret123"
            phone:
              type: string
              example: "9123456780"
    responses:
      201:
        description: User registered, returns access token and user
      400:
        description: Validation failed
      409:
        description: User already exists
    """
    data = request.get_json(silent=True) or {}
    first_name = clean_string(data.get('first_name'), 'first_name')
    last_name = clean_string(data.get('last_name'), 'last_name')
    email = normalize_email(data.get('email'))
    password = data.get('password')
    phone = clean_string(data.get('phone'), 'phone') or None

    errors = []
    if not first_name:
        errors.append(field_error("first_name", "First name is required"))
    if not last_name:
        errors.append(field_error("last_name", "Last name is required"))
    if not is_valid_email(email):
        errors.append(field_error("email", "Please provide a valid email address"))
    if phone and not PROFILE_PHONE_RE.match(phone):
        errors.append(field_error("phone", "Please provide a valid phone number"))
    errors.extend(password_errors(password))
    if errors:
        raise ValidationError(errors=errors)

    if User.query.filter_by(email=email).first():
        raise ConflictError("User already exists")

    user = User(first_name=first_name, last_name=last_name, email=email, phone=phone, role="user")
    user.set_password(password)
    db.session.add(user)
    db.session.commit()

    current_app.logger.info("User registered: %s", email)
    return success({"token": issue_token(user), "user": user.to_dict()}, "User registered successfully", 201)


@auth_bp.route('/api/auth/login', methods=['POST'])
def login():
    """
    Log in and optionally merge an offline cart
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          required:
            - email
            - password
          properties:
            email:
              type: string
              example: "demo@thekua.in"
            password:
              type: string
              example: "Password123"
            cart:
              type: array
              description: "Cart kept on the device while logged out; merged into the account cart"
              items:
                type: object
                properties:
                  product_id:
                    type: integer
                    example: 1
                  quantity:
                    type: integer
                    example: 2
    responses:
      200:
        description: Login successful
      401:
        description: Invalid credentials
      403:
        description: Account deactivated
    """
    data = request.get_json(silent=True) or {}
    email = normalize_email(data.get('email'))
    password = data.get('password')

    if not email or not isinstance(password, str) or not password:
        raise ValidationError("Email and password are required")

    user = User.query.filter_by(email=email).first()
    if not user or not user.check_password(password):
        return error("Invalid email or password", 401)
    if not user.is_active:
        raise AuthorizationError("Account is deactivated. Please contact support.")

    user.last_login = datetime.utcnow()
    db.session.commit()

    skipped = merge_cart(user, data.get('cart'))

    return success({
        "token": issue_token(user),
        "user": user.to_dict(),
        "cart": serialize_cart(user),
        "skipped_cart_items": skipped,
    }, "Login successful")


@auth_bp.route('/api/auth/me', methods=['GET'])
@jwt_required()
def me():
    return success({"user": get_current_user().to_dict()})


@auth_bp.route('/api/auth/change-password', methods=['PUT'])
@jwt_required()
def change_password():
    user = get_current_user()
    data = request.get_json(silent=True) or {}
    current_password = data.get('current_password')
    new_password = data.get('new_password')

    errors = []
    if not current_password:
        errors.append(field_error("current_password", "Current password is required"))
    errors.extend(password_errors(new_password, field="new_password"))
    if errors:
        raise ValidationError(errors=errors)

    if not user.check_password(current_password):
        raise ValidationError("Current password is incorrect")

    user.set_password(new_password)
    db.session.commit()
    return success(message="Password changed successfully")


@auth_bp.route('/api/auth/forgot-password', methods=['POST'])
def forgot_password():
    data = request.get_json(silent=True) or {}
    email = normalize_email(data.get("email"))
    if not is_valid_email(email):
        raise ValidationError(errors=[field_error("email", "Please provide a valid email address")])

    user = User.query.filter_by(email=email).first()
    if not user or not user.is_active:
        return success(message=RESET_MESSAGE)

    token = secrets.token_hex(32)
    user.reset_password_token = token
    user.reset_password_expires = datetime.utcnow() + current_app.config["PASSWORD_RESET_EXPIRES"]
    db.session.commit()

    # best-effort, a mail failure is logged and the request still succeeds
    send_password_reset_email(user, token)
    return success(message=RESET_MESSAGE)


@auth_bp.route('/api/auth/reset-password', methods=['POST'])
def reset_password():
    data = request.get_json(silent=True) or {}
    token = data.get("token")
    password = data.get("password")

    errors = [] if token else [field_error("token", "Reset token is required")]
    errors.extend(password_errors(password))
    if errors:
        raise ValidationError(errors=errors)

    user = User.query.filter(
        User.reset_password_token == token,
        User.reset_password_expires > datetime.utcnow(),
    ).first()
    if not user:
        raise APIError("Invalid or expired reset token", status_code=400)

    user.set_password(password)
    user.reset_password_token = None
    user.reset_password_expires = None
    db.session.commit()

    current_app.logger.info("Password reset successful for user: %s", user.email)
    return success(message="Password has been reset successfully")


@auth_bp.route('/api/auth/status', methods=['GET'])
def status():
    return success({"timestamp": datetime.utcnow().isoformat()}, "Auth service is running")
