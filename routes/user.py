from core.imports import Blueprint, jwt_required, request, current_app
from core.extensions import db
from core.errors import ValidationError
from core.responses import success
from core.security import get_current_user
from core.validators import field_error, clean_string, PROFILE_PHONE_RE, INDIAN_PIN_RE
from services.analytics import user_dashboard
from services.uploads import upload_image, delete_image

user_bp = Blueprint("user", __name__)

ADDRESS_FIELDS = ("street", "city", "state", "postal_code", "country", "landmark")


def apply_profile_update(user, data):
    """Copy editable profile fields onto ``user``; raises ValidationError on bad input."""
    errors = []
    for field in ("first_name", "last_name"):
        if field in data:
            value = clean_string(data.get(field), field)
            if not value or len(value) > 50:
                errors.append(field_error(field, f"{field.replace('_', ' ').capitalize()} must be 1-50 characters"))
            else:
                setattr(user, field, value)

    if "phone" in data:
        phone = clean_string(data.get("phone"), "phone")
        if phone and not PROFILE_PHONE_RE.match(phone):
            errors.append(field_error("phone", "Please provide a valid phone number"))
        else:
            user.phone = phone or None

    if "address" in data:
        raw = data.get("address") or {}
        if not isinstance(raw, dict):
            errors.append(field_error("address", "Address must be an object"))
        else:
            address = dict(user.address or {})
            address.update({k: str(raw[k]).strip() for k in ADDRESS_FIELDS if raw.get(k) is not None})
            if not address.get("country"):
                address["country"] = "India"
            postal_code = address.get("postal_code")
            if postal_code and address["country"].lower() == "india" \
                    and not INDIAN_PIN_RE.match(postal_code):
                errors.append(field_error("address.postal_code", "Please provide a valid 6-digit PIN code"))
            else:
                user.address = address

    if errors:
        db.session.rollback()
        raise ValidationError(errors=errors)
    db.session.commit()
    return user


@user_bp.route('/api/user/profile', methods=['GET'])
@jwt_required()
def get_profile():
    return success({"user": get_current_user().to_dict()})


@user_bp.route('/api/user/profile', methods=['PUT'])
@jwt_required()
def update_profile():
    """
    Update the logged-in user's profile
    ---
    tags:
      - User
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
            first_name:
              type: string
              example: "Jane"
            last_name:
              type: string
              example: "Doe"
            phone:
              type: string
              example: "9123456780"
            address:
              type: object
              properties:
                street:
                  type: string
                city:
                  type: string
                state:
                  type: string
                postal_code:
                  type: string
                  example: "800001"
                country:
                  type: string
                  example: "India"
    responses:
      200:
        description: Profile updated
      400:
        description: Validation failed
    """
    user = get_current_user()
    apply_profile_update(user, request.get_json(silent=True) or {})
    return success({"user": user.to_dict()}, "Profile updated successfully")


@user_bp.route('/api/user/upload-avatar', methods=['POST'])
@jwt_required()
def upload_avatar():
    """
    Upload a profile picture
    ---
    tags:
      - User
    security:
      - Bearer: []
    consumes:
      - multipart/form-data
    parameters:
      - name: avatar
        in: formData
        type: file
        required: true
    responses:
      200:
        description: Avatar uploaded
      400:
        description: Missing, oversized or non-image file
    """
    user = get_current_user()
    file = request.files.get("avatar")
    if file is None or not file.filename:
        raise ValidationError("No file uploaded", errors=[field_error("avatar", "No file uploaded")])

    url, public_id = upload_image(file, "avatars", max_size=current_app.config["MAX_AVATAR_SIZE"])
    old_public_id = user.avatar_public_id
    user.avatar_url = url
    user.avatar_public_id = public_id
    db.session.commit()

    delete_image(old_public_id)
    return success({"avatar_url": url, "user": user.to_dict()}, "Avatar uploaded successfully")


@user_bp.route('/api/user/dashboard', methods=['GET'])
@jwt_required()
def dashboard():
    return success(user_dashboard(get_current_user()))
