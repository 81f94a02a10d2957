from core.imports import wraps, get_jwt, get_jwt_identity, verify_jwt_in_request, create_access_token, g
from core.extensions import db
from core.errors import AuthenticationError, AuthorizationError
from models.userModel import User


def issue_token(user):
    return create_access_token(identity=str(user.id), additional_claims={"role": user.role})


def get_current_user():
    """Load the user behind the verified JWT; inactive or deleted accounts get a 401."""
    user_id = int(get_jwt_identity())
    cached = g.get("current_user")
    if cached is not None and cached.id == user_id:
        return cached
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("Invalid token or user inactive.")
    g.current_user = user
    return user


def admin_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        verify_jwt_in_request()
        if get_jwt().get("role") != "admin":
            raise AuthorizationError("Access denied. Admin privileges required.")
        user = get_current_user()
        if not user.is_admin:
            raise AuthorizationError("Access denied. Admin privileges required.")
        return fn(*args, **kwargs)
    return wrapper
