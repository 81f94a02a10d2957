from core.imports import HTTPException, current_app
from core.extensions import db, jwt
from core.responses import error


class APIError(Exception):
    status_code = 400
    message = "Request failed"

    def __init__(self, message=None, errors=None, status_code=None):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.errors = errors
        if status_code is not None:
            self.status_code = status_code


class ValidationError(APIError):
    status_code = 400
    message = "Validation failed"


class PaymentError(APIError):
    status_code = 400
    message = "Invalid payment signature"


class AuthenticationError(APIError):
    status_code = 401
    message = "Authentication required"


class AuthorizationError(APIError):
    status_code = 403
    message = "Access denied"


class NotFoundError(APIError):
    status_code = 404
    message = "Resource not found"


class ConflictError(APIError):
    status_code = 409
    message = "Conflict"


class GatewayError(APIError):
    status_code = 502
    message = "Payment gateway request failed"


def register_error_handlers(app):

    @app.errorhandler(APIError)
    def handle_api_error(exc):
        db.session.rollback()
        return error(exc.message, exc.status_code, exc.errors)

    @app.errorhandler(HTTPException)
    def handle_http_error(exc):
        return error(exc.description or exc.name, exc.code)

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc):
        db.session.rollback()
        current_app.logger.exception("Unhandled error: %s", exc)
        return error("Internal server error", 500)


@jwt.unauthorized_loader
def missing_token(reason):
    return error("Access denied. No token provided.", 401)


@jwt.invalid_token_loader
def invalid_token(reason):
    return error("Invalid token.", 401)


@jwt.expired_token_loader
def expired_token(jwt_header, jwt_payload):
    return error("Token has expired.", 401)
