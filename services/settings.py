from core.imports import current_app
from core.extensions import db
from core.errors import ValidationError
from core.validators import field_error
from models.settingsModels import StoreSetting

SETTING_GROUPS = ("store", "notifications", "security", "features")


def default_settings():
    config = current_app.config
    return {
        "store": {
            "name": config["STORE_NAME"],
            "description": config["STORE_DESCRIPTION"],
            "email": config["STORE_EMAIL"],
            "phone": config["STORE_PHONE"],
            "address": config["STORE_ADDRESS"],
            "currency": config["CURRENCY"],
            "timezone": config["STORE_TIMEZONE"],
        },
        "notifications": {
            "email_notifications": True,
            "order_notifications": True,
            "low_stock_alerts": True,
            "customer_registrations": False,
            "daily_reports": False,
            "weekly_reports": True,
        },
        "security": {
            "two_factor_auth": False,
            "session_timeout": 30,
            "password_expiry": 90,
            "max_login_attempts": 5,
        },
        "features": {
            "enable_coupons": True,
            "enable_reviews": True,
            "enable_wishlist": True,
            "enable_chat": False,
            "enable_analytics": True,
        },
    }


def load_settings():
    """Defaults overlaid with whatever has been saved."""
    settings = default_settings()
    for row in StoreSetting.query.all():
        if row.group in settings:
            settings[row.group].update(row.values or {})
    return settings


def save_settings(data, admin):
    """Persist known keys of known groups; values must keep the default's type."""
    if not isinstance(data, dict) or not data:
        raise ValidationError("No settings supplied")

    defaults = default_settings()
    errors = []
    for group, values in data.items():
        if group not in SETTING_GROUPS:
            errors.append(field_error(group, "Unknown settings group"))
            continue
        if not isinstance(values, dict):
            errors.append(field_error(group, "Settings group must be an object"))
            continue
        for key, value in values.items():
            if key not in defaults[group]:
                errors.append(field_error(f"{group}.{key}", "Unknown setting"))
            elif type(value) is not type(defaults[group][key]):
                errors.append(field_error(f"{group}.{key}", f"Must be a {type(defaults[group][key]).__name__}"))
    if errors:
        raise ValidationError(errors=errors)

    for group, values in data.items():
        row = StoreSetting.query.filter_by(group=group).first()
        if row is None:
            row = StoreSetting(group=group, values={})
            db.session.add(row)
        row.values = {**(row.values or {}), **values}
        row.updated_by = admin.id
    db.session.commit()

    current_app.logger.info("Settings %s updated by admin %s", ", ".join(data), admin.id)
    return load_settings()
