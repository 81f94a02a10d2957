from datetime import timedelta
import os
from dotenv import load_dotenv

load_dotenv()


def env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    #SQLALCHEMY_DATABASE_URI = "sqlite:///thekua.db"
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///thekua.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=7)

    MAIL_SERVER = os.getenv("EMAIL_HOST", "smtp.gmail.com")
    MAIL_PORT = int(os.getenv("EMAIL_PORT", 587))
    MAIL_USE_TLS = True
    MAIL_USERNAME = os.getenv("EMAIL_USER")
    MAIL_PASSWORD = os.getenv("EMAIL_PASS")
    MAIL_DEFAULT_SENDER = ("TheKua", os.getenv("EMAIL_USER") or "no-reply@thekua.in")

    CLOUDINARY_CLOUD_NAME = os.environ.get("CLOUDINARY_CLOUD_NAME")
    CLOUDINARY_API_KEY = os.environ.get("CLOUDINARY_API_KEY")
    CLOUDINARY_API_SECRET = os.environ.get("CLOUDINARY_API_SECRET")
    CLOUDINARY_FOLDER = os.environ.get("CLOUDINARY_FOLDER", "thekua")

    RAZORPAY_KEY_ID = os.environ.get("RAZORPAY_KEY_ID")
    RAZORPAY_KEY_SECRET = os.environ.get("RAZORPAY_SECRET_KEY")
    RAZORPAY_WEBHOOK_SECRET = os.environ.get("RAZORPAY_WEBHOOK_SECRET")
    RAZORPAY_API_URL = os.environ.get("RAZORPAY_API_URL", "https://api.razorpay.com/v1")
    RAZORPAY_TIMEOUT = 15

    CURRENCY = os.environ.get("STORE_CURRENCY", "INR")
    FREE_SHIPPING_THRESHOLD = float(os.environ.get("FREE_SHIPPING_THRESHOLD", 500))
    SHIPPING_FEE = float(os.environ.get("SHIPPING_FEE", 50))
    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", 10))

    # enum-only status updates unless switched on
    ENFORCE_ORDER_TRANSITIONS = env_bool("ENFORCE_ORDER_TRANSITIONS", False)

    FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:3000")
    PASSWORD_RESET_EXPIRES = timedelta(hours=1)
    MAX_AVATAR_SIZE = 5 * 1024 * 1024

    STORE_NAME = os.environ.get("STORE_NAME", "TheKua")
    STORE_DESCRIPTION = os.environ.get("STORE_DESCRIPTION", "Traditional thekua, sweets and snacks")
    STORE_EMAIL = os.environ.get("STORE_EMAIL", "contact@thekua.in")
    STORE_PHONE = os.environ.get("STORE_PHONE", "+919999999999")
    STORE_ADDRESS = os.environ.get("STORE_ADDRESS", "Patna, Bihar, India")
    STORE_TIMEZONE = os.environ.get("STORE_TIMEZONE", "Asia/Kolkata")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    SWAGGER = {
        "title": "TheKua API",
        "uiversion": 3,
        "securityDefinitions": {
            "Bearer": {"type": "apiKey", "name": "Authorization", "in": "header"}
        },
    }


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    JWT_SECRET_KEY = "test-jwt-secret-key-with-enough-length"
    MAIL_SUPPRESS_SEND = True
    BCRYPT_LOG_ROUNDS = 4
    RAZORPAY_KEY_ID = "rzp_test_key"
    RAZORPAY_KEY_SECRET = "rzp_test_secret"
    RAZORPAY_WEBHOOK_SECRET = "rzp_webhook_secret"
    ENFORCE_ORDER_TRANSITIONS = False
    LOG_LEVEL = "DEBUG"
