from core.imports import Flask
from core.config import Config
from core.errors import register_error_handlers
from core.extensions import db, jwt, swagger, cors, bcrypt, migrate, mail
from routes.auth import auth_bp, seed_demo_admin, seed_demo_customer
from routes.admin import admin_bp, seed_products
from routes.products import products_bp
from routes.cart import cart_bp
from routes.orders import orders_bp
from routes.payments import payments_bp
from routes.coupons import coupons_bp
from routes.user import user_bp
from services.uploads import configure_cloudinary


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.logger.setLevel(app.config["LOG_LEVEL"])

    db.init_app(app)
    jwt.init_app(app)
    swagger.init_app(app)
    cors.init_app(app)
    bcrypt.init_app(app)
    migrate.init_app(app, db)
    mail.init_app(app)
    configure_cloudinary(app)
    register_error_handlers(app)

    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(cart_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(coupons_bp)
    app.register_blueprint(user_bp)

    @app.route('/ping')
    def ping():
        return "Ping received", 200

    return app


app = create_app()


if __name__ == "__main__":
    with app.app_context():
        db.create_all()

        seed_demo_admin()
        seed_demo_customer()
        seed_products()

    app.run(debug=True)
