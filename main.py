import logging

from core.imports import jsonify, text, Flask, datetime
from core.config import Config, validate_config
from core.extensions import db, jwt, swagger, cors, bcrypt, migrate, mail
from core.errors import register_error_handlers
from core.cli import register_commands

# models are imported so the metadata and migrations see every table
from models import userModel, productModels, cartModels, orderModels, earningsModels, supportModels  # noqa: F401

from routes.auth import auth_bp
from routes.categories import category_bp
from routes.products import product_bp
from routes.cart import cart_bp
from routes.orders import order_bp
from routes.payments import payment_bp
from routes.reviews import review_bp
from routes.returns import support_bp
from routes.notifications import notification_bp
from routes.seller import seller_bp
from routes.manager import manager_bp
from routes.admin import admin_bp

logger = logging.getLogger(__name__)

SERVICE_NAME = "fastshop-api"
VERSION = "1.0.0"

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
}


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not app.config.get("TESTING"):
        problems = validate_config(app.config)
        if problems:
            raise RuntimeError("Invalid configuration: " + "; ".join(problems))

    db.init_app(app)
    jwt.init_app(app)
    swagger.init_app(app)
    cors.init_app(app, origins=app.config["CORS_ORIGINS"], supports_credentials=True)
    bcrypt.init_app(app)
    mail.init_app(app)
    migrate.init_app(app, db)

    register_error_handlers(app)
    register_commands(app)

    app.register_blueprint(auth_bp)
    app.register_blueprint(category_bp)
    app.register_blueprint(product_bp)
    app.register_blueprint(cart_bp)
    app.register_blueprint(order_bp)
    app.register_blueprint(payment_bp)
    app.register_blueprint(review_bp)
    app.register_blueprint(support_bp)
    app.register_blueprint(notification_bp)
    app.register_blueprint(seller_bp)
    app.register_blueprint(manager_bp)
    app.register_blueprint(admin_bp)

    @app.after_request
    def set_security_headers(response):
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response

    @app.route('/')
    def index():
        return jsonify({
            "service": SERVICE_NAME,
            "version": VERSION,
            "environment": app.config.get("APP_ENV"),
            "docs": "/apidocs"
        }), 200

    @app.route('/health')
    @app.route('/api/v1/health')
    def health():
        try:
            db.session.execute(text("SELECT 1"))
            database = "ok"
        except Exception:
            db.session.rollback()
            logger.exception("Health check could not reach the database")
            database = "unavailable"

        status = 200 if database == "ok" else 503
        return jsonify({
            "status": "ok" if status == 200 else "degraded",
            "database": database,
            "timestamp": datetime.utcnow().isoformat()
        }), status

    @app.route('/ping')
    def ping():
        return "Ping received", 200

    logger.info("%s started in %s mode", SERVICE_NAME, app.config.get("APP_ENV"))
    return app


if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=app.config["PORT"], debug=app.config["APP_ENV"] == "development")
