from core.imports import Bcrypt, Swagger, JWTManager, SQLAlchemy, CORS, Migrate, Mail

# route docstrings reference this as `security: - Bearer: []`
SWAGGER_TEMPLATE = {
    "info": {
        "title": "FastShop API",
        "description": "Multi-vendor marketplace: catalog, checkout, order splitting, seller earnings and payouts.",
        "version": "1.0.0",
    },
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "JWT token in format: Bearer <your_token>",
        }
    },
}

# unbound here, bound to the app in main.create_app
jwt = JWTManager()
db = SQLAlchemy()
migrate = Migrate()
swagger = Swagger(template=SWAGGER_TEMPLATE)
cors = CORS()
mail = Mail()
bcrypt = Bcrypt()
