from flask import Flask
from flasgger import Swagger
from flask_cors import CORS

from .config import get_config, parse_duration
from .errors import register_error_handlers
from models import DBStorage
from models.repositories import RefreshTokenStore, SQLUserRepository
from services.auth_service import AuthService
from services.users_service import UsersService
from utils.log import configure_logging
from utils.security import PasswordHasher, TokenSettings, TokenSigner

API_PREFIX = "/api"

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "Accounts API",
        "version": "1.0.0",
        "description": "User registration, login and access/refresh token rotation.",
    },
    "basePath": "/",
    "schemes": ["http"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Enter the token with the `Bearer ` prefix, e.g. \"Bearer abcde12345\"."
        }
    }
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/swagger.json",
            "rule_filter": lambda rule: True,   # include all endpoints
            "model_filter": lambda tag: True,   # include all models
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}


def create_app(config_name: str | None = None, overrides: dict | None = None) -> Flask:
    """
    Application factory: creates and configures the Flask app.

    Storage, repositories and services are built once here and kept in
    app.extensions; blueprints look them up from current_app.
    """
    app = Flask(__name__)

    # Load configuration (reads .env via get_config)
    app.config.from_object(get_config(config_name))
    if overrides:
        app.config.update(overrides)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    # Cross-Origin Resource Sharing: enable for dev, configurable for prod
    CORS(app, resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}})

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    # Register global error handlers that return the uniform error envelope
    register_error_handlers(app)

    init_services(app)

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .users import bp as users_bp

    app.register_blueprint(health_bp, url_prefix=API_PREFIX)
    app.register_blueprint(auth_bp, url_prefix=f"{API_PREFIX}/auth")
    app.register_blueprint(users_bp, url_prefix=API_PREFIX)

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        app.extensions["storage"].close()

    @app.route("/")
    def root():
        return {
            "message": "Welcome to Accounts API",
            "docs": "/apidocs/",
            "health": f"{API_PREFIX}/health",
        }, 200

    return app


def init_services(app: Flask) -> None:
    """Wire storage, token settings and services from app.config."""
    config = app.config
    config["JWT_ACCESS_TTL"] = parse_duration(config["JWT_ACCESS_TTL"])
    config["JWT_REFRESH_TTL"] = parse_duration(config["JWT_REFRESH_TTL"])

    settings = TokenSettings.from_config(config)
    storage = DBStorage(config["DATABASE_URL"], echo=config.get("SQL_ECHO", False))
    storage.reload()

    hasher = PasswordHasher(
        time_cost=config["PASSWORD_HASH_TIME_COST"],
        memory_cost=config["PASSWORD_HASH_MEMORY_COST"],
        parallelism=config["PASSWORD_HASH_PARALLELISM"],
    )
    signer = TokenSigner(algorithm=settings.algorithm, issuer=settings.issuer)
    users = SQLUserRepository(storage)
    refresh_tokens = RefreshTokenStore(storage)

    app.extensions["storage"] = storage
    app.extensions["token_settings"] = settings
    app.extensions["auth_service"] = AuthService(
        users=users,
        refresh_tokens=refresh_tokens,
        hasher=hasher,
        signer=signer,
        settings=settings,
        storage=storage,
    )
    app.extensions["users_service"] = UsersService(users=users, hasher=hasher, storage=storage)
