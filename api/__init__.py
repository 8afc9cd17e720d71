import logging

from flask import Flask, current_app
from flasgger import Swagger
from flask_cors import CORS

from .config import get_config
from .errors import register_error_handlers
from models import storage  # DBStorage singleton (scoped_session)
from models.user_store import UserStore
from services.accounts import AccountService
from services.notifier import build_notifier
from services.session_tokens import SessionTokenManager
from utils.security import Hasher, TokenCodec

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0.0",
    "info": {
        "title": "StellarAid API",
        "version": "1.0.0",
        "description": "Authentication and account API: registration, login, token rotation, "
                       "email verification and password management.",
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


def build_services(config, notifier=None):
    """
    Wire the session and account services with their collaborators.
    Returns (SessionTokenManager, AccountService).
    """
    store = UserStore(storage)
    hasher = Hasher(
        time_cost=config.get("PASSWORD_HASH_TIME_COST"),
        memory_cost=config.get("PASSWORD_HASH_MEMORY_COST"),
    )
    codec = TokenCodec(algorithm=config["JWT_ALGORITHM"], issuer=config["JWT_ISSUER"])
    tokens = SessionTokenManager(
        store,
        codec,
        hasher,
        access_secret=config["JWT_SECRET"],
        refresh_secret=config["JWT_REFRESH_SECRET"],
        access_ttl=config["ACCESS_TOKEN_EXPIRES"],
        refresh_ttl=config["REFRESH_TOKEN_EXPIRES"],
    )
    accounts = AccountService(
        store,
        hasher,
        notifier or build_notifier(config),
        verification_ttl=config["EMAIL_VERIFICATION_EXPIRES"],
        reset_ttl=config["PASSWORD_RESET_EXPIRES"],
    )
    return tokens, accounts


def session_tokens() -> SessionTokenManager:
    return current_app.extensions["session_tokens"]


def accounts() -> AccountService:
    return current_app.extensions["accounts"]


def create_app(config_name: str | None = None, notifier=None) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    A notifier may be passed in (tests); otherwise one is built from MAIL_* settings.
    """
    app = Flask(__name__)

    # Load configuration (reads .env via get_config)
    app.config.from_object(get_config(config_name))

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(name)s [%(levelname)s] %(message)s",
    )

    # Cross-Origin Resource Sharing: enable for dev, configurable for prod
    CORS(app, resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}})

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    # Register global error handlers that return the uniform error envelope
    register_error_handlers(app)

    tokens, account_service = build_services(app.config, notifier=notifier)
    app.extensions["session_tokens"] = tokens
    app.extensions["accounts"] = account_service

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .users import bp as users_bp
    from .admin_users import bp as admin_users_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp, url_prefix="/api/v1/auth")
    app.register_blueprint(users_bp, url_prefix="/api/v1")
    app.register_blueprint(admin_users_bp, url_prefix="/api/v1/admin/users")

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        # calls scoped_session.remove(), preventing connection leaks
        storage.close()

    @app.route("/")
    def root():
        return {
            "message": f"Welcome to {app.config['APP_NAME']} API",
            "docs": "/apidocs/",
            "health": "/api/v1/health",
        }, 200

    return app
