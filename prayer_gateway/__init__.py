import logging

import sentry_sdk
from sentry_sdk.integrations.flask import FlaskIntegration

# Import extensions from the central extensions file
from .extensions import limiter, redis_client
from flask import Flask
from flask_cors import CORS
from flask_smorest import Api

# Declare extensions that are not in the extensions file
cors = CORS()
api = Api()  # Initialize Flask-Smorest API


def create_app(config_name):
    """
    Flask Application Factory function.
    """
    app = Flask(__name__,
                instance_relative_config=False)

    # 1. Load Config
    from .config import config_by_name
    config_obj = config_by_name.get(config_name, config_by_name['default'])
    app.config.from_object(config_obj)
    app.logger.info(f"App configured with: {config_obj.__name__}")

    # Flask-Smorest API documentation configuration
    app.config["API_TITLE"] = "Prayer Times Gateway API"
    app.config["API_VERSION"] = "v1"
    app.config["OPENAPI_VERSION"] = "3.0.2"
    app.config["OPENAPI_URL_PREFIX"] = "/api/docs"
    app.config["OPENAPI_SWAGGER_UI_PATH"] = "/swagger-ui"
    app.config["OPENAPI_SWAGGER_UI_URL"] = "https://cdn.jsdelivr.net/npm/swagger-ui-dist/"

    app.logger.info(f"Prayer time provider: {app.config.get('PRAYER_API_ADAPTER')} at {app.config.get('PRAYER_API_BASE_URL')}")

    # 2. Sentry SDK initialization - for error and performance tracking
    if app.config.get('SENTRY_DSN'):
        sentry_sdk.init(
            dsn=app.config['SENTRY_DSN'],
            integrations=[FlaskIntegration()],
            send_default_pii=False,
            traces_sample_rate=app.config.get('SENTRY_TRACES_SAMPLE_RATE', 1.0)
        )
        app.logger.info("Sentry initialized for error tracking.")

    # 3. Check SECRET_KEY
    if not app.config.get('SECRET_KEY'):
        app.logger.error("CRITICAL: SECRET_KEY is not set! Application will not run securely.")

    # 4. Initialize Extensions
    cors.init_app(app, resources={r"/api/*": {"origins": "*"}})
    redis_client.init_app(app)

    # 5. Initialize Rate Limiter
    limiter.init_app(app)

    # 6. Initialize Flask-Smorest API
    api.init_app(app)

    # 7. Register Blueprints in app context
    with app.app_context():
        from .routes.main_routes import main_bp
        from .routes.api_routes import api_bp

        api.register_blueprint(main_bp)
        api.register_blueprint(api_bp)

        # 8. Set up Logging
        log_level_str = app.config.get('LOG_LEVEL', 'INFO').upper()
        log_level = getattr(logging, log_level_str, logging.INFO)
        app.logger.setLevel(log_level)

        app.logger.info(f"Application initialized with environment: {config_name}, Debug: {app.config.get('DEBUG')}")

    # 9. Finally, return the app
    return app
