"""Flask application factory."""
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
from backoffice.database import init_db
import logging
import os


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    app.logger.setLevel(getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO))

    # Initialize Sentry for error tracking in production
    if os.getenv('SENTRY_DSN') and (app.config.get('ENV') == 'production' or os.getenv('FLASK_ENV') == 'production'):
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=os.getenv('SENTRY_DSN'),
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,  # 10% of transactions for performance monitoring
            environment=os.getenv('FLASK_ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Initialize Redis Cache
    from backoffice.services.cache_service import init_cache
    init_cache(app)

    # Setup Prometheus metrics instrumentation
    from backoffice.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Initialize database
    init_db(app)

    # Error Handlers
    from backoffice.exceptions import BackofficeError

    @app.errorhandler(BackofficeError)
    def handle_backoffice_error(error):
        """Handle domain and validation errors as structured JSON."""
        app.logger.warning(f"{error.__class__.__name__} [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({
            'status': 'error',
            'success': False,
            'kind': 'not_found' if error.code == 404 else 'http_error',
            'message': error.name
        }), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.exception(f"Unhandled Exception: {error}")
        return jsonify({
            'status': 'error',
            'success': False,
            'kind': 'internal_error',
            'message': 'Internal Server Error'
        }), 500

    # Register blueprints
    from backoffice.blueprints.purchases import purchases_bp
    from backoffice.blueprints.metrics import metrics_bp

    app.register_blueprint(purchases_bp)
    app.register_blueprint(metrics_bp)

    # Register CLI commands
    from backoffice.cli_commands import init_cli_commands
    init_cli_commands(app)

    app.logger.info(f"Back office ready (env={app.config.get('ENV')}, cache={app.config.get('CACHE_ENABLED')})")

    return app
