import os
from flask import Flask, jsonify
from sqlalchemy import text
from werkzeug.exceptions import HTTPException
from config import Config
from extensions import db, init_extensions
from logger import configure_app_logging
from ledger.exceptions import LedgerException


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    if not app.debug:
        app.config.update(
            SESSION_COOKIE_SECURE=True,
            SESSION_COOKIE_HTTPONLY=True,
        )

    # ------------------------------------------------------------------------------------------
    # Logging: logs/app.log for the app logger, logs/ledger.log for money movements
    # ------------------------------------------------------------------------------------------
    configure_app_logging(app)

    # ------------------------------------------------------------------------------------------
    # Initialize extensions
    # ------------------------------------------------------------------------------------------
    init_extensions(app)

    # ------------------------------------------------------------------------------------------
    # Register blueprints
    # ------------------------------------------------------------------------------------------
    def register_blueprints(app):
        from blueprints.auth import bp as auth_bp
        from blueprints.profile import bp as profile_bp
        from blueprints.admin import admin_bp
        from blueprints.activation import bp as activation_bp
        from blueprints.withdrawals import bp as withdrawals_bp
        from blueprints.support import bp as support_bp
        from blueprints.notifications import bp as notifications_bp

        app.register_blueprint(auth_bp)
        app.register_blueprint(profile_bp)
        app.register_blueprint(admin_bp)
        app.register_blueprint(activation_bp)
        app.register_blueprint(withdrawals_bp)
        app.register_blueprint(support_bp)
        app.register_blueprint(notifications_bp)

    register_blueprints(app)

    from commands import register_commands
    register_commands(app)

    register_error_handlers(app)

    # ----------------------
    # Basic routes
    # ----------------------
    @app.route("/healthz")
    def healthz():
        try:
            db.session.execute(text("SELECT 1"))
        except Exception as e:
            app.logger.error(f"Health check database error: {e}")
            return {"status": "degraded", "database": "unavailable"}, 503
        return {"status": "ok"}, 200

    return app


def register_error_handlers(app):
    """Every failure leaves as {"error": message} JSON."""

    @app.errorhandler(LedgerException)
    def handle_ledger_exception(e):
        if e.status_code >= 500:
            app.logger.error(f"{e.__class__.__name__}: {e.message}")
        return jsonify({"error": e.message}), e.status_code

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        return jsonify({"error": e.description}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        db.session.rollback()
        app.logger.exception(f"Unhandled error: {e}")
        return jsonify({"error": "Internal server error"}), 500


# ----------------------
# Create app instance
# ----------------------
app = create_app()

# ----------------------
# Local development
# ----------------------
if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    debug_mode = app.config.get("DEBUG", False)
    app.run(debug=debug_mode, host="0.0.0.0", port=port)
