import os
from datetime import datetime, timezone
from flask import Flask, jsonify
from sqlalchemy import text
from config import Config
from extensions import db, login_manager, init_extensions
from logger import setup_app_logging
from models import User


def register_blueprints(app):
    from blueprints.auth import bp as auth_bp
    from blueprints.partners import bp as partners_bp
    from blueprints.referrals import bp as referrals_bp
    from blueprints.commissions import bp as commissions_bp
    from blueprints.admin import admin_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(partners_bp)
    app.register_blueprint(referrals_bp)
    app.register_blueprint(commissions_bp)
    app.register_blueprint(admin_bp)


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    if not app.debug and not app.testing:
        app.config.update(
            SESSION_COOKIE_SECURE=True,
            SESSION_COOKIE_HTTPONLY=True,
            REMEMBER_COOKIE_SECURE=True,
            REMEMBER_COOKIE_HTTPONLY=True,
        )

    # ------------------------------------------------------------------------------------------
    # LOGGING
    # ------------------------------------------------------------------------------------------
    setup_app_logging(app)

    # --------------------------------------------------------------------------------------------------------------------------
    # Initialize extensions
    # ----------------------------------------------------------------------------------------------------------------------------
    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite:///"):
        os.makedirs(os.path.join(app.root_path, "instance"), exist_ok=True)

    init_extensions(app)
    register_blueprints(app)

    # ------------------------------------------------------------------------------------------------------------------------
    # Flask-Login user_loader - inside create_app to avoid circular imports
    # ------------------------------------------------------------------------------------------------------------------------
    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(500)
    def internal_error(e):
        db.session.rollback()
        app.logger.error(f"Unhandled error: {e}")
        return jsonify({"error": "Internal server error"}), 500

    @app.route("/healthz")
    def healthz():
        try:
            db.session.execute(text("SELECT 1"))
            database = "ok"
        except Exception as e:
            app.logger.error(f"Health check database error: {e}")
            database = "unavailable"

        status_code = 200 if database == "ok" else 503
        return {
            "status": "ok" if database == "ok" else "degraded",
            "database": database,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }, status_code

    app.logger.info("PartnerConnector application created")
    return app


# ----------------------
# Local development
# ----------------------
if __name__ == "__main__":
    app = create_app()
    port = int(os.environ.get("PORT", 5000))
    app.run(debug=app.config.get("DEBUG", False), host="0.0.0.0", port=port)
