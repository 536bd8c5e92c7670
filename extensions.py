from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_mail import Mail
from flask_cors import CORS


db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()
mail = Mail()
cors = CORS()


def init_extensions(app):
    """Initialize Flask extensions"""
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    mail.init_app(app)

    origins = list(app.config.get("CORS_ORIGINS", []))
    if app.config.get("APP_URL") and app.config["APP_URL"] not in origins:
        origins.append(app.config["APP_URL"])

    cors.init_app(
        app,
        resources={r"/api/*": {"origins": origins}},
        supports_credentials=True,
        methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    return app
