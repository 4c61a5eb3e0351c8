"""Flask App for tracking work blocks."""

from __future__ import annotations

import logging
import os
import secrets
import sys
from datetime import timedelta
from pathlib import Path

from flask import Flask, flash, render_template, session
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .api import register_api
from .clock import configure_timezone
from .database import db
from .feed import format_currency, format_date, format_number, format_time
from .firebase import init_firebase
from .models import User
from .routes import USER_ID, register_routes

LOGFILE = "logs/blocklog.log"
SQLLOGFILE = "logs/blocklog-sql.log"
LOGFORMAT = "%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]"


class Config:
    """Default configuration."""

    ENABLE_LOGGING = False
    LOG_LEVEL = logging.WARNING

    SQLALCHEMY_DATABASE_URI = "sqlite:///blocks.db"
    SECRET_KEY: str | None = None
    SECRET_KEY_FILE = ".key"
    """Holds a generated SECRET_KEY when FLASK_SECRET_KEY is not set."""
    TIMEZONE: str | None = None
    """Timezone block times are recorded in. Falls back to TZ."""
    DEBUG = False
    HOST = "localhost"
    PORT = 5000
    PERMANENT_SESSION_LIFETIME = timedelta(days=90)

    FIREBASE_ENABLED = True
    FIREBASE_CRED_FILE = "blocklog.json"
    FIREBASE_CRED_JSON: str | None = None
    """Base64 encoded service account JSON. Wins over FIREBASE_CRED_FILE."""
    FIREBASE_WEB_CONFIG: dict[str, str] = {}  # noqa: RUF012
    """Client SDK configuration rendered into the login page."""


def configure_logging(
    log_level: int = Config.LOG_LEVEL,
    *,
    enable_logging: bool = Config.ENABLE_LOGGING,
) -> None:
    """Configure logging based on the environment variable.

    enable_logging forces logs to be written to a file,
    and a log_level of at least INFO.

    """
    env_log_level = os.getenv("LOG_LEVEL")
    if env_log_level:
        log_level = logging.getLevelName(env_log_level)

    env_enable_logging = os.getenv("ENABLE_LOGGING")
    if env_enable_logging:
        enable_logging = env_enable_logging.lower() in ["true", "1", "t"]
        if log_level > logging.INFO:
            log_level = logging.INFO

    logger = logging.getLogger()
    logger.debug("Setting log level to %s", log_level)

    if not enable_logging:
        return

    logger.debug("Logging to %s", LOGFILE)

    logs_dir = Path(LOGFILE).parent
    logs_dir.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(LOGFORMAT)
    file_handler = logging.FileHandler(LOGFILE)
    file_handler.setFormatter(formatter)
    file_handler.setLevel(log_level)
    sql_file_handler = logging.FileHandler(SQLLOGFILE)
    sql_file_handler.setFormatter(formatter)
    sql_file_handler.setLevel(log_level)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(log_level)

    logger = logging.getLogger("blocklog")

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)
    logger.setLevel(log_level)
    logger.info("Blocklog startup")

    sqllogger = logging.getLogger("sqlalchemy.engine")
    sqllogger.setLevel(logging.INFO)
    sqllogger.addHandler(sql_file_handler)


def load_secret_key(key_file: str | Path) -> str:
    """Read the secret key from key_file, creating it the first time.

    Sessions survive restarts as long as the file is kept.
    """
    key_path = Path(key_file)
    if key_path.exists():
        return key_path.read_text().strip()
    logging.getLogger(__name__).info("Writing a new secret key to %s", key_path)
    key = secrets.token_urlsafe(32)
    key_path.write_text(key)
    return key


def check_db_connection() -> None | tuple[str, int]:
    """Check if a database connection can be established."""
    try:
        db.ping()
    except SQLAlchemyError:
        logging.getLogger(__name__).exception("Error connecting to the database.")
        flash("Error: Unable to connect to the database.", "danger")
        return render_template("error.html"), 503
    else:
        return None


def create_app() -> Flask:
    """Create the Flask app."""
    app = Flask("blocklog.app")
    app.config.from_object(Config)
    app.config.from_prefixed_env()
    if not app.config["SECRET_KEY"]:
        app.config["SECRET_KEY"] = load_secret_key(app.config["SECRET_KEY_FILE"])

    configure_logging()
    configure_timezone(app.config["TIMEZONE"])

    app.logger.info("DB_URI: %s", app.config["SQLALCHEMY_DATABASE_URI"])

    db.init_app(app)
    with app.app_context():
        try:
            db.create_all()
        except SQLAlchemyError:
            app.logger.exception("Error initializing the database.")
            sys.exit(1)

    if app.config["FIREBASE_ENABLED"]:
        try:
            init_firebase(app)
        except ValueError:
            app.logger.exception("Error initializing Firebase.")
            sys.exit(1)
    register_routes(app)
    register_api(app)

    app.jinja_env.filters["currency"] = format_currency
    app.jinja_env.filters["number"] = format_number
    app.jinja_env.filters["long_date"] = format_date
    app.jinja_env.filters["clock"] = format_time

    app.before_request(check_db_connection)

    # Context processor to make user info available in templates
    @app.context_processor
    def inject_user() -> dict[str, User | None]:
        user_id = session.get(USER_ID)
        if not user_id:
            return {"current_user": None}
        try:
            user = db.session.get(User, user_id)
        except SQLAlchemyError:
            return {"current_user": None}
        else:
            return {"current_user": user}

    @app.before_request
    def make_session_permanent() -> None:
        session.permanent = True

    @app.errorhandler(404)
    def page_not_found(_e: Exception) -> tuple[str, int]:
        msg = "Page not found (404)"
        app.logger.warning(msg)
        return render_template("error.html", message=msg), 404

    @app.errorhandler(500)
    def internal_server_error(_e: Exception) -> tuple[str, int]:
        msg = "Server error (500)"
        app.logger.exception(msg)
        return render_template("error.html", message=msg), 500

    # Anything else
    @app.errorhandler(Exception)
    def handle_exception(e: Exception) -> HTTPException | tuple[str, int]:
        if isinstance(e, HTTPException):
            return e
        msg = "Unknown error"
        app.logger.exception(msg)
        return render_template("error.html", message=msg), 500

    return app


if __name__ == "__main__":  # pragma: no cover
    app = create_app()
    app.run(debug=True, port=app.config["PORT"], host=app.config["HOST"])
