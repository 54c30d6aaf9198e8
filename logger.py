# logger.py - Centralized logging configuration
import os
import logging
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]"


def build_file_handler(log_file, level=logging.INFO):
    """Rotating file handler shared by the module loggers and the Flask app logger"""
    log_dir = os.path.dirname(log_file)
    if log_dir and not os.path.exists(log_dir):
        os.makedirs(log_dir, exist_ok=True)

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=10240,
        backupCount=10
    )
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    file_handler.setLevel(level)
    return file_handler


def setup_logger(name, log_file=None, level=logging.INFO):
    """Set up a logger with file rotation"""
    log_dir = os.environ.get("LOG_DIR", "logs")

    if not log_file:
        log_file = os.path.join(log_dir, f"{name}.log")

    logger = logging.getLogger(name)

    # Avoid adding handlers multiple times
    if not logger.handlers:
        logger.setLevel(level)
        logger.addHandler(build_file_handler(log_file, level))

        # Console handler for development
        if os.environ.get("FLASK_ENV") != "production":
            console_handler = logging.StreamHandler()
            console_handler.setLevel(logging.DEBUG)
            console_handler.setFormatter(logging.Formatter(
                "%(name)s - %(levelname)s - %(message)s"
            ))
            logger.addHandler(console_handler)

    return logger


def setup_app_logging(app):
    """Attach the rotating file handler to the Flask app logger"""
    level = getattr(logging, app.config.get("LOG_LEVEL", "INFO"), logging.INFO)
    log_file = os.path.join(app.config.get("LOG_DIR", "logs"), "app.log")

    app.logger.handlers.clear()
    app.logger.addHandler(build_file_handler(log_file, level))
    app.logger.setLevel(level)
    app.logger.propagate = False  # Prevent duplicate logs

    if app.debug:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG)
        app.logger.addHandler(console_handler)

    return app.logger


# Create global loggers
app_logger = setup_logger("app")
commissions_logger = setup_logger("commissions")
audit_logger = setup_logger("audit")
