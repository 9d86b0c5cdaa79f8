"""Library Management System - Flask application factory."""
import atexit
import logging

from flask import Flask, jsonify, request
from flask_cors import CORS
from flask_session import Session
from werkzeug.exceptions import HTTPException

from config import Config
from database import init_db
from errors import LibraryError
from extensions import db
from routes import api
from scheduler import shutdown_scheduler, start_scheduler

logger = logging.getLogger(__name__)


def create_app(test_config=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    logging.basicConfig(level=app.config['LOG_LEVEL'], format='%(asctime)s - %(levelname)s - %(message)s')

    database_url = app.config.get('SQLALCHEMY_DATABASE_URI')
    if not database_url:
        raise ValueError("DATABASE_URL is not set in .env file")
    app.config.setdefault('SQLALCHEMY_ENGINE_OPTIONS', Config.engine_options(database_url))
    app.config['SESSION_SQLALCHEMY'] = db

    CORS(app, supports_credentials=True, origins=app.config['CORS_ORIGINS'])

    try:
        db.init_app(app)
    except Exception as e:
        logger.error(f"Failed to initialize database: {str(e)}")
        raise

    Session(app)
    init_db(app)

    app.register_blueprint(api)
    register_handlers(app)

    if app.config['SCHEDULER_ENABLED']:
        start_scheduler(app)
        atexit.register(shutdown_scheduler)

    return app


def register_handlers(app):
    @app.before_request
    def log_request():
        logger.debug(f"Incoming request: {request.method} {request.path}")

    @app.errorhandler(LibraryError)
    def handle_library_error(error):
        if error.status_code >= 500:
            logger.error(f"Request failed: {error.code} on {request.method} {request.path}")
        else:
            logger.debug(f"Request rejected: {error.code} on {request.method} {request.path}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'error': error.description}), error.code

    @app.errorhandler(Exception)
    def handle_error(error):
        logger.error(f"Unhandled error: {str(error)}")
        return jsonify({'error': 'An unexpected error occurred'}), 500


if __name__ == '__main__':
    create_app().run(port=3000)
