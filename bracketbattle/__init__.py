"""Initialize the Flask app and its extensions."""

import datetime
import json
import os

import firebase_admin
from firebase_admin import credentials, firestore
from flask import Flask, jsonify
from werkzeug.middleware.proxy_fix import ProxyFix

from .core.constants import DEFAULT_VOTING_DURATION_SECONDS, GAMES_COLLECTION
from .extensions import csrf


def _load_credentials(app):
    """Find Firebase credentials in the environment, a local file, or ADC."""
    cred_json = os.environ.get("FIREBASE_CREDENTIALS_JSON")
    if cred_json:
        try:
            cred_info = json.loads(cred_json)
            return credentials.Certificate(cred_info), cred_info.get("project_id")
        except (json.JSONDecodeError, ValueError) as e:
            app.logger.error(f"Error parsing FIREBASE_CREDENTIALS_JSON: {e}")

    cred_path = os.path.join(
        os.path.dirname(os.path.dirname(__file__)), "firebase_credentials.json"
    )
    if os.path.exists(cred_path):
        try:
            with open(cred_path, "r") as f:
                cred_info = json.load(f)
            return credentials.Certificate(cred_path), cred_info.get("project_id")
        except (json.JSONDecodeError, ValueError) as e:
            app.logger.error(f"Error loading credentials from file: {e}")

    try:
        return credentials.ApplicationDefault(), os.environ.get("FIREBASE_PROJECT_ID")
    except Exception as e:
        app.logger.error(
            f"Could not find any valid credentials (env, file, or default): {e}"
        )
    return None, None


def create_app(test_config=None):
    """Create and configure an instance of the Flask application."""
    app = Flask(__name__, instance_relative_config=True)

    app.config.from_mapping(
        SECRET_KEY=os.environ.get("SECRET_KEY") or "dev",
        MODERATOR_TOKEN=os.environ.get("MODERATOR_TOKEN") or "dev",
        VOTING_DURATION_SECONDS=int(
            os.environ.get("VOTING_DURATION_SECONDS")
            or DEFAULT_VOTING_DURATION_SECONDS
        ),
        PERMANENT_SESSION_LIFETIME=datetime.timedelta(days=1),
        SESSION_COOKIE_SAMESITE="Lax",
    )

    if test_config:
        app.config.update(test_config)

    # Initialize Firebase Admin SDK only if not in testing mode
    if not app.config.get("TESTING"):
        cred, project_id = _load_credentials(app)
        if cred and not firebase_admin._apps:
            try:
                options = {"projectId": project_id} if project_id else None
                firebase_admin.initialize_app(cred, options)
            except ValueError:
                app.logger.info("Firebase app already initialized.")

    csrf.init_app(app)

    from . import game as game_bp

    app.register_blueprint(game_bp.bp)

    from . import error_handlers

    app.register_blueprint(error_handlers.error_handlers_bp)

    @app.route("/health")
    def health_check():
        """Report whether Firestore answers a one-document read."""
        try:
            firestore.client().collection(GAMES_COLLECTION).limit(1).get()
        except Exception as e:
            app.logger.error(f"Health check failed: {e}")
            return jsonify({"status": "unavailable", "firestore": False}), 503
        return jsonify({"status": "ok", "firestore": True}), 200

    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    return app
