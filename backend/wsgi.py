import logging

from flask import Flask

from resume_session.extensions import init_app_extensions
from resume_session.logging_config import configure_logging
from resume_session.routes import health_bp, resume_bp
from resume_session.utils.exceptions import register_error_handlers
from resume_session.utils.sentry_config import init_sentry


def create_app(repository=None) -> Flask:
    """
    Build the resume API app.

    Passing a repository skips Firebase initialization and stores records there
    instead of Firestore (tests and local runs use InMemoryResumeRepository).
    """
    configure_logging()
    app = Flask(__name__)

    init_sentry(app)
    init_app_extensions(app, with_firebase=repository is None)
    if repository is not None:
        app.extensions['resume_repository'] = repository

    register_error_handlers(app)

    # --- Register API blueprints ---
    app.register_blueprint(health_bp)
    app.register_blueprint(resume_bp)

    app.logger.setLevel(logging.INFO)
    app.logger.info("Resume session API ready")
    return app


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=5001, debug=True)
