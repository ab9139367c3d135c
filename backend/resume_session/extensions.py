"""
Flask extensions and initialization
"""
import functools
import logging
import os

import firebase_admin
from firebase_admin import credentials, firestore, auth as fb_auth
from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from resume_session.config import CORS_ORIGINS, FIREBASE_PROJECT_ID
from resume_session.utils.exceptions import AuthenticationError, ResumeSessionException

logger = logging.getLogger(__name__)

# Global Firestore client
db = None
limiter = None


def init_firebase(app):
    """Initialize Firebase and set up the Firestore client."""
    global db
    if firebase_admin._apps:  # already initialized
        db = firestore.client()
        return

    cred = None
    cred_path = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
    if cred_path and os.path.exists(cred_path):
        cred = credentials.Certificate(cred_path)
        logger.info("Using Firebase credentials", extra={'path': cred_path})

    try:
        if cred:
            firebase_admin.initialize_app(cred, {'projectId': FIREBASE_PROJECT_ID})
        else:
            # Cloud environments provide default credentials
            logger.warning("No Firebase credentials file found, initializing with project id only")
            firebase_admin.initialize_app(options={'projectId': FIREBASE_PROJECT_ID})
        db = firestore.client()
        logger.info("Firestore client initialized", extra={'project_id': FIREBASE_PROJECT_ID})
    except (ValueError, OSError) as e:
        # The app still starts; authenticated routes fail until Firebase is configured
        logger.error("Firebase initialization failed", extra={'error': str(e)})
        db = None


def get_db():
    """Returns the Firestore client instance."""
    global db
    if db is None:
        if not firebase_admin._apps:
            raise RuntimeError("Firestore DB not initialized. Call init_firebase() first.")
        db = firestore.client()
    return db


def require_firebase_auth(fn):
    """
    Decorator to require Firebase authentication for an endpoint.

    Verifies the Bearer ID token and exposes the decoded claims as
    request.firebase_user. OPTIONS requests pass through for CORS preflight.
    """
    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        if request.method != 'OPTIONS':
            auth_header = request.headers.get('Authorization', '')
            if not auth_header.startswith('Bearer '):
                raise AuthenticationError('Missing Authorization header')
            if not firebase_admin._apps:
                raise ResumeSessionException("Firebase Admin SDK not initialized. Call init_firebase() first.")

            id_token = auth_header.split(' ', 1)[1].strip()
            try:
                request.firebase_user = fb_auth.verify_id_token(id_token)
            except (ValueError, fb_auth.InvalidIdTokenError, fb_auth.ExpiredIdTokenError) as e:
                logger.warning("Token verification failed", extra={'error': str(e)})
                raise AuthenticationError('Invalid or expired token. Please sign in again.')
        return fn(*args, **kwargs)
    return wrapper


def current_user_id() -> str:
    user = getattr(request, 'firebase_user', None) or {}
    user_id = user.get('uid')
    if not user_id:
        raise AuthenticationError('User ID not found')
    return user_id


def get_rate_limit_key():
    """Rate limit per signed-in user, falling back to the remote address."""
    user = getattr(request, 'firebase_user', None)
    if user and user.get('uid'):
        return f"user:{user['uid']}"
    return get_remote_address()


def init_app_extensions(app: Flask, with_firebase: bool = True):
    """Initializes Flask extensions like CORS, Rate Limiting, and Firebase."""
    global limiter
    limiter = Limiter(
        app=app,
        key_func=get_rate_limit_key,
        default_limits=["1000 per day", "200 per hour"],
        storage_uri="memory://",
        strategy="fixed-window",
        headers_enabled=True,
    )
    app.limiter = limiter

    cors_config = {
        "origins": CORS_ORIGINS,
        "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        "allow_headers": ["Content-Type", "Authorization", "X-Requested-With"],
        "supports_credentials": True,
        "max_age": 3600,
    }
    CORS(app, resources={r"/api/*": cors_config}, supports_credentials=True)
    app.secret_key = os.getenv("FLASK_SECRET", "dev")

    if with_firebase:
        init_firebase(app)
