"""
Health check routes
"""
import firebase_admin
from flask import Blueprint, current_app, jsonify

health_bp = Blueprint('health', __name__)


@health_bp.route('/ping')
def ping():
    return "pong"


@health_bp.route('/health')
def health():
    """Health check endpoint"""
    repository = current_app.extensions.get('resume_repository')
    return jsonify({
        'status': 'healthy',
        'services': {
            'firebase': 'initialized' if firebase_admin._apps else 'not_initialized',
            'repository': type(repository).__name__ if repository is not None else 'firestore',
        }
    })
