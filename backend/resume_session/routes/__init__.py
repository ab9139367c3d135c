"""
Routes package - Flask blueprints
"""
from resume_session.routes.health import health_bp
from resume_session.routes.resume import resume_bp

__all__ = ['health_bp', 'resume_bp']
