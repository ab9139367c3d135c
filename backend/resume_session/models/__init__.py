"""
Models package - data models, enums, and normalization functions
"""
from resume_session.models.enums import Workflow, TailorSource, PlanType, FailureReason
from resume_session.models.resume import (
    Draft,
    JobContext,
    PersistedResume,
    sanitize_text,
    sanitize_data_for_db,
    imported_resume_title,
    normalize_imported_resume,
)
from resume_session.models.notification import Notification

__all__ = [
    # Enums
    'Workflow',
    'TailorSource',
    'PlanType',
    'FailureReason',
    # Resume models
    'Draft',
    'JobContext',
    'PersistedResume',
    'sanitize_text',
    'sanitize_data_for_db',
    'imported_resume_title',
    'normalize_imported_resume',
    # Notifications
    'Notification',
]
