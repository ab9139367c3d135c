"""
Application configuration - all constants, environment variables, and config dictionaries
"""
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# ========================================
# Backend & Identity
# ========================================
RESUME_API_BASE_URL = os.getenv("RESUME_API_BASE_URL", "http://localhost:5001")
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID", "intelliresume")
SENTRY_DSN = os.getenv("SENTRY_DSN")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

# ========================================
# API Endpoints (relative to RESUME_API_BASE_URL)
# ========================================
API_ENDPOINTS = {
    'save': '/api/resume/save',
    'update': '/api/resume/update',
    'get': '/api/resume/get',
    'list': '/api/resume/list',
    'validate_name': '/api/resume/validate-name',
    'check_creation_eligibility': '/api/resume/check-creation-eligibility',
    'duplicate': '/api/resumes/duplicate',
    'update_name': '/api/resume/update-name',
    'delete': '/api/resume/delete',
    'get_latest': '/api/resume/get-latest',
}

# ========================================
# Session Storage
# ========================================
# Directory for the JSON-file backed session store (one file per session)
SESSION_STORAGE_DIR = os.getenv("RESUME_SESSION_DIR", ".resume_session")

# Draft keys - cleared together as one unit
RESUME_DATA_KEY = 'modern_resume_data'
RESUME_PROGRESS_KEY = 'modern_resume_progress'
RESUME_SECTION_ORDER_KEY = 'modern_resume_section_order'
SELECTED_TEMPLATE_KEY = 'selected_resume_template'
DRAFT_KEYS = (
    RESUME_DATA_KEY,
    RESUME_PROGRESS_KEY,
    RESUME_SECTION_ORDER_KEY,
    SELECTED_TEMPLATE_KEY,
)

# Job targeting keys
JOB_CONTEXT_KEY = 'job_targeting_context'
JOB_CONTEXT_ACTIVE_KEY = 'job_targeting_active'

# Resume identity
CURRENT_RESUME_ID_KEY = 'current_resume_id'
IMPORTED_RESUME_DATA_KEY = 'imported_resume_data'

# One-shot flags (must be removed after CREATION_FLAG_TTL_SECONDS even on success)
CREATING_NEW_RESUME_KEY = 'creating_new_resume'
STARTING_NEW_RESUME_KEY = 'starting_new_resume'
CREATION_FLAG_TTL_SECONDS = 2.0

# ========================================
# Resume Defaults
# ========================================
DEFAULT_TEMPLATE = 'ats'
DEFAULT_RESUME_TITLE = 'My Resume'
UNTITLED_RESUME_TITLE = 'Untitled Resume'
DUPLICATE_TITLE_PREFIX = 'Copy of '
MAX_NAME_SUGGESTIONS = 100  # "Name (2)" .. "Name (99)"
AUTOSAVE_DEBOUNCE_SECONDS = 1.0

DEFAULT_SECTION_ORDER = [
    'personalInfo',
    'summary',
    'experience',
    'education',
    'skills',
    'additional',
]

BLANK_RESUME_DATA = {
    'personalInfo': {
        'name': '',
        'email': '',
        'phone': '',
        'location': '',
        'linkedin': '',
        'website': '',
    },
    'summary': '',
    'experience': [],
    'education': [],
    'skills': [],
    'additional': {
        'certifications': [],
        'projects': [],
        'languages': [],
        'volunteer': [],
        'awards': [],
    },
}

# ========================================
# Firestore Collections
# ========================================
RESUMES_COLLECTION = 'resumes'
USERS_COLLECTION = 'users'
SUBSCRIPTIONS_COLLECTION = 'subscriptions'

# ========================================
# Plan Configurations
# ========================================
FREE_RESUME_LIMIT = 1

PLAN_CONFIGS = {
    'free': {
        'max_resumes': FREE_RESUME_LIMIT,
        'description': 'One saved resume',
    },
    'pro': {
        'max_resumes': None,  # unlimited
        'description': 'Unlimited resumes',
    },
    'elite': {
        'max_resumes': None,
        'description': 'Unlimited resumes and priority tailoring',
    },
}

# ========================================
# Validation
# ========================================
if not os.getenv("RESUME_API_BASE_URL"):
    print("WARNING: RESUME_API_BASE_URL not found in .env file, using http://localhost:5001")
