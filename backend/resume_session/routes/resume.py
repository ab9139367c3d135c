"""
Resume record routes - save, load, list, rename, delete, name validation, eligibility, duplicate
"""
import logging
import threading
import weakref

from flask import Blueprint, current_app, jsonify, request

from resume_session.config import DEFAULT_TEMPLATE, UNTITLED_RESUME_TITLE
from resume_session.extensions import current_user_id, get_db, require_firebase_auth
from resume_session.models import sanitize_data_for_db
from resume_session.services.resume_quota import check_creation_eligibility, require_creation_quota
from resume_session.services.resume_repository import (
    FirestoreResumeRepository,
    ResumeRepository,
    duplicate_title,
    suggest_unique_title,
)
from resume_session.utils.exceptions import AuthorizationError, NotFoundError, ValidationError
from resume_session.utils.validation import (
    SaveResumeRequest,
    UpdateNameRequest,
    UpdateResumeRequest,
    ValidateNameRequest,
    validate_request,
)

logger = logging.getLogger(__name__)

resume_bp = Blueprint('resume', __name__, url_prefix='/api')


class _UserSaveLock:
    """Per-user lock; held in a weak map so idle users drop out of it."""

    def __init__(self):
        self._lock = threading.Lock()

    def __enter__(self):
        self._lock.acquire()
        return self

    def __exit__(self, *exc_info):
        self._lock.release()


# One save at a time per user, so a double-submitted create cannot write twice
_save_locks = weakref.WeakValueDictionary()
_save_locks_guard = threading.Lock()


def _user_save_lock(user_id: str) -> _UserSaveLock:
    with _save_locks_guard:
        lock = _save_locks.get(user_id)
        if lock is None:
            lock = _UserSaveLock()
            _save_locks[user_id] = lock
        return lock


def get_repository() -> ResumeRepository:
    repository = current_app.extensions.get('resume_repository')
    if repository is None:
        repository = FirestoreResumeRepository(get_db())
        current_app.extensions['resume_repository'] = repository
    return repository


def _owned_resume(repository: ResumeRepository, resume_id: str, user_id: str):
    resume = repository.get(resume_id)
    if resume is None:
        raise NotFoundError('Resume')
    if resume.user_id != user_id:
        raise AuthorizationError()
    return resume


def _require_unique_title(repository: ResumeRepository, user_id: str, title: str, resume_id: str) -> None:
    """Reject a title already used by another of the user's resumes."""
    if not repository.title_exists(user_id, title, resume_id):
        return
    suggestion = suggest_unique_title(repository, user_id, title, resume_id)
    raise ValidationError(
        'A resume with this name already exists',
        field='title',
        details={'suggestedName': suggestion.get('suggestedName')},
    )


@resume_bp.route('/resume/save', methods=['POST'])
@require_firebase_auth
def save_resume():
    """Create a resume, or update it when the given id already belongs to the user"""
    user_id = current_user_id()
    payload = validate_request(SaveResumeRequest, request.get_json(silent=True) or {})
    repository = get_repository()

    title = payload.get('title') or UNTITLED_RESUME_TITLE
    data = sanitize_data_for_db(payload['resumeData'])
    template = payload.get('template')

    with _user_save_lock(user_id):
        existing_id = payload.get('resumeId') or payload.get('forcedId')
        if existing_id:
            existing = repository.get(existing_id)
            if existing is not None:
                if existing.user_id != user_id:
                    raise AuthorizationError()
                new_title = payload.get('title') or existing.title
                if new_title != existing.title:
                    _require_unique_title(repository, user_id, new_title, existing.id)
                existing.title = new_title
                existing.data = data
                existing.template = template or existing.template
                repository.update(existing)
                logger.info("Resume updated via save", extra={'resume_id': existing.id, 'user_id': user_id})
                return jsonify({
                    'success': True,
                    'message': 'Resume updated successfully',
                    'resumeId': existing.id,
                })

        require_creation_quota(repository, user_id)
        resume = repository.create(
            user_id,
            title,
            data,
            template=template or DEFAULT_TEMPLATE,
            resume_id=payload.get('forcedId'),
        )

    logger.info("Resume created", extra={
        'resume_id': resume.id,
        'user_id': user_id,
        'is_import': bool(payload.get('isImport')),
    })
    return jsonify({
        'success': True,
        'message': 'Resume created successfully',
        'resumeId': resume.id,
    }), 201


@resume_bp.route('/resume/update/<resume_id>', methods=['POST', 'PUT'])
@require_firebase_auth
def update_resume(resume_id):
    user_id = current_user_id()
    payload = validate_request(UpdateResumeRequest, request.get_json(silent=True) or {})
    repository = get_repository()

    with _user_save_lock(user_id):
        resume = _owned_resume(repository, resume_id, user_id)
        title = payload.get('title')
        if title and title != resume.title:
            _require_unique_title(repository, user_id, title, resume.id)
            resume.title = title
        resume.data = sanitize_data_for_db(payload['data'])
        if payload.get('template'):
            resume.template = payload['template']
        repository.update(resume)
    return jsonify({'success': True, 'resumeId': resume.id})


@resume_bp.route('/resume/update-name/<resume_id>', methods=['POST'])
@require_firebase_auth
def update_resume_name(resume_id):
    """
    Rename a resume.

    Request body:
        title: new title, unique among the user's resumes
    """
    user_id = current_user_id()
    payload = validate_request(UpdateNameRequest, request.get_json(silent=True) or {})
    repository = get_repository()

    with _user_save_lock(user_id):
        resume = _owned_resume(repository, resume_id, user_id)
        if payload['title'] != resume.title:
            _require_unique_title(repository, user_id, payload['title'], resume.id)
            resume.title = payload['title']
            repository.update(resume)

    logger.info("Resume renamed", extra={'resume_id': resume.id, 'user_id': user_id})
    return jsonify({
        'success': True,
        'message': 'Resume name updated successfully',
        'resumeId': resume.id,
        'title': resume.title,
    })


@resume_bp.route('/resume/get/<resume_id>', methods=['GET'])
@require_firebase_auth
def get_resume(resume_id):
    user_id = current_user_id()
    resume = _owned_resume(get_repository(), resume_id, user_id)
    return jsonify({'success': True, 'resume': resume.to_api_dict()})


@resume_bp.route('/resume/get-latest', methods=['GET'])
@require_firebase_auth
def get_latest_resume():
    user_id = current_user_id()
    resume = get_repository().get_latest(user_id)
    if resume is None:
        raise NotFoundError(message='No resumes found')
    return jsonify({'success': True, 'resume': resume.to_api_dict()})


@resume_bp.route('/resume/list', methods=['GET'])
@require_firebase_auth
def list_resumes():
    user_id = current_user_id()
    resumes = get_repository().list_for_user(user_id)
    return jsonify({'success': True, 'resumes': [r.to_summary_dict() for r in resumes]})


@resume_bp.route('/resume/delete', methods=['DELETE'])
@require_firebase_auth
def delete_resume():
    """Delete one of the user's resumes, given as ?id=<resume_id>"""
    user_id = current_user_id()
    resume_id = (request.args.get('id') or '').strip()
    if not resume_id:
        raise ValidationError('Resume ID is required', field='id')
    repository = get_repository()

    with _user_save_lock(user_id):
        resume = repository.get(resume_id)
        if resume is None or resume.user_id != user_id:
            raise NotFoundError('Resume')
        repository.delete(resume_id)

    logger.info("Resume deleted", extra={'resume_id': resume_id, 'user_id': user_id})
    return jsonify({'success': True, 'message': 'Resume deleted successfully'})


@resume_bp.route('/resume/validate-name', methods=['POST'])
@require_firebase_auth
def validate_name():
    """
    Check a resume name for duplicates among the user's resumes.

    Request body:
        name: candidate title
        resumeId: optional resume to exclude from the check
    """
    user_id = current_user_id()
    payload = validate_request(ValidateNameRequest, request.get_json(silent=True) or {})

    result = suggest_unique_title(get_repository(), user_id, payload['name'], payload.get('resumeId'))
    return jsonify(result)


@resume_bp.route('/resume/check-creation-eligibility', methods=['GET'])
@require_firebase_auth
def creation_eligibility():
    user_id = current_user_id()
    return jsonify(check_creation_eligibility(get_repository(), user_id))


@resume_bp.route('/resumes/duplicate/<resume_id>', methods=['POST'])
@require_firebase_auth
def duplicate_resume(resume_id):
    """Copy a resume's content and template under a "Copy of" title"""
    user_id = current_user_id()
    repository = get_repository()

    source = repository.get(resume_id)
    if source is None or source.user_id != user_id:
        raise NotFoundError('Resume')

    with _user_save_lock(user_id):
        require_creation_quota(repository, user_id)
        duplicate = repository.create(user_id, duplicate_title(source.title), source.data, template=source.template)

    logger.info("Resume duplicated", extra={'source_id': resume_id, 'resume_id': duplicate.id})
    return jsonify({'success': True, 'resumeId': duplicate.id, 'title': duplicate.title}), 201
