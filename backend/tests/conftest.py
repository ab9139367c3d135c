"""
Pytest configuration and fixtures
"""
import json
import os
from unittest.mock import patch

import httpx
import pytest

# Set test environment
os.environ['FLASK_ENV'] = 'testing'
os.environ.setdefault('RESUME_API_BASE_URL', 'http://resume-api.test')

from resume_session.services.draft_store import DraftStore
from resume_session.services.job_context_store import JobContextStore
from resume_session.services.navigation_guard import NavigationGuard, RouterEvents
from resume_session.services.resume_gateway import ResumeGateway
from resume_session.services.resume_repository import InMemoryResumeRepository
from resume_session.services.storage import InMemoryStore


class FakeResumeApi:
    """
    In-process stand-in for the resume API, served through httpx.MockTransport.

    Records every request as (method, path, json body) and lets tests switch
    individual endpoints to failure modes.
    """

    def __init__(self):
        self.calls = []
        self.resumes = {}
        self.eligible = True
        self.resume_count = 0
        self.limit = 1
        self.taken_titles = set()
        self.fail = set()          # operation names that answer 500
        self.offline = set()       # operation names that raise ConnectError
        self.get_failures = 0      # leading GET /get failures before succeeding
        self.on_save = None        # optional hook run before a save responds
        self.overrides = {}        # operation name -> (status, json body) answered verbatim
        self._next_id = 1

    def transport(self):
        return httpx.MockTransport(self.handle)

    def client(self):
        return httpx.AsyncClient(base_url='http://resume-api.test', transport=self.transport())

    def calls_to(self, operation):
        return [c for c in self.calls if c[0] == operation]

    def _operation(self, request):
        path = request.url.path
        if path == '/api/resume/save':
            return 'save'
        if path.startswith('/api/resume/update/'):
            return 'update'
        if path.startswith('/api/resume/get/'):
            return 'get'
        if path == '/api/resume/list':
            return 'list'
        if path == '/api/resume/get-latest':
            return 'get_latest'
        if path.startswith('/api/resume/update-name/'):
            return 'update_name'
        if path == '/api/resume/delete':
            return 'delete'
        if path == '/api/resume/validate-name':
            return 'validate_name'
        if path == '/api/resume/check-creation-eligibility':
            return 'eligibility'
        if path.startswith('/api/resumes/duplicate/'):
            return 'duplicate'
        return 'unknown'

    def handle(self, request):
        operation = self._operation(request)
        body = json.loads(request.content) if request.content else None
        self.calls.append((operation, request.url.path, body))

        if operation in self.offline:
            raise httpx.ConnectError('connection refused', request=request)
        if operation in self.fail:
            return httpx.Response(500, json={'error': 'Internal server error'})
        if operation in self.overrides:
            status, payload = self.overrides[operation]
            return httpx.Response(status, json=payload)

        handler = getattr(self, f'_{operation}', None)
        if handler is None:
            return httpx.Response(404, json={'error': 'Resource not found'})
        return handler(request, body)

    def _eligibility(self, request, body):
        if self.eligible:
            return httpx.Response(200, json={'eligible': True, 'resumeCount': self.resume_count, 'limit': self.limit})
        return httpx.Response(200, json={
            'eligible': False,
            'error': 'resume_limit_reached',
            'resumeCount': self.resume_count,
            'limit': self.limit,
        })

    def _validate_name(self, request, body):
        name = body['name'].strip()
        if name not in self.taken_titles:
            return httpx.Response(200, json={'isValid': True, 'message': 'Resume name is available'})
        count = 2
        while f"{name} ({count})" in self.taken_titles:
            count += 1
        return httpx.Response(200, json={
            'isValid': False,
            'suggestedName': f"{name} ({count})",
            'message': 'A resume with this name already exists',
        })

    def _save(self, request, body):
        if self.on_save is not None:
            self.on_save(body)
        resume_id = f"resume-{self._next_id}"
        self._next_id += 1
        self.resumes[resume_id] = {
            'id': resume_id,
            'title': body.get('title'),
            'data': body.get('resumeData'),
            'template': body.get('template'),
            'updatedAt': '2026-01-01T00:00:00+00:00',
        }
        self.taken_titles.add(body.get('title'))
        self.resume_count += 1
        return httpx.Response(201, json={'success': True, 'resumeId': resume_id})

    def _update(self, request, body):
        resume_id = request.url.path.rsplit('/', 1)[-1]
        if resume_id not in self.resumes:
            return httpx.Response(404, json={'error': 'Resume not found', 'error_code': 'NOT_FOUND'})
        resume = self.resumes[resume_id]
        resume['data'] = body.get('data')
        if body.get('template'):
            resume['template'] = body['template']
        if body.get('title'):
            self.taken_titles.discard(resume['title'])
            resume['title'] = body['title']
            self.taken_titles.add(body['title'])
        return httpx.Response(200, json={'success': True, 'resumeId': resume_id})

    def _update_name(self, request, body):
        resume_id = request.url.path.rsplit('/', 1)[-1]
        if resume_id not in self.resumes:
            return httpx.Response(404, json={'error': 'Resume not found', 'error_code': 'NOT_FOUND'})
        resume = self.resumes[resume_id]
        self.taken_titles.discard(resume['title'])
        resume['title'] = body['title']
        self.taken_titles.add(body['title'])
        return httpx.Response(200, json={
            'success': True,
            'message': 'Resume name updated successfully',
            'resumeId': resume_id,
            'title': body['title'],
        })

    def _delete(self, request, body):
        resume = self.resumes.pop(request.url.params.get('id'), None)
        if resume is None:
            return httpx.Response(404, json={'error': 'Resume not found', 'error_code': 'NOT_FOUND'})
        self.taken_titles.discard(resume['title'])
        self.resume_count -= 1
        return httpx.Response(200, json={'success': True, 'message': 'Resume deleted successfully'})

    def _get_latest(self, request, body):
        if not self.resumes:
            return httpx.Response(404, json={'error': 'No resumes found', 'error_code': 'NOT_FOUND'})
        latest = list(self.resumes.values())[-1]
        return httpx.Response(200, json={'success': True, 'resume': latest})

    def _get(self, request, body):
        if self.get_failures:
            self.get_failures -= 1
            return httpx.Response(503, json={'error': 'Service unavailable'})
        resume_id = request.url.path.rsplit('/', 1)[-1]
        resume = self.resumes.get(resume_id)
        if resume is None:
            return httpx.Response(404, json={'error': 'Resume not found', 'error_code': 'NOT_FOUND'})
        return httpx.Response(200, json={'success': True, 'resume': resume})

    def _list(self, request, body):
        return httpx.Response(200, json={'success': True, 'resumes': list(self.resumes.values())})

    def _duplicate(self, request, body):
        resume_id = request.url.path.rsplit('/', 1)[-1]
        source = self.resumes.get(resume_id)
        if source is None:
            return httpx.Response(404, json={'error': 'Resume not found', 'error_code': 'NOT_FOUND'})
        new_id = f"resume-{self._next_id}"
        self._next_id += 1
        self.resumes[new_id] = {**source, 'id': new_id, 'title': f"Copy of {source['title']}"}
        return httpx.Response(201, json={'success': True, 'resumeId': new_id, 'title': f"Copy of {source['title']}"})


@pytest.fixture
def api():
    """Fake resume API"""
    return FakeResumeApi()


@pytest.fixture
def gateway(api):
    """Gateway wired to the fake API"""
    return ResumeGateway(client=api.client())


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def draft_store(store):
    return DraftStore(store)


@pytest.fixture
def job_store(store):
    return JobContextStore(store)


@pytest.fixture
def router_events():
    return RouterEvents()


@pytest.fixture
def guard(router_events):
    return NavigationGuard(router_events)


@pytest.fixture
def mock_firebase_user():
    """Mock Firebase user"""
    return {
        'uid': 'test-user-id',
        'email': 'test@example.com',
        'name': 'Test User'
    }


@pytest.fixture
def repository():
    return InMemoryResumeRepository()


@pytest.fixture
def app(repository):
    """Create Flask app for testing"""
    from wsgi import create_app
    app = create_app(repository=repository)
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(app):
    """Create test client"""
    return app.test_client()


@pytest.fixture
def firebase_auth():
    """
    Accept any Bearer token and treat the token itself as the user id.
    """
    with patch.dict('firebase_admin._apps', {'[DEFAULT]': object()}), \
            patch('resume_session.extensions.fb_auth.verify_id_token') as mock_verify:
        mock_verify.side_effect = lambda token: {'uid': token, 'email': f'{token}@example.com'}
        yield mock_verify


@pytest.fixture
def auth_headers(firebase_auth, mock_firebase_user):
    return {'Authorization': f"Bearer {mock_firebase_user['uid']}"}
