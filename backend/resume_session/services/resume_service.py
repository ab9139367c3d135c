"""
Database-backed resume service client.

Higher-level wrapper over the resume API returning service responses of the
form {'success': bool, 'data': ..., 'error': str}. The gateway prefers this
path for loads and falls back to a direct fetch when it fails.
"""
import logging
from typing import Any, Dict, Optional

import httpx

from resume_session.config import API_ENDPOINTS, DEFAULT_RESUME_TITLE, DEFAULT_TEMPLATE

logger = logging.getLogger(__name__)


def normalize_resume_body(body: Any, resume_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """
    Turn a get-by-id style body into {'resumeData': ..., 'meta': {...}}.

    Returns None when the body is not {'success': true, 'resume': {...}}.
    """
    if not isinstance(body, dict) or not body.get('success'):
        return None
    resume = body.get('resume')
    if not isinstance(resume, dict):
        return None
    return {
        'resumeData': resume.get('data'),
        'meta': {
            'id': resume.get('id') or resume_id,
            'title': resume.get('title') or DEFAULT_RESUME_TITLE,
            'template': resume.get('template') or DEFAULT_TEMPLATE,
            'lastUpdated': resume.get('updatedAt'),
        },
    }


class ResumeService:
    """Resume service using the database API"""

    def __init__(self, client: httpx.AsyncClient, is_authenticated: bool = True):
        self.client = client
        self.is_authenticated = is_authenticated
        self.api_endpoints = API_ENDPOINTS

    def is_available(self) -> bool:
        return self.is_authenticated

    async def load_resume(self, resume_id: str) -> Dict[str, Any]:
        """
        Load resume data by id.

        Returns:
            {'success': True, 'data': {'resumeData': ..., 'meta': {...}}}
            or {'success': False, 'error': str, 'data': None}
        """
        if not self.is_available():
            return {'success': False, 'error': 'Database service not available', 'data': None}
        if not resume_id:
            return {'success': False, 'error': 'Resume ID is required', 'data': None}

        try:
            response = await self.client.get(f"{self.api_endpoints['get']}/{resume_id}")
            if response.status_code == 404:
                return {'success': False, 'error': f'Resume with ID {resume_id} not found', 'data': None, 'status': 404}
            if not response.is_success:
                return {'success': False, 'error': f'API request failed with status {response.status_code}', 'data': None}

            result = response.json()
            loaded = normalize_resume_body(result, resume_id)
            if loaded is None:
                error = result.get('error') if isinstance(result, dict) else None
                return {'success': False, 'error': error or 'Failed to retrieve resume data', 'data': None}
            return {'success': True, 'data': loaded}
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error loading resume from database", extra={'resume_id': resume_id, 'error': str(e)})
            return {'success': False, 'error': f'Failed to load resume: {e}', 'data': None}

    async def list_resumes(self) -> Dict[str, Any]:
        """
        Summaries of the signed-in user's resumes, newest first.

        Returns:
            {'success': bool, 'data': {'resumes': [...]}, 'error': str}
        """
        if not self.is_available():
            return {'success': False, 'error': 'Database service not available', 'data': {'resumes': []}}
        try:
            response = await self.client.get(self.api_endpoints['list'])
            if not response.is_success:
                return {'success': False, 'error': f'API request failed with status {response.status_code}', 'data': {'resumes': []}}
            result = response.json()
            resumes = result.get('resumes') if isinstance(result, dict) else None
            if not isinstance(resumes, list):
                return {'success': False, 'error': 'Invalid resume list returned from API', 'data': {'resumes': []}}
            return {'success': True, 'data': {'resumes': [r for r in resumes if isinstance(r, dict)]}}
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error listing resumes", extra={'error': str(e)})
            return {'success': False, 'error': f'Failed to list resumes: {e}', 'data': {'resumes': []}}
