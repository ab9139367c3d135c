"""
Resume persistence gateway - every backend call the editor makes goes through here.

All operations are async (httpx) and return typed results. Transport failures,
non-2xx responses and quota refusals never escape as exceptions: they come back
as a FailureReason so callers can route to retry (network_error), paywall
(limit_reached) or a not-found notice.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from resume_session.config import (
    API_ENDPOINTS,
    DEFAULT_RESUME_TITLE,
    DEFAULT_TEMPLATE,
    DUPLICATE_TITLE_PREFIX,
    RESUME_API_BASE_URL,
)
from resume_session.models.enums import FailureReason
from resume_session.services.resume_service import ResumeService, normalize_resume_body
from resume_session.utils.exceptions import NetworkError, NotFoundError, QuotaExceededError

logger = logging.getLogger(__name__)

LIMIT_REACHED_CODE = 'resume_limit_reached'


@dataclass
class GatewayResult:
    """Outcome of a create, save, rename, delete or duplicate call."""
    success: bool
    resume_id: Optional[str] = None
    title: Optional[str] = None
    reason: Optional[FailureReason] = None
    error: Optional[str] = None

    @classmethod
    def failure(cls, reason: FailureReason, error: str = None) -> 'GatewayResult':
        return cls(success=False, reason=reason, error=error)


@dataclass
class NameValidation:
    is_valid: bool
    suggested_name: Optional[str] = None
    message: Optional[str] = None
    reason: Optional[FailureReason] = None


@dataclass
class Eligibility:
    eligible: bool
    reason: Optional[FailureReason] = None
    resume_count: Optional[int] = None
    limit: Optional[int] = None


@dataclass
class LoadResult:
    """Normalized load outcome, identical for the service and direct paths."""
    success: bool
    data: Optional[Dict[str, Any]] = None
    meta: Dict[str, Any] = field(default_factory=dict)
    reason: Optional[FailureReason] = None
    error: Optional[str] = None


@dataclass
class ResumeList:
    success: bool
    resumes: List[Dict[str, Any]] = field(default_factory=list)
    reason: Optional[FailureReason] = None
    error: Optional[str] = None


def _reason_for(exc: Exception) -> FailureReason:
    if isinstance(exc, QuotaExceededError):
        return FailureReason.LIMIT_REACHED
    if isinstance(exc, NotFoundError):
        return FailureReason.NOT_FOUND
    return FailureReason.NETWORK_ERROR


class ResumeGateway:
    """Client for the resume API with at-most-once creation per intent."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        base_url: str = RESUME_API_BASE_URL,
        auth_token: Optional[str] = None,
        service: Optional[ResumeService] = None,
    ):
        if client is None:
            headers = {'Content-Type': 'application/json'}
            if auth_token:
                headers['Authorization'] = f'Bearer {auth_token}'
            client = httpx.AsyncClient(base_url=base_url, headers=headers)
        self.client = client
        self.service = service or ResumeService(client)
        self._pending_create: Optional[asyncio.Task] = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    # --------------------------------------------------------------------- #
    # Transport                                                             #
    # --------------------------------------------------------------------- #

    async def _request(self, operation: str, method: str, url: str, payload: Optional[dict] = None) -> Dict[str, Any]:
        """
        Perform one JSON request.

        Raises:
            QuotaExceededError: The server refused for plan limits.
            NotFoundError: 404.
            NetworkError: Transport failure, any other non-2xx, or a non-JSON body.
        """
        try:
            response = await self.client.request(method, url, json=payload)
        except httpx.HTTPError as e:
            raise NetworkError(operation, message=str(e)) from e

        body: Dict[str, Any] = {}
        try:
            parsed = response.json()
            if isinstance(parsed, dict):
                body = parsed
        except ValueError:
            if response.is_success:
                raise NetworkError(operation, message='Response body is not JSON', status=response.status_code)

        if not response.is_success:
            if body.get('error') == LIMIT_REACHED_CODE or body.get('error_code') == LIMIT_REACHED_CODE:
                raise QuotaExceededError(body.get('resumeCount', 0), body.get('limit', 0))
            if response.status_code == 404:
                raise NotFoundError('Resume')
            raise NetworkError(operation, status=response.status_code, details={'body': body})
        return body

    # --------------------------------------------------------------------- #
    # Eligibility & names                                                   #
    # --------------------------------------------------------------------- #

    async def check_creation_eligibility(self) -> Eligibility:
        try:
            body = await self._request('check-creation-eligibility', 'GET', API_ENDPOINTS['check_creation_eligibility'])
        except (NetworkError, NotFoundError) as e:
            logger.warning("Eligibility check failed", extra={'error_code': e.error_code})
            return Eligibility(eligible=False, reason=FailureReason.NETWORK_ERROR)
        except QuotaExceededError as e:
            return Eligibility(eligible=False, reason=FailureReason.LIMIT_REACHED,
                               resume_count=e.details.get('resumeCount'), limit=e.details.get('limit'))

        if body.get('eligible'):
            return Eligibility(eligible=True, resume_count=body.get('resumeCount'), limit=body.get('limit'))
        return Eligibility(
            eligible=False,
            reason=FailureReason.LIMIT_REACHED,
            resume_count=body.get('resumeCount'),
            limit=body.get('limit'),
        )

    async def validate_name(self, candidate_title: str, exclude_resume_id: Optional[str] = None) -> NameValidation:
        payload = {'name': candidate_title}
        if exclude_resume_id:
            payload['resumeId'] = exclude_resume_id
        try:
            body = await self._request('validate-name', 'POST', API_ENDPOINTS['validate_name'], payload)
        except (NetworkError, NotFoundError, QuotaExceededError) as e:
            logger.warning("Name validation failed", extra={'error_code': e.error_code})
            return NameValidation(is_valid=False, message=e.message, reason=FailureReason.NETWORK_ERROR)
        return NameValidation(
            is_valid=bool(body.get('isValid')),
            suggested_name=body.get('suggestedName'),
            message=body.get('message'),
        )

    async def resolve_title(self, title: str, exclude_resume_id: Optional[str] = None) -> Optional[str]:
        """
        Title to write, or None when the name could not be checked.

        A suggested name is returned exactly as the server produced it. A
        collision without a suggestion counts as a failed check.
        """
        validation = await self.validate_name(title, exclude_resume_id)
        if validation.reason is not None:
            return None
        if validation.is_valid:
            return title
        if not validation.suggested_name:
            logger.warning("Name rejected without a suggestion", extra={'requested': title})
            return None
        logger.info("Duplicate name detected, using suggested name",
                    extra={'requested': title, 'suggested': validation.suggested_name})
        return validation.suggested_name

    # --------------------------------------------------------------------- #
    # Create / save / duplicate / rename / delete                           #
    # --------------------------------------------------------------------- #

    async def create_draft_resume(
        self,
        template_id: str,
        initial_data: Dict[str, Any],
        title: str = DEFAULT_RESUME_TITLE,
        is_import: bool = False,
    ) -> GatewayResult:
        """
        Promote a draft to a persisted resume.

        Concurrent calls while a create is in flight share its result instead
        of issuing a second write.
        """
        if self._pending_create is not None and not self._pending_create.done():
            logger.info("Create already in progress, joining it")
            return await self._pending_create

        self._pending_create = asyncio.ensure_future(
            self._create(template_id or DEFAULT_TEMPLATE, initial_data, title, is_import)
        )
        try:
            return await self._pending_create
        finally:
            self._pending_create = None

    async def _create(self, template_id: str, initial_data: Dict[str, Any], title: str, is_import: bool) -> GatewayResult:
        eligibility = await self.check_creation_eligibility()
        if not eligibility.eligible:
            logger.info("Resume creation refused before write", extra={'reason': eligibility.reason.value})
            return GatewayResult.failure(eligibility.reason)

        final_title = await self.resolve_title(title)
        if final_title is None:
            return GatewayResult.failure(FailureReason.NETWORK_ERROR, 'Could not validate resume name')

        payload = {'resumeData': initial_data, 'template': template_id, 'title': final_title}
        if is_import:
            payload['isImport'] = True
        try:
            body = await self._request('save', 'POST', API_ENDPOINTS['save'], payload)
        except (NetworkError, NotFoundError, QuotaExceededError) as e:
            return GatewayResult.failure(_reason_for(e), e.message)

        resume_id = body.get('resumeId')
        if not resume_id:
            return GatewayResult.failure(FailureReason.NETWORK_ERROR, body.get('error') or 'No resume id returned')
        logger.info("Resume created", extra={'resume_id': resume_id, 'title': final_title})
        return GatewayResult(success=True, resume_id=resume_id, title=final_title)

    async def save_resume(
        self,
        resume_id: str,
        data: Dict[str, Any],
        template: Optional[str] = None,
        title: Optional[str] = None,
    ) -> GatewayResult:
        """Update an existing resume (the autosave write)."""
        payload: Dict[str, Any] = {'data': data}
        if template:
            payload['template'] = template
        if title:
            payload['title'] = title
        try:
            body = await self._request('update', 'POST', f"{API_ENDPOINTS['update']}/{resume_id}", payload)
        except (NetworkError, NotFoundError, QuotaExceededError) as e:
            return GatewayResult.failure(_reason_for(e), e.message)
        return GatewayResult(success=True, resume_id=body.get('resumeId') or resume_id, title=title)

    async def duplicate_resume(self, resume_id: str) -> GatewayResult:
        eligibility = await self.check_creation_eligibility()
        if not eligibility.eligible:
            return GatewayResult.failure(eligibility.reason)
        try:
            body = await self._request('duplicate', 'POST', f"{API_ENDPOINTS['duplicate']}/{resume_id}")
        except (NetworkError, NotFoundError, QuotaExceededError) as e:
            return GatewayResult.failure(_reason_for(e), e.message)
        title = body.get('title')
        if title and not title.startswith(DUPLICATE_TITLE_PREFIX):
            logger.warning("Duplicate title missing copy prefix", extra={'title': title})
        return GatewayResult(success=True, resume_id=body.get('resumeId'), title=title)

    async def rename_resume(self, resume_id: str, title: str) -> GatewayResult:
        """
        Rename a persisted resume.

        The name is checked against the user's other resumes first and a
        suggested name replaces a colliding one.
        """
        final_title = await self.resolve_title(title, exclude_resume_id=resume_id)
        if final_title is None:
            return GatewayResult.failure(FailureReason.NETWORK_ERROR, 'Could not validate resume name')
        try:
            body = await self._request('update-name', 'POST', f"{API_ENDPOINTS['update_name']}/{resume_id}",
                                       {'title': final_title})
        except (NetworkError, NotFoundError, QuotaExceededError) as e:
            return GatewayResult.failure(_reason_for(e), e.message)
        return GatewayResult(success=True, resume_id=body.get('resumeId') or resume_id,
                             title=body.get('title') or final_title)

    async def delete_resume(self, resume_id: str) -> GatewayResult:
        try:
            await self._request('delete', 'DELETE', f"{API_ENDPOINTS['delete']}?{urlencode({'id': resume_id})}")
        except (NetworkError, NotFoundError, QuotaExceededError) as e:
            return GatewayResult.failure(_reason_for(e), e.message)
        logger.info("Resume deleted", extra={'resume_id': resume_id})
        return GatewayResult(success=True, resume_id=resume_id)

    # --------------------------------------------------------------------- #
    # Load                                                                  #
    # --------------------------------------------------------------------- #

    async def _fetch(self, operation: str, url: str, resume_id: Optional[str] = None) -> LoadResult:
        try:
            body = await self._request(operation, 'GET', url)
        except (NetworkError, NotFoundError, QuotaExceededError) as e:
            return LoadResult(success=False, reason=_reason_for(e), error=e.message)

        loaded = normalize_resume_body(body, resume_id)
        if loaded is None:
            logger.warning("Malformed resume body", extra={'operation': operation, 'resume_id': resume_id})
            return LoadResult(success=False, reason=FailureReason.NETWORK_ERROR,
                              error='Invalid resume data returned from API')
        return LoadResult(success=True, data=loaded['resumeData'], meta=loaded['meta'])

    async def load_resume(self, resume_id: str) -> LoadResult:
        """Load through the resume service, falling back once to a direct fetch."""
        result = await self.service.load_resume(resume_id)
        if result.get('success') and result.get('data'):
            loaded = result['data']
            return LoadResult(success=True, data=loaded.get('resumeData'), meta=loaded.get('meta') or {})

        logger.warning("Resume service failed to load resume, falling back to direct fetch",
                       extra={'resume_id': resume_id, 'error': result.get('error')})
        return await self._fetch('get-by-id', f"{API_ENDPOINTS['get']}/{resume_id}", resume_id)

    async def get_latest_resume(self) -> LoadResult:
        """Most recently updated resume of the signed-in user; not_found when there is none."""
        return await self._fetch('get-latest', API_ENDPOINTS['get_latest'])

    async def list_resumes(self) -> ResumeList:
        result = await self.service.list_resumes()
        if not result.get('success'):
            logger.warning("Failed to list resumes", extra={'error': result.get('error')})
            return ResumeList(success=False, reason=FailureReason.NETWORK_ERROR, error=result.get('error'))
        return ResumeList(success=True, resumes=result['data']['resumes'])
