"""
Resume creation quota - how many resumes a user's plan allows
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from resume_session.config import FREE_RESUME_LIMIT, PLAN_CONFIGS
from resume_session.models import PlanType
from resume_session.services.resume_repository import ResumeRepository
from resume_session.utils.exceptions import QuotaExceededError

logger = logging.getLogger(__name__)


def has_unlimited_resumes(plan: Dict[str, Any], now: Optional[datetime] = None) -> bool:
    """Active subscription, or a paid plan whose expiration is still ahead."""
    if plan.get('hasActiveSubscription'):
        return True

    plan_type = plan.get('planType') or PlanType.FREE.value
    if plan_type == PlanType.FREE.value:
        return False
    if PLAN_CONFIGS.get(plan_type, {}).get('max_resumes', FREE_RESUME_LIMIT) is not None:
        return False

    expires_at = plan.get('planExpirationDate')
    now = now or datetime.now(timezone.utc)
    return bool(expires_at and expires_at > now)


def check_creation_eligibility(
    repository: ResumeRepository,
    user_id: str,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Eligibility response body for the check-creation-eligibility endpoint.

    Paid users get {'eligible': True}; free users also get their count and limit.
    """
    plan = repository.get_user_plan(user_id)
    if has_unlimited_resumes(plan, now):
        return {'eligible': True}

    resume_count = repository.count_for_user(user_id)
    limit = FREE_RESUME_LIMIT
    if resume_count >= limit:
        logger.info("Resume limit reached", extra={'user_id': user_id, 'resume_count': resume_count, 'limit': limit})
        return {
            'eligible': False,
            'error': 'resume_limit_reached',
            'resumeCount': resume_count,
            'limit': limit,
        }
    return {'eligible': True, 'resumeCount': resume_count, 'limit': limit}


def require_creation_quota(repository: ResumeRepository, user_id: str) -> None:
    """
    Raises:
        QuotaExceededError: The user may not create another resume.
    """
    eligibility = check_creation_eligibility(repository, user_id)
    if not eligibility['eligible']:
        raise QuotaExceededError(eligibility['resumeCount'], eligibility['limit'])
