"""
Resume repository - server-side persistence for resume records.

ResumeRepository is the narrow interface the routes depend on. Firestore backs
it in production; the in-memory implementation backs tests and local runs.
"""
import copy
import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from google.cloud.firestore_v1 import FieldFilter

from resume_session.config import (
    DEFAULT_TEMPLATE,
    DUPLICATE_TITLE_PREFIX,
    MAX_NAME_SUGGESTIONS,
    RESUMES_COLLECTION,
    SUBSCRIPTIONS_COLLECTION,
    USERS_COLLECTION,
)
from resume_session.models import PersistedResume

logger = logging.getLogger(__name__)


def _parse_datetime(value) -> Optional[datetime]:
    """Firestore timestamps, datetimes and ISO strings to an aware datetime."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


class ResumeRepository:
    """Storage operations for resumes and the plan data that limits them."""

    def get(self, resume_id: str) -> Optional[PersistedResume]:
        raise NotImplementedError

    def create(
        self,
        user_id: str,
        title: str,
        data: Dict[str, Any],
        template: str = DEFAULT_TEMPLATE,
        resume_id: Optional[str] = None,
    ) -> PersistedResume:
        raise NotImplementedError

    def update(self, resume: PersistedResume) -> PersistedResume:
        raise NotImplementedError

    def list_for_user(self, user_id: str) -> List[PersistedResume]:
        raise NotImplementedError

    def delete(self, resume_id: str) -> None:
        raise NotImplementedError

    def get_latest(self, user_id: str) -> Optional[PersistedResume]:
        """Most recently updated resume, or None when the user has none."""
        resumes = self.list_for_user(user_id)
        return resumes[0] if resumes else None

    def count_for_user(self, user_id: str) -> int:
        return len(self.list_for_user(user_id))

    def title_exists(self, user_id: str, title: str, exclude_id: Optional[str] = None) -> bool:
        return any(
            r.title == title and r.id != exclude_id
            for r in self.list_for_user(user_id)
        )

    def get_user_plan(self, user_id: str) -> Dict[str, Any]:
        """
        Plan facts used by the creation eligibility check.

        Returns:
            {'planType': str, 'planExpirationDate': datetime | None,
             'hasActiveSubscription': bool}
        """
        raise NotImplementedError


class InMemoryResumeRepository(ResumeRepository):
    """Thread-safe dict-backed repository"""

    def __init__(self):
        self._lock = threading.Lock()
        self._resumes: Dict[str, PersistedResume] = {}
        self._plans: Dict[str, Dict[str, Any]] = {}

    def get(self, resume_id):
        with self._lock:
            resume = self._resumes.get(resume_id)
            return copy.deepcopy(resume) if resume else None

    def create(self, user_id, title, data, template=DEFAULT_TEMPLATE, resume_id=None):
        now = datetime.now(timezone.utc)
        resume = PersistedResume(
            id=resume_id or uuid.uuid4().hex,
            user_id=user_id,
            title=title,
            data=copy.deepcopy(data),
            template=template,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._resumes[resume.id] = resume
        return copy.deepcopy(resume)

    def update(self, resume):
        resume.updated_at = datetime.now(timezone.utc)
        with self._lock:
            self._resumes[resume.id] = copy.deepcopy(resume)
        return resume

    def list_for_user(self, user_id):
        with self._lock:
            owned = [copy.deepcopy(r) for r in self._resumes.values() if r.user_id == user_id]
        return sorted(owned, key=lambda r: r.updated_at, reverse=True)

    def delete(self, resume_id):
        with self._lock:
            self._resumes.pop(resume_id, None)

    def set_user_plan(
        self,
        user_id: str,
        plan_type: str = 'free',
        expires_at: Optional[datetime] = None,
        active_subscription: bool = False,
    ) -> None:
        with self._lock:
            self._plans[user_id] = {
                'planType': plan_type,
                'planExpirationDate': expires_at,
                'hasActiveSubscription': active_subscription,
            }

    def get_user_plan(self, user_id):
        with self._lock:
            plan = self._plans.get(user_id)
        return dict(plan) if plan else {
            'planType': 'free',
            'planExpirationDate': None,
            'hasActiveSubscription': False,
        }


class FirestoreResumeRepository(ResumeRepository):
    """Resumes live in the `resumes` collection, one document per resume."""

    def __init__(self, db):
        self.db = db

    @property
    def collection(self):
        return self.db.collection(RESUMES_COLLECTION)

    def get(self, resume_id):
        doc = self.collection.document(resume_id).get()
        if not doc.exists:
            return None
        return PersistedResume.from_firestore(doc.id, doc.to_dict())

    def create(self, user_id, title, data, template=DEFAULT_TEMPLATE, resume_id=None):
        now = datetime.now(timezone.utc)
        doc_ref = self.collection.document(resume_id) if resume_id else self.collection.document()
        resume = PersistedResume(
            id=doc_ref.id,
            user_id=user_id,
            title=title,
            data=data,
            template=template,
            created_at=now,
            updated_at=now,
        )
        doc_ref.set(resume.to_firestore())
        logger.info("Resume document created", extra={'resume_id': resume.id, 'user_id': user_id})
        return resume

    def update(self, resume):
        resume.updated_at = datetime.now(timezone.utc)
        self.collection.document(resume.id).update({
            'title': resume.title,
            'data': resume.data,
            'template': resume.template,
            'updatedAt': resume.updated_at,
        })
        return resume

    def list_for_user(self, user_id):
        query = self.collection.where(filter=FieldFilter('userId', '==', user_id))
        resumes = [PersistedResume.from_firestore(doc.id, doc.to_dict()) for doc in query.stream()]
        return sorted(resumes, key=lambda r: _parse_datetime(r.updated_at) or datetime.min.replace(tzinfo=timezone.utc),
                      reverse=True)

    def delete(self, resume_id):
        self.collection.document(resume_id).delete()
        logger.info("Resume document deleted", extra={'resume_id': resume_id})

    def title_exists(self, user_id, title, exclude_id=None):
        query = (
            self.collection
            .where(filter=FieldFilter('userId', '==', user_id))
            .where(filter=FieldFilter('title', '==', title))
        )
        return any(doc.id != exclude_id for doc in query.stream())

    def get_user_plan(self, user_id):
        now = datetime.now(timezone.utc)
        subscriptions = (
            self.db.collection(SUBSCRIPTIONS_COLLECTION)
            .where(filter=FieldFilter('userId', '==', user_id))
            .where(filter=FieldFilter('status', '==', 'active'))
            .stream()
        )
        has_active = any(
            (_parse_datetime(doc.to_dict().get('currentPeriodEnd')) or now) >= now
            for doc in subscriptions
        )

        user_doc = self.db.collection(USERS_COLLECTION).document(user_id).get()
        user_data = user_doc.to_dict() if user_doc.exists else {}
        return {
            # Check both planType and subscriptionTier for backward compatibility
            'planType': user_data.get('planType') or user_data.get('subscriptionTier') or 'free',
            'planExpirationDate': _parse_datetime(user_data.get('planExpirationDate')),
            'hasActiveSubscription': has_active,
        }


# ========================================
# Record operations shared by the routes
# ========================================

def suggest_unique_title(
    repository: ResumeRepository,
    user_id: str,
    name: str,
    exclude_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Check a title against the user's other resumes.

    On collision, tries "Name (2)", "Name (3)", ... and suggests the first
    free one. After 99 the last candidate is suggested even if taken.
    """
    normalized = name.strip()
    if not repository.title_exists(user_id, normalized, exclude_id):
        return {'isValid': True, 'message': 'Resume name is available'}

    suggested = normalized
    for count in range(2, MAX_NAME_SUGGESTIONS):
        suggested = f"{normalized} ({count})"
        if not repository.title_exists(user_id, suggested, exclude_id):
            break

    return {
        'isValid': False,
        'suggestedName': suggested,
        'message': 'A resume with this name already exists',
    }


def duplicate_title(title: str) -> str:
    return f"{DUPLICATE_TITLE_PREFIX}{title}"
