"""
Job context store - the in-flight target job used by tailoring
"""
import logging
import time
from typing import Any, Dict, Optional

from resume_session.config import JOB_CONTEXT_ACTIVE_KEY, JOB_CONTEXT_KEY
from resume_session.models.resume import JobContext
from resume_session.services.storage import KeyValueStore, read_json, write_json
from resume_session.utils.exceptions import MalformedLocalStateError

logger = logging.getLogger(__name__)


class JobContextStore:
    """Persisted target-job slot with a lifetime independent of the draft."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def set_context(self, title: str, description: str) -> JobContext:
        context = JobContext(title=title, description=description, timestamp=time.time(), active=True)
        write_json(self.store, JOB_CONTEXT_KEY, context.to_dict())
        self.store.set(JOB_CONTEXT_ACTIVE_KEY, 'true')
        logger.info("Job context set", extra={'job_title': title})
        return context

    def save_payload(self, payload: Dict[str, Any]) -> JobContext:
        """Store a payload decoded from the URL, overwriting any existing context."""
        context = JobContext.from_dict(payload, active=True)
        write_json(self.store, JOB_CONTEXT_KEY, context.to_dict())
        self.store.set(JOB_CONTEXT_ACTIVE_KEY, 'true')
        return context

    def get_context(self) -> Optional[JobContext]:
        try:
            data = read_json(self.store, JOB_CONTEXT_KEY)
        except MalformedLocalStateError:
            logger.warning("Ignoring malformed job context")
            return None
        if data is None:
            return None
        try:
            return JobContext.from_dict(data, active=self.is_active())
        except TypeError:
            logger.warning("Stored job context has an unexpected shape")
            return None

    def has_context(self) -> bool:
        return self.get_context() is not None

    def is_active(self) -> bool:
        return self.store.get(JOB_CONTEXT_ACTIVE_KEY) == 'true'

    def mark_active(self) -> None:
        self.store.set(JOB_CONTEXT_ACTIVE_KEY, 'true')

    def clear_context(self) -> None:
        self.store.remove_many((JOB_CONTEXT_KEY, JOB_CONTEXT_ACTIVE_KEY))
        logger.info("Job context cleared")
