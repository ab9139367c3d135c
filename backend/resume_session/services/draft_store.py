"""
Draft store - in-progress resume content, template, section order and progress
"""
import logging
from typing import List, Optional

from resume_session.config import (
    CURRENT_RESUME_ID_KEY,
    DRAFT_KEYS,
    IMPORTED_RESUME_DATA_KEY,
    RESUME_DATA_KEY,
    RESUME_PROGRESS_KEY,
    RESUME_SECTION_ORDER_KEY,
    SELECTED_TEMPLATE_KEY,
)
from resume_session.models.resume import Draft
from resume_session.services.storage import KeyValueStore, read_json, write_json
from resume_session.utils.exceptions import MalformedLocalStateError

logger = logging.getLogger(__name__)


class DraftStore:
    """
    At most one active draft per session.

    Reads never raise: missing or corrupt slots read as None and the session
    starts fresh. clear() removes all four draft keys together.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store

    def _read(self, key: str):
        try:
            return read_json(self.store, key)
        except MalformedLocalStateError as e:
            logger.warning("Ignoring malformed draft slot", extra={'key': key, 'error_code': e.error_code})
            return None

    def get_draft(self) -> Optional[Draft]:
        data = self._read(RESUME_DATA_KEY)
        if data is None:
            return None
        try:
            return Draft.from_content(
                data,
                template=self.get_template(),
                section_order=self.get_section_order(),
                progress=self.get_progress(),
            )
        except (TypeError, ValueError) as e:
            logger.warning("Stored draft has an unexpected shape, starting fresh", extra={'error': str(e)})
            return None

    def set_draft(self, draft: Draft) -> None:
        write_json(self.store, RESUME_DATA_KEY, draft.content())
        self.set_template(draft.template)
        self.set_section_order(draft.section_order)
        self.set_progress(draft.progress)

    def set_content(self, data: dict) -> None:
        """Write only the resume content slot (the builder's immediate save)."""
        write_json(self.store, RESUME_DATA_KEY, data)

    def get_progress(self) -> Optional[int]:
        progress = self._read(RESUME_PROGRESS_KEY)
        if isinstance(progress, bool) or not isinstance(progress, (int, float)):
            return None
        return int(progress)

    def set_progress(self, progress: int) -> None:
        write_json(self.store, RESUME_PROGRESS_KEY, max(0, min(100, int(progress))))

    def get_section_order(self) -> Optional[List[str]]:
        order = self._read(RESUME_SECTION_ORDER_KEY)
        if not isinstance(order, list) or not all(isinstance(s, str) for s in order):
            return None
        return order

    def set_section_order(self, order: List[str]) -> None:
        write_json(self.store, RESUME_SECTION_ORDER_KEY, list(order))

    def get_template(self) -> Optional[str]:
        # Stored as a bare string, not JSON
        return self.store.get(SELECTED_TEMPLATE_KEY) or None

    def set_template(self, template: str) -> None:
        self.store.set(SELECTED_TEMPLATE_KEY, template)

    def clear(self) -> None:
        self.store.remove_many(DRAFT_KEYS + (IMPORTED_RESUME_DATA_KEY,))
        logger.info("Draft cleared")

    # Current resume id lives beside the draft but survives a draft clear.

    def get_current_resume_id(self) -> Optional[str]:
        return self.store.get(CURRENT_RESUME_ID_KEY) or None

    def set_current_resume_id(self, resume_id: str) -> None:
        self.store.set(CURRENT_RESUME_ID_KEY, resume_id)

    def clear_current_resume_id(self) -> None:
        self.store.remove(CURRENT_RESUME_ID_KEY)
