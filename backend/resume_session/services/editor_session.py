"""
Editor session - loads a persisted resume into the editor and autosaves edits.

Autosave is debounced and gated by the navigation guard. A save that is in
flight when the user leaves is allowed to finish, but its result is dropped
at the write-back gate instead of being applied to the editor.
"""
import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set

from resume_session.config import AUTOSAVE_DEBOUNCE_SECONDS, DEFAULT_RESUME_TITLE, DEFAULT_TEMPLATE
from resume_session.models import FailureReason, Notification
from resume_session.services.draft_store import DraftStore
from resume_session.services.navigation_guard import NavigationGuard
from resume_session.services.resume_gateway import GatewayResult, LoadResult, ResumeGateway

logger = logging.getLogger(__name__)


class EditorSession:
    """One editor mount for one resume id."""

    def __init__(
        self,
        gateway: ResumeGateway,
        guard: NavigationGuard,
        draft_store: DraftStore,
        debounce_seconds: float = AUTOSAVE_DEBOUNCE_SECONDS,
    ):
        self.gateway = gateway
        self.guard = guard
        self.draft_store = draft_store
        self.debounce_seconds = debounce_seconds

        self.resume_id: Optional[str] = None
        self.data: Optional[Dict[str, Any]] = None
        self.template = DEFAULT_TEMPLATE
        self.title = DEFAULT_RESUME_TITLE
        self.is_saving = False
        self.last_saved_at: Optional[datetime] = None
        self.notification: Optional[Notification] = None

        self._saved_snapshot: Optional[str] = None
        self._saved_title: Optional[str] = None
        self._debounce_handle: Optional[asyncio.TimerHandle] = None
        self._save_tasks: Set[asyncio.Task] = set()

    def _snapshot(self, title: Optional[str] = None) -> str:
        name = self.title if title is None else title
        return json.dumps({'data': self.data, 'template': self.template, 'name': name}, sort_keys=True)

    async def open(self, resume_id: str) -> LoadResult:
        """
        Mount the guard and load the resume.

        Autosave stays disabled until the load succeeds; a load that resolves
        after the user already left is not applied.
        """
        self.guard.mount()
        result = await self.gateway.load_resume(resume_id)

        if self.guard.is_navigating_away:
            logger.info("Editor left before resume loaded, discarding result", extra={'resume_id': resume_id})
            return result

        if not result.success:
            self.notification = Notification.for_reason(result.reason, result.error)
            logger.error("Failed to load resume", extra={'resume_id': resume_id, 'reason': result.reason.value})
            return result

        self.resume_id = result.meta.get('id') or resume_id
        self.data = result.data
        self.template = result.meta.get('template') or DEFAULT_TEMPLATE
        self.title = result.meta.get('title') or DEFAULT_RESUME_TITLE
        self._saved_snapshot = self._snapshot()
        self._saved_title = self.title
        self.notification = None

        if isinstance(self.data, dict):
            self.draft_store.set_content(self.data)
        self.draft_store.set_template(self.template)
        self.draft_store.set_current_resume_id(self.resume_id)

        self.guard.reset()
        logger.info("Resume loaded into editor", extra={'resume_id': self.resume_id, 'title': self.title})
        return result

    def update(
        self,
        data: Optional[Dict[str, Any]] = None,
        template: Optional[str] = None,
        title: Optional[str] = None,
    ) -> None:
        """Apply an edit, write it through to the draft store and schedule an autosave."""
        if data is not None:
            self.data = data
            self.draft_store.set_content(data)
        if template:
            self.template = template
            self.draft_store.set_template(template)
        if title:
            self.title = title
        self.schedule_autosave()

    def schedule_autosave(self) -> None:
        """(Re)start the debounce timer; only a timer that has not fired is cancelled."""
        if self.guard.is_navigating_away:
            logger.debug("Autosave not scheduled, navigating away")
            return
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
        loop = asyncio.get_running_loop()
        self._debounce_handle = loop.call_later(self.debounce_seconds, self._fire_autosave)

    def _fire_autosave(self) -> None:
        self._debounce_handle = None
        task = asyncio.ensure_future(self.autosave())
        self._save_tasks.add(task)
        task.add_done_callback(self._save_tasks.discard)

    async def _write(self, resume_id: str):
        """
        Send the current state; returns (snapshot, result).

        A changed title is checked against the user's other resumes first and
        replaced by the suggested name on collision. (None, None) means the
        user left while the name was being checked.
        """
        title = self.title
        if title != self._saved_title:
            requested = title
            title = await self.gateway.resolve_title(requested, exclude_resume_id=resume_id)
            if title is None:
                return None, GatewayResult.failure(FailureReason.NETWORK_ERROR, 'Could not validate resume name')
            if self.guard.is_navigating_away:
                return None, None
            if title != requested:
                logger.info("Renamed to avoid duplicate title", extra={'requested': requested, 'title': title})
                if self.title == requested:
                    self.title = title

        snapshot = self._snapshot(title)
        result = await self.gateway.save_resume(resume_id, self.data, template=self.template, title=title)
        return snapshot, result

    async def autosave(self) -> Optional[GatewayResult]:
        """
        Save the current state if it changed.

        Returns None when the save was skipped or its result discarded.
        """
        if not self.resume_id or self.data is None:
            return None
        if self.guard.is_navigating_away:
            logger.info("Autosave skipped, navigating away", extra={'resume_id': self.resume_id})
            return None
        if self.is_saving:
            logger.debug("Autosave skipped, save already in flight")
            return None
        if self._snapshot() == self._saved_snapshot:
            logger.debug("Autosave skipped, no changes")
            return None

        resume_id = self.resume_id
        self.is_saving = True
        try:
            snapshot, result = await self._write(resume_id)
        finally:
            self.is_saving = False

        # Write-back gate
        if result is None or self.guard.is_navigating_away:
            logger.info("Discarding autosave result after navigation", extra={'resume_id': resume_id})
            return None

        if not result.success:
            self.notification = Notification.for_reason(result.reason, result.error)
            logger.warning("Autosave failed", extra={'resume_id': resume_id, 'reason': result.reason.value})
            return result

        self._saved_snapshot = snapshot
        self._saved_title = result.title or self._saved_title
        self.last_saved_at = datetime.now(timezone.utc)
        if result.resume_id and result.resume_id != resume_id:
            logger.info("Autosave returned a new resume id", extra={'previous': resume_id, 'resume_id': result.resume_id})
            self.resume_id = result.resume_id
            self.draft_store.set_current_resume_id(result.resume_id)
        if self._snapshot() != snapshot:
            # Edited while the save was in flight
            self.schedule_autosave()
        return result

    async def flush(self) -> None:
        """Wait for any autosave already started."""
        if self._save_tasks:
            await asyncio.gather(*list(self._save_tasks))

    def close(self) -> None:
        """Unmount; a pending debounce is dropped and in-flight saves are left to finish."""
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None
        self.guard.unmount()
