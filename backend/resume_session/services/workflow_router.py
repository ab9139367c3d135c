"""
Workflow router - resolves how the user entered the editor and prepares session state.

Entry intent comes from the URL query plus whatever the stores already hold.
The router decides what to purge, what to preserve and where to go next; it
owns persistence of imported resumes so the import collaborator never writes.
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple
from urllib.parse import unquote, urlencode

from resume_session.config import (
    CREATING_NEW_RESUME_KEY,
    CREATION_FLAG_TTL_SECONDS,
    DEFAULT_TEMPLATE,
    STARTING_NEW_RESUME_KEY,
)
from resume_session.models import (
    Draft,
    FailureReason,
    JobContext,
    Notification,
    TailorSource,
    Workflow,
    imported_resume_title,
    normalize_imported_resume,
)
from resume_session.services.draft_store import DraftStore
from resume_session.services.job_context_store import JobContextStore
from resume_session.services.navigation_guard import NavigationGuard
from resume_session.services.resume_gateway import ResumeGateway
from resume_session.services.storage import open_session_store, set_transient_flag
from resume_session.utils.exceptions import ValidationError
from resume_session.utils.validation import JobContextPayload, validate_request

logger = logging.getLogger(__name__)

LANDING_PATH = '/'
BUILDER_PATH = '/new-resume-builder'
IMPORT_PATH = '/resume-import'
JOB_TARGETING_PATH = '/job-targeting'
TAILOR_CHOICE_PATH = '/job-targeting/resume-source'
PAYWALL_PATH = '/pricing'

# Query parameters that mark an explicit entry; without any of them the visit is legacy
ENTRY_PARAMS = ('source', 'job_targeting', 'mode')


# ========================================
# Job targeting signals
# ========================================
# Evaluated in order; the first match names the signal that decided the
# workflow. Any single one is enough since redirects can drop the others.

def _explicit_flag(query: Mapping[str, str], has_context: bool) -> bool:
    return query.get('job_targeting') == 'true'


def _url_payload(query: Mapping[str, str], has_context: bool) -> bool:
    return bool(query.get('job'))


def _job_targeting_source(query: Mapping[str, str], has_context: bool) -> bool:
    return query.get('source') == 'job-targeting'


def _preserved_context(query: Mapping[str, str], has_context: bool) -> bool:
    return has_context and query.get('preserve_job_context') == 'true'


JOB_TARGETING_SIGNALS: List[Tuple[str, Callable[[Mapping[str, str], bool], bool]]] = [
    ('explicit_flag', _explicit_flag),
    ('url_payload', _url_payload),
    ('job_targeting_source', _job_targeting_source),
    ('preserved_context', _preserved_context),
]


def detect_job_targeting(query: Mapping[str, str], has_context: bool) -> Optional[str]:
    """Name of the first signal that marks this entry as job targeting, or None."""
    for name, signal in JOB_TARGETING_SIGNALS:
        if signal(query, has_context):
            return name
    return None


def decode_job_payload(raw: str) -> Dict[str, Any]:
    """
    Decode the URL-encoded JSON carried in the `job` parameter.

    Raises:
        ValidationError: The payload is not a JSON object with a job shape.
    """
    try:
        payload = json.loads(unquote(raw))
    except ValueError as e:
        raise ValidationError(f"Job payload is not valid JSON: {e}", field='job')
    if not isinstance(payload, dict):
        raise ValidationError("Job payload must be an object", field='job')
    return validate_request(JobContextPayload, payload)


def builder_url(**params) -> str:
    query = urlencode({k: v for k, v in params.items() if v is not None})
    return f"{BUILDER_PATH}?{query}" if query else BUILDER_PATH


# ========================================
# Router outputs
# ========================================

@dataclass
class BuilderProps:
    """
    Everything the builder needs to render.

    is_navigating_away is the live kill switch for autosave, read at call time.
    """
    initial_data: Optional[Dict[str, Any]] = None
    resume_id: Optional[str] = None
    job_context: Optional[JobContext] = None
    is_navigating_away: Callable[[], bool] = lambda: False
    selected_template: str = DEFAULT_TEMPLATE


@dataclass
class RouteDecision:
    workflow: Workflow
    job_targeting: bool = False
    signal: Optional[str] = None
    job_context: Optional[JobContext] = None
    redirect: Optional[str] = None
    builder_props: Optional[BuilderProps] = None
    tailor_choices: Tuple[TailorSource, ...] = ()
    handoff_to_import: bool = False


class ImportCollaborator:
    """
    Interface to the import flow (file upload + parsing).

    The collaborator only reports parsed fields back; the router persists them.
    """

    def begin(self, on_complete: Callable[[Dict[str, Any]], Any], job_context: Optional[JobContext] = None) -> None:
        raise NotImplementedError


@dataclass
class CreationOutcome:
    success: bool
    resume_id: Optional[str] = None
    title: Optional[str] = None
    redirect: Optional[str] = None
    notification: Optional[Notification] = None
    reason: Optional[FailureReason] = None
    # Set when the user left before the create finished; nothing was written locally
    discarded: bool = False


# ========================================
# Router
# ========================================

class WorkflowRouter:
    """State machine over scratch, import, tailor and legacy entries."""

    def __init__(
        self,
        draft_store: DraftStore,
        job_store: JobContextStore,
        gateway: ResumeGateway,
        importer: Optional[ImportCollaborator] = None,
        guard: Optional[NavigationGuard] = None,
    ):
        self.draft_store = draft_store
        self.job_store = job_store
        self.gateway = gateway
        self.importer = importer
        self.guard = guard
        self._flag_handles: List[Any] = []

    @classmethod
    def for_session(
        cls,
        session_id: str,
        gateway: ResumeGateway,
        importer: Optional[ImportCollaborator] = None,
        guard: Optional[NavigationGuard] = None,
        storage_dir=None,
    ) -> 'WorkflowRouter':
        """Router whose draft and job context live in the session's file store."""
        store = open_session_store(session_id, storage_dir)
        return cls(DraftStore(store), JobContextStore(store), gateway, importer=importer, guard=guard)

    def resolve(self, query: Mapping[str, str], page: str = BUILDER_PATH) -> Tuple[Workflow, Optional[str]]:
        """Classify an entry without touching any store."""
        if page == IMPORT_PATH:
            return Workflow.IMPORT, detect_job_targeting(query, self.job_store.has_context())
        if not any(query.get(param) for param in ENTRY_PARAMS):
            return Workflow.LEGACY, None

        signal = detect_job_targeting(query, self.job_store.has_context())
        source = query.get('source')
        if source == 'import':
            return Workflow.IMPORT, signal
        if signal and query.get('mode') != 'builder':
            return Workflow.TAILOR, signal
        return Workflow.SCRATCH, signal

    def enter(self, query: Mapping[str, str], page: str = BUILDER_PATH) -> RouteDecision:
        workflow, signal = self.resolve(query, page)
        logger.info("Resolved editor entry", extra={
            'workflow': workflow.value,
            'signal': signal,
            'source': query.get('source'),
        })

        if workflow == Workflow.LEGACY:
            return RouteDecision(workflow=workflow, redirect=LANDING_PATH)

        job_context = self._reconcile_job_context(query, signal)

        if workflow == Workflow.TAILOR:
            # The draft stays untouched until the user picks new or import
            return RouteDecision(
                workflow=workflow,
                job_targeting=True,
                signal=signal,
                job_context=job_context,
                redirect=TAILOR_CHOICE_PATH if job_context else JOB_TARGETING_PATH,
                tailor_choices=(TailorSource.NEW, TailorSource.IMPORT),
            )

        if workflow == Workflow.IMPORT:
            resume_id = query.get('resumeId')
            if resume_id:
                # Returning from a completed import: the resume is already persisted
                return RouteDecision(
                    workflow=workflow,
                    job_targeting=signal is not None,
                    signal=signal,
                    job_context=job_context,
                    builder_props=self._builder_props(resume_id=resume_id, job_context=job_context),
                )
            self.draft_store.clear()
            if self.importer is not None:
                self.importer.begin(self.handle_import_complete, job_context=job_context)
            return RouteDecision(
                workflow=workflow,
                job_targeting=signal is not None,
                signal=signal,
                job_context=job_context,
                handoff_to_import=True,
            )

        resume_id = query.get('resumeId')
        if not resume_id:
            self.draft_store.clear()
        return RouteDecision(
            workflow=workflow,
            job_targeting=signal is not None,
            signal=signal,
            job_context=job_context,
            builder_props=self._builder_props(resume_id=resume_id, job_context=job_context),
        )

    def _reconcile_job_context(self, query: Mapping[str, str], signal: Optional[str]) -> Optional[JobContext]:
        if signal is None:
            # Nothing from a previous tailor session may leak into this draft
            self.job_store.clear_context()
            return None

        raw_payload = query.get('job')
        if raw_payload:
            try:
                return self.job_store.save_payload(decode_job_payload(raw_payload))
            except ValidationError as e:
                logger.warning("Discarding unreadable job payload, using stored context",
                               extra={'error_code': e.error_code})

        context = self.job_store.get_context()
        if context is not None:
            self.job_store.mark_active()
            context.active = True
        return context

    def _builder_props(self, resume_id: Optional[str] = None, job_context: Optional[JobContext] = None) -> BuilderProps:
        draft = None if resume_id else self.draft_store.get_draft()
        guard = self.guard
        return BuilderProps(
            initial_data=draft.content() if draft else None,
            resume_id=resume_id,
            job_context=job_context,
            is_navigating_away=(lambda: guard.is_navigating_away) if guard else (lambda: False),
            selected_template=self.draft_store.get_template() or DEFAULT_TEMPLATE,
        )

    # ----------------------------------------
    # Tailor sub-choice
    # ----------------------------------------

    def choose_tailor_source(self, choice: TailorSource) -> str:
        """
        URL for the path the user picked inside a tailor workflow.

        Every job signal is repeated in the URL so the context survives
        whichever of them an intermediate redirect drops.
        """
        context = self.job_store.get_context()
        if context is None:
            raise ValidationError("No job context to tailor against", field='job_targeting_context')
        self.job_store.mark_active()

        params = {
            'source': 'job-targeting',
            'job_targeting': 'true',
            'preserve_job_context': 'true',
        }
        if choice == TailorSource.NEW:
            params['mode'] = 'builder'
        params['job'] = json.dumps(context.to_dict())

        path = BUILDER_PATH if choice == TailorSource.NEW else IMPORT_PATH
        logger.info("Tailor source chosen", extra={'choice': choice.value, 'job_title': context.title})
        return f"{path}?{urlencode(params)}"

    # ----------------------------------------
    # Import completion
    # ----------------------------------------

    async def handle_import_complete(self, parsed: Dict[str, Any], template: str = DEFAULT_TEMPLATE) -> CreationOutcome:
        """Persist what the import collaborator parsed, then route to the builder."""
        data = normalize_imported_resume(parsed)
        title = imported_resume_title(data)

        result = await self.gateway.create_draft_resume(template, data, title=title, is_import=True)
        if self._departed():
            return self._discarded(result)
        if not result.success:
            logger.warning("Imported resume was not saved", extra={'reason': result.reason.value})
            if result.reason == FailureReason.LIMIT_REACHED:
                return CreationOutcome(success=False, reason=result.reason, redirect=PAYWALL_PATH)
            return CreationOutcome(success=False, reason=result.reason,
                                   notification=Notification.for_reason(result.reason))

        self.draft_store.set_draft(Draft.from_content(data, template=template))
        self.draft_store.set_current_resume_id(result.resume_id)
        job_targeting = self.job_store.is_active() and self.job_store.has_context()
        redirect = builder_url(
            source='import',
            resumeId=result.resume_id,
            job_targeting='true' if job_targeting else None,
        )
        logger.info("Imported resume saved", extra={'resume_id': result.resume_id, 'title': result.title})
        return CreationOutcome(success=True, resume_id=result.resume_id, title=result.title, redirect=redirect)

    # ----------------------------------------
    # Start a blank resume
    # ----------------------------------------

    async def start_new_resume(self, template: str = DEFAULT_TEMPLATE) -> CreationOutcome:
        """
        Create a blank persisted resume for the signed-in user.

        The one-shot creation flags expire on their own after a short delay,
        and are removed at once when creation fails.
        """
        self.draft_store.clear_current_resume_id()
        self._flag_handles = [
            set_transient_flag(self.draft_store.store, CREATING_NEW_RESUME_KEY, CREATION_FLAG_TTL_SECONDS),
            set_transient_flag(self.draft_store.store, STARTING_NEW_RESUME_KEY, CREATION_FLAG_TTL_SECONDS),
        ]

        draft = Draft.blank(template=template)
        result = await self.gateway.create_draft_resume(template, draft.content())
        if self._departed():
            self._clear_creation_flags()
            return self._discarded(result)
        if not result.success:
            self._clear_creation_flags()
            if result.reason == FailureReason.LIMIT_REACHED:
                return CreationOutcome(success=False, reason=result.reason, redirect=PAYWALL_PATH)
            return CreationOutcome(success=False, reason=result.reason,
                                   notification=Notification.for_reason(result.reason))

        self.draft_store.clear()
        self.draft_store.set_draft(draft)
        self.draft_store.set_current_resume_id(result.resume_id)
        return CreationOutcome(
            success=True,
            resume_id=result.resume_id,
            title=result.title,
            redirect=builder_url(source='scratch', mode='builder', resumeId=result.resume_id),
        )

    def _departed(self) -> bool:
        return self.guard is not None and self.guard.is_navigating_away

    def _discarded(self, result) -> CreationOutcome:
        """Outcome of a create whose result arrived after the user left."""
        logger.info("Discarding create result after navigation", extra={
            'resume_id': result.resume_id,
            'reason': result.reason.value if result.reason else None,
        })
        return CreationOutcome(
            success=result.success,
            resume_id=result.resume_id,
            title=result.title,
            reason=result.reason,
            discarded=True,
        )

    def _clear_creation_flags(self) -> None:
        for handle in self._flag_handles:
            handle.cancel()
        self._flag_handles = []
        self.draft_store.store.remove_many((CREATING_NEW_RESUME_KEY, STARTING_NEW_RESUME_KEY))
