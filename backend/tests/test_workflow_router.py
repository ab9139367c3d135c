"""
Tests for workflow routing and job context reconciliation
"""
import json
from urllib.parse import parse_qs, urlparse

import pytest

from resume_session.config import (
    CREATING_NEW_RESUME_KEY,
    CURRENT_RESUME_ID_KEY,
    DRAFT_KEYS,
    JOB_CONTEXT_ACTIVE_KEY,
    JOB_CONTEXT_KEY,
    STARTING_NEW_RESUME_KEY,
)
from resume_session.models import Draft, FailureReason, TailorSource, Workflow
from resume_session.services.navigation_guard import ROUTE_CHANGE_START
from resume_session.services.workflow_router import (
    IMPORT_PATH,
    ImportCollaborator,
    WorkflowRouter,
    detect_job_targeting,
)


class RecordingImporter(ImportCollaborator):
    def __init__(self):
        self.started = []

    def begin(self, on_complete, job_context=None):
        self.started.append(job_context)


@pytest.fixture
def importer():
    return RecordingImporter()


@pytest.fixture
def router(draft_store, job_store, gateway, importer, guard):
    return WorkflowRouter(draft_store, job_store, gateway, importer=importer, guard=guard)


def _seed_draft(draft_store):
    draft = Draft.blank()
    draft.summary = 'Old summary'
    draft_store.set_draft(draft)


def _job(title='ICU Nurse', description='Night shifts'):
    return json.dumps({'title': title, 'description': description})


class TestJobTargetingSignals:
    """Ordered signal list"""

    def test_no_signal(self):
        assert detect_job_targeting({'source': 'scratch'}, has_context=True) is None

    def test_explicit_flag_wins_first(self):
        query = {'job_targeting': 'true', 'job': _job(), 'source': 'job-targeting'}
        assert detect_job_targeting(query, has_context=False) == 'explicit_flag'

    def test_each_signal_alone_is_enough(self):
        assert detect_job_targeting({'job': _job()}, False) == 'url_payload'
        assert detect_job_targeting({'source': 'job-targeting'}, False) == 'job_targeting_source'
        assert detect_job_targeting({'preserve_job_context': 'true'}, True) == 'preserved_context'

    def test_preserve_without_context_is_not_a_signal(self):
        assert detect_job_targeting({'preserve_job_context': 'true'}, False) is None


class TestResolve:
    """Workflow classification"""

    def test_bare_entry_is_legacy(self, router, store):
        decision = router.enter({})
        assert decision.workflow == Workflow.LEGACY
        assert decision.redirect == '/'

    def test_scratch(self, router):
        assert router.resolve({'source': 'scratch'})[0] == Workflow.SCRATCH

    def test_tailor_without_builder_mode(self, router):
        assert router.resolve({'source': 'job-targeting'})[0] == Workflow.TAILOR

    def test_tailor_new_lands_in_builder(self, router):
        query = {'source': 'job-targeting', 'job_targeting': 'true', 'mode': 'builder'}
        assert router.resolve(query)[0] == Workflow.SCRATCH

    def test_import_page_is_import(self, router):
        assert router.resolve({'source': 'job-targeting'}, page=IMPORT_PATH)[0] == Workflow.IMPORT


class TestScratchWorkflow:
    """Scratch entries"""

    def test_scratch_purges_draft(self, router, draft_store, store):
        _seed_draft(draft_store)

        decision = router.enter({'source': 'scratch'})

        assert decision.builder_props is not None
        assert decision.builder_props.initial_data is None
        for key in DRAFT_KEYS:
            assert key not in store

    def test_scratch_after_tailor_leaves_context_empty(self, router, job_store, store):
        job_store.set_context('ICU Nurse', 'Night shifts')

        decision = router.enter({'source': 'scratch', 'mode': 'builder'})

        assert decision.job_context is None
        assert job_store.get_context() is None
        assert JOB_CONTEXT_KEY not in store
        assert JOB_CONTEXT_ACTIVE_KEY not in store

    def test_builder_props_read_guard_live(self, router, guard, router_events):
        guard.mount()
        decision = router.enter({'source': 'scratch'})
        props = decision.builder_props

        assert props.is_navigating_away() is False
        router_events.emit('routeChangeStart', '/profile')
        assert props.is_navigating_away() is True


class TestTailorWorkflow:
    """Tailor entries and the new-vs-import choice"""

    def test_tailor_keeps_draft_and_offers_choice(self, router, draft_store, job_store):
        _seed_draft(draft_store)
        job_store.set_context('ICU Nurse', 'Night shifts')

        decision = router.enter({'source': 'job-targeting'})

        assert decision.workflow == Workflow.TAILOR
        assert decision.tailor_choices == (TailorSource.NEW, TailorSource.IMPORT)
        assert decision.redirect == '/job-targeting/resume-source'
        assert draft_store.get_draft().summary == 'Old summary'

    def test_tailor_without_any_context_goes_to_job_targeting(self, router):
        decision = router.enter({'source': 'job-targeting'})
        assert decision.redirect == '/job-targeting'

    def test_url_payload_overwrites_stored_context(self, router, job_store):
        job_store.set_context('Old Job', 'stale')

        decision = router.enter({'job_targeting': 'true', 'mode': 'builder', 'job': _job('New Job', 'fresh')})

        assert decision.job_context.title == 'New Job'
        assert job_store.get_context().title == 'New Job'
        assert job_store.is_active() is True

    def test_unreadable_payload_falls_back_to_stored_context(self, router, job_store):
        job_store.set_context('Stored Job', 'kept')

        decision = router.enter({'job_targeting': 'true', 'mode': 'builder', 'job': '{not json'})

        assert decision.job_context.title == 'Stored Job'

    def test_choose_new_repeats_every_signal(self, router, job_store):
        job_store.set_context('ICU Nurse', 'Night shifts')

        url = router.choose_tailor_source(TailorSource.NEW)
        parsed = urlparse(url)
        query = parse_qs(parsed.query)

        assert parsed.path == '/new-resume-builder'
        assert query['source'] == ['job-targeting']
        assert query['job_targeting'] == ['true']
        assert query['preserve_job_context'] == ['true']
        assert query['mode'] == ['builder']
        assert json.loads(query['job'][0])['title'] == 'ICU Nurse'

    def test_choose_import_goes_to_import_page(self, router, job_store):
        job_store.set_context('ICU Nurse', 'Night shifts')
        url = router.choose_tailor_source(TailorSource.IMPORT)
        assert urlparse(url).path == '/resume-import'
        assert 'mode' not in parse_qs(urlparse(url).query)


class TestImportWorkflow:
    """Import hand-off and completion"""

    def test_import_entry_purges_draft_and_hands_off(self, router, draft_store, importer, store):
        _seed_draft(draft_store)

        decision = router.enter({'source': 'new_builder'}, page=IMPORT_PATH)

        assert decision.handoff_to_import is True
        assert importer.started == [None]
        assert draft_store.get_draft() is None

    def test_import_with_job_targeting_uses_url_payload_over_stale(self, router, job_store, importer):
        job_store.set_context('Stale Job', 'old')

        query = {'source': 'job-targeting', 'job_targeting': 'true', 'job': _job('URL Job', 'new')}
        decision = router.enter(query, page=IMPORT_PATH)

        assert decision.job_context.title == 'URL Job'
        assert importer.started[0].title == 'URL Job'

    @pytest.mark.asyncio
    async def test_import_complete_persists_and_redirects(self, router, api, draft_store):
        parsed = {'personalInfo': {'name': 'Ana Ruiz'}, 'experience': [{'title': 'RN'}]}

        outcome = await router.handle_import_complete(parsed)

        assert outcome.success is True
        assert api.calls_to('save')[0][2]['title'] == "Ana Ruiz's Resume (Imported)"
        assert api.calls_to('save')[0][2]['isImport'] is True
        assert draft_store.get_current_resume_id() == outcome.resume_id
        query = parse_qs(urlparse(outcome.redirect).query)
        assert query == {'source': ['import'], 'resumeId': [outcome.resume_id]}

    @pytest.mark.asyncio
    async def test_import_complete_keeps_job_targeting_flag(self, router, job_store):
        job_store.set_context('ICU Nurse', 'Night shifts')

        outcome = await router.handle_import_complete({'personalInfo': {'name': 'Ana'}})

        assert parse_qs(urlparse(outcome.redirect).query)['job_targeting'] == ['true']

    @pytest.mark.asyncio
    async def test_import_complete_uses_suggested_title(self, router, api):
        api.taken_titles.add("Ana's Resume (Imported)")

        outcome = await router.handle_import_complete({'personalInfo': {'name': 'Ana'}})

        assert outcome.title == "Ana's Resume (Imported) (2)"

    @pytest.mark.asyncio
    async def test_quota_never_writes_resume_id(self, router, api, store):
        api.eligible = False

        outcome = await router.handle_import_complete({'personalInfo': {'name': 'Ana'}})

        assert outcome.success is False
        assert outcome.reason == FailureReason.LIMIT_REACHED
        assert outcome.redirect == '/pricing'
        assert CURRENT_RESUME_ID_KEY not in store

    @pytest.mark.asyncio
    async def test_network_failure_surfaces_retry_notification(self, router, api):
        api.offline.add('save')

        outcome = await router.handle_import_complete({'personalInfo': {'name': 'Ana'}})

        assert outcome.notification.retry is True
        assert outcome.notification.dismissible is True

    def test_returning_from_import_keeps_persisted_resume(self, router, draft_store):
        decision = router.enter({'source': 'import', 'resumeId': 'resume-1'})

        assert decision.handoff_to_import is False
        assert decision.builder_props.resume_id == 'resume-1'


class TestStartNewResume:
    """Blank resume creation with one-shot flags"""

    @pytest.mark.asyncio
    async def test_flags_removed_immediately_on_failure(self, router, api, store):
        api.eligible = False

        outcome = await router.start_new_resume()

        assert outcome.success is False
        assert CREATING_NEW_RESUME_KEY not in store
        assert STARTING_NEW_RESUME_KEY not in store
        assert CURRENT_RESUME_ID_KEY not in store

    @pytest.mark.asyncio
    async def test_success_sets_current_resume(self, router, store, draft_store):
        outcome = await router.start_new_resume()

        assert outcome.success is True
        assert draft_store.get_current_resume_id() == outcome.resume_id
        # Flags expire on a timer rather than at once
        assert store.get(CREATING_NEW_RESUME_KEY) == 'true'
        router._clear_creation_flags()


class TestDepartureDuringCreate:
    """Create results that arrive after the user left"""

    @pytest.fixture(autouse=True)
    def leave_during_save(self, api, guard, router_events):
        guard.mount()
        api.on_save = lambda body: router_events.emit(ROUTE_CHANGE_START, '/dashboard')

    @pytest.mark.asyncio
    async def test_import_complete_writes_nothing(self, router, api, store, draft_store):
        _seed_draft(draft_store)

        outcome = await router.handle_import_complete({'personalInfo': {'name': 'Ana'}})

        assert outcome.discarded is True
        assert outcome.redirect is None
        assert len(api.calls_to('save')) == 1
        assert CURRENT_RESUME_ID_KEY not in store
        assert draft_store.get_draft().summary == 'Old summary'

    @pytest.mark.asyncio
    async def test_start_new_resume_writes_nothing(self, router, store, draft_store):
        _seed_draft(draft_store)

        outcome = await router.start_new_resume()

        assert outcome.discarded is True
        assert outcome.resume_id is not None
        assert CURRENT_RESUME_ID_KEY not in store
        assert CREATING_NEW_RESUME_KEY not in store
        assert STARTING_NEW_RESUME_KEY not in store
        assert draft_store.get_draft().summary == 'Old summary'


class TestForSession:
    """Routers backed by the per-session file store"""

    @pytest.mark.asyncio
    async def test_draft_survives_a_new_router(self, gateway, tmp_path):
        router = WorkflowRouter.for_session('session-1', gateway, storage_dir=tmp_path)

        outcome = await router.start_new_resume()
        router._clear_creation_flags()

        reopened = WorkflowRouter.for_session('session-1', gateway, storage_dir=tmp_path)
        assert reopened.draft_store.get_current_resume_id() == outcome.resume_id
        other = WorkflowRouter.for_session('session-2', gateway, storage_dir=tmp_path)
        assert other.draft_store.get_current_resume_id() is None
