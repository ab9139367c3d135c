"""
Tests for the editor session: loading, debounced autosave and the write-back gate
"""
import asyncio

import pytest

from resume_session.models import FailureReason
from resume_session.services.editor_session import EditorSession
from resume_session.services.navigation_guard import ROUTE_CHANGE_START


@pytest.fixture
def seeded_api(api):
    api.resumes['resume-1'] = {
        'id': 'resume-1',
        'title': 'Nurse CV',
        'data': {'personalInfo': {'name': 'Ana'}, 'summary': 'RN'},
        'template': 'modern',
        'updatedAt': '2026-01-01T00:00:00+00:00',
    }
    return api


@pytest.fixture
def session(gateway, guard, draft_store):
    return EditorSession(gateway, guard, draft_store, debounce_seconds=0.01)


class TestOpen:
    """Loading a persisted resume"""

    @pytest.mark.asyncio
    async def test_open_loads_and_rearms_guard(self, seeded_api, session, guard, draft_store):
        result = await session.open('resume-1')

        assert result.success is True
        assert session.title == 'Nurse CV'
        assert session.template == 'modern'
        assert guard.is_mounted is True
        assert guard.is_navigating_away is False
        assert draft_store.get_current_resume_id() == 'resume-1'
        assert draft_store.get_template() == 'modern'

    @pytest.mark.asyncio
    async def test_open_missing_resume_notifies(self, api, session):
        result = await session.open('missing')

        assert result.success is False
        assert session.notification.reason == FailureReason.NOT_FOUND
        assert session.notification.retry is False
        assert session.resume_id is None


class TestAutosave:
    """Autosave skip rules"""

    @pytest.mark.asyncio
    async def test_unchanged_data_is_not_saved(self, seeded_api, session):
        await session.open('resume-1')

        assert await session.autosave() is None
        assert seeded_api.calls_to('update') == []

    @pytest.mark.asyncio
    async def test_changed_data_is_saved(self, seeded_api, session):
        await session.open('resume-1')
        session.data = {'personalInfo': {'name': 'Ana'}, 'summary': 'ICU RN'}

        result = await session.autosave()

        assert result.success is True
        assert seeded_api.resumes['resume-1']['data']['summary'] == 'ICU RN'
        assert session.last_saved_at is not None

    @pytest.mark.asyncio
    async def test_update_debounces_to_one_save(self, seeded_api, session, draft_store):
        await session.open('resume-1')

        session.update(data={'summary': 'one'})
        session.update(data={'summary': 'two'})
        session.update(data={'summary': 'three'})
        await asyncio.sleep(0.05)
        await session.flush()

        assert len(seeded_api.calls_to('update')) == 1
        assert seeded_api.calls_to('update')[0][2]['data'] == {'summary': 'three'}
        # Written through to the draft store before any save
        assert draft_store.store.get('modern_resume_data') == '{"summary": "three"}'

    @pytest.mark.asyncio
    async def test_skipped_while_navigating_away(self, seeded_api, session, router_events):
        await session.open('resume-1')
        session.data = {'summary': 'changed'}

        router_events.emit(ROUTE_CHANGE_START, '/profile')

        assert await session.autosave() is None
        assert seeded_api.calls_to('update') == []

    @pytest.mark.asyncio
    async def test_save_failure_notifies_with_retry(self, seeded_api, session):
        await session.open('resume-1')
        seeded_api.offline.add('update')
        session.data = {'summary': 'changed'}

        result = await session.autosave()

        assert result.reason == FailureReason.NETWORK_ERROR
        assert session.notification.retry is True


class TestWriteBackGate:
    """Navigation during an in-flight save"""

    @pytest.mark.asyncio
    async def test_navigation_mid_save_discards_result(self, seeded_api, session, router_events, draft_store):
        await session.open('resume-1')
        session.data = {'summary': 'changed'}
        original_update = seeded_api._update

        def update_then_navigate(request, body):
            response = original_update(request, body)
            router_events.emit(ROUTE_CHANGE_START, '/dashboard')
            return response

        seeded_api._update = update_then_navigate

        result = await session.autosave()

        assert result is None
        assert session.last_saved_at is None
        assert len(seeded_api.calls_to('update')) == 1

    @pytest.mark.asyncio
    async def test_close_during_save_discards_result(self, seeded_api, session, guard):
        await session.open('resume-1')
        session.data = {'summary': 'changed'}

        original_update = seeded_api._update

        def update_then_unmount(request, body):
            response = original_update(request, body)
            session.close()
            return response

        seeded_api._update = update_then_unmount

        assert await session.autosave() is None
        assert guard.is_mounted is False
        assert guard.is_navigating_away is True

    @pytest.mark.asyncio
    async def test_close_drops_pending_debounce(self, seeded_api, session):
        await session.open('resume-1')
        session.update(data={'summary': 'pending'})

        session.close()
        await asyncio.sleep(0.05)

        assert seeded_api.calls_to('update') == []


class TestTitleChange:
    """Renaming from the editor"""

    @pytest.mark.asyncio
    async def test_unchanged_title_skips_name_check(self, seeded_api, session):
        await session.open('resume-1')
        session.data = {'summary': 'changed'}

        await session.autosave()

        assert seeded_api.calls_to('validate_name') == []
        assert seeded_api.calls_to('update')[0][2]['title'] == 'Nurse CV'

    @pytest.mark.asyncio
    async def test_colliding_title_uses_suggested_name(self, seeded_api, session):
        seeded_api.taken_titles.update({'Nurse CV', 'Other'})
        await session.open('resume-1')

        session.title = 'Other'
        result = await session.autosave()

        assert result.success is True
        check = seeded_api.calls_to('validate_name')[0][2]
        assert check == {'name': 'Other', 'resumeId': 'resume-1'}
        assert seeded_api.calls_to('update')[0][2]['title'] == 'Other (2)'
        assert session.title == 'Other (2)'
        # Saved; nothing left to write
        assert await session.autosave() is None
        assert len(seeded_api.calls_to('validate_name')) == 1

    @pytest.mark.asyncio
    async def test_name_check_failure_blocks_save(self, seeded_api, session):
        await session.open('resume-1')
        seeded_api.offline.add('validate_name')

        session.title = 'ICU CV'
        result = await session.autosave()

        assert result.success is False
        assert result.reason == FailureReason.NETWORK_ERROR
        assert session.notification.retry is True
        assert seeded_api.calls_to('update') == []

    @pytest.mark.asyncio
    async def test_rejection_without_suggestion_blocks_save(self, seeded_api, session):
        await session.open('resume-1')
        seeded_api.overrides['validate_name'] = (200, {'isValid': False, 'message': 'Taken'})

        session.title = 'ICU CV'
        result = await session.autosave()

        assert result.success is False
        assert seeded_api.calls_to('update') == []

    @pytest.mark.asyncio
    async def test_navigation_during_name_check_discards(self, seeded_api, session, router_events):
        await session.open('resume-1')
        original_validate = seeded_api._validate_name

        def validate_then_navigate(request, body):
            response = original_validate(request, body)
            router_events.emit(ROUTE_CHANGE_START, '/dashboard')
            return response

        seeded_api._validate_name = validate_then_navigate

        session.title = 'ICU CV'
        assert await session.autosave() is None
        assert seeded_api.calls_to('update') == []
