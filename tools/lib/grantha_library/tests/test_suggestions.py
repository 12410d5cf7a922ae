"""Tests for the suggestion moderation workflow."""

import pytest

from grantha_library.exceptions import (
    InvalidTransitionError,
    SuggestionNotFoundError,
    ValidationError,
)
from grantha_library.store import new_id


@pytest.fixture
def workflow(services):
    return services.suggestions


@pytest.fixture
def payload(grantha, verse):
    return {
        'granthaId': grantha.grantha_id,
        'verseId': verse.verse_id,
        'suggestionType': 'moolam',
        'originalText': 'धर्मक्षेत्रे',
        'suggestedText': 'धर्मक्षेत्रे ',
    }


class TestSubmit:
    """Tests for SuggestionWorkflow.submit."""

    def test_defaults(self, workflow, payload):
        suggestion = workflow.submit(payload)
        assert suggestion.status == 'pending'
        assert suggestion.reason == ''
        assert suggestion.submitted_by == 'Anonymous'
        assert suggestion.suggestion_id is not None

    def test_client_status_is_ignored(self, workflow, payload):
        suggestion = workflow.submit({**payload, 'status': 'approved'})
        assert suggestion.is_pending

    def test_blank_optional_fields(self, workflow, payload):
        suggestion = workflow.submit(
            {**payload, 'commentaryId': '', 'submittedBy': ''}
        )
        assert suggestion.commentary_id is None
        assert suggestion.submitted_by == 'Anonymous'

    def test_missing_fields(self, workflow, grantha):
        with pytest.raises(ValidationError) as excinfo:
            workflow.submit({'granthaId': grantha.grantha_id, 'suggestionType': 'moolam'})
        assert excinfo.value.required == ['verseId', 'originalText', 'suggestedText']

    def test_unknown_type(self, workflow, payload):
        with pytest.raises(ValidationError, match='suggestionType'):
            workflow.submit({**payload, 'suggestionType': 'translation'})


class TestModeration:
    """Tests for approval, rejection and the pending queue."""

    def test_approve(self, workflow, payload):
        suggestion = workflow.submit(payload)
        approved = workflow.approve(suggestion.suggestion_id)
        assert approved.status == 'approved'
        assert workflow.get(suggestion.suggestion_id).status == 'approved'

    def test_reject(self, workflow, payload):
        suggestion = workflow.submit(payload)
        assert workflow.reject(suggestion.suggestion_id).status == 'rejected'

    def test_decisions_are_final(self, workflow, payload):
        suggestion = workflow.submit(payload)
        workflow.reject(suggestion.suggestion_id)
        with pytest.raises(InvalidTransitionError):
            workflow.approve(suggestion.suggestion_id)
        with pytest.raises(InvalidTransitionError):
            workflow.reject(suggestion.suggestion_id)

    def test_approval_leaves_verse_text(self, workflow, services, payload, verse):
        suggestion = workflow.submit(payload)
        workflow.approve(suggestion.suggestion_id)
        assert services.content.get_verse(verse.verse_id).verse_text == verse.verse_text

    def test_unknown_suggestion(self, workflow):
        with pytest.raises(SuggestionNotFoundError):
            workflow.approve(new_id())

    def test_pending_queue(self, workflow, services, payload, verse):
        commentary = services.tree.create(
            {'verseId': verse.verse_id, 'commentaryName': 'Bhashya'}
        )
        first = workflow.submit(payload)
        second = workflow.submit({
            **payload,
            'suggestionType': 'commentary',
            'commentaryId': commentary.commentary_id,
        })
        decided = workflow.submit(payload)
        workflow.approve(decided.suggestion_id)

        queue = workflow.list_pending()
        assert [s['_id'] for s in queue] == [
            second.suggestion_id, first.suggestion_id,
        ]
        assert queue[0]['granthaId']['title'] == 'भगवद्गीता'
        assert queue[0]['verseId']['_id'] == verse.verse_id
        assert queue[0]['commentaryId']['commentaryName'] == 'Bhashya'
        assert queue[1]['commentaryId'] is None
