"""Suggestion moderation workflow.

Visitors submit corrections for a verse (moolam) or a commentary. A
suggestion starts pending and an admin moves it to approved or rejected;
both decisions are final. Approving does not edit the verse or commentary
text, an admin still applies the correction by hand.
"""

import logging
from typing import Any, Dict, List, Mapping

from grantha_library.exceptions import (
    InvalidTransitionError,
    SuggestionNotFoundError,
    ValidationError,
)
from grantha_library.models import Commentary, Grantha, Suggestion, Verse
from grantha_library.store import (
    COMMENTARIES,
    GRANTHAS,
    SUGGESTIONS,
    VERSES,
    DocumentStore,
)

logger = logging.getLogger(__name__)

APPROVED = 'approved'
REJECTED = 'rejected'


class SuggestionWorkflow:
    """Submission and moderation of suggestions."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def submit(self, payload: Mapping[str, Any]) -> Suggestion:
        """Stores a new pending suggestion.

        reason defaults to an empty string and submittedBy to "Anonymous".

        Raises:
            ValidationError: If a required field is missing or the
                suggestionType is unknown.
        """
        if not isinstance(payload, Mapping):
            raise ValidationError('Request body must be a JSON object')
        fields = {k: v for k, v in payload.items() if k != 'status'}
        if not fields.get('commentaryId'):
            fields.pop('commentaryId', None)
        if not fields.get('submittedBy'):
            fields.pop('submittedBy', None)
        suggestion = Suggestion.from_payload(fields)
        stored = Suggestion.from_document(
            self._store.insert(SUGGESTIONS, suggestion.to_document())
        )
        logger.info(
            "Received %s suggestion %s from %s",
            stored.suggestion_type, stored.suggestion_id, stored.submitted_by,
        )
        return stored

    def get(self, suggestion_id: str) -> Suggestion:
        """Returns a suggestion by id.

        Raises:
            SuggestionNotFoundError: If the id does not resolve.
        """
        document = self._store.find_by_id(SUGGESTIONS, suggestion_id)
        if document is None:
            raise SuggestionNotFoundError(
                f"Suggestion '{suggestion_id}' not found"
            )
        return Suggestion.from_document(document)

    def list_pending(self) -> List[Dict[str, Any]]:
        """Returns the moderation queue, newest first.

        Grantha, verse and commentary references are populated in place.
        """
        documents = self._store.find(
            SUGGESTIONS, {'status': 'pending'},
            sort=[('createdAt', -1), ('_id', -1)]
        )
        documents = self._store.populate(documents, 'granthaId', GRANTHAS)
        documents = self._store.populate(documents, 'verseId', VERSES)
        documents = self._store.populate(documents, 'commentaryId', COMMENTARIES)

        queue = []
        for document in documents:
            entry = Suggestion.from_document({
                k: v for k, v in document.items()
                if k not in ('granthaId', 'verseId', 'commentaryId')
            }).to_json()
            entry['granthaId'] = _populated(Grantha, document['granthaId'])
            entry['verseId'] = _populated(Verse, document['verseId'])
            entry['commentaryId'] = _populated(Commentary, document['commentaryId'])
            queue.append(entry)
        return queue

    def approve(self, suggestion_id: str) -> Suggestion:
        """Marks a pending suggestion approved."""
        return self._decide(suggestion_id, APPROVED)

    def reject(self, suggestion_id: str) -> Suggestion:
        """Marks a pending suggestion rejected."""
        return self._decide(suggestion_id, REJECTED)

    def _decide(self, suggestion_id: str, status: str) -> Suggestion:
        """Moves a pending suggestion to a final status.

        Raises:
            SuggestionNotFoundError: If the id does not resolve.
            InvalidTransitionError: If the suggestion was already decided.
        """
        suggestion = self.get(suggestion_id)
        if not suggestion.is_pending:
            raise InvalidTransitionError(
                f"Suggestion '{suggestion_id}' is already {suggestion.status}"
            )
        stored = self._store.update_by_id(
            SUGGESTIONS, suggestion_id, {'status': status}
        )
        if stored is None:
            raise SuggestionNotFoundError(
                f"Suggestion '{suggestion_id}' not found"
            )
        logger.info("Suggestion %s %s", suggestion_id, status)
        return Suggestion.from_document(stored)


def _populated(model: Any, document: Any) -> Any:
    """Serializes a populated reference, keeping None for dangling ids."""
    return model.from_document(document).to_json() if document else None
