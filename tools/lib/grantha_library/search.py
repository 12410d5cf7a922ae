"""Substring search across granthas, verses and commentaries.

The query is matched literally and case-insensitively. Results are not
ranked: granthas come first, then verses, then commentaries, each
category capped at its own limit.
"""

import re
from typing import Any, Dict, List, Mapping, Optional

from grantha_library.models import Commentary, Grantha, Verse
from grantha_library.store import (
    COMMENTARIES,
    GRANTHAS,
    VERSES,
    DocumentStore,
)

DEFAULT_LIMITS = {'granthas': 5, 'verses': 10, 'commentaries': 10}

GRANTHA_FIELDS = ('title', 'titleEnglish', 'author', 'authorEnglish', 'description')
VERSE_FIELDS = ('verseText',)
COMMENTARY_FIELDS = ('commentaryText', 'commentaryName', 'commentator')


class SearchService:
    """Phrase search over the library collections."""

    def __init__(
        self,
        store: DocumentStore,
        limits: Optional[Mapping[str, int]] = None,
        min_length: int = 2
    ) -> None:
        """Initializes the service.

        Args:
            store: Document store.
            limits: Maximum results per category.
            min_length: Shortest query that is searched at all.
        """
        self._store = store
        self._limits = {**DEFAULT_LIMITS, **(limits or {})}
        self._min_length = min_length

    def search(self, query: Optional[str]) -> List[Dict[str, Any]]:
        """Returns results for a query.

        Queries shorter than the minimum length return no results without
        touching the store.

        Args:
            query: Text to find.

        Returns:
            Result dictionaries with type, id, granthaId, title, subtitle
            and content keys.
        """
        if not query or len(query) < self._min_length:
            return []
        pattern = {'$regex': re.escape(query), '$options': 'i'}
        return (
            self._search_granthas(pattern)
            + self._search_verses(pattern)
            + self._search_commentaries(pattern)
        )

    def _search_granthas(self, pattern: Dict[str, str]) -> List[Dict[str, Any]]:
        """Matches published granthas."""
        documents = self._store.find(
            GRANTHAS,
            {'$or': _any_field(GRANTHA_FIELDS, pattern), 'status': 'published'},
            limit=self._limits['granthas'],
        )
        results = []
        for document in documents:
            grantha = Grantha.from_document(document)
            results.append({
                'type': 'grantha',
                'id': grantha.grantha_id,
                'granthaId': grantha.grantha_id,
                'title': grantha.title,
                'subtitle': grantha.author,
                'content': grantha.description,
            })
        return results

    def _search_verses(self, pattern: Dict[str, str]) -> List[Dict[str, Any]]:
        """Matches verse text."""
        documents = self._store.find(
            VERSES, {'$or': _any_field(VERSE_FIELDS, pattern)},
            limit=self._limits['verses'],
        )
        titles = self._grantha_titles(d.get('granthaId') for d in documents)
        results = []
        for document in documents:
            verse = Verse.from_document(document)
            results.append({
                'type': 'verse',
                'id': verse.verse_id,
                'granthaId': verse.grantha_id,
                'verseId': verse.verse_id,
                'title': titles.get(verse.grantha_id),
                'subtitle': verse.ref,
                'content': verse.verse_text,
            })
        return results

    def _search_commentaries(self, pattern: Dict[str, str]) -> List[Dict[str, Any]]:
        """Matches commentary text, name and commentator."""
        documents = self._store.find(
            COMMENTARIES, {'$or': _any_field(COMMENTARY_FIELDS, pattern)},
            limit=self._limits['commentaries'],
        )
        results = []
        for document in documents:
            commentary = Commentary.from_document(document)
            results.append({
                'type': 'commentary',
                'id': commentary.commentary_id,
                'granthaId': commentary.grantha_id,
                'verseId': commentary.verse_id,
                'title': commentary.commentary_name,
                'subtitle': commentary.commentator,
                'content': commentary.commentary_text,
            })
        return results

    def _grantha_titles(self, grantha_ids: Any) -> Dict[str, str]:
        """Returns titles of the given granthas by id."""
        ids = sorted({i for i in grantha_ids if i})
        if not ids:
            return {}
        documents = self._store.find(GRANTHAS, {'_id': {'$in': ids}})
        return {d['_id']: d.get('title') for d in documents}


def _any_field(keys: Any, pattern: Dict[str, str]) -> List[Dict[str, Any]]:
    """Builds $or clauses matching pattern on any of keys."""
    return [{key: pattern} for key in keys]
