"""Grantha and verse content service.

This module composes grantha and verse storage with the commentary tree:
listing and pagination, numeric-aware verse ordering, cascading deletes,
commentary-definition renames and bulk creation of nested content.
"""

import logging
import math
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from grantha_library._internal.ref_parser import verse_position_key
from grantha_library.commentary_tree import CommentaryTree
from grantha_library.exceptions import (
    GranthaNotFoundError,
    ValidationError,
    VerseNotFoundError,
)
from grantha_library.models import Grantha, Verse
from grantha_library.store import (
    COMMENTARIES,
    GRANTHAS,
    VERSES,
    DocumentStore,
    new_id,
)

logger = logging.getLogger(__name__)

_NEWEST_FIRST = [('createdAt', -1), ('_id', -1)]

# Counters maintained by the service, never taken from client input.
_DERIVED_KEYS = ('totalChapters', 'totalVerses')


class GranthaContentService:
    """Grantha and verse operations."""

    def __init__(
        self,
        store: DocumentStore,
        tree: CommentaryTree,
        page_size: int = 10,
        max_page_size: int = 100
    ) -> None:
        """Initializes the service.

        Args:
            store: Document store.
            tree: Commentary tree manager.
            page_size: Default page size for listings.
            max_page_size: Upper bound for a requested page size.
        """
        self._store = store
        self._tree = tree
        self._page_size = page_size
        self._max_page_size = max_page_size

    # Granthas

    def list_published(
        self,
        page: Optional[int] = None,
        limit: Optional[int] = None
    ) -> Dict[str, Any]:
        """Returns one page of published granthas, newest first.

        Args:
            page: 1-based page number; invalid values mean page 1.
            limit: Page size; invalid values mean the default size.

        Returns:
            Dictionary with granthas, currentPage, totalPages, totalCount.
        """
        page = page if page and page > 0 else 1
        limit = limit if limit and limit > 0 else self._page_size
        limit = min(limit, self._max_page_size)

        query = {'status': 'published'}
        documents = self._store.find(
            GRANTHAS, query, sort=_NEWEST_FIRST,
            skip=(page - 1) * limit, limit=limit
        )
        total_count = self._store.count(GRANTHAS, query)
        return {
            'granthas': [Grantha.from_document(d).to_json() for d in documents],
            'currentPage': page,
            'totalPages': math.ceil(total_count / limit),
            'totalCount': total_count,
        }

    def list_all(self) -> List[Grantha]:
        """Returns every grantha, drafts included, newest first."""
        documents = self._store.find(GRANTHAS, sort=_NEWEST_FIRST)
        return [Grantha.from_document(d) for d in documents]

    def get_grantha(self, grantha_id: str) -> Grantha:
        """Returns a grantha by id.

        Raises:
            GranthaNotFoundError: If the id does not resolve.
        """
        document = self._store.find_by_id(GRANTHAS, grantha_id)
        if document is None:
            raise GranthaNotFoundError(f"Grantha '{grantha_id}' not found")
        return Grantha.from_document(document)

    def find_grantha(
        self,
        title: str,
        author: Optional[str]
    ) -> Optional[Grantha]:
        """Returns the grantha with a title and author pair, if any."""
        document = self._store.find_one(
            GRANTHAS, {'title': title, 'author': author}
        )
        return Grantha.from_document(document) if document else None

    def create_grantha(self, payload: Mapping[str, Any]) -> Grantha:
        """Creates a grantha, optionally with nested verses.

        Verses may carry a commentaries list; nested commentaries may
        reference each other through _id and parentCommentaryId.

        Raises:
            ValidationError: If the grantha or any verse is invalid.
        """
        fields = _without_derived(payload)
        verses = fields.pop('verses', None)
        grantha = _with_definition_ids(Grantha.from_payload(fields))
        stored = Grantha.from_document(
            self._store.insert(GRANTHAS, grantha.to_document())
        )
        logger.info("Created grantha '%s' (%s)", stored.title, stored.grantha_id)
        if verses:
            self.add_verses(stored.grantha_id, verses)
        return self.refresh_totals(stored.grantha_id)

    def update_grantha(
        self,
        grantha_id: str,
        payload: Mapping[str, Any]
    ) -> Grantha:
        """Updates grantha metadata.

        A commentary definition keeping its _id under a new name renames
        every commentary of this grantha that used the old name. A
        non-empty verses list replaces all verses and commentaries.

        Raises:
            GranthaNotFoundError: If the id does not resolve.
            ValidationError: If the merged grantha is invalid.
        """
        current = self.get_grantha(grantha_id)
        fields = _without_derived(payload)
        verses = fields.pop('verses', None)
        updated = _with_definition_ids(current.updated(fields))

        renames = _definition_renames(current, updated)
        # Every rename targets the records named before the update.
        targets = {
            old_name: self._store.distinct(
                COMMENTARIES, '_id',
                {'granthaId': grantha_id, 'commentaryName': old_name},
            )
            for old_name, _ in renames
        }

        self._store.update_by_id(GRANTHAS, grantha_id, updated.to_document())
        for old_name, new_name in renames:
            renamed = self._store.update_many(
                COMMENTARIES,
                {'_id': {'$in': targets[old_name]}},
                {'commentaryName': new_name},
            )
            logger.info(
                "Renamed commentary '%s' to '%s' on %d records",
                old_name, new_name, renamed,
            )

        if verses:
            self._delete_content(grantha_id)
            self.add_verses(grantha_id, verses)
        return self.refresh_totals(grantha_id)

    def delete_grantha(self, grantha_id: str) -> Dict[str, int]:
        """Deletes a grantha with all its verses and commentaries.

        Returns:
            Dictionary with deletedVerses and deletedCommentaries counts.

        Raises:
            GranthaNotFoundError: If the id does not resolve.
        """
        grantha = self.get_grantha(grantha_id)
        deleted_verses, deleted_commentaries = self._delete_content(grantha_id)
        self._store.delete_by_id(GRANTHAS, grantha_id)
        logger.info(
            "Deleted grantha '%s' (%s): %d verses, %d commentaries",
            grantha.title, grantha_id, deleted_verses, deleted_commentaries,
        )
        return {
            'deletedVerses': deleted_verses,
            'deletedCommentaries': deleted_commentaries,
        }

    def _delete_content(self, grantha_id: str) -> Tuple[int, int]:
        """Deletes all verses and commentaries of a grantha."""
        verse_ids = [
            d['_id'] for d in self._store.find(VERSES, {'granthaId': grantha_id})
        ]
        deleted_commentaries = self._store.delete_many(
            COMMENTARIES, {'granthaId': grantha_id}
        )
        if verse_ids:
            deleted_commentaries += self._store.delete_many(
                COMMENTARIES, {'verseId': {'$in': verse_ids}}
            )
        deleted_verses = self._store.delete_many(VERSES, {'granthaId': grantha_id})
        return deleted_verses, deleted_commentaries

    def add_verses(
        self,
        grantha_id: str,
        verses: Iterable[Any],
        commentaries: Iterable[Mapping[str, Any]] = ()
    ) -> Dict[str, int]:
        """Creates verses and their commentaries under a grantha.

        Commentaries come either nested under each verse or as a flat list
        referencing verses by their incoming _id. Both are imported through
        the commentary tree's id remapping.

        Args:
            grantha_id: Target grantha.
            verses: Verse payloads, optionally with _id and commentaries.
            commentaries: Flat commentary records.

        Returns:
            Dictionary with versesCreated and commentariesCreated.
        """
        verse_id_map: Dict[str, str] = {}
        records = list(commentaries)
        for index, verse_payload in enumerate(verses):
            if not isinstance(verse_payload, Mapping):
                raise ValidationError('Each verse must be a JSON object')
            fields = dict(verse_payload)
            nested = fields.pop('commentaries', None) or []
            old_id = verse_payload.get('_id')
            key = str(old_id) if old_id else f"#{index}"
            verse = self._insert_verse(grantha_id, fields)
            verse_id_map[key] = verse.verse_id
            records.extend({**record, 'verseId': key} for record in nested)

        before = self._store.count(COMMENTARIES, {'granthaId': grantha_id})
        self._tree.import_remap(grantha_id, verse_id_map, records)
        created = self._store.count(COMMENTARIES, {'granthaId': grantha_id}) - before
        return {
            'versesCreated': len(verse_id_map),
            'commentariesCreated': created,
        }

    def refresh_totals(self, grantha_id: str) -> Grantha:
        """Recounts chapters and verses of a grantha and returns it."""
        query = {'granthaId': grantha_id}
        chapters = self._store.distinct(VERSES, 'chapterNumber', query)
        stored = self._store.update_by_id(GRANTHAS, grantha_id, {
            'totalChapters': len(chapters),
            'totalVerses': self._store.count(VERSES, query),
        })
        if stored is None:
            raise GranthaNotFoundError(f"Grantha '{grantha_id}' not found")
        return Grantha.from_document(stored)

    # Verses

    def list_verses(self, grantha_id: str) -> List[Verse]:
        """Returns a grantha's verses by chapter and verse number.

        Numbers compare numerically with letter suffixes after the number,
        so 2 < 10 and 12 < 12a < 12b < 13.
        """
        documents = self._store.find(VERSES, {'granthaId': grantha_id})
        verses = [Verse.from_document(d) for d in documents]
        return sorted(verses, key=verse_position_key)

    def get_verse(self, verse_id: str) -> Verse:
        """Returns a verse by id.

        Raises:
            VerseNotFoundError: If the id does not resolve.
        """
        document = self._store.find_by_id(VERSES, verse_id)
        if document is None:
            raise VerseNotFoundError(f"Verse '{verse_id}' not found")
        return Verse.from_document(document)

    def create_verse(self, payload: Mapping[str, Any]) -> Verse:
        """Creates a verse under an existing grantha.

        Raises:
            ValidationError: If required fields are missing.
            GranthaNotFoundError: If granthaId does not resolve.
        """
        if not isinstance(payload, Mapping):
            raise ValidationError('Request body must be a JSON object')
        if not payload.get('granthaId'):
            raise ValidationError('Missing required fields', required=['granthaId'])
        grantha = self.get_grantha(payload['granthaId'])
        verse = self._insert_verse(grantha.grantha_id, payload)
        self.refresh_totals(grantha.grantha_id)
        return verse

    def _insert_verse(self, grantha_id: str, payload: Mapping[str, Any]) -> Verse:
        """Validates and inserts one verse."""
        verse = Verse.from_payload({**payload, 'granthaId': grantha_id})
        duplicate = self._store.find_one(VERSES, {
            'granthaId': grantha_id,
            'chapterNumber': verse.chapter_number,
            'verseNumber': verse.verse_number,
        })
        if duplicate is not None:
            logger.warning(
                "Grantha %s already has verse %s", grantha_id, verse.ref
            )
        return Verse.from_document(self._store.insert(VERSES, verse.to_document()))

    def update_verse(self, verse_id: str, payload: Mapping[str, Any]) -> Verse:
        """Updates a verse. The owning grantha cannot be changed.

        Raises:
            VerseNotFoundError: If the id does not resolve.
            ValidationError: If the merged verse is invalid.
        """
        current = self.get_verse(verse_id)
        if not isinstance(payload, Mapping):
            raise ValidationError('Request body must be a JSON object')
        fields = {k: v for k, v in payload.items() if k != 'granthaId'}
        updated = current.updated(fields)
        stored = self._store.update_by_id(VERSES, verse_id, updated.to_document())
        if stored is None:
            raise VerseNotFoundError(f"Verse '{verse_id}' not found")
        if updated.chapter_number != current.chapter_number:
            self.refresh_totals(current.grantha_id)
        return Verse.from_document(stored)

    def delete_verse(self, verse_id: str) -> int:
        """Deletes a verse and its whole commentary forest.

        Returns:
            Number of deleted commentaries.

        Raises:
            VerseNotFoundError: If the id does not resolve.
        """
        verse = self.get_verse(verse_id)
        deleted = self._tree.delete_for_verse(verse_id)
        self._store.delete_by_id(VERSES, verse_id)
        logger.info(
            "Deleted verse %s of grantha %s with %d commentaries",
            verse.ref, verse.grantha_id, deleted,
        )
        if self._store.find_by_id(GRANTHAS, verse.grantha_id) is not None:
            self.refresh_totals(verse.grantha_id)
        return deleted


def _without_derived(payload: Any) -> Dict[str, Any]:
    """Copies a payload without service-maintained keys."""
    if not isinstance(payload, Mapping):
        raise ValidationError('Request body must be a JSON object')
    return {k: v for k, v in payload.items() if k not in _DERIVED_KEYS}


def _with_definition_ids(grantha: Grantha) -> Grantha:
    """Assigns ids to commentary definitions that have none."""
    definitions = [
        d if d.definition_id else replace(d, definition_id=new_id())
        for d in grantha.available_commentaries
    ]
    return replace(grantha, available_commentaries=definitions)


def _definition_renames(
    current: Grantha,
    updated: Grantha
) -> List[Tuple[str, str]]:
    """Returns (old, new) names of definitions renamed by an update."""
    old_names = {
        d.definition_id: d.name for d in current.available_commentaries
    }
    renames = []
    for definition in updated.available_commentaries:
        old_name = old_names.get(definition.definition_id)
        if old_name is not None and old_name != definition.name:
            renames.append((old_name, definition.name))
    return renames
