"""Document store over a MongoDB database.

DocumentStore is the only module that talks to pymongo. It exposes the
small query/command contract the services rely on and keeps ObjectIds out
of the rest of the library: ids go in and come out as strings.

Typical usage example:

    store = DocumentStore.connect('mongodb://localhost:27017', 'library')
    verse = store.find_by_id(VERSES, verse_id)
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from bson import ObjectId
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

logger = logging.getLogger(__name__)

GRANTHAS = 'granthas'
VERSES = 'verses'
COMMENTARIES = 'commentaries'
SUGGESTIONS = 'suggestions'
ADMINS = 'admins'

COLLECTIONS = (GRANTHAS, VERSES, COMMENTARIES, SUGGESTIONS, ADMINS)

# Document keys holding ObjectId references.
ID_FIELDS = frozenset(
    ['_id', 'granthaId', 'verseId', 'commentaryId', 'parentCommentaryId']
)

SortSpec = Sequence[Tuple[str, int]]


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Converts an id string to an ObjectId.

    Args:
        value: String id, ObjectId or None.

    Returns:
        ObjectId, or None if value is not a valid id.
    """
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def is_valid_id(value: Any) -> bool:
    """Returns True if value can be used as a document id."""
    return to_object_id(value) is not None


def new_id() -> str:
    """Returns a fresh id string."""
    return str(ObjectId())


def _encode_id(value: Any) -> Any:
    """Encodes an id value for a query or write.

    Invalid ids are left as they are, so they match nothing.
    """
    if isinstance(value, list):
        return [_encode_id(item) for item in value]
    if isinstance(value, dict):
        return {op: _encode_id(operand) for op, operand in value.items()}
    object_id = to_object_id(value)
    return object_id if object_id is not None else value


def _encode(document: Mapping[str, Any]) -> Dict[str, Any]:
    """Converts id fields of a document or filter to ObjectIds."""
    encoded = {}
    for key, value in document.items():
        if key in ID_FIELDS:
            encoded[key] = _encode_id(value)
        elif key in ('$or', '$and'):
            encoded[key] = [_encode(clause) for clause in value]
        else:
            encoded[key] = value
    return encoded


def _decode(document: Mapping[str, Any]) -> Dict[str, Any]:
    """Converts ObjectIds in a stored document to strings."""
    return {
        key: str(value) if isinstance(value, ObjectId) else value
        for key, value in document.items()
    }


def _now() -> datetime:
    """Returns the current UTC time at MongoDB (millisecond) precision."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


class DocumentStore:
    """Query and command access to the library collections."""

    def __init__(self, database: Database) -> None:
        """Initializes the store.

        Args:
            database: pymongo (or API-compatible) database handle.
        """
        self._database = database

    @classmethod
    def connect(cls, uri: str, database_name: str) -> 'DocumentStore':
        """Connects to MongoDB and returns a store.

        Stored timestamps are read back as timezone-aware UTC datetimes.

        Args:
            uri: MongoDB connection string.
            database_name: Database to use.
        """
        client = MongoClient(uri, tz_aware=True)
        logger.info("Connected to MongoDB database '%s'", database_name)
        return cls(client[database_name])

    @property
    def database(self) -> Database:
        """Returns the underlying database handle."""
        return self._database

    def ensure_indexes(self) -> None:
        """Creates the indexes the queries depend on."""
        verses = self._database[VERSES]
        verses.create_index(
            [('granthaId', ASCENDING), ('chapterNumber', ASCENDING),
             ('verseNumber', ASCENDING)]
        )
        commentaries = self._database[COMMENTARIES]
        commentaries.create_index(
            [('verseId', ASCENDING), ('commentaryName', ASCENDING),
             ('level', ASCENDING)]
        )
        commentaries.create_index([('granthaId', ASCENDING)])
        commentaries.create_index([('parentCommentaryId', ASCENDING)])
        suggestions = self._database[SUGGESTIONS]
        suggestions.create_index([('status', ASCENDING)])
        suggestions.create_index([('granthaId', ASCENDING)])
        self._database[ADMINS].create_index(
            [('username', ASCENDING)], unique=True
        )

    def is_connected(self) -> bool:
        """Returns True if the database answers a ping."""
        try:
            self._database.command('ping')
        except Exception:
            logger.debug("Database ping failed", exc_info=True)
            return False
        return True

    # Queries

    def find(
        self,
        collection: str,
        query: Optional[Mapping[str, Any]] = None,
        sort: Optional[SortSpec] = None,
        skip: int = 0,
        limit: int = 0
    ) -> List[Dict[str, Any]]:
        """Returns documents matching a filter.

        Args:
            collection: Collection name.
            query: Filter document; id fields may be strings.
            sort: Sequence of (key, direction) pairs.
            skip: Number of documents to skip.
            limit: Maximum number of documents (0 = no limit).

        Returns:
            Matching documents with string ids.
        """
        cursor = self._database[collection].find(_encode(query or {}))
        if sort:
            cursor = cursor.sort(list(sort))
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return [_decode(document) for document in cursor]

    def find_one(
        self,
        collection: str,
        query: Mapping[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """Returns the first document matching a filter, or None."""
        document = self._database[collection].find_one(_encode(query))
        return _decode(document) if document is not None else None

    def find_by_id(
        self,
        collection: str,
        document_id: Any
    ) -> Optional[Dict[str, Any]]:
        """Returns a document by id, or None if absent or malformed."""
        object_id = to_object_id(document_id)
        if object_id is None:
            return None
        return self.find_one(collection, {'_id': object_id})

    def count(
        self,
        collection: str,
        query: Optional[Mapping[str, Any]] = None
    ) -> int:
        """Returns the number of documents matching a filter."""
        return self._database[collection].count_documents(_encode(query or {}))

    def distinct(
        self,
        collection: str,
        key: str,
        query: Optional[Mapping[str, Any]] = None
    ) -> List[Any]:
        """Returns distinct values of a key among matching documents."""
        values = self._database[collection].distinct(key, _encode(query or {}))
        return [str(v) if isinstance(v, ObjectId) else v for v in values]

    # Commands

    def insert(
        self,
        collection: str,
        document: Mapping[str, Any]
    ) -> Dict[str, Any]:
        """Inserts a document and returns it with id and timestamps.

        Args:
            collection: Collection name.
            document: Document without _id.

        Returns:
            The stored document with string ids.
        """
        timestamp = _now()
        stored = _encode(document)
        stored.pop('_id', None)
        stored['createdAt'] = timestamp
        stored['updatedAt'] = timestamp
        result = self._database[collection].insert_one(stored)
        stored['_id'] = result.inserted_id
        return _decode(stored)

    def update_by_id(
        self,
        collection: str,
        document_id: Any,
        changes: Mapping[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """Sets fields on a document and returns the updated document.

        Returns:
            Updated document, or None if the id does not resolve.
        """
        object_id = to_object_id(document_id)
        if object_id is None:
            return None
        update = _encode(changes)
        update.pop('_id', None)
        update.pop('createdAt', None)
        update['updatedAt'] = _now()
        result = self._database[collection].update_one(
            {'_id': object_id}, {'$set': update}
        )
        if result.matched_count == 0:
            return None
        return self.find_by_id(collection, object_id)

    def update_many(
        self,
        collection: str,
        query: Mapping[str, Any],
        changes: Mapping[str, Any]
    ) -> int:
        """Sets fields on all matching documents.

        Returns:
            Number of modified documents.
        """
        update = _encode(changes)
        update['updatedAt'] = _now()
        result = self._database[collection].update_many(
            _encode(query), {'$set': update}
        )
        return result.modified_count

    def delete_by_id(self, collection: str, document_id: Any) -> bool:
        """Deletes a document by id.

        Returns:
            True if a document was deleted.
        """
        object_id = to_object_id(document_id)
        if object_id is None:
            return False
        result = self._database[collection].delete_one({'_id': object_id})
        return result.deleted_count == 1

    def delete_many(self, collection: str, query: Mapping[str, Any]) -> int:
        """Deletes all matching documents.

        Returns:
            Number of deleted documents.
        """
        result = self._database[collection].delete_many(_encode(query))
        return result.deleted_count

    # Referential population

    def populate(
        self,
        documents: Iterable[Dict[str, Any]],
        key: str,
        collection: str,
        as_key: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Replaces a reference id with the referenced document.

        Args:
            documents: Documents holding the reference.
            key: Reference key (e.g. "verseId").
            collection: Collection the reference points into.
            as_key: Key to store the referenced document under. Defaults
                to key itself, replacing the id.

        Returns:
            New list of documents; unresolved references become None.
        """
        documents = list(documents)
        ids = {doc[key] for doc in documents if is_valid_id(doc.get(key))}
        referenced = {}
        if ids:
            for document in self.find(collection, {'_id': {'$in': sorted(ids)}}):
                referenced[document['_id']] = document
        target = as_key or key
        populated = []
        for document in documents:
            copy = dict(document)
            copy[target] = referenced.get(document.get(key))
            populated.append(copy)
        return populated
