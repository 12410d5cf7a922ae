"""Tests for the MongoDB document store."""

import mongomock
import pytest

from grantha_library import store as store_module
from grantha_library.store import VERSES, DocumentStore


@pytest.fixture
def connected(monkeypatch):
    """Returns a store built by DocumentStore.connect over mongomock."""
    calls = []

    def client_factory(uri, **kwargs):
        calls.append((uri, kwargs))
        return mongomock.MongoClient(uri, **kwargs)

    monkeypatch.setattr(store_module, 'MongoClient', client_factory)
    return DocumentStore.connect('mongodb://localhost:27017', 'library'), calls


class TestTimestamps:
    def test_connect_reads_timezone_aware_datetimes(self, connected):
        _, calls = connected
        assert calls == [('mongodb://localhost:27017', {'tz_aware': True})]

    def test_inserted_and_stored_timestamps_match(self, connected):
        store, _ = connected
        inserted = store.insert(VERSES, {'verseText': 'x'})
        stored = store.find_by_id(VERSES, inserted['_id'])
        assert inserted['createdAt'].utcoffset().total_seconds() == 0
        assert stored['createdAt'] == inserted['createdAt']
        assert stored['createdAt'].utcoffset() is not None

    def test_updated_timestamp_matches_stored(self, connected):
        store, _ = connected
        inserted = store.insert(VERSES, {'verseText': 'x'})
        updated = store.update_by_id(VERSES, inserted['_id'], {'verseText': 'y'})
        assert updated['updatedAt'] == store.find_by_id(VERSES, inserted['_id'])['updatedAt']
        assert updated['createdAt'] == inserted['createdAt']


class TestIds:
    def test_malformed_id_resolves_to_nothing(self, store):
        assert store.find_by_id(VERSES, 'not-an-id') is None
        assert store.update_by_id(VERSES, 'not-an-id', {'verseText': 'x'}) is None
        assert store.delete_by_id(VERSES, 'not-an-id') is False
