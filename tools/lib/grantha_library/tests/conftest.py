"""Shared fixtures for grantha_library tests."""

import uuid

import mongomock
import pytest

from grantha_library.services import LibraryServices
from grantha_library.store import DocumentStore


def make_store() -> DocumentStore:
    """Returns a DocumentStore over a fresh in-memory database."""
    client = mongomock.MongoClient(tz_aware=True)
    return DocumentStore(client[f"grantha_library_test_{uuid.uuid4().hex}"])


@pytest.fixture
def store():
    """Returns an empty in-memory document store."""
    return make_store()


@pytest.fixture
def services(store):
    """Returns all library services over the test store."""
    return LibraryServices.create(store)


@pytest.fixture
def grantha(services):
    """Returns a published grantha declaring two commentaries."""
    return services.content.create_grantha({
        'title': 'भगवद्गीता',
        'titleEnglish': 'Bhagavad Gita',
        'author': 'व्यासः',
        'authorEnglish': 'Vyasa',
        'description': 'Dialogue between Krishna and Arjuna',
        'category': 'Philosophical',
        'status': 'published',
        'availableCommentaries': [
            {'name': 'Bhashya', 'author': 'Shankara', 'order': 1},
            {'name': 'Tika', 'author': 'Anandagiri', 'order': 2},
        ],
    })


@pytest.fixture
def verse(services, grantha):
    """Returns verse 1.1 of the test grantha."""
    return services.content.create_verse({
        'granthaId': grantha.grantha_id,
        'chapterNumber': 1,
        'verseNumber': 1,
        'verseText': '<p>धर्मक्षेत्रे कुरुक्षेत्रे समवेता युयुत्सवः</p>',
    })


@pytest.fixture
def other_verse(services, grantha):
    """Returns verse 1.2 of the test grantha."""
    return services.content.create_verse({
        'granthaId': grantha.grantha_id,
        'chapterNumber': 1,
        'verseNumber': 2,
        'verseText': '<p>दृष्ट्वा तु पाण्डवानीकं व्यूढं</p>',
    })


@pytest.fixture
def fresh_services():
    """Returns a factory of services over new, empty stores."""
    return lambda: LibraryServices.create(make_store())
