"""Tests for the search service."""

from unittest import mock

import pytest

from grantha_library.search import SearchService


@pytest.fixture
def search(services):
    return services.search


@pytest.fixture
def library(services, grantha, verse):
    """Adds a draft grantha and a commentary to the test library."""
    services.content.create_grantha({
        'title': 'Draft Gita notes', 'status': 'draft',
    })
    services.tree.create({
        'verseId': verse.verse_id,
        'commentaryName': 'Bhashya',
        'commentator': 'Shankara',
        'commentaryText': '<p>kurukshetra, the field of dharma where Arjuna stood</p>',
    })
    return grantha


class TestSearch:
    """Tests for SearchService.search."""

    def test_short_query_skips_store(self):
        store = mock.Mock()
        assert SearchService(store).search('a') == []
        assert SearchService(store).search('') == []
        assert SearchService(store).search(None) == []
        store.find.assert_not_called()

    def test_grantha_results_are_published_only(self, search, library):
        results = search.search('gita')
        assert [r['type'] for r in results] == ['grantha']
        assert results[0]['id'] == library.grantha_id
        assert results[0]['subtitle'] == 'व्यासः'

    def test_verse_results_carry_grantha_title(self, search, library, verse):
        results = search.search('कुरुक्षेत्रे')
        assert len(results) == 1
        result = results[0]
        assert result['type'] == 'verse'
        assert result['verseId'] == verse.verse_id
        assert result['title'] == 'भगवद्गीता'
        assert result['subtitle'] == '1.1'

    def test_commentary_results(self, search, library, verse):
        results = search.search('SHANKARA')
        assert [r['type'] for r in results] == ['commentary']
        assert results[0]['verseId'] == verse.verse_id
        assert results[0]['granthaId'] == library.grantha_id

    def test_categories_are_concatenated_in_order(self, search, library):
        results = search.search('arjuna')
        assert [r['type'] for r in results] == ['grantha', 'commentary']

    def test_query_is_literal(self, search, library):
        assert search.search('k.rukshetra') == []
        assert search.search('(dharma') == []

    def test_limits_per_category(self, services, library):
        for number in range(2, 6):
            services.content.create_verse({
                'granthaId': library.grantha_id, 'chapterNumber': 2,
                'verseNumber': number, 'verseText': f"shloka {number}",
            })
        limited = SearchService(services.store, limits={'verses': 3})
        assert len(limited.search('shloka')) == 3
