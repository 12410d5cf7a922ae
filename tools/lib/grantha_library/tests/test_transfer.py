"""Tests for grantha export and import."""

import json

import pytest

from grantha_library._internal.hierarchy_builder import SUB_COMMENTARIES_KEY
from grantha_library.exceptions import (
    DuplicateGranthaError,
    SchemaValidationError,
    ValidationError,
)
from grantha_library.transfer import (
    EXPORT_VERSION,
    export_filename,
    parse_import_file,
    read_import_file,
    write_export_file,
)


@pytest.fixture
def populated(services, grantha, verse, other_verse):
    """Adds A -> B -> C on verse 1.1 and two roots on verse 1.2."""
    tree = services.tree
    a = tree.create({'verseId': verse.verse_id, 'commentaryName': 'Bhashya',
                     'commentaryText': '<p>A</p>', 'commentator': 'Shankara'})
    b = tree.create({'verseId': verse.verse_id, 'commentaryName': 'Tika',
                     'commentaryText': '<p>B</p>',
                     'parentCommentaryId': a.commentary_id})
    tree.create({'verseId': verse.verse_id, 'commentaryName': 'Tika',
                 'commentaryText': '<p>C</p>',
                 'parentCommentaryId': b.commentary_id})
    tree.create({'verseId': other_verse.verse_id, 'commentaryName': 'Tika',
                 'commentaryText': '<p>D</p>'})
    tree.create({'verseId': other_verse.verse_id, 'commentaryName': 'Bhashya',
                 'commentaryText': '<p>E</p>'})
    return grantha


def shape(forest):
    """Returns the id-free topology of a commentary forest."""
    return [
        (n['commentaryName'], n['commentaryText'], n['level'],
         shape(n.get(SUB_COMMENTARIES_KEY, [])))
        for n in forest
    ]


def library_shape(services, grantha_id):
    """Returns verse refs with the topology of each verse's forest."""
    return [
        (v.ref, v.verse_text, shape(services.tree.build_verse_hierarchy(v.verse_id)))
        for v in services.content.list_verses(grantha_id)
    ]


class TestExport:
    """Tests for GranthaTransfer.export_grantha."""

    def test_export_document(self, services, populated):
        data = services.transfer.export_grantha(populated.grantha_id)
        assert data['exportVersion'] == EXPORT_VERSION
        assert data['grantha']['title'] == 'भगवद्गीता'
        assert '_id' not in data['grantha']
        assert 'totalVerses' not in data['grantha']
        assert [v['verseNumber'] for v in data['verses']] == [1, 2]
        assert data['statistics'] == {
            'totalVerses': 2, 'totalCommentaries': 5, 'chapters': 1,
        }

    def test_commentary_records_keep_links(self, services, populated):
        data = services.transfer.export_grantha(populated.grantha_id)
        ids = {c['_id'] for c in data['commentaries']}
        parents = [c['parentCommentaryId'] for c in data['commentaries']]
        assert all(p is None or p in ids for p in parents)
        assert sorted(c['level'] for c in data['commentaries']) == [0, 0, 0, 1, 2]

    def test_export_is_schema_valid_json(self, services, populated):
        data = json.loads(json.dumps(
            services.transfer.export_grantha(populated.grantha_id)
        ))
        result = services.transfer.import_grantha({
            **data, 'grantha': {**data['grantha'], 'title': 'Copy'},
        })
        assert result['grantha']['title'] == 'Copy'
        assert result['statistics']['commentariesCreated'] == 5

    def test_export_filename(self, grantha):
        assert export_filename(grantha) == 'Bhagavad Gita_export.json'


class TestImport:
    """Tests for GranthaTransfer.import_grantha."""

    def test_round_trip_reproduces_topology(self, services, populated, fresh_services):
        data = json.loads(json.dumps(
            services.transfer.export_grantha(populated.grantha_id)
        ))
        target = fresh_services()
        result = target.transfer.import_grantha(data)

        assert result['statistics'] == {'versesCreated': 2, 'commentariesCreated': 5}
        imported = result['grantha']
        assert imported['_id'] != populated.grantha_id
        assert imported['totalVerses'] == 2
        assert imported['status'] == 'published'
        assert library_shape(target, imported['_id']) == library_shape(
            services, populated.grantha_id
        )

    def test_duplicate_title_and_author(self, services, populated):
        data = services.transfer.export_grantha(populated.grantha_id)
        with pytest.raises(DuplicateGranthaError):
            services.transfer.import_grantha(data)

    def test_invalid_structure(self, services):
        for data in ([], {'verses': []}, {'grantha': {'title': 'x'}}):
            with pytest.raises(ValidationError, match='structure'):
                services.transfer.import_grantha(data)

    def test_schema_violations_are_listed(self, services):
        data = {
            'grantha': {'title': 'Broken'},
            'verses': [{'chapterNumber': 1, 'verseNumber': -1}],
        }
        with pytest.raises(SchemaValidationError) as excinfo:
            services.transfer.import_grantha(data)
        assert any(e.startswith('verses.0.verseNumber') for e in excinfo.value.errors)
        assert services.content.find_grantha('Broken', None) is None

    def test_nested_commentaries(self, services):
        result = services.transfer.import_grantha({
            'grantha': {'title': 'Kena', 'author': 'Anon'},
            'verses': [{
                'chapterNumber': 1, 'verseNumber': '1a', 'verseText': 'केनेषितं',
                'commentaries': [
                    {'_id': 'child', 'commentaryName': 'Tika',
                     'parentCommentaryId': 'root'},
                    {'_id': 'root', 'commentaryName': 'Bhashya'},
                ],
            }],
        })
        assert result['statistics']['commentariesCreated'] == 2
        grantha_id = result['grantha']['_id']
        verse = services.content.list_verses(grantha_id)[0]
        assert verse.verse_number == '1a'
        forest = services.tree.build_verse_hierarchy(verse.verse_id)
        assert shape(forest) == [
            ('Bhashya', '', 0, [('Tika', '', 1, [])]),
        ]


class TestImportFiles:
    """Tests for reading and writing export files."""

    def test_parse_accepts_bom(self):
        raw = '\ufeff{"grantha": {"title": "गीता"}}'.encode('utf-8')
        assert parse_import_file(raw) == {'grantha': {'title': 'गीता'}}

    def test_parse_rejects_invalid_json(self):
        with pytest.raises(ValidationError, match='Invalid JSON'):
            parse_import_file(b'{not json')
        with pytest.raises(ValidationError):
            parse_import_file(b'\xff\xfe\x00')

    def test_write_then_read(self, tmp_path, services, populated):
        data = services.transfer.export_grantha(populated.grantha_id)
        path = tmp_path / 'out' / 'gita.json'
        write_export_file(data, path)
        assert 'भगवद्गीता' in path.read_text(encoding='utf-8')
        assert read_import_file(path) == json.loads(json.dumps(data))
