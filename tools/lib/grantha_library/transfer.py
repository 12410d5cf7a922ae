"""Grantha export and import.

An export is a single JSON document holding the grantha metadata, its
verses and a flat list of its commentaries, each record carrying the ids
it had in the exporting database. Import replays the verses and hands the
commentaries to the commentary tree, which translates those ids.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Union

from grantha_library.commentary_tree import CommentaryTree
from grantha_library.content_service import GranthaContentService
from grantha_library.exceptions import DuplicateGranthaError, ValidationError
from grantha_library.models import Grantha
from grantha_library.validator import validate_export_document

logger = logging.getLogger(__name__)

EXPORT_VERSION = '1.0'

# Grantha keys that are recomputed on import.
_NOT_EXPORTED = ('_id', 'createdAt', 'updatedAt', 'totalChapters', 'totalVerses')


class GranthaTransfer:
    """Exports granthas to and imports them from JSON snapshots."""

    def __init__(
        self,
        content: GranthaContentService,
        tree: CommentaryTree
    ) -> None:
        self._content = content
        self._tree = tree

    def export_grantha(self, grantha_id: str) -> Dict[str, Any]:
        """Builds the export document of a grantha.

        Args:
            grantha_id: Grantha to export.

        Returns:
            Export document (JSON-ready).

        Raises:
            GranthaNotFoundError: If the id does not resolve.
        """
        grantha = self._content.get_grantha(grantha_id)
        verses = self._content.list_verses(grantha_id)
        commentaries = self._tree.export_flatten(grantha_id)
        logger.info(
            "Exporting '%s': %d verses, %d commentaries",
            grantha.title, len(verses), len(commentaries),
        )
        return {
            'exportVersion': EXPORT_VERSION,
            'exportDate': datetime.now(timezone.utc).isoformat(),
            'grantha': _export_metadata(grantha),
            'verses': [
                {
                    '_id': verse.verse_id,
                    'chapterNumber': verse.chapter_number,
                    'verseNumber': verse.verse_number,
                    'verseText': verse.verse_text,
                }
                for verse in verses
            ],
            'commentaries': commentaries,
            'statistics': {
                'totalVerses': len(verses),
                'totalCommentaries': len(commentaries),
                'chapters': len({str(v.chapter_number) for v in verses}),
            },
        }

    def import_grantha(self, data: Any) -> Dict[str, Any]:
        """Creates a new grantha from an export document.

        Commentaries may be given flat (top-level commentaries list) or
        nested under each verse. Stored levels in the file are ignored.

        Args:
            data: Parsed export document.

        Returns:
            Dictionary with message, grantha and statistics.

        Raises:
            ValidationError: If grantha or verses are missing.
            SchemaValidationError: If the document fails the schema.
            DuplicateGranthaError: If the title and author already exist.
        """
        if not isinstance(data, dict) or not data.get('grantha') or data.get('verses') is None:
            raise ValidationError('Invalid grantha export file structure')
        validate_export_document(data)

        metadata = {
            k: v for k, v in data['grantha'].items() if k not in _NOT_EXPORTED
        }
        if self._content.find_grantha(metadata['title'], metadata.get('author')):
            raise DuplicateGranthaError(
                'A grantha with the same title and author already exists. '
                'Please delete it first or modify the import file.'
            )

        grantha = self._content.create_grantha(metadata)
        statistics = self._content.add_verses(
            grantha.grantha_id, data['verses'], data.get('commentaries') or []
        )
        grantha = self._content.refresh_totals(grantha.grantha_id)
        logger.info(
            "Imported '%s': %d verses, %d commentaries",
            grantha.title, statistics['versesCreated'],
            statistics['commentariesCreated'],
        )
        return {
            'message': (
                f"Grantha imported successfully! Created "
                f"{statistics['versesCreated']} verses and "
                f"{statistics['commentariesCreated']} commentaries."
            ),
            'grantha': grantha.to_json(),
            'statistics': statistics,
        }


def export_filename(grantha: Grantha) -> str:
    """Returns the download file name of a grantha export."""
    return f"{grantha.display_title or 'grantha'}_export.json"


def _export_metadata(grantha: Grantha) -> Dict[str, Any]:
    """Returns grantha metadata without ids, timestamps and counters."""
    return {
        k: v for k, v in grantha.to_json().items() if k not in _NOT_EXPORTED
    }


def parse_import_file(raw: Union[bytes, str]) -> Any:
    """Parses the contents of an uploaded export file.

    Raises:
        ValidationError: If the contents are not UTF-8 JSON.
    """
    try:
        if isinstance(raw, bytes):
            raw = raw.decode('utf-8-sig')
        return json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValidationError('Invalid JSON file format') from e


def read_import_file(input_path: Path) -> Any:
    """Reads and parses an export file from disk."""
    with input_path.open('rb') as f:
        return parse_import_file(f.read())


def write_export_file(data: Dict[str, Any], output_path: Path, indent: int = 2) -> None:
    """Writes an export document as UTF-8 JSON."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open('w', encoding='utf-8') as f:
        json.dump(data, f, ensure_ascii=False, indent=indent)
        f.write('\n')
