"""Domain models for library content.

This module defines the dataclasses exchanged between the store, the
services and the API. Models convert to and from the camelCase documents
kept in the database; ids are carried as strings throughout and only the
DocumentStore deals in ObjectIds.
"""

from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Tuple

from grantha_library._internal.ref_parser import (
    VerseNumber,
    normalize_verse_number,
)
from grantha_library.exceptions import ValidationError

GRANTHA_CATEGORIES = (
    'Veda', 'Upanishad', 'Purana', 'Philosophical', 'Stotra', 'Other'
)
GRANTHA_STATUSES = ('draft', 'published')
SUGGESTION_TYPES = ('moolam', 'commentary')
SUGGESTION_STATUSES = ('pending', 'approved', 'rejected')

# Sibling order for commentary names a grantha does not declare.
DEFAULT_COMMENTARY_ORDER = 999


def _key(key: str, default: Any = None, readonly: bool = False) -> Any:
    """Declares a model field stored under a document key."""
    return field(default=default, metadata={'key': key, 'readonly': readonly})


def _list_key(key: str) -> Any:
    """Declares a list-valued model field stored under a document key."""
    return field(default_factory=list, metadata={'key': key, 'readonly': False})


def _is_blank(value: Any) -> bool:
    """Returns True for None and whitespace-only strings."""
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


class DocumentModel:
    """Mixin converting dataclass models to and from stored documents.

    Fields declare their document key in metadata. Read-only fields (ids and
    timestamps) are served by to_json but never written back by
    to_document, and are ignored when building a model from a payload.
    """

    _required: ClassVar[Tuple[str, ...]] = ()
    _int_fields: ClassVar[Tuple[str, ...]] = ()

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> Any:
        """Builds a model from a stored document.

        Keys holding None fall back to the field default.

        Args:
            document: Document with camelCase keys.

        Returns:
            Model instance.

        Raises:
            ValidationError: If a value cannot be decoded.
        """
        values = {}
        for model_field in fields(cls):
            key = model_field.metadata.get('key', model_field.name)
            if document.get(key) is None:
                continue
            values[model_field.name] = cls._decode_value(
                model_field.name, document[key]
            )
        return cls(**values)

    @classmethod
    def from_payload(cls, payload: Any) -> Any:
        """Builds and validates a model from client input.

        Raises:
            ValidationError: If payload is not an object, misses required
                fields or holds invalid values.
        """
        model = cls.from_document(cls._writable_items(payload))
        model.validate()
        return model

    @classmethod
    def _writable_items(cls, payload: Any) -> Dict[str, Any]:
        """Drops read-only keys from a payload."""
        if not isinstance(payload, Mapping):
            raise ValidationError('Request body must be a JSON object')
        readonly = cls._readonly_keys()
        return {k: v for k, v in payload.items() if k not in readonly}

    @classmethod
    def _readonly_keys(cls) -> Tuple[str, ...]:
        """Returns document keys of read-only fields."""
        return tuple(
            f.metadata['key'] for f in fields(cls) if f.metadata.get('readonly')
        )

    @classmethod
    def _decode_value(cls, name: str, value: Any) -> Any:
        """Decodes one document value into its field value."""
        if name in cls._int_fields:
            return _decode_int(name, value)
        return value

    def _encode_value(self, name: str, value: Any) -> Any:
        """Encodes one field value for storage."""
        return value

    def updated(self, payload: Any) -> Any:
        """Returns a copy with payload fields merged in.

        Ids and timestamps of this instance are kept.

        Raises:
            ValidationError: If the merged model is invalid.
        """
        document = self.to_document()
        document.update(self._writable_items(payload))
        model = type(self).from_document(document)
        model.validate()
        identity = {
            f.name: getattr(self, f.name)
            for f in fields(self) if f.metadata.get('readonly')
        }
        return replace(model, **identity)

    def validate(self) -> None:
        """Validates required fields.

        Raises:
            ValidationError: Listing the missing fields.
        """
        missing = self._missing_fields()
        if missing:
            raise ValidationError('Missing required fields', required=missing)

    def _missing_fields(self) -> List[str]:
        """Returns document keys of required fields without a value."""
        by_key = {f.metadata.get('key', f.name): f.name for f in fields(self)}
        return [
            key for key in self._required
            if _is_blank(getattr(self, by_key[key]))
        ]

    def to_document(self) -> Dict[str, Any]:
        """Returns the storable document (without id and timestamps)."""
        document = {}
        for model_field in fields(self):
            if model_field.metadata.get('readonly'):
                continue
            key = model_field.metadata.get('key', model_field.name)
            document[key] = self._encode_value(
                model_field.name, getattr(self, model_field.name)
            )
        return document

    def to_json(self) -> Dict[str, Any]:
        """Returns a JSON-ready dictionary including id and timestamps."""
        result = {}
        for model_field in fields(self):
            key = model_field.metadata.get('key', model_field.name)
            value = self._encode_value(
                model_field.name, getattr(self, model_field.name)
            )
            if isinstance(value, datetime):
                value = value.isoformat()
            result[key] = value
        return result


def _decode_int(name: str, value: Any) -> int:
    """Decodes an integer field."""
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {name}: {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid {name}: {value!r}") from e
    if not number.is_integer():
        raise ValidationError(f"Invalid {name}: {value!r}")
    return int(number)


@dataclass(frozen=True)
class CommentaryDefinition(DocumentModel):
    """A commentary track a grantha allows.

    Attributes:
        definition_id: Stable id, used to detect renames.
        name: Commentary name, matched by Commentary.commentary_name.
        author: Author of the commentary.
        order: Sibling sort position.
    """

    definition_id: Optional[str] = _key('_id')
    name: str = _key('name', '')
    author: Optional[str] = _key('author')
    order: int = _key('order', 0)

    _required: ClassVar[Tuple[str, ...]] = ('name',)
    _int_fields: ClassVar[Tuple[str, ...]] = ('order',)


@dataclass(frozen=True)
class Grantha(DocumentModel):
    """A text work and its presentation metadata.

    Attributes:
        grantha_id: Document id.
        title: Title in the original language.
        available_commentaries: Declared commentary tracks.
        total_chapters: Number of distinct chapters.
        total_verses: Number of verses.
    """

    grantha_id: Optional[str] = _key('_id', readonly=True)
    title: str = _key('title', '')
    title_english: Optional[str] = _key('titleEnglish')
    author: Optional[str] = _key('author')
    author_english: Optional[str] = _key('authorEnglish')
    description: Optional[str] = _key('description')
    language: str = _key('language', 'Sanskrit')
    category: str = _key('category', 'Other')
    status: str = _key('status', 'draft')
    chapter_label: str = _key('chapterLabel', 'अध्यायः')
    verse_label: str = _key('verseLabel', 'श्लोकः')
    chapter_label_english: str = _key('chapterLabelEnglish', 'Chapter')
    verse_label_english: str = _key('verseLabelEnglish', 'Verse')
    available_commentaries: List[CommentaryDefinition] = _list_key(
        'availableCommentaries'
    )
    total_chapters: int = _key('totalChapters', 0)
    total_verses: int = _key('totalVerses', 0)
    created_at: Optional[datetime] = _key('createdAt', readonly=True)
    updated_at: Optional[datetime] = _key('updatedAt', readonly=True)

    _required: ClassVar[Tuple[str, ...]] = ('title',)
    _int_fields: ClassVar[Tuple[str, ...]] = ('total_chapters', 'total_verses')

    @classmethod
    def _decode_value(cls, name: str, value: Any) -> Any:
        if name == 'available_commentaries':
            return _decode_definitions(value)
        return super()._decode_value(name, value)

    def _encode_value(self, name: str, value: Any) -> Any:
        if name == 'available_commentaries':
            return [definition.to_document() for definition in value]
        return value

    def validate(self) -> None:
        super().validate()
        if self.category not in GRANTHA_CATEGORIES:
            raise ValidationError(
                f"Invalid category '{self.category}'. "
                f"Valid: {', '.join(GRANTHA_CATEGORIES)}"
            )
        if self.status not in GRANTHA_STATUSES:
            raise ValidationError(
                f"Invalid status '{self.status}'. "
                f"Valid: {', '.join(GRANTHA_STATUSES)}"
            )
        for definition in self.available_commentaries:
            definition.validate()

    def commentary_order_map(self) -> Dict[str, int]:
        """Returns declared order by commentary name."""
        order: Dict[str, int] = {}
        for definition in self.available_commentaries:
            order.setdefault(definition.name, definition.order)
        return order

    def allows_commentary(self, commentary_name: str) -> bool:
        """Returns True if the name is declared, or nothing is declared."""
        if not self.available_commentaries:
            return True
        return commentary_name in self.commentary_order_map()

    @property
    def display_title(self) -> str:
        """Returns the English title, falling back to the original."""
        return self.title_english or self.title


def _decode_definitions(value: Any) -> List[CommentaryDefinition]:
    """Decodes the availableCommentaries list."""
    if not isinstance(value, list):
        raise ValidationError('availableCommentaries must be a list')
    definitions = []
    for item in value:
        if not isinstance(item, Mapping):
            raise ValidationError(
                'availableCommentaries entries must be objects'
            )
        definitions.append(CommentaryDefinition.from_document(item))
    return definitions


@dataclass(frozen=True)
class Verse(DocumentModel):
    """A verse (moolam) of a grantha.

    Attributes:
        verse_id: Document id.
        grantha_id: Owning grantha, fixed at creation.
        chapter_number: Chapter number (int or lettered string).
        verse_number: Verse number (int or lettered string like "12a").
        verse_text: Verse text as an HTML fragment.
    """

    verse_id: Optional[str] = _key('_id', readonly=True)
    grantha_id: Optional[str] = _key('granthaId')
    chapter_number: Optional[VerseNumber] = _key('chapterNumber')
    verse_number: Optional[VerseNumber] = _key('verseNumber')
    verse_text: str = _key('verseText', '')
    created_at: Optional[datetime] = _key('createdAt', readonly=True)
    updated_at: Optional[datetime] = _key('updatedAt', readonly=True)

    _required: ClassVar[Tuple[str, ...]] = (
        'granthaId', 'chapterNumber', 'verseNumber'
    )

    @classmethod
    def _decode_value(cls, name: str, value: Any) -> Any:
        if name == 'chapter_number':
            return normalize_verse_number(value, 'chapterNumber')
        if name == 'verse_number':
            return normalize_verse_number(value, 'verseNumber')
        return super()._decode_value(name, value)

    @property
    def ref(self) -> str:
        """Returns a "chapter.verse" reference."""
        return f"{self.chapter_number}.{self.verse_number}"


@dataclass(frozen=True)
class Commentary(DocumentModel):
    """A node of a verse's commentary forest.

    Attributes:
        commentary_id: Document id.
        grantha_id: Owning grantha, derived from the verse.
        verse_id: Owning verse.
        commentary_name: Commentary track name.
        commentator: Author of this commentary.
        commentary_text: HTML fragment.
        parent_commentary_id: Parent node on the same verse, or None.
        level: Depth in the forest, derived from the parent (root = 0).
    """

    commentary_id: Optional[str] = _key('_id', readonly=True)
    grantha_id: Optional[str] = _key('granthaId')
    verse_id: Optional[str] = _key('verseId')
    commentary_name: str = _key('commentaryName', '')
    commentator: Optional[str] = _key('commentator')
    commentary_text: str = _key('commentaryText', '')
    parent_commentary_id: Optional[str] = _key('parentCommentaryId')
    level: int = _key('level', 0)
    created_at: Optional[datetime] = _key('createdAt', readonly=True)
    updated_at: Optional[datetime] = _key('updatedAt', readonly=True)

    _required: ClassVar[Tuple[str, ...]] = ('verseId', 'commentaryName')
    _int_fields: ClassVar[Tuple[str, ...]] = ('level',)

    def validate(self) -> None:
        super().validate()
        if self.level < 0:
            raise ValidationError(f"Invalid level: {self.level}")

    @property
    def is_root(self) -> bool:
        """Returns True if the commentary has no parent."""
        return self.parent_commentary_id is None


@dataclass(frozen=True)
class Suggestion(DocumentModel):
    """A visitor's correction proposal awaiting moderation."""

    suggestion_id: Optional[str] = _key('_id', readonly=True)
    grantha_id: Optional[str] = _key('granthaId')
    verse_id: Optional[str] = _key('verseId')
    commentary_id: Optional[str] = _key('commentaryId')
    suggestion_type: Optional[str] = _key('suggestionType')
    original_text: Optional[str] = _key('originalText')
    suggested_text: Optional[str] = _key('suggestedText')
    reason: str = _key('reason', '')
    status: str = _key('status', 'pending')
    submitted_by: str = _key('submittedBy', 'Anonymous')
    created_at: Optional[datetime] = _key('createdAt', readonly=True)
    updated_at: Optional[datetime] = _key('updatedAt', readonly=True)

    _required: ClassVar[Tuple[str, ...]] = (
        'granthaId', 'verseId', 'suggestionType', 'originalText',
        'suggestedText',
    )

    def validate(self) -> None:
        super().validate()
        if self.suggestion_type not in SUGGESTION_TYPES:
            raise ValidationError(
                f"Invalid suggestionType '{self.suggestion_type}'. "
                f"Valid: {', '.join(SUGGESTION_TYPES)}"
            )
        if self.status not in SUGGESTION_STATUSES:
            raise ValidationError(f"Invalid status '{self.status}'")

    @property
    def is_pending(self) -> bool:
        """Returns True while the suggestion awaits a decision."""
        return self.status == 'pending'


@dataclass(frozen=True)
class AdminAccount(DocumentModel):
    """An administrator login."""

    admin_id: Optional[str] = _key('_id', readonly=True)
    username: str = _key('username', '')
    password_hash: str = _key('passwordHash', '')
    created_at: Optional[datetime] = _key('createdAt', readonly=True)
    updated_at: Optional[datetime] = _key('updatedAt', readonly=True)

    _required: ClassVar[Tuple[str, ...]] = ('username', 'passwordHash')

    def to_json(self) -> Dict[str, Any]:
        result = super().to_json()
        del result['passwordHash']
        return result
