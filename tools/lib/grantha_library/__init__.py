"""Sanskrit grantha library.

This library stores granthas (text works), their verses and the nested
commentaries on each verse, and serves them over a JSON API with search,
a suggestion moderation queue and admin editing.

Typical usage example:

    from grantha_library import DocumentStore, LibraryServices

    store = DocumentStore.connect('mongodb://localhost:27017', 'library')
    services = LibraryServices.create(store)
    forest = services.tree.build_verse_hierarchy(verse_id)
"""

# Public API exports
__all__ = [
    # Exceptions
    'GranthaLibraryError',
    'NotFoundError',
    'GranthaNotFoundError',
    'VerseNotFoundError',
    'CommentaryNotFoundError',
    'SuggestionNotFoundError',
    'ValidationError',
    'DuplicateGranthaError',
    'InvalidTransitionError',
    'CommentaryCycleError',
    'SchemaValidationError',
    'AuthenticationError',
    # Models
    'CommentaryDefinition',
    'Grantha',
    'Verse',
    'Commentary',
    'Suggestion',
    'AdminAccount',
    # Storage
    'DocumentStore',
    # Services
    'CommentaryTree',
    'GranthaContentService',
    'GranthaTransfer',
    'SuggestionWorkflow',
    'SearchService',
    'AdminAccounts',
    'LibraryServices',
    # Configuration
    'LibraryConfig',
    'load_config',
]

from grantha_library.exceptions import (
    GranthaLibraryError,
    NotFoundError,
    GranthaNotFoundError,
    VerseNotFoundError,
    CommentaryNotFoundError,
    SuggestionNotFoundError,
    ValidationError,
    DuplicateGranthaError,
    InvalidTransitionError,
    CommentaryCycleError,
    SchemaValidationError,
    AuthenticationError,
)

from grantha_library.models import (
    CommentaryDefinition,
    Grantha,
    Verse,
    Commentary,
    Suggestion,
    AdminAccount,
)

from grantha_library.store import DocumentStore
from grantha_library.commentary_tree import CommentaryTree
from grantha_library.content_service import GranthaContentService
from grantha_library.transfer import GranthaTransfer
from grantha_library.suggestions import SuggestionWorkflow
from grantha_library.search import SearchService
from grantha_library.admin import AdminAccounts
from grantha_library.services import LibraryServices
from grantha_library.config import LibraryConfig, load_config
