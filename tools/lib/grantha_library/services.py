"""Wiring of the library services around one document store."""

from dataclasses import dataclass
from typing import Optional

from grantha_library.admin import AdminAccounts
from grantha_library.commentary_tree import CommentaryTree
from grantha_library.config import LibraryConfig
from grantha_library.content_service import GranthaContentService
from grantha_library.search import SearchService
from grantha_library.store import DocumentStore
from grantha_library.suggestions import SuggestionWorkflow
from grantha_library.transfer import GranthaTransfer


@dataclass
class LibraryServices:
    """The services an entry point needs, sharing one store."""

    store: DocumentStore
    tree: CommentaryTree
    content: GranthaContentService
    transfer: GranthaTransfer
    suggestions: SuggestionWorkflow
    search: SearchService
    admins: AdminAccounts

    @classmethod
    def create(
        cls,
        store: DocumentStore,
        config: Optional[LibraryConfig] = None
    ) -> 'LibraryServices':
        """Builds all services over a store."""
        config = config or LibraryConfig()
        tree = CommentaryTree(store)
        content = GranthaContentService(
            store, tree,
            page_size=config.page_size,
            max_page_size=config.max_page_size,
        )
        return cls(
            store=store,
            tree=tree,
            content=content,
            transfer=GranthaTransfer(content, tree),
            suggestions=SuggestionWorkflow(store),
            search=SearchService(
                store,
                limits=config.search_limits,
                min_length=config.min_search_length,
            ),
            admins=AdminAccounts(store),
        )
