"""Commentary tree management.

Commentaries of a verse form a forest: every node optionally names a
parent commentary on the same verse. Nodes are stored flat and only
reference their parent by id; this module keeps the derived level field
consistent with those links and provides the hierarchy-aware read, write,
delete, export and import operations.

Typical usage example:

    tree = CommentaryTree(store)
    root = tree.create({'verseId': verse_id, 'commentaryName': 'Bhashya'})
    tree.create({'verseId': verse_id, 'commentaryName': 'Tika',
                 'parentCommentaryId': root.commentary_id})
    forest = tree.build_verse_hierarchy(verse_id)
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from grantha_library._internal.hierarchy_builder import build_commentary_forest
from grantha_library.exceptions import (
    CommentaryCycleError,
    CommentaryNotFoundError,
    ValidationError,
    VerseNotFoundError,
)
from grantha_library.models import Commentary, Grantha, Verse
from grantha_library.store import (
    COMMENTARIES,
    GRANTHAS,
    VERSES,
    DocumentStore,
)

logger = logging.getLogger(__name__)

# Creation order breaks ties between nodes of the same level.
_CREATION_ORDER = [('level', 1), ('createdAt', 1), ('_id', 1)]

PARENT_KEY = 'parentCommentaryId'


class CommentaryTree:
    """Maintains the commentary forest of each verse."""

    def __init__(self, store: DocumentStore) -> None:
        """Initializes the manager.

        Args:
            store: Document store holding the commentaries collection.
        """
        self._store = store

    # Reads

    def get(self, commentary_id: str) -> Commentary:
        """Returns a commentary by id.

        Raises:
            CommentaryNotFoundError: If the id does not resolve.
        """
        commentary = self._find(commentary_id)
        if commentary is None:
            raise CommentaryNotFoundError(
                f"Commentary '{commentary_id}' not found"
            )
        return commentary

    def get_with_parent(self, commentary_id: str) -> Dict[str, Any]:
        """Returns a commentary with its parent inlined as parentCommentary."""
        commentary = self.get(commentary_id)
        result = commentary.to_json()
        parent = None if commentary.is_root else self._find(
            commentary.parent_commentary_id
        )
        result['parentCommentary'] = parent.to_json() if parent else None
        return result

    def list_for_verse(self, verse_id: str) -> List[Commentary]:
        """Returns all commentaries of a verse in creation order."""
        documents = self._store.find(
            COMMENTARIES, {'verseId': verse_id},
            sort=[('createdAt', 1), ('_id', 1)]
        )
        return [Commentary.from_document(d) for d in documents]

    def list_for_grantha(self, grantha_id: str) -> List[Dict[str, Any]]:
        """Returns a grantha's commentaries as a flat list.

        Each entry has its verse populated under verseId. Ordered by level,
        then creation time.
        """
        documents = self._store.find(
            COMMENTARIES, {'granthaId': grantha_id}, sort=_CREATION_ORDER
        )
        results = []
        for document in self._store.populate(documents, 'verseId', VERSES):
            verse = document.pop('verseId')
            entry = Commentary.from_document(document).to_json()
            entry['verseId'] = Verse.from_document(verse).to_json() if verse else None
            results.append(entry)
        return results

    def build_verse_hierarchy(self, verse_id: str) -> List[Dict[str, Any]]:
        """Returns the commentary forest of a verse.

        Siblings follow the owning grantha's declared commentary order.

        Args:
            verse_id: Verse id.

        Returns:
            Root nodes; nested children under subCommentaries.
        """
        commentaries = self.list_for_verse(verse_id)
        if not commentaries:
            return []
        grantha = self._find_grantha(commentaries[0].grantha_id)
        order = grantha.commentary_order_map() if grantha else None
        return build_commentary_forest(commentaries, order)

    # Level computation

    def compute_level(self, parent_id: Optional[str]) -> int:
        """Returns the level of a node placed under parent_id.

        Args:
            parent_id: Parent commentary id, or None.

        Returns:
            0 without a parent or when the parent does not resolve,
            otherwise the parent's level plus one.
        """
        return _level_below(self._find(parent_id))

    # Writes

    def create(self, payload: Mapping[str, Any]) -> Commentary:
        """Creates a commentary.

        The level is always derived from the parent's current level; a
        level in the payload is ignored. A parent that does not resolve on
        the same verse is dropped and the node becomes a root. The name
        must be one the owning grantha declares, if it declares any.

        Args:
            payload: Commentary fields (camelCase).

        Returns:
            The persisted commentary.

        Raises:
            ValidationError: If required fields are missing or the name is
                not declared by the grantha.
            VerseNotFoundError: If verseId does not resolve.
        """
        fields = dict(payload)
        fields.pop('level', None)
        commentary = Commentary.from_payload(fields)
        verse = self._get_verse(commentary.verse_id)
        self._check_declared(verse.grantha_id, commentary.commentary_name)
        parent = self._resolve_parent(
            commentary.parent_commentary_id, verse.verse_id
        )
        document = commentary.to_document()
        document.update({
            'granthaId': verse.grantha_id,
            'verseId': verse.verse_id,
            PARENT_KEY: parent.commentary_id if parent else None,
            'level': _level_below(parent),
        })
        return Commentary.from_document(self._store.insert(COMMENTARIES, document))

    def update(self, commentary_id: str, payload: Mapping[str, Any]) -> Commentary:
        """Updates a commentary and re-derives its level.

        The parent is only changed when the payload carries
        parentCommentaryId. When the level changes, the whole subtree is
        re-levelled. Ownership (verse and grantha) cannot be changed.

        Raises:
            CommentaryNotFoundError: If the id does not resolve.
            CommentaryCycleError: If the new parent is the node itself or
                one of its descendants.
            ValidationError: If the merged commentary is invalid or a new
                name is not declared by the grantha.
        """
        current = self.get(commentary_id)
        changes = dict(payload)
        changes.pop('verseId', None)
        changes.pop('granthaId', None)
        new_name = changes.get('commentaryName', current.commentary_name)
        if new_name != current.commentary_name:
            self._check_declared(current.grantha_id, new_name)
        parent_id = changes.get(PARENT_KEY, current.parent_commentary_id)
        if parent_id is not None:
            self._check_not_descendant(current.commentary_id, parent_id)
        parent = self._resolve_parent(parent_id, current.verse_id)
        changes[PARENT_KEY] = parent.commentary_id if parent else None
        changes['level'] = _level_below(parent)

        updated = current.updated(changes)
        stored = self._store.update_by_id(
            COMMENTARIES, commentary_id, updated.to_document()
        )
        if stored is None:
            raise CommentaryNotFoundError(
                f"Commentary '{commentary_id}' not found"
            )
        if updated.level != current.level:
            fixed = self.refresh_subtree_levels(commentary_id, updated.level)
            logger.debug(
                "Re-levelled %d descendants of commentary %s",
                fixed, commentary_id,
            )
        return Commentary.from_document(stored)

    def refresh_subtree_levels(self, commentary_id: str, level: int) -> int:
        """Recomputes levels below a node whose level is known.

        Args:
            commentary_id: Node whose descendants are re-levelled.
            level: Current level of that node.

        Returns:
            Number of descendants whose stored level changed.
        """
        changed = 0
        for child in self._children(commentary_id):
            if child.level != level + 1:
                self._store.update_by_id(
                    COMMENTARIES, child.commentary_id, {'level': level + 1}
                )
                changed += 1
            changed += self.refresh_subtree_levels(child.commentary_id, level + 1)
        return changed

    def repair_levels(self, grantha_id: Optional[str] = None) -> int:
        """Recomputes every stored level top-down from the roots.

        Args:
            grantha_id: Restrict the repair to one grantha.

        Returns:
            Number of commentaries whose level changed.
        """
        query: Dict[str, Any] = {PARENT_KEY: None}
        if grantha_id is not None:
            query['granthaId'] = grantha_id
        changed = 0
        for document in self._store.find(COMMENTARIES, query):
            root = Commentary.from_document(document)
            if root.level != 0:
                self._store.update_by_id(COMMENTARIES, root.commentary_id, {'level': 0})
                changed += 1
            changed += self.refresh_subtree_levels(root.commentary_id, 0)
        logger.info("Repaired %d commentary levels", changed)
        return changed

    # Deletes

    def delete_cascade(self, commentary_id: str) -> int:
        """Deletes a commentary after recursively deleting its descendants.

        Children are removed before their parent, so no node is ever left
        referencing a deleted ancestor. Unknown ids are a no-op.

        Args:
            commentary_id: Root of the subtree to delete.

        Returns:
            Number of deleted commentaries.
        """
        deleted = 0
        for child in self._children(commentary_id):
            deleted += self.delete_cascade(child.commentary_id)
        if self._store.delete_by_id(COMMENTARIES, commentary_id):
            deleted += 1
        return deleted

    def delete_for_verse(self, verse_id: str) -> int:
        """Deletes every commentary of a verse.

        Returns:
            Number of deleted commentaries.
        """
        return self._store.delete_many(COMMENTARIES, {'verseId': verse_id})

    # Export and import

    def export_flatten(self, grantha_id: str) -> List[Dict[str, Any]]:
        """Returns a grantha's commentaries as flat export records.

        Records carry their own id and their parent's id as strings and are
        ordered by level, then creation time.
        """
        documents = self._store.find(
            COMMENTARIES, {'granthaId': grantha_id}, sort=_CREATION_ORDER
        )
        records = []
        for document in documents:
            commentary = Commentary.from_document(document)
            records.append({
                '_id': commentary.commentary_id,
                'verseId': commentary.verse_id,
                'commentaryName': commentary.commentary_name,
                'commentator': commentary.commentator,
                'commentaryText': commentary.commentary_text,
                'level': commentary.level,
                PARENT_KEY: commentary.parent_commentary_id,
            })
        return records

    def import_remap(
        self,
        grantha_id: str,
        verse_id_map: Mapping[str, str],
        records: Iterable[Mapping[str, Any]]
    ) -> Dict[str, str]:
        """Imports commentary records, translating their ids.

        Records reference each other by ids from another database, and a
        child may come before its parent. All nodes are therefore created
        as roots first, keeping an old-id to new-id table, and parent links
        are patched in a second pass. Levels are derived afterwards.

        Args:
            grantha_id: Id of the grantha receiving the commentaries.
            verse_id_map: Old verse id to new verse id.
            records: Commentary records with old _id, verseId and
                parentCommentaryId.

        Returns:
            Old commentary id to new commentary id.
        """
        id_map: Dict[str, str] = {}
        created = self._import_nodes(grantha_id, verse_id_map, records, id_map)
        parents = self._link_imported_parents(created, id_map)
        self._level_imported_nodes(created, parents)
        logger.info(
            "Imported %d commentaries (%d linked to a parent)",
            len(created), len(parents),
        )
        return id_map

    def _import_nodes(
        self,
        grantha_id: str,
        verse_id_map: Mapping[str, str],
        records: Iterable[Mapping[str, Any]],
        id_map: Dict[str, str]
    ) -> List[Tuple[Mapping[str, Any], Commentary]]:
        """First pass: creates every record as a root node.

        Undeclared commentary names are kept and logged.
        """
        grantha = self._find_grantha(grantha_id)
        created = []
        for record in records:
            new_verse_id = verse_id_map.get(_id_string(record.get('verseId')))
            if new_verse_id is None:
                logger.warning(
                    "Skipping commentary '%s': verse %s was not imported",
                    record.get('commentaryName'), record.get('verseId'),
                )
                continue
            document = Commentary.from_payload(
                {**record, 'verseId': new_verse_id, 'level': 0}
            ).to_document()
            name = document['commentaryName']
            if grantha is not None and not grantha.allows_commentary(name):
                logger.warning(
                    "Importing commentary '%s' not declared by grantha '%s'",
                    name, grantha.title,
                )
            document.update({
                'granthaId': grantha_id,
                PARENT_KEY: None,
                'level': 0,
            })
            commentary = Commentary.from_document(
                self._store.insert(COMMENTARIES, document)
            )
            old_id = _id_string(record.get('_id'))
            if old_id is not None:
                id_map[old_id] = commentary.commentary_id
            created.append((record, commentary))
        return created

    def _link_imported_parents(
        self,
        created: List[Tuple[Mapping[str, Any], Commentary]],
        id_map: Mapping[str, str]
    ) -> Dict[str, str]:
        """Second pass: patches parent links using the id table."""
        verse_of = {c.commentary_id: c.verse_id for _, c in created}
        parents: Dict[str, str] = {}
        for record, commentary in created:
            old_parent_id = _id_string(record.get(PARENT_KEY))
            if old_parent_id is None:
                continue
            new_parent_id = id_map.get(old_parent_id)
            if new_parent_id is None or verse_of.get(new_parent_id) != commentary.verse_id:
                logger.warning(
                    "Parent %s of commentary '%s' not found in import; "
                    "keeping it as a root",
                    old_parent_id, commentary.commentary_name,
                )
                continue
            if _creates_cycle(commentary.commentary_id, new_parent_id, parents):
                logger.warning(
                    "Parent link %s -> %s would form a cycle; keeping root",
                    commentary.commentary_id, new_parent_id,
                )
                continue
            parents[commentary.commentary_id] = new_parent_id
            self._store.update_by_id(
                COMMENTARIES, commentary.commentary_id,
                {PARENT_KEY: new_parent_id}
            )
        return parents

    def _level_imported_nodes(
        self,
        created: List[Tuple[Mapping[str, Any], Commentary]],
        parents: Mapping[str, str]
    ) -> None:
        """Stores the derived level of every linked node."""
        levels: Dict[str, int] = {}
        for _, commentary in created:
            level = _depth(commentary.commentary_id, parents, levels)
            if level:
                self._store.update_by_id(
                    COMMENTARIES, commentary.commentary_id, {'level': level}
                )

    # Helpers

    def _find(self, commentary_id: Optional[str]) -> Optional[Commentary]:
        """Returns a commentary, or None if the id does not resolve."""
        if commentary_id is None:
            return None
        document = self._store.find_by_id(COMMENTARIES, commentary_id)
        return Commentary.from_document(document) if document else None

    def _children(self, commentary_id: str) -> List[Commentary]:
        """Returns the direct children of a node."""
        documents = self._store.find(COMMENTARIES, {PARENT_KEY: commentary_id})
        return [Commentary.from_document(d) for d in documents]

    def _find_grantha(self, grantha_id: Optional[str]) -> Optional[Grantha]:
        document = self._store.find_by_id(GRANTHAS, grantha_id)
        return Grantha.from_document(document) if document else None

    def _check_declared(self, grantha_id: Optional[str], name: str) -> None:
        """Rejects a commentary name the owning grantha does not declare."""
        grantha = self._find_grantha(grantha_id)
        if grantha is not None and not grantha.allows_commentary(name):
            declared = ', '.join(grantha.commentary_order_map())
            raise ValidationError(
                f"Commentary '{name}' is not declared for this grantha. "
                f"Valid: {declared}"
            )

    def _get_verse(self, verse_id: Optional[str]) -> Verse:
        """Returns the owning verse."""
        document = self._store.find_by_id(VERSES, verse_id)
        if document is None:
            raise VerseNotFoundError(f"Verse '{verse_id}' not found")
        return Verse.from_document(document)

    def _resolve_parent(
        self,
        parent_id: Optional[str],
        verse_id: Optional[str]
    ) -> Optional[Commentary]:
        """Returns the parent if it resolves on the same verse."""
        parent = self._find(parent_id)
        if parent is None:
            if parent_id is not None:
                logger.info(
                    "Parent commentary %s not found; storing as root", parent_id
                )
            return None
        if parent.verse_id != verse_id:
            logger.info(
                "Parent commentary %s belongs to another verse; storing as root",
                parent_id,
            )
            return None
        return parent

    def _check_not_descendant(self, commentary_id: str, parent_id: str) -> None:
        """Rejects a parent that is the node itself or below it."""
        seen: Set[str] = set()
        ancestor = self._find(parent_id)
        while ancestor is not None and ancestor.commentary_id not in seen:
            if ancestor.commentary_id == commentary_id:
                raise CommentaryCycleError(
                    f"Commentary '{commentary_id}' cannot be placed under "
                    f"itself or one of its sub-commentaries"
                )
            seen.add(ancestor.commentary_id)
            ancestor = self._find(ancestor.parent_commentary_id)


def _level_below(parent: Optional[Commentary]) -> int:
    """Returns the level of a child of parent."""
    return parent.level + 1 if parent is not None else 0


def _id_string(value: Any) -> Optional[str]:
    """Normalizes an id from an import record."""
    if value is None or value == '':
        return None
    return str(value)


def _creates_cycle(
    node_id: str,
    parent_id: str,
    parents: Mapping[str, str]
) -> bool:
    """Returns True if linking node_id under parent_id closes a loop."""
    current: Optional[str] = parent_id
    while current is not None:
        if current == node_id:
            return True
        current = parents.get(current)
    return False


def _depth(node_id: str, parents: Mapping[str, str], levels: Dict[str, int]) -> int:
    """Returns the depth of a node in an acyclic parent map."""
    if node_id not in levels:
        parent_id = parents.get(node_id)
        levels[node_id] = 0 if parent_id is None else _depth(parent_id, parents, levels) + 1
    return levels[node_id]
