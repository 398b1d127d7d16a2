"""
Category Registry

Owns the ordered category list (insertion order = display order) and
the transaction -> category assignment map.

DESIGN DECISION: Copy, persist, then swap.
Every mutation computes the next state from a snapshot of the current
one, writes it to the store, and only then replaces the visible state.
Readers never observe a half-applied change, and a failed write leaves
the in-memory state untouched.

There is no locking across mutations. Two concurrent writers of the
assignment map are last-write-wins on the whole map.
"""

from types import MappingProxyType
from typing import Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from finance_tracker.audit import AuditLogger
from finance_tracker.ids import CATEGORY_PREFIX, generate_local_id
from finance_tracker.models.audit import AuditEventBuilder
from finance_tracker.models.category import Category, CategoryDraft
from finance_tracker.services.storage import (
    CorruptValueError,
    KeyValueStore,
    StoreError,
)
from finance_tracker.services.storage.keys import (
    CATEGORIES_KEY,
    TRANSACTION_CATEGORY_MAP_KEY,
)


class UnknownCategoryError(Exception):
    """Assignment to a category id that does not exist."""

    def __init__(self, category_id: str):
        self.category_id = category_id
        super().__init__(f"Unknown category id: {category_id}")


class CategoryRegistry:
    """
    Category catalog plus assignment map.

    Call load() once before use.
    """

    def __init__(
        self,
        store: KeyValueStore,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit = audit_logger or AuditLogger()
        self._categories: tuple[Category, ...] = ()
        self._assignments: dict[str, str] = {}

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    @property
    def categories(self) -> tuple[Category, ...]:
        return self._categories

    @property
    def assignments(self) -> Mapping[str, str]:
        """Read-only view of transaction identity -> category id."""
        return MappingProxyType(self._assignments)

    def get(self, category_id: str) -> Optional[Category]:
        for category in self._categories:
            if category.id == category_id:
                return category
        return None

    def find_by_name(self, name: str) -> Optional[Category]:
        """First category whose name matches case-insensitively."""
        for category in self._categories:
            if category.matches_name(name):
                return category
        return None

    def resolve(self, transaction_identity: str) -> Optional[Category]:
        """Category assigned to a transaction, if any."""
        category_id = self._assignments.get(transaction_identity)
        return self.get(category_id) if category_id else None

    async def load(self) -> None:
        """Load categories and assignments from the store."""
        try:
            raw_categories = await self._store.get_json(CATEGORIES_KEY, default=[])
            raw_map = await self._store.get_json(TRANSACTION_CATEGORY_MAP_KEY, default={})
            if not isinstance(raw_categories, list) or not isinstance(raw_map, dict):
                raise CorruptValueError("Stored categories have the wrong shape")
            categories = tuple(Category.model_validate(c) for c in raw_categories)
        except ValidationError as e:
            error = CorruptValueError(f"Stored categories are invalid: {e}")
            await self._audit.log_storage_error("load_categories", error)
            raise error from e
        except StoreError as e:
            await self._audit.log_storage_error("load_categories", e)
            raise

        self._categories = categories
        self._assignments = {str(k): str(v) for k, v in raw_map.items() if v}

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def create(self, name: str, color: str) -> str:
        """
        Create a category and return its id.

        Raises:
            ValueError: If the name is empty
        """
        draft = CategoryDraft(name=name, color=color)
        category = Category(
            id=generate_local_id(CATEGORY_PREFIX),
            name=draft.name,
            color=draft.color,
        )
        next_categories = self._categories + (category,)
        await self._persist_categories(next_categories, "create_category")
        self._categories = next_categories

        await self._audit.log(AuditEventBuilder.category_created(category.id, category.name))
        return category.id

    async def bulk_create(
        self,
        entries: Sequence[Union[CategoryDraft, dict]],
    ) -> list[Category]:
        """
        Create several categories in one state transition.

        Names are not deduplicated; two entries with the same name
        produce two categories.
        """
        drafts = [
            e if isinstance(e, CategoryDraft) else CategoryDraft.model_validate(e)
            for e in entries
        ]
        if not drafts:
            return []

        created = []
        taken = {c.id for c in self._categories}
        for draft in drafts:
            category_id = generate_local_id(CATEGORY_PREFIX, suffix_lengths=(4, 2))
            while category_id in taken:
                category_id = generate_local_id(CATEGORY_PREFIX, suffix_lengths=(4, 2))
            taken.add(category_id)
            created.append(Category(id=category_id, name=draft.name, color=draft.color))

        next_categories = self._categories + tuple(created)
        await self._persist_categories(next_categories, "bulk_create_categories")
        self._categories = next_categories

        for category in created:
            await self._audit.log(
                AuditEventBuilder.category_created(category.id, category.name)
            )
        return created

    async def update(
        self,
        category_id: str,
        name: Optional[str] = None,
        color: Optional[str] = None,
    ) -> None:
        """Rename and/or recolor a category. Unknown ids are ignored."""
        changes = {}
        if name is not None:
            changes["name"] = CategoryDraft(name=name).name
        if color is not None:
            changes["color"] = color

        current = self.get(category_id)
        if current is None or not changes:
            return

        next_categories = tuple(
            c.model_copy(update=changes) if c.id == category_id else c
            for c in self._categories
        )
        await self._persist_categories(next_categories, "update_category")
        self._categories = next_categories

        await self._audit.log(AuditEventBuilder.category_updated(category_id, changes))

    async def delete(self, category_id: str) -> None:
        """Delete a category together with every assignment pointing at it."""
        next_categories = tuple(c for c in self._categories if c.id != category_id)
        next_assignments = {
            tx_id: cat_id
            for tx_id, cat_id in self._assignments.items()
            if cat_id != category_id
        }
        removed = len(self._assignments) - len(next_assignments)

        # Dangling map entries are inert, so the list is written first.
        await self._persist_categories(next_categories, "delete_category")
        self._categories = next_categories
        if removed:
            await self._persist_assignments(next_assignments, "delete_category")
            self._assignments = next_assignments

        await self._audit.log(AuditEventBuilder.category_deleted(category_id, removed))

    # -------------------------------------------------------------------------
    # Assignments
    # -------------------------------------------------------------------------

    async def assign(
        self,
        transaction_identity: str,
        category_id: Optional[str],
    ) -> None:
        """Assign a category to a transaction; None removes the assignment."""
        await self.bulk_assign({transaction_identity: category_id})

    async def bulk_assign(self, mapping: Mapping[str, Optional[str]]) -> int:
        """
        Apply many assignments against one snapshot of the map.

        Entries that do not change anything are skipped; the map is
        written once, and only if something changed.

        Returns:
            Number of assignments that changed

        Raises:
            UnknownCategoryError: If a category id does not exist
        """
        known_ids = {c.id for c in self._categories}
        for category_id in mapping.values():
            if category_id is not None and category_id not in known_ids:
                raise UnknownCategoryError(category_id)

        next_assignments = dict(self._assignments)
        changed = 0
        for tx_id, category_id in mapping.items():
            if next_assignments.get(tx_id) == category_id:
                continue
            if category_id is None:
                next_assignments.pop(tx_id, None)
            else:
                next_assignments[tx_id] = category_id
            changed += 1

        if not changed:
            return 0

        await self._persist_assignments(next_assignments, "assign_categories")
        self._assignments = next_assignments

        await self._audit.log(
            AuditEventBuilder.assignments_written(changed, len(mapping))
        )
        return changed

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    async def _persist_categories(
        self,
        categories: Sequence[Category],
        operation: str,
    ) -> None:
        try:
            await self._store.set_json(
                CATEGORIES_KEY,
                [c.model_dump(mode="json") for c in categories],
            )
        except StoreError as e:
            await self._audit.log_storage_error(operation, e)
            raise

    async def _persist_assignments(
        self,
        assignments: Mapping[str, str],
        operation: str,
    ) -> None:
        try:
            await self._store.set_json(TRANSACTION_CATEGORY_MAP_KEY, dict(assignments))
        except StoreError as e:
            await self._audit.log_storage_error(operation, e)
            raise
