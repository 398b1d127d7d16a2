"""
Debt Ledger

Tracks informal debts between the user and people or institutions.
Entities and debt items live under separate store keys; deleting an
entity deletes its debts too.
"""

import datetime
from decimal import Decimal
from typing import Optional, Sequence, Union

from pydantic import BaseModel, ValidationError

from finance_tracker.audit import AuditLogger
from finance_tracker.config import get_settings
from finance_tracker.models.audit import AuditEventBuilder
from finance_tracker.models.debt import DebtDirection, DebtEntity, DebtItem, EntityType
from finance_tracker.services.storage import (
    CorruptValueError,
    KeyValueStore,
    StoreError,
)
from finance_tracker.services.storage.keys import DEBT_ENTITIES_KEY, DEBT_ITEMS_KEY


class DebtLedger:
    """Debt entities and their debts. Call load() once before use."""

    def __init__(
        self,
        store: KeyValueStore,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit = audit_logger or AuditLogger()
        self._entities: tuple[DebtEntity, ...] = ()
        self._debts: tuple[DebtItem, ...] = ()

    @property
    def entities(self) -> tuple[DebtEntity, ...]:
        return self._entities

    @property
    def debts(self) -> tuple[DebtItem, ...]:
        return self._debts

    def debts_for(self, entity_id: str) -> list[DebtItem]:
        return [d for d in self._debts if d.entity_id == entity_id]

    def net_balance(self, entity_id: str) -> Decimal:
        """Positive: the entity owes the user. Negative: the user owes the entity."""
        return sum(
            (d.signed_amount for d in self._debts if d.entity_id == entity_id),
            Decimal("0"),
        )

    async def load(self) -> None:
        try:
            raw_entities = await self._store.get_json(DEBT_ENTITIES_KEY, default=[])
            raw_debts = await self._store.get_json(DEBT_ITEMS_KEY, default=[])
            self._entities = tuple(DebtEntity.model_validate(e) for e in raw_entities)
            self._debts = tuple(DebtItem.model_validate(d) for d in raw_debts)
        except ValidationError as e:
            error = CorruptValueError(f"Stored debts are invalid: {e}")
            await self._audit.log_storage_error("load_debts", error)
            raise error from e
        except StoreError as e:
            await self._audit.log_storage_error("load_debts", e)
            raise

    # -------------------------------------------------------------------------
    # Entities
    # -------------------------------------------------------------------------

    async def add_entity(
        self,
        name: str,
        type: Union[EntityType, str] = EntityType.PERSON,
    ) -> DebtEntity:
        entity = DebtEntity(name=name, type=EntityType(type))
        entities = self._entities + (entity,)
        await self._write(DEBT_ENTITIES_KEY, entities, "add_debt_entity")
        self._entities = entities

        await self._audit.log(AuditEventBuilder.debt_entity_changed(entity.id, "added"))
        return entity

    async def update_entity(self, entity_id: str, name: str) -> None:
        entities = tuple(
            e.model_copy(update={"name": DebtEntity(name=name).name})
            if e.id == entity_id else e
            for e in self._entities
        )
        await self._write(DEBT_ENTITIES_KEY, entities, "update_debt_entity")
        self._entities = entities

        await self._audit.log(AuditEventBuilder.debt_entity_changed(entity_id, "renamed"))

    async def delete_entity(self, entity_id: str) -> None:
        """Delete an entity and all of its debts."""
        entities = tuple(e for e in self._entities if e.id != entity_id)
        debts = tuple(d for d in self._debts if d.entity_id != entity_id)

        await self._write(DEBT_ENTITIES_KEY, entities, "delete_debt_entity")
        self._entities = entities
        await self._write(DEBT_ITEMS_KEY, debts, "delete_debt_entity")
        self._debts = debts

        await self._audit.log(AuditEventBuilder.debt_entity_changed(entity_id, "deleted"))

    # -------------------------------------------------------------------------
    # Debts
    # -------------------------------------------------------------------------

    async def add_debt(
        self,
        entity_id: str,
        amount: Union[Decimal, int, str],
        description: str,
        direction: Union[DebtDirection, str],
        date: Optional[datetime.date] = None,
        currency: Optional[str] = None,
    ) -> DebtItem:
        """Record a new debt (shown first)."""
        debt = DebtItem(
            entity_id=entity_id,
            amount=Decimal(str(amount)),
            description=description,
            direction=DebtDirection(direction),
            date=date or datetime.date.today(),
            currency=currency or get_settings().app.default_currency,
        )
        debts = (debt,) + self._debts
        await self._write(DEBT_ITEMS_KEY, debts, "add_debt")
        self._debts = debts

        await self._audit.log(AuditEventBuilder.debt_changed(debt.id, "added"))
        return debt

    async def update_debt(self, debt_id: str, **changes) -> None:
        """Partially update a debt; unknown ids are ignored."""
        updated = []
        for debt in self._debts:
            if debt.id == debt_id:
                # Re-validate so amount/direction/date keep their types
                debt = DebtItem.model_validate({**debt.model_dump(), **changes, "id": debt_id})
            updated.append(debt)
        debts = tuple(updated)

        await self._write(DEBT_ITEMS_KEY, debts, "update_debt")
        self._debts = debts

        await self._audit.log(AuditEventBuilder.debt_changed(debt_id, "updated"))

    async def delete_debt(self, debt_id: str) -> None:
        debts = tuple(d for d in self._debts if d.id != debt_id)
        await self._write(DEBT_ITEMS_KEY, debts, "delete_debt")
        self._debts = debts

        await self._audit.log(AuditEventBuilder.debt_changed(debt_id, "deleted"))

    async def _write(self, key: str, items: Sequence[BaseModel], operation: str) -> None:
        try:
            await self._store.set_json(key, [i.model_dump(mode="json") for i in items])
        except StoreError as e:
            await self._audit.log_storage_error(operation, e)
            raise
