"""
Debt Models for Finance Tracker

Informal peer debts: who owes whom. An entity (person or institution)
owns any number of debt items; its net balance is the signed sum.
"""

import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from finance_tracker.ids import DEBT_ENTITY_PREFIX, DEBT_PREFIX, generate_local_id


class DebtDirection(str, Enum):
    """Which way the money is owed."""
    I_OWE = "I_OWE"
    OWES_ME = "OWES_ME"


class EntityType(str, Enum):
    PERSON = "person"
    INSTITUTION = "institution"


class DebtEntity(BaseModel):
    """Someone the user owes money to, or who owes the user."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=lambda: generate_local_id(DEBT_ENTITY_PREFIX)
    )
    name: str = Field(..., min_length=1, max_length=200)
    type: EntityType = EntityType.PERSON


class DebtItem(BaseModel):
    """A single debt between the user and an entity."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=lambda: generate_local_id(DEBT_PREFIX)
    )
    entity_id: str
    amount: Decimal = Field(..., ge=0)
    currency: str = "EUR"
    description: str = ""
    date: datetime.date
    direction: DebtDirection

    @property
    def signed_amount(self) -> Decimal:
        """Positive when the entity owes the user, negative when the user owes."""
        if self.direction == DebtDirection.OWES_ME:
            return self.amount
        return -self.amount
