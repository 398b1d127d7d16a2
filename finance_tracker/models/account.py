"""
Account Models for Finance Tracker

Two account sources feed one unified, render-ready list:
1. Connected accounts - materialize from a Linked Session (live balances)
2. Manual accounts - entered by the user, no live data source

DESIGN DECISION: Upstream gateway payloads are parsed into Pydantic models
at the client boundary. Unknown upstream fields are kept (extra="allow")
so nothing the bank sends is silently dropped from stored sessions.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator

from finance_tracker.ids import MANUAL_ACCOUNT_PREFIX, generate_local_id


# =============================================================================
# ENUMS
# =============================================================================

class AccountCategory(str, Enum):
    """User-facing account grouping."""
    GIRO = "Giro"
    SAVINGS = "Savings"
    STOCK = "Stock"


class SourceType(str, Enum):
    """Where a unified account comes from."""
    CONNECTED = "connected"
    MANUAL = "manual"


DEFAULT_ACCOUNT_CATEGORY = AccountCategory.GIRO

# Interbank balance-type codes most representative of a spendable balance,
# "closing available" and "expected". Matching is in list order, either code wins.
PREFERRED_BALANCE_TYPES = ("CLAV", "XPCD")


# =============================================================================
# GATEWAY PAYLOADS
# =============================================================================

class AccountIdentifier(BaseModel):
    """Account identification block as sent by the bank."""
    model_config = ConfigDict(extra="allow")

    iban: Optional[str] = None


class UpstreamAccount(BaseModel):
    """An account descriptor returned when a session is created."""
    model_config = ConfigDict(extra="allow")

    uid: str = Field(
        ...,
        min_length=1,
        description="Globally unique upstream account identifier"
    )
    account_id: Optional[AccountIdentifier] = None
    name: Optional[str] = None
    currency: Optional[str] = None
    product: Optional[str] = None
    cash_account_type: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.product or "Account"

    @property
    def iban(self) -> Optional[str]:
        return self.account_id.iban if self.account_id else None


class Bank(BaseModel):
    """A bank (ASPSP) reachable through the gateway."""
    model_config = ConfigDict(extra="allow")

    name: str
    country: str


class AuthorizationStart(BaseModel):
    """Result of starting a bank authorization flow."""
    model_config = ConfigDict(populate_by_name=True)

    redirect_url: str = Field(..., alias="url")
    authorization_id: str


class SessionData(BaseModel):
    """Result of exchanging an authorization code for a session."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    session_id: str
    accounts: list[UpstreamAccount] = Field(default_factory=list)
    bank: Bank = Field(..., alias="aspsp")


class BalanceAmount(BaseModel):
    """Monetary amount of a balance."""

    amount: Decimal
    currency: str


class Balance(BaseModel):
    """A single balance entry of an account."""
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    balance_amount: BalanceAmount
    balance_type: str
    reference_date: Optional[str] = None


def select_primary_balance(balances: Sequence[Balance]) -> Optional[Balance]:
    """
    Pick the balance shown to the user.

    The first entry typed CLAV or XPCD wins; otherwise the first entry.
    Returns None for an empty list.
    """
    for balance in balances:
        if balance.balance_type in PREFERRED_BALANCE_TYPES:
            return balance
    return balances[0] if balances else None


# =============================================================================
# STORED RECORDS
# =============================================================================

class LinkedSession(BaseModel):
    """
    A completed bank-authorization flow.

    Created once per successful code exchange, deleted by the user,
    immutable otherwise.
    """

    session_id: str
    bank_name: str
    bank_country: str
    accounts: list[UpstreamAccount] = Field(default_factory=list)
    connected_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @classmethod
    def from_session_data(cls, data: SessionData) -> "LinkedSession":
        return cls(
            session_id=data.session_id,
            bank_name=data.bank.name,
            bank_country=data.bank.country,
            accounts=data.accounts,
        )


class AccountMetadata(BaseModel):
    """User overrides for a connected account. Absent means defaults."""

    category: AccountCategory = DEFAULT_ACCOUNT_CATEGORY


class ManualAccount(BaseModel):
    """
    A user-entered account.

    Ids carry the "manual_" prefix, which keeps them disjoint from
    upstream account ids in the unified list.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=lambda: generate_local_id(MANUAL_ACCOUNT_PREFIX)
    )
    name: str = Field(
        default="New Account",
        min_length=1,
        max_length=200
    )
    balance: Decimal = Decimal("0")
    category: AccountCategory = DEFAULT_ACCOUNT_CATEGORY
    currency: str = Field(default="EUR", min_length=3, max_length=3)
    bank_name: Optional[str] = None

    @field_validator('id')
    @classmethod
    def require_manual_prefix(cls, v: str) -> str:
        if not v.startswith(f"{MANUAL_ACCOUNT_PREFIX}_"):
            raise ValueError(
                f"Manual account ids must start with '{MANUAL_ACCOUNT_PREFIX}_'"
            )
        return v


# =============================================================================
# UNIFIED VIEW
# =============================================================================

class UnifiedAccount(BaseModel):
    """
    The canonical, display-ready account.

    Instances are never mutated in place; use model_copy(update=...)
    to derive the next state.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    source_type: SourceType
    display_name: str
    bank_name: str
    category: AccountCategory = DEFAULT_ACCOUNT_CATEGORY
    currency: str = "EUR"
    balance: Decimal = Decimal("0")
    iban: Optional[str] = None
    upstream: Optional[UpstreamAccount] = Field(
        default=None,
        description="Only set for connected accounts"
    )

    # Transient fetch status, meaningful for connected accounts only
    loading: bool = False
    error: Optional[str] = None

    @classmethod
    def from_manual(cls, account: ManualAccount) -> "UnifiedAccount":
        return cls(
            id=account.id,
            source_type=SourceType.MANUAL,
            display_name=account.name,
            bank_name=account.bank_name or "Manual Account",
            category=account.category,
            currency=account.currency,
            balance=account.balance,
        )

    @classmethod
    def connected_skeleton(
        cls,
        upstream: UpstreamAccount,
        bank_name: str,
        metadata: Optional[AccountMetadata] = None,
    ) -> "UnifiedAccount":
        """Placeholder entry shown while the balance is being fetched."""
        return cls(
            id=upstream.uid,
            source_type=SourceType.CONNECTED,
            display_name=upstream.display_name,
            bank_name=bank_name,
            category=metadata.category if metadata else DEFAULT_ACCOUNT_CATEGORY,
            currency=upstream.currency or "EUR",
            balance=Decimal("0"),
            iban=upstream.iban,
            upstream=upstream,
            loading=True,
        )

    @property
    def is_connected(self) -> bool:
        return self.source_type == SourceType.CONNECTED

    @property
    def has_known_balance(self) -> bool:
        """True when the balance came from a successful fetch (or manual entry)."""
        return not self.loading and self.error is None
