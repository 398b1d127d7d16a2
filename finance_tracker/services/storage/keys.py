"""Store keys used by the finance tracker."""

SESSIONS_KEY = "enablebanking_sessions"
MANUAL_ACCOUNTS_KEY = "manual_accounts"
ACCOUNT_METADATA_KEY = "account_metadata"
CASH_BALANCE_KEY = "user_cash_balance"
RENDER_CACHE_KEY = "cached_unified_accounts"

CATEGORIES_KEY = "tx_categories"
TRANSACTION_CATEGORY_MAP_KEY = "tx_category_map"

DEBT_ENTITIES_KEY = "debt_entities"
DEBT_ITEMS_KEY = "debt_items"

AUDIT_LOG_KEY = "audit_log"

MANUAL_TRANSACTIONS_PREFIX = "manual_transactions_"
CONNECTED_TRANSACTIONS_PREFIX = "connected_transactions_"


def manual_transactions_key(account_id: str) -> str:
    return f"{MANUAL_TRANSACTIONS_PREFIX}{account_id}"


def connected_transactions_key(account_id: str) -> str:
    return f"{CONNECTED_TRANSACTIONS_PREFIX}{account_id}"
