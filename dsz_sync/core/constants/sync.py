"""
Sync constants — batch limits, supplier API limits, lock thresholds, option keys.

Sync engine constants.
Version: 1.0.0
"""

# Supplier API documented limits
MAX_SKUS_PER_API_CALL: int = 100
MAX_PRODUCTS_PER_PAGE: int = 200
MAX_STOCK_PER_PAGE: int = 160
STOCK_WINDOW_DAYS: int = 9

# Token is treated as expired this many seconds before its real expiry
TOKEN_BUFFER_SECONDS: int = 120
DEFAULT_TOKEN_LIFETIME_SECONDS: int = 900

DEFAULT_BATCH_SIZE: int = 100

# A run whose heartbeat is older than this is considered crashed
STUCK_THRESHOLD_MINUTES: int = 30
STALE_LOCK_SECONDS: int = STUCK_THRESHOLD_MINUTES * 60

MEMORY_THRESHOLD_PERCENT: float = 85.0

# Delay before the next batch step is triggered
BATCH_CONTINUE_DELAY_SECONDS: int = 5

AUTO_IMPORT_HISTORY_LIMIT: int = 30
AUTO_IMPORT_FIRST_RUN_DELAY_SECONDS: int = 60

FREQUENCIES: dict[str, str] = {
    "hourly": "Every Hour",
    "twicedaily": "Twice Daily",
    "daily": "Once Daily",
}

FREQUENCY_SECONDS: dict[str, int] = {
    "hourly": 3600,
    "twicedaily": 43200,
    "daily": 86400,
}

# Scheduler event names
SYNC_EVENT: str = "dsz_sync_cron_hook"
SYNC_CONTINUE_EVENT: str = "dsz_sync_batch_continue"
AUTO_IMPORT_EVENT: str = "dsz_auto_import_cron_hook"

# Settings/KV store keys
OPTION_API_TOKEN: str = "dsz_sync_api_token"
OPTION_TOKEN_EXPIRY: str = "dsz_sync_token_expiry"
OPTION_API_EMAIL: str = "dsz_sync_api_email"
OPTION_API_PASSWORD: str = "dsz_sync_api_password"
OPTION_PRICE_RULES: str = "dsz_sync_price_rules"
OPTION_STOCK_RULES: str = "dsz_sync_stock_rules"
OPTION_SYNC_STATE: str = "dsz_sync_settings"
OPTION_RATE_LIMIT: str = "dsz_rate_limit_data"
OPTION_IMPORT_SETTINGS: str = "dsz_sync_import_settings"
OPTION_AUTO_IMPORT_SETTINGS: str = "dsz_auto_import_settings"
OPTION_AUTO_IMPORT_STATE: str = "dsz_auto_import_state"
OPTION_AUTO_IMPORT_HISTORY: str = "dsz_auto_import_history"
OPTION_SCHEDULE: str = "dsz_schedule"

# Lease names
SYNC_LEASE_NAME: str = "sync_run"
AUTO_IMPORT_LEASE_NAME: str = "auto_import_run"

# Local catalog status values
STATUS_PUBLISH: str = "publish"
STATUS_DRAFT: str = "draft"
STOCK_STATUS_IN: str = "instock"
STOCK_STATUS_OUT: str = "outofstock"

# Supplier-side order status after placement ("awaiting payment")
DSZ_ORDER_NOT_SUBMITTED: str = "not_submitted"
DSZ_ORDER_ERROR: str = "error"
