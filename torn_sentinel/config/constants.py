"""Shared runtime constants for Torn Sentinel services."""

SERVICE_NAMES = [
    "sentinel_api",
    "trade_tracker",
]
OPTIONAL_SERVICES = ["sentinel_api"]

HOME_LOCATION = "Torn"

# key -> (YATA code, display name)
REGIONS: dict[str, tuple[str, str]] = {
    "argentina": ("arg", "Argentina"),
    "canada": ("can", "Canada"),
    "cayman": ("cay", "Cayman Islands"),
    "china": ("chi", "China"),
    "hawaii": ("haw", "Hawaii"),
    "japan": ("jap", "Japan"),
    "mexico": ("mex", "Mexico"),
    "southafrica": ("sou", "South Africa"),
    "switzerland": ("swi", "Switzerland"),
    "uk": ("uni", "United Kingdom"),
    "uae": ("uae", "UAE"),
}

DEFAULT_TORN_API_BASE_URL = "https://api.torn.com"
DEFAULT_TORN_API_V2_BASE_URL = "https://api.torn.com/v2"
DEFAULT_YATA_URL = "https://yata.yt/api/v1/travel/export/"
DEFAULT_USER_AGENT = "torn-sentinel/0.1"
DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_DATA_DIR = "./data"
DEFAULT_TIMEZONE = "Asia/Jakarta"
DEFAULT_API_PORT = 8000
DEFAULT_ACCOUNT_SELECTIONS = "basic,inventory,money,travel,bars,job,personalstats"
DEFAULT_LISTING_SELECTIONS = "itemmarket,bazaar"

# Activity detection
DEFAULT_THRESHOLDS = {
    "energy_change": 5,
    "nerve_change": 2,
    "cash_change": 10_000,
    "inventory_change": 1,
}
DEFAULT_EVENT_COOLDOWN = 30.0
EVENT_COOLDOWNS: dict[str, float] = {
    "energy_used": 30.0,
    "energy_full": 300.0,
    "nerve_used": 30.0,
    "crime_reward": 30.0,
    "travel_depart": 60.0,
    "travel_arrive": 60.0,
    "trade_buy": 30.0,
    "trade_sell": 30.0,
    "wallet_change": 60.0,
    "job_points": 300.0,
    "job_change": 60.0,
}
ENERGY_SOURCE_XANAX_DROP = 100
ENERGY_SOURCE_GYM_DROP = 50
ACTIVITY_LOG_MAX_ENTRIES = 500
ACTIVITY_LOG_RETENTION = 72 * 3600.0

# Trade detection
MIN_BUY_THRESHOLD = 1_000
BUY_RATIO_DEVIATION = 0.01
BUY_ABSOLUTE_ERROR = 500
TYPICAL_TRAVEL_CAPACITY = 25
BUY_DEDUP_WINDOW = 60.0
SELL_RATIO_MIN = 0.90
SELL_RATIO_MAX = 1.05
DEFAULT_MARKET_TAX = 0.05
TRADE_LOG_MAX_ENTRIES = 500

# Market alerts
ALERT_ARM_WINDOW = 180
DEFAULT_ALERT_COOLDOWN = 15 * 60.0
ALERT_LOG_MAX_ENTRIES = 200

# Profit aggregation
INCOME_CATEGORIES = ("travel", "crime", "job", "other")
EXPENSE_CATEGORIES = ("property", "xanax", "travel_buy", "tax", "other")
STAT_KEYS = ("tripCount", "crimeCount", "xanaxUsed", "hoursActive")
DEFAULT_XANAX_PRICE = 850_000.0
