"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

ADMIN_ROLE_NAME = "Admin"
RATE_DECIMALS = 2
DEFAULT_ISOLATION_LEVEL = "READ COMMITTED"
MAX_FORM_PAYLOAD_LENGTH = 100000

# Statistics dashboards
DEFAULT_TREND_MONTHS = 12
MIN_TREND_MONTHS = 1
MAX_TREND_MONTHS = 120
DEFAULT_TOP_EVENTS = 10
MIN_TOP_EVENTS = 1
MAX_TOP_EVENTS = 100
