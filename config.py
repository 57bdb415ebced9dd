"""
Configuration settings for the rental service.
"""
import os
import json
import logging
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _parse_non_negative(raw, default):
    """Parse a non-negative number, returning default if parsing fails."""
    if raw is None:
        return default
    try:
        value = float(raw)
    except (ValueError, TypeError):
        logger.warning(f"Ignoring invalid numeric setting {raw!r}, using {default}")
        return default
    if value < 0:
        logger.warning(f"Ignoring negative numeric setting {raw!r}, using {default}")
        return default
    return value


def _parse_bool(raw, default=False):
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# Business calendar
BUSINESS_TZ = os.getenv("BUSINESS_TZ", "Europe/Athens")

# Pricing
DEFAULT_SECOND_DRIVER_PRICE_PER_DAY = 5
SECOND_DRIVER_PRICE_PER_DAY = _parse_non_negative(
    os.getenv("SECOND_DRIVER_PRICE_PER_DAY"), DEFAULT_SECOND_DRIVER_PRICE_PER_DAY
)
STRICT_PRICING = _parse_bool(os.getenv("STRICT_PRICING"))

# Season calendar, "DD/MM" boundaries, inclusive. A range whose start is
# later in the year than its end wraps across New Year.
DEFAULT_SEASON_TABLE = {
    "LowSeason": {"start": "01/10", "end": "30/04"},
    "MiddleSeason": {"start": "01/05", "end": "15/06"},
    "HighSeason": {"start": "16/06", "end": "15/07"},
    "UpSeason": {"start": "16/07", "end": "31/08"},
}

_raw_season_table = os.getenv("SEASON_TABLE")
if _raw_season_table:
    try:
        SEASON_TABLE = json.loads(_raw_season_table)
    except json.JSONDecodeError as e:
        raise ValueError(f"SEASON_TABLE must be a JSON object: {e}") from e
else:
    SEASON_TABLE = DEFAULT_SEASON_TABLE

# Conflicts
CONFLICT_BUFFER_HOURS = _parse_non_negative(os.getenv("CONFLICT_BUFFER_HOURS"), 0)

# Notifications
EMAIL_TESTING = _parse_bool(os.getenv("EMAIL_TESTING"))

# Logging Configuration
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "%(asctime)s - %(levelname)s - %(name)s - %(message)s")
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
